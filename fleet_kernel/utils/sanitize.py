"""Input sanitisation for strings arriving from outside the kernel."""

import html

MAX_INPUT_LENGTH = 1000


def sanitize_input(value: object, max_length: int = MAX_INPUT_LENGTH) -> str:
    """
    HTML-escape markup characters, trim, and cap the length.

    Non-string input yields an empty string.

    Example:
        >>> sanitize_input("  <b>Chen</b> ")
        '&lt;b&gt;Chen&lt;/b&gt;'
    """
    if not isinstance(value, str):
        return ""
    return html.escape(value, quote=True).strip()[:max_length]
