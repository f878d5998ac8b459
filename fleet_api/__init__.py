"""HTTP surface for the fleet payment kernel."""

from fleet_api.app import create_app

__all__ = ["create_app"]
