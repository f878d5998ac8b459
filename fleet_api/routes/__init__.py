from fleet_api.routes import payments, webhooks

__all__ = ["payments", "webhooks"]
