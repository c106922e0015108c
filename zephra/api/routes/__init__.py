from zephra.api.routes import admin, csrf, stripe, user, webhooks

__all__ = ["admin", "csrf", "stripe", "user", "webhooks"]
