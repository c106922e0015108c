from zephra.services.webhooks.events import WebhookEventKind, parse_event
from zephra.services.webhooks.router import dispatch
from zephra.services.webhooks.signature import verify_webhook_signature
from zephra.services.webhooks.status_mapper import map_subscription_status

__all__ = [
    "WebhookEventKind",
    "dispatch",
    "map_subscription_status",
    "parse_event",
    "verify_webhook_signature",
]
