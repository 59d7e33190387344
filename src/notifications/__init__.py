"""Alert notification channels.

Components:
- NotificationDispatcher: Push for every alert, one queued email per batch
- SentAlertTracker: Alert ids already handed to the email queue
- PushTransport / EmailTransport: Channel interfaces and adapters
- IdentityResolver: Recipient address lookup
"""

from src.notifications.dispatcher import (
    DispatchResult,
    NotificationDispatcher,
    select_email_alert,
)
from src.notifications.identity import IdentityResolver, StaticIdentityResolver
from src.notifications.tracker import SentAlertTracker
from src.notifications.transports import (
    EmailTransport,
    HttpEmailTransport,
    LocalNotificationTransport,
    PermanentTransportError,
    PushTransport,
    SmtpEmailTransport,
    TransientTransportError,
    TransportError,
    WebPushTransport,
)

__all__ = [
    "DispatchResult",
    "EmailTransport",
    "HttpEmailTransport",
    "IdentityResolver",
    "LocalNotificationTransport",
    "NotificationDispatcher",
    "PermanentTransportError",
    "PushTransport",
    "SentAlertTracker",
    "SmtpEmailTransport",
    "StaticIdentityResolver",
    "TransientTransportError",
    "TransportError",
    "WebPushTransport",
    "select_email_alert",
]
