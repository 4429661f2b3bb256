from agrimart.client.gateway import ApiClient
from agrimart.client.outbox import LocalMessage, MessageOutbox, MessageState
from agrimart.client.polling import NotificationPoller, PeriodicTask

__all__ = [
    'ApiClient',
    'LocalMessage',
    'MessageOutbox',
    'MessageState',
    'NotificationPoller',
    'PeriodicTask',
]
