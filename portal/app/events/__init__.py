from .models import NotificationLevel, PortalEvent, PortalEventType
from .emitter import PortalEventEmitter, NullEventEmitter
from .memory_emitter import MemoryQueueEventEmitter

__all__ = [
    "NotificationLevel",
    "PortalEvent",
    "PortalEventType",
    "PortalEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
