from .message_bus import MessageBus
from .message_bus_utils import log_entry, conversation_between, lifecycle_entries

__all__ = ["MessageBus", "log_entry", "conversation_between", "lifecycle_entries"]
