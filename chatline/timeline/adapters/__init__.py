"""Source adapter exports."""

from chatline.timeline.adapters.live_push import adapt_live_push, classify_live_push
from chatline.timeline.adapters.memory_messages import adapt_memory_message, adapt_memory_messages
from chatline.timeline.adapters.stored_rows import (
    adapt_checkpoint_row,
    adapt_stored_row,
    adapt_stored_rows,
)

__all__ = [
    "adapt_checkpoint_row",
    "adapt_live_push",
    "adapt_memory_message",
    "adapt_memory_messages",
    "adapt_stored_row",
    "adapt_stored_rows",
    "classify_live_push",
]
