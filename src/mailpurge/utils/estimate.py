"""Runtime estimates for Gmail bulk operations."""

import math

from ..core.config import BATCH_DELAY, DELETION_BATCH_SIZE

# Observed Gmail latencies in seconds
LIST_CALL_SECONDS = 0.8
BATCH_DELETE_SECONDS = 1.5
TOKEN_CHECK_SECONDS = 0.05
BASE_OVERHEAD_SECONDS = 2.0


def estimate_runtime_seconds(
    operation: str, item_count: int, batch_size: int = DELETION_BATCH_SIZE
) -> float:
    """Estimate how long an operation over ``item_count`` messages takes.

    Args:
        operation: Operation type, e.g. "delete"
        item_count: Estimated number of messages
        batch_size: Messages per list/delete round trip

    Returns:
        float: Estimated runtime in seconds
    """
    if item_count <= 0:
        return BASE_OVERHEAD_SECONDS

    batches = math.ceil(item_count / batch_size)
    per_batch = LIST_CALL_SECONDS + TOKEN_CHECK_SECONDS + BATCH_DELAY

    if operation == "delete":
        per_batch += BATCH_DELETE_SECONDS
    return BASE_OVERHEAD_SECONDS + batches * per_batch


def format_duration(seconds: float) -> str:
    """Render a duration for humans, e.g. ``"3 min 20 sec"``.

    Args:
        seconds: Duration in seconds

    Returns:
        str: Short human-readable duration
    """
    if seconds < 1:
        return "<1 sec"

    total = int(round(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours:
        return f"{hours} hr {minutes} min" if minutes else f"{hours} hr"
    if minutes:
        return f"{minutes} min {secs} sec" if secs else f"{minutes} min"
    return f"{secs} sec"
