# winefeatures/lifecycle.py
from typing import Optional

from .config import BATCH_STATES, PRODUCTION_EVENTS
from .models import WineBatch

STATE_ORDER = BATCH_STATES

# event -> (required state, resulting state)
EVENT_TRANSITIONS = {
    'harvest': ('grapes', 'grapes'),
    'crushing': ('grapes', 'must_ready'),
    'fermentation': ('must_ready', 'must_fermenting'),
    'bottling': ('must_fermenting', 'bottled'),
}


class LifecycleError(ValueError):
    pass


def advance(batch: WineBatch, event: str) -> str:
    """Move the batch along the pipeline for a production event."""
    if event not in PRODUCTION_EVENTS:
        raise LifecycleError(f"Unknown production event '{event}'")
    required, result = EVENT_TRANSITIONS[event]
    if batch.state != required:
        raise LifecycleError(
            f"Cannot run {event} on batch {batch.id}: state is {batch.state}, needs {required}"
        )
    batch.state = result
    return result


def next_event(state: str) -> Optional[str]:
    for event, (required, result) in EVENT_TRANSITIONS.items():
        if required == state and result != state:
            return event
    return None


def is_terminal(state: str) -> bool:
    return state == STATE_ORDER[-1]
