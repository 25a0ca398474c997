"""Engines driving a swipe session.

- Adaptive buffer: grouped, self-refilling window over the backlog
- Action orchestrator: disposal actions with a time-boxed undo table
- Unsubscribe chain and block/domain-nuke flows used by the orchestrator
"""

from swipe.engine.actions import (
    ActionOptions,
    ActionOrchestrator,
    ActionResult,
    UndoResult,
    build_action_log,
)
from swipe.engine.buffer import AdaptiveBuffer, BufferItem, BufferSnapshot, group_window
from swipe.engine.unsubscribe import UnsubscribeChain, check_unsubscribe_safety

__all__ = [
    "ActionOptions",
    "ActionOrchestrator",
    "ActionResult",
    "UndoResult",
    "build_action_log",
    "AdaptiveBuffer",
    "BufferItem",
    "BufferSnapshot",
    "group_window",
    "UnsubscribeChain",
    "check_unsubscribe_safety",
]
