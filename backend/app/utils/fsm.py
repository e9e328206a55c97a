from __future__ import annotations
"""Simple finite state machine utility for enforcing allowed status transitions.

Usage:
    from app.utils.fsm import TransitionValidator
    INVOICE_FSM = TransitionValidator({
        'DRAFT': {'CONFIRMED'},
        'CONFIRMED': set(),
    })
    INVOICE_FSM.assert_can_transition(current_status, target_status)

Raises a 409 ConflictError if invalid (the document is in a state that forbids the move).
"""
from typing import Dict, Set
from app.errors import ConflictError

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            raise ConflictError(
                f"Invalid {self.field_name} transition {current} -> {target}",
                extra={'current': current, 'target': target},
            )
        return True

__all__ = ['TransitionValidator']
