"""Deterministic workflow state machine.

Enforces:
- Valid state transitions only (per-kind transition table)
- Every transition recorded in the session transition log
- A fresh attempt id each time the machine leaves IDLE
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Generic, TypeVar

from veilmarket.core.errors import InvalidTransitionError
from veilmarket.models.workflow import StateTransition, WorkflowKind

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Enum)


class WorkflowMachine(Generic[S]):
    """Tracks the current state of one workflow and validates transitions.

    Parameters
    ----------
    kind:
        Which workflow this machine drives.
    transitions:
        Allowed target states per source state.
    initial:
        The idle state the machine starts in.
    """

    def __init__(
        self,
        kind: WorkflowKind,
        transitions: dict[S, set[S]],
        initial: S,
    ) -> None:
        self._kind = kind
        self._transitions = transitions
        self._initial = initial
        self._state: S = initial
        self._attempt_id = ""
        self._log: list[StateTransition] = []

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> S:
        return self._state

    @property
    def attempt_id(self) -> str:
        """Identifier of the current (or most recent) attempt."""
        return self._attempt_id

    @property
    def is_idle(self) -> bool:
        return self._state == self._initial

    @property
    def transitions(self) -> list[StateTransition]:
        """Every transition this machine has made, oldest first."""
        return list(self._log)

    def get_available_transitions(self) -> set[S]:
        """Return the set of valid target states from the current state."""
        return set(self._transitions.get(self._state, set()))

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def begin(self) -> str:
        """Return to idle from any terminal state and open a new attempt.

        Returns the new attempt id.
        """
        if self._state != self._initial:
            self.transition(self._initial, reason="new attempt")
        self._attempt_id = uuid.uuid4().hex[:12]
        return self._attempt_id

    def transition(self, target: S, *, reason: str | None = None) -> StateTransition:
        """Move to *target*, recording the transition.

        Raises
        ------
        InvalidTransitionError
            If *target* is not reachable from the current state.
        """
        allowed = self._transitions.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {self._kind.value} workflow from "
                f"{self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        record = StateTransition(
            workflow=self._kind,
            from_state=self._state.value,
            to_state=target.value,
            attempt_id=self._attempt_id,
            reason=reason,
        )
        self._log.append(record)
        logger.debug(
            "%s workflow [%s]: %s -> %s%s",
            self._kind.value,
            self._attempt_id or "-",
            self._state.value,
            target.value,
            f" ({reason})" if reason else "",
        )
        self._state = target
        return record
