"""Pipeline state machine.

Tracks the coarse processing state of the session and enforces valid
transitions.  Every ingestion request starts with :meth:`begin`, which resets
the machine and hands out a generation token; a request whose token is no
longer current has been superseded and must not commit its results.
"""

from __future__ import annotations

from catalogstudio.models import PipelineState


class PipelineStateMachine:
    """Finite state machine for ingestion requests.

    Valid transitions within a request::

        FETCHING_INFO -> CONVERTING | ERROR
        CONVERTING    -> COMPLETE | ERROR
        COMPLETE      -> ERROR      (action-level configuration failure)
        IDLE, ERROR   -> (terminal until the next begin)

    :meth:`begin` may be called from any state.
    """

    VALID_TRANSITIONS: dict[PipelineState, set[PipelineState]] = {
        PipelineState.IDLE: set(),
        PipelineState.FETCHING_INFO: {PipelineState.CONVERTING, PipelineState.ERROR},
        PipelineState.CONVERTING: {PipelineState.COMPLETE, PipelineState.ERROR},
        PipelineState.COMPLETE: {PipelineState.ERROR},
        PipelineState.ERROR: set(),
    }

    _START_STATES = frozenset({PipelineState.FETCHING_INFO, PipelineState.CONVERTING})

    def __init__(self) -> None:
        self.state: PipelineState = PipelineState.IDLE
        self.error_message: str | None = None
        self._generation: int = 0

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def begin(self, start: PipelineState) -> int:
        """Reset for a new ingestion request and return its generation token.

        Raises
        ------
        ValueError
            If *start* is not ``FETCHING_INFO`` or ``CONVERTING``.
        """
        if start not in self._START_STATES:
            raise ValueError(
                f"A request must start in fetching_info or converting, not {start.value}"
            )
        self._generation += 1
        self.state = start
        self.error_message = None
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(self, new_state: PipelineState) -> None:
        """Move to *new_state*.

        Raises
        ------
        ValueError
            If the transition is not allowed from the current state.
        """
        allowed = self.VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise ValueError(
                f"Invalid pipeline transition: {self.state.value} -> {new_state.value}. "
                f"Allowed from {self.state.value}: "
                f"{{{', '.join(sorted(s.value for s in allowed))}}}"
            )
        self.state = new_state

    def fail(self, message: str) -> None:
        """Record a fatal *message* and move to ``ERROR``.

        ``IDLE`` and ``ERROR`` go straight to ``ERROR``; every other state
        must allow the transition.
        """
        self.error_message = message
        if self.state in (PipelineState.IDLE, PipelineState.ERROR):
            self.state = PipelineState.ERROR
        else:
            self.transition(PipelineState.ERROR)

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self.state in self._START_STATES

    @property
    def actions_enabled(self) -> bool:
        """Operator actions are allowed whenever no ingestion is running."""
        return not self.is_busy
