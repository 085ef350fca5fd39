"""Query lifecycle state machine."""

from enum import Enum
from typing import ClassVar

import structlog


logger = structlog.get_logger()


class QueryState(str, Enum):
    """Lifecycle of one ``rank`` call and the results it displayed.

    State transitions:
        IDLE -> RETRIEVING: Text candidates requested
        RETRIEVING -> SCORING: Contextual features and model scores computed
        SCORING -> FILTERING: Tail filter and duplicate collapse applied
        FILTERING -> DISPLAYED: Results handed to the caller
        DISPLAYED -> CLICKED: A displayed result was clicked (trains the model)
        DISPLAYED -> IMPRESSED: Results were shown without a click yet
        IMPRESSED -> CLICKED: A click arrived after the impressions
        any non-terminal -> SUPERSEDED: A newer query started
    """

    IDLE = "IDLE"
    RETRIEVING = "RETRIEVING"
    SCORING = "SCORING"
    FILTERING = "FILTERING"
    DISPLAYED = "DISPLAYED"
    CLICKED = "CLICKED"
    IMPRESSED = "IMPRESSED"
    SUPERSEDED = "SUPERSEDED"


class QueryStateTransitionError(Exception):
    """Raised when an invalid query state transition is attempted."""

    def __init__(self, sequence: int, from_state: QueryState, to_state: QueryState) -> None:
        """Initialize the error.

        Args:
            sequence: Query sequence number.
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.sequence = sequence
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid query state transition for #{sequence}: "
            f"{from_state.value} -> {to_state.value}"
        )


class QueryLifecycle:
    """State machine for a single query sequence number.

    Only ``DISPLAYED`` and ``IMPRESSED`` queries accept training feedback.
    """

    VALID_TRANSITIONS: ClassVar[dict[QueryState, set[QueryState]]] = {
        QueryState.IDLE: {QueryState.RETRIEVING, QueryState.SUPERSEDED},
        QueryState.RETRIEVING: {QueryState.SCORING, QueryState.SUPERSEDED},
        QueryState.SCORING: {QueryState.FILTERING, QueryState.SUPERSEDED},
        QueryState.FILTERING: {QueryState.DISPLAYED, QueryState.SUPERSEDED},
        QueryState.DISPLAYED: {
            QueryState.CLICKED,
            QueryState.IMPRESSED,
            QueryState.SUPERSEDED,
        },
        QueryState.IMPRESSED: {QueryState.CLICKED, QueryState.SUPERSEDED},
        QueryState.CLICKED: set(),  # Terminal state
        QueryState.SUPERSEDED: set(),  # Terminal state
    }

    def __init__(self, sequence: int) -> None:
        """Initialize the state machine in IDLE state.

        Args:
            sequence: Query sequence number for logging.
        """
        self._sequence = sequence
        self._state = QueryState.IDLE
        self._log = logger.bind(component="ranker", query_seq=sequence)

    @property
    def state(self) -> QueryState:
        """Get the current state."""
        return self._state

    @property
    def sequence(self) -> int:
        """Get the query sequence number."""
        return self._sequence

    @property
    def accepts_feedback(self) -> bool:
        """Whether a click may still train against this query's results."""
        return self._state in (QueryState.DISPLAYED, QueryState.IMPRESSED)

    def can_transition(self, to_state: QueryState) -> bool:
        """Check if a transition to the given state is valid.

        Args:
            to_state: The target state.

        Returns:
            True if the transition is valid, False otherwise.
        """
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: QueryState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            QueryStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.value,
                to_state=to_state.value,
            )
            raise QueryStateTransitionError(self._sequence, self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.debug(
            "query_state_transition",
            from_state=old_state.value,
            to_state=to_state.value,
        )

    def supersede(self) -> bool:
        """Move to SUPERSEDED if still possible.

        Returns:
            True if the query was superseded by this call.
        """
        if not self.can_transition(QueryState.SUPERSEDED):
            return False
        self.transition(QueryState.SUPERSEDED)
        return True
