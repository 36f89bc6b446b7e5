"""Per-request state machine of a wrapper."""

from enum import Enum

from isr_adapter.errors import AdapterError


class RequestState(str, Enum):
    RECEIVED = "received"
    CONVERTING = "converting"
    HANDLING = "handling"
    RESPONDING = "responding"
    STREAMING = "streaming"
    CLOSED = "closed"


_TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.RECEIVED: frozenset({RequestState.CONVERTING, RequestState.CLOSED}),
    RequestState.CONVERTING: frozenset({RequestState.HANDLING, RequestState.RESPONDING, RequestState.CLOSED}),
    RequestState.HANDLING: frozenset({RequestState.RESPONDING, RequestState.STREAMING, RequestState.CLOSED}),
    RequestState.RESPONDING: frozenset({RequestState.CLOSED}),
    RequestState.STREAMING: frozenset({RequestState.CLOSED}),
    RequestState.CLOSED: frozenset(),
}


class InvalidTransition(AdapterError):
    """A request tried to move to a state it cannot reach."""


class RequestLifecycle:
    """Tracks ``Received -> Converting -> Handling -> Responding|Streaming -> Closed``.

    ``Closed`` is terminal and can be entered exactly once.
    """

    def __init__(self) -> None:
        self.state = RequestState.RECEIVED
        self.history: list[RequestState] = [RequestState.RECEIVED]

    @property
    def closed(self) -> bool:
        return self.state is RequestState.CLOSED

    def advance(self, state: RequestState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"cannot move from {self.state.value} to {state.value}")
        self.state = state
        self.history.append(state)
