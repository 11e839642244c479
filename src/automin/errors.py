from typing import Optional


class AutomatonError(Exception):
    """Base class for every error raised by the minimization engine."""

    def __init__(self, message: str, state_id: Optional[str] = None):
        super().__init__(message)
        self.state_id = state_id


class MalformedAutomatonError(AutomatonError):
    """Dangling transition target, duplicate state id or unreadable structure."""


class OperationOnUnknownStateError(AutomatonError):
    pass


class NoCurrentStateError(AutomatonError):
    def __init__(self, message: str = "automaton has no current or initial state"):
        super().__init__(message)


class StateLimitExceededError(AutomatonError):
    def __init__(self, count: int, limit: int):
        super().__init__(f"automaton has {count} states, limit is {limit}")
        self.count = count
        self.limit = limit
