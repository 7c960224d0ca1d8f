"""Commit workflow states and their transitions.

The interactive loop is a small state machine. States are immutable values and
every transition returns a new state, so the functions here do no I/O and can
be tested directly. The driver in ``cli.cli_handler`` performs the side effects
(provider calls, menus, the final commit) between transitions.
"""

from dataclasses import dataclass
from typing import Union

from ..errors import RetryLimitExceeded

DEFAULT_MAX_RETRIES = 10


@dataclass(frozen=True)
class Generating:
    """A message needs to be generated (or regenerated)."""

    attempt: int = 0
    feedback: tuple[str, ...] = ()


@dataclass(frozen=True)
class WaitingForAction:
    """A message is on screen and the user has to decide what to do with it."""

    message: str
    attempt: int
    feedback: tuple[str, ...] = ()


@dataclass(frozen=True)
class Accepted:
    """The message is final and ready to be committed."""

    message: str


@dataclass(frozen=True)
class Cancelled:
    """The user quit."""


CommitState = Union[Generating, WaitingForAction, Accepted, Cancelled]


@dataclass(frozen=True)
class Accept:
    pass


@dataclass(frozen=True)
class Edit:
    new_message: str


@dataclass(frozen=True)
class EditCancelled:
    pass


@dataclass(frozen=True)
class Retry:
    pass


@dataclass(frozen=True)
class RetryWithFeedback:
    feedback: str | None = None


@dataclass(frozen=True)
class Quit:
    pass


UserAction = Union[Accept, Edit, EditCancelled, Retry, RetryWithFeedback, Quit]


def is_terminal(state: CommitState) -> bool:
    """Accepted and Cancelled end the loop."""
    return isinstance(state, (Accepted, Cancelled))


def check_retry_limit(state: Generating, max_retries: int) -> None:
    """Raise RetryLimitExceeded before a generation that would exceed the limit."""
    if not isinstance(state, Generating):
        raise ValueError(f"check_retry_limit called in state {type(state).__name__}")
    if state.attempt >= max_retries:
        raise RetryLimitExceeded(max_retries)


def handle_generation(
    state: Generating, message: str, auto_accept: bool = False
) -> Union[WaitingForAction, Accepted]:
    """Move on from Generating once the provider produced a message."""
    if not isinstance(state, Generating):
        raise ValueError(f"handle_generation called in state {type(state).__name__}")
    if auto_accept:
        return Accepted(message)
    return WaitingForAction(message=message, attempt=state.attempt, feedback=state.feedback)


def handle_action(state: WaitingForAction, action: UserAction) -> CommitState:
    """Apply the user's menu choice to a WaitingForAction state."""
    if not isinstance(state, WaitingForAction):
        raise ValueError(f"handle_action called in state {type(state).__name__}")

    if isinstance(action, Accept):
        return Accepted(state.message)
    if isinstance(action, Edit):
        # An edited message is taken as final, verbatim
        return Accepted(action.new_message)
    if isinstance(action, EditCancelled):
        return state
    if isinstance(action, Retry):
        return Generating(attempt=state.attempt + 1, feedback=state.feedback)
    if isinstance(action, RetryWithFeedback):
        feedback = state.feedback
        if action.feedback:
            feedback = feedback + (action.feedback,)
        return Generating(attempt=state.attempt + 1, feedback=feedback)
    if isinstance(action, Quit):
        return Cancelled()

    raise ValueError(f"Unknown user action: {action!r}")
