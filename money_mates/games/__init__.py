"""Two-player mini-games played over the shared session document."""

from money_mates.games.session import (
    GameError,
    GameSessionManager,
    GameValidationError,
    InvalidTransitionError,
    pending_invite_for,
)
from money_mates.games.rules import (
    DecidePromptKind,
    RevealFrame,
    hand_outcome,
    number_frames,
    roulette_frames,
)
from money_mates.games.reveal import HandRevealTracker, RevealWatcher, SignalTracker

__all__ = [
    "DecidePromptKind",
    "GameError",
    "GameSessionManager",
    "GameValidationError",
    "HandRevealTracker",
    "InvalidTransitionError",
    "RevealFrame",
    "RevealWatcher",
    "SignalTracker",
    "hand_outcome",
    "number_frames",
    "pending_invite_for",
    "roulette_frames",
]
