"""
Game Session Models

One shared document models the current two-player mini-game. Both
clients read it, both write partial updates to it, and ending a game
deletes it. There is no "finished" status and no history.

DESIGN DECISION: All four variants share one flat document. Creating a
session fills every variant's fields with defaults, so a partial update
for any variant always lands on a complete document.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from money_mates.models.ledger import ProfileId, utc_now


# =============================================================================
# ENUMS
# =============================================================================

class GameType(str, Enum):
    """The four mini-games."""
    RPS = "rps"
    ROULETTE = "roulette"
    RNG = "rng"
    DECIDE = "decide"

    @property
    def display_name(self) -> str:
        return GAME_TITLES[self]


GAME_TITLES = {
    GameType.RPS: "Rock Paper Scissors",
    GameType.ROULETTE: "Random Roulette",
    GameType.RNG: "Number Generator",
    GameType.DECIDE: "Decide For Me",
}


class GameStatus(str, Enum):
    """
    Lifecycle of a session document.

    pending -> active -> (document deleted)
    """
    PENDING = "pending"
    ACTIVE = "active"


class HandChoice(str, Enum):
    """Symmetric hand game choices."""
    ROCK = "rock"
    PAPER = "paper"
    SCISSORS = "scissors"


class HandOutcome(str, Enum):
    """Result of a hand game round, from pea's side ("a") vs cam's ("b")."""
    A_WINS = "a"
    B_WINS = "b"
    DRAW = "draw"


class DecideMode(str, Enum):
    THINK = "think"    # guided narrowing over several turns
    RANDOM = "random"  # one-shot pick


class DecideRole(str, Enum):
    AI = "ai"
    USER = "user"


class DecideMessage(BaseModel):
    """One turn of the decision dialogue."""

    role: DecideRole
    text: str = Field(..., min_length=1)


# =============================================================================
# SESSION DOCUMENT
# =============================================================================

class GameSession(BaseModel):
    """
    The singleton game session document (fixed id "active").

    Field names double as the keys of partial updates.
    """

    id: str = "active"
    game_type: GameType
    status: GameStatus = GameStatus.PENDING
    initiator: ProfileId
    created_at: datetime = Field(default_factory=utc_now)

    # Hand game
    pea_choice: Optional[HandChoice] = None
    cam_choice: Optional[HandChoice] = None
    rps_round: int = Field(default=1, ge=1)
    rps_score_pea: int = Field(default=0, ge=0)
    rps_score_cam: int = Field(default=0, ge=0)

    # Roulette
    roulette_items: list[str] = Field(default_factory=list)
    roulette_result: Optional[str] = None
    roulette_spin_ts: Optional[int] = Field(
        default=None,
        description="Epoch millis of the last spin; a change-detection signal only"
    )

    # Number draw
    rng_min: int = 1
    rng_max: int = 100
    rng_result: Optional[int] = None
    rng_roll_ts: Optional[int] = Field(
        default=None,
        description="Epoch millis of the last roll; a change-detection signal only"
    )

    # Decision dialogue
    decide_question: str = ""
    decide_options: list[str] = Field(default_factory=list)
    decide_mode: DecideMode = DecideMode.THINK
    decide_chat: list[DecideMessage] = Field(default_factory=list)
    decide_loading: bool = False
    decide_result: Optional[str] = None

    @classmethod
    def payload_fields(cls) -> set[str]:
        """Fields a partial update may touch."""
        return set(cls.model_fields) - {"id", "game_type", "initiator", "created_at"}

    def choice_of(self, profile_id: ProfileId) -> Optional[HandChoice]:
        return self.pea_choice if ProfileId(profile_id) is ProfileId.PEA else self.cam_choice

    @property
    def both_picked(self) -> bool:
        return self.pea_choice is not None and self.cam_choice is not None

    def is_pending_invite_for(self, profile_id: ProfileId) -> bool:
        """A pending session started by the other profile."""
        return self.status is GameStatus.PENDING and self.initiator != ProfileId(profile_id)

    # Decision dialogue views

    @property
    def decide_is_setup(self) -> bool:
        return not self.decide_question

    @property
    def decide_is_done(self) -> bool:
        return bool(self.decide_result)

    @property
    def decide_ai_turns(self) -> int:
        return sum(1 for message in self.decide_chat if message.role is DecideRole.AI)

    @property
    def decide_waiting_for_user(self) -> bool:
        return (
            not self.decide_is_done
            and not self.decide_loading
            and self.decide_mode is DecideMode.THINK
            and bool(self.decide_chat)
            and self.decide_chat[-1].role is DecideRole.AI
        )


def choice_field(profile_id: ProfileId) -> str:
    """Document field holding this profile's hand choice."""
    return f"{ProfileId(profile_id).value}_choice"
