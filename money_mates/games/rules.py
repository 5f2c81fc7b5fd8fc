"""
Game Rules

Pure logic of the four mini-games: hand resolution, random picks, the
client-local reveal animation frames and the decision dialogue's turn
order. Nothing here touches the store.
"""

import random
from enum import Enum
from typing import Any, Optional, Sequence

from pydantic import BaseModel

from money_mates.games.session import GameValidationError
from money_mates.models.game import GameSession, HandChoice, HandOutcome


# =============================================================================
# HAND GAME
# =============================================================================

# Each choice beats exactly one other
BEATS = {
    HandChoice.ROCK: HandChoice.SCISSORS,
    HandChoice.PAPER: HandChoice.ROCK,
    HandChoice.SCISSORS: HandChoice.PAPER,
}


def hand_outcome(a: HandChoice, b: HandChoice) -> HandOutcome:
    """Outcome from player a's side."""
    if a is b:
        return HandOutcome.DRAW
    if BEATS[a] is b:
        return HandOutcome.A_WINS
    return HandOutcome.B_WINS


def session_outcome(session: GameSession) -> Optional[HandOutcome]:
    """Round outcome once both have picked; pea is side a."""
    if not session.both_picked:
        return None
    return hand_outcome(session.pea_choice, session.cam_choice)


def play_again_update(session: GameSession) -> dict[str, Any]:
    """Clear both choices, advance the round and credit the winner."""
    outcome = session_outcome(session)
    if outcome is None:
        raise GameValidationError("Both players must pick before playing again")
    return {
        "pea_choice": None,
        "cam_choice": None,
        "rps_round": session.rps_round + 1,
        "rps_score_pea": session.rps_score_pea + (1 if outcome is HandOutcome.A_WINS else 0),
        "rps_score_cam": session.rps_score_cam + (1 if outcome is HandOutcome.B_WINS else 0),
    }


def reset_score_update() -> dict[str, Any]:
    return {
        "pea_choice": None,
        "cam_choice": None,
        "rps_round": 1,
        "rps_score_pea": 0,
        "rps_score_cam": 0,
    }


# =============================================================================
# ROULETTE AND NUMBER DRAW
# =============================================================================

MIN_ROULETTE_OPTIONS = 2


def pick_roulette_result(items: Sequence[str], rng: random.Random) -> str:
    """Uniform pick from the option list."""
    if len(items) < MIN_ROULETTE_OPTIONS:
        raise GameValidationError(f"Add at least {MIN_ROULETTE_OPTIONS} options to spin")
    return rng.choice(list(items))


def draw_number(lo: int, hi: int, rng: random.Random) -> int:
    """Uniform integer in [lo, hi]."""
    if lo >= hi:
        raise GameValidationError("Min must be less than max")
    return rng.randint(lo, hi)


class RevealFrame(BaseModel):
    """One frame of a reveal animation and how long it stays up."""

    value: Any
    delay_ms: float


def _cycling_frames(
    total_ticks: int,
    base_delay_ms: float,
    delay_growth_ms: float,
    final_value: Any,
    random_value,
) -> list[RevealFrame]:
    """
    Random values with a slowing delay, landing on final_value.

    Tick n (1-based) of total shows a random value for
    base + (n / total) * growth ms; the last tick shows the result.
    """
    frames = [
        RevealFrame(
            value=random_value(),
            delay_ms=base_delay_ms + (tick / total_ticks) * delay_growth_ms,
        )
        for tick in range(1, total_ticks)
    ]
    frames.append(RevealFrame(value=final_value, delay_ms=0))
    return frames


def roulette_frames(items: Sequence[str], result: str, rng: random.Random) -> list[RevealFrame]:
    """20-27 ticks, delays from 50ms growing toward 300ms."""
    total = 20 + rng.randrange(8)
    return _cycling_frames(total, 50, 250, result, lambda: rng.choice(list(items)))


def number_frames(lo: int, hi: int, result: int, rng: random.Random) -> list[RevealFrame]:
    """15-22 ticks, delays from 40ms growing toward 240ms."""
    total = 15 + rng.randrange(8)
    return _cycling_frames(total, 40, 200, result, lambda: rng.randint(lo, hi))


# =============================================================================
# DECISION DIALOGUE
# =============================================================================

# Narrowing questions asked in think mode before concluding
MAX_NARROWING_QUESTIONS = 3


class DecidePromptKind(str, Enum):
    RANDOM = "random"
    THINK_QUESTION = "think_question"
    THINK_CONCLUDE = "think_conclude"


def next_think_prompt(ai_turns: int) -> DecidePromptKind:
    """After three AI questions the fourth AI turn concludes."""
    if ai_turns >= MAX_NARROWING_QUESTIONS:
        return DecidePromptKind.THINK_CONCLUDE
    return DecidePromptKind.THINK_QUESTION


def clean_options(options: Sequence[str]) -> list[str]:
    """Strip, drop blanks and duplicates, keep order."""
    cleaned: list[str] = []
    for option in options:
        option = option.strip()
        if option and option not in cleaned:
            cleaned.append(option)
    return cleaned
