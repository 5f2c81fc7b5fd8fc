"""
Client-Local Reveals

Each client animates reveals on its own, triggered by what it observes
in the shared session document:

- Roulette and number draw: a new spin/roll timestamp starts a cycling
  animation that lands on the written result.
- Hand game: both choices becoming set starts the reveal; it resets
  once either choice clears.

Trackers start from the state seen when the client first looks, so a
client that joins late does not replay an old spin.
"""

import random
from typing import Optional

from pydantic import BaseModel

from money_mates.games.rules import RevealFrame, number_frames, roulette_frames, session_outcome
from money_mates.models.game import GameSession, GameType

# "Revealing..." pause before the hand game result shows
HAND_REVEAL_DELAY_MS = 1000


class SignalTracker:
    """Fires when a change-detection timestamp differs from the last one seen."""

    def __init__(self, initial: Optional[int] = None):
        self._last = initial

    def observe(self, signal: Optional[int]) -> bool:
        if not signal or signal == self._last:
            return False
        self._last = signal
        return True


class HandRevealTracker:
    """Fires on the change from "not both picked" to "both picked"."""

    def __init__(self, both_picked: bool = False):
        self._both_picked = both_picked

    def observe(self, both_picked: bool) -> bool:
        fired = both_picked and not self._both_picked
        self._both_picked = both_picked
        return fired


class Reveal(BaseModel):
    """An animation to play locally."""

    game_type: GameType
    frames: list[RevealFrame]


class RevealWatcher:
    """
    Turns the stream of session snapshots into local reveals.

    Usage:
        watcher = RevealWatcher(initial_session)
        reveal = watcher.observe(new_session)
        if reveal: play(reveal.frames)
    """

    def __init__(
        self,
        session: Optional[GameSession] = None,
        rng: Optional[random.Random] = None,
    ):
        self._rng = rng or random.Random()
        self._spin = SignalTracker(session.roulette_spin_ts if session else None)
        self._roll = SignalTracker(session.rng_roll_ts if session else None)
        self._hand = HandRevealTracker(session.both_picked if session else False)

    def observe(self, session: Optional[GameSession]) -> Optional[Reveal]:
        if session is None:
            self._hand.observe(False)
            return None

        if session.game_type is GameType.RPS and self._hand.observe(session.both_picked):
            return Reveal(
                game_type=GameType.RPS,
                frames=[
                    RevealFrame(value=None, delay_ms=HAND_REVEAL_DELAY_MS),
                    RevealFrame(value=session_outcome(session), delay_ms=0),
                ],
            )

        if (
            session.game_type is GameType.ROULETTE
            and self._spin.observe(session.roulette_spin_ts)
            and session.roulette_result is not None
            and session.roulette_items
        ):
            return Reveal(
                game_type=GameType.ROULETTE,
                frames=roulette_frames(session.roulette_items, session.roulette_result, self._rng),
            )

        if (
            session.game_type is GameType.RNG
            and self._roll.observe(session.rng_roll_ts)
            and session.rng_result is not None
        ):
            lo, hi = sorted((session.rng_min, session.rng_max))
            return Reveal(
                game_type=GameType.RNG,
                frames=number_frames(lo, hi, session.rng_result, self._rng),
            )

        return None
