"""
Game Actions

Each player action in each mini-game, expressed as one or more partial
updates through GameSessionManager.update(). Validation happens before
any write: an action that can't be played raises GameValidationError
and the store is never called.
"""

import random
import time
from typing import Callable, Optional, Sequence

from money_mates.agents.ai_agents import DecisionAgent
from money_mates.agents.text_completion import TextCompletionError
from money_mates.games.rules import (
    DecidePromptKind,
    clean_options,
    draw_number,
    next_think_prompt,
    pick_roulette_result,
    play_again_update,
    reset_score_update,
)
from money_mates.games.session import (
    GameSessionManager,
    GameValidationError,
    InvalidTransitionError,
)
from money_mates.models.game import (
    DecideMessage,
    DecideMode,
    DecideRole,
    GameSession,
    GameType,
    HandChoice,
    choice_field,
)
from money_mates.models.ledger import ProfileId


def epoch_millis() -> int:
    return int(time.time() * 1000)


class GameActions:
    """
    Player actions for the four mini-games.

    Usage:
        actions = GameActions(manager, decision_agent)
        await actions.pick_hand(ProfileId.PEA, HandChoice.ROCK)
        await actions.spin_roulette(ProfileId.CAM)
    """

    def __init__(
        self,
        manager: GameSessionManager,
        decision_agent: Optional[DecisionAgent] = None,
        rng: Optional[random.Random] = None,
        clock_ms: Callable[[], int] = epoch_millis,
    ):
        self._manager = manager
        self._decision_agent = decision_agent
        self._rng = rng or random.Random()
        self._clock_ms = clock_ms

    async def _session_of(self, game_type: GameType) -> GameSession:
        session = await self._manager.current()
        if session is None:
            raise InvalidTransitionError("There is no game in progress")
        if session.game_type is not game_type:
            raise GameValidationError(
                f"The current game is {session.game_type.display_name}, not {game_type.display_name}"
            )
        return session

    # -------------------------------------------------------------------------
    # Hand game
    # -------------------------------------------------------------------------

    async def pick_hand(self, actor: ProfileId, choice: HandChoice) -> GameSession:
        session = await self._session_of(GameType.RPS)
        if session.choice_of(actor) is not None:
            raise GameValidationError("You already picked this round")
        return await self._manager.update(actor, {choice_field(actor): HandChoice(choice)})

    async def play_again(self, actor: ProfileId) -> GameSession:
        session = await self._session_of(GameType.RPS)
        return await self._manager.update(actor, play_again_update(session))

    async def reset_score(self, actor: ProfileId) -> GameSession:
        await self._session_of(GameType.RPS)
        return await self._manager.update(actor, reset_score_update())

    # -------------------------------------------------------------------------
    # Roulette
    # -------------------------------------------------------------------------

    async def add_roulette_option(self, actor: ProfileId, option: str) -> GameSession:
        """Adding an option clears any previous result."""
        option = option.strip()
        if not option:
            raise GameValidationError("Option cannot be empty")
        session = await self._session_of(GameType.ROULETTE)
        return await self._manager.update(actor, {
            "roulette_items": [*session.roulette_items, option],
            "roulette_result": None,
        })

    async def remove_roulette_option(self, actor: ProfileId, index: int) -> GameSession:
        """Removing an option clears any previous result."""
        session = await self._session_of(GameType.ROULETTE)
        if not 0 <= index < len(session.roulette_items):
            raise GameValidationError(f"No option at position {index}")
        items = [item for i, item in enumerate(session.roulette_items) if i != index]
        return await self._manager.update(actor, {
            "roulette_items": items,
            "roulette_result": None,
        })

    async def spin_roulette(self, actor: ProfileId) -> GameSession:
        """Pick the authoritative result; both clients animate toward it."""
        session = await self._session_of(GameType.ROULETTE)
        result = pick_roulette_result(session.roulette_items, self._rng)
        return await self._manager.update(actor, {
            "roulette_result": result,
            "roulette_spin_ts": self._clock_ms(),
        })

    # -------------------------------------------------------------------------
    # Number draw
    # -------------------------------------------------------------------------

    async def set_number_range(
        self,
        actor: ProfileId,
        rng_min: Optional[int] = None,
        rng_max: Optional[int] = None,
    ) -> GameSession:
        """Commit an edited bound. Each bound is written independently."""
        updates = {}
        if rng_min is not None:
            updates["rng_min"] = int(rng_min)
        if rng_max is not None:
            updates["rng_max"] = int(rng_max)
        if not updates:
            raise GameValidationError("Nothing to update")
        await self._session_of(GameType.RNG)
        return await self._manager.update(actor, updates)

    async def roll_number(self, actor: ProfileId) -> GameSession:
        session = await self._session_of(GameType.RNG)
        result = draw_number(session.rng_min, session.rng_max, self._rng)
        return await self._manager.update(actor, {
            "rng_result": result,
            "rng_roll_ts": self._clock_ms(),
        })

    # -------------------------------------------------------------------------
    # Decision dialogue
    # -------------------------------------------------------------------------

    def _agent(self) -> DecisionAgent:
        if self._decision_agent is None:
            raise GameValidationError("Decide For Me needs a text completion client")
        return self._decision_agent

    async def start_decision(
        self,
        actor: ProfileId,
        question: str,
        options: Sequence[str],
        mode: DecideMode = DecideMode.THINK,
    ) -> GameSession:
        """
        Write the setup, then ask for the first AI turn.

        Random mode finishes in that one turn. If the model call fails
        the loading flag is cleared and the error is raised.
        """
        question = question.strip()
        options = clean_options(options)
        if not question:
            raise GameValidationError("Enter something to decide")
        if len(options) < 2:
            raise GameValidationError("Add at least 2 options")
        agent = self._agent()
        session = await self._session_of(GameType.DECIDE)
        if not session.decide_is_setup:
            raise GameValidationError("A decision is already under way; reset it first")

        mode = DecideMode(mode)
        await self._manager.update(actor, {
            "decide_question": question,
            "decide_options": options,
            "decide_mode": mode,
            "decide_loading": True,
        })

        kind = DecidePromptKind.RANDOM if mode is DecideMode.RANDOM else DecidePromptKind.THINK_QUESTION
        try:
            text = await agent.decide(kind, question, options, [])
        except TextCompletionError:
            await self._manager.update(actor, {"decide_loading": False})
            raise

        updates = {
            "decide_chat": [DecideMessage(role=DecideRole.AI, text=text)],
            "decide_loading": False,
        }
        if mode is DecideMode.RANDOM:
            updates["decide_result"] = text
        return await self._manager.update(actor, updates)

    async def answer_decision(self, actor: ProfileId, answer: str) -> GameSession:
        """
        Add the user's answer and get the next AI turn.

        The fourth AI turn is the conclusion and sets the result.
        """
        answer = answer.strip()
        if not answer:
            raise GameValidationError("Answer cannot be empty")
        agent = self._agent()
        session = await self._session_of(GameType.DECIDE)
        if not session.decide_waiting_for_user:
            raise GameValidationError("The decision is not waiting for an answer")

        chat = [*session.decide_chat, DecideMessage(role=DecideRole.USER, text=answer)]
        await self._manager.update(actor, {"decide_chat": chat, "decide_loading": True})

        kind = next_think_prompt(session.decide_ai_turns)
        try:
            text = await agent.decide(kind, session.decide_question, session.decide_options, chat)
        except TextCompletionError:
            await self._manager.update(actor, {"decide_loading": False})
            raise

        updates = {
            "decide_chat": [*chat, DecideMessage(role=DecideRole.AI, text=text)],
            "decide_loading": False,
        }
        if kind is DecidePromptKind.THINK_CONCLUDE:
            updates["decide_result"] = text
        return await self._manager.update(actor, updates)

    async def reset_decision(self, actor: ProfileId) -> GameSession:
        await self._session_of(GameType.DECIDE)
        return await self._manager.update(actor, {
            "decide_question": "",
            "decide_options": [],
            "decide_mode": DecideMode.THINK,
            "decide_chat": [],
            "decide_result": None,
            "decide_loading": False,
        })
