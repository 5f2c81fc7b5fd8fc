"""
Tests for the coach and decision agents.
"""

import pytest
from datetime import date
from decimal import Decimal

from money_mates.agents import (
    CoachAgent,
    CoachSnapshot,
    CompletionFailedError,
    DecisionAgent,
    MissingCredentialError,
)
from money_mates.agents.ai_agents import (
    DECIDE_FALLBACK,
    EMPTY_REPLY,
    FAILURE_REPLY,
    MISSING_KEY_REPLY,
    RANDOM_SYSTEM_PROMPT,
    THINK_SYSTEM_PROMPT,
)
from money_mates.games.rules import DecidePromptKind
from money_mates.models.game import DecideMessage, DecideRole
from money_mates.models.ledger import (
    ChatMessage,
    ChatRole,
    CutoffPeriod,
    Goal,
    PerProfileAmounts,
    ProfileId,
    SavingsTarget,
)

from tests.conftest import ScriptedCompletion, make_transaction


@pytest.fixture
def snapshot():
    return CoachSnapshot(
        transactions=[
            make_transaction(ProfileId.PEA, "3000", date(2025, 4, 17), note="payday"),
            make_transaction(ProfileId.CAM, "1500", date(2025, 4, 16)),
        ],
        goals=[
            Goal(
                title="Japan trip",
                target_amount=Decimal("100000"),
                current_amount=Decimal("25000"),
                created_by=ProfileId.CAM,
            )
        ],
        target=SavingsTarget(target_amount=Decimal("5000"), cutoff_days=[15, 0]),
        periods=[
            CutoffPeriod(
                id="2025-04-15",
                start_date=date(2025, 4, 1),
                end_date=date(2025, 4, 15),
                target_amount=Decimal("5000"),
                contributions=PerProfileAmounts(pea=Decimal("5000"), cam=Decimal("3000")),
                owed_amounts=PerProfileAmounts(cam=Decimal("2000")),
            )
        ],
    )


class TestCoachAgent:
    """Tests for the coach chat."""

    def test_context_includes_the_numbers(self, snapshot):
        context = CoachAgent(ScriptedCompletion()).build_context(snapshot)
        assert "Total Combined Savings: ₱4,500" in context
        assert "Pea's contribution: ₱3,000" in context
        assert "₱5,000 per person per cutoff" in context
        assert "15th and last day" in context
        assert "Cam: Saved ₱3,000, owes ₱2,000" in context
        assert "Cam owes: ₱2,000" in context
        assert "Japan trip: ₱25,000/₱100,000 (25%)" in context
        assert "payday" in context

    def test_context_without_target(self, snapshot):
        snapshot.target = snapshot.target.model_copy(update={"is_active": False})
        context = CoachAgent(ScriptedCompletion()).build_context(snapshot)
        assert "No bi-monthly target set" in context

    def test_empty_snapshot(self):
        context = CoachAgent(ScriptedCompletion()).build_context(CoachSnapshot())
        assert "No transactions yet" in context
        assert "No goals set yet" in context
        assert "No cutoff periods tracked yet" in context

    def test_prompt_keeps_recent_history_only(self):
        history = [
            ChatMessage(role=ChatRole.USER if i % 2 == 0 else ChatRole.ASSISTANT, content=f"message {i}")
            for i in range(10)
        ]
        prompt = CoachAgent(ScriptedCompletion()).build_prompt(history, "  and now?  ")
        assert "message 3" not in prompt
        assert "User: message 4" in prompt
        assert "Assistant: message 9" in prompt
        assert "User: and now?" in prompt

    async def test_reply(self, snapshot):
        client = ScriptedCompletion("You're doing great!")
        reply = await CoachAgent(client).reply([], "How are we doing?", snapshot)
        assert reply.role is ChatRole.ASSISTANT
        assert reply.content == "You're doing great!"
        prompt, system_prompt = client.calls[0]
        assert "How are we doing?" in prompt
        assert "CURRENT FINANCIAL STATUS" in system_prompt

    @pytest.mark.parametrize(
        "outcome,expected",
        [
            (MissingCredentialError("no key"), MISSING_KEY_REPLY),
            (CompletionFailedError("down"), FAILURE_REPLY),
            ("", EMPTY_REPLY),
        ],
    )
    async def test_reply_never_raises(self, snapshot, outcome, expected):
        reply = await CoachAgent(ScriptedCompletion(outcome)).reply([], "Hi", snapshot)
        assert reply.content == expected


class TestDecisionAgent:
    """Tests for decision prompts."""

    def test_random_prompt(self):
        system_prompt, prompt = DecisionAgent.build_prompt(
            DecidePromptKind.RANDOM, "Dinner?", ["Pizza", "Sushi"], []
        )
        assert system_prompt == RANDOM_SYSTEM_PROMPT
        assert "Pizza, Sushi" in prompt

    def test_think_prompts_include_transcript(self):
        chat = [
            DecideMessage(role=DecideRole.AI, text="Hungry?"),
            DecideMessage(role=DecideRole.USER, text="Very"),
        ]
        system_prompt, question = DecisionAgent.build_prompt(
            DecidePromptKind.THINK_QUESTION, "Dinner?", ["Pizza", "Sushi"], chat
        )
        assert system_prompt == THINK_SYSTEM_PROMPT
        assert "You: Hungry?" in question
        assert "User: Very" in question

        _, conclusion = DecisionAgent.build_prompt(
            DecidePromptKind.THINK_CONCLUDE, "Dinner?", ["Pizza", "Sushi"], chat
        )
        assert "final answer" in conclusion

    async def test_blank_answer_falls_back(self):
        agent = DecisionAgent(ScriptedCompletion("   "))
        assert await agent.decide(DecidePromptKind.RANDOM, "Dinner?", ["Pizza", "Sushi"]) == DECIDE_FALLBACK

    async def test_failure_is_raised(self):
        agent = DecisionAgent(ScriptedCompletion(CompletionFailedError("down")))
        with pytest.raises(CompletionFailedError):
            await agent.decide(DecidePromptKind.RANDOM, "Dinner?", ["Pizza", "Sushi"])
