"""
AI Agents for Money Mates

Two agents sit on top of the text-completion client:

1. COACH AGENT:
   - CAN: Encourage, explain progress, suggest ways to save
   - CAN: Quote the couple's actual numbers, which it is given
   - CANNOT: Write anything to the store
   - MUST: Reply with a fixed message when the model is unavailable

2. DECISION AGENT ("Decide For Me"):
   - CAN: Ask short narrowing questions, then pick one option
   - CANNOT: Pick something that isn't one of the options (prompted)
   - MUST: Fall back to "Go with your gut!" on an empty answer

The LLM only ever sees a snapshot built here. It never reads the store.
"""

from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from pydantic import BaseModel, Field

from money_mates.agents.text_completion import (
    MissingCredentialError,
    TextCompletionClient,
    TextCompletionError,
)
from money_mates.audit import EventLogger
from money_mates.config import get_settings
from money_mates.formatting import format_currency
from money_mates.games.rules import DecidePromptKind
from money_mates.models.game import DecideMessage, DecideRole
from money_mates.models.ledger import (
    DEFAULT_PROFILES,
    ChatMessage,
    ChatRole,
    CutoffPeriod,
    Goal,
    Profile,
    ProfileId,
    SavingsTarget,
    Transaction,
)
from money_mates.periods.aggregator import compute_total_owed, user_totals


# =============================================================================
# COACH
# =============================================================================

MISSING_KEY_REPLY = (
    "AI Chat requires a Gemini API key. Please add GEMINI_API_KEY to your environment."
)
FAILURE_REPLY = "Sorry, I couldn't process that. Please try again!"
EMPTY_REPLY = "I'm having trouble responding right now. Please try again!"


class CoachSnapshot(BaseModel):
    """Everything the coach is told about the couple's savings."""

    profiles: dict[ProfileId, Profile] = Field(default_factory=lambda: dict(DEFAULT_PROFILES))
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Newest first"
    )
    goals: list[Goal] = Field(default_factory=list)
    target: Optional[SavingsTarget] = None
    periods: list[CutoffPeriod] = Field(
        default_factory=list,
        description="Latest end date first"
    )

    def name_of(self, profile_id: ProfileId) -> str:
        profile = self.profiles.get(profile_id) or DEFAULT_PROFILES[profile_id]
        return profile.name


class CoachAgent:
    """
    Financial coach chat.

    Chat history is kept by the caller; the agent is stateless.
    """

    def __init__(
        self,
        client: TextCompletionClient,
        event_logger: Optional[EventLogger] = None,
    ):
        self._client = client
        self._event_logger = event_logger
        self._settings = get_settings().app

    def _money(self, amount: Decimal) -> str:
        return format_currency(amount, self._settings.currency_symbol)

    def build_context(self, snapshot: CoachSnapshot) -> str:
        """System prompt describing the couple's current situation."""
        pea, cam = ProfileId.PEA, ProfileId.CAM
        totals = user_totals(snapshot.transactions)

        recent_transactions = "\n".join(
            f"{snapshot.name_of(tx.user_id)}: {self._money(tx.amount)} on "
            f"{tx.tx_date.isoformat()} ({tx.note or 'no note'})"
            for tx in snapshot.transactions[: self._settings.coach_recent_transactions]
        )

        goals = "\n".join(
            f"{goal.emoji} {goal.title}: {self._money(goal.current_amount)}/"
            f"{self._money(goal.target_amount)} ({goal.progress_percent:.0f}%)"
            for goal in snapshot.goals
        )

        target = snapshot.target
        if target is not None and target.is_active:
            target_info = (
                f"Active target: {self._money(target.target_amount)} per person per cutoff "
                f"(cutoffs on {target.cutoff_days_text()} of each month)"
            )
        else:
            target_info = "No bi-monthly target set"

        period_blocks = []
        for period in snapshot.periods[: self._settings.coach_recent_periods]:
            status = "Complete" if period.is_complete else "In Progress"
            lines = [f"{period.start_date.isoformat()} to {period.end_date.isoformat()} ({status}):"]
            for profile_id in (pea, cam):
                line = (
                    f"  - {snapshot.name_of(profile_id)}: Saved "
                    f"{self._money(period.contributions[profile_id])}"
                )
                owed = period.owed_amounts[profile_id]
                if owed > 0:
                    line += f", owes {self._money(owed)}"
                lines.append(line)
            period_blocks.append("\n".join(lines))

        owed_totals = compute_total_owed(snapshot.periods)

        return f"""You are a friendly, encouraging AI financial coach for a couple's joint savings app called "Money Mates".

CURRENT FINANCIAL STATUS:
- Total Combined Savings: {self._money(totals.total)}
- {snapshot.name_of(pea)}'s contribution: {self._money(totals.pea)}
- {snapshot.name_of(cam)}'s contribution: {self._money(totals.cam)}

BI-MONTHLY SAVINGS TARGET:
{target_info}

CUTOFF PERIOD HISTORY (Most Recent):
{chr(10).join(period_blocks) if period_blocks else 'No cutoff periods tracked yet'}

OWED AMOUNTS (Accumulated):
- {snapshot.name_of(pea)} owes: {self._money(owed_totals.pea)}
- {snapshot.name_of(cam)} owes: {self._money(owed_totals.cam)}

RECENT TRANSACTIONS:
{recent_transactions or 'No transactions yet'}

SAVINGS GOALS:
{goals or 'No goals set yet'}

INSTRUCTIONS:
- Be supportive, warm and encouraging
- Give practical advice for their situation and celebrate their progress
- Keep responses short (usually 2-4 sentences), with emojis sparingly
- When they ask about their data, targets or cutoffs, use the numbers above
- If someone owes money, gently encourage them to catch up"""

    def build_prompt(self, history: Sequence[ChatMessage], message: str) -> str:
        """The last few messages plus the new one."""
        limit = self._settings.coach_history_messages
        recent = list(history)[-limit:] if limit else []
        conversation = "\n".join(
            f"{'User' if m.role is ChatRole.USER else 'Assistant'}: {m.content}"
            for m in recent
        )
        return (
            f"Previous conversation:\n{conversation}\n\n"
            f"User: {message.strip()}\n\n"
            "Respond naturally to the user's message, considering the conversation history."
        )

    async def reply(
        self,
        history: Sequence[ChatMessage],
        message: str,
        snapshot: CoachSnapshot,
        correlation_id: Optional[UUID] = None,
    ) -> ChatMessage:
        """
        Answer a chat message. Never raises for model failures.

        A missing key and a failed call produce different replies, so
        the user can tell a setup problem from a hiccup.
        """
        try:
            text = await self._client.complete(
                self.build_prompt(history, message),
                system_prompt=self.build_context(snapshot),
            )
            content = text or EMPTY_REPLY
        except MissingCredentialError as e:
            self._log_failure(str(e), correlation_id)
            content = MISSING_KEY_REPLY
        except TextCompletionError as e:
            self._log_failure(str(e), correlation_id)
            content = FAILURE_REPLY

        return ChatMessage(role=ChatRole.ASSISTANT, content=content)

    def _log_failure(self, error_message: str, correlation_id: Optional[UUID]) -> None:
        if self._event_logger:
            self._event_logger.log_text_completion_failed(
                purpose="coach",
                error_message=error_message,
                correlation_id=correlation_id,
            )


# =============================================================================
# DECISION GAME
# =============================================================================

DECIDE_FALLBACK = "Go with your gut!"

RANDOM_SYSTEM_PROMPT = (
    "You are a fun, spontaneous decision maker. Keep it to one line. "
    "No bullet points, no caveats, and never mention randomness or AI."
)
THINK_SYSTEM_PROMPT = (
    "You are a direct decision helper who talks like a decisive friend. "
    "No bullet points, no preambles such as 'Based on', no caveats and no alternatives."
)


class DecisionAgent:
    """Prompts for the three kinds of decision turn."""

    def __init__(
        self,
        client: TextCompletionClient,
        event_logger: Optional[EventLogger] = None,
    ):
        self._client = client
        self._event_logger = event_logger

    @staticmethod
    def build_prompt(
        kind: DecidePromptKind,
        question: str,
        options: Sequence[str],
        chat: Sequence[DecideMessage],
    ) -> tuple[str, str]:
        """(system prompt, prompt) for a turn."""
        choices = ", ".join(options)
        if kind is DecidePromptKind.RANDOM:
            return RANDOM_SYSTEM_PROMPT, (
                f'"{question}"\nChoices: {choices}\n\n'
                "Choose one. Answer in a single fun, confident sentence, "
                "like a friend making the call."
            )

        transcript = "\n".join(
            f"{'You' if m.role is DecideRole.AI else 'User'}: {m.text}" for m in chat
        )
        if kind is DecidePromptKind.THINK_QUESTION:
            so_far = f"\nSo far:\n{transcript}\n" if transcript else ""
            return THINK_SYSTEM_PROMPT, (
                f'Dilemma: "{question}"\nChoices: {choices}\n{so_far}\n'
                "Ask ONE short question (8 words at most) that helps narrow it down. "
                "Reply with the question only."
            )
        return THINK_SYSTEM_PROMPT, (
            f'Dilemma: "{question}"\nChoices: {choices}\n\nConversation:\n{transcript}\n\n'
            "Give the final answer in ONE sentence naming exactly one of the choices. "
            "Be decisive and upbeat."
        )

    async def decide(
        self,
        kind: DecidePromptKind,
        question: str,
        options: Sequence[str],
        chat: Sequence[DecideMessage] = (),
    ) -> str:
        """
        One decision turn.

        Raises:
            TextCompletionError: If the model could not be reached
        """
        system_prompt, prompt = self.build_prompt(kind, question, options, chat)
        try:
            text = await self._client.complete(prompt, system_prompt=system_prompt)
        except TextCompletionError as e:
            if self._event_logger:
                self._event_logger.log_text_completion_failed(
                    purpose=f"decide:{kind.value}",
                    error_message=str(e),
                )
            raise
        return text.strip() or DECIDE_FALLBACK
