"""
Main Orchestrator for Money Mates

This module ties the components together and defines the end-to-end
flows:
1. Profiles (first-run defaults, login with optional PIN, remembered login)
2. Ledger (add transaction -> best-effort goal contribution)
3. Goals
4. Savings target and settlement (set, toggle, close period, repay)
5. Coach chat
6. Mini-games

DESIGN DECISION: The orchestrator enforces the boundaries:
- Input is validated before any store call
- Store writes are never retried (a retried add could duplicate)
- A transaction is kept even if its goal contribution fails; the
  failure is logged and reported separately
- Every user action is logged with a correlation id
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence, Union
from uuid import UUID

import structlog

from money_mates.agents import (
    CoachAgent,
    CoachSnapshot,
    DecisionAgent,
    GeminiTextCompletion,
    MissingCredentialError,
    TextCompletionClient,
    TextCompletionError,
)
from money_mates.agents.ai_agents import FAILURE_REPLY, MISSING_KEY_REPLY
from money_mates.audit import EventLogger, configure_logging, create_correlation_id
from money_mates.config import get_settings
from money_mates.games.actions import GameActions
from money_mates.games.session import GameSessionManager
from money_mates.models.events import LedgerEventBuilder, LedgerEventType
from money_mates.models.game import DecideMode, GameSession, GameType
from money_mates.models.ledger import (
    ChatMessage,
    CutoffPeriod,
    Goal,
    NewGoal,
    NewTransaction,
    Profile,
    ProfileId,
    SavingsTarget,
    Transaction,
)
from money_mates.periods.settlement import SettlementEngine
from money_mates.periods.tracker import SavingsTracker
from money_mates.services.ledger import (
    CutoffPeriodRepository,
    GoalRepository,
    LedgerValidationError,
    ProfileRepository,
    SavingsTargetRepository,
    TransactionRepository,
    validated,
)
from money_mates.services.session import LocalSessionStore
from money_mates.services.storage import (
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    StorageError,
    TimeoutGuardedStore,
)

_logger = structlog.get_logger("money_mates.orchestrator")


class ProfileFlow:
    """
    Profile selection and login.

    Flow:
    1. ensure_profiles() creates the two defaults on first run
    2. restore() offers the remembered profile (PIN still required
       if the profile has one)
    3. login() verifies the PIN and remembers the profile
    """

    def __init__(
        self,
        profiles: ProfileRepository,
        session_store: LocalSessionStore,
        event_logger: Optional[EventLogger] = None,
    ):
        self._profiles = profiles
        self._session_store = session_store
        self._event_logger = event_logger

    async def ensure_profiles(self) -> dict[ProfileId, Profile]:
        created = await self._profiles.ensure_defaults()
        if self._event_logger:
            for profile_id in created:
                self._event_logger.log_action(
                    LedgerEventType.PROFILE_CREATED,
                    description=f"Default profile {profile_id.value} created",
                    entity_type="profile",
                    entity_id=profile_id.value,
                )
        return await self._profiles.list_profiles()

    async def restore(self) -> tuple[Optional[ProfileId], bool]:
        """
        Returns:
            (remembered profile, whether it still needs its PIN)
        """
        profile_id = self._session_store.load()
        if profile_id is None:
            return None, False
        profile = await self._profiles.get(profile_id)
        if profile is None:
            self._session_store.clear()
            return None, False
        return profile_id, profile.has_pin

    async def login(self, profile_id: ProfileId, pin: Optional[str] = None) -> bool:
        if not await self._profiles.verify_login(profile_id, pin):
            return False
        self._session_store.save(ProfileId(profile_id))
        return True

    def logout(self) -> None:
        self._session_store.clear()

    async def update_profile(
        self,
        actor: ProfileId,
        profile_id: ProfileId,
        updates: dict[str, Any],
    ) -> Profile:
        profile = await self._profiles.update(actor, profile_id, updates)
        if self._event_logger:
            self._event_logger.log_action(
                LedgerEventType.PROFILE_UPDATED,
                description=f"Profile updated: {', '.join(sorted(updates))}",
                entity_type="profile",
                entity_id=profile.id.value,
                actor=ProfileId(actor).value,
                # Never log the PIN itself
                details={"fields": sorted(updates)},
            )
        return profile


class TransactionFlow:
    """
    Adding and deleting savings.

    Flow for add:
    1. Validate locally (positive amount) - no store call on failure
    2. Write the transaction (never retried)
    3. If linked to a goal, increment the goal atomically
    4. A goal failure is logged; the transaction stays
    """

    def __init__(
        self,
        transactions: TransactionRepository,
        goals: GoalRepository,
        event_logger: Optional[EventLogger] = None,
    ):
        self._transactions = transactions
        self._goals = goals
        self._event_logger = event_logger

    async def add_transaction(
        self,
        actor: ProfileId,
        amount: Union[str, Decimal],
        tx_date: Optional[date] = None,
        note: Optional[str] = None,
        goal_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, Optional[bool]]:
        """
        Returns:
            (transaction, goal_applied) where goal_applied is None
            without a goal link, else whether the goal was credited

        Raises:
            LedgerValidationError: Before any write, for invalid input
            StorageError: If the transaction itself could not be saved
        """
        correlation_id = correlation_id or create_correlation_id()
        fields: dict[str, Any] = {"amount": amount, "note": note, "goal_id": goal_id}
        if tx_date is not None:
            fields["tx_date"] = tx_date
        new_transaction = validated(NewTransaction, **fields)

        transaction = await self._transactions.add(ProfileId(actor), new_transaction)
        if self._event_logger:
            self._event_logger.log_transaction_added(
                transaction_id=transaction.id,
                actor=transaction.user_id.value,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )

        if not transaction.goal_id:
            return transaction, None

        goal_applied = await self._contribute(transaction, correlation_id)
        return transaction, goal_applied

    async def _contribute(self, transaction: Transaction, correlation_id: UUID) -> bool:
        try:
            applied = await self._goals.contribute(transaction.goal_id, transaction.amount)
            error_message = None if applied else "Goal no longer exists"
        except StorageError as e:
            applied = False
            error_message = str(e)

        if self._event_logger:
            if applied:
                self._event_logger.log_goal_contributed(
                    goal_id=transaction.goal_id,
                    amount=str(transaction.amount),
                    actor=transaction.user_id.value,
                    correlation_id=correlation_id,
                )
            else:
                self._event_logger.log_goal_contribution_failed(
                    goal_id=transaction.goal_id,
                    transaction_id=transaction.id,
                    error_message=error_message,
                    correlation_id=correlation_id,
                )
        return applied

    async def delete_transaction(self, actor: ProfileId, transaction_id: str) -> None:
        await self._transactions.delete(transaction_id)
        if self._event_logger:
            self._event_logger.log(LedgerEventBuilder.transaction_deleted(
                transaction_id=transaction_id,
                actor=ProfileId(actor).value,
            ))

    async def list_transactions(self) -> list[Transaction]:
        return await self._transactions.list_transactions()


class GoalFlow:
    """Shared goals."""

    def __init__(
        self,
        goals: GoalRepository,
        event_logger: Optional[EventLogger] = None,
    ):
        self._goals = goals
        self._event_logger = event_logger

    async def add_goal(
        self,
        actor: ProfileId,
        title: str,
        target_amount: Union[str, Decimal],
        deadline: Optional[date] = None,
        emoji: Optional[str] = None,
    ) -> Goal:
        fields: dict[str, Any] = {
            "title": title,
            "target_amount": target_amount,
            "deadline": deadline,
        }
        if emoji:
            fields["emoji"] = emoji
        goal = await self._goals.add(ProfileId(actor), validated(NewGoal, **fields))
        if self._event_logger:
            self._event_logger.log_action(
                LedgerEventType.GOAL_CREATED,
                description=f"Goal created: {goal.title}",
                entity_type="goal",
                entity_id=goal.id,
                actor=ProfileId(actor).value,
            )
        return goal

    async def contribute(self, actor: ProfileId, goal_id: str, amount: Union[str, Decimal]) -> bool:
        amount = _positive_amount(amount)
        applied = await self._goals.contribute(goal_id, amount)
        if applied and self._event_logger:
            self._event_logger.log_goal_contributed(
                goal_id=goal_id,
                amount=str(amount),
                actor=ProfileId(actor).value,
            )
        return applied

    async def set_progress(self, actor: ProfileId, goal_id: str, current_amount: Union[str, Decimal]) -> bool:
        try:
            current_amount = Decimal(str(current_amount))
        except ArithmeticError:
            raise LedgerValidationError("Enter a valid amount", field="current_amount")
        applied = await self._goals.set_progress(goal_id, current_amount)
        if applied and self._event_logger:
            self._event_logger.log_action(
                LedgerEventType.GOAL_PROGRESS_SET,
                description=f"Goal progress set to {current_amount}",
                entity_type="goal",
                entity_id=goal_id,
                actor=ProfileId(actor).value,
            )
        return applied

    async def delete_goal(self, actor: ProfileId, goal_id: str) -> None:
        await self._goals.delete(goal_id)
        if self._event_logger:
            self._event_logger.log_action(
                LedgerEventType.GOAL_DELETED,
                description="Goal deleted",
                entity_type="goal",
                entity_id=goal_id,
                actor=ProfileId(actor).value,
            )

    async def list_goals(self) -> list[Goal]:
        return await self._goals.list_goals()


def _positive_amount(amount: Union[str, Decimal]) -> Decimal:
    try:
        value = Decimal(str(amount))
    except ArithmeticError:
        raise LedgerValidationError("Enter a valid amount", field="amount")
    if not value.is_finite() or value <= 0:
        raise LedgerValidationError("Amount must be greater than zero", field="amount")
    return value


class TargetFlow:
    """
    The bi-monthly savings target and its settlement.

    Stats come from the tracker, which recomputes them on every read.
    """

    def __init__(
        self,
        targets: SavingsTargetRepository,
        tracker: SavingsTracker,
        event_logger: Optional[EventLogger] = None,
    ):
        self._targets = targets
        self._tracker = tracker
        self._event_logger = event_logger

    @property
    def tracker(self) -> SavingsTracker:
        return self._tracker

    async def set_target(
        self,
        actor: ProfileId,
        target_amount: Union[str, Decimal],
        cutoff_days: Optional[Sequence[int]] = None,
    ) -> SavingsTarget:
        if cutoff_days is None:
            cutoff_days = get_settings().app.default_cutoff_days_list
        target = await self._targets.set(_positive_amount(target_amount), list(cutoff_days))
        if self._event_logger:
            self._event_logger.log_action(
                LedgerEventType.TARGET_SET,
                description=f"Target set to {target.target_amount} ({target.cutoff_days_text()})",
                entity_type="target",
                entity_id=target.id,
                actor=ProfileId(actor).value,
            )
        return target

    async def toggle_target(self, actor: ProfileId, is_active: bool) -> bool:
        changed = await self._targets.toggle(is_active)
        if changed and self._event_logger:
            self._event_logger.log_action(
                LedgerEventType.TARGET_TOGGLED,
                description="Target switched on" if is_active else "Target switched off",
                entity_type="target",
                entity_id="current",
                actor=ProfileId(actor).value,
            )
        return changed

    async def close_period(self, actor: ProfileId) -> Optional[CutoffPeriod]:
        return await self._tracker.close_period(
            actor=ProfileId(actor),
            correlation_id=create_correlation_id(),
        )

    async def repay(
        self,
        period_id: str,
        profile_id: ProfileId,
        amount: Union[str, Decimal],
    ) -> Optional[CutoffPeriod]:
        return await self._tracker.repay(
            period_id,
            ProfileId(profile_id),
            _positive_amount(amount),
            correlation_id=create_correlation_id(),
        )


class CoachFlow:
    """
    Coach chat.

    The snapshot is read fresh for every message; chat history lives
    with the caller and is never stored.
    """

    def __init__(
        self,
        coach: CoachAgent,
        profiles: ProfileRepository,
        transactions: TransactionRepository,
        goals: GoalRepository,
        targets: SavingsTargetRepository,
        periods: CutoffPeriodRepository,
        event_logger: Optional[EventLogger] = None,
    ):
        self._coach = coach
        self._profiles = profiles
        self._transactions = transactions
        self._goals = goals
        self._targets = targets
        self._periods = periods
        self._event_logger = event_logger

    async def snapshot(self) -> CoachSnapshot:
        profiles = await self._profiles.list_profiles()
        snapshot = CoachSnapshot(
            transactions=await self._transactions.list_transactions(),
            goals=await self._goals.list_goals(),
            target=await self._targets.get(),
            periods=await self._periods.list_periods(),
        )
        if profiles:
            snapshot.profiles.update(profiles)
        return snapshot

    async def send(
        self,
        actor: ProfileId,
        history: Sequence[ChatMessage],
        message: str,
    ) -> ChatMessage:
        """
        Reply to a chat message.

        Raises:
            LedgerValidationError: For an empty message
        """
        if not message.strip():
            raise LedgerValidationError("Message cannot be empty", field="message")
        correlation_id = create_correlation_id()
        reply = await self._coach.reply(history, message, await self.snapshot(), correlation_id)
        if self._event_logger:
            self._event_logger.log_action(
                LedgerEventType.COACH_REPLIED,
                description="Coach replied",
                entity_type="coach",
                actor=ProfileId(actor).value,
                correlation_id=correlation_id,
            )
        return reply


class GameFlow:
    """
    Mini-games.

    Decision turns that fail come back as an error message next to
    the (reset) session, so a broken model never leaves the game stuck.
    """

    def __init__(
        self,
        manager: GameSessionManager,
        actions: GameActions,
    ):
        self.manager = manager
        self.actions = actions

    async def create(self, actor: ProfileId, game_type: GameType) -> GameSession:
        return await self.manager.create(GameType(game_type), ProfileId(actor))

    async def join(self, actor: ProfileId) -> GameSession:
        return await self.manager.join(ProfileId(actor))

    async def end(self, actor: ProfileId) -> None:
        await self.manager.end(ProfileId(actor))

    async def start_decision(
        self,
        actor: ProfileId,
        question: str,
        options: Sequence[str],
        mode: DecideMode = DecideMode.THINK,
    ) -> tuple[Optional[GameSession], Optional[str]]:
        try:
            return await self.actions.start_decision(actor, question, options, mode), None
        except MissingCredentialError:
            return await self.manager.current(), MISSING_KEY_REPLY
        except TextCompletionError:
            return await self.manager.current(), FAILURE_REPLY

    async def answer_decision(
        self,
        actor: ProfileId,
        answer: str,
    ) -> tuple[Optional[GameSession], Optional[str]]:
        try:
            return await self.actions.answer_decision(actor, answer), None
        except MissingCredentialError:
            return await self.manager.current(), MISSING_KEY_REPLY
        except TextCompletionError:
            return await self.manager.current(), FAILURE_REPLY


class MoneyMatesApp:
    """Every flow, sharing one store and one event logger."""

    def __init__(
        self,
        store: DocumentStore,
        completion_client: TextCompletionClient,
        session_store: LocalSessionStore,
        event_logger: Optional[EventLogger] = None,
        sync_interval_seconds: Optional[float] = None,
    ):
        self.store = store
        self.event_logger = event_logger or EventLogger()
        self._sync_interval = sync_interval_seconds or get_settings().app.sync_interval_seconds
        self._sync_task: Optional[asyncio.Task] = None

        profiles = ProfileRepository(store)
        transactions = TransactionRepository(store)
        goals = GoalRepository(store)
        targets = SavingsTargetRepository(store)
        periods = CutoffPeriodRepository(store)

        engine = SettlementEngine(periods, self.event_logger)
        self.tracker = SavingsTracker(targets, transactions, periods, engine)

        manager = GameSessionManager(store, self.event_logger)
        decision_agent = DecisionAgent(completion_client, self.event_logger)

        self.profiles = ProfileFlow(profiles, session_store, self.event_logger)
        self.transactions = TransactionFlow(transactions, goals, self.event_logger)
        self.goals = GoalFlow(goals, self.event_logger)
        self.targets = TargetFlow(targets, self.tracker, self.event_logger)
        self.coach = CoachFlow(
            CoachAgent(completion_client, self.event_logger),
            profiles,
            transactions,
            goals,
            targets,
            periods,
            self.event_logger,
        )
        self.games = GameFlow(manager, GameActions(manager, decision_agent))

    async def start(self) -> None:
        """First-run profiles, live tracking, then polling for the partner's writes."""
        await self.profiles.ensure_profiles()
        await self.tracker.start()
        if self._sync_task is None:
            self._sync_task = asyncio.create_task(self._sync_forever())

    def stop(self) -> None:
        self.tracker.stop()
        if self._sync_task is not None:
            self._sync_task.cancel()
            self._sync_task = None

    async def _sync_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sync_interval)
            try:
                await self.store.poll()
            except StorageError as e:
                # Already reported by the timeout guard; try again next tick
                _logger.warning("sync_failed", error=str(e))


def create_app_components(
    use_storage: bool = True,
    completion_client: Optional[TextCompletionClient] = None,
    session_store: Optional[LocalSessionStore] = None,
    sheets_client: Optional[GoogleSheetsClient] = None,
    sync_interval_seconds: Optional[float] = None,
) -> MoneyMatesApp:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the Google Sheets store. Set to
                    False (or leave Sheets unconfigured) to keep data
                    in memory on this device only.
        sheets_client: Spreadsheet access; built from settings if omitted
        sync_interval_seconds: Poll interval; from settings if omitted

    Every store is wrapped in the timeout guard.
    """
    settings = get_settings().app
    configure_logging(debug=settings.debug_mode, environment=settings.app_environment)
    event_logger = EventLogger()

    store: DocumentStore
    if use_storage:
        try:
            store = GoogleSheetsDocumentStore(sheets_client or GoogleSheetsClient())
        except Exception as e:
            # Storage not configured - continue without it
            _logger.warning("storage_not_configured", error=str(e))
            store = InMemoryDocumentStore()
    else:
        store = InMemoryDocumentStore()

    return MoneyMatesApp(
        store=TimeoutGuardedStore(store, settings.store_timeout_seconds, event_logger),
        completion_client=completion_client or GeminiTextCompletion(),
        session_store=session_store or LocalSessionStore(),
        event_logger=event_logger,
        sync_interval_seconds=sync_interval_seconds,
    )
