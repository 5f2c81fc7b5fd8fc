"""
Savings Tracker

Keeps the latest target, transactions and closed periods from store
subscriptions and answers the savings views from them. Stats are
recomputed on every read; only the raw documents are cached.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from money_mates.models.ledger import (
    CurrentPeriodStats,
    CutoffPeriod,
    PerProfileAmounts,
    ProfileId,
    SavingsTarget,
    Transaction,
    local_now,
)
from money_mates.periods.aggregator import compute_current_period_stats, compute_total_owed
from money_mates.periods.settlement import SettlementEngine
from money_mates.services.ledger import (
    CutoffPeriodRepository,
    SavingsTargetRepository,
    TransactionRepository,
)
from money_mates.services.storage.interface import Unsubscribe


class SavingsTracker:
    """
    Subscription-driven view of the savings target.

    Usage:
        tracker = SavingsTracker(targets, transactions, periods, engine)
        await tracker.start()
        stats = tracker.current_stats()
    """

    def __init__(
        self,
        targets: SavingsTargetRepository,
        transactions: TransactionRepository,
        periods: CutoffPeriodRepository,
        engine: SettlementEngine,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._targets = targets
        self._transactions = transactions
        self._periods = periods
        self._engine = engine
        self._clock = clock or local_now

        self.target: Optional[SavingsTarget] = None
        self.transactions: list[Transaction] = []
        self.periods: list[CutoffPeriod] = []

        self._unsubscribes: list[Unsubscribe] = []
        self._change_listeners: list[Callable[[], None]] = []

    async def start(self) -> None:
        if self._unsubscribes:
            return
        self._unsubscribes = [
            await self._targets.subscribe(self._on_target),
            await self._transactions.subscribe(self._on_transactions),
            await self._periods.subscribe(self._on_periods),
        ]

    def stop(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []

    def on_change(self, listener: Callable[[], None]) -> None:
        """Call listener whenever any underlying document set changes."""
        self._change_listeners.append(listener)

    def _on_target(self, target: Optional[SavingsTarget]) -> None:
        self.target = target
        self._changed()

    def _on_transactions(self, transactions: list[Transaction]) -> None:
        self.transactions = transactions
        self._changed()

    def _on_periods(self, periods: list[CutoffPeriod]) -> None:
        self.periods = periods
        self._changed()

    def _changed(self) -> None:
        for listener in list(self._change_listeners):
            listener()

    def current_stats(self, now: Optional[datetime] = None) -> Optional[CurrentPeriodStats]:
        return compute_current_period_stats(self.target, self.transactions, now or self._clock())

    @property
    def total_owed(self) -> PerProfileAmounts:
        return compute_total_owed(self.periods)

    async def close_period(
        self,
        actor: Optional[ProfileId] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[CutoffPeriod]:
        return await self._engine.close_period(
            self.current_stats(),
            self.target,
            actor=actor,
            correlation_id=correlation_id,
        )

    async def repay(
        self,
        period_id: str,
        profile_id: ProfileId,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[CutoffPeriod]:
        return await self._engine.repay(period_id, profile_id, amount, correlation_id=correlation_id)
