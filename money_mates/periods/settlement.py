"""
Cutoff Settlement Engine

Closes a finished cutoff period into an immutable history record and
applies repayments against the owed amounts of closed periods.

DESIGN DECISION: A closed period is keyed by its end date. Closing the
same period twice (or from both clients at once) overwrites the same
document with the same contributions and owed amounts, so closing is
idempotent without any locking.

Repayment is bookkeeping only. It lowers the stored owed amount, never
below zero, and does not create a transaction.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from money_mates.audit import EventLogger
from money_mates.models.ledger import (
    CurrentPeriodStats,
    CutoffPeriod,
    PerProfileAmounts,
    ProfileId,
    SavingsTarget,
)
from money_mates.periods.calculator import format_period_id
from money_mates.services.ledger import CutoffPeriodRepository, LedgerValidationError


def build_closed_period(stats: CurrentPeriodStats, target: SavingsTarget) -> CutoffPeriod:
    """
    The history record for a finished period.

    owed = max(0, target - contribution) per profile, i.e. the
    period's remaining amounts.
    """
    return CutoffPeriod(
        id=format_period_id(stats.end_date),
        start_date=stats.start_date,
        end_date=stats.end_date,
        target_amount=target.target_amount,
        contributions=stats.contributions,
        owed_amounts=stats.remaining,
        is_complete=True,
    )


def apply_repayment(
    owed: PerProfileAmounts,
    profile_id: ProfileId,
    amount: Decimal,
) -> PerProfileAmounts:
    """Lower one profile's owed amount, floored at zero."""
    return owed.replace(profile_id, max(Decimal("0"), owed[profile_id] - amount))


class SettlementEngine:
    """Writes closed periods and repayments through the period repository."""

    def __init__(
        self,
        periods: CutoffPeriodRepository,
        event_logger: Optional[EventLogger] = None,
    ):
        self._periods = periods
        self._event_logger = event_logger

    async def close_period(
        self,
        stats: Optional[CurrentPeriodStats],
        target: Optional[SavingsTarget],
        actor: Optional[ProfileId] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[CutoffPeriod]:
        """
        Persist the current period as closed.

        Returns:
            The written record, or None (nothing written) when tracking
            is disabled
        """
        if target is None or not target.is_active or stats is None:
            return None

        period = build_closed_period(stats, target)
        await self._periods.save(period)

        if self._event_logger:
            self._event_logger.log_period_closed(
                period_id=period.id,
                owed=period.owed_amounts.model_dump(mode="json"),
                actor=actor.value if actor else None,
                correlation_id=correlation_id,
            )
        return period

    async def repay(
        self,
        period_id: str,
        profile_id: ProfileId,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[CutoffPeriod]:
        """
        Pay back part of what a profile owes for one closed period.

        Returns:
            The updated record, or None when the period doesn't exist
            (nothing is written)

        Raises:
            LedgerValidationError: If amount is not positive
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise LedgerValidationError("Repayment must be positive", field="amount")

        period = await self._periods.get(period_id)
        if period is None:
            return None

        owed = apply_repayment(period.owed_amounts, profile_id, amount)
        await self._periods.set_owed(period_id, owed)

        if self._event_logger:
            self._event_logger.log_owed_repaid(
                period_id=period_id,
                profile_id=ProfileId(profile_id).value,
                amount=str(amount),
                remaining=str(owed[profile_id]),
                correlation_id=correlation_id,
            )
        return period.model_copy(update={"owed_amounts": owed})
