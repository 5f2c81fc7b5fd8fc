"""
Target and Period Aggregator

Derives everything the savings views show from the raw documents:
current-period contributions and progress, urgency, accumulated owed
amounts, and the analytics series.

DESIGN DECISION: Nothing here is ever stored. Every function takes the
full transaction (or period) list and recomputes from scratch, so the
result can never go stale relative to the store.
"""

from collections import OrderedDict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from money_mates.models.ledger import (
    ContributionShare,
    CurrentPeriodStats,
    CutoffPeriod,
    MonthlyTotal,
    PerProfileAmounts,
    ProfileId,
    ProfileProgress,
    SavingsTarget,
    Transaction,
    days_until,
)
from money_mates.periods.calculator import get_cutoff_period


ZERO = Decimal("0")
HUNDRED = Decimal("100")


def sum_by_profile(transactions: Iterable[Transaction]) -> PerProfileAmounts:
    """Per-profile sum of transaction amounts."""
    totals = {ProfileId.PEA: ZERO, ProfileId.CAM: ZERO}
    for tx in transactions:
        totals[tx.user_id] += tx.amount
    return PerProfileAmounts(pea=totals[ProfileId.PEA], cam=totals[ProfileId.CAM])


def progress_percent(contribution: Decimal, target_amount: Decimal) -> float:
    """min(100, contribution / target * 100)"""
    return float(min(HUNDRED, contribution / target_amount * HUNDRED))


def remaining_amount(contribution: Decimal, target_amount: Decimal) -> Decimal:
    """max(0, target - contribution)"""
    return max(ZERO, target_amount - contribution)


def compute_current_period_stats(
    target: Optional[SavingsTarget],
    transactions: list[Transaction],
    now: datetime,
) -> Optional[CurrentPeriodStats]:
    """
    Stats for the cutoff period containing now.

    Returns None when no target is set or it is switched off. Callers
    must read that as "tracking disabled", not as zero progress.

    The period ends at the start of its end date, so on the end date
    itself there are no days remaining and the period is overdue.
    """
    if target is None or not target.is_active:
        return None

    period = get_cutoff_period(now, target.cutoff_days)
    contributions = sum_by_profile(tx for tx in transactions if period.contains(tx.tx_date))

    days_left = days_until(period.end, now)

    return CurrentPeriodStats(
        start_date=period.start,
        end_date=period.end,
        target_amount=target.target_amount,
        contributions=contributions,
        progress=ProfileProgress(
            pea=progress_percent(contributions.pea, target.target_amount),
            cam=progress_percent(contributions.cam, target.target_amount),
        ),
        remaining=PerProfileAmounts(
            pea=remaining_amount(contributions.pea, target.target_amount),
            cam=remaining_amount(contributions.cam, target.target_amount),
        ),
        days_remaining=max(0, days_left),
        total_days=period.total_days,
        is_urgent=0 < days_left <= 3,
        is_overdue=days_left <= 0,
    )


def compute_total_owed(periods: Iterable[CutoffPeriod]) -> PerProfileAmounts:
    """Owed amounts summed over every closed period."""
    pea = cam = ZERO
    for period in periods:
        pea += period.owed_amounts.pea
        cam += period.owed_amounts.cam
    return PerProfileAmounts(pea=pea, cam=cam)


# =============================================================================
# ANALYTICS
# =============================================================================

def user_totals(transactions: Iterable[Transaction]) -> PerProfileAmounts:
    """Lifetime savings per profile. `.total` is the combined savings."""
    return sum_by_profile(transactions)


def monthly_totals(transactions: Iterable[Transaction]) -> list[MonthlyTotal]:
    """Per-month totals, oldest month first, with a running cumulative total."""
    grouped: dict[str, MonthlyTotal] = {}
    for tx in transactions:
        key = f"{tx.tx_date:%Y-%m}"
        month = grouped.get(key)
        if month is None:
            month = grouped[key] = MonthlyTotal(month=key, label=f"{tx.tx_date:%b %y}")
        month.total += tx.amount
        if tx.user_id is ProfileId.PEA:
            month.pea += tx.amount
        else:
            month.cam += tx.amount

    running = ZERO
    result = []
    for key in sorted(grouped):
        running += grouped[key].total
        result.append(grouped[key].model_copy(update={"cumulative": running}))
    return result


def average_monthly(transactions: list[Transaction]) -> Decimal:
    """Total savings divided by the number of months with any savings."""
    months = monthly_totals(transactions)
    if not months:
        return ZERO
    return user_totals(transactions).total / len(months)


def period_label_totals(
    transactions: Iterable[Transaction],
    limit: int = 8,
) -> list[tuple[str, Decimal]]:
    """
    Totals per half-month label, oldest first, the last `limit` only.

    Labels drop the year: "Jan 1-15".
    """
    first_seen: dict[str, date] = {}
    totals: dict[str, Decimal] = {}
    for tx in transactions:
        if not tx.period:
            continue
        totals[tx.period] = totals.get(tx.period, ZERO) + tx.amount
        if tx.period not in first_seen or tx.tx_date < first_seen[tx.period]:
            first_seen[tx.period] = tx.tx_date

    ordered = OrderedDict(
        (label, totals[label]) for label in sorted(totals, key=lambda label: first_seen[label])
    )
    return [(label.rsplit(", ", 1)[0], amount) for label, amount in list(ordered.items())[-limit:]]


def contribution_shares(transactions: Iterable[Transaction]) -> list[ContributionShare]:
    """Each profile's share of everything saved. 50/50 before any savings."""
    totals = user_totals(transactions)
    if totals.total > 0:
        pea_percent = float(totals.pea / totals.total * HUNDRED)
    else:
        pea_percent = 50.0
    return [
        ContributionShare(profile_id=ProfileId.PEA, amount=totals.pea, percent=pea_percent),
        ContributionShare(profile_id=ProfileId.CAM, amount=totals.cam, percent=100.0 - pea_percent),
    ]
