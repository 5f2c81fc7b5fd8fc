"""
Core Ledger Models for Money Mates

These models define the schemas for everything the two profiles share:
profiles, the transaction ledger, goals, the savings target and the
history of closed cutoff periods.

DESIGN DECISION: Exactly two profile identities exist. Every per-user
aggregate is a PerProfileAmounts with one field per identity, so an
aggregate keyed by anything else cannot be represented at all.

Amounts are Decimal. In store documents they serialize to strings
(pydantic's JSON mode), which keeps increments exact.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from math import ceil
from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current time, used for creation timestamps."""
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """
    Current time in this device's timezone.

    Calendar questions (which day it is, which cutoff period we are in)
    are answered in local time, the same clock that dates transactions.
    """
    return datetime.now().astimezone()


def local_today() -> date:
    return local_now().date()



# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ProfileId(str, Enum):
    """
    The two fixed participant identities.

    There is no way to add a third profile; the ledger is built
    around exactly these two.
    """
    PEA = "pea"
    CAM = "cam"

    @property
    def partner(self) -> "ProfileId":
        """The other profile."""
        return ProfileId.CAM if self is ProfileId.PEA else ProfileId.PEA


class ThemeKey(str, Enum):
    """Visual theme a profile can pick."""
    EMERALD = "emerald"
    GREEN = "green"
    PINK = "pink"
    INDIGO = "indigo"
    ROSE = "rose"
    AMBER = "amber"
    SKY = "sky"
    VIOLET = "violet"


class ChatRole(str, Enum):
    """Author of a coach chat message."""
    USER = "user"
    ASSISTANT = "assistant"


# Cutoff-day sentinel meaning "last calendar day of the month"
CUTOFF_LAST_DAY = 0

# Fixed ids of the singleton documents
SAVINGS_TARGET_ID = "current"


# =============================================================================
# PROFILES
# =============================================================================

class Profile(BaseModel):
    """
    One of the two household members.

    Created lazily with defaults on first run, mutated only by its
    owner, never deleted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: ProfileId
    name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Display name"
    )
    theme: ThemeKey = Field(
        default=ThemeKey.EMERALD,
        description="Visual theme key"
    )
    emoji: str = Field(
        default="🙂",
        min_length=1,
        max_length=16,
    )
    pin: Optional[str] = Field(
        default=None,
        pattern=r"^\d{4}$",
        description="Optional 4-digit PIN (None = no PIN)"
    )

    @field_validator('pin', mode='before')
    @classmethod
    def blank_pin_means_none(cls, v):
        """A blank PIN disables the PIN rather than failing validation."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def has_pin(self) -> bool:
        return self.pin is not None

    def verify_pin(self, attempt: Optional[str]) -> bool:
        """Profiles without a PIN always verify."""
        if not self.has_pin:
            return True
        return attempt is not None and attempt.strip() == self.pin


DEFAULT_PROFILES: dict[ProfileId, Profile] = {
    ProfileId.PEA: Profile(id=ProfileId.PEA, name="Pea", theme=ThemeKey.PINK, emoji="🌸"),
    ProfileId.CAM: Profile(id=ProfileId.CAM, name="Cam", theme=ThemeKey.GREEN, emoji="📸"),
}


class PerProfileAmounts(BaseModel):
    """
    An amount for each of the two profiles.

    Used for contributions, owed (shortfall) amounts and totals.
    """

    pea: Decimal = Field(default=Decimal("0"), ge=0)
    cam: Decimal = Field(default=Decimal("0"), ge=0)

    def __getitem__(self, profile_id: ProfileId | str) -> Decimal:
        return getattr(self, ProfileId(profile_id).value)

    def replace(self, profile_id: ProfileId | str, amount: Decimal) -> "PerProfileAmounts":
        """Return a copy with one profile's amount replaced."""
        return self.model_copy(update={ProfileId(profile_id).value: amount})

    @property
    def total(self) -> Decimal:
        return self.pea + self.cam


class ProfileProgress(BaseModel):
    """Progress percentage (0-100) for each profile."""

    pea: float = Field(default=0.0, ge=0.0, le=100.0)
    cam: float = Field(default=0.0, ge=0.0, le=100.0)

    def __getitem__(self, profile_id: ProfileId | str) -> float:
        return getattr(self, ProfileId(profile_id).value)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class NewTransaction(BaseModel):
    """
    A contribution as entered by a profile, before it is stored.

    Validation happens here, before any store call.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount saved"
    )
    tx_date: date = Field(
        default_factory=local_today,
        description="Date the money was saved"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    goal_id: Optional[str] = Field(
        default=None,
        description="Goal this contribution also counts toward"
    )


class Transaction(BaseModel):
    """
    A stored contribution on the shared ledger.

    Immutable once created except for deletion. Visible to both
    profiles.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = Field(
        default=None,
        description="Store-generated id"
    )
    user_id: ProfileId = Field(
        ...,
        description="Profile that saved the money"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
    )
    tx_date: date
    period: str = Field(
        ...,
        description="Display period label derived from tx_date at creation"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
    )
    goal_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# GOALS
# =============================================================================

class NewGoal(BaseModel):
    """A goal as entered by a profile."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    target_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
    )
    deadline: Optional[date] = None
    emoji: str = Field(default="🎯", min_length=1, max_length=16)


class Goal(BaseModel):
    """
    A shared savings goal.

    current_amount only grows through contributions (atomic
    increments) but can also be set directly.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0)
    deadline: Optional[date] = None
    emoji: str = Field(default="🎯")
    created_by: ProfileId
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def progress_percent(self) -> float:
        return float(min(Decimal(100), self.current_amount / self.target_amount * 100))

    def days_left(self, now: datetime) -> Optional[int]:
        """Days until the deadline (negative once passed), None without one."""
        if self.deadline is None:
            return None
        return days_until(self.deadline, now)


def days_until(day: date, now: datetime) -> int:
    """Whole days from now until the start of the given day, rounded up."""
    start_of_day = datetime.combine(day, time.min, tzinfo=now.tzinfo)
    return ceil((start_of_day - now).total_seconds() / 86400)


# =============================================================================
# SAVINGS TARGET
# =============================================================================

class SavingsTarget(BaseModel):
    """
    The singleton bi-monthly savings target.

    There is only ever one, stored under the fixed id "current".
    """

    id: Literal["current"] = SAVINGS_TARGET_ID
    target_amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Target per person per cutoff period"
    )
    is_active: bool = True
    cutoff_days: list[int] = Field(
        default_factory=lambda: [15, CUTOFF_LAST_DAY],
        min_length=2,
        max_length=2,
        description="Two cutoff days, each 1-28, or 0 for the last day of the month"
    )
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('cutoff_days')
    @classmethod
    def validate_cutoff_days(cls, v: list[int]) -> list[int]:
        for day in v:
            if day != CUTOFF_LAST_DAY and not 1 <= day <= 28:
                raise ValueError(
                    f"Cutoff day {day} must be between 1 and 28, or 0 for the last day"
                )
        if v[0] == v[1]:
            raise ValueError("Cutoff days must be two different days")
        return v

    def cutoff_days_text(self) -> str:
        """Human text such as '15th and last day'."""
        return " and ".join(
            "last day" if day == CUTOFF_LAST_DAY else ordinal(day)
            for day in self.cutoff_days
        )


def ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


# =============================================================================
# CUTOFF PERIODS
# =============================================================================

class PeriodRange(BaseModel):
    """Inclusive start and end date of one cutoff period."""
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode='after')
    def validate_order(self) -> 'PeriodRange':
        if self.end < self.start:
            raise ValueError("Period end cannot be before start")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def total_days(self) -> int:
        return (self.end - self.start).days


class CutoffPeriod(BaseModel):
    """
    A closed cutoff period.

    Keyed by its end date. Owed amounts are frozen at closure and only
    ever decrease afterwards, through repayments.
    """

    id: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        description="Derived from the end date (YYYY-MM-DD)"
    )
    start_date: date
    end_date: date
    target_amount: Decimal = Field(..., gt=0)
    contributions: PerProfileAmounts = Field(default_factory=PerProfileAmounts)
    owed_amounts: PerProfileAmounts = Field(default_factory=PerProfileAmounts)
    is_complete: bool = True
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_dates(self) -> 'CutoffPeriod':
        if self.end_date < self.start_date:
            raise ValueError("Period end cannot be before start")
        return self


# =============================================================================
# DERIVED STATS (never stored)
# =============================================================================

class CurrentPeriodStats(BaseModel):
    """
    Contribution stats for the period containing "now".

    Always recomputed from the full transaction list.
    """

    start_date: date
    end_date: date
    target_amount: Decimal
    contributions: PerProfileAmounts
    progress: ProfileProgress
    remaining: PerProfileAmounts
    days_remaining: int = Field(ge=0)
    total_days: int
    is_urgent: bool
    is_overdue: bool

    @property
    def period_id(self) -> str:
        return self.end_date.isoformat()


class MonthlyTotal(BaseModel):
    """Savings for one calendar month, for the analytics view."""

    month: str = Field(..., description="Sort key, YYYY-MM")
    label: str = Field(..., description="Display label, e.g. 'Jan 25'")
    total: Decimal = Decimal("0")
    pea: Decimal = Decimal("0")
    cam: Decimal = Decimal("0")
    cumulative: Decimal = Decimal("0")


class ContributionShare(BaseModel):
    """One profile's share of everything saved."""

    profile_id: ProfileId
    amount: Decimal
    percent: float


# =============================================================================
# COACH CHAT
# =============================================================================

class ChatMessage(BaseModel):
    """A single coach chat message. Chat history is local, never stored."""

    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
