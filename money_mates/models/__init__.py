"""
Data Models Package

This package contains all Pydantic models used in Money Mates.
All data flowing through the system must conform to these schemas.
"""

from money_mates.models.ledger import (
    CUTOFF_LAST_DAY,
    DEFAULT_PROFILES,
    ChatMessage,
    ChatRole,
    ContributionShare,
    CurrentPeriodStats,
    CutoffPeriod,
    Goal,
    MonthlyTotal,
    NewGoal,
    NewTransaction,
    PerProfileAmounts,
    PeriodRange,
    Profile,
    ProfileId,
    ProfileProgress,
    SavingsTarget,
    ThemeKey,
    Transaction,
)
from money_mates.models.game import (
    DecideMessage,
    DecideMode,
    DecideRole,
    GameSession,
    GameStatus,
    GameType,
    HandChoice,
    HandOutcome,
    choice_field,
)
from money_mates.models.events import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
)

__all__ = [
    # Ledger models
    "CUTOFF_LAST_DAY",
    "DEFAULT_PROFILES",
    "ChatMessage",
    "ChatRole",
    "ContributionShare",
    "CurrentPeriodStats",
    "CutoffPeriod",
    "Goal",
    "MonthlyTotal",
    "NewGoal",
    "NewTransaction",
    "PerProfileAmounts",
    "PeriodRange",
    "Profile",
    "ProfileId",
    "ProfileProgress",
    "SavingsTarget",
    "ThemeKey",
    "Transaction",
    # Game models
    "DecideMessage",
    "DecideMode",
    "DecideRole",
    "GameSession",
    "GameStatus",
    "GameType",
    "HandChoice",
    "HandOutcome",
    "choice_field",
    # Event models
    "EventSeverity",
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventType",
]
