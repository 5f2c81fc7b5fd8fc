"""
Ledger Event Models

Every significant action is emitted as a structured event on the local
log. This gives:
1. Traceability of who changed what, and when
2. Debugging information when a store or LLM call fails
3. Correlation of the several writes one user action makes

DESIGN DECISION: Events go to the structured log only. The history that
matters to users is the closed cutoff periods themselves; there is no
separately persisted audit trail.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from money_mates.models.ledger import utc_now


class LedgerEventType(str, Enum):
    """Types of events we log."""
    # Profiles
    PROFILE_CREATED = "profile_created"
    PROFILE_UPDATED = "profile_updated"

    # Ledger
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"

    # Goals
    GOAL_CREATED = "goal_created"
    GOAL_CONTRIBUTED = "goal_contributed"
    GOAL_CONTRIBUTION_FAILED = "goal_contribution_failed"
    GOAL_PROGRESS_SET = "goal_progress_set"
    GOAL_DELETED = "goal_deleted"

    # Target and settlement
    TARGET_SET = "target_set"
    TARGET_TOGGLED = "target_toggled"
    PERIOD_CLOSED = "period_closed"
    OWED_REPAID = "owed_repaid"

    # Games
    GAME_CREATED = "game_created"
    GAME_JOINED = "game_joined"
    GAME_UPDATED = "game_updated"
    GAME_ENDED = "game_ended"

    # Coach
    COACH_REPLIED = "coach_replied"
    TEXT_COMPLETION_FAILED = "text_completion_failed"

    # System events
    STORE_ERROR = "store_error"
    SYSTEM_ERROR = "system_error"


class EventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single logged event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=utc_now)

    event_type: LedgerEventType
    severity: EventSeverity = EventSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'goal', 'period')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the events of one user action"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    # Which profile triggered this, if any
    actor: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "actor": self.actor,
            "is_user_action": self.is_user_action,
        }


class LedgerEventBuilder:
    """
    Helper class to build events with common patterns.

    Usage:
        event = LedgerEventBuilder.transaction_added(
            transaction_id="abc", actor="pea", amount="500", correlation_id=cid
        )
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        actor: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{actor} saved {amount}",
            details={"amount": amount},
            actor=actor,
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            actor=actor,
            is_user_action=True,
        )

    @staticmethod
    def goal_contributed(
        goal_id: str,
        amount: str,
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.GOAL_CONTRIBUTED,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal received {amount}",
            details={"amount": amount},
            actor=actor,
            is_user_action=True,
        )

    @staticmethod
    def goal_contribution_failed(
        goal_id: str,
        transaction_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        """The transaction was kept; only the goal increment failed."""
        return LedgerEvent(
            event_type=LedgerEventType.GOAL_CONTRIBUTION_FAILED,
            severity=EventSeverity.WARNING,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Goal contribution failed after the transaction was saved",
            details={"transaction_id": transaction_id},
            error_message=error_message,
        )

    @staticmethod
    def period_closed(
        period_id: str,
        owed: dict[str, str],
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PERIOD_CLOSED,
            entity_type="period",
            entity_id=period_id,
            correlation_id=correlation_id,
            description=f"Cutoff period ending {period_id} closed",
            details={"owed": owed},
            actor=actor,
            is_user_action=True,
        )

    @staticmethod
    def owed_repaid(
        period_id: str,
        profile_id: str,
        amount: str,
        remaining: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.OWED_REPAID,
            entity_type="period",
            entity_id=period_id,
            correlation_id=correlation_id,
            description=f"{profile_id} repaid {amount}",
            details={"amount": amount, "remaining": remaining},
            actor=profile_id,
            is_user_action=True,
        )

    @staticmethod
    def game_event(
        event_type: LedgerEventType,
        game_type: str,
        actor: str,
        details: Optional[dict] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=event_type,
            severity=EventSeverity.DEBUG if event_type is LedgerEventType.GAME_UPDATED else EventSeverity.INFO,
            entity_type="game_session",
            entity_id="active",
            description=f"{actor}: {event_type.value.replace('_', ' ')} ({game_type})",
            details=details or {},
            actor=actor,
            is_user_action=True,
        )

    @staticmethod
    def text_completion_failed(
        purpose: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TEXT_COMPLETION_FAILED,
            severity=EventSeverity.ERROR,
            entity_type="text_completion",
            correlation_id=correlation_id,
            description=f"Text completion failed ({purpose})",
            error_message=error_message,
        )

    @staticmethod
    def store_error(
        operation: str,
        path: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.STORE_ERROR,
            severity=EventSeverity.ERROR,
            entity_type="document",
            entity_id=path,
            correlation_id=correlation_id,
            description=f"Store {operation} failed",
            error_message=error_message,
        )

    @staticmethod
    def simple(
        event_type: LedgerEventType,
        description: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        actor: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEvent:
        """Informational user action without extra structure."""
        return LedgerEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            actor=actor,
            is_user_action=actor is not None,
        )
