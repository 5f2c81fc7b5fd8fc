"""
Event Logger

DESIGN DECISION: Each write either profile makes to the shared store
becomes one JSON log line, so a half-finished action (a saved
transaction whose goal credit failed) can be found afterwards.

Events stay on this device; nothing is written back to the store.
A failure to log makes log() return False; it never interrupts the action.
Events from one action share a correlation id.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from money_mates.models.events import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
)


def configure_logging(debug: bool = False, environment: str = "development") -> None:
    """
    Configure structlog for local JSON logging.

    Args:
        debug: Log DEBUG events too (otherwise INFO and up)
        environment: Added to every event as "environment"
    """
    logging.basicConfig(format="%(message)s")
    logging.getLogger("money_mates").setLevel(logging.DEBUG if debug else logging.INFO)

    def add_environment(logger, method_name, event_dict):
        event_dict.setdefault("environment", environment)
        return event_dict

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_environment,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class EventLogger:
    """
    Central event logging service.

    Logs events to the structured local log. Logging never raises.
    """

    def __init__(self, logger_name: str = "money_mates"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: LedgerEvent) -> bool:
        """
        Log an event at a level matching its severity.

        Returns False if the log write itself failed.
        """
        try:
            log_dict = event.to_log_dict()

            if event.severity is EventSeverity.ERROR:
                self._logger.error("ledger_event", **log_dict)
            elif event.severity is EventSeverity.WARNING:
                self._logger.warning("ledger_event", **log_dict)
            elif event.severity is EventSeverity.DEBUG:
                self._logger.debug("ledger_event", **log_dict)
            else:
                self._logger.info("ledger_event", **log_dict)
            return True
        except Exception:
            return False

    def log_transaction_added(
        self,
        transaction_id: str,
        actor: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(LedgerEventBuilder.transaction_added(
            transaction_id=transaction_id,
            actor=actor,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_goal_contributed(
        self,
        goal_id: str,
        amount: str,
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(LedgerEventBuilder.goal_contributed(
            goal_id=goal_id,
            amount=amount,
            actor=actor,
            correlation_id=correlation_id,
        ))

    def log_goal_contribution_failed(
        self,
        goal_id: str,
        transaction_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(LedgerEventBuilder.goal_contribution_failed(
            goal_id=goal_id,
            transaction_id=transaction_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_period_closed(
        self,
        period_id: str,
        owed: dict[str, str],
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(LedgerEventBuilder.period_closed(
            period_id=period_id,
            owed=owed,
            actor=actor,
            correlation_id=correlation_id,
        ))

    def log_owed_repaid(
        self,
        period_id: str,
        profile_id: str,
        amount: str,
        remaining: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(LedgerEventBuilder.owed_repaid(
            period_id=period_id,
            profile_id=profile_id,
            amount=amount,
            remaining=remaining,
            correlation_id=correlation_id,
        ))

    def log_game_event(
        self,
        event_type: LedgerEventType,
        game_type: str,
        actor: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(LedgerEventBuilder.game_event(
            event_type=event_type,
            game_type=game_type,
            actor=actor,
            details=details,
        ))

    def log_text_completion_failed(
        self,
        purpose: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(LedgerEventBuilder.text_completion_failed(
            purpose=purpose,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_store_error(
        self,
        operation: str,
        path: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(LedgerEventBuilder.store_error(
            operation=operation,
            path=path,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_action(
        self,
        event_type: LedgerEventType,
        description: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        actor: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(LedgerEventBuilder.simple(
            event_type=event_type,
            description=description,
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding a
    transaction that also contributes to a goal).
    """
    return uuid4()
