"""
Ledger Repositories

Typed access to the shared documents: profiles, transactions, goals,
the savings target and closed cutoff periods.

DESIGN DECISION: Repositories translate between pydantic models and
store documents and nothing more. They don't log and they don't decide
business rules; the period engine and the orchestrator flows do that.

Documents hold the model's JSON-mode dump without the id (the id is
the document path). Amounts therefore travel as decimal strings.
"""

from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from money_mates.formatting import auto_period_label
from money_mates.models.ledger import (
    DEFAULT_PROFILES,
    CutoffPeriod,
    Goal,
    NewGoal,
    NewTransaction,
    PerProfileAmounts,
    Profile,
    ProfileId,
    SavingsTarget,
    Transaction,
)
from money_mates.services.storage import paths
from money_mates.services.storage.interface import (
    DocumentData,
    DocumentStore,
    DuplicateError,
    NotFoundError,
    Unsubscribe,
)

M = TypeVar("M", bound=BaseModel)

_logger = structlog.get_logger("money_mates.ledger")


class LedgerValidationError(Exception):
    """Input rejected locally, before any store call."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class OwnershipError(Exception):
    """A profile tried to change something only its owner may change."""
    pass


def validated(model_cls: type[M], **fields: Any) -> M:
    """
    Build a model from raw input, raising LedgerValidationError.

    Usage:
        new_tx = validated(NewTransaction, amount="500", note="payday")
    """
    try:
        return model_cls(**fields)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise LedgerValidationError(first.get("msg", str(e)), field=field) from e


def to_document(model: BaseModel) -> DocumentData:
    """JSON-safe document data for a model, without its id."""
    return model.model_dump(mode="json", exclude={"id"})


def from_document(model_cls: type[M], doc_id: str, data: DocumentData) -> M:
    return model_cls.model_validate({**data, "id": doc_id})


def _load_all(
    model_cls: type[M],
    documents: list[tuple[str, DocumentData]],
) -> list[M]:
    """Parse a collection, skipping malformed documents."""
    models = []
    for doc_id, data in documents:
        try:
            models.append(from_document(model_cls, doc_id, data))
        except ValidationError as e:
            _logger.warning(
                "malformed_document_skipped",
                model=model_cls.__name__,
                doc_id=doc_id,
                error=str(e),
            )
    return models


# =============================================================================
# PROFILES
# =============================================================================

class ProfileRepository:
    """The two fixed profiles."""

    EDITABLE_FIELDS = {"name", "emoji", "theme", "pin"}

    def __init__(self, store: DocumentStore):
        self._store = store

    async def ensure_defaults(self) -> list[ProfileId]:
        """
        Create any missing profile with its defaults.

        Both clients may do this on first run; whichever create lands
        second is ignored.

        Returns:
            Ids of the profiles this call created
        """
        existing = {doc_id for doc_id, _ in await self._store.list_collection(paths.PROFILES)}
        created = []
        for profile_id, profile in DEFAULT_PROFILES.items():
            if profile_id.value in existing:
                continue
            try:
                await self._store.create(
                    paths.document_path(paths.PROFILES, profile_id.value),
                    to_document(profile),
                )
                created.append(profile_id)
            except DuplicateError:
                pass
        return created

    async def get(self, profile_id: ProfileId) -> Optional[Profile]:
        data = await self._store.get(paths.document_path(paths.PROFILES, ProfileId(profile_id).value))
        if data is None:
            return None
        return from_document(Profile, ProfileId(profile_id).value, data)

    async def list_profiles(self) -> dict[ProfileId, Profile]:
        documents = await self._store.list_collection(paths.PROFILES)
        return {profile.id: profile for profile in _load_all(Profile, documents)}

    async def update(
        self,
        actor: ProfileId,
        profile_id: ProfileId,
        updates: dict[str, Any],
    ) -> Profile:
        """
        Partially update a profile. Only its owner may do this.

        Raises:
            OwnershipError: If actor is not the profile's owner
            LedgerValidationError: For unknown fields or invalid values
            NotFoundError: If the profile doesn't exist yet
        """
        if ProfileId(actor) is not ProfileId(profile_id):
            raise OwnershipError(f"{actor} cannot edit the profile of {profile_id}")

        unknown = set(updates) - self.EDITABLE_FIELDS
        if unknown:
            raise LedgerValidationError(
                f"Profile fields cannot be edited: {', '.join(sorted(unknown))}"
            )

        current = await self.get(profile_id)
        if current is None:
            raise NotFoundError(f"Profile not found: {profile_id}")

        updated = validated(Profile, **{**current.model_dump(), **updates})
        changed = to_document(updated)
        await self._store.update(
            paths.document_path(paths.PROFILES, updated.id.value),
            {key: changed[key] for key in updates},
        )
        return updated

    async def verify_login(self, profile_id: ProfileId, pin: Optional[str] = None) -> bool:
        """Unknown profiles never verify; PIN-less ones always do."""
        profile = await self.get(profile_id)
        return profile is not None and profile.verify_pin(pin)

    async def subscribe(self, listener: Callable[[dict[ProfileId, Profile]], None]) -> Unsubscribe:
        return await self._store.subscribe_collection(
            paths.PROFILES,
            lambda documents: listener(
                {profile.id: profile for profile in _load_all(Profile, documents)}
            ),
        )


# =============================================================================
# TRANSACTIONS
# =============================================================================

def sort_transactions(transactions: list[Transaction]) -> list[Transaction]:
    """Newest date first; same-day entries newest created first."""
    return sorted(
        transactions,
        key=lambda tx: (tx.tx_date, tx.created_at),
        reverse=True,
    )


class TransactionRepository:
    """The shared contribution ledger."""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def add(self, user_id: ProfileId, new_transaction: NewTransaction) -> Transaction:
        """
        Store a contribution. Not retried: a retry could duplicate it.

        The period label is derived from the date now and never changes.
        """
        transaction = Transaction(
            user_id=user_id,
            amount=new_transaction.amount,
            tx_date=new_transaction.tx_date,
            period=auto_period_label(new_transaction.tx_date),
            note=new_transaction.note or None,
            goal_id=new_transaction.goal_id or None,
        )
        doc_id = await self._store.add(paths.TRANSACTIONS, to_document(transaction))
        return transaction.model_copy(update={"id": doc_id})

    async def delete(self, transaction_id: str) -> None:
        await self._store.delete(paths.document_path(paths.TRANSACTIONS, transaction_id))

    async def list_transactions(self) -> list[Transaction]:
        documents = await self._store.list_collection(paths.TRANSACTIONS)
        return sort_transactions(_load_all(Transaction, documents))

    async def subscribe(self, listener: Callable[[list[Transaction]], None]) -> Unsubscribe:
        return await self._store.subscribe_collection(
            paths.TRANSACTIONS,
            lambda documents: listener(sort_transactions(_load_all(Transaction, documents))),
        )


# =============================================================================
# GOALS
# =============================================================================

def sort_goals(goals: list[Goal]) -> list[Goal]:
    return sorted(goals, key=lambda goal: goal.created_at, reverse=True)


class GoalRepository:
    """Shared savings goals."""

    def __init__(self, store: DocumentStore):
        self._store = store

    def _path(self, goal_id: str) -> str:
        return paths.document_path(paths.GOALS, goal_id)

    async def add(self, created_by: ProfileId, new_goal: NewGoal) -> Goal:
        goal = Goal(
            title=new_goal.title,
            target_amount=new_goal.target_amount,
            deadline=new_goal.deadline,
            emoji=new_goal.emoji,
            created_by=created_by,
        )
        doc_id = await self._store.add(paths.GOALS, to_document(goal))
        return goal.model_copy(update={"id": doc_id})

    async def get(self, goal_id: str) -> Optional[Goal]:
        data = await self._store.get(self._path(goal_id))
        return from_document(Goal, goal_id, data) if data is not None else None

    async def contribute(self, goal_id: str, amount: Decimal) -> bool:
        """
        Atomically add amount to the goal's current amount.

        Returns:
            False if the goal doesn't exist (nothing is written)
        """
        if amount <= 0:
            raise LedgerValidationError("Contribution must be positive", field="amount")
        try:
            await self._store.increment(self._path(goal_id), "current_amount", Decimal(str(amount)))
        except NotFoundError:
            return False
        return True

    async def set_progress(self, goal_id: str, current_amount: Decimal) -> bool:
        """Overwrite the current amount. Returns False if the goal is gone."""
        if current_amount < 0:
            raise LedgerValidationError("Progress cannot be negative", field="current_amount")
        try:
            await self._store.update(
                self._path(goal_id),
                {"current_amount": str(Decimal(str(current_amount)))},
            )
        except NotFoundError:
            return False
        return True

    async def delete(self, goal_id: str) -> None:
        await self._store.delete(self._path(goal_id))

    async def list_goals(self) -> list[Goal]:
        return sort_goals(_load_all(Goal, await self._store.list_collection(paths.GOALS)))

    async def subscribe(self, listener: Callable[[list[Goal]], None]) -> Unsubscribe:
        return await self._store.subscribe_collection(
            paths.GOALS,
            lambda documents: listener(sort_goals(_load_all(Goal, documents))),
        )


# =============================================================================
# SAVINGS TARGET
# =============================================================================

class SavingsTargetRepository:
    """The singleton savings target document."""

    def __init__(self, store: DocumentStore):
        self._store = store

    async def get(self) -> Optional[SavingsTarget]:
        data = await self._store.get(paths.SAVINGS_TARGET)
        if data is None:
            return None
        return from_document(SavingsTarget, "current", data)

    async def set(self, target_amount: Decimal, cutoff_days: list[int]) -> SavingsTarget:
        """
        Replace the target and mark it active.

        The original creation time survives the replace.
        """
        existing = await self.get()
        fields: dict[str, Any] = {
            "target_amount": target_amount,
            "cutoff_days": cutoff_days,
            "is_active": True,
        }
        if existing is not None:
            fields["created_at"] = existing.created_at
        target = validated(SavingsTarget, **fields)
        await self._store.set(paths.SAVINGS_TARGET, to_document(target))
        return target

    async def toggle(self, is_active: bool) -> bool:
        """Returns False (and writes nothing) when no target exists."""
        if await self.get() is None:
            return False
        await self._store.merge(paths.SAVINGS_TARGET, {"is_active": is_active})
        return True

    async def subscribe(self, listener: Callable[[Optional[SavingsTarget]], None]) -> Unsubscribe:
        def on_change(data: Optional[DocumentData]) -> None:
            if data is None:
                listener(None)
                return
            try:
                listener(from_document(SavingsTarget, "current", data))
            except ValidationError as e:
                _logger.warning("malformed_target_ignored", error=str(e))
                listener(None)

        return await self._store.subscribe_document(paths.SAVINGS_TARGET, on_change)


# =============================================================================
# CUTOFF PERIODS
# =============================================================================

def sort_periods(periods: list[CutoffPeriod]) -> list[CutoffPeriod]:
    """History order: latest end date first."""
    return sorted(periods, key=lambda period: period.end_date, reverse=True)


class CutoffPeriodRepository:
    """Closed cutoff periods, keyed by their end date."""

    def __init__(self, store: DocumentStore):
        self._store = store

    def _path(self, period_id: str) -> str:
        return paths.document_path(paths.CUTOFF_PERIODS, period_id)

    async def get(self, period_id: str) -> Optional[CutoffPeriod]:
        data = await self._store.get(self._path(period_id))
        return from_document(CutoffPeriod, period_id, data) if data is not None else None

    async def save(self, period: CutoffPeriod) -> None:
        """Write the full record; the same id always overwrites."""
        await self._store.set(self._path(period.id), to_document(period))

    async def set_owed(self, period_id: str, owed_amounts: PerProfileAmounts) -> None:
        await self._store.merge(
            self._path(period_id),
            {"owed_amounts": owed_amounts.model_dump(mode="json")},
        )

    async def list_periods(self) -> list[CutoffPeriod]:
        documents = await self._store.list_collection(paths.CUTOFF_PERIODS)
        return sort_periods(_load_all(CutoffPeriod, documents))

    async def subscribe(self, listener: Callable[[list[CutoffPeriod]], None]) -> Unsubscribe:
        return await self._store.subscribe_collection(
            paths.CUTOFF_PERIODS,
            lambda documents: listener(sort_periods(_load_all(CutoffPeriod, documents))),
        )
