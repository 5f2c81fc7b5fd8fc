"""
Tests for the ledger repositories.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

from money_mates.models.ledger import NewGoal, NewTransaction, ProfileId, ThemeKey
from money_mates.services.ledger import (
    GoalRepository,
    LedgerValidationError,
    OwnershipError,
    ProfileRepository,
    SavingsTargetRepository,
    TransactionRepository,
    validated,
)
from money_mates.services.storage import NotFoundError


class TestValidated:
    """Tests for local input validation."""

    def test_valid_input(self):
        tx = validated(NewTransaction, amount="500", note="  payday ")
        assert tx.amount == Decimal("500")
        assert tx.note == "payday"

    def test_invalid_input_names_the_field(self):
        with pytest.raises(LedgerValidationError) as exc_info:
            validated(NewTransaction, amount="-5")
        assert exc_info.value.field == "amount"


class TestProfileRepository:
    """Tests for the two fixed profiles."""

    async def test_defaults_created_once(self, store):
        profiles = ProfileRepository(store)
        assert sorted(await profiles.ensure_defaults()) == [ProfileId.CAM, ProfileId.PEA]
        assert await profiles.ensure_defaults() == []
        listed = await profiles.list_profiles()
        assert listed[ProfileId.PEA].name == "Pea"
        assert listed[ProfileId.CAM].theme is ThemeKey.GREEN

    async def test_existing_profile_is_kept(self, store):
        await store.set("profiles/pea", {"name": "Peanut", "theme": "rose", "emoji": "🥜", "pin": None})
        profiles = ProfileRepository(store)
        assert await profiles.ensure_defaults() == [ProfileId.CAM]
        assert (await profiles.get(ProfileId.PEA)).name == "Peanut"

    async def test_owner_updates_profile(self, store):
        profiles = ProfileRepository(store)
        await profiles.ensure_defaults()
        updated = await profiles.update(ProfileId.PEA, ProfileId.PEA, {"name": "Peanut", "pin": "1234"})
        assert updated.name == "Peanut"
        assert await profiles.verify_login(ProfileId.PEA, "1234")
        assert not await profiles.verify_login(ProfileId.PEA, "0000")
        assert await profiles.verify_login(ProfileId.CAM)

    async def test_only_owner_may_update(self, store):
        profiles = ProfileRepository(store)
        await profiles.ensure_defaults()
        with pytest.raises(OwnershipError):
            await profiles.update(ProfileId.CAM, ProfileId.PEA, {"name": "Ha"})

    async def test_update_validation(self, store):
        profiles = ProfileRepository(store)
        await profiles.ensure_defaults()
        with pytest.raises(LedgerValidationError):
            await profiles.update(ProfileId.PEA, ProfileId.PEA, {"id": "cam"})
        with pytest.raises(LedgerValidationError):
            await profiles.update(ProfileId.PEA, ProfileId.PEA, {"pin": "12"})
        with pytest.raises(LedgerValidationError):
            await profiles.update(ProfileId.PEA, ProfileId.PEA, {"theme": "plaid"})

    async def test_update_missing_profile(self, store):
        with pytest.raises(NotFoundError):
            await ProfileRepository(store).update(ProfileId.CAM, ProfileId.CAM, {"name": "Cam"})

    async def test_unknown_profile_never_logs_in(self, store):
        assert not await ProfileRepository(store).verify_login(ProfileId.PEA)


class TestTransactionRepository:
    """Tests for the shared ledger."""

    async def test_add_assigns_id_and_period(self, store):
        transactions = TransactionRepository(store)
        tx = await transactions.add(
            ProfileId.CAM,
            NewTransaction(amount=Decimal("750.50"), tx_date=date(2025, 1, 20)),
        )
        assert tx.id == "doc1"
        assert tx.period == "Jan 16-End, 2025"
        stored = await store.get("transactions/doc1")
        assert stored["amount"] == "750.50"
        assert stored["user_id"] == "cam"
        assert "id" not in stored

    async def test_newest_first(self, store):
        transactions = TransactionRepository(store)
        for day in (3, 20, 11):
            await transactions.add(ProfileId.PEA, NewTransaction(amount=Decimal("1"), tx_date=date(2025, 1, day)))
        listed = await transactions.list_transactions()
        assert [tx.tx_date.day for tx in listed] == [20, 11, 3]

    async def test_delete(self, store):
        transactions = TransactionRepository(store)
        tx = await transactions.add(ProfileId.PEA, NewTransaction(amount=Decimal("1")))
        await transactions.delete(tx.id)
        assert await transactions.list_transactions() == []

    async def test_malformed_documents_are_skipped(self, store):
        await store.set("transactions/bad", {"amount": "lots"})
        transactions = TransactionRepository(store)
        await transactions.add(ProfileId.PEA, NewTransaction(amount=Decimal("1")))
        assert len(await transactions.list_transactions()) == 1

    async def test_subscribe(self, store):
        seen = []
        transactions = TransactionRepository(store)
        await transactions.subscribe(seen.append)
        await transactions.add(ProfileId.PEA, NewTransaction(amount=Decimal("1")))
        assert seen[0] == []
        assert seen[-1][0].user_id is ProfileId.PEA


class TestGoalRepository:
    """Tests for shared goals."""

    async def test_contributions_from_both_add_up(self, store):
        goals = GoalRepository(store)
        goal = await goals.add(ProfileId.PEA, NewGoal(title="Trip", target_amount=Decimal("1000")))
        results = await asyncio.gather(
            goals.contribute(goal.id, Decimal("300")),
            goals.contribute(goal.id, Decimal("150.25")),
        )
        assert results == [True, True]
        assert (await goals.get(goal.id)).current_amount == Decimal("450.25")

    async def test_contribute_to_missing_goal(self, store):
        assert not await GoalRepository(store).contribute("gone", Decimal("10"))

    async def test_contribute_must_be_positive(self, store):
        with pytest.raises(LedgerValidationError):
            await GoalRepository(store).contribute("any", Decimal("0"))

    async def test_set_progress(self, store):
        goals = GoalRepository(store)
        goal = await goals.add(ProfileId.CAM, NewGoal(title="Car", target_amount=Decimal("5000")))
        assert await goals.set_progress(goal.id, Decimal("1200"))
        assert (await goals.get(goal.id)).current_amount == Decimal("1200")
        assert not await goals.set_progress("gone", Decimal("1"))
        with pytest.raises(LedgerValidationError):
            await goals.set_progress(goal.id, Decimal("-1"))

    async def test_delete(self, store):
        goals = GoalRepository(store)
        goal = await goals.add(ProfileId.CAM, NewGoal(title="Car", target_amount=Decimal("5000")))
        await goals.delete(goal.id)
        assert await goals.list_goals() == []


class TestSavingsTargetRepository:
    """Tests for the singleton target."""

    async def test_set_and_replace_keeps_created_at(self, store):
        targets = SavingsTargetRepository(store)
        first = await targets.set(Decimal("5000"), [15, 0])
        second = await targets.set(Decimal("6000"), [10, 25])
        assert second.created_at == first.created_at
        stored = await targets.get()
        assert stored.target_amount == Decimal("6000")
        assert stored.cutoff_days == [10, 25]
        assert stored.is_active

    async def test_set_validates(self, store):
        with pytest.raises(LedgerValidationError):
            await SavingsTargetRepository(store).set(Decimal("5000"), [15, 15])
        assert await store.get("savingsTarget/current") is None

    async def test_toggle(self, store):
        targets = SavingsTargetRepository(store)
        assert not await targets.toggle(False)
        assert await store.get("savingsTarget/current") is None

        await targets.set(Decimal("5000"), [15, 0])
        assert await targets.toggle(False)
        assert not (await targets.get()).is_active
