"""
Integration tests for the orchestrator flows.

Everything runs against the in-memory store with a scripted text
completion client.
"""

import asyncio
import pytest
from decimal import Decimal

from money_mates.agents import CompletionFailedError, MissingCredentialError
from money_mates.agents.ai_agents import FAILURE_REPLY, MISSING_KEY_REPLY
from money_mates.models.game import GameStatus, GameType
from money_mates.models.ledger import ChatRole, ProfileId, local_today
from money_mates.orchestrator import MoneyMatesApp, create_app_components
from money_mates.services.ledger import LedgerValidationError, OwnershipError
from money_mates.services.session import LocalSessionStore
from money_mates.services.storage import InMemoryDocumentStore, StorageError, TimeoutGuardedStore

from tests.conftest import FakeSheetsClient, ScriptedCompletion

PEA, CAM = ProfileId.PEA, ProfileId.CAM


class FlakyIncrementStore(InMemoryDocumentStore):
    """Every increment fails, as if the connection dropped mid-action."""

    async def increment(self, path, field, amount):
        raise StorageError("connection lost")


@pytest.fixture
def completion():
    return ScriptedCompletion()


@pytest.fixture
def session_store(tmp_path):
    return LocalSessionStore(path=tmp_path / "session.json", ttl_days=30)


@pytest.fixture
def app(store, completion, session_store):
    return MoneyMatesApp(store=store, completion_client=completion, session_store=session_store)


class TestProfileFlow:
    """Tests for login and the remembered profile."""

    async def test_first_run_creates_profiles(self, app):
        profiles = await app.profiles.ensure_profiles()
        assert set(profiles) == {PEA, CAM}

    async def test_login_without_pin_is_remembered(self, app):
        await app.profiles.ensure_profiles()
        assert await app.profiles.restore() == (None, False)
        assert await app.profiles.login(PEA)
        assert await app.profiles.restore() == (PEA, False)
        app.profiles.logout()
        assert await app.profiles.restore() == (None, False)

    async def test_pin_required(self, app):
        await app.profiles.ensure_profiles()
        await app.profiles.update_profile(CAM, CAM, {"pin": "2468"})
        assert not await app.profiles.login(CAM, "1111")
        assert await app.profiles.restore() == (None, False)
        assert await app.profiles.login(CAM, "2468")
        assert await app.profiles.restore() == (CAM, True)

    async def test_cannot_edit_partner_profile(self, app):
        await app.profiles.ensure_profiles()
        with pytest.raises(OwnershipError):
            await app.profiles.update_profile(PEA, CAM, {"name": "Cammy"})


class TestTransactionFlow:
    """Tests for saving money, with and without a goal."""

    async def test_invalid_amount_writes_nothing(self, app, store):
        with pytest.raises(LedgerValidationError):
            await app.transactions.add_transaction(PEA, "0")
        with pytest.raises(LedgerValidationError):
            await app.transactions.add_transaction(PEA, "abc")
        assert await store.list_collection("transactions") == []

    async def test_add_without_goal(self, app):
        tx, goal_applied = await app.transactions.add_transaction(PEA, "500", note="payday")
        assert goal_applied is None
        assert tx.id is not None
        assert [t.id for t in await app.transactions.list_transactions()] == [tx.id]

    async def test_add_with_goal_credits_goal(self, app):
        goal = await app.goals.add_goal(CAM, "Trip", "10000")
        _, goal_applied = await app.transactions.add_transaction(PEA, "1500", goal_id=goal.id)
        _, _ = await app.transactions.add_transaction(CAM, "500", goal_id=goal.id)
        assert goal_applied is True
        (stored,) = await app.goals.list_goals()
        assert stored.current_amount == Decimal("2000")

    async def test_missing_goal_keeps_transaction(self, app):
        tx, goal_applied = await app.transactions.add_transaction(PEA, "1500", goal_id="deleted")
        assert goal_applied is False
        assert [t.id for t in await app.transactions.list_transactions()] == [tx.id]

    async def test_goal_failure_keeps_transaction(self, completion, session_store):
        app = MoneyMatesApp(
            store=FlakyIncrementStore(),
            completion_client=completion,
            session_store=session_store,
        )
        goal = await app.goals.add_goal(PEA, "Trip", "10000")
        tx, goal_applied = await app.transactions.add_transaction(PEA, "1500", goal_id=goal.id)
        assert goal_applied is False
        assert len(await app.transactions.list_transactions()) == 1
        assert (await app.goals.list_goals())[0].current_amount == Decimal("0")

    async def test_delete_transaction(self, app):
        tx, _ = await app.transactions.add_transaction(CAM, "200")
        await app.transactions.delete_transaction(CAM, tx.id)
        assert await app.transactions.list_transactions() == []


class TestGoalFlow:
    """Tests for goal management."""

    async def test_goal_lifecycle(self, app):
        goal = await app.goals.add_goal(PEA, "  New phone ", "30000", emoji="📱")
        assert goal.title == "New phone"
        assert await app.goals.contribute(CAM, goal.id, "1000")
        assert await app.goals.set_progress(PEA, goal.id, "5000")
        assert (await app.goals.list_goals())[0].current_amount == Decimal("5000")
        await app.goals.delete_goal(PEA, goal.id)
        assert await app.goals.list_goals() == []

    async def test_goal_validation(self, app):
        with pytest.raises(LedgerValidationError):
            await app.goals.add_goal(PEA, "", "1000")
        with pytest.raises(LedgerValidationError):
            await app.goals.contribute(PEA, "any", "-1")


class TestTargetFlow:
    """Tests for the target and settlement."""

    async def test_close_and_repay(self, app):
        await app.start()
        target = await app.targets.set_target(PEA, "5000")
        assert target.cutoff_days == [15, 0]

        today = local_today()
        await app.transactions.add_transaction(PEA, "3000", tx_date=today)
        await app.transactions.add_transaction(CAM, "5000", tx_date=today)
        stats = app.tracker.current_stats()
        assert stats.contributions.pea == Decimal("3000")

        closed = await app.targets.close_period(CAM)
        assert closed.id == stats.period_id
        assert closed.owed_amounts.pea == Decimal("2000")
        assert closed.owed_amounts.cam == Decimal("0")

        repaid = await app.targets.repay(closed.id, PEA, "2500")
        assert repaid.owed_amounts.pea == Decimal("0")
        assert app.tracker.total_owed.pea == Decimal("0")
        app.stop()

    async def test_toggle_off_disables_tracking(self, app):
        await app.start()
        assert not await app.targets.toggle_target(PEA, False)
        await app.targets.set_target(CAM, "5000", [10, 25])
        assert await app.targets.toggle_target(PEA, False)
        assert app.tracker.current_stats() is None
        assert await app.targets.close_period(PEA) is None
        app.stop()

    async def test_invalid_target(self, app):
        with pytest.raises(LedgerValidationError):
            await app.targets.set_target(PEA, "0")
        with pytest.raises(LedgerValidationError):
            await app.targets.set_target(PEA, "5000", [15, 31])


class TestCoachFlow:
    """Tests for the coach chat flow."""

    async def test_send(self, app, completion):
        completion.replies.append("Nice work, you two!")
        await app.transactions.add_transaction(PEA, "1234")
        reply = await app.coach.send(PEA, [], "How are we doing?")
        assert reply.role is ChatRole.ASSISTANT
        assert reply.content == "Nice work, you two!"
        _, system_prompt = completion.calls[0]
        assert "₱1,234" in system_prompt

    async def test_empty_message_rejected(self, app, completion):
        with pytest.raises(LedgerValidationError):
            await app.coach.send(PEA, [], "   ")
        assert completion.calls == []


class TestGameFlow:
    """Tests for the game flow wrapper."""

    async def test_invite_and_join(self, app):
        await app.games.create(PEA, GameType.RNG)
        session = await app.games.join(CAM)
        assert session.status is GameStatus.ACTIVE
        await app.games.end(PEA)
        assert await app.games.manager.current() is None

    @pytest.mark.parametrize(
        "error,message",
        [(MissingCredentialError("no key"), MISSING_KEY_REPLY), (CompletionFailedError("down"), FAILURE_REPLY)],
    )
    async def test_decision_failure_is_reported(self, app, completion, error, message):
        completion.replies.append(error)
        await app.games.create(PEA, GameType.DECIDE)
        await app.games.join(CAM)
        session, error_message = await app.games.start_decision(PEA, "Dinner?", ["Pizza", "Sushi"])
        assert error_message == message
        assert not session.decide_loading


class TestAppFactory:
    """Tests for component creation."""

    def test_in_memory_components(self, completion, session_store):
        app = create_app_components(
            use_storage=False,
            completion_client=completion,
            session_store=session_store,
        )
        assert isinstance(app.store, TimeoutGuardedStore)
        assert isinstance(app.store.inner, InMemoryDocumentStore)


async def wait_until(condition, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        assert loop.time() < deadline, "condition not met in time"
        await asyncio.sleep(0.01)


class TestTwoClients:
    """Two devices sharing one spreadsheet see each other's writes."""

    async def test_partner_sees_invite_and_transaction(self, tmp_path):
        spreadsheet = FakeSheetsClient()
        pea_app, cam_app = [
            create_app_components(
                completion_client=ScriptedCompletion(),
                session_store=LocalSessionStore(path=tmp_path / f"{name}.json", ttl_days=30),
                sheets_client=spreadsheet,
                sync_interval_seconds=0.01,
            )
            for name in ("pea", "cam")
        ]
        await pea_app.start()
        await cam_app.start()
        try:
            seen = []
            await cam_app.games.manager.subscribe(seen.append)
            await pea_app.games.create(PEA, GameType.RPS)
            await wait_until(lambda: seen[-1] is not None)
            assert seen[-1].status is GameStatus.PENDING
            assert seen[-1].is_pending_invite_for(CAM)

            await pea_app.transactions.add_transaction(PEA, "500")
            await wait_until(lambda: len(cam_app.tracker.transactions) == 1)
            assert cam_app.tracker.transactions[0].user_id is PEA
        finally:
            pea_app.stop()
            cam_app.stop()

    async def test_stop_cancels_polling(self, app):
        await app.start()
        task = app._sync_task
        app.stop()
        await asyncio.wait([task], timeout=1)
        assert task.cancelled()
