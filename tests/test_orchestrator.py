"""
Integration tests for the flows, wired to in-memory stores.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from conftest import make_expense
from groupledger.config import LedgerSettings
from groupledger.engine import SnapshotReducer
from groupledger.models.audit import AuditEventType
from groupledger.models.ledger import Member
from groupledger.models.records import RecordQuery, ShoppingRecord
from groupledger.orchestrator import GroupLedgerFlow, RecordFlow, create_app_components
from groupledger.services.storage import NotFoundError


@pytest.fixture
def flow(expense_store, group_store, audit_logger, ledger_settings):
    return GroupLedgerFlow(
        expense_store,
        group_store,
        audit_logger=audit_logger,
        settings=ledger_settings,
    )


@pytest.fixture
def trip(run, flow, alice, bob, carol):
    async def setup():
        group = await flow.create_group("Trip", alice)
        await flow.add_member(group.id, bob, "A")
        group, _, _ = await flow.add_member(group.id, carol, "B")
        return group

    return run(setup())


class TestGroupLedgerFlow:
    """Tests for the shared ledger flow."""

    def test_create_group_and_add_members(self, trip):
        assert trip.member_ids == {"A", "B", "C"}
        assert trip.member_name("C") == "Carol"

    def test_add_member_requires_member_actor(self, run, flow, trip):
        group, added, message = run(flow.add_member(trip.id, Member(id="D"), "Z"))
        assert not added
        assert "not a member" in message
        assert group.member_ids == {"A", "B", "C"}

    def test_add_existing_member(self, run, flow, trip, bob):
        _, added, message = run(flow.add_member(trip.id, bob, "A"))
        assert not added
        assert "already" in message

    def test_unknown_group(self, run, flow):
        with pytest.raises(NotFoundError):
            run(flow.get_group("nope"))

    def test_summary_for_viewer(self, run, flow, trip, audit_storage):
        """Test A pays 300 for three; each viewer sees their own balance."""
        async def scenario():
            await flow.add_expense(trip.id, make_expense("e1", "300", "A"), "A")
            return await flow.summarize(trip.id, "B"), await flow.summarize(trip.id, "A")

        as_bob, as_alice = run(scenario())
        assert as_bob.viewer_balance == Decimal("-100")
        assert as_alice.viewer_balance == Decimal("200")
        assert [(t.from_member, t.to_member, t.amount) for t in as_bob.plan.transfers] == [
            ("B", "A", Decimal("100")),
            ("C", "A", Decimal("100")),
        ]
        assert as_bob.plan.is_settled

        types = {e.event_type for e in run(audit_storage.get_events_by_group(trip.id))}
        assert {
            AuditEventType.GROUP_CREATED,
            AuditEventType.MEMBER_ADDED,
            AuditEventType.EXPENSE_ADDED,
            AuditEventType.BALANCES_COMPUTED,
            AuditEventType.SETTLEMENT_PLANNED,
        } <= types

    def test_summary_display_balances_are_rounded(self, run, flow, trip):
        async def scenario():
            await flow.add_expense(trip.id, make_expense("e1", "100", "A"), "A")
            return await flow.summarize(trip.id, "A")

        summary = run(scenario())
        assert summary.display_balances == {
            "A": Decimal("66.67"),
            "B": Decimal("-33.33"),
            "C": Decimal("-33.33"),
        }
        assert summary.viewer_balance != Decimal("66.67")

    def test_display_places_follow_settings(self, run, expense_store, group_store, alice, bob, carol):
        flow = GroupLedgerFlow(
            expense_store,
            group_store,
            settings=LedgerSettings(_env_file=None, display_decimal_places=0),
        )

        async def scenario():
            group = await flow.create_group("Trio", alice)
            await flow.add_member(group.id, bob, "A")
            await flow.add_member(group.id, carol, "A")
            await flow.add_expense(group.id, make_expense("e1", "100", "A"), "A")
            return await flow.summarize(group.id, "B")

        summary = run(scenario())
        assert summary.display_balances == {"A": Decimal("67"), "B": Decimal("-33"), "C": Decimal("-33")}

    def test_outsider_cannot_see_a_balance(self, run, flow, trip):
        summary = run(flow.summarize(trip.id, "Z"))
        assert summary.viewer_balance is None

    def test_mismatched_split_surfaces_reconciliation_error(self, run, flow, trip, audit_storage):
        async def scenario():
            result = await flow.add_expense(
                trip.id,
                make_expense("e1", "100", "A", {"A": "40", "B": "50"}),
                "A",
            )
            return result, await flow.summarize(trip.id, "A")

        result, summary = run(scenario())
        assert result.is_valid
        assert summary.plan.error is not None
        assert summary.plan.error.residue == Decimal("10")

        types = [e.event_type for e in run(audit_storage.get_events_by_group(trip.id))]
        assert AuditEventType.RECONCILIATION_FAILED in types

    def test_remove_expense(self, run, flow, trip):
        async def scenario():
            await flow.add_expense(trip.id, make_expense("e1", "300", "A"), "A")
            await flow.add_expense(trip.id, make_expense("e2", "60", "C"), "C")
            removed = await flow.remove_expense(trip.id, "e1", "B")
            return removed, await flow.list_expenses(trip.id), await flow.compute_balances(trip.id)

        removed, expenses, sheet = run(scenario())
        assert removed.is_valid
        assert [e.id for e in expenses] == ["e2"]
        assert sheet.balances == {"A": Decimal("-20"), "B": Decimal("-20"), "C": Decimal("40")}

    def test_list_expenses_newest_first(self, run, flow, trip):
        async def scenario():
            await flow.add_expense(
                trip.id, make_expense("e1", "10", "A", when=datetime(2024, 1, 1)), "A"
            )
            await flow.add_expense(
                trip.id, make_expense("e2", "10", "A", when=datetime(2024, 2, 1)), "A"
            )
            return await flow.list_expenses(trip.id)

        assert [e.id for e in run(scenario())] == ["e2", "e1"]

    def test_watch_feeds_reducer(self, run, flow, trip):
        async def scenario():
            reducer = SnapshotReducer(flow.ledger)
            task = await flow.watch(trip.id, reducer)
            await flow.add_expense(trip.id, make_expense("e1", "30", "B"), "B")
            for _ in range(200):
                sheet = reducer.latest(trip.id)
                if sheet is not None and sheet.expense_count == 1:
                    break
                await asyncio.sleep(0.01)
            task.cancel()
            await asyncio.wait({task})
            await reducer.close()
            return reducer.latest(trip.id)

        sheet = run(scenario())
        assert sheet.balances["B"] == Decimal("20")

    def test_watch_follows_new_members(self, run, flow, alice, bob):
        """Test a member added after watching starts is part of the live split."""
        async def scenario():
            group = await flow.create_group("Pair", alice)
            reducer = SnapshotReducer(flow.ledger)
            task = await flow.watch(group.id, reducer)
            await flow.add_member(group.id, bob, "A")
            await flow.add_expense(group.id, make_expense("e1", "300", "A"), "A")
            for _ in range(200):
                sheet = reducer.latest(group.id)
                if sheet is not None and sheet.expense_count == 1:
                    break
                await asyncio.sleep(0.01)
            task.cancel()
            await asyncio.wait({task})
            await reducer.close()
            return reducer.latest(group.id), await flow.compute_balances(group.id)

        live, fresh = run(scenario())
        assert live.balances == {"A": Decimal("150"), "B": Decimal("-150")}
        assert live.balances == fresh.balances

    def test_watch_unknown_group(self, run, flow):
        async def scenario():
            reducer = SnapshotReducer(flow.ledger)
            await flow.watch("nope", reducer)

        with pytest.raises(NotFoundError):
            run(scenario())


class TestRecordFlow:
    """Tests for the personal records flow."""

    def test_add_query_delete(self, run, record_store, audit_logger, audit_storage):
        flow = RecordFlow(record_store, audit_logger=audit_logger)
        record = ShoppingRecord(
            id="r1",
            owner_id="A",
            name="Train",
            category="transport",
            amount=Decimal("12"),
            date=datetime(2024, 3, 1, 8, 0),
        )

        async def scenario():
            await flow.add_record(record)
            result = await flow.query(RecordQuery(
                owner_id="A", query_type="day", day=date(2024, 3, 1)
            ))
            deleted = await flow.delete_record("A", "r1")
            again = await flow.delete_record("A", "r1")
            return result, deleted, again

        result, deleted, again = run(scenario())
        assert result.total == Decimal("12")
        assert deleted is True
        assert again is False

        types = [e.event_type for e in run(audit_storage.get_recent_events())]
        assert types.count(AuditEventType.RECORD_DELETED) == 1
        assert AuditEventType.QUERY_EXECUTED in types


class TestAppComponents:
    """Tests for the component factory."""

    def test_in_memory_components(self):
        group_flow, record_flow, sheets_client = create_app_components(use_storage=False)
        assert isinstance(group_flow, GroupLedgerFlow)
        assert isinstance(record_flow, RecordFlow)
        assert sheets_client is None
