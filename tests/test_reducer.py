"""
Tests for the snapshot reducer.
"""

import asyncio
import time
from decimal import Decimal

import pytest

from conftest import make_expense
from groupledger.engine import ExpenseLedger, SnapshotReducer, compute_balances
from groupledger.models.audit import AuditEventType
from groupledger.models.ledger import Group, Member
from groupledger.validation import ExpenseValidator


@pytest.fixture
def ledger(expense_store, ledger_settings):
    return ExpenseLedger(expense_store, validator=ExpenseValidator(ledger_settings))


def slow_when_single(members, expenses, group_id):
    """Calculator that stalls on one-expense snapshots."""
    expenses = list(expenses)
    if len(expenses) == 1:
        time.sleep(0.2)
    return compute_balances(members, expenses, group_id)


async def wait_for(predicate, timeout: float = 2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestSubmit:
    """Tests for direct snapshot submission."""

    def test_submit_then_wait(self, run, ledger, group):
        async def scenario():
            reducer = SnapshotReducer(ledger)
            token = reducer.submit(group, [make_expense("e1", "300", "A").to_document()])
            sheet = await reducer.wait(group.id)
            return reducer, token, sheet

        reducer, token, sheet = run(scenario())
        assert reducer.is_current(token)
        assert sheet.balances["A"] == Decimal("200")
        assert reducer.latest(group.id) is sheet

    def test_newer_snapshot_wins(self, run, ledger, group, audit_logger, audit_storage):
        """Test a slow older recompute never overwrites a newer one."""
        first_docs = [make_expense("e1", "300", "A").to_document()]
        second_docs = first_docs + [make_expense("e2", "30", "B").to_document()]

        async def scenario():
            results = []
            reducer = SnapshotReducer(
                ledger,
                on_result=results.append,
                audit_logger=audit_logger,
                calculator=slow_when_single,
            )
            first = reducer.submit(group, first_docs)
            await asyncio.sleep(0.01)
            second = reducer.submit(group, second_docs)
            sheet = await reducer.wait(group.id)
            return reducer, first, second, sheet, results

        reducer, first, second, sheet, results = run(scenario())
        assert not reducer.is_current(first)
        assert reducer.is_current(second)
        assert sheet.expense_count == 2
        assert results == [sheet]

        events = run(audit_storage.get_events_by_group(group.id))
        assert [e.event_type for e in events] == [AuditEventType.SNAPSHOT_SUPERSEDED]

    def test_groups_are_independent(self, run, ledger, group, alice, bob):
        other = Group(id="flat", name="Flat", members=(alice, bob))

        async def scenario():
            reducer = SnapshotReducer(ledger, calculator=slow_when_single)
            reducer.submit(group, [make_expense("e1", "300", "A").to_document()])
            reducer.submit(other, [
                make_expense("f1", "10", "A").to_document(),
                make_expense("f2", "10", "B").to_document(),
            ])
            return await reducer.wait(group.id), await reducer.wait(other.id)

        trip_sheet, flat_sheet = run(scenario())
        assert trip_sheet.group_id == "trip"
        assert trip_sheet.expense_count == 1
        assert flat_sheet.balances == {"A": Decimal("0"), "B": Decimal("0")}

    def test_async_callback_is_awaited(self, run, ledger, group):
        seen = []

        async def on_result(sheet):
            await asyncio.sleep(0)
            seen.append(sheet.expense_count)

        async def scenario():
            reducer = SnapshotReducer(ledger, on_result=on_result)
            reducer.submit(group, [])
            await reducer.wait(group.id)

        run(scenario())
        assert seen == [0]

    def test_malformed_documents_reported(self, run, ledger, group):
        async def scenario():
            reducer = SnapshotReducer(ledger)
            reducer.submit(group, [
                make_expense("e1", "30", "A").to_document(),
                {"id": "bad", "title": "?", "paidBy": "A"},
            ])
            return await reducer.wait(group.id)

        sheet = run(scenario())
        assert sheet.expense_count == 1
        skipped = [i for i in sheet.issues if i.code == "expense_decode_skipped"]
        assert [i.expense_id for i in skipped] == ["bad"]

    def test_malformed_documents_audited(self, run, ledger, group, audit_logger, audit_storage):
        async def scenario():
            reducer = SnapshotReducer(ledger, audit_logger=audit_logger)
            reducer.submit(group, [{"id": "bad", "title": "?", "paidBy": "A"}])
            await reducer.wait(group.id)
            return await audit_storage.get_events_by_group(group.id)

        events = run(scenario())
        assert [(e.event_type, e.entity_id) for e in events] == [
            (AuditEventType.EXPENSE_DECODE_SKIPPED, "bad"),
        ]

    def test_calculator_failure_is_logged(self, run, ledger, group, audit_logger, audit_storage):
        def broken(members, expenses, group_id):
            raise RuntimeError("boom")

        async def scenario():
            reducer = SnapshotReducer(ledger, audit_logger=audit_logger, calculator=broken)
            reducer.submit(group, [])
            return await reducer.wait(group.id)

        assert run(scenario()) is None
        events = run(audit_storage.get_recent_events())
        assert events[0].event_type == AuditEventType.SYSTEM_ERROR


class TestConsume:
    """Tests for feeding a live subscription."""

    def test_consume_follows_store_writes(self, run, ledger, expense_store, group_store, group):
        async def scenario():
            await group_store.save_group(group)
            reducer = SnapshotReducer(ledger)
            task = asyncio.create_task(reducer.consume(
                group.id,
                expense_store.subscribe(group.id),
                group_store.get_group,
            ))
            await wait_for(lambda: reducer.latest(group.id) is not None)
            assert reducer.latest(group.id).expense_count == 0

            await expense_store.add_expense(group.id, make_expense("e1", "300", "A").to_document())
            await wait_for(
                lambda: reducer.latest(group.id) is not None
                and reducer.latest(group.id).expense_count == 1
            )
            sheet = await reducer.wait(group.id)

            task.cancel()
            await asyncio.wait({task})
            await reducer.close()
            return sheet, expense_store.subscriber_count(group.id)

        sheet, subscribers = run(scenario())
        assert sheet.balances == {
            "A": Decimal("200"),
            "B": Decimal("-100"),
            "C": Decimal("-100"),
        }
        assert subscribers == 0

    def test_consume_rereads_membership(self, run, ledger, expense_store, group_store, alice, bob):
        """Test a member added while listening is part of later splits."""
        solo = Group(id="pair", name="Pair", members=(alice,))

        async def scenario():
            await group_store.save_group(solo)
            reducer = SnapshotReducer(ledger)
            task = asyncio.create_task(reducer.consume(
                solo.id,
                expense_store.subscribe(solo.id),
                group_store.get_group,
            ))
            await wait_for(lambda: reducer.latest(solo.id) is not None)

            await group_store.save_group(solo.add_member(bob))
            await expense_store.add_expense(solo.id, make_expense("e1", "300", "A").to_document())
            await wait_for(
                lambda: reducer.latest(solo.id) is not None
                and reducer.latest(solo.id).expense_count == 1
            )
            sheet = await reducer.wait(solo.id)

            task.cancel()
            await asyncio.wait({task})
            await reducer.close()
            return sheet

        sheet = run(scenario())
        assert sheet.balances == {"A": Decimal("150"), "B": Decimal("-150")}

    def test_snapshot_for_missing_group_is_dropped(self, run, ledger, expense_store, group_store):
        async def scenario():
            reducer = SnapshotReducer(ledger)
            task = asyncio.create_task(reducer.consume(
                "gone",
                expense_store.subscribe("gone"),
                group_store.get_group,
            ))
            await asyncio.sleep(0.05)
            task.cancel()
            await asyncio.wait({task})
            return reducer.latest("gone")

        assert run(scenario()) is None

    def test_cancel_stops_in_flight_recompute(self, run, ledger, group):
        async def scenario():
            reducer = SnapshotReducer(ledger, calculator=slow_when_single)
            reducer.submit(group, [make_expense("e1", "300", "A").to_document()])
            await asyncio.sleep(0.01)
            await reducer.cancel(group.id)
            return reducer.latest(group.id)

        assert run(scenario()) is None

    def test_member_changes_use_the_submitted_group(self, run, ledger, group):
        """Test a recompute uses the group state it was submitted with."""
        bigger = group.add_member(Member(id="D", name="Dan"))

        async def scenario():
            reducer = SnapshotReducer(ledger)
            reducer.submit(bigger, [make_expense("e1", "400", "A").to_document()])
            return await reducer.wait(group.id)

        sheet = run(scenario())
        assert sheet.balances["D"] == Decimal("-100")
