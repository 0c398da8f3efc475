"""Test persistence synchronizer"""
import asyncio

import pytest
from unittest.mock import AsyncMock

from playlist_core.exceptions import PartialPasteError, ReconciliationError, ServiceError
from playlist_core.models import CreateOp, DeleteOp, NewNodeFields, NodeType, UpdateOp
from playlist_core.tree import Clipboard, get_node, plan_paste
from playlist_app.services.synchronizer import PersistenceSynchronizer
from tests.conftest import sample_rows


@pytest.fixture
def sync(mock_store):
    return PersistenceSynchronizer(mock_store, max_attempts=3, initial_delay=0)


@pytest.mark.asyncio
class TestDispatch:
    async def test_updates_and_deletes(self, sync, mock_store):
        report = await sync.dispatch(
            [
                DeleteOp(node_ids=["a1", "a1b1"]),
                UpdateOp(node_id="a2", fields={"order": 0}),
                UpdateOp(node_id="B", fields={"name": "Beta (2)"}),
            ]
        )

        assert report.ok
        assert report.dispatched == 3
        mock_store.batch_delete.assert_awaited_once_with(["a1", "a1b1"])
        mock_store.update_node.assert_any_await("a2", {"order": 0})
        mock_store.update_node.assert_any_await("B", {"name": "Beta (2)"})

    async def test_failure_collected_others_still_run(self, sync, mock_store):
        async def _update(node_id, fields):
            if node_id == "a2":
                raise ServiceError("boom")

        mock_store.update_node.side_effect = _update

        report = await sync.dispatch(
            [UpdateOp(node_id="a2", fields={"order": 0}), UpdateOp(node_id="a1", fields={"order": 1})]
        )

        assert not report.ok
        assert len(report.failures) == 1
        assert report.failures[0].operation.node_id == "a2"
        assert isinstance(report.failures[0].error, ServiceError)
        assert mock_store.update_node.await_count == 2

    async def test_creates_run_in_order(self, sync, mock_store):
        report = await sync.dispatch(
            [
                CreateOp(fields=NewNodeFields(node_type=NodeType.CHANNEL, name="X")),
                CreateOp(fields=NewNodeFields(node_type=NodeType.CHANNEL, name="Y")),
            ]
        )
        assert report.created_ids == ["new-1", "new-2"]

    async def test_empty(self, sync, mock_store):
        report = await sync.dispatch([])
        assert report.ok
        mock_store.update_node.assert_not_awaited()


@pytest.mark.asyncio
class TestReconcile:
    async def test_builds_tree(self, sync):
        tree = await sync.reconcile()
        assert [node.id for node in tree] == ["A", "B", "C"]

    async def test_retries_transient_failure(self, sync, mock_store):
        mock_store.fetch_all.side_effect = [ServiceError("timeout"), sample_rows()]

        tree = await sync.reconcile()

        assert len(tree) == 3
        assert mock_store.fetch_all.await_count == 2

    async def test_gives_up(self, sync, mock_store):
        mock_store.fetch_all.side_effect = ServiceError("down")

        with pytest.raises(ReconciliationError):
            await sync.reconcile()
        assert mock_store.fetch_all.await_count == 3

    async def test_latest_refresh_wins(self, sync, mock_store):
        """A slow earlier refresh must not overwrite a newer one"""
        release = asyncio.Event()
        calls = {"n": 0}

        async def _fetch():
            calls["n"] += 1
            if calls["n"] == 1:
                await release.wait()
                return sample_rows()[:1]
            return sample_rows()

        mock_store.fetch_all.side_effect = _fetch

        slow = asyncio.create_task(sync.reconcile())
        await asyncio.sleep(0)
        fresh = await sync.reconcile()
        release.set()
        stale = await slow

        assert [node.id for node in fresh] == ["A", "B", "C"]
        assert stale is None


@pytest.mark.asyncio
class TestExecutePaste:
    async def test_shift_then_create_top_down(self, tree, sync, mock_store):
        log = []

        async def _update(node_id, fields):
            log.append(("update", node_id, fields["order"]))

        async def _create(fields):
            log.append(("create", fields.name, fields.parent_id))
            return f"id-{len(log)}"

        mock_store.update_node.side_effect = _update
        mock_store.create_node.side_effect = _create
        plan = plan_paste(tree, Clipboard().copy(get_node(tree, "a1")), "b1")

        outcome = await sync.execute_paste(plan)

        assert log[0] == ("update", "b2", 2)
        root_id = outcome.root_id
        assert log[1] == ("create", "Morning (2)", "B")
        assert log[2:] == [("create", "News", root_id), ("create", "Weather", root_id)]
        assert outcome.node.parent_id == "B"
        assert [child.parent_id for child in outcome.node.children] == [root_id, root_id]
        assert len(outcome.created_ids) == 3

    async def test_failure_midway_reports_created(self, tree, sync, mock_store):
        calls = {"n": 0}

        async def _create(fields):
            calls["n"] += 1
            if calls["n"] == 3:
                raise ServiceError("insert failed")
            return f"id-{calls['n']}"

        mock_store.create_node.side_effect = _create
        plan = plan_paste(tree, Clipboard().copy(get_node(tree, "a1")), "C")

        with pytest.raises(PartialPasteError) as exc_info:
            await sync.execute_paste(plan)

        assert exc_info.value.created_ids == ["id-1", "id-2"]
        assert isinstance(exc_info.value.cause, ServiceError)

    async def test_shift_failure_creates_nothing(self, tree, sync, mock_store):
        mock_store.update_node = AsyncMock(side_effect=ServiceError("nope"))
        plan = plan_paste(tree, Clipboard().copy(get_node(tree, "a1")), "b1")

        with pytest.raises(ServiceError) as exc_info:
            await sync.execute_paste(plan)

        assert not isinstance(exc_info.value, PartialPasteError)
        mock_store.create_node.assert_not_awaited()
