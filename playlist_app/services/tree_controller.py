"""Gesture controller: caller-facing tree operations with optimistic updates.

Owns the current tree, the clipboard and the drag state machine
(idle -> dragging -> committing -> idle). Every structural operation
applies the engine's new tree first, then pushes the emitted operations
through the synchronizer and falls back to a full refresh when the store
rejects any of them.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Sequence

from playlist_core.exceptions import (
    InvalidOperationError,
    PartialPasteError,
    ReconciliationError,
    ServiceError,
    TreeError,
)
from playlist_core.models import (
    Channel,
    ChannelPasteOptions,
    ContentRef,
    DropTarget,
    MutationResult,
    TreeNode,
)
from playlist_core.tree import (
    Clipboard,
    DeleteIntent,
    Forest,
    MoveIntent,
    RenameIntent,
    RowBoundsProvider,
    SetFieldsIntent,
    channel_refs_in_use,
    count_descendants,
    find_node,
    get_node,
    insert_subtree,
    plan_add_buckets,
    plan_add_child,
    plan_paste,
    reduce_tree,
    resolve_drop_target,
)
from playlist_app.services.synchronizer import PersistenceSynchronizer, SyncReport, TreeStore

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """User-facing message sink (toast manager, status bar...)"""

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class ChannelCatalog(Protocol):
    """Lookups behind the channel picker and the bucket remapping dialog"""

    async def fetch_channels(self) -> list[Channel]: ...

    async def check_channel_usage(self, channel_id: str) -> int: ...

    async def fetch_content_buckets(self) -> list[ContentRef]: ...


class LogNotifier:
    """Notifier for headless runs: messages go to the log"""

    def info(self, message: str) -> None:
        logger.info(message)

    def success(self, message: str) -> None:
        logger.info(message)

    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)


class GestureState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


class Status(str, Enum):
    OK = "ok"
    NOOP = "noop"
    REJECTED = "rejected"
    RECOVERED = "recovered"  # store failed, view healed by refresh
    PARTIAL = "partial"  # paste aborted midway
    STALE = "stale"  # refresh failed or discarded, view may be out of date


@dataclass(frozen=True)
class OperationResult:
    status: Status
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is Status.OK


@dataclass
class DragSession:
    drag_id: str
    selected_ids: tuple[str, ...] = ()
    target: Optional[DropTarget] = None
    error: Optional[str] = None


def _no_bounds(node_id: str) -> None:
    return None


class TreeController:
    """Single-threaded owner of the tree; run on the Qt event loop via qasync"""

    def __init__(
        self,
        store: TreeStore,
        notifier: Optional[Notifier] = None,
        catalog: Optional[ChannelCatalog] = None,
        row_bounds: Optional[RowBoundsProvider] = None,
        drag_cooldown_ms: int = 500,
        refresh_debounce_ms: int = 1000,
        external_change_suppress_ms: int = 2000,
        refresh_max_attempts: int = 3,
        refresh_initial_delay: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.sync = PersistenceSynchronizer(
            store, max_attempts=refresh_max_attempts, initial_delay=refresh_initial_delay
        )
        self.notifier: Notifier = notifier or LogNotifier()
        self.catalog = catalog
        self.row_bounds: RowBoundsProvider = row_bounds or _no_bounds
        self.clipboard = Clipboard()

        self.drag_cooldown = drag_cooldown_ms / 1000
        self.refresh_debounce = refresh_debounce_ms / 1000
        self.external_change_suppress = external_change_suppress_ms / 1000
        self._clock = clock

        self.tree: Forest = []
        self.version = 0
        self.state = GestureState.IDLE
        self.cooldown_until = 0.0
        self.suppress_until = 0.0
        self.drag: Optional[DragSession] = None
        # set when a failed write's refetch was discarded; cleared by the next applied refresh
        self._needs_reconcile = False
        self._pending_refresh: Optional[asyncio.Task] = None
        self._listeners: list[Callable[[Forest], None]] = []

    # ========== Tree state ==========

    def subscribe(self, callback: Callable[[Forest], None]):
        """callback(tree) runs after every tree replacement"""
        self._listeners.append(callback)

    def _set_tree(self, tree: Forest):
        self.tree = tree
        for callback in list(self._listeners):
            callback(tree)

    def _mark_local_commit(self):
        now = self._clock()
        self.version += 1
        self.cooldown_until = now + self.drag_cooldown
        self.suppress_until = now + self.external_change_suppress

    async def load(self) -> OperationResult:
        """Initial fetch"""
        result = await self.refresh()
        if result.ok:
            self.notifier.info(f"Loaded {len(self.tree)} channel(s)")
        return result

    async def refresh(self) -> OperationResult:
        """Rebuild the tree from the store; only the newest result is applied"""
        version = self.version
        try:
            tree = await self.sync.reconcile()
        except ReconciliationError as e:
            logger.error(f"Refresh failed, keeping last known tree: {e}")
            self.notifier.error("Could not reload playlists; the view may be out of date")
            return OperationResult(Status.STALE, str(e))

        if tree is None:
            return OperationResult(Status.NOOP, "Superseded by a newer refresh")
        if self.version != version:
            logger.info("Local change committed during refresh, result discarded")
            return OperationResult(Status.NOOP, "Local change committed during refresh")
        self._needs_reconcile = False
        self._set_tree(tree)
        return OperationResult(Status.OK, details={"channels": len(tree)})

    async def _heal(self) -> OperationResult:
        """Refresh after a failed write; a discarded result leaves a reload pending"""
        result = await self.refresh()
        if result.status is Status.NOOP:
            logger.warning(f"Reload after failed write discarded ({result.message}), retrying after this operation")
            self._needs_reconcile = True
        return result

    async def _recover(self, message: str, details: Optional[dict[str, Any]] = None) -> OperationResult:
        """Replace the optimistic tree with the store's after a failed write"""
        details = dict(details or {})
        result = await self._heal()
        if result.status is Status.STALE:
            return OperationResult(Status.STALE, message, details)
        if result.status is Status.NOOP:
            details["reload_pending"] = True
            return OperationResult(Status.STALE, message, details)
        self.notifier.warning(f"{message}; reloaded from server")
        return OperationResult(Status.RECOVERED, message, details)

    async def _settle(self, result: OperationResult) -> OperationResult:
        """Run the reload a discarded recovery left behind"""
        if not self._needs_reconcile:
            return result
        refreshed = await self.refresh()
        if not refreshed.ok or not result.details.get("reload_pending"):
            return result
        details = {key: value for key, value in result.details.items() if key != "reload_pending"}
        self.notifier.warning(f"{result.message}; reloaded from server")
        return OperationResult(Status.RECOVERED, result.message, details)

    async def _exclusive(self, label: str, operation: Callable[[], Awaitable[OperationResult]]) -> OperationResult:
        """Hold the state machine at COMMITTING while one operation and its writes run"""
        if self.state is not GestureState.IDLE:
            logger.info(f"{label} ignored: busy ({self.state.value})")
            return OperationResult(Status.NOOP, f"Busy ({self.state.value})")
        self.state = GestureState.COMMITTING
        try:
            return await self._settle(await operation())
        finally:
            self.state = GestureState.IDLE

    async def _insert_created(self, node: TreeNode, index: Optional[int] = None) -> bool:
        """Show a node the store just created; reload when its parent is gone"""
        try:
            self._set_tree(insert_subtree(self.tree, node, index))
        except TreeError as e:
            logger.warning(f"Created {node.id} no longer fits the local tree ({e}), reloading")
            await self._heal()
            return False
        return True

    def _reject(self, error: TreeError) -> OperationResult:
        reason = getattr(error, "reason", "not_found")
        logger.warning(f"Rejected: {error} ({reason})")
        self.notifier.warning(str(error))
        return OperationResult(Status.REJECTED, str(error), {"reason": reason})

    async def _commit(self, result: MutationResult, label: str) -> OperationResult:
        """Apply the new tree, then persist its operations"""
        if not result.operations:
            return OperationResult(Status.NOOP, f"{label}: nothing changed")

        self._mark_local_commit()
        self._set_tree(result.tree)
        report: SyncReport = await self.sync.dispatch(result.operations)
        if not report.ok:
            return await self._recover(
                f"{label} could not be saved", {"failed": len(report.failures)}
            )
        logger.info(f"{label}: {len(result.operations)} operation(s) saved")
        return OperationResult(Status.OK, label, {"operations": len(result.operations)})

    # ========== Drag and drop ==========

    def on_drag_start(self, drag_id: str, selected_ids: Iterable[str] = ()) -> bool:
        if self.state is not GestureState.IDLE:
            logger.debug(f"Drag start ignored in state {self.state.value}")
            return False
        self.state = GestureState.DRAGGING
        self.drag = DragSession(drag_id=drag_id, selected_ids=tuple(selected_ids))
        return True

    def on_drag_move(
        self,
        drag_id: str,
        over_id: Optional[str],
        pointer_y: float,
        selected_ids: Iterable[str] = (),
    ) -> Optional[DropTarget]:
        """Live resolution for the drop indicator; never touches the tree"""
        if self.state is GestureState.IDLE:
            self.on_drag_start(drag_id, selected_ids)
        if self.state is not GestureState.DRAGGING or self.drag is None:
            return None

        if over_id is None:
            self.drag.target = None
            self.drag.error = None
            return None
        try:
            target = resolve_drop_target(
                self.tree, self.drag.drag_id, over_id, pointer_y, self.row_bounds, self.drag.selected_ids
            )
        except TreeError as e:
            self.drag.target = None
            self.drag.error = str(e)
            return None
        self.drag.target = target
        self.drag.error = None
        return target

    def on_drag_cancel(self):
        if self.state is GestureState.DRAGGING:
            self.state = GestureState.IDLE
        self.drag = None

    async def on_drag_end(self) -> OperationResult:
        """Commit the last resolved target; duplicate end events are ignored"""
        if self._clock() < self.cooldown_until:
            logger.info("Drag end ignored: inside cooldown of previous commit")
            self.on_drag_cancel()
            return OperationResult(Status.NOOP, "Duplicate drop ignored")
        if self.state is not GestureState.DRAGGING or self.drag is None:
            return OperationResult(Status.NOOP, "No drag in progress")

        session = self.drag
        self.drag = None
        if session.target is None:
            self.state = GestureState.IDLE
            if session.error:
                self.notifier.warning(session.error)
                return OperationResult(Status.REJECTED, session.error)
            return OperationResult(Status.NOOP, "No drop target")

        self.state = GestureState.COMMITTING
        try:
            try:
                result = reduce_tree(self.tree, MoveIntent(target=session.target))
            except TreeError as e:
                return self._reject(e)
            return await self._settle(await self._commit(result, "Move"))
        finally:
            self.state = GestureState.IDLE

    # ========== Clipboard ==========

    def copy(self, node_id: str) -> OperationResult:
        try:
            node = get_node(self.tree, node_id)
        except TreeError as e:
            return self._reject(e)
        self.clipboard.copy(node)
        self.notifier.info(f"Copied {node.node_type.value} '{node.name}'")
        return OperationResult(Status.OK, "Copied", {"node_id": node_id})

    def cut(self, node_id: str) -> OperationResult:
        try:
            node = get_node(self.tree, node_id)
        except TreeError as e:
            return self._reject(e)
        self.clipboard.cut(node)
        self.notifier.info(f"Cut {node.node_type.value} '{node.name}'")
        return OperationResult(Status.OK, "Cut", {"node_id": node_id})

    async def paste(self, target_id: str, options: Optional[ChannelPasteOptions] = None) -> OperationResult:
        entry = self.clipboard.entry
        if entry is None:
            return OperationResult(Status.NOOP, "Clipboard is empty")

        async def _paste() -> OperationResult:
            try:
                plan = plan_paste(self.tree, entry, target_id, options)
            except TreeError as e:
                return self._reject(e)
            if options is not None and options.channel_id and not entry.is_cut:
                refused = await self._check_channel_free(options.channel_id)
                if refused is not None:
                    return refused

            self._mark_local_commit()
            try:
                outcome = await self.sync.execute_paste(plan)
            except PartialPasteError as e:
                if not e.created_ids:
                    return await self._recover("Paste failed", {"created_ids": []})
                await self._heal()
                logger.error(f"Partial paste: {len(e.created_ids)} node(s) created before failure")
                self.notifier.error(f"Paste stopped midway; {len(e.created_ids)} item(s) were created")
                return OperationResult(Status.PARTIAL, str(e), {"created_ids": e.created_ids})
            except ServiceError as e:
                return await self._recover(f"Paste failed: {e}")

            await self._insert_created(outcome.node, plan.insert_index)
            details: dict[str, Any] = {"node_id": outcome.root_id, "created": len(outcome.created_ids)}

            if entry.is_cut:
                self.clipboard.clear()
                if find_node(self.tree, entry.source_id) is not None:
                    removal = reduce_tree(self.tree, DeleteIntent(node_ids=[entry.source_id]))
                    result = await self._commit(removal, "Remove cut source")
                    if result.status is not Status.OK:
                        return OperationResult(result.status, result.message, {**result.details, **details})

            self.notifier.success(f"Pasted '{outcome.node.name}'")
            return OperationResult(Status.OK, "Pasted", details)

        return await self._exclusive("Paste", _paste)

    async def _check_channel_free(self, channel_id: str) -> Optional[OperationResult]:
        """Store-side check that no channel node links channel_id yet"""
        if self.catalog is None:
            return None
        try:
            usage = await self.catalog.check_channel_usage(channel_id)
        except ServiceError as e:
            logger.error(f"Channel usage check failed: {e}")
            self.notifier.error("Could not verify the selected channel")
            return OperationResult(Status.REJECTED, str(e), {"reason": "channel_check_failed"})
        if usage:
            return self._reject(InvalidOperationError("Channel is already in use", reason="channel_in_use"))
        return None

    # ========== Channel catalog ==========

    async def available_channels(self) -> list[Channel]:
        """Channel definitions not linked to any channel node yet"""
        if self.catalog is None:
            return []
        in_use = channel_refs_in_use(self.tree)
        return [channel for channel in await self.catalog.fetch_channels() if channel.id not in in_use]

    async def content_buckets(self) -> list[ContentRef]:
        """Content offered by the add-bucket and remapping dialogs"""
        if self.catalog is None:
            return []
        return await self.catalog.fetch_content_buckets()

    # ========== Edits ==========

    def describe_delete(self, node_ids: Sequence[str]) -> str:
        """Confirmation text: selected count plus what goes with them"""
        nodes = [node for node in (find_node(self.tree, node_id) for node_id in node_ids) if node]
        nested = sum(count_descendants(node) for node in nodes)
        if len(nodes) == 1:
            node = nodes[0]
            text = f"Delete {node.node_type.value} '{node.name}'"
        else:
            text = f"Delete {len(nodes)} items"
        if nested:
            text += f" and {nested} nested item(s)"
        return text + "?"

    async def delete_selected(self, node_ids: Sequence[str]) -> OperationResult:
        if not node_ids:
            return OperationResult(Status.NOOP, "Nothing selected")

        async def _delete() -> OperationResult:
            try:
                result = reduce_tree(self.tree, DeleteIntent(node_ids=list(node_ids)))
            except TreeError as e:
                return self._reject(e)
            outcome = await self._commit(result, "Delete")
            if outcome.ok:
                removed = sum(len(op.node_ids) for op in result.deletes)
                self.notifier.success(f"Deleted {removed} item(s)")
                return OperationResult(Status.OK, "Deleted", {"removed": removed})
            return outcome

        return await self._exclusive("Delete", _delete)

    async def _apply_intent(self, intent, label: str) -> OperationResult:
        try:
            result = reduce_tree(self.tree, intent)
        except TreeError as e:
            return self._reject(e)
        return await self._commit(result, label)

    async def rename(self, node_id: str, name: str) -> OperationResult:
        return await self._exclusive(
            "Rename", lambda: self._apply_intent(RenameIntent(node_id=node_id, name=name), "Rename")
        )

    async def set_fields(self, node_id: str, fields: dict[str, Any]) -> OperationResult:
        return await self._exclusive(
            "Update", lambda: self._apply_intent(SetFieldsIntent(node_id=node_id, fields=fields), "Update")
        )

    async def add_child(self, parent_id: Optional[str], partial: dict[str, Any]) -> OperationResult:
        """Create a channel (parent_id=None), playlist or bucket at the end of its parent"""

        async def _add() -> OperationResult:
            try:
                fields = plan_add_child(self.tree, parent_id, partial)
            except TreeError as e:
                return self._reject(e)

            self._mark_local_commit()
            try:
                node_id = await self.store.create_node(fields)
            except ServiceError as e:
                return await self._recover(f"Could not create '{fields.name}': {e}")

            await self._insert_created(TreeNode(id=node_id, **fields.to_record()))
            self.notifier.success(f"Added {fields.node_type.value} '{fields.name}'")
            return OperationResult(Status.OK, "Added", {"node_id": node_id})

        return await self._exclusive("Add", _add)

    async def add_buckets(self, playlist_id: str, contents: Sequence[ContentRef]) -> OperationResult:
        """Add one bucket instance per content entity"""
        if not contents:
            return OperationResult(Status.NOOP, "No content selected")

        async def _add() -> OperationResult:
            try:
                planned = plan_add_buckets(self.tree, playlist_id, contents)
            except TreeError as e:
                return self._reject(e)

            self._mark_local_commit()
            created: list[str] = []
            tree = self.tree
            for fields in planned:
                try:
                    node_id = await self.store.create_node(fields)
                except ServiceError as e:
                    self._set_tree(tree)
                    if not created:
                        return await self._recover(f"Could not add buckets: {e}")
                    await self._heal()
                    self.notifier.error(f"Added {len(created)} of {len(planned)} bucket(s)")
                    return OperationResult(Status.PARTIAL, str(e), {"created_ids": created})
                created.append(node_id)
                tree = insert_subtree(tree, TreeNode(id=node_id, **fields.to_record()))

            self._set_tree(tree)
            self.notifier.success(f"Added {len(created)} bucket(s)")
            return OperationResult(Status.OK, "Added", {"created_ids": created})

        return await self._exclusive("Add buckets", _add)

    # ========== External changes ==========

    def _suppressed(self) -> bool:
        return self.state is not GestureState.IDLE or self._clock() < self.suppress_until

    def on_external_change(self, *args: Any):
        """Slot for the realtime signal: debounced refresh unless a local edit is in flight"""
        if self._suppressed():
            logger.debug("External change ignored during local operation")
            return
        if self._pending_refresh is not None and not self._pending_refresh.done():
            self._pending_refresh.cancel()
        self._pending_refresh = asyncio.ensure_future(self._debounced_refresh())

    async def _debounced_refresh(self):
        await asyncio.sleep(self.refresh_debounce)
        if self._suppressed():
            logger.debug("Debounced refresh dropped: local operation started")
            return
        result = await self.refresh()
        if result.ok:
            self.notifier.info("Playlists updated")
