"""Persistence synchronizer: pushes engine operations to the store, refetches on failure"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence

from playlist_core.exceptions import PartialPasteError, ReconciliationError, ServiceError
from playlist_core.models import (
    CreateOp,
    DeleteOp,
    NewNodeFields,
    NodeBlueprint,
    PastePlan,
    PersistenceOp,
    TreeNode,
    UpdateOp,
)
from playlist_core.tree import Forest, build_tree
from playlist_app.utils.retry import retry_async

logger = logging.getLogger(__name__)


class TreeStore(Protocol):
    """Minimum store surface the synchronizer needs"""

    async def create_node(self, fields: NewNodeFields) -> str: ...

    async def update_node(self, node_id: str, fields: dict[str, Any]) -> None: ...

    async def batch_delete(self, node_ids: list[str]) -> None: ...

    async def fetch_all(self) -> list[TreeNode]: ...


@dataclass
class SyncFailure:
    operation: PersistenceOp
    error: BaseException


@dataclass
class SyncReport:
    """Outcome of one dispatch"""

    dispatched: int = 0
    created_ids: list[str] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class PasteOutcome:
    """Created subtree with the ids the store assigned"""

    node: TreeNode
    created_ids: list[str]

    @property
    def root_id(self) -> str:
        return self.node.id


class PersistenceSynchronizer:
    """Executes operation lists against a TreeStore"""

    def __init__(self, store: TreeStore, max_attempts: int = 3, initial_delay: float = 0.5):
        self.store = store
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self._refresh_generation = 0

    async def dispatch(self, operations: Sequence[PersistenceOp]) -> SyncReport:
        """Creates run first and in order; updates and deletes run concurrently"""
        report = SyncReport(dispatched=len(operations))
        creates = [op for op in operations if isinstance(op, CreateOp)]
        others = [op for op in operations if not isinstance(op, CreateOp)]

        for op in creates:
            try:
                report.created_ids.append(await self.store.create_node(op.fields))
            except Exception as e:
                logger.error(f"Create '{op.fields.name}' failed: {e}")
                report.failures.append(SyncFailure(operation=op, error=e))
                return report

        results = await asyncio.gather(*(self._apply(op) for op in others), return_exceptions=True)
        for op, result in zip(others, results):
            if isinstance(result, BaseException):
                logger.error(f"{op.kind} failed: {type(result).__name__}: {result}")
                report.failures.append(SyncFailure(operation=op, error=result))

        if report.ok:
            logger.info(f"Dispatched {report.dispatched} operation(s)")
        else:
            logger.warning(f"{len(report.failures)}/{report.dispatched} operation(s) failed")
        return report

    async def _apply(self, op: PersistenceOp) -> None:
        if isinstance(op, UpdateOp):
            await self.store.update_node(op.node_id, op.fields)
        elif isinstance(op, DeleteOp):
            await self.store.batch_delete(op.node_ids)
        else:
            raise ServiceError(f"Unsupported operation: {op!r}")

    async def reconcile(self) -> Optional[Forest]:
        """Refetch the authoritative tree; None when a newer refresh started meanwhile"""
        self._refresh_generation += 1
        generation = self._refresh_generation

        @retry_async(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            exceptions=(ServiceError,),
            log_prefix="[Reconcile] ",
        )
        async def fetch_all():
            return await self.store.fetch_all()

        try:
            rows = await fetch_all()
        except ServiceError as e:
            raise ReconciliationError(f"Could not refetch tree: {e}") from e

        if generation != self._refresh_generation:
            logger.info(f"Refresh #{generation} superseded by #{self._refresh_generation}, discarded")
            return None
        tree = build_tree(rows)
        logger.info(f"Refresh #{generation}: {len(rows)} rows, {len(tree)} channel(s)")
        return tree

    async def execute_paste(self, plan: PastePlan) -> PasteOutcome:
        """Shift sibling orders, then create the subtree top-down"""
        if plan.shift_updates:
            report = await self.dispatch(plan.shift_updates)
            if not report.ok:
                raise ServiceError(f"Could not open slot {plan.insert_index} under {plan.parent_id}")

        created: list[str] = []

        async def _create(blueprint: NodeBlueprint, parent_id: Optional[str]) -> TreeNode:
            fields = blueprint.fields.model_copy(update={"parent_id": parent_id})
            node_id = await self.store.create_node(fields)
            created.append(node_id)
            children = []
            for child in blueprint.children:
                children.append(await _create(child, node_id))
            return TreeNode(id=node_id, children=children, **fields.to_record())

        try:
            node = await _create(plan.root, plan.parent_id)
        except Exception as e:
            logger.error(f"Paste aborted after {len(created)}/{plan.root.count()} node(s): {e}")
            raise PartialPasteError(
                f"Paste failed after creating {len(created)} of {plan.root.count()} node(s)",
                created_ids=created,
                cause=e,
            ) from e

        logger.info(f"Pasted '{node.name}' ({len(created)} node(s)) under {plan.parent_id}")
        return PasteOutcome(node=node, created_ids=created)
