"""Drop target resolution for drag gestures.

Maps the hovered row and pointer position to a concrete landing point
(target parent + insert index). Besides the plain above/below split it
applies the group boundary redirections: a playlist or bucket dragged to the
bottom of its group often ends up hovering the first row of the next group,
and the literal reading of that hover would reparent it.

Geometry comes from an injected row bounds provider so the resolver never
touches a rendering surface. A provider returning None means the row is not
rendered (collapsed or scrolled away).
"""

import logging
from typing import Callable, Iterable, Optional, Sequence

from playlist_core.exceptions import InvalidOperationError
from playlist_core.models.operations import DropTarget, RowBounds
from playlist_core.models.tree import NodeType, TreeNode
from playlist_core.tree.model import (
    find_parent,
    get_node,
    independent_nodes,
    is_descendant_of,
    nodes_of_type,
    owning_channel,
)

logger = logging.getLogger(__name__)

RowBoundsProvider = Callable[[str], Optional[RowBounds]]

DEFAULT_THRESHOLD = 0.5
# Channel over channel: only the bottom quarter means "after this channel"
CHANNEL_THRESHOLD = 0.75

# Dragged type -> hovered types that can resolve to a landing point
DROP_RULES: dict[NodeType, frozenset[NodeType]] = {
    NodeType.CHANNEL: frozenset(NodeType),
    NodeType.PLAYLIST: frozenset({NodeType.CHANNEL, NodeType.PLAYLIST, NodeType.BUCKET}),
    NodeType.BUCKET: frozenset({NodeType.PLAYLIST, NodeType.BUCKET, NodeType.CHANNEL}),
}


def is_valid_drop(drag_type: NodeType, over_type: NodeType) -> bool:
    return over_type in DROP_RULES.get(drag_type, frozenset())


def dragged_nodes(
    tree: Sequence[TreeNode], drag_id: str, selected_ids: Iterable[str] = ()
) -> list[TreeNode]:
    """Nodes moved by a gesture started on drag_id.

    The whole selection moves when the grabbed row is part of a multi-row
    selection; otherwise only the grabbed row does.
    """
    selected = list(dict.fromkeys(selected_ids))
    if len(selected) > 1 and drag_id in selected:
        nodes = independent_nodes(tree, selected)
    else:
        nodes = [get_node(tree, drag_id)]

    types = {node.node_type for node in nodes}
    if len(types) > 1:
        raise InvalidOperationError(
            "Cannot move items of different types together", reason="mixed_types"
        )
    return nodes


def is_below(bounds: Optional[RowBounds], pointer_y: float, threshold: float = DEFAULT_THRESHOLD) -> bool:
    if bounds is None:
        return False
    return pointer_y >= bounds.top + bounds.height * threshold


def resolve_drop_target(
    tree: Sequence[TreeNode],
    drag_id: str,
    over_id: str,
    pointer_y: float,
    row_bounds: RowBoundsProvider,
    selected_ids: Iterable[str] = (),
) -> DropTarget:
    """Resolve where the dragged node(s) would land. Raises InvalidOperationError."""
    nodes = dragged_nodes(tree, drag_id, selected_ids)
    drag = get_node(tree, drag_id)
    over = get_node(tree, over_id)
    drag_type = drag.node_type

    if not is_valid_drop(drag_type, over.node_type):
        raise InvalidOperationError(
            f"Cannot drop {drag_type.value} on {over.node_type.value}", reason="incompatible_type"
        )
    for node in nodes:
        if over.id == node.id or is_descendant_of(tree, over.id, node.id):
            raise InvalidOperationError(
                "Cannot move items into themselves or their descendants", reason="self_drop"
            )

    threshold = DEFAULT_THRESHOLD
    if drag_type is NodeType.CHANNEL and over.node_type is NodeType.CHANNEL:
        threshold = CHANNEL_THRESHOLD
    below = is_below(row_bounds(over.id), pointer_y, threshold)
    node_ids = tuple(node.id for node in nodes)

    if drag_type is NodeType.CHANNEL:
        return _resolve_channel(tree, node_ids, over, below)
    if drag_type is NodeType.PLAYLIST:
        return _resolve_playlist(tree, node_ids, drag, over, below, row_bounds)
    return _resolve_bucket(tree, node_ids, drag, over, below, row_bounds)


def _index_in(children: Sequence[TreeNode], node_id: str) -> int:
    for index, child in enumerate(children):
        if child.id == node_id:
            return index
    return -1


def _resolve_channel(
    tree: Sequence[TreeNode], node_ids: tuple[str, ...], over: TreeNode, below: bool
) -> DropTarget:
    channel = owning_channel(tree, over.id)
    if over.node_type is not NodeType.CHANNEL:
        # Hovering a channel's content always means "after that channel"
        below = True
    index = _index_in(tree, channel.id) + (1 if below else 0)
    return DropTarget(
        node_ids=node_ids,
        target_parent_id=None,
        insert_index=index,
        anchor_id=channel.id,
        below=below,
    )


def _parents_adjacent(tree: Sequence[TreeNode], first: TreeNode, second: TreeNode) -> bool:
    """second directly follows first among same-level nodes in display order"""
    level = nodes_of_type(tree, first.node_type)
    first_index = _index_in(level, first.id)
    second_index = _index_in(level, second.id)
    return first_index >= 0 and second_index == first_index + 1


def _end_of_parent(
    node_ids: tuple[str, ...],
    parent: TreeNode,
    row_bounds: RowBoundsProvider,
    redirected: bool,
) -> DropTarget:
    """Append to parent; the indicator goes under its last rendered row"""
    candidates: list[str] = []
    if parent.children:
        last = parent.children[-1]
        if last.children and row_bounds(last.children[0].id) is not None:
            candidates.extend(child.id for child in reversed(last.children))
        candidates.extend(child.id for child in reversed(parent.children))

    anchor_id = parent.id
    for candidate in candidates:
        if row_bounds(candidate) is not None:
            anchor_id = candidate
            break

    return DropTarget(
        node_ids=node_ids,
        target_parent_id=parent.id,
        insert_index=len(parent.children),
        redirected=redirected,
        anchor_id=anchor_id,
        below=True,
    )


def _original_parent(tree: Sequence[TreeNode], drag: TreeNode) -> TreeNode:
    parent = find_parent(tree, drag.id)
    if parent is None:
        raise InvalidOperationError(f"{drag.node_type.value} {drag.id} has no parent", reason="orphan")
    return parent


def _resolve_playlist(
    tree: Sequence[TreeNode],
    node_ids: tuple[str, ...],
    drag: TreeNode,
    over: TreeNode,
    below: bool,
    row_bounds: RowBoundsProvider,
) -> DropTarget:
    original = _original_parent(tree, drag)

    if over.node_type is NodeType.CHANNEL:
        if over.id != original.id:
            logger.debug(f"Playlist over foreign channel {over.id}: keep in {original.id}")
            return _end_of_parent(node_ids, original, row_bounds, redirected=True)
        return _end_of_parent(node_ids, original, row_bounds, redirected=False)

    if over.node_type is NodeType.PLAYLIST:
        anchor = over
    else:
        anchor = _original_parent(tree, over)
    candidate = owning_channel(tree, anchor.id)

    if not below and candidate.id != original.id and _parents_adjacent(tree, original, candidate):
        logger.debug(f"Playlist above first row of next channel {candidate.id}: keep in {original.id}")
        return _end_of_parent(node_ids, original, row_bounds, redirected=True)

    if over.node_type is NodeType.BUCKET:
        # Land right after the bucket's playlist, not at the end of the channel: bucket rows render under it
        below = True
    index = _index_in(candidate.children, anchor.id) + (1 if below else 0)
    return DropTarget(
        node_ids=node_ids,
        target_parent_id=candidate.id,
        insert_index=index,
        anchor_id=anchor.id,
        below=below,
    )


def _resolve_bucket(
    tree: Sequence[TreeNode],
    node_ids: tuple[str, ...],
    drag: TreeNode,
    over: TreeNode,
    below: bool,
    row_bounds: RowBoundsProvider,
) -> DropTarget:
    original = _original_parent(tree, drag)

    if over.node_type is NodeType.CHANNEL:
        # Channels cannot hold buckets
        return _end_of_parent(node_ids, original, row_bounds, redirected=True)

    if over.node_type is NodeType.PLAYLIST:
        candidate = over
    else:
        candidate = _original_parent(tree, over)

    if not below and candidate.id != original.id and _parents_adjacent(tree, original, candidate):
        logger.debug(f"Bucket above first row of next playlist {candidate.id}: keep in {original.id}")
        return _end_of_parent(node_ids, original, row_bounds, redirected=True)

    if over.node_type is NodeType.PLAYLIST:
        return _end_of_parent(node_ids, candidate, row_bounds, redirected=False)

    index = _index_in(candidate.children, over.id) + (1 if below else 0)
    return DropTarget(
        node_ids=node_ids,
        target_parent_id=candidate.id,
        insert_index=index,
        anchor_id=over.id,
        below=below,
    )
