"""Pure tree mutations: (tree, intent) -> new tree + persistence operations.

Every function returns a fresh forest; untouched branches are shared with the
input. Order values are recomputed from array positions for every sibling
group a mutation touches, and only fields that actually changed are emitted.
"""

import logging
from typing import Any, Iterable, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field

from playlist_core.exceptions import InvalidOperationError
from playlist_core.models.operations import DeleteOp, DropTarget, MutationResult, UpdateOp
from playlist_core.models.tree import (
    DEFAULT_CAROUSEL_TYPE,
    PARENT_TYPE,
    STRUCTURAL_FIELDS,
    ContentRef,
    NewNodeFields,
    NodeType,
    TreeNode,
)
from playlist_core.tree.model import (
    Forest,
    children_of,
    collect_descendant_ids,
    find_node,
    get_node,
    independent_nodes,
    nodes_of_type,
    renumber,
    replace_children,
)
from playlist_core.tree.naming import resolve_batch, resolve_unique_name

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {"active", "schedule", "carousel_type", "carousel_name", "content_id", "channel_id", "display_name"}
)

_TRACKED = ("parent_id", "name", "order")


def _snapshot(tree: Sequence[TreeNode], group_ids: Iterable[Optional[str]]) -> dict[str, dict[str, Any]]:
    state: dict[str, dict[str, Any]] = {}
    for group_id in group_ids:
        for child in children_of(tree, group_id):
            state[child.id] = {field: getattr(child, field) for field in _TRACKED}
    return state


def _diff_updates(
    tree: Sequence[TreeNode],
    group_ids: Iterable[Optional[str]],
    before: dict[str, dict[str, Any]],
) -> list[UpdateOp]:
    """One update per node of the groups whose parent/name/order changed"""
    updates: list[UpdateOp] = []
    seen: set[str] = set()
    for group_id in group_ids:
        for child in children_of(tree, group_id):
            if child.id in seen:
                continue
            seen.add(child.id)
            old = before.get(child.id, {})
            fields = {
                field: getattr(child, field)
                for field in _TRACKED
                if field not in old or old[field] != getattr(child, field)
            }
            if fields:
                updates.append(UpdateOp(node_id=child.id, fields=fields))
    return updates


def check_parent_type(tree: Sequence[TreeNode], node_type: NodeType, parent_id: Optional[str]) -> None:
    """Enforce channel -> playlist -> bucket depth"""
    expected = PARENT_TYPE[node_type]
    if parent_id is None:
        if expected is not None:
            raise InvalidOperationError(
                f"A {node_type.value} needs a {expected.value} parent", reason="incompatible_type"
            )
        return
    parent = get_node(tree, parent_id)
    if parent.node_type is not expected:
        raise InvalidOperationError(
            f"Cannot place {node_type.value} under {parent.node_type.value}", reason="incompatible_type"
        )


def channel_refs_in_use(tree: Sequence[TreeNode], exclude_id: Optional[str] = None) -> set[str]:
    """channel_id values already linked to a channel node"""
    return {
        node.channel_id
        for node in nodes_of_type(tree, NodeType.CHANNEL)
        if node.channel_id and node.id != exclude_id
    }


def move_nodes(tree: Sequence[TreeNode], target: DropTarget) -> MutationResult:
    """Move one or more same-type nodes to a resolved drop target"""
    nodes = independent_nodes(tree, target.node_ids)
    if not nodes:
        return MutationResult(tree=list(tree))

    node_type = nodes[0].node_type
    if any(node.node_type is not node_type for node in nodes):
        raise InvalidOperationError("Cannot move items of different types together", reason="mixed_types")
    check_parent_type(tree, node_type, target.target_parent_id)

    moving_ids = {node.id for node in nodes}
    if target.target_parent_id is not None:
        for node in nodes:
            if target.target_parent_id in collect_descendant_ids(node):
                raise InvalidOperationError(
                    "Cannot move items into themselves or their descendants", reason="self_drop"
                )

    target_parent_id = target.target_parent_id
    source_ids = list(dict.fromkeys(node.parent_id for node in nodes))
    groups = list(dict.fromkeys([target_parent_id, *source_ids]))
    before = _snapshot(tree, groups)

    # Index counted without the nodes being moved out of the target group
    original_target = children_of(tree, target_parent_id)
    removed_before = sum(
        1 for index, child in enumerate(original_target)
        if child.id in moving_ids and index < target.insert_index
    )
    insert_at = target.insert_index - removed_before

    new_tree: Forest = list(tree)
    for source_id in source_ids:
        remaining = [c for c in children_of(new_tree, source_id) if c.id not in moving_ids]
        new_tree = replace_children(new_tree, source_id, renumber(remaining))

    remaining = list(children_of(new_tree, target_parent_id))
    insert_at = max(0, min(insert_at, len(remaining)))

    taken = [child.name for child in remaining]
    taken.extend(node.name for node in nodes if node.parent_id == target_parent_id)
    moved: list[TreeNode] = []
    for node in nodes:
        name = node.name
        if node.parent_id != target_parent_id:
            name = resolve_unique_name(node.name, taken)
            taken.append(name)
        moved.append(node.model_copy(update={"name": name, "parent_id": target_parent_id}))

    children = remaining[:insert_at] + moved + remaining[insert_at:]
    new_tree = replace_children(new_tree, target_parent_id, renumber(children))

    updates = _diff_updates(new_tree, groups, before)
    logger.info(
        f"move_nodes: {len(nodes)} {node_type.value}(s) -> parent={target_parent_id} "
        f"index={insert_at} redirected={target.redirected}, {len(updates)} update(s)"
    )
    return MutationResult(tree=new_tree, operations=updates)


def delete_nodes(tree: Sequence[TreeNode], node_ids: Iterable[str]) -> MutationResult:
    """Cascading delete of the selection; descendants of selected nodes are implied"""
    roots = independent_nodes(tree, node_ids)
    if not roots:
        return MutationResult(tree=list(tree))

    doomed: list[str] = []
    for node in roots:
        doomed.extend(collect_descendant_ids(node))
    doomed_set = set(doomed)

    groups = list(dict.fromkeys(node.parent_id for node in roots))
    before = _snapshot(tree, groups)

    new_tree: Forest = list(tree)
    for group_id in groups:
        survivors = [child for child in children_of(new_tree, group_id) if child.id not in doomed_set]
        new_tree = replace_children(new_tree, group_id, renumber(survivors))

    operations: list[Any] = [DeleteOp(node_ids=list(dict.fromkeys(doomed)))]
    operations.extend(_diff_updates(new_tree, groups, before))
    logger.info(f"delete_nodes: {len(roots)} selected, {len(doomed_set)} node(s) removed")
    return MutationResult(tree=new_tree, operations=operations)


def rename_node(tree: Sequence[TreeNode], node_id: str, new_name: str) -> MutationResult:
    node = get_node(tree, node_id)
    new_name = new_name.strip()
    if not new_name:
        raise InvalidOperationError("Name cannot be empty", reason="empty_name")

    siblings = [child.name for child in children_of(tree, node.parent_id) if child.id != node.id]
    name = resolve_unique_name(new_name, siblings)
    if name == node.name:
        return MutationResult(tree=list(tree))

    children = [
        child.model_copy(update={"name": name}) if child.id == node.id else child
        for child in children_of(tree, node.parent_id)
    ]
    new_tree = replace_children(tree, node.parent_id, children)
    return MutationResult(tree=new_tree, operations=[UpdateOp(node_id=node.id, fields={"name": name})])


def set_fields(tree: Sequence[TreeNode], node_id: str, fields: dict[str, Any]) -> MutationResult:
    """Non-structural field edits (activation, schedule, carousel, refs)"""
    fields = dict(fields)
    structural = STRUCTURAL_FIELDS.intersection(fields)
    if structural:
        raise InvalidOperationError(
            f"Structural fields must be changed by move/paste: {sorted(structural)}", reason="structural_field"
        )

    result = MutationResult(tree=list(tree))
    if "name" in fields:
        result = rename_node(tree, node_id, fields.pop("name"))

    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise InvalidOperationError(f"Unknown fields: {sorted(unknown)}", reason="unknown_field")

    node = get_node(result.tree, node_id)
    if fields.get("channel_id"):
        if node.node_type is not NodeType.CHANNEL:
            raise InvalidOperationError("Only channels link to a channel definition", reason="incompatible_type")
        if fields["channel_id"] in channel_refs_in_use(result.tree, exclude_id=node.id):
            raise InvalidOperationError("Channel is already in use", reason="channel_in_use")

    changed = {key: value for key, value in fields.items() if getattr(node, key) != value}
    if not changed:
        return result

    updated = node.model_copy(update=changed)
    children = [updated if child.id == node.id else child for child in children_of(result.tree, node.parent_id)]
    new_tree = replace_children(result.tree, node.parent_id, children)
    operations = list(result.operations)
    for op in operations:
        if isinstance(op, UpdateOp) and op.node_id == node.id:
            op.fields.update(changed)
            break
    else:
        operations.append(UpdateOp(node_id=node.id, fields=changed))
    return MutationResult(tree=new_tree, operations=operations)


def plan_add_child(
    tree: Sequence[TreeNode], parent_id: Optional[str], partial: dict[str, Any]
) -> NewNodeFields:
    """Create payload for a new node appended to parent_id's children"""
    data = dict(partial)
    raw_type = data.pop("type", None) or data.pop("node_type", None)
    try:
        node_type = NodeType(raw_type)
    except ValueError:
        raise InvalidOperationError(f"Unknown node type: {raw_type!r}", reason="incompatible_type")
    check_parent_type(tree, node_type, parent_id)

    name = str(data.pop("name", "") or "").strip()
    if not name:
        raise InvalidOperationError("Name cannot be empty", reason="empty_name")

    siblings = children_of(tree, parent_id)
    name = resolve_unique_name(name, [child.name for child in siblings])
    channel_id = data.get("channel_id")
    if channel_id and channel_id in channel_refs_in_use(tree):
        raise InvalidOperationError("Channel is already in use", reason="channel_in_use")

    if node_type is NodeType.PLAYLIST:
        data["carousel_type"] = data.get("carousel_type") or DEFAULT_CAROUSEL_TYPE
        data["carousel_name"] = data.get("carousel_name") or name

    data = {key: value for key, value in data.items() if key not in STRUCTURAL_FIELDS}
    return NewNodeFields(
        node_type=node_type,
        name=name,
        order=len(siblings),
        parent_id=parent_id,
        **data,
    )


def plan_add_buckets(
    tree: Sequence[TreeNode], playlist_id: str, contents: Sequence[ContentRef]
) -> list[NewNodeFields]:
    """One bucket instance per content entity, appended to the playlist"""
    check_parent_type(tree, NodeType.BUCKET, playlist_id)
    siblings = children_of(tree, playlist_id)
    names = resolve_batch([content.name for content in contents], [child.name for child in siblings])
    return [
        NewNodeFields(
            node_type=NodeType.BUCKET,
            name=name,
            order=len(siblings) + index,
            parent_id=playlist_id,
            active=True,
            schedule=content.schedule,
            content_id=content.id,
        )
        for index, (name, content) in enumerate(zip(names, contents))
    ]


def insert_subtree(tree: Sequence[TreeNode], node: TreeNode, index: Optional[int] = None) -> Forest:
    """Insert a persisted subtree under node.parent_id (append when index is None)"""
    if find_node(tree, node.id) is not None:
        return list(tree)
    siblings = list(children_of(tree, node.parent_id))
    position = len(siblings) if index is None else max(0, min(index, len(siblings)))
    siblings.insert(position, node)
    return replace_children(tree, node.parent_id, renumber(siblings))


def shift_siblings(tree: Sequence[TreeNode], parent_id: Optional[str], index: int) -> list[UpdateOp]:
    """Order bumps that open a slot at index before a sibling insert"""
    return [
        UpdateOp(node_id=child.id, fields={"order": position + 1})
        for position, child in enumerate(children_of(tree, parent_id))
        if position >= index
    ]


class MoveIntent(BaseModel):
    kind: Literal["move"] = "move"
    target: DropTarget


class DeleteIntent(BaseModel):
    kind: Literal["delete"] = "delete"
    node_ids: list[str]


class RenameIntent(BaseModel):
    kind: Literal["rename"] = "rename"
    node_id: str
    name: str


class SetFieldsIntent(BaseModel):
    kind: Literal["set_fields"] = "set_fields"
    node_id: str
    fields: dict[str, Any] = Field(default_factory=dict)


Intent = Union[MoveIntent, DeleteIntent, RenameIntent, SetFieldsIntent]


def reduce_tree(tree: Sequence[TreeNode], intent: Intent) -> MutationResult:
    """Single entry point for structural edits that need no server-assigned ids"""
    if isinstance(intent, MoveIntent):
        return move_nodes(tree, intent.target)
    if isinstance(intent, DeleteIntent):
        return delete_nodes(tree, intent.node_ids)
    if isinstance(intent, RenameIntent):
        return rename_node(tree, intent.node_id, intent.name)
    if isinstance(intent, SetFieldsIntent):
        return set_fields(tree, intent.node_id, intent.fields)
    raise InvalidOperationError(f"Unknown intent: {intent!r}", reason="unknown_intent")

