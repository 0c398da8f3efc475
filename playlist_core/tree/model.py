"""Traversal primitives over an immutable forest snapshot"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Sequence

from playlist_core.exceptions import NodeNotFoundError
from playlist_core.models.tree import NodeType, TreeNode

logger = logging.getLogger(__name__)

Forest = list[TreeNode]


@dataclass(frozen=True)
class DisplayRow:
    """Visible row of the tree grid"""

    node: TreeNode
    path: tuple[str, ...]  # ancestor names + own name, view only
    depth: int


def build_tree(rows: Iterable[Any]) -> Forest:
    """Build the forest from flat rows (dicts or TreeNode) linked by parent_id"""
    nodes: list[TreeNode] = []
    for row in rows:
        if isinstance(row, TreeNode):
            nodes.append(row.model_copy(update={"children": ()}))
        else:
            data = {key: value for key, value in dict(row).items() if key != "children"}
            nodes.append(TreeNode(**data))

    ids = {node.id for node in nodes}
    by_parent: dict[Optional[str], list[TreeNode]] = {}
    for node in nodes:
        parent_id = node.parent_id
        if parent_id is not None and parent_id not in ids:
            logger.warning(f"build_tree: orphan {node.id} (parent {parent_id} missing), skipped")
            continue
        by_parent.setdefault(parent_id, []).append(node)

    def _build(parent_id: Optional[str]) -> list[TreeNode]:
        group = sorted(by_parent.get(parent_id, []), key=lambda n: (n.order, n.name))
        return [node.with_children(_build(node.id)) for node in group]

    return _build(None)


def iter_nodes(tree: Sequence[TreeNode]) -> Iterator[TreeNode]:
    """Depth-first, display order"""
    for node in tree:
        yield node
        yield from iter_nodes(node.children)


def find_node(tree: Sequence[TreeNode], node_id: str) -> Optional[TreeNode]:
    for node in iter_nodes(tree):
        if node.id == node_id:
            return node
    return None


def get_node(tree: Sequence[TreeNode], node_id: str) -> TreeNode:
    node = find_node(tree, node_id)
    if node is None:
        raise NodeNotFoundError(node_id)
    return node


def find_parent(tree: Sequence[TreeNode], node_id: str) -> Optional[TreeNode]:
    """Parent node, or None for root channels and unknown ids"""
    for node in iter_nodes(tree):
        if any(child.id == node_id for child in node.children):
            return node
    return None


def children_of(tree: Sequence[TreeNode], parent_id: Optional[str]) -> tuple[TreeNode, ...]:
    """Sibling group under parent_id (root channels for None)"""
    if parent_id is None:
        return tuple(tree)
    return get_node(tree, parent_id).children


def is_descendant_of(tree: Sequence[TreeNode], candidate_id: str, ancestor_id: str) -> bool:
    """True if candidate sits strictly below ancestor"""
    ancestor = find_node(tree, ancestor_id)
    if ancestor is None:
        return False
    return any(node.id == candidate_id for node in iter_nodes(ancestor.children))


def collect_descendant_ids(node: TreeNode) -> list[str]:
    """Ids of the subtree rooted at node, node itself first"""
    return [item.id for item in iter_nodes([node])]


def count_descendants(node: TreeNode) -> int:
    return len(collect_descendant_ids(node)) - 1


def owning_channel(tree: Sequence[TreeNode], node_id: str) -> TreeNode:
    """Walk up to the root channel of node_id"""
    node = get_node(tree, node_id)
    while node.node_type is not NodeType.CHANNEL:
        parent = find_parent(tree, node.id)
        if parent is None:
            raise NodeNotFoundError(node.parent_id or node.id)
        node = parent
    return node


def display_index(tree: Sequence[TreeNode]) -> dict[str, int]:
    """id -> position in the fully expanded display order"""
    return {node.id: index for index, node in enumerate(iter_nodes(tree))}


def nodes_of_type(tree: Sequence[TreeNode], node_type: NodeType) -> list[TreeNode]:
    return [node for node in iter_nodes(tree) if node.node_type is node_type]


def independent_nodes(tree: Sequence[TreeNode], node_ids: Iterable[str]) -> list[TreeNode]:
    """Selected nodes minus those already covered by a selected ancestor, in display order"""
    wanted = list(dict.fromkeys(node_ids))
    selected = [node for node in (find_node(tree, node_id) for node_id in wanted) if node]
    covered: set[str] = set()
    for node in selected:
        covered.update(collect_descendant_ids(node)[1:])
    order = display_index(tree)
    result = [node for node in selected if node.id not in covered]
    return sorted(result, key=lambda n: order[n.id])


def renumber(children: Sequence[TreeNode]) -> list[TreeNode]:
    """Set order to the array position"""
    return [
        child if child.order == index else child.model_copy(update={"order": index})
        for index, child in enumerate(children)
    ]


def replace_children(
    tree: Sequence[TreeNode], parent_id: Optional[str], children: Sequence[TreeNode]
) -> Forest:
    """Copy of tree with parent_id's children swapped; untouched branches are shared"""
    if parent_id is None:
        return list(children)

    def _walk(nodes: Sequence[TreeNode]) -> tuple[list[TreeNode], bool]:
        result: list[TreeNode] = []
        changed = False
        for node in nodes:
            if node.id == parent_id:
                node = node.with_children(list(children))
                changed = True
            elif node.children and not changed:
                new_children, child_changed = _walk(node.children)
                if child_changed:
                    node = node.with_children(new_children)
                    changed = True
            result.append(node)
        return result, changed

    new_tree, changed = _walk(tree)
    if not changed:
        raise NodeNotFoundError(parent_id)
    return new_tree


def flatten(tree: Sequence[TreeNode], expanded: Optional[set[str]] = None) -> list[DisplayRow]:
    """Visible rows; expanded=None shows every node"""
    rows: list[DisplayRow] = []

    def _walk(nodes: Sequence[TreeNode], path: tuple[str, ...], depth: int):
        for node in nodes:
            node_path = path + (node.name,)
            rows.append(DisplayRow(node=node, path=node_path, depth=depth))
            if node.children and (expanded is None or node.id in expanded):
                _walk(node.children, node_path, depth + 1)

    _walk(tree, (), 0)
    return rows


def to_rows(tree: Sequence[TreeNode]) -> list[dict[str, Any]]:
    """Flat records with ids, the shape fetch_all returns"""
    return [{"id": node.id, **node.to_record()} for node in iter_nodes(tree)]
