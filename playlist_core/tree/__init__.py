"""Tree engine: traversal, naming, drop resolution, mutations, clipboard"""

from playlist_core.tree.model import (
    Forest,
    DisplayRow,
    build_tree,
    iter_nodes,
    find_node,
    get_node,
    find_parent,
    children_of,
    is_descendant_of,
    collect_descendant_ids,
    count_descendants,
    owning_channel,
    independent_nodes,
    flatten,
    to_rows,
)
from playlist_core.tree.naming import resolve_unique_name, resolve_batch, split_numbered
from playlist_core.tree.drop_target import RowBoundsProvider, dragged_nodes, resolve_drop_target
from playlist_core.tree.mutations import (
    MoveIntent,
    DeleteIntent,
    RenameIntent,
    SetFieldsIntent,
    reduce_tree,
    move_nodes,
    delete_nodes,
    rename_node,
    set_fields,
    plan_add_child,
    plan_add_buckets,
    insert_subtree,
    channel_refs_in_use,
)
from playlist_core.tree.clipboard import Clipboard, ClipboardEntry, clone_subtree, plan_paste

__all__ = [
    # Model
    "Forest",
    "DisplayRow",
    "build_tree",
    "iter_nodes",
    "find_node",
    "get_node",
    "find_parent",
    "children_of",
    "is_descendant_of",
    "collect_descendant_ids",
    "count_descendants",
    "owning_channel",
    "independent_nodes",
    "flatten",
    "to_rows",
    # Naming
    "resolve_unique_name",
    "resolve_batch",
    "split_numbered",
    # Drop target
    "RowBoundsProvider",
    "dragged_nodes",
    "resolve_drop_target",
    # Mutations
    "MoveIntent",
    "DeleteIntent",
    "RenameIntent",
    "SetFieldsIntent",
    "reduce_tree",
    "move_nodes",
    "delete_nodes",
    "rename_node",
    "set_fields",
    "plan_add_child",
    "plan_add_buckets",
    "insert_subtree",
    "channel_refs_in_use",
    # Clipboard
    "Clipboard",
    "ClipboardEntry",
    "clone_subtree",
    "plan_paste",
]
