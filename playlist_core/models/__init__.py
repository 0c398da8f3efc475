"""Pydantic models of the playlist tree"""

from playlist_core.models.tree import (
    NodeType,
    PARENT_TYPE,
    PERSISTED_FIELDS,
    STRUCTURAL_FIELDS,
    DEFAULT_CAROUSEL_TYPE,
    TreeNode,
    NewNodeFields,
    ContentRef,
    Channel,
)
from playlist_core.models.operations import (
    RowBounds,
    DropTarget,
    CreateOp,
    UpdateOp,
    DeleteOp,
    PersistenceOp,
    MutationResult,
    BucketMapping,
    ChannelPasteOptions,
    NodeBlueprint,
    PastePlan,
)

__all__ = [
    # Tree
    "NodeType",
    "PARENT_TYPE",
    "PERSISTED_FIELDS",
    "STRUCTURAL_FIELDS",
    "DEFAULT_CAROUSEL_TYPE",
    "TreeNode",
    "NewNodeFields",
    "ContentRef",
    "Channel",
    # Operations
    "RowBounds",
    "DropTarget",
    "CreateOp",
    "UpdateOp",
    "DeleteOp",
    "PersistenceOp",
    "MutationResult",
    "BucketMapping",
    "ChannelPasteOptions",
    "NodeBlueprint",
    "PastePlan",
]
