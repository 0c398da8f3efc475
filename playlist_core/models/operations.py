"""Mutation results and persistence operations"""

from typing import Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from playlist_core.models.tree import NewNodeFields, TreeNode


class RowBounds(BaseModel):
    """Vertical extent of a rendered row"""

    top: float
    height: float = Field(ge=0.0)


class DropTarget(BaseModel):
    """Resolved landing point of a drag gesture.

    ``insert_index`` is counted in the target parent's children as they are
    before the dragged nodes are removed. ``anchor_id``/``below`` describe the
    row that shows the drop indicator.
    """

    model_config = ConfigDict(frozen=True)

    node_ids: tuple[str, ...]
    target_parent_id: Optional[str]
    insert_index: int
    redirected: bool = False
    anchor_id: Optional[str] = None
    below: bool = False


class CreateOp(BaseModel):
    kind: Literal["create"] = "create"
    fields: NewNodeFields


class UpdateOp(BaseModel):
    kind: Literal["update"] = "update"
    node_id: str
    fields: dict[str, Any]


class DeleteOp(BaseModel):
    kind: Literal["delete"] = "delete"
    node_ids: list[str]


PersistenceOp = Union[CreateOp, UpdateOp, DeleteOp]


class MutationResult(BaseModel):
    """New tree plus the operations that persist it"""

    tree: list[TreeNode]
    operations: list[PersistenceOp] = Field(default_factory=list)

    @property
    def updates(self) -> list[UpdateOp]:
        return [op for op in self.operations if isinstance(op, UpdateOp)]

    @property
    def deletes(self) -> list[DeleteOp]:
        return [op for op in self.operations if isinstance(op, DeleteOp)]


class BucketMapping(BaseModel):
    """Retarget bucket instances to another content entity during channel paste"""

    original_content_id: str
    new_content_id: Optional[str] = None
    new_name: Optional[str] = None


class ChannelPasteOptions(BaseModel):
    """Caller-supplied overrides for pasting a whole channel"""

    channel_id: Optional[str] = None
    name: Optional[str] = None
    bucket_mappings: list[BucketMapping] = Field(default_factory=list)


class NodeBlueprint(BaseModel):
    """Node to be created by a paste, children created under its new id"""

    fields: NewNodeFields
    children: list["NodeBlueprint"] = Field(default_factory=list)

    def count(self) -> int:
        return 1 + sum(child.count() for child in self.children)


class PastePlan(BaseModel):
    """Everything a paste needs: order shifts first, then top-down creation"""

    parent_id: Optional[str]
    insert_index: int
    as_sibling: bool
    shift_updates: list[UpdateOp] = Field(default_factory=list)
    root: NodeBlueprint
    source_id: Optional[str] = None
    is_cut: bool = False
