"""Tree entities"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class NodeType(str, Enum):
    """Hierarchy levels of channel_playlists rows"""

    CHANNEL = "channel"
    PLAYLIST = "playlist"
    BUCKET = "bucket"


# Child type -> type its parent must have (None = root level)
PARENT_TYPE: dict[NodeType, Optional[NodeType]] = {
    NodeType.CHANNEL: None,
    NodeType.PLAYLIST: NodeType.CHANNEL,
    NodeType.BUCKET: NodeType.PLAYLIST,
}

DEFAULT_CAROUSEL_TYPE = "scrolling_carousel"

# Columns written back to channel_playlists
PERSISTED_FIELDS = (
    "name",
    "type",
    "order",
    "parent_id",
    "active",
    "schedule",
    "carousel_type",
    "carousel_name",
    "content_id",
    "channel_id",
    "display_name",
)

# Fields that only the engine may change
STRUCTURAL_FIELDS = frozenset({"id", "parent_id", "order", "children", "type", "node_type"})


class TreeNode(BaseModel):
    """Node of the channel -> playlist -> bucket forest"""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="ignore", from_attributes=True
    )

    id: str
    node_type: NodeType = Field(alias="type")
    name: str
    order: int = 0
    parent_id: Optional[str] = None
    active: bool = True
    schedule: Optional[str] = None
    carousel_type: Optional[str] = None  # playlist only
    carousel_name: Optional[str] = None  # playlist only
    content_id: Optional[str] = None  # bucket only
    channel_id: Optional[str] = None  # channel only
    display_name: Optional[str] = None
    children: tuple["TreeNode", ...] = ()

    def to_record(self) -> dict[str, Any]:
        """Persisted columns only (no id, no children)"""
        data = self.model_dump(by_alias=True, mode="json", exclude={"id", "children"})
        return {key: data[key] for key in PERSISTED_FIELDS if key in data}

    def with_children(self, children: list["TreeNode"]) -> "TreeNode":
        return self.model_copy(update={"children": tuple(children)})


class NewNodeFields(BaseModel):
    """Create payload for a single node"""

    model_config = ConfigDict(populate_by_name=True)

    node_type: NodeType = Field(alias="type")
    name: str
    order: int = 0
    parent_id: Optional[str] = None
    active: bool = True
    schedule: Optional[str] = None
    carousel_type: Optional[str] = None
    carousel_name: Optional[str] = None
    content_id: Optional[str] = None
    channel_id: Optional[str] = None
    display_name: Optional[str] = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ContentRef(BaseModel):
    """Content bucket entity a bucket instance points at"""

    id: str
    name: str
    schedule: Optional[str] = None


class Channel(BaseModel):
    """Row of the channels table (channel definitions)"""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    type: str
    active: bool = True
    description: Optional[str] = None
