"""
Core data models for force-directed graphs.

These models define the canonical in-memory shape of a graph:
- Nodes with an id, a group tag, display attributes and 3D coordinates
- Links between two nodes, holding direct references to the Node objects
- Request models for the HTTP API

Field Naming Convention:
- Python attributes are snake_case (`text_size`)
- The JSON file format keeps camelCase (`textSize`); both are accepted on input
- Unknown fields are kept on the model and passed through untouched
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Display defaults filled on creation and import
DEFAULT_NODE_COLOR = "#1A75FF"
DEFAULT_LINK_COLOR = "#F0F0F0"
DEFAULT_TEXT_SIZE = 6
DEFAULT_THICKNESS = 1
DEFAULT_LINK_VALUE = 1

NODE_ATTRIBUTES = ("color", "text_size")
LINK_ATTRIBUTES = ("color", "thickness")

# Wire names accepted for attribute edits
ATTRIBUTE_ALIASES = {"textSize": "text_size"}

LinkKey = frozenset


def link_key(source_id: str, target_id: str) -> LinkKey:
    """Build the unordered endpoint pair that identifies a link."""
    return frozenset((source_id, target_id))


def _blank_to_none(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


class Node(BaseModel):
    """A node in the graph."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    group: Optional[int] = None
    color: str = DEFAULT_NODE_COLOR
    text_size: float = Field(DEFAULT_TEXT_SIZE, alias="textSize", gt=0)
    # Current coordinates; None until the layout seeds them
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    # Pinned coordinates; presence means the layout must not move the node
    fx: Optional[float] = None
    fy: Optional[float] = None
    fz: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_numeric_id(cls, value: Any) -> Any:
        """Numeric ids are common in hand-written files; store them as strings."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Node id must not be blank")
        return value

    @field_validator("color", mode="before")
    @classmethod
    def default_color(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        return DEFAULT_NODE_COLOR if value is None else value

    @field_validator("text_size", mode="before")
    @classmethod
    def default_text_size(cls, value: Any) -> Any:
        return DEFAULT_TEXT_SIZE if value is None else value

    @property
    def is_pinned(self) -> bool:
        """True if any fixed coordinate is set."""
        return self.fx is not None or self.fy is not None or self.fz is not None

    def position(self) -> tuple[float, float, float]:
        """Current coordinates, with unset axes read as 0."""
        return (self.x or 0.0, self.y or 0.0, self.z or 0.0)

    def move_to(self, x: float, y: float, z: float):
        self.x, self.y, self.z = x, y, z

    def pin(self, x: float, y: float, z: float):
        """Move the node and fix it at the given coordinates."""
        self.move_to(x, y, z)
        self.fx, self.fy, self.fz = x, y, z

    @property
    def has_partial_pin(self) -> bool:
        """True if some, but not all, fixed coordinates are set."""
        fixed = (self.fx, self.fy, self.fz)
        return any(v is not None for v in fixed) and any(v is None for v in fixed)

    def snap_to_pin(self):
        """Move a pinned node onto its fixed coordinates."""
        self.move_to(
            self.x if self.fx is None else self.fx,
            self.y if self.fy is None else self.fy,
            self.z if self.fz is None else self.fz,
        )

    def unpin(self):
        """Release the node to the layout, keeping its last coordinates."""
        self.fx = self.fy = self.fz = None


class Link(BaseModel):
    """
    An undirected link between two nodes.

    `source` and `target` are the Node objects themselves. Ids are only
    used at the edges of the system (import, add-by-id, export).
    """
    model_config = ConfigDict(extra="allow")

    source: Node
    target: Node
    color: str = DEFAULT_LINK_COLOR
    thickness: float = Field(DEFAULT_THICKNESS, gt=0)
    value: Optional[float] = None

    @field_validator("color", mode="before")
    @classmethod
    def default_color(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        return DEFAULT_LINK_COLOR if value is None else value

    @field_validator("thickness", mode="before")
    @classmethod
    def default_thickness(cls, value: Any) -> Any:
        return DEFAULT_THICKNESS if value is None else value

    @property
    def source_id(self) -> str:
        return self.source.id

    @property
    def target_id(self) -> str:
        return self.target.id

    @property
    def key(self) -> LinkKey:
        """Unordered endpoint ids; (a, b) and (b, a) share a key."""
        return link_key(self.source.id, self.target.id)

    def touches(self, node_id: str) -> bool:
        return self.source.id == node_id or self.target.id == node_id


class GraphState(BaseModel):
    """
    The complete graph: what gets loaded from and saved to JSON files.
    """
    nodes: list[Node] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)


@dataclass
class MutationResult:
    """
    Outcome of an engine operation.

    `requires_resimulation` tells the caller the layout must be restarted.
    `structural` is set when nodes or links were added or removed, in which
    case the layout also needs the new node and link collections.
    """
    requires_resimulation: bool = False
    structural: bool = False
    node: Optional[Node] = None
    link: Optional[Link] = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"requires_resimulation": self.requires_resimulation}
        if self.node is not None:
            result["node"] = node_to_dict(self.node)
        if self.link is not None:
            result["link"] = link_to_dict(self.link)
        return result


def node_to_dict(node: Node) -> dict:
    """Convert a node to its JSON form, including pin state."""
    x, y, z = node.position()
    result = {
        "id": node.id,
        "group": node.group,
        "color": node.color,
        "textSize": node.text_size,
        "x": x,
        "y": y,
        "z": z,
    }
    if node.is_pinned:
        result.update(fx=node.fx, fy=node.fy, fz=node.fz)
    return result


def link_to_dict(link: Link) -> dict:
    result = {
        "source": link.source_id,
        "target": link.target_id,
        "color": link.color,
        "thickness": link.thickness,
    }
    if link.value is not None:
        result["value"] = link.value
    return result


# --- API Request/Response Models ---

class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    id: str
    group: int = 1


class UpdateNodeRequest(BaseModel):
    """Request to update display attributes of a node (partial update)."""
    model_config = ConfigDict(populate_by_name=True)

    color: Optional[str] = None
    text_size: Optional[float] = Field(None, alias="textSize")


class CreateLinkRequest(BaseModel):
    """Request to create a new link."""
    source: str = ""
    target: str = ""
    value: Optional[float] = DEFAULT_LINK_VALUE


class UpdateLinkRequest(BaseModel):
    """Request to update display attributes of a link."""
    color: Optional[str] = None
    thickness: Optional[float] = None


class CoordinatesRequest(BaseModel):
    """Coordinates reported by a drag interaction."""
    x: float
    y: float
    z: float


class LoadTextRequest(BaseModel):
    """Raw JSON file content uploaded by the client."""
    text: str


class FilePathRequest(BaseModel):
    file_path: Optional[str] = None


class SelectionRequest(BaseModel):
    """Select a node, a link (by its endpoints), or nothing."""
    node_id: Optional[str] = None
    source: Optional[str] = None
    target: Optional[str] = None
