"""
Graph Manager - Authoritative graph state and every engine operation.

This module implements:
- Single graph state management (one graph open at a time)
- O(1) node/link lookups via index dictionaries
- Invariant-preserving mutations (unique ids, no dangling links,
  no self-loops, one link per unordered node pair)
- Global and per-node position pinning
- JSON import/export, from text or files on disk
- Change callbacks carrying whether the layout must be restarted
"""

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from forcegraph_core.errors import (
    DuplicateIdError,
    EmptyIdError,
    InvalidAttributeError,
    LinkNotFoundError,
    NodeNotFoundError,
)
from forcegraph_core.models import (
    ATTRIBUTE_ALIASES,
    DEFAULT_LINK_VALUE,
    LINK_ATTRIBUTES,
    NODE_ATTRIBUTES,
    GraphState,
    Link,
    LinkKey,
    MutationResult,
    Node,
    link_key,
    link_to_dict,
    node_to_dict,
)
from forcegraph_core.normalizer import normalize, parse_positions
from forcegraph_core.pinning import PinningController
from forcegraph_core.serializer import serialize
from forcegraph_core.simulation import SimulationBridge
from forcegraph_core.validation import ValidationIssue, validate_graph

LOGGER = logging.getLogger(__name__)

DEFAULT_SPAWN_RANGE = 100.0

ChangeCallback = Callable[[MutationResult, GraphState], Any]


@dataclass
class SelectionState:
    """
    What the user currently has selected.

    Presentation state only: it holds ids into the graph, never nodes or
    links, and is cleared whenever what it points at goes away.
    """
    node_id: Optional[str] = None
    link: Optional[LinkKey] = None

    def clear(self):
        self.node_id = None
        self.link = None

    def to_dict(self) -> dict:
        return {
            "node_id": self.node_id,
            "link": sorted(self.link) if self.link else None,
        }


def _as_link_key(key) -> LinkKey:
    """Accept a frozenset key or any (a, b) pair."""
    if isinstance(key, frozenset):
        return key
    source_id, target_id = key
    return link_key(source_id, target_id)


def _endpoints(key: LinkKey) -> tuple[str, str]:
    ids = sorted(key)
    return ids[0], ids[-1]


def _check_color(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidAttributeError("Color must be a non-empty string")
    return value


def _check_size(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise InvalidAttributeError(f"{field} must be a positive number")
    return value


class GraphManager:
    """
    Manages a single graph's state and persistence.

    Features:
    - O(1) node/link lookups via index dictionaries
    - Every mutation either completes or raises before touching state
    - Change callbacks for layout restarts and real-time sync

    Every mutation returns a MutationResult. Its `requires_resimulation`
    flag is set when nodes or links were added or removed, or when pins
    changed; callers driving their own layout restart it when set.
    """

    def __init__(self, spawn_range: float = DEFAULT_SPAWN_RANGE,
                 rng: Optional[random.Random] = None):
        self._state = GraphState()
        self._file_path: Optional[Path] = None
        self._dirty = False
        self._spawn_range = spawn_range
        self._rng = rng or random.Random()
        self._on_change_callbacks: list[ChangeCallback] = []
        self._simulation: Optional[SimulationBridge] = None
        self.pinning = PinningController()
        self.selection = SelectionState()

        # O(1) lookup indexes
        self._node_index: dict[str, Node] = {}                # node_id -> Node
        self._link_index: dict[LinkKey, Link] = {}            # {a, b} -> Link
        self._links_by_node: dict[str, set[LinkKey]] = {}     # node_id -> link keys

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current graph state."""
        self._node_index.clear()
        self._link_index.clear()
        self._links_by_node.clear()

        for node in self._state.nodes:
            self._index_node(node)
        for link in self._state.links:
            self._index_link(link)

    def _index_node(self, node: Node):
        self._node_index[node.id] = node
        self._links_by_node.setdefault(node.id, set())

    def _unindex_node(self, node: Node):
        self._node_index.pop(node.id, None)
        self._links_by_node.pop(node.id, None)

    def _index_link(self, link: Link):
        self._link_index[link.key] = link
        self._links_by_node.setdefault(link.source_id, set()).add(link.key)
        self._links_by_node.setdefault(link.target_id, set()).add(link.key)

    def _unindex_link(self, link: Link):
        self._link_index.pop(link.key, None)
        for node_id in (link.source_id, link.target_id):
            if node_id in self._links_by_node:
                self._links_by_node[node_id].discard(link.key)

    # --- Properties ---

    @property
    def state(self) -> GraphState:
        """Get the current graph."""
        return self._state

    @property
    def file_path(self) -> Optional[Path]:
        """Get the current file path."""
        return self._file_path

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def simulation(self) -> Optional[SimulationBridge]:
        return self._simulation

    # --- Change Callbacks ---

    def on_change(self, callback: ChangeCallback):
        """Register a callback receiving (result, state) after every mutation."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self, result: MutationResult):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback(result, self._state)

    def _commit(self, result: MutationResult, dirty: bool = True) -> MutationResult:
        if dirty:
            self._dirty = True
        self._notify_change(result)
        return result

    def attach_simulation(self, bridge: SimulationBridge) -> SimulationBridge:
        """Feed the layout the current graph and keep it in step from now on."""
        self._simulation = bridge
        self.on_change(bridge.handle_change)
        bridge.reseed(self._state)
        return bridge

    def tick(self, steps: int = 1) -> bool:
        """Advance the attached layout; returns whether it is still moving."""
        if self._simulation is None:
            return False
        return self._simulation.tick(steps)

    # --- Whole-graph Operations ---

    def _replace_state(self, state: GraphState):
        self._state = state
        self._rebuild_indexes()
        self.pinning.reset(state.nodes)
        self.selection.clear()

    def reset(self):
        """Discard every node and link, and any selection."""
        self._replace_state(GraphState())
        self._file_path = None
        self._dirty = False

    def new_graph(self) -> MutationResult:
        """Start an empty graph."""
        self.reset()
        LOGGER.info("Started a new graph")
        return self._commit(MutationResult(requires_resimulation=True, structural=True), dirty=False)

    def load_graph(self, text: str | bytes) -> MutationResult:
        """
        Replace the whole graph with the content of a graph file.

        On any import error the current graph is left untouched.
        """
        try:
            state = normalize(text)
        except ValueError as e:
            LOGGER.warning("Rejected graph import: %s", e)
            raise

        self._replace_state(state)
        self._file_path = None
        self._dirty = False
        LOGGER.info("Loaded graph with %d nodes and %d links", len(state.nodes), len(state.links))
        return self._commit(MutationResult(requires_resimulation=True, structural=True), dirty=False)

    def open_graph(self, file_path: str | Path) -> MutationResult:
        """Load a graph from a JSON file."""
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Graph file not found: {path}")

        result = self.load_graph(path.read_text())
        self._file_path = path
        return result

    def save_graph(self) -> str:
        """Serialize the graph to the text of a graph file."""
        return serialize(self._state)

    def save_graph_file(self, file_path: Optional[str | Path] = None) -> Path:
        """
        Save the graph to a JSON file.

        If file_path is provided, save to that path (Save As).
        Otherwise, save to the current file_path.
        """
        if file_path:
            path = Path(file_path)
        elif self._file_path:
            path = self._file_path
        else:
            raise ValueError("No file path specified and no current file path")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.save_graph())

        self._file_path = path
        self._dirty = False
        LOGGER.info("Saved graph to %s", path)
        return path

    # --- Node Operations (with O(1) lookups) ---

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(1) lookup)."""
        return self._node_index.get(node_id)

    def _require_node(self, node_id: str) -> Node:
        node = self._node_index.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def add_node(self, node_id: str, group: int = 1) -> MutationResult:
        """
        Add a new free node at a random point of the spawn cube.

        Raises:
            EmptyIdError: the id is blank
            DuplicateIdError: a node with this id exists
        """
        node_id = (node_id or "").strip()
        if not node_id:
            raise EmptyIdError("Please enter a node ID")
        if node_id in self._node_index:
            raise DuplicateIdError(f"Node with this ID already exists: {node_id}")

        spread = self._spawn_range
        node = Node(
            id=node_id,
            group=group,
            x=self._rng.uniform(-spread, spread),
            y=self._rng.uniform(-spread, spread),
            z=self._rng.uniform(-spread, spread),
        )
        self._state.nodes.append(node)
        self._index_node(node)
        LOGGER.debug("Added node %s", node_id)
        return self._commit(MutationResult(requires_resimulation=True, structural=True, node=node))

    def delete_node(self, node_id: str) -> MutationResult:
        """Delete a node and every link touching it."""
        node = self._require_node(node_id)

        doomed = self._links_by_node.get(node_id, set())
        if doomed:
            for key in list(doomed):
                self._unindex_link(self._link_index[key])
            self._state.links = [l for l in self._state.links if not l.touches(node_id)]

        self._state.nodes = [n for n in self._state.nodes if n.id != node_id]
        self._unindex_node(node)

        if self.selection.node_id == node_id:
            self.selection.node_id = None
        if self.selection.link and node_id in self.selection.link:
            self.selection.link = None

        LOGGER.debug("Deleted node %s and %d link(s)", node_id, len(doomed))
        return self._commit(MutationResult(requires_resimulation=True, structural=True, node=node))

    def apply_coordinate_update(self, node_id: str, x: float, y: float, z: float) -> MutationResult:
        """
        Move a node, whatever its pin state.

        A pinned node moves its pin along with it.
        """
        node = self._require_node(node_id)
        if node.is_pinned:
            node.pin(x, y, z)
        else:
            node.move_to(x, y, z)
        return self._commit(MutationResult(node=node))

    def on_node_drag_end(self, node_id: str, x: float, y: float, z: float) -> MutationResult:
        """Drop a dragged node: it stays pinned where it was released."""
        node = self._require_node(node_id)
        self.pinning.pin_dragged(node, x, y, z)
        return self._commit(MutationResult(requires_resimulation=True, node=node))

    def update_node_attributes(self, node_id: str, **fields: Any) -> MutationResult:
        """
        Replace `color` and/or `textSize` on one node.

        Every value is checked before any is applied, so a bad value
        leaves the node untouched.
        """
        node = self._require_node(node_id)
        changes = {}
        for field, value in fields.items():
            field = ATTRIBUTE_ALIASES.get(field, field)
            if field not in NODE_ATTRIBUTES:
                raise InvalidAttributeError(f"Unknown node attribute: {field}")
            if field == "color":
                changes[field] = _check_color(value)
            else:
                changes[field] = _check_size(value, "textSize")

        if not changes:
            return MutationResult(node=node)
        for field, value in changes.items():
            setattr(node, field, value)
        return self._commit(MutationResult(node=node))

    def update_node_attribute(self, node_id: str, field: str, value: Any) -> MutationResult:
        """Replace `color` or `textSize` on one node."""
        return self.update_node_attributes(node_id, **{field: value})

    def set_node_color(self, node_id: str, color: str) -> MutationResult:
        return self.update_node_attribute(node_id, "color", color)

    def set_node_text_size(self, node_id: str, size: float) -> MutationResult:
        return self.update_node_attribute(node_id, "text_size", size)

    # --- Link Operations (with O(1) lookups) ---

    def get_link(self, key) -> Optional[Link]:
        """Get a link by its endpoint ids, in either order."""
        return self._link_index.get(_as_link_key(key))

    def links_for_node(self, node_id: str) -> list[Link]:
        """Get all links touching a node (O(1) index lookup)."""
        keys = self._links_by_node.get(node_id, set())
        return [self._link_index[k] for k in keys if k in self._link_index]

    def add_link(self, source_id: str, target_id: str,
                 value: Optional[float] = DEFAULT_LINK_VALUE) -> MutationResult:
        """
        Link two existing nodes.

        Blank ids, unknown ids, self-loops and already-linked pairs (in
        either direction) are not errors: nothing happens and the result
        carries no link.
        """
        source_id = (source_id or "").strip()
        target_id = (target_id or "").strip()
        if not source_id or not target_id:
            return MutationResult()
        if source_id == target_id:
            return MutationResult()

        source = self._node_index.get(source_id)
        target = self._node_index.get(target_id)
        if source is None or target is None:
            return MutationResult()
        if link_key(source_id, target_id) in self._link_index:
            return MutationResult()

        link = Link(source=source, target=target, value=value)
        self._state.links.append(link)
        self._index_link(link)
        LOGGER.debug("Added link %s - %s", source_id, target_id)
        return self._commit(MutationResult(requires_resimulation=True, structural=True, link=link))

    def update_link_attributes(self, key, **fields: Any) -> MutationResult:
        """
        Replace `color` and/or `thickness` on the link joining two node ids.

        Links are matched by endpoint ids, in either order. Every value is
        checked before any is applied.
        """
        key = _as_link_key(key)
        link = self._link_index.get(key)
        if link is None:
            raise LinkNotFoundError(*_endpoints(key))

        changes = {}
        for field, value in fields.items():
            if field not in LINK_ATTRIBUTES:
                raise InvalidAttributeError(f"Unknown link attribute: {field}")
            if field == "color":
                changes[field] = _check_color(value)
            else:
                changes[field] = _check_size(value, "thickness")

        if not changes:
            return MutationResult(link=link)
        for field, value in changes.items():
            setattr(link, field, value)
        return self._commit(MutationResult(link=link))

    def update_link_attribute(self, key, field: str, value: Any) -> MutationResult:
        return self.update_link_attributes(key, **{field: value})

    def set_link_color(self, key, color: str) -> MutationResult:
        return self.update_link_attribute(key, "color", color)

    def set_link_thickness(self, key, thickness: float) -> MutationResult:
        return self.update_link_attribute(key, "thickness", thickness)

    # --- Pinning ---

    def load_positions(self, text: str | bytes) -> MutationResult:
        """Move and pin the nodes named by a positions file."""
        positions = parse_positions(text)
        pinned = self.pinning.import_positions(self._state.nodes, positions)
        LOGGER.info("Pinned %d node(s) from positions file", len(pinned))
        return self._commit(MutationResult(requires_resimulation=True))

    def open_positions(self, file_path: str | Path) -> MutationResult:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Positions file not found: {path}")
        return self.load_positions(path.read_text())

    def toggle_global_pinning(self) -> MutationResult:
        """Freeze every node in place, or release every node to the layout."""
        self.pinning.toggle(self._state.nodes)
        return self._commit(MutationResult(requires_resimulation=True))

    # --- Selection ---

    def select_node(self, node_id: Optional[str]):
        if node_id is not None:
            self._require_node(node_id)
        self.selection.clear()
        self.selection.node_id = node_id

    def select_link(self, key):
        key = _as_link_key(key)
        if key not in self._link_index:
            raise LinkNotFoundError(*_endpoints(key))
        self.selection.clear()
        self.selection.link = key

    # --- Inspection ---

    def validate(self) -> list[ValidationIssue]:
        return validate_graph(self._state)

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "graph": {
                "nodes": [node_to_dict(n) for n in self._state.nodes],
                "links": [link_to_dict(l) for l in self._state.links],
            },
            "pinned": self.pinning.pinned,
            "selection": self.selection.to_dict(),
            "file_path": str(self._file_path) if self._file_path else None,
            "is_dirty": self._dirty,
        }
