"""
Import normalization - turn graph and positions files into engine state.

A graph file is `{"nodes": [...], "links": [...]}`. Links may name their
endpoints by id or by an object carrying an `id` (the shape a layout
library leaves behind); both are resolved to the Node objects built from
the same file. Any problem rejects the whole file, so the caller's graph
is never partially replaced.
"""

import json
import logging
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from .errors import (
    DanglingLinkError,
    InvalidPositionsFileError,
    InvalidShapeError,
    MalformedJSONError,
)
from .models import GraphState, Link, LinkKey, Node

LOGGER = logging.getLogger(__name__)


class Position(BaseModel):
    """One entry of a positions file."""
    x: float
    y: float
    z: float

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


_positions_adapter = TypeAdapter(dict[str, Position])


def parse_json(raw_text: str | bytes) -> Any:
    """Parse JSON text, raising MalformedJSONError on failure."""
    try:
        return json.loads(raw_text)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise MalformedJSONError(f"Invalid JSON: {e}") from e


def normalize(raw_text: str | bytes) -> GraphState:
    """
    Parse a graph file into a fresh GraphState.

    Raises:
        MalformedJSONError: the text is not JSON
        InvalidShapeError: nodes/links missing or malformed
        DanglingLinkError: a link endpoint names no node in the file
    """
    return normalize_data(parse_json(raw_text))


def normalize_data(data: Any) -> GraphState:
    """Normalize an already-parsed graph document."""
    if not isinstance(data, dict):
        raise InvalidShapeError("Graph file must be a JSON object")

    raw_nodes = data.get("nodes")
    raw_links = data.get("links")
    if not isinstance(raw_nodes, list):
        raise InvalidShapeError("Graph file must contain a 'nodes' list")
    if not isinstance(raw_links, list):
        raise InvalidShapeError("Graph file must contain a 'links' list")

    nodes: list[Node] = []
    node_index: dict[str, Node] = {}
    for position, raw_node in enumerate(raw_nodes):
        node = _build_node(raw_node, position)
        if node.id in node_index:
            raise InvalidShapeError(f"Duplicate node id: {node.id}")
        node_index[node.id] = node
        nodes.append(node)

    links: list[Link] = []
    seen: set[LinkKey] = set()
    for position, raw_link in enumerate(raw_links):
        link = _build_link(raw_link, position, node_index)
        if link.key in seen:
            raise InvalidShapeError(
                f"Duplicate link between {link.source_id} and {link.target_id}"
            )
        seen.add(link.key)
        links.append(link)

    LOGGER.debug("Normalized graph with %d nodes and %d links", len(nodes), len(links))
    return GraphState(nodes=nodes, links=links)


def _build_node(raw_node: Any, position: int) -> Node:
    if not isinstance(raw_node, dict):
        raise InvalidShapeError(f"Node at index {position} must be an object")
    try:
        node = Node.model_validate(raw_node)
    except ValidationError as e:
        raise InvalidShapeError(f"Invalid node at index {position}: {e}") from e

    if node.has_partial_pin:
        raise InvalidShapeError(f"Node {node.id} must set all of fx/fy/fz or none")
    if node.is_pinned:
        node.snap_to_pin()
    return node


def _endpoint_id(value: Any) -> Any:
    """Reduce a link endpoint to a node id; objects carry theirs in `id`."""
    if isinstance(value, dict):
        value = value.get("id")
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _build_link(raw_link: Any, position: int, node_index: dict[str, Node]) -> Link:
    if not isinstance(raw_link, dict):
        raise InvalidShapeError(f"Link at index {position} must be an object")

    fields = dict(raw_link)
    endpoints = []
    for side in ("source", "target"):
        endpoint = _endpoint_id(fields.pop(side, None))
        if not isinstance(endpoint, str):
            raise InvalidShapeError(f"Link at index {position} has no valid {side}")
        node = node_index.get(endpoint)
        if node is None:
            raise DanglingLinkError(
                f"Link at index {position} references unknown {side} node: {endpoint}",
                node_id=endpoint,
            )
        endpoints.append(node)

    source, target = endpoints
    if source is target:
        raise InvalidShapeError(f"Link at index {position} connects {source.id} to itself")

    try:
        return Link.model_validate({**fields, "source": source, "target": target})
    except ValidationError as e:
        raise InvalidShapeError(f"Invalid link at index {position}: {e}") from e


def parse_positions(raw_text: str | bytes) -> dict[str, tuple[float, float, float]]:
    """
    Parse a positions file: `{"<nodeId>": {"x": .., "y": .., "z": ..}, ...}`.

    Raises:
        InvalidPositionsFileError: not JSON, or not an id -> {x, y, z} mapping
    """
    try:
        data = json.loads(raw_text)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise InvalidPositionsFileError(f"Invalid JSON: {e}") from e

    try:
        positions = _positions_adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidPositionsFileError(f"Invalid positions file: {e}") from e

    return {node_id: pos.as_tuple() for node_id, pos in positions.items()}
