"""
Export serialization - project the in-memory graph to the portable JSON file.

Output is accepted unchanged by `normalizer.normalize`. Only the portable
fields are written: pin state, link weights and pass-through extras stay
in memory.
"""

import json

from .models import GraphState, Link, Node


def export_node(node: Node) -> dict:
    x, y, z = node.position()
    return {
        "id": node.id,
        "color": node.color,
        "textSize": node.text_size,
        "group": node.group,
        "x": x,
        "y": y,
        "z": z,
    }


def export_link(link: Link) -> dict:
    return {
        "source": link.source_id,
        "target": link.target_id,
        "color": link.color,
        "thickness": link.thickness,
    }


def to_json_dict(state: GraphState) -> dict:
    """Convert a graph to the JSON-serializable file shape."""
    return {
        "nodes": [export_node(n) for n in state.nodes],
        "links": [export_link(l) for l in state.links],
    }


def serialize(state: GraphState, indent: int | None = 2) -> str:
    """Serialize a graph to the text of a graph file."""
    return json.dumps(to_json_dict(state), indent=indent)
