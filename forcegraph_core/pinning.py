"""
Position pinning - move node coordinates between the layout and the user.

A node is either free (the layout moves it) or pinned at `fx/fy/fz`.
Two mechanisms set pins:
- A positions file pins only the nodes it names
- The global toggle pins or frees every node at once

Dragging a node always pins that one node, whatever the global mode.

All functions modify nodes in-place.
"""

import logging
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from .models import Node

LOGGER = logging.getLogger(__name__)


def freeze_nodes(nodes: list["Node"]) -> list["Node"]:
    """Pin every node where it currently is."""
    for node in nodes:
        node.pin(*node.position())
    return nodes


def release_nodes(nodes: list["Node"]) -> list["Node"]:
    """
    Free every node.

    Coordinates are left as they were so released nodes resume moving
    from their last position.
    """
    for node in nodes:
        node.unpin()
    return nodes


def apply_positions(
    nodes: list["Node"],
    positions: Mapping[str, tuple[float, float, float]]
) -> list["Node"]:
    """
    Move and pin the nodes named in `positions`.

    Nodes not named are left untouched. Ids with no matching node are
    ignored.

    Returns:
        The nodes that were pinned
    """
    pinned = []
    for node in nodes:
        coords = positions.get(node.id)
        if coords is None:
            continue
        node.pin(*coords)
        pinned.append(node)
    return pinned


class PinningController:
    """
    Tracks the graph-wide pin mode and applies pin changes to node lists.

    `pinned` is the mode shown to the user. It is independent of which
    individual nodes carry `fx/fy/fz`: a partial positions import sets the
    mode to pinned while only pinning the nodes it names.
    """

    def __init__(self):
        self.pinned = False

    def reset(self, nodes: list["Node"] | None = None):
        """Set the mode for a freshly loaded graph."""
        self.pinned = bool(nodes) and all(n.is_pinned for n in nodes)

    def toggle(self, nodes: list["Node"]) -> bool:
        """Freeze every node if free, release every node if pinned."""
        if self.pinned:
            release_nodes(nodes)
        else:
            freeze_nodes(nodes)
        self.pinned = not self.pinned
        LOGGER.info("Global pinning %s for %d nodes", "on" if self.pinned else "off", len(nodes))
        return self.pinned

    def import_positions(
        self,
        nodes: list["Node"],
        positions: Mapping[str, tuple[float, float, float]]
    ) -> list["Node"]:
        pinned = apply_positions(nodes, positions)
        self.pinned = True
        unknown = len(positions) - len(pinned)
        if unknown:
            LOGGER.warning("Positions file names %d unknown node(s)", unknown)
        return pinned

    @staticmethod
    def pin_dragged(node: "Node", x: float, y: float, z: float) -> "Node":
        """Pin a dragged node at its drop point; the global mode is unchanged."""
        node.pin(x, y, z)
        return node
