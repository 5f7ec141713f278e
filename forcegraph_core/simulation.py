"""
Simulation bridge - the contract with the continuous layout process.

The layout process shares the Node objects held by the graph store and
writes `x/y/z` onto every free node each tick. It never touches ids,
links or pins, so structural edits and ticks never write the same fields.

After a structural change the bridge pushes the full node and link
collections and restarts convergence. After a pin change or a drag it
only restarts, since moving one node disturbs its neighbours.
"""

import logging
import math
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import GraphState, Link, MutationResult, Node

LOGGER = logging.getLogger(__name__)

DEFAULT_RESTART_ALPHA = 0.3

# Initial placement for nodes without coordinates (3D phyllotaxis)
INITIAL_RADIUS = 10.0
INITIAL_ANGLE_ROLL = math.pi * (3 - math.sqrt(5))
INITIAL_ANGLE_YAW = math.pi * 20 / (9 + math.sqrt(221))


class LayoutProcess(Protocol):
    """What the engine needs from a continuous layout."""

    alpha: float

    def set_graph(self, nodes: list["Node"], links: list["Link"]) -> None:
        ...

    def restart(self, alpha: float) -> None:
        ...

    def tick(self) -> bool:
        ...


class ForceSimulation:
    """
    A 3D force-directed layout.

    Simulates physical forces:
    - All nodes repel each other (like charged particles)
    - Linked nodes attract each other (like springs)
    - Everything is pulled gently toward the origin

    Forces are scaled by `alpha`, which decays every tick until it drops
    below `alpha_min` and the simulation comes to rest. Pinned nodes exert
    forces but are never moved.
    """

    def __init__(
        self,
        repulsion: float = 300.0,
        attraction: float = 0.1,
        link_distance: float = 30.0,
        center_strength: float = 0.01,
        velocity_decay: float = 0.4,
        alpha_decay: float = 0.0228,
        alpha_min: float = 0.001,
        min_distance: float = 1.0
    ):
        self.repulsion = repulsion
        self.attraction = attraction
        self.link_distance = link_distance
        self.center_strength = center_strength
        self.velocity_decay = velocity_decay
        self.alpha_decay = alpha_decay
        self.alpha_min = alpha_min
        self.min_distance = min_distance
        self.alpha = 1.0
        self._nodes: list["Node"] = []
        self._links: list["Link"] = []
        self._velocities: dict[str, list[float]] = {}

    @property
    def active(self) -> bool:
        return bool(self._nodes) and self.alpha >= self.alpha_min

    def set_graph(self, nodes: list["Node"], links: list["Link"]):
        """Take the node and link collections; nodes are used, never copied."""
        self._nodes = nodes
        self._links = links
        self._velocities = {
            n.id: self._velocities.get(n.id, [0.0, 0.0, 0.0]) for n in nodes
        }
        seed_positions(nodes)

    def restart(self, alpha: float = DEFAULT_RESTART_ALPHA):
        self.alpha = max(self.alpha, alpha)

    def tick(self) -> bool:
        """
        Advance one step.

        Returns:
            True while the simulation is still converging
        """
        if not self.active:
            return False

        self.alpha -= self.alpha * self.alpha_decay
        alpha = self.alpha
        forces: dict[str, list[float]] = {n.id: [0.0, 0.0, 0.0] for n in self._nodes}

        # Repulsion between all node pairs
        for i, n1 in enumerate(self._nodes):
            p1 = n1.position()
            for n2 in self._nodes[i + 1:]:
                p2 = n2.position()
                delta = [a - b for a, b in zip(p1, p2)]
                dist = max(self.min_distance, math.sqrt(sum(d * d for d in delta)))

                # Coulomb's law: F = k / r^2
                force = self.repulsion * alpha / (dist * dist)
                f1, f2 = forces[n1.id], forces[n2.id]
                for axis in range(3):
                    push = force * delta[axis] / dist
                    f1[axis] += push
                    f2[axis] -= push

        # Attraction along links (Hooke's law around the rest length)
        for link in self._links:
            source, target = link.source, link.target
            if source.id not in forces or target.id not in forces:
                continue
            ps, pt = source.position(), target.position()
            delta = [b - a for a, b in zip(ps, pt)]
            dist = max(self.min_distance, math.sqrt(sum(d * d for d in delta)))

            force = (dist - self.link_distance) * self.attraction * alpha
            fs, ft = forces[source.id], forces[target.id]
            for axis in range(3):
                pull = force * delta[axis] / dist
                fs[axis] += pull
                ft[axis] -= pull

        # Integrate free nodes only
        for node in self._nodes:
            if node.is_pinned:
                node.snap_to_pin()
                self._velocities[node.id] = [0.0, 0.0, 0.0]
                continue
            position = node.position()
            velocity = self._velocities.setdefault(node.id, [0.0, 0.0, 0.0])
            force = forces[node.id]
            for axis in range(3):
                centering = -position[axis] * self.center_strength * alpha
                velocity[axis] = (velocity[axis] + force[axis] + centering) * (1 - self.velocity_decay)
            node.move_to(*(p + v for p, v in zip(position, velocity)))

        return self.alpha >= self.alpha_min


def seed_positions(nodes: list["Node"]) -> list["Node"]:
    """
    Give coordinates to nodes that have none.

    Uses a deterministic spiral so repeated loads of the same file start
    from the same layout. Pinned nodes are placed on their pins and nodes
    with coordinates are left alone.
    """
    for i, node in enumerate(nodes):
        if node.is_pinned:
            node.snap_to_pin()
        if node.x is not None and node.y is not None and node.z is not None:
            continue
        radius = INITIAL_RADIUS * (0.5 + i) ** (1 / 3)
        roll = i * INITIAL_ANGLE_ROLL
        yaw = i * INITIAL_ANGLE_YAW
        node.move_to(
            node.x if node.x is not None else radius * math.sin(roll) * math.cos(yaw),
            node.y if node.y is not None else radius * math.cos(roll),
            node.z if node.z is not None else radius * math.sin(roll) * math.sin(yaw),
        )
    return nodes


class SimulationBridge:
    """
    Keeps a layout process in step with the graph store.

    Register `handle_change` as a store change callback; it re-seeds on
    structural changes and nudges on everything else that asks for it.
    """

    def __init__(self, process: LayoutProcess, restart_alpha: float = DEFAULT_RESTART_ALPHA):
        self.process = process
        self.restart_alpha = restart_alpha
        self.reseed_count = 0
        self.nudge_count = 0

    def reseed(self, state: "GraphState"):
        """Push the complete node and link collections and restart."""
        self.process.set_graph(state.nodes, state.links)
        self.reseed_count += 1
        self.nudge()

    def nudge(self):
        """Restart convergence without changing the graph (fire and forget)."""
        self.process.restart(self.restart_alpha)
        self.nudge_count += 1

    def handle_change(self, result: "MutationResult", state: "GraphState"):
        if result.structural:
            self.reseed(state)
        elif result.requires_resimulation:
            self.nudge()

    def tick(self, steps: int = 1) -> bool:
        """Run the layout for up to `steps` ticks; returns whether it is still active."""
        active = False
        for _ in range(steps):
            active = self.process.tick()
            if not active:
                break
        return active
