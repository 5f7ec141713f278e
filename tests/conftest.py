from __future__ import annotations

import json
import random

import pytest

from forcegraph_backend.graph_manager import GraphManager


def graph_text(nodes: list, links: list) -> str:
    return json.dumps({"nodes": nodes, "links": links})


@pytest.fixture
def manager() -> GraphManager:
    return GraphManager(rng=random.Random(7))


@pytest.fixture
def triangle(manager: GraphManager) -> GraphManager:
    """A, B, C with links A-B and B-C."""
    manager.load_graph(graph_text(
        [
            {"id": "A", "group": 1, "x": 0, "y": 0, "z": 0},
            {"id": "B", "group": 2, "x": 10, "y": 0, "z": 0},
            {"id": "C", "group": 2, "x": 0, "y": 10, "z": 0},
        ],
        [
            {"source": "A", "target": "B"},
            {"source": "B", "target": "C", "color": "#FF0000", "thickness": 3},
        ],
    ))
    return manager
