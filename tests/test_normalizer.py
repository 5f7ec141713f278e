"""Tests for importing graph and positions files."""

from __future__ import annotations

import json

import pytest

from forcegraph_core.errors import (
    DanglingLinkError,
    GraphImportError,
    InvalidPositionsFileError,
    InvalidShapeError,
    MalformedJSONError,
)
from forcegraph_core.normalizer import normalize, parse_positions

from .conftest import graph_text


def test_missing_display_fields_get_defaults() -> None:
    state = normalize('{"nodes":[{"id":"X"}],"links":[]}')
    (node,) = state.nodes
    assert node.id == "X"
    assert node.color == "#1A75FF"
    assert node.text_size == 6


def test_links_resolve_to_the_imported_nodes() -> None:
    state = normalize(graph_text(
        [{"id": "A"}, {"id": "B"}],
        [{"source": "A", "target": "B", "value": 4}],
    ))
    (link,) = state.links
    assert link.source is state.nodes[0]
    assert link.target is state.nodes[1]
    assert link.color == "#F0F0F0"
    assert link.thickness == 1
    assert link.value == 4


def test_object_endpoints_are_accepted() -> None:
    """Endpoints left as objects by a layout library resolve by their id."""
    state = normalize(graph_text(
        [{"id": "A"}, {"id": "B"}],
        [{"source": {"id": "A", "x": 3}, "target": {"id": "B"}}],
    ))
    (link,) = state.links
    assert link.source is state.nodes[0]
    assert link.target is state.nodes[1]


def test_numeric_ids_resolve() -> None:
    state = normalize(graph_text([{"id": 1}, {"id": 2}], [{"source": 1, "target": 2}]))
    assert [n.id for n in state.nodes] == ["1", "2"]
    assert state.links[0].key == frozenset({"1", "2"})


def test_extra_fields_pass_through() -> None:
    state = normalize(graph_text(
        [{"id": "A", "label": "alpha"}, {"id": "B"}],
        [{"source": "A", "target": "B", "kind": "cites"}],
    ))
    assert state.nodes[0].model_extra["label"] == "alpha"
    assert state.links[0].model_extra["kind"] == "cites"


def test_input_document_is_not_modified() -> None:
    data = {"nodes": [{"id": "A"}, {"id": "B"}], "links": [{"source": "A", "target": "B"}]}
    normalize(json.dumps(data))
    assert data["links"][0] == {"source": "A", "target": "B"}


def test_malformed_json() -> None:
    with pytest.raises(MalformedJSONError) as excinfo:
        normalize('{"nodes": [')
    assert isinstance(excinfo.value, GraphImportError)
    assert excinfo.value.kind == "MalformedJSON"


@pytest.mark.parametrize(
    "text",
    [
        "[]",
        '{"links": []}',
        '{"nodes": []}',
        '{"nodes": {}, "links": []}',
        '{"nodes": [], "links": "A-B"}',
        '{"nodes": ["A"], "links": []}',
        '{"nodes": [{"group": 1}], "links": []}',
        '{"nodes": [{"id": "A", "textSize": -1}], "links": []}',
    ],
)
def test_invalid_shape(text: str) -> None:
    with pytest.raises(InvalidShapeError):
        normalize(text)


def test_dangling_link_rejects_whole_file() -> None:
    with pytest.raises(DanglingLinkError) as excinfo:
        normalize('{"nodes":[{"id":"X"}],"links":[{"source":"X","target":"Y"}]}')
    assert excinfo.value.node_id == "Y"


def test_link_without_endpoint_is_invalid_shape() -> None:
    with pytest.raises(InvalidShapeError):
        normalize(graph_text([{"id": "A"}], [{"source": "A"}]))


def test_duplicate_node_ids_rejected() -> None:
    with pytest.raises(InvalidShapeError):
        normalize(graph_text([{"id": "A"}, {"id": "A"}], []))


def test_self_loop_in_file_rejected() -> None:
    with pytest.raises(InvalidShapeError):
        normalize(graph_text([{"id": "A"}], [{"source": "A", "target": "A"}]))


def test_reversed_duplicate_link_in_file_rejected() -> None:
    with pytest.raises(InvalidShapeError):
        normalize(graph_text(
            [{"id": "A"}, {"id": "B"}],
            [{"source": "A", "target": "B"}, {"source": "B", "target": "A"}],
        ))


def test_parse_positions() -> None:
    positions = parse_positions('{"A": {"x": 1, "y": 2.5, "z": -3}}')
    assert positions == {"A": (1.0, 2.5, -3.0)}


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[1, 2, 3]",
        '{"A": [1, 2, 3]}',
        '{"A": {"x": 1, "y": 2}}',
        '{"A": {"x": "left", "y": 2, "z": 3}}',
    ],
)
def test_invalid_positions_file(text: str) -> None:
    with pytest.raises(InvalidPositionsFileError):
        parse_positions(text)


def test_partial_pin_rejected() -> None:
    with pytest.raises(InvalidShapeError):
        normalize(graph_text([{"id": "A", "fx": 1}], []))


def test_pinned_node_starts_on_its_pin() -> None:
    state = normalize(graph_text([{"id": "A", "x": 0, "y": 0, "z": 0, "fx": 1, "fy": 2, "fz": 3}], []))
    assert state.nodes[0].position() == (1, 2, 3)
