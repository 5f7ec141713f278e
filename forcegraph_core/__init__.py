"""
Force Graph Core - Entity model, import/export, pinning and layout bridge.

This module provides the graph engine used by the backend API and the CLI,
keeping all invariant-bearing graph logic in one place.
"""

from .models import (
    # Defaults
    DEFAULT_NODE_COLOR,
    DEFAULT_LINK_COLOR,
    DEFAULT_TEXT_SIZE,
    DEFAULT_THICKNESS,
    # Core models
    Node,
    Link,
    GraphState,
    MutationResult,
    link_key,
    # Request models (for API)
    CreateNodeRequest,
    UpdateNodeRequest,
    CreateLinkRequest,
    UpdateLinkRequest,
    CoordinatesRequest,
    LoadTextRequest,
    FilePathRequest,
    SelectionRequest,
)
from .errors import (
    GraphError,
    GraphImportError,
    MalformedJSONError,
    InvalidShapeError,
    DanglingLinkError,
    DuplicateIdError,
    EmptyIdError,
    NotFoundError,
    NodeNotFoundError,
    LinkNotFoundError,
    InvalidAttributeError,
    InvalidPositionsFileError,
)
from .normalizer import normalize, parse_positions
from .serializer import serialize, to_json_dict
from .pinning import PinningController
from .simulation import ForceSimulation, SimulationBridge, LayoutProcess
from .validation import validate_graph, validation_summary, ValidationIssue, IssueSeverity

__all__ = [
    # Defaults
    "DEFAULT_NODE_COLOR",
    "DEFAULT_LINK_COLOR",
    "DEFAULT_TEXT_SIZE",
    "DEFAULT_THICKNESS",
    # Models
    "Node",
    "Link",
    "GraphState",
    "MutationResult",
    "link_key",
    # Request models
    "CreateNodeRequest",
    "UpdateNodeRequest",
    "CreateLinkRequest",
    "UpdateLinkRequest",
    "CoordinatesRequest",
    "LoadTextRequest",
    "FilePathRequest",
    "SelectionRequest",
    # Errors
    "GraphError",
    "GraphImportError",
    "MalformedJSONError",
    "InvalidShapeError",
    "DanglingLinkError",
    "DuplicateIdError",
    "EmptyIdError",
    "NotFoundError",
    "NodeNotFoundError",
    "LinkNotFoundError",
    "InvalidAttributeError",
    "InvalidPositionsFileError",
    # Import / export
    "normalize",
    "parse_positions",
    "serialize",
    "to_json_dict",
    # Pinning and layout
    "PinningController",
    "ForceSimulation",
    "SimulationBridge",
    "LayoutProcess",
    # Validation
    "validate_graph",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]
