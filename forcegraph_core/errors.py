"""
Graph engine errors.

Every failing operation leaves the graph exactly as it was and raises one
of these. They subclass ValueError so callers that only care about bad
input can catch that.
"""


class GraphError(ValueError):
    """Base class for all engine errors."""
    kind = "GraphError"


# --- Import ---

class GraphImportError(GraphError):
    """The graph file could not be loaded."""
    kind = "ImportError"


class MalformedJSONError(GraphImportError):
    kind = "MalformedJSON"


class InvalidShapeError(GraphImportError):
    """The JSON parsed but is not a {nodes: [...], links: [...]} graph."""
    kind = "InvalidShape"


class DanglingLinkError(GraphImportError):
    """A link names a node that is not in the file."""
    kind = "DanglingLink"

    def __init__(self, message: str, node_id: str | None = None):
        super().__init__(message)
        self.node_id = node_id


# --- Store mutation ---

class DuplicateIdError(GraphError):
    kind = "DuplicateId"


class EmptyIdError(GraphError):
    kind = "EmptyId"


class NotFoundError(GraphError):
    kind = "NotFound"


class NodeNotFoundError(NotFoundError):
    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class LinkNotFoundError(NotFoundError):
    def __init__(self, source_id: str, target_id: str):
        super().__init__(f"Link not found: {source_id} - {target_id}")
        self.source_id = source_id
        self.target_id = target_id


class InvalidAttributeError(GraphError):
    """An attribute edit named an unknown field or carried a bad value."""
    kind = "InvalidAttribute"


# --- Pinning ---

class InvalidPositionsFileError(GraphError):
    kind = "InvalidPositionsFile"
