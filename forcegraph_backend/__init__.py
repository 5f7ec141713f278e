"""Force graph backend: graph manager, HTTP/WebSocket API and CLI."""

from .graph_manager import GraphManager, SelectionState

__all__ = ["GraphManager", "SelectionState"]
