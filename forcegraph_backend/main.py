"""
Force Graph Backend - FastAPI Application

This is the main entry point for the force graph backend.
It provides:
- REST API for every engine operation (graph load/save, nodes, links,
  attributes, pinning, drag)
- WebSocket endpoint for real-time updates and layout positions
- A background layout loop driving the force simulation
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from forcegraph_core import (
    CoordinatesRequest,
    CreateLinkRequest,
    CreateNodeRequest,
    FilePathRequest,
    GraphError,
    GraphState,
    LoadTextRequest,
    MutationResult,
    NotFoundError,
    SelectionRequest,
    UpdateLinkRequest,
    UpdateNodeRequest,
    link_key,
)
from forcegraph_core.models import link_to_dict, node_to_dict
from forcegraph_core.simulation import ForceSimulation, SimulationBridge
from forcegraph_core.validation import validation_summary

from .config import AppConfig, configure_logging, get_config
from .graph_manager import GraphManager
from .websocket_manager import WebSocketManager

LOGGER = logging.getLogger(__name__)

EXPORT_FILENAME = "graphData.json"

router = APIRouter(prefix="/api")


def get_manager(request: Request) -> GraphManager:
    return request.app.state.manager


def get_ws_manager(request: Request) -> WebSocketManager:
    return request.app.state.ws_manager


def _resolve_path(request: Request, file_path: str) -> Path:
    """Relative paths are taken from the configured graph directory."""
    path = Path(file_path).expanduser()
    if path.is_absolute():
        return path
    return request.app.state.config.graph_dir / path


def _mutation_response(result: MutationResult) -> dict:
    return {"success": True, **result.to_dict()}


# --- Async change notification ---
# Bridge between sync GraphManager callbacks and async WebSocket broadcasts

class ChangeNotifier:
    """Collects manager changes until the broadcaster picks them up."""

    def __init__(self):
        self.event = asyncio.Event()
        self.requires_resimulation = False

    def __call__(self, result: MutationResult, state: GraphState):
        self.requires_resimulation = self.requires_resimulation or result.requires_resimulation
        self.event.set()

    async def wait(self) -> bool:
        await self.event.wait()
        self.event.clear()
        pending, self.requires_resimulation = self.requires_resimulation, False
        return pending


async def change_broadcaster(notifier: ChangeNotifier, ws_manager: WebSocketManager):
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        requires_resimulation = await notifier.wait()
        await ws_manager.notify_graph_updated(requires_resimulation)


async def layout_runner(manager: GraphManager, ws_manager: WebSocketManager, interval: float):
    """Background task that ticks the layout and streams node positions."""
    while True:
        if manager.tick():
            await ws_manager.notify_positions([
                {"id": n.id, "x": n.x, "y": n.y, "z": n.z} for n in manager.state.nodes
            ])
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    config: AppConfig = app.state.config
    manager: GraphManager = app.state.manager
    ws_manager: WebSocketManager = app.state.ws_manager

    notifier = ChangeNotifier()
    manager.on_change(notifier)

    tasks = [asyncio.create_task(change_broadcaster(notifier, ws_manager))]
    if config.layout_enabled:
        tasks.append(asyncio.create_task(
            layout_runner(manager, ws_manager, config.layout_interval_seconds)
        ))

    yield

    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass


async def graph_error_handler(request: Request, exc: GraphError) -> JSONResponse:
    status_code = 404 if isinstance(exc, NotFoundError) else 400
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "kind": exc.kind})


# --- Health Check ---

@router.get("/health")
async def health_check(ws_manager: WebSocketManager = Depends(get_ws_manager)):
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Graph State ---

@router.get("/graph")
async def get_graph(manager: GraphManager = Depends(get_manager)):
    """Get the current graph state."""
    return manager.get_state()


@router.post("/graph/new")
async def new_graph(manager: GraphManager = Depends(get_manager)):
    """Discard the current graph and start an empty one."""
    return _mutation_response(manager.new_graph())


@router.post("/graph/load")
async def load_graph(request: LoadTextRequest, manager: GraphManager = Depends(get_manager)):
    """Replace the graph with the content of an uploaded graph file."""
    return _mutation_response(manager.load_graph(request.text))


@router.post("/graph/open")
async def open_graph(request: FilePathRequest, http_request: Request, manager: GraphManager = Depends(get_manager)):
    """Open a graph from a JSON file on the server."""
    if not request.file_path:
        raise HTTPException(status_code=400, detail="file_path is required")
    try:
        result = manager.open_graph(_resolve_path(http_request, request.file_path))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {**_mutation_response(result), "file_path": str(manager.file_path)}


@router.get("/graph/export")
async def export_graph(manager: GraphManager = Depends(get_manager)):
    """Download the graph as a graph file."""
    return Response(
        content=manager.save_graph(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/graph/save")
async def save_graph(request: FilePathRequest, http_request: Request, manager: GraphManager = Depends(get_manager)):
    """Save the graph to a JSON file on the server."""
    try:
        file_path = _resolve_path(http_request, request.file_path) if request.file_path else None
        path = manager.save_graph_file(file_path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save: {e}")
    return {"success": True, "file_path": str(path)}


@router.get("/graph/validate")
async def validate_current_graph(manager: GraphManager = Depends(get_manager)):
    """
    Validate the current graph against the store invariants.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = manager.validate()
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- Node Operations ---

@router.post("/nodes")
async def create_node(request: CreateNodeRequest, manager: GraphManager = Depends(get_manager)):
    """Create a new node."""
    return _mutation_response(manager.add_node(request.id, request.group))


@router.get("/nodes/{node_id}")
async def get_node(node_id: str, manager: GraphManager = Depends(get_manager)):
    """Get a specific node."""
    node = manager.get_node(node_id)
    if node:
        return {"success": True, "node": node_to_dict(node)}
    raise HTTPException(status_code=404, detail="Node not found")


@router.patch("/nodes/{node_id}")
async def update_node(node_id: str, request: UpdateNodeRequest,
                      manager: GraphManager = Depends(get_manager)):
    """Update a node's color and/or text size."""
    fields = request.model_dump(exclude_none=True)
    return _mutation_response(manager.update_node_attributes(node_id, **fields))


@router.delete("/nodes/{node_id}")
async def delete_node(node_id: str, manager: GraphManager = Depends(get_manager)):
    """Delete a node and its links."""
    return _mutation_response(manager.delete_node(node_id))


@router.post("/nodes/{node_id}/move")
async def move_node(node_id: str, request: CoordinatesRequest,
                    manager: GraphManager = Depends(get_manager)):
    """Move a node while it is being dragged."""
    return _mutation_response(manager.apply_coordinate_update(node_id, request.x, request.y, request.z))


@router.post("/nodes/{node_id}/drag-end")
async def drag_end(node_id: str, request: CoordinatesRequest,
                   manager: GraphManager = Depends(get_manager)):
    """Drop a dragged node, pinning it where it was released."""
    return _mutation_response(manager.on_node_drag_end(node_id, request.x, request.y, request.z))


# --- Link Operations ---

@router.post("/links")
async def create_link(request: CreateLinkRequest, manager: GraphManager = Depends(get_manager)):
    """Create a link; invalid or duplicate pairs are ignored."""
    result = manager.add_link(request.source, request.target, request.value)
    return {**_mutation_response(result), "created": result.link is not None}


@router.get("/links/{source}/{target}")
async def get_link(source: str, target: str, manager: GraphManager = Depends(get_manager)):
    """Get the link between two nodes, in either order."""
    link = manager.get_link((source, target))
    if link:
        return {"success": True, "link": link_to_dict(link)}
    raise HTTPException(status_code=404, detail="Link not found")


@router.patch("/links/{source}/{target}")
async def update_link(source: str, target: str, request: UpdateLinkRequest,
                      manager: GraphManager = Depends(get_manager)):
    """Update a link's color and/or thickness."""
    fields = request.model_dump(exclude_none=True)
    return _mutation_response(manager.update_link_attributes(link_key(source, target), **fields))


# --- Pinning ---

@router.post("/positions/load")
async def load_positions(request: LoadTextRequest, manager: GraphManager = Depends(get_manager)):
    """Pin the nodes named by an uploaded positions file."""
    return {**_mutation_response(manager.load_positions(request.text)), "pinned": manager.pinning.pinned}


@router.post("/positions/open")
async def open_positions(request: FilePathRequest, http_request: Request, manager: GraphManager = Depends(get_manager)):
    """Pin the nodes named by a positions file on the server."""
    if not request.file_path:
        raise HTTPException(status_code=400, detail="file_path is required")
    try:
        result = manager.open_positions(_resolve_path(http_request, request.file_path))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {**_mutation_response(result), "pinned": manager.pinning.pinned}


@router.post("/pinning/toggle")
async def toggle_pinning(manager: GraphManager = Depends(get_manager)):
    """Freeze every node in place, or release every node."""
    return {**_mutation_response(manager.toggle_global_pinning()), "pinned": manager.pinning.pinned}


# --- Selection ---

@router.post("/selection")
async def select(request: SelectionRequest, manager: GraphManager = Depends(get_manager)):
    """Select a node, a link, or clear the selection."""
    if request.source is not None and request.target is not None:
        manager.select_link((request.source, request.target))
    else:
        manager.select_node(request.node_id)
    return {"success": True, "selection": manager.selection.to_dict()}


# --- WebSocket ---

async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive graph_updated and positions events.
    """
    ws_manager: WebSocketManager = websocket.app.state.ws_manager
    await ws_manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)


# --- App Factory ---

def create_app(config: Optional[AppConfig] = None,
               manager: Optional[GraphManager] = None) -> FastAPI:
    """Build the application around a graph manager and its layout."""
    config = config or get_config()
    if manager is None:
        manager = GraphManager(spawn_range=config.spawn_range)
    if manager.simulation is None:
        manager.attach_simulation(SimulationBridge(ForceSimulation(), restart_alpha=config.restart_alpha))

    app = FastAPI(
        title="Force Graph API",
        description="Backend API for the 3D force graph editor",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.config = config
    app.state.manager = manager
    app.state.ws_manager = WebSocketManager()

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GraphError, graph_error_handler)
    app.include_router(router)
    app.add_api_websocket_route("/ws", websocket_endpoint)
    return app


def main():
    import uvicorn

    config = get_config()
    configure_logging(config)
    uvicorn.run(create_app(config), host=config.host, port=config.port)


# --- Run with uvicorn ---

if __name__ == "__main__":
    main()
