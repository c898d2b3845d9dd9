"""
Equipment Status Tracker Backend - FastAPI Application

This is the main entry point for the tracker backend.
It provides:
- REST API for project operations (equipment, connections, groups,
  labels, layers, selection, clipboard, tools, undo/redo)
- WebSocket endpoint for real-time updates
- Autosave to a JSON file, reloaded on startup
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from equipment_core.analysis import summarize_project
from equipment_core.geometry import connection_path
from equipment_core.models import (
    AnchorPoint,
    ConnectionType,
    CreateConnectionRequest,
    CreateEquipmentRequest,
    CreateLabelRequest,
    CreateLayerRequest,
    DeltaRequest,
    EquipmentStatus,
    EquipmentType,
    GridRequest,
    MoveRequest,
    PasteRequest,
    ProjectInfoRequest,
    RectRequest,
    RectSelectRequest,
    RoutingMode,
    SelectionRequest,
    SetPositionRequest,
    UpdateEquipmentRequest,
    UpdateLabelRequest,
    get_position_options,
)
from equipment_core.tools import Tool
from equipment_core.validation import validate_project, validation_summary

from .config import Settings, get_settings
from .diagram_controller import DiagramController
from .logging_setup import init_logging
from .project_store import JsonProjectStore
from .websocket_manager import ws_manager


logger = logging.getLogger(__name__)

# Replaced in lifespan with one built from settings
controller = DiagramController()


def build_controller(settings: Settings) -> DiagramController:
    """Create a controller wired to the configured autosave file."""
    store = JsonProjectStore(settings.resolved_autosave_path) if settings.autosave_enabled else None
    built = DiagramController(
        store=store,
        grid_size=settings.grid_size,
        snap_to_grid=settings.snap_to_grid,
        max_undo=settings.max_undo,
    )
    if store is not None and settings.load_autosave_on_start:
        built.load_project()
    return built


# --- Async change notification ---
# Bridge between sync DiagramController callbacks and async WebSocket broadcasts

_change_event: Optional[asyncio.Event] = None


def on_project_change():
    """Callback for project changes - sets event for async handler."""
    if _change_event is not None:
        _change_event.set()


async def change_broadcaster(event: asyncio.Event):
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await event.wait()
        event.clear()

        await ws_manager.notify_project_updated(
            controller.project.project_name,
            can_undo=controller.can_undo,
            can_redo=controller.can_redo,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    global controller, _change_event

    settings = getattr(app.state, "settings", None) or get_settings()
    if getattr(app.state, "init_logging", True):
        init_logging(settings.log_level, settings.log_file)

    controller = build_controller(settings)
    logger.info(
        "Tracker ready: project '%s', autosave %s",
        controller.project.project_name,
        settings.resolved_autosave_path if settings.autosave_enabled else "disabled",
    )

    _change_event = asyncio.Event()
    controller.on_change(on_project_change)
    broadcaster_task = asyncio.create_task(change_broadcaster(_change_event))

    yield

    # Cleanup
    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass
    _change_event = None


# --- FastAPI App ---

app = FastAPI(
    title="Equipment Status Tracker API",
    description="Backend API for the mechanical/electrical equipment status tracker",
    version="1.0.0",
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _not_found(kind: str):
    raise HTTPException(status_code=404, detail=f"{kind} not found")


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Project State ---

@app.get("/api/project")
async def get_project():
    """Get the current project, selection, tool and undo state."""
    return controller.get_state()


@app.patch("/api/project")
async def update_project(request: ProjectInfoRequest):
    """Update project metadata."""
    if request.name is not None:
        controller.set_project_name(request.name)
    return {"success": True, "project_name": controller.project.project_name}


@app.post("/api/project/new")
async def new_project(name: str = Query(default="New Project")):
    """Start an empty project."""
    project = controller.new_project(name=name)
    return {"success": True, "project": project.to_json_dict()}


@app.post("/api/project/demo")
async def load_demo_project():
    """Replace the project with the demo mechanical room."""
    project = controller.load_demo()
    return {"success": True, "project": project.to_json_dict()}


@app.post("/api/project/load")
async def load_project():
    """Reload the project from the autosave file."""
    loaded = controller.load_project()
    return {"success": True, "loaded": loaded, "project": controller.project.to_json_dict()}


@app.post("/api/project/save")
async def save_project():
    """Save the project to the autosave file now."""
    if controller.store is None:
        raise HTTPException(status_code=400, detail="Autosave is disabled")
    try:
        controller.store.save(controller.project)
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to save: {e}")
    return {"success": True, "last_saved": controller.project.last_saved.isoformat() if controller.project.last_saved else None}


@app.get("/api/project/validate")
async def validate_current_project():
    """
    Validate the current project for structural issues.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = validate_project(controller.project)
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


@app.get("/api/project/summary")
async def summarize_current_project():
    """Get status counts, networks and abnormal equipment."""
    return {"success": True, "summary": summarize_project(controller.project).to_dict()}


@app.get("/api/project/history")
async def export_history():
    """Position change log, newest first."""
    return {"success": True, "rows": controller.history_rows()}


@app.get("/api/project/equipment-list")
async def export_equipment():
    """Equipment list with status and layer name."""
    return {"success": True, "rows": controller.equipment_rows()}


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last action."""
    description = controller.undo()
    if description is not None:
        return {"success": True, "undone": description}
    return {"success": False, "message": "Nothing to undo"}


@app.post("/api/redo")
async def redo():
    """Redo the last undone action."""
    description = controller.redo()
    if description is not None:
        return {"success": True, "redone": description}
    return {"success": False, "message": "Nothing to redo"}


# --- Equipment Operations ---

@app.post("/api/equipment")
async def create_equipment(request: CreateEquipmentRequest):
    """Place new equipment."""
    eq = controller.add_equipment(request.type, request.x, request.y)
    return {"success": True, "equipment": eq.to_json_dict()}


# Search endpoint MUST be before the parameterized route
@app.get("/api/equipment/search")
async def search_equipment(
    text: str = Query(default=""),
    status_filter: Optional[str] = Query(default=None, alias="filter")
):
    """Search equipment by name/type text and a status or type filter."""
    matches = controller.search_equipment(text, status_filter)
    return {"success": True, "equipment": [eq.to_json_dict() for eq in matches]}


@app.post("/api/equipment/move/begin")
async def begin_move(request: SelectionRequest):
    """Start a multi-item drag (the selection when no IDs are given)."""
    count = controller.begin_move(request.equipment_ids or None)
    return {"success": True, "tracking": count}


@app.post("/api/equipment/move/end")
async def end_move():
    """Finish a multi-item drag, recording one undo step if anything moved."""
    return {"success": True, "recorded": controller.end_move()}


@app.get("/api/equipment/{equipment_id}")
async def get_equipment(equipment_id: str):
    """Get a specific piece of equipment."""
    eq = controller.get_equipment(equipment_id)
    if eq is None:
        _not_found("Equipment")
    return {
        "success": True,
        "equipment": eq.to_json_dict(),
        "connections": [conn.to_json_dict() for conn in controller.connections_for(equipment_id)],
    }


@app.patch("/api/equipment/{equipment_id}")
async def update_equipment(equipment_id: str, request: UpdateEquipmentRequest):
    """Update descriptive fields."""
    eq = controller.update_equipment(
        equipment_id,
        name=request.name,
        notes=request.notes,
        is_loto=request.is_loto,
        grid_anchor=request.grid_anchor,
        connection_anchor=request.connection_anchor,
        layer_id=request.layer_id
    )
    if eq is None:
        _not_found("Equipment or layer")
    return {"success": True, "equipment": eq.to_json_dict()}


@app.delete("/api/equipment/{equipment_id}")
async def delete_equipment(equipment_id: str):
    """Delete equipment and its connections."""
    if controller.get_equipment(equipment_id) is None:
        _not_found("Equipment")
    if not controller.delete_equipment([equipment_id]):
        raise HTTPException(status_code=400, detail="Equipment is on a locked layer")
    return {"success": True}


def _require_equipment(equipment_id: str):
    eq = controller.get_equipment(equipment_id)
    if eq is None:
        _not_found("Equipment")
    return eq


@app.post("/api/equipment/{equipment_id}/position")
async def set_position(equipment_id: str, request: SetPositionRequest):
    """Change the current position (logged in the history)."""
    eq = _require_equipment(equipment_id)
    if controller.set_current_position(equipment_id, request.position) is None:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid position '{request.position}' for {eq.type.value}; "
                   f"expected one of {get_position_options(eq.type)}"
        )
    return {"success": True, "equipment": eq.to_json_dict()}


@app.post("/api/equipment/{equipment_id}/normal-position")
async def set_normal_position(equipment_id: str, request: SetPositionRequest):
    """Change the normal position."""
    eq = _require_equipment(equipment_id)
    if controller.set_normal_position(equipment_id, request.position) is None:
        raise HTTPException(status_code=400, detail=f"Invalid position '{request.position}' for {eq.type.value}")
    return {"success": True, "equipment": eq.to_json_dict()}


@app.post("/api/equipment/{equipment_id}/loto")
async def toggle_loto(equipment_id: str):
    """Toggle lock-out/tag-out."""
    eq = _require_equipment(equipment_id)
    controller.toggle_loto(equipment_id)
    return {"success": True, "equipment": eq.to_json_dict()}


@app.post("/api/equipment/{equipment_id}/move")
async def move_equipment(equipment_id: str, request: MoveRequest):
    """Move equipment; intermediate drag frames pass save_after=false."""
    _require_equipment(equipment_id)
    eq = controller.move_equipment(equipment_id, request.x, request.y, save_after=request.save_after)
    if eq is None:
        raise HTTPException(status_code=400, detail="Equipment is on a locked layer")
    return {"success": True, "equipment": eq.to_json_dict()}


@app.post("/api/equipment/{equipment_id}/resize")
async def resize_equipment(equipment_id: str, request: RectRequest, save_after: bool = Query(default=True)):
    """Resize equipment to a new rectangle."""
    _require_equipment(equipment_id)
    eq = controller.resize_equipment(
        equipment_id, request.x, request.y, request.width, request.height, save_after=save_after
    )
    if eq is None:
        raise HTTPException(status_code=400, detail="Equipment is on a locked layer")
    return {"success": True, "equipment": eq.to_json_dict()}


# --- Connection Operations ---

@app.post("/api/connections")
async def create_connection(request: CreateConnectionRequest):
    """Connect two pieces of equipment."""
    conn = controller.create_connection(
        request.source_equipment_id,
        request.target_equipment_id,
        request.type,
        request.source_anchor,
        request.target_anchor,
        request.routing
    )
    if conn is None:
        raise HTTPException(status_code=400, detail="Cannot connect: unknown equipment or self-connection")
    return {"success": True, "connection": conn.to_json_dict()}


class ConnectionClickRequest(BaseModel):
    equipment_id: str
    source_anchor: Optional[str] = None
    target_anchor: Optional[str] = None


@app.post("/api/connections/click")
async def connection_click(request: ConnectionClickRequest):
    """Feed an equipment click into the Connect tool."""
    if request.source_anchor is not None or request.target_anchor is not None:
        controller.set_pending_anchors(request.source_anchor, request.target_anchor)
    result = controller.handle_connection_click(request.equipment_id)
    return {
        "success": True,
        "handled": result.handled,
        "is_complete": result.is_complete,
        "source_id": result.source_id,
        "connection_id": result.connection_id,
    }


@app.get("/api/connections/{connection_id}")
async def get_connection(connection_id: str):
    """Get a connection and its drawn path."""
    conn = controller.get_connection(connection_id)
    if conn is None:
        _not_found("Connection")
    return {"success": True, "connection": conn.to_json_dict(), "path": connection_path(conn)}


class RoutingRequest(BaseModel):
    routing: RoutingMode


@app.patch("/api/connections/{connection_id}")
async def update_connection(connection_id: str, request: RoutingRequest):
    """Change a connection's routing mode."""
    conn = controller.set_connection_routing(connection_id, request.routing)
    if conn is None:
        _not_found("Connection")
    return {"success": True, "connection": conn.to_json_dict()}


@app.delete("/api/connections/{connection_id}")
async def delete_connection(connection_id: str):
    """Delete a connection."""
    if controller.get_connection(connection_id) is None:
        _not_found("Connection")
    if not controller.delete_connection(connection_id):
        raise HTTPException(status_code=400, detail="Connection is on a locked layer")
    return {"success": True}


# --- Group Operations ---

class GroupRequest(BaseModel):
    name: Optional[str] = None


@app.post("/api/groups")
async def create_group(request: GroupRequest):
    """Group the selected equipment."""
    group = controller.create_group(request.name)
    if group is None:
        raise HTTPException(status_code=400, detail="Select at least 2 equipment to group")
    return {"success": True, "group": group.to_json_dict()}


@app.patch("/api/groups/{group_id}")
async def rename_group(group_id: str, request: GroupRequest):
    """Rename a group."""
    group = controller.get_group(group_id)
    if group is None:
        _not_found("Group")
    if request.name is not None:
        controller.rename_group(group_id, request.name)
    return {"success": True, "group": group.to_json_dict()}


@app.post("/api/groups/{group_id}/move")
async def move_group(group_id: str, request: DeltaRequest, save_after: bool = Query(default=True)):
    """Move a group and its members by an offset."""
    if controller.get_group(group_id) is None:
        _not_found("Group")
    group = controller.move_group(group_id, request.dx, request.dy, save_after=save_after)
    if group is None:
        raise HTTPException(status_code=400, detail="Group is on a locked layer")
    return {"success": True, "group": group.to_json_dict()}


@app.post("/api/groups/{group_id}/resize")
async def resize_group(group_id: str, request: RectRequest, save_after: bool = Query(default=True)):
    """Set a group's rectangle."""
    if controller.get_group(group_id) is None:
        _not_found("Group")
    group = controller.resize_group(
        group_id, request.x, request.y, request.width, request.height, save_after=save_after
    )
    if group is None:
        raise HTTPException(status_code=400, detail="Group is on a locked layer")
    return {"success": True, "group": group.to_json_dict()}


@app.delete("/api/groups/{group_id}")
async def delete_group(group_id: str):
    """Delete a group (its equipment stays)."""
    if controller.get_group(group_id) is None:
        _not_found("Group")
    if not controller.delete_group(group_id):
        raise HTTPException(status_code=400, detail="Group is on a locked layer")
    return {"success": True}


# --- Label Operations ---

@app.post("/api/labels")
async def create_label(request: CreateLabelRequest):
    """Place a free text label."""
    label = controller.add_label(request.x, request.y, request.text)
    return {"success": True, "label": label.to_json_dict()}


@app.patch("/api/labels/{label_id}")
async def update_label(label_id: str, request: UpdateLabelRequest):
    """Update label text or style."""
    label = controller.update_label(label_id, text=request.text, font_size=request.font_size, color=request.color)
    if label is None:
        _not_found("Label")
    return {"success": True, "label": label.to_json_dict()}


@app.post("/api/labels/{label_id}/move")
async def move_label(label_id: str, request: MoveRequest):
    """Move a label."""
    if controller.get_label(label_id) is None:
        _not_found("Label")
    label = controller.move_label(label_id, request.x, request.y, save_after=request.save_after)
    if label is None:
        raise HTTPException(status_code=400, detail="Label is on a locked layer")
    return {"success": True, "label": label.to_json_dict()}


@app.delete("/api/labels/{label_id}")
async def delete_label(label_id: str):
    """Delete a label."""
    if controller.get_label(label_id) is None:
        _not_found("Label")
    if not controller.delete_label(label_id):
        raise HTTPException(status_code=400, detail="Label is on a locked layer")
    return {"success": True}


# --- Layer Operations ---

@app.post("/api/layers")
async def create_layer(request: CreateLayerRequest):
    """Add a layer."""
    layer = controller.add_layer(request.name)
    return {"success": True, "layer": layer.to_json_dict()}


@app.patch("/api/layers/{layer_id}")
async def rename_layer(layer_id: str, request: CreateLayerRequest):
    """Rename a layer."""
    layer = controller.rename_layer(layer_id, request.name)
    if layer is None:
        _not_found("Layer")
    return {"success": True, "layer": layer.to_json_dict()}


@app.delete("/api/layers/{layer_id}")
async def delete_layer(layer_id: str):
    """Delete a layer; its items move to the default layer."""
    if controller.get_layer(layer_id) is None:
        _not_found("Layer")
    if not controller.delete_layer(layer_id):
        raise HTTPException(status_code=400, detail="The default layer cannot be deleted")
    return {"success": True}


@app.post("/api/layers/{layer_id}/visibility")
async def toggle_layer_visibility(layer_id: str):
    """Show or hide a layer."""
    layer = controller.toggle_layer_visibility(layer_id)
    if layer is None:
        _not_found("Layer")
    return {"success": True, "layer": layer.to_json_dict()}


@app.post("/api/layers/{layer_id}/lock")
async def toggle_layer_lock(layer_id: str):
    """Lock or unlock a layer."""
    layer = controller.toggle_layer_lock(layer_id)
    if layer is None:
        _not_found("Layer")
    return {"success": True, "layer": layer.to_json_dict()}


@app.post("/api/layers/{layer_id}/activate")
async def activate_layer(layer_id: str):
    """Make a layer the target for new items."""
    if not controller.set_active_layer(layer_id):
        _not_found("Layer")
    return {"success": True, "active_layer_id": controller.active_layer_id}


# --- Selection ---

@app.post("/api/selection")
async def select_equipment(request: SelectionRequest):
    """Select equipment (mode: set, add or toggle)."""
    if request.mode not in ("set", "add", "toggle"):
        raise HTTPException(status_code=400, detail=f"Unknown selection mode: {request.mode}")
    if request.mode == "set":
        controller.clear_selection()
    mode = "add" if request.mode == "set" else request.mode
    for equipment_id in request.equipment_ids:
        controller.select_equipment(equipment_id, mode)
    return {"success": True, "selected": controller.selection.selected_ids}


@app.post("/api/selection/rect")
async def select_in_rect(request: RectSelectRequest):
    """Box-select equipment whose center lies in a rectangle."""
    added = controller.select_in_rect(request.x1, request.y1, request.x2, request.y2, additive=request.additive)
    return {"success": True, "added": added, "selected": controller.selection.selected_ids}


@app.post("/api/selection/all")
async def select_all():
    """Select every visible piece of equipment."""
    count = controller.select_all()
    return {"success": True, "count": count}


@app.post("/api/selection/clear")
async def clear_selection():
    """Clear every selection."""
    controller.clear_selection()
    return {"success": True}


@app.post("/api/selection/connection/{connection_id}")
async def select_connection(connection_id: str):
    if not controller.select_connection(connection_id):
        _not_found("Connection")
    return {"success": True}


@app.post("/api/selection/group/{group_id}")
async def select_group(group_id: str):
    if not controller.select_group(group_id):
        _not_found("Group")
    return {"success": True}


@app.post("/api/selection/label/{label_id}")
async def select_label(label_id: str):
    if not controller.select_label(label_id):
        _not_found("Label")
    return {"success": True}


@app.delete("/api/selection")
async def delete_selection():
    """Delete the selected equipment and their connections."""
    deleted = controller.delete_selection()
    return {"success": True, "deleted": deleted}


# --- Clipboard ---

@app.post("/api/clipboard/copy")
async def copy_selection():
    """Copy the selected equipment and the connections among them."""
    count = controller.copy_selection()
    return {"success": True, "copied": count}


@app.post("/api/clipboard/paste")
async def paste(request: PasteRequest):
    """Paste at an offset, or centered on the cursor when given."""
    cursor = None
    if request.cursor_x is not None and request.cursor_y is not None:
        cursor = (request.cursor_x, request.cursor_y)
    pasted = controller.paste_selection(request.offset_x, request.offset_y, cursor)
    return {"success": True, "equipment": [eq.to_json_dict() for eq in pasted]}


# --- Grid ---

@app.patch("/api/grid")
async def update_grid(request: GridRequest):
    """Update grid size and snapping."""
    try:
        if request.grid_size is not None:
            controller.set_grid_size(request.grid_size)
        if request.snap_to_grid is not None:
            controller.set_snap_to_grid(request.snap_to_grid)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "grid_size": controller.grid_size, "snap_to_grid": controller.snap_to_grid}


# --- Tools ---

class EditModeRequest(BaseModel):
    enabled: Optional[bool] = None  # None toggles


class ToolRequest(BaseModel):
    tool: Tool
    placement_type: Optional[EquipmentType] = None


class ConnectToolRequest(BaseModel):
    type: ConnectionType


class CanvasClickRequest(BaseModel):
    x: float
    y: float


@app.post("/api/tools/edit-mode")
async def set_edit_mode(request: EditModeRequest):
    """Enter, leave or toggle edit mode."""
    if request.enabled is None:
        controller.toggle_edit_mode()
    else:
        controller.set_edit_mode(request.enabled)
    return {"success": True, "tools": controller.tools.to_dict()}


@app.post("/api/tools/select")
async def select_tool(request: ToolRequest):
    """Activate the Select, Place or Label tool."""
    try:
        controller.select_tool(request.tool, request.placement_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "tools": controller.tools.to_dict()}


@app.post("/api/tools/connect")
async def select_connection_tool(request: ConnectToolRequest):
    """Activate the Connect tool for a connection type."""
    controller.select_connection_tool(request.type)
    return {"success": True, "tools": controller.tools.to_dict()}


@app.post("/api/canvas/click")
async def canvas_click(request: CanvasClickRequest):
    """Apply the Place or Label tool at a canvas point."""
    created = controller.handle_canvas_click(request.x, request.y)
    return {"success": True, "created": created.to_json_dict() if created is not None else None}


# --- Keyboard ---

class ShortcutRequest(BaseModel):
    key: str


@app.post("/api/keys/escape")
async def press_escape():
    """Cancel the innermost interactive state."""
    return {"success": True, "cancelled": controller.handle_escape()}


@app.post("/api/keys/delete")
async def press_delete():
    """Delete the current selection."""
    return {"success": True, "deleted": controller.handle_delete()}


@app.post("/api/keys/shortcut")
async def press_shortcut(request: ShortcutRequest):
    """Ctrl+C/V/A/Z/Y."""
    return {"success": True, "handled": controller.handle_shortcut(request.key)}


# --- Enums for Frontend ---

@app.get("/api/enums")
async def get_enums():
    """Get equipment types with their positions, and other enum values."""
    return {
        "equipment_types": {t.value: get_position_options(t) for t in EquipmentType},
        "statuses": [s.value for s in EquipmentStatus],
        "connection_types": [c.value for c in ConnectionType],
        "anchors": [a.value for a in AnchorPoint],
        "routing_modes": [r.value for r in RoutingMode],
        "tools": [t.value for t in Tool],
    }


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive project_updated events.
    """
    await ws_manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception:
        logger.exception("WebSocket connection failed")
        await ws_manager.disconnect(websocket)


# --- Run with uvicorn ---

def main():
    """Run the API server with settings from the environment."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
