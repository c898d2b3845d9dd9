"""
Diagram Controller - Core logic for project state, undo/redo and autosave.

This module implements:
- Single project state management (one project open at a time)
- O(1) entity lookups via index dictionaries
- Command-based undo/redo with value snapshots captured at record time
- Geometry refresh (connection endpoints, group membership) and
  electrical propagation after every mutation
- Best-effort autosave through a ProjectStore
- Selection, clipboard, layer, tool and keyboard policies for the UI
"""

import copy
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from equipment_core.analysis import filter_equipment, status_counts
from equipment_core.geometry import (
    GROUP_SIDE_PADDING,
    GROUP_TITLE_PADDING,
    MIN_EQUIPMENT_SIZE,
    clamp_size,
    group_bounds,
    refresh_group_membership,
    snap_box,
    snap_to_grid,
    update_connection_endpoints,
    validate_grid_size,
)
from equipment_core.history import Command, CompoundCommand, UndoRedoStack
from equipment_core.models import (
    AUTO_ANCHOR,
    DEFAULT_LAYER_ID,
    MAX_HISTORY_ENTRIES,
    AnchorPoint,
    CanvasLabel,
    Connection,
    ConnectionType,
    Equipment,
    EquipmentGroup,
    EquipmentType,
    HistoryEntry,
    Layer,
    ProjectSnapshot,
    RoutingMode,
    generate_id,
    get_default_normal_position,
    get_default_size,
    get_position_options,
)
from equipment_core.propagation import EnergizationResult, recalculate
from equipment_core.selection import SelectionManager
from equipment_core.tools import ConnectionClickResult, Tool, ToolState

from .project_store import ProjectStore, create_demo_project


logger = logging.getLogger(__name__)

# Drag distance below which end_move records nothing
MOVE_EPSILON = 0.1

DEFAULT_GRID_SIZE = 20

# Snapshot collections that hold id-addressable entities
COLLECTIONS = ("equipment", "connections", "groups", "labels", "layers")


class DiagramController:
    """
    Owns the live project and applies every user operation to it.

    Each mutating operation:
    1. Mutates the model
    2. Records an undo command (value snapshots, looked up by id on replay)
    3. Refreshes derived geometry (connection endpoints, group membership)
    4. Re-runs electrical propagation
    5. Autosaves (failures are logged, never raised) and notifies listeners

    Drag gestures (move/resize with save_after=False) skip steps 2 and 5
    until the gesture ends.

    Unknown IDs make operations return None/False instead of raising.
    """

    def __init__(
        self,
        store: Optional[ProjectStore] = None,
        grid_size: int = DEFAULT_GRID_SIZE,
        snap_to_grid: bool = True,
        max_undo: int = 100
    ):
        self._project = ProjectSnapshot()
        self._store = store
        self._grid_size = validate_grid_size(grid_size)
        self._snap_to_grid = snap_to_grid
        self._undo_stack = UndoRedoStack(max_size=max_undo)
        self._active_layer_id = DEFAULT_LAYER_ID
        self._energization = EnergizationResult()
        self._on_change_callbacks: list[Callable[[], None]] = []

        self.selection = SelectionManager()
        self.tools = ToolState()

        # Start rectangles of move/resize gestures not tracked by begin_move
        self._gesture_starts: dict[str, dict[str, Any]] = {}

        # O(1) lookup indexes
        self._indexes: dict[str, dict[str, Any]] = {name: {} for name in COLLECTIONS}
        self._connections_by_equipment: dict[str, set[str]] = {}

        self._rebuild_indexes()
        self._refresh()

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current project state."""
        for name in COLLECTIONS:
            self._indexes[name] = {item.id: item for item in getattr(self._project, name)}

        self._connections_by_equipment.clear()
        for conn in self._project.connections:
            self._index_connection(conn)

    def _index_connection(self, conn: Connection):
        for equipment_id in (conn.source_equipment_id, conn.target_equipment_id):
            self._connections_by_equipment.setdefault(equipment_id, set()).add(conn.id)

    def _unindex_connection(self, conn: Connection):
        for equipment_id in (conn.source_equipment_id, conn.target_equipment_id):
            if equipment_id in self._connections_by_equipment:
                self._connections_by_equipment[equipment_id].discard(conn.id)

    def _insert(self, name: str, item: Any, index: Optional[int] = None):
        """Insert an entity into a collection (at `index` if given) and index it."""
        items = getattr(self._project, name)
        if index is None or index >= len(items):
            items.append(item)
        else:
            items.insert(index, item)
        self._indexes[name][item.id] = item
        if name == "connections":
            self._index_connection(item)

    def _remove(self, name: str, item_id: str) -> Optional[tuple[int, Any]]:
        """Remove an entity by id. Returns (former index, item) or None."""
        item = self._indexes[name].pop(item_id, None)
        if item is None:
            return None
        items = getattr(self._project, name)
        index = next(i for i, candidate in enumerate(items) if candidate.id == item_id)
        del items[index]
        if name == "connections":
            self._unindex_connection(item)
        return index, item

    # --- Undo command builders ---

    def _insertion_command(self, description: str, name: str, item: Any, index: Optional[int] = None) -> Command:
        """Command for an entity that was just inserted."""
        saved = item.model_copy(deep=True)

        def undo():
            self._remove(name, saved.id)

        def redo():
            self._insert(name, saved.model_copy(deep=True), index)

        return Command(description, undo, redo)

    def _removal_command(self, description: str, name: str, item: Any, index: int) -> Command:
        """Command for an entity that was just removed from `index`."""
        saved = item.model_copy(deep=True)

        def undo():
            self._insert(name, saved.model_copy(deep=True), index)

        def redo():
            self._remove(name, saved.id)

        return Command(description, undo, redo)

    def _field_command(
        self,
        description: str,
        name: str,
        item_id: str,
        before: dict[str, Any],
        after: dict[str, Any]
    ) -> Command:
        """Command that swaps field values on an entity looked up by id."""
        before = copy.deepcopy(before)
        after = copy.deepcopy(after)

        def apply(values: dict[str, Any]):
            item = self._indexes[name].get(item_id)
            if item is None:
                return
            for key, value in values.items():
                setattr(item, key, copy.deepcopy(value))

        return Command(description, lambda: apply(before), lambda: apply(after))

    def _set_fields(self, description: str, name: str, item: Any, values: dict[str, Any]) -> Optional[Command]:
        """Apply field values and return the command, or None if nothing changed."""
        before = {key: getattr(item, key) for key in values}
        if before == values:
            return None
        for key, value in values.items():
            setattr(item, key, value)
        return self._field_command(description, name, item.id, before, values)

    # --- Properties ---

    @property
    def project(self) -> ProjectSnapshot:
        """Get the live project (do not mutate directly)."""
        return self._project

    @property
    def store(self) -> Optional[ProjectStore]:
        return self._store

    @property
    def grid_size(self) -> int:
        return self._grid_size

    @property
    def snap_to_grid(self) -> bool:
        return self._snap_to_grid

    @property
    def active_layer_id(self) -> str:
        return self._active_layer_id

    @property
    def energization(self) -> EnergizationResult:
        """Result of the most recent propagation pass."""
        return self._energization

    @property
    def undo_stack(self) -> UndoRedoStack:
        return self._undo_stack

    @property
    def can_undo(self) -> bool:
        return self._undo_stack.can_undo

    @property
    def can_redo(self) -> bool:
        return self._undo_stack.can_redo

    def attach_store(self, store: Optional[ProjectStore]):
        """Replace (or remove, with None) the autosave target."""
        self._store = store

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[], None]):
        """Register a callback for project changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- Refresh pipeline ---

    def _refresh_geometry(self):
        """Recompute connection endpoints and group membership."""
        for conn in self._project.connections:
            update_connection_endpoints(
                conn,
                self._indexes["equipment"].get(conn.source_equipment_id),
                self._indexes["equipment"].get(conn.target_equipment_id),
            )
        refresh_group_membership(self._project.groups, self._project.equipment)

    def _sync_selection(self):
        """Drop selections of deleted entities and mirror is_selected flags."""
        equipment_index = self._indexes["equipment"]
        self.selection.remove_ids([i for i in self.selection.selected_ids if i not in equipment_index])
        if self.selection.connection_id not in self._indexes["connections"]:
            self.selection.connection_id = None
        if self.selection.group_id not in self._indexes["groups"]:
            self.selection.group_id = None
        if self.selection.label_id not in self._indexes["labels"]:
            self.selection.label_id = None

        selected = set(self.selection.selected_ids)
        for eq in self._project.equipment:
            eq.is_selected = eq.id in selected
        for conn in self._project.connections:
            conn.is_selected = conn.id == self.selection.connection_id
        for group in self._project.groups:
            group.is_selected = group.id == self.selection.group_id
        for label in self._project.labels:
            label.is_selected = label.id == self.selection.label_id

    def _refresh(self):
        # Undo can remove the active layer
        if self.get_layer(self._active_layer_id) is None:
            self._active_layer_id = DEFAULT_LAYER_ID
        self._refresh_geometry()
        self._energization = recalculate(self._project.equipment, self._project.connections)
        self._sync_selection()

    def _autosave(self):
        """Hand a snapshot to the store. Failures never undo the mutation."""
        if self._store is None:
            return
        try:
            self._store.save(self.snapshot())
        except Exception:
            logger.exception("Autosave failed")

    def _commit(self, command: Optional[Command] = None, save: bool = True):
        """Record, refresh, autosave and notify after a mutation."""
        if command is not None:
            self._undo_stack.record(command)
        self._refresh()
        if save:
            self._autosave()
        self._notify_change()

    # --- Lookups ---

    def get_equipment(self, equipment_id: str) -> Optional[Equipment]:
        """Get equipment by ID (O(1) lookup)."""
        return self._indexes["equipment"].get(equipment_id)

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        return self._indexes["connections"].get(connection_id)

    def get_group(self, group_id: str) -> Optional[EquipmentGroup]:
        return self._indexes["groups"].get(group_id)

    def get_label(self, label_id: str) -> Optional[CanvasLabel]:
        return self._indexes["labels"].get(label_id)

    def get_layer(self, layer_id: str) -> Optional[Layer]:
        return self._indexes["layers"].get(layer_id)

    def connections_for(self, equipment_id: str) -> list[Connection]:
        """Get all connections touching a piece of equipment, in diagram order."""
        ids = self._connections_by_equipment.get(equipment_id, set())
        return [conn for conn in self._project.connections if conn.id in ids]

    def is_locked(self, item: Any) -> bool:
        """True if the item's layer is locked."""
        layer = self.get_layer(item.layer_id)
        return layer is not None and layer.is_locked

    def is_visible(self, item: Any) -> bool:
        layer = self.get_layer(item.layer_id)
        return layer is None or layer.is_visible

    # --- Project Operations ---

    def snapshot(self) -> ProjectSnapshot:
        """Get a deep copy of the current project."""
        return self._project.model_copy(deep=True)

    def load_snapshot(self, snapshot: ProjectSnapshot, save: bool = False) -> ProjectSnapshot:
        """
        Replace the live project with a copy of `snapshot`.

        Clears undo history, selection and any connection in progress.
        """
        self._project = ProjectSnapshot.from_json_dict(snapshot.to_json_dict())
        self._undo_stack.clear()
        self.selection.clear_all()
        self.selection.end_move()
        self.tools.cancel_connection()
        self._gesture_starts.clear()
        self._active_layer_id = DEFAULT_LAYER_ID
        self._rebuild_indexes()
        self._commit(save=save)
        logger.info(
            "Loaded project '%s' (%d equipment, %d connections)",
            self._project.project_name,
            len(self._project.equipment),
            len(self._project.connections),
        )
        return self._project

    def new_project(self, name: str = "New Project") -> ProjectSnapshot:
        """Start an empty project."""
        return self.load_snapshot(ProjectSnapshot(project_name=name), save=True)

    def load_project(self) -> bool:
        """
        Load the project from the store.

        Returns:
            True if a saved project was loaded; False if there was none
            (the current project is replaced by an empty one)
        """
        snapshot = self._store.load() if self._store is not None else None
        if snapshot is None:
            logger.info("No saved project found, starting empty")
            self.load_snapshot(ProjectSnapshot())
            return False
        self.load_snapshot(snapshot)
        return True

    def load_demo(self) -> ProjectSnapshot:
        """Replace the project with the demo mechanical room."""
        return self.load_snapshot(create_demo_project(), save=True)

    def set_project_name(self, name: str) -> ProjectSnapshot:
        old_name = self._project.project_name
        if old_name == name:
            return self._project
        self._project.project_name = name
        self._commit(Command(
            "Rename project",
            lambda: setattr(self._project, "project_name", old_name),
            lambda: setattr(self._project, "project_name", name),
        ))
        return self._project

    # --- Equipment Operations ---

    def _snap_equipment(self, eq: Equipment, x: float, y: float, width: float, height: float) -> tuple[float, float]:
        return snap_box(x, y, width, height, eq.grid_anchor, self._grid_size, self._snap_to_grid)

    def add_equipment(self, equipment_type: EquipmentType, x: float, y: float) -> Equipment:
        """
        Place new equipment with its type's default size and position.

        The anchor point (Center by default) is snapped to the grid and the
        item goes on the active layer.
        """
        equipment_type = EquipmentType(equipment_type)
        width, height = get_default_size(equipment_type)
        default_position = get_default_normal_position(equipment_type)

        eq = Equipment(
            id=generate_id(),
            name=f"{equipment_type.value}-{len(self._project.equipment) + 1}",
            type=equipment_type,
            normal_position=default_position,
            current_position=default_position,
            width=width,
            height=height,
            layer_id=self._active_layer_id,
        )
        eq.x, eq.y = self._snap_equipment(eq, x, y, width, height)

        self._insert("equipment", eq)
        self._commit(self._insertion_command(f"Add {equipment_type.value}", "equipment", eq))
        logger.info("Added %s '%s' at (%s, %s)", equipment_type.value, eq.name, eq.x, eq.y)
        return eq

    def update_equipment(
        self,
        equipment_id: str,
        name: Optional[str] = None,
        notes: Optional[str] = None,
        is_loto: Optional[bool] = None,
        grid_anchor: Optional[AnchorPoint] = None,
        connection_anchor: Optional[AnchorPoint] = None,
        layer_id: Optional[str] = None
    ) -> Optional[Equipment]:
        """Update descriptive fields (only those provided)."""
        eq = self.get_equipment(equipment_id)
        if eq is None:
            return None
        if layer_id is not None and self.get_layer(layer_id) is None:
            logger.warning("Unknown layer %s for equipment %s", layer_id, equipment_id)
            return None

        provided = {
            "name": name,
            "notes": notes,
            "is_loto": is_loto,
            "grid_anchor": AnchorPoint(grid_anchor) if grid_anchor is not None else None,
            "connection_anchor": AnchorPoint(connection_anchor) if connection_anchor is not None else None,
            "layer_id": layer_id,
        }
        values = {key: value for key, value in provided.items() if value is not None}
        self._commit(self._set_fields(f"Edit {eq.name}", "equipment", eq, values))
        return eq

    def _canonical_position(self, eq: Equipment, position: str) -> Optional[str]:
        wanted = (position or "").strip().lower()
        for option in get_position_options(eq.type):
            if option.lower() == wanted:
                return option
        return None

    def set_current_position(self, equipment_id: str, position: str) -> Optional[Equipment]:
        """
        Change the current position and log it in the position history.

        Positions outside the type's option list are rejected (logged,
        nothing changes, returns None).
        """
        eq = self.get_equipment(equipment_id)
        if eq is None:
            return None

        canonical = self._canonical_position(eq, position)
        if canonical is None:
            logger.warning("Rejected position '%s' for %s %s", position, eq.type.value, eq.name)
            return None

        old_position = eq.current_position
        if old_position.lower() == canonical.lower():
            return eq

        now = datetime.now()
        command = self._set_fields(
            f"Set {eq.name} to {canonical}",
            "equipment",
            eq,
            {"current_position": canonical, "last_updated": now},
        )

        self._project.history.insert(0, HistoryEntry(
            equipment_id=eq.id,
            equipment_name=eq.name,
            from_position=old_position,
            to_position=canonical,
            timestamp=now,
        ))
        del self._project.history[MAX_HISTORY_ENTRIES:]

        self._commit(command)
        logger.info("%s: %s -> %s", eq.name, old_position, canonical)
        return eq

    def set_normal_position(self, equipment_id: str, position: str) -> Optional[Equipment]:
        """Change the designated normal position (validated like current)."""
        eq = self.get_equipment(equipment_id)
        if eq is None:
            return None

        canonical = self._canonical_position(eq, position)
        if canonical is None:
            logger.warning("Rejected normal position '%s' for %s %s", position, eq.type.value, eq.name)
            return None

        command = self._set_fields(
            f"Set {eq.name} normal to {canonical}",
            "equipment",
            eq,
            {"normal_position": canonical, "last_updated": datetime.now()},
        )
        self._commit(command)
        return eq

    def toggle_loto(self, equipment_id: str) -> Optional[Equipment]:
        """Flip the lock-out/tag-out flag."""
        eq = self.get_equipment(equipment_id)
        if eq is None:
            return None
        label = "Remove LOTO" if eq.is_loto else "Apply LOTO"
        self._commit(self._set_fields(f"{label} {eq.name}", "equipment", eq, {"is_loto": not eq.is_loto}))
        return eq

    def _gesture_before(self, key: str, current: dict[str, Any], save_after: bool) -> dict[str, Any]:
        """
        Track the start state of a multi-frame gesture.

        Intermediate frames (save_after=False) keep the first state seen;
        the final frame pops it.
        """
        if save_after:
            return self._gesture_starts.pop(key, current)
        return self._gesture_starts.setdefault(key, current)

    def move_equipment(self, equipment_id: str, x: float, y: float, save_after: bool = True) -> Optional[Equipment]:
        """
        Move equipment so its top-left is near (x, y), snapping its anchor.

        With save_after=False the move is an intermediate drag frame: no
        undo record and no autosave. Items tracked by begin_move are
        recorded by end_move instead.
        """
        eq = self.get_equipment(equipment_id)
        if eq is None or self.is_locked(eq):
            return None

        before = self._gesture_before(f"move:{eq.id}", {"x": eq.x, "y": eq.y}, save_after)
        eq.x, eq.y = self._snap_equipment(eq, x, y, eq.width, eq.height)

        command = None
        tracked = self.selection.get_original_position(eq.id) is not None
        if save_after and not tracked and before != {"x": eq.x, "y": eq.y}:
            command = self._field_command(f"Move {eq.name}", "equipment", eq.id, before, {"x": eq.x, "y": eq.y})

        self._commit(command, save=save_after)
        return eq

    def begin_move(self, equipment_ids: Optional[list[str]] = None) -> int:
        """
        Start a drag of several items (the selection by default).

        Returns:
            Number of items being tracked
        """
        ids = equipment_ids if equipment_ids is not None else self.selection.selected_ids
        items = [eq for eq in (self.get_equipment(i) for i in ids) if eq is not None and not self.is_locked(eq)]
        self.selection.begin_move(items)
        return len(items)

    def end_move(self) -> bool:
        """
        Finish a drag started with begin_move.

        Records one undo step for all moved items when any of them moved
        more than MOVE_EPSILON on either axis.

        Returns:
            True if an undo step was recorded
        """
        starts = self.selection.move_start_positions()
        self.selection.end_move()
        for equipment_id in starts:
            self._gesture_starts.pop(f"move:{equipment_id}", None)

        moved = []
        for equipment_id, (start_x, start_y) in starts.items():
            eq = self.get_equipment(equipment_id)
            if eq is None:
                continue
            moved.append((eq, start_x, start_y))

        has_moved = any(
            abs(eq.x - start_x) > MOVE_EPSILON or abs(eq.y - start_y) > MOVE_EPSILON
            for eq, start_x, start_y in moved
        )

        command = None
        if has_moved:
            command = CompoundCommand(f"Move {len(moved)} item(s)")
            for eq, start_x, start_y in moved:
                command.add(self._field_command(
                    f"Move {eq.name}", "equipment", eq.id,
                    {"x": start_x, "y": start_y}, {"x": eq.x, "y": eq.y},
                ))

        self._commit(command)
        return has_moved

    def resize_equipment(
        self,
        equipment_id: str,
        x: float,
        y: float,
        width: float,
        height: float,
        save_after: bool = True
    ) -> Optional[Equipment]:
        """
        Resize equipment to a new rectangle.

        Width and height are floored at MIN_EQUIPMENT_SIZE; the anchor of
        the new rectangle is snapped to the grid.
        """
        eq = self.get_equipment(equipment_id)
        if eq is None or self.is_locked(eq):
            return None

        current = {"x": eq.x, "y": eq.y, "width": eq.width, "height": eq.height}
        before = self._gesture_before(f"resize:{eq.id}", current, save_after)

        width, height = clamp_size(width, height, MIN_EQUIPMENT_SIZE)
        x, y = self._snap_equipment(eq, x, y, width, height)
        after = {"x": x, "y": y, "width": width, "height": height}
        for key, value in after.items():
            setattr(eq, key, value)

        command = None
        if save_after and before != after:
            command = self._field_command(f"Resize {eq.name}", "equipment", eq.id, before, after)

        self._commit(command, save=save_after)
        return eq

    def delete_equipment(self, equipment_ids: list[str]) -> int:
        """
        Delete equipment and every connection touching it.

        Items on locked layers and unknown IDs are skipped. Recorded as
        one undo step.

        Returns:
            Number of equipment deleted
        """
        targets = [
            eq for eq in (self.get_equipment(i) for i in dict.fromkeys(equipment_ids))
            if eq is not None and not self.is_locked(eq)
        ]
        if not targets:
            return 0

        command = CompoundCommand(f"Delete {len(targets)} item(s)")
        target_ids = {eq.id for eq in targets}

        # Connections first so undo restores equipment before its connections
        for conn in list(self._project.connections):
            if conn.source_equipment_id in target_ids or conn.target_equipment_id in target_ids:
                index, removed = self._remove("connections", conn.id)
                command.add(self._removal_command("Delete connection", "connections", removed, index))

        for eq in targets:
            index, removed = self._remove("equipment", eq.id)
            command.add(self._removal_command(f"Delete {eq.name}", "equipment", removed, index))

        self._commit(command)
        logger.info("Deleted %d equipment", len(targets))
        return len(targets)

    def delete_selection(self) -> int:
        """Delete the selected equipment, then clear every selection."""
        deleted = self.delete_equipment(self.selection.selected_ids)
        if deleted:
            self.clear_selection()
        return deleted

    # --- Connection Operations ---

    def create_connection(
        self,
        source_id: str,
        target_id: str,
        connection_type: ConnectionType = ConnectionType.PIPE,
        source_anchor: str = AUTO_ANCHOR,
        target_anchor: str = AUTO_ANCHOR,
        routing: RoutingMode = RoutingMode.STRAIGHT
    ) -> Optional[Connection]:
        """
        Connect two pieces of equipment.

        Self-connections and unknown equipment IDs are rejected (logged,
        returns None).
        """
        if source_id == target_id:
            logger.warning("Rejected self-connection on %s", source_id)
            return None

        source = self.get_equipment(source_id)
        target = self.get_equipment(target_id)
        if source is None or target is None:
            logger.warning("Rejected connection %s -> %s: equipment not found", source_id, target_id)
            return None

        conn = Connection(
            id=generate_id(),
            source_equipment_id=source_id,
            target_equipment_id=target_id,
            type=ConnectionType(connection_type),
            source_anchor=source_anchor or AUTO_ANCHOR,
            target_anchor=target_anchor or AUTO_ANCHOR,
            routing=RoutingMode(routing),
            layer_id=self._active_layer_id,
        )
        update_connection_endpoints(conn, source, target)

        self._insert("connections", conn)
        self._commit(self._insertion_command(f"Add {conn.type.value} connection", "connections", conn))
        logger.info("Connected %s -> %s (%s)", source.name, target.name, conn.type.value)
        return conn

    def delete_connection(self, connection_id: str) -> bool:
        conn = self.get_connection(connection_id)
        if conn is None or self.is_locked(conn):
            return False

        index, removed = self._remove("connections", connection_id)
        self._commit(self._removal_command("Delete connection", "connections", removed, index))
        return True

    def set_connection_routing(self, connection_id: str, routing: RoutingMode) -> Optional[Connection]:
        conn = self.get_connection(connection_id)
        if conn is None:
            return None
        routing = RoutingMode(routing)
        self._commit(self._set_fields(f"Set routing {routing.value}", "connections", conn, {"routing": routing}))
        return conn

    def set_pending_anchors(self, source_anchor: Optional[str] = None, target_anchor: Optional[str] = None):
        """Choose the anchors for the connection being drawn. None leaves a side as is."""
        if source_anchor is not None:
            self.tools.set_pending_source_anchor(source_anchor)
        if target_anchor is not None:
            self.tools.set_pending_target_anchor(target_anchor)
        self._notify_change()

    def handle_connection_click(self, equipment_id: str) -> ConnectionClickResult:
        """
        Feed a click on equipment into the connection-draw session.

        The second click on different equipment creates the connection;
        its id is returned in the result.
        """
        eq = self.get_equipment(equipment_id)
        if eq is None:
            return ConnectionClickResult.not_handled()

        result = self.tools.handle_connection_click(eq)
        if result.is_complete:
            conn = self.create_connection(
                result.source_id,
                result.target_id,
                result.connection_type,
                result.source_anchor,
                result.target_anchor,
            )
            result.connection_id = conn.id if conn else None
        else:
            self._notify_change()
        return result

    # --- Group Operations ---

    def create_group(self, name: Optional[str] = None) -> Optional[EquipmentGroup]:
        """
        Draw a group around the selected equipment (at least two).

        The rectangle gets side/bottom padding and a taller top strip for
        the title; membership then follows geometry.
        """
        selected = [eq for eq in (self.get_equipment(i) for i in self.selection.selected_ids) if eq is not None]
        if len(selected) < 2:
            return None

        x, y, width, height = group_bounds(selected, GROUP_SIDE_PADDING, GROUP_TITLE_PADDING)
        group = EquipmentGroup(
            id=generate_id(),
            name=name or f"Group {len(self._project.groups) + 1}",
            x=x,
            y=y,
            width=width,
            height=height,
            equipment_ids=[eq.id for eq in selected],
            layer_id=self._active_layer_id,
        )

        self._insert("groups", group)
        self._commit(self._insertion_command("Create group", "groups", group))
        return group

    def _group_geometry_command(
        self,
        description: str,
        group: EquipmentGroup,
        group_before: dict[str, Any],
        members_before: dict[str, dict[str, float]]
    ) -> Optional[Command]:
        group_after = {key: getattr(group, key) for key in group_before}
        if group_before == group_after:
            return None
        command = CompoundCommand(description)
        command.add(self._field_command(description, "groups", group.id, group_before, group_after))
        for equipment_id, before in members_before.items():
            eq = self.get_equipment(equipment_id)
            if eq is not None:
                command.add(self._field_command(
                    f"Move {eq.name}", "equipment", eq.id, before, {"x": eq.x, "y": eq.y}
                ))
        return command

    def _shift_members(self, group: EquipmentGroup, dx: float, dy: float) -> dict[str, dict[str, float]]:
        """Move the group's (unlocked) members. Returns their prior positions."""
        before = {}
        for equipment_id in group.equipment_ids:
            eq = self.get_equipment(equipment_id)
            if eq is None or self.is_locked(eq):
                continue
            before[eq.id] = {"x": eq.x, "y": eq.y}
            eq.x += dx
            eq.y += dy
        return before

    @staticmethod
    def _merge_member_starts(start: dict[str, Any], members: dict[str, dict[str, float]]):
        """Keep the first-seen position of equipment that joins a group mid-gesture."""
        for equipment_id, position in members.items():
            start["members"].setdefault(equipment_id, position)

    def move_group(self, group_id: str, dx: float, dy: float, save_after: bool = True) -> Optional[EquipmentGroup]:
        """Move a group and its members by an offset."""
        group = self.get_group(group_id)
        if group is None or self.is_locked(group):
            return None

        key = f"move-group:{group.id}"
        group_start = {"x": group.x, "y": group.y}
        members_start = {i: {"x": e.x, "y": e.y} for i, e in
                         ((i, self.get_equipment(i)) for i in group.equipment_ids) if e is not None}
        start = self._gesture_before(key, {"group": group_start, "members": members_start}, save_after)
        self._merge_member_starts(start, members_start)

        group.x += dx
        group.y += dy
        self._shift_members(group, dx, dy)

        command = None
        if save_after:
            command = self._group_geometry_command(f"Move {group.name}", group, start["group"], start["members"])
        self._commit(command, save=save_after)
        return group

    def resize_group(
        self,
        group_id: str,
        x: float,
        y: float,
        width: float,
        height: float,
        save_after: bool = True
    ) -> Optional[EquipmentGroup]:
        """
        Set a group's rectangle. When its top-left moves, members move with it;
        membership is then recomputed from the new bounds.
        """
        group = self.get_group(group_id)
        if group is None or self.is_locked(group):
            return None

        key = f"resize-group:{group.id}"
        group_start = {"x": group.x, "y": group.y, "width": group.width, "height": group.height}
        members_start = {i: {"x": e.x, "y": e.y} for i, e in
                         ((i, self.get_equipment(i)) for i in group.equipment_ids) if e is not None}
        start = self._gesture_before(key, {"group": group_start, "members": members_start}, save_after)
        self._merge_member_starts(start, members_start)

        dx, dy = x - group.x, y - group.y
        width, height = clamp_size(width, height, MIN_EQUIPMENT_SIZE)
        group.x, group.y, group.width, group.height = x, y, width, height
        if dx or dy:
            self._shift_members(group, dx, dy)

        command = None
        if save_after:
            command = self._group_geometry_command(f"Resize {group.name}", group, start["group"], start["members"])
        self._commit(command, save=save_after)
        return group

    def rename_group(self, group_id: str, name: str) -> Optional[EquipmentGroup]:
        group = self.get_group(group_id)
        if group is None:
            return None
        self._commit(self._set_fields("Rename group", "groups", group, {"name": name}))
        return group

    def delete_group(self, group_id: str) -> bool:
        """Delete a group rectangle (its equipment stays)."""
        group = self.get_group(group_id)
        if group is None or self.is_locked(group):
            return False
        index, removed = self._remove("groups", group_id)
        self._commit(self._removal_command("Delete group", "groups", removed, index))
        return True

    # --- Label Operations ---

    def add_label(self, x: float, y: float, text: str = "Label") -> CanvasLabel:
        x, y = snap_to_grid(x, y, self._grid_size, self._snap_to_grid)
        label = CanvasLabel(id=generate_id(), text=text, x=x, y=y, layer_id=self._active_layer_id)
        self._insert("labels", label)
        self._commit(self._insertion_command("Add label", "labels", label))
        return label

    def update_label(
        self,
        label_id: str,
        text: Optional[str] = None,
        font_size: Optional[float] = None,
        color: Optional[str] = None
    ) -> Optional[CanvasLabel]:
        label = self.get_label(label_id)
        if label is None:
            return None
        provided = {"text": text, "font_size": font_size, "color": color}
        values = {key: value for key, value in provided.items() if value is not None}
        self._commit(self._set_fields("Edit label", "labels", label, values))
        return label

    def move_label(self, label_id: str, x: float, y: float, save_after: bool = True) -> Optional[CanvasLabel]:
        label = self.get_label(label_id)
        if label is None or self.is_locked(label):
            return None

        before = self._gesture_before(f"label:{label.id}", {"x": label.x, "y": label.y}, save_after)
        label.x, label.y = snap_to_grid(x, y, self._grid_size, self._snap_to_grid)

        command = None
        after = {"x": label.x, "y": label.y}
        if save_after and before != after:
            command = self._field_command("Move label", "labels", label.id, before, after)
        self._commit(command, save=save_after)
        return label

    def delete_label(self, label_id: str) -> bool:
        label = self.get_label(label_id)
        if label is None or self.is_locked(label):
            return False
        index, removed = self._remove("labels", label_id)
        self._commit(self._removal_command("Delete label", "labels", removed, index))
        return True

    # --- Layer Operations ---

    def add_layer(self, name: str = "") -> Layer:
        order = max((layer.order for layer in self._project.layers), default=-1) + 1
        layer = Layer(id=generate_id(), name=name or f"Layer {len(self._project.layers) + 1}", order=order)
        self._insert("layers", layer)
        self._commit(self._insertion_command(f"Add layer {layer.name}", "layers", layer))
        return layer

    def delete_layer(self, layer_id: str) -> bool:
        """
        Delete a layer, moving everything on it to the default layer.

        The default layer cannot be deleted.
        """
        if layer_id == DEFAULT_LAYER_ID:
            return False
        layer = self.get_layer(layer_id)
        if layer is None:
            return False

        command = CompoundCommand(f"Delete layer {layer.name}")
        for name in ("equipment", "connections", "groups", "labels"):
            for item in getattr(self._project, name):
                if item.layer_id == layer_id:
                    command.add(self._set_fields("Reassign layer", name, item, {"layer_id": DEFAULT_LAYER_ID}))

        index, removed = self._remove("layers", layer_id)
        command.add(self._removal_command("Delete layer", "layers", removed, index))

        if self._active_layer_id == layer_id:
            self._active_layer_id = DEFAULT_LAYER_ID
        self._commit(command)
        return True

    def rename_layer(self, layer_id: str, name: str) -> Optional[Layer]:
        layer = self.get_layer(layer_id)
        if layer is None:
            return None
        self._commit(self._set_fields("Rename layer", "layers", layer, {"name": name}))
        return layer

    def toggle_layer_visibility(self, layer_id: str) -> Optional[Layer]:
        """Show/hide a layer. View state only: not an undo step."""
        layer = self.get_layer(layer_id)
        if layer is None:
            return None
        layer.is_visible = not layer.is_visible
        self._commit()
        return layer

    def toggle_layer_lock(self, layer_id: str) -> Optional[Layer]:
        """Lock/unlock a layer. View state only: not an undo step."""
        layer = self.get_layer(layer_id)
        if layer is None:
            return None
        layer.is_locked = not layer.is_locked
        self._commit()
        return layer

    def set_active_layer(self, layer_id: str) -> bool:
        """Choose the layer new items are placed on."""
        if self.get_layer(layer_id) is None:
            return False
        self._active_layer_id = layer_id
        self._notify_change()
        return True

    def visible_equipment(self) -> list[Equipment]:
        return [eq for eq in self._project.equipment if self.is_visible(eq)]

    def visible_connections(self) -> list[Connection]:
        """Connections on visible layers whose both ends are visible."""
        visible_ids = {eq.id for eq in self.visible_equipment()}
        return [
            conn for conn in self._project.connections
            if self.is_visible(conn)
            and conn.source_equipment_id in visible_ids
            and conn.target_equipment_id in visible_ids
        ]

    def visible_groups(self) -> list[EquipmentGroup]:
        return [group for group in self._project.groups if self.is_visible(group)]

    def visible_labels(self) -> list[CanvasLabel]:
        return [label for label in self._project.labels if self.is_visible(label)]

    # --- Selection Policy ---

    def select_equipment(self, equipment_id: str, mode: str = "set") -> bool:
        """
        Select equipment ("set", "add" or "toggle").

        Equipment selection clears any connection/group/label selection.
        """
        if self.get_equipment(equipment_id) is None:
            return False

        self.selection.connection_id = None
        self.selection.group_id = None
        self.selection.label_id = None
        if mode == "add":
            self.selection.add(equipment_id)
        elif mode == "toggle":
            self.selection.toggle(equipment_id)
        else:
            self.selection.set_single(equipment_id)

        self._sync_selection()
        self._notify_change()
        return True

    def _select_single(self, slot: str, item_id: str) -> bool:
        index_name = {"connection_id": "connections", "group_id": "groups", "label_id": "labels"}[slot]
        if item_id not in self._indexes[index_name]:
            return False
        self.selection.clear_all()
        setattr(self.selection, slot, item_id)
        self._sync_selection()
        self._notify_change()
        return True

    def select_connection(self, connection_id: str) -> bool:
        return self._select_single("connection_id", connection_id)

    def select_group(self, group_id: str) -> bool:
        return self._select_single("group_id", group_id)

    def select_label(self, label_id: str) -> bool:
        return self._select_single("label_id", label_id)

    def select_all(self) -> int:
        """Select every visible piece of equipment."""
        self.selection.clear_all()
        self.selection.select_all(eq.id for eq in self.visible_equipment())
        self._sync_selection()
        self._notify_change()
        return self.selection.count

    def select_in_rect(self, x1: float, y1: float, x2: float, y2: float, additive: bool = False) -> list[str]:
        """Box-select visible equipment whose center lies in the rectangle."""
        if not additive:
            self.selection.clear_all()
        added = self.selection.select_in_rect(self.visible_equipment(), x1, y1, x2, y2)
        self._sync_selection()
        self._notify_change()
        return added

    def clear_selection(self):
        self.selection.clear_all()
        self._sync_selection()
        self._notify_change()

    def selected_equipment(self) -> list[Equipment]:
        return [eq for eq in (self.get_equipment(i) for i in self.selection.selected_ids) if eq is not None]

    # --- Clipboard ---

    def copy_selection(self) -> int:
        """Copy the selected equipment and the connections among them."""
        return self.selection.copy(self.selected_equipment(), self._project.connections)

    def paste_selection(
        self,
        offset_x: float = 50,
        offset_y: float = 50,
        cursor: Optional[tuple[float, float]] = None
    ) -> list[Equipment]:
        """
        Paste the clipboard as new, selected equipment.

        Returns:
            The pasted equipment (empty if the clipboard is empty)
        """
        result = self.selection.build_paste(offset_x, offset_y, cursor)
        if result.is_empty:
            return []

        command = CompoundCommand("Paste")
        for eq in result.equipment:
            eq.x, eq.y = self._snap_equipment(eq, eq.x, eq.y, eq.width, eq.height)
            if self.get_layer(eq.layer_id) is None:
                eq.layer_id = self._active_layer_id
            self._insert("equipment", eq)
            command.add(self._insertion_command(f"Paste {eq.name}", "equipment", eq))
        for conn in result.connections:
            if self.get_layer(conn.layer_id) is None:
                conn.layer_id = self._active_layer_id
            self._insert("connections", conn)
            command.add(self._insertion_command("Paste connection", "connections", conn))

        self.selection.clear_all()
        for eq in result.equipment:
            self.selection.add(eq.id)

        self._commit(command)
        logger.info("Pasted %d equipment, %d connections", len(result.equipment), len(result.connections))
        return result.equipment

    # --- Grid ---

    def set_grid_size(self, grid_size: int) -> int:
        """
        Set the snapping grid.

        Raises:
            ValueError: If grid_size is below 1 (nothing changes)
        """
        self._grid_size = validate_grid_size(grid_size)
        self._notify_change()
        return self._grid_size

    def set_snap_to_grid(self, enabled: bool):
        self._snap_to_grid = enabled
        self._notify_change()

    # --- Undo/Redo ---

    def undo(self) -> Optional[str]:
        """Undo the last action. Returns its description, or None."""
        command = self._undo_stack.undo()
        if command is None:
            return None
        self._commit()
        logger.info("Undo: %s", command.description)
        return command.description

    def redo(self) -> Optional[str]:
        """Redo the last undone action. Returns its description, or None."""
        command = self._undo_stack.redo()
        if command is None:
            return None
        self._commit()
        logger.info("Redo: %s", command.description)
        return command.description

    # --- Tools ---

    def set_edit_mode(self, enabled: bool):
        self.tools.set_edit_mode(enabled)
        self._notify_change()

    def toggle_edit_mode(self) -> bool:
        enabled = self.tools.toggle_edit_mode()
        self._notify_change()
        return enabled

    def select_tool(self, tool: Tool, placement_type: Optional[EquipmentType] = None):
        self.tools.select_tool(tool, placement_type)
        self._notify_change()

    def select_connection_tool(self, connection_type: ConnectionType):
        self.tools.select_connection_tool(connection_type)
        self._notify_change()

    def handle_canvas_click(self, x: float, y: float) -> Optional[Any]:
        """
        Apply the active placement tool at a canvas point.

        Returns:
            The new Equipment or CanvasLabel, or None if no placement
            tool is active (or not in edit mode)
        """
        if not self.tools.is_edit_mode:
            return None
        if self.tools.tool == Tool.PLACE:
            return self.add_equipment(self.tools.placement_type, x, y)
        if self.tools.tool == Tool.LABEL:
            return self.add_label(x, y)
        return None

    # --- Keyboard ---

    def handle_escape(self) -> Optional[str]:
        """
        Cancel the innermost interactive state.

        Priority: connection in progress, connection selection, group
        selection, label selection, equipment selection, active tool.

        Returns:
            What was cancelled, or None if there was nothing to cancel
        """
        cancelled = None
        if self.tools.is_creating_connection:
            self.tools.cancel_connection()
            cancelled = "connection_draw"
        elif self.selection.connection_id is not None:
            self.selection.connection_id = None
            cancelled = "connection"
        elif self.selection.group_id is not None:
            self.selection.group_id = None
            cancelled = "group"
        elif self.selection.label_id is not None:
            self.selection.label_id = None
            cancelled = "label"
        elif self.selection.has_selection:
            self.selection.clear()
            cancelled = "equipment"
        elif self.tools.has_active_tool:
            self.tools.reset_tool()
            cancelled = "tool"

        if cancelled is not None:
            self._sync_selection()
            self._notify_change()
        return cancelled

    def handle_shortcut(self, key: str) -> bool:
        """
        Run a Ctrl+<key> shortcut (c, v, a, z, y). Edit mode only.

        Returns:
            True if the key was handled
        """
        if not self.tools.is_edit_mode:
            return False

        key = (key or "").lower()
        if key == "c":
            self.copy_selection()
        elif key == "v":
            self.paste_selection()
        elif key == "a":
            self.select_all()
        elif key == "z":
            self.undo()
        elif key == "y":
            self.redo()
        else:
            return False
        return True

    def handle_delete(self) -> Optional[str]:
        """
        Delete the current selection.

        Priority: equipment, then connection, then group, then label.

        Returns:
            What kind of item was deleted, or None
        """
        if not self.tools.is_edit_mode:
            return None
        if self.selection.has_selection:
            return "equipment" if self.delete_selection() else None
        if self.selection.connection_id is not None:
            return "connection" if self.delete_connection(self.selection.connection_id) else None
        if self.selection.group_id is not None:
            return "group" if self.delete_group(self.selection.group_id) else None
        if self.selection.label_id is not None:
            return "label" if self.delete_label(self.selection.label_id) else None
        return None

    # --- Queries ---

    def search_equipment(self, text: str = "", status_filter: Optional[str] = None) -> list[Equipment]:
        """Filter equipment by name/type text and a status or type filter."""
        return filter_equipment(self._project.equipment, text, status_filter)

    def history_rows(self) -> list[dict]:
        """Position history for export, newest first."""
        return [
            {
                "timestamp": entry.timestamp.isoformat(),
                "equipment_name": entry.equipment_name,
                "from_position": entry.from_position,
                "to_position": entry.to_position,
            }
            for entry in self._project.history
        ]

    def equipment_rows(self) -> list[dict]:
        """Equipment for export, with the layer name resolved."""
        rows = []
        for eq in self._project.equipment:
            layer = self.get_layer(eq.layer_id)
            rows.append({
                "id": eq.id,
                "name": eq.name,
                "type": eq.type.value,
                "status": eq.status.value,
                "current_position": eq.current_position,
                "normal_position": eq.normal_position,
                "is_energized": eq.is_energized,
                "is_loto": eq.is_loto,
                "layer_name": layer.name if layer else "Default",
                "notes": eq.notes,
                "last_updated": eq.last_updated.isoformat() if eq.last_updated else None,
            })
        return rows

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        project = self._project.to_json_dict()
        project["equipment"] = [eq.to_json_dict() for eq in self._project.equipment]
        return {
            "project": project,
            "selection": {
                "equipment_ids": self.selection.selected_ids,
                "connection_id": self.selection.connection_id,
                "group_id": self.selection.group_id,
                "label_id": self.selection.label_id,
                "has_clipboard": self.selection.has_clipboard,
            },
            "tools": self.tools.to_dict(),
            "grid": {"size": self._grid_size, "snap": self._snap_to_grid},
            "active_layer_id": self._active_layer_id,
            "status_counts": status_counts(self._project.equipment),
            "energization": self._energization.to_dict(),
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "undo_description": self._undo_stack.undo_description,
            "redo_description": self._undo_stack.redo_description,
        }
