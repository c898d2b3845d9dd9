"""
Selection and clipboard state for the diagram editor.

Tracks:
- An ordered multi-selection of equipment IDs
- Single "current" connection, group and label selections
- Drag-start position snapshots for move undo
- A clipboard of copied equipment and the connections between them

The manager only tracks membership. Which selections exclude each other
(selecting a group clears equipment, etc.) is decided by the controller,
which also mirrors membership onto the entities' is_selected flags.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

from .geometry import centroid, point_in_rect
from .models import generate_id

if TYPE_CHECKING:
    from .models import Connection, Equipment


PASTE_NAME_SUFFIX = "-copy"


@dataclass
class PasteResult:
    """New entities produced from the clipboard, not yet inserted."""
    equipment: list["Equipment"] = field(default_factory=list)
    connections: list["Connection"] = field(default_factory=list)
    id_map: dict[str, str] = field(default_factory=dict)  # original -> new

    @property
    def is_empty(self) -> bool:
        return not self.equipment


class SelectionManager:
    """Selection membership, drag snapshots and clipboard."""

    def __init__(self):
        self._selected_ids: list[str] = []
        self.connection_id: Optional[str] = None
        self.group_id: Optional[str] = None
        self.label_id: Optional[str] = None

        self._move_start_positions: dict[str, tuple[float, float]] = {}

        self._clipboard_equipment: list["Equipment"] = []
        self._clipboard_connections: list["Connection"] = []

    # --- Equipment selection ---

    @property
    def selected_ids(self) -> list[str]:
        """Selected equipment IDs in selection order."""
        return list(self._selected_ids)

    @property
    def count(self) -> int:
        return len(self._selected_ids)

    @property
    def has_selection(self) -> bool:
        return bool(self._selected_ids)

    @property
    def primary_id(self) -> Optional[str]:
        """The most recently selected equipment ID."""
        return self._selected_ids[-1] if self._selected_ids else None

    def is_selected(self, equipment_id: str) -> bool:
        return equipment_id in self._selected_ids

    def add(self, equipment_id: str) -> bool:
        """Add to the selection. Returns False if already selected."""
        if equipment_id in self._selected_ids:
            return False
        self._selected_ids.append(equipment_id)
        return True

    def toggle(self, equipment_id: str) -> bool:
        """Flip selection membership. Returns True if now selected."""
        if equipment_id in self._selected_ids:
            self._selected_ids.remove(equipment_id)
            return False
        self._selected_ids.append(equipment_id)
        return True

    def set_single(self, equipment_id: str):
        """Replace the selection with one item."""
        self._selected_ids = [equipment_id]

    def select_all(self, equipment_ids: Iterable[str]):
        """Replace the selection with every given ID."""
        self._selected_ids = []
        for equipment_id in equipment_ids:
            self.add(equipment_id)

    def select_in_rect(
        self,
        equipment: Iterable["Equipment"],
        x1: float,
        y1: float,
        x2: float,
        y2: float
    ) -> list[str]:
        """
        Add every item whose center lies in the rectangle.

        The rectangle may be given by any two opposite corners. Existing
        selection is kept; returns the IDs that were newly added.
        """
        added = []
        for eq in equipment:
            center_x, center_y = eq.center()
            if point_in_rect(center_x, center_y, x1, y1, x2, y2) and self.add(eq.id):
                added.append(eq.id)
        return added

    def remove_ids(self, equipment_ids: Iterable[str]):
        """Drop IDs from the equipment selection (e.g. after deletion)."""
        removed = set(equipment_ids)
        self._selected_ids = [i for i in self._selected_ids if i not in removed]

    def clear(self):
        """Clear the equipment selection only."""
        self._selected_ids = []

    def clear_all(self):
        """Clear equipment, connection, group and label selections."""
        self._selected_ids = []
        self.connection_id = None
        self.group_id = None
        self.label_id = None

    # --- Move tracking ---

    @property
    def is_moving(self) -> bool:
        return bool(self._move_start_positions)

    def begin_move(self, items: Iterable["Equipment"]):
        """Snapshot each item's (x, y) at the start of a drag."""
        self._move_start_positions = {item.id: (item.x, item.y) for item in items}

    def get_original_position(self, equipment_id: str) -> Optional[tuple[float, float]]:
        """Get the drag-start position of an item, or None if not tracked."""
        return self._move_start_positions.get(equipment_id)

    def move_start_positions(self) -> dict[str, tuple[float, float]]:
        """Get a copy of all tracked drag-start positions."""
        return dict(self._move_start_positions)

    def end_move(self):
        """Discard drag-start snapshots."""
        self._move_start_positions = {}

    # --- Clipboard ---

    @property
    def has_clipboard(self) -> bool:
        return bool(self._clipboard_equipment)

    @property
    def clipboard_equipment(self) -> list["Equipment"]:
        return list(self._clipboard_equipment)

    @property
    def clipboard_connections(self) -> list["Connection"]:
        return list(self._clipboard_connections)

    def copy(self, equipment: Iterable["Equipment"], connections: Iterable["Connection"]) -> int:
        """
        Snapshot equipment plus every connection with both ends among it.

        Stores deep copies, so later edits to the live items do not change
        what gets pasted. Returns the number of equipment copied.
        """
        self._clipboard_equipment = [eq.model_copy(deep=True) for eq in equipment]
        copied_ids = {eq.id for eq in self._clipboard_equipment}
        self._clipboard_connections = [
            conn.model_copy(deep=True)
            for conn in connections
            if conn.source_equipment_id in copied_ids and conn.target_equipment_id in copied_ids
        ]
        return len(self._clipboard_equipment)

    def clear_clipboard(self):
        self._clipboard_equipment = []
        self._clipboard_connections = []

    def clipboard_centroid(self) -> Optional[tuple[float, float]]:
        """Mean center of the clipboard equipment, or None if empty."""
        if not self._clipboard_equipment:
            return None
        return centroid(self._clipboard_equipment)

    def build_paste(
        self,
        offset_x: float = 50,
        offset_y: float = 50,
        cursor: Optional[tuple[float, float]] = None
    ) -> PasteResult:
        """
        Duplicate the clipboard with fresh IDs.

        With a cursor, the cluster is shifted so its centroid lands on the
        cursor; otherwise every item is shifted by (offset_x, offset_y).
        Connection endpoints are remapped to the new equipment IDs.

        Returns:
            A PasteResult (empty if nothing was copied)
        """
        result = PasteResult()
        if not self._clipboard_equipment:
            return result

        if cursor is not None:
            center_x, center_y = self.clipboard_centroid()
            offset_x = cursor[0] - center_x
            offset_y = cursor[1] - center_y

        for original in self._clipboard_equipment:
            new_id = generate_id()
            result.id_map[original.id] = new_id
            result.equipment.append(original.model_copy(
                deep=True,
                update={
                    "id": new_id,
                    "name": f"{original.name}{PASTE_NAME_SUFFIX}",
                    "x": original.x + offset_x,
                    "y": original.y + offset_y,
                    "is_selected": False,
                    "is_energized": False,
                    "is_loto": False,
                },
            ))

        for original in self._clipboard_connections:
            new_source = result.id_map.get(original.source_equipment_id)
            new_target = result.id_map.get(original.target_equipment_id)
            if new_source is None or new_target is None:
                continue
            result.connections.append(original.model_copy(
                deep=True,
                update={
                    "id": generate_id(),
                    "source_equipment_id": new_source,
                    "target_equipment_id": new_target,
                    "is_selected": False,
                    "is_energized": False,
                },
            ))

        return result
