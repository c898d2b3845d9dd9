"""
Editing mode and tool state.

State machine:
- View <-> Edit mode. Leaving Edit mode resets the tool to Select and
  cancels any connection in progress.
- In Edit mode one tool is active: Select, Place (with an equipment
  type), Label, or Connect (with a connection type).
- Connect is itself stateful: Idle -> SourcePicked -> (target click
  completes the connection) -> Idle. Cancelling, switching tools, or
  leaving Edit mode returns to Idle without side effects.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .models import AUTO_ANCHOR, ConnectionType, EquipmentType

if TYPE_CHECKING:
    from .models import Equipment


class Tool(str, Enum):
    SELECT = "Select"
    PLACE = "Place"
    LABEL = "Label"
    CONNECT = "Connect"


@dataclass
class ConnectionClickResult:
    """Outcome of clicking equipment while the Connect tool is active."""
    handled: bool = False
    is_complete: bool = False
    source_id: Optional[str] = None
    target_id: Optional[str] = None
    source_anchor: str = AUTO_ANCHOR
    target_anchor: str = AUTO_ANCHOR
    connection_type: Optional[ConnectionType] = None
    connection_id: Optional[str] = None  # set by the controller once created

    @classmethod
    def not_handled(cls) -> "ConnectionClickResult":
        return cls(handled=False)

    @classmethod
    def source_selected(cls, source_id: str) -> "ConnectionClickResult":
        return cls(handled=True, is_complete=False, source_id=source_id)


class ToolState:
    """Edit mode, active tool and the connection-draw session."""

    def __init__(self):
        self.is_edit_mode = False
        self.tool = Tool.SELECT
        self.placement_type: Optional[EquipmentType] = None
        self.connection_type: Optional[ConnectionType] = None
        self.connection_source_id: Optional[str] = None
        self.hint = ""
        self.pending_source_anchor = AUTO_ANCHOR
        self.pending_target_anchor = AUTO_ANCHOR

    @property
    def is_creating_connection(self) -> bool:
        """True once a source has been picked and a target is awaited."""
        return self.connection_source_id is not None

    @property
    def has_active_tool(self) -> bool:
        """True if any tool other than plain Select is active."""
        return self.tool != Tool.SELECT

    # --- Mode ---

    def set_edit_mode(self, enabled: bool):
        self.is_edit_mode = enabled
        if not enabled:
            self.reset_tool()

    def toggle_edit_mode(self) -> bool:
        """Flip between View and Edit mode. Returns the new edit-mode flag."""
        self.set_edit_mode(not self.is_edit_mode)
        return self.is_edit_mode

    # --- Tools ---

    def select_tool(self, tool: Tool, placement_type: Optional[EquipmentType] = None):
        """
        Activate Select, Place or Label.

        Switching away from Connect cancels any pending connection.
        """
        tool = Tool(tool)
        if tool == Tool.CONNECT:
            raise ValueError("Use select_connection_tool() for the Connect tool")
        if tool == Tool.PLACE and placement_type is None:
            raise ValueError("The Place tool needs an equipment type")

        if self.tool == Tool.CONNECT:
            self.cancel_connection()
        self.tool = tool
        self.placement_type = EquipmentType(placement_type) if tool == Tool.PLACE else None
        self.connection_type = None

    def select_connection_tool(self, connection_type: ConnectionType):
        """Activate Connect for a connection type, starting a fresh session."""
        connection_type = ConnectionType(connection_type)
        if self.tool == Tool.CONNECT and self.connection_type == connection_type:
            return
        self.tool = Tool.CONNECT
        self.connection_type = connection_type
        self.placement_type = None
        self.cancel_connection()

    def reset_tool(self):
        """Return to the Select tool, cancelling any connection in progress."""
        self.cancel_connection()
        self.tool = Tool.SELECT
        self.placement_type = None
        self.connection_type = None

    # --- Connection drawing ---

    def set_pending_source_anchor(self, anchor: str):
        self.pending_source_anchor = anchor or AUTO_ANCHOR

    def set_pending_target_anchor(self, anchor: str):
        self.pending_target_anchor = anchor or AUTO_ANCHOR

    def handle_connection_click(self, equipment: "Equipment") -> ConnectionClickResult:
        """
        Advance the connection-draw session with a click on equipment.

        The first click picks the source. A click on different equipment
        completes the session and returns the connection to create;
        clicking the source again is ignored.
        """
        if not self.is_edit_mode or self.tool != Tool.CONNECT:
            return ConnectionClickResult.not_handled()

        if self.connection_source_id is None:
            self.connection_source_id = equipment.id
            self.hint = (
                f"Select target for {self.connection_type.value} connection "
                f"from {equipment.name}"
            )
            return ConnectionClickResult.source_selected(equipment.id)

        if self.connection_source_id == equipment.id:
            return ConnectionClickResult.not_handled()

        result = ConnectionClickResult(
            handled=True,
            is_complete=True,
            source_id=self.connection_source_id,
            target_id=equipment.id,
            source_anchor=self.pending_source_anchor,
            target_anchor=self.pending_target_anchor,
            connection_type=self.connection_type,
        )
        self.cancel_connection()
        return result

    def cancel_connection(self):
        """Drop the pending source and anchors; the tool stays active."""
        self.connection_source_id = None
        self.hint = ""
        self.pending_source_anchor = AUTO_ANCHOR
        self.pending_target_anchor = AUTO_ANCHOR

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "is_edit_mode": self.is_edit_mode,
            "tool": self.tool.value,
            "placement_type": self.placement_type.value if self.placement_type else None,
            "connection_type": self.connection_type.value if self.connection_type else None,
            "connection_source_id": self.connection_source_id,
            "pending_source_anchor": self.pending_source_anchor,
            "pending_target_anchor": self.pending_target_anchor,
            "hint": self.hint,
        }
