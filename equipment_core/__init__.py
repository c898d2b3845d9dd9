"""
Equipment Tracker Core - Models, geometry, undo/redo, selection and propagation.

This package holds the diagram logic with no I/O, shared by the controller
and the HTTP layer so there is a single source of truth for the rules.
"""

from .models import (
    # Enums
    EquipmentType,
    EquipmentStatus,
    AnchorPoint,
    ConnectionType,
    RoutingMode,
    # Core models
    Equipment,
    Connection,
    EquipmentGroup,
    Layer,
    CanvasLabel,
    HistoryEntry,
    ProjectSnapshot,
    # Lookups
    AUTO_ANCHOR,
    DEFAULT_LAYER_ID,
    get_position_options,
    get_default_normal_position,
    get_default_size,
    parse_type,
    derive_status,
)

from .history import Command, CompoundCommand, UndoRedoStack
from .selection import SelectionManager, PasteResult
from .propagation import recalculate, EnergizationResult
from .tools import Tool, ToolState, ConnectionClickResult
from .validation import validate_project, validation_summary, ValidationIssue, IssueSeverity
from .analysis import summarize_project, find_connected_components, filter_equipment

__all__ = [
    # Enums
    "EquipmentType",
    "EquipmentStatus",
    "AnchorPoint",
    "ConnectionType",
    "RoutingMode",
    # Models
    "Equipment",
    "Connection",
    "EquipmentGroup",
    "Layer",
    "CanvasLabel",
    "HistoryEntry",
    "ProjectSnapshot",
    # Lookups
    "AUTO_ANCHOR",
    "DEFAULT_LAYER_ID",
    "get_position_options",
    "get_default_normal_position",
    "get_default_size",
    "parse_type",
    "derive_status",
    # Undo/redo
    "Command",
    "CompoundCommand",
    "UndoRedoStack",
    # Selection
    "SelectionManager",
    "PasteResult",
    # Propagation
    "recalculate",
    "EnergizationResult",
    # Tools
    "Tool",
    "ToolState",
    "ConnectionClickResult",
    # Validation
    "validate_project",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Analysis
    "summarize_project",
    "find_connected_components",
    "filter_equipment",
]
