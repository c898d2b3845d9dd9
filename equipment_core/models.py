"""
Core data models for equipment status diagrams.

These models define the canonical schema for a tracked facility:
- Equipment with type, normal/current positions and canvas geometry
- Connections (pipe or electrical) between equipment anchor points
- Groups, layers and free-text labels
- Position-change history entries and the full project snapshot

Field Naming Convention:
- Python fields are snake_case
- For compatibility with older snapshots, camelCase and PascalCase keys
  (`normalPosition`, `SourceEquipmentId`, ...) are accepted on input
"""

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


DEFAULT_LAYER_ID = "default"
MAX_HISTORY_ENTRIES = 1000


class EquipmentType(str, Enum):
    """Kinds of equipment that can be placed on the canvas."""
    VALVE = "Valve"
    BREAKER = "Breaker"
    PUMP = "Pump"
    CHILLER = "Chiller"
    GENERATOR = "Generator"
    ATS = "ATS"
    UPS = "UPS"
    MOTOR = "Motor"
    TRANSFORMER = "Transformer"
    SWITCH = "Switch"
    PDU = "PDU"
    STS = "STS"
    BUS_BAR = "BusBar"
    JUNCTION = "Junction"


class EquipmentStatus(str, Enum):
    """Status derived from comparing current and normal position."""
    NORMAL = "Normal"
    ABNORMAL = "Abnormal"
    WARNING = "Warning"
    UNKNOWN = "Unknown"


class AnchorPoint(str, Enum):
    """The 9 named points on an equipment bounding box."""
    TOP_LEFT = "TopLeft"
    TOP_CENTER = "TopCenter"
    TOP_RIGHT = "TopRight"
    MIDDLE_LEFT = "MiddleLeft"
    CENTER = "Center"
    MIDDLE_RIGHT = "MiddleRight"
    BOTTOM_LEFT = "BottomLeft"
    BOTTOM_CENTER = "BottomCenter"
    BOTTOM_RIGHT = "BottomRight"


class ConnectionType(str, Enum):
    """Physical kind of a connection."""
    PIPE = "Pipe"
    ELECTRICAL = "Electrical"


class RoutingMode(str, Enum):
    """How a connection path is drawn between its endpoints."""
    STRAIGHT = "Straight"
    ORTHOGONAL = "Orthogonal"


# Anchor name used when a connection endpoint should follow the border
# intersection toward the other equipment instead of a fixed point.
AUTO_ANCHOR = "Auto"


# --- Lookup tables (one entry per EquipmentType) ---

POSITION_OPTIONS: dict[EquipmentType, list[str]] = {
    EquipmentType.VALVE: ["open", "closed"],
    EquipmentType.BREAKER: ["closed", "open", "tripped"],
    EquipmentType.PUMP: ["on", "off"],
    EquipmentType.CHILLER: ["available", "unavailable"],
    EquipmentType.GENERATOR: ["on", "off", "standby"],
    EquipmentType.ATS: ["normal", "emergency", "test"],
    EquipmentType.UPS: ["on", "off", "bypass"],
    EquipmentType.MOTOR: ["on", "off"],
    EquipmentType.TRANSFORMER: ["energized", "de-energized"],
    EquipmentType.SWITCH: ["open", "closed"],
    EquipmentType.PDU: ["on", "off"],
    EquipmentType.STS: ["source 1", "source 2", "bypass", "off"],
    EquipmentType.BUS_BAR: ["energized", "isolated"],
    EquipmentType.JUNCTION: ["connected"],
}

DEFAULT_NORMAL_POSITION: dict[EquipmentType, str] = {
    EquipmentType.VALVE: "open",
    EquipmentType.BREAKER: "closed",
    EquipmentType.PUMP: "off",
    EquipmentType.CHILLER: "available",
    EquipmentType.GENERATOR: "off",
    EquipmentType.ATS: "normal",
    EquipmentType.UPS: "on",
    EquipmentType.MOTOR: "off",
    EquipmentType.TRANSFORMER: "energized",
    EquipmentType.SWITCH: "open",
    EquipmentType.PDU: "on",
    EquipmentType.STS: "source 1",
    EquipmentType.BUS_BAR: "energized",
    EquipmentType.JUNCTION: "connected",
}

# (width, height) used when equipment is placed from the palette
DEFAULT_SIZE: dict[EquipmentType, tuple[float, float]] = {
    EquipmentType.VALVE: (50, 50),
    EquipmentType.BREAKER: (70, 50),
    EquipmentType.PUMP: (60, 60),
    EquipmentType.CHILLER: (100, 70),
    EquipmentType.GENERATOR: (80, 80),
    EquipmentType.ATS: (70, 60),
    EquipmentType.UPS: (70, 60),
    EquipmentType.MOTOR: (60, 60),
    EquipmentType.TRANSFORMER: (70, 70),
    EquipmentType.SWITCH: (60, 50),
    EquipmentType.PDU: (60, 60),
    EquipmentType.STS: (70, 60),
    EquipmentType.BUS_BAR: (200, 30),
    EquipmentType.JUNCTION: (30, 30),
}

# Positions in which a type passes power through. Junction is listed with
# its only position but conducts regardless (see can_conduct_electricity).
CONDUCTING_POSITIONS: dict[EquipmentType, frozenset[str]] = {
    EquipmentType.VALVE: frozenset(),
    EquipmentType.BREAKER: frozenset({"closed"}),
    EquipmentType.PUMP: frozenset(),
    EquipmentType.CHILLER: frozenset(),
    EquipmentType.GENERATOR: frozenset({"on"}),
    EquipmentType.ATS: frozenset({"normal", "emergency"}),
    EquipmentType.UPS: frozenset({"on", "bypass"}),
    EquipmentType.MOTOR: frozenset(),
    EquipmentType.TRANSFORMER: frozenset({"energized"}),
    EquipmentType.SWITCH: frozenset({"closed"}),
    EquipmentType.PDU: frozenset({"on"}),
    EquipmentType.STS: frozenset({"source 1", "source 2"}),
    EquipmentType.BUS_BAR: frozenset({"energized"}),
    EquipmentType.JUNCTION: frozenset({"connected"}),
}

POWER_SOURCE_POSITIONS: dict[EquipmentType, frozenset[str]] = {
    EquipmentType.GENERATOR: frozenset({"on"}),
    EquipmentType.TRANSFORMER: frozenset({"energized"}),
}

# Types subject to the conduction gate during propagation
ELECTRICAL_TYPES: frozenset[EquipmentType] = frozenset({
    EquipmentType.BREAKER,
    EquipmentType.SWITCH,
    EquipmentType.ATS,
    EquipmentType.UPS,
    EquipmentType.PDU,
    EquipmentType.STS,
    EquipmentType.TRANSFORMER,
    EquipmentType.GENERATOR,
    EquipmentType.BUS_BAR,
    EquipmentType.JUNCTION,
})

WARNING_POSITIONS = frozenset({"standby", "bypass", "test"})

ACTIVE_POSITIONS = frozenset({
    "on", "closed", "energized", "available", "normal", "source 1", "source 2",
})

# Keyword precedence for free-text classification. Longer, more specific
# keywords come before the short abbreviations they contain.
TYPE_KEYWORDS: list[tuple[str, EquipmentType]] = [
    ("valve", EquipmentType.VALVE),
    ("breaker", EquipmentType.BREAKER),
    ("pump", EquipmentType.PUMP),
    ("chiller", EquipmentType.CHILLER),
    ("transformer", EquipmentType.TRANSFORMER),
    ("generator", EquipmentType.GENERATOR),
    ("busbar", EquipmentType.BUS_BAR),
    ("bus bar", EquipmentType.BUS_BAR),
    ("junction", EquipmentType.JUNCTION),
    ("motor", EquipmentType.MOTOR),
    ("switch", EquipmentType.SWITCH),
    ("gen", EquipmentType.GENERATOR),
    ("ats", EquipmentType.ATS),
    ("ups", EquipmentType.UPS),
    ("pdu", EquipmentType.PDU),
    ("sts", EquipmentType.STS),
    ("xfmr", EquipmentType.TRANSFORMER),
]


def get_position_options(equipment_type: EquipmentType) -> list[str]:
    """Get the ordered list of valid positions for a type."""
    return list(POSITION_OPTIONS[EquipmentType(equipment_type)])


def get_default_normal_position(equipment_type: EquipmentType) -> str:
    """Get the default normal position for a type."""
    return DEFAULT_NORMAL_POSITION[EquipmentType(equipment_type)]


def get_default_size(equipment_type: EquipmentType) -> tuple[float, float]:
    """Get the (width, height) used when placing a new piece of equipment."""
    return DEFAULT_SIZE[EquipmentType(equipment_type)]


def is_valid_position(equipment_type: EquipmentType, position: str) -> bool:
    """Check a position against the type's options (case-insensitive)."""
    wanted = (position or "").strip().lower()
    return wanted in (p.lower() for p in POSITION_OPTIONS[EquipmentType(equipment_type)])


def parse_type(text: str) -> Optional[EquipmentType]:
    """
    Classify free text into an EquipmentType by keyword match.

    Exact enum values (case-insensitive) win; otherwise the first keyword
    in TYPE_KEYWORDS contained in the text decides. Unmatched text returns
    None so callers can choose their own fallback.
    """
    lower = (text or "").strip().lower()
    if not lower:
        return None

    for member in EquipmentType:
        if member.value.lower() == lower:
            return member

    for keyword, equipment_type in TYPE_KEYWORDS:
        if keyword in lower:
            return equipment_type
    return None


def derive_status(current_position: str, normal_position: str) -> EquipmentStatus:
    """Derive equipment status from its current and normal position."""
    normal = (normal_position or "").strip().lower()
    current = (current_position or "").strip().lower()

    if not normal or normal == "unknown" or not current:
        return EquipmentStatus.UNKNOWN
    if current == normal:
        return EquipmentStatus.NORMAL
    if current in WARNING_POSITIONS:
        return EquipmentStatus.WARNING
    return EquipmentStatus.ABNORMAL


def generate_id() -> str:
    """Generate a unique entity ID."""
    return str(uuid.uuid4())


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Original snapshot spellings that do not map to a field by case alone
_KEY_ALIASES = {
    "loto": "is_loto",
    "source_id": "source_equipment_id",
    "target_id": "target_equipment_id",
    "source": "source_equipment_id",
    "target": "target_equipment_id",
}


def _snake_key(key: str) -> str:
    snake = _CAMEL_BOUNDARY.sub("_", key).replace("-", "_").lower()
    return _KEY_ALIASES.get(snake, snake)


def normalize_keys(data: Any) -> Any:
    """Convert camelCase/PascalCase dict keys to snake_case field names."""
    if not isinstance(data, dict):
        return data
    result = {}
    for key, value in data.items():
        snake = _snake_key(key) if isinstance(key, str) else key
        # An explicit snake_case key wins over a converted spelling
        if snake in result and snake == key:
            result[snake] = value
        elif snake not in result:
            result[snake] = value
    return result


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Accept enum values by ordinal or by case-insensitive name/value."""
    if isinstance(value, enum_cls):
        return value
    members = list(enum_cls)
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(members):
        return members[value]
    if isinstance(value, str):
        lower = value.strip().lower()
        for member in members:
            if lower in (member.value.lower(), member.name.lower()):
                return member
    return value


class TrackerModel(BaseModel):
    """Base model accepting snapshot keys in either naming convention."""

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_keys(cls, data: Any) -> Any:
        """Convert camelCase/PascalCase keys to snake_case."""
        return normalize_keys(data)

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict."""
        return self.model_dump(mode="json")


class Equipment(TrackerModel):
    """A piece of equipment on the diagram."""
    id: str = Field(default_factory=generate_id)
    name: str = ""
    type: EquipmentType = EquipmentType.VALVE
    normal_position: str = ""
    current_position: str = ""
    x: float = 0
    y: float = 0
    width: float = 50
    height: float = 50
    grid_anchor: AnchorPoint = AnchorPoint.CENTER
    connection_anchor: AnchorPoint = AnchorPoint.CENTER
    is_energized: bool = False
    is_selected: bool = False
    is_loto: bool = False  # lock-out/tag-out
    layer_id: str = DEFAULT_LAYER_ID
    last_updated: Optional[datetime] = None
    notes: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, value: Any) -> Any:
        """Accept ordinals and free text (e.g. "Main Breaker") for the type."""
        coerced = _coerce_enum(EquipmentType, value)
        if isinstance(coerced, str) and not isinstance(coerced, EquipmentType):
            return parse_type(coerced) or coerced
        return coerced

    @field_validator("grid_anchor", "connection_anchor", mode="before")
    @classmethod
    def coerce_anchor(cls, value: Any) -> Any:
        return _coerce_enum(AnchorPoint, value)

    @field_validator("normal_position", "current_position", "notes", "name", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def status(self) -> EquipmentStatus:
        """Status derived from current vs normal position."""
        return derive_status(self.current_position, self.normal_position)

    @property
    def should_flash_no_power(self) -> bool:
        """True when the equipment is in an active position but has no power."""
        if self.is_energized:
            return False
        return self.current_position.strip().lower() in ACTIVE_POSITIONS

    @property
    def position_options(self) -> list[str]:
        return get_position_options(self.type)

    def can_conduct_electricity(self) -> bool:
        """True if the current position passes power through this equipment."""
        if self.type == EquipmentType.JUNCTION:
            return True
        return self.current_position.strip().lower() in CONDUCTING_POSITIONS[self.type]

    def is_power_source(self) -> bool:
        """True if this equipment injects power in its current position."""
        positions = POWER_SOURCE_POSITIONS.get(self.type, frozenset())
        return self.current_position.strip().lower() in positions

    def is_electrical(self) -> bool:
        """True if this type is gated by conduction during propagation."""
        return self.type in ELECTRICAL_TYPES

    def to_json_dict(self) -> dict:
        """Convert to a JSON dict including derived status fields."""
        data = self.model_dump(mode="json")
        data["status"] = self.status.value
        data["should_flash_no_power"] = self.should_flash_no_power
        data["position_options"] = self.position_options
        return data

    def center(self) -> tuple[float, float]:
        """Get the center point of the equipment."""
        return (self.x + self.width / 2, self.y + self.height / 2)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


class Connection(TrackerModel):
    """
    A pipe or electrical connection between two pieces of equipment.

    Endpoint coordinates (x1, y1, x2, y2) are derived from the referenced
    equipment geometry and are recomputed by the controller; they are
    never authoritative.
    """
    id: str = Field(default_factory=generate_id)
    source_equipment_id: str
    target_equipment_id: str
    type: ConnectionType = ConnectionType.PIPE
    source_anchor: str = AUTO_ANCHOR
    target_anchor: str = AUTO_ANCHOR
    x1: float = 0
    y1: float = 0
    x2: float = 0
    y2: float = 0
    is_energized: bool = False
    is_selected: bool = False
    layer_id: str = DEFAULT_LAYER_ID
    routing: RoutingMode = RoutingMode.STRAIGHT

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, value: Any) -> Any:
        return _coerce_enum(ConnectionType, value)

    @field_validator("routing", mode="before")
    @classmethod
    def coerce_routing(cls, value: Any) -> Any:
        return _coerce_enum(RoutingMode, value)

    def touches(self, equipment_id: str) -> bool:
        """True if either endpoint references the equipment."""
        return equipment_id in (self.source_equipment_id, self.target_equipment_id)

    def other_end(self, equipment_id: str) -> str:
        """Get the equipment ID at the far end from `equipment_id`."""
        if self.source_equipment_id == equipment_id:
            return self.target_equipment_id
        return self.source_equipment_id


class EquipmentGroup(TrackerModel):
    """A titled rectangle whose membership is derived from geometry."""
    id: str = Field(default_factory=generate_id)
    name: str = ""
    type: str = "Group"
    x: float = 0
    y: float = 0
    width: float = 100
    height: float = 100
    equipment_ids: list[str] = Field(default_factory=list)
    is_selected: bool = False
    layer_id: str = DEFAULT_LAYER_ID

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


class Layer(TrackerModel):
    """A visibility/lock layer that entities are assigned to."""
    id: str = Field(default_factory=generate_id)
    name: str = ""
    is_visible: bool = True
    is_locked: bool = False
    order: int = 0
    color: str = "#FF58A6FF"

    @classmethod
    def create_default(cls) -> "Layer":
        """Create the reserved default layer."""
        return cls(id=DEFAULT_LAYER_ID, name="Default", order=0)


class CanvasLabel(TrackerModel):
    """A free-text annotation on the canvas."""
    id: str = Field(default_factory=generate_id)
    text: str = "Label"
    x: float = 0
    y: float = 0
    font_size: float = 14
    color: str = "#FFFFFFFF"
    layer_id: str = DEFAULT_LAYER_ID
    is_selected: bool = False


class HistoryEntry(TrackerModel):
    """A recorded change of an equipment's current position."""
    id: str = Field(default_factory=generate_id)
    equipment_id: str = ""
    equipment_name: str = ""
    from_position: str = ""
    to_position: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)


class ProjectSnapshot(TrackerModel):
    """
    The complete project state.
    This is what the persistence collaborator saves and loads.
    """
    project_name: str = "Untitled Project"
    equipment: list[Equipment] = Field(default_factory=list)
    history: list[HistoryEntry] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    groups: list[EquipmentGroup] = Field(default_factory=list)
    labels: list[CanvasLabel] = Field(default_factory=list)
    layers: list[Layer] = Field(default_factory=list)
    last_saved: Optional[datetime] = None

    @model_validator(mode='before')
    @classmethod
    def fill_missing_collections(cls, data: Any) -> Any:
        """Treat null collections from older snapshots as empty."""
        data = normalize_keys(data)
        if isinstance(data, dict):
            for key in ("equipment", "history", "connections", "groups", "labels", "layers"):
                if data.get(key) is None:
                    data[key] = []
            if data.get("project_name") is None:
                data.pop("project_name", None)
        return data

    @model_validator(mode='after')
    def ensure_layers(self) -> "ProjectSnapshot":
        """Guarantee the default layer exists and every layer_id resolves."""
        if not any(layer.id == DEFAULT_LAYER_ID for layer in self.layers):
            self.layers.insert(0, Layer.create_default())

        layer_ids = {layer.id for layer in self.layers}
        for collection in (self.equipment, self.connections, self.groups, self.labels):
            for item in collection:
                if item.layer_id not in layer_ids:
                    item.layer_id = DEFAULT_LAYER_ID
        return self

    @classmethod
    def from_json_dict(cls, data: Optional[dict]) -> "ProjectSnapshot":
        """Create a snapshot from a JSON dict (handles older formats)."""
        return cls.model_validate(data or {})


# --- API Request/Response Models ---

class CreateEquipmentRequest(BaseModel):
    """Request to place new equipment."""
    type: EquipmentType
    x: float = 100
    y: float = 100


class UpdateEquipmentRequest(BaseModel):
    """Request to update an existing piece of equipment (partial update)."""
    name: Optional[str] = None
    notes: Optional[str] = None
    is_loto: Optional[bool] = None
    grid_anchor: Optional[AnchorPoint] = None
    connection_anchor: Optional[AnchorPoint] = None
    layer_id: Optional[str] = None


class SetPositionRequest(BaseModel):
    """Request to change a current or normal position."""
    position: str


class MoveRequest(BaseModel):
    """Request to move equipment or a label to a new top-left corner."""
    x: float
    y: float
    save_after: bool = True


class RectRequest(BaseModel):
    """Request carrying a rectangle (resize operations)."""
    x: float
    y: float
    width: float
    height: float


class DeltaRequest(BaseModel):
    """Request to move something by an offset."""
    dx: float
    dy: float


class CreateConnectionRequest(BaseModel):
    """Request to create a new connection."""
    source_equipment_id: str
    target_equipment_id: str
    type: ConnectionType = ConnectionType.PIPE
    source_anchor: str = AUTO_ANCHOR
    target_anchor: str = AUTO_ANCHOR
    routing: RoutingMode = RoutingMode.STRAIGHT

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Accept camelCase and source/target spellings."""
        return normalize_keys(data)


class CreateLabelRequest(BaseModel):
    """Request to add a label."""
    x: float
    y: float
    text: str = "Label"


class UpdateLabelRequest(BaseModel):
    """Request to update a label (partial update)."""
    text: Optional[str] = None
    font_size: Optional[float] = None
    color: Optional[str] = None


class CreateLayerRequest(BaseModel):
    """Request to add a layer."""
    name: str = ""


class SelectionRequest(BaseModel):
    """Request to change the equipment selection."""
    equipment_ids: list[str] = Field(default_factory=list)
    mode: str = "set"  # set, add, toggle


class RectSelectRequest(BaseModel):
    """Request to select equipment whose center is in a rectangle."""
    x1: float
    y1: float
    x2: float
    y2: float
    additive: bool = False


class PasteRequest(BaseModel):
    """Request to paste the clipboard at an offset or centered on a cursor."""
    offset_x: float = 50
    offset_y: float = 50
    cursor_x: Optional[float] = None
    cursor_y: Optional[float] = None


class GridRequest(BaseModel):
    """Request to update grid settings."""
    grid_size: Optional[int] = None
    snap_to_grid: Optional[bool] = None


class ProjectInfoRequest(BaseModel):
    """Request to update project metadata."""
    name: Optional[str] = None
