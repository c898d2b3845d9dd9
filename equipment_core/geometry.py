"""
Geometry for equipment diagrams.

Provides the coordinate math shared by the controller and the HTTP layer:
- Anchor points: offsets and absolute positions of the 9 named points
- Grid snapping: plain and anchor-aware (snap the anchor, not the corner)
- Connection endpoints: named anchors, legacy edge names, border intersection
- Orthogonal routing: right-angle polylines between two endpoints
- Group membership: lenient containment test and membership refresh

Functions that update entities modify them in-place.
"""

from typing import TYPE_CHECKING, Iterable, Optional, Union

from .models import AnchorPoint, RoutingMode

if TYPE_CHECKING:
    from .models import Connection, Equipment, EquipmentGroup


Point = tuple[float, float]

MIN_EQUIPMENT_SIZE = 30
GROUP_SIDE_PADDING = 10
GROUP_TITLE_PADDING = 30

# Fraction of (width, height) from the top-left corner
ANCHOR_FRACTIONS: dict[AnchorPoint, tuple[float, float]] = {
    AnchorPoint.TOP_LEFT: (0.0, 0.0),
    AnchorPoint.TOP_CENTER: (0.5, 0.0),
    AnchorPoint.TOP_RIGHT: (1.0, 0.0),
    AnchorPoint.MIDDLE_LEFT: (0.0, 0.5),
    AnchorPoint.CENTER: (0.5, 0.5),
    AnchorPoint.MIDDLE_RIGHT: (1.0, 0.5),
    AnchorPoint.BOTTOM_LEFT: (0.0, 1.0),
    AnchorPoint.BOTTOM_CENTER: (0.5, 1.0),
    AnchorPoint.BOTTOM_RIGHT: (1.0, 1.0),
}

# 4-point names used by older diagrams
LEGACY_ANCHORS: dict[str, AnchorPoint] = {
    "top": AnchorPoint.TOP_CENTER,
    "bottom": AnchorPoint.BOTTOM_CENTER,
    "left": AnchorPoint.MIDDLE_LEFT,
    "right": AnchorPoint.MIDDLE_RIGHT,
}

HORIZONTAL_ANCHORS = frozenset({AnchorPoint.MIDDLE_LEFT, AnchorPoint.MIDDLE_RIGHT})
VERTICAL_ANCHORS = frozenset({AnchorPoint.TOP_CENTER, AnchorPoint.BOTTOM_CENTER})

_EPSILON = 0.001


def parse_anchor(name: Union[str, AnchorPoint, None]) -> Optional[AnchorPoint]:
    """
    Resolve an anchor name to one of the 9 anchor points.

    Accepts the 9-point names (case-insensitive) and the legacy
    Top/Bottom/Left/Right names. Anything else returns None.
    """
    if isinstance(name, AnchorPoint):
        return name
    if not name:
        return None
    lower = name.strip().lower()
    for anchor in AnchorPoint:
        if anchor.value.lower() == lower:
            return anchor
    return LEGACY_ANCHORS.get(lower)


def anchor_offset_for_size(width: float, height: float, anchor: Union[str, AnchorPoint]) -> Point:
    """Get the (dx, dy) of an anchor from the top-left of a width x height box."""
    resolved = parse_anchor(anchor) or AnchorPoint.CENTER
    fx, fy = ANCHOR_FRACTIONS[resolved]
    return (width * fx, height * fy)


def anchor_offset(equipment: "Equipment", anchor: Union[str, AnchorPoint]) -> Point:
    """Get the (dx, dy) of an anchor from the equipment's top-left corner."""
    return anchor_offset_for_size(equipment.width, equipment.height, anchor)


def anchor_position(equipment: "Equipment", anchor: Union[str, AnchorPoint]) -> Point:
    """Get the absolute position of an anchor on the equipment."""
    dx, dy = anchor_offset(equipment, anchor)
    return (equipment.x + dx, equipment.y + dy)


# --- Grid snapping ---

def validate_grid_size(grid_size: int) -> int:
    """
    Check that a grid size can be used for snapping.

    Raises:
        ValueError: If grid_size is below 1
    """
    if grid_size is None or grid_size < 1:
        raise ValueError(f"Grid size must be at least 1, got {grid_size}")
    return grid_size


def snap_to_grid(x: float, y: float, grid_size: int, enabled: bool = True) -> Point:
    """
    Snap a point to the nearest grid intersection.

    Uses round-half-to-even, so (10, 10) on a 20 grid snaps to (0, 0).

    Args:
        x: X coordinate
        y: Y coordinate
        grid_size: Grid cell size in pixels (must be >= 1)
        enabled: When False the point is returned unchanged

    Returns:
        The snapped (x, y)
    """
    validate_grid_size(grid_size)
    if not enabled:
        return (x, y)
    return (round(x / grid_size) * grid_size, round(y / grid_size) * grid_size)


def snap_anchor_to_grid(
    x: float,
    y: float,
    anchor_offset_x: float,
    anchor_offset_y: float,
    grid_size: int,
    enabled: bool = True
) -> Point:
    """
    Snap the anchor point of a box to the grid and back-derive its top-left.

    anchor = round((top_left + offset) / grid) * grid
    top_left = anchor - offset

    Args:
        x: Top-left X
        y: Top-left Y
        anchor_offset_x: Anchor X offset from the top-left
        anchor_offset_y: Anchor Y offset from the top-left
        grid_size: Grid cell size in pixels (must be >= 1)
        enabled: When False the top-left is returned unchanged

    Returns:
        The new top-left (x, y)
    """
    validate_grid_size(grid_size)
    if not enabled:
        return (x, y)
    anchor_x = round((x + anchor_offset_x) / grid_size) * grid_size
    anchor_y = round((y + anchor_offset_y) / grid_size) * grid_size
    return (anchor_x - anchor_offset_x, anchor_y - anchor_offset_y)


def snap_box(
    x: float,
    y: float,
    width: float,
    height: float,
    anchor: Union[str, AnchorPoint],
    grid_size: int,
    enabled: bool = True
) -> Point:
    """Snap a box of the given size so its anchor lands on the grid."""
    dx, dy = anchor_offset_for_size(width, height, anchor)
    return snap_anchor_to_grid(x, y, dx, dy, grid_size, enabled)


def clamp_size(width: float, height: float, minimum: float = MIN_EQUIPMENT_SIZE) -> tuple[float, float]:
    """Apply the minimum size floor to a width/height pair."""
    return (max(width, minimum), max(height, minimum))


# --- Connection endpoints ---

def border_intersection(equipment: "Equipment", towards: Point) -> Point:
    """
    Find where the ray from the equipment's center toward a point crosses
    its bounding rectangle.

    Returns the center when the point coincides with it.
    """
    center_x, center_y = equipment.center()
    dx = towards[0] - center_x
    dy = towards[1] - center_y

    if abs(dx) < _EPSILON and abs(dy) < _EPSILON:
        return (center_x, center_y)

    half_width = equipment.width / 2
    half_height = equipment.height / 2

    scale_x = half_width / abs(dx) if abs(dx) > _EPSILON else float("inf")
    scale_y = half_height / abs(dy) if abs(dy) > _EPSILON else float("inf")
    scale = min(scale_x, scale_y)

    return (center_x + dx * scale, center_y + dy * scale)


def resolve_connection_endpoint(
    equipment: "Equipment",
    anchor_name: Union[str, AnchorPoint, None],
    towards: Point
) -> Point:
    """
    Get the absolute endpoint of a connection on a piece of equipment.

    Named anchors (9-point or legacy 4-point) resolve to a fixed point;
    anything else (e.g. "Auto") follows the border toward `towards`.
    """
    anchor = parse_anchor(anchor_name)
    if anchor is not None:
        return anchor_position(equipment, anchor)
    return border_intersection(equipment, towards)


def update_connection_endpoints(
    connection: "Connection",
    source: Optional["Equipment"],
    target: Optional["Equipment"]
) -> bool:
    """
    Recompute a connection's x1/y1/x2/y2 from its equipment.

    Returns:
        False (leaving the connection untouched) if either end is missing
    """
    if source is None or target is None:
        return False

    start = resolve_connection_endpoint(source, connection.source_anchor, target.center())
    end = resolve_connection_endpoint(target, connection.target_anchor, source.center())

    connection.x1, connection.y1 = start
    connection.x2, connection.y2 = end
    return True


# --- Orthogonal routing ---

def anchor_orientation(anchor_name: Union[str, AnchorPoint, None]) -> Optional[str]:
    """Get "horizontal" for left/right edge anchors, "vertical" for top/bottom."""
    anchor = parse_anchor(anchor_name)
    if anchor in HORIZONTAL_ANCHORS:
        return "horizontal"
    if anchor in VERTICAL_ANCHORS:
        return "vertical"
    return None


def route_orthogonal(
    start: Point,
    end: Point,
    source_anchor: Union[str, AnchorPoint, None] = None,
    target_anchor: Union[str, AnchorPoint, None] = None
) -> list[Point]:
    """
    Build a right-angle polyline from start to end.

    The first leg leaves along the source anchor's edge direction (falling
    back to the target anchor, then to the longer axis for center/corner
    anchors) and turns at the midpoint of that axis.

    Returns:
        Four points: start, first corner, second corner, end
    """
    orientation = anchor_orientation(source_anchor) or anchor_orientation(target_anchor)
    if orientation is None:
        dx = abs(end[0] - start[0])
        dy = abs(end[1] - start[1])
        orientation = "horizontal" if dx >= dy else "vertical"

    if orientation == "horizontal":
        mid_x = (start[0] + end[0]) / 2
        return [start, (mid_x, start[1]), (mid_x, end[1]), end]

    mid_y = (start[1] + end[1]) / 2
    return [start, (start[0], mid_y), (end[0], mid_y), end]


def connection_path(connection: "Connection") -> list[Point]:
    """Get the polyline for a connection from its stored endpoints."""
    start = (connection.x1, connection.y1)
    end = (connection.x2, connection.y2)
    if connection.routing == RoutingMode.ORTHOGONAL:
        return route_orthogonal(start, end, connection.source_anchor, connection.target_anchor)
    return [start, end]


# --- Containment and groups ---

def point_in_rect(px: float, py: float, x1: float, y1: float, x2: float, y2: float) -> bool:
    """Check whether a point lies in a rectangle given by any two corners."""
    return min(x1, x2) <= px <= max(x1, x2) and min(y1, y2) <= py <= max(y1, y2)


def is_contained(equipment: "Equipment", group: "EquipmentGroup") -> bool:
    """
    Check whether equipment belongs to a group.

    Lenient: the equipment's center inside the group, or any overlap of
    the two rectangles (edges touching counts).
    """
    left, top, right, bottom = group.bounds()
    center_x, center_y = equipment.center()
    if point_in_rect(center_x, center_y, left, top, right, bottom):
        return True

    eq_left, eq_top, eq_right, eq_bottom = equipment.bounds()
    return not (eq_right < left or eq_left > right or eq_bottom < top or eq_top > bottom)


def group_members(group: "EquipmentGroup", equipment: Iterable["Equipment"]) -> list[str]:
    """Get the IDs of all equipment contained in a group, in diagram order."""
    return [eq.id for eq in equipment if is_contained(eq, group)]


def refresh_group_membership(
    groups: Iterable["EquipmentGroup"],
    equipment: list["Equipment"]
) -> None:
    """Recompute every group's equipment_ids from geometry."""
    for group in groups:
        group.equipment_ids = group_members(group, equipment)


def group_bounds(
    equipment: list["Equipment"],
    side_padding: float = GROUP_SIDE_PADDING,
    title_padding: float = GROUP_TITLE_PADDING
) -> tuple[float, float, float, float]:
    """
    Compute a group rectangle around equipment.

    Returns:
        (x, y, width, height) with side padding on left/right/bottom and
        a taller strip on top for the title
    """
    min_x = min(eq.x for eq in equipment)
    min_y = min(eq.y for eq in equipment)
    max_x = max(eq.x + eq.width for eq in equipment)
    max_y = max(eq.y + eq.height for eq in equipment)

    return (
        min_x - side_padding,
        min_y - title_padding,
        max_x - min_x + side_padding * 2,
        max_y - min_y + title_padding + side_padding,
    )


def centroid(equipment: list["Equipment"]) -> Point:
    """Get the mean center of a list of equipment."""
    centers = [eq.center() for eq in equipment]
    return (
        sum(c[0] for c in centers) / len(centers),
        sum(c[1] for c in centers) / len(centers),
    )
