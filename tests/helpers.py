"""
Builders for test equipment and connections.
"""

from equipment_core.models import Connection, ConnectionType, Equipment, EquipmentType


def make_equipment(
    equipment_id: str,
    equipment_type: EquipmentType = EquipmentType.VALVE,
    current: str = "open",
    normal: str = "open",
    x: float = 0,
    y: float = 0,
    width: float = 50,
    height: float = 50,
    **kwargs
) -> Equipment:
    """Build equipment with explicit positions and geometry."""
    return Equipment(
        id=equipment_id,
        name=equipment_id.upper(),
        type=equipment_type,
        current_position=current,
        normal_position=normal,
        x=x,
        y=y,
        width=width,
        height=height,
        **kwargs
    )


def make_connection(
    connection_id: str,
    source: str,
    target: str,
    connection_type: ConnectionType = ConnectionType.ELECTRICAL
) -> Connection:
    return Connection(
        id=connection_id,
        source_equipment_id=source,
        target_equipment_id=target,
        type=connection_type,
    )
