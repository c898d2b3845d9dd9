"""
Project analysis - Status counts, search and connectivity summaries.

Provides the read-only views the controller and HTTP layer expose:
status counters, the filtered equipment list and a structural summary.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional

from .models import ConnectionType, EquipmentStatus, parse_type

if TYPE_CHECKING:
    from .models import Connection, Equipment, ProjectSnapshot


# Filters accepted by filter_equipment besides a type name
STATUS_FILTERS = {
    "normal": EquipmentStatus.NORMAL,
    "abnormal": EquipmentStatus.ABNORMAL,
    "warning": EquipmentStatus.WARNING,
    "unknown": EquipmentStatus.UNKNOWN,
}


@dataclass
class ConnectedComponent:
    """A set of equipment linked by connections."""
    equipment_ids: list[str] = field(default_factory=list)
    connection_count: int = 0

    @property
    def size(self) -> int:
        return len(self.equipment_ids)


@dataclass
class ProjectSummary:
    """Complete summary of a project's state."""
    name: str
    total_equipment: int
    total_connections: int
    equipment_by_type: dict[str, int]
    status_counts: dict[str, int]
    loto_count: int
    energized_count: int
    no_power_count: int
    connected_components: int
    electrical_networks: int
    abnormal_equipment: list[str]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "total_equipment": self.total_equipment,
            "total_connections": self.total_connections,
            "equipment_by_type": self.equipment_by_type,
            "status_counts": self.status_counts,
            "loto_count": self.loto_count,
            "energized_count": self.energized_count,
            "no_power_count": self.no_power_count,
            "connected_components": self.connected_components,
            "electrical_networks": self.electrical_networks,
            "abnormal_equipment": self.abnormal_equipment,
        }


def status_counts(equipment: Iterable["Equipment"]) -> dict[str, int]:
    """Count equipment by derived status (every status present, even at 0)."""
    counts = {status.value: 0 for status in EquipmentStatus}
    for eq in equipment:
        counts[eq.status.value] += 1
    return counts


def filter_equipment(
    equipment: Iterable["Equipment"],
    search_text: str = "",
    status_filter: Optional[str] = None
) -> list["Equipment"]:
    """
    Filter equipment by free text and a status/type filter.

    Text matches name or type name (case-insensitive substring). The
    filter is "all"/None, a status ("abnormal", "warning", ...), "loto",
    "energized", or a type name ("valve", "breaker", ...).

    Args:
        equipment: Equipment to filter
        search_text: Substring to look for
        status_filter: Filter name

    Returns:
        Matching equipment in original order
    """
    text = (search_text or "").strip().lower()
    key = (status_filter or "all").strip().lower()
    filter_type = parse_type(key) if key not in STATUS_FILTERS else None

    matches = []
    for eq in equipment:
        if text and text not in eq.name.lower() and text not in eq.type.value.lower():
            continue

        if key == "all":
            pass
        elif key in STATUS_FILTERS:
            if eq.status != STATUS_FILTERS[key]:
                continue
        elif key == "loto":
            if not eq.is_loto:
                continue
        elif key == "energized":
            if not eq.is_energized:
                continue
        elif filter_type is None or eq.type != filter_type:
            continue

        matches.append(eq)
    return matches


def find_connected_components(
    equipment: list["Equipment"],
    connections: list["Connection"],
    connection_type: Optional[ConnectionType] = None
) -> list[ConnectedComponent]:
    """
    Find all connected components using BFS (connections are undirected).

    Args:
        equipment: Equipment (graph nodes)
        connections: Connections (graph edges); dangling ones are ignored
        connection_type: Only follow connections of this type if given

    Returns:
        List of ConnectedComponent objects
    """
    if not equipment:
        return []

    equipment_ids = [eq.id for eq in equipment]
    adjacency: dict[str, set[str]] = {eid: set() for eid in equipment_ids}
    edge_counts: dict[str, int] = defaultdict(int)

    for conn in connections:
        if connection_type is not None and conn.type != connection_type:
            continue
        source, target = conn.source_equipment_id, conn.target_equipment_id
        if source in adjacency and target in adjacency:
            adjacency[source].add(target)
            adjacency[target].add(source)
            edge_counts[source] += 1
            edge_counts[target] += 1

    visited: set[str] = set()
    components: list[ConnectedComponent] = []

    for start in equipment_ids:
        if start in visited:
            continue

        component_ids: list[str] = []
        queue = [start]
        visited.add(start)

        while queue:
            current = queue.pop(0)
            component_ids.append(current)
            for neighbor in adjacency[current]:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        components.append(ConnectedComponent(
            equipment_ids=component_ids,
            # Each connection is counted at both ends
            connection_count=sum(edge_counts[eid] for eid in component_ids) // 2
        ))

    return components


def summarize_project(project: "ProjectSnapshot") -> ProjectSummary:
    """
    Generate a summary of a project.

    Electrical networks counts connected components of size > 1 when only
    Electrical connections are followed.
    """
    equipment = project.equipment

    type_counts: dict[str, int] = defaultdict(int)
    for eq in equipment:
        type_counts[eq.type.value] += 1

    components = find_connected_components(equipment, project.connections)
    electrical = find_connected_components(
        equipment, project.connections, ConnectionType.ELECTRICAL
    )

    return ProjectSummary(
        name=project.project_name,
        total_equipment=len(equipment),
        total_connections=len(project.connections),
        equipment_by_type=dict(type_counts),
        status_counts=status_counts(equipment),
        loto_count=sum(1 for eq in equipment if eq.is_loto),
        energized_count=sum(1 for eq in equipment if eq.is_energized),
        no_power_count=sum(1 for eq in equipment if eq.should_flash_no_power),
        connected_components=len(components),
        electrical_networks=len([c for c in electrical if c.size > 1]),
        abnormal_equipment=[eq.name for eq in equipment if eq.status == EquipmentStatus.ABNORMAL],
    )
