"""
Electrical energization propagation.

Power flows from every power source (e.g. a Generator "on") through
Electrical connections. Equipment that cannot conduct in its current
position (an open breaker, a de-energized transformer) receives power on
its input connection but stops it from going further.

This is reachability only: no load, impedance or current magnitude.
Pipe connections never take part.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator

from .models import ConnectionType

if TYPE_CHECKING:
    from .models import Connection, Equipment


logger = logging.getLogger(__name__)


@dataclass
class EnergizationResult:
    """Outcome of a propagation pass."""
    source_ids: list[str] = field(default_factory=list)
    energized_equipment_ids: set[str] = field(default_factory=set)
    energized_connection_ids: set[str] = field(default_factory=set)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "source_ids": self.source_ids,
            "energized_equipment_ids": sorted(self.energized_equipment_ids),
            "energized_connection_ids": sorted(self.energized_connection_ids),
        }


def find_power_sources(equipment: Iterable["Equipment"]) -> list["Equipment"]:
    """Get all equipment currently injecting power, in diagram order."""
    return [eq for eq in equipment if eq.is_power_source()]


def build_incidence(
    connections: Iterable["Connection"]
) -> dict[str, list["Connection"]]:
    """Map equipment ID -> incident Electrical connections, in diagram order."""
    incidence: dict[str, list["Connection"]] = {}
    for conn in connections:
        if conn.type != ConnectionType.ELECTRICAL:
            continue
        incidence.setdefault(conn.source_equipment_id, []).append(conn)
        if conn.target_equipment_id != conn.source_equipment_id:
            incidence.setdefault(conn.target_equipment_id, []).append(conn)
    return incidence


def recalculate(
    equipment: list["Equipment"],
    connections: list["Connection"]
) -> EnergizationResult:
    """
    Recompute is_energized on all equipment and Electrical connections.

    Algorithm:
    1. Reset every equipment and Electrical connection to un-energized
    2. Seed a depth-first walk from each power source, sharing one
       visited set across seeds so cycles terminate
    3. On entering a node, mark it visited and energized, then take its
       incident Electrical connections in order. A connection whose far end
       is missing or already visited (possibly by an earlier branch of this
       same loop) is skipped. Otherwise, if this node conducts (or is a
       source), energize the connection and descend into the far end right
       away if it conducts or is not an electrical type; a blocking far end
       is only marked visited

    Dangling connections (far end missing) are skipped. Running this twice
    with no mutation in between gives the same result.

    Args:
        equipment: Live equipment list (modified in-place)
        connections: Live connection list (modified in-place)

    Returns:
        EnergizationResult with the energized IDs
    """
    for eq in equipment:
        eq.is_energized = False
    for conn in connections:
        if conn.type == ConnectionType.ELECTRICAL:
            conn.is_energized = False

    by_id = {eq.id: eq for eq in equipment}
    incidence = build_incidence(connections)
    sources = find_power_sources(equipment)

    result = EnergizationResult(source_ids=[eq.id for eq in sources])
    visited: set[str] = set()

    def enter(node: "Equipment") -> tuple["Equipment", Iterator["Connection"]]:
        visited.add(node.id)
        node.is_energized = True
        result.energized_equipment_ids.add(node.id)
        return node, iter(incidence.get(node.id, []))

    for source in sources:
        if source.id in visited:
            continue

        # Frames of (node, remaining connections) so descent happens mid-loop
        stack = [enter(source)]
        while stack:
            current, remaining = stack[-1]
            conn = next(remaining, None)
            if conn is None:
                stack.pop()
                continue

            other = by_id.get(conn.other_end(current.id))
            if other is None or other.id in visited:
                continue
            if not (current.is_power_source() or current.can_conduct_electricity()):
                continue

            conn.is_energized = True
            result.energized_connection_ids.add(conn.id)

            if other.can_conduct_electricity() or not other.is_electrical():
                stack.append(enter(other))
            else:
                # Stops here and is never re-entered from another side
                visited.add(other.id)

    logger.debug(
        "Propagation: %d sources, %d equipment and %d connections energized",
        len(sources),
        len(result.energized_equipment_ids),
        len(result.energized_connection_ids),
    )
    return result
