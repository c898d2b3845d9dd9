"""
Project validation - Check a project snapshot for structural issues.

Used by the HTTP layer's /validate endpoint and after loading snapshots
produced by other tools.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .geometry import MIN_EQUIPMENT_SIZE, group_members
from .models import DEFAULT_LAYER_ID, is_valid_position

if TYPE_CHECKING:
    from .models import ProjectSnapshot


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Broken invariant, must be fixed
    WARNING = "warning"  # Suspicious data, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a project."""
    severity: IssueSeverity
    message: str
    equipment_id: str | None = None
    connection_id: str | None = None
    group_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.equipment_id:
            result["equipment_id"] = self.equipment_id
        if self.connection_id:
            result["connection_id"] = self.connection_id
        if self.group_id:
            result["group_id"] = self.group_id
        return result


def validate_project(project: "ProjectSnapshot") -> list[ValidationIssue]:
    """
    Validate a project and return a list of issues.

    Checks for:
    - Empty project - INFO
    - Duplicate IDs - ERROR
    - Connections to missing equipment - ERROR
    - Self-connections - ERROR
    - Missing default layer or unknown layer references - ERROR
    - Positions not in the type's option list - WARNING
    - Duplicate connections (same pair and type) - WARNING
    - Group membership out of date - WARNING
    - Equipment below the minimum size - WARNING
    - Unnamed equipment - WARNING
    - Equipment with no connections - INFO

    Args:
        project: The project to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    equipment = project.equipment
    connections = project.connections

    if not equipment:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Project has no equipment"
        ))

    # Duplicate IDs across every entity collection
    id_counts = Counter(
        item.id
        for collection in (equipment, connections, project.groups, project.labels)
        for item in collection
    )
    for item_id, count in id_counts.items():
        if count > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"ID used by {count} entities: {item_id}"
            ))

    equipment_ids = {eq.id for eq in equipment}

    # Connection references
    connected: set[str] = set()
    seen_pairs: set[tuple[frozenset[str], str]] = set()
    for conn in connections:
        if conn.source_equipment_id not in equipment_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Connection references missing source equipment: {conn.source_equipment_id}",
                connection_id=conn.id
            ))
        if conn.target_equipment_id not in equipment_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Connection references missing target equipment: {conn.target_equipment_id}",
                connection_id=conn.id
            ))
        if conn.source_equipment_id == conn.target_equipment_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Connection joins equipment to itself",
                connection_id=conn.id,
                equipment_id=conn.source_equipment_id
            ))

        pair = (frozenset((conn.source_equipment_id, conn.target_equipment_id)), conn.type.value)
        if pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate {conn.type.value} connection between "
                        f"{conn.source_equipment_id} and {conn.target_equipment_id}",
                connection_id=conn.id
            ))
        else:
            seen_pairs.add(pair)

        connected.add(conn.source_equipment_id)
        connected.add(conn.target_equipment_id)

    # Layers
    layer_ids = {layer.id for layer in project.layers}
    if DEFAULT_LAYER_ID not in layer_ids:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message="Default layer is missing"
        ))
    for collection in (equipment, connections, project.groups, project.labels):
        for item in collection:
            if item.layer_id not in layer_ids:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"{type(item).__name__} {item.id} is on unknown layer {item.layer_id}"
                ))

    # Per-equipment checks
    for eq in equipment:
        if not eq.name.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Equipment has an empty name",
                equipment_id=eq.id
            ))
        for field_name in ("normal_position", "current_position"):
            value = getattr(eq, field_name)
            if value and not is_valid_position(eq.type, value):
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message=f"{eq.name}: {field_name} '{value}' is not a valid {eq.type.value} position",
                    equipment_id=eq.id
                ))
        if eq.width < MIN_EQUIPMENT_SIZE or eq.height < MIN_EQUIPMENT_SIZE:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"{eq.name} is smaller than {MIN_EQUIPMENT_SIZE}x{MIN_EQUIPMENT_SIZE}",
                equipment_id=eq.id
            ))

    # Groups
    for group in project.groups:
        expected = set(group_members(group, equipment))
        if set(group.equipment_ids) != expected:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Group '{group.name}' membership is out of date",
                group_id=group.id
            ))

    unconnected = [eq for eq in equipment if eq.id not in connected]
    if unconnected:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message=f"Equipment with no connections: {', '.join(eq.name or eq.id for eq in unconnected)}"
        ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }
