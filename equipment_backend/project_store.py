"""
Project persistence - JSON snapshot files and the demo project.

The controller talks to any object with save(snapshot) and load(); the
JSON file store here is the one the HTTP service uses for autosave.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol, Union

from pydantic import ValidationError

from equipment_core.models import (
    Connection,
    ConnectionType,
    Equipment,
    EquipmentType,
    ProjectSnapshot,
    get_default_size,
)


logger = logging.getLogger(__name__)


class ProjectStore(Protocol):
    """Persistence collaborator used by the controller for autosave."""

    def save(self, snapshot: ProjectSnapshot) -> None:
        ...

    def load(self) -> Optional[ProjectSnapshot]:
        ...


class JsonProjectStore:
    """
    Stores a project snapshot as an indented JSON file.

    load() treats a missing, unreadable or invalid file as "no prior state"
    and returns None; save() errors propagate to the caller.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(self, snapshot: ProjectSnapshot) -> None:
        """Write the snapshot, creating parent directories as needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        data = snapshot.to_json_dict()
        data["last_saved"] = datetime.now().isoformat()

        # Write to a sibling file first so a failed write keeps the old save
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)

        snapshot.last_saved = datetime.fromisoformat(data["last_saved"])

    def load(self) -> Optional[ProjectSnapshot]:
        """Read the snapshot, or None if there is nothing usable on disk."""
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read project file %s: %s", self.path, e)
            return None

        if not isinstance(data, dict):
            logger.warning("Project file %s does not contain an object", self.path)
            return None

        try:
            return ProjectSnapshot.from_json_dict(data)
        except ValidationError as e:
            logger.warning("Project file %s is not a valid project: %s", self.path, e)
            return None


class MemoryProjectStore:
    """Keeps the last saved snapshot in memory (tests, read-only deployments)."""

    def __init__(self, snapshot: Optional[ProjectSnapshot] = None):
        self._data: Optional[dict] = snapshot.to_json_dict() if snapshot else None
        self.save_count = 0

    def save(self, snapshot: ProjectSnapshot) -> None:
        self._data = snapshot.to_json_dict()
        self.save_count += 1

    def load(self) -> Optional[ProjectSnapshot]:
        if self._data is None:
            return None
        return ProjectSnapshot.from_json_dict(self._data)


# --- Demo project ---

# (id, name, type, normal position, x, y)
DEMO_EQUIPMENT = [
    ("chw-v-001", "CHW-V-001", EquipmentType.VALVE, "open", 100, 200),
    ("chw-v-002", "CHW-V-002", EquipmentType.VALVE, "open", 300, 200),
    ("chw-v-003", "CHW-V-003", EquipmentType.VALVE, "closed", 500, 200),
    ("chw-p-001", "CHW-P-001", EquipmentType.PUMP, "on", 200, 320),
    ("chw-p-002", "CHW-P-002", EquipmentType.PUMP, "off", 400, 320),
    ("ch-001", "CHILLER-001", EquipmentType.CHILLER, "available", 280, 80),
    ("msb-001", "MSB-001", EquipmentType.BREAKER, "closed", 620, 80),
    ("msb-002", "MSB-002", EquipmentType.BREAKER, "closed", 620, 160),
    ("msb-003", "MSB-003", EquipmentType.BREAKER, "open", 620, 240),
    ("gen-001", "GEN-001", EquipmentType.GENERATOR, "off", 750, 130),
    ("ats-001", "ATS-001", EquipmentType.ATS, "normal", 720, 260),
    ("ups-001", "UPS-001", EquipmentType.UPS, "on", 100, 420),
]

# Items whose current position starts opposite to normal
DEMO_ABNORMAL_IDS = {"chw-v-003", "chw-p-002", "msb-003"}

# (id, source, target, type)
DEMO_CONNECTIONS = [
    ("demo-c-001", "ch-001", "chw-v-001", ConnectionType.PIPE),
    ("demo-c-002", "chw-v-001", "chw-p-001", ConnectionType.PIPE),
    ("demo-c-003", "chw-v-002", "chw-p-002", ConnectionType.PIPE),
    ("demo-c-004", "gen-001", "msb-001", ConnectionType.ELECTRICAL),
    ("demo-c-005", "msb-001", "ats-001", ConnectionType.ELECTRICAL),
    ("demo-c-006", "msb-002", "ats-001", ConnectionType.ELECTRICAL),
    ("demo-c-007", "ats-001", "msb-003", ConnectionType.ELECTRICAL),
]

OPPOSITE_POSITIONS = {
    "open": "closed",
    "closed": "open",
    "on": "off",
    "off": "on",
    "normal": "emergency",
    "emergency": "normal",
    "energized": "de-energized",
    "de-energized": "energized",
}


def opposite_position(position: str) -> str:
    """Get the opposite of a two-state position (unchanged if there is none)."""
    return OPPOSITE_POSITIONS.get(position.lower(), position)


def create_demo_project() -> ProjectSnapshot:
    """Create the sample data-center mechanical room project."""
    equipment = []
    for eq_id, name, eq_type, normal, x, y in DEMO_EQUIPMENT:
        width, height = get_default_size(eq_type)
        current = opposite_position(normal) if eq_id in DEMO_ABNORMAL_IDS else normal
        equipment.append(Equipment(
            id=eq_id,
            name=name,
            type=eq_type,
            normal_position=normal,
            current_position=current,
            x=x,
            y=y,
            width=width,
            height=height,
        ))

    connections = [
        Connection(
            id=conn_id,
            source_equipment_id=source,
            target_equipment_id=target,
            type=conn_type,
        )
        for conn_id, source, target, conn_type in DEMO_CONNECTIONS
    ]

    return ProjectSnapshot(
        project_name="Demo - Data Center Mechanical Room",
        equipment=equipment,
        connections=connections,
    )
