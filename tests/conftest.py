"""
Pytest configuration and shared fixtures for equipment tracker tests.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from equipment_core.models import Connection, ConnectionType, Equipment, EquipmentType, ProjectSnapshot
from equipment_backend.diagram_controller import DiagramController
from equipment_backend.project_store import MemoryProjectStore
from helpers import make_connection, make_equipment


# ============== Temporary Directory Fixtures ==============

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    tmp = tempfile.mkdtemp(prefix="equipment_tracker_test_")
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


# ============== Model Fixtures ==============

@pytest.fixture
def power_chain() -> tuple[list[Equipment], list[Connection]]:
    """
    Generator (on) -> Breaker (closed) -> PDU (on) -> Pump, all Electrical.

    A valve is piped to the generator (pipes never carry power).
    """
    equipment = [
        make_equipment("gen", EquipmentType.GENERATOR, "on", "on"),
        make_equipment("brk", EquipmentType.BREAKER, "closed", "closed", x=100),
        make_equipment("pdu", EquipmentType.PDU, "on", "on", x=200),
        make_equipment("pump", EquipmentType.PUMP, "on", "on", x=300),
        make_equipment("valve", EquipmentType.VALVE, "open", "open", y=200),
    ]
    connections = [
        make_connection("c1", "gen", "brk"),
        make_connection("c2", "brk", "pdu"),
        make_connection("c3", "pdu", "pump"),
        make_connection("c4", "gen", "valve", ConnectionType.PIPE),
    ]
    return equipment, connections


@pytest.fixture
def empty_snapshot() -> ProjectSnapshot:
    return ProjectSnapshot(project_name="Empty")


# ============== Controller Fixtures ==============

@pytest.fixture
def store() -> MemoryProjectStore:
    """In-memory persistence collaborator."""
    return MemoryProjectStore()


@pytest.fixture
def controller(store: MemoryProjectStore) -> DiagramController:
    """Controller over an empty project, snapping to a 20px grid."""
    return DiagramController(store=store)


@pytest.fixture
def free_controller(store: MemoryProjectStore) -> DiagramController:
    """Controller with snapping disabled, for exact-coordinate tests."""
    return DiagramController(store=store, snap_to_grid=False)


@pytest.fixture
def demo_controller(store: MemoryProjectStore) -> DiagramController:
    """Controller loaded with the demo mechanical room."""
    ctrl = DiagramController(store=store)
    ctrl.load_demo()
    return ctrl


@pytest.fixture
def edit_controller(free_controller: DiagramController) -> DiagramController:
    """Unsnapped controller already in edit mode."""
    free_controller.set_edit_mode(True)
    return free_controller
