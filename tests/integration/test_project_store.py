"""
Integration tests for JSON persistence.

Tests:
- Save and reload a project with all entity kinds
- Missing, corrupt and invalid files load as "no prior state"
- Older snapshots with camelCase keys and null collections
- Controller autosave to a JSON file
- Demo project contents
"""

import json

import pytest

from equipment_core.models import (
    DEFAULT_LAYER_ID,
    ConnectionType,
    EquipmentType,
    RoutingMode,
)
from equipment_backend.diagram_controller import DiagramController
from equipment_backend.project_store import (
    DEMO_ABNORMAL_IDS,
    JsonProjectStore,
    create_demo_project,
)


@pytest.fixture
def json_store(temp_dir) -> JsonProjectStore:
    return JsonProjectStore(temp_dir / "nested" / "autosave.json")


def build_full_project(ctrl: DiagramController):
    """Create one of everything through the controller."""
    layer = ctrl.add_layer("Electrical")
    ctrl.set_active_layer(layer.id)
    gen = ctrl.add_equipment(EquipmentType.GENERATOR, 0, 0)
    brk = ctrl.add_equipment(EquipmentType.BREAKER, 200, 0)
    ctrl.set_current_position(gen.id, "on")
    ctrl.toggle_loto(brk.id)
    ctrl.update_equipment(brk.id, notes="Feeds MSB")
    conn = ctrl.create_connection(gen.id, brk.id, ConnectionType.ELECTRICAL, routing=RoutingMode.ORTHOGONAL)
    ctrl.select_all()
    ctrl.create_group("Power")
    ctrl.add_label(0, 200, "Generator yard")
    return gen, brk, conn


class TestJsonProjectStore:
    """Tests for JsonProjectStore save/load."""

    def test_round_trip(self, json_store):
        ctrl = DiagramController(snap_to_grid=False)
        gen, brk, conn = build_full_project(ctrl)

        json_store.save(ctrl.project)
        loaded = json_store.load()

        assert loaded is not None
        assert [eq.id for eq in loaded.equipment] == [gen.id, brk.id]
        assert loaded.connections[0].routing == RoutingMode.ORTHOGONAL
        assert loaded.connections[0].type == ConnectionType.ELECTRICAL
        assert loaded.groups[0].name == "Power"
        assert loaded.labels[0].text == "Generator yard"
        assert [layer.name for layer in loaded.layers] == ["Default", "Electrical"]
        assert loaded.history[0].to_position == "on"

        loaded_brk = loaded.equipment[1]
        assert loaded_brk.is_loto
        assert loaded_brk.notes == "Feeds MSB"

    def test_save_creates_directories(self, json_store):
        ctrl = DiagramController()
        json_store.save(ctrl.project)
        assert json_store.path.exists()
        assert not json_store.path.with_suffix(".json.tmp").exists()

    def test_save_sets_last_saved(self, json_store):
        ctrl = DiagramController()
        snapshot = ctrl.snapshot()

        json_store.save(snapshot)

        assert snapshot.last_saved is not None
        assert json_store.load().last_saved == snapshot.last_saved

    def test_missing_file(self, json_store):
        assert json_store.load() is None

    def test_corrupt_file(self, json_store):
        json_store.path.parent.mkdir(parents=True)
        json_store.path.write_text("{not json", encoding="utf-8")
        assert json_store.load() is None

    def test_non_object_file(self, json_store):
        json_store.path.parent.mkdir(parents=True)
        json_store.path.write_text("[1, 2, 3]", encoding="utf-8")
        assert json_store.load() is None

    def test_invalid_project(self, json_store):
        """Test that an unknown equipment type makes the file unusable."""
        json_store.path.parent.mkdir(parents=True)
        json_store.path.write_text(json.dumps({
            "equipment": [{"id": "x", "type": "Spaceship"}],
        }), encoding="utf-8")
        assert json_store.load() is None

    def test_older_format(self, json_store):
        """Test camelCase keys, ordinal enums and null collections."""
        json_store.path.parent.mkdir(parents=True)
        json_store.path.write_text(json.dumps({
            "projectName": "Legacy",
            "equipment": [
                {"id": "a", "name": "A", "type": 1, "currentPosition": "closed",
                 "normalPosition": "closed", "loto": True},
                {"id": "b", "name": "B", "type": "breaker", "currentPosition": "open",
                 "normalPosition": "closed", "layerId": "gone"},
            ],
            "connections": [{"id": "c", "source": "a", "target": "b", "type": "electrical"}],
            "groups": None,
            "labels": None,
            "layers": None,
        }), encoding="utf-8")

        loaded = json_store.load()

        assert loaded.project_name == "Legacy"
        assert [eq.type for eq in loaded.equipment] == [EquipmentType.BREAKER, EquipmentType.BREAKER]
        assert loaded.equipment[0].is_loto
        assert loaded.equipment[1].layer_id == DEFAULT_LAYER_ID
        assert loaded.connections[0].source_equipment_id == "a"
        assert loaded.groups == []
        assert loaded.layers[0].id == DEFAULT_LAYER_ID


class TestControllerAutosave:
    """Tests for a controller writing through to a JSON file."""

    def test_autosave_then_reload(self, json_store):
        ctrl = DiagramController(store=json_store, snap_to_grid=False)
        gen, brk, conn = build_full_project(ctrl)

        reloaded = DiagramController(store=json_store)
        assert reloaded.load_project()

        assert reloaded.get_equipment(gen.id).is_energized
        assert reloaded.get_equipment(brk.id).is_energized
        assert reloaded.get_connection(conn.id).is_energized
        assert not reloaded.can_undo

    def test_drag_frames_not_written(self, json_store):
        ctrl = DiagramController(store=json_store, snap_to_grid=False)
        eq = ctrl.add_equipment(EquipmentType.VALVE, 0, 0)

        ctrl.move_equipment(eq.id, 300, 300, save_after=False)

        saved = json_store.load()
        assert (saved.equipment[0].x, saved.equipment[0].y) == (0, 0)

    def test_undo_is_saved(self, json_store):
        ctrl = DiagramController(store=json_store)
        ctrl.add_equipment(EquipmentType.VALVE, 0, 0)

        ctrl.undo()

        assert json_store.load().equipment == []


class TestDemoProject:
    """Tests for the demo mechanical room."""

    def test_contents(self):
        demo = create_demo_project()

        assert demo.project_name == "Demo - Data Center Mechanical Room"
        assert len(demo.equipment) == 12
        assert [conn.id for conn in demo.connections] == [f"demo-c-00{i}" for i in range(1, 8)]

    def test_abnormal_items(self):
        demo = create_demo_project()
        abnormal = {eq.id for eq in demo.equipment if eq.current_position != eq.normal_position}
        assert abnormal == DEMO_ABNORMAL_IDS

    def test_positions_are_valid(self):
        for eq in create_demo_project().equipment:
            assert eq.current_position in eq.position_options
            assert eq.normal_position in eq.position_options

    def test_demo_is_fresh_each_time(self):
        first = create_demo_project()
        first.equipment[0].x = 999
        assert create_demo_project().equipment[0].x != 999
