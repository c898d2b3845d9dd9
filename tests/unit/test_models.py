"""
Unit tests for the entity model.

Tests:
- Position option and default lookup tables
- Derived status, no-power flashing and conduction
- Free-text type classification
- Snapshot loading from older and camelCase formats
"""

import pytest
from pydantic import ValidationError

from equipment_core.models import (
    DEFAULT_LAYER_ID,
    AnchorPoint,
    ConnectionType,
    Connection,
    Equipment,
    EquipmentStatus,
    EquipmentType,
    ProjectSnapshot,
    derive_status,
    get_default_normal_position,
    get_default_size,
    get_position_options,
    is_valid_position,
    parse_type,
)
from helpers import make_equipment


class TestLookupTables:
    """Tests for per-type lookup tables."""

    def test_every_type_has_options(self):
        """Test that every type has a non-empty option list."""
        for equipment_type in EquipmentType:
            assert get_position_options(equipment_type)

    def test_default_is_a_valid_option(self):
        """Test that every type's default normal position is one of its options."""
        for equipment_type in EquipmentType:
            default = get_default_normal_position(equipment_type)
            assert default in get_position_options(equipment_type)

    def test_every_type_has_default_size(self):
        for equipment_type in EquipmentType:
            width, height = get_default_size(equipment_type)
            assert width >= 30 and height >= 30

    def test_known_option_lists(self):
        """Test the documented option lists."""
        assert get_position_options(EquipmentType.VALVE) == ["open", "closed"]
        assert get_position_options(EquipmentType.BREAKER) == ["closed", "open", "tripped"]
        assert get_position_options(EquipmentType.BUS_BAR) == ["energized", "isolated"]
        assert get_position_options(EquipmentType.JUNCTION) == ["connected"]

    def test_options_are_copies(self):
        """Test that callers cannot mutate the table."""
        options = get_position_options(EquipmentType.VALVE)
        options.append("stuck")
        assert "stuck" not in get_position_options(EquipmentType.VALVE)

    def test_is_valid_position_case_insensitive(self):
        assert is_valid_position(EquipmentType.VALVE, "OPEN")
        assert is_valid_position(EquipmentType.STS, " Source 1 ")
        assert not is_valid_position(EquipmentType.VALVE, "tripped")
        assert not is_valid_position(EquipmentType.VALVE, "")


class TestDeriveStatus:
    """Tests for status derivation."""

    @pytest.mark.parametrize("current,normal,expected", [
        ("open", "open", EquipmentStatus.NORMAL),
        ("OPEN", "open", EquipmentStatus.NORMAL),
        ("closed", "open", EquipmentStatus.ABNORMAL),
        ("standby", "off", EquipmentStatus.WARNING),
        ("bypass", "on", EquipmentStatus.WARNING),
        ("test", "normal", EquipmentStatus.WARNING),
        ("open", "", EquipmentStatus.UNKNOWN),
        ("open", "unknown", EquipmentStatus.UNKNOWN),
        ("", "open", EquipmentStatus.UNKNOWN),
    ])
    def test_derive_status(self, current, normal, expected):
        assert derive_status(current, normal) == expected

    def test_warning_position_equal_to_normal_is_normal(self):
        """Test that a warning position which is also normal reads Normal."""
        assert derive_status("standby", "standby") == EquipmentStatus.NORMAL

    def test_status_follows_current_position(self):
        """Test that status is recomputed on every access."""
        eq = make_equipment("v1", current="open", normal="open")
        assert eq.status == EquipmentStatus.NORMAL

        eq.current_position = "closed"
        assert eq.status == EquipmentStatus.ABNORMAL

        eq.normal_position = "closed"
        assert eq.status == EquipmentStatus.NORMAL


class TestEquipmentBehaviour:
    """Tests for conduction, power sources and the no-power flag."""

    def test_breaker_conducts_only_when_closed(self):
        breaker = make_equipment("b", EquipmentType.BREAKER, "closed", "closed")
        assert breaker.can_conduct_electricity()

        breaker.current_position = "open"
        assert not breaker.can_conduct_electricity()

        breaker.current_position = "tripped"
        assert not breaker.can_conduct_electricity()

    def test_junction_always_conducts(self):
        junction = make_equipment("j", EquipmentType.JUNCTION, "", "connected")
        assert junction.can_conduct_electricity()

    def test_power_sources(self):
        assert make_equipment("g", EquipmentType.GENERATOR, "on", "off").is_power_source()
        assert not make_equipment("g", EquipmentType.GENERATOR, "standby", "off").is_power_source()
        assert make_equipment("t", EquipmentType.TRANSFORMER, "energized", "energized").is_power_source()
        assert not make_equipment("p", EquipmentType.PUMP, "on", "on").is_power_source()

    def test_electrical_types(self):
        assert make_equipment("b", EquipmentType.BREAKER).is_electrical()
        assert make_equipment("j", EquipmentType.JUNCTION).is_electrical()
        assert not make_equipment("v", EquipmentType.VALVE).is_electrical()
        assert not make_equipment("p", EquipmentType.PUMP).is_electrical()

    def test_flash_when_active_without_power(self):
        """Test that an active position with no power flashes."""
        pump = make_equipment("p", EquipmentType.PUMP, "on", "on")
        assert pump.should_flash_no_power

        pump.is_energized = True
        assert not pump.should_flash_no_power

        pump.is_energized = False
        pump.current_position = "off"
        assert not pump.should_flash_no_power

    def test_geometry_helpers(self):
        eq = make_equipment("v", x=10, y=20, width=40, height=60)
        assert eq.center() == (30, 50)
        assert eq.bounds() == (10, 20, 50, 80)

    def test_to_json_dict_includes_derived_fields(self):
        eq = make_equipment("v", current="closed", normal="open")
        data = eq.to_json_dict()
        assert data["status"] == "Abnormal"
        assert data["position_options"] == ["open", "closed"]
        assert data["type"] == "Valve"


class TestParseType:
    """Tests for free-text type classification."""

    @pytest.mark.parametrize("text,expected", [
        ("Valve", EquipmentType.VALVE),
        ("busbar", EquipmentType.BUS_BAR),
        ("CHW Isolation Valve", EquipmentType.VALVE),
        ("Main Breaker 3", EquipmentType.BREAKER),
        ("Standby Generator", EquipmentType.GENERATOR),
        ("GEN-1", EquipmentType.GENERATOR),
        ("Step-down Transformer", EquipmentType.TRANSFORMER),
        ("XFMR-2", EquipmentType.TRANSFORMER),
        ("Bus Bar A", EquipmentType.BUS_BAR),
        ("Rack PDU", EquipmentType.PDU),
        ("ATS-1", EquipmentType.ATS),
    ])
    def test_parse_known_text(self, text, expected):
        assert parse_type(text) == expected

    def test_unmatched_text_returns_none(self):
        """Test that unmatched text is not silently classified."""
        assert parse_type("widget") is None
        assert parse_type("") is None
        assert parse_type(None) is None

    def test_equipment_type_from_free_text(self):
        eq = Equipment(type="Main Breaker")
        assert eq.type == EquipmentType.BREAKER

    def test_equipment_type_from_ordinal(self):
        eq = Equipment(type=1)
        assert eq.type == EquipmentType.BREAKER

    def test_unparseable_type_is_rejected(self):
        with pytest.raises(ValidationError):
            Equipment(type="widget")


class TestConnection:
    """Tests for Connection helpers."""

    def test_other_end(self):
        conn = Connection(source_equipment_id="a", target_equipment_id="b")
        assert conn.other_end("a") == "b"
        assert conn.other_end("b") == "a"
        assert conn.touches("a")
        assert not conn.touches("c")

    def test_type_by_name_or_ordinal(self):
        assert Connection(source_equipment_id="a", target_equipment_id="b", type="electrical").type == ConnectionType.ELECTRICAL
        assert Connection(source_equipment_id="a", target_equipment_id="b", type=0).type == ConnectionType.PIPE


class TestProjectSnapshot:
    """Tests for loading snapshots."""

    def test_empty_snapshot_has_default_layer(self):
        snapshot = ProjectSnapshot()
        assert [layer.id for layer in snapshot.layers] == [DEFAULT_LAYER_ID]

    def test_missing_collections_default_to_empty(self):
        """Test that an older snapshot with null collections loads."""
        snapshot = ProjectSnapshot.from_json_dict({
            "projectName": "Old",
            "equipment": None,
            "history": None,
            "groups": None,
        })
        assert snapshot.project_name == "Old"
        assert snapshot.equipment == []
        assert snapshot.history == []
        assert snapshot.groups == []
        assert snapshot.labels == []

    def test_layer_ids_backfilled_when_no_layers(self):
        """Test that items on unknown layers are moved to the default layer."""
        snapshot = ProjectSnapshot.from_json_dict({
            "equipment": [{"id": "v1", "type": "Valve", "layerId": "missing"}],
        })
        assert snapshot.equipment[0].layer_id == DEFAULT_LAYER_ID

    def test_camel_case_keys(self):
        snapshot = ProjectSnapshot.from_json_dict({
            "ProjectName": "Plant",
            "Equipment": [{
                "Id": "b1",
                "Name": "MSB-1",
                "Type": "Breaker",
                "NormalPosition": "closed",
                "CurrentPosition": "open",
                "GridAnchor": "TopLeft",
                "IsLOTO": True,
            }],
            "Connections": [{
                "Id": "c1",
                "SourceEquipmentId": "b1",
                "TargetEquipmentId": "b1",
                "Type": "Electrical",
            }],
        })
        eq = snapshot.equipment[0]
        assert snapshot.project_name == "Plant"
        assert eq.normal_position == "closed"
        assert eq.status == EquipmentStatus.ABNORMAL
        assert eq.grid_anchor == AnchorPoint.TOP_LEFT
        assert snapshot.connections[0].source_equipment_id == "b1"

    def test_json_round_trip(self):
        snapshot = ProjectSnapshot(
            project_name="Round",
            equipment=[make_equipment("v1", current="closed")],
        )
        restored = ProjectSnapshot.from_json_dict(snapshot.to_json_dict())
        assert restored == snapshot
