"""
Unit tests for edit mode, tool selection and connection drawing.
"""

import pytest

from equipment_core.models import AUTO_ANCHOR, ConnectionType, EquipmentType
from equipment_core.tools import Tool, ToolState
from helpers import make_equipment


@pytest.fixture
def tools() -> ToolState:
    state = ToolState()
    state.set_edit_mode(True)
    return state


class TestEditMode:
    """Tests for View/Edit mode switching."""

    def test_starts_in_view_mode(self):
        state = ToolState()
        assert not state.is_edit_mode
        assert state.tool == Tool.SELECT

    def test_toggle(self):
        state = ToolState()
        assert state.toggle_edit_mode() is True
        assert state.toggle_edit_mode() is False

    def test_leaving_edit_mode_resets_tool(self, tools):
        tools.select_connection_tool(ConnectionType.ELECTRICAL)
        tools.handle_connection_click(make_equipment("a"))

        tools.set_edit_mode(False)

        assert tools.tool == Tool.SELECT
        assert not tools.is_creating_connection


class TestToolSelection:
    """Tests for picking tools."""

    def test_place_tool_needs_type(self, tools):
        with pytest.raises(ValueError):
            tools.select_tool(Tool.PLACE)

    def test_connect_goes_through_connection_tool(self, tools):
        with pytest.raises(ValueError):
            tools.select_tool(Tool.CONNECT)

    def test_place_tool(self, tools):
        tools.select_tool(Tool.PLACE, EquipmentType.PUMP)
        assert tools.placement_type == EquipmentType.PUMP
        assert tools.has_active_tool

    def test_switching_tool_cancels_connection(self, tools):
        tools.select_connection_tool(ConnectionType.PIPE)
        tools.handle_connection_click(make_equipment("a"))

        tools.select_tool(Tool.LABEL)

        assert not tools.is_creating_connection
        assert tools.connection_type is None

    def test_reset_tool(self, tools):
        tools.select_tool(Tool.PLACE, EquipmentType.VALVE)
        tools.reset_tool()
        assert tools.tool == Tool.SELECT
        assert tools.placement_type is None
        assert not tools.has_active_tool


class TestConnectionDrawing:
    """Tests for the Idle -> SourcePicked -> complete session."""

    def test_not_handled_outside_connect_tool(self, tools):
        result = tools.handle_connection_click(make_equipment("a"))
        assert not result.handled

    def test_not_handled_in_view_mode(self):
        state = ToolState()
        state.tool = Tool.CONNECT
        state.connection_type = ConnectionType.PIPE
        assert not state.handle_connection_click(make_equipment("a")).handled

    def test_first_click_picks_source(self, tools):
        tools.select_connection_tool(ConnectionType.ELECTRICAL)

        result = tools.handle_connection_click(make_equipment("a"))

        assert result.handled and not result.is_complete
        assert result.source_id == "a"
        assert tools.is_creating_connection
        assert "Electrical" in tools.hint

    def test_second_click_completes(self, tools):
        tools.select_connection_tool(ConnectionType.ELECTRICAL)
        tools.set_pending_source_anchor("MiddleRight")
        tools.handle_connection_click(make_equipment("a"))

        result = tools.handle_connection_click(make_equipment("b"))

        assert result.is_complete
        assert (result.source_id, result.target_id) == ("a", "b")
        assert result.connection_type == ConnectionType.ELECTRICAL
        assert result.source_anchor == "MiddleRight"
        assert result.target_anchor == AUTO_ANCHOR
        # Back to idle with the tool still active
        assert not tools.is_creating_connection
        assert tools.tool == Tool.CONNECT

    def test_clicking_source_again_is_ignored(self, tools):
        tools.select_connection_tool(ConnectionType.PIPE)
        source = make_equipment("a")
        tools.handle_connection_click(source)

        result = tools.handle_connection_click(source)

        assert not result.handled
        assert tools.connection_source_id == "a"

    def test_cancel_clears_pending_state(self, tools):
        tools.select_connection_tool(ConnectionType.PIPE)
        tools.set_pending_target_anchor("TopCenter")
        tools.handle_connection_click(make_equipment("a"))

        tools.cancel_connection()

        assert not tools.is_creating_connection
        assert tools.pending_target_anchor == AUTO_ANCHOR
        assert tools.hint == ""

    def test_reselecting_same_connection_tool_keeps_session(self, tools):
        tools.select_connection_tool(ConnectionType.PIPE)
        tools.handle_connection_click(make_equipment("a"))

        tools.select_connection_tool(ConnectionType.PIPE)
        assert tools.is_creating_connection

        tools.select_connection_tool(ConnectionType.ELECTRICAL)
        assert not tools.is_creating_connection

    def test_to_dict(self, tools):
        tools.select_tool(Tool.PLACE, EquipmentType.ATS)
        data = tools.to_dict()
        assert data["tool"] == "Place"
        assert data["placement_type"] == "ATS"
        assert data["is_edit_mode"] is True
