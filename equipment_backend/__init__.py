"""
Equipment Tracker Backend - controller, persistence and HTTP service.
"""

from .diagram_controller import DiagramController
from .project_store import JsonProjectStore, MemoryProjectStore, create_demo_project

__all__ = [
    "DiagramController",
    "JsonProjectStore",
    "MemoryProjectStore",
    "create_demo_project",
]
