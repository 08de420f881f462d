# tests/__init__.py
"""
Expose common test utilities so tests can import directly:
    from tests import FakeFetcher, make_task, make_node
"""

from .utils import FakeFetcher, RecordingProgress, make_node, make_task

__all__ = ["FakeFetcher", "RecordingProgress", "make_task", "make_node"]
