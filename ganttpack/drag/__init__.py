"""
Ganttpack 拖拽交互

提供坐标换算、依赖连接点命中检测和拖拽控制器。
"""

from .coordinates import TaskCoordinates, LinearTimeline, get_relation_circle_by_coordinates
from .controller import (
    DragController,
    DragState,
    DragError,
    Viewport,
    AutoScrollTimer,
    get_next_coordinates,
)

__all__ = [
    "TaskCoordinates",
    "LinearTimeline",
    "get_relation_circle_by_coordinates",
    "DragController",
    "DragState",
    "DragError",
    "Viewport",
    "AutoScrollTimer",
    "get_next_coordinates",
]
