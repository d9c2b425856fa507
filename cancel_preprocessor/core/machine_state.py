"""
Modal state for the G-code interpreter.
Tracks positioning and extrusion modes, the active tool and the logical position.
"""
from dataclasses import dataclass
from enum import Enum


class DistanceMode(Enum):
    ABSOLUTE = "G90"
    RELATIVE = "G91"


class ExtrusionMode(Enum):
    ABSOLUTE = "M82"
    RELATIVE = "M83"


@dataclass
class Position:
    """Represents a position on the X, Y, Z and extruder axes."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    e: float = 0.0

    def get_axis(self, axis: str) -> float:
        """Get value for a specific axis."""
        return getattr(self, axis.lower(), 0.0)

    def set_axis(self, axis: str, value: float):
        """Set value for a specific axis."""
        if hasattr(self, axis.lower()):
            setattr(self, axis.lower(), value)

    def copy(self) -> 'Position':
        """Create a copy of this position."""
        return Position(x=self.x, y=self.y, z=self.z, e=self.e)


class MachineState:
    """Per-file modal state. Starts at the firmware defaults (G90, M82, T0)."""

    def __init__(self):
        self.current_position = Position()

        self.distance_mode = DistanceMode.ABSOLUTE
        self.extrusion_mode = ExtrusionMode.ABSOLUTE
        self.active_tool: int = 0

    def is_distance_mode_absolute(self) -> bool:
        """Check if positioning is absolute (G90)."""
        return self.distance_mode == DistanceMode.ABSOLUTE

    def is_extrusion_absolute(self) -> bool:
        """
        Check if extrusion values are absolute.

        Relative positioning also makes extrusion relative, regardless of M82.
        """
        return (self.extrusion_mode == ExtrusionMode.ABSOLUTE
                and self.distance_mode == DistanceMode.ABSOLUTE)

    def resolve_axis(self, axis: str, value: float) -> float:
        """Resolve a programmed X/Y/Z value to an absolute logical coordinate."""
        if self.is_distance_mode_absolute():
            return value
        return self.current_position.get_axis(axis) + value

    def resolve_extrusion(self, value: float) -> float:
        """Resolve a programmed E value to an absolute extruder position."""
        if self.is_extrusion_absolute():
            return value
        return self.current_position.e + value

    def update_position(self, new_position: Position):
        """Update the current position."""
        self.current_position = new_position

    def set_axis_position(self, axis: str, value: float):
        """Set the logical position of one axis without motion (G92, G28)."""
        self.current_position.set_axis(axis, value)

