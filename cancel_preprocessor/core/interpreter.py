"""
Modal G-code interpreter.

Tracks positioning/extrusion modes and resolves every motion command to an
absolute logical position. Only extruding moves that change X or Y are
reported back; everything else just updates the machine state.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Callable
from cancel_preprocessor.core.lexer import GCodeLexer, Command
from cancel_preprocessor.core.machine_state import (
    MachineState, Position, DistanceMode, ExtrusionMode
)
from cancel_preprocessor.utils.errors import DiagnosticCollector, DiagnosticCode

logger = logging.getLogger(__name__)


@dataclass
class Move:
    """An extruding move resolved to absolute coordinates."""
    line_number: int
    x: float
    y: float
    z: float
    extrusion: float  # net extrusion delta, always > 0


class ModalInterpreter:
    """Interprets G-code line by line against a MachineState."""

    MOTION_AXES = 'XYZE'

    def __init__(self, error_collector: Optional[DiagnosticCollector] = None):
        self.error_collector = error_collector
        self.machine_state = MachineState()
        self.lexer = GCodeLexer()

        # Command handler mapping
        self.handlers: Dict[str, Callable[[Command, int], Optional[Move]]] = {
            'G0': self.handle_linear_move,
            'G1': self.handle_linear_move,
            'G2': self.handle_arc_move,
            'G3': self.handle_arc_move,
            'G28': self.handle_g28_home,
            'G90': self.handle_g90_absolute_positioning,
            'G91': self.handle_g91_relative_positioning,
            'G92': self.handle_g92_set_position,
            'M82': self.handle_m82_absolute_extrusion,
            'M83': self.handle_m83_relative_extrusion,
        }

    def apply(self, line: str, line_number: int = 0) -> Optional[Move]:
        """
        Interpret one line.

        Args:
            line: Raw G-code line
            line_number: 1-based line number, used for diagnostics

        Returns:
            A Move if the line is an extruding X/Y move, otherwise None
        """
        command = self.lexer.tokenize(line)
        if command.command is None:
            return None

        if command.command.startswith('T'):
            return self.handle_tool_select(command, line_number)

        handler = self.handlers.get(command.command)
        if handler is None:
            return None
        return handler(command, line_number)

    def handle_linear_move(self, command: Command, line_number: int) -> Optional[Move]:
        """G0/G1 - Linear move, with optional extrusion."""
        values = self._parse_axis_values(command, line_number)
        if values is None:
            return None
        return self._execute_move(values, line_number)

    def handle_arc_move(self, command: Command, line_number: int) -> Optional[Move]:
        """
        G2/G3 - Arc move.
        Only the end point is tracked; the arc's bulge is not added to the bounds.
        """
        values = self._parse_axis_values(command, line_number)
        if values is None:
            return None
        return self._execute_move(values, line_number)

    def handle_g28_home(self, command: Command, line_number: int) -> Optional[Move]:
        """G28 - Home the named axes, or all axes when none are named."""
        axes = [axis for axis in 'XYZ' if command.has_param(axis)] or ['X', 'Y', 'Z']
        for axis in axes:
            self.machine_state.set_axis_position(axis, 0.0)
        return None

    def handle_g90_absolute_positioning(self, command: Command, line_number: int) -> Optional[Move]:
        """G90 - Absolute positioning"""
        self.machine_state.distance_mode = DistanceMode.ABSOLUTE
        return None

    def handle_g91_relative_positioning(self, command: Command, line_number: int) -> Optional[Move]:
        """G91 - Relative positioning"""
        self.machine_state.distance_mode = DistanceMode.RELATIVE
        return None

    def handle_g92_set_position(self, command: Command, line_number: int) -> Optional[Move]:
        """
        G92 - Set position
        Sets the logical position of the named axes without moving.
        """
        values = self._parse_axis_values(command, line_number)
        if values is None:
            return None
        for axis, value in values.items():
            self.machine_state.set_axis_position(axis, value)
        return None

    def handle_m82_absolute_extrusion(self, command: Command, line_number: int) -> Optional[Move]:
        """M82 - Absolute extrusion"""
        self.machine_state.extrusion_mode = ExtrusionMode.ABSOLUTE
        return None

    def handle_m83_relative_extrusion(self, command: Command, line_number: int) -> Optional[Move]:
        """M83 - Relative extrusion"""
        self.machine_state.extrusion_mode = ExtrusionMode.RELATIVE
        return None

    def handle_tool_select(self, command: Command, line_number: int) -> Optional[Move]:
        """T<n> - Select the active tool."""
        try:
            self.machine_state.active_tool = int(command.command[1:])
        except ValueError:
            logger.debug("Ignoring tool selection on line %d: %s", line_number, command.command)
        return None

    def _execute_move(self, values: Dict[str, float], line_number: int) -> Optional[Move]:
        state = self.machine_state
        target = state.current_position.copy()

        for axis in 'XYZ':
            if axis in values:
                target.set_axis(axis, state.resolve_axis(axis, values[axis]))

        extrusion = 0.0
        if 'E' in values:
            target.e = state.resolve_extrusion(values['E'])
            extrusion = target.e - state.current_position.e

        state.update_position(target)

        if extrusion > 0 and ('X' in values or 'Y' in values):
            return Move(line_number, target.x, target.y, target.z, extrusion)
        return None

    def _parse_axis_values(self, command: Command, line_number: int) -> Optional[Dict[str, float]]:
        """Convert the X/Y/Z/E words of a command, or report the line as malformed."""
        values: Dict[str, float] = {}
        for axis in self.MOTION_AXES:
            raw = command.get(axis)
            if raw is None:
                continue
            try:
                values[axis] = float(raw)
            except ValueError:
                self._report_malformed(line_number, command, axis, raw)
                return None
        return values

    def _report_malformed(self, line_number: int, command: Command, axis: str, raw: str):
        message = f"Unparsable {axis} value {raw!r} in {command.command}; line treated as non-motion"
        logger.debug("Line %d: %s", line_number, message)
        if self.error_collector is not None:
            self.error_collector.add(line_number, message, DiagnosticCode.MALFORMED_MOTION_LINE)

    def get_position(self) -> Position:
        return self.machine_state.current_position.copy()

    def reset(self):
        """Reset interpreter to the machine defaults."""
        self.machine_state = MachineState()
