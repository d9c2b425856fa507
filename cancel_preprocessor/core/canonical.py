"""
Defines the controller commands inserted into the rewritten file.

These are the literal strings accepted by Klipper's exclude_object module.
Every function returns complete lines, terminated with the caller's line ending.
"""
import json
from typing import Iterator, List, Tuple

from cancel_preprocessor.core.geometry import ObjectRecord, ObjectRegistry

__version__ = "0.3.0"

HEADER_MARKER = f"; Pre-Processed for Cancel-Object support by cancel_preprocessor v{__version__}"

DEFINE_COMMAND = "EXCLUDE_OBJECT_DEFINE"
START_COMMAND = "EXCLUDE_OBJECT_START"
END_COMMAND = "EXCLUDE_OBJECT_END"

# Lines that show a file already carries object definitions
PREPROCESSED_PREFIXES = (DEFINE_COMMAND, "DEFINE_OBJECT")


def dump_coords(x: float, y: float) -> str:
    return f"{x:0.3f},{y:0.3f}"


def dump_polygon(points: List[Tuple[float, float]]) -> str:
    """Compact JSON; the controller splits parameters on whitespace."""
    return json.dumps([[round(x, 3), round(y, 3)] for x, y in points], separators=(',', ':'))


def object_define(record: ObjectRecord, polygon_mode: str = "hull", newline: str = "\n") -> str:
    parts = [f"{DEFINE_COMMAND} NAME={record.name}"]
    center = record.center
    if center is not None:
        parts.append(f"CENTER={dump_coords(center.x, center.y)}")
    polygon = record.polygon(polygon_mode)
    if polygon:
        parts.append(f"POLYGON={dump_polygon(polygon)}")
    return " ".join(parts) + newline


def object_start(name: str, newline: str = "\n") -> str:
    return f"{START_COMMAND} NAME={name}{newline}"


def object_end(name: str, newline: str = "\n") -> str:
    return f"{END_COMMAND} NAME={name}{newline}"


def header_lines(registry: ObjectRegistry, polygon_mode: str = "hull",
                 newline: str = "\n") -> Iterator[str]:
    """The definition block, one EXCLUDE_OBJECT_DEFINE per object in first-seen order."""
    yield HEADER_MARKER + newline
    yield f"; {len(registry)} known objects{newline}"
    for record in registry:
        yield object_define(record, polygon_mode, newline)


def is_preprocessed_line(line: str) -> bool:
    return line.lstrip().startswith(PREPROCESSED_PREFIXES)
