"""
Processing configuration for the cancellation preprocessor.
Simple configuration presets plus the layer filter used for outline collection.
"""
import json
import logging
import sys
from dataclasses import dataclass, asdict
from typing import List

from cancel_preprocessor.utils.errors import LayerFilterError

logger = logging.getLogger(__name__)

POLYGON_MODES = ("hull", "bbox")


@dataclass
class LayerRange:
    """Inclusive range of layers with a step, e.g. 1-10/2."""
    start: int = 0
    stop: int = sys.maxsize
    step: int = 1

    def contains(self, value: int) -> bool:
        return self.start <= value <= self.stop and (value - self.start) % self.step == 0


class LayerFilter:
    """
    Selects the layers that contribute outline points.

    Syntax, comma separated:
        '*'      every layer
        '*/n'    every nth layer
        'n'      a single layer
        'n-m'    layers n to m ('n-' and '-m' are open ended)
        'n-m/s'  every sth layer from n to m
    """

    def __init__(self, ranges: List[LayerRange]):
        self.ranges = ranges

    def contains(self, value: int) -> bool:
        return any(layer_range.contains(value) for layer_range in self.ranges)

    @classmethod
    def parse(cls, text: str) -> 'LayerFilter':
        return cls([cls._parse_range(part.strip()) for part in text.split(',')])

    @staticmethod
    def _parse_range(text: str) -> LayerRange:
        if text.isdigit():
            return LayerRange(int(text), int(text), 1)
        if text == '*':
            return LayerRange()

        layer_range = LayerRange(0, 1, 1)
        if text.startswith('*'):
            layer_range.start, layer_range.stop = 0, sys.maxsize

        if '/' in text:
            text, step = text.split('/', 1)
            if not step.isdigit() or int(step) == 0:
                raise LayerFilterError(f"The given step size of {step} could not be parsed")
            layer_range.step = int(step)

        if '-' in text:
            start, stop = text.split('-', 1)
            start = start or '0'
            if not start.isdigit():
                raise LayerFilterError(f"The start value {start} could not be parsed")
            if stop and not stop.isdigit():
                raise LayerFilterError(f"The stop value {stop} could not be parsed")
            layer_range.start = int(start)
            layer_range.stop = int(stop) if stop else sys.maxsize
        elif text != '*':
            raise LayerFilterError(f"Invalid layer filter definition: {text}")

        return layer_range


@dataclass
class ProcessingConfig:
    """Configuration for one preprocessing run."""
    name: str = "default"

    # Number of lines searched for a slicer signature
    detect_lines: int = 500

    # Outline published in EXCLUDE_OBJECT_DEFINE: "hull" or "bbox"
    polygon_mode: str = "hull"
    layers: str = "*"
    hull_tolerance: float = 0.02
    max_hull_points: int = 5000

    # With no objects found, copy the input unchanged instead of adding an empty header
    passthrough_when_empty: bool = True

    def __post_init__(self):
        if self.polygon_mode not in POLYGON_MODES:
            raise ValueError(f"polygon_mode must be one of {POLYGON_MODES}, got {self.polygon_mode!r}")
        if self.detect_lines <= 0:
            raise ValueError("detect_lines must be positive")

    def layer_filter(self) -> LayerFilter:
        return LayerFilter.parse(self.layers)


class ConfigManager:
    """Manages processing configurations with simple presets."""

    @staticmethod
    def default() -> ProcessingConfig:
        """Hull outlines from every layer."""
        return ProcessingConfig()

    @staticmethod
    def fast() -> ProcessingConfig:
        """Hull outlines from the first layer only."""
        return ProcessingConfig(name="fast", layers="0")

    @staticmethod
    def bbox() -> ProcessingConfig:
        """Bounding box outlines, no hull point collection (low memory)."""
        return ProcessingConfig(name="bbox", polygon_mode="bbox")

    @staticmethod
    def get_config(name: str) -> ProcessingConfig:
        """Get configuration by preset name."""
        configs = {
            "default": ConfigManager.default,
            "fast": ConfigManager.fast,
            "bbox": ConfigManager.bbox,
        }
        return configs.get(name.lower(), ConfigManager.default)()

    @staticmethod
    def save_config(config: ProcessingConfig, filepath: str):
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(asdict(config), f, indent=2)

    @staticmethod
    def load_config(filepath: str) -> ProcessingConfig:
        """Load configuration from JSON file, falling back to the default preset."""
        try:
            with open(filepath, 'r') as f:
                data = json.load(f)
            return ProcessingConfig(**data)
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Could not load configuration from %s (%s); using defaults", filepath, e)
            return ConfigManager.default()

    @staticmethod
    def validate(config: ProcessingConfig):
        """Raise LayerFilterError if the layer filter cannot be parsed."""
        config.layer_filter()
