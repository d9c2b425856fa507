import io
import os
import re

import pytest

from cancel_preprocessor.config.processing_config import ProcessingConfig
from cancel_preprocessor.core.canonical import HEADER_MARKER
from cancel_preprocessor.gcode_processor import GCodeProcessor

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")

INSERTED_PATTERN = re.compile(r'^(EXCLUDE_OBJECT_(DEFINE|START|END) |; \d+ known objects\r?\n?$)')


def read_fixture(name: str) -> str:
    with open(os.path.join(FIXTURES, name), "r", newline="") as f:
        return f.read()


def run(text: str, config: ProcessingConfig = None):
    """Process text in memory and return (output, result)."""
    output = io.StringIO(newline="")
    result = GCodeProcessor(config).process(io.StringIO(text, newline=""), output)
    return output.getvalue(), result


def strip_inserted(text: str) -> str:
    """Remove every line the processor inserts."""
    return "".join(
        line for line in text.splitlines(keepends=True)
        if not line.startswith(HEADER_MARKER) and not INSERTED_PATTERN.match(line)
    )


@pytest.fixture
def fixture_text():
    return read_fixture
