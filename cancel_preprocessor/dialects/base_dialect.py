"""
Defines the base class for a slicer dialect and the line classification results.
"""
import re
import unicodedata
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from cancel_preprocessor.utils.errors import DiagnosticCollector, DiagnosticCode


class Dialect(Enum):
    M486 = "m486"
    SLIC3R = "slic3r"
    ORCASLICER = "orcaslicer"
    CURA = "cura"
    IDEAMAKER = "ideamaker"


@dataclass(frozen=True)
class ObjectStart:
    name: str
    raw_identifier: str


@dataclass(frozen=True)
class ObjectEnd:
    name: Optional[str] = None


@dataclass(frozen=True)
class Other:
    pass


LineKind = Union[ObjectStart, ObjectEnd, Other]

OTHER = Other()

CLEAN_PATTERN = re.compile(r'\W+')


def sanitize_name(raw: str) -> str:
    """Transliterate to ASCII and collapse everything but word characters to '_'."""
    ascii_name = unicodedata.normalize('NFKD', raw).encode('ascii', 'ignore').decode('ascii')
    return CLEAN_PATTERN.sub('_', ascii_name).strip('_')


class BaseDialect(ABC):
    """
    Recognizes object markers for one slicer.

    Instances hold per-pass state (e.g. a pending name) and must be created
    fresh, or reset(), for every pass over a file.
    """

    dialect: Dialect
    signatures: Tuple[str, ...] = ()

    # True when the grammar switches objects by announcing the next one,
    # so a start while another object is active is normal, not an anomaly.
    switches_implicitly: bool = False

    def __init__(self, error_collector: Optional[DiagnosticCollector] = None):
        self.error_collector = error_collector

    @classmethod
    def matches_signature(cls, line: str) -> bool:
        line = line.strip()
        return any(line.startswith(signature) for signature in cls.signatures)

    @abstractmethod
    def classify(self, line: str, line_number: int = 0) -> LineKind:
        """Classify one raw line (terminator stripped)."""

    def reset(self):
        """Clear per-pass state."""

    def learned_names(self) -> Dict[str, Tuple[str, int]]:
        """
        Final names for objects that were started under their raw identifier,
        as {identifier: (name, line number of the label)}.
        """
        return {}

    def use_names(self, names: Dict[str, str]):
        """Start objects under the names learned by an earlier pass."""

    def _start(self, raw: str, line_number: int) -> LineKind:
        raw = raw.strip()
        name = sanitize_name(raw)
        if not name:
            if self.error_collector is not None:
                self.error_collector.add(
                    line_number,
                    f"Object identifier {raw!r} is empty after sanitizing; marker ignored",
                    DiagnosticCode.INVALID_OBJECT_NAME,
                )
            return OTHER
        return ObjectStart(name, raw)
