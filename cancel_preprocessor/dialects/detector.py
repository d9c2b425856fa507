"""
Selects the slicer dialect from the header comments of a file.

Detection is a priority-ordered match of fixed signatures against a bounded
prefix of the file; the first dialect with a matching line wins.
"""
import logging
from typing import Dict, Iterable, List, Optional, Type

from .base_dialect import BaseDialect, Dialect
from .m486_dialect import M486Dialect
from .slic3r_dialect import Slic3rDialect
from .orca_dialect import OrcaSlicerDialect
from .cura_dialect import CuraDialect
from .ideamaker_dialect import IdeaMakerDialect
from cancel_preprocessor.utils.errors import DiagnosticCollector, UnrecognizedDialectError

logger = logging.getLogger(__name__)

# Format: {dialect: implementation}, in detection priority order
DIALECT_CLASSES: Dict[Dialect, Type[BaseDialect]] = {
    Dialect.M486: M486Dialect,
    Dialect.SLIC3R: Slic3rDialect,
    Dialect.ORCASLICER: OrcaSlicerDialect,
    Dialect.CURA: CuraDialect,
    Dialect.IDEAMAKER: IdeaMakerDialect,
}


def identify_dialect(prefix: Iterable[str]) -> Optional[Dialect]:
    """Return the highest-priority dialect with a signature in prefix, or None."""
    lines: List[str] = list(prefix)
    for dialect, implementation in DIALECT_CLASSES.items():
        if any(implementation.matches_signature(line) for line in lines):
            logger.info("Identified slicer dialect: %s", dialect.value)
            return dialect
    return None


def detect_dialect(prefix: Iterable[str]) -> Dialect:
    """
    Select the dialect for a file.

    Args:
        prefix: The first lines of the file

    Raises:
        UnrecognizedDialectError: no signature matched
    """
    lines = list(prefix)
    dialect = identify_dialect(lines)
    if dialect is None:
        logger.error("Could not identify slicer")
        raise UnrecognizedDialectError(len(lines))
    return dialect


def create_dialect(dialect: Dialect,
                   error_collector: Optional[DiagnosticCollector] = None) -> BaseDialect:
    """Instantiate the line classifier for a dialect."""
    return DIALECT_CLASSES[dialect](error_collector)
