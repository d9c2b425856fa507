"""
Per-object geometry accumulation.
Tracks bounding boxes, centers and simplified hull outlines for every named object.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Tuple, Any, Iterator, Set

from shapely.geometry import MultiPoint, Polygon, box
from shapely.geometry.polygon import orient

from cancel_preprocessor.utils.errors import DiagnosticCollector, DiagnosticCode

logger = logging.getLogger(__name__)


@dataclass
class Point2D:
    """Represents a point on the bed plane."""
    x: float
    y: float

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


class HullTracker:
    """
    Collects points and produces a simplified convex outline.

    The point set is collapsed to the vertices of its simplified convex hull
    whenever it grows past the compaction threshold. The threshold is at least
    max_points and at least twice the size left by the last compaction, so the
    hull cost stays amortized even for round outlines with many vertices.
    """

    def __init__(self, tolerance: float = 0.02, max_points: int = 5000):
        self.tolerance = tolerance
        self.max_points = max_points
        self.points: Set[Tuple[float, float]] = set()
        self.threshold = max_points
        self.compactions = 0

    def add_point(self, x: float, y: float):
        self.points.add((x, y))
        if len(self.points) > self.threshold:
            self._compact()

    def is_empty(self) -> bool:
        return not self.points

    def exterior(self) -> List[Tuple[float, float]]:
        """Closed ring of the simplified hull, or [] if the hull is degenerate."""
        if len(self.points) < 3:
            return []
        hull = self._simplified_hull()
        if not isinstance(hull, Polygon) or hull.is_empty:
            return []
        return [(x, y) for x, y in orient(hull, sign=1.0).exterior.coords]

    def _simplified_hull(self):
        hull = MultiPoint(sorted(self.points)).convex_hull
        if not isinstance(hull, Polygon) or hull.is_empty:
            return hull
        simplified = hull.simplify(self.tolerance, preserve_topology=False)
        if isinstance(simplified, Polygon) and not simplified.is_empty:
            return simplified
        return hull

    def _compact(self):
        hull = self._simplified_hull()
        if isinstance(hull, Polygon):
            self.points = set(hull.exterior.coords)
        else:
            self.points = set(hull.coords)
        self.threshold = max(self.max_points, 2 * len(self.points))
        self.compactions += 1
        logger.debug("Compacted hull points to %d vertices", len(self.points))


@dataclass
class ObjectRecord:
    """Geometry accumulated for a single object."""
    name: str
    raw_identifiers: List[str] = field(default_factory=list)
    bounding_min: Optional[Point2D] = None
    bounding_max: Optional[Point2D] = None
    visits: int = 0        # number of times the object was started
    layers: int = 0        # visits that carried at least one move; layers - 1 is the current layer
    move_count: int = 0
    hull: HullTracker = field(default_factory=HullTracker)

    def add_point(self, x: float, y: float, collect_hull: bool = True):
        """Widen the bounding box (and optionally the hull) to include (x, y)."""
        if self.bounding_min is None:
            self.bounding_min = Point2D(x, y)
            self.bounding_max = Point2D(x, y)
        else:
            self.bounding_min.x = min(self.bounding_min.x, x)
            self.bounding_min.y = min(self.bounding_min.y, y)
            self.bounding_max.x = max(self.bounding_max.x, x)
            self.bounding_max.y = max(self.bounding_max.y, y)
        self.move_count += 1
        if collect_hull:
            self.hull.add_point(x, y)

    @property
    def layer(self) -> int:
        return self.layers - 1

    def has_geometry(self) -> bool:
        return self.bounding_min is not None

    @property
    def center(self) -> Optional[Point2D]:
        """Midpoint of the bounding box."""
        if not self.has_geometry():
            return None
        return Point2D(
            (self.bounding_min.x + self.bounding_max.x) / 2.0,
            (self.bounding_min.y + self.bounding_max.y) / 2.0,
        )

    def contains(self, x: float, y: float) -> bool:
        """Check if (x, y) lies inside the bounding box, edges included."""
        if not self.has_geometry():
            return False
        return (self.bounding_min.x <= x <= self.bounding_max.x
                and self.bounding_min.y <= y <= self.bounding_max.y)

    def bounding_polygon(self) -> List[Tuple[float, float]]:
        """Closed ring of the four bounding box corners."""
        if not self.has_geometry():
            return []
        rect = box(self.bounding_min.x, self.bounding_min.y,
                   self.bounding_max.x, self.bounding_max.y)
        return [(x, y) for x, y in rect.exterior.coords]

    def polygon(self, mode: str = "hull") -> List[Tuple[float, float]]:
        """
        Outline to publish for this object.

        Args:
            mode: "hull" for the simplified convex hull, "bbox" for the box corners.
                  A degenerate or empty hull falls back to the box.
        """
        if mode == "hull":
            outline = self.hull.exterior()
            if outline:
                return outline
        return self.bounding_polygon()


class ObjectRegistry:
    """Insertion-ordered mapping of object name to ObjectRecord."""

    def __init__(self, hull_tolerance: float = 0.02, max_hull_points: int = 5000):
        self.objects: Dict[str, ObjectRecord] = {}
        self.hull_tolerance = hull_tolerance
        self.max_hull_points = max_hull_points
        self.finalized = False

    def ensure(self, name: str, raw_identifier: Optional[str] = None,
               line_number: int = 0,
               error_collector: Optional[DiagnosticCollector] = None) -> ObjectRecord:
        """
        Get the record for name, creating it on first sight.

        A second distinct raw identifier mapping onto an existing name is
        merged into that record and reported as a name collision.
        """
        if self.finalized:
            raise RuntimeError("Object registry is finalized")

        raw_identifier = raw_identifier if raw_identifier is not None else name
        record = self.objects.get(name)
        if record is None:
            logger.info("Found object %s", name)
            record = ObjectRecord(
                name=name,
                raw_identifiers=[raw_identifier],
                hull=HullTracker(self.hull_tolerance, self.max_hull_points),
            )
            self.objects[name] = record
        elif raw_identifier not in record.raw_identifiers:
            message = (f"Object identifiers {record.raw_identifiers[0]!r} and {raw_identifier!r} "
                       f"both map to {name!r}; merging them")
            logger.warning("Line %d: %s", line_number, message)
            if error_collector is not None:
                error_collector.add(line_number, message, DiagnosticCode.NAME_COLLISION)
            record.raw_identifiers.append(raw_identifier)
        return record

    def rename(self, old: str, new: str, line_number: int = 0,
               error_collector: Optional[DiagnosticCollector] = None) -> bool:
        """
        Give the object known as old its final name, keeping its position.

        Returns:
            False if old is unknown or new is already taken; the object keeps its name
        """
        if self.finalized:
            raise RuntimeError("Object registry is finalized")
        if old not in self.objects or old == new:
            return False
        if new in self.objects:
            message = f"Label {new!r} for object {old!r} is already in use; keeping {old!r}"
            logger.warning("Line %d: %s", line_number, message)
            if error_collector is not None:
                error_collector.add(line_number, message, DiagnosticCode.NAME_COLLISION)
            return False

        logger.info("Object %s is labelled %s", old, new)
        self.objects = {
            (new if name == old else name): record for name, record in self.objects.items()
        }
        self.objects[new].name = new
        return True

    def finalize(self):
        """Freeze the registry; no further objects may be added."""
        self.finalized = True

    def get(self, name: str) -> Optional[ObjectRecord]:
        return self.objects.get(name)

    def names(self) -> List[str]:
        return list(self.objects)

    def __contains__(self, name: str) -> bool:
        return name in self.objects

    def __iter__(self) -> Iterator[ObjectRecord]:
        return iter(self.objects.values())

    def __len__(self) -> int:
        return len(self.objects)

    def get_bounding_box(self) -> Tuple[Optional[Point2D], Optional[Point2D]]:
        """Get the overall bounding box of all objects."""
        records = [r for r in self.objects.values() if r.has_geometry()]
        if not records:
            return None, None
        return (
            Point2D(min(r.bounding_min.x for r in records), min(r.bounding_min.y for r in records)),
            Point2D(max(r.bounding_max.x for r in records), max(r.bounding_max.y for r in records)),
        )

    def get_statistics(self) -> Dict[str, Any]:
        """Get per-object statistics."""
        return {
            'total_objects': len(self.objects),
            'objects_without_geometry': sum(1 for r in self.objects.values() if not r.has_geometry()),
            'objects': {
                record.name: {
                    'min': record.bounding_min.to_tuple() if record.has_geometry() else None,
                    'max': record.bounding_max.to_tuple() if record.has_geometry() else None,
                    'center': record.center.to_tuple() if record.has_geometry() else None,
                    'visits': record.visits,
                    'layers': record.layers,
                    'moves': record.move_count,
                }
                for record in self.objects.values()
            },
        }
