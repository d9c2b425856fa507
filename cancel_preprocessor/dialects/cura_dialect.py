"""
Cura dialect.

Cura announces the mesh it is about to print and never closes it explicitly:
    ;MESH:cube.stl
    ;MESH:NONMESH
A ;TIME_ELAPSED: line ends every layer, which also ends the active mesh.
"""
from .base_dialect import BaseDialect, Dialect, LineKind, ObjectEnd, OTHER

MESH_PREFIX = ";MESH:"
NONMESH = "NONMESH"
TIME_ELAPSED_PREFIX = ";TIME_ELAPSED:"


class CuraDialect(BaseDialect):
    dialect = Dialect.CURA
    signatures = (";Generated with Cura_SteamEngine",)
    switches_implicitly = True

    def classify(self, line: str, line_number: int = 0) -> LineKind:
        if not line.startswith(';'):
            return OTHER

        if line.startswith(MESH_PREFIX):
            mesh = line[len(MESH_PREFIX):].strip()
            if mesh == NONMESH:
                return ObjectEnd()
            return self._start(mesh, line_number)

        if line.startswith(TIME_ELAPSED_PREFIX):
            return ObjectEnd()

        return OTHER
