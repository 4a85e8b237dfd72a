"""
Polygon boolean operations used by the isochrone engine.

Every operation here absorbs failures of the geometry library: the failure is
logged and the unaffected operand is returned, so a single degenerate polygon
degrades the drawing instead of breaking the session. Empty results are
returned as ``None`` (nothing to draw).
"""
import logging
from typing import Iterable, List, Optional

from shapely.errors import ShapelyError
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

logger = logging.getLogger(__name__)

GEOMETRY_ERRORS = (ShapelyError, ValueError)


def _present(geom: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
    if geom is None or geom.is_empty:
        return None
    return geom


def union(a: Optional[BaseGeometry], b: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
    a, b = _present(a), _present(b)
    if a is None:
        return b
    if b is None:
        return a
    try:
        return _present(a.union(b))
    except GEOMETRY_ERRORS as e:
        logger.warning("Union failed, keeping left operand: %s", e)
        return a


def union_all(geoms: Iterable[Optional[BaseGeometry]]) -> Optional[BaseGeometry]:
    """Union of all geometries in one pass; folds pairwise if the single pass fails."""
    parts: List[BaseGeometry] = [g for g in geoms if _present(g) is not None]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    try:
        return _present(unary_union(parts))
    except GEOMETRY_ERRORS as e:
        logger.warning("Union of %d polygons failed, folding pairwise: %s", len(parts), e)

    result: Optional[BaseGeometry] = None
    for g in parts:
        result = union(result, g)
    return result


def difference(a: Optional[BaseGeometry], b: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
    """a minus b. Absent a gives None, absent b leaves a unchanged."""
    a, b = _present(a), _present(b)
    if a is None:
        return None
    if b is None:
        return a
    try:
        return _present(a.difference(b))
    except GEOMETRY_ERRORS as e:
        logger.warning("Difference failed, drawing minuend unchanged: %s", e)
        return a


def area(geom: Optional[BaseGeometry]) -> float:
    geom = _present(geom)
    return geom.area if geom is not None else 0.0


def simplify(geom: BaseGeometry, tolerance: Optional[float]) -> BaseGeometry:
    if not tolerance or tolerance <= 0:
        return geom
    try:
        simplified = geom.simplify(tolerance, preserve_topology=True)
    except GEOMETRY_ERRORS as e:
        logger.warning("Simplify failed, keeping original geometry: %s", e)
        return geom
    return simplified if not simplified.is_empty else geom
