# =============================================================================
# Lens Overlay Protocol - Geometry Validation
# =============================================================================
# Checks that the wire format cannot enforce but that conforming producers
# must honour:
#   - rotation_z is finite,
#   - coordinate_type is NORMALIZED or IMAGE,
#   - NORMALIZED boxes keep center and size within [0, 1].
#
# Decoders only *report* these problems (the value is still returned);
# producers call ``ensure_producible`` which raises.
# =============================================================================

import math
from typing import List

from codec.diagnostics import Diagnostic, DiagnosticKind, join_path
from codec.errors import InvalidGeometryError
from shared.geometry import CenterRotatedBox, CoordinateType, Geometry, Polygon

_BOX_TYPE = "CenterRotatedBox"


def check_box(box: CenterRotatedBox, path: str = "") -> List[Diagnostic]:
    """
    Validate a single box.

    Args:
        box:  Box to check.
        path: Dotted field path used in the returned diagnostics.

    Returns:
        One diagnostic per failed check; empty when the box is valid.
    """
    issues: List[Diagnostic] = []

    if not math.isfinite(box.rotation_z):
        issues.append(Diagnostic(
            DiagnosticKind.INVALID_ROTATION, _BOX_TYPE, path,
            f"rotation_z must be finite, got {box.rotation_z}",
        ))

    if box.coordinate_type == CoordinateType.COORDINATE_TYPE_UNSPECIFIED:
        issues.append(Diagnostic(
            DiagnosticKind.UNSPECIFIED_COORDINATE_TYPE, _BOX_TYPE, path,
            "coordinate_type is unspecified; expected NORMALIZED or IMAGE",
        ))
    elif box.is_normalized:
        for name in ("center_x", "center_y", "width", "height"):
            value = getattr(box, name)
            # NaN fails both comparisons, so it is reported too
            if not 0.0 <= value <= 1.0:
                issues.append(Diagnostic(
                    DiagnosticKind.COORDINATE_RANGE, _BOX_TYPE, path,
                    f"normalized {name}={value} outside [0, 1]",
                ))
    return issues


def check_point(x: float, y: float, path: str = "") -> List[Diagnostic]:
    """Report a tap point outside the normalized [0, 1] square."""
    if 0.0 <= x <= 1.0 and 0.0 <= y <= 1.0:
        return []
    return [Diagnostic(
        DiagnosticKind.COORDINATE_RANGE, "Point", path,
        f"normalized point ({x}, {y}) outside [0, 1]",
    )]


def check_polygon(polygon: Polygon, path: str = "") -> List[Diagnostic]:
    """Report out-of-range vertices of a NORMALIZED polygon."""
    if polygon.coordinate_type != CoordinateType.NORMALIZED:
        return []
    issues: List[Diagnostic] = []
    for index, vertex in enumerate(polygon.vertex):
        if not (0.0 <= vertex.x <= 1.0 and 0.0 <= vertex.y <= 1.0):
            issues.append(Diagnostic(
                DiagnosticKind.COORDINATE_RANGE, "Polygon", join_path(path, f"vertex[{index}]"),
                f"normalized vertex ({vertex.x}, {vertex.y}) outside [0, 1]",
            ))
    return issues


def check_geometry(geometry: Geometry, path: str = "") -> List[Diagnostic]:
    """Validate the bounding box and every segmentation polygon of a geometry."""
    issues: List[Diagnostic] = []
    if geometry.bounding_box is not None:
        issues.extend(check_box(geometry.bounding_box, join_path(path, "bounding_box")))
    for index, polygon in enumerate(geometry.segmentation_polygon):
        issues.extend(check_polygon(polygon, join_path(path, f"segmentation_polygon[{index}]")))
    return issues


def ensure_producible(box: CenterRotatedBox) -> CenterRotatedBox:
    """
    Refuse boxes that a conforming producer must not emit.

    Returns:
        The box unchanged, for chaining.

    Raises:
        InvalidGeometryError: If any check fails.
    """
    issues = check_box(box)
    if issues:
        raise InvalidGeometryError(issues)
    return box


def ensure_producible_geometry(geometry: Geometry) -> Geometry:
    """
    Geometry counterpart of ``ensure_producible``.

    Raises:
        InvalidGeometryError: If any check fails.
    """
    issues = check_geometry(geometry)
    if issues:
        raise InvalidGeometryError(issues)
    return geometry
