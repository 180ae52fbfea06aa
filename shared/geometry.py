# =============================================================================
# Lens Overlay Protocol - Geometry Value Types
# =============================================================================
# Bounding boxes, polygons and crops exchanged between the overlay client and
# the visual search backend.  These are plain value types with no identity:
# they are copied and shared freely.
#
# Coordinate conventions:
#   - Image space has its origin at the top-left corner with y pointing down.
#   - NORMALIZED coordinates are fractions in [0, 1] of the image extent;
#     IMAGE coordinates are absolute pixels.
#   - rotation_z is clockwise, in radians, and is computed in pixel space
#     before normalization.  Converting a box between spaces never touches it.
#   - Polygon winding carries meaning: outer boundaries are clockwise and
#     holes are counter-clockwise.
# =============================================================================

import math
from enum import IntEnum
from typing import List, Optional, Tuple

import numpy as np
from pydantic import Field

from shared.message import Float32, Int32, ProtoMessage


class CoordinateType(IntEnum):
    """Coordinate space of a box or polygon."""

    COORDINATE_TYPE_UNSPECIFIED = 0
    NORMALIZED = 1
    IMAGE = 2


class VertexOrdering(IntEnum):
    """Declared winding of a polygon's vertex list."""

    VERTEX_ORDERING_UNSPECIFIED = 0
    CLOCKWISE = 1
    COUNTER_CLOCKWISE = 2


def _rotation_matrix(rotation: float) -> np.ndarray:
    """Clockwise rotation matrix for a y-down image coordinate system."""
    cos_r = math.cos(rotation)
    sin_r = math.sin(rotation)
    return np.array([[cos_r, -sin_r], [sin_r, cos_r]], dtype=np.float64)


class CenterRotatedBox(ProtoMessage):
    """
    A box described by its center and size, rotated clockwise around its center.

    Attributes:
        center_x:        X coordinate of the center.
        center_y:        Y coordinate of the center.
        width:           Box width.
        height:          Box height.
        rotation_z:      Clockwise rotation in radians, computed in pixel space.
        coordinate_type: Space of center and size.  Producers must set
                         NORMALIZED or IMAGE.
    """

    center_x: Float32 = 0.0
    center_y: Float32 = 0.0
    width: Float32 = 0.0
    height: Float32 = 0.0
    rotation_z: Float32 = 0.0
    coordinate_type: CoordinateType = CoordinateType.COORDINATE_TYPE_UNSPECIFIED

    @property
    def is_normalized(self) -> bool:
        return self.coordinate_type == CoordinateType.NORMALIZED

    def to_image_space(self, image_width: int, image_height: int) -> "CenterRotatedBox":
        """
        Return this box expressed in absolute pixels.

        Boxes already in IMAGE space are returned unchanged.  The rotation is
        carried over as-is since it was computed in pixel space.

        Raises:
            ValueError: If the coordinate type is unspecified.
        """
        if self.coordinate_type == CoordinateType.IMAGE:
            return self
        if not self.is_normalized:
            raise ValueError("Cannot convert a box with unspecified coordinate type")
        return CenterRotatedBox(
            center_x=self.center_x * image_width,
            center_y=self.center_y * image_height,
            width=self.width * image_width,
            height=self.height * image_height,
            rotation_z=self.rotation_z,
            coordinate_type=CoordinateType.IMAGE,
        )

    def to_normalized_space(self, image_width: int, image_height: int) -> "CenterRotatedBox":
        """
        Return this box expressed as fractions of the image extent.

        Raises:
            ValueError: If the coordinate type is unspecified or the image
                        has a zero dimension.
        """
        if self.is_normalized:
            return self
        if self.coordinate_type != CoordinateType.IMAGE:
            raise ValueError("Cannot convert a box with unspecified coordinate type")
        if image_width <= 0 or image_height <= 0:
            raise ValueError(f"Invalid image size {image_width}x{image_height}")
        return CenterRotatedBox(
            center_x=self.center_x / image_width,
            center_y=self.center_y / image_height,
            width=self.width / image_width,
            height=self.height / image_height,
            rotation_z=self.rotation_z,
            coordinate_type=CoordinateType.NORMALIZED,
        )

    def corners(self) -> np.ndarray:
        """
        Compute the four corners of the rotated box.

        Corners are returned clockwise starting from the (unrotated) top-left,
        in the box's own coordinate space.  For a rotated NORMALIZED box the
        result is only geometrically exact on a square image; convert with
        ``to_image_space`` first otherwise.

        Returns:
            numpy array of shape (4, 2).
        """
        half_w = self.width / 2.0
        half_h = self.height / 2.0
        offsets = np.array(
            [[-half_w, -half_h], [half_w, -half_h], [half_w, half_h], [-half_w, half_h]],
            dtype=np.float64,
        )
        rotated = offsets @ _rotation_matrix(self.rotation_z).T
        return rotated + np.array([self.center_x, self.center_y], dtype=np.float64)


class Vertex(ProtoMessage):
    """A single polygon vertex."""

    x: Float32 = 0.0
    y: Float32 = 0.0


class Polygon(ProtoMessage):
    """
    A closed polygon given by its vertex list.

    The vertex order is significant and is never rearranged: clockwise
    polygons are filled regions, counter-clockwise polygons are holes.

    Attributes:
        vertex:          Vertices in boundary order.
        vertex_ordering: Winding declared by the producer (advisory).
        coordinate_type: Space of the vertex coordinates.
    """

    vertex: List[Vertex] = Field(default_factory=list)
    vertex_ordering: VertexOrdering = VertexOrdering.VERTEX_ORDERING_UNSPECIFIED
    coordinate_type: CoordinateType = CoordinateType.COORDINATE_TYPE_UNSPECIFIED

    @classmethod
    def from_points(
        cls,
        points: List[Tuple[float, float]],
        coordinate_type: CoordinateType = CoordinateType.NORMALIZED,
    ) -> "Polygon":
        """Build a polygon from (x, y) pairs, declaring the winding they form."""
        polygon = cls(
            vertex=[Vertex(x=x, y=y) for x, y in points],
            coordinate_type=coordinate_type,
        )
        polygon.vertex_ordering = polygon.winding()
        return polygon

    def points(self) -> np.ndarray:
        """Vertices as a numpy array of shape (N, 2)."""
        if not self.vertex:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array([[v.x, v.y] for v in self.vertex], dtype=np.float64)

    def signed_area(self) -> float:
        """
        Shoelace area of the polygon.

        Positive for clockwise winding in a y-down image space, negative for
        counter-clockwise.
        """
        pts = self.points()
        if len(pts) < 3:
            return 0.0
        x = pts[:, 0]
        y = pts[:, 1]
        return float(0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))

    def winding(self) -> VertexOrdering:
        """Winding implied by the vertex list (UNSPECIFIED if degenerate)."""
        area = self.signed_area()
        if area > 0:
            return VertexOrdering.CLOCKWISE
        if area < 0:
            return VertexOrdering.COUNTER_CLOCKWISE
        return VertexOrdering.VERTEX_ORDERING_UNSPECIFIED

    @property
    def is_hole(self) -> bool:
        return self.winding() == VertexOrdering.COUNTER_CLOCKWISE


class Geometry(ProtoMessage):
    """
    Geometric shape(s) used for tracking and detection.

    Attributes:
        bounding_box:         Optional bounding box.
        segmentation_polygon: Segmentation outlines; outer boundaries and
                              holes are told apart by winding only.
    """

    bounding_box: Optional[CenterRotatedBox] = None
    segmentation_polygon: List[Polygon] = Field(default_factory=list)

    def outer_boundaries(self) -> List[Polygon]:
        return [p for p in self.segmentation_polygon if p.winding() == VertexOrdering.CLOCKWISE]

    def holes(self) -> List[Polygon]:
        return [p for p in self.segmentation_polygon if p.is_hole]


class ZoomedCrop(ProtoMessage):
    """
    A cropped and potentially re-scaled rectangular subregion of a parent image.

    Attributes:
        crop:          Cropped region in parent coordinates.
        parent_width:  Width of the parent image in pixels.
        parent_height: Height of the parent image in pixels.
        zoom:          Ratio of child-image pixel density to the pixel density
                       of ``crop`` in parent space.
    """

    crop: Optional[CenterRotatedBox] = None
    parent_width: Int32 = 0
    parent_height: Int32 = 0
    zoom: Float32 = 0.0

    def crop_in_parent_pixels(self) -> CenterRotatedBox:
        """
        The crop box in absolute parent pixels.

        Raises:
            ValueError: If no crop is set.
        """
        if self.crop is None:
            raise ValueError("ZoomedCrop has no crop box")
        return self.crop.to_image_space(self.parent_width, self.parent_height)

    def child_size(self) -> Tuple[float, float]:
        """Pixel dimensions (width, height) of the child image."""
        box = self.crop_in_parent_pixels()
        return box.width * self.zoom, box.height * self.zoom

    def child_to_parent(self, x: float, y: float) -> Tuple[float, float]:
        """
        Map a child-image pixel coordinate into parent-image pixels.

        Raises:
            ValueError: If zoom is not positive or no crop is set.
        """
        if self.zoom <= 0:
            raise ValueError(f"Invalid zoom {self.zoom}")
        box = self.crop_in_parent_pixels()
        child_w, child_h = box.width * self.zoom, box.height * self.zoom
        offset = np.array([x - child_w / 2.0, y - child_h / 2.0]) / self.zoom
        parent = _rotation_matrix(box.rotation_z) @ offset
        return float(parent[0] + box.center_x), float(parent[1] + box.center_y)

    def parent_to_child(self, x: float, y: float) -> Tuple[float, float]:
        """
        Map a parent-image pixel coordinate into child-image pixels.

        Raises:
            ValueError: If zoom is not positive or no crop is set.
        """
        if self.zoom <= 0:
            raise ValueError(f"Invalid zoom {self.zoom}")
        box = self.crop_in_parent_pixels()
        child_w, child_h = box.width * self.zoom, box.height * self.zoom
        offset = np.array([x - box.center_x, y - box.center_y])
        # Inverse of a rotation matrix is its transpose
        unrotated = _rotation_matrix(box.rotation_z).T @ offset
        child = unrotated * self.zoom
        return float(child[0] + child_w / 2.0), float(child[1] + child_h / 2.0)
