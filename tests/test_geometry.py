import math
import struct

import numpy as np
import pytest

from codec import DiagnosticKind, decode, encode
from codec.errors import InvalidGeometryError
from codec.validation import check_box, ensure_producible
from codec.wire import WireType, encode_varint
from shared.geometry import (
    CenterRotatedBox,
    CoordinateType,
    Geometry,
    Polygon,
    VertexOrdering,
    ZoomedCrop,
)


def _normalized_box(**overrides):
    values = dict(
        center_x=0.5,
        center_y=0.5,
        width=0.2,
        height=0.1,
        rotation_z=0.0,
        coordinate_type=CoordinateType.NORMALIZED,
    )
    values.update(overrides)
    return CenterRotatedBox(**values)


def test_floats_are_held_at_float32_precision():
    box = CenterRotatedBox(center_x=0.1)
    assert box.center_x == float(np.float32(0.1))


def test_box_wire_bytes():
    box = CenterRotatedBox(center_x=0.5, coordinate_type=CoordinateType.NORMALIZED)
    assert encode(box) == b"\x0d" + struct.pack("<f", 0.5) + b"\x30\x01"


def test_normalized_box_passes_range_validation():
    box = _normalized_box()
    assert check_box(box) == []

    result = decode(CenterRotatedBox, encode(box))
    assert result.message == box
    assert result.ok


def test_out_of_range_box_is_reported_but_decoded():
    box = _normalized_box(width=1.5)

    result = decode(CenterRotatedBox, encode(box))

    assert result.message.width == 1.5
    assert result.has(DiagnosticKind.COORDINATE_RANGE)
    with pytest.raises(InvalidGeometryError):
        ensure_producible(box)


def test_image_boxes_are_not_range_checked():
    box = CenterRotatedBox(center_x=640, center_y=480, width=200, height=100,
                           coordinate_type=CoordinateType.IMAGE)
    assert check_box(box) == []


def test_non_finite_rotation_is_flagged():
    box = _normalized_box(rotation_z=float("inf"))

    result = decode(CenterRotatedBox, encode(box))

    assert math.isinf(result.message.rotation_z)
    assert result.has(DiagnosticKind.INVALID_ROTATION)
    with pytest.raises(InvalidGeometryError):
        ensure_producible(_normalized_box(rotation_z=float("nan")))


def test_unspecified_coordinate_type_is_tolerated_on_ingest():
    box = CenterRotatedBox(center_x=3.0, width=7.0)

    result = decode(CenterRotatedBox, encode(box))

    assert result.message == box
    assert result.has(DiagnosticKind.UNSPECIFIED_COORDINATE_TYPE)
    assert not result.has(DiagnosticKind.COORDINATE_RANGE)


def test_validation_can_be_disabled_on_decode():
    result = decode(CenterRotatedBox, encode(_normalized_box(width=1.5)), validate_coordinates=False)
    assert result.ok


def test_negative_zero_is_emitted():
    box = CenterRotatedBox(rotation_z=-0.0, coordinate_type=CoordinateType.IMAGE)
    decoded = decode(CenterRotatedBox, encode(box)).message
    assert math.copysign(1.0, decoded.rotation_z) == -1.0


def test_space_conversion_keeps_rotation():
    box = _normalized_box(rotation_z=0.25)

    image_box = box.to_image_space(200, 100)

    assert image_box.coordinate_type == CoordinateType.IMAGE
    assert image_box.center_x == pytest.approx(100)
    assert image_box.width == pytest.approx(40)
    assert image_box.rotation_z == box.rotation_z
    back = image_box.to_normalized_space(200, 100)
    assert back.width == pytest.approx(0.2)
    assert back.rotation_z == box.rotation_z


def test_corners_of_unrotated_box():
    box = CenterRotatedBox(center_x=10, center_y=20, width=4, height=2, coordinate_type=CoordinateType.IMAGE)
    np.testing.assert_allclose(box.corners(), [[8, 19], [12, 19], [12, 21], [8, 21]])


def test_polygon_winding_survives_round_trip():
    outer = Polygon.from_points([(0.1, 0.1), (0.9, 0.1), (0.9, 0.9), (0.1, 0.9)])
    hole = Polygon.from_points([(0.4, 0.4), (0.4, 0.6), (0.6, 0.6), (0.6, 0.4)])
    geometry = Geometry(bounding_box=_normalized_box(), segmentation_polygon=[outer, hole])

    decoded = decode(Geometry, encode(geometry)).message

    assert decoded == geometry
    assert [(v.x, v.y) for v in decoded.segmentation_polygon[1].vertex] == [
        (v.x, v.y) for v in hole.vertex
    ]
    assert decoded.outer_boundaries() == [outer]
    assert decoded.holes() == [hole]


def test_winding_from_signed_area():
    clockwise = Polygon.from_points([(0, 0), (1, 0), (1, 1), (0, 1)], CoordinateType.IMAGE)
    counter = Polygon.from_points([(0, 0), (0, 1), (1, 1), (1, 0)], CoordinateType.IMAGE)
    degenerate = Polygon.from_points([(0, 0), (1, 1)], CoordinateType.IMAGE)

    assert clockwise.signed_area() == pytest.approx(1.0)
    assert clockwise.winding() == VertexOrdering.CLOCKWISE
    assert counter.is_hole
    assert degenerate.winding() == VertexOrdering.VERTEX_ORDERING_UNSPECIFIED


def test_out_of_range_polygon_vertex_is_reported():
    polygon = Polygon.from_points([(0.1, 0.1), (1.2, 0.1), (0.5, 0.9)])
    result = decode(Polygon, encode(polygon))
    assert result.has(DiagnosticKind.COORDINATE_RANGE)
    assert result.message == polygon


def test_reserved_geometry_field_is_dropped_and_flagged():
    data = encode(Geometry(bounding_box=_normalized_box())) + encode_varint((3 << 3) | WireType.VARINT) + b"\x07"

    result = decode(Geometry, data)

    assert result.message == Geometry(bounding_box=_normalized_box())
    assert result.message.unknown_fields == b""
    assert result.has(DiagnosticKind.RESERVED_FIELD)


def test_repeated_bounding_box_occurrences_merge():
    first = encode(Geometry(bounding_box=CenterRotatedBox(center_x=0.25)))
    second = encode(Geometry(bounding_box=CenterRotatedBox(width=0.5, coordinate_type=CoordinateType.NORMALIZED)))

    decoded = decode(Geometry, first + second).message

    assert decoded.bounding_box.center_x == 0.25
    assert decoded.bounding_box.width == 0.5
    assert decoded.bounding_box.coordinate_type == CoordinateType.NORMALIZED


def test_zoomed_crop_round_trip_and_mapping():
    crop = ZoomedCrop(
        crop=CenterRotatedBox(center_x=100, center_y=50, width=40, height=20,
                              coordinate_type=CoordinateType.IMAGE),
        parent_width=400,
        parent_height=200,
        zoom=2.0,
    )
    assert decode(ZoomedCrop, encode(crop)).message == crop

    assert crop.child_size() == (80, 40)
    assert crop.child_to_parent(40, 20) == pytest.approx((100, 50))
    assert crop.child_to_parent(0, 0) == pytest.approx((80, 40))
    assert crop.parent_to_child(80, 40) == pytest.approx((0, 0))


def test_zoomed_crop_mapping_honours_rotation():
    crop = ZoomedCrop(
        crop=CenterRotatedBox(center_x=100, center_y=50, width=40, height=20,
                              rotation_z=math.pi / 2, coordinate_type=CoordinateType.IMAGE),
        parent_width=400,
        parent_height=200,
        zoom=2.0,
    )
    # Right-middle of the child lands below the crop center after a quarter turn clockwise
    assert crop.child_to_parent(80, 20) == pytest.approx((100, 70), abs=1e-4)
    assert crop.parent_to_child(100, 70) == pytest.approx((80, 20), abs=1e-4)


def test_zoomed_crop_resolves_normalized_crop():
    crop = ZoomedCrop(crop=_normalized_box(width=0.5, height=0.5), parent_width=200, parent_height=100, zoom=1.0)

    box = crop.crop_in_parent_pixels()

    assert (box.center_x, box.center_y, box.width, box.height) == pytest.approx((100, 50, 100, 50))


def test_zoomed_crop_rejects_zero_zoom():
    crop = ZoomedCrop(crop=_normalized_box(), parent_width=10, parent_height=10)
    with pytest.raises(ValueError):
        crop.child_to_parent(0, 0)


def test_unknown_coordinate_type_after_known_one_reads_as_default():
    result = decode(CenterRotatedBox, b"\x30\x01\x30\x07")

    assert result.message.coordinate_type == CoordinateType.COORDINATE_TYPE_UNSPECIFIED
    assert result.message.unknown_fields == b"\x30\x07"
    assert result.has(DiagnosticKind.UNKNOWN_ENUM_VALUE)


def test_merged_polygon_chunks_keep_last_enum_occurrence():
    first = Polygon(vertex_ordering=VertexOrdering.CLOCKWISE, coordinate_type=CoordinateType.IMAGE)
    later = b"\x10\x09"

    result = decode(Polygon, encode(first) + later)

    assert result.message.vertex_ordering == VertexOrdering.VERTEX_ORDERING_UNSPECIFIED
    assert result.message.coordinate_type == CoordinateType.IMAGE
    assert result.message.unknown_fields == later


def test_is_normalized_follows_coordinate_type():
    assert _normalized_box().is_normalized
    assert not CenterRotatedBox(coordinate_type=CoordinateType.IMAGE).is_normalized
    assert not CenterRotatedBox().is_normalized
    unspecified = CenterRotatedBox(center_x=3.0)
    assert [d.kind for d in check_box(unspecified)] == [DiagnosticKind.UNSPECIFIED_COORDINATE_TYPE]
    with pytest.raises(ValueError):
        unspecified.to_image_space(10, 10)
