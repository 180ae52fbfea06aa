# =============================================================================
# Lens Overlay Protocol - Geometry Codec
# =============================================================================
# Encoders and decoders for CenterRotatedBox, Polygon, Geometry and
# ZoomedCrop.  Decoded boxes and polygons are range-checked (when enabled in
# the decode context) and any problems are attached as diagnostics; the value
# itself is always returned.  Polygon vertices keep their wire order.
# =============================================================================

from codec.diagnostics import join_path
from codec.registry import CENTER_ROTATED_BOX, GEOMETRY, POLYGON, VERTEX, ZOOMED_CROP
from codec.validation import check_box, check_polygon
from codec.wire import (
    DecodeContext,
    WireWriter,
    iter_known_fields,
    merge_chunks,
    nested,
    to_enum,
    to_float,
    to_int32,
    write_unknown,
)
from shared.geometry import (
    CenterRotatedBox,
    CoordinateType,
    Geometry,
    Polygon,
    Vertex,
    VertexOrdering,
    ZoomedCrop,
)

_BOX_FLOATS = ("center_x", "center_y", "width", "height", "rotation_z")


# ---------------------------------------------------------------------------
# CenterRotatedBox
# ---------------------------------------------------------------------------

def encode_center_rotated_box(box: CenterRotatedBox) -> bytes:
    writer = WireWriter()
    for name in _BOX_FLOATS:
        writer.float_field(CENTER_ROTATED_BOX.number(name), getattr(box, name))
    writer.varint_field(CENTER_ROTATED_BOX.number("coordinate_type"), int(box.coordinate_type))
    write_unknown(writer, box.unknown_fields, CENTER_ROTATED_BOX)
    return writer.getvalue()


def decode_center_rotated_box(data: bytes, ctx: DecodeContext, path: str = "") -> CenterRotatedBox:
    unknown = bytearray()
    values = {}
    with nested(ctx, CENTER_ROTATED_BOX.name):
        for name, record in iter_known_fields(data, CENTER_ROTATED_BOX, ctx, path, unknown):
            if name == "coordinate_type":
                member = to_enum(record, CoordinateType, CENTER_ROTATED_BOX.name, ctx, path, unknown)
                if member is not None:
                    values[name] = member
                else:
                    values.pop(name, None)
            else:
                values[name] = to_float(record.value)

    box = CenterRotatedBox(unknown_fields=bytes(unknown), **values)
    if ctx.validate_coordinates:
        ctx.diagnostics.extend(check_box(box, path))
    return box


# ---------------------------------------------------------------------------
# Polygon
# ---------------------------------------------------------------------------

def encode_vertex(vertex: Vertex) -> bytes:
    writer = WireWriter()
    writer.float_field(VERTEX.number("x"), vertex.x)
    writer.float_field(VERTEX.number("y"), vertex.y)
    write_unknown(writer, vertex.unknown_fields, VERTEX)
    return writer.getvalue()


def decode_vertex(data: bytes, ctx: DecodeContext, path: str = "") -> Vertex:
    unknown = bytearray()
    values = {}
    with nested(ctx, VERTEX.name):
        for name, record in iter_known_fields(data, VERTEX, ctx, path, unknown):
            values[name] = to_float(record.value)
    return Vertex(unknown_fields=bytes(unknown), **values)


def encode_polygon(polygon: Polygon) -> bytes:
    writer = WireWriter()
    for vertex in polygon.vertex:
        writer.message_field(POLYGON.number("vertex"), encode_vertex(vertex))
    writer.varint_field(POLYGON.number("vertex_ordering"), int(polygon.vertex_ordering))
    writer.varint_field(POLYGON.number("coordinate_type"), int(polygon.coordinate_type))
    write_unknown(writer, polygon.unknown_fields, POLYGON)
    return writer.getvalue()


def decode_polygon(data: bytes, ctx: DecodeContext, path: str = "") -> Polygon:
    unknown = bytearray()
    vertices = []
    values = {}
    with nested(ctx, POLYGON.name):
        for name, record in iter_known_fields(data, POLYGON, ctx, path, unknown):
            if name == "vertex":
                vertex_path = join_path(path, f"vertex[{len(vertices)}]")
                vertices.append(decode_vertex(record.value, ctx, vertex_path))
            elif name == "vertex_ordering":
                member = to_enum(record, VertexOrdering, POLYGON.name, ctx, path, unknown)
                if member is not None:
                    values[name] = member
                else:
                    values.pop(name, None)
            elif name == "coordinate_type":
                member = to_enum(record, CoordinateType, POLYGON.name, ctx, path, unknown)
                if member is not None:
                    values[name] = member
                else:
                    values.pop(name, None)

    polygon = Polygon(vertex=vertices, unknown_fields=bytes(unknown), **values)
    if ctx.validate_coordinates:
        ctx.diagnostics.extend(check_polygon(polygon, path))
    return polygon


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def encode_geometry(geometry: Geometry) -> bytes:
    writer = WireWriter()
    if geometry.bounding_box is not None:
        writer.message_field(GEOMETRY.number("bounding_box"), encode_center_rotated_box(geometry.bounding_box))
    for polygon in geometry.segmentation_polygon:
        writer.message_field(GEOMETRY.number("segmentation_polygon"), encode_polygon(polygon))
    write_unknown(writer, geometry.unknown_fields, GEOMETRY)
    return writer.getvalue()


def decode_geometry(data: bytes, ctx: DecodeContext, path: str = "") -> Geometry:
    unknown = bytearray()
    box_chunks = []
    polygons = []
    with nested(ctx, GEOMETRY.name):
        for name, record in iter_known_fields(data, GEOMETRY, ctx, path, unknown):
            if name == "bounding_box":
                box_chunks.append(record.value)
            elif name == "segmentation_polygon":
                polygon_path = join_path(path, f"segmentation_polygon[{len(polygons)}]")
                polygons.append(decode_polygon(record.value, ctx, polygon_path))

        bounding_box = None
        if box_chunks:
            bounding_box = decode_center_rotated_box(
                merge_chunks(box_chunks), ctx, join_path(path, "bounding_box")
            )

    return Geometry(
        bounding_box=bounding_box,
        segmentation_polygon=polygons,
        unknown_fields=bytes(unknown),
    )


# ---------------------------------------------------------------------------
# ZoomedCrop
# ---------------------------------------------------------------------------

def encode_zoomed_crop(crop: ZoomedCrop) -> bytes:
    writer = WireWriter()
    if crop.crop is not None:
        writer.message_field(ZOOMED_CROP.number("crop"), encode_center_rotated_box(crop.crop))
    writer.varint_field(ZOOMED_CROP.number("parent_width"), crop.parent_width)
    writer.varint_field(ZOOMED_CROP.number("parent_height"), crop.parent_height)
    writer.float_field(ZOOMED_CROP.number("zoom"), crop.zoom)
    write_unknown(writer, crop.unknown_fields, ZOOMED_CROP)
    return writer.getvalue()


def decode_zoomed_crop(data: bytes, ctx: DecodeContext, path: str = "") -> ZoomedCrop:
    unknown = bytearray()
    crop_chunks = []
    values = {}
    with nested(ctx, ZOOMED_CROP.name):
        for name, record in iter_known_fields(data, ZOOMED_CROP, ctx, path, unknown):
            if name == "crop":
                crop_chunks.append(record.value)
            elif name == "zoom":
                values[name] = to_float(record.value)
            else:
                values[name] = to_int32(record.value)

        if crop_chunks:
            values["crop"] = decode_center_rotated_box(merge_chunks(crop_chunks), ctx, join_path(path, "crop"))

    return ZoomedCrop(unknown_fields=bytes(unknown), **values)
