# =============================================================================
# Lens Overlay Protocol - Interaction Request Metadata Codec
# =============================================================================
# Encoders and decoders for LensOverlayInteractionRequestMetadata and its
# nested SelectionMetadata / QueryMetadata messages, plus TextQuery.
#
# The ``selection`` oneof follows the proto3 parsing rule: when several
# members appear on the wire the last one wins, and earlier members are
# discarded.  Each switch is reported as a ONEOF_AMBIGUITY diagnostic.
# Repeated occurrences of the *same* member merge.
# =============================================================================

import logging

from codec.diagnostics import DiagnosticKind, join_path
from codec.geometry import (
    decode_center_rotated_box,
    decode_geometry,
    encode_center_rotated_box,
    encode_geometry,
)
from codec.registry import (
    INTERACTION_REQUEST_METADATA,
    OBJECT,
    POINT,
    QUERY_METADATA,
    REGION,
    SELECTION_METADATA,
    TEXT_QUERY,
)
from codec.wire import (
    DecodeContext,
    WireWriter,
    iter_known_fields,
    merge_chunks,
    nested,
    to_enum,
    to_float,
    to_string,
    write_unknown,
)
from shared.schemas import (
    InteractionType,
    LensOverlayInteractionRequestMetadata,
    ObjectSelection,
    PointSelection,
    QueryMetadata,
    RegionSelection,
    SelectionMetadata,
    TextQuery,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# TextQuery
# ---------------------------------------------------------------------------

def encode_text_query(text_query: TextQuery) -> bytes:
    writer = WireWriter()
    writer.string_field(TEXT_QUERY.number("query"), text_query.query)
    writer.bool_field(TEXT_QUERY.number("is_primary"), text_query.is_primary)
    write_unknown(writer, text_query.unknown_fields, TEXT_QUERY)
    return writer.getvalue()


def decode_text_query(data: bytes, ctx: DecodeContext, path: str = "") -> TextQuery:
    unknown = bytearray()
    values = {}
    with nested(ctx, TEXT_QUERY.name):
        for name, record in iter_known_fields(data, TEXT_QUERY, ctx, path, unknown):
            if name == "query":
                values[name] = to_string(record, TEXT_QUERY.name)
            elif name == "is_primary":
                values[name] = record.value != 0
    return TextQuery(unknown_fields=bytes(unknown), **values)


# ---------------------------------------------------------------------------
# Selection members
# ---------------------------------------------------------------------------

def encode_point(point: PointSelection) -> bytes:
    writer = WireWriter()
    writer.float_field(POINT.number("x"), point.x)
    writer.float_field(POINT.number("y"), point.y)
    write_unknown(writer, point.unknown_fields, POINT)
    return writer.getvalue()


def decode_point(data: bytes, ctx: DecodeContext, path: str = "") -> PointSelection:
    unknown = bytearray()
    values = {}
    with nested(ctx, POINT.name):
        for name, record in iter_known_fields(data, POINT, ctx, path, unknown):
            values[name] = to_float(record.value)
    return PointSelection(unknown_fields=bytes(unknown), **values)


def encode_region(region: RegionSelection) -> bytes:
    writer = WireWriter()
    if region.region is not None:
        writer.message_field(REGION.number("region"), encode_center_rotated_box(region.region))
    write_unknown(writer, region.unknown_fields, REGION)
    return writer.getvalue()


def decode_region(data: bytes, ctx: DecodeContext, path: str = "") -> RegionSelection:
    unknown = bytearray()
    chunks = []
    with nested(ctx, REGION.name):
        for _, record in iter_known_fields(data, REGION, ctx, path, unknown):
            chunks.append(record.value)
        box = None
        if chunks:
            box = decode_center_rotated_box(merge_chunks(chunks), ctx, join_path(path, "region"))
    return RegionSelection(region=box, unknown_fields=bytes(unknown))


def encode_object(selection: ObjectSelection) -> bytes:
    writer = WireWriter()
    writer.string_field(OBJECT.number("object_id"), selection.object_id)
    if selection.geometry is not None:
        writer.message_field(OBJECT.number("geometry"), encode_geometry(selection.geometry))
    write_unknown(writer, selection.unknown_fields, OBJECT)
    return writer.getvalue()


def decode_object(data: bytes, ctx: DecodeContext, path: str = "") -> ObjectSelection:
    unknown = bytearray()
    geometry_chunks = []
    values = {}
    with nested(ctx, OBJECT.name):
        for name, record in iter_known_fields(data, OBJECT, ctx, path, unknown):
            if name == "object_id":
                values[name] = to_string(record, OBJECT.name)
            elif name == "geometry":
                geometry_chunks.append(record.value)
        if geometry_chunks:
            values["geometry"] = decode_geometry(merge_chunks(geometry_chunks), ctx, join_path(path, "geometry"))
    return ObjectSelection(unknown_fields=bytes(unknown), **values)


_MEMBER_ENCODERS = {
    "point": encode_point,
    "region": encode_region,
    "object": encode_object,
}

_MEMBER_DECODERS = {
    "point": decode_point,
    "region": decode_region,
    "object": decode_object,
}


# ---------------------------------------------------------------------------
# SelectionMetadata / QueryMetadata
# ---------------------------------------------------------------------------

def encode_selection_metadata(metadata: SelectionMetadata) -> bytes:
    writer = WireWriter()
    selection = metadata.selection
    if selection is not None:
        encoder = _MEMBER_ENCODERS[selection.kind]
        writer.message_field(SELECTION_METADATA.number(selection.kind), encoder(selection))
    write_unknown(writer, metadata.unknown_fields, SELECTION_METADATA)
    return writer.getvalue()


def decode_selection_metadata(data: bytes, ctx: DecodeContext, path: str = "") -> SelectionMetadata:
    unknown = bytearray()
    active = None
    chunks = []
    with nested(ctx, SELECTION_METADATA.name):
        for name, record in iter_known_fields(data, SELECTION_METADATA, ctx, path, unknown):
            if name != active:
                if active is not None:
                    ctx.diagnostics.add(
                        DiagnosticKind.ONEOF_AMBIGUITY,
                        SELECTION_METADATA.name,
                        path,
                        f"selection member '{name}' replaces earlier '{active}'",
                    )
                active = name
                chunks = []
            chunks.append(record.value)

        selection = None
        if active is not None:
            decoder = _MEMBER_DECODERS[active]
            selection = decoder(merge_chunks(chunks), ctx, join_path(path, active))

    return SelectionMetadata(selection=selection, unknown_fields=bytes(unknown))


def encode_query_metadata(metadata: QueryMetadata) -> bytes:
    writer = WireWriter()
    if metadata.text_query is not None:
        writer.message_field(QUERY_METADATA.number("text_query"), encode_text_query(metadata.text_query))
    write_unknown(writer, metadata.unknown_fields, QUERY_METADATA)
    return writer.getvalue()


def decode_query_metadata(data: bytes, ctx: DecodeContext, path: str = "") -> QueryMetadata:
    unknown = bytearray()
    chunks = []
    with nested(ctx, QUERY_METADATA.name):
        for _, record in iter_known_fields(data, QUERY_METADATA, ctx, path, unknown):
            chunks.append(record.value)
        text_query = None
        if chunks:
            text_query = decode_text_query(merge_chunks(chunks), ctx, join_path(path, "text_query"))
    return QueryMetadata(text_query=text_query, unknown_fields=bytes(unknown))


# ---------------------------------------------------------------------------
# LensOverlayInteractionRequestMetadata
# ---------------------------------------------------------------------------

def encode_interaction_request_metadata(metadata: LensOverlayInteractionRequestMetadata) -> bytes:
    writer = WireWriter()
    writer.varint_field(INTERACTION_REQUEST_METADATA.number("type"), int(metadata.type))
    if metadata.selection_metadata is not None:
        writer.message_field(
            INTERACTION_REQUEST_METADATA.number("selection_metadata"),
            encode_selection_metadata(metadata.selection_metadata),
        )
    if metadata.query_metadata is not None:
        writer.message_field(
            INTERACTION_REQUEST_METADATA.number("query_metadata"),
            encode_query_metadata(metadata.query_metadata),
        )
    write_unknown(writer, metadata.unknown_fields, INTERACTION_REQUEST_METADATA)
    return writer.getvalue()


def decode_interaction_request_metadata(
    data: bytes,
    ctx: DecodeContext,
    path: str = "",
) -> LensOverlayInteractionRequestMetadata:
    schema = INTERACTION_REQUEST_METADATA
    unknown = bytearray()
    selection_chunks = []
    query_chunks = []
    values = {}
    with nested(ctx, schema.name):
        for name, record in iter_known_fields(data, schema, ctx, path, unknown):
            if name == "type":
                member = to_enum(record, InteractionType, schema.name, ctx, path, unknown)
                if member is not None:
                    values[name] = member
                else:
                    values.pop(name, None)
            elif name == "selection_metadata":
                selection_chunks.append(record.value)
            elif name == "query_metadata":
                query_chunks.append(record.value)

        if selection_chunks:
            values["selection_metadata"] = decode_selection_metadata(
                merge_chunks(selection_chunks), ctx, join_path(path, "selection_metadata")
            )
        if query_chunks:
            values["query_metadata"] = decode_query_metadata(
                merge_chunks(query_chunks), ctx, join_path(path, "query_metadata")
            )

    metadata = LensOverlayInteractionRequestMetadata(unknown_fields=bytes(unknown), **values)
    logger.debug("Decoded interaction metadata type=%s selection=%s", metadata.type.name,
                 metadata.selection_metadata.which() if metadata.selection_metadata else None)
    return metadata
