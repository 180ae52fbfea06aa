# =============================================================================
# Lens Overlay Protocol - Request Id Codec
# =============================================================================
# Encoders and decoders for LensOverlayRequestId and LensOverlayRoutingInfo.
# =============================================================================

from codec.registry import REQUEST_ID, ROUTING_INFO
from codec.diagnostics import join_path
from codec.wire import (
    DecodeContext,
    WireWriter,
    iter_known_fields,
    merge_chunks,
    nested,
    to_int32,
    to_string,
    write_unknown,
)
from shared.schemas import LensOverlayRequestId, LensOverlayRoutingInfo

_COUNTERS = ("sequence_id", "image_sequence_id", "long_context_id")


def encode_routing_info(routing: LensOverlayRoutingInfo) -> bytes:
    writer = WireWriter()
    writer.string_field(ROUTING_INFO.number("server_address"), routing.server_address)
    writer.string_field(ROUTING_INFO.number("blade_target"), routing.blade_target)
    writer.string_field(ROUTING_INFO.number("cell_address"), routing.cell_address)
    write_unknown(writer, routing.unknown_fields, ROUTING_INFO)
    return writer.getvalue()


def decode_routing_info(data: bytes, ctx: DecodeContext, path: str = "") -> LensOverlayRoutingInfo:
    unknown = bytearray()
    values = {}
    with nested(ctx, ROUTING_INFO.name):
        for name, record in iter_known_fields(data, ROUTING_INFO, ctx, path, unknown):
            values[name] = to_string(record, ROUTING_INFO.name)
    return LensOverlayRoutingInfo(unknown_fields=bytes(unknown), **values)


def encode_request_id(request_id: LensOverlayRequestId) -> bytes:
    """
    Encode a request id.

    Fields are written in field-number order, so routing_info (6) precedes
    long_context_id (9).
    """
    writer = WireWriter()
    writer.varint_field(REQUEST_ID.number("uuid"), request_id.uuid)
    writer.varint_field(REQUEST_ID.number("sequence_id"), request_id.sequence_id)
    writer.varint_field(REQUEST_ID.number("image_sequence_id"), request_id.image_sequence_id)
    writer.bytes_field(REQUEST_ID.number("analytics_id"), request_id.analytics_id)
    if request_id.routing_info is not None:
        writer.message_field(REQUEST_ID.number("routing_info"), encode_routing_info(request_id.routing_info))
    writer.varint_field(REQUEST_ID.number("long_context_id"), request_id.long_context_id)
    write_unknown(writer, request_id.unknown_fields, REQUEST_ID)
    return writer.getvalue()


def decode_request_id(data: bytes, ctx: DecodeContext, path: str = "") -> LensOverlayRequestId:
    unknown = bytearray()
    routing_chunks = []
    values = {}
    with nested(ctx, REQUEST_ID.name):
        for name, record in iter_known_fields(data, REQUEST_ID, ctx, path, unknown):
            if name == "uuid":
                values[name] = record.value
            elif name in _COUNTERS:
                values[name] = to_int32(record.value)
            elif name == "analytics_id":
                values[name] = record.value
            elif name == "routing_info":
                routing_chunks.append(record.value)

        if routing_chunks:
            values["routing_info"] = decode_routing_info(
                merge_chunks(routing_chunks), ctx, join_path(path, "routing_info")
            )

    return LensOverlayRequestId(unknown_fields=bytes(unknown), **values)
