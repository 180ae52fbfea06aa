# =============================================================================
# Lens Overlay Protocol - Overlay Object Codec
# =============================================================================
# Encoders and decoders for OverlayObject and its nested RenderingMetadata and
# InteractionProperties.  Field numbers 3, 5, 6 and 7 are retired: values
# found there are dropped (and reported), never read into another field.
# =============================================================================

from codec.diagnostics import join_path
from codec.geometry import decode_geometry, encode_geometry
from codec.registry import INTERACTION_PROPERTIES, OVERLAY_OBJECT, RENDERING_METADATA
from codec.wire import (
    DecodeContext,
    WireWriter,
    iter_known_fields,
    merge_chunks,
    nested,
    to_enum,
    to_string,
    write_unknown,
)
from shared.schemas import InteractionProperties, OverlayObject, RenderingMetadata, RenderType


def encode_rendering_metadata(metadata: RenderingMetadata) -> bytes:
    writer = WireWriter()
    writer.varint_field(RENDERING_METADATA.number("render_type"), int(metadata.render_type))
    write_unknown(writer, metadata.unknown_fields, RENDERING_METADATA)
    return writer.getvalue()


def decode_rendering_metadata(data: bytes, ctx: DecodeContext, path: str = "") -> RenderingMetadata:
    unknown = bytearray()
    values = {}
    with nested(ctx, RENDERING_METADATA.name):
        for name, record in iter_known_fields(data, RENDERING_METADATA, ctx, path, unknown):
            member = to_enum(record, RenderType, RENDERING_METADATA.name, ctx, path, unknown)
            if member is not None:
                values[name] = member
            else:
                values.pop(name, None)
    return RenderingMetadata(unknown_fields=bytes(unknown), **values)


def encode_interaction_properties(properties: InteractionProperties) -> bytes:
    writer = WireWriter()
    writer.bool_field(INTERACTION_PROPERTIES.number("select_on_tap"), properties.select_on_tap)
    write_unknown(writer, properties.unknown_fields, INTERACTION_PROPERTIES)
    return writer.getvalue()


def decode_interaction_properties(data: bytes, ctx: DecodeContext, path: str = "") -> InteractionProperties:
    unknown = bytearray()
    values = {}
    with nested(ctx, INTERACTION_PROPERTIES.name):
        for name, record in iter_known_fields(data, INTERACTION_PROPERTIES, ctx, path, unknown):
            values[name] = record.value != 0
    return InteractionProperties(unknown_fields=bytes(unknown), **values)


def encode_overlay_object(overlay_object: OverlayObject) -> bytes:
    writer = WireWriter()
    writer.string_field(OVERLAY_OBJECT.number("id"), overlay_object.id)
    if overlay_object.geometry is not None:
        writer.message_field(OVERLAY_OBJECT.number("geometry"), encode_geometry(overlay_object.geometry))
    if overlay_object.interaction_properties is not None:
        writer.message_field(
            OVERLAY_OBJECT.number("interaction_properties"),
            encode_interaction_properties(overlay_object.interaction_properties),
        )
    if overlay_object.rendering_metadata is not None:
        writer.message_field(
            OVERLAY_OBJECT.number("rendering_metadata"),
            encode_rendering_metadata(overlay_object.rendering_metadata),
        )
    writer.bool_field(OVERLAY_OBJECT.number("is_fulfilled"), overlay_object.is_fulfilled)
    write_unknown(writer, overlay_object.unknown_fields, OVERLAY_OBJECT)
    return writer.getvalue()


def decode_overlay_object(data: bytes, ctx: DecodeContext, path: str = "") -> OverlayObject:
    unknown = bytearray()
    chunks = {"geometry": [], "interaction_properties": [], "rendering_metadata": []}
    values = {}
    with nested(ctx, OVERLAY_OBJECT.name):
        for name, record in iter_known_fields(data, OVERLAY_OBJECT, ctx, path, unknown):
            if name == "id":
                values[name] = to_string(record, OVERLAY_OBJECT.name)
            elif name == "is_fulfilled":
                values[name] = record.value != 0
            else:
                chunks[name].append(record.value)

        if chunks["geometry"]:
            values["geometry"] = decode_geometry(
                merge_chunks(chunks["geometry"]), ctx, join_path(path, "geometry")
            )
        if chunks["interaction_properties"]:
            values["interaction_properties"] = decode_interaction_properties(
                merge_chunks(chunks["interaction_properties"]), ctx, join_path(path, "interaction_properties")
            )
        if chunks["rendering_metadata"]:
            values["rendering_metadata"] = decode_rendering_metadata(
                merge_chunks(chunks["rendering_metadata"]), ctx, join_path(path, "rendering_metadata")
            )

    return OverlayObject(unknown_fields=bytes(unknown), **values)
