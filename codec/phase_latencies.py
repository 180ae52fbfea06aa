# =============================================================================
# Lens Overlay Protocol - Phase Latencies Codec
# =============================================================================
# Encoders and decoders for LensOverlayPhaseLatenciesMetadata.  Phases are
# emitted and read back in list order, which is their temporal order.  The
# ``phase_data`` oneof uses the same last-member-wins rule as the interaction
# selection.
# =============================================================================

from codec.diagnostics import DiagnosticKind, join_path
from codec.registry import IMAGE_DOWNSCALE_DATA, IMAGE_ENCODE_DATA, PHASE, PHASE_LATENCIES_METADATA
from codec.wire import (
    DecodeContext,
    WireWriter,
    iter_known_fields,
    merge_chunks,
    nested,
    to_enum,
    to_int64,
    write_unknown,
)
from shared.schemas import (
    ImageDownscaleData,
    ImageEncodeData,
    ImageType,
    LensOverlayPhaseLatenciesMetadata,
    Phase,
)


def encode_image_downscale_data(data: ImageDownscaleData) -> bytes:
    writer = WireWriter()
    writer.varint_field(IMAGE_DOWNSCALE_DATA.number("original_image_size"), data.original_image_size)
    writer.varint_field(IMAGE_DOWNSCALE_DATA.number("downscaled_image_size"), data.downscaled_image_size)
    write_unknown(writer, data.unknown_fields, IMAGE_DOWNSCALE_DATA)
    return writer.getvalue()


def decode_image_downscale_data(data: bytes, ctx: DecodeContext, path: str = "") -> ImageDownscaleData:
    unknown = bytearray()
    values = {}
    with nested(ctx, IMAGE_DOWNSCALE_DATA.name):
        for name, record in iter_known_fields(data, IMAGE_DOWNSCALE_DATA, ctx, path, unknown):
            values[name] = to_int64(record.value)
    return ImageDownscaleData(unknown_fields=bytes(unknown), **values)


def encode_image_encode_data(data: ImageEncodeData) -> bytes:
    writer = WireWriter()
    writer.varint_field(IMAGE_ENCODE_DATA.number("original_image_type"), int(data.original_image_type))
    writer.varint_field(IMAGE_ENCODE_DATA.number("encoded_image_size_bytes"), data.encoded_image_size_bytes)
    write_unknown(writer, data.unknown_fields, IMAGE_ENCODE_DATA)
    return writer.getvalue()


def decode_image_encode_data(data: bytes, ctx: DecodeContext, path: str = "") -> ImageEncodeData:
    unknown = bytearray()
    values = {}
    with nested(ctx, IMAGE_ENCODE_DATA.name):
        for name, record in iter_known_fields(data, IMAGE_ENCODE_DATA, ctx, path, unknown):
            if name == "original_image_type":
                member = to_enum(record, ImageType, IMAGE_ENCODE_DATA.name, ctx, path, unknown)
                if member is not None:
                    values[name] = member
                else:
                    values.pop(name, None)
            else:
                values[name] = to_int64(record.value)
    return ImageEncodeData(unknown_fields=bytes(unknown), **values)


_DATA_ENCODERS = {
    "image_downscale_data": encode_image_downscale_data,
    "image_encode_data": encode_image_encode_data,
}

_DATA_DECODERS = {
    "image_downscale_data": decode_image_downscale_data,
    "image_encode_data": decode_image_encode_data,
}


def encode_phase(phase: Phase) -> bytes:
    writer = WireWriter()
    if phase.phase_data is not None:
        kind = phase.phase_data.kind
        writer.message_field(PHASE.number(kind), _DATA_ENCODERS[kind](phase.phase_data))
    write_unknown(writer, phase.unknown_fields, PHASE)
    return writer.getvalue()


def decode_phase(data: bytes, ctx: DecodeContext, path: str = "") -> Phase:
    unknown = bytearray()
    active = None
    chunks = []
    with nested(ctx, PHASE.name):
        for name, record in iter_known_fields(data, PHASE, ctx, path, unknown):
            if name != active:
                if active is not None:
                    ctx.diagnostics.add(
                        DiagnosticKind.ONEOF_AMBIGUITY,
                        PHASE.name,
                        path,
                        f"phase_data member '{name}' replaces earlier '{active}'",
                    )
                active = name
                chunks = []
            chunks.append(record.value)

        phase_data = None
        if active is not None:
            phase_data = _DATA_DECODERS[active](merge_chunks(chunks), ctx, join_path(path, active))

    return Phase(phase_data=phase_data, unknown_fields=bytes(unknown))


def encode_phase_latencies_metadata(metadata: LensOverlayPhaseLatenciesMetadata) -> bytes:
    writer = WireWriter()
    for phase in metadata.phase:
        writer.message_field(PHASE_LATENCIES_METADATA.number("phase"), encode_phase(phase))
    write_unknown(writer, metadata.unknown_fields, PHASE_LATENCIES_METADATA)
    return writer.getvalue()


def decode_phase_latencies_metadata(
    data: bytes,
    ctx: DecodeContext,
    path: str = "",
) -> LensOverlayPhaseLatenciesMetadata:
    unknown = bytearray()
    phases = []
    with nested(ctx, PHASE_LATENCIES_METADATA.name):
        for _, record in iter_known_fields(data, PHASE_LATENCIES_METADATA, ctx, path, unknown):
            phases.append(decode_phase(record.value, ctx, join_path(path, f"phase[{len(phases)}]")))
    return LensOverlayPhaseLatenciesMetadata(phase=phases, unknown_fields=bytes(unknown))
