import io

from PIL import Image

from client.telemetry import PhaseLatencyRecorder, image_type_from_format
from codec import DiagnosticKind, decode, encode
from codec.wire import WireType, encode_varint
from shared.schemas import (
    ImageDownscaleData,
    ImageEncodeData,
    ImageType,
    LensOverlayPhaseLatenciesMetadata,
    Phase,
)


def _tag(number, wire_type):
    return encode_varint((number << 3) | wire_type)


def _jpeg_image(size=(64, 48)):
    buf = io.BytesIO()
    Image.new("RGB", size, color=(200, 10, 10)).save(buf, format="JPEG")
    buf.seek(0)
    return Image.open(buf)


def test_phase_order_survives_round_trip():
    metadata = LensOverlayPhaseLatenciesMetadata(phase=[
        Phase(),
        Phase(phase_data=ImageDownscaleData(original_image_size=4000000, downscaled_image_size=1000000)),
        Phase(),
        Phase(phase_data=ImageEncodeData(original_image_type=ImageType.PNG, encoded_image_size_bytes=250000)),
    ])

    decoded = decode(LensOverlayPhaseLatenciesMetadata, encode(metadata)).message

    assert decoded == metadata
    assert decoded.phase[0].phase_data is None
    assert decoded.phase[1].image_downscale_data.downscaled_image_size == 1000000
    assert decoded.phase[3].image_encode_data.original_image_type == ImageType.PNG


def test_assigning_phase_data_switches_member():
    phase = Phase(phase_data=ImageDownscaleData(original_image_size=10))
    phase.phase_data = ImageEncodeData(encoded_image_size_bytes=5)

    assert phase.image_downscale_data is None
    assert phase.image_encode_data.encoded_image_size_bytes == 5


def test_both_members_on_the_wire_keeps_the_last():
    downscale = encode(Phase(phase_data=ImageDownscaleData(original_image_size=10)))
    encoded = encode(Phase(phase_data=ImageEncodeData(encoded_image_size_bytes=5)))

    result = decode(Phase, downscale + encoded)

    assert result.message.image_encode_data.encoded_image_size_bytes == 5
    assert result.message.image_downscale_data is None
    assert result.has(DiagnosticKind.ONEOF_AMBIGUITY)


def test_retired_phase_fields_are_ignored():
    data = _tag(1, WireType.VARINT) + b"\x03" + _tag(2, WireType.I64) + b"\x01" * 8

    result = decode(Phase, data)

    assert result.message == Phase()
    assert len([d for d in result.diagnostics if d.kind == DiagnosticKind.RESERVED_FIELD]) == 2


def test_negative_int64_sizes_round_trip():
    phase = Phase(phase_data=ImageDownscaleData(original_image_size=-1))

    data = encode(phase)
    decoded = decode(Phase, data).message

    assert decoded.image_downscale_data.original_image_size == -1
    # Field 3 length prefix, field 1 tag, ten varint bytes
    assert len(data) == 2 + 1 + 10


def test_image_type_from_pillow_format():
    assert image_type_from_format("JPEG") == ImageType.JPEG
    assert image_type_from_format("mpo") == ImageType.JPEG
    assert image_type_from_format("WEBP") == ImageType.WEBP
    assert image_type_from_format("GIF") == ImageType.UNKNOWN
    assert image_type_from_format(None) == ImageType.UNKNOWN


def test_recorder_builds_log_in_recording_order():
    original = _jpeg_image()
    downscaled = original.resize((32, 24))
    upload = io.BytesIO()
    downscaled.save(upload, format="WEBP")

    recorder = PhaseLatencyRecorder()
    recorder.record_milestone()
    recorder.record_downscale(original, downscaled)
    recorder.record_milestone()
    recorder.record_encode(original, upload.getvalue())

    metadata = recorder.build()

    assert len(recorder) == 4
    assert metadata.phase[1].image_downscale_data == ImageDownscaleData(
        original_image_size=64 * 48, downscaled_image_size=32 * 24
    )
    encode_data = metadata.phase[3].image_encode_data
    assert encode_data.original_image_type == ImageType.JPEG
    assert encode_data.encoded_image_size_bytes == len(upload.getvalue())
    assert decode(LensOverlayPhaseLatenciesMetadata, encode(metadata)).message == metadata


def test_built_log_is_a_snapshot():
    recorder = PhaseLatencyRecorder()
    recorder.record_milestone()
    snapshot = recorder.build()

    recorder.record_milestone()

    assert len(snapshot.phase) == 1
    assert len(recorder.build().phase) == 2
