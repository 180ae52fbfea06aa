import pytest

from codec import DiagnosticKind, decode, encode
from codec.errors import ReservedFieldError
from codec.wire import WireType, encode_varint
from shared.geometry import CenterRotatedBox, CoordinateType, Geometry, Polygon
from shared.schemas import InteractionProperties, OverlayObject, RenderingMetadata, RenderType


def _tag(number, wire_type):
    return encode_varint((number << 3) | wire_type)


def test_absent_sub_messages_fall_back_to_defaults():
    overlay_object = OverlayObject(id="obj")
    assert overlay_object.render_type == RenderType.DEFAULT
    assert overlay_object.select_on_tap is False
    assert not overlay_object.is_fulfilled


def test_overlay_object_wire_bytes():
    assert encode(OverlayObject(id="a", is_fulfilled=True)) == b"\x0a\x01a\x48\x01"


def test_full_overlay_object_round_trip():
    overlay_object = OverlayObject(
        id="obj-1",
        geometry=Geometry(
            bounding_box=CenterRotatedBox(center_x=0.5, center_y=0.5, width=0.1, height=0.1,
                                          coordinate_type=CoordinateType.NORMALIZED),
            segmentation_polygon=[Polygon.from_points([(0.45, 0.45), (0.55, 0.45), (0.5, 0.55)])],
        ),
        interaction_properties=InteractionProperties(select_on_tap=True),
        rendering_metadata=RenderingMetadata(render_type=RenderType.GLEAM),
        is_fulfilled=True,
    )

    result = decode(OverlayObject, encode(overlay_object))

    assert result.message == overlay_object
    assert result.message.render_type == RenderType.GLEAM
    assert result.message.select_on_tap
    assert result.ok


def test_empty_sub_messages_stay_present():
    overlay_object = OverlayObject(
        id="x",
        interaction_properties=InteractionProperties(),
        rendering_metadata=RenderingMetadata(),
    )

    decoded = decode(OverlayObject, encode(overlay_object)).message

    assert decoded.interaction_properties == InteractionProperties()
    assert decoded.rendering_metadata == RenderingMetadata()


@pytest.mark.parametrize("number", [3, 5, 6, 7])
def test_retired_field_values_are_ignored(number):
    overlay_object = OverlayObject(id="obj", is_fulfilled=True)
    data = encode(overlay_object) + _tag(number, WireType.LEN) + b"\x05hello"

    result = decode(OverlayObject, data)

    assert result.message == overlay_object
    assert result.has(DiagnosticKind.RESERVED_FIELD)
    assert encode(result.message) == encode(overlay_object)


def test_default_valued_retired_field_is_dropped_silently():
    data = encode(OverlayObject(id="obj")) + _tag(5, WireType.VARINT) + b"\x00"

    result = decode(OverlayObject, data)

    assert result.message == OverlayObject(id="obj")
    assert result.ok


def test_encoder_refuses_retired_number_in_unknown_fields():
    overlay_object = OverlayObject(id="obj", unknown_fields=_tag(5, WireType.VARINT) + b"\x01")
    with pytest.raises(ReservedFieldError):
        encode(overlay_object)


def test_unknown_render_type_is_preserved():
    data = encode(OverlayObject(id="o")) + _tag(8, WireType.LEN) + b"\x02\x08\x07"

    result = decode(OverlayObject, data)

    assert result.message.render_type == RenderType.DEFAULT
    assert result.message.rendering_metadata.unknown_fields == b"\x08\x07"
    assert result.has(DiagnosticKind.UNKNOWN_ENUM_VALUE)
    assert encode(result.message) == data
