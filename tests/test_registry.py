import pytest

from codec.errors import SchemaDefinitionError
from codec.registry import (
    ALL_SCHEMAS,
    CENTER_ROTATED_BOX,
    GEOMETRY,
    INTERACTION_REQUEST_METADATA,
    OVERLAY_OBJECT,
    PHASE,
    PHASE_LATENCIES_METADATA,
    POLYGON,
    QUERY_METADATA,
    REQUEST_ID,
    SELECTION_METADATA,
    FieldSpec,
    MessageSchema,
)
from codec.wire import WireType


def _numbers(schema):
    return {spec.name: spec.number for spec in schema.fields}


def test_center_rotated_box_numbers():
    assert _numbers(CENTER_ROTATED_BOX) == {
        "center_x": 1,
        "center_y": 2,
        "width": 3,
        "height": 4,
        "rotation_z": 5,
        "coordinate_type": 6,
    }


def test_geometry_numbers_and_tombstones():
    assert _numbers(GEOMETRY) == {"bounding_box": 1, "segmentation_polygon": 5}
    assert GEOMETRY.reserved == {2, 3, 4, 6}


def test_request_id_numbers():
    assert _numbers(REQUEST_ID) == {
        "uuid": 1,
        "sequence_id": 2,
        "image_sequence_id": 3,
        "analytics_id": 4,
        "long_context_id": 9,
        "routing_info": 6,
    }


def test_interaction_metadata_numbers_and_tombstones():
    assert _numbers(INTERACTION_REQUEST_METADATA) == {
        "type": 1,
        "selection_metadata": 2,
        "query_metadata": 4,
    }
    assert INTERACTION_REQUEST_METADATA.reserved == {3}
    assert QUERY_METADATA.reserved == {1}


def test_overlay_object_numbers_and_tombstones():
    assert _numbers(OVERLAY_OBJECT) == {
        "id": 1,
        "geometry": 2,
        "interaction_properties": 4,
        "rendering_metadata": 8,
        "is_fulfilled": 9,
    }
    assert OVERLAY_OBJECT.reserved == {3, 5, 6, 7}


def test_phase_tombstones_and_oneof():
    assert PHASE.reserved == {1, 2}
    assert [spec.name for spec in PHASE.oneof_members("phase_data")] == [
        "image_downscale_data",
        "image_encode_data",
    ]


def test_selection_oneof_declaration_order():
    assert [spec.number for spec in SELECTION_METADATA.oneof_members("selection")] == [1, 2, 3]


def test_no_schema_reuses_a_tombstone():
    for schema in ALL_SCHEMAS:
        assert not schema.reserved & set(schema.by_number), schema.name


def test_reusing_reserved_number_is_refused():
    with pytest.raises(SchemaDefinitionError):
        MessageSchema(
            "OverlayObject",
            [FieldSpec("id", 1, WireType.LEN), FieldSpec("label", 5, WireType.LEN)],
            reserved=[3, 5, 6, 7],
        )


def test_duplicate_number_is_refused():
    with pytest.raises(SchemaDefinitionError):
        MessageSchema("Broken", [FieldSpec("a", 1, WireType.VARINT), FieldSpec("b", 1, WireType.VARINT)])


def test_out_of_range_number_is_refused():
    with pytest.raises(SchemaDefinitionError):
        MessageSchema("Broken", [FieldSpec("a", 0, WireType.VARINT)])


def test_repeated_oneof_member_is_refused():
    with pytest.raises(SchemaDefinitionError):
        MessageSchema("Broken", [FieldSpec("a", 1, WireType.LEN, repeated=True, oneof="choice")])


def test_only_list_fields_are_repeated():
    repeated = {
        (schema.name, spec.name) for schema in ALL_SCHEMAS for spec in schema.fields if spec.repeated
    }
    assert repeated == {
        (POLYGON.name, "vertex"),
        (GEOMETRY.name, "segmentation_polygon"),
        (PHASE_LATENCIES_METADATA.name, "phase"),
    }
