# =============================================================================
# Lens Overlay Protocol - Field Number Registry
# =============================================================================
# One explicit field table per message type.  These numbers are the wire
# contract: they must never be renumbered, and retired numbers stay listed in
# ``reserved`` forever so that no later edit can hand them to a new field.
# A table that reuses a reserved or duplicate number fails at import time.
# =============================================================================

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from codec.errors import SchemaDefinitionError
from codec.wire import MAX_FIELD_NUMBER, WireType


@dataclass(frozen=True)
class FieldSpec:
    """
    Declaration of a single field.

    Attributes:
        name:      Field name.
        number:    Wire field number.
        wire_type: Expected wire type.
        repeated:  Whether the field is repeated.
        oneof:     Name of the enclosing oneof, if any.
    """

    name: str
    number: int
    wire_type: WireType
    repeated: bool = False
    oneof: Optional[str] = None


class MessageSchema:
    """
    Field table of one message type.

    Args:
        name:     Message name.
        fields:   Declared fields.
        reserved: Retired field numbers.

    Raises:
        SchemaDefinitionError: If a number is duplicated, out of range, or
                               reserved, or a repeated field sits in a oneof.
    """

    def __init__(self, name: str, fields: Iterable[FieldSpec], reserved: Iterable[int] = ()):
        self.name = name
        self.fields: Tuple[FieldSpec, ...] = tuple(fields)
        self.reserved: FrozenSet[int] = frozenset(reserved)
        self.by_number: Dict[int, FieldSpec] = {}
        self.by_name: Dict[str, FieldSpec] = {}

        for number in self.reserved:
            if not 1 <= number <= MAX_FIELD_NUMBER:
                raise SchemaDefinitionError(f"{name}: reserved number {number} out of range")

        for spec in self.fields:
            if not 1 <= spec.number <= MAX_FIELD_NUMBER:
                raise SchemaDefinitionError(f"{name}.{spec.name}: number {spec.number} out of range")
            if spec.number in self.reserved:
                raise SchemaDefinitionError(
                    f"{name}.{spec.name}: number {spec.number} is reserved and cannot be reused"
                )
            if spec.number in self.by_number:
                raise SchemaDefinitionError(
                    f"{name}.{spec.name}: number {spec.number} already used by "
                    f"{self.by_number[spec.number].name}"
                )
            if spec.name in self.by_name:
                raise SchemaDefinitionError(f"{name}: duplicate field name {spec.name}")
            if spec.repeated and spec.oneof is not None:
                raise SchemaDefinitionError(f"{name}.{spec.name}: repeated field cannot be a oneof member")
            self.by_number[spec.number] = spec
            self.by_name[spec.name] = spec

    def number(self, field_name: str) -> int:
        return self.by_name[field_name].number

    def oneof_members(self, oneof: str) -> Tuple[FieldSpec, ...]:
        return tuple(spec for spec in self.fields if spec.oneof == oneof)

    def __repr__(self) -> str:
        return f"MessageSchema({self.name!r}, fields={len(self.fields)}, reserved={sorted(self.reserved)})"


def _f(name, number, wire_type, repeated=False, oneof=None) -> FieldSpec:
    return FieldSpec(name=name, number=number, wire_type=wire_type, repeated=repeated, oneof=oneof)


_V = WireType.VARINT
_L = WireType.LEN
_F32 = WireType.I32

# -----------------------------------------------------------------------------
# Geometry
# -----------------------------------------------------------------------------
CENTER_ROTATED_BOX = MessageSchema("CenterRotatedBox", [
    _f("center_x", 1, _F32),
    _f("center_y", 2, _F32),
    _f("width", 3, _F32),
    _f("height", 4, _F32),
    _f("rotation_z", 5, _F32),
    _f("coordinate_type", 6, _V),
])

VERTEX = MessageSchema("Polygon.Vertex", [
    _f("x", 1, _F32),
    _f("y", 2, _F32),
])

POLYGON = MessageSchema("Polygon", [
    _f("vertex", 1, _L, repeated=True),
    _f("vertex_ordering", 2, _V),
    _f("coordinate_type", 3, _V),
])

GEOMETRY = MessageSchema("Geometry", [
    _f("bounding_box", 1, _L),
    _f("segmentation_polygon", 5, _L, repeated=True),
], reserved=[2, 3, 4, 6])

ZOOMED_CROP = MessageSchema("ZoomedCrop", [
    _f("crop", 1, _L),
    _f("parent_width", 2, _V),
    _f("parent_height", 3, _V),
    _f("zoom", 4, _F32),
])

# -----------------------------------------------------------------------------
# Request identity
# -----------------------------------------------------------------------------
ROUTING_INFO = MessageSchema("LensOverlayRoutingInfo", [
    _f("server_address", 1, _L),
    _f("blade_target", 2, _L),
    _f("cell_address", 3, _L),
])

REQUEST_ID = MessageSchema("LensOverlayRequestId", [
    _f("uuid", 1, _V),
    _f("sequence_id", 2, _V),
    _f("image_sequence_id", 3, _V),
    _f("analytics_id", 4, _L),
    _f("routing_info", 6, _L),
    _f("long_context_id", 9, _V),
])

# -----------------------------------------------------------------------------
# Interaction metadata
# -----------------------------------------------------------------------------
TEXT_QUERY = MessageSchema("TextQuery", [
    _f("query", 1, _L),
    _f("is_primary", 2, _V),
])

INTERACTION_REQUEST_METADATA = MessageSchema("LensOverlayInteractionRequestMetadata", [
    _f("type", 1, _V),
    _f("selection_metadata", 2, _L),
    _f("query_metadata", 4, _L),
], reserved=[3])

SELECTION_METADATA = MessageSchema("LensOverlayInteractionRequestMetadata.SelectionMetadata", [
    _f("point", 1, _L, oneof="selection"),
    _f("region", 2, _L, oneof="selection"),
    _f("object", 3, _L, oneof="selection"),
])

POINT = MessageSchema("LensOverlayInteractionRequestMetadata.SelectionMetadata.Point", [
    _f("x", 1, _F32),
    _f("y", 2, _F32),
])

REGION = MessageSchema("LensOverlayInteractionRequestMetadata.SelectionMetadata.Region", [
    _f("region", 1, _L),
])

OBJECT = MessageSchema("LensOverlayInteractionRequestMetadata.SelectionMetadata.Object", [
    _f("object_id", 1, _L),
    _f("geometry", 2, _L),
])

QUERY_METADATA = MessageSchema("LensOverlayInteractionRequestMetadata.QueryMetadata", [
    _f("text_query", 2, _L),
], reserved=[1])

# -----------------------------------------------------------------------------
# Overlay object
# -----------------------------------------------------------------------------
OVERLAY_OBJECT = MessageSchema("OverlayObject", [
    _f("id", 1, _L),
    _f("geometry", 2, _L),
    _f("interaction_properties", 4, _L),
    _f("rendering_metadata", 8, _L),
    _f("is_fulfilled", 9, _V),
], reserved=[3, 5, 6, 7])

RENDERING_METADATA = MessageSchema("OverlayObject.RenderingMetadata", [
    _f("render_type", 1, _V),
])

INTERACTION_PROPERTIES = MessageSchema("OverlayObject.InteractionProperties", [
    _f("select_on_tap", 1, _V),
])

# -----------------------------------------------------------------------------
# Phase latencies
# -----------------------------------------------------------------------------
PHASE_LATENCIES_METADATA = MessageSchema("LensOverlayPhaseLatenciesMetadata", [
    _f("phase", 1, _L, repeated=True),
])

PHASE = MessageSchema("LensOverlayPhaseLatenciesMetadata.Phase", [
    _f("image_downscale_data", 3, _L, oneof="phase_data"),
    _f("image_encode_data", 4, _L, oneof="phase_data"),
], reserved=[1, 2])

IMAGE_DOWNSCALE_DATA = MessageSchema("LensOverlayPhaseLatenciesMetadata.Phase.ImageDownscaleData", [
    _f("original_image_size", 1, _V),
    _f("downscaled_image_size", 2, _V),
])

IMAGE_ENCODE_DATA = MessageSchema("LensOverlayPhaseLatenciesMetadata.Phase.ImageEncodeData", [
    _f("original_image_type", 1, _V),
    _f("encoded_image_size_bytes", 2, _V),
])


ALL_SCHEMAS: Tuple[MessageSchema, ...] = (
    CENTER_ROTATED_BOX,
    VERTEX,
    POLYGON,
    GEOMETRY,
    ZOOMED_CROP,
    ROUTING_INFO,
    REQUEST_ID,
    TEXT_QUERY,
    INTERACTION_REQUEST_METADATA,
    SELECTION_METADATA,
    POINT,
    REGION,
    OBJECT,
    QUERY_METADATA,
    OVERLAY_OBJECT,
    RENDERING_METADATA,
    INTERACTION_PROPERTIES,
    PHASE_LATENCIES_METADATA,
    PHASE,
    IMAGE_DOWNSCALE_DATA,
    IMAGE_ENCODE_DATA,
)
