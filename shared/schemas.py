# =============================================================================
# Lens Overlay Protocol - Shared Message Schemas
# =============================================================================
# Pydantic models defining the data contract between the overlay client and
# the visual search backend: request identity and routing, interaction
# metadata, detected overlay objects and image preprocessing telemetry.
#
# proto3 oneofs are modelled as discriminated unions keyed by a ``kind``
# literal, so a model can never hold two members of the same oneof at once.
# Assigning a different member simply replaces the previous one.
#
# Geometry value types live in shared.geometry.
# =============================================================================

from enum import IntEnum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field

from shared.geometry import CenterRotatedBox, Geometry
from shared.message import Float32, Int32, Int64, ProtoMessage, UInt64


# ---------------------------------------------------------------------------
# Request identity and routing
# ---------------------------------------------------------------------------

class LensOverlayRoutingInfo(ProtoMessage):
    """
    Where the backend should route the request.

    All three fields are optional and independent.  When all are empty the
    backend applies its default routing.
    """

    server_address: str = ""
    cell_address: str = ""
    blade_target: str = ""

    @property
    def has_preference(self) -> bool:
        return bool(self.server_address or self.cell_address or self.blade_target)


class LensOverlayRequestId(ProtoMessage):
    """
    Identity of one request within a sequence of related requests.

    Attributes:
        uuid:              Identifier shared by every request of one user
                           interaction session.
        sequence_id:       Order of this request within the session.
        image_sequence_id: Order of image payloads within the session.  Region
                           search requests do not advance it.
        analytics_id:      Opaque analytics token, regenerated on the first
                           request and on each interaction request.
        long_context_id:   Order of contextual document payloads.
        routing_info:      Routing hint for the backend.
    """

    uuid: UInt64 = 0
    sequence_id: Int32 = 0
    image_sequence_id: Int32 = 0
    analytics_id: bytes = b""
    long_context_id: Int32 = 0
    routing_info: Optional[LensOverlayRoutingInfo] = None


# ---------------------------------------------------------------------------
# Interaction request metadata
# ---------------------------------------------------------------------------

class TextQuery(ProtoMessage):
    """Text query attached to an interaction.  Fields beyond these are kept opaque."""

    query: str = ""
    is_primary: bool = False


class InteractionType(IntEnum):
    """What kind of user interaction triggered the request."""

    UNKNOWN = 0
    TAP = 1
    REGION = 2
    TEXT_SELECTION = 3
    REGION_SEARCH = 4
    OBJECT_FULFILLMENT = 5
    CONTEXTUAL_SEARCH_QUERY = 9
    PDF_QUERY = 10
    WEBPAGE_QUERY = 11


class PointSelection(ProtoMessage):
    """The user tapped a single point."""

    kind: Literal["point"] = "point"
    x: Float32 = 0.0
    y: Float32 = 0.0


class RegionSelection(ProtoMessage):
    """The user selected a region of the screenshot."""

    kind: Literal["region"] = "region"
    region: Optional[CenterRotatedBox] = None


class ObjectSelection(ProtoMessage):
    """The user selected a previously detected object."""

    kind: Literal["object"] = "object"
    object_id: str = ""
    geometry: Optional[Geometry] = None


Selection = Annotated[
    Union[PointSelection, RegionSelection, ObjectSelection],
    Field(discriminator="kind"),
]


class SelectionMetadata(ProtoMessage):
    """
    The selection associated with an interaction request.

    Attributes:
        selection: Exactly one of point, region or object, or None.
    """

    selection: Optional[Selection] = None

    @property
    def point(self) -> Optional[PointSelection]:
        return self.selection if isinstance(self.selection, PointSelection) else None

    @property
    def region(self) -> Optional[RegionSelection]:
        return self.selection if isinstance(self.selection, RegionSelection) else None

    @property
    def object(self) -> Optional[ObjectSelection]:
        return self.selection if isinstance(self.selection, ObjectSelection) else None

    def which(self) -> Optional[str]:
        """Name of the active member, or None."""
        return self.selection.kind if self.selection is not None else None


class QueryMetadata(ProtoMessage):
    """Query context attached to an interaction, independent of the selection."""

    text_query: Optional[TextQuery] = None


class LensOverlayInteractionRequestMetadata(ProtoMessage):
    """
    Metadata describing the interaction behind a request.

    ``type`` is not cross-checked against the selection member; a TAP with a
    region selection is representable and decodes as-is.
    """

    type: InteractionType = InteractionType.UNKNOWN
    selection_metadata: Optional[SelectionMetadata] = None
    query_metadata: Optional[QueryMetadata] = None


# ---------------------------------------------------------------------------
# Overlay objects
# ---------------------------------------------------------------------------

class RenderType(IntEnum):
    DEFAULT = 0
    GLEAM = 1


class RenderingMetadata(ProtoMessage):
    render_type: RenderType = RenderType.DEFAULT


class InteractionProperties(ProtoMessage):
    select_on_tap: bool = False


class OverlayObject(ProtoMessage):
    """
    A detected or candidate object returned by the backend.

    Attributes:
        id:                     Object identifier.
        geometry:               Object geometry.
        interaction_properties: Tap eligibility; absent means not selectable.
        rendering_metadata:     How to draw the object; absent means DEFAULT.
        is_fulfilled:           Eligible to be the target of an object
                                fulfillment request.
    """

    id: str = ""
    geometry: Optional[Geometry] = None
    interaction_properties: Optional[InteractionProperties] = None
    rendering_metadata: Optional[RenderingMetadata] = None
    is_fulfilled: bool = False

    @property
    def render_type(self) -> RenderType:
        if self.rendering_metadata is None:
            return RenderType.DEFAULT
        return self.rendering_metadata.render_type

    @property
    def select_on_tap(self) -> bool:
        if self.interaction_properties is None:
            return False
        return self.interaction_properties.select_on_tap


# ---------------------------------------------------------------------------
# Phase latencies
# ---------------------------------------------------------------------------

class ImageType(IntEnum):
    UNKNOWN = 0
    JPEG = 1
    PNG = 2
    WEBP = 3


class ImageDownscaleData(ProtoMessage):
    """Payload of an IMAGE_DOWNSCALE_END phase (sizes in pixels)."""

    kind: Literal["image_downscale_data"] = "image_downscale_data"
    original_image_size: Int64 = 0
    downscaled_image_size: Int64 = 0


class ImageEncodeData(ProtoMessage):
    """Payload of an IMAGE_ENCODE_END phase."""

    kind: Literal["image_encode_data"] = "image_encode_data"
    original_image_type: ImageType = ImageType.UNKNOWN
    encoded_image_size_bytes: Int64 = 0


PhaseData = Annotated[
    Union[ImageDownscaleData, ImageEncodeData],
    Field(discriminator="kind"),
]


class Phase(ProtoMessage):
    """
    One milestone of the image preprocessing flow.

    By convention only "_END" milestones carry ``phase_data``; a phase
    without data is a valid intermediate milestone.
    """

    phase_data: Optional[PhaseData] = None

    @property
    def image_downscale_data(self) -> Optional[ImageDownscaleData]:
        return self.phase_data if isinstance(self.phase_data, ImageDownscaleData) else None

    @property
    def image_encode_data(self) -> Optional[ImageEncodeData]:
        return self.phase_data if isinstance(self.phase_data, ImageEncodeData) else None


class LensOverlayPhaseLatenciesMetadata(ProtoMessage):
    """Ordered log of preprocessing phases, earliest first."""

    phase: List[Phase] = Field(default_factory=list)
