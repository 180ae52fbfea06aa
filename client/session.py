# =============================================================================
# Lens Overlay Protocol - Overlay Client Session
# =============================================================================
# Provides the OverlaySession class, the client-side entry point that turns a
# user's interactions with the overlay into protocol messages.  Each logical
# request gets one fresh LensOverlayRequestId from the session's generator
# plus, for interaction requests, the LensOverlayInteractionRequestMetadata
# describing what was selected.
#
# Session flow:
#   1. full_image()          - initial request carrying the screenshot
#   2. tap() / region() / region_search() / object_fulfillment() /
#      text_selection()      - interaction requests on that screenshot
#   3. contextual_query()    - questions about the page or document
#
# When ``Config.strict_producer`` is set, geometry is validated before it is
# attached; invalid boxes raise InvalidGeometryError instead of being sent.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from client.sequencing import RequestIdGenerator, RequestKind, new_session_uuid
from codec import encode
from codec.errors import InvalidGeometryError
from codec.validation import check_point, ensure_producible, ensure_producible_geometry
from config import get_config
from shared.geometry import CenterRotatedBox, Geometry
from shared.schemas import (
    InteractionType,
    LensOverlayInteractionRequestMetadata,
    LensOverlayRequestId,
    LensOverlayRoutingInfo,
    ObjectSelection,
    PointSelection,
    QueryMetadata,
    RegionSelection,
    SelectionMetadata,
    TextQuery,
)

logger = logging.getLogger(__name__)

_CONTEXTUAL_TYPES = (
    InteractionType.CONTEXTUAL_SEARCH_QUERY,
    InteractionType.PDF_QUERY,
    InteractionType.WEBPAGE_QUERY,
)


@dataclass(frozen=True)
class OverlayRequest:
    """
    One logical request ready to hand to the transport.

    Attributes:
        request_id:  Identity of the request.
        interaction: Interaction metadata, None for non-interaction requests.
    """

    request_id: LensOverlayRequestId
    interaction: Optional[LensOverlayInteractionRequestMetadata] = None

    def encode(self) -> Tuple[bytes, Optional[bytes]]:
        """Encode to (request_id bytes, interaction bytes or None)."""
        interaction_bytes = encode(self.interaction) if self.interaction is not None else None
        return encode(self.request_id), interaction_bytes


class OverlaySession:
    """
    Builds the requests of one user interaction session.

    Args:
        uuid:            Session uuid; a random one is drawn when omitted.
        routing_info:    Initial routing hint.
        strict_producer: Validate geometry before sending; defaults to
                         ``Config.strict_producer``.
        generator:       Existing generator to use instead of creating one.
    """

    def __init__(
        self,
        uuid: Optional[int] = None,
        routing_info: Optional[LensOverlayRoutingInfo] = None,
        strict_producer: Optional[bool] = None,
        generator: Optional[RequestIdGenerator] = None,
    ):
        if generator is None:
            generator = RequestIdGenerator(
                uuid if uuid is not None else new_session_uuid(),
                routing_info=routing_info,
            )
        elif uuid is not None and generator.uuid != uuid:
            raise ValueError(f"Generator uuid {generator.uuid} does not match {uuid}")
        self._generator = generator
        self._strict = get_config().strict_producer if strict_producer is None else strict_producer
        logger.info("Overlay session started (uuid=%d, strict=%s)", generator.uuid, self._strict)

    @property
    def uuid(self) -> int:
        return self._generator.uuid

    @property
    def generator(self) -> RequestIdGenerator:
        return self._generator

    def update_routing_info(self, routing_info: Optional[LensOverlayRoutingInfo]) -> None:
        self._generator.update_routing_info(routing_info)

    # -----------------------------------------------------------------
    # Non-interaction requests
    # -----------------------------------------------------------------

    def full_image(self) -> OverlayRequest:
        """Request carrying the full screenshot."""
        return OverlayRequest(request_id=self._generator.next_request(RequestKind.IMAGE))

    def plain(self) -> OverlayRequest:
        """Request without image or contextual payload (e.g. a follow-up fetch)."""
        return OverlayRequest(request_id=self._generator.next_request(RequestKind.PLAIN))

    # -----------------------------------------------------------------
    # Interaction requests
    # -----------------------------------------------------------------

    def tap(self, x: float, y: float, query: Optional[str] = None) -> OverlayRequest:
        """
        The user tapped the screenshot at normalized (x, y).

        Raises:
            InvalidGeometryError: In strict mode, if the point is outside [0, 1].
        """
        if self._strict:
            issues = check_point(x, y)
            if issues:
                raise InvalidGeometryError(issues)
        selection = PointSelection(x=x, y=y)
        return self._interaction(InteractionType.TAP, selection, query, RequestKind.PLAIN)

    def region(
        self,
        box: CenterRotatedBox,
        query: Optional[str] = None,
        payload: RequestKind = RequestKind.PLAIN,
    ) -> OverlayRequest:
        """
        The user drew a region on the screenshot.

        Args:
            box:     Selected region.
            query:   Optional text accompanying the selection.
            payload: IMAGE when the request also uploads the cropped pixels.
        """
        selection = RegionSelection(region=self._checked_box(box))
        return self._interaction(InteractionType.REGION, selection, query, payload)

    def region_search(self, box: CenterRotatedBox, query: Optional[str] = None) -> OverlayRequest:
        """
        The user picked a bounding box to region search.

        Carries an image-shaped payload but never advances image_sequence_id.
        """
        selection = RegionSelection(region=self._checked_box(box))
        return self._interaction(
            InteractionType.REGION_SEARCH,
            selection,
            query,
            RequestKind.IMAGE | RequestKind.REGION_SEARCH,
        )

    def object_fulfillment(
        self,
        object_id: str,
        geometry: Optional[Geometry] = None,
        query: Optional[str] = None,
    ) -> OverlayRequest:
        """Request selection and fulfillment of a detected object."""
        if geometry is not None and self._strict:
            ensure_producible_geometry(geometry)
        selection = ObjectSelection(object_id=object_id, geometry=geometry)
        return self._interaction(InteractionType.OBJECT_FULFILLMENT, selection, query, RequestKind.PLAIN)

    def text_selection(self, text: str, box: Optional[CenterRotatedBox] = None) -> OverlayRequest:
        """The user selected text on the screenshot, optionally within a region."""
        selection = RegionSelection(region=self._checked_box(box)) if box is not None else None
        return self._interaction(InteractionType.TEXT_SELECTION, selection, text, RequestKind.PLAIN)

    def contextual_query(
        self,
        query: str,
        interaction_type: InteractionType = InteractionType.CONTEXTUAL_SEARCH_QUERY,
        region: Optional[CenterRotatedBox] = None,
        with_image: bool = False,
    ) -> OverlayRequest:
        """
        The user asked a question about the page or document.

        Args:
            query:            Query text.
            interaction_type: CONTEXTUAL_SEARCH_QUERY, PDF_QUERY or WEBPAGE_QUERY.
            region:           Optional region the question is scoped to.
            with_image:       Whether a new screenshot accompanies the document.

        Raises:
            ValueError: If ``interaction_type`` is not a contextual type.
        """
        if interaction_type not in _CONTEXTUAL_TYPES:
            raise ValueError(f"{interaction_type.name} is not a contextual query type")
        payload = RequestKind.CONTEXTUAL | (RequestKind.IMAGE if with_image else RequestKind.PLAIN)
        selection = RegionSelection(region=self._checked_box(region)) if region is not None else None
        return self._interaction(interaction_type, selection, query, payload)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _checked_box(self, box: CenterRotatedBox) -> CenterRotatedBox:
        if self._strict:
            ensure_producible(box)
        return box

    def _interaction(self, interaction_type, selection, query, payload) -> OverlayRequest:
        metadata = LensOverlayInteractionRequestMetadata(
            type=interaction_type,
            selection_metadata=SelectionMetadata(selection=selection) if selection is not None else None,
            query_metadata=(
                QueryMetadata(text_query=TextQuery(query=query, is_primary=True)) if query else None
            ),
        )
        request_id = self._generator.next_request(payload, interaction=True)
        logger.info(
            "Interaction %s (uuid=%d, sequence_id=%d)",
            interaction_type.name,
            request_id.uuid,
            request_id.sequence_id,
        )
        return OverlayRequest(request_id=request_id, interaction=metadata)
