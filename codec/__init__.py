# =============================================================================
# Lens Overlay Protocol - Codec Package
# =============================================================================
# Hand-written proto3 encoders and decoders for every protocol message.
#
#   encode(message)              -> bytes
#   decode(MessageType, data)    -> DecodeResult(message, diagnostics)
#
# Dispatch goes through explicit per-type tables; nothing is discovered by
# introspection at runtime.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Type, TypeVar

from codec.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from codec.errors import (
    InvalidGeometryError,
    MalformedWireError,
    ProtocolError,
    ReservedFieldError,
    SchemaDefinitionError,
    SequenceExhaustedError,
    SequencingViolation,
)
from codec.geometry import (
    decode_center_rotated_box,
    decode_geometry,
    decode_polygon,
    decode_zoomed_crop,
    encode_center_rotated_box,
    encode_geometry,
    encode_polygon,
    encode_zoomed_crop,
)
from codec.interaction import (
    decode_interaction_request_metadata,
    decode_query_metadata,
    decode_selection_metadata,
    decode_text_query,
    encode_interaction_request_metadata,
    encode_query_metadata,
    encode_selection_metadata,
    encode_text_query,
)
from codec.overlay_object import decode_overlay_object, encode_overlay_object
from codec.phase_latencies import (
    decode_phase,
    decode_phase_latencies_metadata,
    encode_phase,
    encode_phase_latencies_metadata,
)
from codec.request_id import (
    decode_request_id,
    decode_routing_info,
    encode_request_id,
    encode_routing_info,
)
from codec.wire import DecodeContext
from config import get_config
from shared.geometry import CenterRotatedBox, Geometry, Polygon, ZoomedCrop
from shared.message import ProtoMessage
from shared.schemas import (
    LensOverlayInteractionRequestMetadata,
    LensOverlayPhaseLatenciesMetadata,
    LensOverlayRequestId,
    LensOverlayRoutingInfo,
    OverlayObject,
    Phase,
    QueryMetadata,
    SelectionMetadata,
    TextQuery,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=ProtoMessage)

_ENCODERS: Dict[type, Callable[[ProtoMessage], bytes]] = {
    CenterRotatedBox: encode_center_rotated_box,
    Polygon: encode_polygon,
    Geometry: encode_geometry,
    ZoomedCrop: encode_zoomed_crop,
    LensOverlayRoutingInfo: encode_routing_info,
    LensOverlayRequestId: encode_request_id,
    TextQuery: encode_text_query,
    SelectionMetadata: encode_selection_metadata,
    QueryMetadata: encode_query_metadata,
    LensOverlayInteractionRequestMetadata: encode_interaction_request_metadata,
    OverlayObject: encode_overlay_object,
    Phase: encode_phase,
    LensOverlayPhaseLatenciesMetadata: encode_phase_latencies_metadata,
}

_DECODERS: Dict[type, Callable[[bytes, DecodeContext, str], ProtoMessage]] = {
    CenterRotatedBox: decode_center_rotated_box,
    Polygon: decode_polygon,
    Geometry: decode_geometry,
    ZoomedCrop: decode_zoomed_crop,
    LensOverlayRoutingInfo: decode_routing_info,
    LensOverlayRequestId: decode_request_id,
    TextQuery: decode_text_query,
    SelectionMetadata: decode_selection_metadata,
    QueryMetadata: decode_query_metadata,
    LensOverlayInteractionRequestMetadata: decode_interaction_request_metadata,
    OverlayObject: decode_overlay_object,
    Phase: decode_phase,
    LensOverlayPhaseLatenciesMetadata: decode_phase_latencies_metadata,
}

# Lookup by message name for tooling such as scripts/inspect_message.py
MESSAGE_TYPES: Dict[str, type] = {message_type.__name__: message_type for message_type in _DECODERS}


@dataclass
class DecodeResult(Generic[M]):
    """
    Outcome of a successful decode.

    Attributes:
        message:     The decoded message.
        diagnostics: Non-fatal findings, in the order they were encountered.
    """

    message: M
    diagnostics: List[Diagnostic]

    @property
    def ok(self) -> bool:
        return not self.diagnostics

    def has(self, kind: DiagnosticKind) -> bool:
        return any(d.kind == kind for d in self.diagnostics)


def encode(message: ProtoMessage) -> bytes:
    """
    Encode a message to proto3 binary.

    Raises:
        TypeError:          If the message type has no codec.
        ReservedFieldError: If preserved unknown fields use a retired number.
    """
    encoder = _ENCODERS.get(type(message))
    if encoder is None:
        raise TypeError(f"No encoder registered for {type(message).__name__}")
    return encoder(message)


def decode(
    message_type: Type[M],
    data: bytes,
    validate_coordinates: Optional[bool] = None,
) -> DecodeResult[M]:
    """
    Decode proto3 binary into a message.

    Args:
        message_type:         Model class to decode into.
        data:                 Encoded bytes.
        validate_coordinates: Range-check decoded geometry; defaults to
                              ``Config.validate_coordinates_on_decode``.

    Returns:
        DecodeResult with the message and any diagnostics.

    Raises:
        TypeError:          If the message type has no codec.
        MalformedWireError: If the bytes cannot be parsed.
    """
    decoder = _DECODERS.get(message_type)
    if decoder is None:
        raise TypeError(f"No decoder registered for {message_type.__name__}")

    config = get_config()
    if len(data) > config.max_message_bytes:
        raise MalformedWireError(
            message_type.__name__,
            f"{len(data)} bytes exceeds limit of {config.max_message_bytes}",
        )

    ctx = DecodeContext(
        diagnostics=Diagnostics(),
        validate_coordinates=(
            config.validate_coordinates_on_decode if validate_coordinates is None else validate_coordinates
        ),
        max_depth=config.max_recursion_depth,
    )
    try:
        message = decoder(bytes(data), ctx, "")
    except MalformedWireError as exc:
        logger.warning("Aborted decode of %s: %s", message_type.__name__, exc)
        raise

    if ctx.diagnostics:
        logger.info("Decoded %s with %d diagnostic(s)", message_type.__name__, len(ctx.diagnostics))
    return DecodeResult(message=message, diagnostics=ctx.diagnostics.as_list())


__all__ = [
    "DecodeResult",
    "Diagnostic",
    "DiagnosticKind",
    "InvalidGeometryError",
    "MESSAGE_TYPES",
    "MalformedWireError",
    "ProtocolError",
    "ReservedFieldError",
    "SchemaDefinitionError",
    "SequenceExhaustedError",
    "SequencingViolation",
    "decode",
    "encode",
]
