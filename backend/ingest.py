# =============================================================================
# Lens Overlay Protocol - Backend Request Ingest
# =============================================================================
# Provides the RequestIngestor class: the backend's first stop for an incoming
# request.  It decodes the request id and optional interaction metadata,
# checks the id against earlier requests of the same session, and returns the
# decoded messages together with every diagnostic found on the way.
#
# Hard failures (MalformedWireError, SequencingViolation) propagate to the
# caller, which decides how to answer the client.  Soft findings never block
# a request.
# =============================================================================

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from backend.sequence_tracker import SequenceTracker
from codec import decode
from codec.diagnostics import Diagnostic
from shared.schemas import LensOverlayInteractionRequestMetadata, LensOverlayRequestId

logger = logging.getLogger(__name__)


@dataclass
class IngestedRequest:
    """
    A decoded, sequence-checked request.

    Attributes:
        request_id:  The decoded request id.
        interaction: Decoded interaction metadata, None if none was sent.
        diagnostics: Non-fatal findings from both decodes.
    """

    request_id: LensOverlayRequestId
    interaction: Optional[LensOverlayInteractionRequestMetadata] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)


class RequestIngestor:
    """
    Decodes and validates incoming requests.

    Args:
        tracker: Sequence tracker shared across requests; a new one is
                 created when omitted.
    """

    def __init__(self, tracker: Optional[SequenceTracker] = None):
        self._tracker = tracker or SequenceTracker()

    @property
    def tracker(self) -> SequenceTracker:
        return self._tracker

    def ingest(self, request_id_bytes: bytes, interaction_bytes: Optional[bytes] = None) -> IngestedRequest:
        """
        Decode and check one request.

        Both payloads are decoded before the sequence tracker is consulted,
        so a malformed interaction does not consume the session's sequence
        slot on the backend.

        Args:
            request_id_bytes:  Encoded LensOverlayRequestId.
            interaction_bytes: Encoded LensOverlayInteractionRequestMetadata, if any.

        Raises:
            MalformedWireError:  If either payload cannot be parsed.
            SequencingViolation: If the id is not monotonic for its session.
        """
        id_result = decode(LensOverlayRequestId, request_id_bytes)
        diagnostics = list(id_result.diagnostics)

        interaction = None
        if interaction_bytes is not None:
            interaction_result = decode(LensOverlayInteractionRequestMetadata, interaction_bytes)
            interaction = interaction_result.message
            diagnostics.extend(interaction_result.diagnostics)

        request_id = id_result.message
        self._tracker.observe(request_id)

        logger.info(
            "Ingested request uuid=%d sequence_id=%d interaction=%s (%d diagnostic(s))",
            request_id.uuid,
            request_id.sequence_id,
            interaction.type.name if interaction is not None else None,
            len(diagnostics),
        )
        return IngestedRequest(request_id=request_id, interaction=interaction, diagnostics=diagnostics)
