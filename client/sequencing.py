# =============================================================================
# Lens Overlay Protocol - Request Id Sequencing
# =============================================================================
# Provides the RequestIdGenerator class that owns the three per-session
# counters of LensOverlayRequestId and hands out immutable snapshots for each
# new request.
#
#   sequence_id        advances on every request
#   image_sequence_id  advances on requests carrying an image payload,
#                      except region search requests
#   long_context_id    advances on requests carrying a contextual document
#
# One generator exists per session uuid.  Counter updates happen under a lock
# so concurrent callers (e.g. rapid taps) never see a duplicate, a gap or an
# out-of-order value.  An issued value is consumed even if the request that
# carried it is never sent.
# =============================================================================

import logging
import secrets
import threading
from enum import Flag
from typing import Callable, Dict, Optional

from codec.errors import SequenceExhaustedError
from config import get_config
from shared.message import INT32_MAX
from shared.schemas import LensOverlayRequestId, LensOverlayRoutingInfo

logger = logging.getLogger(__name__)


class RequestKind(Flag):
    """
    Payloads carried by a request.  Members combine with ``|``.

    REGION_SEARCH marks a region search request: it carries an image-shaped
    payload but must not advance ``image_sequence_id``, even when combined
    with IMAGE.
    """

    PLAIN = 0
    IMAGE = 1
    CONTEXTUAL = 2
    REGION_SEARCH = 4


def new_session_uuid() -> int:
    """Draw a random 64-bit session uuid."""
    return secrets.randbits(64)


def _default_analytics_id() -> bytes:
    return secrets.token_bytes(get_config().analytics_id_bytes)


class RequestIdGenerator:
    """
    Issues request ids for one session uuid.

    All counters start at 0, so the first qualifying request of each kind
    carries 1.

    Args:
        uuid:                 Session uuid; never changes for this generator.
        routing_info:         Initial routing hint attached to every id.
        analytics_id_factory: Callable producing a fresh analytics id.
    """

    def __init__(
        self,
        uuid: int,
        routing_info: Optional[LensOverlayRoutingInfo] = None,
        analytics_id_factory: Optional[Callable[[], bytes]] = None,
    ):
        if not 0 <= uuid < (1 << 64):
            raise ValueError(f"uuid {uuid} is not a 64-bit unsigned value")
        self._uuid = uuid
        self._lock = threading.Lock()
        self._sequence_id = 0
        self._image_sequence_id = 0
        self._long_context_id = 0
        self._analytics_id = b""
        self._routing_info = routing_info
        self._analytics_id_factory = analytics_id_factory or _default_analytics_id

    @property
    def uuid(self) -> int:
        return self._uuid

    def current(self) -> LensOverlayRequestId:
        """Snapshot of the last issued id (all counters 0 before the first request)."""
        with self._lock:
            return self._snapshot()

    def next_request(self, kind: RequestKind = RequestKind.PLAIN, interaction: bool = False) -> LensOverlayRequestId:
        """
        Advance the counters for a new request and return its id.

        Args:
            kind:        Payloads carried by the request.
            interaction: True for an interaction request; regenerates the
                         analytics id.  The very first request always does.

        Returns:
            An immutable snapshot of the new request id.

        Raises:
            SequenceExhaustedError: If a counter would pass the int32 maximum.
        """
        advance_image = bool(kind & RequestKind.IMAGE) and not (kind & RequestKind.REGION_SEARCH)
        advance_context = bool(kind & RequestKind.CONTEXTUAL)

        with self._lock:
            if self._sequence_id >= INT32_MAX:
                raise SequenceExhaustedError(f"sequence_id exhausted for uuid {self._uuid}")
            if advance_image and self._image_sequence_id >= INT32_MAX:
                raise SequenceExhaustedError(f"image_sequence_id exhausted for uuid {self._uuid}")
            if advance_context and self._long_context_id >= INT32_MAX:
                raise SequenceExhaustedError(f"long_context_id exhausted for uuid {self._uuid}")

            if self._sequence_id == 0 or interaction:
                self._analytics_id = self._analytics_id_factory()

            self._sequence_id += 1
            if advance_image:
                self._image_sequence_id += 1
            if advance_context:
                self._long_context_id += 1

            request_id = self._snapshot()

        logger.debug(
            "uuid=%d issued sequence_id=%d image_sequence_id=%d long_context_id=%d (kind=%s)",
            request_id.uuid,
            request_id.sequence_id,
            request_id.image_sequence_id,
            request_id.long_context_id,
            kind,
        )
        return request_id

    def update_routing_info(self, routing_info: Optional[LensOverlayRoutingInfo]) -> None:
        """Attach a new routing hint to subsequently issued ids."""
        with self._lock:
            self._routing_info = routing_info

    def _snapshot(self) -> LensOverlayRequestId:
        routing = self._routing_info.model_copy(deep=True) if self._routing_info is not None else None
        return LensOverlayRequestId(
            uuid=self._uuid,
            sequence_id=self._sequence_id,
            image_sequence_id=self._image_sequence_id,
            analytics_id=self._analytics_id,
            long_context_id=self._long_context_id,
            routing_info=routing,
        )


class GeneratorRegistry:
    """
    Keeps exactly one RequestIdGenerator per session uuid.

    Args:
        analytics_id_factory: Passed through to every created generator.
    """

    def __init__(self, analytics_id_factory: Optional[Callable[[], bytes]] = None):
        self._lock = threading.Lock()
        self._generators: Dict[int, RequestIdGenerator] = {}
        self._analytics_id_factory = analytics_id_factory

    def get_or_create(self, uuid: int) -> RequestIdGenerator:
        with self._lock:
            generator = self._generators.get(uuid)
            if generator is None:
                generator = RequestIdGenerator(uuid, analytics_id_factory=self._analytics_id_factory)
                self._generators[uuid] = generator
                logger.debug("Created request id generator for uuid %d", uuid)
            return generator

    def new_session(self) -> RequestIdGenerator:
        """Create a generator for a freshly drawn, previously unused uuid."""
        while True:
            uuid = new_session_uuid()
            with self._lock:
                if uuid not in self._generators:
                    generator = RequestIdGenerator(uuid, analytics_id_factory=self._analytics_id_factory)
                    self._generators[uuid] = generator
                    return generator

    def discard(self, uuid: int) -> None:
        with self._lock:
            self._generators.pop(uuid, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._generators)
