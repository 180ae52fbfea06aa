# =============================================================================
# Lens Overlay Protocol - Ingest Sequence Tracking
# =============================================================================
# Provides the SequenceTracker class used by the backend to check that the
# request ids arriving for a session uuid are monotonic.  A violation is
# raised to the caller and never silently corrected; the tracker's state only
# advances when an id is accepted.
# =============================================================================

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from codec.errors import SequencingViolation
from config import get_config
from shared.schemas import LensOverlayRequestId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SequenceState:
    """Last accepted counters for one uuid."""

    sequence_id: int
    image_sequence_id: int
    long_context_id: int


class SequenceTracker:
    """
    Remembers the last accepted counters per session uuid.

    Checks applied to each incoming id:
        - counters are never negative,
        - image_sequence_id and long_context_id never exceed sequence_id,
        - sequence_id strictly increases,
        - image_sequence_id and long_context_id never decrease,
        - image_sequence_id and long_context_id advance by no more than
          sequence_id did,
        - with ``reject_gaps``, sequence_id advances by exactly 1.

    Args:
        reject_gaps: Defaults to ``Config.reject_sequence_gaps``.
    """

    def __init__(self, reject_gaps: Optional[bool] = None):
        self._lock = threading.Lock()
        self._states: Dict[int, SequenceState] = {}
        self._reject_gaps = get_config().reject_sequence_gaps if reject_gaps is None else reject_gaps

    def last_seen(self, uuid: int) -> Optional[SequenceState]:
        with self._lock:
            return self._states.get(uuid)

    def observe(self, request_id: LensOverlayRequestId) -> SequenceState:
        """
        Validate and record an incoming request id.

        Returns:
            The newly recorded state.

        Raises:
            SequencingViolation: If the id is not monotonic for its uuid.
        """
        incoming = SequenceState(
            sequence_id=request_id.sequence_id,
            image_sequence_id=request_id.image_sequence_id,
            long_context_id=request_id.long_context_id,
        )
        uuid = request_id.uuid

        with self._lock:
            previous = self._states.get(uuid)
            try:
                self._check(uuid, previous, incoming)
            except SequencingViolation as exc:
                logger.warning("%s", exc)
                raise
            self._states[uuid] = incoming

        logger.debug("uuid=%d accepted sequence_id=%d", uuid, incoming.sequence_id)
        return incoming

    def forget(self, uuid: int) -> None:
        with self._lock:
            self._states.pop(uuid, None)

    def _check(self, uuid: int, previous: Optional[SequenceState], incoming: SequenceState) -> None:
        for counter in ("sequence_id", "image_sequence_id", "long_context_id"):
            value = getattr(incoming, counter)
            if value < 0:
                raise SequencingViolation(uuid, counter, 0, value, "negative counter")

        for counter in ("image_sequence_id", "long_context_id"):
            if getattr(incoming, counter) > incoming.sequence_id:
                raise SequencingViolation(
                    uuid, counter, incoming.sequence_id, getattr(incoming, counter),
                    "exceeds sequence_id",
                )

        if previous is None:
            return

        if incoming.sequence_id <= previous.sequence_id:
            raise SequencingViolation(
                uuid, "sequence_id", previous.sequence_id, incoming.sequence_id, "not increasing"
            )
        step = incoming.sequence_id - previous.sequence_id
        if self._reject_gaps and step != 1:
            raise SequencingViolation(
                uuid, "sequence_id", previous.sequence_id, incoming.sequence_id, "gap in sequence"
            )

        for counter in ("image_sequence_id", "long_context_id"):
            before = getattr(previous, counter)
            after = getattr(incoming, counter)
            if after < before:
                raise SequencingViolation(uuid, counter, before, after, "decreased")
            if after - before > step:
                raise SequencingViolation(uuid, counter, before, after, "advanced faster than sequence_id")
