# =============================================================================
# Lens Overlay Protocol - Preprocessing Telemetry
# =============================================================================
# Provides the PhaseLatencyRecorder class, which accumulates the ordered phase
# log reported in LensOverlayPhaseLatenciesMetadata while the client prepares
# a screenshot for upload.  Phases are appended in the order they happen and
# can never be reordered or removed.
#
# Only the terminal "_END" milestones carry data:
#   IMAGE_DOWNSCALE_END -> ImageDownscaleData (pixel counts)
#   IMAGE_ENCODE_END    -> ImageEncodeData (source format, encoded byte size)
# =============================================================================

import logging
import threading
from typing import List, Optional

from PIL import Image

from shared.schemas import (
    ImageDownscaleData,
    ImageEncodeData,
    ImageType,
    LensOverlayPhaseLatenciesMetadata,
    Phase,
)

logger = logging.getLogger(__name__)

_PIL_FORMATS = {
    "JPEG": ImageType.JPEG,
    "MPO": ImageType.JPEG,  # Multi-picture JPEG as produced by many cameras
    "PNG": ImageType.PNG,
    "WEBP": ImageType.WEBP,
}


def image_type_from_format(image_format: Optional[str]) -> ImageType:
    """
    Map a Pillow format name (``Image.format``) to an ImageType.

    Args:
        image_format: Format string such as "JPEG" or "PNG"; None for
                      images created in memory.

    Returns:
        The matching ImageType, UNKNOWN for anything else.
    """
    if not image_format:
        return ImageType.UNKNOWN
    return _PIL_FORMATS.get(image_format.upper(), ImageType.UNKNOWN)


def pixel_count(image: Image.Image) -> int:
    width, height = image.size
    return width * height


class PhaseLatencyRecorder:
    """
    Append-only builder for a phase latency log.

    Thread-safe: preprocessing steps running on worker threads may record
    into the same recorder.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._phases: List[Phase] = []

    def record_milestone(self) -> Phase:
        """Record an intermediate milestone that carries no data."""
        return self._append(Phase())

    def record_downscale(self, original: Image.Image, downscaled: Image.Image) -> Phase:
        """
        Record the end of the downscale step.

        Args:
            original:   Image before downscaling.
            downscaled: Image after downscaling.
        """
        data = ImageDownscaleData(
            original_image_size=pixel_count(original),
            downscaled_image_size=pixel_count(downscaled),
        )
        logger.debug(
            "Downscale: %d -> %d pixels",
            data.original_image_size,
            data.downscaled_image_size,
        )
        return self._append(Phase(phase_data=data))

    def record_encode(self, original: Image.Image, encoded: bytes) -> Phase:
        """
        Record the end of the encode step.

        Args:
            original: The source image; its Pillow ``format`` decides the
                      reported original image type.
            encoded:  The encoded upload bytes.
        """
        data = ImageEncodeData(
            original_image_type=image_type_from_format(original.format),
            encoded_image_size_bytes=len(encoded),
        )
        logger.debug(
            "Encode: %s source -> %d bytes",
            data.original_image_type.name,
            data.encoded_image_size_bytes,
        )
        return self._append(Phase(phase_data=data))

    def build(self) -> LensOverlayPhaseLatenciesMetadata:
        """Snapshot of the log recorded so far, earliest phase first."""
        with self._lock:
            return LensOverlayPhaseLatenciesMetadata(
                phase=[phase.model_copy(deep=True) for phase in self._phases]
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._phases)

    def _append(self, phase: Phase) -> Phase:
        with self._lock:
            self._phases.append(phase)
        return phase
