# =============================================================================
# Lens Overlay Protocol - Decode Diagnostics
# =============================================================================
# Non-fatal findings collected while decoding or validating a message.  A
# diagnostic never stops a decode: the caller still receives a usable value,
# plus the list of everything that looked wrong on the wire.
# =============================================================================

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List

logger = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    """Categories of non-fatal protocol findings."""

    RESERVED_FIELD = "reserved_field"
    ONEOF_AMBIGUITY = "oneof_ambiguity"
    COORDINATE_RANGE = "coordinate_range"
    INVALID_ROTATION = "invalid_rotation"
    UNSPECIFIED_COORDINATE_TYPE = "unspecified_coordinate_type"
    UNKNOWN_ENUM_VALUE = "unknown_enum_value"


@dataclass(frozen=True)
class Diagnostic:
    """
    A single non-fatal finding.

    Attributes:
        kind:         Category of the finding.
        message_type: Name of the message in which it was found.
        path:         Dotted field path from the decoded root (e.g. "geometry.bounding_box").
        detail:       Human-readable explanation.
    """

    kind: DiagnosticKind
    message_type: str
    path: str
    detail: str

    def __str__(self) -> str:
        location = self.path or "<root>"
        return f"[{self.kind.value}] {self.message_type} @ {location}: {self.detail}"


class Diagnostics:
    """
    Ordered collector of diagnostics for one decode or validation pass.

    Every recorded diagnostic is also logged at WARNING level.
    """

    def __init__(self):
        self._items: List[Diagnostic] = []

    def add(self, kind: DiagnosticKind, message_type: str, path: str, detail: str) -> Diagnostic:
        diagnostic = Diagnostic(kind=kind, message_type=message_type, path=path, detail=detail)
        self._items.append(diagnostic)
        logger.warning("%s", diagnostic)
        return diagnostic

    def extend(self, diagnostics) -> None:
        for diagnostic in diagnostics:
            self._items.append(diagnostic)
            logger.warning("%s", diagnostic)

    def as_list(self) -> List[Diagnostic]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)


def join_path(parent: str, child: str) -> str:
    """Join two dotted field path segments."""
    if not parent:
        return child
    return f"{parent}.{child}"
