# =============================================================================
# Lens Overlay Protocol - Codec Exceptions
# =============================================================================
# Hard failures raised by the codec, the request sequencer and the backend
# ingest path.  Soft problems that still yield a usable message are reported
# through codec.diagnostics instead.
# =============================================================================


class ProtocolError(Exception):
    """Base class for every error raised by the protocol stack."""


class MalformedWireError(ProtocolError):
    """
    The bytes could not be parsed as the requested message.

    Raised for truncated input, overlong varints, invalid field numbers,
    a wire type that does not match the declared field, or invalid UTF-8.
    Only the message being decoded is abandoned.

    Args:
        message_type: Name of the message that was being decoded.
        reason:       Human-readable description of the problem.
        offset:       Byte offset at which the problem was detected.
    """

    def __init__(self, message_type: str, reason: str, offset: int = -1):
        self.message_type = message_type
        self.reason = reason
        self.offset = offset
        where = f" at offset {offset}" if offset >= 0 else ""
        super().__init__(f"Malformed {message_type}{where}: {reason}")


class SequencingViolation(ProtocolError):
    """
    A received request id is not monotonic relative to earlier requests.

    Args:
        uuid:     Session uuid the request belongs to.
        counter:  Name of the offending counter.
        previous: Last accepted value of the counter.
        received: Value carried by the rejected request.
    """

    def __init__(self, uuid: int, counter: str, previous: int, received: int, reason: str = ""):
        self.uuid = uuid
        self.counter = counter
        self.previous = previous
        self.received = received
        detail = f" ({reason})" if reason else ""
        super().__init__(
            f"Sequencing violation for uuid {uuid}: {counter} went from "
            f"{previous} to {received}{detail}"
        )


class SequenceExhaustedError(ProtocolError):
    """A sequence counter would overflow its int32 wire type."""


class ReservedFieldError(ProtocolError):
    """An encoder was asked to emit a retired field number."""

    def __init__(self, message_type: str, number: int):
        self.message_type = message_type
        self.number = number
        super().__init__(f"Field number {number} is reserved in {message_type}")


class SchemaDefinitionError(ProtocolError):
    """A field table reuses a reserved or duplicate field number."""


class InvalidGeometryError(ProtocolError):
    """
    A producer tried to emit geometry that fails validation.

    Args:
        issues: Diagnostics describing every failed check.
    """

    def __init__(self, issues):
        self.issues = list(issues)
        summary = "; ".join(issue.detail for issue in self.issues)
        super().__init__(f"Invalid geometry: {summary}")
