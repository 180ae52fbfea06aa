# =============================================================================
# Lens Overlay Protocol - proto3 Wire Primitives
# =============================================================================
# Low-level reading and writing of the proto3 binary encoding: varints, tags,
# fixed-width values and length-delimited records.  No descriptors or
# reflection are involved; the per-message codecs call these primitives with
# the field numbers from codec.registry.
#
# The shared field loop (``iter_known_fields``) also implements the parts of
# the decode contract common to every message:
#   - wrong wire type for a declared field aborts the decode,
#   - retired (reserved) numbers are dropped and flagged when non-default,
#   - unknown numbers are kept verbatim so they can be re-emitted.
# =============================================================================

import logging
import math
import struct
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, List, Optional, Tuple, Type, TypeVar, Union

from codec.diagnostics import DiagnosticKind, Diagnostics, join_path
from codec.errors import MalformedWireError, ReservedFieldError

logger = logging.getLogger(__name__)

MAX_FIELD_NUMBER = (1 << 29) - 1
_MAX_VARINT_BYTES = 10
_UINT64_MASK = (1 << 64) - 1
_FLOAT32 = struct.Struct("<f")

E = TypeVar("E", bound=IntEnum)


class WireType(IntEnum):
    VARINT = 0
    I64 = 1
    LEN = 2
    SGROUP = 3
    EGROUP = 4
    I32 = 5


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def encode_varint(value: int) -> bytes:
    """
    Encode an integer as a base-128 varint.

    Negative values are written as their 64-bit two's complement, which
    always takes ten bytes.
    """
    value &= _UINT64_MASK
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


class WireWriter:
    """
    Append-only buffer for one message's encoding.

    The scalar ``*_field`` helpers skip values equal to the proto3 default,
    matching implicit-presence semantics.  Sub-messages are emitted whenever
    the caller passes them, empty or not.
    """

    def __init__(self):
        self._buf = bytearray()

    def tag(self, number: int, wire_type: WireType) -> None:
        self._buf += encode_varint((number << 3) | wire_type)

    def varint_field(self, number: int, value: int) -> None:
        if value:
            self.tag(number, WireType.VARINT)
            self._buf += encode_varint(value)

    def bool_field(self, number: int, value: bool) -> None:
        if value:
            self.tag(number, WireType.VARINT)
            self._buf.append(1)

    def float_field(self, number: int, value: float) -> None:
        # proto3 keeps -0.0 since its bit pattern is not the default
        if value == 0.0 and math.copysign(1.0, value) > 0:
            return
        self.tag(number, WireType.I32)
        self._buf += _FLOAT32.pack(value)

    def bytes_field(self, number: int, value: bytes) -> None:
        if value:
            self.message_field(number, value)

    def string_field(self, number: int, value: str) -> None:
        if value:
            self.message_field(number, value.encode("utf-8"))

    def message_field(self, number: int, payload: bytes) -> None:
        self.tag(number, WireType.LEN)
        self._buf += encode_varint(len(payload))
        self._buf += payload

    def raw(self, data: bytes) -> None:
        self._buf += data

    def getvalue(self) -> bytes:
        return bytes(self._buf)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

@dataclass
class RawField:
    """
    One tag/value record as read from the wire.

    Attributes:
        number:    Field number.
        wire_type: Wire type from the tag.
        value:     int for VARINT, bytes payload for I32/I64/LEN, None for groups.
        raw:       The complete record including its tag, for verbatim re-emission.
        offset:    Offset of the tag within the enclosing message.
    """

    number: int
    wire_type: WireType
    value: Union[int, bytes, None]
    raw: bytes
    offset: int

    def is_default(self) -> bool:
        if self.wire_type == WireType.VARINT:
            return self.value == 0
        if self.wire_type in (WireType.I32, WireType.I64):
            return not any(self.value)
        if self.wire_type == WireType.LEN:
            return len(self.value) == 0
        return False


@dataclass
class DecodeContext:
    """
    State shared by all nested decoders of one top-level decode.

    Attributes:
        diagnostics:           Collector for non-fatal findings.
        validate_coordinates:  Whether decoded boxes are range-checked.
        max_depth:             Nesting limit for messages and unknown groups.
        depth:                 Current nesting level.
    """

    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    validate_coordinates: bool = True
    max_depth: int = 100
    depth: int = 0


class WireReader:
    """
    Cursor over the bytes of a single message.

    Args:
        data:         Encoded message.
        message_type: Name used in error messages.
        max_depth:    Nesting limit applied to unknown groups.
    """

    def __init__(self, data: bytes, message_type: str, max_depth: int = 100):
        self._data = memoryview(bytes(data))
        self._pos = 0
        self._message_type = message_type
        self._max_depth = max_depth

    @property
    def position(self) -> int:
        return self._pos

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def _fail(self, reason: str, offset: Optional[int] = None) -> MalformedWireError:
        return MalformedWireError(self._message_type, reason, self._pos if offset is None else offset)

    def read_varint(self) -> int:
        start = self._pos
        result = 0
        shift = 0
        for _ in range(_MAX_VARINT_BYTES):
            if self._pos >= len(self._data):
                raise self._fail("truncated varint", start)
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result & _UINT64_MASK
            shift += 7
        raise self._fail("varint longer than 10 bytes", start)

    def read_tag(self) -> Tuple[int, WireType]:
        start = self._pos
        key = self.read_varint()
        if key > 0xFFFFFFFF:
            raise self._fail(f"tag {key} out of range", start)
        number = key >> 3
        wire_type = key & 0x7
        if number == 0 or number > MAX_FIELD_NUMBER:
            raise self._fail(f"invalid field number {number}", start)
        if wire_type > WireType.I32:
            raise self._fail(f"invalid wire type {wire_type}", start)
        return number, WireType(wire_type)

    def read_fixed(self, size: int) -> bytes:
        if self._pos + size > len(self._data):
            raise self._fail(f"truncated {size}-byte fixed value")
        chunk = bytes(self._data[self._pos:self._pos + size])
        self._pos += size
        return chunk

    def read_length_delimited(self) -> bytes:
        start = self._pos
        length = self.read_varint()
        if length > len(self._data) - self._pos:
            raise self._fail(f"length {length} exceeds remaining input", start)
        return self.read_fixed(length)

    def _skip_group(self, number: int, depth: int) -> None:
        if depth > self._max_depth:
            raise self._fail("group nesting too deep")
        while True:
            if self.at_end():
                raise self._fail(f"unterminated group {number}")
            inner_number, inner_type = self.read_tag()
            if inner_type == WireType.EGROUP:
                if inner_number != number:
                    raise self._fail(f"mismatched end group {inner_number} for {number}")
                return
            self._read_value(inner_number, inner_type, depth + 1)

    def _read_value(self, number: int, wire_type: WireType, depth: int = 0):
        if wire_type == WireType.VARINT:
            return self.read_varint()
        if wire_type == WireType.I64:
            return self.read_fixed(8)
        if wire_type == WireType.I32:
            return self.read_fixed(4)
        if wire_type == WireType.LEN:
            return self.read_length_delimited()
        if wire_type == WireType.SGROUP:
            self._skip_group(number, depth)
            return None
        raise self._fail(f"unexpected end group {number}")

    def read_field(self) -> RawField:
        start = self._pos
        number, wire_type = self.read_tag()
        value = self._read_value(number, wire_type)
        return RawField(
            number=number,
            wire_type=wire_type,
            value=value,
            raw=bytes(self._data[start:self._pos]),
            offset=start,
        )


# ---------------------------------------------------------------------------
# Shared decode loop
# ---------------------------------------------------------------------------

def iter_known_fields(
    data: bytes,
    schema,
    ctx: DecodeContext,
    path: str,
    unknown: bytearray,
) -> Iterator[Tuple[str, RawField]]:
    """
    Walk every record of a message, yielding the declared ones by name.

    Records for unknown numbers are appended to ``unknown``.  Records for
    reserved numbers are dropped; non-default ones are reported as
    RESERVED_FIELD diagnostics.

    Args:
        data:    Encoded message bytes.
        schema:  The message's codec.registry.MessageSchema.
        ctx:     Shared decode context.
        path:    Dotted path of this message from the decode root.
        unknown: Buffer receiving unknown records verbatim.

    Yields:
        (field name, record) for every declared field, in wire order.

    Raises:
        MalformedWireError: On unparseable input or a wire type mismatch.
    """
    reader = WireReader(data, schema.name, ctx.max_depth)
    while not reader.at_end():
        record = reader.read_field()
        if record.number in schema.reserved:
            if not record.is_default():
                ctx.diagnostics.add(
                    DiagnosticKind.RESERVED_FIELD,
                    schema.name,
                    path,
                    f"retired field {record.number} carries a value; ignored",
                )
            else:
                logger.debug("Dropping default-valued retired field %d in %s", record.number, schema.name)
            continue

        spec = schema.by_number.get(record.number)
        if spec is None:
            unknown += record.raw
            continue

        if record.wire_type != spec.wire_type:
            raise MalformedWireError(
                schema.name,
                f"field {spec.name} ({spec.number}) has wire type {record.wire_type.name}, "
                f"expected {spec.wire_type.name}",
                record.offset,
            )
        yield spec.name, record


@contextmanager
def nested(ctx: DecodeContext, message_type: str):
    """Descend one nesting level for the duration of a sub-message decode."""
    if ctx.depth >= ctx.max_depth:
        raise MalformedWireError(message_type, f"nesting deeper than {ctx.max_depth}")
    ctx.depth += 1
    try:
        yield
    finally:
        ctx.depth -= 1


def write_unknown(writer: WireWriter, unknown_fields: bytes, schema) -> None:
    """
    Re-emit preserved unknown records after the known fields.

    Raises:
        ReservedFieldError: If a record uses one of the schema's retired numbers.
        MalformedWireError: If ``unknown_fields`` is not a valid record sequence.
    """
    if not unknown_fields:
        return
    reader = WireReader(unknown_fields, schema.name)
    while not reader.at_end():
        record = reader.read_field()
        if record.number in schema.reserved:
            raise ReservedFieldError(schema.name, record.number)
    writer.raw(unknown_fields)


# ---------------------------------------------------------------------------
# Scalar conversions
# ---------------------------------------------------------------------------

def to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def to_int64(value: int) -> int:
    value &= _UINT64_MASK
    return value - (1 << 64) if value & (1 << 63) else value


def to_float(payload: bytes) -> float:
    return _FLOAT32.unpack(payload)[0]


def to_string(record: RawField, message_type: str) -> str:
    try:
        return record.value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedWireError(message_type, f"invalid UTF-8 in field {record.number}: {exc}", record.offset)


def to_enum(
    record: RawField,
    enum_type: Type[E],
    message_type: str,
    ctx: DecodeContext,
    path: str,
    unknown: bytearray,
) -> Optional[E]:
    """
    Convert a varint record to an enum member.

    Values this schema version does not know are kept in ``unknown`` so they
    survive a re-encode, and reported as UNKNOWN_ENUM_VALUE.

    Returns:
        The enum member, or None if the value was unknown.  On None the
        caller drops any earlier value for the field, so it reads as its
        default.
    """
    value = to_int32(record.value)
    try:
        return enum_type(value)
    except ValueError:
        unknown += record.raw
        ctx.diagnostics.add(
            DiagnosticKind.UNKNOWN_ENUM_VALUE,
            message_type,
            join_path(path, str(record.number)),
            f"value {value} is not a known {enum_type.__name__}",
        )
        return None


def merge_chunks(chunks: List[bytes]) -> bytes:
    """
    Combine repeated occurrences of a singular message field.

    Concatenating the payloads and decoding once reproduces proto3 merge
    semantics: scalars take the last value, repeated fields append.
    """
    return b"".join(chunks)
