# =============================================================================
# Lens Overlay Protocol - Message Base Types
# =============================================================================
# Pydantic base class and constrained scalar types shared by every protocol
# message.  Scalars are constrained to the ranges of their proto3 wire types
# so that any model that validates can also be encoded, and floats are held
# at float32 precision so that a decode of an encode compares equal.
# =============================================================================

from typing import Annotated

import numpy as np
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
UINT64_MAX = (1 << 64) - 1


def _to_float32(value: float) -> float:
    """Round a Python float to the nearest float32 value."""
    with np.errstate(over="ignore"):
        return float(np.float32(value))


Float32 = Annotated[float, AfterValidator(_to_float32)]
Int32 = Annotated[int, Field(ge=INT32_MIN, le=INT32_MAX)]
Int64 = Annotated[int, Field(ge=INT64_MIN, le=INT64_MAX)]
UInt64 = Annotated[int, Field(ge=0, le=UINT64_MAX)]


class ProtoMessage(BaseModel):
    """
    Base class for all wire messages.

    Attributes:
        unknown_fields: Raw tag/value records for field numbers this schema
                        version does not know.  Preserved on decode and
                        re-emitted unchanged on encode.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid", ser_json_bytes="base64")

    unknown_fields: bytes = Field(default=b"", repr=False)
