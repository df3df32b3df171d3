from dataclasses import dataclass
from typing import Union

from .models import ValueEnvelope, ValueKind


@dataclass(frozen=True)
class Numeric:
    value: float


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class Unrecognized:
    type_name: str = ""


DecodedValue = Union[Numeric, Boolean, Unrecognized]


def decode(envelope: ValueEnvelope) -> DecodedValue:
    """
    Map a value envelope to its semantic value kind.

    Dispatch is on the declared type tag only; the payload shape is never
    inspected. Anything other than a numeric or boolean tag is returned as
    Unrecognized rather than raised.
    """
    if envelope.type_tag == ValueKind.NUMERIC:
        return Numeric(float(envelope.payload))
    elif envelope.type_tag == ValueKind.BOOLEAN:
        return Boolean(bool(envelope.payload))
    else:
        return Unrecognized(envelope.variant_type)


def format_value(decoded: DecodedValue) -> str:
    """Render a decoded value the same way for every acquisition path."""
    if isinstance(decoded, Boolean):
        return "true" if decoded.value else "false"
    elif isinstance(decoded, Numeric):
        # Large magnitudes keep exponent notation
        if decoded.value.is_integer() and abs(decoded.value) < 1e16:
            return str(int(decoded.value))
        return repr(decoded.value)
    return "unexpected"
