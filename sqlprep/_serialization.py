"""JSON encoding helpers backed by msgspec."""

import datetime
import enum
from typing import Any, Union

from msgspec import DecodeError
from msgspec.json import Decoder, Encoder

from sqlprep.exceptions import SerializationError

__all__ = ("decode_json", "encode_json")


def _type_to_string(value: Any) -> Any:  # pragma: no cover
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


_msgspec_json_encoder = Encoder(enc_hook=_type_to_string)
_msgspec_json_decoder = Decoder()


def encode_json(data: Any, *, as_bytes: bool = False) -> Union[str, bytes]:
    """Encode ``data`` as JSON.

    Args:
        data: Value to encode. Enums, sets and datetimes are coerced.
        as_bytes: Return raw bytes instead of a decoded string.

    Returns:
        The JSON document.
    """
    encoded = _msgspec_json_encoder.encode(data)
    if as_bytes:
        return encoded
    return encoded.decode("utf-8")


def decode_json(data: Union[str, bytes]) -> Any:
    """Decode a JSON document.

    Raises:
        SerializationError: If the payload is not valid JSON.
    """
    try:
        return _msgspec_json_decoder.decode(data)
    except DecodeError as e:
        raise SerializationError(str(e)) from e
