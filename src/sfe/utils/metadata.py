import json
import logging

from typing import Any, Optional, Tuple

from sfe.crypto import cipher
from sfe.storage import envelope
from sfe.utils.errors import CryptoFailure, MalformedEnvelope, PasswordRequired, WrongPassword

logger = logging.getLogger(__name__)


def serialize_metadata(value: Any) -> bytes:
    """None -> b"null"; models serialize themselves; anything else goes through json."""
    if value is None:
        return b"null"
    to_bytes = getattr(value, "to_bytes", None)
    if callable(to_bytes) and not isinstance(value, int):
        return to_bytes()
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def parse_plain_metadata(data: bytes) -> Tuple[bool, Any]:
    """(True, value) when ``data`` is UTF-8 JSON, (False, None) otherwise."""
    try:
        return True, json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return False, None


def empty_value(model: Optional[type]) -> Any:
    if model is not None and hasattr(model, "empty"):
        return model.empty()
    return None


def to_model(value: Any, model: Optional[type]) -> Any:
    if value is None:
        return empty_value(model)
    if model is None:
        return value
    if not isinstance(value, dict):
        raise MalformedEnvelope(f"Metadata is a JSON {type(value).__name__}, {model.__name__} needs an object")
    return model.from_dict(value)


def decode_metadata(meta: bytes, password: Optional[str], model: Optional[type] = None) -> Any:
    """Turn a metadata segment into a value, decrypting it when it is protected."""
    ok, value = parse_plain_metadata(meta)
    if ok:
        return to_model(value, model)

    if not password:
        raise PasswordRequired("Metadata is encrypted, password is required but missing.")
    logger.debug("metadata segment is protected, decrypting %d bytes", len(meta))
    try:
        plain = cipher.decrypt(meta, password)
    except CryptoFailure as exc:
        raise WrongPassword("Unable to read metadata from cipher", password) from exc

    # Padding can validate by chance under the wrong key; the JSON will not.
    ok, value = parse_plain_metadata(plain)
    if not ok:
        raise WrongPassword("Unable to read metadata from cipher", password)
    return to_model(value, model)


def resolve(data: bytes, password: Optional[str] = None, model: Optional[type] = None) -> Any:
    """Metadata stored in ``data``; the model's empty value for non-envelope input."""
    parsed = envelope.parse(data)
    if parsed is None:
        return empty_value(model)
    return decode_metadata(parsed.metadata, password, model)
