"""
MD5 fingerprints used to deduplicate scans of the same label.
"""
import base64
import binascii
import hashlib

from labelcheck.errors import InvalidExtractionError
from labelcheck.normalization.normalizer import normalize_whitespace


def hash_bytes(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def hash_data_url(data_url: str) -> str:
    """Hash of the decoded payload of a base64 data URL ('data:image/jpeg;base64,...')."""
    _, sep, payload = (data_url or "").partition(",")
    if not sep or not payload:
        raise InvalidExtractionError("Invalid data URL format")
    try:
        raw = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise InvalidExtractionError(f"Invalid base64 payload in data URL: {e}") from e
    return hash_bytes(raw)


def hash_text(text: str) -> str:
    """Case, surrounding whitespace and internal whitespace runs do not change the hash."""
    normalized = normalize_whitespace((text or "").lower())
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()
