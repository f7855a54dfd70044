# vault/core/canon.py
from typing import Any

try:
    import jcs
except ImportError:
    raise ImportError("Please install jcs: pip install jcs")

def canonical_json(obj: Any) -> bytes:
    """
    Produce deterministic UTF-8 bytes according to RFC 8785 (JSON Canonicalization Scheme).
    Event payloads pass through here before hashing and before they hit storage.
    """
    return jcs.canonicalize(obj)


def canonical_json_str(obj: Any) -> str:
    """Same as above, but returns string (storage column + debugging)."""
    return canonical_json(obj).decode("utf-8")
