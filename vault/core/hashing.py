# vault/core/hashing.py
import hashlib

from vault.core.types import Event
from vault.core.canon import canonical_json


def event_hash(event: Event) -> str:
    """hex(sha256) over the canonical JSON of the whole event, prev_hash included."""
    return hashlib.sha256(canonical_json(event.to_dict())).hexdigest()
