"""Classify entity ids as server-issued or locally minted."""

from __future__ import annotations

import time

LOCAL_PREFIX = "local-"
REMOTE_MIN_LENGTH = 16

_last_minted = 0


def is_remote_identifier(entity_id: object) -> bool:
    if not isinstance(entity_id, str) or entity_id.startswith(LOCAL_PREFIX):
        return False
    return "-" in entity_id and len(entity_id) >= REMOTE_MIN_LENGTH


def mint_local_identifier() -> str:
    """Return a new `local-<epoch ms>` id, strictly increasing within the process."""
    global _last_minted
    _last_minted = max(int(time.time() * 1000), _last_minted + 1)
    return f"{LOCAL_PREFIX}{_last_minted}"
