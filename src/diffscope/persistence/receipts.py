"""
diffscope — decision receipts.

File: src/diffscope/persistence/receipts.py

Purpose
- Persist the canonical decision for audit, keyed by the revision pair.

Receipt layout (one JSON object per file, ``<dir>/<base>..<target>.json``)
- ``schema_version``: receipt schema version.
- ``decision``: ``Decision.to_dict()``.
- ``decision_sha256``: digest of the canonical decision JSON.
- ``config_sha256``: digest of the canonical effective config, when known.
- ``changes_sha256``: digest of the canonical change list.

Receipts are write-only from the engine's point of view.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from diffscope.constants import RECEIPT_SCHEMA_VERSION
from diffscope.domain.models import Decision, canonical_json
from diffscope.utils.fs import atomic_write
from diffscope.utils.hashing import sha256_text

_UNSAFE_NAME_CHARS: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")
_SHORT_SHA_LENGTH: Final[int] = 12


def receipt_payload(
    decision: Decision, *, config: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    decision_json = decision.to_json()
    changes = [item.to_dict() for item in decision.classifications]
    return {
        "schema_version": RECEIPT_SCHEMA_VERSION,
        "decision": json.loads(decision_json),
        "decision_sha256": sha256_text(decision_json),
        "config_sha256": None if config is None else sha256_text(canonical_json(dict(config))),
        "changes_sha256": sha256_text(canonical_json(changes)),
    }


def receipt_name(decision: Decision) -> str:
    revisions = decision.revisions
    base = _name_part(revisions.base, fallback="all")
    target = _name_part(revisions.target, fallback="HEAD")
    return f"{base}..{target}.json"


def write_receipt(
    decision: Decision,
    destination: str | Path,
    *,
    config: Mapping[str, Any] | None = None,
) -> Path:
    """Write a receipt and return its path.

    ``destination`` is a directory (the receipt name is derived from the
    revision pair) or an explicit ``.json`` file path.
    """

    target = Path(destination)
    if target.suffix != ".json":
        target = target / receipt_name(decision)
    target.parent.mkdir(parents=True, exist_ok=True)
    body = json.dumps(receipt_payload(decision, config=config), sort_keys=True, indent=2)
    atomic_write(target, body + "\n")
    return target


def _name_part(value: str | None, *, fallback: str) -> str:
    if not value:
        return fallback
    if re.fullmatch(r"[0-9a-f]{40}|[0-9a-f]{64}", value):
        return value[:_SHORT_SHA_LENGTH]
    return _UNSAFE_NAME_CHARS.sub("_", value).strip("._") or fallback


__all__ = ["receipt_name", "receipt_payload", "write_receipt"]
