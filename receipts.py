"""
receipts.py - Cycle Audit Receipts

Structured audit records for the cycle kernel. Every flush summary, execution
report and replay comparison is emitted through emit_receipt() so that the
audit trail has one shape and one hashing scheme.

Hashes are always dual (SHA256:BLAKE3).
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

import blake3

__all__ = [
    "dual_hash",
    "emit_receipt",
    "write_receipt_jsonl",
    "merkle",
    "StopRule",
    "RECEIPT_SCHEMA",
]

# =============================================================================
# CONSTANTS
# =============================================================================

RECEIPT_SCHEMA = {
    "receipt_type": "str",
    "ts": "ISO8601",
    "cycle_id": "int | None",
    "payload_hash": "str (SHA256:BLAKE3)",
}


# =============================================================================
# HASHING
# =============================================================================

def dual_hash(data: Union[bytes, str]) -> str:
    """
    SHA256:BLAKE3 digest of data.

    Args:
        data: Bytes or string to hash

    Returns:
        str: "sha256_hex:blake3_hex"
    """
    if isinstance(data, str):
        data = data.encode()
    sha = hashlib.sha256(data).hexdigest()
    b3 = blake3.blake3(data).hexdigest()
    return f"{sha}:{b3}"


# =============================================================================
# RECEIPTS
# =============================================================================

def emit_receipt(receipt_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a receipt around a payload.

    The payload is hashed as sorted JSON; values that JSON cannot encode are
    stringified so a receipt can always be produced.

    Args:
        receipt_type: Type identifier (e.g. "intent_summary", "replay_check")
        data: Receipt payload; cycle_id is lifted to the top level if present

    Returns:
        dict: receipt with receipt_type, ts, cycle_id, payload_hash and payload fields
    """
    receipt = {
        "receipt_type": receipt_type,
        "ts": datetime.now(timezone.utc).isoformat(),
        "cycle_id": data.get("cycle_id"),
        "payload_hash": dual_hash(json.dumps(data, sort_keys=True, default=str)),
        **data,
    }
    return receipt


def write_receipt_jsonl(receipt: Dict[str, Any], fh) -> None:
    """
    Append receipt as a single JSON line to an open file handle.
    """
    line = json.dumps(receipt, separators=(",", ":"), default=str)
    fh.write(line + "\n")


def merkle(items: List[Any]) -> str:
    """
    Merkle root of items (each JSON serialized, sorted keys).

    Used to fingerprint an intent batch before it is flushed.
    """
    if not items:
        return dual_hash(b"empty")
    hashes = [dual_hash(json.dumps(i, sort_keys=True, default=str)) for i in items]
    while len(hashes) > 1:
        if len(hashes) % 2:
            hashes.append(hashes[-1])
        hashes = [dual_hash(hashes[i] + hashes[i + 1])
                  for i in range(0, len(hashes), 2)]
    return hashes[0]


# =============================================================================
# STOPRULE EXCEPTION
# =============================================================================

class StopRule(Exception):
    """Raised when a kernel condition must halt the cycle. Never catch silently."""
    pass
