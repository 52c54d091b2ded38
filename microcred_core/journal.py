"""
microcred_core/journal.py — Transaction Journal

An append-only, hash-chained log of every call made against a registry,
successful or not. Each entry records who called what, at which block
height, and what came back.

Seal:   link previous_hash → canonicalize → SHA-256 → (optional) Ed25519 sign
Verify: walk entries, recompute hashes, check links, sequence numbers,
        block-height monotonicity and, given a key, signatures.

The journal is an audit export, not a state store: registry state is
never loaded from it. Replaying its calls against a fresh registry
reproduces the state, except for arguments the canonical form cannot
carry, which are recorded by their ``repr`` (see ``json_safe``).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from pydantic import BaseModel, Field, model_validator

from .canonical import canonicalize, is_safe_integer
from .crypto import key_fingerprint, sha256_hex, sign_bytes, verify_signature
from .errors import Err, Result


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class Signature(BaseModel):
    """Operator seal over an entry's canonical bytes."""

    algorithm: str = "Ed25519"
    signer: str = Field(
        ...,
        description="Fingerprint of the operator public key.",
    )
    value: str = Field(..., pattern=r"^[0-9a-f]+$")


class JournalEntry(BaseModel):
    """One call against the registry, with its outcome."""

    sequence_number: int = Field(..., ge=0)
    block_height: int = Field(..., ge=0)
    caller: str = Field(..., min_length=1)
    operation: str = Field(..., min_length=1)
    arguments: Dict[str, Any] = Field(default_factory=dict)
    outcome: Literal["ok", "err"]
    value: Any = None
    error_code: Optional[int] = None
    previous_hash: Optional[str] = None
    entry_hash: Optional[str] = None
    signature: Optional[Signature] = None

    @model_validator(mode="after")
    def validate_outcome(self) -> "JournalEntry":
        if self.outcome == "err" and self.error_code is None:
            raise ValueError("err entries must carry an error_code")
        if self.outcome == "ok" and self.error_code is not None:
            raise ValueError("ok entries must not carry an error_code")
        return self

    @model_validator(mode="after")
    def validate_genesis(self) -> "JournalEntry":
        if self.sequence_number == 0 and self.previous_hash is not None:
            raise ValueError("Genesis entry must not have a previous_hash")
        if self.sequence_number > 0 and self.previous_hash is None:
            raise ValueError("Non-genesis entry must have a previous_hash")
        return self

    def hashable_dict(self) -> dict:
        """Entry as a dict without the derived seal fields."""
        d = self.model_dump(mode="json")
        d.pop("entry_hash", None)
        d.pop("signature", None)
        return d


def json_safe(value: Any) -> Any:
    """Convert call arguments to journal-safe JSON values.

    bytes become lowercase hex; tuples and sets become lists. Values the
    canonical form cannot carry (integers beyond 2^53, floats, other
    objects) are recorded by their ``repr`` so that every call can be
    journaled, whatever the caller passed.
    """
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value if is_safe_integer(value) else repr(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((json_safe(v) for v in value), key=repr)
    return repr(value)


# ---------------------------------------------------------------------------
# Sealing
# ---------------------------------------------------------------------------

def seal_entry(
    entry: JournalEntry,
    private_key: Optional[Ed25519PrivateKey] = None,
) -> JournalEntry:
    """Compute ``entry_hash`` and, with a key, the operator signature.

    Returns a new entry; the input is not mutated.
    """
    canonical_bytes = canonicalize(entry.hashable_dict())
    update: Dict[str, Any] = {"entry_hash": sha256_hex(canonical_bytes)}
    if private_key is not None:
        update["signature"] = Signature(
            signer=key_fingerprint(private_key.public_key()),
            value=sign_bytes(private_key, canonical_bytes),
        )
    return entry.model_copy(update=update)


class TransactionJournal:
    """Append-only journal of registry calls.

    Args:
        signing_key: Operator Ed25519 key. When given, every entry is
                     signed; otherwise entries are hash-chained only.
    """

    def __init__(self, signing_key: Optional[Ed25519PrivateKey] = None) -> None:
        self._signing_key = signing_key
        self._entries: List[JournalEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[JournalEntry]:
        """All sealed entries (read-only copy)."""
        return list(self._entries)

    @property
    def head_hash(self) -> Optional[str]:
        return self._entries[-1].entry_hash if self._entries else None

    def append(
        self,
        *,
        block_height: int,
        caller: str,
        operation: str,
        arguments: Dict[str, Any],
        result: Result,
    ) -> JournalEntry:
        """Seal and append one call and its result."""
        if isinstance(result, Err):
            outcome, value, code = "err", None, int(result.code)
        else:
            outcome, value, code = "ok", json_safe(result.value), None

        entry = JournalEntry(
            sequence_number=len(self._entries),
            block_height=block_height,
            caller=caller,
            operation=operation,
            arguments=json_safe(arguments),
            outcome=outcome,
            value=value,
            error_code=code,
            previous_hash=self.head_hash,
        )
        sealed = seal_entry(entry, self._signing_key)
        self._entries.append(sealed)
        return sealed

    def digest(self) -> str:
        return journal_digest(self._entries)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(
            [e.model_dump(mode="json") for e in self._entries],
            indent=indent,
            ensure_ascii=False,
        )


def load_entries(text: str) -> List[JournalEntry]:
    """Parse a journal exported with ``TransactionJournal.to_json``."""
    return [JournalEntry.model_validate(item) for item in json.loads(text)]


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

def verify_journal(
    entries: List[JournalEntry],
    public_key: Optional[Ed25519PublicKey] = None,
) -> dict:
    """Verify the integrity of a journal.

    Checks every entry's hash, the previous_hash links, sequence
    continuity from 0 and non-decreasing block heights. With
    ``public_key``, every entry must also carry a valid signature from
    that key.
    """
    result: Dict[str, Any] = {
        "journal_valid": True,
        "total_entries": len(entries),
        "invalid_entries": [],
        "broken_links": [],
        "sequence_gaps": [],
        "height_violations": [],
    }

    expected_signer = key_fingerprint(public_key) if public_key else None
    prev_hash: Optional[str] = None
    prev_height: Optional[int] = None

    for index, entry in enumerate(entries):
        seq = entry.sequence_number
        errors: List[str] = []

        canonical_bytes = canonicalize(entry.hashable_dict())
        computed = sha256_hex(canonical_bytes)
        if computed != entry.entry_hash:
            errors.append(
                f"Hash mismatch: computed {computed}, stored {entry.entry_hash}"
            )

        if public_key is not None:
            sig = entry.signature
            if sig is None:
                errors.append("No signature present")
            elif sig.signer != expected_signer:
                errors.append(f"Signer mismatch: {sig.signer}")
            elif not verify_signature(public_key, canonical_bytes, sig.value):
                errors.append("Signature verification failed")

        if errors:
            result["journal_valid"] = False
            result["invalid_entries"].append(
                {"sequence_number": seq, "errors": errors}
            )

        if entry.previous_hash != prev_hash:
            result["journal_valid"] = False
            result["broken_links"].append({
                "sequence_number": seq,
                "expected_previous_hash": prev_hash,
                "actual_previous_hash": entry.previous_hash,
            })

        if seq != index:
            result["journal_valid"] = False
            result["sequence_gaps"].append(
                {"expected_sequence": index, "actual_sequence": seq}
            )

        if prev_height is not None and entry.block_height < prev_height:
            result["journal_valid"] = False
            result["height_violations"].append({
                "sequence_number": seq,
                "block_height": entry.block_height,
                "previous_block_height": prev_height,
            })

        # Link against the stored hash; tampering is reported above
        prev_hash = entry.entry_hash
        prev_height = entry.block_height

    return result


def journal_digest(entries: List[JournalEntry]) -> str:
    """SHA-256 over the concatenated entry hashes, in sequence order."""
    ordered = sorted(entries, key=lambda e: e.sequence_number)
    combined = "".join(e.entry_hash for e in ordered if e.entry_hash)
    return sha256_hex(combined.encode("utf-8"))
