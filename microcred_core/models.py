"""
microcred_core/models.py — Credential Registry Data Model

Value objects held in the registry maps, plus the registry configuration
and the per-call execution context. These are the single source of truth
for field shapes and limits; JSON Schema is exported from them, never
hand-written separately.

All string limits are measured in UTF-8 bytes, not characters.
"""

import json
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FIRST_TOKEN_ID = 1
DEFAULT_MAX_SUPPLY = 1_000_000

MAX_SKILL_NAME_BYTES = 64
MAX_DISPLAY_NAME_BYTES = 100
MAX_CONTENT_HASH_BYTES = 128
PROOF_LENGTH = 32

MIN_SKILL_LEVEL = 1
MAX_SKILL_LEVEL = 5

# Heights stay within the range journal hashing can encode exactly
MAX_BLOCK_HEIGHT = 2**53


def byte_length(text: str) -> int:
    """Length of ``text`` once UTF-8 encoded."""
    return len(text.encode("utf-8"))


def _proof_from_hex(value):
    # JSON round-trips carry the proof as lowercase hex
    if isinstance(value, str):
        return bytes.fromhex(value)
    return value


# ---------------------------------------------------------------------------
# Token metadata
# ---------------------------------------------------------------------------

class TokenMetadata(BaseModel):
    """Skill attestation attached to one token.

    Immutable: ``update_metadata`` replaces the instance via
    ``model_copy``. Only ``content_hash`` and ``proof`` ever change
    during a token's life.
    """

    model_config = ConfigDict(frozen=True)

    skill_name: str = Field(
        ...,
        description="Human-readable skill name, 1-64 UTF-8 bytes.",
    )
    skill_level: int = Field(
        ...,
        ge=MIN_SKILL_LEVEL,
        le=MAX_SKILL_LEVEL,
        description="Proficiency level in [1, 5].",
    )
    issuer: str = Field(
        ...,
        min_length=1,
        description="Principal that minted the token. Fixed for life.",
    )
    issue_timestamp: int = Field(
        ...,
        ge=0,
        description="Block height at mint.",
    )
    expiry_timestamp: Optional[int] = Field(
        default=None,
        ge=0,
        description="Block height after which the credential is expired. "
                    "None means no expiry (distinct from 0).",
    )
    soulbound: bool = Field(
        default=False,
        description="When true, ownership can never change after mint.",
    )
    content_hash: str = Field(
        default="",
        description="Off-chain content locator (e.g. ipfs://...), "
                    "at most 128 UTF-8 bytes.",
    )
    proof: bytes = Field(
        ...,
        description="Opaque 32-byte verification proof. Length-checked only.",
    )

    @field_validator("skill_name")
    @classmethod
    def validate_skill_name(cls, v: str) -> str:
        if not v or byte_length(v) > MAX_SKILL_NAME_BYTES:
            raise ValueError(
                f"skill_name must be 1-{MAX_SKILL_NAME_BYTES} bytes"
            )
        return v

    @field_validator("content_hash")
    @classmethod
    def validate_content_hash(cls, v: str) -> str:
        if byte_length(v) > MAX_CONTENT_HASH_BYTES:
            raise ValueError(
                f"content_hash exceeds {MAX_CONTENT_HASH_BYTES} bytes"
            )
        return v

    @field_validator("proof", mode="before")
    @classmethod
    def decode_proof(cls, v):
        return _proof_from_hex(v)

    @field_validator("proof")
    @classmethod
    def validate_proof_length(cls, v: bytes) -> bytes:
        if len(v) != PROOF_LENGTH:
            raise ValueError(
                f"proof must be exactly {PROOF_LENGTH} bytes, got {len(v)}"
            )
        return v

    @model_validator(mode="after")
    def validate_expiry(self) -> "TokenMetadata":
        if (
            self.expiry_timestamp is not None
            and self.expiry_timestamp < self.issue_timestamp
        ):
            raise ValueError(
                "expiry_timestamp must not precede issue_timestamp"
            )
        return self

    @field_serializer("proof", when_used="json")
    def serialize_proof(self, v: bytes) -> str:
        return v.hex()


# ---------------------------------------------------------------------------
# Issuer registry
# ---------------------------------------------------------------------------

class IssuerRecord(BaseModel):
    """Self-registered issuer. ``verified`` is flipped only by governance."""

    model_config = ConfigDict(frozen=True)

    display_name: str
    verified: bool = False

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        if not v or byte_length(v) > MAX_DISPLAY_NAME_BYTES:
            raise ValueError(
                f"display_name must be 1-{MAX_DISPLAY_NAME_BYTES} bytes"
            )
        return v


# ---------------------------------------------------------------------------
# Registry configuration
# ---------------------------------------------------------------------------

class RegistryConfig(BaseModel):
    """Deployment-wide settings and counters.

    Mutable, but every assignment is re-validated so a transition can
    never leave the config in a state that breaks the supply invariant.
    """

    model_config = ConfigDict(validate_assignment=True)

    owner: str = Field(..., min_length=1)
    max_supply: int = Field(default=DEFAULT_MAX_SUPPLY, ge=FIRST_TOKEN_ID)
    metadata_frozen: bool = False
    next_token_id: int = Field(default=FIRST_TOKEN_ID, ge=FIRST_TOKEN_ID)

    @model_validator(mode="after")
    def validate_supply(self) -> "RegistryConfig":
        if self.next_token_id > self.max_supply:
            raise ValueError(
                f"next_token_id ({self.next_token_id}) exceeds "
                f"max_supply ({self.max_supply})"
            )
        return self


# ---------------------------------------------------------------------------
# Execution context
# ---------------------------------------------------------------------------

class ExecutionContext(BaseModel):
    """Who is calling, and at which block height.

    Supplied by the external driver before each transition.
    """

    model_config = ConfigDict(frozen=True)

    caller: str = Field(..., min_length=1)
    block_height: int = Field(default=0, ge=0, le=MAX_BLOCK_HEIGHT)


# ---------------------------------------------------------------------------
# JSON Schema export
# ---------------------------------------------------------------------------

def export_json_schema() -> str:
    """Export the JSON Schemas of the registry value objects."""
    schema = {
        "TokenMetadata": TokenMetadata.model_json_schema(),
        "IssuerRecord": IssuerRecord.model_json_schema(),
        "RegistryConfig": RegistryConfig.model_json_schema(),
    }
    return json.dumps(schema, indent=2)


if __name__ == "__main__":
    print(export_json_schema())
