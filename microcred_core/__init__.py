"""
MicroCred Core — skill-attestation token registry.

A deterministic state machine for minting, transferring, burning and
updating micro-credential tokens, with issuer and verifier governance
and a hash-chained transaction journal.
"""

__version__ = "0.1.0"

from .errors import ErrorCode, Err, Ok, RegistryError, Result
from .models import (
    DEFAULT_MAX_SUPPLY,
    FIRST_TOKEN_ID,
    MAX_BLOCK_HEIGHT,
    MAX_CONTENT_HASH_BYTES,
    MAX_DISPLAY_NAME_BYTES,
    MAX_SKILL_LEVEL,
    MAX_SKILL_NAME_BYTES,
    MIN_SKILL_LEVEL,
    PROOF_LENGTH,
    ExecutionContext,
    IssuerRecord,
    RegistryConfig,
    TokenMetadata,
    byte_length,
    export_json_schema,
)
from .state import RegistryState
from .registry import CredentialRegistry
from .config import RegistrySettings, get_settings
from .telemetry import setup_logging
from .canonical import canonicalize
from .crypto import (
    sha256_hex,
    generate_keypair,
    sign_bytes,
    verify_signature,
    public_key_to_pem,
    public_key_from_pem,
    key_fingerprint,
)
from .journal import (
    JournalEntry,
    Signature,
    TransactionJournal,
    journal_digest,
    load_entries,
    seal_entry,
    verify_journal,
)
