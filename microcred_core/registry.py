"""
microcred_core/registry.py — Credential Registry State Machine

A pure, synchronous state machine over one ``RegistryState``. No I/O,
no async, no storage — just authorization, validation and map updates.

Every transition follows the same shape:

    check preconditions in a fixed order  →  first failure returns Err
                    │
          all checks passed
                    │
    mutate the maps  →  return Ok

Because no map is touched until every check has passed, a rejected
call leaves the state exactly as it found it.

Execution context:
    Each transition reads the acting principal and the current block
    height from the registry's ``ExecutionContext``. The external driver
    (``microcred_harness.Simulator``, a test, a CLI script) stages that
    context with ``set_caller()`` / ``set_block_height()`` before each
    call.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from .config import RegistrySettings, get_settings
from .errors import Err, ErrorCode, Ok, Result
from .models import (
    MAX_CONTENT_HASH_BYTES,
    MAX_DISPLAY_NAME_BYTES,
    MAX_SKILL_LEVEL,
    MAX_SKILL_NAME_BYTES,
    MIN_SKILL_LEVEL,
    PROOF_LENGTH,
    ExecutionContext,
    IssuerRecord,
    TokenMetadata,
    byte_length,
)
from .state import RegistryState

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_principal(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _text_within(value: Any, min_bytes: int, max_bytes: int) -> bool:
    """True if ``value`` is a str whose UTF-8 length is in range."""
    if not isinstance(value, str):
        return False
    return min_bytes <= byte_length(value) <= max_bytes


def _as_proof(value: Any) -> Optional[bytes]:
    """Return ``value`` as bytes if it is an exactly-sized proof, else None.

    Never truncates or pads.
    """
    if not isinstance(value, (bytes, bytearray, memoryview)):
        return None
    raw = bytes(value)
    if len(raw) != PROOF_LENGTH:
        return None
    return raw


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class CredentialRegistry:
    """Issuance and lifecycle management of micro-credential tokens.

    Args:
        state:        State container to operate on. Owned by the
                      registry for the duration of its use; nothing
                      else should write to it.
        caller:       Initial acting principal. Defaults to the
                      registry owner (the deployer).
        block_height: Initial block height.
    """

    def __init__(
        self,
        state: RegistryState,
        *,
        caller: Optional[str] = None,
        block_height: int = 0,
    ) -> None:
        self._state = state
        self._context = ExecutionContext(
            caller=caller or state.config.owner,
            block_height=block_height,
        )

    @classmethod
    def deploy(
        cls,
        owner: str,
        settings: Optional[RegistrySettings] = None,
    ) -> "CredentialRegistry":
        """Deploy a fresh registry owned by ``owner``.

        The deployer is the initial caller, as it would be for the
        deployment transaction itself.
        """
        settings = settings or get_settings()
        state = RegistryState.deploy(owner, max_supply=settings.max_supply)
        logger.info(
            "registry_deployed",
            owner=owner,
            max_supply=settings.max_supply,
        )
        return cls(
            state,
            caller=owner,
            block_height=settings.initial_block_height,
        )

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def context(self) -> ExecutionContext:
        return self._context

    @property
    def caller(self) -> str:
        return self._context.caller

    @property
    def block_height(self) -> int:
        return self._context.block_height

    # ------------------------------------------------------------------
    # Execution context injection (for harness use)
    # ------------------------------------------------------------------

    def set_caller(self, principal: str) -> None:
        """Stage the acting principal for subsequent calls.

        Raises:
            ValueError: If ``principal`` is empty.
        """
        self._context = ExecutionContext(
            caller=principal, block_height=self._context.block_height
        )

    def set_block_height(self, height: int) -> None:
        """Stage the block height for subsequent calls.

        Raises:
            ValueError: If ``height`` is negative or beyond
                        ``MAX_BLOCK_HEIGHT``.
        """
        self._context = ExecutionContext(
            caller=self._context.caller, block_height=height
        )

    # ------------------------------------------------------------------
    # Governance
    # ------------------------------------------------------------------

    def transfer_ownership(self, new_owner: str) -> Result:
        """Hand registry ownership to ``new_owner``."""
        op = "transfer_ownership"
        if not self._is_owner():
            return self._reject(op, ErrorCode.UNAUTHORIZED)
        if not _is_principal(new_owner):
            return self._reject(op, ErrorCode.INVALID_INPUT)

        previous = self._state.config.owner
        self._state.config.owner = new_owner
        logger.info("ownership_transferred", previous=previous, owner=new_owner)
        return Ok(value=True)

    def freeze_metadata(self) -> Result:
        """Permanently disable metadata edits. There is no unfreeze."""
        if not self._is_owner():
            return self._reject("freeze_metadata", ErrorCode.UNAUTHORIZED)

        self._state.config.metadata_frozen = True
        logger.info("metadata_frozen", block_height=self.block_height)
        return Ok(value=True)

    def approve_verifier(self, principal: str) -> Result:
        op = "approve_verifier"
        if not self._is_owner():
            return self._reject(op, ErrorCode.UNAUTHORIZED)
        if not _is_principal(principal):
            return self._reject(op, ErrorCode.INVALID_INPUT)

        self._state.approved_verifiers.add(principal)
        logger.info("verifier_approved", verifier=principal)
        return Ok(value=True)

    def revoke_verifier(self, principal: str) -> Result:
        """Remove a verifier. Tokens it already minted are unaffected."""
        op = "revoke_verifier"
        if not self._is_owner():
            return self._reject(op, ErrorCode.UNAUTHORIZED)
        if not _is_principal(principal):
            return self._reject(op, ErrorCode.INVALID_INPUT)

        self._state.approved_verifiers.discard(principal)
        logger.info("verifier_revoked", verifier=principal)
        return Ok(value=True)

    def verify_issuer(self, principal: str) -> Result:
        """Mark a registered issuer as verified. One-way."""
        op = "verify_issuer"
        if not self._is_owner():
            return self._reject(op, ErrorCode.UNAUTHORIZED)

        record = self._state.issuers.get(principal)
        if record is None:
            return self._reject(op, ErrorCode.ISSUER_NOT_FOUND, "issuer_not_found")

        self._state.issuers[principal] = record.model_copy(
            update={"verified": True}
        )
        logger.info("issuer_verified", issuer=principal)
        return Ok(value=True)

    # ------------------------------------------------------------------
    # Issuer self-service
    # ------------------------------------------------------------------

    def register_issuer(self, display_name: str) -> Result:
        """Register the caller as an unverified issuer.

        No re-registration and no rename: an existing record is final.
        """
        op = "register_issuer"
        if not _text_within(display_name, 1, MAX_DISPLAY_NAME_BYTES):
            return self._reject(op, ErrorCode.INVALID_INPUT)
        if self.caller in self._state.issuers:
            return self._reject(
                op, ErrorCode.ISSUER_ALREADY_REGISTERED, "issuer_already_registered"
            )

        self._state.issuers[self.caller] = IssuerRecord(
            display_name=display_name, verified=False
        )
        logger.info(
            "issuer_registered", issuer=self.caller, display_name=display_name
        )
        return Ok(value=True)

    # ------------------------------------------------------------------
    # Token lifecycle
    # ------------------------------------------------------------------

    def mint_credential(
        self,
        recipient: str,
        skill_name: str,
        skill_level: int,
        expiry: Optional[int],
        soulbound: bool,
        content_hash: str,
        proof: bytes,
    ) -> Result:
        """Mint a new credential token to ``recipient``.

        Checks run in a fixed order and the first failure is returned:

            1. caller has an issuer record         → ISSUER_NOT_FOUND
            2. that record is verified             → ISSUER_NOT_VERIFIED
            3. caller is an approved verifier      → NOT_APPROVED
            4. next_token_id < max_supply          → SUPPLY_EXHAUSTED
            5. no owner at next_token_id           → ALREADY_EXISTS
            6. skill_name is 1-64 bytes            → INVALID_INPUT
            7. skill_level in [1, 5]               → OUT_OF_RANGE
            8. content_hash at most 128 bytes      → INVALID_INPUT
            9. proof exactly 32 bytes              → INVALID_INPUT
           10. expiry (if given) >= block height   → INVALID_INPUT
           11. recipient is a non-empty principal  → INVALID_INPUT
           12. soulbound is a bool                 → INVALID_INPUT

        Returns:
            Ok(token_id) on success.
        """
        op = "mint_credential"
        state = self._state
        cfg = state.config
        caller = self.caller

        issuer = state.issuers.get(caller)
        if issuer is None:
            return self._reject(op, ErrorCode.ISSUER_NOT_FOUND, "issuer_not_found")
        if not issuer.verified:
            return self._reject(
                op, ErrorCode.ISSUER_NOT_VERIFIED, "issuer_not_verified"
            )
        if caller not in state.approved_verifiers:
            return self._reject(op, ErrorCode.NOT_APPROVED)
        if cfg.next_token_id >= cfg.max_supply:
            return self._reject(op, ErrorCode.SUPPLY_EXHAUSTED)

        token_id = cfg.next_token_id
        if token_id in state.token_owners:
            return self._reject(op, ErrorCode.ALREADY_EXISTS)

        if not _text_within(skill_name, 1, MAX_SKILL_NAME_BYTES):
            return self._reject(op, ErrorCode.INVALID_INPUT)
        if not _is_int(skill_level) or not (
            MIN_SKILL_LEVEL <= skill_level <= MAX_SKILL_LEVEL
        ):
            return self._reject(op, ErrorCode.OUT_OF_RANGE)
        if not _text_within(content_hash, 0, MAX_CONTENT_HASH_BYTES):
            return self._reject(op, ErrorCode.INVALID_INPUT)
        proof_bytes = _as_proof(proof)
        if proof_bytes is None:
            return self._reject(op, ErrorCode.INVALID_INPUT)
        if expiry is not None and (
            not _is_int(expiry) or expiry < self.block_height
        ):
            return self._reject(op, ErrorCode.INVALID_INPUT)
        if not _is_principal(recipient):
            return self._reject(op, ErrorCode.INVALID_INPUT)
        if not isinstance(soulbound, bool):
            return self._reject(op, ErrorCode.INVALID_INPUT)

        # Metadata and ownership are written together
        state.token_metadata[token_id] = TokenMetadata(
            skill_name=skill_name,
            skill_level=skill_level,
            issuer=caller,
            issue_timestamp=self.block_height,
            expiry_timestamp=expiry,
            soulbound=soulbound,
            content_hash=content_hash,
            proof=proof_bytes,
        )
        state.token_owners[token_id] = recipient
        cfg.next_token_id = token_id + 1

        logger.info(
            "credential_minted",
            token_id=token_id,
            issuer=caller,
            recipient=recipient,
            skill_name=skill_name,
            skill_level=skill_level,
            soulbound=soulbound,
        )
        return Ok(value=token_id)

    def transfer(self, token_id: int, sender: str, recipient: str) -> Result:
        """Move a token from ``sender`` to ``recipient``.

        Only the current holder, acting as themselves, may transfer.
        There is no approval / operator mechanism.
        """
        op = "transfer"
        if not _is_int(token_id):
            return self._reject(op, ErrorCode.NOT_FOUND)
        state = self._state
        owner = state.token_owners.get(token_id)
        metadata = state.token_metadata.get(token_id)
        if owner is None or metadata is None:
            return self._reject(op, ErrorCode.NOT_FOUND)
        if owner != sender or self.caller != sender:
            return self._reject(op, ErrorCode.UNAUTHORIZED)
        if metadata.soulbound:
            return self._reject(op, ErrorCode.IMMUTABLE)
        if not _is_principal(recipient):
            return self._reject(op, ErrorCode.INVALID_INPUT)

        state.token_owners[token_id] = recipient
        logger.info(
            "credential_transferred",
            token_id=token_id,
            sender=sender,
            recipient=recipient,
        )
        return Ok(value=True)

    def burn(self, token_id: int) -> Result:
        """Destroy a token. Allowed for its holder or the registry owner.

        The id is never handed out again.
        """
        op = "burn"
        if not _is_int(token_id):
            return self._reject(op, ErrorCode.NOT_FOUND)
        state = self._state
        owner = state.token_owners.get(token_id)
        if owner is None:
            return self._reject(op, ErrorCode.NOT_FOUND)
        if self.caller != owner and not self._is_owner():
            return self._reject(op, ErrorCode.UNAUTHORIZED)

        del state.token_owners[token_id]
        state.token_metadata.pop(token_id, None)
        logger.info(
            "credential_burned", token_id=token_id, burned_by=self.caller
        )
        return Ok(value=True)

    def update_metadata(
        self,
        token_id: int,
        new_content_hash: str,
        new_proof: bytes,
    ) -> Result:
        """Replace ``content_hash`` and ``proof`` of a token.

        Only the original issuer may do this (not the current holder),
        and only while metadata is not frozen. Every other field stays
        as minted.
        """
        op = "update_metadata"
        state = self._state
        if state.config.metadata_frozen:
            return self._reject(op, ErrorCode.FROZEN)

        metadata = (
            state.token_metadata.get(token_id) if _is_int(token_id) else None
        )
        if metadata is None or token_id not in state.token_owners:
            return self._reject(op, ErrorCode.NOT_FOUND)
        if self.caller != metadata.issuer:
            return self._reject(op, ErrorCode.UNAUTHORIZED)

        proof_bytes = _as_proof(new_proof)
        if (
            not _text_within(new_content_hash, 0, MAX_CONTENT_HASH_BYTES)
            or proof_bytes is None
        ):
            return self._reject(op, ErrorCode.INVALID_INPUT)

        state.token_metadata[token_id] = metadata.model_copy(
            update={"content_hash": new_content_hash, "proof": proof_bytes}
        )
        logger.info(
            "metadata_updated",
            token_id=token_id,
            content_hash=new_content_hash,
        )
        return Ok(value=True)

    # ------------------------------------------------------------------
    # Read accessors (queries, never errors)
    # ------------------------------------------------------------------

    def get_metadata(self, token_id: int) -> Optional[TokenMetadata]:
        if not _is_int(token_id):
            return None
        return self._state.token_metadata.get(token_id)

    def get_owner(self, token_id: int) -> Optional[str]:
        if not _is_int(token_id):
            return None
        return self._state.token_owners.get(token_id)

    def get_next_token_id(self) -> int:
        return self._state.config.next_token_id

    def get_issuer(self, principal: str) -> Optional[IssuerRecord]:
        return self._state.issuers.get(principal)

    def is_approved_verifier(self, principal: str) -> bool:
        return principal in self._state.approved_verifiers

    def get_contract_owner(self) -> str:
        return self._state.config.owner

    def is_metadata_frozen(self) -> bool:
        return self._state.config.metadata_frozen

    def is_expired(self, token_id: int) -> Optional[bool]:
        """Whether a token's expiry lies before the current block height.

        None if the token does not exist; False if it has no expiry.
        """
        metadata = self.get_metadata(token_id)
        if metadata is None:
            return None
        if metadata.expiry_timestamp is None:
            return False
        return self.block_height > metadata.expiry_timestamp

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_owner(self) -> bool:
        return self.caller == self._state.config.owner

    def _reject(
        self,
        operation: str,
        code: ErrorCode,
        reason: Optional[str] = None,
    ) -> Err:
        logger.debug(
            "transition_rejected",
            operation=operation,
            caller=self.caller,
            code=int(code),
            reason=reason or code.name.lower(),
        )
        return Err(code=code)
