"""
microcred_core/state.py — Registry State Container

Holds the four authoritative maps and the registry config. The container
is plain data: it enforces nothing on its own. ``CredentialRegistry``
is the only writer, and it validates every precondition before touching
any map, so a rejected transition never leaves a partial update behind.

Tests and harnesses build a fresh container per case with ``deploy()``.
"""

from __future__ import annotations

from typing import Dict, Optional, Set

from .models import (
    DEFAULT_MAX_SUPPLY,
    FIRST_TOKEN_ID,
    IssuerRecord,
    RegistryConfig,
    TokenMetadata,
)


class RegistryState:
    """Authoritative maps for one registry deployment.

    Attributes:
        config:             Owner, supply cap, freeze flag, id counter.
        token_owners:       token id -> current holder.
        token_metadata:     token id -> metadata. Same keys as token_owners.
        issuers:            principal -> issuer record. Never shrinks.
        approved_verifiers: principals allowed to mint.
    """

    def __init__(
        self,
        config: RegistryConfig,
        token_owners: Optional[Dict[int, str]] = None,
        token_metadata: Optional[Dict[int, TokenMetadata]] = None,
        issuers: Optional[Dict[str, IssuerRecord]] = None,
        approved_verifiers: Optional[Set[str]] = None,
    ) -> None:
        self.config = config
        self.token_owners: Dict[int, str] = dict(token_owners or {})
        self.token_metadata: Dict[int, TokenMetadata] = dict(token_metadata or {})
        self.issuers: Dict[str, IssuerRecord] = dict(issuers or {})
        self.approved_verifiers: Set[str] = set(approved_verifiers or ())

    @classmethod
    def deploy(
        cls,
        owner: str,
        max_supply: int = DEFAULT_MAX_SUPPLY,
    ) -> "RegistryState":
        """Fresh state as it exists right after deployment."""
        return cls(
            config=RegistryConfig(
                owner=owner,
                max_supply=max_supply,
                metadata_frozen=False,
                next_token_id=FIRST_TOKEN_ID,
            )
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def token_exists(self, token_id: int) -> bool:
        """True iff the token is minted and not burned."""
        return (
            token_id < self.config.next_token_id
            and token_id in self.token_owners
            and token_id in self.token_metadata
        )

    @property
    def supply(self) -> int:
        """Number of live (unburned) tokens."""
        return len(self.token_owners)

    def snapshot(self) -> dict:
        """JSON-safe view of the whole state (for display and tests)."""
        return {
            "config": self.config.model_dump(mode="json"),
            "token_owners": {
                str(k): v for k, v in sorted(self.token_owners.items())
            },
            "token_metadata": {
                str(k): v.model_dump(mode="json")
                for k, v in sorted(self.token_metadata.items())
            },
            "issuers": {
                k: v.model_dump(mode="json")
                for k, v in sorted(self.issuers.items())
            },
            "approved_verifiers": sorted(self.approved_verifiers),
        }

    def check_invariants(self) -> list[str]:
        """Return a list of violated invariants (empty when consistent)."""
        problems: list[str] = []
        cfg = self.config

        if set(self.token_owners) != set(self.token_metadata):
            problems.append("ownership and metadata keys differ")
        if cfg.next_token_id > cfg.max_supply:
            problems.append("next_token_id exceeds max_supply")
        for token_id in self.token_owners:
            if not FIRST_TOKEN_ID <= token_id < cfg.next_token_id:
                problems.append(f"token {token_id} outside issued range")
        return problems
