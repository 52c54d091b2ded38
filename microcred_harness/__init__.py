"""
microcred_harness — The external driver.

The registry core only knows "the current caller" and "the current
block height". Something outside it has to decide those, sequence the
calls, and keep a record of what happened. That is this module.

Architecture:
    Script / test / CLI → Simulator (context + journal) → CredentialRegistry

The Simulator wraps a CredentialRegistry (state machine) and a
TransactionJournal (hash-chained call log). Every call made through
``call()`` is dispatched to the registry and then journaled together
with its result, whether it succeeded or not.

Block height:
    Like a ledger's block counter, the simulated height never moves
    backwards. ``set_block_height()`` rejects a lower height and
    ``advance_blocks()`` moves it forward.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import structlog
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
)

from microcred_core.config import RegistrySettings
from microcred_core.errors import Result
from microcred_core.journal import TransactionJournal
from microcred_core.registry import CredentialRegistry

logger = structlog.get_logger()


# Operation name → (required argument names, optional arguments with defaults)
OPERATIONS: Dict[str, tuple] = {
    "transfer_ownership": (("new_owner",), {}),
    "freeze_metadata": ((), {}),
    "approve_verifier": (("principal",), {}),
    "revoke_verifier": (("principal",), {}),
    "verify_issuer": (("principal",), {}),
    "register_issuer": (("display_name",), {}),
    "mint_credential": (
        ("recipient", "skill_name", "skill_level", "proof"),
        {"expiry": None, "soulbound": False, "content_hash": ""},
    ),
    "transfer": (("token_id", "sender", "recipient"), {}),
    "burn": (("token_id",), {}),
    "update_metadata": (("token_id", "new_content_hash", "new_proof"), {}),
}

# Script arguments that arrive as hex strings and must become bytes
_BYTES_ARGUMENTS = ("proof", "new_proof")


class Simulator:
    """Drives a registry the way a ledger would: one call at a time.

    Args:
        owner:       Deployer and initial registry owner.
        settings:    Registry settings (max supply, initial height).
                     Defaults to the environment-driven settings.
        signing_key: Optional operator key used to sign journal entries.
        registry:    Use an existing registry instead of deploying one.
    """

    def __init__(
        self,
        owner: str,
        settings: Optional[RegistrySettings] = None,
        signing_key: Optional[Ed25519PrivateKey] = None,
        registry: Optional[CredentialRegistry] = None,
    ) -> None:
        self.registry = registry or CredentialRegistry.deploy(owner, settings)
        self.journal = TransactionJournal(signing_key=signing_key)

    # ------------------------------------------------------------------
    # Execution context
    # ------------------------------------------------------------------

    @property
    def caller(self) -> str:
        return self.registry.caller

    @property
    def block_height(self) -> int:
        return self.registry.block_height

    def set_caller(self, principal: str) -> None:
        self.registry.set_caller(principal)

    def set_block_height(self, height: int) -> None:
        """Move to ``height``.

        Raises:
            ValueError: If ``height`` is lower than the current height.
        """
        if height < self.registry.block_height:
            raise ValueError(
                f"Block height cannot move backwards "
                f"({self.registry.block_height} → {height})"
            )
        self.registry.set_block_height(height)

    def advance_blocks(self, count: int = 1) -> int:
        """Advance the block height by ``count``. Returns the new height."""
        if count < 0:
            raise ValueError("count must be non-negative")
        self.registry.set_block_height(self.registry.block_height + count)
        return self.registry.block_height

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def call(
        self,
        operation: str,
        caller: Optional[str] = None,
        **arguments: Any,
    ) -> Result:
        """Dispatch one transition to the registry and journal it.

        Args:
            operation: Snake-case transition name (see ``OPERATIONS``).
            caller:    Acting principal for this call. When omitted the
                       currently staged caller is used.
            **arguments: Transition arguments by name.

        Returns:
            The transition's Ok / Err result.

        Raises:
            ValueError: Unknown operation, or missing / unexpected
                        arguments.
        """
        if caller is not None:
            self.set_caller(caller)

        call_args = _bind_arguments(operation, arguments)
        result = getattr(self.registry, operation)(**call_args)

        entry = self.journal.append(
            block_height=self.registry.block_height,
            caller=self.registry.caller,
            operation=operation,
            arguments=call_args,
            result=result,
        )
        logger.debug(
            "call_journaled",
            sequence_number=entry.sequence_number,
            operation=operation,
            outcome=entry.outcome,
        )
        return result

    def run_script(self, steps: Iterable[Dict[str, Any]]) -> List[Result]:
        """Run a sequence of JSON-style call steps.

        Each step is a dict with ``operation`` and optionally
        ``caller``, ``block_height`` and ``arguments``. Proof arguments
        may be given as hex strings.
        """
        results: List[Result] = []
        for index, step in enumerate(steps):
            if "operation" not in step:
                raise ValueError(f"Step {index} has no operation")
            if "block_height" in step:
                self.set_block_height(step["block_height"])
            arguments = _decode_script_arguments(step.get("arguments", {}))
            results.append(
                self.call(step["operation"], step.get("caller"), **arguments)
            )
        return results

    def save_journal(self, path: str) -> Path:
        """Write the journal as JSON to ``path``."""
        target = Path(path)
        target.write_text(self.journal.to_json(), encoding="utf-8")
        logger.info(
            "journal_saved", path=str(target), entries=len(self.journal)
        )
        return target


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _bind_arguments(operation: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Check arguments against ``OPERATIONS`` and fill in defaults."""
    signature = OPERATIONS.get(operation)
    if signature is None:
        raise ValueError(f"Unknown operation: {operation}")
    required, optional = signature

    missing = [name for name in required if name not in arguments]
    if missing:
        raise ValueError(
            f"{operation}: missing argument(s) {', '.join(missing)}"
        )
    unexpected = sorted(set(arguments) - set(required) - set(optional))
    if unexpected:
        raise ValueError(
            f"{operation}: unexpected argument(s) {', '.join(unexpected)}"
        )

    bound = dict(optional)
    bound.update(arguments)
    return bound


def _decode_script_arguments(arguments: Dict[str, Any]) -> Dict[str, Any]:
    decoded = dict(arguments)
    for name in _BYTES_ARGUMENTS:
        if isinstance(decoded.get(name), str):
            decoded[name] = bytes.fromhex(decoded[name])
    return decoded
