#!/usr/bin/env python3
"""
MicroCred Academy Demo

Walks one issuer through the full credential lifecycle:

  1. Governance deploys the registry
  2. "Tech Academy" self-registers as an issuer
  3. Governance approves it as a verifier and verifies it
  4. The academy mints a transferable and a soulbound credential
  5. The learner transfers one; the soulbound one refuses to move
  6. Governance freezes metadata; the academy can no longer edit
  7. The learner burns a credential
  8. The journal is signed, written out and verified, then tampered with

Run:
    python examples/demo_academy.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from microcred_core.config import RegistrySettings
from microcred_core.crypto import generate_keypair, public_key_to_pem
from microcred_core.journal import verify_journal
from microcred_harness import Simulator


OWNER = "ST1OWNER"
ACADEMY = "ST1ACADEMY"
LEARNER = "ST1LEARNER"
EMPLOYER = "ST1EMPLOYER"

ZERO_PROOF = bytes(32)


def show(label: str, result) -> None:
    print(f"  {label:<44} → {result.to_dict()}")


def main():
    print("=" * 72)
    print("  MicroCred Academy Demo")
    print("=" * 72)

    operator_key, operator_pub = generate_keypair()
    sim = Simulator(
        owner=OWNER,
        settings=RegistrySettings(max_supply=1_000, initial_block_height=100),
        signing_key=operator_key,
    )

    print("\n--- Issuer onboarding ---")
    show("academy registers", sim.call("register_issuer", ACADEMY, display_name="Tech Academy"))
    show("owner approves academy as verifier", sim.call("approve_verifier", OWNER, principal=ACADEMY))
    show("owner verifies academy", sim.call("verify_issuer", OWNER, principal=ACADEMY))

    print("\n--- Minting ---")
    sim.advance_blocks(5)
    show(
        "mint 'Solidity Basics' L3 (transferable)",
        sim.call(
            "mint_credential", ACADEMY,
            recipient=LEARNER, skill_name="Solidity Basics", skill_level=3,
            content_hash="ipfs://QmSolidity", proof=ZERO_PROOF,
        ),
    )
    show(
        "mint 'Web3 Security' L4 (soulbound)",
        sim.call(
            "mint_credential", ACADEMY,
            recipient=LEARNER, skill_name="Web3 Security", skill_level=4,
            soulbound=True, expiry=10_000, proof=ZERO_PROOF,
        ),
    )
    show(
        "mint with skill level 6",
        sim.call(
            "mint_credential", ACADEMY,
            recipient=LEARNER, skill_name="Overreach", skill_level=6,
            proof=ZERO_PROOF,
        ),
    )

    print("\n--- Transfers ---")
    sim.advance_blocks()
    show("learner transfers token 1", sim.call("transfer", LEARNER, token_id=1, sender=LEARNER, recipient=EMPLOYER))
    show("learner transfers soulbound token 2", sim.call("transfer", LEARNER, token_id=2, sender=LEARNER, recipient=EMPLOYER))

    print("\n--- Metadata ---")
    show("academy updates token 2 content hash", sim.call("update_metadata", ACADEMY, token_id=2, new_content_hash="ipfs://QmV2", new_proof=ZERO_PROOF))
    show("owner freezes metadata", sim.call("freeze_metadata", OWNER))
    show("academy updates token 2 again", sim.call("update_metadata", ACADEMY, token_id=2, new_content_hash="ipfs://QmV3", new_proof=ZERO_PROOF))

    print("\n--- Burn ---")
    show("employer burns token 1", sim.call("burn", EMPLOYER, token_id=1))
    print(f"  owner of token 1 now: {sim.registry.get_owner(1)}")
    print(f"  next token id:        {sim.registry.get_next_token_id()}")

    print("\n--- Journal ---")
    output_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "output")
    os.makedirs(output_dir, exist_ok=True)
    journal_path = sim.save_journal(os.path.join(output_dir, "academy_journal.json"))
    with open(os.path.join(output_dir, "operator_pub.pem"), "wb") as f:
        f.write(public_key_to_pem(operator_pub))
    print(f"  journal: {journal_path} ({len(sim.journal)} entries)")

    result = verify_journal(sim.journal.entries, operator_pub)
    print(f"  verify (signed): {'INTACT' if result['journal_valid'] else 'COMPROMISED'}")

    entries = sim.journal.entries
    entries[3] = entries[3].model_copy(update={"caller": "ST1MALLORY"})
    result = verify_journal(entries, operator_pub)
    print(f"  verify after tampering entry 3: "
          f"{'INTACT' if result['journal_valid'] else 'COMPROMISED'}")
    for item in result["invalid_entries"]:
        print(f"    • seq #{item['sequence_number']}: {item['errors'][0][:60]}")


if __name__ == "__main__":
    main()
