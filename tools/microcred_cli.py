#!/usr/bin/env python3
"""
MicroCred CLI — run call scripts, view and verify transaction journals.

Usage:
    python -m tools.microcred_cli run <script.json> [--owner P] [--journal-out F]
    python -m tools.microcred_cli view <journal.json> [--compact]
    python -m tools.microcred_cli verify <journal.json> [--public-key key.pem]

Commands:
    run     — Replay a call script against a freshly deployed registry
    view    — Render a journal as readable output
    verify  — Recompute hashes and check journal integrity

Exit codes:
    0  success
    1  run: at least one call returned an error (or bad input file)
    2  verify: journal integrity check failed

Script format: either a list of steps, or an object
    {"owner": "...", "max_supply": 100, "steps": [...]}
where each step is
    {"caller": "...", "block_height": 10, "operation": "...", "arguments": {...}}
"""

import argparse
import json
import os
import sys

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from microcred_core.config import RegistrySettings, get_settings
from microcred_core.crypto import public_key_from_pem
from microcred_core.errors import ErrorCode
from microcred_core.journal import JournalEntry, load_entries, verify_journal
from microcred_core.telemetry import setup_logging
from microcred_harness import Simulator


ICONS = {"ok": "✓", "err": "✗"}


def fmt_hash(h, length: int = 16) -> str:
    """Abbreviate a hash for display."""
    if h is None:
        return "(genesis)"
    return f"{h[:length]}..."


def describe_error(code: int) -> str:
    try:
        return ErrorCode(code).name
    except ValueError:
        return "UNKNOWN"


# ============================================================
# Run command
# ============================================================

def cmd_run(
    script,
    owner: str = None,
    max_supply: int = None,
    journal_out: str = None,
) -> int:
    """Replay a script. Returns the number of failed calls."""
    if isinstance(script, dict):
        steps = script.get("steps", [])
        owner = owner or script.get("owner")
        max_supply = max_supply or script.get("max_supply")
    else:
        steps = script

    if not owner:
        print("  ERROR: no registry owner (use --owner or 'owner' in script)")
        sys.exit(1)

    settings = get_settings()
    if max_supply is not None:
        settings = RegistrySettings(
            max_supply=max_supply,
            initial_block_height=settings.initial_block_height,
        )

    sim = Simulator(owner=owner, settings=settings)
    results = sim.run_script(steps)

    print(f"━━━ Run: {len(results)} call(s), owner {owner} ━━━")
    failures = 0
    for entry in sim.journal.entries:
        _print_entry(entry, compact=True)
        if entry.outcome == "err":
            failures += 1

    print(f"\nNext token id: {sim.registry.get_next_token_id()}")
    print(f"Live tokens:   {sim.registry.state.supply}")
    print(f"Journal head:  {fmt_hash(sim.journal.head_hash, 24)}")

    target = journal_out or settings.journal_path
    if target:
        sim.save_journal(target)
        print(f"Journal written to {target}")
    return failures


# ============================================================
# View command
# ============================================================

def cmd_view(entries: list[JournalEntry], compact: bool = False) -> None:
    """Render the journal in human-readable format."""
    if not entries:
        print("  (empty journal)")
        return

    print(f"━━━ Journal: {len(entries)} entries ━━━")
    for entry in entries:
        _print_entry(entry, compact=compact)


def _print_entry(entry: JournalEntry, compact: bool = False) -> None:
    icon = ICONS[entry.outcome]
    if entry.outcome == "ok":
        outcome = f"ok {json.dumps(entry.value)}"
    else:
        outcome = f"err {entry.error_code} {describe_error(entry.error_code)}"

    print(
        f"[{entry.sequence_number}] {icon} #{entry.block_height} "
        f"{entry.caller} → {entry.operation} | {outcome}"
    )
    if not compact and entry.arguments:
        parts = []
        for k, v in entry.arguments.items():
            if isinstance(v, str) and len(v) > 30:
                parts.append(f"{k}: \"{v[:27]}...\"")
            else:
                parts.append(f"{k}: {json.dumps(v)}")
        print(f"    ─── Args: {{{', '.join(parts)}}} ───")


# ============================================================
# Verify command
# ============================================================

def cmd_verify(entries: list[JournalEntry], public_key=None) -> bool:
    """Verify journal integrity. Returns True if intact."""
    if not entries:
        print("  (empty journal)")
        return True

    print("━━━ Journal Verification ━━━")
    print(f"Entries: {len(entries)}")
    if public_key is not None:
        print("Signatures: checked")

    result = verify_journal(entries, public_key)
    if result["journal_valid"]:
        print(f"\n  Result: ✓ JOURNAL INTACT ({len(entries)} entries verified)")
        return True

    print("\n  Result: ✗ JOURNAL COMPROMISED")
    for item in result["invalid_entries"]:
        for err in item["errors"]:
            print(f"    • seq #{item['sequence_number']}: {err}")
    for link in result["broken_links"]:
        print(
            f"    • seq #{link['sequence_number']}: chain link broken "
            f"(expected prev: {fmt_hash(link['expected_previous_hash'])}, "
            f"actual: {fmt_hash(link['actual_previous_hash'])})"
        )
    for gap in result["sequence_gaps"]:
        print(
            f"    • sequence gap: expected {gap['expected_sequence']}, "
            f"got {gap['actual_sequence']}"
        )
    for v in result["height_violations"]:
        print(
            f"    • seq #{v['sequence_number']}: block height "
            f"{v['block_height']} < {v['previous_block_height']}"
        )
    return False


# ============================================================
# Main
# ============================================================

def main():
    parser = argparse.ArgumentParser(
        description="MicroCred CLI — registry script runner and journal tools",
        prog="python -m tools.microcred_cli",
    )
    parser.add_argument(
        "command",
        choices=["run", "view", "verify"],
        help="run (replay a script), view (render journal), "
             "verify (check journal integrity)",
    )
    parser.add_argument("path", help="Script file (run) or journal file")
    parser.add_argument("--owner", help="Registry owner for run")
    parser.add_argument("--max-supply", type=int, help="Max supply for run")
    parser.add_argument("--journal-out", help="Write the run's journal here")
    parser.add_argument(
        "--public-key",
        help="PEM operator public key; verify also checks signatures",
    )
    parser.add_argument(
        "--compact", "-c",
        action="store_true",
        help="Compact view (omit arguments)",
    )

    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    if not os.path.exists(args.path):
        print(f"  ERROR: File not found: {args.path}")
        sys.exit(1)

    with open(args.path, "r", encoding="utf-8") as f:
        text = f.read()

    if args.command == "run":
        failures = cmd_run(
            json.loads(text),
            owner=args.owner,
            max_supply=args.max_supply,
            journal_out=args.journal_out,
        )
        if failures:
            sys.exit(1)
        return

    entries = load_entries(text)
    if args.command == "view":
        cmd_view(entries, compact=args.compact)
    elif args.command == "verify":
        public_key = None
        if args.public_key:
            with open(args.public_key, "rb") as f:
                public_key = public_key_from_pem(f.read())
        if not cmd_verify(entries, public_key):
            sys.exit(2)


if __name__ == "__main__":
    main()
