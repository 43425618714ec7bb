#!/usr/bin/env python3
"""Dump the synchronized fleet view and its dashboard aggregates.

This script signs in, waits for the first snapshot of every topic,
prints the dashboard, per-terminal sales and paper status, and can
optionally import a batch file first.

Usage
-----
Set environment variables and run::

    export VEND_PROJECT_ID="my-project"
    export VEND_API_KEY="AIza..."
    export VEND_APP_ID="my-app"
    python scripts/dump_snapshot.py

Options::

    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --import FILE        Import FILE as a token batch before dumping
    --price N            Sale price for --import (one of the price tiers)
    --timeout S          Seconds to wait for the first snapshots (default 15)
    -v, --verbose        DEBUG logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from vendconsole import ConsoleConfig, Topic, VendConsole, VendError  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dump the vending console's synchronized view")
    parser.add_argument("--json", dest="json_mode", action="store_true", help="Output JSON")
    parser.add_argument("--output", help="Write output to this file")
    parser.add_argument("--import", dest="import_file", help="Batch file to import first")
    parser.add_argument("--price", type=int, help="Sale price for --import")
    parser.add_argument("--timeout", type=float, default=15.0, help="Seconds to wait for snapshots")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG logging")
    return parser.parse_args()


# ── main ─────────────────────────────────────────────────────


async def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.import_file and args.price is None:
        print("--import requires --price", file=sys.stderr)
        return 2

    config = ConsoleConfig.from_env()
    result: dict[str, Any] = {"timestamp": datetime.now(UTC).isoformat(), "app_id": config.app_id}
    out: list[str] = [_section("vendconsole dump_snapshot")]
    out.append(f"  time      : {result['timestamp']}")
    out.append(f"  app_id    : {config.app_id}")

    async with VendConsole(config) as console:
        try:
            session = await console.login()
        except VendError as exc:
            print(f"Sign-in failed: {exc}", file=sys.stderr)
            return 1
        out.append(f"  actor     : {session.actor_id}")

        if args.import_file:
            payload = Path(args.import_file).read_bytes()
            try:
                imported = await console.import_tokens(payload, args.price)
            except VendError as exc:
                print(f"Import failed: {exc}", file=sys.stderr)
                return 1
            out.append(f"  imported  : {imported.staged} tokens (skipped {imported.skipped})")
            result["import"] = {"staged": imported.staged, "skipped": imported.skipped, "codes": imported.codes}

        if not await console.wait_until_synced(args.timeout):
            out.append("  WARNING   : not every topic delivered a snapshot in time")
        statuses: dict[str, dict[str, str | None]] = {}
        for topic in Topic:
            status = console.sync.status(topic)
            error = console.sync.last_error(topic)
            statuses[str(topic)] = {"status": str(status), "error": str(error) if error else None}
        result["topics"] = statuses

        summary = console.dashboard()
        result["dashboard"] = summary.model_dump()
        out.append(_section("DASHBOARD"))
        for key, value in summary.model_dump().items():
            out.append(f"  {key:<26}: {value}")

        out.append(_section("TOPICS"))
        for topic_name, info in statuses.items():
            suffix = f" ({info['error']})" if info["error"] else ""
            out.append(f"  {topic_name:<14}: {info['status']}{suffix}")

        by_terminal = console.sales_by_terminal()
        result["sales_by_terminal"] = {name: row.model_dump() for name, row in by_terminal.items()}
        out.append(_section("SALES BY TERMINAL"))
        for name, row in by_terminal.items():
            out.append(f"  {name:<24} count={row.count} revenue={row.total_revenue} fee={row.total_franchisee_fee}")

        out.append(_section("TERMINALS"))
        result["terminals"] = []
        for terminal in console.snapshot().terminals:
            paper = console.paper_status(terminal)
            out.append(f"  {terminal.name:<24} {terminal.status:<8} paper={terminal.paper_level}% ({paper})")
            result["terminals"].append({**terminal.model_dump(mode="json"), "paper_status": str(paper)})

    if args.json_mode:
        text = json.dumps(result, indent=2, default=str, ensure_ascii=False)
    else:
        text = "\n".join(out)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
