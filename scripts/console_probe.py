#!/usr/bin/env python3
"""Passive console probe for chain/subsystem broker traffic.

Connects a headless console to the broker, lets it discover chains and
subsystems, and prints a model summary every few seconds. Nothing is
published unless ``--save`` is given.

Use this to check what the broker currently retains for the chains.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from chainview import ChainConsole, ConsoleConfig  # noqa: E402
from chainview.exceptions import ChainViewError  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Passive probe for chain/subsystem broker topics.",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Broker host (defaults to CHAINVIEW_BROKER_HOST or localhost).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Broker port (defaults to CHAINVIEW_BROKER_PORT or 9001).",
    )
    parser.add_argument(
        "--protocol",
        choices=("tcp", "ssl", "ws", "wss"),
        default=None,
        help="Broker transport.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--report-seconds",
        type=int,
        default=5,
        help="Print a model summary each N seconds.",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Republish the discovered model once before exiting.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_summary(console: ChainConsole) -> None:
    store = console.store
    print(f"[probe] phase={console.router.phase} subscriptions={len(console.router.subscriptions)}")
    for chain in store.chains():
        marker = "*" if store.is_selected(chain.id) else " "
        print(
            f"[probe] {marker} chain {chain.id} label={chain.label!r} state={chain.state} "
            f"running={chain.is_running} range_m={chain.range_m:g}"
        )
        for subsystem in store.subsystems_of(chain.id):
            available = store.available(subsystem.id)
            label = available.label if available else ""
            state = available.state if available else "?"
            rates = "".join(str(bar) for bar in subsystem.rate_mask)
            print(f"[probe]     subsystem {subsystem.id} label={label!r} state={state} rates={rates}")
    for key in console.layers:
        engine = console.layers.get(key)
        count = engine.count if engine is not None else 0
        print(f"[probe]     layer {key.layer_id} count={count}")


async def _run(config: ConsoleConfig, args: argparse.Namespace) -> None:
    started_at = time.time()
    async with ChainConsole(config) as console:
        try:
            while True:
                await asyncio.sleep(max(1, args.report_seconds))
                _print_summary(console)
                if args.duration > 0 and (time.time() - started_at) >= args.duration:
                    print(f"[probe] Reached --duration={args.duration}s, stopping.")
                    break
        finally:
            if args.save:
                print("[probe] Publishing settings")
                console.gateway.save_settings()


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, object] = {}
    if args.host is not None:
        overrides["broker_host"] = args.host
    if args.port is not None:
        overrides["broker_port"] = args.port
    if args.protocol is not None:
        overrides["broker_protocol"] = args.protocol

    try:
        config = ConsoleConfig.from_env(**overrides)
    except ChainViewError as exc:
        print(f"[probe] Invalid configuration: {exc}", file=sys.stderr)
        return 2

    print(f"[probe] Connecting to {config.broker_protocol}://{config.broker_host}:{config.broker_port}")
    try:
        asyncio.run(_run(config, args))
    except KeyboardInterrupt:
        pass
    except ChainViewError as exc:  # pragma: no cover - network/system interaction
        print(f"[probe] Probe failed: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
