#!/usr/bin/env python3
"""Live probe for an MQTT snapshot bridge.

Connects to the bridge configured through ``FLEET_MQTT_*`` variables,
runs the full tracking pipeline and prints dashboard counters every time
they change.  Use this to check that a bridge publishes the expected
driver/trip snapshots.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleetwatch import FleetConfig, FleetTracker  # noqa: E402
from fleetwatch.exceptions import FleetError  # noqa: E402
from fleetwatch.projector import MapScene  # noqa: E402
from fleetwatch.store.mqtt import MqttDocumentStore  # noqa: E402

_LOG = logging.getLogger("fleet_probe")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Print live fleet counters from an MQTT snapshot bridge.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--routes",
        action="store_true",
        help="Also print resolved routes as they arrive.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_scene(tracker: FleetTracker, scene: MapScene, *, show_routes: bool) -> None:
    stats = tracker.stats
    buckets = " ".join(f"{status.value}={count}" for status, count in stats.status_counts.items())
    print(
        f"[probe] online={stats.online_driver_count} active={stats.active_trip_count} "
        f"pending={stats.pending_count} | {buckets}"
    )
    if scene.notice:
        print(f"[probe]   notice: {scene.notice}")
    if show_routes:
        for route in scene.routes:
            kind = "straight" if route.fallback else "routed"
            print(f"[probe]   route {route.trip_id}: {len(route.coordinates)} points ({kind})")


async def _run(config: FleetConfig, duration: int, show_routes: bool) -> None:
    loop = asyncio.get_running_loop()
    store = MqttDocumentStore(config, loop=loop)
    store.start()
    stop = asyncio.Event()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, stop.set)

    last: tuple[int, int, int] | None = None
    try:
        async with FleetTracker(config, store=store) as tracker:

            def on_scene(scene: MapScene) -> None:
                nonlocal last
                stats = tracker.stats
                current = (stats.online_driver_count, stats.active_trip_count, len(scene.routes))
                if current != last:
                    last = current
                    _print_scene(tracker, scene, show_routes=show_routes)

            tracker.add_listener(on_scene)
            if duration > 0:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(stop.wait(), duration)
            else:
                await stop.wait()
    finally:
        store.stop()


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = FleetConfig.from_env()
        asyncio.run(_run(config, args.duration, args.routes))
    except FleetError as exc:
        print(f"[probe] {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
