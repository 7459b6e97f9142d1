import argparse
import asyncio
import json
import logging
import os
from pathlib import Path

from passwatch.astrodynamics.catalog import ElementCatalog
from passwatch.astrodynamics.tle import parse_tle_catalog
from passwatch.base.config import AstrodynamicsConfig, TrackingConfig
from passwatch.base.models import ObserverLocation
from passwatch.common.utils import CustomJSONEncoder, from_unix, unix_now, utc_to_local
from passwatch.logging.log_setup import setup_logging
from passwatch.prediction.api import PredictionService
from passwatch.prediction.filtering import PassFilter
from passwatch.prediction.store import PassPredictionStore
from passwatch.tracking.api import TrackingManager
from passwatch.upstream.sources import (
    CelestrakElementSource,
    LocalPassSource,
    N2YOBurstSource,
    N2YOElementSource,
    N2YOPassSource,
)


def _format_time(timestamp: float, tz: str) -> str:
    return utc_to_local(from_unix(timestamp), tz).strftime("%Y-%m-%d %H:%M:%S %Z")


async def handle_passes(args):
    observer = ObserverLocation(args.lat, args.lng, args.alt)
    catalog = ElementCatalog()
    if args.source == "local":
        text = Path(args.tle_file).read_text()
        catalog.update_many(parse_tle_catalog(text).values())
        source = LocalPassSource(catalog)
        satellites = args.norad or [elements.norad_id for elements in catalog.all()]
    else:
        source = N2YOPassSource()
        satellites = args.norad

    store = PassPredictionStore(path=args.store) if args.store else None
    service = PredictionService(source, store=store, catalog=catalog, horizon_days=args.days)
    service.load()
    results = await service.update_all(satellites, observer, args.min_elevation, args.api_key, force=args.force)

    for norad_id, lookup in results.items():
        if lookup.warning:
            print(f"[{norad_id}] warning: {lookup.warning}")

    now = unix_now()
    pass_filter = PassFilter()
    names = {elements.norad_id: elements.name for elements in catalog.all()}
    annotated = pass_filter.sorted_passes(service.cache.predictions(observer), now, names)
    if not annotated:
        print("No passes found")
    for item in annotated:
        p = item.prediction
        print(
            f"{item.name:<24} {item.status.value:<10} {_format_time(p.start_time, args.tz)}  "
            f"in {pass_filter.format_time_until(p, now):<8} "
            f"dur {pass_filter.format_duration(p.duration):<8} "
            f"max el {p.max_elevation:5.1f}  az {p.start_azimuth:5.1f} -> {p.end_azimuth:5.1f}"
        )


async def handle_elements(args):
    catalog = ElementCatalog()
    output = Path(args.output) if args.output else None
    if output is not None and output.exists():
        catalog.update_many(parse_tle_catalog(output.read_text()).values())

    if args.source == "celestrak":
        updated = await CelestrakElementSource(catalog).update(args.norad)
    else:
        updated = await N2YOElementSource(catalog).update(args.norad, args.api_key)

    records = []
    for elements in catalog.all():
        if elements.name:
            records.append(elements.name)
        records.extend([elements.line1, elements.line2])
    text = "\n".join(records) + "\n" if records else ""
    if output is None:
        print(text, end="")
    else:
        output.write_text(text)
        print(f"Updated {updated} of {len(args.norad)} satellites, {len(catalog.all())} records in {output}")


async def handle_track(args):
    manager = TrackingManager(N2YOBurstSource())
    queue = manager.subscribe(args.norad)
    started = await manager.start(args.norad, args.lat, args.lng, args.alt, args.api_key)
    if not started:
        print(json.dumps(manager.poll(args.norad), indent=4, cls=CustomJSONEncoder))
        return

    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.duration
    try:
        while loop.time() < deadline:
            remaining = deadline - loop.time()
            try:
                message = await asyncio.wait_for(queue.get(), timeout=remaining)
            except asyncio.TimeoutError:
                break
            print(json.dumps(message, cls=CustomJSONEncoder))
    finally:
        await manager.stop_all()


def main():
    parser = argparse.ArgumentParser(
        description="Predict and track satellite passes",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--log-level", default="WARNING", help="Console log level")
    parser.add_argument("--log-file", action="store_true", help="Also write a rotating log file")
    subparsers = parser.add_subparsers(dest="command", title="Commands", metavar="<command>")

    def add_observer(subparser):
        subparser.add_argument("--lat", type=float, required=True, help="Observer latitude (deg)")
        subparser.add_argument("--lng", type=float, required=True, help="Observer longitude (deg)")
        subparser.add_argument("--alt", type=float, default=0.0, help="Observer altitude (m)")
        subparser.add_argument(
            "--api-key", default=os.environ.get("N2YO_API_KEY"), help="N2YO API key (default: $N2YO_API_KEY)"
        )

    # Sub-command 'passes'
    parser_passes = subparsers.add_parser("passes", help="List upcoming passes")
    add_observer(parser_passes)
    parser_passes.add_argument("--norad", type=int, nargs="*", default=[], help="NORAD ids (default: all in TLE file)")
    parser_passes.add_argument("--source", choices=["local", "n2yo"], default="local", help="Pass source")
    parser_passes.add_argument("--tle-file", help="Two-line element file, required for the local source")
    parser_passes.add_argument("--days", type=int, default=AstrodynamicsConfig.horizon_days, help="Search horizon")
    parser_passes.add_argument(
        "--min-elevation", type=float, default=AstrodynamicsConfig.min_elevation, help="Minimum culmination elevation (deg)"
    )
    parser_passes.add_argument("--store", help="JSON file for persisted predictions")
    parser_passes.add_argument("--force", action="store_true", help="Ignore fresh cache entries")
    parser_passes.add_argument("--tz", default="UTC", help="Time zone for displayed times")

    # Sub-command 'elements'
    parser_elements = subparsers.add_parser("elements", help="Refresh two-line elements")
    parser_elements.add_argument("norad", type=int, nargs="+", help="NORAD ids")
    parser_elements.add_argument("--source", choices=["celestrak", "n2yo"], default="celestrak", help="Element source")
    parser_elements.add_argument("--output", help="TLE file to merge into and rewrite (default: print)")
    parser_elements.add_argument(
        "--api-key", default=os.environ.get("N2YO_API_KEY"), help="N2YO API key (default: $N2YO_API_KEY)"
    )

    # Sub-command 'track'
    parser_track = subparsers.add_parser("track", help="Stream real-time positions during a pass")
    parser_track.add_argument("norad", type=int, help="NORAD id")
    add_observer(parser_track)
    parser_track.add_argument(
        "--duration", type=float, default=TrackingConfig.burst_seconds, help="Seconds to track before stopping"
    )

    args = parser.parse_args()
    logging.getLogger("passwatch").setLevel(args.log_level.upper())
    if args.log_file:
        setup_logging(level=args.log_level.upper())

    if args.command == "passes":
        if args.source == "local" and not args.tle_file:
            parser_passes.error("--tle-file is required for the local source")
        if args.source == "n2yo" and not args.norad:
            parser_passes.error("--norad is required for the n2yo source")
        asyncio.run(handle_passes(args))
    elif args.command == "elements":
        asyncio.run(handle_elements(args))
    elif args.command == "track":
        asyncio.run(handle_track(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
