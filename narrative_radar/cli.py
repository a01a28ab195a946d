"""Command-line entrypoint: serve the API or run one pipeline stage."""

from __future__ import annotations

import argparse
import asyncio
import logging

import uvicorn

from narrative_radar.api.dependencies import get_pipeline_orchestrator
from narrative_radar.core.config import get_settings
from narrative_radar.core.exceptions import ConfigurationError, RadarError
from narrative_radar.core.logging import configure_logging
from narrative_radar.services.scoring_svc import explain_score

logger = logging.getLogger(__name__)


def _add_day_range(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Look-back window in days (defaults to DEFAULT_DAY_RANGE; analyze defaults to the snapshot window)",
    )


async def _run(command: str, day_range: int | None) -> int:
    orchestrator = get_pipeline_orchestrator()

    if command == "collect":
        signal_set = await orchestrator.run_collection(day_range)
        print(f"Collected {len(signal_set.signals)} signals: {signal_set.stats.by_source}")
        return 0

    if command == "analyze":
        result = await orchestrator.run_analysis(day_range=day_range)
        narratives = result.narratives
    else:
        run = await orchestrator.run_full(day_range)
        print(f"Collected {len(run.signal_set.signals)} signals")
        narratives = run.analysis.narratives

    print(f"Detected {len(narratives)} narratives")
    for narrative in narratives:
        print(f"\n#{narrative.rank} {narrative.name} ({len(narrative.build_ideas)} build ideas)")
        print(explain_score(narrative))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Narrative Radar pipeline runner")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API with the in-process scheduler")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=3000)
    serve_parser.add_argument("--reload", action="store_true")

    _add_day_range(subparsers.add_parser("collect", help="Collect and persist a signal snapshot"))
    _add_day_range(subparsers.add_parser("analyze", help="Analyze the latest signal snapshot"))
    _add_day_range(subparsers.add_parser("full-run", help="Collect, then analyze the collected signals"))

    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ConfigurationError as e:
        parser.exit(2, f"{e}\n")
    configure_logging(settings.LOG_LEVEL)

    if args.command == "serve":
        uvicorn.run(
            "narrative_radar.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=args.reload,
        )
        return 0

    if args.days is not None and args.days < 1:
        parser.error("--days must be a positive integer")
    day_range = args.days
    if day_range is None and args.command != "analyze":
        day_range = settings.DEFAULT_DAY_RANGE

    try:
        return asyncio.run(_run(args.command, day_range))
    except RadarError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
