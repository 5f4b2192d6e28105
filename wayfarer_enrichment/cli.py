"""
Command-line entry point for one bounded enrichment run.

    wayfarer-enrich --entity-type itinerary --batch-size 5

Exit status is 0 when the batch completed (including runs stopped by a
deadline or Ctrl-C), 1 when the run could not start or lost the database.
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from wayfarer_enrichment.config import EnrichmentConfig, configure_logging, default_batch_size
from wayfarer_enrichment.errors import StoreUnavailable
from wayfarer_enrichment.generation import CancellationToken
from wayfarer_enrichment.pipeline import EnrichmentPipeline, RunReport
from wayfarer_enrichment.resources import database_resource_from_env, generation_resource_from_env
from wayfarer_enrichment.tasks import TASKS, get_task

logger = logging.getLogger("wayfarer_enrichment.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wayfarer-enrich",
        description="Fill missing or thin travel content with generated text, a small batch at a time.",
    )
    parser.add_argument("--entity-type", required=True, choices=sorted(TASKS), help="Which enrichment to run")
    parser.add_argument("--batch-size", type=int, default=None, help="Maximum entities attempted (default: ENRICHMENT_BATCH_SIZE or 5)")
    parser.add_argument("--completeness-threshold", type=int, default=None, help="Minimum text length counted as complete")
    parser.add_argument("--dry-run", action="store_true", help="Select and build prompts only; no API calls or writes")
    parser.add_argument("--max-workers", type=int, default=1, help="Concurrent generations per batch (1-16)")
    parser.add_argument("--deadline-seconds", type=float, default=None, help="Stop starting new entities after this long")
    parser.add_argument("--request-delay", type=float, default=2.0, help="Minimum seconds between API calls")
    parser.add_argument("--batch-delay", type=float, default=10.0, help="Pause between concurrent batches")
    parser.add_argument("--report-format", choices=["json", "table"], default="json")
    parser.add_argument("--report-path", default=None, help="Also write the JSON report to this file")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    return parser


def _install_signal_handlers(token: CancellationToken) -> None:
    def _handler(signum, frame):
        logger.warning(f"Received {signal.Signals(signum).name}; finishing the current entity and stopping")
        token.cancel("interrupted")

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def write_report(report: RunReport, report_format: str, report_path: Optional[str]) -> None:
    if report_format == "table":
        table = report.to_table()
        print(report.summary())
        if not table.empty:
            print(table.to_string(index=False))
    else:
        print(report.to_json())
    if report_path:
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(report.to_json())
        logger.info(f"Wrote report to {report_path}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = EnrichmentConfig(
            entity_type=args.entity_type,
            batch_size=args.batch_size if args.batch_size is not None else default_batch_size(),
            completeness_threshold=args.completeness_threshold,
            dry_run=args.dry_run,
            max_workers=args.max_workers,
            request_delay=args.request_delay,
            batch_delay=args.batch_delay,
            deadline_seconds=args.deadline_seconds,
        )
        database = database_resource_from_env()
    except ValueError as e:
        # pydantic ValidationError included
        logger.error(f"Invalid configuration: {e}")
        return 1

    task = get_task(config.entity_type)
    token = CancellationToken()
    _install_signal_handlers(token)

    try:
        client = None if config.dry_run else generation_resource_from_env().get_client()
        database.open_pool()
        store = database.get_store(claim_ttl_seconds=config.claim_ttl_seconds)
        store.ping()
        store.ensure_schema()
        report = EnrichmentPipeline(task, store, client, config).run(token)
    except ValueError as e:
        logger.error(str(e))
        return 1
    except StoreUnavailable as e:
        logger.error(f"Database unavailable: {e}")
        return 1
    finally:
        database.close()

    write_report(report, args.report_format, args.report_path)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
