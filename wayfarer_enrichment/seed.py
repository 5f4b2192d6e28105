"""
Command-line seeding of catalog reference data.

    wayfarer-seed destinations seeds/destinations.csv
    wayfarer-seed snowbird seeds/snowbird_destinations.csv
    wayfarer-seed collections seeds/collections.json
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from wayfarer_enrichment import seeding
from wayfarer_enrichment.config import configure_logging
from wayfarer_enrichment.errors import EnrichmentError
from wayfarer_enrichment.resources import database_resource_from_env

logger = logging.getLogger("wayfarer_enrichment.seed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wayfarer-seed", description="Load catalog reference data into the database.")
    parser.add_argument("kind", choices=["destinations", "snowbird", "collections"])
    parser.add_argument("path", help="CSV file (destinations, snowbird) or JSON file (collections)")
    parser.add_argument("--log-level", default=None)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    database = database_resource_from_env()
    try:
        database.open_pool()
        store = database.get_store()
        store.ensure_schema()
        if args.kind == "destinations":
            result = seeding.seed_destinations(store, seeding.read_csv(args.path))
        elif args.kind == "snowbird":
            result = {"snowbird_destinations": seeding.seed_snowbird(store, seeding.read_csv(args.path))}
        else:
            result = seeding.seed_collections(store, seeding.read_collections(args.path))
    except (OSError, ValueError, EnrichmentError) as e:
        logger.error(f"Seeding {args.kind} from {args.path} failed: {e}")
        return 1
    finally:
        database.close()

    print(json.dumps(result))
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
