#!/usr/bin/env python3
"""
ESG score polling job.

Polls the ESG score API for a fixed request budget, stores every returned
company score, then prints the highest-scoring companies.
"""

import argparse
import logging
import sys
from functools import partial

from esg_tracker.config import EsgConfig
from esg_tracker.data_pipeline.extract.extract_esg_scores import EsgScoreExtractor
from esg_tracker.data_pipeline.report.top_esg_companies import TopEsgCompaniesReport
from esg_tracker.db.postgres_database_manager import (
    DatabaseManagerError,
    PostgresDatabaseManager,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fetch company ESG scores, store them in PostgreSQL and report the top scorers"
    )
    parser.add_argument("--url", default=None, help="ESG score API URL (default: $ESG_API_URL)")
    parser.add_argument(
        "--max-requests",
        type=int,
        default=None,
        help="Request budget for the run, spread over one minute (default: $ESG_MAX_REQUESTS_PER_MINUTE or 100)",
    )
    parser.add_argument("--top", type=int, default=None, help="Number of companies to report (default: 20)")
    parser.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds")
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Coerce missing names/scores to ''/0.0 instead of skipping the entry",
    )
    parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create the ESG schema and companies table before polling",
    )
    parser.add_argument("--export-csv", default=None, help="Also write the ranking to this CSV file")
    return parser


def load_config(args: argparse.Namespace) -> EsgConfig:
    return EsgConfig.from_env().with_overrides(
        api_url=args.url,
        max_requests_per_minute=args.max_requests,
        top_n=args.top,
        request_timeout=args.timeout,
        strict_parsing=False if args.lenient else None,
    )


def main(argv=None, db_factory=None, rate_limiter=None) -> int:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        logger.error(f"❌ Invalid configuration: {e}")
        return 1

    db_factory = db_factory or partial(PostgresDatabaseManager, config.db_config())

    if args.init_schema:
        try:
            with db_factory() as db:
                db.initialize_schema()
        except (DatabaseManagerError, ValueError, FileNotFoundError) as e:
            logger.error(f"❌ Schema initialization failed: {e}")
            return 1

    extractor = EsgScoreExtractor(config, db_factory=db_factory, rate_limiter=rate_limiter)
    extractor.run_etl()

    report = TopEsgCompaniesReport(config, db_factory=db_factory)
    try:
        report.run(config.top_n)
        if args.export_csv:
            report.export_csv(args.export_csv, config.top_n)
    except (DatabaseManagerError, ValueError, OSError) as e:
        logger.error(f"❌ Could not produce the ESG report: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
