"""
Extract company ESG scores from the ESG score API and load them into the database.
"""

import json
import logging
import math
from functools import partial
from typing import Callable, List, Optional

import requests

from esg_tracker.config import EsgConfig
from esg_tracker.db.postgres_database_manager import (
    DatabaseManagerError,
    PostgresDatabaseManager,
)
from esg_tracker.models import (
    CompanyScore,
    EtlSummary,
    FetchResult,
    IterationResult,
    ParseResult,
    WriteResult,
)
from esg_tracker.utils.rate_limiter import FixedIntervalRateLimiter

logger = logging.getLogger(__name__)

INSERT_COMPANY_QUERY = "INSERT INTO companies (name, esg_score) VALUES (%s, %s)"


def _strict_score(value) -> Optional[float]:
    # bool is an int subclass; true/false is never a score
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        score = float(value)
    except (ValueError, OverflowError):
        # OverflowError: JSON integers too large for a float
        return None
    return score if math.isfinite(score) else None


def _lenient_score(value) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return score if math.isfinite(score) else 0.0


def _to_company_score(element, strict: bool) -> Optional[CompanyScore]:
    """Project one element of the `companies` array, or None if it must be skipped."""
    if not isinstance(element, dict):
        return None

    if strict:
        name = element.get("name")
        score = _strict_score(element.get("esg_score"))
        if not isinstance(name, str) or score is None:
            return None
        return CompanyScore(name=name, esg_score=score)

    name = element.get("name")
    return CompanyScore(
        name="" if name is None else str(name),
        esg_score=_lenient_score(element.get("esg_score")),
    )


def parse_esg_payload(body: str, strict: bool = True) -> ParseResult:
    """
    Decode an API response of the form {"companies": [{"name": ..., "esg_score": ...}]}.

    Source order is preserved. Decode failures are logged and returned as an
    empty result with `error` set; this function never raises.

    Args:
        body: Raw response text
        strict: Skip elements with a missing or invalid name/score. When False,
            missing values are coerced to "" and 0.0 instead.
    """
    try:
        root = json.loads(body)
    except (TypeError, ValueError, RecursionError) as e:
        logger.error(f"Failed to parse the JSON response: {e}")
        return ParseResult(error=f"invalid JSON: {e}")

    if not isinstance(root, dict) or "companies" not in root:
        logger.error("JSON response has no 'companies' field")
        return ParseResult(error="missing 'companies' field")

    companies = root["companies"]
    if not isinstance(companies, list):
        logger.error(f"'companies' is a {type(companies).__name__}, expected a list")
        return ParseResult(error="'companies' is not a list")

    records = []
    skipped = 0
    for position, element in enumerate(companies):
        record = _to_company_score(element, strict)
        if record is None:
            skipped += 1
            logger.warning(
                f"Skipping malformed company entry at index {position} ({type(element).__name__})"
            )
            continue
        records.append(record)

    return ParseResult(records=records, skipped=skipped)


class EsgScoreExtractor:
    """Extract and load company ESG scores from the ESG score API."""

    def __init__(self, config: EsgConfig,
                 db_factory: Optional[Callable[[], PostgresDatabaseManager]] = None,
                 rate_limiter: Optional[FixedIntervalRateLimiter] = None):
        """
        Args:
            config: Run settings
            db_factory: Returns a fresh, unconnected database manager per call
            rate_limiter: Pacer for the request loop
        """
        self.config = config
        self.db_factory = db_factory or partial(PostgresDatabaseManager, config.db_config())
        self.rate_limiter = rate_limiter or FixedIntervalRateLimiter(
            config.max_requests_per_minute
        )

    def fetch_esg_payload(self, url: str) -> FetchResult:
        """Issue one GET request and return the response body as text."""
        if not url:
            logger.error("No ESG API URL configured; skipping request")
            return FetchResult(error="no API URL configured")

        try:
            response = requests.get(url, timeout=self.config.request_timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.error(f"ESG API returned an error status: {e}")
            status_code = e.response.status_code if e.response is not None else None
            return FetchResult(status_code=status_code, error=str(e))
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching ESG data from {url}: {e}")
            return FetchResult(error=str(e))

        return FetchResult(body=response.text, status_code=response.status_code)

    def transform_esg_payload(self, body: str) -> ParseResult:
        return parse_esg_payload(body, strict=self.config.strict_parsing)

    def load_esg_scores(self, records: List[CompanyScore]) -> WriteResult:
        """
        Insert each record with its own parameterized INSERT.

        Every insert is committed on its own, so a failing record does not undo
        earlier ones and does not stop later ones. The connection is opened for
        this call only.
        """
        result = WriteResult(attempted=len(records))
        if not records:
            logger.info("No records to load")
            return result

        try:
            with self.db_factory() as db:
                for record in records:
                    try:
                        db.execute_query(INSERT_COMPANY_QUERY, record.as_row())
                        result.inserted += 1
                    except DatabaseManagerError as e:
                        result.failed += 1
                        logger.error(f"Failed to insert {record.name!r}: {e}")
        except (DatabaseManagerError, ValueError) as e:
            result.failed = result.attempted - result.inserted
            result.error = str(e)
            logger.error(f"Database error loading ESG scores: {e}")
            return result

        logger.info(f"Loaded {result.inserted}/{result.attempted} ESG records into companies")
        return result

    def run_iteration(self, index: int, url: str) -> IterationResult:
        """One paced fetch -> parse -> load cycle."""
        self.rate_limiter.start_request()

        fetch = self.fetch_esg_payload(url)
        parse = self.transform_esg_payload(fetch.body)
        write = self.load_esg_scores(parse.records)

        elapsed_ms = self.rate_limiter.elapsed() * 1000
        print(f"API request time: {elapsed_ms:.3f} ms")
        self.rate_limiter.finish_request()

        return IterationResult(index=index, elapsed_ms=elapsed_ms,
                               fetch=fetch, parse=parse, write=write)

    def run_etl(self, url: Optional[str] = None) -> EtlSummary:
        """Run the full request budget. Failures inside an iteration never end the loop."""
        url = self.config.api_url if url is None else url
        budget = self.config.max_requests_per_minute

        logger.info(
            f"🚀 Starting ESG ETL: {budget} requests, "
            f"{self.config.request_interval_ms:.0f} ms interval"
        )

        summary = EtlSummary()
        for i in range(budget):
            summary.iterations.append(self.run_iteration(i, url))

        logger.info("📊 ESG ETL summary:")
        logger.info(f"  Requests made: {len(summary.iterations)}")
        logger.info(f"  Records parsed: {summary.total_records}")
        logger.info(f"  Records inserted: {summary.total_inserted}")
        logger.info(f"  Fetch failures: {summary.fetch_failures}")
        logger.info(f"  Parse failures: {summary.parse_failures}")
        logger.info(f"  Write failures: {summary.write_failures}")
        logger.info(f"  Pacing: {self.rate_limiter.get_performance_summary()}")

        return summary
