"""
Report the companies with the highest stored ESG scores.
"""

import logging
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

from esg_tracker.config import EsgConfig
from esg_tracker.db.postgres_database_manager import PostgresDatabaseManager
from esg_tracker.models import CompanyScore

logger = logging.getLogger(__name__)

TOP_COMPANIES_QUERY = """
    SELECT name, esg_score
    FROM companies
    ORDER BY esg_score DESC
    LIMIT %s
"""


def format_score(score: float) -> str:
    # Six significant digits, no trailing zeros: 88.2 -> "88.2", 90.0 -> "90"
    return f"{score:g}"


class TopEsgCompaniesReport:
    """Read back the highest ESG scores. Each call uses its own connection."""

    def __init__(self, config: Optional[EsgConfig] = None,
                 db_factory: Optional[Callable[[], PostgresDatabaseManager]] = None):
        self.config = config or EsgConfig()
        self.db_factory = db_factory or partial(PostgresDatabaseManager, self.config.db_config())

    def fetch_top_companies(self, limit: Optional[int] = None) -> List[CompanyScore]:
        """
        Return up to `limit` companies ordered by ESG score, highest first.

        Ties keep whatever order the database returns. Database errors propagate
        as DatabaseManagerError.
        """
        if limit is None:
            limit = self.config.top_n
        with self.db_factory() as db:
            rows = db.fetch_query(TOP_COMPANIES_QUERY, (limit,))
        return [CompanyScore(name=row[0], esg_score=float(row[1])) for row in rows]

    def print_report(self, companies: List[CompanyScore], limit: Optional[int] = None) -> None:
        if limit is None:
            limit = self.config.top_n
        print(f"Top {limit} companies with the highest ESG scores:")
        for company in companies:
            print(f"Company: {company.name} | ESG Score: {format_score(company.esg_score)}")

    def run(self, limit: Optional[int] = None) -> List[CompanyScore]:
        """Fetch and print the ranking in one step."""
        if limit is None:
            limit = self.config.top_n
        companies = self.fetch_top_companies(limit)
        if len(companies) < limit:
            logger.info(f"Only {len(companies)} companies stored; reporting all of them")
        self.print_report(companies, limit)
        return companies

    def export_csv(self, output_path, limit: Optional[int] = None) -> Path:
        """Write the ranking to a CSV file with `rank`, `name` and `esg_score` columns."""
        if limit is None:
            limit = self.config.top_n
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with self.db_factory() as db:
            df = db.fetch_dataframe(TOP_COMPANIES_QUERY, (limit,))

        df.insert(0, "rank", range(1, len(df) + 1))
        df.to_csv(output_path, index=False)
        logger.info(f"✅ Wrote {len(df)} companies to {output_path}")
        return output_path

