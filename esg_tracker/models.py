"""
Records and per-stage results passed between the fetch, parse, load and
report steps.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class CompanyScore:
    """One company's ESG score as delivered by the API or read back from the table."""
    name: str
    esg_score: float

    def as_row(self) -> Tuple[str, float]:
        return (self.name, self.esg_score)


@dataclass
class FetchResult:
    body: str = ""
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ParseResult:
    records: List[CompanyScore] = field(default_factory=list)
    skipped: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WriteResult:
    attempted: int = 0
    inserted: int = 0
    failed: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.failed == 0


@dataclass
class IterationResult:
    index: int
    elapsed_ms: float
    fetch: FetchResult
    parse: ParseResult
    write: WriteResult


@dataclass
class EtlSummary:
    """Aggregate view over every iteration of one polling run."""
    iterations: List[IterationResult] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return sum(len(it.parse.records) for it in self.iterations)

    @property
    def total_inserted(self) -> int:
        return sum(it.write.inserted for it in self.iterations)

    @property
    def fetch_failures(self) -> int:
        return sum(1 for it in self.iterations if not it.fetch.ok)

    @property
    def parse_failures(self) -> int:
        return sum(1 for it in self.iterations if not it.parse.ok)

    @property
    def write_failures(self) -> int:
        return sum(1 for it in self.iterations if not it.write.ok)
