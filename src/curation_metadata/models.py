"""Run records and the aggregated document: the contract between sources and output."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

SOURCE_COMBINED_API = "combined-API"
SOURCE_MANUAL_CSV = "manual_csv"

RUN_FIELDS = [
    "run_accession",
    "sample_accession",
    "sample_alias",
    "sample_title",
    "experiment_title",
    "library_layout",
    "library_strategy",
    "library_source",
    "library_selection",
    "instrument_platform",
    "instrument_model",
    "read_count",
    "base_count",
    "scientific_name",
    "tax_id",
]

COUNT_FIELDS = ("read_count", "base_count")

_WHITESPACE = re.compile(r"\s+")


def normalize_attribute_name(name: str) -> str:
    """Lowercase an attribute name and replace whitespace runs with '_'."""
    return _WHITESPACE.sub("_", name.strip().lower())


def parse_count(value) -> Optional[int]:
    """Coerce a read/base count to int; unknown or non-numeric is None, not 0."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


@dataclass
class RunRecord:
    run_accession: str
    sample_accession: str = ""
    sample_alias: str = ""
    sample_title: str = ""
    experiment_title: str = ""
    library_layout: str = ""
    library_strategy: str = ""
    library_source: str = ""
    library_selection: str = ""
    instrument_platform: str = ""
    instrument_model: str = ""
    read_count: Optional[int] = None
    base_count: Optional[int] = None
    scientific_name: str = ""
    tax_id: str = ""
    sample_attributes: Optional[Dict[str, str]] = None

    @classmethod
    def from_api_row(cls, row: dict) -> "RunRecord":
        """Build a record from a row whose keys are already canonical field names."""
        values = {}
        for name in RUN_FIELDS:
            raw = row.get(name)
            if name in COUNT_FIELDS:
                values[name] = parse_count(raw)
            else:
                values[name] = "" if raw is None else str(raw)
        return cls(**values)

    def attach_attributes(self, attributes: Dict[str, str]) -> None:
        if self.sample_attributes is not None:
            raise ValueError(
                f"sample_attributes already attached to run {self.run_accession}"
            )
        self.sample_attributes = dict(attributes)

    def to_dict(self) -> dict:
        """Ordered dict of run fields; sample_attributes only when attached."""
        d = {name: getattr(self, name) for name in RUN_FIELDS}
        if self.sample_attributes is not None:
            d["sample_attributes"] = dict(self.sample_attributes)
        return d


@dataclass
class AggregatedResult:
    project: str
    source: str
    runs: List[RunRecord] = field(default_factory=list)
    fetch_date: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def run_count(self) -> int:
        return len(self.runs)

    def to_dict(self) -> dict:
        return {
            "project": self.project,
            "fetchDate": self.fetch_date,
            "source": self.source,
            "runCount": self.run_count,
            "runs": [run.to_dict() for run in self.runs],
        }
