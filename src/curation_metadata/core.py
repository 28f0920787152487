"""Orchestrator: merge ENA runs with BioSample attributes, or fall back to a run table."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

import requests

from curation_metadata.config import Settings
from curation_metadata.exceptions import (
    MalformedInput,
    RunMetadataUnavailable,
    SourceEmpty,
    TransportError,
)
from curation_metadata.fetchers.biosample import AttributeFetchResult, BioSampleFetcher
from curation_metadata.fetchers.ena import ENARunFetcher
from curation_metadata.fetchers.geo import GEOMinimlFetcher
from curation_metadata.models import (
    SOURCE_COMBINED_API,
    SOURCE_MANUAL_CSV,
    AggregatedResult,
    RunRecord,
)
from curation_metadata.rate_limiter import RateLimiter
from curation_metadata.tabular import parse_run_table

logger = logging.getLogger(__name__)

RUN_SELECTOR_URL = "https://www.ncbi.nlm.nih.gov/Traces/study/?acc={project}"


class AggregationState(Enum):
    FETCHING_RUNS = "fetching_runs"
    FETCHING_ATTRIBUTES = "fetching_attributes"
    MERGING = "merging"
    FALLBACK_PARSE = "fallback_parse"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ProviderResult:
    runs: List[RunRecord]
    source: str
    failed_attribute_batches: int = 0


Provider = Callable[[str], Optional[ProviderResult]]


def build_session(settings: Settings) -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": settings.user_agent})
    return session


def unique_sample_accessions(runs: List[RunRecord]) -> List[str]:
    """Distinct, non-empty sample accessions in first-seen order."""
    return list(dict.fromkeys(run.sample_accession for run in runs if run.sample_accession))


def merge_sample_attributes(
    runs: List[RunRecord], attributes: Dict[str, Dict[str, str]]
) -> int:
    """Attach each run's sample attributes in place; returns how many runs matched."""
    matched = 0
    for run in runs:
        sample_attrs = attributes.get(run.sample_accession) if run.sample_accession else None
        if sample_attrs:
            run.attach_attributes(sample_attrs)
            matched += 1
    return matched


def fallback_paths(tmp_dir: Path, project: str) -> List[Path]:
    """Manual run-table locations, project-specific first."""
    return [tmp_dir / f"{project}_SraRunTable.csv", tmp_dir / "SraRunTable.csv"]


class RunMetadataAggregator:
    """Runs the provider chain: combined APIs, then a manual SraRunTable.csv.

    Each provider returns a :class:`ProviderResult` or None to pass to the
    next one. Running out of providers raises :class:`RunMetadataUnavailable`.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        run_fetcher: Optional[ENARunFetcher] = None,
        attribute_fetcher: Optional[BioSampleFetcher] = None,
    ):
        self._settings = settings or Settings()
        self._session = session or build_session(self._settings)

        ncbi_limiter = RateLimiter.for_ncbi(self._settings.ncbi_api_key)
        ebi_limiter = RateLimiter(20.0)
        self._runs = run_fetcher or ENARunFetcher(self._session, ebi_limiter)
        self._attributes = attribute_fetcher or BioSampleFetcher(
            self._session,
            ncbi_limiter,
            api_key=self._settings.ncbi_api_key,
            batch_size=self._settings.batch_size,
            batch_delay=self._settings.batch_delay,
        )
        self._providers: List[Provider] = [self._from_apis, self._from_run_table]
        self.transitions: List[AggregationState] = []

    @property
    def state(self) -> Optional[AggregationState]:
        return self.transitions[-1] if self.transitions else None

    def _enter(self, state: AggregationState) -> None:
        logger.debug("Aggregator state: %s", state.value)
        self.transitions.append(state)

    def aggregate(self, project: str) -> AggregatedResult:
        self.transitions = []
        logger.info("Fetching SRA metadata for %s", project)
        for provider in self._providers:
            outcome = provider(project)
            if outcome is not None:
                self._enter(AggregationState.DONE)
                result = AggregatedResult(project=project, source=outcome.source, runs=outcome.runs)
                _log_summary(result, outcome.failed_attribute_batches)
                return result

        self._enter(AggregationState.FAILED)
        raise RunMetadataUnavailable(self._manual_instructions(project))

    def _from_apis(self, project: str) -> Optional[ProviderResult]:
        self._enter(AggregationState.FETCHING_RUNS)
        try:
            runs = self._runs.fetch_runs(project)
        except (TransportError, SourceEmpty) as exc:
            logger.warning("API fetch failed: %s", exc)
            return None

        self._enter(AggregationState.FETCHING_ATTRIBUTES)
        fetched: AttributeFetchResult = self._attributes.fetch_attributes(
            unique_sample_accessions(runs)
        )

        self._enter(AggregationState.MERGING)
        matched = merge_sample_attributes(runs, fetched.attributes)
        logger.debug("Attached sample attributes to %d of %d runs", matched, len(runs))
        return ProviderResult(
            runs=runs,
            source=SOURCE_COMBINED_API,
            failed_attribute_batches=fetched.failed_batches,
        )

    def _from_run_table(self, project: str) -> Optional[ProviderResult]:
        self._enter(AggregationState.FALLBACK_PARSE)
        logger.info("Checking for manual CSV fallback...")
        for path in fallback_paths(self._settings.tmp_dir, project):
            if not path.is_file():
                continue
            logger.info("Found manual CSV: %s", path)
            try:
                text = path.read_text(encoding="utf-8-sig")
            except (UnicodeDecodeError, OSError) as exc:
                raise MalformedInput(f"Cannot read run table {path}: {exc}") from exc
            runs = parse_run_table(text)
            logger.info("Parsed %d rows from CSV", len(runs))
            if not runs:
                logger.warning("%s has a header but no data rows", path)
            return ProviderResult(runs=runs, source=SOURCE_MANUAL_CSV)
        return None

    def _manual_instructions(self, project: str) -> str:
        target = fallback_paths(self._settings.tmp_dir, project)[0]
        return "\n".join([
            f"No run metadata available for {project}. To use the manual fallback:",
            f"  1. Go to: {RUN_SELECTOR_URL.format(project=project)}",
            '  2. Click the "Metadata" button to download SraRunTable.csv',
            f"  3. Save it as: {target}",
            "  4. Re-run this command",
        ])


def build_miniml_fetcher(
    settings: Settings, session: Optional[requests.Session] = None
) -> GEOMinimlFetcher:
    return GEOMinimlFetcher(
        session or build_session(settings),
        RateLimiter.for_ncbi(settings.ncbi_api_key),
        api_key=settings.ncbi_api_key,
    )


def _log_summary(result: AggregatedResult, failed_batches: int) -> None:
    with_attrs = sum(1 for run in result.runs if run.sample_attributes)
    logger.info("Summary (%s):", result.source)
    logger.info("  Runs: %d", result.run_count)
    logger.info("  Unique samples: %d", len(unique_sample_accessions(result.runs)))
    logger.info("  Runs with custom attributes: %d", with_attrs)
    if failed_batches:
        logger.info("  Failed BioSample batches: %d", failed_batches)
