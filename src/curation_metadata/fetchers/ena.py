"""Fetch per-run sequencing records for a BioProject from the ENA Portal API."""

import logging
from typing import List

from curation_metadata.exceptions import NoRunsFound, SourceUnavailable, TransportError
from curation_metadata.fetchers.base import BaseClient
from curation_metadata.models import RUN_FIELDS, RunRecord

logger = logging.getLogger(__name__)

PORTAL_API_URL = "https://www.ebi.ac.uk/ena/portal/api/search"


class ENARunFetcher(BaseClient):
    """Run source: one read_run query per project, no paging."""

    def fetch_runs(self, project: str) -> List[RunRecord]:
        params = {
            "result": "read_run",
            "query": f"study_accession={project}",
            "fields": ",".join(RUN_FIELDS),
            "format": "json",
        }
        logger.info("Querying ENA Portal API for runs of %s", project)
        try:
            resp = self._http_get(PORTAL_API_URL, params)
        except TransportError as exc:
            raise SourceUnavailable(
                f"ENA Portal API unavailable: {exc}", status_code=exc.status_code
            ) from exc

        try:
            data = resp.json()
        except ValueError:
            raise NoRunsFound(f"ENA returned a non-JSON response for {project}") from None

        if not isinstance(data, list) or not data:
            raise NoRunsFound(f"No runs found in ENA for BioProject: {project}")

        runs = [RunRecord.from_api_row(row) for row in data if isinstance(row, dict)]
        if not runs:
            raise NoRunsFound(f"ENA returned no run objects for {project}")
        logger.info("Found %d runs", len(runs))
        return runs
