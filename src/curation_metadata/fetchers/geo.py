"""Resolve the GEO series linked to a BioProject and download its MINiML XML."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from curation_metadata.archive import extract_member_text
from curation_metadata.exceptions import (
    ArchiveMemberNotFound,
    ArchiveNotFound,
    MalformedInput,
    TransportError,
)
from curation_metadata.fetchers.base import BaseClient

logger = logging.getLogger(__name__)

ESEARCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/esearch.fcgi"
ESUMMARY_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/esummary.fcgi"
GEO_FTP_BASE = "https://ftp.ncbi.nlm.nih.gov/geo/series"
DOWNLOAD_TIMEOUT = 90

NO_GEO_LINK = "NO_GEO_LINK"


@dataclass
class MinimlDocument:
    series_accession: str
    xml: str
    compressed: bool


class GEOMinimlFetcher(BaseClient):
    def fetch(self, project: str) -> Optional[MinimlDocument]:
        """Return the MINiML document for ``project``, or None if no GEO series is linked."""
        ids = self.search_datasets(project)
        if not ids:
            logger.info("No GEO DataSets found for %s", project)
            return None

        series = self.resolve_series_accession(ids)
        if series is None:
            logger.info("Could not find a GSE accession among GDS results %s", ids)
            return None

        logger.info("Found GEO series %s", series)
        xml, compressed = self.download_miniml(series)
        return MinimlDocument(series_accession=series, xml=xml, compressed=compressed)

    def search_datasets(self, project: str) -> List[str]:
        """GDS UIDs linked to a BioProject.

        Only a well-formed, empty id list counts as "no link"; a degraded
        response shape is an error rather than a silent absence.
        """
        params = {"db": "gds", "term": f"{project}[BioProject]", "retmode": "json"}
        logger.info("Searching GEO for BioProject %s", project)
        resp = self._http_get(ESEARCH_URL, params)
        try:
            data = resp.json()
        except ValueError:
            raise MalformedInput("esearch returned a non-JSON response") from None

        result = data.get("esearchresult") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            raise MalformedInput("esearch response has no esearchresult")
        if "ERROR" in result:
            raise MalformedInput(f"esearch error: {result['ERROR']}")

        ids = [str(uid) for uid in result.get("idlist", [])]
        logger.debug("esearch returned %d GDS id(s)", len(ids))
        return ids

    def resolve_series_accession(self, ids: List[str]) -> Optional[str]:
        params = {"db": "gds", "id": ",".join(ids), "retmode": "json"}
        resp = self._http_get(ESUMMARY_URL, params)
        try:
            data = resp.json()
        except ValueError:
            raise MalformedInput("esummary returned a non-JSON response") from None

        if not isinstance(data, dict):
            raise MalformedInput("esummary response is not a JSON object")
        if "error" in data:
            raise MalformedInput(f"esummary error: {data['error']}")
        summaries = data.get("result")
        if not isinstance(summaries, dict):
            raise MalformedInput("esummary response has no result")
        return pick_series_accession(summaries, ids)

    @staticmethod
    def build_miniml_urls(series: str) -> Tuple[str, str]:
        """Compressed and plain MINiML URLs.

        Series live in thousands buckets: GSE245678 -> GSE245nnn/GSE245678,
        GSE100 -> GSEnnn/GSE100.
        """
        if not series.upper().startswith("GSE") or not series[3:].isdigit():
            raise MalformedInput(f"Invalid GSE accession: {series}")
        num_str = series[3:]
        bucket = num_str[:-3] + "nnn" if len(num_str) > 3 else "nnn"
        base = f"{GEO_FTP_BASE}/GSE{bucket}/{series}/miniml/{series}_family.xml"
        return f"{base}.tgz", base

    def download_miniml(self, series: str) -> Tuple[str, bool]:
        """Return (xml_text, came_from_tgz).

        The .tgz is tried first; the plain .xml is the single retry. Once a
        series is known to exist, failing both is an error.
        """
        tgz_url, xml_url = self.build_miniml_urls(series)
        extraction_error = None

        logger.info("Downloading MINiML from %s", tgz_url)
        try:
            resp = self._http_get(tgz_url, timeout=DOWNLOAD_TIMEOUT, send_api_key=False)
        except TransportError as exc:
            logger.info("Compressed MINiML unavailable (%s)", exc)
        else:
            try:
                return extract_member_text(resp.content, ".xml"), True
            except (ArchiveMemberNotFound, MalformedInput) as exc:
                logger.warning("Could not extract XML from %s: %s", tgz_url, exc)
                extraction_error = exc

        logger.info("Trying uncompressed: %s", xml_url)
        try:
            resp = self._http_get(xml_url, timeout=DOWNLOAD_TIMEOUT, send_api_key=False)
        except TransportError as exc:
            if extraction_error is not None:
                raise extraction_error
            raise ArchiveNotFound(
                f"MINiML for {series} not found at NCBI FTP (tried .tgz and .xml)"
            ) from exc
        return resp.text, False


def pick_series_accession(summaries: dict, ids: List[str]) -> Optional[str]:
    """Prefer an exact GSE accession; fall back to a GSE entry's ``gse`` field."""
    docs = [summaries.get(uid) for uid in ids]
    docs = [doc for doc in docs if isinstance(doc, dict)]

    for doc in docs:
        accession = str(doc.get("accession", ""))
        if accession.startswith("GSE"):
            return accession

    for doc in docs:
        if doc.get("entrytype") == "GSE" and doc.get("gse"):
            return f"GSE{doc['gse']}"
    return None
