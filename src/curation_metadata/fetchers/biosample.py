"""Fetch free-form sample attributes from NCBI BioSample, in batches.

Attribute enrichment is supplementary: a failed batch is logged and its
samples are left without attributes, never aborting the caller.
"""

import logging
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests

from curation_metadata.config import DEFAULT_BATCH_DELAY, DEFAULT_BATCH_SIZE
from curation_metadata.exceptions import MalformedInput, TransportError
from curation_metadata.fetchers.base import BaseClient
from curation_metadata.models import normalize_attribute_name
from curation_metadata.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

EFETCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/efetch.fcgi"

SampleAttributes = Dict[str, Dict[str, str]]


@dataclass
class BatchResult:
    index: int
    accessions: List[str]
    attributes: Optional[SampleAttributes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AttributeFetchResult:
    batches: List[BatchResult] = field(default_factory=list)

    @property
    def attributes(self) -> SampleAttributes:
        merged: SampleAttributes = {}
        for batch in self.batches:
            if batch.ok:
                merged.update(batch.attributes or {})
        return merged

    @property
    def failed_batches(self) -> int:
        return sum(1 for batch in self.batches if not batch.ok)


def parse_biosample_xml(xml_text) -> SampleAttributes:
    """Map each <BioSample accession=...> to its valued <Attribute> pairs.

    Samples without any valued attribute are left out.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise MalformedInput(f"BioSample response is not valid XML: {exc}") from exc

    samples: SampleAttributes = {}
    for biosample in root.iter("BioSample"):
        accession = biosample.get("accession", "").strip()
        if not accession:
            continue
        attributes = {}
        for attr in biosample.iter("Attribute"):
            name = attr.get("attribute_name") or attr.get("harmonized_name")
            value = (attr.text or "").strip()
            if name and value:
                attributes[normalize_attribute_name(name)] = value
        if attributes:
            samples[accession] = attributes
    return samples


class BioSampleFetcher(BaseClient):
    def __init__(
        self,
        session: requests.Session,
        rate_limiter: RateLimiter,
        api_key: Optional[str] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
    ):
        super().__init__(session, rate_limiter, api_key)
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._batch_size = batch_size
        self._batch_delay = batch_delay

    def fetch_attributes(self, accessions: List[str]) -> AttributeFetchResult:
        """Fetch attributes for ``accessions`` one batch at a time. Never raises."""
        result = AttributeFetchResult()
        if not accessions:
            return result

        n_batches = -(-len(accessions) // self._batch_size)
        logger.info(
            "Fetching BioSample attributes for %d samples in %d batch(es)",
            len(accessions), n_batches,
        )
        for index in range(n_batches):
            if index and self._batch_delay:
                time.sleep(self._batch_delay)
            start = index * self._batch_size
            batch = accessions[start:start + self._batch_size]
            result.batches.append(self._fetch_batch(index, batch))
            logger.debug("BioSample batch %d/%d done", index + 1, n_batches)

        if result.failed_batches:
            logger.warning(
                "%d of %d BioSample batch(es) failed; their samples have no attributes",
                result.failed_batches, n_batches,
            )
        return result

    def _fetch_batch(self, index: int, batch: List[str]) -> BatchResult:
        params = {"db": "biosample", "id": ",".join(batch), "retmode": "xml"}
        try:
            resp = self._http_get(EFETCH_URL, params)
            samples = parse_biosample_xml(resp.content)
        except (TransportError, MalformedInput) as exc:
            logger.warning("BioSample batch %d failed: %s", index + 1, exc, exc_info=True)
            return BatchResult(index=index, accessions=batch, error=str(exc))

        if not samples:
            logger.debug("BioSample batch %d matched no attributes", index + 1)
        return BatchResult(index=index, accessions=batch, attributes=samples)
