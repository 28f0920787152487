"""Remote-source clients."""

from curation_metadata.fetchers.biosample import BioSampleFetcher
from curation_metadata.fetchers.ena import ENARunFetcher
from curation_metadata.fetchers.geo import GEOMinimlFetcher

__all__ = [
    "BioSampleFetcher",
    "ENARunFetcher",
    "GEOMinimlFetcher",
]
