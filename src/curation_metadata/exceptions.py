"""Error taxonomy shared by the fetchers, the aggregator and the CLI."""

from typing import Optional


class CurationError(Exception):
    """Base class for every error raised by curation-metadata."""


class TransportError(CurationError):
    """Network or HTTP failure talking to a remote source."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SourceUnavailable(TransportError):
    """The primary run source could not be reached."""


class SourceEmpty(CurationError):
    """A well-formed response that carried no usable records."""


class NoRunsFound(SourceEmpty):
    pass


class MalformedInput(CurationError):
    """Bad accession format, unparseable file or unexpected response shape."""


class ArchiveMemberNotFound(CurationError):
    pass


class ArchiveNotFound(CurationError):
    pass


class RunMetadataUnavailable(CurationError):
    """Neither the APIs nor a fallback run table produced any runs."""
