"""Command-line interface for curation-metadata.

Diagnostics go to stderr through logging; stdout carries only the payload
(the JSON document, a GSE accession, or NO_GEO_LINK).
"""

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional

from curation_metadata.config import Settings
from curation_metadata.core import RunMetadataAggregator, build_miniml_fetcher
from curation_metadata.exceptions import CurationError, MalformedInput
from curation_metadata.fetchers.geo import NO_GEO_LINK
from curation_metadata.output import document_to_json, miniml_path, write_document, write_text

logger = logging.getLogger(__name__)

BIOPROJECT_PATTERN = re.compile(r"^PRJ[A-Z]{1,2}\d+$")


def validate_bioproject(accession: str) -> str:
    accession = accession.strip()
    if not BIOPROJECT_PATTERN.match(accession):
        raise MalformedInput(
            f"Invalid BioProject accession format: {accession}\n"
            "Expected format: PRJNA123456, PRJEB123456, PRJDB123456, etc."
        )
    return accession


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="curation-metadata",
        description="Fetch SRA run metadata and GEO MINiML XML for a BioProject.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "bioproject",
        help="BioProject accession (e.g., PRJNA1018599)",
    )
    common.add_argument(
        "--tmp-dir", type=str, default=None,
        help="Directory for fallback CSVs and outputs (env: CURATION_TMP_DIR, default: tmp)",
    )
    common.add_argument(
        "--ncbi-api-key", type=str, default=None,
        help="NCBI API key for higher rate limits (env: NCBI_API_KEY)",
    )
    common.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable verbose/debug logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sra = sub.add_parser(
        "sra-metadata", parents=[common],
        help="Merge ENA run records with BioSample attributes into one JSON document",
    )
    sra.add_argument(
        "--batch-size", type=int, default=None,
        help="BioSample accessions per request (env: BIOSAMPLE_BATCH_SIZE, default: 100)",
    )
    sra.add_argument(
        "--batch-delay", type=float, default=None,
        help="Seconds between BioSample batches (env: BIOSAMPLE_BATCH_DELAY, default: 0.35)",
    )
    sra.add_argument(
        "--no-save", action="store_true",
        help="Only print the document; do not write <tmp-dir>/<bioproject>_sra_metadata.json",
    )

    sub.add_parser(
        "miniml", parents=[common],
        help="Download the MINiML XML of the GEO series linked to a BioProject",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        bioproject = validate_bioproject(args.bioproject)
        settings = Settings.from_env().override(
            ncbi_api_key=args.ncbi_api_key,
            tmp_dir=Path(args.tmp_dir) if args.tmp_dir else None,
            batch_size=getattr(args, "batch_size", None),
            batch_delay=getattr(args, "batch_delay", None),
        )
        if args.command == "sra-metadata":
            _run_sra_metadata(bioproject, settings, save=not args.no_save)
        else:
            _run_miniml(bioproject, settings)
    except CurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


def _run_sra_metadata(bioproject: str, settings: Settings, save: bool) -> None:
    result = RunMetadataAggregator(settings).aggregate(bioproject)
    if save:
        path = write_document(result, settings.tmp_dir)
        logger.info("Saved to: %s", path)
    print(document_to_json(result))


def _run_miniml(bioproject: str, settings: Settings) -> None:
    logger.info("Looking for GEO series linked to: %s", bioproject)
    document = build_miniml_fetcher(settings).fetch(bioproject)
    if document is None:
        print(NO_GEO_LINK)
        return
    path = write_text(document.xml, miniml_path(settings.tmp_dir, document.series_accession))
    logger.info("Saved to: %s", path)
    print(document.series_accession)


if __name__ == "__main__":
    main()
