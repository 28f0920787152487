"""Serialize the aggregated document and write artifacts under the tmp dir."""

import json
from pathlib import Path

from curation_metadata.models import AggregatedResult


def document_to_json(result: AggregatedResult) -> str:
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


def document_path(tmp_dir: Path, project: str) -> Path:
    return Path(tmp_dir) / f"{project}_sra_metadata.json"


def miniml_path(tmp_dir: Path, series_accession: str) -> Path:
    return Path(tmp_dir) / f"{series_accession}_family.xml"


def write_text(text: str, filepath: Path) -> Path:
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as fh:
        fh.write(text)
    return filepath


def write_document(result: AggregatedResult, tmp_dir: Path) -> Path:
    return write_text(document_to_json(result), document_path(tmp_dir, result.project))


def document_to_bytes(result: AggregatedResult) -> bytes:
    """Serialize to bytes (for the Streamlit download button)."""
    return document_to_json(result).encode("utf-8")
