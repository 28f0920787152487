"""Parse a manually exported SRA run table (SraRunTable.csv) into run records.

The run table is downloaded by hand from the SRA Run Selector when the APIs
are unreachable, so the parser is lenient: blank lines are skipped, short rows
are padded with empty strings, and an unterminated quote closes at end of line.
"""

import re
from typing import Dict, List

from curation_metadata.models import (
    COUNT_FIELDS,
    RUN_FIELDS,
    RunRecord,
    normalize_attribute_name,
    parse_count,
)

_LINE_BREAK = re.compile(r"\r?\n")

# Run Selector column name -> canonical run field. Canonical names map to themselves.
COLUMN_ALIASES: Dict[str, str] = {
    "Run": "run_accession",
    "BioSample": "sample_accession",
    "Sample Name": "sample_alias",
    "Experiment": "experiment_title",
    "LibraryLayout": "library_layout",
    "LibraryStrategy": "library_strategy",
    "LibrarySource": "library_source",
    "LibrarySelection": "library_selection",
    "Platform": "instrument_platform",
    "Model": "instrument_model",
    "spots": "read_count",
    "bases": "base_count",
    "Organism": "scientific_name",
    "TaxID": "tax_id",
}
COLUMN_ALIASES.update({name: name for name in RUN_FIELDS})

# Run Selector bookkeeping columns: recognized, but neither a run field nor a sample attribute.
IGNORED_COLUMNS = frozenset([
    "Bytes",
    "AvgSpotLen",
    "Consent",
    "DATASTORE_filetype",
    "DATASTORE_provider",
    "DATASTORE_region",
    "Assay Type",
    "BioProject",
    "Center Name",
    "SRA Study",
    "ReleaseDate",
])


def split_row(line: str, delimiter: str = ",", quote: str = '"') -> List[str]:
    """Split one line into trimmed fields, honoring quoted delimiters."""
    fields = []
    current = []
    in_quotes = False
    for ch in line:
        if ch == quote:
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    fields.append("".join(current).strip())
    return fields


def parse_table(text: str, delimiter: str = ",", quote: str = '"') -> List[Dict[str, str]]:
    """Return one header->value mapping per data line; [] when there is no data line."""
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = [line for line in _LINE_BREAK.split(text) if line.strip()]
    if len(lines) < 2:
        return []

    headers = split_row(lines[0], delimiter, quote)
    rows = []
    for line in lines[1:]:
        values = split_row(line, delimiter, quote)
        rows.append({
            header: values[idx] if idx < len(values) else ""
            for idx, header in enumerate(headers)
        })
    return rows


def row_to_run(row: Dict[str, str]) -> RunRecord:
    """Remap one run-table row onto the run record shape.

    A non-empty Run Selector column takes precedence over the canonical
    column for the same field, whatever their order in the file.
    Unrecognized, non-empty columns become sample attributes.
    """
    values: Dict[str, str] = {}
    for column, target in COLUMN_ALIASES.items():
        value = row.get(column)
        if value and not values.get(target):
            values[target] = value

    attributes: Dict[str, str] = {}
    for column, value in row.items():
        if column not in COLUMN_ALIASES and column not in IGNORED_COLUMNS and value:
            attributes[normalize_attribute_name(column)] = value

    run = RunRecord(run_accession=values.get("run_accession", ""))
    for name in RUN_FIELDS[1:]:
        if name in COUNT_FIELDS:
            setattr(run, name, parse_count(values.get(name)))
        else:
            setattr(run, name, values.get(name, ""))
    if attributes:
        run.attach_attributes(attributes)
    return run


def rows_to_runs(rows: List[Dict[str, str]]) -> List[RunRecord]:
    return [row_to_run(row) for row in rows]


def parse_run_table(text: str) -> List[RunRecord]:
    """Parse SraRunTable.csv text straight into run records."""
    return rows_to_runs(parse_table(text))
