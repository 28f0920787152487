"""Streamlit web UI for curation-metadata."""

import os
import sys
import tempfile
from pathlib import Path

# Ensure the src/ directory is on the Python path so that
# curation_metadata is importable on Streamlit Community Cloud
# (which doesn't pip-install the package itself).
_src_dir = str(Path(__file__).resolve().parent.parent)
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

import streamlit as st

from curation_metadata.config import Settings
from curation_metadata.core import RunMetadataAggregator, build_miniml_fetcher
from curation_metadata.exceptions import CurationError
from curation_metadata.output import document_to_bytes
from curation_metadata.cli import validate_bioproject


def main():
    st.set_page_config(page_title="Curation Metadata", layout="wide")
    st.title("SRA Run Metadata")
    st.markdown(
        "Merge **ENA** run records with **BioSample** attributes for a BioProject "
        "and download the JSON document."
    )

    # Sidebar
    with st.sidebar:
        st.header("Settings")
        ncbi_api_key = st.text_input(
            "NCBI API Key (optional)",
            value=os.environ.get("NCBI_API_KEY", ""),
            type="password",
            help="Increases NCBI rate limit from 3 to 10 requests/sec",
        )
        batch_size = st.number_input("BioSample batch size", min_value=1, max_value=500, value=100)
        fetch_miniml = st.checkbox("Also fetch GEO MINiML XML", value=False)

    # Input
    bioproject_text = st.text_input("BioProject accession", placeholder="PRJNA1018599")
    uploaded_file = st.file_uploader(
        "Optional SraRunTable.csv (used only if the APIs are unreachable)", type=["csv"]
    )

    if st.button("Fetch Metadata", type="primary", disabled=not bioproject_text.strip()):
        try:
            bioproject = validate_bioproject(bioproject_text)
        except CurationError as exc:
            st.error(str(exc))
            return

        with tempfile.TemporaryDirectory() as tmp_dir:
            settings = Settings(
                ncbi_api_key=ncbi_api_key.strip() or None,
                tmp_dir=Path(tmp_dir),
                batch_size=int(batch_size),
            )
            if uploaded_file:
                (Path(tmp_dir) / f"{bioproject}_SraRunTable.csv").write_bytes(uploaded_file.read())

            with st.spinner(f"Fetching runs for {bioproject}..."):
                try:
                    st.session_state["result"] = RunMetadataAggregator(settings).aggregate(bioproject)
                except CurationError as exc:
                    st.session_state.pop("result", None)
                    st.error(str(exc))

            if fetch_miniml:
                with st.spinner("Looking for a linked GEO series..."):
                    try:
                        st.session_state["miniml"] = build_miniml_fetcher(settings).fetch(bioproject)
                    except CurationError as exc:
                        st.session_state.pop("miniml", None)
                        st.error(f"MINiML download failed: {exc}")

    # Display results
    if "result" in st.session_state:
        result = st.session_state["result"]

        col1, col2, col3 = st.columns(3)
        col1.metric("Runs", result.run_count)
        col2.metric("Source", result.source)
        col3.metric(
            "Runs with attributes",
            sum(1 for run in result.runs if run.sample_attributes),
        )

        import pandas as pd

        df = pd.DataFrame([run.to_dict() for run in result.runs])
        st.dataframe(df, use_container_width=True)

        st.download_button(
            label="Download JSON",
            data=document_to_bytes(result),
            file_name=f"{result.project}_sra_metadata.json",
            mime="application/json",
        )

    if fetch_miniml and "miniml" in st.session_state:
        document = st.session_state["miniml"]
        if document is None:
            st.info("No GEO series is linked to this BioProject.")
        else:
            st.download_button(
                label=f"Download {document.series_accession}_family.xml",
                data=document.xml.encode("utf-8"),
                file_name=f"{document.series_accession}_family.xml",
                mime="application/xml",
            )


if __name__ == "__main__":
    main()
