import pytest
import responses

from conftest import biosample_xml
from curation_metadata.exceptions import MalformedInput
from curation_metadata.fetchers import biosample as biosample_module
from curation_metadata.fetchers.biosample import BioSampleFetcher, parse_biosample_xml

EFETCH_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/efetch.fcgi"


def _fetcher(session, limiter, **kwargs):
    kwargs.setdefault("batch_delay", 0)
    return BioSampleFetcher(session, limiter, **kwargs)


def test_parse_normalizes_attribute_names(biosample_s1_s2_xml):
    samples = parse_biosample_xml(biosample_s1_s2_xml)
    assert samples == {
        "SAMN00000001": {"tissue": "liver", "dev_stage": "adult", "sex": "male"},
        "SAMN00000002": {"tissue": "kidney", "genotype": "wild type"},
    }


def test_parse_real_efetch_document(real_biosample_xml):
    # Fails loudly if the BioSample export layout stops matching.
    samples = parse_biosample_xml(real_biosample_xml)
    assert list(samples) == ["SAMN37540012"]
    assert samples["SAMN37540012"] == {
        "strain": "C57BL/6J",
        "age": "12 weeks",
        "sex": "male",
        "tissue": "liver",
        "treatment_group": "control",
    }


def test_parse_tolerates_attribute_order_and_harmonized_name():
    xml = (
        "<BioSampleSet><BioSample accession='SAMN9' id='9'>"
        "<Attributes><Attribute display_name='x' harmonized_name='geo_loc_name'>"
        "  USA: Alabama  </Attribute></Attributes></BioSample></BioSampleSet>"
    )
    assert parse_biosample_xml(xml) == {"SAMN9": {"geo_loc_name": "USA: Alabama"}}


def test_parse_skips_samples_without_values():
    xml = biosample_xml({"SAMN1": {"notes": ""}})
    assert parse_biosample_xml(xml) == {}


def test_parse_rejects_invalid_xml():
    with pytest.raises(MalformedInput):
        parse_biosample_xml("<BioSampleSet><BioSample")


@responses.activate
def test_single_batch(session, fast_limiter, biosample_s1_s2_xml):
    responses.add(responses.GET, EFETCH_URL, body=biosample_s1_s2_xml, status=200)

    result = _fetcher(session, fast_limiter).fetch_attributes(
        ["SAMN00000001", "SAMN00000002", "SAMN00000003"]
    )

    assert result.failed_batches == 0
    assert set(result.attributes) == {"SAMN00000001", "SAMN00000002"}
    assert "SAMN00000003" not in result.attributes
    sent = responses.calls[0].request.params
    assert sent["db"] == "biosample"
    assert sent["id"] == "SAMN00000001,SAMN00000002,SAMN00000003"
    assert sent["retmode"] == "xml"


@responses.activate
def test_batches_are_sized_and_ordered(session, fast_limiter):
    for _ in range(3):
        responses.add(responses.GET, EFETCH_URL, body="<BioSampleSet/>", status=200)

    ids = [f"SAMN{i}" for i in range(5)]
    result = _fetcher(session, fast_limiter, batch_size=2).fetch_attributes(ids)

    assert len(responses.calls) == 3
    assert [call.request.params["id"] for call in responses.calls] == [
        "SAMN0,SAMN1", "SAMN2,SAMN3", "SAMN4",
    ]
    assert [batch.accessions for batch in result.batches] == [ids[0:2], ids[2:4], ids[4:]]


@responses.activate
def test_failed_middle_batch_keeps_other_batches(session, fast_limiter):
    responses.add(
        responses.GET, EFETCH_URL, status=200,
        body=biosample_xml({"SAMN1": {"tissue": "liver"}}),
    )
    responses.add(responses.GET, EFETCH_URL, status=500)
    responses.add(
        responses.GET, EFETCH_URL, status=200,
        body=biosample_xml({"SAMN3": {"tissue": "heart"}}),
    )

    result = _fetcher(session, fast_limiter, batch_size=1).fetch_attributes(
        ["SAMN1", "SAMN2", "SAMN3"]
    )

    assert result.failed_batches == 1
    assert not result.batches[1].ok
    assert "500" in result.batches[1].error
    assert result.attributes == {
        "SAMN1": {"tissue": "liver"},
        "SAMN3": {"tissue": "heart"},
    }


@responses.activate
def test_unparseable_batch_is_dropped(session, fast_limiter):
    responses.add(responses.GET, EFETCH_URL, body="<html>oops", status=200)

    result = _fetcher(session, fast_limiter).fetch_attributes(["SAMN1"])

    assert result.failed_batches == 1
    assert result.attributes == {}


def test_empty_input_makes_no_requests(session, fast_limiter):
    result = _fetcher(session, fast_limiter).fetch_attributes([])
    assert result.batches == []
    assert result.attributes == {}


@responses.activate
def test_delay_between_batches_only(session, fast_limiter, monkeypatch):
    sleeps = []
    monkeypatch.setattr(biosample_module.time, "sleep", sleeps.append)
    for _ in range(3):
        responses.add(responses.GET, EFETCH_URL, body="<BioSampleSet/>", status=200)

    _fetcher(session, fast_limiter, batch_size=1, batch_delay=0.35).fetch_attributes(
        ["SAMN1", "SAMN2", "SAMN3"]
    )

    assert sleeps == [0.35, 0.35]


@responses.activate
def test_api_key_is_sent(session, fast_limiter):
    responses.add(responses.GET, EFETCH_URL, body="<BioSampleSet/>", status=200)

    _fetcher(session, fast_limiter, api_key="secret").fetch_attributes(["SAMN1"])

    assert responses.calls[0].request.params["api_key"] == "secret"


def test_batch_size_must_be_positive(session, fast_limiter):
    with pytest.raises(ValueError):
        BioSampleFetcher(session, fast_limiter, batch_size=0)


@responses.activate
def test_failed_batch_logs_warning_with_traceback(session, fast_limiter, caplog):
    responses.add(responses.GET, EFETCH_URL, status=503)

    with caplog.at_level("WARNING", logger="curation_metadata.fetchers.biosample"):
        _fetcher(session, fast_limiter).fetch_attributes(["SAMN1"])

    failures = [r for r in caplog.records if "batch 1 failed" in r.getMessage()]
    assert len(failures) == 1
    assert failures[0].exc_info is not None
