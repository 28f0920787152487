"""Shared fixtures for curation-metadata tests."""

import gzip
import io
import tarfile

import pytest
import requests

from curation_metadata.rate_limiter import RateLimiter


@pytest.fixture
def fast_limiter():
    """Rate limiter that never blocks (high rate)."""
    return RateLimiter(10_000)


@pytest.fixture
def session():
    return requests.Session()


# --- Archive helpers ---


def make_tgz(members):
    """Build a .tgz body from (name, bytes) pairs with the stdlib tarfile writer."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.USTAR_FORMAT) as tar:
        for name, payload in members:
            info = tarfile.TarInfo(name=name)
            info.size = len(payload)
            tar.addfile(info, io.BytesIO(payload))
    return gzip.compress(buf.getvalue())


@pytest.fixture
def miniml_xml():
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<MINiML xmlns="http://www.ncbi.nlm.nih.gov/geo/info/MINiML">\n'
        '  <Series iid="GSE245678"><Title>Liver RNA-seq</Title></Series>\n'
        "</MINiML>\n"
    )


# --- Mock API response payloads ---


def ena_run(run, sample, **overrides):
    row = {
        "run_accession": run,
        "sample_accession": sample,
        "sample_alias": f"{sample}_alias",
        "sample_title": f"{sample} liver",
        "experiment_title": "Illumina NovaSeq 6000 paired end sequencing",
        "library_layout": "PAIRED",
        "library_strategy": "RNA-Seq",
        "library_source": "TRANSCRIPTOMIC",
        "library_selection": "cDNA",
        "instrument_platform": "ILLUMINA",
        "instrument_model": "Illumina NovaSeq 6000",
        "read_count": "25000000",
        "base_count": "7500000000",
        "scientific_name": "Mus musculus",
        "tax_id": "10090",
    }
    row.update(overrides)
    return row


@pytest.fixture
def ena_runs_payload():
    """Four runs citing samples S1, S1, S2, S3."""
    return [
        ena_run("SRR1000001", "SAMN00000001"),
        ena_run("SRR1000002", "SAMN00000001"),
        ena_run("SRR1000003", "SAMN00000002"),
        ena_run("SRR1000004", "SAMN00000003"),
    ]


def biosample_xml(samples):
    """BioSampleSet XML for {accession: {attribute_name: value}}."""
    parts = ['<?xml version="1.0" ?>', "<BioSampleSet>"]
    for accession, attributes in samples.items():
        parts.append(
            f'<BioSample access="public" id="1" accession="{accession}">'
            f"<Ids><Id db=\"BioSample\" is_primary=\"1\">{accession}</Id></Ids>"
            "<Attributes>"
        )
        for name, value in attributes.items():
            parts.append(
                f'<Attribute attribute_name="{name}" display_name="{name}">{value}</Attribute>'
            )
        parts.append("</Attributes></BioSample>")
    parts.append("</BioSampleSet>")
    return "\n".join(parts)


@pytest.fixture
def biosample_s1_s2_xml():
    return biosample_xml({
        "SAMN00000001": {"Tissue": "liver", "Dev Stage": "adult", "sex": "male"},
        "SAMN00000002": {"Tissue": "kidney", "genotype": "wild type"},
    })


@pytest.fixture
def real_biosample_xml():
    """Trimmed efetch db=biosample response, kept verbatim to catch schema drift."""
    return """\
<?xml version="1.0" ?>
<BioSampleSet><BioSample access="public" publication_date="2023-09-21T00:00:00.000" last_update="2023-09-21T04:03:12.187" submission_date="2023-09-20T22:14:09.560" id="37540012" accession="SAMN37540012">   <Ids>     <Id db="BioSample" is_primary="1">SAMN37540012</Id>     <Id db_label="Sample name">WT_Liver_1</Id>     <Id db="SRA">SRS18946871</Id>   </Ids>   <Description>     <Title>Model organism or animal sample from Mus musculus</Title>     <Organism taxonomy_id="10090" taxonomy_name="Mus musculus">       <OrganismName>Mus musculus</OrganismName>     </Organism>   </Description>   <Owner>     <Name>University of Alabama at Birmingham</Name>   </Owner>   <Models>     <Model>Model organism or animal</Model>   </Models>   <Package display_name="Model organism or animal; version 1.0">Model.organism.animal.1.0</Package>   <Attributes>     <Attribute attribute_name="strain" harmonized_name="strain" display_name="strain">C57BL/6J</Attribute>     <Attribute attribute_name="age" harmonized_name="age" display_name="age">12 weeks</Attribute>     <Attribute attribute_name="sex" harmonized_name="sex" display_name="sex">male</Attribute>     <Attribute attribute_name="tissue" harmonized_name="tissue" display_name="tissue">liver</Attribute>     <Attribute attribute_name="Treatment Group">control</Attribute>     <Attribute attribute_name="notes"></Attribute>   </Attributes>   <Links>     <Link type="entrez" target="bioproject" label="PRJNA1018599">1018599</Link>   </Links>   <Status status="live" when="2023-09-21T04:03:12.187"/> </BioSample>
</BioSampleSet>
"""


@pytest.fixture
def sra_run_table_csv():
    """Three-row SraRunTable.csv as exported from the SRA Run Selector."""
    return (
        "Run,Assay Type,AvgSpotLen,bases,BioProject,BioSample,Experiment,"
        "LibraryLayout,LibrarySource,Organism,Platform,spots,Sample Name,tissue,Treatment Group\r\n"
        'SRR2000001,RNA-Seq,300,900000,PRJNA1018599,SAMN1,SRX1,PAIRED,TRANSCRIPTOMIC,'
        'Mus musculus,ILLUMINA,3000,WT_1,liver,"control, vehicle"\r\n'
        "\r\n"
        "SRR2000002,RNA-Seq,300,,PRJNA1018599,SAMN2,SRX2,PAIRED,TRANSCRIPTOMIC,"
        "Mus musculus,ILLUMINA,n/a,WT_2,liver,treated\r\n"
        "SRR2000003,RNA-Seq,300,0,PRJNA1018599,SAMN3,SRX3,PAIRED,TRANSCRIPTOMIC,"
        "Mus musculus,ILLUMINA,0,KO_1,,\r\n"
    )


@pytest.fixture
def gds_esearch_payload():
    return {
        "header": {"type": "esearch", "version": "0.3"},
        "esearchresult": {"count": "2", "retmax": "2", "retstart": "0", "idlist": ["200245678", "100012345"]},
    }


@pytest.fixture
def gds_esummary_payload():
    return {
        "result": {
            "uids": ["200245678", "100012345"],
            "200245678": {
                "uid": "200245678",
                "accession": "GSE245678",
                "entrytype": "GSE",
                "gse": "245678",
            },
            "100012345": {
                "uid": "100012345",
                "accession": "GPL24247",
                "entrytype": "GPL",
            },
        }
    }
