from pathlib import Path

import pytest

from ln_censor.asn import ASNMapper
from ln_censor.network import Graph, GraphSource


DATA_DIR = Path(__file__).parent / "data"

# Address ownership used by the example topologies
EXAMPLE_ASNS = {
    "10.0.0.2": 100,
    "10.0.0.3": 200,
    "2001:db8::4": 100,
}


class StaticLookup:
    """In-memory address to AS table."""

    def __init__(self, table):
        self.table = dict(table)
        self.queries = []

    def lookup(self, host):
        self.queries.append(host)
        return self.table.get(host)


@pytest.fixture
def data_dir():
    return DATA_DIR


@pytest.fixture
def lnd_graph():
    return Graph.from_json_file(DATA_DIR / "example_lnd.json", GraphSource.LND)


@pytest.fixture
def lnr_graph():
    return Graph.from_json_file(DATA_DIR / "example_lnr.json", GraphSource.LNR)


@pytest.fixture
def lookup():
    return StaticLookup(EXAMPLE_ASNS)


@pytest.fixture
def mapping(lnd_graph, lookup):
    return ASNMapper(lookup).map(lnd_graph)


@pytest.fixture
def ipasn_file(tmp_path):
    """Minimal IPASN dataset in the format read by pyasn."""
    path = tmp_path / "ipasn.dat"
    path.write_text(
        "; IP-ASN32-DAT file\n"
        "10.0.0.0/24\t100\n"
        "10.0.1.0/24\t200\n"
        "198.51.100.0/24\t300\n"
    )
    return path
