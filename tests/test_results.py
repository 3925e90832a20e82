import json

import pandas as pd
import pytest

from ln_censor.adversary import AdversarySet, AsSelectionStrategy
from ln_censor.errors import OutputWriteError
from ln_censor.payment import PaymentOutcome
from ln_censor.results import OutcomeTally, ResultAggregator, write_csv


@pytest.fixture
def aggregator(mapping):
    adversaries = AdversarySet(asns=(100, 200), strategy=AsSelectionStrategy.MAX_CHANNELS,
                               requested=5)
    tally = OutcomeTally()
    tally.record(PaymentOutcome.delivered())
    tally.record(PaymentOutcome.no_path())
    tally.record(PaymentOutcome.censored(100), [100, 200])
    tally.record(PaymentOutcome.censored(200), [200])

    results = ResultAggregator(mapping, adversaries, seed=19, num_payments=4, eligible_nodes=5)
    results.add(1000, tally)
    return results


def test_tally_counts():
    tally = OutcomeTally()
    tally.record(PaymentOutcome.delivered(), index=0)
    tally.record(PaymentOutcome.censored(7), [7, 7], index=1)
    assert tally.total == 2
    assert tally.failed_censored == 1
    assert tally.baseline_delivered == 2
    assert tally.exposed == {7: 1}
    assert tally.success_rate == 0.5
    assert tally.censorship_rate == 0.5
    assert [i for i, _ in tally.outcomes] == [0, 1]


def test_empty_tally_rates():
    assert OutcomeTally().success_rate == 0.0
    assert OutcomeTally().censorship_rate == 0.0


def test_tally_merge_preserves_order():
    first, second = OutcomeTally(), OutcomeTally()
    first.record(PaymentOutcome.delivered(), index=0)
    second.record(PaymentOutcome.no_path(), index=1)
    merged = first.merge(second)
    assert merged is first
    assert merged.total == 2
    assert [i for i, _ in merged.outcomes] == [0, 1]


def test_outcome_records(aggregator):
    assert aggregator.outcome_records() == [{
        "amount_sat": 1000,
        "total": 4,
        "delivered": 1,
        "failed_no_path": 1,
        "failed_censored": 2,
        "baseline_delivered": 3,
        "success_rate": 0.25,
    }]


def test_censorship_records_follow_rank(aggregator):
    records = aggregator.censorship_records()
    assert [(r["rank"], r["asn"]) for r in records] == [(1, 100), (2, 200)]
    assert [r["censored"] for r in records] == [1, 1]
    assert [r["exposed"] for r in records] == [1, 2]


def test_topology_records(mapping):
    results = ResultAggregator(mapping)
    assert results.degree_records() == [
        {"asn": 0, "degree": 3},
        {"asn": 100, "degree": 5},
        {"asn": 200, "degree": 2},
    ]
    assert results.intra_inter_records()[1] == {"asn": 100, "intra": 1, "inter": 4}
    assert len(results.node_degree_records()) == mapping.graph.node_count
    assert results.censorship_records() == []


def test_metadata(aggregator):
    meta = aggregator.metadata()
    assert meta["seed"] == 19
    assert meta["amounts_sat"] == [1000]
    assert meta["network_size"] == 5
    assert meta["channel_count"] == 6
    assert meta["num_asns"] == 3
    assert meta["strategy"] == "max_channels"
    assert meta["strategy_id"] == 1
    assert meta["adversaries"] == [100, 200]
    assert meta["shortfall"] == 3


def test_write_run(aggregator, tmp_path):
    out = tmp_path / "run"
    paths = aggregator.write_run(str(out))

    outcomes = pd.read_csv(paths["outcomes"])
    assert list(outcomes.columns) == ResultAggregator.OUTCOME_COLUMNS
    assert outcomes.loc[0, "failed_censored"] == 2

    censorship = pd.read_csv(paths["censorship"])
    assert list(censorship["asn"]) == [100, 200]

    with open(paths["metadata"]) as f:
        assert json.load(f)["adversaries"] == [100, 200]

    # rerunning into the same directory replaces the files
    aggregator.write_run(str(out))


def test_write_csv_refuses_overwrite(tmp_path):
    path = tmp_path / "out.csv"
    path.write_text("keep me\n")
    with pytest.raises(OutputWriteError, match="refusing to overwrite"):
        write_csv([{"asn": 1, "degree": 2}], path, ["asn", "degree"])
    assert path.read_text() == "keep me\n"

    write_csv([{"asn": 1, "degree": 2}], path, ["asn", "degree"], overwrite=True)
    assert path.read_text().splitlines() == ["asn,degree", "1,2"]


def test_write_csv_unwritable_path(tmp_path):
    with pytest.raises(OutputWriteError):
        write_csv([], tmp_path / "missing" / "out.csv", ["asn"])


def test_write_csv_empty_keeps_header(tmp_path):
    path = write_csv([], tmp_path / "empty.csv", ["asn", "intra", "inter"])
    assert path.read_text().strip() == "asn,intra,inter"
