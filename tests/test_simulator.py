import pytest

from ln_censor.adversary import AdversarySet, AsSelectionStrategy
from ln_censor.asn import ASMapping
from ln_censor.network import Channel, FeePolicy, Graph, Node
from ln_censor.payment import OutcomeKind, Payment, PaymentOutcome, PaymentState
from ln_censor.simulator import DEFAULT_AMOUNTS_SAT, PaymentSimulator, SimulationConfig


def adversary_set(*asns):
    return AdversarySet(asns=tuple(asns), strategy=AsSelectionStrategy.MAX_CHANNELS,
                        requested=len(asns))


def make_simulator(mapping, asns=(), router=None, **config):
    return PaymentSimulator(mapping.graph, mapping, adversary_set(*asns),
                            SimulationConfig(**config), router=router)


def index(mapping, *node_ids):
    return [mapping.graph.index_of(n) for n in node_ids]


def test_default_config():
    config = SimulationConfig()
    assert config.seed == 19
    assert config.num_payments == 1000
    assert config.num_adv_as == 5
    assert config.as_strategy == 1
    assert config.amounts_sat == DEFAULT_AMOUNTS_SAT


def test_pairs_are_deterministic(mapping):
    first = make_simulator(mapping, seed=7).draw_pairs(50)
    second = make_simulator(mapping, seed=7).draw_pairs(50)
    assert first == second
    assert make_simulator(mapping, seed=8).draw_pairs(50) != first


def test_pair_depends_only_on_seed_and_index(mapping):
    simulator = make_simulator(mapping, seed=3)
    pairs = simulator.draw_pairs(20)
    assert simulator.draw_pair(13) == pairs[13]


def test_pairs_are_distinct_eligible_nodes(mapping):
    for src, dst in make_simulator(mapping).draw_pairs(200):
        assert src != dst
        assert mapping.graph.degree(src) > 0
        assert mapping.graph.degree(dst) > 0


def test_isolated_nodes_never_drawn():
    graph = Graph()
    for name in ("a", "b", "c", "lonely"):
        graph.add_node(Node(name))
    graph.add_channel(Channel("ab", 0, 1, 1000, FeePolicy(), FeePolicy()))
    graph.add_channel(Channel("bc", 1, 2, 1000, FeePolicy(), FeePolicy()))
    mapping = ASMapping(graph, [0, 0, 0, 0])

    simulator = make_simulator(mapping)
    assert simulator.eligible == [0, 1, 2]
    assert all(3 not in pair for pair in simulator.draw_pairs(100))


def test_too_few_eligible_nodes():
    graph = Graph()
    graph.add_node(Node("a"))
    graph.add_node(Node("b"))
    mapping = ASMapping(graph, [0, 0])
    with pytest.raises(ValueError, match="at least 2"):
        make_simulator(mapping, num_payments=1).run()


def test_identical_explicit_pair_rejected(mapping):
    with pytest.raises(ValueError):
        make_simulator(mapping, amounts_sat=[1000]).run(pairs=[(1, 1)])


def test_real_router_outcomes(mapping):
    n1, n3, n4 = index(mapping, "n1", "n3", "n4")
    pairs = [(n1, n4), (n1, n3)]

    results = make_simulator(mapping, asns=(100,), amounts_sat=[10_000, 2_000_000],
                             keep_outcomes=True, workers=1).run(pairs)
    small = results.tallies[10_000]
    # n1 -> n2 -> n3 -> n4 crosses AS100 at n2, n1 -> n2 -> n3 as well
    assert small.outcomes == [(0, PaymentOutcome.censored(100)), (1, PaymentOutcome.censored(100))]
    large = results.tallies[2_000_000]
    assert large.failed_no_path == 2


def test_censoring_as_is_first_on_path(mapping):
    n1, n4 = index(mapping, "n1", "n4")
    results = make_simulator(mapping, asns=(200,), amounts_sat=[10_000]).run([(n1, n4)])
    tally = results.tallies[10_000]
    assert tally.censored == {200: 1}
    assert tally.delivered == 0


def test_endpoints_in_adversarial_as_are_not_censored(mapping):
    n2, n3, n4 = index(mapping, "n2", "n3", "n4")
    simulator = make_simulator(mapping, asns=(100,), router=lambda s, d, a: [n2, n3, n4])
    payment = Payment(index=0, source=n2, destination=n4, amount_msat=1000)
    outcome, exposed = simulator.simulate_payment(payment)
    assert outcome == PaymentOutcome.delivered()
    assert exposed == []
    assert payment.state == PaymentState.DONE


def test_exposure_lists_every_adversary_on_path(mapping):
    n1, n2, n3, n4, n5 = index(mapping, "n1", "n2", "n3", "n4", "n5")
    path = [n5, n4, n3, n2, n1]
    simulator = make_simulator(mapping, asns=(200, 100), router=lambda s, d, a: path)
    outcome, exposed = simulator.simulate_payment(Payment(0, n5, n1, 1000))
    assert outcome == PaymentOutcome.censored(100)
    assert exposed == [100, 200]


def test_no_path_outcome(mapping):
    simulator = make_simulator(mapping, asns=(100,), router=lambda s, d, a: None)
    outcome, exposed = simulator.simulate_payment(Payment(0, 0, 1, 1000))
    assert outcome.kind == OutcomeKind.FAILED_NO_PATH
    assert exposed == []


def test_tally_accounts_for_every_payment(mapping):
    results = make_simulator(mapping, asns=(100, 200), num_payments=60,
                             amounts_sat=[100, 10_000, 600_000]).run()
    for tally in results.tallies.values():
        assert tally.total == 60
        assert tally.delivered + tally.failed_no_path + tally.failed_censored == 60


def test_censorship_only_removes_deliverable_payments(mapping):
    pairs = make_simulator(mapping).draw_pairs(80)
    clean = make_simulator(mapping, amounts_sat=[10_000]).run(pairs).tallies[10_000]
    attacked = make_simulator(mapping, asns=(100,), amounts_sat=[10_000]).run(pairs).tallies[10_000]

    assert clean.failed_censored == 0
    assert attacked.baseline_delivered == clean.delivered
    assert attacked.failed_no_path == clean.failed_no_path


def test_parallel_run_matches_sequential(mapping):
    kwargs = dict(seed=11, num_payments=97, amounts_sat=[1_000, 600_000], keep_outcomes=True)
    sequential = make_simulator(mapping, asns=(100, 200), workers=1, **kwargs).run()
    parallel = make_simulator(mapping, asns=(100, 200), workers=3, **kwargs).run()

    assert sequential.outcome_records() == parallel.outcome_records()
    assert sequential.censorship_records() == parallel.censorship_records()
    for amount in kwargs["amounts_sat"]:
        outcomes = parallel.tallies[amount].outcomes
        assert [i for i, _ in outcomes] == list(range(97))
        assert outcomes == sequential.tallies[amount].outcomes


def test_zero_payments(mapping):
    results = make_simulator(mapping, num_payments=0, amounts_sat=[1000]).run()
    assert results.tallies[1000].total == 0


def test_payment_lifecycle():
    payment = Payment(index=4, source=0, destination=2, amount_msat=1000, seed=19)
    assert payment.payment_id == "19-4"
    with pytest.raises(RuntimeError):
        payment.finish(PaymentOutcome.delivered())
    payment.mark_routed([0, 1, 2])
    assert payment.intermediates == [1]
    with pytest.raises(RuntimeError):
        payment.mark_routed([0, 2])
    payment.finish(PaymentOutcome.delivered())
    assert payment.outcome.succeeded


def test_outcome_tag_validation():
    with pytest.raises(ValueError):
        PaymentOutcome(OutcomeKind.FAILED_CENSORED)
    with pytest.raises(ValueError):
        PaymentOutcome(OutcomeKind.DELIVERED, asn=3)
    assert str(PaymentOutcome.censored(3)) == "failed_censored(3)"


@pytest.mark.parametrize("pair", [(0, 99), (-1, 2)])
def test_explicit_pair_outside_graph_rejected(mapping, pair):
    with pytest.raises(ValueError, match="not a node with channels"):
        make_simulator(mapping, amounts_sat=[1000]).run(pairs=[pair])


def test_explicit_pair_with_isolated_node_rejected():
    graph = Graph()
    for name in ("a", "b", "lonely"):
        graph.add_node(Node(name))
    graph.add_channel(Channel("ab", 0, 1, 1000, FeePolicy(), FeePolicy()))
    mapping = ASMapping(graph, [0, 0, 0])
    with pytest.raises(ValueError, match="not a node with channels"):
        make_simulator(mapping, amounts_sat=[1000]).run(pairs=[(0, 2)])


def test_from_config_selects_adversaries(mapping):
    config = SimulationConfig(num_adv_as=1, as_strategy=0, amounts_sat=[10_000], num_payments=10)
    simulator = PaymentSimulator.from_config(mapping, config)
    assert simulator.adversaries.asns == (100,)
    assert simulator.adversaries.strategy == AsSelectionStrategy.MAX_NODES
    assert simulator.adversaries.requested == 1

    by_channels = PaymentSimulator.from_config(mapping, SimulationConfig(num_adv_as=5))
    assert by_channels.adversaries.asns == (100, 200)
    assert by_channels.adversaries.shortfall == 3
