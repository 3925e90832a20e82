#!/usr/bin/env python3
"""
Adversary sweep example.

This script compares how much of the payment traffic the top-N ASes can
censor when ranked by node count versus channel count.

Usage: python adversary_sweep.py <describegraph.json> <ipasn.dat>
"""

import sys
sys.path.append('..')

import plotly.graph_objects as go

from ln_censor import (
    AddressLookup, ASNMapper, AsSelectionStrategy, PaymentSimulator,
    SimulationConfig, load_graph, select_adversaries
)


def adversary_sweep(graph_file, asn_db, amount_sat=100_000):
    """Censorship rate for a growing number of adversarial ASes."""
    graph = load_graph(graph_file)
    mapping = ASNMapper(AddressLookup(asn_db)).map(graph)

    config = SimulationConfig(amounts_sat=[amount_sat], num_payments=1000)
    counts = range(1, 11)
    rates = {strategy: [] for strategy in AsSelectionStrategy}

    # Same payment pairs for every adversary set
    pairs = None
    for strategy in AsSelectionStrategy:
        print(f"Strategy {strategy.name.lower()}:")
        for n in counts:
            adversaries = select_adversaries(mapping, strategy, n)
            simulator = PaymentSimulator(graph, mapping, adversaries, config)
            if pairs is None:
                pairs = simulator.draw_pairs(config.num_payments)
            tally = simulator.run(pairs).tallies[amount_sat]
            rates[strategy].append(tally.censorship_rate)
            print(f"  top-{n:<2} censored {tally.censorship_rate:.3f}")

    fig = go.Figure()
    for strategy, values in rates.items():
        fig.add_trace(go.Scatter(
            x=list(counts),
            y=values,
            mode='lines+markers',
            name=strategy.name.lower()
        ))
    fig.update_layout(
        title=f"Censored Payments of {amount_sat} sat vs Adversary Size",
        xaxis_title="Number of adversarial ASes",
        yaxis_title="Censorship rate",
        template="plotly_white"
    )
    fig.write_html('adversary_sweep.html')
    print("Plot saved to 'adversary_sweep.html'")


if __name__ == '__main__':
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    adversary_sweep(*sys.argv[1:])
