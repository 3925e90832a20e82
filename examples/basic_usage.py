#!/usr/bin/env python3
"""
Basic usage example for the ln-censor toolkit.

This script demonstrates the fundamental workflow:
1. Load a channel graph dump
2. Attribute nodes to Autonomous Systems
3. Select the strongest ASes as adversaries
4. Simulate payments and count the censored ones
5. Visualize results

Usage: python basic_usage.py <describegraph.json> <ipasn.dat>
"""

import sys
sys.path.append('..')

from ln_censor import (
    AddressLookup, ASNMapper, AsSelectionStrategy, PaymentSimulator,
    SimulationConfig, load_graph, select_adversaries
)
from ln_censor.visualization import Visualizer


def main():
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    graph_file, asn_db = sys.argv[1:]

    print("ln-censor - Basic Example")
    print("=" * 40)

    # Step 1: Load the topology
    print("\n1. Loading channel graph...")
    graph = load_graph(graph_file)
    print(f"   {graph}")

    # Step 2: Map nodes onto ASes
    print("\n2. Mapping nodes to ASes...")
    mapping = ASNMapper(AddressLookup(asn_db)).map(graph)
    print(f"   Found {len(mapping)} ASes")
    print(f"   Nodes without a resolvable address: {mapping.unresolved_share:.1%}")

    # Step 3: Pick adversaries
    print("\n3. Selecting the 5 ASes with most channels...")
    adversaries = select_adversaries(mapping, AsSelectionStrategy.MAX_CHANNELS, 5)
    for asn in adversaries:
        system = mapping.systems[asn]
        print(f"   AS{asn}: {system.node_count} nodes, {system.total_channels} channels")

    # Step 4: Run simulation
    print("\n4. Simulating 500 payments per amount...")
    config = SimulationConfig(
        seed=19,
        amounts_sat=[1_000, 100_000, 1_000_000],
        num_payments=500,
    )
    results = PaymentSimulator(graph, mapping, adversaries, config).run()

    # Step 5: Display results
    print("\n5. Results:")
    for amount, tally in results.tallies.items():
        print(f"   {amount:>9} sat: success {tally.success_rate:.3f}, "
              f"censored {tally.censorship_rate:.3f}, "
              f"without adversaries {tally.baseline_delivered / tally.total:.3f}")

    # Step 6: Basic visualization
    print("\n6. Creating visualization...")
    fig = Visualizer().plot_outcomes_by_amount(results)
    fig.write_html('basic_example_results.html')
    print("   Visualization saved to 'basic_example_results.html'")

    print("\nExample completed successfully!")


if __name__ == '__main__':
    main()
