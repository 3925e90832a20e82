"""
Command-line interfaces: the censorship simulator and the two topology
analysis tools.
"""

import click
import logging
import sys

from .asn import ASN_DB_ENV, AddressLookup, ASMapping, ASNMapper
from .errors import LnCensorError, OutputWriteError
from .network import GraphSource, load_graph
from .results import ResultAggregator, write_csv
from .simulator import DEFAULT_AMOUNTS_SAT, PaymentSimulator, SimulationConfig


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "off": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


def common_options(default_out):
    """Options shared by all three tools."""
    options = [
        click.argument('graph_file', type=click.Path(exists=True, dir_okay=False)),
        click.argument('verbose', required=False, default=False, type=click.BOOL),
        click.option('--log', '-l', 'log_level', default='info',
                     type=click.Choice(list(LOG_LEVELS), case_sensitive=False),
                     help='Log level'),
        click.option('--out', '-o', 'output', type=click.Path(), default=default_out,
                     show_default=True, help='Where the results will be stored'),
        click.option('--graph-source', '-g', default='lnd',
                     type=click.Choice([s.value for s in GraphSource]),
                     help='Format of the topology file'),
        click.option('--asn-db', type=click.Path(), envvar=ASN_DB_ENV,
                     help='Path to the pyasn IPASN dataset'),
    ]

    def decorator(f):
        for option in reversed(options):
            f = option(f)
        return f
    return decorator


def setup_logging(log_level: str, verbose: bool) -> None:
    level = logging.DEBUG if verbose else LOG_LEVELS[log_level.lower()]
    logging.getLogger().setLevel(level)


def build_mapping(graph_file: str, graph_source: str, asn_db) -> ASMapping:
    """Load the topology and attribute its nodes to ASes."""
    graph = load_graph(graph_file, GraphSource(graph_source))
    mapper = ASNMapper(AddressLookup(asn_db))
    return mapper.map(graph)


def fail(error: Exception) -> None:
    logger.error(str(error))
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


@click.command()
@common_options(default_out='sim-results')
@click.option('--amount', '-a', type=click.IntRange(min=1),
              help='The payment volume (in sat) to route; defaults to a sweep of amounts')
@click.option('--run', '-r', 'seed', default=19, show_default=True, type=int,
              help='Seed for the simulation')
@click.option('--payments', '-p', 'num_payments', default=1000, show_default=True,
              type=click.IntRange(min=0), help='Number of src/dest pairs to simulate')
@click.option('--num-as', '-n', 'num_adv_as', default=5, show_default=True,
              type=click.IntRange(min=0), help='Number of adversarial ASes (top-n)')
@click.option('--as-strategy', '-s', default=1, show_default=True,
              type=click.IntRange(0, 1),
              help='Ranking of adversarial ASes: 0 by nodes, 1 by channels')
@click.option('--workers', '-w', default=4, show_default=True, type=click.IntRange(min=1),
              help='Worker threads used for routing payments')
@click.option('--plot', is_flag=True, help='Also write HTML plots to the results directory')
def simulator(graph_file, verbose, log_level, output, graph_source, asn_db,
              amount, seed, num_payments, num_adv_as, as_strategy, workers, plot):
    """Simulate AS-level censorship of payments over GRAPH_FILE."""
    setup_logging(log_level, verbose)

    try:
        mapping = build_mapping(graph_file, graph_source, asn_db)
        logger.info(f"Simulation results will be written to {output}/")

        config = SimulationConfig(
            seed=seed,
            amounts_sat=[amount] if amount else list(DEFAULT_AMOUNTS_SAT),
            num_payments=num_payments,
            num_adv_as=num_adv_as,
            as_strategy=as_strategy,
            workers=workers,
            verbose=verbose,
        )
        sim = PaymentSimulator.from_config(mapping, config)
        adversaries = sim.adversaries
        results = sim.run()
        results.write_run(output)

        if plot:
            write_plots(results, output)
    except (LnCensorError, ValueError) as e:
        fail(e)

    click.echo("\n=== Simulation Results ===")
    click.echo(f"Adversarial ASes: {', '.join(map(str, adversaries.asns)) or 'none'}")
    if adversaries.shortfall:
        click.echo(f"Eligibility shortfall: {adversaries.shortfall}")
    for record in results.outcome_records():
        click.echo(f"{record['amount_sat']:>10} sat: delivered={record['delivered']} "
                   f"no_path={record['failed_no_path']} censored={record['failed_censored']}")
    click.echo(f"Results saved to: {output}")


def write_plots(results: ResultAggregator, output: str) -> None:
    from .visualization import Visualizer, save_plots

    visualizer = Visualizer()
    figures = {
        "outcomes_by_amount": visualizer.plot_outcomes_by_amount(results),
        "censorship_by_as": visualizer.plot_censorship_by_as(results),
        "as_distribution": visualizer.plot_as_distribution(results.mapping),
    }
    try:
        save_plots(figures, output, ["html"])
    except OSError as e:
        raise OutputWriteError(output, e.strerror or str(e)) from e


@click.command()
@common_options(default_out='ln-topology-analysis.csv')
@click.option('--overwrite', '-u', is_flag=True,
              help='Overwrite the existing file, if it exists')
@click.option('--per-node', is_flag=True,
              help='One row per node instead of one row per AS')
def as_node_degree(graph_file, verbose, log_level, output, graph_source, asn_db,
                   overwrite, per_node):
    """Write the channel degree of every AS found in GRAPH_FILE."""
    setup_logging(log_level, verbose)
    logger.info(f"Topology analysis will be written to {output}")

    try:
        results = ResultAggregator(build_mapping(graph_file, graph_source, asn_db))
        if per_node:
            write_csv(results.node_degree_records(), output,
                      ResultAggregator.NODE_DEGREE_COLUMNS, overwrite=overwrite)
        else:
            write_csv(results.degree_records(), output,
                      ResultAggregator.DEGREE_COLUMNS, overwrite=overwrite)
    except (LnCensorError, ValueError) as e:
        fail(e)

    click.echo(f"CSV successfully written to {output}")


@click.command()
@common_options(default_out='ln-intra-channels.csv')
@click.option('--overwrite', '-u', is_flag=True,
              help='Overwrite the existing file, if it exists')
@click.option('--per-node', is_flag=True,
              help='Per-node share of intra-AS channels instead of per-AS counts')
def intra_as_channels(graph_file, verbose, log_level, output, graph_source, asn_db,
                      overwrite, per_node):
    """Write intra- and inter-AS channel counts of every AS found in GRAPH_FILE."""
    setup_logging(log_level, verbose)
    logger.info(f"Topology analysis will be written to {output}")

    try:
        results = ResultAggregator(build_mapping(graph_file, graph_source, asn_db))
        if per_node:
            write_csv(results.intra_ratio_records(), output,
                      ResultAggregator.INTRA_RATIO_COLUMNS, overwrite=overwrite)
        else:
            write_csv(results.intra_inter_records(), output,
                      ResultAggregator.INTRA_INTER_COLUMNS, overwrite=overwrite)
    except (LnCensorError, ValueError) as e:
        fail(e)

    click.echo(f"CSV successfully written to {output}")


if __name__ == '__main__':
    simulator()
