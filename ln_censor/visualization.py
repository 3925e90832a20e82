"""
Visualization tools for censorship simulation results.
"""

from typing import Dict, List
import logging
import os

import plotly.graph_objects as go

from .asn import ASMapping
from .results import ResultAggregator


logger = logging.getLogger(__name__)


class Visualizer:
    """Builds plotly figures from aggregated results."""

    def __init__(self, theme: str = "plotly_white"):
        self.theme = theme

    def plot_outcomes_by_amount(self, results: ResultAggregator) -> go.Figure:
        """Stacked payment outcomes for each simulated amount."""
        records = results.outcome_records()
        amounts = [str(r["amount_sat"]) for r in records]

        fig = go.Figure()
        for column, name, color in (("delivered", "Delivered", "lightgreen"),
                                    ("failed_censored", "Censored", "red"),
                                    ("failed_no_path", "No path", "lightgray")):
            fig.add_trace(go.Bar(
                x=amounts,
                y=[r[column] for r in records],
                name=name,
                marker_color=color
            ))

        fig.update_layout(
            barmode='stack',
            title="Payment Outcomes by Amount",
            xaxis_title="Payment Amount (sat)",
            yaxis_title="Number of Payments",
            template=self.theme
        )
        return fig

    def plot_censorship_by_as(self, results: ResultAggregator) -> go.Figure:
        """Censored payments per adversarial AS, one line per AS."""
        by_asn: Dict[int, List[dict]] = {}
        for record in results.censorship_records():
            by_asn.setdefault(record["asn"], []).append(record)

        if not by_asn:
            return go.Figure().add_annotation(
                text="No adversarial ASes selected",
                xref="paper", yref="paper",
                x=0.5, y=0.5, showarrow=False
            )

        fig = go.Figure()
        for asn, records in by_asn.items():
            fig.add_trace(go.Scatter(
                x=[r["amount_sat"] for r in records],
                y=[r["censored"] for r in records],
                mode='lines+markers',
                name=f"AS{asn}",
                line=dict(width=3),
                marker=dict(size=8)
            ))

        fig.update_layout(
            title="Payments Censored per Adversarial AS",
            xaxis_title="Payment Amount (sat)",
            xaxis_type="log",
            yaxis_title="Censored Payments",
            template=self.theme,
            hovermode='x unified'
        )
        return fig

    def plot_as_distribution(self, mapping: ASMapping, top: int = 20) -> go.Figure:
        """Node and channel counts of the largest ASes."""
        systems = sorted(mapping.systems.values(),
                         key=lambda s: (-s.node_count, s.asn))[:top]
        labels = [f"AS{s.asn}" for s in systems]

        fig = go.Figure()
        fig.add_trace(go.Bar(x=labels, y=[s.node_count for s in systems], name='Nodes'))
        fig.add_trace(go.Bar(x=labels, y=[s.intra_channels for s in systems], name='Intra-AS channels'))
        fig.add_trace(go.Bar(x=labels, y=[s.inter_channels for s in systems], name='Inter-AS channels'))

        fig.update_layout(
            barmode='group',
            title=f"Top {len(systems)} ASes by Node Count",
            xaxis_title="Autonomous System",
            yaxis_title="Count",
            template=self.theme
        )
        return fig


def save_plots(figures: Dict[str, go.Figure],
               output_dir: str = "plots",
               formats: List[str] = ["html"]) -> None:
    """Save multiple plots to files."""
    os.makedirs(output_dir, exist_ok=True)

    for name, fig in figures.items():
        for fmt in formats:
            filepath = os.path.join(output_dir, f"{name}.{fmt}")

            if fmt == "html":
                fig.write_html(filepath)
            elif fmt in ("png", "pdf"):
                fig.write_image(filepath, width=1200, height=800)
            logger.debug(f"Saved plot {filepath}")
