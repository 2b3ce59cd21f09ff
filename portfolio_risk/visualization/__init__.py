"""Visualization modules for portfolio risk analysis."""

from portfolio_risk.visualization.plots import (
    plot_monte_carlo_frontier,
    plot_portfolio_weights,
    plot_rolling_volatility
)

__all__ = [
    "plot_monte_carlo_frontier",
    "plot_portfolio_weights",
    "plot_rolling_volatility",
]
