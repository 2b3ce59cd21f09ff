"""
Plotting Module for Portfolio Risk Analysis
===========================================

Static matplotlib charts for the analysis results:
- Monte Carlo portfolios on the risk-return plane, colored by Sharpe ratio,
  with individual assets and the constrained minimum variance portfolio
- Bar chart of portfolio weights
- Rolling volatility per instrument

Every function returns the Figure and optionally saves it.
"""

from typing import Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from portfolio_risk.core.optimizer import PortfolioOptimizer
from portfolio_risk.core.records import FrontierSamples, OptimalPortfolio


def plot_monte_carlo_frontier(
    optimizer: PortfolioOptimizer,
    samples: FrontierSamples,
    optimal: Optional[OptimalPortfolio] = None,
    show_assets: bool = True,
    figsize: Tuple[int, int] = (12, 8),
    save_path: Optional[str] = None,
    title: str = "Monte Carlo Portfolios and Minimum Variance Portfolio"
) -> Figure:
    """
    Scatter the sampled portfolios in the risk-return plane.

    Args:
        optimizer: PortfolioOptimizer the samples were scored with
        samples: Monte Carlo samples
        optimal: Optional constrained minimum variance portfolio to highlight
        show_assets: If True, show individual assets
        figsize: Figure size (width, height)
        save_path: If provided, save the figure to this path
        title: Plot title

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    table = samples.table
    points = ax.scatter(table['risk'] * 100, table['expected_return'] * 100,
                        c=table['sharpe_ratio'], cmap='viridis', s=8, alpha=0.6,
                        zorder=2)
    fig.colorbar(points, ax=ax, label='Sharpe Ratio')

    # Highest Sharpe sample
    best = samples.best_sharpe()
    if best is not None:
        ax.scatter([best['risk'] * 100], [best['expected_return'] * 100],
                   c='gold', s=200, marker='D', edgecolors='black',
                   label=f"Best Sample (Sharpe={best['sharpe_ratio']:.3f})", zorder=6)

    if show_assets:
        asset_stds = np.sqrt(np.diag(optimizer.cov_matrix))
        asset_returns = optimizer.expected_returns
        ax.scatter(asset_stds * 100, asset_returns * 100,
                   c='red', s=100, marker='o', edgecolors='black',
                   label='Individual Assets', zorder=5)

        for i, name in enumerate(optimizer.asset_names):
            ax.annotate(name,
                        (asset_stds[i] * 100, asset_returns[i] * 100),
                        xytext=(5, 5), textcoords='offset points',
                        fontsize=9, fontweight='bold')

    if optimal is not None:
        ax.scatter([optimal.risk * 100], [optimal.expected_return * 100],
                   c='purple', s=250, marker='*', edgecolors='black',
                   label=f"Min Variance (σ={optimal.risk*100:.2f}%, μ={optimal.expected_return*100:.2f}%)",
                   zorder=7)

    ax.set_xlabel('Risk (Annualized Std Dev) %', fontsize=12)
    ax.set_ylabel('Expected Annual Return %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_portfolio_weights(
    optimal: OptimalPortfolio,
    title: str = "Minimum Variance Portfolio Weights",
    figsize: Tuple[int, int] = (10, 6),
    save_path: Optional[str] = None
) -> Figure:
    """
    Create a bar chart of portfolio weights with the box bounds marked.

    Args:
        optimal: Portfolio to draw
        title: Plot title
        figsize: Figure size
        save_path: Optional path to save figure

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    percentages = optimal.as_percentages()
    names = list(percentages.keys())
    values = list(percentages.values())

    bars = ax.bar(names, values, color='steelblue', edgecolor='black')

    for bar, pct in zip(bars, values):
        ax.annotate(f'{pct:.2f}%',
                    xy=(bar.get_x() + bar.get_width() / 2, bar.get_height()),
                    xytext=(0, 3), textcoords='offset points',
                    ha='center', va='bottom', fontsize=10, fontweight='bold')

    if optimal.min_weight is not None:
        ax.axhline(y=optimal.min_weight * 100, color='gray', linestyle='--', linewidth=1,
                   label=f'Min {optimal.min_weight*100:.0f}%')
    if optimal.max_weight is not None:
        ax.axhline(y=optimal.max_weight * 100, color='red', linestyle='--', linewidth=1,
                   label=f'Max {optimal.max_weight*100:.0f}%')
    if optimal.min_weight is not None or optimal.max_weight is not None:
        ax.legend(fontsize=10)

    ax.set_xlabel('Assets', fontsize=12)
    ax.set_ylabel('Weight %', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.grid(True, axis='y', alpha=0.3)
    plt.setp(ax.get_xticklabels(), rotation=45)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig


def plot_rolling_volatility(
    volatility: pd.DataFrame,
    window: int,
    figsize: Tuple[int, int] = (12, 6),
    save_path: Optional[str] = None,
    title: Optional[str] = None
) -> Figure:
    """
    Line chart of rolling volatility, one line per instrument.

    Args:
        volatility: Output of ``rolling_volatility`` on a returns table
        window: Window length, used in the title
        figsize: Figure size
        save_path: Optional path to save figure
        title: Plot title

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    for name in volatility.columns:
        ax.plot(volatility.index, volatility[name] * 100, linewidth=1.2, label=str(name))

    ax.set_xlabel('Date', fontsize=12)
    ax.set_ylabel('Daily Volatility %', fontsize=12)
    ax.set_title(title or f'{window}-Day Rolling Volatility', fontsize=14, fontweight='bold')
    ax.legend(loc='upper left', fontsize=9, ncol=2)
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')

    return fig
