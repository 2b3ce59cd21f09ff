"""
Portfolio Risk - Stock Return Statistics and Markowitz Optimization
===================================================================

Daily price data in, risk metrics and optimized portfolios out.

Usage:
    from portfolio_risk import load_prices, compute_statistics, PortfolioOptimizer
    from portfolio_risk.visualization import plot_monte_carlo_frontier

Classes:
    PriceLoader - Price loading and cleaning from CSV/Excel
    PortfolioOptimizer - Monte Carlo frontier and constrained minimum variance

Functions:
    compute_statistics - Annualized mean vector and covariance from prices
    asset_risk_summary - Volatility, Sharpe ratio, VaR and Beta per instrument
    generate_sample_prices - Create synthetic test prices
"""

from portfolio_risk.core.loader import PriceLoader, load_prices, generate_sample_prices
from portfolio_risk.core.returns import compute_statistics
from portfolio_risk.core.risk import asset_risk_summary
from portfolio_risk.core.optimizer import PortfolioOptimizer
from portfolio_risk.core.exceptions import (
    CovarianceMatrixError,
    DataValidationError,
    InfeasibleConstraintsError,
    OptimizationError,
)

__version__ = "1.0.0"

__all__ = [
    "PriceLoader",
    "PortfolioOptimizer",
    "load_prices",
    "generate_sample_prices",
    "compute_statistics",
    "asset_risk_summary",
    "CovarianceMatrixError",
    "DataValidationError",
    "InfeasibleConstraintsError",
    "OptimizationError",
]
