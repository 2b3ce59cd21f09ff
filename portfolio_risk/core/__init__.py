"""Core computational modules: loading, return statistics, risk metrics, optimization."""

from portfolio_risk.core.loader import PriceLoader, load_prices, generate_sample_prices, forward_fill_prices
from portfolio_risk.core.returns import compute_daily_returns, build_return_matrix, annualize_statistics, compute_statistics
from portfolio_risk.core.risk import rolling_volatility, sharpe_ratio, value_at_risk, beta, asset_risk_summary
from portfolio_risk.core.optimizer import PortfolioOptimizer, sample_random_portfolios, sample_random_portfolios_parallel

__all__ = [
    "PriceLoader",
    "load_prices",
    "generate_sample_prices",
    "forward_fill_prices",
    "compute_daily_returns",
    "build_return_matrix",
    "annualize_statistics",
    "compute_statistics",
    "rolling_volatility",
    "sharpe_ratio",
    "value_at_risk",
    "beta",
    "asset_risk_summary",
    "PortfolioOptimizer",
    "sample_random_portfolios",
    "sample_random_portfolios_parallel",
]
