"""
Typed records passed between pipeline stages.

Each stage hands the next one a fixed schema:

    prices (DataFrame) -> ReturnMatrix -> ReturnStatistics
        -> FrontierSamples / OptimalPortfolio
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from portfolio_risk.config import TRADING_DAYS


@dataclass
class ReturnMatrix:
    """Simple daily returns, rows = dates, columns = instruments."""
    returns: pd.DataFrame

    @property
    def asset_names(self) -> List[str]:
        return [str(c) for c in self.returns.columns]

    @property
    def n_observations(self) -> int:
        return len(self.returns)


@dataclass
class ReturnStatistics:
    """
    Annualized mean vector and covariance matrix.

    Attributes:
        asset_names: Instrument ordering shared by both arrays
        mean_returns: Annualized expected return per instrument (N,)
        cov_matrix: Annualized covariance matrix (N x N)
        n_observations: Number of return rows used in the estimate
        trading_days: Annualization factor applied to the daily estimates
    """
    asset_names: List[str]
    mean_returns: np.ndarray
    cov_matrix: np.ndarray
    n_observations: int
    trading_days: int = TRADING_DAYS

    @property
    def n_assets(self) -> int:
        return len(self.asset_names)

    def cov_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.cov_matrix, index=self.asset_names, columns=self.asset_names)


@dataclass
class FrontierSamples:
    """
    Monte Carlo portfolios.

    Attributes:
        weights: K x N array, one row per sampled portfolio
        table: K rows of expected_return, risk, sharpe_ratio
        asset_names: Column ordering of ``weights``
        method: Sampling method used ('uniform' or 'dirichlet')
    """
    weights: np.ndarray
    table: pd.DataFrame
    asset_names: List[str]
    method: str = "uniform"

    def __len__(self) -> int:
        return len(self.table)

    def best_sharpe(self) -> Optional[pd.Series]:
        """
        Row of the sample with the highest Sharpe ratio (NaN rows ignored).

        None when there are no samples or no sample has a defined Sharpe ratio.
        """
        sharpe = self.table["sharpe_ratio"]
        if not sharpe.notna().any():
            return None
        idx = sharpe.idxmax()
        row = self.table.loc[idx].copy()
        for name, w in zip(self.asset_names, self.weights[idx]):
            row[name] = w
        return row

    def to_frame(self) -> pd.DataFrame:
        """Samples with one weight column per instrument appended."""
        weights = pd.DataFrame(self.weights, columns=self.asset_names, index=self.table.index)
        return pd.concat([self.table, weights], axis=1)


@dataclass
class OptimalPortfolio:
    """Solution of the box-constrained minimum-variance problem."""
    asset_names: List[str]
    weights: np.ndarray
    expected_return: float
    risk: float
    sharpe_ratio: float
    min_weight: Optional[float] = None
    max_weight: Optional[float] = None
    solver_info: Dict[str, object] = field(default_factory=dict)

    def as_percentages(self, decimals: int = 2) -> Dict[str, float]:
        """Map instrument name to weight in percent, rounded for display."""
        return {
            name: round(float(w) * 100, decimals)
            for name, w in zip(self.asset_names, self.weights)
        }
