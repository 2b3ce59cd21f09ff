"""
Return Statistics Module
========================

Turns a clean price table into the inputs of the optimizer:

1. Simple daily returns: r[t] = price[t] / price[t-1] - 1
2. Listwise deletion of dates where any instrument's return is undefined
3. Annualized mean vector and covariance matrix

Modeling assumption
-------------------
Annualization multiplies the daily mean and the daily covariance by the
number of trading days (252). This holds only if daily returns are i.i.d.;
it is an assumption of the analysis, not a property of the data.
"""

from typing import Optional

import numpy as np
import pandas as pd

from portfolio_risk.config import TRADING_DAYS
from portfolio_risk.core.exceptions import DataValidationError
from portfolio_risk.core.loader import validate_prices
from portfolio_risk.core.records import ReturnMatrix, ReturnStatistics


def compute_daily_returns(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Compute simple daily returns.

    The first date has no previous price, so its return is NaN; so is any
    date where either price is missing.

    Args:
        prices: Price table (dates x instruments)

    Returns:
        DataFrame of daily returns with the same index and columns
    """
    validate_prices(prices)
    # fill_method=None: a missing price must yield a missing return
    return prices.pct_change(fill_method=None)


def drop_undefined_rows(returns: pd.DataFrame) -> ReturnMatrix:
    """
    Keep only dates where every instrument has a defined return.

    Args:
        returns: Daily returns, possibly with NaN

    Returns:
        ReturnMatrix with complete rows only

    Raises:
        DataValidationError: If fewer than 2 complete rows remain
    """
    clean = returns.replace([np.inf, -np.inf], np.nan).dropna(how="any")
    if len(clean) < 2:
        raise DataValidationError(
            f"Only {len(clean)} dates with returns for all instruments; need at least 2"
        )
    return ReturnMatrix(clean)


def build_return_matrix(prices: pd.DataFrame) -> ReturnMatrix:
    """Prices -> aligned ReturnMatrix (returns then listwise deletion)."""
    return drop_undefined_rows(compute_daily_returns(prices))


def annualize_statistics(
    returns: ReturnMatrix,
    trading_days: int = TRADING_DAYS
) -> ReturnStatistics:
    """
    Compute the annualized mean vector and covariance matrix.

    Uses the sample covariance (N-1 denominator), then scales both the daily
    mean and the daily covariance by ``trading_days``.

    Args:
        returns: Complete-row return matrix
        trading_days: Annualization factor

    Returns:
        ReturnStatistics with instrument ordering taken from the columns
    """
    data = returns.returns.to_numpy(dtype=float)
    if np.isnan(data).any():
        raise DataValidationError("Return matrix contains undefined values; drop them first")

    n_periods, n_assets = data.shape
    mean_returns = data.mean(axis=0) * trading_days
    cov_matrix = np.cov(data, rowvar=False, ddof=1).reshape(n_assets, n_assets) * trading_days

    return ReturnStatistics(
        asset_names=returns.asset_names,
        mean_returns=mean_returns,
        cov_matrix=cov_matrix,
        n_observations=n_periods,
        trading_days=trading_days
    )


def pairwise_covariance(
    returns: pd.DataFrame,
    trading_days: int = TRADING_DAYS,
    min_periods: int = 2
) -> pd.DataFrame:
    """
    Annualized covariance using pairwise-complete observations.

    Each entry uses only the dates where both instruments have a return,
    so no row is discarded globally. The result is not guaranteed to be
    positive semi-definite.

    Args:
        returns: Daily returns with NaN where undefined
        trading_days: Annualization factor
        min_periods: Minimum overlapping observations per pair

    Returns:
        Covariance DataFrame (NaN where a pair has too little overlap)
    """
    return returns.cov(min_periods=min_periods) * trading_days


def compute_statistics(
    prices: pd.DataFrame,
    trading_days: int = TRADING_DAYS,
    tickers: Optional[list] = None
) -> ReturnStatistics:
    """
    Full calculator stage: prices -> returns -> annualized statistics.

    Args:
        prices: Clean price table
        trading_days: Annualization factor
        tickers: Optional subset / ordering of instruments

    Returns:
        ReturnStatistics
    """
    if tickers is not None:
        missing = [t for t in tickers if t not in prices.columns]
        if missing:
            raise DataValidationError(f"Tickers not in price data: {missing}")
        prices = prices[list(tickers)]
    return annualize_statistics(build_return_matrix(prices), trading_days)
