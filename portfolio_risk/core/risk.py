"""
Per-instrument risk metrics: rolling volatility, Sharpe ratio, historical
Value at Risk and Beta against a benchmark.

Undefined results are NaN, never 0. Callers must check before doing
arithmetic with them.
"""

import warnings
from typing import Optional, Union

import numpy as np
import pandas as pd

from portfolio_risk.core.exceptions import DataValidationError
from portfolio_risk.core.returns import TRADING_DAYS, compute_daily_returns


ArrayLike = Union[pd.Series, np.ndarray, list]


def rolling_volatility(
    series: Union[pd.Series, pd.DataFrame],
    window: int = 20
) -> Union[pd.Series, pd.DataFrame]:
    """
    Trailing rolling standard deviation.

    The window ends at the current observation (never centered), so the
    first ``window - 1`` values are NaN. Works on prices or returns.

    Args:
        series: Observations in time order
        window: Number of observations per window

    Returns:
        Rolling standard deviation, same shape as the input
    """
    if window < 2:
        raise ValueError(f"Rolling window must be at least 2, got {window}")
    return series.rolling(window=window, min_periods=window, center=False).std(ddof=1)


def sharpe_ratio(
    returns: Union[pd.Series, pd.DataFrame],
    risk_free_rate: float = 0.0
) -> Union[float, pd.Series]:
    """
    Sharpe ratio over the full history.

    Formula: (mean(r) - rf) / std(r)

    ``risk_free_rate`` must be in the same period as the returns (daily for
    daily returns). NaN when the standard deviation is zero or there are
    fewer than two observations.

    Args:
        returns: Series, or DataFrame for one ratio per column
        risk_free_rate: Risk-free rate per period

    Returns:
        float for a Series, Series for a DataFrame
    """
    if isinstance(returns, pd.DataFrame):
        return returns.apply(lambda col: sharpe_ratio(col, risk_free_rate))

    values = pd.Series(returns, dtype=float).dropna()
    if len(values) < 2:
        return float("nan")
    std = values.std(ddof=1)
    if not np.isfinite(std) or std == 0:
        return float("nan")
    return float((values.mean() - risk_free_rate) / std)


def value_at_risk(
    returns: Union[ArrayLike, pd.DataFrame],
    confidence: float = 0.95
) -> Union[float, pd.Series]:
    """
    Historical one-day Value at Risk.

    Returns the empirical quantile of the return distribution at
    probability ``1 - confidence``, linearly interpolated between the two
    bracketing order statistics. The value is a return (negative for a
    loss), e.g. -0.021 means a 2.1% daily loss is exceeded on about
    5% of days at 95% confidence.

    Args:
        returns: Daily returns; NaN are ignored
        confidence: Confidence level in (0, 1)

    Returns:
        float, or Series of one VaR per column for a DataFrame
    """
    if not 0 < confidence < 1:
        raise ValueError(f"Confidence must be in (0, 1), got {confidence}")

    if isinstance(returns, pd.DataFrame):
        return returns.apply(lambda col: value_at_risk(col, confidence))

    values = np.asarray(returns, dtype=float)
    values = values[~np.isnan(values)]
    if values.size == 0:
        return float("nan")
    return float(np.quantile(values, 1 - confidence, method="linear"))


def beta(asset_returns: ArrayLike, benchmark_returns: ArrayLike) -> float:
    """
    Beta of an instrument against a benchmark.

    Formula: cov(r_i, r_B) / var(r_B)

    Only dates where both returns are defined are used. Both moments share
    the same centering and denominator, so a series against itself gives
    exactly 1.0.

    Args:
        asset_returns: Instrument returns
        benchmark_returns: Benchmark returns (same length / index)

    Returns:
        Beta, or NaN with fewer than 2 paired observations or a flat benchmark
    """
    if isinstance(asset_returns, pd.Series) and isinstance(benchmark_returns, pd.Series):
        paired = pd.concat([asset_returns, benchmark_returns], axis=1, join="inner")
        x = paired.iloc[:, 0].to_numpy(dtype=float)
        y = paired.iloc[:, 1].to_numpy(dtype=float)
    else:
        x = np.asarray(asset_returns, dtype=float)
        y = np.asarray(benchmark_returns, dtype=float)
        if x.shape != y.shape:
            raise ValueError(f"Return series have different lengths: {x.shape} vs {y.shape}")

    mask = ~(np.isnan(x) | np.isnan(y))
    x, y = x[mask], y[mask]
    if x.size < 2:
        return float("nan")

    dx = x - x.mean()
    dy = y - y.mean()
    var_b = np.dot(dy, dy) / (y.size - 1)
    if var_b == 0:
        return float("nan")
    cov_ab = np.dot(dx, dy) / (x.size - 1)
    return float(cov_ab / var_b)


def flag_suspicious_returns(returns: pd.DataFrame, limit: float = 0.30) -> pd.DataFrame:
    """
    Return the (date, instrument) cells whose absolute daily move exceeds ``limit``.

    A warning is issued when any are found; the data is left untouched.
    """
    rows, cols = np.nonzero((returns.abs() > limit).to_numpy())
    flagged = pd.DataFrame({
        'date': returns.index[rows],
        'instrument': returns.columns[cols],
        'return': returns.to_numpy()[rows, cols]
    })
    if len(flagged):
        warnings.warn(f"{len(flagged)} daily returns exceed +/-{limit:.0%}; check for bad prices")
    return flagged


def asset_risk_summary(
    prices: pd.DataFrame,
    benchmark: Optional[str] = None,
    confidence: float = 0.95,
    risk_free_rate: float = 0.0,
    trading_days: int = TRADING_DAYS
) -> pd.DataFrame:
    """
    One row of descriptive and risk statistics per instrument.

    Columns:
        annual_return: mean daily return x trading_days
        annual_volatility: daily std x sqrt(trading_days)
        sharpe_ratio: daily Sharpe (rf per day)
        value_at_risk: historical daily VaR at ``confidence``
        beta: against ``benchmark`` (NaN if no benchmark)

    Args:
        prices: Clean price table; may include the benchmark column
        benchmark: Column name of the benchmark index
        confidence: VaR confidence level
        risk_free_rate: Daily risk-free rate for the Sharpe ratio
        trading_days: Annualization factor

    Returns:
        DataFrame indexed by instrument
    """
    if benchmark is not None and benchmark not in prices.columns:
        raise DataValidationError(f"Benchmark '{benchmark}' not in price data")

    returns = compute_daily_returns(prices)
    bench = returns[benchmark] if benchmark is not None else None

    rows = {}
    for name in returns.columns:
        r = returns[name].dropna()
        rows[name] = {
            'annual_return': r.mean() * trading_days if len(r) else np.nan,
            'annual_volatility': r.std(ddof=1) * np.sqrt(trading_days) if len(r) > 1 else np.nan,
            'sharpe_ratio': sharpe_ratio(r, risk_free_rate),
            'value_at_risk': value_at_risk(r, confidence),
            'beta': beta(returns[name], bench) if bench is not None else np.nan,
        }

    summary = pd.DataFrame.from_dict(rows, orient="index")
    summary.index.name = "instrument"
    return summary
