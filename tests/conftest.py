"""Shared fixtures for the portfolio_risk test suite."""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from portfolio_risk import config
from portfolio_risk.core.loader import generate_sample_prices
from portfolio_risk.core.returns import compute_statistics


@pytest.fixture
def sample_prices():
    """Two years of synthetic prices for the ten portfolio tickers plus the benchmark."""
    return generate_sample_prices(config.TICKERS + [config.BENCHMARK], n_days=504, seed=7)


@pytest.fixture
def sample_stats(sample_prices):
    return compute_statistics(sample_prices, tickers=config.TICKERS)


@pytest.fixture
def small_prices():
    """Hand-made prices with an interior gap and a late-listing ticker."""
    dates = pd.bdate_range("2024-01-01", periods=6, name="date")
    return pd.DataFrame({
        'AAA': [100.0, 101.0, np.nan, 103.0, 102.0, 104.0],
        'BBB': [np.nan, np.nan, 50.0, 51.0, 50.5, 52.0],
    }, index=dates)
