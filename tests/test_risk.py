import numpy as np
import pandas as pd
import pytest

from portfolio_risk.core.exceptions import DataValidationError
from portfolio_risk.core.returns import compute_daily_returns
from portfolio_risk.core.risk import (
    asset_risk_summary,
    beta,
    flag_suspicious_returns,
    rolling_volatility,
    sharpe_ratio,
    value_at_risk,
)


@pytest.mark.parametrize("window", [20, 30])
def test_rolling_volatility_leading_undefined_values(sample_prices, window):
    series = sample_prices['AAPL']
    vol = rolling_volatility(series, window)

    assert vol.iloc[:window - 1].isna().all()
    assert vol.iloc[window - 1:].notna().all()
    assert len(vol) == len(series)


def test_rolling_volatility_is_trailing():
    series = pd.Series([1.0, 2.0, 3.0, 10.0, 20.0])
    vol = rolling_volatility(series, 3)

    assert vol.iloc[2] == pytest.approx(np.std([1.0, 2.0, 3.0], ddof=1))
    assert vol.iloc[4] == pytest.approx(np.std([3.0, 10.0, 20.0], ddof=1))


def test_rolling_volatility_rejects_tiny_window():
    with pytest.raises(ValueError):
        rolling_volatility(pd.Series([1.0, 2.0]), 1)


def test_sharpe_ratio_matches_formula():
    returns = pd.Series([0.01, -0.02, 0.03, 0.005])
    expected = returns.mean() / returns.std(ddof=1)
    assert sharpe_ratio(returns) == pytest.approx(expected)

    with_rf = (returns.mean() - 0.001) / returns.std(ddof=1)
    assert sharpe_ratio(returns, risk_free_rate=0.001) == pytest.approx(with_rf)


def test_sharpe_ratio_undefined_for_flat_or_short_series():
    assert np.isnan(sharpe_ratio(pd.Series([0.0, 0.0, 0.0])))
    assert np.isnan(sharpe_ratio(pd.Series([0.01])))


def test_sharpe_ratio_per_column():
    frame = pd.DataFrame({'A': [0.01, 0.02, 0.03], 'B': [0.0, 0.0, 0.0]})
    result = sharpe_ratio(frame)
    assert result['A'] == pytest.approx(2.0)
    assert np.isnan(result['B'])


def test_value_at_risk_interpolates_order_statistics():
    returns = [0.03, -0.05, 0.01, 0.0, -0.02]
    # sorted: -0.05, -0.02, 0.0, 0.01, 0.03; position 0.05 * 4 = 0.2
    assert value_at_risk(returns, 0.95) == pytest.approx(-0.05 + 0.2 * 0.03)


def test_value_at_risk_ignores_nan_and_validates_confidence():
    assert value_at_risk([np.nan, -0.01, 0.01], 0.5) == pytest.approx(0.0)
    assert np.isnan(value_at_risk([np.nan]))
    with pytest.raises(ValueError):
        value_at_risk([0.01, 0.02], 1.0)


def test_beta_of_series_against_itself_is_exactly_one(sample_prices):
    returns = compute_daily_returns(sample_prices)['AAPL']
    assert beta(returns, returns) == 1.0


def test_beta_of_scaled_series():
    bench = np.array([0.01, -0.02, 0.015, 0.0, -0.005])
    assert beta(2 * bench + 0.001, bench) == pytest.approx(2.0)


def test_beta_uses_only_paired_observations():
    asset = pd.Series([np.nan, 0.02, 0.01, -0.01, 0.03])
    bench = pd.Series([0.01, np.nan, 0.005, -0.01, 0.02])
    x = np.array([0.01, -0.01, 0.03])
    y = np.array([0.005, -0.01, 0.02])
    expected = np.cov(x, y)[0, 1] / np.var(y, ddof=1)
    assert beta(asset, bench) == pytest.approx(expected)


def test_beta_undefined_cases():
    assert np.isnan(beta([0.01, np.nan], [0.02, 0.01]))
    assert np.isnan(beta([0.01, 0.02, 0.03], [0.0, 0.0, 0.0]))
    with pytest.raises(ValueError):
        beta([0.01, 0.02], [0.01])


def test_asset_risk_summary(sample_prices):
    summary = asset_risk_summary(sample_prices, benchmark='SPY', confidence=0.95)

    assert list(summary.columns) == [
        'annual_return', 'annual_volatility', 'sharpe_ratio', 'value_at_risk', 'beta'
    ]
    assert set(summary.index) == set(sample_prices.columns)
    assert summary.loc['SPY', 'beta'] == 1.0
    assert (summary['annual_volatility'] > 0).all()
    assert (summary['value_at_risk'] < 0).all()


def test_asset_risk_summary_unknown_benchmark(sample_prices):
    with pytest.raises(DataValidationError):
        asset_risk_summary(sample_prices, benchmark='QQQ')


def test_flag_suspicious_returns():
    dates = pd.bdate_range("2024-01-01", periods=3)
    returns = pd.DataFrame({'A': [0.01, 0.5, -0.01], 'B': [0.0, 0.02, -0.4]}, index=dates)

    with pytest.warns(UserWarning):
        flagged = flag_suspicious_returns(returns, limit=0.3)

    assert len(flagged) == 2
    assert set(flagged['instrument']) == {'A', 'B'}
