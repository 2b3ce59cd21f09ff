import numpy as np
import pandas as pd
import pytest

from portfolio_risk.core.exceptions import DataValidationError
from portfolio_risk.core.loader import (
    PriceLoader,
    forward_fill_prices,
    generate_sample_prices,
    load_prices,
    pivot_long_prices,
    validate_prices,
)


def test_forward_fill_fills_gaps_but_not_leading_values(small_prices):
    filled = forward_fill_prices(small_prices)

    assert filled['AAA'].iloc[2] == 101.0
    assert filled['BBB'].iloc[:2].isna().all()
    assert filled['BBB'].iloc[2:].notna().all()
    # input untouched
    assert np.isnan(small_prices['AAA'].iloc[2])


def test_load_wide_csv(tmp_path, small_prices):
    path = tmp_path / "prices.csv"
    small_prices.to_csv(path)

    prices = PriceLoader().load_from_csv(path)

    assert list(prices.columns) == ['AAA', 'BBB']
    assert isinstance(prices.index, pd.DatetimeIndex)
    assert prices['AAA'].iloc[2] == 101.0
    assert prices['BBB'].iloc[:2].isna().all()


def test_load_long_csv_pivots_to_wide(tmp_path):
    rows = pd.DataFrame({
        'Date': ['2024-01-03', '2024-01-02', '2024-01-02', '2024-01-03'],
        'Ticker': ['AAA', 'AAA', 'BBB', 'BBB'],
        'Adjusted_Close': [11.0, 10.0, 20.0, 21.0],
    })
    path = tmp_path / "long.csv"
    rows.to_csv(path, index=False)

    prices = load_prices(path)

    assert list(prices.columns) == ['AAA', 'BBB']
    assert prices.index.is_monotonic_increasing
    assert prices.loc['2024-01-02', 'AAA'] == 10.0
    assert prices.loc['2024-01-03', 'BBB'] == 21.0


def test_pivot_rejects_duplicate_rows():
    rows = pd.DataFrame({
        'ticker': ['AAA', 'AAA'],
        'date': ['2024-01-02', '2024-01-02'],
        'close': [1.0, 2.0],
    })
    with pytest.raises(DataValidationError):
        pivot_long_prices(rows, 'ticker', 'date', 'close')


def test_load_excel(tmp_path, small_prices):
    path = tmp_path / "prices.xlsx"
    small_prices.to_excel(path, sheet_name="Prices")

    prices = load_prices(path, sheet="Prices", tickers=['BBB'])

    assert list(prices.columns) == ['BBB']
    assert len(prices) == 6


def test_unsupported_extension(tmp_path):
    path = tmp_path / "prices.json"
    path.write_text("{}")
    with pytest.raises(ValueError):
        load_prices(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        PriceLoader().load_from_csv(tmp_path / "nope.csv")


def test_select_tickers_warns_on_missing(small_prices):
    loader = PriceLoader()
    with pytest.warns(UserWarning, match="ZZZ"):
        subset = loader.select_tickers(small_prices, ['BBB', 'ZZZ'])
    assert list(subset.columns) == ['BBB']

    with pytest.raises(DataValidationError):
        loader.select_tickers(small_prices, ['ZZZ'])


def test_validate_prices_rejects_bad_tables(small_prices):
    with pytest.raises(DataValidationError):
        validate_prices(small_prices.iloc[::-1])

    negative = small_prices.copy()
    negative.iloc[0, 0] = -1.0
    with pytest.raises(DataValidationError):
        validate_prices(negative)

    with pytest.raises(DataValidationError):
        validate_prices(small_prices.reset_index(drop=True))

    with pytest.raises(DataValidationError):
        validate_prices(small_prices.iloc[:1])


def test_validate_data_reports_leading_gaps(small_prices):
    results = PriceLoader().validate_data(forward_fill_prices(small_prices))

    assert results['is_valid']
    assert results['n_assets'] == 2
    assert any('BBB' in w for w in results['warnings'])


def test_sample_prices_are_reproducible():
    a = generate_sample_prices(['X', 'Y'], n_days=50, seed=3)
    b = generate_sample_prices(['X', 'Y'], n_days=50, seed=3)

    pd.testing.assert_frame_equal(a, b)
    assert (a > 0).all().all()
    assert a.shape == (50, 2)
