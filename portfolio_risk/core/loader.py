"""
Price Loader Module
===================

This module handles loading and cleaning daily adjusted close prices:
- CSV files (wide: one column per ticker, or long: ticker/date/price rows)
- Excel files (same layouts, read through openpyxl)
- Synthetic prices for demos and tests

Every loader returns the same PriceSeries table: a DataFrame indexed by an
ascending, unique DatetimeIndex with one float column per instrument.

Cleaning policy
---------------
``forward_fill_prices`` carries the last known price forward across gaps.
Values before an instrument's first observation are *not* filled: a ticker
that listed mid-sample keeps NaN until its first quote, and those rows are
dropped later when returns are aligned.
"""

import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd

from portfolio_risk.core.exceptions import DataValidationError


LONG_ID_COLUMNS = ("ticker", "symbol", "instrument", "instrument_id")
LONG_PRICE_COLUMNS = ("adjusted_close", "adjusted", "adj_close", "adj close", "close", "price")
DATE_COLUMNS = ("date", "datetime", "timestamp")


class PriceLoader:
    """
    Loads price tables from files and normalizes them to the PriceSeries layout.

    Both layouts are recognized automatically:

    - wide: a date column followed by one price column per ticker
    - long: one row per (ticker, date) with a price column, as returned by
      most market-data downloads

    Example:
        >>> loader = PriceLoader()
        >>> prices = loader.load_from_csv("prices.csv")
        >>> prices = loader.select_tickers(prices, ["AAPL", "MSFT"])
    """

    def __init__(self, fill_missing: bool = True):
        """
        Initialize the PriceLoader.

        Args:
            fill_missing: If True, apply ``forward_fill_prices`` after loading
        """
        self.fill_missing = fill_missing

    def load_from_csv(self, file_path: Union[str, Path]) -> pd.DataFrame:
        """
        Load prices from a CSV file.

        Args:
            file_path: Path to CSV file

        Returns:
            Price table (dates x tickers)
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Price file not found: {file_path}")

        raw = pd.read_csv(file_path)
        return self._normalize(raw, source=str(file_path))

    def load_from_excel(
        self,
        file_path: Union[str, Path],
        sheet_name: Union[str, int] = 0
    ) -> pd.DataFrame:
        """
        Load prices from an Excel workbook.

        Args:
            file_path: Path to .xlsx file
            sheet_name: Sheet name or index (default: first sheet)

        Returns:
            Price table (dates x tickers)
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Price file not found: {file_path}")

        raw = pd.read_excel(file_path, sheet_name=sheet_name, engine="openpyxl")
        return self._normalize(raw, source=f"{file_path}[{sheet_name}]")

    def _normalize(self, raw: pd.DataFrame, source: str) -> pd.DataFrame:
        """Detect the layout, build the wide table, clean and validate it."""
        columns = {str(c).strip().lower(): c for c in raw.columns}

        id_col = next((columns[c] for c in LONG_ID_COLUMNS if c in columns), None)
        if id_col is not None:
            price_col = next((columns[c] for c in LONG_PRICE_COLUMNS if c in columns), None)
            date_col = next((columns[c] for c in DATE_COLUMNS if c in columns), None)
            if price_col is None or date_col is None:
                raise DataValidationError(
                    f"{source}: long layout needs date and price columns, "
                    f"found {list(raw.columns)}"
                )
            prices = pivot_long_prices(raw, id_col, date_col, price_col)
        else:
            date_col = next((columns[c] for c in DATE_COLUMNS if c in columns), raw.columns[0])
            prices = raw.set_index(date_col)
            prices.index = pd.to_datetime(prices.index, errors="coerce")
            prices = prices[prices.index.notna()]
            prices.index.name = "date"
            prices = prices.apply(pd.to_numeric, errors="coerce")

        prices = prices.sort_index()
        if prices.index.duplicated().any():
            warnings.warn(f"{source}: duplicate dates found, keeping first occurrence")
            prices = prices[~prices.index.duplicated(keep="first")]

        empty = [c for c in prices.columns if prices[c].isna().all()]
        if empty:
            warnings.warn(f"{source}: dropping columns with no prices: {empty}")
            prices = prices.drop(columns=empty)

        prices.columns = [str(c) for c in prices.columns]

        if self.fill_missing:
            prices = forward_fill_prices(prices)

        validate_prices(prices)
        return prices

    def select_tickers(
        self,
        prices: pd.DataFrame,
        tickers: List[str]
    ) -> pd.DataFrame:
        """
        Extract a subset of tickers in the requested order.

        Missing tickers are reported and skipped.

        Args:
            prices: Full price table
            tickers: Tickers to keep

        Returns:
            Price table restricted to the tickers found
        """
        found = []
        for name in tickers:
            if name in prices.columns:
                found.append(name)
            else:
                warnings.warn(f"Ticker '{name}' not found in price data")

        if not found:
            raise DataValidationError(f"None of the tickers {tickers} are in the price data")

        return prices[found]

    def validate_data(self, prices: pd.DataFrame) -> Dict[str, Any]:
        """
        Validate a price table and return diagnostics.

        Checks:
        - Index is an ascending, unique DatetimeIndex
        - All columns are numeric
        - Prices are strictly positive
        - Gaps remaining after cleaning (leading gaps only)

        Args:
            prices: Price table

        Returns:
            Dictionary with validation results
        """
        results = {
            'is_valid': True,
            'warnings': [],
            'errors': [],
            'n_assets': prices.shape[1],
            'n_dates': prices.shape[0],
            'asset_names': [str(c) for c in prices.columns]
        }

        try:
            validate_prices(prices)
        except DataValidationError as e:
            results['errors'].append(str(e))
            results['is_valid'] = False
            return results

        leading = prices.isna().sum()
        for name, count in leading[leading > 0].items():
            results['warnings'].append(f"{name}: {count} leading dates without a price")

        if len(prices) > 0:
            results['date_range'] = (prices.index[0], prices.index[-1])

        return results


def pivot_long_prices(
    frame: pd.DataFrame,
    id_column: str,
    date_column: str,
    price_column: str
) -> pd.DataFrame:
    """
    Turn (instrument, date, price) rows into a dates x instruments table.

    Args:
        frame: Long-format rows
        id_column: Column with the ticker
        date_column: Column with the trading date
        price_column: Column with the adjusted close

    Returns:
        Wide price table
    """
    long = frame[[id_column, date_column, price_column]].copy()
    long[date_column] = pd.to_datetime(long[date_column], errors="coerce")
    long[price_column] = pd.to_numeric(long[price_column], errors="coerce")
    long = long.dropna(subset=[date_column])

    if long.duplicated(subset=[id_column, date_column]).any():
        raise DataValidationError("Duplicate (instrument, date) rows in price data")

    wide = long.pivot(index=date_column, columns=id_column, values=price_column)
    wide.index.name = "date"
    wide.columns.name = None
    return wide.sort_index()


def forward_fill_prices(prices: pd.DataFrame) -> pd.DataFrame:
    """
    Fill gaps by carrying the last known price forward.

    Leading missing values (before an instrument's first price) stay NaN;
    nothing is back-filled and nothing is dropped here.

    Args:
        prices: Price table, ascending dates

    Returns:
        New price table with interior and trailing gaps filled
    """
    return prices.sort_index().ffill()


def validate_prices(prices: pd.DataFrame, min_rows: int = 2) -> pd.DataFrame:
    """
    Check that a table satisfies the PriceSeries schema.

    Raises:
        DataValidationError: On a non-datetime, unsorted or duplicated index,
            non-numeric columns, non-positive prices or too few rows
    """
    if not isinstance(prices, pd.DataFrame):
        raise DataValidationError(f"Expected a DataFrame of prices, got {type(prices).__name__}")
    if not isinstance(prices.index, pd.DatetimeIndex):
        raise DataValidationError("Price index must be a DatetimeIndex")
    if not prices.index.is_monotonic_increasing:
        raise DataValidationError("Price dates must be in ascending order")
    if prices.index.has_duplicates:
        raise DataValidationError("Price dates must be unique")
    if prices.shape[1] == 0:
        raise DataValidationError("Price table has no instruments")
    if len(prices) < min_rows:
        raise DataValidationError(f"Need at least {min_rows} dates, got {len(prices)}")

    non_numeric = [c for c in prices.columns if not pd.api.types.is_numeric_dtype(prices[c])]
    if non_numeric:
        raise DataValidationError(f"Non-numeric price columns: {non_numeric}")

    values = prices.to_numpy(dtype=float)
    if np.any(values[~np.isnan(values)] <= 0):
        raise DataValidationError("Prices must be strictly positive")

    return prices


def load_prices(
    file_path: Union[str, Path],
    sheet: Optional[Union[str, int]] = None,
    tickers: Optional[List[str]] = None
) -> pd.DataFrame:
    """
    Convenience function: load a CSV or Excel price file by extension.

    Args:
        file_path: Path to .csv, .xlsx or .xlsm file
        sheet: Sheet for Excel files (default: first sheet)
        tickers: Optional subset of tickers to keep

    Returns:
        Clean price table
    """
    loader = PriceLoader()
    suffix = Path(file_path).suffix.lower()

    if suffix == ".csv":
        prices = loader.load_from_csv(file_path)
    elif suffix in (".xlsx", ".xlsm"):
        prices = loader.load_from_excel(file_path, sheet if sheet is not None else 0)
    else:
        raise ValueError(f"Unsupported file format: {suffix}. Use .csv or .xlsx")

    if tickers:
        prices = loader.select_tickers(prices, tickers)
    return prices


def generate_sample_prices(
    tickers: Optional[List[str]] = None,
    n_days: int = 504,
    seed: int = 42,
    start: str = "2022-01-03"
) -> pd.DataFrame:
    """
    Generate synthetic daily prices for testing.

    Prices follow a geometric random walk driven by one common market factor
    plus idiosyncratic noise, so the covariance matrix is positive definite
    and assets are realistically correlated.

    Args:
        tickers: Instrument names (default: Stock_1 .. Stock_10)
        n_days: Number of business days
        seed: Random seed for reproducibility
        start: First business day

    Returns:
        Price table (dates x tickers)
    """
    if tickers is None:
        tickers = [f"Stock_{i+1}" for i in range(10)]

    rng = np.random.default_rng(seed)
    n_assets = len(tickers)

    # Realistic daily drifts and factor loadings
    drift = rng.uniform(0.0001, 0.0008, n_assets)
    loading = rng.uniform(0.5, 1.5, n_assets)
    idio_vol = rng.uniform(0.008, 0.02, n_assets)

    market = rng.normal(0.0, 0.01, n_days)
    noise = rng.normal(0.0, 1.0, (n_days, n_assets)) * idio_vol
    daily = drift + np.outer(market, loading) + noise

    start_prices = rng.uniform(20, 300, n_assets)
    paths = start_prices * np.cumprod(1 + daily, axis=0)

    dates = pd.bdate_range(start=start, periods=n_days, name="date")
    return pd.DataFrame(paths, index=dates, columns=list(tickers))
