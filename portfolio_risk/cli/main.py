"""
Main Runner Script for Portfolio Risk Analysis
==============================================

This script runs the full analysis workflow:
1. Loading and cleaning daily prices (CSV/Excel, or synthetic sample data)
2. Per-instrument risk metrics (volatility, Sharpe ratio, VaR, Beta)
3. Annualized mean vector and covariance matrix
4. Monte Carlo frontier of random portfolios
5. Box-constrained minimum variance portfolio
6. Plots and a logged report

Usage:
    pf-analyze                              # Run with sample data
    pf-analyze --prices prices.csv          # Run with a price file
    pf-analyze --prices prices.xlsx --sheet Prices
    pf-analyze --min-weight 0.05 --max-weight 0.20 --samples 5000 --seed 42
"""

import sys
import argparse
import logging
import traceback
from datetime import datetime
from typing import Optional, List
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from portfolio_risk import config
from portfolio_risk.core.loader import PriceLoader, generate_sample_prices, load_prices
from portfolio_risk.core.returns import compute_daily_returns, compute_statistics
from portfolio_risk.core.risk import asset_risk_summary, flag_suspicious_returns, rolling_volatility
from portfolio_risk.core.optimizer import PortfolioOptimizer, sample_random_portfolios_parallel
from portfolio_risk.visualization import (
    plot_monte_carlo_frontier,
    plot_portfolio_weights,
    plot_rolling_volatility
)


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logger(
    script_name: str = "portfolio_risk",
    log_dir: Optional[Path] = None
) -> logging.Logger:
    """
    Sets up a logger that writes to both file and console.

    Args:
        script_name: Name of the script (used in log filename)
        log_dir: Directory for log files (default: <project>/logs)

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        package_root = Path(__file__).parent.parent.parent
        log_dir = package_root / "logs"
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Generate unique log filename
    timestamp = datetime.now().strftime("%Y_%m_%d_%H%M")
    log_filename = log_dir / f"log_{script_name}_{timestamp}.txt"

    logger = logging.getLogger(script_name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # Clear existing handlers (prevent duplicates)
    if logger.hasHandlers():
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# =============================================================================
# ANALYSIS CLASS
# =============================================================================

class AnalysisCheckpoint:
    """
    Tracks the progress of the analysis steps.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.steps_completed = {}
        self.results = {}
        self.start_time = datetime.now()
        self.current_step = None

    def start_step(self, step_name: str):
        """Mark a step as started."""
        self.current_step = step_name
        self.logger.info(f"[CHECKPOINT] Starting: {step_name}")

    def complete_step(self, step_name: str, result: object = None):
        """Mark a step as completed and save result."""
        self.steps_completed[step_name] = True
        if result is not None:
            self.results[step_name] = result
        self.logger.info(f"[CHECKPOINT] Completed: {step_name}")

    def get_progress_summary(self) -> dict:
        """Get summary of analysis progress."""
        elapsed = (datetime.now() - self.start_time).total_seconds()
        return {
            'steps_completed': list(self.steps_completed.keys()),
            'current_step': self.current_step,
            'elapsed_seconds': elapsed
        }

    def log_final_report(self):
        """Log final analysis report."""
        summary = self.get_progress_summary()
        self.logger.info("=" * 60)
        self.logger.info("  ANALYSIS COMPLETE")
        self.logger.info("=" * 60)
        self.logger.info(f"  Steps completed: {len(summary['steps_completed'])}")
        self.logger.info(f"  Total time: {summary['elapsed_seconds']:.2f} seconds")
        self.logger.info("=" * 60)


# =============================================================================
# MAIN ANALYSIS FUNCTIONS
# =============================================================================

def get_output_dir() -> Path:
    """Get the output directory path."""
    package_root = Path(__file__).parent.parent.parent
    output_dir = package_root / "output"
    output_dir.mkdir(exist_ok=True)
    return output_dir


def _fmt(value: float, pct: bool = True) -> str:
    """Format a metric, showing NaN as 'n/a'."""
    if value is None or not np.isfinite(value):
        return "n/a"
    return f"{value*100:.4f}%" if pct else f"{value:.4f}"


def run_full_analysis(
    prices: pd.DataFrame,
    tickers: Optional[List[str]] = None,
    benchmark: Optional[str] = config.BENCHMARK,
    n_samples: int = config.N_PORTFOLIOS,
    seed: int = config.RANDOM_SEED,
    min_weight: float = config.MIN_WEIGHT,
    max_weight: float = config.MAX_WEIGHT,
    window: int = config.ROLLING_VOL_WINDOW,
    alt_window: Optional[int] = config.ALT_ROLLING_VOL_WINDOW,
    confidence: float = config.VAR_CONFIDENCE,
    rf_rate: float = config.RISK_FREE_RATE,
    sampling: str = config.SAMPLING_METHOD,
    n_workers: int = 1,
    ridge: float = 0.0,
    save_plots: bool = True,
    output_dir: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> dict:
    """
    Run the complete analysis on a clean price table.

    This function performs:
    1. Per-instrument risk metrics
    2. Rolling volatility
    3. Annualized mean vector and covariance matrix
    4. Monte Carlo frontier
    5. Constrained minimum variance portfolio
    6. Visualization generation

    Args:
        prices: Clean price table (may contain the benchmark column)
        tickers: Portfolio instruments (default: all non-benchmark columns)
        benchmark: Benchmark column for beta, or None
        n_samples: Number of Monte Carlo portfolios
        seed: Seed for the Monte Carlo generator
        min_weight: Lower weight bound for the optimizer
        max_weight: Upper weight bound for the optimizer
        window: Rolling volatility window (days)
        alt_window: Second, longer rolling window (None to skip)
        confidence: VaR confidence level
        rf_rate: Annual risk-free rate for portfolio Sharpe ratios
        sampling: 'uniform' or 'dirichlet'
        n_workers: Threads for Monte Carlo sampling (1 = serial)
        ridge: Diagonal ridge added to the covariance matrix
        save_plots: If True, save plots to files
        output_dir: Directory for output files
        logger: Logger instance

    Returns:
        Dictionary containing all analysis results
    """
    if logger is None:
        logger = setup_logger()

    if output_dir is None:
        output_dir = get_output_dir() if save_plots else None
    else:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

    if benchmark is not None and benchmark not in prices.columns:
        logger.warning(f"Benchmark '{benchmark}' not in price data; beta will be skipped")
        benchmark = None

    if tickers is None:
        tickers = [c for c in prices.columns if c != benchmark]

    checkpoint = AnalysisCheckpoint(logger)
    results = {}

    logger.info("=" * 70)
    logger.info("  PORTFOLIO RISK ANALYSIS")
    logger.info("=" * 70)
    logger.info(f"  Instruments: {', '.join(tickers)}")
    logger.info(f"  Benchmark: {benchmark or 'none'}")
    logger.info(f"  Dates: {prices.index[0].date()} to {prices.index[-1].date()} ({len(prices)} rows)")
    logger.info(f"  Weight bounds: [{min_weight:.2f}, {max_weight:.2f}]")
    logger.info("=" * 70)

    # Step 1: Risk metrics
    checkpoint.start_step("Calculate Risk Metrics")
    columns = list(tickers)
    if benchmark and benchmark not in columns:
        columns.append(benchmark)
    daily_rf = rf_rate / config.TRADING_DAYS
    summary = asset_risk_summary(
        prices[columns], benchmark=benchmark, confidence=confidence,
        risk_free_rate=daily_rf, trading_days=config.TRADING_DAYS
    )
    results['risk_summary'] = summary

    logger.info("\n--- Individual Asset Risk Metrics ---")
    logger.info(f"{'Asset':<8} {'Return':>11} {'Volatility':>11} {'Sharpe':>8} "
                f"{'VaR':>10} {'Beta':>7}")
    logger.info("-" * 60)
    for name, row in summary.iterrows():
        logger.info(f"{name:<8} {_fmt(row['annual_return']):>11} {_fmt(row['annual_volatility']):>11} "
                    f"{_fmt(row['sharpe_ratio'], False):>8} {_fmt(row['value_at_risk']):>10} "
                    f"{_fmt(row['beta'], False):>7}")

    flagged = flag_suspicious_returns(compute_daily_returns(prices[columns]), config.RETURN_SANITY_LIMIT)
    for _, cell in flagged.iterrows():
        logger.warning(f"Large daily move: {cell['instrument']} on {cell['date']}: {cell['return']*100:.1f}%")
    checkpoint.complete_step("Calculate Risk Metrics", summary)

    # Step 2: Rolling volatility
    checkpoint.start_step("Rolling Volatility")
    ticker_returns = compute_daily_returns(prices[list(tickers)])
    volatility = rolling_volatility(ticker_returns, window)
    results['rolling_volatility'] = volatility
    logger.info(f"{window}-day rolling volatility computed "
                f"({volatility.dropna(how='all').shape[0]} defined dates)")
    if alt_window:
        alt_volatility = rolling_volatility(ticker_returns, alt_window)
        results['rolling_volatility_alt'] = alt_volatility
        logger.info(f"{alt_window}-day rolling volatility computed "
                    f"({alt_volatility.dropna(how='all').shape[0]} defined dates)")
    checkpoint.complete_step("Rolling Volatility", volatility)

    # Step 3: Mean vector and covariance
    checkpoint.start_step("Annualized Statistics")
    stats = compute_statistics(prices, config.TRADING_DAYS, tickers=tickers)
    results['statistics'] = stats
    logger.info(f"Mean/covariance estimated from {stats.n_observations} complete return rows")
    checkpoint.complete_step("Annualized Statistics", stats)

    optimizer = PortfolioOptimizer.from_statistics(stats, rf_rate=rf_rate, ridge=ridge)

    # Step 4: Monte Carlo frontier
    checkpoint.start_step("Monte Carlo Frontier")
    if n_workers > 1:
        samples = sample_random_portfolios_parallel(optimizer, n_samples, seed, n_workers, sampling)
    else:
        samples = optimizer.random_portfolios(n_samples, rng=np.random.default_rng(seed), method=sampling)
    results['samples'] = samples
    logger.info(f"Sampled {len(samples)} portfolios ({sampling}, seed={seed})")
    best = samples.best_sharpe()
    if best is not None:
        logger.info(f"Best sample: return {best['expected_return']*100:.2f}%, "
                    f"risk {best['risk']*100:.2f}%, Sharpe {best['sharpe_ratio']:.4f}")
    checkpoint.complete_step("Monte Carlo Frontier", samples)

    # Step 5: Constrained minimum variance
    checkpoint.start_step("Minimum Variance Portfolio")
    optimal = optimizer.minimum_variance_portfolio(min_weight, max_weight)
    results['optimal'] = optimal

    logger.info("\n--- Minimum Variance Portfolio ---")
    logger.info("Weights:")
    for name, pct in optimal.as_percentages().items():
        logger.info(f"  {name}: {pct:>8.2f}%")
    logger.info(f"Expected Return: {optimal.expected_return*100:.4f}%")
    logger.info(f"Risk: {optimal.risk*100:.4f}%")
    logger.info(f"Sharpe Ratio: {_fmt(optimal.sharpe_ratio, False)}")
    logger.info(f"Solver: {optimal.solver_info['method']} in {optimal.solver_info['iterations']} iterations")
    checkpoint.complete_step("Minimum Variance Portfolio", optimal)

    # Step 6: Plots
    if save_plots:
        checkpoint.start_step("Generate Plots")

        plot_monte_carlo_frontier(
            optimizer, samples, optimal,
            save_path=str(output_dir / "monte_carlo_frontier.png")
        )
        logger.info("Saved: monte_carlo_frontier.png")

        plot_portfolio_weights(
            optimal,
            save_path=str(output_dir / "min_variance_weights.png")
        )
        logger.info("Saved: min_variance_weights.png")

        plot_rolling_volatility(
            volatility, window,
            save_path=str(output_dir / "rolling_volatility.png")
        )
        logger.info("Saved: rolling_volatility.png")

        samples.to_frame().to_csv(output_dir / "monte_carlo_portfolios.csv", index=False)
        logger.info("Saved: monte_carlo_portfolios.csv")

        report = optimizer.summary_report(optimal, samples)
        (output_dir / "summary_report.txt").write_text(report, encoding="utf-8")
        logger.info("Saved: summary_report.txt")

        checkpoint.complete_step("Generate Plots")

        plt.close('all')

    checkpoint.log_final_report()

    results['optimizer'] = optimizer
    return results


def analyze_price_file(
    file_path: str,
    sheet: Optional[str] = None,
    tickers: Optional[List[str]] = None,
    benchmark: Optional[str] = config.BENCHMARK,
    logger: Optional[logging.Logger] = None,
    **kwargs
) -> dict:
    """
    Analyze a CSV or Excel price file.

    Args:
        file_path: Path to the price file
        sheet: Sheet name for Excel files
        tickers: Portfolio instruments (default: all non-benchmark columns)
        benchmark: Benchmark column for beta
        logger: Logger instance
        **kwargs: Passed on to ``run_full_analysis``

    Returns:
        Analysis results dictionary
    """
    if logger is None:
        logger = setup_logger()

    logger.info(f"Loading prices from: {file_path}")
    prices = load_prices(file_path, sheet=sheet)

    validation = PriceLoader().validate_data(prices)
    if not validation['is_valid']:
        for error in validation['errors']:
            logger.error(error)
        raise ValueError("Data validation failed")

    for warning in validation['warnings']:
        logger.warning(warning)

    return run_full_analysis(prices, tickers=tickers, benchmark=benchmark, logger=logger, **kwargs)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Command line options; defaults come from portfolio_risk.config."""
    parser = argparse.ArgumentParser(
        description='Stock Portfolio Risk and Optimization Tool',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pf-analyze                                   # Run with sample data
  pf-analyze --prices prices.csv --benchmark SPY
  pf-analyze --prices prices.xlsx --sheet Prices
  pf-analyze --sampling dirichlet --workers 4
        """
    )

    parser.add_argument('--prices', '-p', type=str,
                        help='CSV or Excel file of daily adjusted close prices')
    parser.add_argument('--sheet', '-s', type=str, default=None,
                        help='Sheet name for Excel files (default: first sheet)')
    parser.add_argument('--tickers', '-t', nargs='+', default=None,
                        help='Portfolio tickers (default: all non-benchmark columns)')
    parser.add_argument('--benchmark', '-b', type=str, default=config.BENCHMARK,
                        help=f'Benchmark column for beta (default: {config.BENCHMARK})')
    parser.add_argument('--samples', '-n', type=int, default=config.N_PORTFOLIOS,
                        help=f'Monte Carlo portfolios (default: {config.N_PORTFOLIOS})')
    parser.add_argument('--seed', type=int, default=config.RANDOM_SEED,
                        help=f'Random seed (default: {config.RANDOM_SEED})')
    parser.add_argument('--min-weight', type=float, default=config.MIN_WEIGHT,
                        help=f'Minimum weight per asset (default: {config.MIN_WEIGHT})')
    parser.add_argument('--max-weight', type=float, default=config.MAX_WEIGHT,
                        help=f'Maximum weight per asset (default: {config.MAX_WEIGHT})')
    parser.add_argument('--window', '-w', type=int, default=config.ROLLING_VOL_WINDOW,
                        help=f'Rolling volatility window (default: {config.ROLLING_VOL_WINDOW})')
    parser.add_argument('--alt-window', type=int, default=config.ALT_ROLLING_VOL_WINDOW,
                        help=f'Second rolling volatility window, 0 to skip '
                             f'(default: {config.ALT_ROLLING_VOL_WINDOW})')
    parser.add_argument('--confidence', '-c', type=float, default=config.VAR_CONFIDENCE,
                        help=f'VaR confidence level (default: {config.VAR_CONFIDENCE})')
    parser.add_argument('--rf-rate', '-r', type=float, default=config.RISK_FREE_RATE,
                        help='Annual risk-free rate (default: 0)')
    parser.add_argument('--sampling', choices=['uniform', 'dirichlet'], default=config.SAMPLING_METHOD,
                        help='Monte Carlo weight sampling (default: uniform)')
    parser.add_argument('--workers', type=int, default=1,
                        help='Threads for Monte Carlo sampling (default: 1)')
    parser.add_argument('--ridge', type=float, default=0.0,
                        help='Diagonal ridge added to the covariance matrix')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Directory for plots (default: <project>/output)')
    parser.add_argument('--log-dir', type=str, default=None,
                        help='Directory for log files (default: <project>/logs)')
    parser.add_argument('--no-plots', action='store_true',
                        help='Disable plot generation')
    parser.add_argument('--show-plots', action='store_true',
                        help='Show plots interactively (default: just save)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the portfolio risk analysis."""
    args = build_parser().parse_args(argv)

    logger = setup_logger("portfolio_analysis", args.log_dir)

    options = dict(
        n_samples=args.samples,
        seed=args.seed,
        min_weight=args.min_weight,
        max_weight=args.max_weight,
        window=args.window,
        alt_window=args.alt_window,
        confidence=args.confidence,
        rf_rate=args.rf_rate,
        sampling=args.sampling,
        n_workers=args.workers,
        ridge=args.ridge,
        save_plots=not args.no_plots,
        output_dir=args.output_dir,
    )

    try:
        if args.prices:
            analyze_price_file(
                file_path=args.prices,
                sheet=args.sheet,
                tickers=args.tickers,
                benchmark=args.benchmark,
                logger=logger,
                **options
            )
        else:
            logger.info("No price file specified. Using sample data...")
            tickers = args.tickers or config.TICKERS
            benchmark = args.benchmark
            columns = list(tickers)
            if benchmark and benchmark not in columns:
                columns.append(benchmark)
            prices = generate_sample_prices(columns, seed=args.seed)
            run_full_analysis(
                prices,
                tickers=tickers,
                benchmark=benchmark,
                logger=logger,
                **options
            )

        if args.show_plots and not args.no_plots:
            plt.show()

        logger.info("Analysis completed successfully!")
        return 0

    except Exception as e:
        logger.error(f"Analysis failed: {e}")
        logger.error(traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())
