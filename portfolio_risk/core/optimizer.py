"""
Portfolio Optimizer - Markowitz Mean-Variance Analysis
======================================================

This module implements the two optimization steps of the analysis:

- Monte Carlo frontier: random long-only weight vectors, each scored by
  expected return, risk and Sharpe ratio, giving an empirical picture of
  the risk/return plane.
- Constrained minimum-variance portfolio: the quadratic program

      minimize    w^T * Sigma * w
      subject to  sum(w) = 1
                  min_weight <= w_i <= max_weight

  The objective matrix is exactly 2 * Sigma with no linear term; expected
  returns do not enter the objective.

Solver
------
The QP is solved with scipy's SLSQP (sequential least squares programming,
an active-set method) from the equal-weight start, with ``ftol=1e-12`` and
the analytic gradient 2 * Sigma * w. For a fixed input the result is
deterministic.

Sampling
--------
The default 'uniform' method draws N uniforms on (0, 1) and normalizes them
to sum to 1. This covers the simplex but is *not* uniform over it (weights
cluster near equal weighting). ``method='dirichlet'`` draws from a flat
Dirichlet distribution, which is uniform over the simplex.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from portfolio_risk.core.exceptions import (
    CovarianceMatrixError,
    InfeasibleConstraintsError,
    OptimizationError,
)
from portfolio_risk.core.records import FrontierSamples, OptimalPortfolio, ReturnStatistics


SAMPLING_METHODS = ("uniform", "dirichlet")


class PortfolioOptimizer:
    """
    Portfolio statistics, Monte Carlo sampling and constrained optimization.

    Attributes:
        expected_returns (np.ndarray): Annualized expected return per asset
        cov_matrix (np.ndarray): Annualized covariance matrix
        asset_names (List[str]): Names of the assets
        n_assets (int): Number of assets
        rf_rate (float): Risk-free rate, same period as expected_returns

    Example:
        >>> means = np.array([0.10, 0.12, 0.08])
        >>> cov = np.diag([0.04, 0.05, 0.03])
        >>> optimizer = PortfolioOptimizer(means, cov, ["A", "B", "C"])
        >>> samples = optimizer.random_portfolios(1000, rng=np.random.default_rng(1))
        >>> best = optimizer.minimum_variance_portfolio(0.05, 0.60)
    """

    def __init__(
        self,
        expected_returns: np.ndarray,
        cov_matrix: np.ndarray,
        asset_names: Optional[List[str]] = None,
        rf_rate: float = 0.0,
        ridge: float = 0.0
    ):
        """
        Initialize the Portfolio Optimizer.

        Args:
            expected_returns: Vector of expected returns for each asset
            cov_matrix: Covariance matrix of asset returns (n x n)
            asset_names: Optional list of asset names (default: Asset_1, Asset_2, ...)
            rf_rate: Risk-free rate used in Sharpe ratios (default: 0)
            ridge: Added to the covariance diagonal before validation

        Raises:
            CovarianceMatrixError: If dimensions don't match, the matrix is
                asymmetric or not positive semi-definite
        """
        self.expected_returns = np.array(expected_returns, dtype=float).flatten()
        self.cov_matrix = np.array(cov_matrix, dtype=float)
        self.n_assets = len(self.expected_returns)
        self.rf_rate = rf_rate

        if ridge < 0:
            raise ValueError(f"Ridge must be non-negative, got {ridge}")
        if ridge > 0 and self.cov_matrix.shape == (self.n_assets, self.n_assets):
            self.cov_matrix = self.cov_matrix + np.eye(self.n_assets) * ridge

        self._validate_inputs()

        if asset_names is None:
            self.asset_names = [f"Asset_{i+1}" for i in range(self.n_assets)]
        else:
            self.asset_names = list(asset_names)
            if len(self.asset_names) != self.n_assets:
                raise ValueError(
                    f"Got {len(self.asset_names)} asset names for {self.n_assets} assets"
                )

    @classmethod
    def from_statistics(
        cls,
        stats: ReturnStatistics,
        rf_rate: float = 0.0,
        ridge: float = 0.0
    ) -> "PortfolioOptimizer":
        """Build an optimizer from the calculator's ReturnStatistics."""
        return cls(stats.mean_returns, stats.cov_matrix, stats.asset_names, rf_rate, ridge)

    def _validate_inputs(self):
        """Reject covariance matrices the optimizer cannot use."""
        if self.n_assets == 0:
            raise ValueError("Need at least one asset")

        if self.cov_matrix.shape != (self.n_assets, self.n_assets):
            raise CovarianceMatrixError(
                f"Covariance matrix shape {self.cov_matrix.shape} doesn't match "
                f"number of assets {self.n_assets}"
            )

        if not np.all(np.isfinite(self.cov_matrix)) or not np.all(np.isfinite(self.expected_returns)):
            raise CovarianceMatrixError("Expected returns or covariance matrix contain NaN or Inf")

        if not np.allclose(self.cov_matrix, self.cov_matrix.T, rtol=1e-8, atol=1e-12):
            raise CovarianceMatrixError("Covariance matrix is not symmetric")

        eigenvalues = np.linalg.eigvalsh(self.cov_matrix)
        if np.any(eigenvalues < -1e-10):
            raise CovarianceMatrixError(
                f"Covariance matrix is not positive semi-definite "
                f"(min eigenvalue = {eigenvalues.min():.6e}); "
                f"regularize it with a diagonal ridge"
            )

    def portfolio_return(self, weights: np.ndarray) -> float:
        """
        Calculate expected portfolio return.

        Formula: mu_p = w^T * mu = sum(w_i * mu_i)
        """
        return float(np.dot(weights, self.expected_returns))

    def portfolio_variance(self, weights: np.ndarray) -> float:
        """
        Calculate portfolio variance using the quadratic form.

        Formula: sigma_p^2 = w^T * Sigma * w
        """
        return float(np.dot(weights, np.dot(self.cov_matrix, weights)))

    def portfolio_std(self, weights: np.ndarray) -> float:
        """
        Calculate portfolio standard deviation (risk).

        Formula: sigma_p = sqrt(w^T * Sigma * w)

        Raises:
            CovarianceMatrixError: If the quadratic form is negative
        """
        variance = self.portfolio_variance(weights)
        if variance < 0:
            raise CovarianceMatrixError(
                f"Negative portfolio variance {variance:.3e}; covariance matrix is not PSD"
            )
        return float(np.sqrt(variance))

    def portfolio_sharpe(self, weights: np.ndarray) -> float:
        """
        Calculate portfolio Sharpe ratio.

        Formula: Sharpe = (mu_p - rf) / sigma_p

        NaN when the portfolio has zero risk.
        """
        std = self.portfolio_std(weights)
        if std == 0:
            return float("nan")
        return (self.portfolio_return(weights) - self.rf_rate) / std

    def portfolio_stats(self, weights: np.ndarray) -> Dict[str, float]:
        """
        Calculate all portfolio statistics.

        Returns:
            Dictionary containing mean, std, variance, and Sharpe ratio
        """
        ret = self.portfolio_return(weights)
        std = self.portfolio_std(weights)
        sharpe = (ret - self.rf_rate) / std if std > 0 else float("nan")

        return {
            'mean': ret,
            'std': std,
            'variance': std ** 2,
            'sharpe': sharpe
        }

    def score_portfolios(self, weights: np.ndarray) -> pd.DataFrame:
        """
        Expected return, risk and Sharpe ratio for each row of a weight matrix.

        Args:
            weights: K x N weight matrix

        Returns:
            DataFrame with columns expected_return, risk, sharpe_ratio

        Raises:
            CovarianceMatrixError: If any quadratic form is negative
        """
        weights = np.atleast_2d(weights)
        returns = weights @ self.expected_returns
        variances = np.einsum("ij,jk,ik->i", weights, self.cov_matrix, weights)

        if np.any(variances < 0):
            worst = variances.min()
            raise CovarianceMatrixError(
                f"Negative portfolio variance {worst:.3e}; covariance matrix is not PSD"
            )

        risks = np.sqrt(variances)
        with np.errstate(divide="ignore", invalid="ignore"):
            sharpe = np.where(risks > 0, (returns - self.rf_rate) / risks, np.nan)

        return pd.DataFrame({
            'expected_return': returns,
            'risk': risks,
            'sharpe_ratio': sharpe
        })

    def random_portfolios(
        self,
        n_samples: int = 5000,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        method: str = "uniform"
    ) -> FrontierSamples:
        """
        Monte Carlo frontier: score ``n_samples`` random long-only portfolios.

        Pass either a generator or a seed; a seed builds one generator for
        the whole batch. Same seed and inputs give identical samples.

        Args:
            n_samples: Number of portfolios K
            rng: Generator to draw from (takes precedence over ``seed``)
            seed: Seed for a fresh generator
            method: 'uniform' (normalized uniforms) or 'dirichlet'

        Returns:
            FrontierSamples with K weight rows and K score rows
        """
        if rng is None:
            rng = np.random.default_rng(seed)
        weights = draw_weights(rng, n_samples, self.n_assets, method)
        return FrontierSamples(
            weights=weights,
            table=self.score_portfolios(weights),
            asset_names=list(self.asset_names),
            method=method
        )

    def minimum_variance_portfolio(
        self,
        min_weight: Optional[float] = 0.05,
        max_weight: Optional[float] = 0.20
    ) -> OptimalPortfolio:
        """
        Find the minimum variance portfolio under sum and box constraints.

        Optimization problem:
            minimize: w^T * Sigma * w
            subject to: sum(w) = 1
                        min_weight <= w_i <= max_weight

        ``None`` leaves that side of the box open; both ``None`` gives the
        unconstrained (shorting allowed) minimum variance portfolio.

        Args:
            min_weight: Lower bound for every weight
            max_weight: Upper bound for every weight

        Returns:
            OptimalPortfolio

        Raises:
            InfeasibleConstraintsError: If N*min_weight > 1, N*max_weight < 1
                or min_weight > max_weight
            OptimizationError: If the solver does not converge
        """
        check_feasibility(self.n_assets, min_weight, max_weight)

        # Initial guess: equal weights
        w0 = np.ones(self.n_assets) / self.n_assets

        # Constraint: weights sum to 1
        constraints = [{
            'type': 'eq',
            'fun': lambda w: np.sum(w) - 1,
            'jac': lambda w: np.ones_like(w)
        }]

        if min_weight is None and max_weight is None:
            bounds = None
        else:
            bounds = [(min_weight, max_weight) for _ in range(self.n_assets)]

        result = minimize(
            self.portfolio_variance,
            w0,
            jac=lambda w: 2 * np.dot(self.cov_matrix, w),
            method='SLSQP',
            bounds=bounds,
            constraints=constraints,
            options={'ftol': 1e-12, 'maxiter': 1000}
        )

        if not result.success:
            raise OptimizationError(f"Minimum variance optimization did not converge: {result.message}")

        weights = result.x
        if abs(weights.sum() - 1) > 1e-6:
            raise OptimizationError(f"Solver returned weights summing to {weights.sum():.8f}")

        stats = self.portfolio_stats(weights)
        return OptimalPortfolio(
            asset_names=list(self.asset_names),
            weights=weights,
            expected_return=stats['mean'],
            risk=stats['std'],
            sharpe_ratio=stats['sharpe'],
            min_weight=min_weight,
            max_weight=max_weight,
            solver_info={
                'method': 'SLSQP',
                'ftol': 1e-12,
                'iterations': int(result.nit),
                'message': str(result.message)
            }
        )

    def get_asset_stats(self) -> Dict[str, Dict[str, float]]:
        """
        Get individual asset statistics.

        Returns:
            Dictionary mapping asset names to their stats
        """
        stats = {}
        for i, name in enumerate(self.asset_names):
            stats[name] = {
                'mean': self.expected_returns[i],
                'std': np.sqrt(self.cov_matrix[i, i]),
                'variance': self.cov_matrix[i, i]
            }
        return stats

    def summary_report(
        self,
        optimal: OptimalPortfolio,
        samples: Optional[FrontierSamples] = None
    ) -> str:
        """
        Generate a text report of the asset statistics and results.

        Args:
            optimal: Result of ``minimum_variance_portfolio``
            samples: Optional Monte Carlo samples

        Returns:
            Formatted string report
        """
        lines = []
        lines.append("=" * 70)
        lines.append("PORTFOLIO OPTIMIZATION SUMMARY REPORT")
        lines.append("=" * 70)

        lines.append("\n--- Individual Asset Statistics (annualized) ---")
        lines.append(f"{'Asset':<12} {'Mean':>12} {'Std Dev':>12}")
        lines.append("-" * 38)
        for name, stats in self.get_asset_stats().items():
            lines.append(f"{name:<12} {stats['mean']:>12.6f} {stats['std']:>12.6f}")

        lines.append(f"\nRisk-free rate: {self.rf_rate:.4f} ({self.rf_rate*100:.2f}%)")

        if samples is not None:
            best = samples.best_sharpe()
            lines.append(f"\n--- Monte Carlo Frontier ({len(samples)} portfolios, {samples.method}) ---")
            if best is None:
                lines.append("No sample has a defined Sharpe ratio")
            else:
                lines.append(f"Best Sharpe sample: return {best['expected_return']*100:.2f}%, "
                             f"risk {best['risk']*100:.2f}%, Sharpe {best['sharpe_ratio']:.4f}")

        lines.append("\n--- Minimum Variance Portfolio ---")
        if optimal.min_weight is not None or optimal.max_weight is not None:
            lines.append(f"Bounds: [{optimal.min_weight}, {optimal.max_weight}]")
        lines.append("Weights:")
        for name, pct in optimal.as_percentages().items():
            lines.append(f"  {name}: {pct:.2f}%")
        lines.append(f"Expected Return: {optimal.expected_return*100:.2f}%")
        lines.append(f"Risk: {optimal.risk*100:.2f}%")
        lines.append(f"Sharpe Ratio: {optimal.sharpe_ratio:.4f}")

        lines.append("\n" + "=" * 70)

        return "\n".join(lines)


def check_feasibility(
    n_assets: int,
    min_weight: Optional[float],
    max_weight: Optional[float]
) -> None:
    """
    Verify that some weight vector satisfies the sum and box constraints.

    Requires N * min_weight <= 1 <= N * max_weight and min_weight <= max_weight.

    Raises:
        InfeasibleConstraintsError: If the constraint set is empty
    """
    if min_weight is not None and max_weight is not None and min_weight > max_weight:
        raise InfeasibleConstraintsError(
            f"Infeasible constraint set: min_weight {min_weight} > max_weight {max_weight}"
        )
    if min_weight is not None and n_assets * min_weight > 1 + 1e-12:
        raise InfeasibleConstraintsError(
            f"Infeasible constraint set: {n_assets} assets x min_weight {min_weight} "
            f"= {n_assets * min_weight:.4f} > 1"
        )
    if max_weight is not None and n_assets * max_weight < 1 - 1e-12:
        raise InfeasibleConstraintsError(
            f"Infeasible constraint set: {n_assets} assets x max_weight {max_weight} "
            f"= {n_assets * max_weight:.4f} < 1"
        )


def draw_weights(
    rng: np.random.Generator,
    n_samples: int,
    n_assets: int,
    method: str = "uniform"
) -> np.ndarray:
    """
    Draw long-only weight vectors that sum to 1.

    Args:
        rng: Random generator
        n_samples: Number of rows K
        n_assets: Number of columns N
        method: 'uniform' or 'dirichlet'

    Returns:
        K x N array
    """
    if method not in SAMPLING_METHODS:
        raise ValueError(f"Unknown sampling method: {method}. Use one of {SAMPLING_METHODS}")
    if n_samples < 0:
        raise ValueError(f"n_samples must be non-negative, got {n_samples}")

    if method == "dirichlet":
        return rng.dirichlet(np.ones(n_assets), size=n_samples)

    # Uniform on (0, 1): avoid an exact zero row
    raw = 1.0 - rng.random((n_samples, n_assets))
    return raw / raw.sum(axis=1, keepdims=True)


def sample_random_portfolios(
    optimizer: PortfolioOptimizer,
    n_samples: int,
    rng: np.random.Generator,
    method: str = "uniform"
) -> FrontierSamples:
    """Functional form of ``PortfolioOptimizer.random_portfolios``."""
    return optimizer.random_portfolios(n_samples, rng=rng, method=method)


def sample_random_portfolios_parallel(
    optimizer: PortfolioOptimizer,
    n_samples: int,
    seed: int,
    n_workers: int = 4,
    method: str = "uniform"
) -> FrontierSamples:
    """
    Monte Carlo frontier split across worker threads.

    The batch is cut into ``n_workers`` contiguous chunks; chunk i draws from
    its own generator spawned from ``SeedSequence(seed)``. The result depends
    only on (seed, n_workers, n_samples), not on thread scheduling.

    Args:
        optimizer: Optimizer holding the read-only mean vector and covariance
        n_samples: Total number of portfolios
        seed: Root seed
        n_workers: Number of chunks / threads
        method: 'uniform' or 'dirichlet'

    Returns:
        FrontierSamples in chunk order
    """
    if n_workers < 1:
        raise ValueError(f"n_workers must be at least 1, got {n_workers}")

    children = np.random.SeedSequence(seed).spawn(n_workers)
    sizes = [len(chunk) for chunk in np.array_split(np.arange(n_samples), n_workers)]

    def run(args):
        child, size = args
        rng = np.random.default_rng(child)
        return draw_weights(rng, size, optimizer.n_assets, method)

    with ThreadPoolExecutor(max_workers=n_workers) as pool:
        chunks = list(pool.map(run, zip(children, sizes)))

    weights = np.vstack(chunks) if chunks else np.empty((0, optimizer.n_assets))
    return FrontierSamples(
        weights=weights,
        table=optimizer.score_portfolios(weights),
        asset_names=list(optimizer.asset_names),
        method=method
    )

