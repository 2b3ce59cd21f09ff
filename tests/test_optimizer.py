import numpy as np
import pytest

from portfolio_risk.core.exceptions import (
    CovarianceMatrixError,
    InfeasibleConstraintsError,
)
from portfolio_risk.core.optimizer import (
    PortfolioOptimizer,
    check_feasibility,
    draw_weights,
    sample_random_portfolios,
    sample_random_portfolios_parallel,
)


@pytest.fixture
def optimizer(sample_stats):
    return PortfolioOptimizer.from_statistics(sample_stats)


@pytest.mark.parametrize("method", ["uniform", "dirichlet"])
def test_sampled_weights_are_long_only_and_fully_invested(optimizer, method):
    samples = optimizer.random_portfolios(5000, rng=np.random.default_rng(1), method=method)

    assert samples.weights.shape == (5000, 10)
    assert len(samples) == 5000
    np.testing.assert_allclose(samples.weights.sum(axis=1), 1.0, atol=1e-9)
    assert (samples.weights >= 0).all()
    assert list(samples.table.columns) == ['expected_return', 'risk', 'sharpe_ratio']
    assert (samples.table['risk'] >= 0).all()


def test_sample_scores_match_portfolio_formulas(optimizer):
    samples = optimizer.random_portfolios(10, seed=3)
    w = samples.weights[4]
    row = samples.table.iloc[4]

    assert row['expected_return'] == pytest.approx(w @ optimizer.expected_returns)
    assert row['risk'] == pytest.approx(np.sqrt(w @ optimizer.cov_matrix @ w))
    assert row['sharpe_ratio'] == pytest.approx(row['expected_return'] / row['risk'])


def test_same_seed_reproduces_samples(optimizer):
    a = optimizer.random_portfolios(500, seed=42)
    b = sample_random_portfolios(optimizer, 500, np.random.default_rng(42))

    np.testing.assert_array_equal(a.weights, b.weights)
    assert a.table.equals(b.table)

    c = optimizer.random_portfolios(500, seed=43)
    assert not np.array_equal(a.weights, c.weights)


def test_parallel_sampling_is_deterministic(optimizer):
    a = sample_random_portfolios_parallel(optimizer, 1001, seed=5, n_workers=4)
    b = sample_random_portfolios_parallel(optimizer, 1001, seed=5, n_workers=4)

    assert a.weights.shape == (1001, 10)
    np.testing.assert_array_equal(a.weights, b.weights)
    np.testing.assert_allclose(a.weights.sum(axis=1), 1.0, atol=1e-9)


def test_unknown_sampling_method():
    with pytest.raises(ValueError):
        draw_weights(np.random.default_rng(0), 5, 3, method="sobol")


def test_equal_weight_risk_with_scaled_identity_covariance():
    n, sigma = 10, 0.3
    opt = PortfolioOptimizer(np.zeros(n), np.eye(n) * sigma ** 2)
    weights = np.ones(n) / n

    assert opt.portfolio_std(weights) == pytest.approx(sigma / np.sqrt(n))


def test_minimum_variance_respects_box_constraints(optimizer):
    result = optimizer.minimum_variance_portfolio(0.05, 0.20)

    assert result.weights.sum() == pytest.approx(1.0, abs=1e-8)
    assert (result.weights >= 0.05 - 1e-8).all()
    assert (result.weights <= 0.20 + 1e-8).all()
    assert result.solver_info['method'] == 'SLSQP'

    # equal weighting is inside the box, so it cannot beat the optimum
    equal = np.ones(10) / 10
    assert result.risk <= optimizer.portfolio_std(equal) + 1e-12


def test_minimum_variance_is_deterministic(optimizer):
    a = optimizer.minimum_variance_portfolio(0.05, 0.20)
    b = optimizer.minimum_variance_portfolio(0.05, 0.20)
    np.testing.assert_array_equal(a.weights, b.weights)


def test_box_constraints_bind_on_low_variance_asset():
    cov = np.diag([0.01, 0.04, 0.04, 0.04])
    opt = PortfolioOptimizer(np.full(4, 0.1), cov, ['LOW', 'B', 'C', 'D'])

    free = opt.minimum_variance_portfolio(None, None)
    assert free.weights[0] > 0.4

    capped = opt.minimum_variance_portfolio(0.1, 0.4)
    assert capped.weights[0] == pytest.approx(0.4, abs=1e-6)
    np.testing.assert_allclose(capped.weights[1:], 0.2, atol=1e-6)


def test_negatively_correlated_pair_splits_evenly():
    var = 0.04
    cov = np.array([[var, -var], [-var, var]])
    opt = PortfolioOptimizer([0.08, 0.12], cov, ['A', 'B'])

    result = opt.minimum_variance_portfolio(min_weight=None, max_weight=None)

    np.testing.assert_allclose(result.weights, [0.5, 0.5], atol=1e-8)
    assert result.risk == pytest.approx(0.0, abs=1e-8)


def test_infeasible_minimum_weight(optimizer):
    with pytest.raises(InfeasibleConstraintsError):
        optimizer.minimum_variance_portfolio(min_weight=0.30, max_weight=0.50)


@pytest.mark.parametrize("bounds", [(0.0, 0.05), (0.2, 0.1)])
def test_other_infeasible_boxes(bounds):
    with pytest.raises(InfeasibleConstraintsError):
        check_feasibility(10, *bounds)


def test_boundary_box_is_feasible():
    check_feasibility(10, 0.1, 0.1)
    check_feasibility(10, 0.05, 0.20)


def test_non_psd_covariance_is_rejected():
    cov = np.array([[1.0, 2.0], [2.0, 1.0]])
    with pytest.raises(CovarianceMatrixError):
        PortfolioOptimizer([0.1, 0.1], cov)

    # a ridge large enough makes it usable
    opt = PortfolioOptimizer([0.1, 0.1], cov, ridge=1.0)
    assert np.allclose(opt.cov_matrix, [[2.0, 2.0], [2.0, 2.0]])


def test_asymmetric_and_mismatched_covariance_is_rejected():
    with pytest.raises(CovarianceMatrixError):
        PortfolioOptimizer([0.1, 0.1], [[0.04, 0.01], [0.02, 0.04]])
    with pytest.raises(CovarianceMatrixError):
        PortfolioOptimizer([0.1, 0.1, 0.1], np.eye(2))


def test_negative_quadratic_form_is_fatal():
    opt = PortfolioOptimizer([0.1, 0.1], np.eye(2) * 0.04)
    opt.cov_matrix = np.array([[1.0, 2.0], [2.0, 1.0]])

    with pytest.raises(CovarianceMatrixError):
        opt.portfolio_std(np.array([0.5, -0.5]))
    with pytest.raises(CovarianceMatrixError):
        opt.score_portfolios(np.array([[0.5, -0.5]]))


def test_zero_risk_sharpe_is_undefined():
    opt = PortfolioOptimizer([0.1, 0.1], np.zeros((2, 2)))
    assert np.isnan(opt.portfolio_sharpe(np.array([0.5, 0.5])))


def test_display_percentages(optimizer):
    result = optimizer.minimum_variance_portfolio(0.05, 0.20)
    pct = result.as_percentages()

    assert list(pct.keys()) == optimizer.asset_names
    assert sum(pct.values()) == pytest.approx(100.0, abs=0.06)
    assert all(round(v, 2) == v for v in pct.values())


def test_summary_report_lists_every_asset(optimizer):
    samples = optimizer.random_portfolios(100, seed=1)
    report = optimizer.summary_report(optimizer.minimum_variance_portfolio(), samples)

    for name in optimizer.asset_names:
        assert name in report
    assert "Monte Carlo Frontier (100 portfolios, uniform)" in report


def test_summary_report_without_defined_samples(optimizer):
    empty = optimizer.random_portfolios(0, seed=1)
    assert empty.best_sharpe() is None

    report = optimizer.summary_report(optimizer.minimum_variance_portfolio(), empty)
    assert "Monte Carlo Frontier (0 portfolios, uniform)" in report
    assert "No sample has a defined Sharpe ratio" in report
