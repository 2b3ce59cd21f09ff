"""Exceptions raised by the portfolio risk pipeline."""


class DataValidationError(ValueError):
    """Price or return table does not match the expected schema."""


class CovarianceMatrixError(ValueError):
    """Covariance matrix is malformed, asymmetric or not positive semi-definite."""


class InfeasibleConstraintsError(ValueError):
    """The weight constraints admit no portfolio."""


class OptimizationError(RuntimeError):
    """The quadratic program solver failed to converge."""
