"""
Test logistic regression (CG and IRLS) and the termination predicate.
"""

import warnings
from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from pyaggregress import (
    CGState,
    DimensionMismatch,
    InsufficientData,
    InvalidOptimizer,
    IRLSState,
    NumericOverflow,
    Optimizer,
    logreg,
    logreg_coef,
    cg_step,
    should_terminate,
)
from pyaggregress._core import cg_accumulate, cg_combine, irls_accumulate


def separable_data(n=200, seed=11):
    """Two features, labels split by x1 + x2 with a margin of 0.5."""
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(4 * n, 2))
    score = X[:, 0] + X[:, 1]
    X = X[np.abs(score) > 0.5][:n]
    y = (X[:, 0] + X[:, 1] > 0).astype(float)
    return y, X


def noisy_data(n=400, seed=3):
    rng = np.random.default_rng(seed)
    X = np.column_stack([np.ones(n), rng.normal(size=(n, 2))])
    eta = X @ np.array([-0.3, 1.2, -0.8])
    y = (rng.uniform(size=n) < 1 / (1 + np.exp(-eta))).astype(float)
    return y, X


def newton_fit(y, X, iterations=50):
    """Plain Newton–Raphson on the full data."""
    beta = np.zeros(X.shape[1])
    for _ in range(iterations):
        mu = 1 / (1 + np.exp(-(X @ beta)))
        grad = X.T @ (y - mu)
        H = X.T @ (X * (mu * (1 - mu))[:, None])
        beta = beta + np.linalg.solve(H, grad)
    return beta


class TestSeparable:
    """Both optimizers climb the likelihood and classify separable data."""

    @pytest.mark.parametrize("optimizer", ["cg", "irls"])
    def test_converges_to_classifier(self, optimizer):
        y, X = separable_data()
        model = logreg(None, y, X, optimizer=optimizer, num_iterations=10,
                       precision=0, backend='cpu')
        ll = np.array(model.log_likelihoods)
        assert 2 <= len(ll) <= 10
        assert np.all(np.diff(ll) >= -1e-9 * np.abs(ll[:-1]))
        assert ll[-1] > ll[0]

        accuracy = np.mean((X @ model.coefficients > 0) == (y == 1))
        assert accuracy >= 0.98


class TestNonSeparable:

    def setup_method(self):
        self.y, self.X = noisy_data()
        self.expected = newton_fit(self.y, self.X)

    def test_irls_matches_newton(self):
        coef = logreg_coef(None, self.y, self.X, optimizer='irls',
                           num_iterations=50, precision=1e-12, backend='cpu')
        np.testing.assert_allclose(coef, self.expected, rtol=1e-6, atol=1e-8)

    def test_newton_alias(self):
        coef = logreg_coef(None, self.y, self.X, optimizer='Newton',
                           num_iterations=50, precision=1e-12, backend='cpu')
        np.testing.assert_allclose(coef, self.expected, rtol=1e-6, atol=1e-8)

    def test_cg_agrees_with_irls(self):
        model = logreg(None, self.y, self.X, optimizer='cg',
                       num_iterations=300, precision=0, backend='cpu')
        np.testing.assert_allclose(model.coefficients, self.expected,
                                   rtol=1e-4, atol=1e-6)

    @pytest.mark.parametrize("optimizer", ["cg", "irls"])
    def test_partitioned_equals_whole(self, optimizer):
        frame = pd.DataFrame({'y': self.y, 'a': self.X[:, 1], 'b': self.X[:, 2]})
        parts = [frame.iloc[:90], frame.iloc[90:250], frame.iloc[250:]]
        kwargs = dict(optimizer=optimizer, num_iterations=8, precision=0,
                      add_intercept=True, backend='cpu')
        whole = logreg(frame, 'y', ['a', 'b'], **kwargs)
        split = logreg(parts, 'y', ['a', 'b'], n_jobs=3, **kwargs)
        np.testing.assert_allclose(split.coefficients, whole.coefficients, rtol=1e-9)
        np.testing.assert_allclose(split.log_likelihoods, whole.log_likelihoods,
                                   rtol=1e-10)

    def test_stops_on_precision(self):
        model = logreg(None, self.y, self.X, num_iterations=50, backend='cpu')
        assert model.converged
        assert model.iterations < 50

    def test_warns_when_budget_too_small(self):
        with pytest.warns(RuntimeWarning, match="did not converge"):
            model = logreg(None, self.y, self.X, optimizer='cg',
                           num_iterations=2, precision=1e-12, backend='cpu')
        assert not model.converged
        assert model.iterations == 2


class TestInputs:

    def test_named_columns_and_bool_labels(self):
        y, X = noisy_data()
        frame = pd.DataFrame({'flag': y.astype(bool), 'a': X[:, 1], 'b': X[:, 2]})
        model = logreg(frame, 'flag', ['a', 'b'], add_intercept=True,
                       num_iterations=50, precision=1e-12, backend='cpu')
        assert list(model.coef.index) == ['Intercept', 'a', 'b']
        np.testing.assert_allclose(model.coefficients, newton_fit(y, X), rtol=1e-6)

    def test_array_column(self):
        y, X = noisy_data()
        frame = pd.DataFrame({'y': y, 'x': list(X)})
        coef = logreg_coef(frame, 'y', 'x', num_iterations=50, precision=1e-12,
                           backend='cpu')
        np.testing.assert_allclose(coef, newton_fit(y, X), rtol=1e-6)

    def test_invalid_labels(self):
        with pytest.raises(ValueError, match="0/1"):
            logreg(None, [0.0, 2.0, 1.0], [[1.0], [1.0], [1.0]])

    def test_invalid_optimizer(self):
        y, X = noisy_data(n=20)
        with pytest.raises(InvalidOptimizer):
            logreg(None, y, X, optimizer='lbfgs')

    def test_invalid_budget(self):
        y, X = noisy_data(n=20)
        with pytest.raises(ValueError):
            logreg(None, y, X, num_iterations=0)
        with pytest.raises(ValueError):
            logreg(None, y, X, precision=-1.0)

    def test_no_rows(self):
        with pytest.raises(InsufficientData):
            logreg(None, np.array([]), np.empty((0, 2)))

    def test_all_rows_missing(self):
        with pytest.raises(InsufficientData):
            logreg(None, [np.nan, 1.0], [[1.0, 2.0], [np.nan, 1.0]])

    @pytest.mark.parametrize("optimizer", ["cg", "irls"])
    def test_overflow(self, optimizer):
        X = np.array([[1.0, 1e300], [1.0, -1e300], [1.0, 2e300]])
        y = np.array([1.0, 0.0, 1.0])
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            with pytest.raises(NumericOverflow) as exc:
                logreg(None, y, X, optimizer=optimizer, backend='cpu')
        assert exc.value.stage == "iteration"


class TestSteps:
    """Single CG/IRLS passes and their merge checks."""

    def test_cg_stalls_without_curvature(self):
        """Zero gradient at the start leaves no search direction."""
        y = np.array([1.0, 0.0])
        X = np.array([[1.0], [1.0]])
        start = CGState.initial(1)
        state = cg_step(start, [(y, X)], backend='cpu')

        assert state.stalled
        assert state.iteration == 1
        np.testing.assert_array_equal(state.coef, start.coef)
        assert should_terminate(None, state, 'cg', 1e-4)

    def test_cg_stall_ends_run(self):
        model = logreg(None, [1.0, 0.0], [[1.0], [1.0]], optimizer='cg',
                       backend='cpu')
        assert model.converged
        assert model.iterations == 1
        np.testing.assert_array_equal(model.coefficients, [0.0])

    def test_cg_accumulate_width_mismatch(self):
        with pytest.raises(DimensionMismatch) as exc:
            cg_accumulate(None, [1.0], [[1.0, 2.0, 3.0]], CGState.initial(2))
        assert exc.value.stage == "accumulation"
        assert exc.value.expected == 2
        assert exc.value.actual == 3

    def test_irls_accumulate_width_mismatch(self):
        with pytest.raises(DimensionMismatch) as exc:
            irls_accumulate(None, [1.0], [[1.0, 2.0, 3.0]], IRLSState.initial(2))
        assert exc.value.expected == 2
        assert exc.value.actual == 3

    def test_cg_combine_width_mismatch(self):
        a = cg_accumulate(None, [1.0], [[1.0, 2.0]], CGState.initial(2))
        b = cg_accumulate(None, [0.0], [[1.0, 2.0, 3.0]], CGState.initial(3))
        with pytest.raises(DimensionMismatch) as exc:
            cg_combine(a, b)
        assert exc.value.stage == "combination"

    def test_cg_combine_rejects_mixed_iterations(self):
        first = CGState.initial(2)
        a = cg_accumulate(None, [1.0], [[1.0, 2.0]], first)
        b = cg_accumulate(None, [0.0], [[1.0, -1.0]], replace(first, iteration=1))
        with pytest.raises(ValueError, match="iterations 0 and 1"):
            cg_combine(a, b)

    def test_cg_combine_identity(self):
        a = cg_accumulate(None, [1.0], [[1.0, 2.0]], CGState.initial(2))
        assert cg_combine(a, None) is a
        assert cg_combine(None, a) is a


class TestShouldTerminate:

    def state(self, ll, iteration=1):
        return IRLSState(coef=np.zeros(2), log_likelihood=ll, iteration=iteration)

    def test_first_iteration_never_converged(self):
        assert not should_terminate(None, self.state(-10.0), 'irls', 1e-4)

    def test_small_change_converges(self):
        assert should_terminate(self.state(-10.0, 1), self.state(-10.00001, 2),
                                'irls', 1e-4)

    def test_relative_change_converges(self):
        assert should_terminate(self.state(-1e6, 1), self.state(-1e6 + 1.0, 2),
                                'cg', 1e-4)

    def test_large_change_continues(self):
        assert not should_terminate(self.state(-10.0, 1), self.state(-5.0, 2),
                                    'irls', 1e-4)

    def test_zero_precision_runs_full_budget(self):
        old, new = self.state(-10.0, 4), self.state(-10.0, 5)
        assert not should_terminate(old, new, 'irls', 0.0)
        assert not should_terminate(old, new, 'irls', 0.0, num_iterations=6)
        assert should_terminate(old, new, 'irls', 0.0, num_iterations=5)

    def test_non_finite_likelihood_continues(self):
        assert not should_terminate(self.state(-np.inf, 0), self.state(-3.0, 1),
                                    'irls', 1e-4)

    def test_stalled_cg_terminates(self):
        state = replace(CGState.initial(2), iteration=1, stalled=True)
        assert should_terminate(None, state, 'cg', 1e-4)

    def test_negative_precision(self):
        with pytest.raises(ValueError):
            should_terminate(None, self.state(-1.0), 'irls', -1e-3)

    def test_invalid_optimizer(self):
        with pytest.raises(InvalidOptimizer) as exc:
            should_terminate(None, self.state(-1.0), 'sgd', 1e-4)
        assert exc.value.stage == "iteration"


class TestOptimizer:

    @pytest.mark.parametrize("name, expected", [
        ("cg", Optimizer.CG),
        ("CG", Optimizer.CG),
        ("irls", Optimizer.IRLS),
        ("newton", Optimizer.IRLS),
        (" Newton ", Optimizer.IRLS),
        (Optimizer.CG, Optimizer.CG),
    ])
    def test_parse(self, name, expected):
        assert Optimizer.parse(name) is expected

    @pytest.mark.parametrize("name", ["", "gd", None, 3])
    def test_rejects(self, name):
        with pytest.raises(InvalidOptimizer):
            Optimizer.parse(name)
