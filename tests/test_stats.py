"""
Test the sufficient-statistics accumulator, combiner and finalizers.
"""

import warnings

import numpy as np
import pytest

from pyaggregress import (
    DimensionMismatch,
    InsufficientData,
    NumericOverflow,
    SingularMatrix,
    SufficientStats,
    accumulate,
    accumulate_partition,
    combine,
)
from pyaggregress._core.linalg import solve_normal_equations
from pyaggregress.aggregate import fold_partitions, tree_reduce


TOL = 1e-10


def fold_rows(y, X, state=None):
    for yi, xi in zip(y, X):
        state = accumulate(state, yi, xi)
    return state


def assert_stats_close(a, b, rtol=TOL):
    assert a.count == b.count
    np.testing.assert_allclose(a.XtX, b.XtX, rtol=rtol)
    np.testing.assert_allclose(a.Xty, b.Xty, rtol=rtol)
    np.testing.assert_allclose(a.yty, b.yty, rtol=rtol)
    np.testing.assert_allclose(a.sum_y, b.sum_y, rtol=rtol)


@pytest.fixture
def dataset():
    rng = np.random.default_rng(7)
    n, p = 60, 3
    X = np.column_stack([np.ones(n), rng.normal(size=(n, p - 1))])
    y = X @ np.array([2.0, -1.0, 0.5]) + rng.normal(size=n)
    return y, X


class TestAccumulate:
    """Folding single observations."""

    def test_first_row_fixes_dimensions(self):
        state = accumulate(None, 2.0, [1.0, 3.0])
        assert state.n_features == 2
        assert state.count == 1
        np.testing.assert_array_equal(state.XtX, [[1.0, 3.0], [3.0, 9.0]])
        np.testing.assert_array_equal(state.Xty, [2.0, 6.0])
        assert state.yty == 4.0
        assert state.sum_y == 2.0

    def test_sums_match_matrix_products(self, dataset):
        y, X = dataset
        state = fold_rows(y, X)
        assert state.count == len(y)
        np.testing.assert_allclose(state.XtX, X.T @ X, rtol=TOL)
        np.testing.assert_allclose(state.Xty, X.T @ y, rtol=TOL)
        np.testing.assert_allclose(state.yty, y @ y, rtol=TOL)
        np.testing.assert_allclose(state.sum_y, y.sum(), rtol=TOL)

    def test_returns_new_state(self):
        state = accumulate(None, 1.0, [1.0, 2.0])
        before = state.XtX.copy()
        accumulate(state, 5.0, [1.0, 4.0])
        np.testing.assert_array_equal(state.XtX, before)
        assert state.count == 1

    def test_dimension_mismatch(self):
        state = accumulate(None, 1.0, [1.0, 2.0])
        with pytest.raises(DimensionMismatch) as exc:
            accumulate(state, 1.0, [1.0, 2.0, 3.0])
        assert exc.value.stage == "accumulation"
        assert exc.value.expected == 2
        assert exc.value.actual == 3
        assert str(exc.value).startswith("[accumulation]")

    @pytest.mark.parametrize("y, x", [
        (None, [1.0, 2.0]),
        (1.0, None),
        (np.nan, [1.0, 2.0]),
        (1.0, [1.0, np.nan]),
        (1.0, [1.0, None]),
    ])
    def test_missing_rows_skipped(self, y, x):
        state = accumulate(None, 1.0, [1.0, 1.0])
        assert accumulate(state, y, x) is state

    def test_missing_on_empty_state(self):
        state = accumulate(None, None, [1.0])
        assert state.is_empty


class TestAccumulatePartition:
    """Folding a whole partition through a backend."""

    def test_matches_row_folding(self, dataset):
        y, X = dataset
        assert_stats_close(accumulate_partition(None, y, X, backend='cpu'),
                           fold_rows(y, X))

    def test_drops_missing_rows(self, dataset):
        y, X = dataset
        y = y.copy()
        X = X.copy()
        y[3] = np.nan
        X[10, 1] = np.nan
        state = accumulate_partition(None, y, X, backend='cpu')
        keep = np.ones(len(y), dtype=bool)
        keep[[3, 10]] = False
        assert state.count == len(y) - 2
        np.testing.assert_allclose(state.XtX, X[keep].T @ X[keep], rtol=TOL)

    def test_all_missing_keeps_state(self):
        state = accumulate(None, 1.0, [1.0, 2.0])
        out = accumulate_partition(state, [np.nan], [[1.0, 2.0]], backend='cpu')
        assert out is state

    def test_width_mismatch(self, dataset):
        y, X = dataset
        state = accumulate_partition(None, y, X, backend='cpu')
        with pytest.raises(DimensionMismatch):
            accumulate_partition(state, y, X[:, :2], backend='cpu')


class TestCombine:
    """Merging partial states."""

    def test_identity(self, dataset):
        y, X = dataset
        a = fold_rows(y, X)
        empty = SufficientStats.empty()
        assert combine(a, empty) is a
        assert combine(empty, a) is a
        assert combine(None, a) is a
        assert combine(empty, empty).is_empty

    def test_associative_and_commutative(self, dataset):
        y, X = dataset
        a = fold_rows(y[:20], X[:20])
        b = fold_rows(y[20:45], X[20:45])
        c = fold_rows(y[45:], X[45:])
        left = combine(combine(a, b), c)
        right = combine(a, combine(b, c))
        assert_stats_close(left, right)
        assert_stats_close(combine(a, b), combine(b, a))
        assert_stats_close(left, fold_rows(y, X))

    def test_dimension_mismatch(self):
        a = accumulate(None, 1.0, [1.0, 2.0])
        b = accumulate(None, 1.0, [1.0, 2.0, 3.0])
        with pytest.raises(DimensionMismatch) as exc:
            combine(a, b)
        assert exc.value.stage == "combination"

    def test_any_partitioning_gives_same_fit(self, dataset):
        y, X = dataset
        whole = fold_rows(y, X)
        rng = np.random.default_rng(0)
        for _ in range(5):
            cuts = np.sort(rng.choice(np.arange(1, len(y)), size=4, replace=False))
            parts = list(zip(np.split(y, cuts), np.split(X, cuts)))
            rng.shuffle(parts)
            merged = fold_partitions(
                parts,
                lambda part: accumulate_partition(None, part[0], part[1], backend='cpu'),
                combine,
                split_every=2,
            )
            np.testing.assert_allclose(merged.coef(), whole.coef(), rtol=1e-9)
            np.testing.assert_allclose(merged.r2(), whole.r2(), rtol=1e-9)
            np.testing.assert_allclose(merged.tstats(), whole.tstats(), rtol=1e-8)
            np.testing.assert_allclose(merged.pvalues(), whole.pvalues(), rtol=1e-7)


class TestFinalizers:
    """Closed-form statistics and their failure modes."""

    def test_insufficient_data(self):
        state = fold_rows([1.0, 2.0], [[1.0, 0.0], [1.0, 1.0]])
        with pytest.raises(InsufficientData) as exc:
            state.coef()
        assert exc.value.stage == "finalization"
        assert exc.value.count == 2

    def test_empty_state(self):
        with pytest.raises(InsufficientData):
            SufficientStats.empty().r2()

    def test_zero_matrix_is_singular(self):
        state = fold_rows([1.0, 2.0, 3.0], [[0.0, 0.0]] * 3)
        with pytest.raises(SingularMatrix) as exc:
            state.coef()
        assert exc.value.rank == 0

    def test_rank_deficient_minimum_norm(self):
        """Duplicated column: minimum-norm solution splits the weight evenly."""
        rng = np.random.default_rng(3)
        x = rng.normal(size=30)
        X = np.column_stack([np.ones(30), x, x])
        y = 1.0 + 2.0 * x
        state = accumulate_partition(None, y, X, backend='cpu')
        with pytest.warns(RuntimeWarning, match="minimum-norm"):
            coef = state.coef()
        np.testing.assert_allclose(coef, [1.0, 1.0, 1.0], atol=1e-8)

    def test_rank_deficient_rejected(self):
        rng = np.random.default_rng(3)
        x = rng.normal(size=30)
        X = np.column_stack([np.ones(30), x, x])
        state = accumulate_partition(None, x, X, backend='cpu')
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            with pytest.raises(SingularMatrix) as exc:
                state.coef(singular_ok=False)
        assert exc.value.rank == 2
        assert exc.value.expected_rank == 3

    def test_aliased_tstats_are_nan(self):
        rng = np.random.default_rng(5)
        x = rng.normal(size=40)
        X = np.column_stack([np.ones(40), x, np.zeros(40)])
        y = 1.0 + x + rng.normal(size=40)
        state = accumulate_partition(None, y, X, backend='cpu')
        with pytest.warns(RuntimeWarning):
            t = state.tstats()
        assert np.isfinite(t[:2]).all()
        assert np.isnan(t[2])

    def test_non_finite_input(self):
        state = fold_rows([1.0, 2.0, 3.0], [[1.0, 1e200], [1.0, 1e200], [1.0, 0.0]])
        with pytest.raises(NumericOverflow):
            state.coef()


class TestNormalEquations:

    def test_cholesky_path(self):
        A = np.array([[4.0, 1.0], [1.0, 3.0]])
        b = np.array([1.0, 2.0])
        sol = solve_normal_equations(A, b)
        assert sol.method == "cholesky"
        assert sol.rank == 2
        np.testing.assert_allclose(A @ sol.coef, b, rtol=1e-12)
        np.testing.assert_allclose(sol.inverse, np.linalg.inv(A), rtol=1e-12)


class TestTreeReduce:

    def test_reduces_in_groups(self):
        assert tree_reduce(list(range(10)), lambda a, b: a + b, split_every=3) == 45

    def test_empty(self):
        assert tree_reduce([], lambda a, b: a + b) is None
        assert fold_partitions([], lambda p: p, lambda a, b: a + b) is None

    def test_split_every_validated(self):
        with pytest.raises(ValueError):
            tree_reduce([1, 2], lambda a, b: a + b, split_every=1)
