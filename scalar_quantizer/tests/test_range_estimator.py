"""Tests for range estimation."""

import pytest
import torch

from ..core.errors import DTypeMismatch, EmptyInput, InvalidParameter, ShapeMismatch
from ..core.resources import Resources
from ..quantization.range_estimator import RangeEstimator, quantile_ranks


@pytest.fixture
def res():
    return Resources("cpu")


def test_full_quantile_is_min_max(res):
    """quantile=1.0 gives the true extremes."""
    dataset = torch.tensor([[0.0, 1.0], [2.0, 100.0]])

    lo, hi = RangeEstimator(1.0).estimate(res, dataset)

    assert lo.item() == 0.0
    assert hi.item() == 100.0


def test_quantile_trims_both_tails(res):
    """Half of the values are trimmed, a quarter from each end."""
    dataset = torch.arange(100, dtype=torch.float32).reshape(10, 10)

    lo, hi = RangeEstimator(0.5).estimate(res, dataset)

    assert lo.item() == 25.0
    assert hi.item() == 74.0


def test_quantile_ignores_outliers(res):
    """A single extreme value does not dominate the range."""
    torch.manual_seed(0)
    dataset = torch.randn(100, 20)
    dataset[3, 7] = 1e6
    dataset[50, 1] = -1e6

    lo, hi = RangeEstimator(0.99).estimate(res, dataset)

    assert -10.0 < lo.item() < 0.0
    assert 0.0 < hi.item() < 10.0


def test_quantile_over_whole_dataset_not_per_column(res):
    """Columns with different ranges share one population."""
    dataset = torch.stack(
        [torch.arange(50, dtype=torch.float64), torch.arange(50, 100, dtype=torch.float64)],
        dim=1,
    )

    lo, hi = RangeEstimator(0.5).estimate(res, dataset)

    assert lo.item() == 25.0
    assert hi.item() == 74.0


def test_quantile_monotonicity(res):
    """Lowering the quantile never widens the range."""
    torch.manual_seed(1)
    dataset = torch.randn(200, 16) * 3.0 + 1.0

    prev_lo, prev_hi = None, None
    for quantile in [1.0, 0.999, 0.99, 0.9, 0.5, 0.1, 0.01]:
        lo, hi = RangeEstimator(quantile).estimate(res, dataset)
        assert lo.item() <= hi.item()
        if prev_lo is not None:
            assert lo.item() >= prev_lo
            assert hi.item() <= prev_hi
        prev_lo, prev_hi = lo.item(), hi.item()


def test_quantile_ranks_are_symmetric():
    """Both tails hold the same number of trimmed values."""
    for count in [1, 2, 3, 10, 999, 1000]:
        for quantile in [1.0, 0.99, 0.5, 0.01]:
            pos_min, pos_max = quantile_ranks(count, quantile)
            assert 0 <= pos_min <= pos_max < count
            assert pos_min == count - 1 - pos_max

    assert quantile_ranks(10, 1.0) == (0, 9)


def test_quantile_ranks_at_whole_number_products():
    """A product that is a whole number in decimal stays on its rank."""
    # (0.5 + 0.5 * 0.12) * 25 == 14 exactly
    assert quantile_ranks(25, 0.12) == (11, 13)
    # (0.5 + 0.5 * 0.99) * 1000 == 995 exactly
    assert quantile_ranks(1000, 0.99) == (5, 994)
    assert quantile_ranks(20, 0.9) == (1, 18)


def test_estimate_at_whole_number_product(res):
    """Trimming at q=0.12 over 25 values keeps ranks 11 to 13."""
    dataset = torch.arange(25, dtype=torch.float64).reshape(5, 5)

    lo, hi = RangeEstimator(0.12).estimate(res, dataset)

    assert (lo.item(), hi.item()) == (11.0, 13.0)


def test_single_element(res):
    """A 1x1 dataset yields min == max."""
    dataset = torch.tensor([[4.25]])

    for quantile in [1.0, 0.5]:
        lo, hi = RangeEstimator(quantile).estimate(res, dataset)
        assert lo.item() == hi.item() == 4.25


def test_result_dtype_matches_dataset(res):
    """Bounds keep reduced precision types."""
    for dtype in [torch.float16, torch.bfloat16, torch.float32, torch.float64]:
        dataset = torch.linspace(-2.0, 2.0, 64).reshape(8, 8).to(dtype)
        for quantile in [1.0, 0.9]:
            lo, hi = RangeEstimator(quantile).estimate(res, dataset)
            assert lo.dtype == dtype
            assert hi.dtype == dtype
            assert lo.dim() == 0


def test_non_contiguous_dataset(res):
    """Strided views give the same bounds as contiguous copies."""
    torch.manual_seed(2)
    base = torch.randn(40, 30)
    views = [base.t(), base[:, ::3], base[::2, 5:]]

    for view in views:
        assert not view.is_contiguous()
        for quantile in [1.0, 0.95]:
            expected = RangeEstimator(quantile).estimate(res, view.contiguous())
            actual = RangeEstimator(quantile).estimate(res, view)
            assert actual[0].item() == expected[0].item()
            assert actual[1].item() == expected[1].item()


def test_non_finite_values_excluded(res):
    """NaN and infinities are not part of the population."""
    dataset = torch.arange(12, dtype=torch.float32).reshape(3, 4)
    dataset[0, 0] = float("nan")
    dataset[1, 1] = float("inf")
    dataset[2, 2] = float("-inf")

    lo, hi = RangeEstimator(1.0).estimate(res, dataset)

    assert lo.item() == 1.0
    assert hi.item() == 11.0


def test_all_nan_dataset(res):
    """A dataset with nothing finite cannot be trained on."""
    dataset = torch.full((3, 3), float("nan"))

    for quantile in [1.0, 0.5]:
        with pytest.raises(EmptyInput):
            RangeEstimator(quantile).estimate(res, dataset)


def test_invalid_quantile():
    """Quantiles outside (0, 1] are rejected."""
    for quantile in [0.0, -0.1, 1.0001, 2, float("nan"), "0.5", True]:
        with pytest.raises(InvalidParameter):
            RangeEstimator(quantile)


def test_invalid_datasets(res):
    """Empty, non-2D and integer datasets are rejected."""
    estimator = RangeEstimator(0.99)

    with pytest.raises(EmptyInput):
        estimator.estimate(res, torch.empty(0, 4))
    with pytest.raises(EmptyInput):
        estimator.estimate(res, torch.empty(4, 0))
    with pytest.raises(ShapeMismatch):
        estimator.estimate(res, torch.randn(16))
    with pytest.raises(DTypeMismatch):
        estimator.estimate(res, torch.ones(4, 4, dtype=torch.int32))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
