import math

import pytest

from hnswlite.metric import Metric, is_better

METRIC_NAMES = ["COSINE", "DOT", "L2"]


def test_higher_is_better_per_metric():
    assert Metric.COSINE.higher_is_better()
    assert Metric.DOT.higher_is_better()
    assert not Metric.L2.higher_is_better()


def test_worst_scores():
    assert Metric.COSINE.worst() == -math.inf
    assert Metric.DOT.worst() == -math.inf
    assert Metric.L2.worst() == math.inf


def test_is_better():
    assert is_better(0.9, 0.8, True)
    assert not is_better(0.7, 0.8, True)
    assert is_better(0.1, 0.2, False)
    assert not is_better(0.3, 0.2, False)


def test_is_better_is_strict():
    assert not is_better(0.5, 0.5, True)
    assert not is_better(0.5, 0.5, False)


def test_dot_product_value():
    assert Metric.DOT.compute([1.0, 2.0, 3.0], [4.0, 5.0, 6.0]) == pytest.approx(32.0)


def test_l2_is_squared_distance():
    assert Metric.L2.compute([0.0, 0.0], [3.0, 4.0]) == pytest.approx(25.0)


def test_cosine_self_similarity():
    vec = [0.3, -1.2, 4.5]
    assert Metric.COSINE.compute(vec, vec) == pytest.approx(1.0)


def test_l2_of_identical_vectors_is_best_possible():
    vec = [0.3, -1.2, 4.5]
    other = [1.3, -1.2, 4.5]
    assert Metric.L2.compute(vec, vec) < Metric.L2.compute(vec, other)


@pytest.mark.parametrize("name", METRIC_NAMES)
def test_symmetry(name):
    a = [0.2, 0.7, -0.1]
    b = [1.5, -0.4, 0.9]
    forward = Metric[name].compute(a, b)
    backward = Metric[name].compute(b, a)
    assert forward == pytest.approx(backward)


def test_cosine_matches_dot_for_unit_vectors():
    a = [0.6, 0.8]
    b = [0.8, 0.6]
    assert Metric.COSINE.compute(a, b) == pytest.approx(Metric.DOT.compute(a, b))


def test_cosine_is_scale_invariant():
    a = [1.0, 2.0, 3.0]
    b = [3.0, 1.0, 2.0]
    scaled = [x * 10 for x in a]
    assert Metric.COSINE.compute(a, b) == pytest.approx(Metric.COSINE.compute(scaled, b))


@pytest.mark.parametrize("name", METRIC_NAMES)
def test_dimension_mismatch_raises(name):
    with pytest.raises(ValueError):
        Metric[name].compute([1.0, 2.0], [1.0])