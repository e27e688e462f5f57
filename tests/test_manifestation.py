import pytest

from conftest import FixedRandomSource, make_definition
from winefeatures.manifestation import ManifestationEvaluator, NumpyRandomSource
from winefeatures.models import SeverityGrowth


def graduated(**overrides):
    return make_definition(manifestation='graduated',
                           severity_growth=SeverityGrowth(), **overrides)


def test_risk_at_one_manifests_regardless_of_draw():
    source = FixedRandomSource(0.999)
    result = ManifestationEvaluator(source).evaluate(make_definition(), 1.0)
    assert result.manifested
    assert result.deterministic
    assert source.calls == 0


def test_single_draw_compared_against_risk():
    definition = make_definition()
    assert not ManifestationEvaluator(FixedRandomSource(0.6)).evaluate(definition, 0.5).manifested
    assert ManifestationEvaluator(FixedRandomSource(0.4)).evaluate(definition, 0.5).manifested


def test_zero_risk_never_draws():
    source = FixedRandomSource(0.0)
    result = ManifestationEvaluator(source).evaluate(make_definition(), 0.0)
    assert not result.manifested
    assert source.calls == 0


def test_initial_severity_rules():
    evaluator = ManifestationEvaluator(FixedRandomSource(0.0))
    assert evaluator.evaluate(make_definition(), 0.2).severity == 1.0
    assert evaluator.evaluate(graduated(), 0.2).severity == pytest.approx(0.2)
    assert evaluator.evaluate(graduated(initial_severity='full'), 0.2).severity == 1.0
    assert evaluator.evaluate(graduated(initial_severity=0.001), 1.0).severity == 0.001


def test_numpy_source_is_seeded():
    a, b = NumpyRandomSource(7), NumpyRandomSource(7)
    draws = [a.next_uniform() for _ in range(5)]
    assert draws == [b.next_uniform() for _ in range(5)]
    assert all(0.0 <= d < 1.0 for d in draws)
