import pytest

from winefeatures.catalogue import build_default_registry
from winefeatures.engine import FeatureEngine
from winefeatures.models import (
    FeatureDefinition, FeatureEffects, GameCalendar, RiskParams,
)
from winefeatures.notifications import RecordingNotifier
from winefeatures.prestige import PrestigeLedger
from winefeatures.scenarios import build_batch

NEUTRAL = {'Restaurant': 1.0, 'Wine Shop': 1.0, 'Private Collector': 1.0, 'Chain Store': 1.0}


class FixedRandomSource:
    """Returns the given draws in order, repeating the last one."""

    def __init__(self, *draws):
        self.draws = list(draws) or [0.5]
        self.calls = 0

    def next_uniform(self) -> float:
        value = self.draws[min(self.calls, len(self.draws) - 1)]
        self.calls += 1
        return value


def make_definition(**overrides) -> FeatureDefinition:
    fields = dict(
        id='test_fault',
        name='Test Fault',
        manifestation='binary',
        trigger='time_based',
        risk=RiskParams(base_rate=0.002, state_multipliers={'grapes': 3.0}, compounding=True),
        effects=FeatureEffects(customer_sensitivity=NEUTRAL),
    )
    fields.update(overrides)
    return FeatureDefinition(**fields)


def make_batch(grape='Chardonnay', **overrides):
    entry = {'id': 'B-01', 'vineyard_id': 'Hillside', 'grape': grape,
            'quantity': 1000, 'born_quality': 0.5}
    batch = build_batch(entry)
    for key, value in overrides.items():
        setattr(batch, key, value)
    return batch


def mark_present(batch, feature_id, severity=1.0, risk=1.0):
    inst = batch.ensure_feature(feature_id)
    inst.is_present = True
    inst.severity = severity
    inst.risk = risk
    return inst


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def summer():
    return GameCalendar(week=3, season='Summer', year=2024)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def quiet_engine(registry, notifier):
    """Default catalogue; draws never manifest a probabilistic feature."""
    return FeatureEngine(registry, random_source=FixedRandomSource(0.999),
                         notifier=notifier, ledger=PrestigeLedger())
