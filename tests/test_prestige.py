import pytest

from conftest import make_batch
from winefeatures.models import PrestigeImpact
from winefeatures.prestige import PrestigeLedger


def impact(scope='company', magnitude=1.0, decay_rate=0.5, feature_id='terroir'):
    return PrestigeImpact(feature_id=feature_id, scope=scope, magnitude=magnitude,
                          decay_rate=decay_rate, reason='sale')


def test_totals_by_scope_and_site():
    ledger = PrestigeLedger(baseline={'company': 2.0})
    ledger.register(impact(magnitude=1.0))
    ledger.register(impact(scope='vineyard', magnitude=-0.5), site_id='Hillside')
    ledger.register(impact(scope='vineyard', magnitude=0.25), site_id='Riverbend')

    assert ledger.total('company') == pytest.approx(3.0)
    assert ledger.total('vineyard', 'Hillside') == pytest.approx(-0.5)
    assert ledger.total('vineyard') == pytest.approx(-0.25)

    batch = make_batch()
    assert ledger.standing(batch) == {'company': pytest.approx(3.0), 'vineyard': pytest.approx(-0.5)}


def test_vineyard_impact_needs_site():
    with pytest.raises(ValueError):
        PrestigeLedger().register(impact(scope='vineyard'))


def test_company_entries_ignore_site_id():
    ledger = PrestigeLedger()
    entry = ledger.register(impact(), site_id='Hillside')
    assert entry.site_id is None


def test_weekly_decay_and_fade_out():
    ledger = PrestigeLedger()
    ledger.register(impact(magnitude=1.0, decay_rate=0.5))
    ledger.register(impact(magnitude=0.002, decay_rate=0.4))

    dropped = ledger.decay_week()

    assert dropped == 1
    assert len(ledger.entries) == 1
    assert ledger.total('company') == pytest.approx(0.5)
