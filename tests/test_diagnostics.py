from conftest import make_batch, mark_present
from winefeatures.config import AT_RISK_DISPLAY_THRESHOLD
from winefeatures.diagnostics import Diagnostics
from winefeatures.effects import EffectCalculator


def test_summary_lists_absent_features_at_risk(registry):
    diagnostics = Diagnostics('V-00', EffectCalculator(registry))
    batch = make_batch()
    batch.ensure_feature('oxidation').risk = 0.12
    batch.ensure_feature('grey_rot').risk = AT_RISK_DISPLAY_THRESHOLD / 2
    mark_present(batch, 'noble_rot', severity=0.3, risk=0.4)

    summary = diagnostics.batch_summary(batch)

    assert summary['at_risk'] == {'oxidation': 0.12}
    assert summary['features'] == {'noble_rot': 0.3}
