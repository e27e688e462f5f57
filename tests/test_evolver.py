import pytest

from conftest import make_batch, mark_present
from winefeatures.evolver import SeverityEvolver
from winefeatures.models import GameCalendar


def test_noble_rot_grows_in_grapes(registry):
    evolver = SeverityEvolver(registry)
    batch = make_batch()
    mark_present(batch, 'noble_rot', severity=0.3)
    assert evolver.grow(batch, registry.by_id('noble_rot')) == pytest.approx(0.38)

    batch.state = 'must_ready'
    assert evolver.grow(batch, registry.by_id('noble_rot')) == pytest.approx(0.3)


def test_growth_capped(registry):
    evolver = SeverityEvolver(registry)
    batch = make_batch()
    mark_present(batch, 'noble_rot', severity=0.97)
    assert evolver.grow(batch, registry.by_id('noble_rot')) == 1.0


def test_grey_rot_halts_noble_rot(registry):
    evolver = SeverityEvolver(registry)
    noble_rot = registry.by_id('noble_rot')
    batch = make_batch()
    mark_present(batch, 'noble_rot', severity=0.3)
    mark_present(batch, 'grey_rot')

    assert evolver.is_halted(batch, noble_rot)
    assert evolver.grow(batch, noble_rot) == 0.3


def test_halted_severity_constant_across_ticks(quiet_engine):
    batch = make_batch()
    mark_present(batch, 'noble_rot', severity=0.3)
    mark_present(batch, 'grey_rot')
    calendar = GameCalendar(week=8, season='Fall')

    for _ in range(5):
        quiet_engine.weekly_tick([batch], calendar)
        calendar = calendar.advance()

    noble_rot = batch.feature('noble_rot')
    assert noble_rot.is_present
    assert noble_rot.severity == 0.3
    assert noble_rot.weeks_present == 5


def test_bottle_aging_follows_curve(registry):
    evolver = SeverityEvolver(registry)
    aging = registry.by_id('bottle_aging')
    batch = make_batch('Chardonnay', state='bottled')
    inst = mark_present(batch, 'bottle_aging', severity=0.001)

    # Young wine ages fast
    assert evolver.grow(batch, aging) == pytest.approx(0.001 + 0.009)

    # Between Chardonnay's peaks (2 and 5 years)
    inst.weeks_present = 3 * 48
    assert evolver.grow(batch, aging) == pytest.approx(0.001 + 0.003)

    # Past the late peak
    inst.weeks_present = 6 * 48
    assert evolver.grow(batch, aging) == pytest.approx(0.001 + 0.0003)


def test_terroir_growth_scaled_by_state(registry):
    evolver = SeverityEvolver(registry)
    terroir = registry.by_id('terroir')
    batch = make_batch(state='must_fermenting')
    mark_present(batch, 'terroir', severity=0.1)
    assert evolver.grow(batch, terroir) == pytest.approx(0.1 + 0.005 * 5.0)


def test_late_harvest_does_not_evolve(registry):
    evolver = SeverityEvolver(registry)
    batch = make_batch()
    mark_present(batch, 'late_harvest', severity=0.25)
    assert evolver.grow(batch, registry.by_id('late_harvest')) == 0.25


def test_absent_feature_has_no_severity(registry):
    evolver = SeverityEvolver(registry)
    assert evolver.grow(make_batch(), registry.by_id('noble_rot')) == 0.0
