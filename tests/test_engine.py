import logging

import pytest

from conftest import FixedRandomSource, make_batch, make_definition, mark_present
from winefeatures.engine import FeatureEngine
from winefeatures.formulas import FORMULAS
from winefeatures.models import (
    Constant, EventContext, EventTrigger, Formula, GameCalendar, RiskParams, SeverityGrowth,
)
from winefeatures.notifications import RecordingNotifier
from winefeatures.registry import FeatureRegistry


def engine_with(definition, *draws, notifier=None):
    return FeatureEngine(FeatureRegistry([definition]), random_source=FixedRandomSource(*draws),
                         notifier=notifier or RecordingNotifier())


def linear_risk(rate):
    return make_definition(risk=RiskParams(base_rate=rate, state_multipliers={'grapes': 1.0}))


def test_forced_non_manifestation_matches_closed_form(summer):
    engine = engine_with(make_definition(), 0.999)
    batch = make_batch()
    for _ in range(10):
        engine.weekly_tick([batch], summer)

    inst = batch.feature('test_fault')
    assert not inst.is_present
    assert inst.risk == pytest.approx(1.006 ** 10 - 1)


def test_warning_signal_carries_highest_threshold(summer):
    notifier = RecordingNotifier()
    engine = engine_with(linear_risk(0.25), 0.999, notifier=notifier)
    batch = make_batch()

    engine.weekly_tick([batch], summer)   # 0.00 -> 0.25
    engine.weekly_tick([batch], summer)   # 0.25 -> 0.50
    engine.weekly_tick([batch], summer)   # 0.50 -> 0.75

    warnings = notifier.of_kind('risk_warning')
    assert [w.threshold for w in warnings] == [0.10, 0.30]
    assert warnings[0].risk == pytest.approx(0.25)


def test_jump_over_both_thresholds_signals_once(summer):
    notifier = RecordingNotifier()
    engine = engine_with(linear_risk(0.5), 0.999, notifier=notifier)
    report = engine.weekly_tick([make_batch()], summer)

    assert [w.threshold for w in notifier.of_kind('risk_warning')] == [0.30]
    assert any(log.startswith("RISK:") for log in report.logs)


def test_manifestation_reported(summer):
    notifier = RecordingNotifier()
    engine = engine_with(linear_risk(0.1), 0.05, notifier=notifier)
    batch = make_batch()

    report = engine.weekly_tick([batch], summer)

    assert report.manifested() == [('B-01', 'test_fault')]
    assert batch.has_feature('test_fault')
    assert batch.feature('test_fault').severity == 1.0
    assert [s.kind for s in notifier.signals] == ['manifested']
    assert any(log.startswith("FEATURE:") for log in report.logs)


def test_binary_feature_frozen_across_ticks_and_events(quiet_engine, summer):
    batch = make_batch(prone_to_oxidation=0.9)
    inst = mark_present(batch, 'oxidation', severity=1.0, risk=0.37)
    mark_present(batch, 'green_flavor', severity=1.0, risk=0.2)

    for _ in range(10):
        quiet_engine.weekly_tick([batch], summer)
    quiet_engine.on_event(batch, 'harvest', EventContext(ripeness=0.1, season='Fall', week=2))

    assert (inst.risk, inst.severity) == (0.37, 1.0)
    assert batch.feature('green_flavor').risk == 0.2


def test_grey_rot_waits_for_noble_rot(quiet_engine, summer):
    batch = make_batch()
    for _ in range(5):
        quiet_engine.weekly_tick([batch], summer)
    assert batch.feature('grey_rot').risk == 0.0

    mark_present(batch, 'noble_rot', severity=0.2, risk=0.2)
    quiet_engine.weekly_tick([batch], summer)
    assert batch.feature('grey_rot').risk == pytest.approx(0.05)


def test_harvest_spawns_terroir_and_scores_green_flavor(quiet_engine):
    batch = make_batch()
    outcomes = quiet_engine.on_event(batch, 'harvest',
                                     EventContext(ripeness=0.3, season='Fall', week=3))

    assert [o.feature_id for o in outcomes] == ['green_flavor', 'terroir']
    terroir = batch.feature('terroir')
    assert terroir.is_present and terroir.severity == 0.001
    assert batch.feature('green_flavor').risk == pytest.approx(0.12)
    assert not batch.has_feature('green_flavor')
    assert batch.feature('late_harvest') is None


def test_late_harvest_severity_from_lateness(registry):
    engine = FeatureEngine(registry, random_source=FixedRandomSource(0.1), notifier=RecordingNotifier())
    batch = make_batch()
    engine.on_event(batch, 'harvest', EventContext(ripeness=0.9, season='Fall', week=9))
    assert batch.feature('late_harvest').severity == pytest.approx(0.25)

    winter = make_batch()
    engine.on_event(winter, 'harvest', EventContext(ripeness=0.9, season='Winter', week=6))
    assert winter.feature('late_harvest').severity == 1.0


def test_event_prestige_written_before_return(registry):
    engine = FeatureEngine(registry, random_source=FixedRandomSource(0.0), notifier=RecordingNotifier())
    batch = make_batch('Pinot Noir', state='must_fermenting')

    outcomes = engine.on_event(batch, 'fermentation',
                               EventContext(method='Extended Maceration', temperature='Cool'))

    assert outcomes[0].manifested
    assert {p.scope for p in outcomes[0].prestige} == {'company', 'vineyard'}
    assert engine.ledger.total('company') < 0
    assert engine.ledger.total('vineyard', 'Hillside') < 0


def test_preview_does_not_mutate(quiet_engine):
    batch = make_batch()
    snapshot = batch.model_dump()

    previews = {p.feature_id: p for p in quiet_engine.preview_event(
        batch, 'harvest', EventContext(ripeness=0.3, season='Fall', week=3))}

    assert batch.model_dump() == snapshot
    assert previews['green_flavor'].projected_risk == pytest.approx(0.12)
    assert previews['terroir'].projected_risk == 1.0
    assert previews['late_harvest'].risk_increase == 0.0


def test_preview_with_empty_context_projects_nothing(quiet_engine):
    batch = make_batch()
    previews = quiet_engine.preview_event(batch, 'crushing', EventContext())
    assert [p.risk_increase for p in previews] == [0.0]


def test_record_sale_writes_prestige(quiet_engine):
    batch = make_batch(state='bottled')
    mark_present(batch, 'terroir', severity=0.5)
    mark_present(batch, 'grey_rot')

    impacts = quiet_engine.record_sale(batch, volume=200, value=4000.0)

    assert {(i.feature_id, i.scope) for i in impacts} == {('terroir', 'company'), ('terroir', 'vineyard')}
    assert quiet_engine.ledger.total('company') > 0
    assert any(log.startswith("PRESTIGE:") for log in quiet_engine.log_history)


def test_empty_bottled_batch_skipped(quiet_engine, summer):
    empty = make_batch(state='bottled', quantity=0)
    full = make_batch(state='bottled')
    full.id = 'B-02'
    report = quiet_engine.weekly_tick([empty, full], summer)

    assert list(report.outcomes) == ['B-02']
    assert full.aging_weeks == 1
    assert empty.aging_weeks == 0


class BrokenNotifier:
    def notify(self, signal):
        raise RuntimeError("delivery down")


def test_dependent_waits_a_tick_after_prerequisite_appears(summer):
    prereq = make_definition(id='prereq', priority=1,
                             risk=RiskParams(base_rate=1.0, state_multipliers={'grapes': 1.0}))
    dependent = make_definition(id='dependent', priority=2, trigger='accumulation',
                                requires_present='prereq',
                                risk=RiskParams(base_rate=0.05, state_multipliers={'grapes': 1.0}))
    engine = FeatureEngine(FeatureRegistry([prereq, dependent]), random_source=FixedRandomSource(0.999),
                           notifier=RecordingNotifier())
    batch = make_batch()

    engine.weekly_tick([batch], summer)
    assert batch.has_feature('prereq')
    assert batch.feature('dependent').risk == 0.0

    engine.weekly_tick([batch], summer)
    assert batch.feature('dependent').risk == pytest.approx(0.05)


@pytest.fixture
def exploding_formula(monkeypatch):
    monkeypatch.setitem(FORMULAS, 'exploding_modifier', lambda inputs: 1 / 0)
    return Formula(name='exploding_modifier')


def test_failing_definition_does_not_abort_tick(summer, caplog, exploding_formula):
    bad = make_definition(id='bad', risk=RiskParams(base_rate=0.01, state_multipliers={'grapes': 1.0},
                                                     external_modifier=exploding_formula))
    good = make_definition(id='good', risk=RiskParams(base_rate=0.006, state_multipliers={'grapes': 1.0}))
    engine = FeatureEngine(FeatureRegistry([bad, good]), random_source=FixedRandomSource(0.999),
                           notifier=RecordingNotifier())
    batches = [make_batch(), make_batch()]
    batches[1].id = 'B-02'

    with caplog.at_level(logging.ERROR):
        engine.weekly_tick(batches, summer)

    for batch in batches:
        assert batch.feature('good').risk == pytest.approx(0.006)
        assert batch.feature('bad') is None
    assert "Weekly risk for bad" in caplog.text


def test_failing_growth_keeps_severity(summer, caplog, exploding_formula):
    definition = make_definition(manifestation='graduated',
                                 severity_growth=SeverityGrowth(rate=exploding_formula))
    engine = engine_with(definition, 0.999)
    batch = make_batch()
    inst = mark_present(batch, definition.id, severity=0.4)

    with caplog.at_level(logging.ERROR):
        engine.weekly_tick([batch], summer)

    assert inst.severity == 0.4
    assert inst.weeks_present == 1
    assert "Severity growth for test_fault" in caplog.text


def test_failing_trigger_does_not_abort_event(caplog, exploding_formula):
    bad = make_definition(id='bad', trigger='event_triggered', risk=None,
                          event_triggers=[EventTrigger(event='harvest', risk_delta=exploding_formula)])
    good = make_definition(id='good', trigger='event_triggered', risk=None,
                           event_triggers=[EventTrigger(event='harvest', risk_delta=Constant(value=0.1))])
    engine = FeatureEngine(FeatureRegistry([bad, good]), random_source=FixedRandomSource(0.999),
                           notifier=RecordingNotifier())
    batch = make_batch()

    with caplog.at_level(logging.ERROR):
        previews = engine.preview_event(batch, 'harvest')
        outcomes = engine.on_event(batch, 'harvest')

    assert {p.feature_id: p.projected_risk for p in previews} == {'bad': 0.0, 'good': pytest.approx(0.1)}
    assert [o.feature_id for o in outcomes] == ['good']
    assert batch.feature('good').risk == pytest.approx(0.1)
    assert batch.feature('bad') is None
    assert "harvest risk for bad" in caplog.text


def test_notifier_failure_does_not_abort_tick(summer, caplog):
    engine = FeatureEngine(FeatureRegistry([linear_risk(0.5)]), random_source=FixedRandomSource(0.0),
                           notifier=BrokenNotifier())
    batches = [make_batch(), make_batch()]
    batches[1].id = 'B-02'

    with caplog.at_level(logging.ERROR):
        report = engine.weekly_tick(batches, summer)

    assert len(report.manifested()) == 2
    assert "Notifier failed" in caplog.text


def test_process_week_decays_prestige(quiet_engine, summer):
    batch = make_batch(state='bottled')
    mark_present(batch, 'terroir', severity=1.0)
    quiet_engine.record_sale(batch, volume=100, value=1000.0)
    before = quiet_engine.ledger.total('company')

    quiet_engine.process_week([batch], summer)

    assert quiet_engine.ledger.total('company') == pytest.approx(before * 0.998)


def test_pricing_passthrough(quiet_engine):
    batch = make_batch(born_quality=0.5)
    mark_present(batch, 'green_flavor')
    assert quiet_engine.adjusted_quality(batch) == pytest.approx(0.3)
    assert quiet_engine.price_multiplier(batch, 'Restaurant') == pytest.approx(0.90)


def test_full_pipeline_keeps_values_bounded(registry):
    engine = FeatureEngine(registry, seed=3, notifier=RecordingNotifier())
    batch = make_batch('Sauvignon Blanc')
    calendar = GameCalendar(week=1, season='Fall', year=2024)
    schedule = {
        2: ('harvest', EventContext(ripeness=0.35, season='Fall', week=3)),
        3: ('crushing', EventContext(method='Mechanical Press', pressing_intensity=0.9, destemming=False)),
        4: ('fermentation', EventContext(method='Basic', temperature='Warm')),
        8: ('bottling', EventContext()),
    }
    for week in range(30):
        if week in schedule:
            event, context = schedule[week]
            if event != 'harvest':
                batch.state = {'crushing': 'must_ready', 'fermentation': 'must_fermenting',
                               'bottling': 'bottled'}[event]
            engine.on_event(batch, event, context, calendar)
        engine.process_week([batch], calendar)
        calendar = calendar.advance()

    assert batch.has_feature('terroir')
    assert batch.has_feature('bottle_aging')
    for inst in batch.features:
        assert 0.0 <= inst.risk <= 1.0
        assert 0.0 <= inst.severity <= 1.0
    assert 0.0 <= engine.adjusted_quality(batch) <= 1.0
