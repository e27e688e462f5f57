# winefeatures/engine.py
import logging
from typing import Iterable, List, Optional

from .accumulator import RiskAccumulator
from .catalogue import build_default_registry
from .effects import EffectCalculator
from .evolver import SeverityEvolver
from .manifestation import ManifestationEvaluator, NumpyRandomSource, RandomSource
from .models import (
    EventContext, FeatureDefinition, FeatureOutcome, FeatureSignal, GameCalendar,
    PrestigeImpact, RiskPreview, TickReport, WineBatch,
)
from .notifications import LoggingNotifier, Notifier
from .prestige import PrestigeLedger
from .registry import FeatureRegistry

logger = logging.getLogger(__name__)


class FeatureEngine:
    """
    Drives feature risk, manifestation and growth for a set of batches.
    Single-threaded: callers must not mutate the same batch concurrently.
    """

    def __init__(self, registry: Optional[FeatureRegistry] = None,
                 random_source: Optional[RandomSource] = None,
                 notifier: Optional[Notifier] = None,
                 ledger: Optional[PrestigeLedger] = None,
                 seed: Optional[int] = None):
        self.registry = registry or build_default_registry()
        self.random_source = random_source or NumpyRandomSource(seed)
        self.notifier = notifier or LoggingNotifier()
        self.ledger = ledger or PrestigeLedger()

        self.accumulator = RiskAccumulator(self.registry)
        self.evaluator = ManifestationEvaluator(self.random_source)
        self.evolver = SeverityEvolver(self.registry)
        self.effects = EffectCalculator(self.registry)

        self.log_history: List[str] = []

    # --- Weekly path ---

    def weekly_tick(self, batches: Iterable[WineBatch], calendar: GameCalendar) -> TickReport:
        logs = []
        outcomes = {}
        for batch in batches:
            if batch.state == 'bottled' and batch.quantity <= 0:
                logger.debug("Skipping empty bottled batch %s", batch.id)
                continue
            outcomes[batch.id] = self._tick_batch(batch, calendar, logs)

        self.log_history.extend(logs)
        return TickReport(calendar=calendar, outcomes=outcomes, logs=logs)

    def process_week(self, batches: Iterable[WineBatch], calendar: GameCalendar) -> TickReport:
        """Weekly tick followed by one week of prestige decay."""
        report = self.weekly_tick(batches, calendar)
        faded = self.ledger.decay_week()
        if faded:
            report.logs.append(f"PRESTIGE: {faded} old reputation events faded out.")
        return report

    def _tick_batch(self, batch: WineBatch, calendar: GameCalendar, logs: List[str]) -> List[FeatureOutcome]:
        present_at_start = {f.feature_id for f in batch.features if f.is_present}
        outcomes = []

        # 1. Accumulate and test absent time-based features
        for definition in self.registry.time_based():
            if definition.id in present_at_start:
                continue
            inst = batch.feature(definition.id)
            previous = inst.risk if inst else 0.0
            try:
                new_risk = self.accumulator.weekly_risk(batch, definition, calendar, present_at_start)
            except Exception:
                logger.exception("Weekly risk for %s on batch %s failed; left unchanged",
                                 definition.id, batch.id)
                continue
            outcomes.append(self._settle(batch, definition, previous, new_risk, logs))

        # 2. Grow features that were already there
        for definition in self.registry.all():
            if definition.id not in present_at_start or not definition.evolves:
                continue
            inst = batch.feature(definition.id)
            try:
                inst.severity = self.evolver.grow(batch, definition, calendar)
            except Exception:
                logger.exception("Severity growth for %s on batch %s failed; left unchanged",
                                 definition.id, batch.id)

        # 3. Age
        for inst in batch.features:
            if inst.is_present:
                inst.weeks_present += 1
        if batch.state == 'bottled':
            batch.aging_weeks += 1

        return outcomes

    def _settle(self, batch: WineBatch, definition: FeatureDefinition,
                previous: float, new_risk: float, logs: List[str]) -> FeatureOutcome:
        """Write the new risk, run the manifestation test and act on the result."""
        inst = batch.ensure_feature(definition.id)
        inst.risk = new_risk
        outcome = FeatureOutcome(feature_id=definition.id, previous_risk=previous, risk=new_risk)
        if new_risk <= 0.0:
            return outcome

        result = self.evaluator.evaluate(definition, new_risk)
        if result.manifested:
            inst.is_present = True
            inst.severity = result.severity
            inst.weeks_present = 0
            outcome.manifested = True
            outcome.severity = result.severity
            logs.append(f"FEATURE: {definition.name} appeared in batch {batch.id} "
                        f"(risk {new_risk:.1%}, severity {result.severity:.3f}).")
            self._notify(FeatureSignal(kind='manifested', batch_id=batch.id, feature_id=definition.id,
                                       risk=new_risk, severity=result.severity))
            try:
                impacts = self.effects.on_manifestation(batch, definition, self.ledger.standing(batch))
            except Exception:
                logger.exception("Manifestation prestige for %s on batch %s failed", definition.id, batch.id)
                impacts = []
            outcome.prestige = self._register_prestige(batch, impacts, logs)
            return outcome

        crossed = [t for t in definition.warning_thresholds if previous < t <= new_risk]
        if crossed:
            threshold = max(crossed)
            logs.append(f"RISK: {definition.name} risk on batch {batch.id} reached {new_risk:.1%}.")
            self._notify(FeatureSignal(kind='risk_warning', batch_id=batch.id, feature_id=definition.id,
                                       risk=new_risk, threshold=threshold))
        return outcome

    def _notify(self, signal: FeatureSignal):
        try:
            self.notifier.notify(signal)
        except Exception:
            logger.exception("Notifier failed for %s on batch %s", signal.feature_id, signal.batch_id)

    def _register_prestige(self, batch: WineBatch, impacts: List[PrestigeImpact],
                           logs: List[str]) -> List[PrestigeImpact]:
        for impact in impacts:
            self.ledger.register(impact, site_id=batch.vineyard_id)
            where = batch.vineyard_id if impact.scope == 'vineyard' else 'company'
            logs.append(f"PRESTIGE: {impact.magnitude:+.3f} to {where} from {impact.feature_id} ({impact.reason}).")
        return impacts

    # --- Event path ---

    def on_event(self, batch: WineBatch, event: str, context: Optional[EventContext] = None,
                 calendar: Optional[GameCalendar] = None) -> List[FeatureOutcome]:
        """Apply a production event's risk deltas; prestige is written before returning."""
        logs = []
        outcomes = []
        for definition in self.registry.for_event(event):
            inst = batch.feature(definition.id)
            if inst is not None and inst.is_present:
                continue
            previous = inst.risk if inst else 0.0
            try:
                new_risk = self.accumulator.event_risk(batch, definition, event, context, calendar)
            except Exception:
                logger.exception("%s risk for %s on batch %s failed; left unchanged",
                                 event, definition.id, batch.id)
                continue
            if new_risk is None:
                continue
            outcomes.append(self._settle(batch, definition, previous, new_risk, logs))

        self.log_history.extend(logs)
        return outcomes

    def preview_event(self, batch: WineBatch, event: str,
                      context: Optional[EventContext] = None,
                      calendar: Optional[GameCalendar] = None) -> List[RiskPreview]:
        """Dry run of on_event: projected risks, batch untouched."""
        previews = []
        for definition in self.registry.for_event(event):
            inst = batch.feature(definition.id)
            current = inst.risk if inst else 0.0
            present = inst is not None and inst.is_present
            projected = None
            if not present:
                try:
                    projected = self.accumulator.event_risk(batch, definition, event, context, calendar)
                except Exception:
                    logger.exception("Preview of %s for %s on batch %s failed", event, definition.id, batch.id)
            if projected is None:
                projected = current
            previews.append(RiskPreview(
                feature_id=definition.id,
                name=definition.name,
                current_risk=current,
                risk_increase=projected - current,
                projected_risk=projected,
                is_present=present,
            ))
        return previews

    # --- Sales & pricing ---

    def record_sale(self, batch: WineBatch, volume: float, value: float) -> List[PrestigeImpact]:
        logs = []
        impacts = []
        for definition, _ in self.effects.present_features(batch):
            sale_impacts = self.effects.on_sale(batch, definition, volume, value,
                                                self.ledger.standing(batch))
            impacts.extend(self._register_prestige(batch, sale_impacts, logs))
        self.log_history.extend(logs)
        return impacts

    def adjusted_quality(self, batch: WineBatch) -> float:
        return self.effects.adjusted_quality(batch)

    def price_multiplier(self, batch: WineBatch, segment: str) -> float:
        return self.effects.price_multiplier(batch, segment)
