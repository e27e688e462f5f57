# winefeatures/accumulator.py
import logging
from typing import AbstractSet, List, Optional

from .formulas import FormulaInput, check, clamp01, resolve, resolve_multiplier
from .models import (
    EventContext, FeatureDefinition, FeatureInstance, GameCalendar,
    MissingContextError, WineBatch,
)
from .registry import FeatureRegistry

logger = logging.getLogger(__name__)


class RiskAccumulator:
    """
    Computes updated risk for a (batch, definition) pair.
    Pure: returns the new value and leaves the write to the caller, so the
    same code serves the weekly tick, production events and dry-run previews.
    Risk never decreases before manifestation.
    """

    def __init__(self, registry: FeatureRegistry):
        self.registry = registry

    def prerequisite_met(self, batch: WineBatch, definition: FeatureDefinition,
                         present: Optional[AbstractSet[str]] = None) -> bool:
        """
        Is the required feature present? `present` is a snapshot of feature ids
        taken at the start of a tick; without it the live batch is checked.
        """
        prereq = self.registry.prerequisite(definition)
        if prereq is None:
            return True
        if present is not None:
            return prereq.id in present
        return batch.has_feature(prereq.id)

    def _frozen(self, definition: FeatureDefinition, inst: Optional[FeatureInstance]) -> bool:
        return inst is not None and inst.is_present and definition.manifestation == 'binary'

    @staticmethod
    def _fold(current: float, delta: float) -> float:
        # Clamp absorbs drift; max() keeps the accumulator monotonic
        return max(current, clamp01(current + delta, fallback=current))

    def weekly_risk(self, batch: WineBatch, definition: FeatureDefinition,
                    calendar: Optional[GameCalendar] = None,
                    present: Optional[AbstractSet[str]] = None) -> float:
        inst = batch.feature(definition.id)
        current = inst.risk if inst else 0.0
        params = definition.risk
        if params is None or self._frozen(definition, inst):
            return current
        if not self.prerequisite_met(batch, definition, present):
            logger.debug("%s on %s gated: prerequisite absent", definition.id, batch.id)
            return current

        inputs = FormulaInput(
            batch=batch,
            severity=inst.severity if inst else 0.0,
            elapsed=inst.weeks_present if inst else 0,
            calendar=calendar,
        )
        try:
            state_mult = resolve_multiplier(params.state_multipliers, batch.state, inputs)
            external = resolve(params.external_modifier, inputs) if params.external_modifier else 1.0
        except MissingContextError as e:
            logger.warning("%s on %s: weekly risk skipped, missing %s", definition.id, batch.id, e)
            return current

        compound = 1.0 + current if params.compounding else 1.0
        delta = params.base_rate * state_mult * compound * external
        return self._fold(current, delta)

    def event_deltas(self, batch: WineBatch, definition: FeatureDefinition, event: str,
                     context: Optional[EventContext] = None,
                     calendar: Optional[GameCalendar] = None) -> List[float]:
        """
        Raw deltas of every trigger that fires for this event. A trigger whose
        condition or delta needs context the caller did not supply does not fire.
        """
        inst = batch.feature(definition.id)
        inputs = FormulaInput(
            batch=batch,
            severity=inst.severity if inst else 0.0,
            elapsed=inst.weeks_present if inst else 0,
            context=context or EventContext(),
            calendar=calendar,
        )
        deltas = []
        for trigger in definition.triggers_for(event):
            try:
                if not check(trigger.condition, inputs):
                    continue
                deltas.append(resolve(trigger.risk_delta, inputs))
            except MissingContextError as e:
                logger.debug("%s trigger on %s skipped: context lacks %s", definition.id, event, e)
        return deltas

    def event_risk(self, batch: WineBatch, definition: FeatureDefinition, event: str,
                   context: Optional[EventContext] = None,
                   calendar: Optional[GameCalendar] = None) -> Optional[float]:
        """New risk after the event, or None when no trigger fired."""
        inst = batch.feature(definition.id)
        current = inst.risk if inst else 0.0
        if self._frozen(definition, inst) or not self.prerequisite_met(batch, definition):
            return None

        deltas = self.event_deltas(batch, definition, event, context, calendar)
        if not deltas:
            return None

        compounding = definition.risk is not None and definition.risk.compounding
        risk = current
        for delta in deltas:
            if compounding:
                delta *= 1.0 + risk
            risk = self._fold(risk, delta)
        return risk
