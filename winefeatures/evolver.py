# winefeatures/evolver.py
import logging
from typing import Optional

from .formulas import FormulaInput, clamp01, resolve, resolve_multiplier
from .models import FeatureDefinition, GameCalendar, MissingContextError, WineBatch
from .registry import FeatureRegistry

logger = logging.getLogger(__name__)


class SeverityEvolver:
    def __init__(self, registry: FeatureRegistry):
        self.registry = registry

    def is_halted(self, batch: WineBatch, definition: FeatureDefinition) -> bool:
        return any(batch.has_feature(h.id) for h in self.registry.halted_by(definition))

    def grow(self, batch: WineBatch, definition: FeatureDefinition,
             calendar: Optional[GameCalendar] = None) -> float:
        """Next severity for a present feature; unchanged when halted or not evolving."""
        inst = batch.feature(definition.id)
        if inst is None or not inst.is_present:
            return 0.0
        if not definition.evolves:
            return inst.severity
        if self.is_halted(batch, definition):
            logger.debug("%s on %s halted", definition.id, batch.id)
            return inst.severity

        growth = definition.severity_growth
        if inst.severity >= growth.cap:
            return inst.severity

        inputs = FormulaInput(batch=batch, severity=inst.severity,
                              elapsed=inst.weeks_present, calendar=calendar)
        try:
            rate = resolve(growth.rate, inputs)
            state_mult = resolve_multiplier(growth.state_multipliers, batch.state, inputs)
        except MissingContextError as e:
            logger.warning("%s on %s: growth skipped, missing %s", definition.id, batch.id, e)
            return inst.severity

        grown = min(growth.cap, inst.severity + rate * state_mult)
        return clamp01(grown, fallback=inst.severity)
