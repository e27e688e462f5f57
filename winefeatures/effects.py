# winefeatures/effects.py
from typing import Dict, List, Mapping, Optional, Tuple

from .config import CHARACTERISTICS
from .formulas import (
    FormulaInput, clamp01, manifestation_prestige, resolve, sale_prestige,
)
from .models import (
    FeatureDefinition, FeatureInstance, PrestigeImpact, QualityEffect,
    WineBatch, WineCharacteristics,
)
from .registry import FeatureRegistry


class EffectCalculator:
    """
    Read-only view of what present features do to a batch.
    Nothing here mutates the batch; the same snapshot always gives the same numbers.
    """

    def __init__(self, registry: FeatureRegistry):
        self.registry = registry

    def present_features(self, batch: WineBatch) -> List[Tuple[FeatureDefinition, FeatureInstance]]:
        """Present features in definition priority order."""
        present = []
        for definition in self.registry.all():
            inst = batch.feature(definition.id)
            if inst is not None and inst.is_present:
                present.append((definition, inst))
        return present

    @staticmethod
    def _inputs(batch: WineBatch, inst: FeatureInstance) -> FormulaInput:
        return FormulaInput(batch=batch, severity=inst.severity, elapsed=inst.weeks_present)

    # --- Quality ---

    @staticmethod
    def apply_quality_effect(effect: QualityEffect, quality: float, inputs: FormulaInput) -> float:
        if effect.shape == 'power':
            # Higher quality has further to fall
            penalty = effect.base_penalty * (1 + max(0.0, quality) ** effect.exponent)
            result = quality * (1 - penalty)
            if effect.multiplier is not None:
                result *= resolve(effect.multiplier, inputs)
            return result
        return quality + resolve(effect.amount, inputs)

    def quality_breakdown(self, batch: WineBatch) -> List[Dict[str, float]]:
        """Step-by-step running quality, one row per feature with a quality effect."""
        rows = []
        quality = batch.born_quality
        for definition, inst in self.present_features(batch):
            effect = definition.effects.quality
            if effect is None:
                continue
            after = self.apply_quality_effect(effect, quality, self._inputs(batch, inst))
            rows.append({'feature_id': definition.id, 'before': quality, 'after': after})
            quality = after
        return rows

    def adjusted_quality(self, batch: WineBatch) -> float:
        rows = self.quality_breakdown(batch)
        quality = rows[-1]['after'] if rows else batch.born_quality
        return clamp01(quality, fallback=batch.born_quality)

    # --- Price ---

    def price_multiplier(self, batch: WineBatch, segment: str) -> float:
        multiplier = 1.0
        for definition, inst in self.present_features(batch):
            factor = definition.effects.customer_sensitivity[segment]
            if definition.manifestation == 'graduated':
                factor = 1.0 + (factor - 1.0) * inst.severity
            multiplier *= factor
        return multiplier

    # --- Characteristics ---

    def characteristic_deltas(self, batch: WineBatch) -> Dict[str, float]:
        deltas = {name: 0.0 for name in CHARACTERISTICS}
        for definition, inst in self.present_features(batch):
            inputs = self._inputs(batch, inst)
            for effect in definition.effects.characteristics:
                deltas[effect.characteristic] += resolve(effect.modifier, inputs)
        return deltas

    def adjusted_characteristics(self, batch: WineBatch) -> WineCharacteristics:
        base = batch.characteristics.model_dump()
        deltas = self.characteristic_deltas(batch)
        return WineCharacteristics(**{
            name: clamp01(base[name] + deltas[name], fallback=base[name])
            for name in CHARACTERISTICS
        })

    # --- Prestige ---

    def on_manifestation(self, batch: WineBatch, definition: FeatureDefinition,
                         standing: Optional[Mapping[str, float]] = None) -> List[PrestigeImpact]:
        configs = definition.effects.prestige.on_manifestation
        if not configs:
            return []
        standing = standing or {}
        quality = self.adjusted_quality(batch)
        return [
            PrestigeImpact(
                feature_id=definition.id,
                scope=scope,
                magnitude=manifestation_prestige(config, batch.quantity, quality,
                                                 standing.get(scope, 0.0)),
                decay_rate=config.decay_rate,
                reason='manifestation',
            )
            for scope, config in configs.items()
        ]

    def on_sale(self, batch: WineBatch, definition: FeatureDefinition, volume: float,
                value: float, standing: Optional[Mapping[str, float]] = None) -> List[PrestigeImpact]:
        configs = definition.effects.prestige.on_sale
        if not configs:
            return []
        standing = standing or {}
        return [
            PrestigeImpact(
                feature_id=definition.id,
                scope=scope,
                magnitude=sale_prestige(config, volume, value, standing.get(scope, 0.0)),
                decay_rate=config.decay_rate,
                reason='sale',
            )
            for scope, config in configs.items()
        ]
