# winefeatures/registry.py
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .formulas import FORMULAS, PREDICATES
from .models import FeatureDefinition, Formula

logger = logging.getLogger(__name__)


class RegistryError(ValueError):
    """Invalid feature catalogue. Fatal: raised while the registry is built."""


class FeatureRegistry:
    """
    Immutable catalogue of feature definitions.
    Cross-feature references are resolved to definition handles once, here,
    so the tick never re-resolves string ids.
    """

    def __init__(self, definitions: Iterable[FeatureDefinition]):
        defs = list(definitions)
        errors = self._validate(defs)
        if errors:
            raise RegistryError("Invalid feature catalogue:\n  - " + "\n  - ".join(errors))

        # Sort priority first, declaration order second
        order = sorted(range(len(defs)), key=lambda i: (defs[i].priority, i))
        self._definitions: Tuple[FeatureDefinition, ...] = tuple(defs[i] for i in order)
        self._by_id: Dict[str, FeatureDefinition] = {d.id: d for d in self._definitions}

        self._prerequisite: Dict[str, Optional[FeatureDefinition]] = {
            d.id: self._by_id[d.requires_present] if d.requires_present else None
            for d in self._definitions
        }
        halted_by: Dict[str, List[FeatureDefinition]] = {d.id: [] for d in self._definitions}
        for d in self._definitions:
            for target in d.halts:
                halted_by[target].append(d)
        self._halted_by = {k: tuple(v) for k, v in halted_by.items()}

        self._time_based = tuple(d for d in self._definitions if d.is_time_based)
        self._by_event: Dict[str, Tuple[FeatureDefinition, ...]] = {}
        for d in self._definitions:
            for event in {t.event for t in d.event_triggers}:
                self._by_event.setdefault(event, ())
                self._by_event[event] += (d,)

        logger.debug("Feature registry built with %d definitions", len(self._definitions))

    @staticmethod
    def _validate(defs: List[FeatureDefinition]) -> List[str]:
        errors = []
        ids = [d.id for d in defs]
        known = set(ids)
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            errors.append(f"duplicate feature ids: {dupes}")

        for d in defs:
            where = f"'{d.id}'"
            if d.manifestation == 'graduated' and d.severity_growth is None:
                errors.append(f"{where} is graduated but has no severity growth rule")
            if d.is_time_based and d.risk is None:
                errors.append(f"{where} is {d.trigger} but has no risk parameters")
            if d.trigger in ('event_triggered', 'hybrid') and not d.event_triggers:
                errors.append(f"{where} is {d.trigger} but declares no event triggers")
            if d.trigger == 'accumulation' and d.requires_present is None:
                errors.append(f"{where} is accumulation but names no prerequisite feature")
            if d.requires_present is not None:
                if d.requires_present == d.id:
                    errors.append(f"{where} requires itself")
                elif d.requires_present not in known:
                    errors.append(f"{where} requires unknown feature '{d.requires_present}'")
            for target in d.halts:
                if target == d.id:
                    errors.append(f"{where} halts itself")
                elif target not in known:
                    errors.append(f"{where} halts unknown feature '{target}'")
            if isinstance(d.initial_severity, float) and not 0.0 <= d.initial_severity <= 1.0:
                errors.append(f"{where} initial severity {d.initial_severity} outside [0, 1]")
            quality = d.effects.quality
            if d.kind == 'fault' and quality is not None and quality.shape == 'bonus':
                errors.append(f"{where} is a fault but declares a bonus quality effect")

            for name in FeatureRegistry._formula_names(d):
                if name not in FORMULAS:
                    errors.append(f"{where} references unknown formula '{name}'")
            for trigger in d.event_triggers:
                if trigger.condition is not None and trigger.condition not in PREDICATES:
                    errors.append(f"{where} references unknown condition '{trigger.condition}'")
        return errors

    @staticmethod
    def _formula_names(d: FeatureDefinition) -> Iterator[str]:
        sources = []
        if d.risk is not None:
            sources += list(d.risk.state_multipliers.values())
            sources.append(d.risk.external_modifier)
        sources += [t.risk_delta for t in d.event_triggers]
        if d.severity_growth is not None:
            sources.append(d.severity_growth.rate)
            sources += list(d.severity_growth.state_multipliers.values())
        quality = d.effects.quality
        if quality is not None:
            sources += [quality.amount, quality.multiplier]
        sources += [c.modifier for c in d.effects.characteristics]
        for source in sources:
            if isinstance(source, Formula):
                yield source.name

    # --- Lookup ---

    def all(self) -> Tuple[FeatureDefinition, ...]:
        return self._definitions

    def by_id(self, feature_id: str) -> FeatureDefinition:
        try:
            return self._by_id[feature_id]
        except KeyError:
            raise KeyError(f"Unknown feature '{feature_id}'") from None

    def get(self, feature_id: str) -> Optional[FeatureDefinition]:
        return self._by_id.get(feature_id)

    def time_based(self) -> Tuple[FeatureDefinition, ...]:
        """Definitions acted on by the weekly tick."""
        return self._time_based

    def for_event(self, event: str) -> Tuple[FeatureDefinition, ...]:
        return self._by_event.get(event, ())

    def prerequisite(self, definition: FeatureDefinition) -> Optional[FeatureDefinition]:
        return self._prerequisite[definition.id]

    def halted_by(self, definition: FeatureDefinition) -> Tuple[FeatureDefinition, ...]:
        return self._halted_by[definition.id]

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[FeatureDefinition]:
        return iter(self._definitions)

    def __contains__(self, feature_id: str) -> bool:
        return feature_id in self._by_id
