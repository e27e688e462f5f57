# winefeatures/manifestation.py
from typing import Optional, Protocol

import numpy as np

from .formulas import clamp01
from .models import FeatureDefinition, ManifestationResult


class RandomSource(Protocol):
    def next_uniform(self) -> float:
        """Uniform draw in [0, 1)."""
        ...


class NumpyRandomSource:
    def __init__(self, seed: Optional[int] = None):
        self.rng = np.random.RandomState(seed)

    def next_uniform(self) -> float:
        return float(self.rng.random_sample())


class ManifestationEvaluator:
    """
    Turns a risk value into a present/absent decision.
    One draw per evaluation; risk at 1.0 manifests without drawing.
    """

    def __init__(self, random_source: RandomSource):
        self.random_source = random_source

    def initial_severity(self, definition: FeatureDefinition, risk: float) -> float:
        if definition.manifestation == 'binary':
            return 1.0
        rule = definition.initial_severity
        if rule == 'full':
            return 1.0
        if rule == 'risk':
            return clamp01(risk)
        return float(rule)

    def evaluate(self, definition: FeatureDefinition, risk: float) -> ManifestationResult:
        if risk <= 0.0:
            return ManifestationResult(manifested=False, risk=risk, severity=0.0)
        if risk >= 1.0:
            return ManifestationResult(
                manifested=True, risk=risk, deterministic=True,
                severity=self.initial_severity(definition, risk),
            )
        if self.random_source.next_uniform() < risk:
            return ManifestationResult(
                manifested=True, risk=risk,
                severity=self.initial_severity(definition, risk),
            )
        return ManifestationResult(manifested=False, risk=risk, severity=0.0)
