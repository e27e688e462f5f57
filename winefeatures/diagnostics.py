# winefeatures/diagnostics.py
from typing import Any, Dict, List

import numpy as np

from .config import AT_RISK_DISPLAY_THRESHOLD, CUSTOMER_SEGMENTS
from .effects import EffectCalculator
from .models import TickReport, WineBatch


class Diagnostics:
    def __init__(self, scenario_id: str, effects: EffectCalculator):
        self.scenario_id = scenario_id
        self.effects = effects

        # Tracking Data
        self.history = []
        self.manifestations = []

        # Metrics
        self.total_warnings = 0

    def record_week(self, batches: List[WineBatch], report: TickReport):
        """Record a single simulated week"""
        week_data = {
            'week': report.calendar.label(),
            'avg_quality': np.mean([self.effects.adjusted_quality(b) for b in batches]) if batches else 0.0,
            'max_risk': {
                b.id: max((f.risk for f in b.features if not f.is_present), default=0.0)
                for b in batches
            },
        }
        self.history.append(week_data)
        self.total_warnings += len([log for log in report.logs if log.startswith("RISK:")])
        for batch_id, feature_id in report.manifested():
            self.manifestations.append({'week': week_data['week'], 'batch': batch_id, 'feature': feature_id})

    def record_event(self, week_label: str, batch_id: str, outcomes):
        for outcome in outcomes:
            if outcome.manifested:
                self.manifestations.append({'week': week_label, 'batch': batch_id,
                                            'feature': outcome.feature_id})

    def batch_summary(self, batch: WineBatch) -> Dict[str, Any]:
        present = self.effects.present_features(batch)
        return {
            'state': batch.state,
            'born_quality': batch.born_quality,
            'quality': self.effects.adjusted_quality(batch),
            'features': {d.id: round(inst.severity, 4) for d, inst in present},
            'at_risk': {
                f.feature_id: round(f.risk, 4) for f in batch.features
                if not f.is_present and f.risk >= AT_RISK_DISPLAY_THRESHOLD
            },
            'price_multipliers': {
                segment: round(self.effects.price_multiplier(batch, segment), 4)
                for segment in CUSTOMER_SEGMENTS
            },
            'characteristics': self.effects.adjusted_characteristics(batch).model_dump(),
        }

    def generate_report(self, batches: List[WineBatch], prestige: Dict[str, float]) -> Dict[str, Any]:
        """Generate final diagnostic report"""
        qualities = [d['avg_quality'] for d in self.history]
        return {
            'scenario_id': self.scenario_id,
            'weeks': len(self.history),
            'mean_quality': float(np.mean(qualities)) if qualities else 0.0,
            'final_quality': qualities[-1] if qualities else 0.0,
            'warnings': self.total_warnings,
            'manifestations': self.manifestations,
            'prestige': prestige,
            'batches': {b.id: self.batch_summary(b) for b in batches},
        }
