# winefeatures/prestige.py
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel

from .config import PRESTIGE_EVENT_MIN_AMOUNT
from .models import PrestigeImpact, WineBatch

logger = logging.getLogger(__name__)


class PrestigeEntry(BaseModel):
    feature_id: str
    scope: str
    site_id: Optional[str] = None
    amount: float
    decay_rate: float
    reason: str


class PrestigeLedger:
    """
    Decaying reputation events at company and vineyard granularity.
    Each entry shrinks by its own decay rate every week.
    """

    def __init__(self, baseline: Optional[Dict[str, float]] = None):
        self.baseline = dict(baseline or {})
        self.entries: List[PrestigeEntry] = []

    def register(self, impact: PrestigeImpact, site_id: Optional[str] = None) -> PrestigeEntry:
        if impact.scope == 'vineyard' and site_id is None:
            raise ValueError(f"Vineyard prestige from '{impact.feature_id}' needs a site id")
        entry = PrestigeEntry(
            feature_id=impact.feature_id,
            scope=impact.scope,
            site_id=site_id if impact.scope == 'vineyard' else None,
            amount=impact.magnitude,
            decay_rate=impact.decay_rate,
            reason=impact.reason,
        )
        self.entries.append(entry)
        logger.debug("Prestige %+.4f (%s/%s) from %s", entry.amount, entry.scope,
                     entry.site_id or '-', entry.feature_id)
        return entry

    def total(self, scope: str, site_id: Optional[str] = None) -> float:
        total = self.baseline.get(scope, 0.0)
        for entry in self.entries:
            if entry.scope != scope:
                continue
            if site_id is not None and entry.site_id != site_id:
                continue
            total += entry.amount
        return total

    def standing(self, batch: WineBatch) -> Dict[str, float]:
        """Current prestige as seen by a batch: company-wide and its own vineyard."""
        return {
            'company': self.total('company'),
            'vineyard': self.total('vineyard', batch.vineyard_id),
        }

    def decay_week(self) -> int:
        """Apply one week of decay; returns how many entries faded out."""
        kept = []
        for entry in self.entries:
            entry.amount *= entry.decay_rate
            if abs(entry.amount) >= PRESTIGE_EVENT_MIN_AMOUNT:
                kept.append(entry)
        dropped = len(self.entries) - len(kept)
        self.entries = kept
        return dropped
