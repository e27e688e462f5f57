# winefeatures/notifications.py
import logging
from typing import List, Protocol

from .models import FeatureSignal

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, signal: FeatureSignal) -> None:
        ...


class LoggingNotifier:
    def notify(self, signal: FeatureSignal) -> None:
        if signal.kind == 'manifested':
            logger.info("Batch %s: %s manifested (risk %.3f, severity %.3f)",
                        signal.batch_id, signal.feature_id, signal.risk, signal.severity)
        else:
            logger.info("Batch %s: %s risk %.3f crossed %.2f",
                        signal.batch_id, signal.feature_id, signal.risk, signal.threshold)


class RecordingNotifier:
    """Keeps every signal; used by the CLI summary and tests."""

    def __init__(self):
        self.signals: List[FeatureSignal] = []

    def notify(self, signal: FeatureSignal) -> None:
        self.signals.append(signal)

    def of_kind(self, kind: str) -> List[FeatureSignal]:
        return [s for s in self.signals if s.kind == kind]
