"""PySide6 host adapters for the StacyTimeline core."""

from .worker import AnalysisWorker
from .timers import QtTimerFactory, QtTimerHandle
from .keys import key_code

__all__ = ["AnalysisWorker", "QtTimerFactory", "QtTimerHandle", "key_code"]
