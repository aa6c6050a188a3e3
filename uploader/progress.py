"""Structured progress events for uploads."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from common.logging_config import get_logger

logger = get_logger(__name__)


class Phase(str, Enum):
    RESOLVING = "resolving"
    HASHING = "hashing"
    PROBING = "probing"
    NEGOTIATING = "negotiating"
    UPLOADING = "uploading"
    COMPLETING = "completing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """One step of an upload, independent of how it is displayed."""

    phase: Phase
    file_name: str
    chunk_index: Optional[int] = None
    total_chunks: Optional[int] = None
    file_index: Optional[int] = None
    total_files: Optional[int] = None
    message: str = ""

    @property
    def fraction(self) -> Optional[float]:
        """Share of chunks handled once this event's chunk is done."""
        if self.chunk_index is None or not self.total_chunks:
            return None
        return (self.chunk_index + 1) / self.total_chunks


ProgressObserver = Callable[[ProgressEvent], None]


class ProgressEmitter:
    """Fans progress events out to registered observers."""

    def __init__(self, observers: Optional[List[ProgressObserver]] = None):
        self._observers: List[ProgressObserver] = list(observers or [])

    def subscribe(self, observer: ProgressObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: ProgressObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def emit(self, event: ProgressEvent) -> None:
        """
        Deliver an event to every observer.

        A failing observer is logged and skipped; display problems never
        abort a transfer.

        Args:
            event: Event to deliver
        """
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.warning(f"Progress observer failed on {event.phase.value} for {event.file_name}: {e}")
