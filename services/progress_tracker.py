# services/progress_tracker.py
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class BuildPhase(str, Enum):
    SEED = "SEED"
    DISCOVERY = "DISCOVERY"
    PROCESSING = "PROCESSING"
    CROSS_REFERENCE = "CROSS_REFERENCE"
    REPORTING = "REPORTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class BuildProgress:
    """
    Per-run bookkeeping for one graph build: which ids were integrated,
    which failed and why. Paper tasks settle concurrently, so updates are locked.
    """

    def __init__(self, seed_id: str):
        self.seed_id = seed_id
        self.phase = BuildPhase.SEED
        self.papers_total = 0
        self.processed: List[str] = []
        self.failed: Dict[str, str] = {}
        self.error: Optional[str] = None
        self.last_updated = datetime.now()
        self._lock = threading.Lock()

    def set_phase(self, phase: BuildPhase, error: Optional[str] = None):
        with self._lock:
            self.phase = phase
            if error is not None:
                self.error = error
            self.last_updated = datetime.now()
        logger.info(f"Build phase: {phase.value}")

    def record_success(self, arxiv_id: str):
        with self._lock:
            self.processed.append(arxiv_id)
            self.last_updated = datetime.now()

    def record_failure(self, arxiv_id: str, reason: str):
        with self._lock:
            self.failed[arxiv_id] = reason
            self.last_updated = datetime.now()

    def failure_rate(self) -> float:
        with self._lock:
            total = len(self.processed) + len(self.failed)
            return len(self.failed) / total if total else 0.0

    def success_rate(self) -> float:
        with self._lock:
            total = len(self.processed) + len(self.failed)
            return len(self.processed) / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "seed_id": self.seed_id,
                "phase": self.phase.value,
                "papers_total": self.papers_total,
                "processed": len(self.processed),
                "failed": len(self.failed),
                "error": self.error,
                "last_updated": self.last_updated.isoformat(),
            }
