"""Per-document processing status."""

import threading
import uuid
from typing import Dict, Optional

import structlog

from ..models import ProcessingStatus, utcnow

logger = structlog.get_logger("status_tracker")

NOT_STARTED = "Not started"
NOT_STARTED_MESSAGE = "Embedding generation not initiated"


class StatusTracker:
    """Latest ``ProcessingStatus`` per document.

    Each update replaces the previous record wholesale. Documents that were
    never seen report stage ``"Not started"`` with progress 0.0 and are not
    stored.
    """

    def __init__(self):
        self._statuses: Dict[uuid.UUID, ProcessingStatus] = {}
        self._lock = threading.Lock()

    def update(
        self,
        document_id: uuid.UUID,
        stage: str,
        progress: float,
        message: Optional[str] = None
    ) -> ProcessingStatus:
        status = ProcessingStatus(
            document_id=document_id,
            stage=stage,
            progress=progress,
            message=message,
            last_updated=utcnow(),
        )
        with self._lock:
            self._statuses[document_id] = status
        logger.debug("Status updated", document_id=str(document_id), stage=stage, progress=progress)
        return status

    def get(self, document_id: uuid.UUID) -> ProcessingStatus:
        with self._lock:
            status = self._statuses.get(document_id)
        if status is None:
            return ProcessingStatus(
                document_id=document_id,
                stage=NOT_STARTED,
                progress=0.0,
                message=NOT_STARTED_MESSAGE,
                last_updated=utcnow(),
            )
        return status

    def evict(self, document_id: uuid.UUID) -> bool:
        with self._lock:
            return self._statuses.pop(document_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._statuses)
