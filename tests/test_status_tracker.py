"""Tests for per-document status tracking."""

import uuid

from embedding_service.runtime.status_tracker import StatusTracker


def test_unseen_document_reports_not_started():
    """Test the default status for a document never processed."""
    tracker = StatusTracker()
    document_id = uuid.uuid4()

    status = tracker.get(document_id)

    assert status.document_id == document_id
    assert status.stage == "Not started"
    assert status.progress == 0.0
    assert status.message == "Embedding generation not initiated"
    assert len(tracker) == 0


def test_last_write_wins():
    """Test updates replace the previous status."""
    tracker = StatusTracker()
    document_id = uuid.uuid4()

    tracker.update(document_id, "Generating embeddings", 0.5)
    tracker.update(document_id, "Error: boom", -1.0, "Error occurred during processing")

    status = tracker.get(document_id)
    assert status.stage == "Error: boom"
    assert status.progress == -1.0
    assert status.is_error


def test_evict():
    """Test removing a document's status."""
    tracker = StatusTracker()
    document_id = uuid.uuid4()
    tracker.update(document_id, "Embedding generation complete", 1.0)

    assert tracker.evict(document_id) is True
    assert tracker.evict(document_id) is False
    assert tracker.get(document_id).stage == "Not started"
