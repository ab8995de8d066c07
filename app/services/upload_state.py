"""
Upload lifecycle of a single receipt as an explicit state machine.

    pending -> uploading -> uploaded -> processing -> processed
                   |                        |
                   +--------> error <-------+
                                |
                   pending <----+  (retry)

``reduce_upload`` never mutates its input; it returns a new ``UploadState``
or raises ``InvalidUploadTransitionError``.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from app.core.exceptions import InvalidUploadTransitionError
from app.models.enums import UploadStatus


class UploadEventType(str, Enum):
    START_UPLOAD = "start_upload"
    UPLOAD_PROGRESS = "upload_progress"
    UPLOAD_COMPLETE = "upload_complete"
    START_PROCESSING = "start_processing"
    PROCESSING_COMPLETE = "processing_complete"
    FAIL = "fail"
    RETRY = "retry"


@dataclass(frozen=True)
class UploadEvent:
    type: UploadEventType
    progress: Optional[int] = None
    error: Optional[str] = None
    receipt_id: Optional[str] = None


@dataclass(frozen=True)
class UploadState:
    id: str
    file_name: str
    status: UploadStatus = UploadStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    receipt_id: Optional[str] = None  # Set once the backend stored the receipt


# (current status, event) -> next status
TRANSITIONS = {
    (UploadStatus.PENDING, UploadEventType.START_UPLOAD): UploadStatus.UPLOADING,
    (UploadStatus.UPLOADING, UploadEventType.UPLOAD_PROGRESS): UploadStatus.UPLOADING,
    (UploadStatus.UPLOADING, UploadEventType.UPLOAD_COMPLETE): UploadStatus.UPLOADED,
    (UploadStatus.UPLOADING, UploadEventType.FAIL): UploadStatus.ERROR,
    (UploadStatus.UPLOADED, UploadEventType.START_PROCESSING): UploadStatus.PROCESSING,
    (UploadStatus.PROCESSING, UploadEventType.PROCESSING_COMPLETE): UploadStatus.PROCESSED,
    (UploadStatus.PROCESSING, UploadEventType.FAIL): UploadStatus.ERROR,
    (UploadStatus.ERROR, UploadEventType.RETRY): UploadStatus.PENDING,
}


def _clamp_progress(value: int) -> int:
    return max(0, min(100, value))


def reduce_upload(state: UploadState, event: UploadEvent) -> UploadState:
    """Apply one event to an upload and return the resulting state."""
    next_status = TRANSITIONS.get((state.status, event.type))
    if next_status is None:
        raise InvalidUploadTransitionError(
            f"Cannot apply {event.type.value} to an upload in status {state.status.value}",
            details={"upload_id": state.id, "status": state.status.value, "event": event.type.value},
        )

    if event.type == UploadEventType.START_UPLOAD:
        return replace(state, status=next_status, progress=0, error=None)
    if event.type == UploadEventType.UPLOAD_PROGRESS:
        return replace(state, progress=_clamp_progress(event.progress or 0))
    if event.type == UploadEventType.UPLOAD_COMPLETE:
        return replace(state, status=next_status, progress=100, receipt_id=event.receipt_id)
    if event.type == UploadEventType.FAIL:
        return replace(state, status=next_status, error=event.error or "Upload failed")
    if event.type == UploadEventType.RETRY:
        return replace(state, status=next_status, progress=0, error=None)
    return replace(state, status=next_status)


def reduce_queue(
    uploads: Tuple[UploadState, ...], upload_id: str, event: UploadEvent
) -> Tuple[UploadState, ...]:
    """Apply an event to one upload in a queue; other uploads are untouched."""
    if not any(u.id == upload_id for u in uploads):
        raise InvalidUploadTransitionError(
            f"Upload {upload_id} is not in the queue", details={"upload_id": upload_id}
        )
    return tuple(reduce_upload(u, event) if u.id == upload_id else u for u in uploads)
