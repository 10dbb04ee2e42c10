# infrastructure/progress_store.py
"""Simple in-memory batch progress tracking with size limit"""
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from core.domain import BatchProcessingResult, ProcessingStatus


class ProgressStore:
    """
    In-memory storage for batch processing progress (polling endpoint).

    Auto-cleanup at 500 entries (keeps newest 250). Lost on server restart.
    Usage: start() → update() → complete()/fail(). Client polls get().
    """
    MAX_ENTRIES = 500

    def __init__(self):
        self._progress: Dict[str, Dict[str, Any]] = {}

    def _cleanup_if_full(self):
        """Remove oldest entries when limit reached"""
        if len(self._progress) <= self.MAX_ENTRIES:
            return

        sorted_items = sorted(
            self._progress.items(),
            key=lambda x: x[1].get('_created', datetime.min.replace(tzinfo=timezone.utc))
        )
        to_remove = len(self._progress) - self.MAX_ENTRIES // 2
        for batch_id, _ in sorted_items[:to_remove]:
            del self._progress[batch_id]

    def start(self, batch_id: str, total: int) -> None:
        """Initialize progress tracking. Triggers cleanup if at 500 entries."""
        self._cleanup_if_full()
        self._progress[batch_id] = {
            "status": ProcessingStatus.PENDING,
            "is_processing": True,
            "current_file": "",
            "completed": 0,
            "total": total,
            "percentage": 0,
            "error": None,
            "result": None,
            "_created": datetime.now(timezone.utc)
        }

    def update(self, batch_id: str, completed: int, total: int, current_file: str) -> None:
        """Record the (completed, total, current_file) triple reported by the batch processor."""
        if batch_id in self._progress:
            self._progress[batch_id].update({
                "status": ProcessingStatus.PROCESSING,
                "completed": completed,
                "total": total,
                "current_file": current_file,
                "percentage": round(completed / total * 100) if total else 100,
            })

    def fail(self, batch_id: str, error: str) -> None:
        if batch_id in self._progress:
            self._progress[batch_id].update({
                "status": ProcessingStatus.FAILED,
                "is_processing": False,
                "error": error,
            })

    def complete(self, batch_id: str, result: BatchProcessingResult) -> None:
        if batch_id in self._progress:
            self._progress[batch_id].update({
                "status": ProcessingStatus.COMPLETED,
                "is_processing": False,
                "completed": result.total_files,
                "total": result.total_files,
                "current_file": "",
                "percentage": 100,
                "result": result,
            })

    def get(self, batch_id: str) -> Optional[Dict[str, Any]]:
        return self._progress.get(batch_id)


# Global instance
progress_store = ProgressStore()
