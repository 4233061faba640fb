"""
In-memory record of recent moderation failures, served by /health/errors
"""
import time
from collections import Counter, deque
from threading import Lock
from typing import Dict, List, Optional

ERROR_TYPES = ('database', 'processing', 'external', 'moderation', 'other')
RECENT_WINDOW_SECONDS = 300


def _age_label(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    return f"{seconds // 3600}h ago"


class ErrorTracker:
    """Keeps the last N errors and per-type totals for the process"""

    def __init__(self, max_errors: int = 100):
        self._errors = deque(maxlen=max_errors)
        self._counts = Counter()
        self._lock = Lock()

    def track_error(self, error_type: str, message: str, image_id: Optional[int] = None):
        if error_type not in ERROR_TYPES:
            error_type = 'other'
        with self._lock:
            self._errors.append({
                'timestamp': time.time(),
                'type': error_type,
                'message': message,
                'image_id': image_id
            })
            self._counts[error_type] += 1

    def get_recent_errors(self, limit: int = 50) -> List[Dict]:
        """Newest last; each entry carries a human-readable age"""
        now = time.time()
        with self._lock:
            errors = [dict(e) for e in list(self._errors)[-limit:]]
        for error in errors:
            error['time_ago'] = _age_label(int(now - error['timestamp']))
        return errors

    def get_error_stats(self) -> Dict:
        cutoff = time.time() - RECENT_WINDOW_SECONDS
        with self._lock:
            return {
                'total_errors': sum(self._counts.values()),
                'recent_errors': len(self._errors),
                'errors_last_5min': sum(1 for e in self._errors if e['timestamp'] > cutoff),
                'error_counts': {t: self._counts[t] for t in ERROR_TYPES}
            }

    def reset(self):
        with self._lock:
            self._errors.clear()
            self._counts.clear()


error_tracker = ErrorTracker()
