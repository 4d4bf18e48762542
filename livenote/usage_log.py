import json
import logging
import os
import threading
import time
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger("livenote.usage")

USAGE_LOG_DIR = os.getenv("LIVENOTE_USAGE_LOG_DIR", os.path.join("data", "usage_logs"))
USAGE_LOG_ENABLED = os.getenv("LIVENOTE_USAGE_LOG", "1").strip() != "0"


class UsageLogger:
    def __init__(self, log_dir: str = USAGE_LOG_DIR, enabled: bool = USAGE_LOG_ENABLED) -> None:
        self.lock = threading.Lock()
        self.log_dir = log_dir
        self.enabled = enabled
        self.daily_counts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def _path(self, day: str) -> str:
        return os.path.join(self.log_dir, f"usage_{day}.jsonl")

    def log_event(self, event_type: str, status: int = 200, meta: Optional[Dict[str, Any]] = None) -> None:
        """
        Record one API event. The router logs session_created, template_bound,
        text, text_error (409 before a template is bound), session_reset,
        session_deleted, template_suggest, categorize and analyze. Counters are
        kept in memory; the JSONL line is only written when logging is enabled.
        """
        day = datetime.now().strftime("%Y-%m-%d")
        entry = {
            "ts": time.time(),
            "type": event_type,
            "status": status,
            "meta": meta or {},
        }
        with self.lock:
            daily = self.daily_counts[day]
            daily[f"events_{event_type}"] += 1
            if status >= 400:
                daily[f"errors_{event_type}"] += 1
            if not self.enabled:
                return
            try:
                os.makedirs(self.log_dir, exist_ok=True)
                with open(self._path(day), "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry) + "\n")
            except OSError as e:
                logger.warning("Usage log write failed: %s", e)

    def summarize_day(self, day: Optional[str] = None) -> Dict[str, int]:
        """Counts from the on-disk log for the day, or this process's counters when logging is off."""
        target = day or datetime.now().strftime("%Y-%m-%d")
        counts: Dict[str, int] = defaultdict(int)
        path = self._path(target)
        if self.enabled and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                for raw in f:
                    raw = raw.strip()
                    if not raw:
                        continue
                    try:
                        entry = json.loads(raw)
                    except ValueError:
                        continue
                    etype = entry.get("type") or "unknown"
                    counts[f"events_{etype}"] += 1
                    if entry.get("status", 0) >= 400:
                        counts[f"errors_{etype}"] += 1
        elif target in self.daily_counts:
            for key, value in self.daily_counts[target].items():
                counts[key] += value
        counts["day"] = 1
        return dict(counts)


usage_logger = UsageLogger()
