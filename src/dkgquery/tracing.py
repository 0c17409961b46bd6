"""Debug trace files for query loop runs."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class TraceWriter:
    """Writes one JSON file per loop run into ``trace_dir``.

    Tracing is diagnostic only: a failed write is logged and otherwise
    ignored.
    """

    def __init__(self, trace_dir: str):
        self.trace_dir = trace_dir

    def filename(self, when: Optional[datetime] = None) -> str:
        when = when or datetime.now(timezone.utc)
        return f"dkg-query-{when.strftime('%Y%m%dT%H%M%S%fZ')}.json"

    def write(
        self,
        question: str,
        transcript: List[Dict[str, Any]],
        executed_queries: List[str],
        outcome: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """Write a trace file; return its path, or ``None`` when writing failed."""
        path = os.path.join(self.trace_dir, self.filename())
        payload = {
            "question": question,
            "written_at": datetime.now(timezone.utc).isoformat(),
            "transcript": transcript,
            "executed_queries": executed_queries,
            "outcome": outcome,
        }
        try:
            os.makedirs(self.trace_dir, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, default=str)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Could not write query trace to {path}: {e}")
            return None
        logger.debug(f"Query trace written to {path}")
        return path
