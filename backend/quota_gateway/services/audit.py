"""Admission audit trail stored as JSON lines.

One line per request: who asked (anonymous, admin or a provider key), what the
limiter decided and how much quota the key had left. Keys are stored masked.
"""
from __future__ import annotations

import json
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from quota_gateway.services.keys import mask_key
from quota_gateway.services.rate_limit import Verdict


@dataclass(slots=True)
class AuditRecord:
    request_id: str
    method: str
    path: str
    status_code: int
    actor: str = "anonymous"
    key_prefix: str | None = None
    verdict: str | None = None
    remaining: int | None = None
    duration_ms: float = 0.0
    ip: str | None = None
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @classmethod
    def for_request(
        cls,
        *,
        request_id: str,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        actor: str = "anonymous",
        verdict: Verdict | None = None,
        ip: str | None = None,
    ) -> "AuditRecord":
        record = cls(
            request_id=request_id,
            method=method,
            path=path,
            status_code=status_code,
            actor=actor,
            duration_ms=round(duration_ms, 3),
            ip=ip,
        )
        if verdict is not None:
            record.verdict = verdict.status.value
            record.remaining = verdict.remaining
            if verdict.key:
                record.key_prefix = mask_key(verdict.key)
        return record


class AuditLogger:
    """Append-only JSONL file; writes are serialised per logger."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, record: AuditRecord) -> None:
        line = json.dumps(asdict(record), ensure_ascii=False)
        with self._lock, self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    def tail(self, limit: int | None) -> list[AuditRecord]:
        """Most recent records, oldest first; ``None`` returns everything."""

        if not self._path.exists():
            return []
        with self._lock, self._path.open("r", encoding="utf-8") as fh:
            lines = deque((ln for ln in fh if ln.strip()), maxlen=limit)
        return [AuditRecord(**json.loads(ln)) for ln in lines]


__all__ = ["AuditLogger", "AuditRecord"]
