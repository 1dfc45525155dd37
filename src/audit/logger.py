"""Gateway audit trail: append-only JSON Lines with rotation and a hash chain.

Each line carries ``prev_hash``, the SHA-256 of the previous line, so a
tampered or truncated log is detectable with ``validate_audit_chain``.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path

from src.models import AuditEvent, AuditEventType, Identity, Option, RiskLevel

MAX_LOGGED_TEXT = 500


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check that every line's ``prev_hash`` matches the line before it."""
    lines = log_path.read_text().strip().split("\n")
    if lines == [""]:
        return ChainValidationResult(valid=True)

    previous: str | None = None
    for number, line in enumerate(lines, start=1):
        expected = hashlib.sha256(previous.encode()).hexdigest() if previous else None
        if json.loads(line).get("prev_hash") != expected:
            return ChainValidationResult(valid=False, broken_at_line=number)
        previous = line

    return ChainValidationResult(valid=True)


class AuditLogger:
    """Append-only structured audit log for inbound messages and option access."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._last_line: str | None = None
        # Continue the chain from an existing file
        if self.log_path.exists() and self.log_path.stat().st_size > 0:
            text = self.log_path.read_text().strip()
            if text:
                self._last_line = text.split("\n")[-1]

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        max_bytes = int(os.environ.get("AUDIT_LOG_MAX_BYTES", "10485760"))
        backup_count = int(os.environ.get("AUDIT_LOG_BACKUP_COUNT", "5"))
        return cls(log_path=log_path, max_bytes=max_bytes, backup_count=backup_count)

    def message_received(
        self, sender_id: str, identity: Identity, text: str, metadata: dict[str, object],
    ) -> None:
        self.log(AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            sender_id=sender_id,
            identity_id=identity.id,
            action="inbound_message",
            result="success",
            risk_level=RiskLevel.INFO,
            details={
                "display_name": identity.display_name,
                "role": identity.role,
                "text": text[:MAX_LOGGED_TEXT],
                "metadata": metadata,
            },
        ))

    def option_accessed(self, sender_id: str, identity: Identity, option: Option) -> None:
        self.log(AuditEvent(
            event_type=AuditEventType.OPTION_ACCESSED,
            sender_id=sender_id,
            identity_id=identity.id,
            action="option_selected",
            result="success",
            risk_level=RiskLevel.LOW,
            details={
                "display_label": option.display_label,
                "access_uri": option.access_uri,
            },
        ))

    def _rotate_if_needed(self) -> None:
        if not self.log_path.exists() or self.log_path.stat().st_size < self._max_bytes:
            return

        def backup(index: int) -> Path:
            return self.log_path.with_name(f"{self.log_path.name}.{index}")

        backup(self._backup_count).unlink(missing_ok=True)
        for index in range(self._backup_count - 1, 0, -1):
            if backup(index).exists():
                backup(index).rename(backup(index + 1))
        self.log_path.rename(backup(1))

    def log(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        data = json.loads(event.model_dump_json())
        data["prev_hash"] = (
            hashlib.sha256(self._last_line.encode()).hexdigest()
            if self._last_line is not None
            else None
        )
        line = json.dumps(data, separators=(",", ":"))

        # Rotation and append happen under one lock
        lock_file = self.log_path.with_name(f".{self.log_path.name}.lock")
        with open(lock_file, "w") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                self._rotate_if_needed()
                with open(self.log_path, "a") as f:
                    f.write(line + "\n")
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)

        self._last_line = line
