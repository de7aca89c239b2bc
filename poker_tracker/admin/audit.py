"""Append-only audit log of admin actions using PostgreSQL."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from poker_tracker.db.connection import db
from poker_tracker.utils.logger import get_logger

logger = get_logger(__name__)


class AuditAction(str, Enum):
    """Kinds of audited admin actions."""
    ADMIN_OVERRIDE_SESSION = "ADMIN_OVERRIDE_SESSION"
    UPDATE_CHIP_VALUES = "UPDATE_CHIP_VALUES"
    RECALCULATE_WINNINGS = "RECALCULATE_WINNINGS"
    UPDATE_PLAYER_PROFILE = "UPDATE_PLAYER_PROFILE"


@dataclass
class AuditLogEntry:
    """An audit log record."""
    id: int
    action: AuditAction
    actor: str
    target_table: str
    target_id: str
    old_values: Optional[dict]
    new_values: Optional[dict]
    reason: Optional[str]
    created_at: datetime

    @property
    def target(self) -> str:
        return f"{self.target_table}:{self.target_id}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "action": self.action.value,
            "actor": self.actor,
            "target": self.target,
            "target_table": self.target_table,
            "target_id": self.target_id,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "reason": self.reason,
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record) -> "AuditLogEntry":
        """Create from database record."""
        return cls(
            id=record["id"],
            action=AuditAction(record["action"]),
            actor=record["actor"],
            target_table=record["target_table"],
            target_id=record["target_id"],
            old_values=record["old_values"],
            new_values=record["new_values"],
            reason=record["reason"],
            created_at=record["created_at"],
        )


class AuditLog:
    """Audit trail for admin actions."""

    async def record(
        self,
        actor: str,
        action: AuditAction,
        target_table: str,
        target_id: str,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        reason: Optional[str] = None,
        conn: Any = None,
    ) -> AuditLogEntry:
        """Append an audit entry.

        Args:
            actor: Computing ID of the admin.
            action: What was done.
            target_table: Table of the affected row(s).
            target_id: Key of the affected row, or "all".
            old_values: JSON-serialisable state before the action.
            new_values: JSON-serialisable state after the action.
            reason: Free-text justification.
            conn: Connection of the enclosing transaction.

        Returns:
            The recorded entry.
        """
        record = await (conn or db).fetchrow(
            """
            INSERT INTO audit_logs (
                actor, action, target_table, target_id,
                old_values, new_values, reason
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            actor,
            action.value,
            target_table,
            target_id,
            old_values,
            new_values,
            reason,
        )

        entry = AuditLogEntry.from_record(record)
        logger.info(f"Audit: {actor} {action.value} {entry.target}")
        return entry

    async def list_recent(self, limit: int = 100, offset: int = 0, conn: Any = None) -> list[AuditLogEntry]:
        """Get audit entries, newest first.

        Args:
            limit: Maximum entries to return.
            offset: Entries to skip.

        Returns:
            List of audit entries.
        """
        records = await (conn or db).fetch(
            """
            SELECT * FROM audit_logs
            ORDER BY created_at DESC, id DESC
            LIMIT $1 OFFSET $2
            """,
            limit,
            offset
        )
        return [AuditLogEntry.from_record(r) for r in records]

    async def count(self, conn: Any = None) -> int:
        """Total number of audit entries."""
        return await (conn or db).fetchval("SELECT COUNT(*) FROM audit_logs")


# Global instance
audit_log = AuditLog()
