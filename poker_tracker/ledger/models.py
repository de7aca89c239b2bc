"""Player and session entry records."""
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


def _money(value: Optional[Decimal]) -> float:
    """Serialise an optional amount the way the frontend expects (null -> 0)."""
    return float(value) if value is not None else 0.0


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Player:
    """A registered player."""
    computing_id: str
    first_name: str
    last_name: str
    years_of_experience: Optional[int] = None
    level: Optional[str] = None
    major: Optional[str] = None
    total_winnings: Decimal = Decimal("0.00")
    is_admin: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "computing_id": self.computing_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "years_of_experience": self.years_of_experience,
            "level": self.level,
            "major": self.major,
            "total_winnings": _money(self.total_winnings),
            "is_admin": self.is_admin,
            "created_at": _timestamp(self.created_at),
            "updated_at": _timestamp(self.updated_at),
        }

    def to_summary(self) -> dict:
        """Short form used in login responses."""
        return {
            "computing_id": self.computing_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "is_admin": self.is_admin,
            "total_winnings": _money(self.total_winnings),
        }

    @classmethod
    def from_record(cls, record) -> "Player":
        """Create from database record."""
        return cls(
            computing_id=record["computing_id"],
            first_name=record["first_name"],
            last_name=record["last_name"],
            years_of_experience=record["years_of_experience"],
            level=record["level"],
            major=record["major"],
            total_winnings=record["total_winnings"],
            is_admin=record["is_admin"],
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )


@dataclass
class SessionEntry:
    """One check-in/check-out record for a player."""
    entry_id: int
    computing_id: str
    session_date: date
    start_chips: Decimal
    start_chip_breakdown: dict[str, int] = field(default_factory=dict)
    start_photo_url: Optional[str] = None
    end_chips: Optional[Decimal] = None
    end_chip_breakdown: dict[str, int] = field(default_factory=dict)
    end_photo_url: Optional[str] = None
    net_winnings: Optional[Decimal] = None
    is_completed: bool = False
    admin_override: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def counted_by_breakdown(self) -> bool:
        """True when the chip amounts were priced from a color breakdown."""
        return bool(self.start_chip_breakdown) or bool(self.end_chip_breakdown)

    def with_changes(self, **changes) -> "SessionEntry":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "entry_id": self.entry_id,
            "computing_id": self.computing_id,
            "session_date": self.session_date.isoformat(),
            "start_photo_url": self.start_photo_url,
            "start_chips": _money(self.start_chips),
            "start_chip_breakdown": self.start_chip_breakdown,
            "end_photo_url": self.end_photo_url,
            "end_chips": _money(self.end_chips) if self.end_chips is not None else None,
            "end_chip_breakdown": self.end_chip_breakdown,
            "net_winnings": _money(self.net_winnings) if self.net_winnings is not None else None,
            "is_completed": self.is_completed,
            "admin_override": self.admin_override,
            "created_at": _timestamp(self.created_at),
            "updated_at": _timestamp(self.updated_at),
        }

    @classmethod
    def from_record(cls, record) -> "SessionEntry":
        """Create from database record."""
        return cls(
            entry_id=record["entry_id"],
            computing_id=record["computing_id"],
            session_date=record["session_date"],
            start_chips=record["start_chips"],
            start_chip_breakdown=record["start_chip_breakdown"] or {},
            start_photo_url=record["start_photo_url"],
            end_chips=record["end_chips"],
            end_chip_breakdown=record["end_chip_breakdown"] or {},
            end_photo_url=record["end_photo_url"],
            net_winnings=record["net_winnings"],
            is_completed=record["is_completed"],
            admin_override=record["admin_override"],
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )
