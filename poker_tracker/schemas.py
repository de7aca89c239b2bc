"""Request bodies for the HTTP API."""
from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from poker_tracker.ledger.chips import CHIP_COLORS

COMPUTING_ID_PATTERN = r"^[a-zA-Z0-9]+$"

# NUMERIC(12, 2) columns
AMOUNT_DIGITS = 12
MAX_CHIP_COUNT = 10000

Level = Literal["Beginner", "Intermediate", "Advanced", "Expert"]


def _check_breakdown(value: Optional[dict[str, int]]) -> Optional[dict[str, int]]:
    if value is None:
        return value
    for color, count in value.items():
        if color not in CHIP_COLORS:
            raise ValueError(f"Chip color must be one of: {', '.join(CHIP_COLORS)}")
        if count < 0:
            raise ValueError("Chip count cannot be negative")
        if count > MAX_CHIP_COUNT:
            raise ValueError(f"Chip count cannot exceed {MAX_CHIP_COUNT}")
    return value


class LoginRequest(BaseModel):
    computing_id: str = Field(min_length=3, max_length=50, pattern=COMPUTING_ID_PATTERN)


class CreatePlayerRequest(BaseModel):
    computing_id: str = Field(min_length=3, max_length=50, pattern=COMPUTING_ID_PATTERN)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    years_of_experience: Optional[int] = Field(default=None, ge=0, le=50)
    level: Optional[Level] = None
    major: Optional[str] = Field(default=None, max_length=100)

    @field_validator("first_name", "last_name", "major", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class UpdatePlayerRequest(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    years_of_experience: Optional[int] = Field(default=None, ge=0, le=50)
    level: Optional[Level] = None
    major: Optional[str] = Field(default=None, max_length=100)

    @field_validator("first_name", "last_name", "major", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def at_least_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class SessionRequest(BaseModel):
    """Combined check-in / check-out form."""
    session_date: date
    session_type: Literal["check-in", "check-out"] = "check-in"
    start_chips: Optional[Decimal] = Field(default=None, gt=0, max_digits=AMOUNT_DIGITS, decimal_places=2)
    start_chip_breakdown: Optional[dict[str, int]] = None
    end_chips: Optional[Decimal] = Field(default=None, ge=0, max_digits=AMOUNT_DIGITS, decimal_places=2)
    end_chip_breakdown: Optional[dict[str, int]] = None

    @field_validator("session_date")
    @classmethod
    def not_in_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Session date cannot be in the future")
        return v

    @field_validator("start_chip_breakdown", "end_chip_breakdown")
    @classmethod
    def known_colors(cls, v):
        return _check_breakdown(v)


class CheckOutRequest(BaseModel):
    end_chips: Optional[Decimal] = Field(default=None, ge=0, max_digits=AMOUNT_DIGITS, decimal_places=2)
    end_chip_breakdown: Optional[dict[str, int]] = None

    @field_validator("end_chip_breakdown")
    @classmethod
    def known_colors(cls, v):
        return _check_breakdown(v)

    @model_validator(mode="after")
    def amount_or_breakdown(self):
        if self.end_chips is None and not self.end_chip_breakdown:
            raise ValueError("Either end_chips or end_chip_breakdown is required")
        return self


class OverrideRequest(BaseModel):
    net_winnings: Decimal = Field(max_digits=AMOUNT_DIGITS, decimal_places=2)
    reason: Optional[str] = Field(default=None, max_length=500)
