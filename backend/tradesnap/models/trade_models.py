"""Trade and instrument records.

Field names are snake_case in Python and camelCase on the wire (remote API and
HTTP surface); both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import date as Date
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from tradesnap.infrastructure.utils.timeutils import parse_timestamp

MAX_SCREENSHOTS = 2


def _decimal_text(v: Any) -> Any:
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, bool):
        raise ValueError("expected a decimal value")
    if isinstance(v, (int, float, Decimal)):
        return str(v)
    return v


class RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, *, exclude: Optional[set] = None) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


class Instrument(RecordModel):
    id: Optional[int] = None
    symbol: str = Field(..., min_length=1)
    description: str = ""
    tick_size: str
    tick_value: str
    point_value: str

    @field_validator("tick_size", "tick_value", "point_value", mode="before")
    @classmethod
    def coerce_decimal_text(cls, v: Any) -> Any:
        return _decimal_text(v)

    @field_validator("symbol")
    @classmethod
    def strip_symbol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("symbol must not be blank")
        return v


class Trade(RecordModel):
    id: Optional[int] = None
    user_id: int
    symbol: str = Field(..., min_length=1)
    trade_type: Literal["long", "short"]
    quantity: int = Field(..., gt=0)
    entry_price: str
    exit_price: Optional[str] = None
    stop_loss_price: Optional[str] = None
    is_ongoing: bool = False
    date: Date
    entry_time: Optional[str] = None
    pnl_points: Optional[str] = None
    pnl_dollars: Optional[str] = None
    risk_reward_ratio: Optional[str] = None
    notes: Optional[str] = None
    screenshots: List[str] = Field(default_factory=list, max_length=MAX_SCREENSHOTS)
    created_at: Optional[datetime] = None

    @field_validator(
        "entry_price",
        "exit_price",
        "stop_loss_price",
        "pnl_points",
        "pnl_dollars",
        "risk_reward_ratio",
        mode="before",
    )
    @classmethod
    def coerce_decimal_text(cls, v: Any) -> Any:
        return _decimal_text(v)

    @field_validator("trade_type", mode="before")
    @classmethod
    def normalize_trade_type(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("is_ongoing", mode="before")
    @classmethod
    def none_is_not_ongoing(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("date", mode="before")
    @classmethod
    def truncate_to_day(cls, v: Any) -> Any:
        # The remote API sends full timestamps; only the day is kept
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and len(v) > 10:
            return v[:10]
        return v

    @field_validator("screenshots", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, v: Any) -> Any:
        if v is None or isinstance(v, (str, datetime)):
            return parse_timestamp(v)
        return v

    @model_validator(mode="after")
    def check_exit_price(self) -> "Trade":
        if not self.is_ongoing and not (self.exit_price or "").strip():
            raise ValueError("Exit price is required for completed trades")
        return self
