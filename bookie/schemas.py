"""
Pydantic request/response schemas for the bookie API.

Request bodies are validated here so the session only ever sees well-formed
values; amounts, limits and rates are non-negative and numbers are checked
against the active lottery type's digit width in the route handlers.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator


# ---------------------------------------------------------------------------
# Bets
# ---------------------------------------------------------------------------

class BetTextIn(BaseModel):
    """Payload for POST /api/parse and POST /api/bets."""

    text: str = Field(..., min_length=1, max_length=20000, description='e.g. "12r 100\\napu 50"')

    model_config = {
        "json_schema_extra": {"example": {"text": "12r 100\napu 50"}}
    }


class InboxBetsIn(BetTextIn):
    """Payload for POST /api/bets/inbox. ``agent_name`` may come from a header line."""

    agent_name: Optional[str] = Field(None, max_length=120)


class RawBetOut(BaseModel):
    number: str
    amount: float


class ParsePreviewOut(BaseModel):
    bets: List[RawBetOut]
    count: int
    total_amount: float


class BetDetailOut(BaseModel):
    id: str
    amount: float
    source: str
    history_entry_id: str
    number: str


class HistoryEntryOut(BaseModel):
    id: str
    input: str
    timestamp: str
    bets: List[BetDetailOut]


class EditTextOut(BaseModel):
    """Text handed back to the input box for re-entry."""

    text: str


# ---------------------------------------------------------------------------
# Grid / exposure
# ---------------------------------------------------------------------------

class GridCellOut(BaseModel):
    number: str
    amount: float
    limit: float
    over_limit_amount: float
    has_custom_limit: bool
    is_over_limit: bool
    bets_string: str
    breakdown: List[BetDetailOut]


class ExposureItemOut(BaseModel):
    number: str
    amount: float


class ForwardConfirmIn(BaseModel):
    numbers: List[str] = Field(..., max_length=1000, description="Numbers on the list that was delivered")


class ForwardOut(BaseModel):
    kind: str
    text: Optional[str]
    items: List[ExposureItemOut]


# ---------------------------------------------------------------------------
# Limits and settings
# ---------------------------------------------------------------------------

class LimitGroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description='e.g. "apu", "12r", "5t"')
    amount: float = Field(..., ge=0)


class LimitGroupUpdate(BaseModel):
    amount: float = Field(..., ge=0)


class LimitGroupOut(BaseModel):
    id: str
    name: str
    amount: float
    numbers: List[str]
    is_open: bool


class BatchLimitChange(BaseModel):
    kind: Literal["add", "sub", "set"]
    value: float = Field(..., ge=0)

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: float, info: ValidationInfo) -> float:
        if v == 0 and info.data.get("kind") != "set":
            raise ValueError("add/sub need a positive value")
        return v


class SettingsUpdate(BaseModel):
    bookie_name: Optional[str] = Field(None, min_length=1, max_length=120)
    payout_rate: Optional[float] = Field(None, ge=0)
    default_limit: Optional[float] = Field(None, ge=0)
    commission_to_pay: Optional[float] = Field(None, ge=0, le=100)
    commission_from_upper_bookie: Optional[float] = Field(None, ge=0, le=100)
    currency_symbol: Optional[Literal["K", "฿", "¥"]] = None


class SettingsOut(BaseModel):
    bookie_name: str
    payout_rate: float
    default_limit: float
    commission_to_pay: float
    commission_from_upper_bookie: float
    currency_symbol: str


class LotteryTypeIn(BaseModel):
    lottery_type: Literal["2D", "3D"]


class ModeIn(BaseModel):
    mode: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Agents / settlement / reports
# ---------------------------------------------------------------------------

class AgentIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    commission: float = Field(0.0, ge=0, le=100)


class AgentOut(BaseModel):
    name: str
    commission: float


class PayoutRequest(BaseModel):
    winning_number: str = Field(..., min_length=2, max_length=3, pattern=r"^\d+$")


class ReportSaveIn(BaseModel):
    session: Optional[Literal["morning", "evening"]] = None


class SummaryOut(BaseModel):
    lottery_type: str
    mode: str
    total_bet_amount: float
    total_over_limit_amount: float
    total_held_amount: float
    payable_commission_amount: float
    receivable_commission_amount: float
    net_amount: float
    pending_forwardable_amount: float
    held_voucher_amount: float
