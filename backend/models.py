"""
MysticRead AI — Pydantic Request Models
Analysis inputs for every reading kind plus auth, chat and payment bodies.
JSON keys are camelCase on the wire; Python attributes stay snake_case.
"""
import re
from datetime import date
from typing import Literal, Optional, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from tarot_deck import SPREAD_POSITIONS

AnalysisKind = Literal["palm", "astrology", "vastu", "numerology", "tarot"]
ANALYSIS_KINDS = ("palm", "astrology", "vastu", "numerology", "tarot")

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Analysis inputs ───────────────────────────────────────────────────────────

class AstrologyInput(CamelModel):
    birth_date: str = Field(..., description="YYYY-MM-DD")
    birth_time: str = Field(..., description="HH:MM, 24h")
    birth_place: str = Field(..., min_length=1)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @field_validator("birth_date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        date.fromisoformat(v)
        return v

    @field_validator("birth_time")
    @classmethod
    def _valid_time(cls, v: str) -> str:
        if not _TIME_RE.match(v):
            raise ValueError("birthTime must be HH:MM")
        return v


class VastuRoom(CamelModel):
    name: str = Field(..., min_length=1)
    direction: str = Field(..., min_length=1)
    size: str = Field(..., min_length=1)


class VastuInput(CamelModel):
    layout_type: str = Field(..., min_length=1)   # home | office | shop
    rooms: List[VastuRoom] = Field(..., min_length=1)
    entrance: str = Field(..., min_length=1)
    building_shape: str = Field(..., min_length=1)
    surroundings: str = Field(..., min_length=1)


class NumerologyInput(CamelModel):
    analysis_type: Literal["personal", "business"]
    name: Optional[str] = None
    birth_date: Optional[str] = None
    company_name: Optional[str] = None

    @field_validator("birth_date")
    @classmethod
    def _valid_date(cls, v: Optional[str]) -> Optional[str]:
        if v:
            date.fromisoformat(v)
        return v

    @model_validator(mode="after")
    def _required_for_type(self):
        if self.analysis_type == "personal":
            if not (self.name and self.name.strip()) or not self.birth_date:
                raise ValueError("personal numerology requires name and birthDate")
        elif not (self.company_name and self.company_name.strip()):
            raise ValueError("business numerology requires companyName")
        return self


class DrawnCard(CamelModel):
    card_name: str = Field(..., min_length=1)
    suit: Optional[str] = None
    position: str = Field(..., min_length=1)
    reversed: bool


class TarotInput(CamelModel):
    spread_type: Literal["single-card", "three-card", "celtic-cross"]
    question: Optional[str] = None
    drawn_cards: List[DrawnCard] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _cards_fill_spread(self):
        expected = len(SPREAD_POSITIONS[self.spread_type])
        if len(self.drawn_cards) != expected:
            raise ValueError(f"{self.spread_type} spread needs {expected} cards, got {len(self.drawn_cards)}")
        return self


INPUT_MODELS = {
    "astrology":  AstrologyInput,
    "vastu":      VastuInput,
    "numerology": NumerologyInput,
    "tarot":      TarotInput,
}


# ── Auth ──────────────────────────────────────────────────────────────────────

class RegisterBody(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)


class LoginBody(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


# ── Chat ──────────────────────────────────────────────────────────────────────

class HistoryMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str


class MysticalChatBody(CamelModel):
    message: str = Field(..., min_length=1, max_length=4000)
    conversation_history: List[HistoryMessage] = Field(default_factory=list)


class CreditChatBody(CamelModel):
    message: str = Field(..., min_length=1, max_length=4000)


class ChatSendBody(CamelModel):
    analysis_id: str
    message: str = Field(..., min_length=1, max_length=4000)


# ── Payments ──────────────────────────────────────────────────────────────────

class CreateOrderBody(CamelModel):
    payment_tier: str


class VerifyPaymentBody(BaseModel):
    # field names are fixed by the Razorpay checkout callback
    model_config = ConfigDict(populate_by_name=True)

    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_order_id:   str = Field(..., min_length=1)
    razorpay_signature:  str = Field(..., min_length=1)
    payment_id:          str = Field(..., min_length=1, alias="paymentId")


class HealthResponse(BaseModel):
    status: str
    version: str
    services: dict
