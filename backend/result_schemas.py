"""
MysticRead AI — Reading Result Schemas
Strict pydantic shapes for what the model must return, one per reading kind,
and the validator that gates every result before it is stored.
"""

from typing import Any, Literal, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, ValidationError, field_validator
from pydantic.alias_generators import to_camel

Percentage = StrictInt
ZodiacSign = Literal[
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
]
ZODIAC_SIGNS = list(ZodiacSign.__args__)
MASTER_NUMBERS = (11, 22, 33)


class ResultValidationError(Exception):
    """The model's function-call arguments do not match the declared result shape."""

    def __init__(self, kind: str, errors: list, raw: Any, parsed: Optional[dict] = None):
        self.kind = kind
        self.errors = errors
        self.raw = raw
        self.parsed = parsed
        super().__init__(f"Invalid {kind} analysis response: {len(errors)} error(s)")


class ResultModel(BaseModel):
    # unknown keys are dropped, so a validated result has exactly the declared shape
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ── Palm ──────────────────────────────────────────────────────────────────────

class PalmLove(ResultModel):
    heart_line_analysis: str
    compatibility_insights: str
    relationship_strength: Literal["High", "Medium", "Low"]


class PalmCareer(ResultModel):
    professional_strengths: str
    recommended_paths: List[str]
    success_potential: Literal["Very High", "High", "Medium", "Low"]


class PalmHealth(ResultModel):
    life_line_insights: str
    wellness_recommendations: List[str]
    vitality_level: Literal["Strong", "Moderate", "Weak"]


class PalmFuture(ResultModel):
    near_future: str
    life_path_direction: str
    path_clarity: Literal["High", "Medium", "Low"]


class PalmLines(ResultModel):
    heart_line: str
    head_line: str
    life_line: str
    fate_line: str


class PalmResult(ResultModel):
    personality_overview: str
    traits: List[str]
    life_energy_percentage: Percentage = Field(..., ge=0, le=100)
    emotional_balance_percentage: Percentage = Field(..., ge=0, le=100)
    career_potential_percentage: Percentage = Field(..., ge=0, le=100)
    love_and_relationships: PalmLove
    career_and_success: PalmCareer
    health_and_wellness: PalmHealth
    future_insights: PalmFuture
    palm_lines: PalmLines


# ── Astrology ─────────────────────────────────────────────────────────────────

class House(ResultModel):
    number: StrictInt = Field(..., ge=1, le=12)
    sign: ZodiacSign
    planets: List[str]
    ruling: str


class PlanetPosition(ResultModel):
    sign: ZodiacSign
    house: StrictInt = Field(..., ge=1, le=12)
    degrees: StrictFloat = Field(..., ge=0, le=30)


class PlanetaryPositions(ResultModel):
    sun: PlanetPosition
    moon: PlanetPosition
    mercury: PlanetPosition
    venus: PlanetPosition
    mars: PlanetPosition
    jupiter: PlanetPosition
    saturn: PlanetPosition
    rahu: PlanetPosition
    ketu: PlanetPosition


class Aspect(ResultModel):
    from_: str = Field(..., alias="from")
    to: str
    type: str
    influence: str


class KundliChart(ResultModel):
    houses: List[House] = Field(..., min_length=1, max_length=12)
    planetary_positions: PlanetaryPositions
    aspects: List[Aspect]


class LoveAndRelationships(ResultModel):
    overview: str
    compatibility: str
    romantic_tendencies: str


class CareerAndFinances(ResultModel):
    career_path: str
    financial_luck: str
    professional_strengths: List[str]


class HealthAndWellbeing(ResultModel):
    physical_health: str
    mental_health: str
    recommendations: List[str]


class SpiritualGrowth(ResultModel):
    life_lesson: str
    spiritual_path: str
    karma_insights: str


class AstrologyLifeAreas(ResultModel):
    love_and_relationships: LoveAndRelationships
    career_and_finances: CareerAndFinances
    health_and_wellbeing: HealthAndWellbeing
    spiritual_growth: SpiritualGrowth


class AstrologyPredictions(ResultModel):
    this_year: str
    next_three_years: str
    major_life_events: List[str]


class AstrologyResult(ResultModel):
    personality_overview: str
    sun_sign: ZodiacSign
    moon_sign: ZodiacSign
    rising_sign: ZodiacSign
    kundli_chart: KundliChart
    life_areas: AstrologyLifeAreas
    predictions: AstrologyPredictions


# ── Vastu ─────────────────────────────────────────────────────────────────────

class EnergyFlow(ResultModel):
    positive: List[str]
    negative: List[str]
    neutral: List[str]


class RoomAnalysis(ResultModel):
    room: str
    direction: str
    vastu_compliance: str
    recommendations: List[str]
    score: StrictInt = Field(..., ge=0, le=100)


class VastuRecommendations(ResultModel):
    immediate: List[str]
    long_term: List[str]
    remedies: List[str]


class Prosperity(ResultModel):
    wealth: str
    health: str
    relationships: str
    career: str


class VastuResult(ResultModel):
    overall_score: StrictInt = Field(..., ge=0, le=100)
    overall_assessment: str
    energy_flow: EnergyFlow
    room_analysis: List[RoomAnalysis]
    recommendations: VastuRecommendations
    prosperity: Prosperity


# ── Numerology ────────────────────────────────────────────────────────────────

class CoreNumber(ResultModel):
    number: StrictInt
    meaning: str = Field(..., min_length=1)

    @field_validator("number")
    @classmethod
    def _single_digit_or_master(cls, v: int) -> int:
        if not (1 <= v <= 9 or v in MASTER_NUMBERS):
            raise ValueError(f"{v} is neither a single digit nor a master number (11, 22, 33)")
        return v


class LifePathNumber(CoreNumber):
    traits: List[str] = Field(..., min_length=1)


class DestinyNumber(CoreNumber):
    purpose: str


class SoulUrgeNumber(CoreNumber):
    desires: str


class PersonalityNumber(CoreNumber):
    impression: str


class CoreNumbers(ResultModel):
    life_path_number: LifePathNumber
    destiny_number: DestinyNumber
    soul_urge_number: SoulUrgeNumber
    personality_number: PersonalityNumber


class NumerologyLifeAreas(ResultModel):
    strengths: List[str]
    challenges: List[str]
    career_path: str
    relationships: str
    lucky_numbers: List[StrictInt]
    favorable_colors: List[str]

    @field_validator("lucky_numbers")
    @classmethod
    def _lucky_in_range(cls, v: List[int]) -> List[int]:
        for n in v:
            if not 1 <= n <= 99:
                raise ValueError(f"lucky number {n} outside 1..99")
        return v


class NumerologyPredictions(ResultModel):
    current_year: str
    next_phase: str
    opportunities: List[str]


class NumerologyResult(ResultModel):
    personality_overview: str
    core_numbers: CoreNumbers
    life_areas: NumerologyLifeAreas
    predictions: NumerologyPredictions


# ── Tarot ─────────────────────────────────────────────────────────────────────

class CardAnalysis(ResultModel):
    position: str
    card_name: str
    meaning: str
    interpretation: str
    reversed: StrictBool
    reversed_meaning: Optional[str] = None


class TarotGuidance(ResultModel):
    present_situation: str
    advice: str
    past_influences: Optional[str] = None
    future_outlook: Optional[str] = None
    outcome: Optional[str] = None


class TarotResult(ResultModel):
    spread_type: str
    personality_overview: str
    card_analysis: List[CardAnalysis] = Field(..., min_length=1)
    overall_message: str
    guidance: TarotGuidance
    action_steps: List[str]
    reflection: str


RESULT_MODELS: dict[str, type[ResultModel]] = {
    "palm":       PalmResult,
    "astrology":  AstrologyResult,
    "vastu":      VastuResult,
    "numerology": NumerologyResult,
    "tarot":      TarotResult,
}


# ── Validation ────────────────────────────────────────────────────────────────

def validate_result(kind: str, raw: Any) -> ResultModel:
    """
    Parse raw function-call arguments into the kind's result model.

    Raises ResultValidationError on any missing field, wrong type, out-of-enum
    value or out-of-range number; there is no partial acceptance.
    """
    model = RESULT_MODELS[kind]
    if not isinstance(raw, dict):
        raise ResultValidationError(kind, [{"msg": f"expected an object, got {type(raw).__name__}"}], raw)
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise ResultValidationError(kind, e.errors(include_url=False), raw) from e


def check_consistency(kind: str, input_data: Optional[BaseModel], result: ResultModel, raw: Any = None) -> None:
    """
    Cross-check a validated result against the request it answers. `raw` is the
    model's original payload, carried on the error next to the parsed result.
    """
    if kind != "tarot" or input_data is None:
        return
    expected = [card.position for card in input_data.drawn_cards]
    got = [card.position for card in result.card_analysis]
    if got != expected:
        raise ResultValidationError(
            kind,
            [{"loc": ("cardAnalysis",), "msg": f"positions {got} do not match drawn cards {expected}"}],
            raw,
            parsed=result.model_dump(by_alias=True),
        )


def dump_result(result: ResultModel) -> dict:
    """JSON-ready camelCase dict, optional fields the model left out omitted."""
    return result.model_dump(by_alias=True, exclude_none=True)
