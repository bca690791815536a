"""
MysticRead AI — Prompt & Function-Spec Builder
Per reading kind: the reader persona (system instruction), the user instruction
carrying the submitted details, and the function declaration the model is forced
to call. Every declaration mirrors the matching model in result_schemas.
"""

import typing
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

from result_schemas import ZODIAC_SIGNS, RESULT_MODELS


@dataclass(frozen=True)
class AnalysisPrompt:
    system: str
    user: str
    function: dict


# ── Schema helpers (Gemini function-declaration subset of OpenAPI) ────────────
def _str(description: str, enum: Optional[list] = None) -> dict:
    schema = {"type": "string", "description": description}
    if enum:
        schema["enum"] = enum
    return schema

def _int(description: str) -> dict:
    return {"type": "integer", "description": description}

def _num(description: str) -> dict:
    return {"type": "number", "description": description}

def _bool(description: str) -> dict:
    return {"type": "boolean", "description": description}

def _arr(items: dict, description: str = "") -> dict:
    schema = {"type": "array", "items": items}
    if description:
        schema["description"] = description
    return schema

def _obj(properties: dict, optional: tuple = (), description: str = "") -> dict:
    schema = {
        "type": "object",
        "properties": properties,
        "required": [name for name in properties if name not in optional],
    }
    if description:
        schema["description"] = description
    return schema


def _strings(description: str) -> dict:
    return _arr(_str(description))


# ── Palm ──────────────────────────────────────────────────────────────────────
PALM_SYSTEM = (
    "You are an expert palmist with decades of experience in palm reading. "
    "Read the palm in the photo using traditional palmistry: the major lines, the mounts, "
    "finger proportions and overall hand shape. Be specific to what is visible in the image, "
    "warm and constructive in tone, and never give medical diagnoses. "
    "Always answer by calling submit_palm_analysis."
)

PALM_FUNCTION = {
    "name": "submit_palm_analysis",
    "description": "Submit the complete palm reading.",
    "parameters": _obj({
        "personalityOverview":        _str("Detailed personality analysis based on palm features"),
        "traits":                     _strings("A personality trait"),
        "lifeEnergyPercentage":       _int("Life energy, integer 0-100"),
        "emotionalBalancePercentage": _int("Emotional balance, integer 0-100"),
        "careerPotentialPercentage":  _int("Career potential, integer 0-100"),
        "loveAndRelationships": _obj({
            "heartLineAnalysis":     _str("What the heart line says about love"),
            "compatibilityInsights": _str("Relationship compatibility insights"),
            "relationshipStrength":  _str("Overall relationship strength", ["High", "Medium", "Low"]),
        }),
        "careerAndSuccess": _obj({
            "professionalStrengths": _str("Professional strengths read from the palm"),
            "recommendedPaths":      _strings("A recommended career path"),
            "successPotential":      _str("Success potential", ["Very High", "High", "Medium", "Low"]),
        }),
        "healthAndWellness": _obj({
            "lifeLineInsights":        _str("Life line reading and wellbeing insights"),
            "wellnessRecommendations": _strings("A wellness recommendation"),
            "vitalityLevel":           _str("Vitality level", ["Strong", "Moderate", "Weak"]),
        }),
        "futureInsights": _obj({
            "nearFuture":        _str("Outlook for the next 1-3 years"),
            "lifePathDirection": _str("Overall life path direction"),
            "pathClarity":       _str("How clear the path ahead is", ["High", "Medium", "Low"]),
        }),
        "palmLines": _obj({
            "heartLine": _str("Heart line characteristics"),
            "headLine":  _str("Head line characteristics"),
            "lifeLine":  _str("Life line characteristics"),
            "fateLine":  _str("Fate line characteristics"),
        }),
    }),
}


def _palm_user(_input) -> str:
    return (
        "Please analyze this palm image and provide a comprehensive palmistry reading. "
        "Focus on the major lines, mounts and overall palm characteristics to give insights "
        "about personality, relationships, career, health and future prospects."
    )


# ── Astrology ─────────────────────────────────────────────────────────────────
ASTROLOGY_SYSTEM = (
    "You are a master Vedic astrologer. From the birth details, work out the sun, moon and "
    "rising signs, cast a kundli (birth chart) with the twelve houses, the positions of the "
    "nine grahas (Sun, Moon, Mercury, Venus, Mars, Jupiter, Saturn, Rahu, Ketu) and their "
    "major aspects, then interpret the chart for each area of life. "
    "Use English zodiac names. Degrees are within the sign, 0 to 30. "
    "Always answer by calling submit_astrology_analysis."
)


def _sign(description: str) -> dict:
    return _str(description, ZODIAC_SIGNS)


_PLANET = _obj({
    "sign":    _sign("Sign the planet occupies"),
    "house":   _int("House number 1-12"),
    "degrees": _num("Degrees within the sign, 0-30"),
})

ASTROLOGY_FUNCTION = {
    "name": "submit_astrology_analysis",
    "description": "Submit the complete birth-chart reading.",
    "parameters": _obj({
        "personalityOverview": _str("Personality portrait drawn from the chart"),
        "sunSign":    _sign("Sun sign"),
        "moonSign":   _sign("Moon sign"),
        "risingSign": _sign("Ascendant / rising sign"),
        "kundliChart": _obj({
            "houses": _arr(_obj({
                "number":  _int("House number 1-12"),
                "sign":    _sign("Sign on the house cusp"),
                "planets": _strings("Planet placed in the house"),
                "ruling":  _str("Ruling planet of the house"),
            }), "The twelve houses in order"),
            "planetaryPositions": _obj({
                planet: _PLANET
                for planet in ("sun", "moon", "mercury", "venus", "mars", "jupiter", "saturn", "rahu", "ketu")
            }),
            "aspects": _arr(_obj({
                "from":      _str("Aspecting planet"),
                "to":        _str("Aspected planet or house"),
                "type":      _str("Aspect type, e.g. conjunction, trine, opposition"),
                "influence": _str("What the aspect means for the native"),
            })),
        }),
        "lifeAreas": _obj({
            "loveAndRelationships": _obj({
                "overview":           _str("Love life overview"),
                "compatibility":      _str("Most compatible signs and why"),
                "romanticTendencies": _str("Romantic tendencies"),
            }),
            "careerAndFinances": _obj({
                "careerPath":             _str("Suitable career direction"),
                "financialLuck":          _str("Financial outlook"),
                "professionalStrengths":  _strings("A professional strength"),
            }),
            "healthAndWellbeing": _obj({
                "physicalHealth":  _str("Physical constitution"),
                "mentalHealth":    _str("Emotional and mental tendencies"),
                "recommendations": _strings("A wellbeing recommendation"),
            }),
            "spiritualGrowth": _obj({
                "lifeLesson":    _str("Core life lesson"),
                "spiritualPath": _str("Spiritual path"),
                "karmaInsights": _str("Karmic themes"),
            }),
        }),
        "predictions": _obj({
            "thisYear":        _str("Forecast for the current year"),
            "nextThreeYears":  _str("Forecast for the next three years"),
            "majorLifeEvents": _strings("A likely major life event"),
        }),
    }),
}


def _astrology_user(data) -> str:
    lines = [
        "Cast and interpret the birth chart for:",
        f"Birth date: {data.birth_date}",
        f"Birth time: {data.birth_time}",
        f"Birth place: {data.birth_place}",
    ]
    if data.latitude is not None and data.longitude is not None:
        lines.append(f"Coordinates: {data.latitude:.4f}, {data.longitude:.4f}")
    return "\n".join(lines)


# ── Vastu ─────────────────────────────────────────────────────────────────────
VASTU_SYSTEM = (
    "You are a Vastu Shastra consultant. Assess the building layout direction by direction: "
    "the entrance, each room's placement against its ideal zone, the building shape and the "
    "surroundings. Score the whole layout and every room from 0 to 100, explain the energy "
    "flow, and give practical remedies that do not require demolition where possible. "
    "If a floor plan image is attached, use it together with the written details. "
    "Always answer by calling submit_vastu_analysis."
)

VASTU_FUNCTION = {
    "name": "submit_vastu_analysis",
    "description": "Submit the complete Vastu assessment.",
    "parameters": _obj({
        "overallScore":      _int("Overall Vastu compliance, integer 0-100"),
        "overallAssessment": _str("Summary of the layout's Vastu quality"),
        "energyFlow": _obj({
            "positive": _strings("A positive energy feature"),
            "negative": _strings("A negative energy feature"),
            "neutral":  _strings("A neutral feature"),
        }),
        "roomAnalysis": _arr(_obj({
            "room":            _str("Room name as given"),
            "direction":       _str("Direction of the room"),
            "vastuCompliance": _str("How well the placement follows Vastu"),
            "recommendations": _strings("A correction for this room"),
            "score":           _int("Room compliance, integer 0-100"),
        }), "One entry per room"),
        "recommendations": _obj({
            "immediate": _strings("A change to make now"),
            "longTerm":  _strings("A longer-term change"),
            "remedies":  _strings("A traditional remedy"),
        }),
        "prosperity": _obj({
            "wealth":        _str("Effect on wealth"),
            "health":        _str("Effect on health"),
            "relationships": _str("Effect on relationships"),
            "career":        _str("Effect on career"),
        }),
    }),
}


def _vastu_user(data) -> str:
    rooms = "\n".join(f"- {r.name}: {r.direction} ({r.size})" for r in data.rooms)
    return (
        f"Layout type: {data.layout_type}\n"
        f"Main entrance: {data.entrance}\n"
        f"Building shape: {data.building_shape}\n"
        f"Surroundings: {data.surroundings}\n"
        f"Rooms:\n{rooms}"
    )


# ── Numerology ────────────────────────────────────────────────────────────────
NUMEROLOGY_SYSTEM = (
    "You are a Pythagorean numerologist. Calculate the core numbers by reducing to a single "
    "digit, keeping the master numbers 11, 22 and 33 unreduced. Life path comes from the full "
    "date, destiny from all letters of the name, soul urge from the vowels and personality "
    "from the consonants. For a business, use the company name in place of the personal name "
    "and read the numbers for the venture. "
    "Always answer by calling submit_numerology_analysis."
)


def _core_number(extra: str, extra_schema: dict) -> dict:
    return _obj({
        "number":  _int("Single digit 1-9 or master number 11, 22, 33"),
        "meaning": _str("What the number means for this person"),
        extra:     extra_schema,
    })


NUMEROLOGY_FUNCTION = {
    "name": "submit_numerology_analysis",
    "description": "Submit the complete numerology reading.",
    "parameters": _obj({
        "personalityOverview": _str("Overall portrait from the numbers"),
        "coreNumbers": _obj({
            "lifePathNumber":    _core_number("traits", _strings("A trait of this life path")),
            "destinyNumber":     _core_number("purpose", _str("Purpose and calling")),
            "soulUrgeNumber":    _core_number("desires", _str("Inner desires")),
            "personalityNumber": _core_number("impression", _str("Impression made on others")),
        }),
        "lifeAreas": _obj({
            "strengths":       _strings("A strength"),
            "challenges":      _strings("A challenge"),
            "careerPath":      _str("Career direction"),
            "relationships":   _str("Relationship tendencies"),
            "luckyNumbers":    _arr(_int("Lucky number 1-99")),
            "favorableColors": _strings("A favourable colour"),
        }),
        "predictions": _obj({
            "currentYear":   _str("Personal year forecast"),
            "nextPhase":     _str("The coming phase"),
            "opportunities": _strings("An opportunity to watch for"),
        }),
    }),
}


def _numerology_user(data) -> str:
    if data.analysis_type == "business":
        return f"Business numerology for the company name: {data.company_name}"
    return (
        "Personal numerology for:\n"
        f"Full name: {data.name}\n"
        f"Birth date: {data.birth_date}"
    )


# ── Tarot ─────────────────────────────────────────────────────────────────────
TAROT_SYSTEM = (
    "You are an intuitive tarot reader working with the Rider-Waite deck. Interpret each drawn "
    "card in its spread position, honouring reversals, then weave the cards into one message. "
    "Return exactly one cardAnalysis entry per drawn card, in the order given, with the same "
    "position names. Fill pastInfluences, futureOutlook and outcome only when the spread has "
    "positions for them. Always answer by calling submit_tarot_analysis."
)

TAROT_FUNCTION = {
    "name": "submit_tarot_analysis",
    "description": "Submit the complete tarot reading.",
    "parameters": _obj({
        "spreadType":          _str("The spread that was read"),
        "personalityOverview": _str("What the spread reveals about the querent"),
        "cardAnalysis": _arr(_obj({
            "position":        _str("Spread position, exactly as given"),
            "cardName":        _str("Card name, exactly as given"),
            "meaning":         _str("Traditional meaning of the card"),
            "interpretation":  _str("Meaning in this position for this querent"),
            "reversed":        _bool("Whether the card was drawn reversed"),
            "reversedMeaning": _str("Reversed meaning, only for reversed cards"),
        }, optional=("reversedMeaning",)), "One entry per drawn card, in order"),
        "overallMessage": _str("The combined message of the spread"),
        "guidance": _obj({
            "pastInfluences":   _str("Influences from the past"),
            "presentSituation": _str("The present situation"),
            "futureOutlook":    _str("Where things are heading"),
            "advice":           _str("Advice for the querent"),
            "outcome":          _str("Likely outcome"),
        }, optional=("pastInfluences", "futureOutlook", "outcome")),
        "actionSteps": _strings("A concrete next step"),
        "reflection":  _str("A question or thought to reflect on"),
    }),
}


def _tarot_user(data) -> str:
    cards = "\n".join(
        f"{i}. {c.position}: {c.card_name}{' (reversed)' if c.reversed else ''}"
        for i, c in enumerate(data.drawn_cards, start=1)
    )
    question = data.question or "General guidance"
    return f"Spread: {data.spread_type}\nQuestion: {question}\nCards drawn:\n{cards}"


# ── Registry ──────────────────────────────────────────────────────────────────
PROMPTS = {
    "palm":       (PALM_SYSTEM,       _palm_user,       PALM_FUNCTION),
    "astrology":  (ASTROLOGY_SYSTEM,  _astrology_user,  ASTROLOGY_FUNCTION),
    "vastu":      (VASTU_SYSTEM,      _vastu_user,      VASTU_FUNCTION),
    "numerology": (NUMEROLOGY_SYSTEM, _numerology_user, NUMEROLOGY_FUNCTION),
    "tarot":      (TAROT_SYSTEM,      _tarot_user,      TAROT_FUNCTION),
}


def build_prompt(kind: str, input_data=None) -> AnalysisPrompt:
    """Pure construction of the system/user instructions and function spec for one request."""
    system, user_builder, function = PROMPTS[kind]
    return AnalysisPrompt(system=system, user=user_builder(input_data), function=function)


# ── Lockstep introspection ────────────────────────────────────────────────────
def spec_paths(schema: dict, required_only: bool = True, prefix: str = "") -> set[str]:
    """Dotted field paths declared by a function-parameter schema (`[]` marks array items)."""
    paths = set()
    if schema.get("type") == "array":
        return spec_paths(schema["items"], required_only, prefix + "[]")
    if schema.get("type") != "object":
        return paths
    required = set(schema.get("required", []))
    for name, sub in schema["properties"].items():
        if required_only and name not in required:
            continue
        path = f"{prefix}.{name}" if prefix else name
        paths.add(path)
        paths |= spec_paths(sub, required_only, path)
    return paths


def _nested_model(annotation):
    """(model, is_list) when the annotation is a model or a list of models."""
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation, False
    if typing.get_origin(annotation) is list:
        (item,) = typing.get_args(annotation)
        if isinstance(item, type) and issubclass(item, BaseModel):
            return item, True
    return None, False


def model_paths(model: type[BaseModel], required_only: bool = True, prefix: str = "") -> set[str]:
    """Same dotted paths, read from a pydantic result model via its camelCase aliases."""
    paths = set()
    for name, field in model.model_fields.items():
        if required_only and not field.is_required():
            continue
        path = f"{prefix}.{field.alias or name}" if prefix else (field.alias or name)
        paths.add(path)
        sub, is_list = _nested_model(field.annotation)
        if sub is not None:
            paths |= model_paths(sub, required_only, path + ("[]" if is_list else ""))
    return paths


def lockstep_mismatches(kind: str) -> dict:
    """Fields required by only one side of the function spec / validator pair."""
    spec = spec_paths(PROMPTS[kind][2]["parameters"])
    model = model_paths(RESULT_MODELS[kind])
    return {"spec_only": sorted(spec - model), "model_only": sorted(model - spec)}
