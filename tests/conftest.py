import os
import copy

import pytest

# Module-level config is read at import time, so set it before main is imported.
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ.pop("RAZORPAY_KEY_ID", None)
os.environ.pop("RAZORPAY_KEY_SECRET", None)

from fastapi.testclient import TestClient  # noqa: E402

import database  # noqa: E402
from llm_service import AnalysisError, AnalysisProvider  # noqa: E402
from payment_service import OfflineGateway  # noqa: E402
from user_db import User  # noqa: E402

OFFLINE_SECRET = "test-offline-secret"


class FakeProvider(AnalysisProvider):
    """
    Stands in for Gemini. `results` maps function name → payload (dict, or a
    callable taking the user prompt). Chat replies are numbered so order is visible.
    `error` is raised from call_function instead of answering; `fail` is shorthand
    for a generic AnalysisError.
    """

    name = "fake"

    def __init__(self):
        self.results = {}
        self.calls = []
        self.chat_calls = []
        self.fail = False
        self.error = None

    async def call_function(self, system, user, function, image=None):
        self.calls.append({"system": system, "user": user, "function": function, "image": image})
        if self.error is not None:
            raise self.error
        if self.fail:
            raise AnalysisError("provider down")
        payload = self.results[function["name"]]
        return payload(user) if callable(payload) else copy.deepcopy(payload)

    async def complete(self, system, messages):
        self.chat_calls.append({"system": system, "messages": messages})
        if self.fail:
            raise AnalysisError("provider down")
        return f"The stars answer #{len(self.chat_calls)}"


# ── Sample model answers ──────────────────────────────────────────────────────

@pytest.fixture
def palm_result():
    return {
        "personalityOverview": "A thoughtful, creative soul.",
        "traits": ["Intuitive", "Patient", "Curious", "Loyal"],
        "lifeEnergyPercentage": 85,
        "emotionalBalancePercentage": 72,
        "careerPotentialPercentage": 90,
        "loveAndRelationships": {
            "heartLineAnalysis": "Long and curved heart line.",
            "compatibilityInsights": "Bonds deeply with steady partners.",
            "relationshipStrength": "High",
        },
        "careerAndSuccess": {
            "professionalStrengths": "Analytical with a creative streak.",
            "recommendedPaths": ["Design", "Research"],
            "successPotential": "Very High",
        },
        "healthAndWellness": {
            "lifeLineInsights": "Strong unbroken life line.",
            "wellnessRecommendations": ["Daily walks", "Meditation"],
            "vitalityLevel": "Strong",
        },
        "futureInsights": {
            "nearFuture": "A period of growth.",
            "lifePathDirection": "Toward teaching.",
            "pathClarity": "Medium",
        },
        "palmLines": {
            "heartLine": "Deep",
            "headLine": "Straight",
            "lifeLine": "Wide arc",
            "fateLine": "Faint",
        },
    }


def _planet(sign, house, degrees):
    return {"sign": sign, "house": house, "degrees": degrees}


@pytest.fixture
def astrology_result():
    signs = ["Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
             "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces"]
    return {
        "personalityOverview": "Driven and warm.",
        "sunSign": "Taurus",
        "moonSign": "Cancer",
        "risingSign": "Leo",
        "kundliChart": {
            "houses": [
                {"number": i + 1, "sign": signs[i], "planets": [], "ruling": "Mars"}
                for i in range(12)
            ],
            "planetaryPositions": {
                "sun": _planet("Taurus", 10, 23.5),
                "moon": _planet("Cancer", 12, 4.0),
                "mercury": _planet("Gemini", 11, 2.25),
                "venus": _planet("Aries", 9, 17.0),
                "mars": _planet("Pisces", 8, 29.9),
                "jupiter": _planet("Cancer", 12, 1.5),
                "saturn": _planet("Capricorn", 6, 24),
                "rahu": _planet("Aquarius", 7, 5.5),
                "ketu": _planet("Leo", 1, 5.5),
            },
            "aspects": [
                {"from": "Jupiter", "to": "Moon", "type": "conjunction", "influence": "Emotional abundance."},
            ],
        },
        "lifeAreas": {
            "loveAndRelationships": {
                "overview": "Devoted.", "compatibility": "Virgo, Capricorn.", "romanticTendencies": "Slow and sure.",
            },
            "careerAndFinances": {
                "careerPath": "Finance or the arts.", "financialLuck": "Steady.",
                "professionalStrengths": ["Patience", "Taste"],
            },
            "healthAndWellbeing": {
                "physicalHealth": "Robust.", "mentalHealth": "Calm.", "recommendations": ["Yoga"],
            },
            "spiritualGrowth": {
                "lifeLesson": "Letting go.", "spiritualPath": "Devotion.", "karmaInsights": "Past generosity returns.",
            },
        },
        "predictions": {
            "thisYear": "New responsibilities.",
            "nextThreeYears": "A move abroad.",
            "majorLifeEvents": ["Marriage", "Promotion"],
        },
    }


@pytest.fixture
def vastu_result():
    return {
        "overallScore": 78,
        "overallAssessment": "Mostly compliant layout.",
        "energyFlow": {"positive": ["North-east entrance"], "negative": ["South-west toilet"], "neutral": []},
        "roomAnalysis": [
            {"room": "Kitchen", "direction": "South-East", "vastuCompliance": "Ideal",
             "recommendations": [], "score": 95},
            {"room": "Bedroom", "direction": "North-East", "vastuCompliance": "Poor",
             "recommendations": ["Move the bed to the south-west room"], "score": 40},
        ],
        "recommendations": {"immediate": ["Declutter the north-east"], "longTerm": ["Relocate the toilet"],
                            "remedies": ["Place a copper pyramid"]},
        "prosperity": {"wealth": "Good", "health": "Fair", "relationships": "Good", "career": "Strong"},
    }


@pytest.fixture
def numerology_result():
    return {
        "personalityOverview": "A natural leader with a gift for words.",
        "coreNumbers": {
            "lifePathNumber": {"number": 7, "meaning": "The seeker.", "traits": ["Analytical", "Spiritual"]},
            "destinyNumber": {"number": 11, "meaning": "The illuminator.", "purpose": "To inspire."},
            "soulUrgeNumber": {"number": 3, "meaning": "Creative joy.", "desires": "Self-expression."},
            "personalityNumber": {"number": 8, "meaning": "Authority.", "impression": "Capable and calm."},
        },
        "lifeAreas": {
            "strengths": ["Focus"], "challenges": ["Isolation"], "careerPath": "Research.",
            "relationships": "Needs space.", "luckyNumbers": [7, 16, 25], "favorableColors": ["Violet"],
        },
        "predictions": {"currentYear": "A year of study.", "nextPhase": "Recognition.", "opportunities": ["Teaching"]},
    }


@pytest.fixture
def three_cards():
    return [
        {"cardName": "The Tower", "suit": "Major Arcana", "position": "Past", "reversed": False},
        {"cardName": "Three of Cups", "suit": "Cups", "position": "Present", "reversed": True},
        {"cardName": "The Star", "suit": "Major Arcana", "position": "Future", "reversed": False},
    ]


def tarot_result_for(cards, spread_type="three-card"):
    return {
        "spreadType": spread_type,
        "personalityOverview": "Resilient through upheaval.",
        "cardAnalysis": [
            {
                "position": c["position"],
                "cardName": c["cardName"],
                "meaning": f"Meaning of {c['cardName']}",
                "interpretation": "Read in context.",
                "reversed": c["reversed"],
                **({"reversedMeaning": "Blocked celebration."} if c["reversed"] else {}),
            }
            for c in cards
        ],
        "overallMessage": "After the storm, hope.",
        "guidance": {
            "pastInfluences": "Sudden change.",
            "presentSituation": "Quiet joy.",
            "futureOutlook": "Renewal.",
            "advice": "Trust the process.",
        },
        "actionSteps": ["Journal nightly"],
        "reflection": "What are you ready to rebuild?",
    }


@pytest.fixture
def tarot_result(three_cards):
    return tarot_result_for(three_cards)


# ── App / DB ──────────────────────────────────────────────────────────────────

@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def gateway():
    return OfflineGateway(OFFLINE_SECRET)


@pytest.fixture
def client(tmp_path, monkeypatch, provider, gateway):
    """App wired to a throwaway SQLite file, the fake provider and the offline gateway."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    import main

    with TestClient(main.app) as c:
        main.app.state.provider = provider
        main.app.state.gateway = gateway
        yield c


@pytest.fixture
def db(client):
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


def register(client, email="seeker@example.com", password="moonlight99"):
    resp = client.post("/api/auth/register", json={
        "email": email, "password": password, "firstName": "Jane", "lastName": "Doe",
    })
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


@pytest.fixture
def auth(client):
    """(headers, user profile) for a freshly registered user."""
    return register(client)


def set_credits(user_id: str, credits: int):
    session = database.SessionLocal()
    try:
        user = session.get(User, user_id)
        user.credits = credits
        session.commit()
    finally:
        session.close()


def get_credits(user_id: str) -> int:
    session = database.SessionLocal()
    try:
        return session.get(User, user_id).credits
    finally:
        session.close()
