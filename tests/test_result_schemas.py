"""
Result validation: every kind is strict, ranges and enums are enforced, and
nothing partial gets through.
"""
import pytest

from models import TarotInput
from result_schemas import (
    ResultValidationError,
    check_consistency,
    dump_result,
    validate_result,
)


@pytest.fixture
def results(palm_result, astrology_result, vastu_result, numerology_result, tarot_result):
    return {
        "palm": palm_result,
        "astrology": astrology_result,
        "vastu": vastu_result,
        "numerology": numerology_result,
        "tarot": tarot_result,
    }


@pytest.mark.parametrize("kind", ["palm", "astrology", "vastu", "numerology", "tarot"])
def test_valid_results_pass(kind, results):
    validated = validate_result(kind, results[kind])
    assert dump_result(validated) == results[kind]


@pytest.mark.parametrize("kind, missing", [
    ("palm", "palmLines"),
    ("astrology", "predictions"),
    ("vastu", "prosperity"),
    ("numerology", "coreNumbers"),
    ("tarot", "reflection"),
])
def test_missing_required_field_rejected(kind, missing, results):
    raw = dict(results[kind])
    del raw[missing]
    with pytest.raises(ResultValidationError) as exc:
        validate_result(kind, raw)
    assert exc.value.raw is raw
    assert any(missing in err["loc"] for err in exc.value.errors)


@pytest.mark.parametrize("value", [-5, 150, 100.5, "85"])
def test_palm_percentage_out_of_range_or_wrong_type(value, palm_result):
    palm_result["lifeEnergyPercentage"] = value
    with pytest.raises(ResultValidationError):
        validate_result("palm", palm_result)


def test_palm_percentage_bounds_inclusive(palm_result):
    palm_result["lifeEnergyPercentage"] = 0
    palm_result["careerPotentialPercentage"] = 100
    validate_result("palm", palm_result)


@pytest.mark.parametrize("path, value", [
    (("loveAndRelationships", "relationshipStrength"), "Very High"),
    (("careerAndSuccess", "successPotential"), "Extreme"),
    (("healthAndWellness", "vitalityLevel"), "strong"),
    (("futureInsights", "pathClarity"), ""),
])
def test_palm_enum_values_restricted(path, value, palm_result):
    palm_result[path[0]][path[1]] = value
    with pytest.raises(ResultValidationError):
        validate_result("palm", palm_result)


def test_palm_nested_field_required(palm_result):
    """Palm is as strict as the other kinds: nested fields are not optional."""
    del palm_result["palmLines"]["fateLine"]
    with pytest.raises(ResultValidationError):
        validate_result("palm", palm_result)


def test_unknown_extra_keys_dropped(palm_result):
    palm_result["aura"] = "violet"
    validated = dump_result(validate_result("palm", palm_result))
    assert "aura" not in validated


@pytest.mark.parametrize("score", [-1, 101])
def test_vastu_overall_score_range(score, vastu_result):
    vastu_result["overallScore"] = score
    with pytest.raises(ResultValidationError):
        validate_result("vastu", vastu_result)


def test_vastu_room_score_range(vastu_result):
    vastu_result["roomAnalysis"][0]["score"] = 120
    with pytest.raises(ResultValidationError):
        validate_result("vastu", vastu_result)


@pytest.mark.parametrize("number", [1, 9, 11, 22, 33])
def test_numerology_accepts_digits_and_master_numbers(number, numerology_result):
    numerology_result["coreNumbers"]["lifePathNumber"]["number"] = number
    validate_result("numerology", numerology_result)


@pytest.mark.parametrize("number", [0, 10, 12, 44, -3])
def test_numerology_rejects_other_numbers(number, numerology_result):
    numerology_result["coreNumbers"]["destinyNumber"]["number"] = number
    with pytest.raises(ResultValidationError):
        validate_result("numerology", numerology_result)


def test_numerology_meaning_and_traits_non_empty(numerology_result):
    numerology_result["coreNumbers"]["lifePathNumber"]["traits"] = []
    with pytest.raises(ResultValidationError):
        validate_result("numerology", numerology_result)


def test_astrology_sign_must_be_zodiac(astrology_result):
    astrology_result["sunSign"] = "Ophiuchus"
    with pytest.raises(ResultValidationError):
        validate_result("astrology", astrology_result)


def test_astrology_degrees_within_sign(astrology_result):
    astrology_result["kundliChart"]["planetaryPositions"]["mars"]["degrees"] = 31
    with pytest.raises(ResultValidationError):
        validate_result("astrology", astrology_result)


def test_astrology_aspect_keeps_from_key(astrology_result):
    dumped = dump_result(validate_result("astrology", astrology_result))
    assert dumped["kundliChart"]["aspects"][0]["from"] == "Jupiter"


def test_tarot_optional_guidance_fields(tarot_result):
    del tarot_result["guidance"]["pastInfluences"]
    del tarot_result["guidance"]["futureOutlook"]
    validate_result("tarot", tarot_result)


def test_tarot_reversed_must_be_bool(tarot_result):
    tarot_result["cardAnalysis"][0]["reversed"] = "no"
    with pytest.raises(ResultValidationError):
        validate_result("tarot", tarot_result)


def test_non_object_payload_rejected():
    with pytest.raises(ResultValidationError):
        validate_result("vastu", ["not", "an", "object"])


def test_tarot_positions_must_match_drawn_cards(three_cards, tarot_result):
    request = TarotInput.model_validate({"spreadType": "three-card", "drawnCards": three_cards})
    result = validate_result("tarot", tarot_result)
    check_consistency("tarot", request, result)

    tarot_result["cardAnalysis"].reverse()
    with pytest.raises(ResultValidationError):
        check_consistency("tarot", request, validate_result("tarot", tarot_result))


def test_tarot_card_count_must_match(three_cards, tarot_result):
    request = TarotInput.model_validate({"spreadType": "three-card", "drawnCards": three_cards})
    tarot_result["cardAnalysis"].pop()
    with pytest.raises(ResultValidationError):
        check_consistency("tarot", request, validate_result("tarot", tarot_result))


def test_position_mismatch_keeps_original_payload(three_cards, tarot_result):
    request = TarotInput.model_validate({"spreadType": "three-card", "drawnCards": three_cards})
    tarot_result["cardAnalysis"].reverse()
    tarot_result["modelNote"] = "extra key the schema drops"

    with pytest.raises(ResultValidationError) as exc:
        check_consistency("tarot", request, validate_result("tarot", tarot_result), raw=tarot_result)

    assert exc.value.raw is tarot_result
    assert "modelNote" not in exc.value.parsed
    assert [c["position"] for c in exc.value.parsed["cardAnalysis"]] == ["Future", "Present", "Past"]
