import random
from datetime import datetime, timezone

import pytest

from report_service import (
    Report,
    analysis_stats,
    chat_report,
    humanize,
    render_docx,
    render_text,
    report_filename,
)
from tarot_deck import ALL_CARDS, SPREAD_POSITIONS, draw_cards, suit_of


NOW = datetime(2025, 3, 9, 12, 0, tzinfo=timezone.utc)


def test_humanize():
    assert humanize("lifeEnergyPercentage") == "Life Energy Percentage"
    assert humanize("palm") == "Palm"
    assert humanize("from_") == "From"


def test_report_filenames():
    stamp = int(NOW.timestamp() * 1000)
    assert report_filename("ai-chat", now=NOW) == f"MysticRead_AI_Chat_2025-03-09_{stamp}.txt"
    assert report_filename("post-analysis", "tarot", "docx", now=NOW) == f"MysticRead_Tarot_Chat_2025-03-09_{stamp}.docx"
    assert report_filename("analysis", "vastu", now=NOW) == "MysticRead_Vastu_Report_2025-03-09.txt"


def test_palm_stats(palm_result):
    assert analysis_stats("palm", palm_result)[0] == ("Life Energy", "85%")


def test_chat_report_counts():
    messages = [
        {"role": "user", "content": "Will I travel?"},
        {"role": "assistant", "content": "The road opens in spring."},
        {"role": "user", "content": "Where to?"},
    ]
    report = chat_report(messages, "ai-chat", credits_used=2)
    assert ("Your Questions", "2") in report.stats
    assert ("Credits Used", "2") in report.stats

    text = render_text(report)
    assert "The road opens in spring." in text
    assert text.index("Will I travel?") < text.index("Where to?")


def test_render_text_includes_sections():
    report = Report(
        title="Numerology Reading", subtitle="today",
        stats=[("Life Path", "7")],
        sections=[("Core Numbers", ["Life Path Number:", "  Number: 7"])],
    )
    text = render_text(report)
    assert "Life Path: 7" in text
    assert "CORE NUMBERS" in text
    assert text.rstrip().splitlines()[-2].startswith("AI-Generated Content")


def test_render_docx_is_a_word_document(vastu_result):
    report = Report(
        title="Vastu Reading", subtitle="today",
        stats=analysis_stats("vastu", vastu_result),
        sections=[("Recommendations", ["• Declutter the north-east", "Plain line"])],
        messages=[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
    )
    data = render_docx(report)
    assert data[:2] == b"PK"


def test_export_analysis_txt_and_docx(client, provider, numerology_result):
    provider.results["submit_numerology_analysis"] = numerology_result
    analysis_id = client.post("/api/numerology/analyze", json={
        "name": "Jane Doe", "birthDate": "1990-05-14", "analysisType": "personal",
    }).json()["id"]

    txt = client.get(f"/api/analysis/{analysis_id}/export")
    docx = client.get(f"/api/analysis/{analysis_id}/export", params={"format": "docx"})

    assert txt.status_code == 200
    assert "MysticRead_Numerology_Report_" in txt.headers["content-disposition"]
    assert "The seeker." in txt.text
    assert docx.status_code == 200
    assert docx.content[:2] == b"PK"
    assert client.get(f"/api/analysis/{analysis_id}/export", params={"format": "pdf"}).status_code == 422


def test_export_conversation(client, provider, auth, numerology_result):
    headers, _ = auth
    provider.results["submit_numerology_analysis"] = numerology_result
    analysis_id = client.post("/api/numerology/analyze", json={
        "name": "Jane Doe", "birthDate": "1990-05-14", "analysisType": "personal",
    }).json()["id"]
    client.post("/api/chat/send", headers=headers, json={"analysisId": analysis_id, "message": "Career?"})

    resp = client.get(f"/api/chat/conversation/{analysis_id}/export", headers=headers)

    assert resp.status_code == 200
    assert "MysticRead_Numerology_Chat_" in resp.headers["content-disposition"]
    assert "Career?" in resp.text
    assert "The stars answer #1" in resp.text


def test_export_credit_chat(client, auth):
    headers, _ = auth
    resp = client.get("/api/ai-chat/export", headers=headers)
    assert resp.status_code == 200
    assert "MysticRead_AI_Chat_" in resp.headers["content-disposition"]
    assert ("Total Messages: 0") in resp.text


# ── Tarot deck ────────────────────────────────────────────────────────────────

def test_deck_has_78_distinct_cards():
    assert len(ALL_CARDS) == 78
    assert len(set(ALL_CARDS)) == 78
    assert suit_of("Queen of Swords") == "Swords"
    assert suit_of("The Moon") == "Major Arcana"


@pytest.mark.parametrize("spread", sorted(SPREAD_POSITIONS))
def test_draw_fills_every_position_with_distinct_cards(spread):
    cards = draw_cards(spread, rng=random.Random(7))
    assert [c["position"] for c in cards] == SPREAD_POSITIONS[spread]
    assert len({c["cardName"] for c in cards}) == len(cards)
    assert all(isinstance(c["reversed"], bool) for c in cards)


def test_draw_unknown_spread():
    with pytest.raises(ValueError):
        draw_cards("horseshoe")


def test_draw_endpoint_rejects_unknown_spread(client):
    assert client.get("/api/tarot/draw", params={"spreadType": "horseshoe"}).status_code == 400
