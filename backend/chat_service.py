"""
MysticRead AI — Chat Flows
Analysis follow-up chat (unlimited), general mystical chat (stateless) and the
credit-metered AI chat.
"""

import os
import json
import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from database import get_analysis
from llm_service import AnalysisProvider
from storage import (
    InsufficientCreditsError,
    debit_and_record,
    get_or_create_ai_session,
    get_conversation,
    get_or_create_conversation,
    list_messages,
    record_exchange,
)
from user_db import User

logger = logging.getLogger(__name__)

# ── Config ────────────────────────────────────────────────────────────────────
HISTORY_WINDOW   = int(os.getenv("CHAT_HISTORY_WINDOW", "10"))
CHAT_CREDIT_COST = 1

READING_NAMES = {
    "palm":       "palm reading",
    "astrology":  "astrology birth chart",
    "vastu":      "Vastu assessment",
    "numerology": "numerology reading",
    "tarot":      "tarot reading",
}

MYSTICAL_SYSTEM = (
    "You are MysticRead AI, a wise and compassionate guide versed in palmistry, Vedic astrology, "
    "Vastu Shastra, numerology and tarot. Answer questions about these traditions with warmth and "
    "practical insight, keep replies under 200 words, and gently steer away from medical, legal "
    "or financial certainty."
)


def _analysis_system(kind: str, result: dict) -> str:
    reading = READING_NAMES.get(kind, "reading")
    return (
        f"{MYSTICAL_SYSTEM}\n\n"
        f"The user already received this {reading}. Answer their follow-up questions about it, "
        f"referring to specific details from the reading.\n\n"
        f"Reading (JSON):\n{json.dumps(result, ensure_ascii=False)}"
    )


def _no_credits() -> HTTPException:
    return HTTPException(
        status_code=403,
        detail={"message": "No AI chat credits remaining", "needsPayment": True},
    )


def serialize_message(message) -> dict:
    return {
        "id":        message.id,
        "role":      message.role.value,
        "content":   message.content,
        "createdAt": message.created_at.isoformat() if message.created_at else None,
    }


# ── Analysis follow-up chat ───────────────────────────────────────────────────
async def send_analysis_message(
    db: Session,
    provider: AnalysisProvider,
    user: User,
    analysis_id: str,
    message: str,
) -> dict:
    """
    Answer a follow-up question about a stored reading. The conversation is created
    on the first message; each exchange appends user+assistant and bumps questionsUsed.
    """
    record = get_analysis(db, analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")

    conversation = get_or_create_conversation(db, analysis_id, user.id)
    history = [
        {"role": m.role.value, "content": m.content}
        for m in list_messages(db, conversation.id, limit=HISTORY_WINDOW)
    ]

    reply = await provider.complete(
        _analysis_system(record.type, record.analysis_result),
        history + [{"role": "user", "content": message}],
    )
    conversation = record_exchange(db, conversation, message, reply)
    logger.info(f"[CHAT] analysis={analysis_id} questions_used={conversation.questions_used}")
    return {
        "success":        True,
        "response":       reply,
        "questionsUsed":  conversation.questions_used,
        "questionsLimit": conversation.questions_limit,
    }


def conversation_history(db: Session, user: User, analysis_id: str) -> dict:
    """Message list for the (analysis, user) pair; empty when no conversation exists yet."""
    conversation = get_conversation(db, analysis_id, user.id)
    if conversation is None:
        return {"messages": [], "questionsUsed": 0, "questionsLimit": 5}
    return {
        "messages":       [serialize_message(m) for m in list_messages(db, conversation.id)],
        "questionsUsed":  conversation.questions_used,
        "questionsLimit": conversation.questions_limit,
    }


# ── General mystical chat ─────────────────────────────────────────────────────
async def mystical_reply(provider: AnalysisProvider, message: str, history: Optional[list[dict]] = None) -> str:
    """Stateless: the caller sends its own history, nothing is stored."""
    recent = list(history or [])[-HISTORY_WINDOW:]
    return await provider.complete(MYSTICAL_SYSTEM, recent + [{"role": "user", "content": message}])


# ── Credit-metered AI chat ────────────────────────────────────────────────────
async def send_credit_message(db: Session, provider: AnalysisProvider, user: User, message: str) -> dict:
    """
    One paid exchange. Refuses up front at zero credits; the debit itself is the
    conditional update in debit_and_record, so a concurrent request that spent the
    last credit first still gets a 403 and is not stored.
    """
    if user.credits <= 0:
        raise _no_credits()

    session = get_or_create_ai_session(db, user.id)
    reply = await mystical_reply(provider, message)

    try:
        user = debit_and_record(db, user, session, message, reply, cost=CHAT_CREDIT_COST)
    except InsufficientCreditsError:
        logger.info(f"[AI-CHAT] user={user.id} ran out of credits mid-request")
        raise _no_credits() from None

    logger.info(f"[AI-CHAT] user={user.id} credits_remaining={user.credits}")
    return {
        "response":         reply,
        "creditsRemaining": user.credits,
        "minutesUsed":      round(session.minutes_used, 2),
    }
