"""
MysticRead AI — User DB Models
SQLAlchemy models for users, chat conversations, credit chat sessions and payments.
"""

import enum
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, Float, String, DateTime, Enum as SAEnum, Text, ForeignKey,
    Boolean, UniqueConstraint,
)
from database import Base, _uuid


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChatRole(str, enum.Enum):
    user      = "user"
    assistant = "assistant"


class SessionStatus(str, enum.Enum):
    active    = "active"
    completed = "completed"
    expired   = "expired"


class PaymentStatus(str, enum.Enum):
    pending   = "pending"
    completed = "completed"
    failed    = "failed"


class User(Base):
    """Registered users and their AI chat credit balance."""
    __tablename__ = "users"

    id                   = Column(String(36), primary_key=True, default=_uuid)
    email                = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password      = Column(String(255), nullable=False)
    first_name           = Column(String(100), nullable=False)
    last_name            = Column(String(100), nullable=False)
    credits              = Column(Integer, default=0, nullable=False)
    ai_chat_minutes_used = Column(Float, default=0.0, nullable=False)
    is_active            = Column(Boolean, default=True)
    created_at           = Column(DateTime(timezone=True), default=_now)
    updated_at           = Column(DateTime(timezone=True), default=_now, onupdate=_now)


class ChatConversation(Base):
    """Follow-up chat attached to one analysis, one per (analysis, user)."""
    __tablename__ = "chat_conversations"
    __table_args__ = (UniqueConstraint("analysis_id", "user_id", name="uq_conversation_analysis_user"),)

    id              = Column(String(36), primary_key=True, default=_uuid)
    user_id         = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    analysis_id     = Column(String(36), ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    questions_used  = Column(Integer, default=0, nullable=False)
    questions_limit = Column(Integer, default=5, nullable=False)   # informational, not enforced
    created_at      = Column(DateTime(timezone=True), default=_now)
    updated_at      = Column(DateTime(timezone=True), default=_now, onupdate=_now)


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (UniqueConstraint("conversation_id", "seq", name="uq_chat_message_seq"),)

    id              = Column(String(36), primary_key=True, default=_uuid)
    conversation_id = Column(String(36), ForeignKey("chat_conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    seq             = Column(Integer, nullable=False)   # ordering key within the conversation
    role            = Column(SAEnum(ChatRole), nullable=False)
    content         = Column(Text, nullable=False)
    created_at      = Column(DateTime(timezone=True), default=_now)


class AiChatSession(Base):
    """Credit-metered general chat session."""
    __tablename__ = "ai_chat_sessions"

    id           = Column(String(36), primary_key=True, default=_uuid)
    user_id      = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    minutes_used = Column(Float, default=0.0, nullable=False)
    credits_used = Column(Integer, default=0, nullable=False)
    status       = Column(SAEnum(SessionStatus), default=SessionStatus.active, nullable=False)
    created_at   = Column(DateTime(timezone=True), default=_now)
    updated_at   = Column(DateTime(timezone=True), default=_now, onupdate=_now)


class AiChatMessage(Base):
    __tablename__ = "ai_chat_messages"
    __table_args__ = (UniqueConstraint("session_id", "seq", name="uq_ai_chat_message_seq"),)

    id         = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey("ai_chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    seq        = Column(Integer, nullable=False)
    role       = Column(SAEnum(ChatRole), nullable=False)
    content    = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now)


class Payment(Base):
    """Razorpay order for a credit tier. pending -> completed | failed, then frozen."""
    __tablename__ = "payments"

    id                  = Column(String(36), primary_key=True, default=_uuid)
    user_id             = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    razorpay_order_id   = Column(String(100), nullable=True, index=True)
    razorpay_payment_id = Column(String(100), nullable=True, unique=True)
    amount              = Column(Integer, nullable=False)   # ₹, whole rupees
    credits_granted     = Column(Integer, nullable=False)
    minutes_granted     = Column(Integer, nullable=False)
    payment_tier        = Column(String(20), nullable=False)   # tier1 | tier2 | tier3
    status              = Column(SAEnum(PaymentStatus), default=PaymentStatus.pending, nullable=False)
    created_at          = Column(DateTime(timezone=True), default=_now)
    completed_at        = Column(DateTime(timezone=True), nullable=True)
