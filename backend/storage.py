"""
MysticRead AI — Chat & Payment Storage
Conversation/message append, credit debit and payment transitions.
Every multi-row change here commits or rolls back as one transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from user_db import (
    User, ChatConversation, ChatMessage, ChatRole,
    AiChatSession, AiChatMessage, SessionStatus,
    Payment, PaymentStatus,
)

logger = logging.getLogger(__name__)

MINUTES_PER_EXCHANGE = 0.2
SEQ_ATTEMPTS         = 3


class InsufficientCreditsError(Exception):
    """The user's balance cannot cover the requested debit."""


class PaymentStateError(Exception):
    """The payment is not pending (already completed/failed) or the gateway id is reused."""


# ── Analysis follow-up chat ───────────────────────────────────────────────────
def get_conversation(db: Session, analysis_id: str, user_id: str) -> Optional[ChatConversation]:
    return db.query(ChatConversation).filter(
        ChatConversation.analysis_id == analysis_id,
        ChatConversation.user_id == user_id,
    ).first()


def get_or_create_conversation(db: Session, analysis_id: str, user_id: str) -> ChatConversation:
    conversation = get_conversation(db, analysis_id, user_id)
    if conversation:
        return conversation
    conversation = ChatConversation(analysis_id=analysis_id, user_id=user_id, questions_used=0)
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        # created concurrently by another request for the same pair
        db.rollback()
        return get_conversation(db, analysis_id, user_id)
    db.refresh(conversation)
    return conversation


def list_messages(db: Session, conversation_id: str, limit: Optional[int] = None) -> list[ChatMessage]:
    """Messages in chronological order; with `limit`, only the most recent ones."""
    query = db.query(ChatMessage).filter(ChatMessage.conversation_id == conversation_id)
    if limit:
        recent = query.order_by(ChatMessage.seq.desc()).limit(limit).all()
        return list(reversed(recent))
    return query.order_by(ChatMessage.seq.asc()).all()


def _next_seq(db: Session, model, fk_column, owner_id: str) -> int:
    current = db.query(func.max(model.seq)).filter(fk_column == owner_id).scalar()
    return (current or 0) + 1


def record_exchange(db: Session, conversation: ChatConversation, user_text: str, reply: str) -> ChatConversation:
    """
    Append the user/assistant pair and bump questions_used atomically. A seq
    collision with a concurrent send rolls back and retries with fresh numbers.
    """
    for attempt in range(1, SEQ_ATTEMPTS + 1):
        try:
            seq = _next_seq(db, ChatMessage, ChatMessage.conversation_id, conversation.id)
            db.add_all([
                ChatMessage(conversation_id=conversation.id, seq=seq,     role=ChatRole.user,      content=user_text),
                ChatMessage(conversation_id=conversation.id, seq=seq + 1, role=ChatRole.assistant, content=reply),
            ])
            db.execute(
                update(ChatConversation)
                .where(ChatConversation.id == conversation.id)
                .values(questions_used=ChatConversation.questions_used + 1)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if attempt == SEQ_ATTEMPTS:
                raise
            logger.warning(f"seq collision in conversation={conversation.id}, retrying ({attempt}/{SEQ_ATTEMPTS})")
        except Exception:
            db.rollback()
            raise
    db.refresh(conversation)
    return conversation


# ── Credit-metered AI chat ────────────────────────────────────────────────────
def get_ai_session(db: Session, user_id: str) -> Optional[AiChatSession]:
    """The user's active credit-chat session, if one was ever started."""
    return db.query(AiChatSession).filter(
        AiChatSession.user_id == user_id,
        AiChatSession.status == SessionStatus.active,
    ).order_by(AiChatSession.created_at.desc()).first()


def get_or_create_ai_session(db: Session, user_id: str) -> AiChatSession:
    session = get_ai_session(db, user_id)
    if session:
        return session
    session = AiChatSession(user_id=user_id, status=SessionStatus.active)
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def list_ai_messages(db: Session, session_id: str) -> list[AiChatMessage]:
    return (
        db.query(AiChatMessage)
        .filter(AiChatMessage.session_id == session_id)
        .order_by(AiChatMessage.seq.asc())
        .all()
    )


def debit_and_record(
    db: Session,
    user: User,
    session: AiChatSession,
    user_text: str,
    reply: str,
    cost: int = 1,
) -> User:
    """
    Spend `cost` credits and store the exchange in a single transaction.

    The balance check and the decrement are one conditional UPDATE, so two
    concurrent requests cannot both spend the last credit. Raises
    InsufficientCreditsError (nothing written) when the balance is too low.
    A seq collision rolls back the debit too and the whole transaction is retried.
    """
    for attempt in range(1, SEQ_ATTEMPTS + 1):
        try:
            debited = db.execute(
                update(User)
                .where(User.id == user.id, User.credits >= cost)
                .values(
                    credits=User.credits - cost,
                    ai_chat_minutes_used=User.ai_chat_minutes_used + MINUTES_PER_EXCHANGE,
                )
                .execution_options(synchronize_session=False)
            )
            if debited.rowcount == 0:
                db.rollback()
                raise InsufficientCreditsError(f"user {user.id} has fewer than {cost} credits")

            seq = _next_seq(db, AiChatMessage, AiChatMessage.session_id, session.id)
            db.add_all([
                AiChatMessage(session_id=session.id, seq=seq,     role=ChatRole.user,      content=user_text),
                AiChatMessage(session_id=session.id, seq=seq + 1, role=ChatRole.assistant, content=reply),
            ])
            db.execute(
                update(AiChatSession)
                .where(AiChatSession.id == session.id)
                .values(
                    credits_used=AiChatSession.credits_used + cost,
                    minutes_used=AiChatSession.minutes_used + MINUTES_PER_EXCHANGE,
                )
                .execution_options(synchronize_session=False)
            )
            db.commit()
            break
        except InsufficientCreditsError:
            raise
        except IntegrityError:
            db.rollback()
            if attempt == SEQ_ATTEMPTS:
                raise
            logger.warning(f"seq collision in ai session={session.id}, retrying ({attempt}/{SEQ_ATTEMPTS})")
        except Exception:
            db.rollback()
            raise
    db.refresh(user)
    db.refresh(session)
    return user


# ── Payments ──────────────────────────────────────────────────────────────────
def create_payment(db: Session, user_id: str, tier: dict) -> Payment:
    payment = Payment(
        user_id=user_id,
        amount=tier["amount"],
        credits_granted=tier["credits"],
        minutes_granted=tier["minutes"],
        payment_tier=tier["id"],
        status=PaymentStatus.pending,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def attach_order(db: Session, payment: Payment, order_id: str) -> Payment:
    payment.razorpay_order_id = order_id
    db.commit()
    db.refresh(payment)
    return payment


def get_payment(db: Session, payment_id: str, user_id: str) -> Optional[Payment]:
    return db.query(Payment).filter(Payment.id == payment_id, Payment.user_id == user_id).first()


def fail_payment(db: Session, payment: Payment) -> bool:
    """pending -> failed. Returns False when the payment had already left pending."""
    changed = db.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == PaymentStatus.pending)
        .values(status=PaymentStatus.failed, completed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(payment)
    return changed.rowcount > 0


def complete_payment(db: Session, payment: Payment, gateway_payment_id: str) -> User:
    """
    pending -> completed and credit the owner, in one transaction.

    A second completion of the same payment (or reuse of a gateway payment id)
    raises PaymentStateError and grants nothing.
    """
    try:
        changed = db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.pending)
            .values(
                status=PaymentStatus.completed,
                razorpay_payment_id=gateway_payment_id,
                completed_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if changed.rowcount == 0:
            db.rollback()
            raise PaymentStateError(f"payment {payment.id} is not pending")
        db.execute(
            update(User)
            .where(User.id == payment.user_id)
            .values(credits=User.credits + payment.credits_granted)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise PaymentStateError(f"gateway payment id {gateway_payment_id} already used") from e
    except PaymentStateError:
        raise
    except Exception:
        db.rollback()
        raise
    db.refresh(payment)
    user = db.get(User, payment.user_id)
    db.refresh(user)
    return user
