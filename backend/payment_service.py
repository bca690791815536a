"""
MysticRead AI — Razorpay Payments
Credit tiers, order creation, checkout signature verification and crediting.
"""

import os
import hmac
import hashlib
import logging
import secrets
import time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from storage import (
    PaymentStateError,
    attach_order,
    complete_payment,
    create_payment,
    fail_payment,
    get_payment,
)
from user_db import PaymentStatus, User

logger = logging.getLogger(__name__)

# ── Config ────────────────────────────────────────────────────────────────────
RAZORPAY_KEY_ID        = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET    = os.getenv("RAZORPAY_KEY_SECRET", "")
OFFLINE_PAYMENT_SECRET = os.getenv("OFFLINE_PAYMENT_SECRET", "mysticread-offline-secret")
CURRENCY               = "INR"

PAYMENT_TIERS = [
    {"id": "tier1", "name": "Basic Plan",    "amount": 99,  "credits": 5,  "minutes": 5,
     "description": "5 AI chat credits (5 minutes)"},
    {"id": "tier2", "name": "Standard Plan", "amount": 199, "credits": 10, "minutes": 10,
     "description": "10 AI chat credits (10 minutes)"},
    {"id": "tier3", "name": "Premium Plan",  "amount": 299, "credits": 15, "minutes": 15,
     "description": "15 AI chat credits (15 minutes)"},
]


def get_tier(tier_id: str) -> Optional[dict]:
    return next((t for t in PAYMENT_TIERS if t["id"] == tier_id), None)


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Razorpay checkout signature: hex HMAC-SHA256 of "order_id|payment_id"."""
    message = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


class PaymentGateway:
    """Narrow interface over the payment gateway; built once at startup and injected."""

    key_id = ""

    def __init__(self, key_secret: str):
        self._key_secret = key_secret

    def create_order(self, amount_inr: int, receipt: str, notes: dict) -> dict:
        raise NotImplementedError

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = compute_signature(self._key_secret, order_id, payment_id)
        return hmac.compare_digest(expected, signature)


class RazorpayGateway(PaymentGateway):
    def __init__(self, key_id: str, key_secret: str):
        import razorpay

        super().__init__(key_secret)
        self.key_id = key_id
        self.client = razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, amount_inr, receipt, notes) -> dict:
        return self.client.order.create({
            "amount":   amount_inr * 100,   # paise
            "currency": CURRENCY,
            "receipt":  receipt,
            "notes":    notes,
        })


class OfflineGateway(PaymentGateway):
    """Local order ids and the same HMAC check; for development without Razorpay keys."""

    key_id = "rzp_test_offline"

    def create_order(self, amount_inr, receipt, notes) -> dict:
        return {
            "id":       f"order_offline_{secrets.token_hex(8)}",
            "amount":   amount_inr * 100,
            "currency": CURRENCY,
            "receipt":  receipt,
            "notes":    notes,
            "status":   "created",
        }

    def sign(self, order_id: str, payment_id: str) -> str:
        """What Razorpay's checkout would hand back for a successful payment."""
        return compute_signature(self._key_secret, order_id, payment_id)


def build_gateway() -> PaymentGateway:
    if RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET:
        logger.info("Payments: Razorpay gateway configured.")
        return RazorpayGateway(RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET)
    logger.warning("RAZORPAY keys not set — using the offline payment gateway.")
    return OfflineGateway(OFFLINE_PAYMENT_SECRET)


# ── Flows ─────────────────────────────────────────────────────────────────────
def create_order_for_tier(db: Session, gateway: PaymentGateway, user: User, tier_id: str) -> dict:
    tier = get_tier(tier_id)
    if tier is None:
        raise HTTPException(status_code=400, detail="Invalid payment tier")

    payment = create_payment(db, user.id, tier)
    try:
        order = gateway.create_order(
            tier["amount"],
            receipt=f"receipt_{int(time.time() * 1000)}",
            notes={"description": f"{tier['name']} - {tier['description']}",
                   "payment_id": payment.id, "user_id": user.id},
        )
    except Exception as e:
        logger.error(f"Order creation failed for payment={payment.id}: {e}", exc_info=True)
        fail_payment(db, payment)
        raise HTTPException(status_code=502, detail="Failed to create payment order") from e

    attach_order(db, payment, order["id"])
    logger.info(f"[PAY] order={order['id']} payment={payment.id} tier={tier_id} amount=₹{tier['amount']}")
    return {
        "orderId":   order["id"],
        "amount":    tier["amount"],
        "currency":  CURRENCY,
        "paymentId": payment.id,
        "key":       gateway.key_id,
    }


def verify_and_credit(
    db: Session,
    gateway: PaymentGateway,
    user: User,
    order_id: str,
    gateway_payment_id: str,
    signature: str,
    payment_id: str,
) -> dict:
    payment = get_payment(db, payment_id, user.id)
    if payment is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    if payment.status != PaymentStatus.pending:
        raise HTTPException(status_code=409, detail=f"Payment already {payment.status.value}")

    signature_ok = (
        payment.razorpay_order_id == order_id
        and gateway.verify_signature(order_id, gateway_payment_id, signature)
    )
    if not signature_ok:
        fail_payment(db, payment)
        logger.warning(f"[PAY] signature mismatch order={order_id} payment={payment.id} — marked failed")
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    try:
        user = complete_payment(db, payment, gateway_payment_id)
    except PaymentStateError as e:
        logger.warning(f"[PAY] {e}")
        raise HTTPException(status_code=409, detail="Payment already processed") from e

    logger.info(f"[PAY] verified order={order_id} payment={payment.id} +{payment.credits_granted} credits")
    return {
        "success":      True,
        "creditsAdded": payment.credits_granted,
        "totalCredits": user.credits,
        "message":      f"Successfully added {payment.credits_granted} credits to your account!",
    }
