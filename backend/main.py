"""
MysticRead AI — FastAPI Main Application
AI palm, astrology, Vastu, numerology and tarot readings with follow-up chat and credits.
"""

import os
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, HTTPException, Depends, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session

load_dotenv()

from models import (  # noqa: E402
    AstrologyInput,
    ChatSendBody,
    CreateOrderBody,
    CreditChatBody,
    HealthResponse,
    LoginBody,
    MysticalChatBody,
    NumerologyInput,
    RegisterBody,
    TarotInput,
    VastuInput,
    VerifyPaymentBody,
)
from database import init_db, get_db, get_analysis, get_palm_analysis, list_user_analyses, serialize_analysis  # noqa: E402
from auth import (  # noqa: E402
    create_access_token, create_user, authenticate_user,
    get_current_user, require_auth, user_profile,
)
from user_db import User  # noqa: E402
from llm_service import AnalysisError, AnalysisProvider, GeminiProvider  # noqa: E402
from analysis_service import run_analysis  # noqa: E402
from result_schemas import ResultValidationError  # noqa: E402
import chat_service  # noqa: E402
import payment_service  # noqa: E402
import report_service  # noqa: E402
from storage import get_ai_session, list_ai_messages  # noqa: E402
from tarot_deck import SPREAD_POSITIONS, draw_cards  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_MB", "10")) * 1024 * 1024

# ── Rate Limiter ──────────────────────────────────────────────────────────────
limiter = Limiter(
    key_func=get_remote_address,
    enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() not in ("0", "false", "no"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("✅ MysticRead AI Backend starting up...")
    init_db()
    # Provider and gateway are built once here and handed to routes via app.state
    app.state.provider = GeminiProvider()
    app.state.gateway = payment_service.build_gateway()
    yield
    logger.info("🛑 MysticRead AI Backend shutting down...")


# ── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="MysticRead AI API",
    description="AI-powered mystical readings: palmistry, astrology, Vastu, numerology and tarot",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── CORS ──────────────────────────────────────────────────────────────────────
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000,http://localhost:5000"
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Injected clients ──────────────────────────────────────────────────────────
def get_provider(request: Request) -> AnalysisProvider:
    return request.app.state.provider


def get_gateway(request: Request) -> payment_service.PaymentGateway:
    return request.app.state.gateway


# ── Helpers ───────────────────────────────────────────────────────────────────
async def _analyze(db: Session, provider: AnalysisProvider, kind: str, data,
                   user: Optional[User], image: Optional[tuple[bytes, str]] = None) -> dict:
    """Run the pipeline and map its failures onto HTTP errors."""
    try:
        record = await run_analysis(db, provider, kind, data, user=user, image=image)
    except ResultValidationError:
        raise HTTPException(status_code=502, detail="Invalid analysis response format")
    except AnalysisError:
        raise HTTPException(status_code=502, detail=f"Failed to analyze {kind}")
    return serialize_analysis(record)


async def _read_image(upload: UploadFile) -> tuple[bytes, str]:
    if not (upload.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")
    data = await upload.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded image is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"Image exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit")
    return data, upload.content_type


def _download(content: bytes | str, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _render(report: report_service.Report, fmt: str, filename: str) -> Response:
    if fmt == "docx":
        return _download(
            report_service.render_docx(report), filename,
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        )
    return _download(report_service.render_text(report), filename, "text/plain; charset=utf-8")


# ── Health Check ──────────────────────────────────────────────────────────────
@app.get("/api/health", response_model=HealthResponse, tags=["System"])
async def health_check(request: Request):
    """Health check endpoint for load balancer / Kubernetes probes."""
    gateway = getattr(request.app.state, "gateway", None)
    return HealthResponse(
        status="healthy",
        version="1.0.0",
        services={
            "gemini": "configured" if os.getenv("GEMINI_API_KEY") else "not_configured",
            "payments": "razorpay" if isinstance(gateway, payment_service.RazorpayGateway) else "offline",
            "database": "postgresql" if os.getenv("DATABASE_URL", "").startswith("postgres") else "sqlite",
        },
    )


# ════════════════════════════════════════════════════════════════════════════════
# AUTH ROUTES
# ════════════════════════════════════════════════════════════════════════════════

@app.post("/api/auth/register", tags=["Auth"])
@limiter.limit("10/minute")
async def register(request: Request, body: RegisterBody, db: Session = Depends(get_db)):
    """Create a new account with an empty credit balance."""
    user = create_user(db, body.email, body.password, body.first_name, body.last_name)
    return {"token": create_access_token(user.id, user.email), "user": user_profile(user)}


@app.post("/api/auth/login", tags=["Auth"])
@limiter.limit("10/minute")
async def login(request: Request, body: LoginBody, db: Session = Depends(get_db)):
    """Authenticate and return a JWT token."""
    user = authenticate_user(db, body.email, body.password)
    return {"token": create_access_token(user.id, user.email), "user": user_profile(user)}


@app.post("/api/auth/logout", tags=["Auth"])
async def logout():
    """Tokens are stateless; the client discards its copy."""
    return {"message": "Logged out successfully"}


@app.get("/api/auth/me", tags=["Auth"])
async def get_me(user: Optional[User] = Depends(get_current_user)):
    """Return current user profile and credit balance. Returns null if not authenticated."""
    return {"user": user_profile(user) if user else None}


# ════════════════════════════════════════════════════════════════════════════════
# ANALYSIS ROUTES
# ════════════════════════════════════════════════════════════════════════════════

@app.post("/api/palm/analyze", tags=["Analysis"])
@limiter.limit("20/minute")
async def analyze_palm(
    request: Request,
    palm_image: UploadFile = File(..., alias="palmImage"),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    provider: AnalysisProvider = Depends(get_provider),
):
    """Palm photo → palm reading."""
    image = await _read_image(palm_image)
    return await _analyze(db, provider, "palm", None, user, image=image)


@app.get("/api/palm/{analysis_id}", tags=["Analysis"])
async def get_palm(analysis_id: str, db: Session = Depends(get_db)):
    record = get_palm_analysis(db, analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Palm analysis not found")
    return serialize_analysis(record)


@app.post("/api/astrology/analyze", tags=["Analysis"])
@limiter.limit("20/minute")
async def analyze_astrology(
    request: Request,
    body: AstrologyInput,
    user: Optional[User] = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: AnalysisProvider = Depends(get_provider),
):
    return await _analyze(db, provider, "astrology", body, user)


@app.post("/api/vastu/analyze", tags=["Analysis"])
@limiter.limit("20/minute")
async def analyze_vastu(
    request: Request,
    vastu_data: str = Form(..., alias="vastuData"),
    layout_image: Optional[UploadFile] = File(None, alias="layoutImage"),
    user: Optional[User] = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: AnalysisProvider = Depends(get_provider),
):
    """Layout details (JSON form field) plus an optional floor-plan image."""
    try:
        data = VastuInput.model_validate_json(vastu_data)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=json.loads(e.json(include_url=False)))
    image = await _read_image(layout_image) if layout_image is not None and layout_image.filename else None
    return await _analyze(db, provider, "vastu", data, user, image=image)


@app.post("/api/numerology/analyze", tags=["Analysis"])
@limiter.limit("20/minute")
async def analyze_numerology(
    request: Request,
    body: NumerologyInput,
    user: Optional[User] = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: AnalysisProvider = Depends(get_provider),
):
    return await _analyze(db, provider, "numerology", body, user)


@app.get("/api/tarot/draw", tags=["Analysis"])
async def tarot_draw(spread_type: str = Query("three-card", alias="spreadType")):
    """Shuffle and lay out cards for a spread, ready to post to /api/tarot/analyze."""
    if spread_type not in SPREAD_POSITIONS:
        raise HTTPException(status_code=400, detail=f"Unknown spread type '{spread_type}'")
    return {"spreadType": spread_type, "drawnCards": draw_cards(spread_type)}


@app.post("/api/tarot/analyze", tags=["Analysis"])
@limiter.limit("20/minute")
async def analyze_tarot(
    request: Request,
    body: TarotInput,
    user: Optional[User] = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: AnalysisProvider = Depends(get_provider),
):
    return await _analyze(db, provider, "tarot", body, user)


@app.get("/api/analysis/{analysis_id}", tags=["Analysis"])
async def get_analysis_by_id(analysis_id: str, db: Session = Depends(get_db)):
    record = get_analysis(db, analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return serialize_analysis(record)


@app.get("/api/analysis/{analysis_id}/export", tags=["Reports"])
async def export_analysis(
    analysis_id: str,
    fmt: str = Query("txt", alias="format", pattern="^(txt|docx)$"),
    db: Session = Depends(get_db),
):
    record = get_analysis(db, analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    filename = report_service.report_filename("analysis", record.type, fmt)
    return _render(report_service.analysis_report(record), fmt, filename)


@app.get("/api/analyses", tags=["Analysis"])
async def my_analyses(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """The caller's readings, newest first."""
    return {"analyses": [serialize_analysis(r) for r in list_user_analyses(db, user.id, limit)]}


# ════════════════════════════════════════════════════════════════════════════════
# CHAT ROUTES
# ════════════════════════════════════════════════════════════════════════════════

@app.post("/api/chat", tags=["Chat"])
@limiter.limit("30/minute")
async def mystical_chat(
    request: Request,
    body: MysticalChatBody,
    user: User = Depends(require_auth),
    provider: AnalysisProvider = Depends(get_provider),
):
    """General mystical guidance; the client supplies its own history."""
    history = [m.model_dump() for m in body.conversation_history]
    try:
        reply = await chat_service.mystical_reply(provider, body.message, history)
    except AnalysisError:
        raise HTTPException(status_code=502, detail="Failed to generate chat response")
    return {"response": reply}


@app.post("/api/ai-chat", tags=["Chat"])
@limiter.limit("30/minute")
async def credit_chat(
    request: Request,
    body: CreditChatBody,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    provider: AnalysisProvider = Depends(get_provider),
):
    """Credit-metered chat: one credit per exchange, 403 + needsPayment at zero."""
    try:
        return await chat_service.send_credit_message(db, provider, user, body.message)
    except AnalysisError:
        raise HTTPException(status_code=502, detail="Failed to process AI chat")


@app.get("/api/ai-chat/session", tags=["Chat"])
async def credit_chat_session(user: User = Depends(require_auth), db: Session = Depends(get_db)):
    """Read-only: a user who never chatted gets an empty session, nothing is created."""
    session = get_ai_session(db, user.id)
    messages = list_ai_messages(db, session.id) if session else []
    return {
        "sessionId":    session.id if session else None,
        "messages":     [chat_service.serialize_message(m) for m in messages],
        "creditsUsed":  session.credits_used if session else 0,
        "minutesUsed":  round(session.minutes_used, 2) if session else 0.0,
        "credits":      user.credits,
    }


@app.get("/api/ai-chat/export", tags=["Reports"])
async def export_credit_chat(
    fmt: str = Query("txt", alias="format", pattern="^(txt|docx)$"),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    session = get_ai_session(db, user.id)
    messages = [chat_service.serialize_message(m) for m in list_ai_messages(db, session.id)] if session else []
    report = report_service.chat_report(messages, "ai-chat", credits_used=session.credits_used if session else 0)
    return _render(report, fmt, report_service.report_filename("ai-chat", ext=fmt))


@app.post("/api/chat/send", tags=["Chat"])
@limiter.limit("30/minute")
async def send_chat_message(
    request: Request,
    body: ChatSendBody,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    provider: AnalysisProvider = Depends(get_provider),
):
    """Follow-up question about a stored reading. Unlimited, no credit cost."""
    try:
        return await chat_service.send_analysis_message(db, provider, user, body.analysis_id, body.message)
    except AnalysisError:
        raise HTTPException(status_code=502, detail="Failed to send message")


@app.get("/api/chat/conversation", tags=["Chat"])
async def get_conversation_by_query(
    analysis_id: str = Query(..., alias="analysisId"),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return chat_service.conversation_history(db, user, analysis_id)


@app.get("/api/chat/conversation/{analysis_id}", tags=["Chat"])
async def get_conversation(analysis_id: str, user: User = Depends(require_auth), db: Session = Depends(get_db)):
    return chat_service.conversation_history(db, user, analysis_id)


@app.get("/api/chat/conversation/{analysis_id}/export", tags=["Reports"])
async def export_conversation(
    analysis_id: str,
    fmt: str = Query("txt", alias="format", pattern="^(txt|docx)$"),
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
):
    record = get_analysis(db, analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    history = chat_service.conversation_history(db, user, analysis_id)
    report = report_service.chat_report(history["messages"], "post-analysis", analysis_kind=record.type)
    return _render(report, fmt, report_service.report_filename("post-analysis", record.type, fmt))


# ════════════════════════════════════════════════════════════════════════════════
# PAYMENT ROUTES (Razorpay)
# ════════════════════════════════════════════════════════════════════════════════

@app.get("/api/payments/tiers", tags=["Payments"])
async def payment_tiers():
    return payment_service.PAYMENT_TIERS


@app.post("/api/payments/create-order", tags=["Payments"])
@limiter.limit("10/minute")
async def create_payment_order(
    request: Request,
    body: CreateOrderBody,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    gateway: payment_service.PaymentGateway = Depends(get_gateway),
):
    """Pending payment row + gateway order for a credit tier."""
    return payment_service.create_order_for_tier(db, gateway, user, body.payment_tier)


@app.post("/api/payments/verify", tags=["Payments"])
@limiter.limit("10/minute")
async def verify_payment(
    request: Request,
    body: VerifyPaymentBody,
    user: User = Depends(require_auth),
    db: Session = Depends(get_db),
    gateway: payment_service.PaymentGateway = Depends(get_gateway),
):
    """Verify the checkout signature and credit the account."""
    return payment_service.verify_and_credit(
        db, gateway, user,
        order_id=body.razorpay_order_id,
        gateway_payment_id=body.razorpay_payment_id,
        signature=body.razorpay_signature,
        payment_id=body.payment_id,
    )


# ── Error Handlers ────────────────────────────────────────────────────────────
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error. Please try again.", "status_code": 500},
    )
