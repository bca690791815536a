"""
MysticRead AI — Analysis Pipeline
validated input → prompt/function spec → forced function call → result validation → stored record.
"""

import json
import base64
import logging
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from database import AnalysisRecord, create_analysis
from llm_service import AnalysisError, AnalysisProvider
from prompts import build_prompt
from result_schemas import ResultValidationError, check_consistency, dump_result, validate_result
from user_db import User

logger = logging.getLogger(__name__)


def image_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


async def run_analysis(
    db: Session,
    provider: AnalysisProvider,
    kind: str,
    input_data: Optional[BaseModel],
    user: Optional[User] = None,
    image: Optional[tuple[bytes, str]] = None,
) -> AnalysisRecord:
    """
    Run one reading end to end. A single attempt: nothing is retried and nothing
    is stored unless the model's answer passes validation.

    Raises AnalysisError ("Failed to analyze <kind>") for provider problems and
    ResultValidationError when the answer does not fit the result schema.
    """
    tag = f"[ANALYZE:{kind}]"

    # ── Step 1: prompt + function spec ─────────────────────────────────────
    prompt = build_prompt(kind, input_data)
    logger.info(f"{tag} Step 1: prompt built, function={prompt.function['name']} image={'yes' if image else 'no'}")

    # ── Step 2: forced function call ───────────────────────────────────────
    try:
        raw = await provider.call_function(prompt.system, prompt.user, prompt.function, image=image)
    except (AnalysisError, ValueError) as e:
        logger.error(f"{tag} Step 2: provider {provider.name} failed: {e}", exc_info=True)
        raise AnalysisError(f"Failed to analyze {kind}") from e

    # ── Step 3: validation ─────────────────────────────────────────────────
    try:
        result = validate_result(kind, raw)
        check_consistency(kind, input_data, result, raw=raw)
    except ResultValidationError as e:
        logger.error(
            f"{tag} Step 3: invalid analysis response format: {e.errors} "
            f"raw={json.dumps(e.raw, default=str)[:4000]}"
            + (f" parsed={json.dumps(e.parsed, default=str)[:4000]}" if e.parsed is not None else "")
        )
        raise
    logger.info(f"{tag} Step 3: result validated")

    # ── Step 4: persist ────────────────────────────────────────────────────
    record = create_analysis(
        db,
        kind=kind,
        input_data=input_data.model_dump(by_alias=True, exclude_none=True) if input_data else None,
        result=dump_result(result),
        user_id=user.id if user else None,
        image_url=image_data_url(*image) if image else None,
    )
    logger.info(f"{tag} Step 4: stored as {record.id}")
    return record
