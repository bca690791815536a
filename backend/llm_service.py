"""
MysticRead AI — Gemini AI Integration
Forced function-call readings and free-text chat completions via Google Gemini.
"""

import os
import json
import logging
from collections.abc import Mapping, Sequence
from typing import Optional

logger = logging.getLogger(__name__)

# ── Config ────────────────────────────────────────────────────────────────────
GEMINI_MODEL    = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
LLM_TIMEOUT     = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))


class AnalysisError(Exception):
    """The model provider failed or answered in an unusable way."""


class InvalidFunctionCallError(AnalysisError):
    """The response carried no call to the requested function."""


class AnalysisProvider:
    """Narrow interface over the model provider; built once at startup and injected."""

    name = "base"

    async def call_function(self, system: str, user: str, function: dict,
                            image: Optional[tuple[bytes, str]] = None) -> dict:
        """Force a call to `function` and return its arguments as plain JSON."""
        raise NotImplementedError

    async def complete(self, system: str, messages: list[dict]) -> str:
        """Free-text reply to `messages` ({"role": "user"|"assistant", "content": str})."""
        raise NotImplementedError


def to_plain(value):
    """
    Convert proto-plus containers (MapComposite / RepeatedComposite) into dicts and
    lists. Struct numbers arrive as doubles, so integral floats become ints.
    """
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return [to_plain(v) for v in value]
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def extract_function_args(response, function_name: str) -> dict:
    """Arguments of the first call to `function_name` in a generate_content response."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            call = getattr(part, "function_call", None)
            if not call or not getattr(call, "name", ""):
                continue
            if call.name != function_name:
                raise InvalidFunctionCallError(
                    f"invalid function call response: expected {function_name}, got {call.name}"
                )
            args = call.args
            if isinstance(args, str):
                # malformed JSON propagates as json.JSONDecodeError
                args = json.loads(args)
            return to_plain(args)
    raise InvalidFunctionCallError(f"invalid function call response: no call to {function_name}")


def describe_response(response, limit: int = 4000) -> str:
    """Text parts and raw function-call arguments of a response, for error logs."""
    pieces = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            text = getattr(part, "text", None)
            if text:
                pieces.append(f"text={text!r}")
            call = getattr(part, "function_call", None)
            if call and getattr(call, "name", ""):
                args = call.args if isinstance(call.args, str) else json.dumps(to_plain(call.args), default=str)
                pieces.append(f"call={call.name} args={args}")
    return "; ".join(pieces)[:limit] or "<empty response>"


class GeminiProvider(AnalysisProvider):
    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, model_name: str = GEMINI_MODEL,
                 timeout: Optional[float] = LLM_TIMEOUT):
        self.api_key = api_key if api_key is not None else os.getenv("GEMINI_API_KEY", "")
        self.model_name = model_name
        self.timeout = timeout
        if self.api_key:
            import google.generativeai as genai
            genai.configure(api_key=self.api_key)
        else:
            logger.warning("GEMINI_API_KEY not set — analysis and chat requests will fail.")

    def _model(self, system: str, function: Optional[dict] = None):
        if not self.api_key:
            raise AnalysisError("GEMINI_API_KEY is not configured")
        import google.generativeai as genai

        if function is None:
            return genai.GenerativeModel(self.model_name, system_instruction=system)
        return genai.GenerativeModel(
            self.model_name,
            system_instruction=system,
            tools=[{"function_declarations": [function]}],
            tool_config={"function_calling_config": {
                "mode": "ANY",
                "allowed_function_names": [function["name"]],
            }},
        )

    def _request_options(self) -> dict:
        return {"timeout": self.timeout} if self.timeout else {}

    async def call_function(self, system, user, function, image=None) -> dict:
        model = self._model(system, function)
        contents = [user]
        if image is not None:
            data, mime_type = image
            contents.append({"mime_type": mime_type, "data": data})
        try:
            response = await model.generate_content_async(
                contents, request_options=self._request_options()
            )
        except Exception as e:
            raise AnalysisError(f"Gemini request failed: {e}") from e
        try:
            args = extract_function_args(response, function["name"])
        except (InvalidFunctionCallError, ValueError) as e:
            logger.error(
                f"Gemini {self.model_name} gave no usable {function['name']} call ({e}): "
                f"{describe_response(response)}"
            )
            raise
        logger.info(f"Gemini {self.model_name} answered {function['name']}")
        return args

    async def complete(self, system, messages) -> str:
        model = self._model(system)
        contents = [
            {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
            for m in messages
        ]
        try:
            response = await model.generate_content_async(
                contents, request_options=self._request_options()
            )
            text = response.text
        except Exception as e:
            raise AnalysisError(f"Gemini chat failed: {e}") from e
        if not text or not text.strip():
            raise AnalysisError("Gemini returned an empty reply")
        return text.strip()
