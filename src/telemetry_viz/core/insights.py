"""
insights.py
─────────────────────────────────────────────────────────────────────────────
Asks an LLM for chart recommendations and an anomaly write-up for a dataset.

 - Only the first INSIGHT_SAMPLE_ROWS rows are sent
 - The reply is constrained to one JSON object: {recommendations, analysis}
 - Every transport/HTTP failure is retried with exponential backoff + jitter
 - Credentials and endpoint are read from the environment on every call
─────────────────────────────────────────────────────────────────────────────
"""

import asyncio
import json
import random
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx
from groq import APIError, AsyncGroq
from pydantic import ValidationError

from telemetry_viz.config import Settings, get_settings
from telemetry_viz.models import Dataset, InsightPayload, Row
from telemetry_viz.utils.exceptions import (
    ConfigError,
    NoDataError,
    ResponseShapeError,
    SchemaError,
    TransportError,
)
from telemetry_viz.utils.logger import get_logger

logger = get_logger(__name__)


# ── prompts ───────────────────────────────────────────────────────────────────
SYSTEM_PROMPT = (
    "Act as a specialized Racecar Telemetry Analyst. Your entire response MUST be a "
    "single JSON object that strictly adheres to the provided JSON schema. "
    "Do not include any text outside the JSON object."
)

SCHEMA_CONTRACT = (
    'Respond with exactly one JSON object with two top-level fields, in this order:\n'
    '  "recommendations": an array of objects, each with the fields "xAxis", "yAxis", '
    '"reason" in that order\n'
    '  "analysis": a single Markdown string'
)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "recommendations": {
            "type": "ARRAY",
            "description": "A list of recommended axis pairs for visualization.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "xAxis": {"type": "STRING", "description": "The recommended column name for the X-Axis."},
                    "yAxis": {"type": "STRING", "description": "The recommended column name for the Y-Axis."},
                    "reason": {"type": "STRING", "description": "One sentence on why this chart matters."},
                },
                "propertyOrdering": ["xAxis", "yAxis", "reason"],
            },
        },
        "analysis": {
            "type": "STRING",
            "description": "Markdown analysis of anomalies and notable ranges.",
        },
    },
    "propertyOrdering": ["recommendations", "analysis"],
}


def sample_rows(rows: Sequence[Row], limit: int) -> list:
    return list(rows[:limit])


def build_prompt(headers: Sequence[str], sample: Sequence[Row]) -> str:
    """Embed the column list, the JSON sample and the output contract in one instruction."""
    column_names = ", ".join(headers)
    sample_json = json.dumps(list(sample), indent=2)
    return (
        "You are an expert Formula 1 / racecar telemetry analyst.\n"
        "The user has uploaded a CSV file containing raw telemetry data.\n\n"
        f"**Available Columns:** {column_names}\n\n"
        "**Task 1: Visualization Recommendations**\n"
        "Suggest the 3-4 most relevant (X-Axis, Y-Axis) pairs for time-series line graphs. "
        "Use the exact column names from the list above. Prefer a time column "
        "(such as 'TimeStamp' or 'adjusted_time_ms') for xAxis, and key performance "
        "metrics (speed, torque, voltage, current) for yAxis.\n\n"
        "**Task 2: Anomaly and Range Analysis (Markdown)**\n"
        "Write a concise, structured Markdown analysis of the sample. Point out anomalies, "
        "interesting ranges and critical performance observations (voltage drop, speed spike). "
        "Name the actual columns and quote their numeric ranges.\n\n"
        f"{SCHEMA_CONTRACT}\n\n"
        "Data sample:\n"
        "---\n"
        f"{sample_json}\n"
        "---"
    )


# ── transports ────────────────────────────────────────────────────────────────
def _describe_error(error: Exception) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return f"API call failed with status {response.status_code}: {response.text[:500]}"
    return str(error) or type(error).__name__


class GeminiTransport:
    """POSTs to the Gemini generateContent endpoint with a response schema."""

    name = "gemini"
    retryable_errors = (httpx.HTTPError,)

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._http_client = http_client

    def check_config(self, settings: Settings) -> None:
        if not settings.GEMINI_API_KEY:
            raise ConfigError("GEMINI_API_KEY is not set. Add it to your environment or .env file.")
        if not settings.GEMINI_API_URL or not settings.GEMINI_MODEL:
            raise ConfigError("GEMINI_API_URL and GEMINI_MODEL must both be set.")

    def build_payload(self, prompt: str, settings: Settings) -> dict:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "generationConfig": {
                "temperature": settings.INSIGHT_TEMPERATURE,
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    async def send(self, prompt: str, settings: Settings) -> Any:
        url = f"{settings.GEMINI_API_URL.rstrip('/')}/models/{settings.GEMINI_MODEL}:generateContent"
        params = {"key": settings.GEMINI_API_KEY}
        payload = self.build_payload(prompt, settings)

        if self._http_client is not None:
            response = await self._http_client.post(url, params=params, json=payload)
        else:
            async with httpx.AsyncClient(timeout=settings.INSIGHT_TIMEOUT_SECONDS) as client:
                response = await client.post(url, params=params, json=payload)

        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise ResponseShapeError("LLM response was empty or malformed: body is not JSON.") from e

    def extract_text(self, response: Any) -> Optional[str]:
        try:
            return response["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None


class GroqTransport:
    """Chat completion in JSON mode through the Groq SDK."""

    name = "groq"
    retryable_errors = (APIError, httpx.HTTPError)

    def __init__(self, client: Optional[AsyncGroq] = None):
        self._client = client

    def check_config(self, settings: Settings) -> None:
        if not settings.GROQ_API_KEY:
            raise ConfigError("GROQ_API_KEY is not set. Add it to your environment or .env file.")
        if not settings.GROQ_MODEL:
            raise ConfigError("GROQ_MODEL must be set.")

    def _get_client(self, settings: Settings) -> AsyncGroq:
        if self._client is not None:
            return self._client
        # Retries are owned by InsightClient
        return AsyncGroq(
            api_key=settings.GROQ_API_KEY,
            max_retries=0,
            timeout=settings.INSIGHT_TIMEOUT_SECONDS,
        )

    async def send(self, prompt: str, settings: Settings) -> Any:
        client = self._get_client(settings)
        return await client.chat.completions.create(
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            model=settings.GROQ_MODEL,
            temperature=settings.INSIGHT_TEMPERATURE,
            response_format={"type": "json_object"},
        )

    def extract_text(self, response: Any) -> Optional[str]:
        try:
            return response.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            return None


TRANSPORTS = {
    GeminiTransport.name: GeminiTransport,
    GroqTransport.name: GroqTransport,
}


# ── client ────────────────────────────────────────────────────────────────────
class InsightClient:
    """
    Generates an InsightPayload for a Dataset.

    Args:
        transport        : Fixed transport. When omitted one is picked per call
                           from INSIGHT_PROVIDER.
        settings_factory : Returns the Settings to use for one call.
        sleep            : Awaitable used for backoff delays.
        jitter           : Returns the random part of each delay, in [0, 1).
    """

    def __init__(
        self,
        transport=None,
        settings_factory: Callable[[], Settings] = get_settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[], float] = random.random,
    ):
        self._transport = transport
        self._settings_factory = settings_factory
        self._sleep = sleep
        self._jitter = jitter

    def _resolve_transport(self, settings: Settings):
        if self._transport is not None:
            return self._transport
        transport_cls = TRANSPORTS.get(settings.INSIGHT_PROVIDER)
        if transport_cls is None:
            raise ConfigError(
                f"Unknown INSIGHT_PROVIDER '{settings.INSIGHT_PROVIDER}'. "
                f"Expected one of: {', '.join(sorted(TRANSPORTS))}."
            )
        return transport_cls()

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt `attempt` (0-indexed): 2**attempt seconds plus jitter."""
        return 2 ** attempt + self._jitter()

    async def _send_with_retry(self, transport, prompt: str, settings: Settings) -> Any:
        max_attempts = max(1, settings.INSIGHT_MAX_ATTEMPTS)
        for attempt in range(max_attempts):
            try:
                return await transport.send(prompt, settings)
            except transport.retryable_errors as e:
                reason = _describe_error(e)
                if attempt == max_attempts - 1:
                    logger.error(f"Insight request failed after {max_attempts} attempts: {reason}")
                    raise TransportError(
                        f"Could not fetch insights: {reason}", attempts=max_attempts
                    ) from e
                delay = self.backoff_delay(attempt)
                logger.warning(
                    f"Insight request attempt {attempt + 1}/{max_attempts} failed: {reason}. "
                    f"Retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

    async def generate_insights(self, dataset: Dataset) -> InsightPayload:
        """
        Requests recommendations and an anomaly analysis for `dataset`.

        Raises:
            NoDataError        : dataset has no rows (no network call)
            ConfigError        : credential/endpoint/provider missing (no network call)
            TransportError     : every attempt failed
            ResponseShapeError : no generated text in the reply
            SchemaError        : generated text is not the expected JSON object
        """
        if dataset is None or dataset.is_empty:
            raise NoDataError()

        settings = self._settings_factory()
        transport = self._resolve_transport(settings)
        transport.check_config(settings)

        sample = sample_rows(dataset.rows, settings.INSIGHT_SAMPLE_ROWS)
        prompt = build_prompt(dataset.headers, sample)
        logger.info(
            f"Requesting insights from {transport.name} for '{dataset.filename}' "
            f"({len(sample)} of {len(dataset.rows)} rows)"
        )

        response = await self._send_with_retry(transport, prompt, settings)

        text = transport.extract_text(response)
        if not isinstance(text, str) or not text:
            raise ResponseShapeError()

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SchemaError(f"LLM response was not valid JSON: {e}") from e

        try:
            payload = InsightPayload.model_validate(data)
        except ValidationError as e:
            raise SchemaError(f"LLM response did not match the insight schema: {e.error_count()} error(s)") from e

        logger.info(f"Insights received: {len(payload.recommendations)} recommendation(s)")
        return payload
