"""
External Demand Predictor — LLM structured-output client.

Sends the consumption pattern and stock bounds to an OpenAI-compatible
chat-completions endpoint with a strict JSON schema and parses the reply
into a Prediction. Transport errors are retried; HTTP errors and
non-conforming replies are not, and nothing is ever substituted for a
missing answer.
"""

import json
from dataclasses import dataclass

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import Settings, get_settings
from core.errors import InvalidOperationError, NotAvailableError
from ml.consumption import ConsumptionPattern

logger = structlog.get_logger()

SYSTEM_PROMPT = (
    "You are an expert in inventory management and demand analysis. "
    "Give precise predictions based on historical data."
)

RESPONSE_SCHEMA = {
    "type": "json_schema",
    "json_schema": {
        "name": "demand_forecast",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "forecastedDemand": {"type": "integer", "description": "Predicted demand for next month"},
                "suggestedOrderQuantity": {"type": "integer", "description": "Suggested purchase quantity"},
                "confidence": {"type": "integer", "description": "Confidence level 0-100"},
                "analysis": {"type": "string", "description": "Short rationale for the recommendation"},
            },
            "required": ["forecastedDemand", "suggestedOrderQuantity", "confidence", "analysis"],
            "additionalProperties": False,
        },
    },
}


class PredictorReply(BaseModel):
    """Wire shape of the predictor's JSON answer."""

    model_config = ConfigDict(strict=True, extra="forbid", populate_by_name=True)

    forecasted_demand: int = Field(alias="forecastedDemand")
    suggested_order_quantity: int = Field(alias="suggestedOrderQuantity")
    confidence: int
    analysis: str


@dataclass(frozen=True)
class Prediction:
    forecasted_demand: int
    suggested_order_quantity: int
    confidence: int
    analysis: str


def clamp_prediction(reply: PredictorReply) -> Prediction:
    return Prediction(
        forecasted_demand=max(1, reply.forecasted_demand),
        suggested_order_quantity=max(1, reply.suggested_order_quantity),
        confidence=min(100, max(0, reply.confidence)),
        analysis=reply.analysis,
    )


def build_prompt(pattern: ConsumptionPattern, min_stock: int, max_stock: int) -> str:
    history = ", ".join(str(v) for v in pattern.recent_consumption) or "no exits recorded"
    return (
        "Analyze the following inventory consumption pattern and predict demand:\n\n"
        f"Product: {pattern.product_name}\n"
        f"Average monthly consumption: {pattern.average_monthly_consumption:.2f} units\n"
        f"Last {len(pattern.recent_consumption)} months: {history} units\n"
        f"Trend: {pattern.trend}\n"
        f"Seasonality detected: {'yes' if pattern.seasonality else 'no'}\n"
        f"Minimum stock required: {min_stock} units\n"
        f"Maximum stock allowed: {max_stock} units\n\n"
        "Provide:\n"
        "1. Demand forecast for next month (integer)\n"
        "2. Suggested purchase quantity (integer)\n"
        "3. Confidence in the prediction (0-100)\n"
        "4. A short analysis of the recommendation\n\n"
        "Answer in JSON with keys: forecastedDemand, suggestedOrderQuantity, confidence, analysis"
    )


def parse_completion(payload: dict) -> Prediction:
    """Extract and validate the structured answer from a chat-completions body."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise InvalidOperationError("Predictor response has no message content") from exc
    if not content:
        raise InvalidOperationError("Predictor response has no message content")

    if isinstance(content, str):
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise InvalidOperationError("Predictor returned non-JSON content") from exc
    else:
        parsed = content

    try:
        reply = PredictorReply.model_validate(parsed)
    except SchemaError as exc:
        raise InvalidOperationError(f"Predictor reply does not match schema: {exc.error_count()} error(s)") from exc
    return clamp_prediction(reply)


class DemandPredictor:
    """Client for the external demand predictor."""

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.llm_api_url,
                timeout=self.settings.llm_timeout_seconds,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_request(self, pattern: ConsumptionPattern, min_stock: int, max_stock: int) -> dict:
        return {
            "model": self.settings.llm_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(pattern, min_stock, max_stock)},
            ],
            "response_format": RESPONSE_SCHEMA,
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, body: dict) -> dict:
        response = await self.client.post(
            "/chat/completions",
            headers={"Authorization": f"Bearer {self.settings.llm_api_key}"},
            json=body,
            timeout=self.settings.llm_timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    async def predict(self, pattern: ConsumptionPattern, min_stock: int, max_stock: int) -> Prediction:
        if not self.settings.llm_api_key:
            raise NotAvailableError("Demand predictor API key is not configured")

        body = self.build_request(pattern, min_stock, max_stock)
        try:
            payload = await self._post(body)
        except httpx.HTTPStatusError as exc:
            logger.error("predictor.http_error", status_code=exc.response.status_code)
            raise NotAvailableError(f"Demand predictor returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("predictor.unreachable", error=str(exc))
            raise NotAvailableError("Demand predictor is unreachable") from exc
        except ValueError as exc:
            raise InvalidOperationError("Demand predictor returned a non-JSON body") from exc

        prediction = parse_completion(payload)
        logger.info(
            "predictor.completed",
            product_id=pattern.product_id,
            forecasted_demand=prediction.forecasted_demand,
            confidence=prediction.confidence,
        )
        return prediction
