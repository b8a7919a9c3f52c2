"""
AI Agents for Moliya AI

Gemini-backed implementations of the resolver and advice contracts.

CRITICAL BOUNDARIES:

1. INTENT RESOLVER:
   - CAN: Classify the message, extract amount/type/category/payment/person
   - CANNOT: Write to the ledger (the pipeline does that after confirmation)
   - CANNOT: Guess the payment method - it must ask instead
   - MUST: Fall back to a fixed clarification response on ANY failure

2. ADVICE GENERATOR:
   - CAN: Comment on the last few transactions in one sentence
   - CANNOT: Change anything

The LLM is a TRANSLATOR, not a BOOKKEEPER. Its output is validated
into AIResponse; anything that does not validate is discarded whole,
never half-used.
"""

import json
from typing import Any, Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import ValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from moliya.agents.interface import AdviceGeneratorInterface, IntentResolverInterface
from moliya.config import GeminiSettings, get_settings
from moliya.models.intent import AIResponse, ClarificationField, Intent
from moliya.models.ledger import PaymentMethod, Transaction, TransactionKind


ADVICE_FALLBACK = "Moliya - baraka asosi!"
ADVICE_EMPTY_RESPONSE = "Xarajatlarni nazorat qiling."


class MalformedResponseError(ValueError):
    """The model answered, but not with a usable JSON object."""
    pass


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Pull the first {...} block out of a model response.

    Models sometimes wrap JSON in prose or code fences even when asked
    not to.
    """
    if not text:
        raise MalformedResponseError("Empty response")

    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise MalformedResponseError("No JSON object in response")

    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON: {e}")

    if not isinstance(data, dict):
        raise MalformedResponseError("JSON is not an object")
    return data


def _build_model(
    settings: GeminiSettings,
    max_output_tokens: int,
    json_output: bool,
) -> genai.GenerativeModel:
    """Configure Google Generative AI and create a model handle."""
    genai.configure(api_key=settings.api_key)
    generation_config = {
        "temperature": settings.temperature,
        "max_output_tokens": max_output_tokens,
    }
    if json_output:
        generation_config["response_mime_type"] = "application/json"
    return genai.GenerativeModel(
        model_name=settings.model_name,
        generation_config=generation_config,
    )


class GeminiIntentResolver(IntentResolverInterface):
    """
    Intent resolver backed by Gemini.

    RESPONSIBILITIES:
    - Classify the message as transaction / debt / query / clarification
    - Extract the fields needed to build a transaction
    - Write a short confirmation message in Uzbek

    BOUNDARIES:
    - NEVER raises to the caller
    - NEVER returns a partially parsed response
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model = model or _build_model(
            self._settings,
            max_output_tokens=self._settings.max_tokens,
            json_output=True,
        )
        self._logger = structlog.get_logger(__name__)

    def build_prompt(self, text: str, known_people: Sequence[str]) -> str:
        kinds = ", ".join(f'"{k.value}"' for k in TransactionKind)
        methods = ", ".join(f'"{m.value}"' for m in PaymentMethod)
        people = ", ".join(known_people) or "none yet"

        return f"""You are the assistant of a personal finance app for an Uzbek-speaking user.
Read the user's message and answer with ONE JSON object.

Rules:
- Money lent to someone ("...ga berdim") is intent "debt", type "{TransactionKind.DEBT_GIVEN.value}".
- Money borrowed from someone ("...dan oldim") is intent "debt", type "{TransactionKind.DEBT_TAKEN.value}".
- If a person is named, the intent is always "debt". Reuse the spelling of a known person when it matches.
- Otherwise expenses and income are intent "transaction" with a short category (Ovqat, Yo'l, Kommunal, Oylik, ...).
- Questions about the user's money are intent "query". If you cannot tell what the user wants, use "clarification".
- Only set paymentMethod if the message says card or cash. If it does not, set paymentMethod to null and needsClarification to "{ClarificationField.PAYMENT_METHOD.value}".
- "message" is a short Uzbek sentence telling the user what you understood.

JSON fields:
  "intent": "transaction" | "debt" | "query" | "clarification"
  "amount": number | null
  "type": {kinds} | null
  "category": string | null
  "paymentMethod": {methods} | null
  "personName": string | null
  "message": string
  "needsClarification": "{ClarificationField.PAYMENT_METHOD.value}" | null

Known people: {people}

User message: "{text}"

Respond with ONLY the JSON object."""

    async def _generate(self, prompt: str) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            reraise=True,
        ):
            with attempt:
                response = await self._model.generate_content_async(prompt)
                return response.text

    def parse_response(self, text: str) -> AIResponse:
        """
        Validate raw model output into an AIResponse.

        Raises:
            MalformedResponseError: the output is not a usable response
        """
        data = extract_json_object(text)
        try:
            return AIResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(str(e))

    async def resolve(
        self,
        text: str,
        known_people: Sequence[str],
    ) -> AIResponse:
        prompt = self.build_prompt(text, known_people)
        try:
            raw = await self._generate(prompt)
            result = self.parse_response(raw)
        except Exception as e:
            self._logger.warning(
                "intent_resolver_fallback",
                error=str(e),
                error_type=type(e).__name__,
            )
            return AIResponse.fallback()

        self._logger.info(
            "intent_resolved",
            intent=result.intent.value,
            needs_clarification=(
                result.needs_clarification.value if result.needs_clarification else None
            ),
        )
        return result


class GeminiAdviceGenerator(AdviceGeneratorInterface):
    """
    One-sentence financial advice from Gemini.

    Only a compact "type: amount" summary of the recent transactions is
    sent, never names or categories.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model = model or _build_model(
            self._settings,
            max_output_tokens=256,
            json_output=False,
        )
        self._logger = structlog.get_logger(__name__)

    @staticmethod
    def summarize(transactions: Sequence[Transaction]) -> str:
        return ", ".join(f"{tx.kind.value}: {tx.amount}" for tx in transactions)

    def build_prompt(self, transactions: Sequence[Transaction]) -> str:
        return (
            "You are a personal finance assistant. "
            "Give the user ONE short sentence of advice in Uzbek "
            "based on their latest transactions.\n\n"
            f"Transactions: {self.summarize(transactions)}"
        )

    async def advise(self, transactions: Sequence[Transaction]) -> str:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_retries),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                reraise=True,
            ):
                with attempt:
                    response = await self._model.generate_content_async(
                        self.build_prompt(transactions)
                    )
            text = (response.text or "").strip()
        except Exception as e:
            self._logger.warning("advice_fallback", error=str(e))
            return ADVICE_FALLBACK

        return text or ADVICE_EMPTY_RESPONSE
