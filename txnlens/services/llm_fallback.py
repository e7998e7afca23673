"""
Remote LLM fallback client

Used by the classification pipeline when the on-device classifier is not
ready or not confident. Providers are tried in order (Groq chat completions,
then Hugging Face inference); a provider failure is logged and the next one
is tried. When every provider fails the client answers with a fixed string.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from txnlens.core.config import Settings

logger = logging.getLogger(__name__)

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
HUGGINGFACE_URL = "https://api-inference.huggingface.co/models/{model}"

DEFAULT_REPLY = "Đã ghi nhận giao dịch."


class ProviderError(Exception):
    """A provider answered with an error or an unusable payload"""


class LLMProvider:
    name = "provider"

    def __init__(self, api_key: str, model: str, timeout: float = 15,
                 max_new_tokens: int = 150, temperature: float = 0.2):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_new_tokens = max_new_tokens
        self.temperature = temperature

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _post(self, url: str, payload: Dict[str, Any]) -> Any:
        resp = requests.post(url, headers=self._headers(), json=payload, timeout=self.timeout)
        if resp.status_code >= 400:
            raise ProviderError(f"{self.name} returned {resp.status_code}: {resp.text[:200]}")
        return resp.json()

    def generate(self, prompt: str) -> str:
        raise NotImplementedError


class GroqProvider(LLMProvider):
    name = "groq"

    def generate(self, prompt: str) -> str:
        data = self._post(GROQ_URL, {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_new_tokens,
            "temperature": self.temperature,
        })
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise ProviderError("groq response has no choices[0].message.content")


class HuggingFaceProvider(LLMProvider):
    name = "huggingface"

    def generate(self, prompt: str) -> str:
        data = self._post(HUGGINGFACE_URL.format(model=self.model), {
            "inputs": prompt,
            "parameters": {
                "max_new_tokens": self.max_new_tokens,
                "temperature": self.temperature,
            },
        })
        if isinstance(data, list) and data and isinstance(data[0], dict) and "generated_text" in data[0]:
            return data[0]["generated_text"] or ""
        if isinstance(data, dict) and "generated_text" in data:
            return data["generated_text"] or ""
        raise ProviderError("huggingface response has no generated_text")


def build_providers(settings: Settings) -> List[LLMProvider]:
    """
    Providers in priority order from the configured keys.

    A single ``LLM_API_KEY`` is routed by prefix: ``gsk_`` is Groq, ``hf_`` is
    Hugging Face. No key means no providers.
    """
    groq_key = settings.GROQ_API_KEY
    hf_key = settings.HUGGINGFACE_API_KEY
    shared = settings.LLM_API_KEY or ""
    if not groq_key and shared.startswith("gsk_"):
        groq_key = shared
    if not hf_key and shared.startswith("hf_"):
        hf_key = shared

    common = {
        "timeout": settings.LLM_TIMEOUT_SECONDS,
        "max_new_tokens": settings.LLM_MAX_NEW_TOKENS,
        "temperature": settings.LLM_TEMPERATURE,
    }
    providers: List[LLMProvider] = []
    if groq_key:
        providers.append(GroqProvider(groq_key, settings.GROQ_MODEL, **common))
    if hf_key:
        providers.append(HuggingFaceProvider(hf_key, settings.HUGGINGFACE_MODEL, **common))
    return providers


@dataclass
class LLMClassification:
    category_id: str
    category_name: str
    confidence: float
    amount: Optional[int] = None
    io: Optional[str] = None
    note: Optional[str] = None
    transactions: List[Dict[str, Any]] = field(default_factory=list)


_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_classification_prompt(text: str, categories: List[Dict[str, Any]]) -> str:
    lines = "\n".join(f'- {c["id"]}: {c["name"]}' for c in categories)
    return (
        "Bạn là trợ lý phân loại giao dịch tài chính tiếng Việt.\n"
        f"Danh mục:\n{lines}\n\n"
        f'Ghi chú: "{text}"\n\n'
        "Chỉ trả về JSON, không giải thích:\n"
        '{"category_id": "<id>", "confidence": <0-1>, "amount": <số tiền VND hoặc null>, '
        '"io": "IN" hoặc "OUT", "note": "<ghi chú ngắn>", '
        '"transactions": [{"amount": <số>, "note": "<ghi chú>", "category_id": "<id>"}]}\n'
        "Ví dụ: 4tr8 = 4800000, 50k = 50000, 1 triệu 2 = 1200000."
    )


def parse_classification(raw: str, categories: List[Dict[str, Any]]) -> Optional[LLMClassification]:
    """Parse a provider's JSON answer; None if unparsable or the category is unknown"""
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    names = {str(c["id"]): c["name"] for c in categories}
    category_id = str(data.get("category_id") or "")
    if category_id not in names:
        return None

    try:
        confidence = float(data.get("confidence") or 0)
    except (TypeError, ValueError):
        confidence = 0.0
    if confidence > 1:
        confidence = confidence / 100.0

    amount = data.get("amount")
    try:
        amount = int(float(amount)) if amount is not None else None
    except (TypeError, ValueError):
        amount = None

    io = data.get("io")
    if io not in ("IN", "OUT"):
        io = None

    transactions = data.get("transactions") or []
    if not isinstance(transactions, list):
        transactions = []

    return LLMClassification(
        category_id=category_id,
        category_name=names[category_id],
        confidence=max(0.0, min(confidence, 1.0)),
        amount=amount,
        io=io,
        note=data.get("note") or None,
        transactions=[t for t in transactions if isinstance(t, dict)],
    )


class RemoteFallbackClient:
    def __init__(self, providers: Optional[List[LLMProvider]] = None):
        self.providers = list(providers or [])

    @property
    def enabled(self) -> bool:
        return bool(self.providers)

    def _generate_sync(
        self,
        prompt: str,
        parse: Optional[Callable[[str], Optional[Any]]] = None,
    ) -> Optional[Any]:
        """
        First usable answer, trying providers in order.

        A blank answer, or one ``parse`` turns into None, counts as a failure
        of that provider and the next one is asked.
        """
        for provider in self.providers:
            try:
                text = provider.generate(prompt)
            except (requests.RequestException, ProviderError, ValueError) as e:
                logger.warning("LLM provider %s failed: %s", provider.name, e)
                continue
            if not text or not text.strip():
                logger.warning("LLM provider %s returned an empty answer", provider.name)
                continue
            if parse is None:
                return text
            result = parse(text)
            if result is None:
                logger.warning("LLM provider %s answer could not be used", provider.name)
                continue
            return result
        return None

    async def generate(self, prompt: str) -> str:
        """
        Text from the first provider that answers.

        When all fail: "" for amount-extraction prompts, otherwise a fixed
        acknowledgement.
        """
        text = await asyncio.to_thread(self._generate_sync, prompt)
        if text is not None:
            return text
        lower = prompt.lower()
        if "extract" in lower or "amount" in lower:
            return ""
        return DEFAULT_REPLY

    async def classify(self, text: str, categories: List[Dict[str, Any]]) -> Optional[LLMClassification]:
        if not self.providers or not categories:
            return None
        result = await asyncio.to_thread(
            self._generate_sync,
            build_classification_prompt(text, categories),
            lambda raw: parse_classification(raw, categories),
        )
        if result is None:
            logger.info("No LLM provider gave a usable classification")
        return result
