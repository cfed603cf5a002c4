"""Text embedding providers for product vector search.

Gemini text-embedding-004 (768 dimensions) by default, OpenAI as an
alternative, and a deterministic hash-based mock when no API key is set.
"""
import asyncio
import hashlib
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

import httpx

from vibe_search.config import settings
from vibe_search.exceptions import EmbeddingProviderError
from vibe_search.integrations.resilience import CircuitBreaker, CircuitOpenError, retry_with_backoff
from vibe_search.utils.vector_math import is_valid_vector

logger = logging.getLogger(__name__)

# Bump whenever combine_product_fields changes; stored embeddings built
# with another version are regenerated by the backfill.
COMBINE_FIELDS_VERSION = "v1"

_COMBINED_FIELDS = ("name", "brand", "category", "description")


def combine_product_fields(product: Any) -> str:
    """Join name, brand, category and description into one embedding text.

    Accepts an ORM object or a mapping; empty or missing parts are dropped.
    """
    parts = []
    for field in _COMBINED_FIELDS:
        if isinstance(product, Mapping):
            value = product.get(field)
        else:
            value = getattr(product, field, None)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            parts.append(value)
    return " ".join(parts)


def embedding_version(provider: "EmbeddingProvider") -> str:
    """Version tag stored next to each product embedding."""
    return f"{provider.model}:{COMBINE_FIELDS_VERSION}"


def classify_status(status_code: int, provider: str, body: str = "") -> EmbeddingProviderError:
    """Map an HTTP error status from the provider to an EmbeddingProviderError."""
    if status_code in (401, 403):
        reason = "invalid_credentials"
    elif status_code == 429:
        reason = "quota_exceeded"
    elif status_code >= 500:
        reason = "server_error"
    else:
        reason = "bad_request"
    message = f"Embedding provider returned HTTP {status_code}"
    if body:
        message = f"{message}: {body[:200]}"
    return EmbeddingProviderError(message, reason, status_code=status_code, provider=provider)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, EmbeddingProviderError) and exc.retryable


# An open circuit is never retried within a call.
def _should_retry(exc: BaseException) -> bool:
    return _is_retryable(exc) and exc.reason != "circuit_open"


class EmbeddingProvider:
    """Base class: retry, circuit breaking and bounded batch concurrency.

    Subclasses implement ``_embed`` for a single text and raise
    EmbeddingProviderError for every failure they can classify.
    """

    name = "base"

    def __init__(
        self,
        model: str,
        dimension: int,
        *,
        max_concurrency: int | None = None,
        max_retries: int | None = None,
        breaker: CircuitBreaker | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.model = model
        self.dimension = dimension
        self.max_concurrency = max(1, max_concurrency or settings.EMBEDDING_MAX_CONCURRENCY)
        self.max_retries = settings.EMBEDDING_MAX_RETRIES if max_retries is None else max_retries
        self.breaker = breaker or CircuitBreaker(
            f"embeddings:{self.name}",
            counts_as_failure=_is_retryable,
        )
        self._sleep = sleep

    async def _embed(self, text: str) -> list[float]:
        raise NotImplementedError

    async def _guarded_embed(self, text: str) -> list[float]:
        try:
            return await self.breaker.call(self._embed, text)
        except CircuitOpenError as exc:
            raise EmbeddingProviderError(str(exc), "circuit_open", provider=self.name) from exc

    def _validated(self, values: Any) -> list[float]:
        if not is_valid_vector(values, self.dimension):
            length = len(values) if isinstance(values, (list, tuple)) else None
            raise EmbeddingProviderError(
                f"Provider returned an invalid embedding (expected {self.dimension} floats, got {length})",
                "invalid_response",
                provider=self.name,
            )
        return [float(v) for v in values]

    async def embed_text(self, text: str) -> list[float]:
        """Embed a single text, retrying transient provider failures."""
        return await retry_with_backoff(
            self._guarded_embed,
            text,
            max_retries=self.max_retries,
            is_retryable=_should_retry,
            sleep=self._sleep,
        )

    async def embed_batch(
        self,
        texts: Sequence[str],
        *,
        return_exceptions: bool = False,
    ) -> list[Any]:
        """Embed many texts concurrently, results in input order.

        With ``return_exceptions`` each slot holds either the vector or the
        EmbeddingProviderError for that text; otherwise the first failure
        propagates.
        """
        if not texts:
            return []

        semaphore = asyncio.Semaphore(min(len(texts), self.max_concurrency))

        async def _one(text: str) -> list[float]:
            async with semaphore:
                return await self.embed_text(text)

        results = await asyncio.gather(
            *(_one(t) for t in texts), return_exceptions=return_exceptions
        )
        if not return_exceptions:
            return list(results)

        normalized: list[Any] = []
        for result in results:
            if isinstance(result, EmbeddingProviderError) or not isinstance(result, BaseException):
                normalized.append(result)
            elif isinstance(result, Exception):
                normalized.append(
                    EmbeddingProviderError(
                        f"Unexpected embedding failure: {result}", "invalid_response", provider=self.name
                    )
                )
            else:
                raise result
        return normalized

    async def aclose(self) -> None:
        pass


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Google Gemini ``embedContent`` over the REST API."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        model: str | None = None,
        dimension: int | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            model or settings.GEMINI_EMBEDDING_MODEL,
            dimension or settings.EMBEDDING_DIMENSION,
            **kwargs,
        )
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.GEMINI_API_BASE_URL,
            timeout=timeout or settings.EMBEDDING_TIMEOUT_SECONDS,
            headers={"x-goog-api-key": api_key},
            transport=transport,
        )

    async def _embed(self, text: str) -> list[float]:
        payload = {
            "model": f"models/{self.model}",
            "content": {"parts": [{"text": text}]},
        }
        try:
            resp = await self._client.post(f"/models/{self.model}:embedContent", json=payload)
        except httpx.TimeoutException as exc:
            raise EmbeddingProviderError("Embedding request timed out", "timeout", provider=self.name) from exc
        except httpx.HTTPError as exc:
            raise EmbeddingProviderError(f"Embedding request failed: {exc}", "network", provider=self.name) from exc

        if resp.status_code >= 400:
            raise classify_status(resp.status_code, self.name, resp.text)

        try:
            values = resp.json()["embedding"]["values"]
        except (ValueError, KeyError, TypeError) as exc:
            raise EmbeddingProviderError(
                "Malformed embedding response", "invalid_response", provider=self.name
            ) from exc
        return self._validated(values)

    async def aclose(self) -> None:
        await self._client.aclose()


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings endpoint (text-embedding-3-small, 1536 dimensions)."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        model: str | None = None,
        dimension: int = 1536,
        timeout: float | None = None,
        **kwargs: Any,
    ):
        import openai

        super().__init__(model or settings.OPENAI_EMBEDDING_MODEL, dimension, **kwargs)
        self._openai = openai
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=timeout or settings.EMBEDDING_TIMEOUT_SECONDS,
            max_retries=0,
        )

    async def _embed(self, text: str) -> list[float]:
        openai = self._openai
        try:
            response = await self._client.embeddings.create(
                model=self.model,
                input=text[:8000],  # Token limit safety
            )
        except openai.APITimeoutError as exc:
            raise EmbeddingProviderError("Embedding request timed out", "timeout", provider=self.name) from exc
        except openai.APIConnectionError as exc:
            raise EmbeddingProviderError(f"Embedding request failed: {exc}", "network", provider=self.name) from exc
        except openai.APIStatusError as exc:
            raise classify_status(exc.status_code, self.name, str(exc)) from exc

        try:
            values = response.data[0].embedding
        except (IndexError, AttributeError) as exc:
            raise EmbeddingProviderError(
                "Malformed embedding response", "invalid_response", provider=self.name
            ) from exc
        return self._validated(values)

    async def aclose(self) -> None:
        await self._client.close()


class MockEmbeddingProvider(EmbeddingProvider):
    """Deterministic vectors derived from a SHA-256 of the text."""

    name = "mock"

    def __init__(self, *, model: str = "mock-embedding", dimension: int | None = None, **kwargs: Any):
        super().__init__(model, dimension or settings.EMBEDDING_DIMENSION, **kwargs)

    async def _embed(self, text: str) -> list[float]:
        h = hashlib.sha256(text.encode()).hexdigest()
        # normalize each hex digit to [-0.5, 0.5]
        return [int(h[i % len(h)], 16) / 15.0 - 0.5 for i in range(self.dimension)]


def get_embedding_provider() -> EmbeddingProvider:
    """Build the provider selected by EMBEDDING_PROVIDER.

    Falls back to the mock provider when the matching API key is empty.
    """
    provider = settings.EMBEDDING_PROVIDER.lower()
    if provider == "gemini" and settings.GEMINI_API_KEY:
        return GeminiEmbeddingProvider(settings.GEMINI_API_KEY)
    if provider == "openai" and settings.OPENAI_API_KEY:
        return OpenAIEmbeddingProvider(settings.OPENAI_API_KEY)
    if provider not in ("gemini", "openai", "mock"):
        raise ValueError(f"Unsupported embedding provider: {provider}")
    if provider != "mock":
        logger.warning("No API key configured for %s embeddings, using mock provider", provider)
    return MockEmbeddingProvider()
