from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

import httpx

from paper_search.core.errors import EmbeddingBackendError

LOGGER = logging.getLogger(__name__)


class EmbeddingsClient:
    """Client for an OpenAI-compatible ``POST /embeddings`` backend (Together AI by default)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        *,
        dimension: int | None = None,
        chunk_size: int | None = None,
        max_text_chars: int | None = None,
        timeout_seconds: float | None = None,
    ):
        if None in (base_url, api_key, model, dimension, chunk_size, max_text_chars, timeout_seconds):
            from paper_search.core.config import settings

            base_url = base_url or settings.EMBEDDINGS_BASE_URL
            api_key = api_key if api_key is not None else settings.EMBEDDINGS_API_KEY
            model = model or settings.EMBEDDINGS_MODEL
            dimension = dimension or settings.EMBEDDING_DIM
            chunk_size = chunk_size or settings.EMBEDDINGS_CHUNK_SIZE
            max_text_chars = max_text_chars or settings.EMBEDDINGS_MAX_TEXT_CHARS
            timeout_seconds = timeout_seconds or settings.EMBEDDINGS_TIMEOUT_SECONDS
        self.base_url = str(base_url).rstrip("/")
        self.api_key = str(api_key)
        self.model = str(model)
        self.dimension = int(dimension)
        self.chunk_size = max(1, int(chunk_size))
        self.max_text_chars = int(max_text_chars)
        self.timeout_seconds = float(timeout_seconds)

    def zero_vector(self) -> list[float]:
        return [0.0] * self.dimension

    def _truncate(self, text: str) -> str:
        return text[: self.max_text_chars] if len(text) > self.max_text_chars else text

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_seconds,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    async def _post(self, client: httpx.AsyncClient, payload_input: str | list[str]) -> list[list[float]]:
        response = await client.post(
            f"{self.base_url}/embeddings",
            json={"model": self.model, "input": payload_input},
        )
        if response.status_code >= 400:
            LOGGER.error(
                "embeddings_request_failed",
                extra={"status_code": response.status_code, "response_body": response.text[:2000]},
            )
        response.raise_for_status()
        body = response.json()
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list) or not data:
            raise EmbeddingBackendError("Embeddings backend returned no data")
        if all(isinstance(item, dict) and isinstance(item.get("index"), int) for item in data):
            data = sorted(data, key=lambda item: item["index"])
        vectors: list[list[float]] = []
        for item in data:
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list):
                raise EmbeddingBackendError("Unexpected embeddings response format")
            vectors.append([float(v) for v in embedding])
        return vectors

    async def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            LOGGER.warning("embedding_skipped_empty_text")
            return self.zero_vector()
        async with self._http_client() as client:
            vectors = await self._post(client, self._truncate(text))
        if len(vectors) != 1:
            raise EmbeddingBackendError(f"Expected 1 embedding, got {len(vectors)}")
        return vectors[0]

    async def embed_texts(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed ``texts`` in concurrent chunks; the result is index-aligned with the input.

        A chunk whose request fails contributes zero vectors for its slots instead of failing
        the whole call.
        """
        if not texts:
            return []
        chunks = [list(texts[i : i + self.chunk_size]) for i in range(0, len(texts), self.chunk_size)]
        started = time.perf_counter()
        async with self._http_client() as client:
            results = await asyncio.gather(
                *(self._embed_chunk(client, index, chunk) for index, chunk in enumerate(chunks))
            )
        LOGGER.info(
            "embeddings_batch_generated",
            extra={
                "texts": len(texts),
                "chunks": len(chunks),
                "duration_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return [vector for chunk_vectors in results for vector in chunk_vectors]

    async def _embed_chunk(self, client: httpx.AsyncClient, chunk_index: int, chunk: list[str]) -> list[list[float]]:
        vectors = [self.zero_vector() for _ in chunk]
        positions = [i for i, text in enumerate(chunk) if text and text.strip()]
        if not positions:
            return vectors
        try:
            embedded = await self._post(client, [self._truncate(chunk[i]) for i in positions])
            if len(embedded) != len(positions):
                raise EmbeddingBackendError(f"Expected {len(positions)} embeddings, got {len(embedded)}")
            wrong = [len(vector) for vector in embedded if len(vector) != self.dimension]
            if wrong:
                raise EmbeddingBackendError(f"Expected {self.dimension}-dimensional embeddings, got {wrong[0]}")
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "embeddings_chunk_failed",
                extra={"chunk_index": chunk_index, "chunk_size": len(chunk), "error": str(exc)},
            )
            return vectors
        for position, vector in zip(positions, embedded):
            vectors[position] = vector
        return vectors
