"""Grounded answer generation over retrieved chunks via a chat-completion API."""

from __future__ import annotations

import logging
from typing import List, Sequence

import httpx
from pydantic import BaseModel, Field, ValidationError

from ragcrawler.config import LLMConfig
from ragcrawler.errors import SynthesisError, TruncatedResponseError
from ragcrawler.index.search import SearchResult

DEFAULT_SYSTEM_MESSAGE = (
    "You are a helpful assistant that analyzes search results from a document database "
    "and provides comprehensive answers based on the information found."
)

TRUNCATION_REASONS = frozenset({"length"})

logger = logging.getLogger(__name__)


class Message(BaseModel):
    role: str
    content: str


class ChatCompletionRequest(BaseModel):
    model: str
    messages: List[Message]
    temperature: float | None = None
    max_tokens: int | None = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None


class Choice(BaseModel):
    finish_reason: str | None = None
    message: ResponseMessage = Field(default_factory=ResponseMessage)


class ChatCompletion(BaseModel):
    choices: List[Choice] = Field(default_factory=list)
    usage: Usage | None = None


def build_context(results: Sequence[SearchResult]) -> str:
    """Render each result with its source, score and text."""
    return "\n".join(
        f"[Source {position}] File: {result.name or result.path} (Score: {result.score:.4f})\n"
        f"Content: {result.text}\n"
        for position, result in enumerate(results, start=1)
    )


def build_messages(
    query: str, results: Sequence[SearchResult], system_message: str | None = None
) -> List[Message]:
    user_content = (
        "Based on the following search results from a document database, please provide "
        "a comprehensive answer to the user's query.\n\n"
        f"User Query: {query}\n\n"
        f"Search Results:\n{build_context(results)}\n\n"
        "Please provide a detailed answer using only the information found in the search "
        "results. If the search results don't contain enough information to fully answer "
        "the query, say so and indicate what additional information might be needed."
    )
    return [
        Message(role="system", content=system_message or DEFAULT_SYSTEM_MESSAGE),
        Message(role="user", content=user_content),
    ]


class AnswerSynthesizer:
    """Sends retrieved evidence and the query to a chat-completion endpoint."""

    def __init__(self, config: LLMConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate(
        self,
        query: str,
        results: Sequence[SearchResult],
        *,
        system_message: str | None = None,
    ) -> str:
        """Return the model's answer.

        An empty ``results`` list is still sent; the model is told to say when
        the evidence is insufficient.

        Raises:
            TruncatedResponseError: the completion stopped on the token limit.
            SynthesisError: the request failed or no usable content came back.
        """
        request = ChatCompletionRequest(
            model=self.config.model,
            messages=build_messages(query, results, system_message),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        try:
            response = await self._client.post(
                self.config.url,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                json=request.model_dump(exclude_none=True),
            )
        except httpx.HTTPError as exc:
            raise SynthesisError(f"API request failed: {exc}") from exc

        if response.is_error:
            raise SynthesisError(f"API request failed ({response.status_code}): {response.text}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise SynthesisError(f"API response is not JSON: {exc}") from exc
        try:
            completion = ChatCompletion.model_validate(payload)
        except ValidationError as exc:
            raise SynthesisError(f"Malformed API response: {exc}") from exc
        if completion.usage:
            logger.debug(
                "Token usage: prompt=%d completion=%d total=%d",
                completion.usage.prompt_tokens,
                completion.usage.completion_tokens,
                completion.usage.total_tokens,
            )
        return extract_answer(completion)


def extract_answer(completion: ChatCompletion) -> str:
    if not completion.choices:
        raise SynthesisError("No choices in response")
    choice = completion.choices[0]
    content = choice.message.content
    if choice.finish_reason in TRUNCATION_REASONS:
        raise TruncatedResponseError(choice.finish_reason)
    if not content or not content.strip():
        raise SynthesisError(f"Empty completion (finish_reason: {choice.finish_reason or 'unknown'})")
    return content
