import random
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .exceptions import BenchmarkConfigError, LLMClientError
from .models import ProviderConfig, count_tokens


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class LLMResponse:
    content: str
    model: str
    finish_reason: Optional[str] = None
    usage: Optional[Usage] = None
    request_id: str = ""
    response_time_ms: int = 0

    @property
    def word_count(self) -> int:
        return count_tokens(self.content)


class LLMClient(ABC):
    """A prompt-in, response-out client that can be benchmarked.

    ``send_prompt`` is called from many worker threads at once, so
    implementations must be safe for concurrent use.
    """

    provider_name: str = "Unknown"
    model_name: str = ""

    @abstractmethod
    def send_prompt(self, prompt: str) -> LLMResponse:
        """Send one prompt, raising LLMClientError on failure."""

    def is_ready(self) -> bool:
        return True

    def describe(self) -> str:
        return f"{type(self).__name__}(provider='{self.provider_name}', model='{self.model_name}')"


class MockLLMClient(LLMClient):
    MOCK_RESPONSES = (
        "This is a mock response from the LLM. The request has been processed successfully.",
        "I understand your question. Here's a detailed explanation of the concept you asked about.",
        "Based on the information provided, I can help you with this problem.",
        "That's an interesting question! Let me break it down into several key points.",
        "Here's a comprehensive answer to your query with examples and explanations.",
        "I'll provide you with a step-by-step solution to address your request.",
        "This topic involves several important considerations that I'll explain in detail.",
        "Great question! The answer involves understanding the relationship between these concepts.",
    )

    provider_name = "Mock"

    def __init__(
        self,
        model: str = "mock-llm-v1.0",
        min_response_time_ms: int = 100,
        max_response_time_ms: int = 1000,
        error_rate: float = 0.05,
        seed: Optional[int] = None
    ):
        if min_response_time_ms < 0 or max_response_time_ms < 0 or min_response_time_ms > max_response_time_ms:
            raise BenchmarkConfigError(
                f"Invalid response time range: {min_response_time_ms}-{max_response_time_ms} ms"
            )
        if not 0.0 <= error_rate <= 1.0:
            raise BenchmarkConfigError(f"error_rate must be between 0.0 and 1.0, got {error_rate}")

        self.model_name = model
        self.min_response_time_ms = min_response_time_ms
        self.max_response_time_ms = max_response_time_ms
        self.error_rate = error_rate
        self._random = random.Random(seed)
        self._random_lock = threading.Lock()

    def send_prompt(self, prompt: str) -> LLMResponse:
        if prompt is None or not prompt.strip():
            raise LLMClientError("Prompt cannot be null or empty", self.provider_name, 400)

        with self._random_lock:
            delay_ms = self._random.randint(self.min_response_time_ms, self.max_response_time_ms)
            should_fail = self._random.random() < self.error_rate
            content = self._random.choice(self.MOCK_RESPONSES)

        time.sleep(delay_ms / 1000)

        if should_fail:
            raise LLMClientError("Simulated API error", self.provider_name, 500)

        if len(prompt) > 100:
            content += " Your question was quite detailed, so I've provided a comprehensive response."

        prompt_tokens = count_tokens(prompt)
        completion_tokens = count_tokens(content)
        return LLMResponse(
            content=content,
            model=self.model_name,
            finish_reason="stop",
            usage=Usage(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens),
            request_id=f"mock-{uuid.uuid4().hex[:12]}",
            response_time_ms=delay_ms
        )

    def describe(self) -> str:
        return (
            f"MockLLMClient(model='{self.model_name}', "
            f"response_time={self.min_response_time_ms}-{self.max_response_time_ms}ms, "
            f"error_rate={self.error_rate * 100:.2f}%)"
        )


class OpenAIClient(LLMClient):
    """Blocking client for an OpenAI-compatible ``/v1/chat/completions`` endpoint."""

    provider_name = "OpenAI"

    def __init__(
        self,
        endpoint_url: str,
        model_name: str = "gpt-3.5-turbo",
        api_key: Optional[str] = None,
        timeout: int = 300,
        max_output_tokens: Optional[int] = None
    ):
        if not endpoint_url:
            raise BenchmarkConfigError("OpenAIClient requires an endpoint URL")
        self.endpoint_url = endpoint_url
        self.model_name = model_name
        self.api_key = api_key
        self.timeout = timeout
        self.max_output_tokens = max_output_tokens
        # requests.Session is not documented as thread-safe; keep one per worker
        self._local = threading.local()

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers["Content-Type"] = "application/json"
            if self.api_key:
                session.headers["Authorization"] = f"Bearer {self.api_key}"
            self._local.session = session
        return session

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        payload = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False
        }
        if self.max_output_tokens is not None:
            payload["max_tokens"] = self.max_output_tokens
        return payload

    def send_prompt(self, prompt: str) -> LLMResponse:
        if prompt is None or not prompt.strip():
            raise LLMClientError("Prompt cannot be null or empty", self.provider_name, 400)

        start_time = time.time()
        try:
            response = self._session().post(self.endpoint_url, json=self.build_payload(prompt), timeout=self.timeout)
        except requests.RequestException as e:
            raise LLMClientError(f"Request failed: {e}", self.provider_name) from e

        if response.status_code != 200:
            raise LLMClientError(
                f"Endpoint returned status code {response.status_code}: {response.text[:200]}",
                self.provider_name,
                response.status_code
            )

        try:
            body = response.json()
            choice = body["choices"][0]
            content = choice["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMClientError(f"Malformed response body: {e}", self.provider_name, response.status_code) from e

        usage = None
        usage_data = body.get("usage")
        if isinstance(usage_data, dict):
            usage = Usage(
                prompt_tokens=usage_data.get("prompt_tokens", 0),
                completion_tokens=usage_data.get("completion_tokens", 0),
                total_tokens=usage_data.get("total_tokens", 0)
            )

        return LLMResponse(
            content=content or "",
            model=body.get("model", self.model_name),
            finish_reason=choice.get("finish_reason"),
            usage=usage,
            request_id=body.get("id", ""),
            response_time_ms=int((time.time() - start_time) * 1000)
        )

    def describe(self) -> str:
        return f"OpenAIClient(endpoint='{self.endpoint_url}', model='{self.model_name}', timeout={self.timeout}s)"


def create_client(provider: ProviderConfig, timeout: int = 300) -> LLMClient:
    if provider.type == "mock":
        return MockLLMClient(
            model=provider.model_name or "mock-llm-v1.0",
            min_response_time_ms=provider.min_response_time_ms,
            max_response_time_ms=provider.max_response_time_ms,
            error_rate=provider.error_rate,
            seed=provider.seed
        )
    if provider.type == "openai":
        return OpenAIClient(
            endpoint_url=provider.endpoint_url or "",
            model_name=provider.model_name or "gpt-3.5-turbo",
            api_key=provider.api_key,
            timeout=timeout,
            max_output_tokens=provider.max_output_tokens
        )
    raise BenchmarkConfigError(f"Unsupported provider type: {provider.type}. Supported types: mock, openai")
