"""Shared abstractions for provider descriptors and the dispatch loop."""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Optional, Pattern, Tuple

import httpx

from codebuddy.core.config import ProviderConfig, ProviderType
from codebuddy.core.providers.error_mapping import (
    extract_error_message,
    map_http_status_error,
    map_transport_error,
)
from codebuddy.core.providers.errors import (
    ConfigValidationError,
    EmptyResponseError,
    ProviderApiError,
    ProviderMappedError,
)
from codebuddy.utils.log import get_logger

logger = get_logger()

SYSTEM_INSTRUCTION = (
    "You are a helpful assistant that improves and fixes scripts. "
    "You respond only with executable code, no explanations or markdown formatting."
)

MAX_RETRIES = 3
RETRY_BASE_DELAY_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 2000

_OPENING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n")
_CLOSING_FENCE = re.compile(r"\n```[ \t]*$")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    is_default: bool = False


@dataclass
class ProviderResult:
    """Normalized outcome of a dispatch."""

    success: bool
    content: str = ""
    error: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 0
    validation_errors: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, content: str, attempts: int = 1) -> "ProviderResult":
        return cls(success=True, content=content, attempts=attempts)

    @classmethod
    def from_error(cls, exc: ProviderMappedError, attempts: int = 0) -> "ProviderResult":
        return cls(
            success=False,
            error=str(exc),
            error_code=exc.error_code,
            attempts=attempts,
            validation_errors=list(getattr(exc, "errors", [])),
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "content": self.content}
        return {"success": False, "error": self.error or ""}


def compose_system_prompt(instructions: Optional[str] = None) -> str:
    """Return the fixed code-only instruction plus any site-specific instructions."""
    extra = (instructions or "").strip()
    if not extra:
        return SYSTEM_INSTRUCTION
    return f"{SYSTEM_INSTRUCTION}\n\n{extra}"


def strip_code_fences(content: str) -> str:
    """Remove a leading ```lang line and a trailing ``` line, then trim."""
    cleaned = _OPENING_FENCE.sub("", content.strip(), count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    if cleaned.endswith("```") and cleaned.count("```") == 1:
        cleaned = cleaned[:-3]
    return cleaned.strip()


def dig(data: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning None at the first missing step."""
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[step] if isinstance(step, int) else current.get(step)
    return current


class ProviderDescriptor(ABC):
    """Static description of how to talk to one vendor API.

    Subclasses are instantiated once at import time by the registry and are
    never mutated afterwards.
    """

    provider_type: ClassVar[ProviderType]
    name: ClassVar[str]
    api_key_pattern: ClassVar[Optional[Pattern[str]]] = None
    api_key_placeholder: ClassVar[str] = ""
    config_fields: ClassVar[Tuple[str, ...]] = ("api_key", "model")
    models: ClassVar[Tuple[ModelInfo, ...]] = ()
    endpoint: ClassVar[str] = ""
    request_timeout: ClassVar[float] = DEFAULT_REQUEST_TIMEOUT

    @property
    def default_model(self) -> Optional[str]:
        for model in self.models:
            if model.is_default:
                return model.id
        return self.models[0].id if self.models else None

    def model_for(self, config: ProviderConfig) -> str:
        return config.model or self.default_model or ""

    def validate(self, config: ProviderConfig) -> List[str]:
        errors: List[str] = []
        for field_name in self.config_fields:
            if field_name == "api_key" and self.api_key_pattern is not None:
                if not config.api_key:
                    errors.append("API key is required")
                elif not self.api_key_pattern.search(config.api_key):
                    errors.append("Invalid API key format")
            elif field_name == "endpoint" and not (config.endpoint or "").strip():
                errors.append("Endpoint URL is required")
        return errors

    def resolve_endpoint(self, config: ProviderConfig) -> str:
        return self.endpoint

    def build_headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    @abstractmethod
    def build_request(
        self, prompt: str, config: ProviderConfig, system_prompt: str
    ) -> Dict[str, Any]:
        """Return the JSON body for one request."""

    @abstractmethod
    def parse_response(self, data: Any, config: Optional[ProviderConfig] = None) -> str:
        """Extract raw text from a decoded success body ("" when absent)."""

    def error_message(self, data: Any) -> Optional[str]:
        return extract_error_message(data)

    def classify_error(self, status: int, data: Any) -> ProviderMappedError:
        """Map an HTTP error status and body to a normalized error."""
        message = self.error_message(data) or f"API error: {status}"
        return map_http_status_error(status, message)

    def classify_transport_error(self, exc: httpx.TransportError) -> ProviderMappedError:
        return map_transport_error(exc)

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.provider_type.value,
            "name": self.name,
            "models": [model.id for model in self.models],
            "config_fields": list(self.config_fields),
            "api_key_placeholder": self.api_key_placeholder,
        }


def validate_config(descriptor: ProviderDescriptor, config: ProviderConfig) -> List[str]:
    """Return every configuration problem for ``descriptor`` (empty when valid)."""
    return descriptor.validate(config)


def require_valid_config(descriptor: ProviderDescriptor, config: ProviderConfig) -> None:
    errors = validate_config(descriptor, config)
    if errors:
        raise ConfigValidationError(errors)


def get_endpoint(descriptor: ProviderDescriptor, config: ProviderConfig) -> str:
    return descriptor.resolve_endpoint(config)


def build_request(
    descriptor: ProviderDescriptor,
    prompt: str,
    config: ProviderConfig,
    instructions: Optional[str] = None,
) -> Dict[str, Any]:
    return descriptor.build_request(prompt, config, compose_system_prompt(instructions))


def parse_response(
    descriptor: ProviderDescriptor, data: Any, config: Optional[ProviderConfig] = None
) -> str:
    """Run the vendor parser, then normalize fences and whitespace."""
    raw = descriptor.parse_response(data, config)
    if not isinstance(raw, str):
        raw = "" if raw is None else str(raw)
    return strip_code_fences(raw)


def _retry_delay_seconds(
    retry_count: int, base_delay: float = RETRY_BASE_DELAY_SECONDS, max_delay: float = 32.0
) -> float:
    """Exponential backoff: 1s, 2s, 4s, ..."""
    return float(min(base_delay * (2 ** max(0, retry_count)), max_delay))


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


async def call_api(
    descriptor: ProviderDescriptor,
    config: ProviderConfig,
    prompt: str,
    retry_count: int = 0,
    *,
    instructions: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    request_timeout: Optional[float] = None,
    sleep: SleepFn = asyncio.sleep,
    cancel_event: Optional[asyncio.Event] = None,
) -> ProviderResult:
    """Send ``prompt`` to the provider, retrying transient failures.

    Rate limits, cold starts and network errors are retried up to
    ``MAX_RETRIES`` times with exponential backoff (1s, 2s, 4s). Everything
    else fails immediately. Invalid configs fail before any request is made.
    ``cancel_event`` is checked around each backoff sleep.
    """
    try:
        require_valid_config(descriptor, config)
        request = _PreparedRequest(
            endpoint=get_endpoint(descriptor, config),
            headers=descriptor.build_headers(config),
            body=build_request(descriptor, prompt, config, instructions),
        )
    except ProviderMappedError as exc:
        logger.warning(
            "[providers] Request not sent",
            extra={"provider": descriptor.provider_type.value, "error_code": exc.error_code},
        )
        return ProviderResult.from_error(exc)

    timeout = request_timeout if request_timeout and request_timeout > 0 else descriptor.request_timeout
    dispatcher = _RetryingDispatcher(
        descriptor, config, request, timeout=timeout, sleep=sleep, cancel_event=cancel_event
    )

    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as owned_client:
            return await dispatcher.run(owned_client, retry_count)
    return await dispatcher.run(client, retry_count)


@dataclass(frozen=True)
class _PreparedRequest:
    endpoint: str
    headers: Dict[str, str]
    body: Dict[str, Any]


class _RetryingDispatcher:
    """Sequential send/classify/backoff loop for one prepared request."""

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        config: ProviderConfig,
        request: _PreparedRequest,
        *,
        timeout: float,
        sleep: SleepFn,
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        self.descriptor = descriptor
        self.config = config
        self.request = request
        self.timeout = timeout
        self.sleep = sleep
        self.cancel_event = cancel_event
        self.provider_id = descriptor.provider_type.value

    async def run(self, client: httpx.AsyncClient, retry_count: int) -> ProviderResult:
        attempts = 0
        while True:
            attempts += 1
            logger.debug(
                "[providers] Calling provider API",
                extra={"provider": self.provider_id, "attempt": attempts},
            )
            error: ProviderMappedError
            try:
                response = await client.post(
                    self.request.endpoint,
                    json=self.request.body,
                    headers=self.request.headers,
                    timeout=self.timeout,
                )
            except httpx.TransportError as exc:
                error = self.descriptor.classify_transport_error(exc)
            else:
                if response.is_success:
                    return self._result_from_success(response, attempts)
                error = self.descriptor.classify_error(
                    response.status_code, _decode_body(response)
                )

            if not error.retryable or retry_count >= MAX_RETRIES:
                logger.warning(
                    "[providers] Provider request failed",
                    extra={
                        "provider": self.provider_id,
                        "error_code": error.error_code,
                        "attempts": attempts,
                    },
                )
                return ProviderResult.from_error(error, attempts)

            if self._cancelled():
                return _cancelled(attempts)

            delay_seconds = _retry_delay_seconds(retry_count)
            logger.warning(
                "[providers] Transient provider error; retrying",
                extra={
                    "provider": self.provider_id,
                    "error_code": error.error_code,
                    "retry": retry_count + 1,
                    "max_retries": MAX_RETRIES,
                    "delay_seconds": delay_seconds,
                },
            )
            await self.sleep(delay_seconds)
            if self._cancelled():
                return _cancelled(attempts)
            retry_count += 1

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _result_from_success(self, response: httpx.Response, attempts: int) -> ProviderResult:
        try:
            data = response.json()
        except ValueError:
            return ProviderResult.from_error(
                ProviderApiError("Provider returned a response that is not valid JSON"), attempts
            )

        content = parse_response(self.descriptor, data, self.config)
        if not content:
            return ProviderResult.from_error(EmptyResponseError(), attempts)
        return ProviderResult.ok(content, attempts)


def _cancelled(attempts: int) -> ProviderResult:
    logger.debug("[providers] Request cancelled before retry", extra={"attempts": attempts})
    return ProviderResult(
        success=False, error="Request cancelled", error_code="cancelled", attempts=attempts
    )
