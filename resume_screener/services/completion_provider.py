import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import requests
from pydantic import BaseModel, ValidationError
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from resume_screener.core.config import Config, settings
from resume_screener.core.exceptions import (
    AIKillSwitchError,
    ExternalModelError,
    MalformedModelOutputError,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


@dataclass
class Prompt:
    """A system + user exchange. `user` may be a list of content parts for multimodal input."""
    system: str
    user: Union[str, List[Dict[str, Any]]]
    temperature: float = 0.3
    max_tokens: int = 2000

    def to_messages(self) -> List[Dict[str, Any]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


def parse_model_output(raw: str, schema: Type[SchemaT]) -> SchemaT:
    """
    Decode the model's reply as JSON and validate it against `schema`.

    Code fences and chatter around a single JSON object are tolerated; anything
    else raises MalformedModelOutputError.
    """
    text = (raw or "").strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _OBJECT_RE.search(text)
        if not match:
            raise MalformedModelOutputError("Model reply is not JSON", raw_output=raw)
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError as exc:
            raise MalformedModelOutputError(f"Model reply is not valid JSON: {exc}", raw_output=raw) from exc

    if not isinstance(data, dict):
        raise MalformedModelOutputError("Model reply is not a JSON object", raw_output=raw)
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise MalformedModelOutputError(
            f"Model reply does not match {schema.__name__}: {exc.error_count()} validation error(s)",
            raw_output=raw,
        ) from exc


class TextCompletionProvider(ABC):
    """Capability every model-backed stage depends on."""

    @abstractmethod
    def send(self, prompt: Prompt) -> str:
        """Return the raw text of the model's reply or raise ExternalModelError."""
        raise NotImplementedError

    def complete(self, prompt: Prompt, schema: Optional[Type[SchemaT]] = None) -> Union[str, SchemaT]:
        raw = self.send(prompt)
        if schema is None:
            return raw
        return parse_model_output(raw, schema)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, ExternalModelError) and exc.is_transient


class ChatCompletionProvider(TextCompletionProvider):
    """
    Chat-completion client for OpenAI-compatible APIs.

    Network errors, timeouts, 429 and 5xx responses are retried with exponential
    backoff; any other 4xx fails on the first attempt.

    Batch stages call `send` from several worker threads, so no requests.Session
    is shared by default: each call goes through `requests.post`.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60,
        max_retries: int = 2,
        kill_switch: bool = False,
        wait_multiplier: float = 1,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.url = base_url.rstrip("/") + "/chat/completions"
        self.timeout = timeout
        self.max_retries = max_retries
        self.kill_switch = kill_switch
        self.wait_multiplier = wait_multiplier
        self.session = session

    @classmethod
    def from_settings(cls, config: Config = settings) -> "ChatCompletionProvider":
        return cls(
            api_key=config.services.model_api_key,
            model_name=config.ai.model_name,
            base_url=config.ai.base_url,
            timeout=config.ai.request_timeout,
            max_retries=config.ai.max_retries,
            kill_switch=config.ai.kill_switch,
        )

    def send(self, prompt: Prompt) -> str:
        if self.kill_switch:
            logger.warning("AI Kill-switch is active. Blocking request.")
            raise AIKillSwitchError()
        if not self.api_key:
            raise ExternalModelError("MODEL_API_KEY is not configured. Set it in the environment.", status=401)

        payload = {
            "model": self.model_name,
            "messages": prompt.to_messages(),
            "temperature": prompt.temperature,
            "max_tokens": prompt.max_tokens,
        }
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.wait_multiplier, min=0, max=10),
            retry=retry_if_exception(_is_transient),
            before_sleep=lambda state: logger.warning(
                f"Model call attempt {state.attempt_number} failed, retrying: {state.outcome.exception()}"
            ),
            reraise=True,
        )
        return retrying(self._do_call, payload)

    def _do_call(self, payload: Dict[str, Any]) -> str:
        logger.info(f"Calling AI Model: {self.model_name}")
        try:
            response = (self.session or requests).post(
                self.url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            logger.error("AI service timeout.")
            raise ExternalModelError("AI service reached timeout limit.") from exc
        except requests.exceptions.RequestException as exc:
            logger.error(f"AI service connection error: {exc}")
            raise ExternalModelError(f"AI service connection error: {exc}") from exc

        if response.status_code >= 400:
            raise ExternalModelError(
                f"AI service returned error {response.status_code}: {self._error_message(response)}",
                status=response.status_code,
            )
        try:
            return response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ExternalModelError(f"Unexpected AI service response shape: {exc}", status=response.status_code) from exc

    @staticmethod
    def _error_message(response) -> str:
        try:
            return response.json().get("error", {}).get("message") or "Unknown error"
        except (ValueError, AttributeError):
            return "Unknown error"


def get_completion_provider() -> TextCompletionProvider:
    """FastAPI dependency; overridden in tests with a scripted provider."""
    return ChatCompletionProvider.from_settings(settings)
