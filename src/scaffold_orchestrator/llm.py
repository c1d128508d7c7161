"""
LLM client contract and retry policy.

Only LLM calls are retried. A call is retried when the failure looks
transient (timeout, rate limit, connection trouble, provider overloaded);
anything else propagates on the first attempt.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from .errors import TransientLLMError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_DELAYS: tuple[float, ...] = (2.0, 5.0, 10.0)
MAX_ATTEMPTS = 3
TRANSIENT_MARKERS = ("timeout", "timed out", "rate limit", "overloaded")

History = Sequence[tuple[str, str]]
ChunkCallback = Callable[[str], Awaitable[None]]


@dataclass
class LLMInfo:
	"""Provider/model currently in use."""
	provider: str
	model: str
	base_url: Optional[str] = None


class LLMClient(ABC):
	"""Chat completion provider."""

	@abstractmethod
	def info(self) -> LLMInfo:
		...

	@abstractmethod
	async def send_message(self, system_prompt: str, history: History) -> str:
		"""Return the assistant reply for an ordered (role, content) history."""
		...

	async def stream_message(
		self,
		system_prompt: str,
		history: History,
		on_chunk: Optional[ChunkCallback] = None,
	) -> str:
		"""Stream a reply, calling on_chunk per piece. Defaults to one chunk."""
		text = await self.send_message(system_prompt, history)
		if on_chunk is not None:
			await on_chunk(text)
		return text


def is_transient_error(error: BaseException) -> bool:
	"""Whether an LLM failure is worth retrying."""
	if isinstance(error, asyncio.CancelledError):
		return False
	if isinstance(error, (TransientLLMError, TimeoutError, asyncio.TimeoutError, ConnectionError)):
		return True
	message = str(error).lower()
	return any(marker in message for marker in TRANSIENT_MARKERS)


async def with_retry(
	operation: Callable[[], Awaitable[T]],
	delays: Sequence[float] = RETRY_DELAYS,
	max_attempts: int = MAX_ATTEMPTS,
	sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
	"""
	Run an async operation, retrying transient failures.

	Args:
		operation: Zero-argument coroutine factory
		delays: Wait before retry n is delays[min(n, len - 1)]
		max_attempts: Total attempts including the first
		sleep: Sleep function (injectable for tests)

	Returns:
		The operation's result

	Raises:
		The last error once attempts are exhausted, or any non-transient error immediately
	"""
	attempt = 0
	while True:
		attempt += 1
		try:
			return await operation()
		except Exception as e:
			if attempt >= max_attempts or not is_transient_error(e):
				raise
			delay = delays[min(attempt - 1, len(delays) - 1)]
			logger.warning(
				f"LLM call failed (attempt {attempt}/{max_attempts}), retrying in {delay:.0f}s: {e}"
			)
			await sleep(delay)


class RetryingLLMClient(LLMClient):
	"""Wraps another client so every call goes through with_retry."""

	def __init__(
		self,
		inner: LLMClient,
		delays: Sequence[float] = RETRY_DELAYS,
		max_attempts: int = MAX_ATTEMPTS,
		sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
	):
		self.inner = inner
		self.delays = delays
		self.max_attempts = max_attempts
		self._sleep = sleep

	def info(self) -> LLMInfo:
		return self.inner.info()

	async def send_message(self, system_prompt: str, history: History) -> str:
		return await with_retry(
			lambda: self.inner.send_message(system_prompt, history),
			self.delays,
			self.max_attempts,
			self._sleep,
		)

	async def stream_message(
		self,
		system_prompt: str,
		history: History,
		on_chunk: Optional[ChunkCallback] = None,
	) -> str:
		return await with_retry(
			lambda: self.inner.stream_message(system_prompt, history, on_chunk),
			self.delays,
			self.max_attempts,
			self._sleep,
		)


_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class StructuredInputClient(LLMClient):
	"""
	Offline client for the "local" provider.

	Treats a JSON object in the latest user message as the project
	requirements and answers with a create_project action block; otherwise
	asks for them. No language understanding is attempted.
	"""

	def info(self) -> LLMInfo:
		return LLMInfo(provider="local", model="structured-input")

	async def send_message(self, system_prompt: str, history: History) -> str:
		last_user = next((content for role, content in reversed(history) if role == "user"), "")
		match = _JSON_OBJECT.search(last_user)
		if match:
			try:
				requirements = json.loads(match.group(0))
			except json.JSONDecodeError:
				requirements = None
			if isinstance(requirements, dict) and requirements.get("project_name"):
				block = json.dumps({"action": "create_project", "requirements": requirements}, indent=2)
				return f"Got it, planning {requirements['project_name']}.\n\n```json\n{block}\n```"
		return (
			"Describe the project as a JSON object with at least a \"project_name\" "
			"(plus optional language, framework, scm_platform, visibility, is_api_project)."
		)
