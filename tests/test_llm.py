"""Tests for LLM retry policy and the offline client."""

import asyncio
import json

import pytest

from scaffold_orchestrator.errors import TransientLLMError
from scaffold_orchestrator.llm import (
	MAX_ATTEMPTS,
	RETRY_DELAYS,
	RetryingLLMClient,
	StructuredInputClient,
	is_transient_error,
	with_retry,
)

from .helpers import ScriptedLLM


class FakeSleep:
	def __init__(self):
		self.delays = []

	async def __call__(self, delay: float) -> None:
		self.delays.append(delay)


class TestIsTransient:
	"""Classification of failures."""

	@pytest.mark.parametrize("error", [
		TransientLLMError("busy"),
		TimeoutError(),
		asyncio.TimeoutError(),
		ConnectionError("reset"),
		RuntimeError("Rate limit exceeded"),
		RuntimeError("Model overloaded, try later"),
		RuntimeError("request timed out"),
	])
	def test_transient(self, error):
		assert is_transient_error(error)

	@pytest.mark.parametrize("error", [
		ValueError("bad request"),
		KeyError("missing"),
		RuntimeError("invalid api key"),
	])
	def test_permanent(self, error):
		assert not is_transient_error(error)


class TestWithRetry:
	"""Backoff behaviour."""

	@pytest.mark.asyncio
	async def test_transient_then_success(self):
		llm = ScriptedLLM([TransientLLMError("busy"), TimeoutError(), "hello"])
		sleep = FakeSleep()
		client = RetryingLLMClient(llm, sleep=sleep)

		assert await client.send_message("sys", [("user", "hi")]) == "hello"
		assert len(llm.calls) == 3
		assert sleep.delays == [RETRY_DELAYS[0], RETRY_DELAYS[1]]

	@pytest.mark.asyncio
	async def test_gives_up_after_max_attempts(self):
		llm = ScriptedLLM([TransientLLMError(str(i)) for i in range(MAX_ATTEMPTS + 2)])
		sleep = FakeSleep()
		client = RetryingLLMClient(llm, sleep=sleep)

		with pytest.raises(TransientLLMError):
			await client.send_message("sys", [])
		assert len(llm.calls) == MAX_ATTEMPTS
		assert len(sleep.delays) == MAX_ATTEMPTS - 1

	@pytest.mark.asyncio
	async def test_permanent_error_is_not_retried(self):
		llm = ScriptedLLM([ValueError("bad request"), "never"])
		sleep = FakeSleep()
		with pytest.raises(ValueError):
			await RetryingLLMClient(llm, sleep=sleep).send_message("sys", [])
		assert len(llm.calls) == 1
		assert sleep.delays == []

	@pytest.mark.asyncio
	async def test_last_delay_repeats(self):
		attempts = []

		async def operation():
			attempts.append(1)
			if len(attempts) < 5:
				raise TransientLLMError("busy")
			return "done"

		sleep = FakeSleep()
		result = await with_retry(operation, delays=(1.0, 2.0), max_attempts=5, sleep=sleep)
		assert result == "done"
		assert sleep.delays == [1.0, 2.0, 2.0, 2.0]

	@pytest.mark.asyncio
	async def test_stream_message_retries(self):
		llm = ScriptedLLM([ConnectionError("reset"), "streamed"])
		chunks = []

		async def on_chunk(text):
			chunks.append(text)

		client = RetryingLLMClient(llm, sleep=FakeSleep())
		assert await client.stream_message("sys", [], on_chunk) == "streamed"
		assert chunks == ["streamed"]


class TestStructuredInputClient:
	"""The offline "local" provider."""

	@pytest.mark.asyncio
	async def test_json_requirements_become_action_block(self):
		client = StructuredInputClient()
		reply = await client.send_message("sys", [
			("user", "hello"),
			("assistant", "Describe the project"),
			("user", 'Here: {"project_name": "my-api", "language": "go"}'),
		])
		block = reply[reply.index("```json") + len("```json"):reply.rindex("```")]
		data = json.loads(block)
		assert data == {"action": "create_project", "requirements": {"project_name": "my-api", "language": "go"}}

	@pytest.mark.asyncio
	async def test_free_text_asks_for_requirements(self):
		reply = await StructuredInputClient().send_message("sys", [("user", "I want a web app")])
		assert "project_name" in reply
		assert "```json" not in reply

	def test_info(self):
		assert StructuredInputClient().info().provider == "local"
