# tests/test_llm_client.py
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from openai import OpenAIError

from clients.llm_client import LLMClient, LLMGenerationError


def completion(*contents):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=c)) for c in contents]
    )


class TestComplete(unittest.TestCase):

    def setUp(self):
        self.openai = MagicMock()
        self.client = LLMClient(api_key="sk-test", model="mistral-small", temperature=0.1, client=self.openai)

    def test_returns_first_choice_content(self):
        self.openai.chat.completions.create.return_value = completion('{"concepts": []}')

        self.assertEqual(self.client.complete("Extract"), '{"concepts": []}')

        kwargs = self.openai.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "mistral-small")
        self.assertEqual(kwargs["temperature"], 0.1)
        self.assertEqual(kwargs["messages"], [{"role": "user", "content": "Extract"}])

    def test_transport_error_becomes_generation_error(self):
        self.openai.chat.completions.create.side_effect = OpenAIError("HTTP 503")

        with self.assertRaises(LLMGenerationError) as ctx:
            self.client.complete("Extract")

        self.assertIsInstance(ctx.exception.__cause__, OpenAIError)
        self.assertEqual(self.openai.chat.completions.create.call_count, 1)

    def test_empty_reply_is_a_generation_error(self):
        for response in (completion(), completion(""), completion(None)):
            self.openai.chat.completions.create.return_value = response
            with self.assertRaises(LLMGenerationError):
                self.client.complete("Extract")


@patch("clients.llm_client.OpenAI")
def test_sdk_retries_are_disabled(mock_openai):
    LLMClient(api_key="sk-test", base_url="https://api.mistral.ai/v1", timeout=30.0)

    kwargs = mock_openai.call_args.kwargs
    assert kwargs["max_retries"] == 0
    assert kwargs["base_url"] == "https://api.mistral.ai/v1"
    assert kwargs["timeout"] == 30.0
