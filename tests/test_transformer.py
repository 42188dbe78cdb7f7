#!/usr/bin/env python3
"""
Tests for prompt building and the HTTP model backends. No network access: the
requests session is a mock.
"""

import os
import sys
import unittest
from typing import Any
from unittest.mock import MagicMock

import requests

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from grammar_police.transformer import (  # noqa: E402
    GrammarMode,
    OllamaTransformer,
    OpenAITransformer,
    PromptConfig,
    TransformError,
    TransformKind,
    clean_completion,
)


def response(status: int = 200, body: Any = None) -> MagicMock:
    """Fake requests.Response."""
    mock = MagicMock(spec=requests.Response)
    mock.status_code = status
    if isinstance(body, Exception):
        mock.json.side_effect = body
    else:
        mock.json.return_value = body
    return mock


def chat_body(content: str) -> dict:
    """Chat completions payload with one choice."""
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class TestPromptConfig(unittest.TestCase):
    """Test cases for PromptConfig."""

    def test_grammar_prompt_mentions_tokens(self) -> None:
        """Test that correction prompts ask the model to keep tokens."""
        system, user = PromptConfig(grammar_mode=GrammarMode.WORK).build(TransformKind.CORRECT, "hello")
        self.assertIn("business", system)
        self.assertIn("__CWORD_n__", user)
        self.assertTrue(user.endswith("\n\nhello"))

    def test_translation_prompt_uses_target_language(self) -> None:
        """Test that translation prompts name the target language."""
        _, user = PromptConfig(target_language="German").build(TransformKind.TRANSLATE, "hello")
        self.assertIn("German", user)
        self.assertIn("__CWORD_n__", user)

    def test_custom_prompts(self) -> None:
        """Test that Custom mode uses the configured prompts verbatim."""
        prompts = PromptConfig(
            grammar_mode=GrammarMode.CUSTOM,
            custom_system_prompt="You are a pirate.",
            custom_user_prompt="Fix this, arr:",
        )
        system, user = prompts.build(TransformKind.CORRECT, "text")
        self.assertEqual(system, "You are a pirate.")
        self.assertEqual(user, "Fix this, arr:\n\ntext")

    def test_clean_completion(self) -> None:
        """Test whitespace and quote stripping."""
        self.assertEqual(clean_completion('  "Fixed."\n'), "Fixed.")
        self.assertEqual(clean_completion('He said "hi"'), 'He said "hi"')
        self.assertEqual(clean_completion('"'), '"')


class TestOpenAITransformer(unittest.TestCase):
    """Test cases for OpenAITransformer."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.session = MagicMock()
        self.transformer = OpenAITransformer(
            PromptConfig(), api_key="sk-test", model="gpt-4o-mini", max_characters=100, session=self.session
        )

    def test_success(self) -> None:
        """Test a successful completion."""
        self.session.post.return_value = response(200, chat_body('"I have an apple."'))

        result = self.transformer.transform(TransformKind.CORRECT, "i has a apple")

        self.assertTrue(result.ok)
        self.assertEqual(result.text, "I have an apple.")
        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], "https://api.openai.com/v1/chat/completions")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk-test")
        self.assertEqual(kwargs["json"]["model"], "gpt-4o-mini")
        self.assertEqual([m["role"] for m in kwargs["json"]["messages"]], ["system", "user"])
        self.assertIn("i has a apple", kwargs["json"]["messages"][1]["content"])
        self.assertEqual(kwargs["timeout"], 30.0)

    def test_requires_key_and_consent(self) -> None:
        """Test that the remote backend needs an API key and consent."""
        self.assertTrue(self.transformer.is_configured())
        self.assertTrue(self.transformer.requires_consent())

        unconfigured = OpenAITransformer(PromptConfig(), session=self.session)
        self.assertFalse(unconfigured.is_configured())
        result = unconfigured.transform(TransformKind.CORRECT, "text")
        self.assertEqual(result.error, TransformError.NO_CREDENTIALS)
        self.session.post.assert_not_called()

    def test_too_long(self) -> None:
        """Test that long text is rejected without a request."""
        result = self.transformer.transform(TransformKind.CORRECT, "x" * 101)
        self.assertEqual(result.error, TransformError.TEXT_TOO_LONG)
        self.session.post.assert_not_called()

    def test_status_mapping(self) -> None:
        """Test how HTTP errors map to failure kinds."""
        cases = [
            (401, {}, TransformError.NO_CREDENTIALS, "Invalid API key"),
            (429, {}, TransformError.RATE_LIMITED, "Rate limited. Please try again later."),
            (503, {}, TransformError.SERVER_ERROR, "Server error"),
            (400, {"error": {"message": "bad model"}}, TransformError.SERVER_ERROR, "bad model"),
            (404, ValueError("no json"), TransformError.SERVER_ERROR, "HTTP 404"),
        ]
        for status, body, error, message in cases:
            with self.subTest(status=status):
                self.session.post.return_value = response(status, body)
                result = self.transformer.transform(TransformKind.CORRECT, "text")
                self.assertFalse(result.ok)
                self.assertEqual(result.error, error)
                self.assertEqual(result.message, message)

    def test_timeout(self) -> None:
        """Test that a timeout is a tagged failure."""
        self.session.post.side_effect = requests.exceptions.Timeout()
        result = self.transformer.transform(TransformKind.TRANSLATE, "text")
        self.assertEqual(result.error, TransformError.TIMEOUT)

    def test_connection_error(self) -> None:
        """Test that network errors are tagged failures."""
        self.session.post.side_effect = requests.exceptions.ConnectionError("refused")
        result = self.transformer.transform(TransformKind.CORRECT, "text")
        self.assertEqual(result.error, TransformError.CONNECTION_FAILED)
        self.assertIn("refused", result.message)

    def test_invalid_response(self) -> None:
        """Test that an unexpected body shape is a tagged failure."""
        for body in ({}, {"choices": []}, ValueError("not json")):
            with self.subTest(body=body):
                self.session.post.return_value = response(200, body)
                result = self.transformer.transform(TransformKind.CORRECT, "text")
                self.assertEqual(result.error, TransformError.INVALID_RESPONSE)


class TestOllamaTransformer(unittest.TestCase):
    """Test cases for OllamaTransformer."""

    def test_generate_request(self) -> None:
        """Test the request shape and response parsing."""
        session = MagicMock()
        session.post.return_value = response(200, {"response": " Fixed text. "})
        transformer = OllamaTransformer(
            PromptConfig(), endpoint="http://localhost:11434/", model="llama3", session=session
        )

        result = transformer.transform(TransformKind.CORRECT, "fixd text")

        self.assertEqual(result.text, "Fixed text.")
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], "http://localhost:11434/api/generate")
        self.assertFalse(kwargs["json"]["stream"])
        self.assertEqual(kwargs["json"]["model"], "llama3")
        self.assertIn("fixd text", kwargs["json"]["prompt"])
        self.assertFalse(transformer.requires_consent())

    def test_needs_endpoint_and_model(self) -> None:
        """Test configuration checks."""
        self.assertFalse(OllamaTransformer(PromptConfig(), endpoint="", session=MagicMock()).is_configured())
        self.assertFalse(OllamaTransformer(PromptConfig(), model="", session=MagicMock()).is_configured())


if __name__ == "__main__":
    unittest.main()
