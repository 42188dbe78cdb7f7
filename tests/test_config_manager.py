#!/usr/bin/env python3
"""
Tests for GrammarPoliceConfig.
"""

import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from grammar_police.config_manager import BACKEND_LOCAL, GrammarPoliceConfig  # noqa: E402
from grammar_police.transformer import GrammarMode, OllamaTransformer, OpenAITransformer  # noqa: E402


class TestGrammarPoliceConfig(unittest.TestCase):
    """Test cases for GrammarPoliceConfig class."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = os.path.join(self.temp_dir, "test_config.json")
        self.config = GrammarPoliceConfig(self.config_file)

    def tearDown(self) -> None:
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_default_config_structure(self) -> None:
        """Test that default config has expected structure and is written to disk."""
        sections = ["general", "hotkeys", "grammar", "translation", "llm", "selection", "words", "privacy", "history"]
        for section in sections:
            self.assertIn(section, self.config.config)
        self.assertTrue(os.path.exists(self.config_file))
        self.assertTrue(self.config.restore_clipboard)
        self.assertFalse(self.config.get_bool("privacy", "consent_granted"))
        self.assertEqual(self.config.retention_days, 30)

    def test_config_persistence(self) -> None:
        """Test that config changes are saved to file."""
        self.config.set("translation", "target_language", "French")
        new_config = GrammarPoliceConfig(self.config_file)
        self.assertEqual(new_config.get("translation", "target_language"), "French")

    def test_config_merge(self) -> None:
        """Test that partial config files merge correctly with defaults."""
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump({"general": {"max_characters": 500}}, f)

        config = GrammarPoliceConfig(self.config_file)

        self.assertEqual(config.get("general", "max_characters"), 500)
        self.assertTrue(config.get_bool("general", "restore_clipboard"))
        self.assertEqual(config.get("llm", "openai_model"), "gpt-4o-mini")

    def test_invalid_json_uses_defaults(self) -> None:
        """Test that a broken file falls back to defaults."""
        with open(self.config_file, "w", encoding="utf-8") as f:
            f.write("{broken")
        config = GrammarPoliceConfig(self.config_file)
        self.assertEqual(config.get("general", "max_characters"), 2000)

    def test_toggle_settings(self) -> None:
        """Test toggling boolean settings."""
        settings = self.config.get_toggle_settings()
        self.assertIn(("general", "restore_clipboard", "Restore Clipboard After Paste", True), settings)

        self.assertFalse(self.config.toggle("general", "restore_clipboard"))
        self.assertFalse(GrammarPoliceConfig(self.config_file).restore_clipboard)

    def test_word_defaults(self) -> None:
        """Test the defaults offered to new protected words."""
        self.assertFalse(self.config.get_bool("words", "default_case_sensitive"))
        self.assertTrue(self.config.get_bool("words", "default_whole_word"))

        descriptions = [description for _, _, description, _ in self.config.get_toggle_settings()]
        self.assertIn("New Protected Words Are Case-Sensitive", descriptions)
        self.assertIn("New Protected Words Match Whole Words Only", descriptions)

        self.assertTrue(self.config.toggle("words", "default_case_sensitive"))
        self.assertTrue(GrammarPoliceConfig(self.config_file).get_bool("words", "default_case_sensitive"))

    def test_reset_to_defaults(self) -> None:
        """Test restoring defaults."""
        self.config.set("general", "max_characters", 10)
        self.config.reset_to_defaults()
        self.assertEqual(GrammarPoliceConfig(self.config_file).get("general", "max_characters"), 2000)

    def test_api_key_from_environment(self) -> None:
        """Test that the API key falls back to OPENAI_API_KEY."""
        with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-env"}):
            self.assertEqual(self.config.api_key(), "sk-env")
            self.config.set("llm", "api_key", "sk-file")
            self.assertEqual(self.config.api_key(), "sk-file")

    def test_grammar_mode(self) -> None:
        """Test reading the grammar mode, with a fallback for unknown values."""
        self.config.set("grammar", "mode", "Friendly")
        self.assertEqual(self.config.grammar_mode(), GrammarMode.FRIENDLY)
        self.config.set("grammar", "mode", "Shakespearean")
        self.assertEqual(self.config.grammar_mode(), GrammarMode.MINIMAL)

    def test_component_settings(self) -> None:
        """Test that pipeline settings come from the config sections."""
        self.config.set("selection", "copy_timeout", 1.5)
        self.config.set("general", "restore_clipboard", False)
        self.config.set("privacy", "consent_granted", True)

        acquisition = self.config.acquisition_settings()
        replacement = self.config.replacement_settings()
        orchestrator = self.config.orchestrator_settings()

        self.assertEqual(acquisition.copy_timeout, 1.5)
        self.assertFalse(acquisition.restore_clipboard)
        self.assertIn("com.tinyspeck.slackmacgap", acquisition.unreliable_read_apps)
        self.assertFalse(replacement.restore_clipboard)
        self.assertIn("com.google.Chrome", replacement.unreliable_write_apps)
        self.assertTrue(orchestrator.privacy_consent_granted)
        self.assertEqual(orchestrator.max_characters, 2000)

    def test_build_transformer(self) -> None:
        """Test backend selection."""
        with patch.dict(os.environ, {"OPENAI_API_KEY": ""}):
            remote = self.config.build_transformer()
        self.assertIsInstance(remote, OpenAITransformer)
        self.assertFalse(remote.is_configured())

        self.config.set("llm", "backend", BACKEND_LOCAL)
        self.config.set("llm", "local_model", "mistral")
        local = self.config.build_transformer()
        self.assertIsInstance(local, OllamaTransformer)
        assert isinstance(local, OllamaTransformer)
        self.assertEqual(local.model, "mistral")


if __name__ == "__main__":
    unittest.main()
