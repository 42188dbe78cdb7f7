#!/usr/bin/env python3
"""
Configuration for Grammar Police.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from grammar_police.orchestrator import OrchestratorSettings
from grammar_police.replacement import DEFAULT_UNRELIABLE_WRITE_APPS, ReplacementSettings
from grammar_police.selection import DEFAULT_UNRELIABLE_READ_APPS, AcquisitionSettings
from grammar_police.transformer import (
    GrammarMode,
    OllamaTransformer,
    OpenAITransformer,
    PromptConfig,
    Transformer,
)

logger = logging.getLogger(__name__)

BACKEND_OPENAI = "OpenAI"
BACKEND_LOCAL = "Local LLM"

# Settings shown in the toggle dialog, with their descriptions
TOGGLE_SETTINGS = {
    ("general", "restore_clipboard"): "Restore Clipboard After Paste",
    ("general", "debug_logging"): "Enable Debug Logging",
    ("selection", "learn_unreliable_apps"): "Remember Apps That Need Copy Fallback",
    ("words", "default_case_sensitive"): "New Protected Words Are Case-Sensitive",
    ("words", "default_whole_word"): "New Protected Words Match Whole Words Only",
    ("privacy", "consent_granted"): "Allow Sending Text To Remote Model",
}


class GrammarPoliceConfig:
    """Configuration manager backed by a JSON file."""

    def __init__(self, config_file: Optional[str] = None):
        if config_file is None:
            # Default to user's home directory
            config_dir = Path.home() / ".grammar_police"
            config_dir.mkdir(exist_ok=True)
            config_file = str(config_dir / "config.json")

        self.config_file = Path(config_file)
        self.config = self._load_default_config()
        self.load_config()

    def _load_default_config(self) -> Dict[str, Any]:
        """Load the default configuration."""
        return {
            "general": {
                "restore_clipboard": True,
                "max_characters": 2000,
                "debug_logging": False,
            },
            "hotkeys": {
                "correct": "<ctrl>+<cmd>+g",
                "translate": "<ctrl>+<cmd>+t",
            },
            "grammar": {
                "mode": GrammarMode.MINIMAL.value,
                "custom_system_prompt": "",
                "custom_user_prompt": "",
            },
            "translation": {
                "target_language": "Vietnamese",
            },
            "llm": {
                "backend": BACKEND_OPENAI,
                "openai_model": "gpt-4o-mini",
                "openai_base_url": "https://api.openai.com/v1",
                "api_key": "",
                "temperature": 0.0,
                "max_tokens": 300,
                "timeout": 30.0,
                "local_endpoint": "http://localhost:11434",
                "local_model": "llama3",
            },
            "selection": {
                "copy_timeout": 2.0,
                "poll_interval": 0.05,
                "grace_delay": 0.02,
                "pre_copy_delay": 0.05,
                "paste_delay": 0.05,
                "restore_delay": 0.15,
                "unreliable_read_apps": list(DEFAULT_UNRELIABLE_READ_APPS),
                "unreliable_write_apps": list(DEFAULT_UNRELIABLE_WRITE_APPS),
                "learn_unreliable_apps": True,
            },
            "words": {
                "default_case_sensitive": False,
                "default_whole_word": True,
            },
            "privacy": {
                "consent_granted": False,
                "consent_shown": False,
            },
            "history": {
                "retention_days": 30,
            },
        }

    def load_config(self) -> None:
        """Load configuration from file, creating default if it doesn't exist."""
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    loaded_config = json.load(f)
                    # Merge with defaults to handle missing keys
                    self._merge_config(self.config, loaded_config)
            except (json.JSONDecodeError, IOError) as e:
                logger.error("Error loading config: %s. Using defaults.", e)
        else:
            self.save_config()

    def save_config(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(self.config, f, indent=2, ensure_ascii=False)
        except IOError as e:
            logger.error("Error saving config: %s", e)

    def _merge_config(self, default: Dict[str, Any], loaded: Dict[str, Any]) -> None:
        """Recursively merge loaded config with defaults."""
        for key, value in loaded.items():
            if key in default and isinstance(default[key], dict) and isinstance(value, dict):
                self._merge_config(default[key], value)
            else:
                default[key] = value

    def get(self, section: str, setting: str) -> Any:
        """Get a setting, falling back to the built-in default."""
        section_config = self.config.get(section, {})
        if setting in section_config:
            return section_config[setting]
        return self._load_default_config().get(section, {}).get(setting)

    def set(self, section: str, setting: str, value: Any) -> None:
        """Set a setting and save."""
        self.config.setdefault(section, {})[setting] = value
        self.save_config()

    def get_bool(self, section: str, setting: str) -> bool:
        """Get a boolean setting."""
        return bool(self.get(section, setting))

    def toggle(self, section: str, setting: str) -> bool:
        """Flip a boolean setting and return its new value."""
        new_value = not self.get_bool(section, setting)
        self.set(section, setting, new_value)
        return new_value

    def get_toggle_settings(self) -> List[Any]:
        """(section, setting, description, value) for every toggleable setting."""
        return [
            (section, setting, description, self.get_bool(section, setting))
            for (section, setting), description in TOGGLE_SETTINGS.items()
        ]

    def get_config_path(self) -> str:
        """Get the path to the configuration file."""
        return str(self.config_file)

    def reset_to_defaults(self) -> None:
        """Reset configuration to default values and save to file."""
        self.config = self._load_default_config()
        self.save_config()

    @property
    def restore_clipboard(self) -> bool:
        """Whether the clipboard is put back after the copy/paste fallback."""
        return self.get_bool("general", "restore_clipboard")

    @property
    def debug_logging(self) -> bool:
        """Whether DEBUG records are logged."""
        return self.get_bool("general", "debug_logging")

    @property
    def retention_days(self) -> int:
        """How long history records are kept."""
        return int(self.get("history", "retention_days"))

    def api_key(self) -> str:
        """OpenAI API key, from the config file or ``OPENAI_API_KEY``."""
        return str(self.get("llm", "api_key") or os.environ.get("OPENAI_API_KEY", ""))

    def grammar_mode(self) -> GrammarMode:
        """Configured correction style, falling back to Minimal for unknown values."""
        try:
            return GrammarMode(self.get("grammar", "mode"))
        except ValueError:
            logger.warning("Unknown grammar mode %r, using Minimal", self.get("grammar", "mode"))
            return GrammarMode.MINIMAL

    def prompt_config(self) -> PromptConfig:
        """Prompt settings for the transformer."""
        return PromptConfig(
            grammar_mode=self.grammar_mode(),
            custom_system_prompt=str(self.get("grammar", "custom_system_prompt")),
            custom_user_prompt=str(self.get("grammar", "custom_user_prompt")),
            target_language=str(self.get("translation", "target_language")),
        )

    def acquisition_settings(self) -> AcquisitionSettings:
        """Timings and policy for selection capture."""
        return AcquisitionSettings(
            restore_clipboard=self.restore_clipboard,
            copy_timeout=float(self.get("selection", "copy_timeout")),
            poll_interval=float(self.get("selection", "poll_interval")),
            grace_delay=float(self.get("selection", "grace_delay")),
            pre_copy_delay=float(self.get("selection", "pre_copy_delay")),
            unreliable_read_apps=list(self.get("selection", "unreliable_read_apps")),
            learn_unreliable_apps=self.get_bool("selection", "learn_unreliable_apps"),
        )

    def replacement_settings(self) -> ReplacementSettings:
        """Timings and policy for writing text back."""
        return ReplacementSettings(
            restore_clipboard=self.restore_clipboard,
            paste_delay=float(self.get("selection", "paste_delay")),
            restore_delay=float(self.get("selection", "restore_delay")),
            unreliable_write_apps=list(self.get("selection", "unreliable_write_apps")),
        )

    def orchestrator_settings(self) -> OrchestratorSettings:
        """Gates applied by the orchestrator."""
        return OrchestratorSettings(
            max_characters=int(self.get("general", "max_characters")),
            privacy_consent_granted=self.get_bool("privacy", "consent_granted"),
            target_language=str(self.get("translation", "target_language")),
        )

    def build_transformer(self) -> Transformer:
        """Create the configured language-model backend."""
        common: Dict[str, Any] = {
            "timeout": float(self.get("llm", "timeout")),
            "max_characters": int(self.get("general", "max_characters")),
            "temperature": float(self.get("llm", "temperature")),
            "max_tokens": int(self.get("llm", "max_tokens")),
        }
        if self.get("llm", "backend") == BACKEND_LOCAL:
            return OllamaTransformer(
                self.prompt_config(),
                endpoint=str(self.get("llm", "local_endpoint")),
                model=str(self.get("llm", "local_model")),
                **common,
            )
        return OpenAITransformer(
            self.prompt_config(),
            api_key=self.api_key(),
            model=str(self.get("llm", "openai_model")),
            base_url=str(self.get("llm", "openai_base_url")),
            **common,
        )
