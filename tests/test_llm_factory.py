"""Tests for LLM factory, model ids and auto-detection."""

from unittest.mock import MagicMock

import pytest

from llm import LLMError, create_llm_provider, parse_model_id
from llm.factory import _auto_detect_provider


class TestParseModelId:
    def test_qualified_id(self):
        assert parse_model_id("openai:gpt-4o") == ("openai", "gpt-4o")

    def test_anthropic_alias(self):
        assert parse_model_id("anthropic:claude-sonnet-4") == ("claude", "claude-sonnet-4")

    def test_bare_name_by_prefix(self):
        assert parse_model_id("claude-3-haiku") == ("claude", "claude-3-haiku")
        assert parse_model_id("gpt-4o-mini") == ("openai", "gpt-4o-mini")

    def test_unknown_bare_name(self):
        assert parse_model_id("mystery") == (None, "mystery")


class TestAutoDetection:
    def test_detects_anthropic_key(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert _auto_detect_provider() == "claude"

    def test_detects_openai_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert _auto_detect_provider() == "openai"

    def test_prefers_anthropic_when_multiple(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert _auto_detect_provider() == "claude"

    def test_explicit_key_prefix_wins(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        assert _auto_detect_provider("sk-openai-key") == "openai"

    def test_no_keys_raises(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(LLMError, match="No LLM API key found"):
            _auto_detect_provider()


class TestCreateProvider:
    def test_explicit_claude_with_client(self):
        mock_client = MagicMock()
        provider = create_llm_provider(provider="claude", client=mock_client)
        assert provider.provider_name == "claude"
        assert provider.client is mock_client

    def test_explicit_openai_with_client(self):
        mock_client = MagicMock()
        provider = create_llm_provider(provider="openai", client=mock_client)
        assert provider.provider_name == "openai"
        assert provider.client is mock_client

    def test_model_id_selects_provider(self):
        provider = create_llm_provider(model="openai:gpt-4o-mini", client=MagicMock())
        assert provider.provider_name == "openai"
        assert provider.model == "gpt-4o-mini"
        assert provider.model_id == "openai:gpt-4o-mini"

    def test_unknown_provider_raises(self):
        with pytest.raises(LLMError, match="Unknown provider"):
            create_llm_provider(provider="nope", client=MagicMock())
