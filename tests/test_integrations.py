"""Tests for the language-model helpers and ticketing escalation."""

from dataclasses import dataclass

import pytest

from omnisale.config import _env_bool, _env_float, _env_str, normalize_database_url
from omnisale.llm import LLMClient, LLMUnavailable, parse_json_object
from omnisale.ticketing import create_ticket


@dataclass
class _Cfg:
    use_gemini: bool = False
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    use_groq: bool = False
    groq_api_key: str = ""
    groq_model: str = "llama"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    jira_site: str = ""
    jira_email: str = ""
    jira_api_token: str = ""
    jira_project_key: str = ""


class TestParseJsonObject:
    def test_plain(self):
        assert parse_json_object('{"intent": "checkout"}') == {"intent": "checkout"}

    def test_fenced(self):
        assert parse_json_object('```json\n{"intent": "recommend"}\n```') == {"intent": "recommend"}

    def test_chatter_around_object(self):
        out = 'Sure! Here is the plan: {"intent": "smalltalk", "target_skus": [],} hope that helps'
        assert parse_json_object(out)["intent"] == "smalltalk"

    def test_no_object(self):
        with pytest.raises(ValueError):
            parse_json_object("I cannot help with that")


class TestLLMClient:
    def test_provider_order(self):
        assert LLMClient(_Cfg()).provider is None
        assert LLMClient(_Cfg(openai_api_key="k")).provider == "openai"
        assert LLMClient(_Cfg(openai_api_key="k", use_groq=True, groq_api_key="g")).provider == "groq"

    @pytest.mark.asyncio
    async def test_unconfigured_is_unavailable(self):
        with pytest.raises(LLMUnavailable):
            await LLMClient(_Cfg()).complete("system", "prompt")
        assert await LLMClient(_Cfg()).ping() == "not_configured"


class TestTicketing:
    @pytest.mark.asyncio
    async def test_missing_config_never_raises(self):
        result = await create_ticket("summary", "description", cfg=_Cfg())
        assert result["success"] is False


class TestConfig:
    def test_postgres_url_gets_async_driver(self):
        url = normalize_database_url("postgresql://u:p@host/db?sslmode=require&application_name=omni")
        assert url == "postgresql+asyncpg://u:p@host/db?application_name=omni"

    def test_empty_env_values_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "")
        monkeypatch.setenv("STORE_TIMEOUT_S", "")
        monkeypatch.setenv("USE_GEMINI", "")
        assert _env_str("DATABASE_URL", "sqlite+aiosqlite:///./omnisale.db") == "sqlite+aiosqlite:///./omnisale.db"
        assert _env_float("STORE_TIMEOUT_S", "5") == 5.0
        assert _env_bool("USE_GEMINI", "true") is True

    def test_set_env_values_win(self, monkeypatch):
        monkeypatch.setenv("STORE_TIMEOUT_S", "2.5")
        assert _env_float("STORE_TIMEOUT_S", "5") == 2.5
