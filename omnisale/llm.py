# omnisale/llm.py
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.genai import types

from .config import settings

logger = logging.getLogger(__name__)

OPENAI_BASE = "https://api.openai.com/v1"
GROQ_BASE = "https://api.groq.com/openai/v1"


class LLMUnavailable(RuntimeError):
    """No provider configured, or the provider call failed."""


def parse_json_object(out: str) -> Dict[str, Any]:
    """Pull a JSON object out of a model response.

    Models wrap JSON in markdown fences or add chatter around it, so strip the
    fences first and fall back to the first ``{...}`` block.
    """
    clean_out = (out or "").strip()
    if "```" in clean_out:
        clean_out = re.sub(r"^```[a-zA-Z]*\n", "", clean_out)
        clean_out = re.sub(r"\n?```$", "", clean_out)
    try:
        parsed = json.loads(clean_out)
    except json.JSONDecodeError:
        match = re.search(r"(\{.*\})", out or "", re.DOTALL)
        if not match:
            raise ValueError("no JSON object in model output")
        json_str = re.sub(r",\s*\}", "}", match.group(1))
        parsed = json.loads(json_str)
    if not isinstance(parsed, dict):
        raise ValueError("model output is not a JSON object")
    return parsed


class LLMClient:
    def __init__(self, cfg=settings):
        self.cfg = cfg
        self._gemini = None
        if cfg.use_gemini and cfg.gemini_api_key:
            self._gemini = genai.Client(api_key=cfg.gemini_api_key)

    @property
    def provider(self) -> Optional[str]:
        if self._gemini is not None:
            return "gemini"
        if self.cfg.use_groq and self.cfg.groq_api_key:
            return "groq"
        if self.cfg.openai_api_key:
            return "openai"
        return None

    async def complete(self, system_prompt: str, prompt: str, json_mode: bool = False,
                       max_tokens: int = 500, timeout: float = 15) -> str:
        provider = self.provider
        if provider is None:
            raise LLMUnavailable("No LLM provider configured")
        try:
            if provider == "gemini":
                return await self._call_gemini(system_prompt, prompt, json_mode, max_tokens)
            if provider == "groq":
                return await self._call_chat(GROQ_BASE, self.cfg.groq_api_key, self.cfg.groq_model,
                                             system_prompt, prompt, json_mode, max_tokens, timeout)
            return await self._call_chat(OPENAI_BASE, self.cfg.openai_api_key, self.cfg.openai_model,
                                         system_prompt, prompt, json_mode, max_tokens, timeout)
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            raise LLMUnavailable(f"{provider} call failed: {e}") from e

    async def complete_json(self, system_prompt: str, prompt: str, timeout: float = 15) -> Dict[str, Any]:
        out = await self.complete(system_prompt, prompt, json_mode=True, timeout=timeout)
        try:
            return parse_json_object(out)
        except (ValueError, json.JSONDecodeError) as e:
            logger.warning("[LLM] JSON parsing failed. Raw output: %s... Error: %s", (out or "")[:100], e)
            raise LLMUnavailable("unparseable model output") from e

    async def _call_chat(self, base: str, api_key: str, model: str, system_prompt: str, prompt: str,
                         json_mode: bool, max_tokens: int, timeout: float) -> str:
        headers = {"Authorization": f"Bearer {api_key}"}
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.0,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        async with httpx.AsyncClient(timeout=timeout) as client:
            r = await client.post(f"{base}/chat/completions", headers=headers, json=payload)
            r.raise_for_status()
            body = r.json()
            return body["choices"][0]["message"]["content"]

    async def _call_gemini(self, system_prompt: str, prompt: str, json_mode: bool, max_tokens: int) -> str:
        config = types.GenerateContentConfig(
            temperature=0.0,
            max_output_tokens=max_tokens,
            system_instruction=system_prompt,
            response_mime_type="application/json" if json_mode else None,
        )
        try:
            response = await self._gemini.aio.models.generate_content(
                model=self.cfg.gemini_model,
                contents=prompt,
                config=config,
            )
        except Exception as e:
            # the SDK raises its own error hierarchy; normalise it here
            raise LLMUnavailable(f"gemini call failed: {e}") from e
        if not response.text:
            raise LLMUnavailable("gemini returned an empty response")
        return response.text

    async def ping(self, timeout: float = 3.0) -> str:
        """Reachability for /health: ``ok``, ``unreachable`` or ``not_configured``."""
        provider = self.provider
        if provider is None:
            return "not_configured"
        try:
            if provider == "gemini":
                await self._gemini.aio.models.get(model=self.cfg.gemini_model)
                return "ok"
            base, key = (GROQ_BASE, self.cfg.groq_api_key) if provider == "groq" else (OPENAI_BASE, self.cfg.openai_api_key)
            async with httpx.AsyncClient(timeout=timeout) as client:
                r = await client.get(f"{base}/models", headers={"Authorization": f"Bearer {key}"})
                r.raise_for_status()
            return "ok"
        except Exception as e:
            logger.warning("[LLM] %s ping failed: %s", provider, e)
            return "unreachable"
