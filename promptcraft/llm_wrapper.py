# promptcraft/llm_wrapper.py
"""
Centralized LLM client. Supports OpenAI and Anthropic backends.
Returns a standardized dict:
{
  "text": "<assistant text>",
  "model": "<model used>",
  "response_id": "<model response id if available>",
  "raw": <raw response object>
}

The client is built from an LLMSettings object (see promptcraft.config) and
handed to whoever needs it; nothing here reads the environment.

Usage:
  client = LLMClient(get_settings().llm)
  resp = client.chat(messages=[...], model="claude-sonnet-4-20250514", json_mode=True)
  text = resp["text"]
"""

import time
from typing import Any, Dict, List, Optional

from promptcraft import errors
from promptcraft.config import LLMSettings


class LLMClient:
    def __init__(self, settings: LLMSettings):
        self.settings = settings
        self._sdk_client = None

    @property
    def mock(self) -> bool:
        return self.settings.mock

    @property
    def provider(self) -> str:
        return self.settings.provider

    def model_for(self, stage: str) -> str:
        return self.settings.model_for(stage)

    def _client(self):
        if self._sdk_client is not None:
            return self._sdk_client
        kwargs: Dict[str, Any] = {}
        if self.settings.timeout:
            kwargs["timeout"] = self.settings.timeout
        if self.provider == "anthropic":
            from anthropic import Anthropic
            self._sdk_client = Anthropic(api_key=self.settings.anthropic_api_key, **kwargs)
        else:
            from openai import OpenAI
            self._sdk_client = OpenAI(api_key=self.settings.openai_api_key, **kwargs)
        return self._sdk_client

    # -----------------------------------------------------------------------
    # Anthropic backend
    # -----------------------------------------------------------------------
    def _anthropic_chat(self, messages: List[Dict[str, str]], model: str,
                        max_tokens: int, temperature: float) -> Dict[str, Any]:
        # Anthropic uses a separate system param, not a system message in messages list
        system_text = ""
        chat_messages = []
        for m in messages:
            if m["role"] == "system":
                system_text += m["content"] + "\n"
            else:
                chat_messages.append({"role": m["role"], "content": m["content"]})

        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": chat_messages,
        }
        if system_text.strip():
            kwargs["system"] = system_text.strip()

        resp = self._client().messages.create(**kwargs)

        text = ""
        for block in resp.content:
            if hasattr(block, "text"):
                text += block.text
        return {"text": text, "model": model, "response_id": getattr(resp, "id", None), "raw": resp}

    # -----------------------------------------------------------------------
    # OpenAI backend
    # -----------------------------------------------------------------------
    def _openai_chat(self, messages: List[Dict[str, str]], model: str,
                     max_tokens: int, temperature: float, json_mode: bool) -> Dict[str, Any]:
        kwargs = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        resp = self._client().chat.completions.create(**kwargs)
        choices = getattr(resp, "choices", [])
        text = (choices[0].message.content or "") if choices else ""
        return {"text": text, "model": model, "response_id": getattr(resp, "id", None), "raw": resp}

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------
    def chat(self, messages: List[Dict[str, str]], model: Optional[str] = None,
             max_tokens: int = 2048, temperature: float = 0.0,
             json_mode: bool = False, mock_text: Optional[str] = None) -> Dict[str, Any]:
        """
        messages: list of {role, content}
        mock_text: canned reply returned in mock mode (defaults to the joined user messages)
        Returns: dict with keys 'text','model','response_id','raw'.
        Raises UpstreamError on any provider failure.
        """
        model = model or self.settings.model
        if self.mock:
            if mock_text is None:
                mock_text = "\n\n".join(m["content"] for m in messages if m["role"] == "user")
            rid = f"mock-{model}-{int(time.time() * 1000)}"
            return {"text": mock_text, "model": model, "response_id": rid, "raw": {"mock": True}}
        try:
            if self.provider == "anthropic":
                return self._anthropic_chat(messages, model, max_tokens, temperature)
            return self._openai_chat(messages, model, max_tokens, temperature, json_mode)
        except Exception as e:
            raise errors.UpstreamError(f"LLM call failed ({self.provider}): {e}") from e
