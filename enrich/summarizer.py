from __future__ import annotations

import logging
from typing import Optional

import requests


class SummarizationError(RuntimeError):
    pass


class Summarizer:
    """
    OpenAI-compatible chat completions client.
      - POST {base_url}/chat/completions
    Any failure is raised as SummarizationError; callers decide the fallback text.
    """
    BASE = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: str = BASE,
        timeout: float = 10.0,
        temperature: float = 0.7,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.session = session or requests.Session()
        self.log = logger or logging.getLogger("dashboard.summarizer")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def summarize(self, prompt: str, system_prompt: str, max_tokens: int = 200) -> str:
        if not self.enabled:
            raise SummarizationError("no API key configured")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }
        try:
            r = self.session.post(
                f"{self.base}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout,
            )
            r.raise_for_status()
            data = r.json()
            return (data["choices"][0]["message"]["content"] or "").strip()
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            self.log.warning("Summarization request failed", extra={"data": {"model": self.model, "error": e}})
            raise SummarizationError(str(e)) from e
