import logging

import requests

import config
from processing.prompts import CONSOLIDATION_PROMPT, SUMMARY_SYSTEM_PROMPT, SUMMARY_USER_PROMPT
from processing.speech import extract_gemini_text

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 100_000


class SummarizeFailed(RuntimeError):
    pass


def degraded_summary(reason) -> str:
    return f"Summary unavailable (error: {reason})"


class Summarizer:
    def __init__(self, provider: str = "gemini", api_key: str = None,
                 model: str = None, ollama_url: str = None, ollama_model: str = None,
                 gemini_api_key: str = None, gemini_model: str = None,
                 timeout: float = 120):
        self.provider = provider
        self.api_key = api_key
        self.model = model
        self.ollama_url = ollama_url or "http://localhost:11434"
        self.ollama_model = ollama_model or "llama3"
        self.gemini_api_key = gemini_api_key
        self.gemini_model = gemini_model or config.GEMINI_MODEL
        self.timeout = timeout

    def summarize(self, transcript: str) -> str:
        """Summary of ``transcript``; failures come back as a placeholder string."""
        try:
            return self.generate(transcript)
        except Exception as e:
            logger.warning("Summary failed, using placeholder: %s", e)
            return degraded_summary(e)

    def generate(self, transcript: str) -> str:
        if not transcript or not transcript.strip():
            raise SummarizeFailed("transcript is empty")

        if len(transcript) > MAX_TRANSCRIPT_CHARS:
            summary = self._summarize_long(transcript)
        else:
            summary = self._call_llm(SUMMARY_USER_PROMPT.format(transcription=transcript))

        if not summary or not summary.strip():
            raise SummarizeFailed(f"{self.provider} returned an empty summary")
        logger.info("Summary generated (%d chars)", len(summary))
        return summary.strip()

    def _summarize_long(self, transcript: str) -> str:
        # Summarize fixed-size slices, then merge the partial summaries
        parts = [
            transcript[start:start + MAX_TRANSCRIPT_CHARS]
            for start in range(0, len(transcript), MAX_TRANSCRIPT_CHARS)
        ]
        partials = []
        for n, part in enumerate(parts, 1):
            logger.info("Summarizing transcript part %d/%d", n, len(parts))
            partials.append(self._call_llm(SUMMARY_USER_PROMPT.format(transcription=part)))

        if len(partials) == 1:
            return partials[0]
        return self._call_llm(CONSOLIDATION_PROMPT.format(summaries="\n\n---\n\n".join(partials)))

    def _call_llm(self, user_prompt: str) -> str:
        if self.provider == "gemini":
            return self._call_gemini(user_prompt)

        if self.provider == "anthropic" and self.api_key:
            return self._call_anthropic(user_prompt)

        if self.provider == "ollama" or not self.api_key:
            try:
                return self._call_ollama(user_prompt)
            except Exception as e:
                if self.api_key:
                    logger.warning("Ollama failed (%s), trying Anthropic...", e)
                    return self._call_anthropic(user_prompt)
                raise

        return self._call_anthropic(user_prompt)

    def _call_gemini(self, user_prompt: str) -> str:
        if not self.gemini_api_key:
            raise SummarizeFailed("GEMINI_API_KEY is not set")

        response = requests.post(
            f"{config.GEMINI_URL}/models/{self.gemini_model}:generateContent",
            params={"key": self.gemini_api_key},
            json={
                "systemInstruction": {"parts": [{"text": SUMMARY_SYSTEM_PROMPT}]},
                "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            },
            timeout=self.timeout,
        )
        if not response.ok:
            raise SummarizeFailed(f"Gemini API failed: {response.status_code} {response.text[:200]}")
        return extract_gemini_text(response.json())

    def _call_anthropic(self, user_prompt: str) -> str:
        import anthropic

        client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout)
        message = client.messages.create(
            model=self.model or "claude-sonnet-4-5-20250929",
            max_tokens=4096,
            system=SUMMARY_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": user_prompt}],
        )
        return message.content[0].text

    def _call_ollama(self, user_prompt: str) -> str:
        response = requests.post(
            f"{self.ollama_url}/api/generate",
            json={
                "model": self.ollama_model,
                "system": SUMMARY_SYSTEM_PROMPT,
                "prompt": user_prompt,
                "stream": False,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()["response"]
