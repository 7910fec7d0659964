"""Remote Completion Client - Streaming, cancelable completions from Ollama"""
import asyncio
import json
import logging
import re
import time
from typing import Any, Dict, Optional
import httpx
from config import settings
from models import AutocompleteMode, AutocompleteResponse, AutocompleteSettings, WordContext
from services.cancellation import FIRST_TOKEN_TIMEOUT, OVERALL_TIMEOUT, RequestAborted, RequestCancellation
from services.context_extractor import extract_word_context
from services.health_tracker import RuntimeStats
from services.ollama_manager import OllamaManager
from services.prompt_renderer import build_prompt
from services.sanitizer import sanitize_and_validate_completion

logger = logging.getLogger(__name__)

# Matches the string value of an unfinished {"completion": "... object
PARTIAL_COMPLETION = re.compile(r'"completion"\s*:\s*"([^"]*)')

WORD_BUDGET_MIN = 12
WORD_BUDGET_MAX = 64

SYSTEM_PROMPT = " ".join([
    "You are an autocomplete engine.",
    'Return strict JSON only: {"completion":"<single-word>"}',
    "For word mode, completion must be one full English word matching the current partial prefix.",
    "Do not explain and do not add extra keys.",
])

COMPLETION_SCHEMA = {
    "type": "object",
    "properties": {
        "completion": {"type": "string"}
    },
    "required": ["completion"]
}


def parse_chat_completion(content: str, context: WordContext, mode: AutocompleteMode) -> str:
    """Validate a finished reply, whether or not the model honored the JSON format"""
    trimmed = content.strip()
    try:
        parsed = json.loads(trimmed)
    except ValueError:
        if trimmed.startswith("{"):
            # Unfinished object: its keys are not completions
            return ""
        return sanitize_and_validate_completion(trimmed, context, mode)

    if isinstance(parsed, str):
        return sanitize_and_validate_completion(parsed, context, mode)
    completion = parsed.get("completion") if isinstance(parsed, dict) else None
    return sanitize_and_validate_completion(completion if isinstance(completion, str) else "", context, mode)


def parse_streamed_completion(content: str, context: WordContext, mode: AutocompleteMode) -> str:
    """
    Best-effort parse of a possibly unfinished JSON reply.

    Tries the whole body first, then pulls the ``completion`` string out of
    a fragment such as ``{"completion":"far`` so a suggestion can be shown
    before the object is closed.
    """
    completion = parse_chat_completion(content, context, mode)
    if completion:
        return completion

    match = PARTIAL_COMPLETION.search(content)
    if not match:
        return ""
    return sanitize_and_validate_completion(match.group(1).replace('\\"', '"'), context, mode)


class StreamingCompletionParser:
    """
    Accumulates NDJSON chat chunks and re-validates the reply after each one.

    ``feed`` returns None for lines that are not chat chunks, otherwise the
    validated completion so far ("" while nothing acceptable has arrived).
    """

    def __init__(self, context: WordContext, mode: AutocompleteMode):
        self.context = context
        self.mode = mode
        self.content = ""
        self.chunk_count = 0

    def feed(self, line: str) -> Optional[str]:
        stripped = line.strip()
        if not stripped:
            return None
        try:
            chunk = json.loads(stripped)
        except ValueError:
            return None
        if not isinstance(chunk, dict):
            return None

        self.chunk_count += 1
        message = chunk.get("message")
        piece = message.get("content") if isinstance(message, dict) else None
        if not piece or not isinstance(piece, str):
            return ""

        self.content += piece
        return parse_streamed_completion(self.content, self.context, self.mode)

    def finish(self) -> str:
        """Final attempt once the stream has ended"""
        return parse_streamed_completion(self.content, self.context, self.mode)


def overall_timeout_ms(first_token_timeout_ms: int) -> int:
    return max(settings.overall_timeout_floor_ms, first_token_timeout_ms + settings.overall_timeout_margin_ms)


def generation_budget(autocomplete_settings: AutocompleteSettings) -> int:
    if autocomplete_settings.mode == "word":
        return max(WORD_BUDGET_MIN, min(autocomplete_settings.num_predict, WORD_BUDGET_MAX))
    return autocomplete_settings.num_predict


def build_chat_payload(prompt: str, autocomplete_settings: AutocompleteSettings) -> Dict[str, Any]:
    s = autocomplete_settings
    return {
        "model": s.model,
        "stream": True,
        "think": False,
        "format": COMPLETION_SCHEMA,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        "options": {
            "temperature": s.temperature,
            "num_predict": generation_budget(s),
            "num_ctx": s.num_ctx,
            "top_k": s.top_k,
            "top_p": s.top_p,
            "repeat_penalty": s.repeat_penalty,
            "repeat_last_n": s.repeat_last_n,
            "presence_penalty": s.presence_penalty,
            "frequency_penalty": s.frequency_penalty,
        },
        "keep_alive": s.keep_alive,
    }


class RemoteCompletionClient:
    """
    Requests one completion from Ollama's streaming chat endpoint.

    Request lifecycle:
    idle -> sent -> (first token | first-token timeout)
         -> (accepted | stream ended empty | overall timeout | network error | cancelled)

    Every outcome is reported as an AutocompleteResponse; failures become an
    empty completion. Latency and counters are recorded for every request.
    """

    def __init__(self, ollama: OllamaManager, stats: RuntimeStats):
        self.ollama = ollama
        self.stats = stats

    def _respond(
        self,
        started_at: float,
        autocomplete_settings: AutocompleteSettings,
        completion: str = "",
        timed_out: Optional[bool] = None
    ) -> AutocompleteResponse:
        latency_ms = max(0, round((time.perf_counter() - started_at) * 1000))
        self.stats.record_latency(latency_ms)
        return AutocompleteResponse(
            completion=completion,
            model=autocomplete_settings.model,
            latency_ms=latency_ms,
            source="remote",
            timed_out=timed_out,
        )

    async def suggest(
        self,
        text: str,
        cursor_index: int,
        autocomplete_settings: AutocompleteSettings,
        cancel_event: Optional[asyncio.Event] = None
    ) -> AutocompleteResponse:
        started_at = time.perf_counter()
        self.stats.record_request()

        if not autocomplete_settings.enabled:
            return self._respond(started_at, autocomplete_settings)

        context = extract_word_context(text, cursor_index)
        if autocomplete_settings.mode == "word" and not context.partial_word:
            return self._respond(started_at, autocomplete_settings)

        payload = build_chat_payload(build_prompt(context, autocomplete_settings), autocomplete_settings)
        cancellation = RequestCancellation(
            autocomplete_settings.first_token_timeout_ms,
            overall_timeout_ms(autocomplete_settings.first_token_timeout_ms),
            cancel_event,
        )

        try:
            completion = await cancellation.run(
                self._read_completion(payload, context, autocomplete_settings.mode, cancellation)
            )
        except RequestAborted as e:
            if e.reason in (FIRST_TOKEN_TIMEOUT, OVERALL_TIMEOUT):
                self.stats.record_timeout()
            logger.debug(f"Completion aborted ({e.reason}) for partial '{context.partial_word}'")
            return self._respond(started_at, autocomplete_settings, timed_out=cancellation.timed_out)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Completion request failed: {e}")
            return self._respond(started_at, autocomplete_settings, timed_out=False)

        if completion is None:
            return self._respond(started_at, autocomplete_settings)

        response = self._respond(started_at, autocomplete_settings, completion, timed_out=False)
        if completion:
            logger.debug(
                f"✓ Remote completion '{context.partial_word}' + '{completion}' "
                f"in {response.latency_ms}ms"
            )
        return response

    async def _read_completion(
        self,
        payload: Dict[str, Any],
        context: WordContext,
        mode: AutocompleteMode,
        cancellation: RequestCancellation
    ) -> Optional[str]:
        """
        Stream the reply and return the first validated completion.
        Returns None on a non-OK status, "" when the stream ends without one.
        """
        parser = StreamingCompletionParser(context, mode)
        async with self.ollama.stream_chat(payload) as response:
            if not response.is_success:
                logger.debug(f"Ollama chat responded with HTTP {response.status_code}")
                return None

            async for line in response.aiter_lines():
                completion = parser.feed(line)
                if completion is None:
                    continue
                cancellation.mark_first_token_received()
                if completion:
                    # Leaving the stream context stops reading the generation
                    return completion

        return parser.finish()
