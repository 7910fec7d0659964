"""Data models for Caption Autocomplete Service"""
import math
from typing import Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from config import settings


AutocompleteMode = Literal["word", "phrase"]
AutocompleteSource = Literal["local", "remote"]
ScanMode = Literal["recursive", "top-level"]


DEFAULT_PROMPT_TEMPLATE = "\n".join([
    "Task: complete the current English word at the cursor.",
    "Rules:",
    "- Return ONLY the full completed word (including the partial letters).",
    "- Return one word only: letters, apostrophe, or hyphen.",
    "- If no partial word exists, return empty output.",
    "- Never explain.",
    "Examples:",
    "Left context: Man went too f",
    "Current partial word: f",
    "Right context:  to go too far",
    "Completed word: far",
    "Left context: She lives in New Yo",
    "Current partial word: Yo",
    "Right context:",
    "Completed word: York",
    "Now solve this input:",
    "Left context: {{left}}",
    "Current partial word: {{partial}}",
    "Right context: {{right}}",
    "Completed word:",
])

# Templates written by older releases asked for the missing characters only,
# which small models answer badly. They are replaced by the default on load.
LEGACY_TEMPLATE_MARKER = "Return ONLY missing characters to finish the current partial word."
LEGACY_CONTINUATION_MARKERS = ("Continuation:", "Current partial word:")

# (low, high) bounds per numeric setting
FLOAT_BOUNDS = {
    "temperature": (0.0, 2.0),
    "top_p": (0.0, 1.0),
    "repeat_penalty": (0.5, 2.0),
    "presence_penalty": (-2.0, 2.0),
    "frequency_penalty": (-2.0, 2.0),
}
INT_BOUNDS = {
    "top_k": (1, 200),
    "repeat_last_n": (0, 1024),
    "num_predict": (1, 128),
    "num_ctx": (256, 8192),
    "first_token_timeout_ms": (200, 20000),
    "debounce_ms": (0, 2000),
}


def _to_finite_number(value: Any) -> Optional[Union[int, float]]:
    """
    Coerce numbers and numeric strings; anything else is unusable.
    Integers stay ints so arbitrarily large values can still be clamped.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        numeric = float(text)
    except ValueError:
        return None
    return numeric if math.isfinite(numeric) else None


def clamp_number(value: Any, fallback: float, low: float, high: float) -> float:
    numeric = _to_finite_number(value)
    if numeric is None:
        return fallback
    # Compared before converting, so huge ints never overflow float()
    return float(max(low, min(high, numeric)))


def clamp_integer(value: Any, fallback: int, low: int, high: int) -> int:
    # Half-up rounding, so 2.5 -> 3 like the settings UI shows it
    return int(math.floor(clamp_number(value, fallback, low, high) + 0.5))


class WordContext(BaseModel):
    """Text around the cursor, recomputed for every request"""
    model_config = ConfigDict(frozen=True)

    left_context: str = Field(default="", max_length=settings.max_left_context)
    right_context: str = Field(default="", max_length=settings.max_right_context)
    partial_word: str = ""
    right_word_remainder: str = ""
    previous_word: str = ""


class AutocompleteSettings(BaseModel):
    """
    Persisted autocomplete configuration.

    Every field is normalized on construction: numbers are clamped to their
    valid range, invalid values fall back to defaults and obsolete prompt
    templates are migrated. Serialized with camelCase aliases.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    enabled: bool = True
    model: str = Field(default_factory=lambda: settings.ollama_model)
    temperature: float = 0.15
    top_p: float = 0.9
    top_k: int = 20
    repeat_penalty: float = 1.05
    repeat_last_n: int = 96
    presence_penalty: float = 0.2
    frequency_penalty: float = 0.2
    num_predict: int = 24
    num_ctx: int = 2048
    first_token_timeout_ms: int = 900
    debounce_ms: int = 90
    keep_alive: str = "30m"
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE
    use_suffix_context: bool = True
    mode: AutocompleteMode = "word"

    @classmethod
    def _default_for(cls, field_name: str) -> Any:
        return cls.model_fields[field_name].get_default(call_default_factory=True)

    @field_validator(*FLOAT_BOUNDS, mode="before")
    @classmethod
    def _clamp_float(cls, value: Any, info: ValidationInfo) -> float:
        low, high = FLOAT_BOUNDS[info.field_name]
        return clamp_number(value, cls._default_for(info.field_name), low, high)

    @field_validator(*INT_BOUNDS, mode="before")
    @classmethod
    def _clamp_int(cls, value: Any, info: ValidationInfo) -> int:
        low, high = INT_BOUNDS[info.field_name]
        return clamp_integer(value, cls._default_for(info.field_name), low, high)

    @field_validator("enabled", "use_suffix_context", mode="before")
    @classmethod
    def _strict_bool(cls, value: Any, info: ValidationInfo) -> bool:
        return value if isinstance(value, bool) else cls._default_for(info.field_name)

    @field_validator("model", "keep_alive", mode="before")
    @classmethod
    def _non_blank(cls, value: Any, info: ValidationInfo) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return cls._default_for(info.field_name)

    @field_validator("prompt_template", mode="before")
    @classmethod
    def _migrate_template(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return DEFAULT_PROMPT_TEMPLATE
        template = value.strip()
        if LEGACY_TEMPLATE_MARKER in template:
            return DEFAULT_PROMPT_TEMPLATE
        if all(marker in template for marker in LEGACY_CONTINUATION_MARKERS):
            return DEFAULT_PROMPT_TEMPLATE
        return template

    @field_validator("mode", mode="before")
    @classmethod
    def _known_mode(cls, value: Any) -> str:
        return value if value in ("word", "phrase") else "word"


class AutocompleteResponse(BaseModel):
    """Result of one suggestion request"""
    model_config = ConfigDict(frozen=True)

    completion: str = ""
    model: str
    latency_ms: int = Field(default=0, ge=0)
    source: AutocompleteSource
    timed_out: Optional[bool] = None


class HealthStatus(BaseModel):
    """Reachability of the inference server plus rolling telemetry"""
    ok: bool
    reason: Optional[str] = None
    gpu_likely: Optional[bool] = None
    request_count: int = 0
    timeout_count: int = 0
    median_latency_ms: Optional[int] = None
    last_latency_ms: Optional[int] = None


class SuggestionState(BaseModel):
    """Ghost text currently shown on an input surface"""
    item_id: str
    completion: str
    cursor_index: int
    base_text: str  # Text the completion was computed against
    model: str
    latency_ms: int = 0
    source: AutocompleteSource


class CompletionInsertion(BaseModel):
    next_text: str
    next_cursor_index: int


class DatasetItem(BaseModel):
    """Image/caption pair loaded from a dataset folder"""
    id: str
    base_name: str
    dir: str
    webp_path: str
    txt_path: str
    original_text: str
    current_text: str
