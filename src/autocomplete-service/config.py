"""Configuration for Caption Autocomplete Service"""
import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Service
    service_name: str = "caption-autocomplete"
    log_level: str = "INFO"

    # Ollama
    ollama_base_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "qwen2.5:0.5b-instruct"

    # Persisted autocomplete settings
    settings_path: str = os.path.join(
        os.path.expanduser("~"), ".caption-autocomplete", "autocomplete-settings.json"
    )

    # Remote request timing
    overall_timeout_floor_ms: int = 6000  # Hard ceiling never drops below this
    overall_timeout_margin_ms: int = 5000  # Added on top of first-token timeout

    # Context windows sent to the model
    max_left_context: int = 200
    max_right_context: int = 120
    phrase_max_length: int = 64

    # Telemetry
    latency_window_size: int = 60  # Rolling window for median latency
    health_poll_interval_s: float = 15.0

    # Caption saving
    save_debounce_ms: int = 250

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
