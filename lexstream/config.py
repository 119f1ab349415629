from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Gemini
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    primary_model: str = "gemini-2.5-flash"
    fallback_model: str = "gemini-2.5-flash-lite"
    request_timeout_seconds: float = 120.0

    # Generation
    generation_temperature: float = 0.7
    generation_top_p: float = 0.95
    generation_top_k: int = 40
    max_output_tokens: int = 8192

    # Citation resolution
    probe_timeout_seconds: float = 10.0
    probe_max_parallel: int = 4
    probe_user_agent: str = (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
    )
    redirect_markers: str = "vertexaisearch,grounding-api-redirect"
    source_denylist: str = (
        "dr.oracle,oracle.ai,oracle.com,google.com/search,google.com/url,internal,tool,generated"
    )

    # Follow-up questions
    follow_up_delimiter: str = "---FOLLOW_UP_QUESTIONS---"
    follow_up_min_length: int = 10
    follow_up_max_items: int = 5

    # Playback pacing
    playback_word_delay_ms: int = 40
    playback_whitespace_delay_ms: int = 10

    # Answers shorter than ~60 words are re-requested once
    short_response_retry: bool = True

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def redirect_marker_list(self) -> list[str]:
        return [m.strip().lower() for m in self.redirect_markers.split(",") if m.strip()]

    @property
    def source_denylist_patterns(self) -> list[str]:
        return [p.strip().lower() for p in self.source_denylist.split(",") if p.strip()]


settings = Settings()
