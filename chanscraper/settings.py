from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class ChanSettings(BaseSettings):
    """
    Environment-driven settings for the chan client and the fetch runner.
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    # ---- Site ----
    base_url: str = Field(default="https://bharatchan.com", alias="CHAN_BASE_URL")

    # ---- Transport ----
    request_timeout_sec: float = Field(default=10.0, alias="CHAN_REQUEST_TIMEOUT_SEC")
    request_delay_sec: float = Field(default=1.0, alias="CHAN_REQUEST_DELAY_SEC")

    # 429 handling: delay doubles per throttle signal, capped at backoff_max_sec
    backoff_max_sec: float = Field(default=30.0, alias="CHAN_BACKOFF_MAX_SEC")
    max_throttle_retries: int = Field(default=1, alias="CHAN_MAX_THROTTLE_RETRIES")

    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
        alias="CHAN_USER_AGENT",
    )

    # ---- Cache ----
    cache_enabled: bool = Field(default=True, alias="CHAN_CACHE_ENABLED")
    cache_ttl_sec: float = Field(default=300.0, alias="CHAN_CACHE_TTL_SEC")

    # ---- Runner ----
    board_id: str = Field(default="b", alias="CHAN_BOARD_ID")
    page: int = Field(default=1, alias="CHAN_PAGE")
    max_threads_to_print: int = Field(default=5, alias="CHAN_MAX_THREADS_TO_PRINT")

    dump_html_on_empty: bool = Field(default=True, alias="CHAN_DUMP_HTML_ON_EMPTY")
    dump_html_path: str = Field(default="debug_board_page.html", alias="CHAN_DUMP_HTML_PATH")


def load_settings() -> ChanSettings:
    return ChanSettings()
