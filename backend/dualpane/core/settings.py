from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "dualpane-compare"
    api_prefix: str = "/v1"
    redis_url: str = "redis://redis:6379/0"
    override_ttl_days: int = 180
    session_idle_minutes: int = 60
    cleanup_interval_sec: float = 30.0

    large_doc_char_threshold: int = 120_000
    parse_cache_max_items: int = 50
    parse_cache_max_items_large_doc: int = 5

    ratio_min: float = 0.3
    ratio_max: float = 0.7
    default_ratio: float = 0.5
    coarse_ratios: list[float] = Field(default_factory=lambda: [0.35, 0.45, 0.5, 0.55, 0.65])
    bisect_half_window: float = 0.1
    bisect_iterations_text: int = 6
    bisect_iterations_table: int = 7
    tolerance_text_px: float = 6.0
    tolerance_table_px: float = 4.0
    refine_initial_step: float = 0.04
    refine_rounds: int = 3
    refine_stop_text_px: float = 3.0
    refine_stop_table_px: float = 2.0

    advisor_min_chars: int = 150
    advisor_max_candidates: int = 15
    advisor_min_measurements: int = 2
    advisor_trim_threshold: int = 6

    align_batch_size: int = 5
    equalize_batch_size: int = 10
    batch_delay_ms: float = 0.0
    media_wait_ms: float = 120.0

    pane_container_width_px: float = 960.0
    measure_font_size: float = 16.0
    measure_line_spacing: float = 1.5
    measure_block_gap_px: float = 16.0
    measure_image_height_px: float = 240.0
    measure_font_path: str | None = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    if settings.ratio_min > settings.ratio_max:
        settings.ratio_min, settings.ratio_max = settings.ratio_max, settings.ratio_min
    settings.default_ratio = max(settings.ratio_min, min(settings.ratio_max, settings.default_ratio))
    settings.parse_cache_max_items_large_doc = max(
        1,
        min(settings.parse_cache_max_items_large_doc, settings.parse_cache_max_items),
    )
    return settings
