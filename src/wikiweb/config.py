"""Configuration management using Pydantic Settings."""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SelectionModifier(str, Enum):
    """Modifier key that turns a canvas drag into a box selection."""

    ALT = "alt"
    SHIFT = "shift"
    CTRL = "ctrl"
    META = "meta"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Viewport defaults (replaced by the surface size once attached)
    viewport_width: float = 1200.0
    viewport_height: float = 800.0
    spawn_jitter: float = Field(
        default=300.0,
        description="Width of the random box new nodes are spawned in, centered on the viewport"
    )

    # Force layout
    charge_strength: float = -500.0
    link_distance: float = 150.0
    alpha_min: float = 0.001
    alpha_decay_steps: int = Field(
        default=300,
        description="Number of ticks for alpha to fall from 1 to alpha_min"
    )
    velocity_decay: float = 0.4
    reheat_alpha: float = 0.3
    resize_alpha: float = 0.2
    prune_alpha: float = 1.0
    drag_alpha_target: float = 0.3
    node_size_scale: float = 1.0
    frame_rate: float = 60.0

    # Interaction
    drag_threshold: float = Field(
        default=5.0,
        description="Pointer travel in pixels before a press becomes a drag"
    )
    selection_modifier: SelectionModifier = SelectionModifier.ALT
    zoom_min: float = 0.1
    zoom_max: float = 4.0

    # Update batching
    batch_interval_ms: int = 500

    # History
    history_max_depth: int = 30

    # Path search
    search_max_depth: int = 6
    search_exploration_limit: int = Field(
        default=500,
        description="Hard cap on explored nodes before the search gives up with an error"
    )
    search_log_every: int = 3
    search_progress_every: int = 5
    search_log_size: int = 8

    # Expansion
    expand_max_candidates: int = 15
    topic_backlink_limit: int = 25
    expand_backlink_limit: int = 30

    # Wikipedia content fetch
    wiki_api_url: str = "https://en.wikipedia.org/w/api.php"
    wiki_rest_url: str = "https://en.wikipedia.org/api/rest_v1"
    wiki_user_agent: str = "wikiweb/0.3 (graph explorer)"
    wiki_timeout: float = 15.0
    wiki_max_links: int = 50
    wiki_max_concurrent: int = 8


def get_test_settings() -> Settings:
    """Get test environment settings."""
    return Settings(
        batch_interval_ms=20,
        frame_rate=120.0,
    )


# Global settings instance
settings = Settings()
