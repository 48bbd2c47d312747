"""Configuration management using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Neo4j Configuration
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "memograph_password"
    neo4j_database: str = "neo4j"

    # Owner whose graph this process serves
    owner_id: str = Field(
        default="local",
        description="User id that scopes every note, category and relation"
    )

    # Force layout parameters (d3-force defaults where applicable)
    link_distance: float = Field(
        default=100.0,
        description="Target separation of related notes"
    )
    link_distance_min: float = 50.0
    link_distance_max: float = 200.0
    charge_strength: float = Field(
        default=-120.0,
        description="Many-body strength, negative values repel"
    )
    charge_distance_min: float = 1.0
    charge_distance_max: float = Field(
        default=200.0,
        description="Nodes further apart than this do not repel each other"
    )
    center_strength: float = 1.0
    collide_radius: float = 25.0
    collide_strength: float = 1.0
    alpha_decay: float = Field(
        default=0.01,
        description="Slow decay so layouts settle organically"
    )
    alpha_min: float = 0.001
    velocity_decay: float = 0.4
    drag_alpha_target: float = 0.3
    resize_alpha: float = 1.0
    tick_interval: float = Field(
        default=1 / 60,
        description="Seconds between simulation ticks"
    )
    restart_debounce: float = Field(
        default=0.05,
        description="Seconds to coalesce slider/resize restarts"
    )
    release_pin_on_drag_end: bool = Field(
        default=True,
        description="Dragged nodes rejoin the simulation when released"
    )
    layout_seed: int = 42

    # Viewport
    viewport_width: float = 1280.0
    viewport_height: float = 800.0
    zoom_min: float = 0.2
    zoom_max: float = 3.0
    fit_padding: float = Field(
        default=0.9,
        description="Share of the viewport a fitted graph occupies"
    )
    fit_duration: float = Field(
        default=0.75,
        description="Seconds the fit-to-view transition lasts"
    )

    # Node rendering hints
    node_radius_per_importance: float = 2.5
    node_radius_max: float = 15.0
    label_max_length: int = 10

    # Note drafts
    chat_excerpt_messages: int = Field(
        default=10,
        description="Trailing chat messages handed to the summarizer"
    )
    preview_max_chars: int = 100

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False


def get_dev_settings() -> Settings:
    """Get development environment settings."""
    return Settings(
        api_debug=True,
    )


def get_test_settings() -> Settings:
    """Get test environment settings."""
    return Settings(
        neo4j_database="neo4j_test",
        owner_id="test-owner",
        restart_debounce=0.0,
    )


# Global settings instance
settings = Settings()
