"""
Ticketdesk - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: str = ""

    # Redis cache
    redis_url: str = "redis://localhost:6379/0"
    enable_cache: bool = True
    cache_socket_timeout: float = 5.0
    cache_max_scan_keys: int = 10000

    # Moderator assignment policy
    assignment_skill_weight: float = 0.5
    assignment_availability_weight: float = 0.3
    assignment_performance_weight: float = 0.2
    assignment_max_capacity: int = 10
    assignment_target_resolution_hours: float = 24.0
    assignment_tie_band: float = 0.05
    assignment_neutral_skill_score: float = 0.5
    assignment_new_moderator_score: float = 0.7

    # Moderator applications
    moderator_request_cooldown_hours: float = 72.0

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    @property
    def cache_configured(self) -> bool:
        """Whether a Redis URL is set and caching is switched on"""
        return self.enable_cache and bool(self.redis_url)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
