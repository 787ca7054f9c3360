"""Configuration settings for segment filters."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Tree model: group levels below the root (root is depth 0).
    FILTER_MAX_TREE_DEPTH: int = 5
    FILTER_MAX_TREE_CONDITIONS: int = 100

    # Legacy tuple format: depth as measured by get_nesting_depth.
    FILTER_MAX_NESTING_DEPTH: int = 2

    FILTER_MAX_CHILDREN_PER_GROUP: int = 10

    LOG_LEVEL: str = "WARNING"

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL.upper()


settings = Settings()
