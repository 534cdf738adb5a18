import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "SRS Sentence Service"
    database_url: str = "sqlite:///./srs_sentences.db"
    anki_connect_url: str = "http://127.0.0.1:8765"
    anki_connect_version: int = 5
    anki_timeout: float = 10.0
    openai_base_url: str = "https://api.openai.com/v1"
    llm_timeout: float = 60.0
    jpdb_base_url: str = "https://jpdb.io/api/v1"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_prefix="SRS_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
