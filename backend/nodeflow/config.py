"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "nodeflow"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    generation_backend_url: str = "http://localhost:8188/api/generate"
    default_backend: str | None = None
    generation_timeout: float = 120.0
    max_results: int = 20

    model_config = {"env_prefix": "NODEFLOW_"}


settings = Settings()
