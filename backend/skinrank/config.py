from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Search provider (SerpAPI)
    serpapi_api_key: str = ""
    serpapi_base_url: str = "https://serpapi.com/search.json"
    search_timeout_seconds: float = 10.0

    # Cascade
    min_candidates: int = 8
    sweep_concurrency: int = 1

    # Ranking
    top_n: int = 12
    default_region: str = "in"

    # App
    environment: str = "development"
    log_level: str = "INFO"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000


settings = Settings()
