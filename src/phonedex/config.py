from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./phonedex.db"

    # Ingestion input
    data_dir: str = "parsed_data"
    sources: list[str] = ["flipkart", "croma", "reliance", "amazon"]
    progress_every: int = 50

    # Matching
    fuzzy_match_threshold: float = 0.4   # trigram floor for fuzzy phases (0..1, strict >)
    validation_threshold: int = 90       # brand/model validation accept score (0..100)

    # Catalog
    default_category: str = "Smartphones"
    fallback_category: str = "others"
    price_history_limit: int = 30

    # Log
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "PHONEDEX_"}


settings = Settings()
