from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_env: str = "dev"
    database_url: str | None = None
    log_level: str = "INFO"

    # ETL defaults, overridable per run from config/france_monthly.yaml
    etl_batch_size: int = 500
    etl_use_transaction: bool = True
    etl_dry_run: bool = False
    population_fallback_year: int = 2024
    france_monthly_source_code: str = "ETAT4001_MONTHLY"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
