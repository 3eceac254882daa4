from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite:///./hospital_lab.db"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    allowed_origins: str = "http://localhost:8501"
    session_ttl_hours: int = 24
    session_cookie_name: str = "token"
    catalog_search_threshold: int = 70
    seed_catalog_on_startup: bool = True


settings = Settings()
