from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Настройки приложения и окружения.
    app_name: str = "Juice Tournament Engine"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"
    database_url: str
    service_role_key: str
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8080"]
    transaction_retries: int = 2

    # Политика экономики по умолчанию для новых турниров (все суммы в центах).
    set_win_credit_cents: int = 300
    starting_credits_cents: int = 2000
    participation_bonus_cents: int = 0
    auto_resolved_credit_cents: int = 0
    allow_negative_balance: bool = False
    max_byes_per_player: int = 1
    no_show_limit: int = 2
    round_duration_days: int = 7
    auction_duration_hours: int = 24

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
