from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://daybook:daybook@db:5432/daybook"
    APP_ENV: str = "development"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # "json" for log shippers, "text" for a terminal.
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # Narrator (OpenRouter-compatible chat completions)
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    NARRATOR_MODEL: str = "sarvamai/sarvam-m:free"
    NARRATOR_TIMEOUT_SECONDS: float = 60.0
    NARRATOR_TEMPERATURE: float = 0.7
    NARRATOR_APP_TITLE: str = "Daily Memory Journal"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in {"local", "development", "dev", "test"}


settings = Settings()
