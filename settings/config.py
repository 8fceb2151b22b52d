from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # LLM provider (OpenAI-compatible chat completions endpoint)
    PERPLEXITY_API_KEY: str | None = None
    PERPLEXITY_MODEL: str = "sonar"
    PERPLEXITY_BASE_URL: str = "https://api.perplexity.ai"

    # Privacy
    # Comma separated literal terms masked before any external call
    AI_EXTRA_REDACT_WORDS: str = ""
    # Use the flat text path (no column grid) unless the caller asks otherwise
    AI_DEFAULT_REDACT: bool = False

    # Never call the provider; route everything through the local parser
    AI_DISABLE_EXTERNAL: bool = False

    LOG_LEVEL: str = "INFO"
    # Verbose pipeline logging (hashes and lengths only, never statement text)
    DEBUG_AI_PARSE: bool = False

    # CORS
    CORS_ALLOW_ORIGINS: str = "*"

    @property
    def extra_redact_terms(self) -> list[str]:
        return [w.strip() for w in self.AI_EXTRA_REDACT_WORDS.split(",") if w.strip()]

    @property
    def external_enabled(self) -> bool:
        return bool(self.PERPLEXITY_API_KEY) and not self.AI_DISABLE_EXTERNAL

settings = Settings()
