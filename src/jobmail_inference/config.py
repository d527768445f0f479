"""
Configuration settings for the job-mail inference service.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Job Mail Inference"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === Ollama Configuration ===
    OLLAMA_BASE_URL: str = "http://ollama:11434"
    OLLAMA_TIMEOUT: int = 30  # seconds; the invoker deadline is the real bound
    STAGE1_MODEL: str = "llama3.2:3b"
    STAGE2_MODEL: str = "llama3.2:3b"

    # === Stage 1 (job-related gate) ===
    STAGE1_TIMEOUT_MS: int = 3000
    STAGE1_MAX_TOKENS: int = 48
    STAGE1_CONTEXT_SIZE: int = 512
    STAGE1_BATCH_SIZE: int = 512
    STAGE1_BODY_MAX_CHARS: int = 800

    # === Stage 2 (field extraction) ===
    STAGE2_TIMEOUT_MS: int = 6000
    STAGE2_MAX_TOKENS: int = 100
    STAGE2_CONTEXT_SIZE: int = 1024
    STAGE2_BATCH_SIZE: int = 512
    STAGE2_BODY_MAX_CHARS: int = 1500
    STAGE2_BODY_TAIL_CHARS: int = 400

    LLM_TEMPERATURE: float = 0.0

    # === Session Pool ===
    SESSION_MAX_USES: int = 10
    INFERENCE_MAX_CONCURRENT: int = 2

    # === Prompts & Schemas ===
    PROMPT_TEMPLATES_DIR: str = ""  # empty = bundled templates
    JSON_SCHEMA_DIR: str = ""  # empty = bundled schemas

    # === Tiered Cache ===
    CACHE_BODY_PREFIX_CHARS: int = 500
    CACHE_CLASSIFICATION_TTL_SECONDS: int = 24 * 3600
    CACHE_CLASSIFICATION_MAX_ENTRIES: int = 1000
    CACHE_PARSE_TTL_SECONDS: int = 12 * 3600
    CACHE_PARSE_MAX_ENTRIES: int = 500
    CACHE_MANUAL_RECORD_TTL_SECONDS: int = 3600
    CACHE_MANUAL_RECORD_MAX_ENTRIES: int = 200
    CACHE_CONFLICT_CHECK_TTL_SECONDS: int = 30 * 60
    CACHE_CONFLICT_CHECK_MAX_ENTRIES: int = 100
    CACHE_DUPLICATE_CHECK_TTL_SECONDS: int = 6 * 3600
    CACHE_DUPLICATE_CHECK_MAX_ENTRIES: int = 300
    CACHE_MANUAL_EDITED_TTL_SECONDS: int = 5 * 60
    CACHE_HYBRID_TTL_SECONDS: int = 15 * 60
    CACHE_SWEEP_INTERVAL_SECONDS: int = 30 * 60
    CACHE_PERSISTENCE_ENABLED: bool = False

    # === Duplicate Detection ===
    DUPLICATE_EXACT_WINDOW_DAYS: int = 90
    DUPLICATE_FUZZY_WINDOW_DAYS: int = 180
    DUPLICATE_DOMAIN_WINDOW_DAYS: int = 90
    DUPLICATE_SEMANTIC_WINDOW_DAYS: int = 60
    DUPLICATE_TEMPORAL_WINDOW_DAYS: int = 7
    DUPLICATE_FUZZY_THRESHOLD: float = 0.75
    DUPLICATE_HIGH_THRESHOLD: float = 0.85
    DUPLICATE_SEMANTIC_THRESHOLD: float = 0.7

    # === Conflict Resolution ===
    CONFIDENCE_HIGH: float = 0.9
    CONFIDENCE_MEDIUM: float = 0.7
    CONFIDENCE_LOW: float = 0.5

    # === Record Store ===
    RECORD_STORE_BACKEND: str = "memory"  # memory | redis

    # === Redis & Celery ===
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/1"
    CELERY_TASK_TIME_LIMIT: int = 300  # seconds
    CELERY_WORKER_CONCURRENCY: int = 2

    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True


# Global settings instance
settings = Settings()
