from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Environment names of the optional destinations, keyed by settings field.
DESTINATION_ENV_NAMES: dict[str, str] = {
    "openai_api_key": "OPENAI_API_KEY",
    "n8n_big_ingest_url": "N8N_BIG_INGEST_URL",
    "n8n_image_ingest_url": "N8N_IMAGE_INGEST_URL",
    "n8n_rag_query_url": "N8N_RAG_QUERY_URL",
    "n8n_jobs_builder_url": "N8N_JOBS_BUILDER_URL",
}


class Settings(BaseSettings):
    """
    Application settings managed by pydantic-settings.
    Reads from environment variables and .env file once; immutable afterwards.
    """

    service_name: str = "astig_gateway"
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: str = "*"
    log_level: str = "INFO"
    log_json: bool = False

    # Chat completion capability
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    openai_temperature: float = 0.4
    openai_max_tokens: int = 1000

    # Workflow webhooks
    n8n_big_ingest_url: Optional[str] = None
    n8n_image_ingest_url: Optional[str] = None
    n8n_rag_query_url: Optional[str] = None
    n8n_jobs_builder_url: Optional[str] = None
    webhook_secret_header: str = "X-Astig-Secret"
    webhook_secret: Optional[str] = None

    request_timeout_seconds: float = 30.0
    council_mode: Literal["council", "single"] = "council"
    seats_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def missing_configuration(self) -> list[str]:
        """Environment names of credentials and destinations that are not set."""
        return [
            env_name
            for field_name, env_name in DESTINATION_ENV_NAMES.items()
            if not (getattr(self, field_name) or "").strip()
        ]
