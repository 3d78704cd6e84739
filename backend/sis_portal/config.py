"""
Configurações centralizadas da aplicação usando Pydantic Settings.

Este módulo carrega e valida todas as variáveis de ambiente do arquivo .env
e fornece uma interface type-safe para acessá-las em toda a aplicação.
"""

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List

# Caminho base do projeto
BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / "backend" / ".env"


class Settings(BaseSettings):
    """Configurações da aplicação."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = "Skills Intelligence System"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    allowed_origins: List[str] = ["http://localhost:3000"]

    # Roteamento de tenants: <subdominio>.<root_domain>
    root_domain: str = "skillsintelligencesystem.co.uk"

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "sis_portal"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_pool_size: int = 20
    postgres_max_overflow: int = 10

    @property
    def postgres_url(self) -> str:
        """URL de conexão PostgreSQL para SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def sync_postgres_url(self) -> str:
        """URL de conexão síncrona para Alembic."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str | None = None

    @property
    def redis_url(self) -> str:
        """URL de conexão Redis."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # JWT emitido pelo provedor de identidade (apenas verificação)
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None

    # Segredos compartilhados com integrações externas
    cron_secret: str | None = None
    auth_sync_secret: str | None = None

    # Celery
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    daily_summary_hour_utc: int = 6
    daily_summary_minute_utc: int = 0

    # PowerBI (service principal)
    powerbi_tenant_id: str | None = None
    powerbi_client_id: str | None = None
    powerbi_client_secret: str | None = None
    powerbi_api_base_url: str = "https://api.powerbi.com/v1.0/myorg"
    powerbi_authority_url: str = "https://login.microsoftonline.com"
    powerbi_scope: str = "https://analysis.windows.net/powerbi/api/.default"

    @property
    def powerbi_configured(self) -> bool:
        """Indica se as credenciais do service principal estão completas."""
        return bool(
            self.powerbi_tenant_id and self.powerbi_client_id and self.powerbi_client_secret
        )

    # Azure OpenAI (valores podem ser sobrescritos em system_settings)
    azure_openai_endpoint: str | None = None
    azure_openai_api_key: str | None = None
    azure_openai_deployment_name: str = "gpt-4o"
    azure_openai_api_version: str = "2024-02-15-preview"
    ai_summary_max_tokens: int = 1000
    ai_summary_temperature: float = 0.7

    # HTTP de saída
    http_timeout_seconds: float = 30.0

    # Observability
    metrics_enabled: bool = True


@lru_cache()
def get_settings() -> Settings:
    """
    Retorna instância cached de Settings.

    Usa lru_cache para garantir que as configurações sejam carregadas
    apenas uma vez e reutilizadas em toda a aplicação.

    Returns:
        Settings: Instância de configurações validadas
    """
    return Settings()
