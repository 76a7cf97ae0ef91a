from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://postgres:postgres@db:5432/bistro"
    log_level: str = "INFO"
    environment: str = "development"

    # Pricing
    tax_rate: Decimal = Decimal("0.08")
    fallback_tax_rate: Decimal = Decimal("0.18")

    # Order numbering
    order_number_prefix: str = "ORD"
    order_number_width: int = 6
    fallback_order_number_prefix: str = "MB"
    fallback_order_number_width: int = 3

    # Fulfilment estimates (minutes)
    estimated_delivery_minutes: int = 30
    fallback_min_preparation_minutes: int = 15

    # Status lifecycle
    strict_status_transitions: bool = True

    # Degraded mode
    db_probe_interval: float = 15.0
    seed_menu: bool = True

    # Auth
    jwt_secret: str = "bistro-dev-secret"
    jwt_algorithm: str = "HS256"

    # Kafka
    kafka_enabled: bool = True
    kafka_bootstrap_servers: str = "kafka:9092"

    # Observability
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://jaeger:4318/v1/traces"

    model_config = {"env_file": ".env"}

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
