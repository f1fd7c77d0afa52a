"""Order sink configuration.

Everything comes from the environment (or an optional ``.env`` file) at
process start. A missing project or dataset id is fatal: ``Settings()`` raises
pydantic's ``ValidationError`` before the server binds its port. A missing
webhook secret is allowed but puts signature verification into insecure mode.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

from order_sink.models import TableRef


class Settings(BaseSettings):
    """Environment-driven settings for the webhook sink."""

    project_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("GOOGLE_CLOUD_PROJECT", "PROJECT_ID", "project_id"),
    )
    dataset_id: str = Field(min_length=1)
    orders_table_id: str = "events_orders"
    products_table_id: str = "events_v4_product_metrics_table"

    # Empty/unset -> insecure mode (every signature accepted, loudly)
    shopify_webhook_secret: str | None = None

    port: int = 8080
    log_level: str = "INFO"

    # Durable writer retry policy
    write_max_attempts: int = Field(default=3, ge=1)
    write_retry_base_delay: float = Field(default=0.0, ge=0.0)

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}

    @field_validator("shopify_webhook_secret")
    @classmethod
    def _blank_secret_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def orders_table(self) -> TableRef:
        return TableRef(self.project_id, self.dataset_id, self.orders_table_id)

    @property
    def products_table(self) -> TableRef:
        return TableRef(self.project_id, self.dataset_id, self.products_table_id)
