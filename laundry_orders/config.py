import os
from typing import List, Literal, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator

from laundry_orders.errors import ConfigurationError

DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "https://yourchore.com",
    "https://www.yourchore.com",
]

# environment variable -> Settings field
ENV_FIELDS = {
    "PORT": "port",
    "APP_ENV": "environment",
    "ALLOWED_ORIGINS": "allowed_origins",
    "STRIPE_SECRET_KEY": "stripe_secret_key",
    "STRIPE_WEBHOOK_SECRET": "stripe_webhook_secret",
    "DATA_DIR": "data_dir",
    "DATABASE_URL": "database_url",
    "ROYALTY_RATE": "royalty_rate",
    "CURRENCY": "currency",
    "LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    """Process configuration, built once at startup and handed to create_app."""
    port: int = Field(default=5000, ge=1, le=65535)
    environment: str = "development"
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ORIGINS))
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    data_dir: str = "data"
    database_url: Optional[str] = None
    royalty_rate: float = Field(default=0.10, ge=0, le=1)
    currency: str = Field(default="usd", min_length=3, max_length=3)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def split_origins(cls, value):
        if isinstance(value, str):
            return [o.strip() for o in value.split(",") if o.strip()] or list(DEFAULT_ORIGINS)
        return value

    @field_validator("stripe_secret_key", "stripe_webhook_secret", "database_url", mode="before")
    @classmethod
    def blank_is_unset(cls, value):
        return value or None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("currency", mode="before")
    @classmethod
    def lower_currency(cls, value):
        return value.lower() if isinstance(value, str) else value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{os.path.join(self.data_dir, 'orders.db')}"

    @property
    def legacy_orders_file(self) -> str:
        return os.path.join(self.data_dir, "orders.json")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 env_file: Optional[str] = ".env") -> "Settings":
        """
        Read settings from the environment, falling back to `env_file` for
        variables the environment does not set. Raises ConfigurationError
        naming every invalid variable.
        """
        values = {}
        if env_file and os.path.exists(env_file):
            values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        values.update(os.environ if environ is None else environ)

        fields = {name: values[var] for var, name in ENV_FIELDS.items() if var in values}
        try:
            return cls(**fields)
        except ValidationError as e:
            field_to_var = {name: var for var, name in ENV_FIELDS.items()}
            problems = [f"{field_to_var.get(err['loc'][0], err['loc'][0])}: {err['msg']}" for err in e.errors()]
            raise ConfigurationError(f"Invalid configuration: {'; '.join(problems)}")
