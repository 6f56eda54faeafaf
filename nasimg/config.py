from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Application configuration settings loaded from environment variables.
    The remote host and its credentials are required; everything else has a default.
    """

    service_name: str = Field(default="nasimg", alias="SERVICE_NAME")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    json_logs: bool = Field(default=False, alias="JSON_LOGS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")

    ssh_host: str = Field(..., alias="SSH_HOST", min_length=1)
    ssh_port: int = Field(default=22, alias="SSH_PORT", ge=1, le=65535)
    ssh_user: str = Field(..., alias="SSH_USER", min_length=1)
    ssh_password: SecretStr = Field(..., alias="SSH_PASSWORD")
    ssh_known_hosts: Path | None = Field(default=None, alias="SSH_KNOWN_HOSTS")
    ssh_connect_timeout: float = Field(default=10.0, alias="SSH_CONNECT_TIMEOUT", gt=0)
    sftp_max_sessions: int = Field(default=4, alias="SFTP_MAX_SESSIONS", ge=1)

    index_root: str = Field(default="/", alias="INDEX_ROOT", min_length=1)

    server_host: str = Field(default="localhost", alias="SERVER_HOST")
    server_port: int = Field(default=3141, alias="SERVER_PORT", ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )

    @field_validator("ssh_password")
    @classmethod
    def password_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("SSH_PASSWORD must not be empty")
        return value
