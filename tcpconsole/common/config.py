"""Server configuration model and environment-provided prompt defaults."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


DEFAULT_SERVER_IP = os.getenv("TCPCONSOLE_SERVER_IP", "127.0.0.1")
DEFAULT_SERVER_PORT = _env_int("TCPCONSOLE_SERVER_PORT", 9000)
DEFAULT_CERT_FILE = os.getenv("TCPCONSOLE_CERT_FILE", "test.pfx")
DEFAULT_CERT_PASSWORD = os.getenv("TCPCONSOLE_CERT_PASSWORD", "password")
DEFAULT_PRESHARED_KEY = os.getenv("TCPCONSOLE_PRESHARED_KEY", "1234567812345678")
LOG_LEVEL = os.getenv("TCPCONSOLE_LOG_LEVEL", "INFO").upper()

MIN_PORT = 1
MAX_PORT = 65535


class ServerConfig(BaseModel):
    """Startup configuration collected from the operator. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    server_ip: str = Field(default=DEFAULT_SERVER_IP, min_length=1)
    server_port: int = Field(default=DEFAULT_SERVER_PORT, ge=MIN_PORT, le=MAX_PORT)
    use_ssl: bool = False
    cert_file: Optional[str] = None  # PKCS#12 bundle path
    cert_password: Optional[str] = None
    accept_invalid_certs: bool = False
    mutual_authentication: bool = False

    @model_validator(mode="before")
    @classmethod
    def _unset_tls_fields(cls, data):
        # TLS-only fields carry no meaning for a plaintext server
        if isinstance(data, dict) and not data.get("use_ssl"):
            data = dict(data)
            data["cert_file"] = None
            data["cert_password"] = None
            data["accept_invalid_certs"] = False
            data["mutual_authentication"] = False
        return data

    @model_validator(mode="after")
    def _require_cert_for_tls(self):
        if self.use_ssl and not self.cert_file:
            raise ValueError("cert_file is required when use_ssl is enabled")
        return self

    @property
    def endpoint(self) -> str:
        return f"{self.server_ip}:{self.server_port}"
