from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings

from .errors import InvalidAddressError


def parse_address(address: str, default_host: str = "") -> tuple[str, int]:
    """Split 'host:port' (or '[v6]:port', or ':port') into its parts."""
    host, sep, port = address.strip().rpartition(":")
    if not sep or not port:
        raise InvalidAddressError(f"missing port in address {address!r}")
    try:
        port_num = int(port)
    except ValueError as exc:
        raise InvalidAddressError(f"invalid port in address {address!r}") from exc
    if not 0 < port_num < 65536:
        raise InvalidAddressError(f"port out of range in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if " " in host:
        raise InvalidAddressError(f"invalid host in address {address!r}")
    return host or default_host, port_num


class ForwarderSettings(BaseSettings):
    """Runtime settings, read once at startup.

    Defaults reproduce the fixed behaviour of the Monit forwarder: carbon on
    127.0.0.1:2003, listener on :3005, 60s flush, 500-line chunks, six dials.
    """

    COLLECTOR_ADDRESS: str = "127.0.0.1:2003"
    LISTEN_ADDRESS: str = ":3005"

    FLUSH_INTERVAL_SEC: float = 60.0
    BATCH_SIZE: int = 500
    MAX_DIAL_ATTEMPTS: int = 6
    INITIAL_BACKOFF_MS: int = 100
    MAX_BACKOFF_MS: int = 5000
    DIAL_TIMEOUT_SEC: float = 5.0

    RECORD_QUEUE_CAPACITY: int = 10_000
    SAMPLE_QUEUE_CAPACITY: int = 100_000
    OVERFLOW_STRATEGY: Literal["block", "drop_oldest", "error"] = "block"
    CLASSIFIER_WORKERS: int = 1

    INCLUDE_PROCESS_METRICS: bool = False
    METRICS_PORT: int = 0
    LOG_LEVEL: str = "INFO"

    @field_validator("BATCH_SIZE", "MAX_DIAL_ATTEMPTS", "CLASSIFIER_WORKERS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("FLUSH_INTERVAL_SEC")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("flush interval must be > 0")
        return v

    @property
    def collector(self) -> tuple[str, int]:
        return parse_address(self.COLLECTOR_ADDRESS, default_host="127.0.0.1")

    @property
    def listen(self) -> tuple[str, int]:
        return parse_address(self.LISTEN_ADDRESS, default_host="0.0.0.0")

    class Config:
        env_file = ".env"
        env_prefix = "MONIT_FORWARDER_"
        case_sensitive = False


@lru_cache()
def get_settings() -> ForwarderSettings:
    return ForwarderSettings()
