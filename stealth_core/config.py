# stealth_core/config.py
import logging
import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """
    Environment-driven settings.

    Environment variables (optional):
      RPC_URL=http://127.0.0.1:8545
      STEALTH_REGISTRY_ADDRESS=0x...   # overrides the per-chain default
      HTTP_TIMEOUT_S=1.5
      SCAN_WORKERS=1
    """
    model_config = ConfigDict(frozen=True)

    rpc_url: str = "http://127.0.0.1:8545"
    registry_address: Optional[str] = None
    http_timeout_s: float = 1.5
    scan_workers: int = 1

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            path = find_dotenv(usecwd=True)
            if path:
                load_dotenv(path)
                logger.debug("[config] .env loaded from: %s", path)

        return cls(
            rpc_url=os.getenv("RPC_URL", "http://127.0.0.1:8545"),
            registry_address=os.getenv("STEALTH_REGISTRY_ADDRESS", "").strip() or None,
            http_timeout_s=float(os.getenv("HTTP_TIMEOUT_S", "1.5")),
            scan_workers=int(os.getenv("SCAN_WORKERS", "1")),
        )
