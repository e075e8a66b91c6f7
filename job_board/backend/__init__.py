"""Backend client accessor.

``get_client()`` builds the configured backend once per process and hands
the same instance to every caller. It never raises: when the endpoint URL or
public key is missing, or construction fails, it logs and returns ``None``,
and callers degrade to "feature unavailable".
"""

import logging
import threading
from typing import Optional

from job_board.config import AppConfig, load_config

from .base import SIGNED_IN, SIGNED_OUT, AuthResult, AuthSession, AuthUser, BackendClient

logger = logging.getLogger("job_board.backend")

_UNSET = object()
_instance = _UNSET
_lock = threading.Lock()


def _create_client(config: AppConfig) -> Optional[BackendClient]:
    backend = config.backend
    if backend.mode == "local":
        from .local import LocalBackend

        client = LocalBackend(
            database_url=backend.database_url,
            storage_dir=backend.storage_dir,
            public_base_url=backend.public_base_url,
            signup_quota=backend.signup_quota,
        )
        client.create_all()
        return client

    if not backend.url or not backend.anon_key:
        logger.error(
            "Backend URL or anon key is missing. Make sure JOB_BOARD_BACKEND_URL and "
            "JOB_BOARD_BACKEND_ANON_KEY are set (or backend.url / backend.anon_key in config.yaml)."
        )
        return None

    from .rest import RestBackend

    return RestBackend(backend.url, backend.anon_key, timeout=backend.timeout_seconds)


def get_client(config: Optional[AppConfig] = None) -> Optional[BackendClient]:
    """Return the process-wide backend client, creating it on first use."""
    global _instance
    if _instance is _UNSET:
        with _lock:
            if _instance is _UNSET:
                try:
                    _instance = _create_client(config or load_config(required=False))
                except Exception:
                    logger.exception("Error creating backend client")
                    _instance = None
    return _instance


def set_client(client: Optional[BackendClient]) -> None:
    """Install an explicit client instance."""
    global _instance
    with _lock:
        _instance = client


def reset_client() -> None:
    """Forget the memoized client so the next ``get_client()`` rebuilds it."""
    global _instance
    with _lock:
        if _instance not in (_UNSET, None):
            _instance.close()
        _instance = _UNSET


__all__ = [
    "AuthResult",
    "AuthSession",
    "AuthUser",
    "BackendClient",
    "SIGNED_IN",
    "SIGNED_OUT",
    "get_client",
    "reset_client",
    "set_client",
]
