import os
from typing import Mapping, Optional

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_WORKERS = 8


class Config:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT, max_workers: int = DEFAULT_MAX_WORKERS,
                 log_list_path: Optional[str] = None):
        if timeout <= 0:
            raise Exception("timeout must be positive, got {}".format(timeout))
        if max_workers < 1:
            raise Exception("max_workers must be at least 1, got {}".format(max_workers))
        self.timeout = timeout
        self.max_workers = max_workers
        self.log_list_path = log_list_path

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        if environ is None:
            environ = os.environ
        return cls(
            timeout=float(environ.get("SCTAUDIT_TIMEOUT", DEFAULT_TIMEOUT)),
            max_workers=int(environ.get("SCTAUDIT_MAX_WORKERS", DEFAULT_MAX_WORKERS)),
            log_list_path=environ.get("SCTAUDIT_LOG_LIST")
        )
