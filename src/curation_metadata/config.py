"""Runtime settings: defaults, environment overrides, CLI overrides."""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from curation_metadata.exceptions import MalformedInput

DEFAULT_TMP_DIR = "tmp"
DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_DELAY = 0.35  # seconds between BioSample batches
USER_AGENT = "curation-metadata/0.1.0"


@dataclass(frozen=True)
class Settings:
    ncbi_api_key: Optional[str] = None
    tmp_dir: Path = Path(DEFAULT_TMP_DIR)
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay: float = DEFAULT_BATCH_DELAY
    user_agent: str = USER_AGENT

    def __post_init__(self):
        if self.batch_size < 1:
            raise MalformedInput(f"batch size must be at least 1, got {self.batch_size}")
        if self.batch_delay < 0:
            raise MalformedInput(f"batch delay must not be negative, got {self.batch_delay}")

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            ncbi_api_key=env.get("NCBI_API_KEY") or None,
            tmp_dir=Path(env.get("CURATION_TMP_DIR") or DEFAULT_TMP_DIR),
            batch_size=_env_number(env, "BIOSAMPLE_BATCH_SIZE", int, DEFAULT_BATCH_SIZE),
            batch_delay=_env_number(env, "BIOSAMPLE_BATCH_DELAY", float, DEFAULT_BATCH_DELAY),
        )

    def override(self, **changes) -> "Settings":
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _env_number(env, name: str, kind, default):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return kind(raw)
    except ValueError:
        raise MalformedInput(f"{name} must be a number, got {raw!r}") from None
