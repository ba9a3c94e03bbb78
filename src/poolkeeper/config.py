"""Engine configuration.

Settings are plain values passed explicitly to the session and to the proposal
functions; nothing in the engine reads a process-wide singleton. Defaults match the
pool validator's parameters and can be overridden from the environment:

    POOLKEEPER_SUPPORTED_DATUM_VERSION=1
    POOLKEEPER_LOG_LEVEL=INFO
    POOLKEEPER_MIN_ADA_POOL=3000000
    POOLKEEPER_MIN_ADA_PER_ASSET=344798
    ...

Any field of `MinAdaParameters` can be set with `POOLKEEPER_MIN_ADA_<FIELD>`.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv  # type: ignore
from pydantic import BaseModel
from pydantic import Field
from pydantic import model_validator

ENV_PREFIX = "POOLKEEPER_"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class MinAdaParameters(BaseModel):
    """Lovelace amounts used by the minimum ADA calculator."""

    base: int = 1_000_000
    script: int = 2_000_000
    pool: int = 3_000_000
    factory: int = 2_500_000
    lp_token: int = 2_000_000
    per_asset: int = 344_798
    per_datum_byte: int = 4_310
    max_utxo_size_bytes: int = 16_384
    pool_buffer_pct: int = Field(default=10, gt=0)
    factory_buffer_pct: int = Field(default=5, gt=0)
    lp_token_buffer_pct: int = Field(default=5, gt=0)
    script_buffer_pct: int = Field(default=5, gt=0)

    @model_validator(mode="after")
    def _non_negative(self) -> "MinAdaParameters":
        for name, value in self:
            if value < 0:
                msg = f"{name} must be non-negative: {value}"
                raise ValueError(msg)
        return self


class EngineSettings(BaseModel):
    """Settings shared by the session and the proposal functions."""

    supported_datum_version: int = Field(default=1, ge=1)
    log_level: str = "INFO"
    min_ada: MinAdaParameters = Field(default_factory=MinAdaParameters)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "EngineSettings":
        """Build settings from `POOLKEEPER_*` environment variables.

        A `.env` file is loaded first, without overriding variables that are
        already set.

        Args:
            dotenv_path: Optional explicit path to a `.env` file.

        Returns:
            EngineSettings: Settings with any environment overrides applied.
        """
        load_dotenv(dotenv_path)

        values: dict = {}
        if f"{ENV_PREFIX}SUPPORTED_DATUM_VERSION" in os.environ:
            values["supported_datum_version"] = int(
                os.environ[f"{ENV_PREFIX}SUPPORTED_DATUM_VERSION"],
            )
        if f"{ENV_PREFIX}LOG_LEVEL" in os.environ:
            values["log_level"] = os.environ[f"{ENV_PREFIX}LOG_LEVEL"].upper()

        min_ada = {}
        for name in MinAdaParameters.model_fields:
            env_var = f"{ENV_PREFIX}MIN_ADA_{name.upper()}"
            if env_var in os.environ:
                min_ada[name] = int(os.environ[env_var])
        if min_ada:
            values["min_ada"] = MinAdaParameters(**min_ada)

        return cls(**values)


def configure_logging(settings: Optional[EngineSettings] = None) -> logging.Logger:
    """Apply the package log format and level, returning the package logger."""
    level = (settings or EngineSettings()).log_level
    logging.basicConfig(format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, level=level)
    logger = logging.getLogger("poolkeeper")
    logger.setLevel(level)
    return logger
