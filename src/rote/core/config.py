"""Runtime settings read from the environment (and a ``.env`` file, via the CLI)."""

import os
import random
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field

from rote.core.scheduler import DEFAULT_WEIGHTS, FSRSParameters, Scheduler

ENV_PREFIX = "ROTE_"
_TRUE = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Settings shared by the CLI and the web app."""

    paths: list[Path] = Field(default_factory=list)
    desired_retention: float = Field(default=0.9, gt=0.0, lt=1.0)
    maximum_interval: int = Field(default=36500, ge=1)
    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    fuzz: bool = True
    seed: int | None = None
    write_attempts: int = Field(default=3, ge=1)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``ROTE_*`` variables; unset ones keep their defaults.

        ROTE_PATHS is split on ``os.pathsep``, ROTE_WEIGHTS on commas.
        """
        env = os.environ if environ is None else environ
        values: dict = {}

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value and value.strip() else None

        if paths := get("PATHS"):
            values["paths"] = [Path(p) for p in paths.split(os.pathsep) if p]
        if retention := get("DESIRED_RETENTION"):
            values["desired_retention"] = retention
        if maximum := get("MAXIMUM_INTERVAL"):
            values["maximum_interval"] = maximum
        if weights := get("WEIGHTS"):
            values["weights"] = [w.strip() for w in weights.split(",") if w.strip()]
        if fuzz := get("FUZZ"):
            values["fuzz"] = fuzz.lower() in _TRUE
        if seed := get("SEED"):
            values["seed"] = seed
        if attempts := get("WRITE_ATTEMPTS"):
            values["write_attempts"] = attempts

        return cls.model_validate(values)

    def parameters(self) -> FSRSParameters:
        return FSRSParameters(
            weights=self.weights,
            desired_retention=self.desired_retention,
            maximum_interval=self.maximum_interval,
        )

    def scheduler(self, seed: int | None = None) -> Scheduler:
        """Build a Scheduler; fuzz draws from a Random seeded with ``seed`` or ``self.seed``."""
        rng = None
        if self.fuzz:
            rng = random.Random(seed if seed is not None else self.seed)
        return Scheduler(self.parameters(), rng=rng)
