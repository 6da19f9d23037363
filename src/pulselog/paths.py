from __future__ import annotations

import os
from pathlib import Path

DATA_ENV_VAR = "PULSELOG_DATA"


def config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "pulselog"


def default_data_path(profile: str | None = None) -> Path:
    name = f"{profile}.json" if profile else "data.json"
    return config_dir() / name


def resolve_data_path(data_arg: str | None, profile: str | None) -> Path:
    """--data wins, then $PULSELOG_DATA, then the (profile) default."""
    if data_arg:
        return Path(data_arg).expanduser().resolve()
    env = os.environ.get(DATA_ENV_VAR)
    if env:
        return Path(env).expanduser().resolve()
    return default_data_path(profile).expanduser().resolve()


def describe_source(data_arg: str | None, profile: str | None) -> str:
    if data_arg:
        return "because you passed --data"
    if os.environ.get(DATA_ENV_VAR):
        return f"because {DATA_ENV_VAR} is set"
    if profile:
        return f"because you used --profile {profile!r}"
    return "default XDG config location"
