"""
synapse.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for **deployment** settings: festival identity,
dashboard port, session lifetimes and image limits.  Secrets (database
URL, JWT secret, OAuth client credentials) stay in ``.env``.  Anything an
organiser edits during the festival (page visibility, day pass prices)
lives in the document store instead.

Usage::

    from synapse.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.festival_name)     # "Synapse 2026"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True, slots=True)
class SynapseConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    festival_name: str
    festival_tagline: str

    # Dashboard
    dashboard_port: int

    # Sessions
    session_timeout_minutes: int = 30
    remember_me_days: int = 7

    # Image uploads
    image_max_dimension: int = 800
    image_quality: int = 75


def load_config(path: str | Path = "config.yaml") -> SynapseConfig:
    """Read *path* and return a :class:`SynapseConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return SynapseConfig(
        festival_name=raw["festival_name"],
        festival_tagline=raw.get("festival_tagline", ""),
        dashboard_port=int(raw["dashboard_port"]),
        session_timeout_minutes=int(raw.get("session_timeout_minutes", 30)),
        remember_me_days=int(raw.get("remember_me_days", 7)),
        image_max_dimension=int(raw.get("image_max_dimension", 800)),
        image_quality=int(raw.get("image_quality", 75)),
    )
