"""Load minipsqld YAML config and resolve the effective server settings."""

from __future__ import annotations

from dataclasses import replace
import os
import re
import shutil
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from minipsqld.config.options import ServerOption, apply_options
from minipsqld.config.schema import AppConfig, parse_config


DEFAULT_CONFIG_PATH = Path(__file__).with_name("defaults.yml")
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<fallback>[^}]*))?\}")


def load_config(
    path: Path,
    *,
    options: Iterable[ServerOption] = (),
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Read ``path`` and return the config a server started from it would run with.

    ``${NAME}`` and ``${NAME:-fallback}`` references are resolved from
    ``environ`` (the process environment by default). ``options`` are applied
    over the file's ``server`` section, so command-line overrides win.
    """
    if not path.exists():
        raise FileNotFoundError(f"config file does not exist: {path}")
    with path.open("r", encoding="utf-8") as handle:
        document = yaml.safe_load(handle) or {}
    if not isinstance(document, dict):
        raise ValueError(f"config file must contain a mapping: {path}")

    env = os.environ if environ is None else environ
    app_config = parse_config(_resolve_references(document, env, location=""))
    overrides = list(options)
    if not overrides:
        return app_config
    return replace(app_config, server=apply_options(app_config.server, overrides))


def initialize_config(path: Path, force: bool = False) -> Path:
    if path.exists() and not force:
        raise FileExistsError(f"config already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(DEFAULT_CONFIG_PATH, path)
    return path


def _resolve_references(value: Any, env: Mapping[str, str], *, location: str) -> Any:
    if isinstance(value, dict):
        return {
            key: _resolve_references(item, env, location=f"{location}.{key}" if location else str(key))
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_resolve_references(item, env, location=f"{location}[{index}]") for index, item in enumerate(value)]
    if isinstance(value, str) and "${" in value:
        return _substitute(value, env, location=location)
    return value


def _substitute(value: str, env: Mapping[str, str], *, location: str) -> str:
    def _lookup(match: re.Match[str]) -> str:
        name = match.group("name")
        if name in env:
            return env[name]
        fallback = match.group("fallback")
        if fallback is not None:
            return fallback
        raise ValueError(f"'{location}' references unset environment variable '{name}'")

    return _ENV_REFERENCE.sub(_lookup, value)
