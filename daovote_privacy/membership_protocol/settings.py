"""
Client settings.

Resolved in precedence order: explicit overrides, ``DAOVOTE_*`` environment
variables, the YAML file named by ``DAOVOTE_CONFIG`` (or passed explicitly),
then built-in defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Final, Mapping, Optional

import yaml

from .config import DEFAULT_PROVER_COMMAND, DEFAULT_PROVER_TIMEOUT
from .exceptions import ConfigurationError

_ENV_PREFIX: Final[str] = "DAOVOTE_"
_CONFIG_ENV_VAR: Final[str] = "DAOVOTE_CONFIG"
_VALID_ENCODINGS: Final[tuple[str, ...]] = ("be", "le")


@dataclass(frozen=True)
class ClientSettings:
    relay_url: str = "http://localhost:3001"
    relay_api_key: Optional[str] = None
    circuits_dir: Optional[str] = None
    store_dir: str = str(Path.home() / ".daovote")
    point_encoding: str = "be"
    request_timeout: float = 30.0
    prover_command: str = DEFAULT_PROVER_COMMAND
    prover_timeout: float = float(DEFAULT_PROVER_TIMEOUT)
    poseidon_constants: Optional[str] = None

    def validate(self) -> None:
        if not self.relay_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"relay_url must be an http(s) URL: {self.relay_url!r}")
        if self.point_encoding not in _VALID_ENCODINGS:
            raise ConfigurationError(
                f"Invalid point_encoding: {self.point_encoding!r}. "
                f"Valid options: {', '.join(_VALID_ENCODINGS)}"
            )
        if self.request_timeout <= 0 or self.prover_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")


def _coerce(name: str, raw: Any) -> Any:
    if name in ("request_timeout", "prover_timeout"):
        try:
            return float(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if not isinstance(raw, str):
        return str(raw)
    return raw


def _load_yaml(path: str | Path) -> Dict[str, Any]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {path}: {exc}") from exc
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    return payload


def load_settings(
    config_path: str | Path | None = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ClientSettings:
    """
    Resolve client settings.

    Args:
        config_path: YAML file; defaults to ``$DAOVOTE_CONFIG`` when set
        overrides: Highest-precedence values (e.g. CLI options); None entries
            are ignored
        environ: Environment mapping (defaults to ``os.environ``)

    Raises:
        ConfigurationError: On unreadable files, unknown keys or invalid values
    """
    env = os.environ if environ is None else environ
    known = {f.name for f in fields(ClientSettings)}
    values: Dict[str, Any] = {}

    path = config_path or env.get(_CONFIG_ENV_VAR)
    if path:
        file_values = _load_yaml(path)
        unknown = set(file_values) - known
        if unknown:
            raise ConfigurationError(f"unknown settings in {path}: {', '.join(sorted(unknown))}")
        values.update({k: v for k, v in file_values.items() if v is not None})

    for name in known:
        env_value = env.get(_ENV_PREFIX + name.upper())
        if env_value not in (None, ""):
            values[name] = env_value

    for name, value in (overrides or {}).items():
        if name not in known:
            raise ConfigurationError(f"unknown setting: {name}")
        if value is not None:
            values[name] = value

    settings = ClientSettings(**{name: _coerce(name, value) for name, value in values.items()})
    settings.validate()
    return settings
