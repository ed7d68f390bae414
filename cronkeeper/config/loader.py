"""YAML configuration loader utilities."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from cronkeeper.config.models import CronkeeperSettings


class ConfigLoadError(ValueError):
    """Raised when configuration YAML cannot be parsed."""


class YAMLConfigLoader:
    """Load cronkeeper.yaml with deterministic path resolution."""

    DEFAULT_FILENAME = "cronkeeper.yaml"

    @classmethod
    def resolve_path(cls, path: str | None = None) -> Path:
        """Resolve config path by priority: env -> argument -> cwd default."""
        env_path = os.environ.get("CRONKEEPER_CONFIG", "").strip()
        if env_path:
            return Path(env_path)
        if path and path.strip():
            return Path(path.strip())
        return Path.cwd() / cls.DEFAULT_FILENAME

    @classmethod
    def load_dict(cls, path: str | Path | None = None) -> dict[str, Any]:
        """Load YAML into dict. Missing or empty file yields empty dict."""
        target = Path(path) if path is not None else cls.resolve_path()
        if not target.exists():
            return {}
        text = target.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            if mark is not None:
                raise ConfigLoadError(
                    f"Invalid YAML at {target}:{mark.line + 1}:{mark.column + 1}"
                ) from exc
            raise ConfigLoadError(f"Invalid YAML at {target}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(f"Config root must be mapping: {target}")
        return _normalize_keys(data)


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    # YAML files may use dashed option names (lock-refresh-interval).
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        name = str(key).replace("-", "_")
        normalized[name] = _normalize_keys(value) if isinstance(value, dict) else value
    return normalized


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in updates.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _coerce_env_value(raw: str) -> Any:
    value = raw.strip()
    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if value.startswith("[") or value.startswith("{"):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _collect_env_overrides(prefix: str = "CRONKEEPER_") -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key, raw_value in os.environ.items():
        if not key.startswith(prefix) or key == f"{prefix}CONFIG":
            continue
        suffix = key[len(prefix) :]
        path = [p.strip().lower() for p in suffix.split("__") if p.strip()]
        if not path:
            continue
        cursor = overrides
        for part in path[:-1]:
            existing = cursor.get(part)
            if not isinstance(existing, dict):
                existing = {}
                cursor[part] = existing
            cursor = existing
        cursor[path[-1]] = _coerce_env_value(raw_value)
    return overrides


def load_settings(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> CronkeeperSettings:
    """Load configuration from defaults + YAML + environment + explicit overrides."""
    yaml_data = YAMLConfigLoader.load_dict(YAMLConfigLoader.resolve_path(config_path))
    merged = _deep_merge(yaml_data, _collect_env_overrides())
    merged = _deep_merge(merged, _normalize_keys(overrides or {}))
    return CronkeeperSettings.model_validate(merged)
