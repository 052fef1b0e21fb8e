"""Configuration loading helpers for Bucket-Harvester."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml

from .models import RECIPES_DATASET, DatasetConfig, GlobalConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
DATASET_CONFIG_SUFFIX = ".yaml"
HOME_ENV_VAR = "BUCKET_HARVESTER_HOME"

BUILTIN_DATASETS: dict[str, DatasetConfig] = {RECIPES_DATASET.name: RECIPES_DATASET}


def _slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() or ch == "_" else "-" for ch in name).strip("-")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    outputs_dir: Path | None = None
    datasets_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV_VAR)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.outputs_dir = (self.data_dir / "outputs").resolve()
        self.datasets_dir = (self.data_dir / "datasets").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (
            self.data_dir,
            self.outputs_dir,
            self.datasets_dir,
            self.logs_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME

    def resolve(self, path: Path) -> Path:
        """Resolve a config-relative path against the project root."""

        if path.is_absolute():
            return path
        return (self.project_root / path).resolve()


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            payload = _read_file(path)
            global_cfg = GlobalConfig.model_validate(payload)
        else:
            global_cfg = GlobalConfig()
            self.save_global_config(global_cfg)
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        payload = config.model_dump(mode="json")
        _write_file(path, payload)
        self._global_cache = config

    def outputs_dir(self) -> Path:
        return self.locator.resolve(self.load_global_config().outputs_dir)

    # ------------------------------------------------------------------
    # Dataset configuration helpers
    # ------------------------------------------------------------------
    def dataset_path(self, name: str) -> Path:
        slug = _slugify(name)
        return self.locator.datasets_dir / f"{slug}{DATASET_CONFIG_SUFFIX}"

    def list_dataset_files(self) -> Iterable[Path]:
        for path in sorted(self.locator.datasets_dir.glob("*")):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def list_datasets(self) -> list[DatasetConfig]:
        datasets = dict(BUILTIN_DATASETS)
        for path in self.list_dataset_files():
            config = self.load_dataset(path)
            datasets[config.name] = config
        return [datasets[name] for name in sorted(datasets)]

    def load_dataset(self, identifier: str | Path) -> DatasetConfig:
        path = identifier if isinstance(identifier, Path) else self.dataset_path(identifier)
        if path.exists():
            payload = _read_file(path)
            return DatasetConfig.model_validate(payload)
        if isinstance(identifier, str) and identifier in BUILTIN_DATASETS:
            return BUILTIN_DATASETS[identifier]
        raise FileNotFoundError(f"Dataset configuration not found: {identifier}")

    def save_dataset(self, config: DatasetConfig) -> Path:
        path = self.dataset_path(config.name)
        payload = config.model_dump(mode="json", exclude_none=True)
        _write_file(path, payload)
        return path

    def delete_dataset(self, name: str) -> bool:
        path = self.dataset_path(name)
        if path.exists():
            path.unlink()
            return True
        return False

    def output_path(self, dataset: DatasetConfig) -> Path:
        return dataset.resolved_output_path(self.outputs_dir())


__all__ = [
    "BUILTIN_DATASETS",
    "CONFIG_EXTENSIONS",
    "ConfigLocator",
    "ConfigRepository",
    "HOME_ENV_VAR",
]
