"""Pytest configuration providing shared fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from bucket_harvester.config import (
    BucketQuery,
    ConfigLocator,
    ConfigRepository,
    DatasetConfig,
)
from bucket_harvester.engine import BucketResponse
from bucket_harvester.errors import TransportError


def make_recipe(
    output: str | None = "Bronze bar",
    materials: Iterable[str] = ("Copper ore", "Tin ore"),
    **extra: Any,
) -> dict[str, Any]:
    """Build a raw Bucket row carrying a recipe payload."""

    payload: dict[str, Any] = {
        "materials": [{"name": name, "quantity": "1", "image": ""} for name in materials],
        "skills": [{"name": "Smithing", "level": "1", "experience": "6.2"}],
        "ticks": "4",
    }
    if output is not None:
        payload["output"] = {"name": output, "quantity": "1", "image": ""}
    payload.update(extra)
    return {"production_json": json.dumps(payload)}


class ScriptedClient:
    """Bucket transport replaying a fixed script of batches or errors.

    Once the script runs out every further call returns an empty batch.
    """

    def __init__(self, script: Iterable[list[dict] | Exception] = ()) -> None:
        self.script = list(script)
        self.calls: list[tuple[int | None, int | None]] = []

    def execute(self, options: BucketQuery) -> BucketResponse:
        self.calls.append((options.offset, options.limit))
        step = self.script.pop(0) if self.script else []
        if isinstance(step, Exception):
            raise step
        return BucketResponse(query="scripted", records=list(step))

    @property
    def offsets(self) -> list[int | None]:
        return [offset for offset, _limit in self.calls]


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recipe() -> Callable[..., dict[str, Any]]:
    return make_recipe


@pytest.fixture
def sample_dataset() -> Callable[..., DatasetConfig]:
    def _builder(**overrides: Any) -> DatasetConfig:
        base: dict[str, Any] = {
            "name": "recipes",
            "query": BucketQuery(bucket="recipe", select=["production_json"]),
        }
        base.update(overrides)
        return DatasetConfig(**base)

    return _builder


@pytest.fixture
def scripted_client() -> Callable[..., ScriptedClient]:
    return ScriptedClient


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def transport_error() -> Callable[..., TransportError]:
    def _builder(status: int = 503) -> TransportError:
        return TransportError(f"HTTP {status}", status_code=status, reason="Service Unavailable")

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("BUCKET_HARVESTER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    return ConfigRepository(locator)
