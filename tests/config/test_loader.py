from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from bucket_harvester.config import BucketQuery, DatasetConfig, GlobalConfig
from bucket_harvester.config.loader import ConfigLocator, ConfigRepository, _slugify


def test_config_locator_uses_env_and_creates_directories(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("BUCKET_HARVESTER_HOME", str(tmp_path))
    locator = ConfigLocator()
    assert locator.project_root == tmp_path.resolve()
    assert locator.outputs_dir == (tmp_path / "data" / "outputs").resolve()
    assert locator.datasets_dir == (tmp_path / "data" / "datasets").resolve()
    for path in (locator.data_dir, locator.outputs_dir, locator.datasets_dir, locator.logs_dir):
        assert path.exists()


def test_global_config_roundtrip(tmp_path: Path) -> None:
    repo = ConfigRepository(ConfigLocator(project_root=tmp_path))
    config = GlobalConfig(api_base_url="https://wiki.example/api.php", request_timeout=5)
    repo.save_global_config(config)

    fresh = ConfigRepository(repo.locator)
    assert fresh.load_global_config() == config


def test_missing_global_config_is_created(temp_config_repository: ConfigRepository) -> None:
    config = temp_config_repository.load_global_config()
    assert config == GlobalConfig()
    assert temp_config_repository.locator.global_config_path().exists()


def test_builtin_recipes_dataset_available(temp_config_repository: ConfigRepository) -> None:
    dataset = temp_config_repository.load_dataset("recipes")
    assert dataset.query.bucket == "recipe"
    assert [d.name for d in temp_config_repository.list_datasets()] == ["recipes"]
    assert temp_config_repository.output_path(dataset) == (
        temp_config_repository.locator.project_root / "data" / "outputs" / "recipes.json"
    )


def test_dataset_save_load_delete_cycle(temp_config_repository: ConfigRepository) -> None:
    dataset = DatasetConfig(
        name="Item Prices",
        query=BucketQuery(bucket="exchange", select=["json"]),
        payload_field="json",
        key_strategy="fields",
        key_fields=["id"],
    )
    path = temp_config_repository.save_dataset(dataset)
    assert path.name == "item-prices.yaml"
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["name"] == "Item Prices"

    assert temp_config_repository.load_dataset("Item Prices") == dataset
    names = [d.name for d in temp_config_repository.list_datasets()]
    assert names == ["Item Prices", "recipes"]

    assert temp_config_repository.delete_dataset("Item Prices") is True
    assert temp_config_repository.delete_dataset("Item Prices") is False


def test_dataset_file_overrides_builtin(temp_config_repository: ConfigRepository) -> None:
    override = DatasetConfig(
        name="recipes",
        query=BucketQuery(bucket="recipe", select=["production_json"]),
        page_size=100,
    )
    temp_config_repository.save_dataset(override)
    assert temp_config_repository.load_dataset("recipes").page_size == 100


def test_missing_dataset_raises(temp_config_repository: ConfigRepository) -> None:
    with pytest.raises(FileNotFoundError):
        temp_config_repository.load_dataset("missing")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Recipes", "recipes"),
        ("item prices", "item-prices"),
        ("skill_xp", "skill_xp"),
    ],
)
def test_slugify_behaviour(raw: str, expected: str) -> None:
    assert _slugify(raw) == expected
