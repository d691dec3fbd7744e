from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from ai_index import settings as settings_module
from ai_index.config import CatalogConfig
from ai_index.exceptions import ConfigFileError
from ai_index.settings import Settings, load_catalog_config, resolve_catalog_config, resolve_run_context

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GITHUB_REPOSITORY", "GITHUB_SHA", "GITHUB_REF_NAME"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings_module, "ENV_FILE", "")


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.repo.resolve() == Path.cwd().resolve()
    assert settings.output_dir == Path("docs")
    assert settings.config is None
    assert settings.no_git is False


@pytest.mark.unit
def test_output_path_is_relative_to_repo(tmp_path: Path) -> None:
    settings = Settings(repo=tmp_path, output_dir=Path("public/ai"))

    assert settings.output_path == tmp_path.resolve() / "public" / "ai"


@pytest.mark.unit
def test_load_catalog_config_reads_yaml(tmp_path: Path) -> None:
    path = tmp_path / "catalog.yml"
    path.write_text(
        "namespace: barkday\n"
        "lists:\n"
        "  - name: ai-notes-list\n"
        "    title: Notes\n"
        "    selector: {prefix: notes/, pattern: '\\.md$'}\n"
        "packs: []\n"
        "inline:\n"
        "  always_full_paths: [dog-gifts.json]\n"
        "shards:\n"
        "  max_items: 50\n",
        encoding="utf-8",
    )

    config = load_catalog_config(path)

    assert config.namespace == "barkday"
    assert [spec.name for spec in config.lists] == ["ai-notes-list"]
    assert config.packs == []
    assert config.combined_names == []
    assert config.inline.always_full_paths == ["dog-gifts.json"]
    assert config.inline.always_full_dirs == ["docs/"]
    assert config.shards.max_items == 50


@pytest.mark.unit
def test_load_catalog_config_rejects_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "catalog.yml"
    path.write_text("shard:\n  max_items: 3\n", encoding="utf-8")

    with pytest.raises(ConfigFileError):
        load_catalog_config(path)


@pytest.mark.unit
def test_load_catalog_config_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "catalog.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigFileError):
        load_catalog_config(path)


@pytest.mark.unit
def test_resolve_catalog_config_applies_cli_overrides(tmp_path: Path) -> None:
    settings = Settings(repo=tmp_path, preview_bytes=0, shard_max_items=7)

    config = resolve_catalog_config(settings)

    assert config.inline.preview_bytes == 0
    assert config.inline.max_inline_text_bytes == CatalogConfig().inline.max_inline_text_bytes
    assert config.shards.max_items == 7


@pytest.mark.unit
def test_resolve_catalog_config_discovers_repo_file(tmp_path: Path) -> None:
    (tmp_path / ".ai-index.yml").write_text("namespace: found\n", encoding="utf-8")

    config = resolve_catalog_config(Settings(repo=tmp_path))

    assert config.namespace == "found"


@pytest.mark.unit
@pytest.mark.usefixtures("clean_env")
def test_resolve_run_context_prefers_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_REPOSITORY", "Owner/Barkday")
    monkeypatch.setenv("GITHUB_SHA", "abc123")
    monkeypatch.setenv("GITHUB_REF_NAME", "release")

    context = resolve_run_context(Settings(repo=tmp_path), CatalogConfig(), updated_utc="2024-05-01T00:00:00Z")

    assert context.repo == "Owner/Barkday"
    assert context.commit == "abc123"
    assert context.default_branch == "release"
    assert context.namespace == "barkday"
    assert context.output_prefix == "docs"
    assert context.updated_utc == "2024-05-01T00:00:00Z"


@pytest.mark.unit
@pytest.mark.usefixtures("clean_env")
def test_resolve_run_context_without_git_uses_defaults(tmp_path: Path, mocker: MockerFixture) -> None:
    query = mocker.patch.object(settings_module, "head_commit")

    context = resolve_run_context(Settings(repo=tmp_path, no_git=True), CatalogConfig())

    query.assert_not_called()
    assert context.repo == ""
    assert context.commit == ""
    assert context.default_branch == "main"
    assert context.namespace == "repo"
    assert context.updated_utc.endswith("Z")


@pytest.mark.unit
@pytest.mark.usefixtures("clean_env")
def test_resolve_run_context_queries_git(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(settings_module, "origin_slug", return_value="owner/site")
    mocker.patch.object(settings_module, "head_commit", return_value="deadbeef")
    mocker.patch.object(settings_module, "current_branch", return_value="")

    context = resolve_run_context(
        Settings(repo=tmp_path, namespace="custom"),
        CatalogConfig(namespace="ignored"),
    )

    assert (context.repo, context.commit, context.default_branch) == ("owner/site", "deadbeef", "main")
    assert context.namespace == "custom"
