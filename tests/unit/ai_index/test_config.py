from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from ai_index.config import (
    DEFAULT_MEDIA_TYPE,
    CatalogConfig,
    FileRecord,
    FileSelector,
    InlineItem,
    InlineState,
    RunContext,
    guess_media_type,
    is_text_path,
)


@pytest.mark.unit
def test_guess_media_type_uses_extension_table_with_default() -> None:
    assert guess_media_type("docs/Guide.MD") == "text/markdown"
    assert guess_media_type("app.mjs") == "application/javascript"
    assert guess_media_type("bin/tool") == DEFAULT_MEDIA_TYPE
    assert guess_media_type("archive.tar.gz") == DEFAULT_MEDIA_TYPE


@pytest.mark.unit
def test_is_text_path_accepts_text_set_and_text_media_types() -> None:
    assert is_text_path("logo.svg")
    assert is_text_path("scripts/run.sh")
    assert not is_text_path("logo.png")
    assert not is_text_path("report.pdf")


@pytest.mark.unit
def test_file_record_rejects_negative_size() -> None:
    with pytest.raises(ValidationError):
        FileRecord(path="a.txt", size=-1)


@pytest.mark.unit
def test_selector_combines_prefix_and_pattern() -> None:
    selector = FileSelector(prefix="docs/", pattern=r"\.mdx?$")

    assert selector.matches(FileRecord(path="docs/intro.md", size=1))
    assert selector.matches(FileRecord(path="docs/deep/page.MDX", size=1))
    assert not selector.matches(FileRecord(path="docs/logo.png", size=1))
    assert not selector.matches(FileRecord(path="Docs/intro.md", size=1))


@pytest.mark.unit
def test_selector_prefix_can_ignore_case() -> None:
    selector = FileSelector(prefix="data/", prefix_ignore_case=True, pattern=r"\.ya?ml$")

    assert selector.matches(FileRecord(path="Data/config.yml", size=1))


@pytest.mark.unit
def test_selector_exact_paths_take_precedence() -> None:
    selector = FileSelector(prefix="src/", paths=["index.html"])

    assert selector.matches(FileRecord(path="index.html", size=1))
    assert not selector.matches(FileRecord(path="src/app.js", size=1))


@pytest.mark.unit
def test_selector_rejects_invalid_pattern() -> None:
    with pytest.raises(ValidationError):
        FileSelector(pattern="(unclosed")


@pytest.mark.unit
def test_inline_item_none_state_forbids_content() -> None:
    with pytest.raises(ValidationError):
        InlineItem(
            path="a.txt",
            size=1,
            inline_state=InlineState.NONE,
            max_inline_text_bytes=1,
            max_inline_bin_bytes=1,
            preview_text_bytes=1,
            content="a",
        )


@pytest.mark.unit
def test_default_catalog_combines_every_pack_in_order() -> None:
    config = CatalogConfig()

    assert config.combined_names == ["ai-pack-docs", "ai-pack-data-config", "ai-pack-core", "ai-pack-ci"]
    assert [spec.name for spec in config.lists] == ["ai-docs-list", "ai-data-list", "ai-data-config-list"]


@pytest.mark.unit
def test_default_core_pack_selects_top_level_app_files() -> None:
    core = next(p for p in CatalogConfig().packs if p.name == "ai-pack-core")

    assert core.selector.matches(FileRecord(path="index.html", size=1))
    assert core.selector.matches(FileRecord(path="manifest.json", size=1))
    assert not core.selector.matches(FileRecord(path="js/runtime.js", size=1))


@pytest.mark.unit
def test_run_context_schema_and_labels() -> None:
    context = RunContext(updated_utc="2024-01-01T00:00:00Z", namespace="site", output_dir=Path("/tmp/x"))

    assert context.schema_id("ai-index") == "site.ai-index.v1"
    assert context.label("ai-index.json") == "docs/ai-index.json"
    assert context.header("ai-pack-ci")["schema"] == "site.ai-pack-ci.v1"
