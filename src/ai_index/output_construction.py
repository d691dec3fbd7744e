from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from ai_index.config import CATALOG_NAME, COMBINED_NAME, EVERYTHING_NAME, INDEX_NAME, CatalogEntry, ListEntry, ShardSummary
from ai_index.exceptions import MissingPackError
from ai_index.file_manipulation import is_generated_artifact, select_records
from ai_index.html_pages import render_combined_page, render_list_page, render_shard_index
from ai_index.inlining import inline_records
from ai_index.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable, Iterator, Sequence

    from ai_index.config import FileRecord, InlineItem, InlinePolicy, ListSpec, PackSpec, RunContext, ShardPolicy


def to_pretty_json(document: Any) -> str:  # noqa: ANN401
    return json.dumps(document, indent=2, ensure_ascii=False)


def to_min_json(document: Any) -> str:  # noqa: ANN401
    return json.dumps(document, ensure_ascii=False, separators=(",", ":"))


def utf8_len(text: str) -> int:
    return len(text.encode("utf-8"))


def write_json_artifact(context: RunContext, name: str, document: dict[str, Any]) -> tuple[str, list[str]]:
    """Write `document` as ``<name>.json``, ``<name>.min.json`` and ``<name>.txt``.

    The ``.txt`` mirror holds the minified form for clients that refuse JSON
    content types.

    Args:
        context (RunContext): the run, providing the output directory
        name (str): artifact base name, e.g. ``ai-pack-docs``
        document (dict[str, Any]): the JSON-ready artifact

    Returns:
        tuple[str, list[str]]: the minified serialization and the display paths written
    """
    context.output_dir.mkdir(parents=True, exist_ok=True)
    pretty = to_pretty_json(document)
    minified = to_min_json(document)
    files: list[str] = []
    for suffix, text in ((".json", pretty), (".min.json", minified), (".txt", minified)):
        filename = f"{name}{suffix}"
        (context.output_dir / filename).write_text(text, encoding="utf-8")
        files.append(context.label(filename))
    return minified, files


def write_html_artifact(context: RunContext, name: str, page: str) -> str:
    context.output_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{name}.html"
    (context.output_dir / filename).write_text(page, encoding="utf-8")
    return context.label(filename)


# ------------------------------ Master index ---------------------------------


def build_index_document(context: RunContext, records: Sequence[FileRecord]) -> dict[str, Any]:
    return {
        "schema": context.schema_id(INDEX_NAME),
        "repo": context.repo,
        "default_branch": context.default_branch,
        "commit": context.commit,
        "updated_utc": context.updated_utc,
        "files_count": len(records),
        "total_bytes": sum(r.size for r in records),
        "files": [r.model_dump(mode="json") for r in records],
    }


def write_index(context: RunContext, records: Sequence[FileRecord]) -> CatalogEntry:
    """Write the master index of every listed file."""
    minified, files = write_json_artifact(context, INDEX_NAME, build_index_document(context, records))
    logger.info("artifact_written", name=INDEX_NAME, items=len(records))
    return CatalogEntry(name=INDEX_NAME, count=len(records), bytes_min=utf8_len(minified), files=files)


# ------------------------------ Lists ----------------------------------------


def write_list(context: RunContext, spec: ListSpec, records: Sequence[FileRecord]) -> CatalogEntry:
    """Write a metadata-only list and its browsing page.

    No file content is read.

    Args:
        context (RunContext): the run
        spec (ListSpec): list name, title and selector
        records (Sequence[FileRecord]): every listed file

    Returns:
        CatalogEntry: summary of the files written
    """
    entries = [ListEntry.from_record(r) for r in select_records(records, spec.selector)]
    document = {
        **context.header(spec.name),
        "count": len(entries),
        "files": [e.model_dump(mode="json") for e in entries],
    }
    minified, files = write_json_artifact(context, spec.name, document)
    files.append(write_html_artifact(context, spec.name, render_list_page(context, spec.title, entries)))
    logger.info("artifact_written", name=spec.name, items=len(entries))
    return CatalogEntry(name=spec.name, count=len(entries), bytes_min=utf8_len(minified), files=files)


# ------------------------------ Inline packs ---------------------------------


def pack_document(context: RunContext, artifact: str, items: Sequence[InlineItem]) -> dict[str, Any]:
    return {
        **context.header(artifact),
        "count": len(items),
        "items": [item.to_payload() for item in items],
    }


def write_pack(
    context: RunContext,
    spec: PackSpec,
    records: Sequence[FileRecord],
    policy: InlinePolicy,
    read: Callable[[str], bytes],
) -> CatalogEntry:
    """Write a named inline pack for the records matched by `spec`."""
    items = list(inline_records(select_records(records, spec.selector), policy, read))
    minified, files = write_json_artifact(context, spec.name, pack_document(context, spec.name, items))
    logger.info("artifact_written", name=spec.name, items=len(items))
    return CatalogEntry(name=spec.name, count=len(items), bytes_min=utf8_len(minified), files=files)


# ------------------------------ Sharded everything pack ----------------------


def pack_shards(items: Iterable[InlineItem], policy: ShardPolicy) -> Iterator[list[InlineItem]]:
    """Group items into consecutive shards.

    A shard closes as soon as its embedded content reaches ``policy.target_bytes``
    or it holds ``policy.max_items`` items. The last, possibly smaller, shard is
    always yielded. Only embedded content counts toward the byte total, so the
    serialized shard is somewhat larger than the target.

    Args:
        items (Iterable[InlineItem]): items in output order
        policy (ShardPolicy): closing thresholds

    Yields:
        list[InlineItem]: each shard's items, in input order
    """
    shard: list[InlineItem] = []
    embedded = 0
    for item in items:
        shard.append(item)
        embedded += item.inline_bytes or 0
        if embedded >= policy.target_bytes or len(shard) >= policy.max_items:
            yield shard
            shard = []
            embedded = 0
    if shard:
        yield shard


def shard_name(index: int) -> str:
    return f"{EVERYTHING_NAME}-{index:04d}"


SHARD_FILE_RE = re.compile(rf"^{re.escape(EVERYTHING_NAME)}-\d{{4}}\.(json|min\.json|txt)$")


def remove_stale_shards(context: RunContext) -> list[str]:
    """Delete shard files left in the output directory by an earlier run.

    Returns:
        list[str]: names of the files removed
    """
    if not context.output_dir.is_dir():
        return []
    removed = []
    for path in sorted(context.output_dir.iterdir()):
        if path.is_file() and SHARD_FILE_RE.match(path.name):
            path.unlink()
            removed.append(path.name)
    if removed:
        logger.info("stale_shards_removed", files=len(removed))
    return removed


def everything_subset(context: RunContext, records: Sequence[FileRecord]) -> list[FileRecord]:
    """All records except git internals and this tool's own previous outputs."""
    return [
        r
        for r in records
        if not r.path.startswith(".git/") and not is_generated_artifact(r.path, context.output_prefix)
    ]


def write_everything(
    context: RunContext,
    records: Sequence[FileRecord],
    policy: InlinePolicy,
    shard_policy: ShardPolicy,
    read: Callable[[str], bytes],
) -> CatalogEntry:
    """Write the sharded everything pack, its manifest and its browsing page.

    Args:
        context (RunContext): the run
        records (Sequence[FileRecord]): every listed file
        policy (InlinePolicy): inline thresholds applied to each file
        shard_policy (ShardPolicy): shard closing thresholds
        read (Callable[[str], bytes]): content reader

    Returns:
        CatalogEntry: summary over all shards, pointing at the manifest and index page
    """
    remove_stale_shards(context)
    items = inline_records(everything_subset(context, records), policy, read)
    shards: list[ShardSummary] = []
    for index, shard in enumerate(pack_shards(items, shard_policy), start=1):
        name = shard_name(index)
        minified, _files = write_json_artifact(context, name, pack_document(context, EVERYTHING_NAME, shard))
        shards.append(
            ShardSummary(
                name=name,
                count=len(shard),
                approx_bytes=utf8_len(minified),
                url_json=context.label(f"{name}.min.json"),
                url_txt=context.label(f"{name}.txt"),
            ),
        )
        logger.info("shard_written", name=name, items=len(shard))

    manifest_name = f"{EVERYTHING_NAME}.manifest"
    manifest = {
        **context.header(manifest_name),
        "shards": [s.model_dump(mode="json") for s in shards],
    }
    _minified, manifest_files = write_json_artifact(context, manifest_name, manifest)
    page = write_html_artifact(context, EVERYTHING_NAME, render_shard_index(context, EVERYTHING_NAME, shards))
    logger.info("artifact_written", name=EVERYTHING_NAME, shards=len(shards))
    return CatalogEntry(
        name=f"{EVERYTHING_NAME} (sharded)",
        count=sum(s.count for s in shards),
        bytes_min=sum(s.approx_bytes for s in shards),
        files=[*manifest_files, page],
    )


# ------------------------------ Combined pack --------------------------------


def read_pack_items(context: RunContext, name: str, written: Collection[str] | None = None) -> list[dict[str, Any]]:
    """Load the items of a pack written to the output directory.

    Raises:
        MissingPackError: if `name` is not among `written` (when given), or
            ``<name>.min.json`` does not exist
    """
    path = context.output_dir / f"{name}.min.json"
    if (written is not None and name not in written) or not path.is_file():
        raise MissingPackError(name=name, expected=path)
    document = json.loads(path.read_text(encoding="utf-8"))
    return list(document.get("items") or [])


def write_combined(
    context: RunContext,
    pack_names: Sequence[str],
    *,
    written: Collection[str] | None = None,
    list_names: Sequence[str] = (),
) -> CatalogEntry:
    """Merge named packs, re-read from disk, into one document keyed by pack name.

    Args:
        context (RunContext): the run
        pack_names (Sequence[str]): packs to merge, in section order
        written (Collection[str] | None): packs written by this run; files left by an
            earlier run are refused when given
        list_names (Sequence[str]): lists linked from the browsing page

    Raises:
        MissingPackError: if one of the packs was not written by this run

    Returns:
        CatalogEntry: summary of the combined pack
    """
    sections: dict[str, dict[str, Any]] = {}
    for name in pack_names:
        items = read_pack_items(context, name, written)
        sections[name] = {"count": len(items), "items": items}
    document = {**context.header(COMBINED_NAME), "sections": sections}
    minified, files = write_json_artifact(context, COMBINED_NAME, document)
    page = render_combined_page(
        context,
        COMBINED_NAME,
        list_names=list_names,
        pack_names=pack_names,
        everything_name=EVERYTHING_NAME,
        pretty_document=to_pretty_json(document),
    )
    files.append(write_html_artifact(context, COMBINED_NAME, page))
    count = sum(section["count"] for section in sections.values())
    logger.info("artifact_written", name=COMBINED_NAME, sections=len(sections), items=count)
    return CatalogEntry(name=f"{COMBINED_NAME} (combined)", count=count, bytes_min=utf8_len(minified), files=files)


# ------------------------------ Catalog --------------------------------------


def write_catalog(context: RunContext, entries: Sequence[CatalogEntry]) -> list[str]:
    """Write the catalog summarizing every artifact family of the run."""
    document = {
        **context.header(CATALOG_NAME),
        "packs": [e.model_dump(mode="json") for e in entries],
    }
    _minified, files = write_json_artifact(context, CATALOG_NAME, document)
    logger.info("artifact_written", name=CATALOG_NAME, entries=len(entries))
    return files
