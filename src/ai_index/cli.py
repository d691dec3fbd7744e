# /// script
# requires-python = ">=3.13"
# dependencies = [
#     "pydantic",
#     "python-dotenv",
#     "pyyaml",
#     "structlog",
# ]
# ///
"""
ai_index: Publish static, machine-readable catalogs of a git repository.

Overview
--------
Lists the files git tracks at one revision and writes, under an output
directory (``docs/`` by default):

1) **Master index** (``ai-index``): every tracked file with size, blob id,
   media type and raw/browse URLs.
2) **Lists** (``ai-*-list``): metadata-only subsets with an HTML page.
3) **Inline packs** (``ai-pack-*``): subsets with file content embedded in
   full, as a truncated preview, or not at all depending on size.
4) **Everything pack** (``ai-pack-everything-NNNN``): every file, split into
   bounded shards, with a manifest and an HTML index.
5) **Combined pack** (``ai-pack-all``): named packs merged into one document.
6) **Catalog** (``ai-pack-catalog``): what the run produced.

Each JSON artifact is written pretty (``.json``), minified (``.min.json``) and
as a ``.txt`` mirror of the minified form.

It prefers ``git ls-tree`` at the revision, and falls back to a filesystem walk
when git is unavailable or disabled (``--no-git``). Artifact definitions can be
customized in ``.ai-index.yml``.

Usage
-----
Run ``python -m ai_index.cli --help`` for full options. Common examples:
    - Default catalogs into docs/:
        uv run ai-index
    - Another repository, custom output directory:
        uv run ai-index --repo ../site --output-dir public/ai
    - Smaller shards, no previews:
        uv run ai-index --shard-max-items 100 --preview-bytes 0
    - Log to a file:
        uv run ai-index --log-file ai-index.log
"""

from __future__ import annotations

import argparse
from typing import TYPE_CHECKING

from ai_index import __version__
from ai_index.exceptions import MissingPackError
from ai_index.file_manipulation import list_repository, make_blob_reader
from ai_index.logging import logger, setup_logging
from ai_index.output_construction import (
    write_catalog,
    write_combined,
    write_everything,
    write_index,
    write_list,
    write_pack,
)
from ai_index.settings import Settings, resolve_catalog_config, resolve_run_context

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ai_index.config import CatalogEntry


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = argparse.ArgumentParser(
        description="Write static AI-friendly catalogs (index, lists, packs, shards) of a git repository.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--repo", type=str, default=".", help="Repository root.")
    p.add_argument(
        "--output-dir",
        type=str,
        default="docs",
        help="Output directory (relative to the repository root unless absolute).",
    )
    p.add_argument("--config", type=str, default=None, help="YAML catalog configuration.")
    p.add_argument("--repo-name", type=str, default=None, help="Repository identity (owner/name).")
    p.add_argument("--commit", type=str, default=None, help="Revision to index.")
    p.add_argument("--branch", type=str, default=None, help="Default branch name.")
    p.add_argument("--namespace", type=str, default=None, help="Schema namespace.")
    p.add_argument("--no-git", action="store_true", help="Do not use git; walk the filesystem.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")

    p.add_argument(
        "--max-inline-text-bytes",
        type=int,
        default=None,
        help="Inline text files up to this size in full.",
    )
    p.add_argument(
        "--max-inline-binary-bytes",
        type=int,
        default=None,
        help="Inline binary files up to this size as base64.",
    )
    p.add_argument(
        "--preview-bytes",
        type=int,
        default=None,
        help="Preview budget for larger text files (0 disables).",
    )
    p.add_argument(
        "--shard-target-bytes",
        type=int,
        default=None,
        help="Embedded bytes closing an everything shard.",
    )
    p.add_argument(
        "--shard-max-items",
        type=int,
        default=None,
        help="Items closing an everything shard.",
    )
    args = p.parse_args(argv)
    return Settings(**vars(args))


def main(argv: Sequence[str] | None = None, *, updated_utc: str | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    repo = settings.repo_root
    use_git = not settings.no_git
    catalog_config = resolve_catalog_config(settings)
    context = resolve_run_context(settings, catalog_config, updated_utc=updated_utc)

    listing = list_repository(repo, context, use_git=use_git)
    logger.info("repository_listed", source=str(listing.source), files=len(listing.records))
    records = listing.records
    read = make_blob_reader(repo, context.commit, use_git=use_git and not listing.is_fallback)

    entries: list[CatalogEntry] = [write_index(context, records)]
    entries.extend(write_list(context, spec, records) for spec in catalog_config.lists)
    pack_entries = [write_pack(context, spec, records, catalog_config.inline, read) for spec in catalog_config.packs]
    entries.extend(pack_entries)
    entries.append(write_everything(context, records, catalog_config.inline, catalog_config.shards, read))

    exit_code = 0
    try:
        entries.append(
            write_combined(
                context,
                catalog_config.combined_names,
                written=[e.name for e in pack_entries],
                list_names=[spec.name for spec in catalog_config.lists],
            ),
        )
    except MissingPackError as e:
        logger.error("combined_pack_failed", error=str(e))  # noqa: TRY400
        exit_code = 1

    write_catalog(context, entries)
    print(f"Wrote {len(entries)} artifact families to {context.output_dir} files={len(records)} source={listing.source}")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
