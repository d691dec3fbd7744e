from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ai_index.config import (
    DEFAULT_BRANCH,
    DEFAULT_CONFIG_FILE,
    DEFAULT_NAMESPACE,
    DEFAULT_OUTPUT_DIR,
    CatalogConfig,
    RunContext,
)
from ai_index.exceptions import ConfigFileError
from ai_index.file_manipulation import current_branch, head_commit, now_utc, origin_slug, relpath
from ai_index.logging import logger

ENV_FILE = find_dotenv(usecwd=True)


class Settings(BaseModel):
    """Configuration settings for the ai_index command."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    repo: Path = Field(default_factory=Path.cwd, description="Repository root.")
    output_dir: Path = Field(
        default=Path(DEFAULT_OUTPUT_DIR),
        description="Output directory, relative to the repository root unless absolute.",
    )
    config: Path | None = Field(default=None, description="YAML catalog configuration file.")
    repo_name: str | None = Field(default=None, description="Repository identity (owner/name).")
    commit: str | None = Field(default=None, description="Revision to index.")
    branch: str | None = Field(default=None, description="Default branch name.")
    namespace: str | None = Field(default=None, description="Schema namespace.")
    no_git: bool = Field(default=False, description="Do not use git; walk the filesystem.")
    log_file: str = Field(default="", description="Log file path.")

    max_inline_text_bytes: int | None = Field(
        default=None,
        ge=0,
        description="Text files up to this size are inlined in full.",
    )
    max_inline_binary_bytes: int | None = Field(
        default=None,
        ge=0,
        description="Binary files up to this size are inlined as base64.",
    )
    preview_bytes: int | None = Field(
        default=None,
        ge=0,
        description="Preview budget for larger text files (0 disables previews).",
    )
    shard_target_bytes: int | None = Field(
        default=None,
        gt=0,
        description="Embedded bytes closing a shard.",
    )
    shard_max_items: int | None = Field(default=None, gt=0, description="Items closing a shard.")

    @property
    def repo_root(self) -> Path:
        return self.repo.resolve()

    @property
    def output_path(self) -> Path:
        if self.output_dir.is_absolute():
            return self.output_dir
        return self.repo_root / self.output_dir


def load_catalog_config(path: Path) -> CatalogConfig:
    """Load and validate a YAML catalog configuration.

    Args:
        path (Path): the YAML file

    Raises:
        ConfigFileError: if the file cannot be read, parsed or validated

    Returns:
        CatalogConfig: the validated configuration
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigFileError(file=path, message=f"Unable to read catalog configuration: {e}") from e
    if not isinstance(data, dict):
        raise ConfigFileError(file=path, message="Catalog configuration must be a mapping.")
    try:
        return CatalogConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigFileError(file=path, message=f"Invalid catalog configuration: {e}") from e


def resolve_catalog_config(settings: Settings) -> CatalogConfig:
    """Load the catalog configuration and apply the command-line threshold overrides.

    ``--config`` wins; otherwise ``.ai-index.yml`` at the repository root is used
    when present; otherwise the built-in defaults.
    """
    path = settings.config
    if path is None:
        candidate = settings.repo_root / DEFAULT_CONFIG_FILE
        path = candidate if candidate.is_file() else None
    config = load_catalog_config(path) if path is not None else CatalogConfig()
    if path is not None:
        logger.info("catalog_config_loaded", file=str(path))

    inline_overrides = {
        k: v
        for k, v in {
            "max_inline_text_bytes": settings.max_inline_text_bytes,
            "max_inline_binary_bytes": settings.max_inline_binary_bytes,
            "preview_bytes": settings.preview_bytes,
        }.items()
        if v is not None
    }
    shard_overrides = {
        k: v
        for k, v in {
            "target_bytes": settings.shard_target_bytes,
            "max_items": settings.shard_max_items,
        }.items()
        if v is not None
    }
    return config.model_copy(
        update={
            "inline": config.inline.model_copy(update=inline_overrides),
            "shards": config.shards.model_copy(update=shard_overrides),
        },
    )


def _namespace_from_repo(repo: str) -> str:
    name = repo.rsplit("/", 1)[-1].strip().lower()
    return name or DEFAULT_NAMESPACE


def resolve_run_context(
    settings: Settings,
    catalog: CatalogConfig,
    *,
    updated_utc: str | None = None,
) -> RunContext:
    """Work out repository identity, revision and branch for this run.

    Each value comes from the command line, then the CI environment
    (``GITHUB_REPOSITORY``, ``GITHUB_SHA``, ``GITHUB_REF_NAME``, after loading
    ``.env``), then a local git query. The branch finally defaults to ``main``.

    Args:
        settings (Settings): command-line settings
        catalog (CatalogConfig): catalog configuration (for the namespace)
        updated_utc (str | None): timestamp override; defaults to now

    Returns:
        RunContext: the identity shared by every artifact of the run
    """
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)
    root = settings.repo_root
    use_git = not settings.no_git

    repo = settings.repo_name or os.environ.get("GITHUB_REPOSITORY") or (origin_slug(root) if use_git else "")
    commit = settings.commit or os.environ.get("GITHUB_SHA") or (head_commit(root) if use_git else "")
    branch = (
        settings.branch
        or os.environ.get("GITHUB_REF_NAME")
        or (current_branch(root) if use_git else "")
        or DEFAULT_BRANCH
    )
    if not repo:
        logger.warning("repository_identity_unknown", detail="continuing with minimal metadata")
    namespace = settings.namespace or catalog.namespace or _namespace_from_repo(repo)

    output_path = settings.output_path
    return RunContext(
        repo=repo,
        default_branch=branch,
        commit=commit,
        updated_utc=updated_utc or now_utc(),
        namespace=namespace,
        output_dir=output_path,
        output_prefix=relpath(output_path, root),
    )
