from __future__ import annotations

import re
from enum import StrEnum, auto
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_MEDIA_TYPE = "application/octet-stream"
DEFAULT_BRANCH = "main"
DEFAULT_NAMESPACE = "repo"
DEFAULT_OUTPUT_DIR = "docs"
DEFAULT_CONFIG_FILE = ".ai-index.yml"

ARTIFACT_PREFIX = "ai-"
INDEX_NAME = "ai-index"
EVERYTHING_NAME = "ai-pack-everything"
COMBINED_NAME = "ai-pack-all"
CATALOG_NAME = "ai-pack-catalog"

RAW_URL_TEMPLATE = "https://raw.githubusercontent.com/{repo}/{commit}/{path}"
HTML_URL_TEMPLATE = "https://github.com/{repo}/blob/{commit}/{path}"

KIB = 1024
MIB = 1024 * KIB

EXT2MEDIA: dict[str, str] = {
    ".bash": "text/x-shellscript",
    ".cfg": "text/plain",
    ".css": "text/css",
    ".csv": "text/csv",
    ".gif": "image/gif",
    ".htm": "text/html",
    ".html": "text/html",
    ".ico": "image/x-icon",
    ".ini": "text/plain",
    ".jpeg": "image/jpeg",
    ".jpg": "image/jpeg",
    ".js": "application/javascript",
    ".json": "application/json",
    ".md": "text/markdown",
    ".mdx": "text/markdown",
    ".mjs": "application/javascript",
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".py": "text/x-python",
    ".schema": "application/json",
    ".sh": "text/x-shellscript",
    ".svg": "image/svg+xml",
    ".toml": "application/toml",
    ".ts": "application/typescript",
    ".txt": "text/plain",
    ".webmanifest": "application/manifest+json",
    ".webp": "image/webp",
    ".xml": "application/xml",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
}

TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".css",
        ".csv",
        ".html",
        ".js",
        ".json",
        ".md",
        ".mdx",
        ".mjs",
        ".py",
        ".svg",
        ".toml",
        ".ts",
        ".txt",
        ".webmanifest",
        ".xml",
        ".yaml",
        ".yml",
    },
)

# Directories never listed by the filesystem walk fallback.
WALK_EXCLUDES = {".git"}


def guess_media_type(path: str) -> str:
    """Guess a MIME type from the file extension.

    Args:
        path (str): a repository-relative, slash-separated path

    Returns:
        str: the MIME type, or ``application/octet-stream`` when the extension is unknown
    """
    return EXT2MEDIA.get(PurePosixPath(path).suffix.lower(), DEFAULT_MEDIA_TYPE)


def is_text_path(path: str) -> bool:
    """Whether a path is handled as text by the content inliner."""
    suffix = PurePosixPath(path).suffix.lower()
    return suffix in TEXT_EXTENSIONS or guess_media_type(path).startswith("text/")


class InlineState(StrEnum):
    """How much of a file's content is embedded in an inline item."""

    FULL = auto()
    PREVIEW = auto()
    NONE = auto()


class ContentEncoding(StrEnum):
    """Encoding of embedded content."""

    TEXT = auto()
    BASE64 = auto()


class ListingSource(StrEnum):
    """Where the repository listing came from."""

    GIT = auto()
    FILESYSTEM = auto()


class FileRecord(BaseModel):
    """Metadata for one tracked file at the indexed revision.

    Attributes:
        path: Repository-relative path with POSIX separators.
        size: File size in bytes.
        git_blob_sha: Git blob object id (empty when listed from the filesystem).
        media_type: Extension-derived MIME type.
        raw_url: URL of the raw content at the indexed revision.
        html_url: URL of the browsable view at the indexed revision.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Repository-relative path")
    size: int = Field(..., ge=0, description="File size in bytes")
    git_blob_sha: str = Field("", description="Git blob id (empty outside git)")
    media_type: str = Field(DEFAULT_MEDIA_TYPE, description="MIME type guessed from the extension")
    raw_url: str = Field("", description="Raw content URL")
    html_url: str = Field("", description="Browsable view URL")

    @property
    def extension(self) -> str:
        """Lower-cased suffix including the dot (``.json``), or empty string."""
        return PurePosixPath(self.path).suffix.lower()

    @property
    def is_text(self) -> bool:
        """Whether the record is on the recognized text set."""
        return is_text_path(self.path)


class ListEntry(BaseModel):
    """Reduced-field record used by metadata-only lists."""

    model_config = ConfigDict(frozen=True)

    path: str
    size: int = Field(..., ge=0)
    sha: str = ""
    raw_url: str = ""
    html_url: str = ""

    @classmethod
    def from_record(cls, record: FileRecord) -> ListEntry:
        return cls(
            path=record.path,
            size=record.size,
            sha=record.git_blob_sha,
            raw_url=record.raw_url,
            html_url=record.html_url,
        )


_INLINE_ONLY_FIELDS = ("encoding", "content", "inline_bytes", "content_sha256", "json_hint")


class InlineItem(BaseModel):
    """A file record with its inlining decision and (possibly) its content."""

    model_config = ConfigDict(frozen=True)

    path: str
    size: int = Field(..., ge=0)
    sha: str = ""
    media_type: str = DEFAULT_MEDIA_TYPE
    raw_url: str = ""
    html_url: str = ""
    inline_state: InlineState = InlineState.NONE
    max_inline_text_bytes: int
    max_inline_bin_bytes: int
    preview_text_bytes: int
    encoding: ContentEncoding | None = None
    content: str | None = None
    inline_bytes: int | None = None
    content_sha256: str | None = None
    json_hint: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_inline_fields(self) -> InlineItem:
        if self.inline_state == InlineState.NONE:
            present = [name for name in _INLINE_ONLY_FIELDS if getattr(self, name) is not None]
            if present:
                raise ValueError(f"inline_state=none forbids fields: {', '.join(present)}")
        elif self.encoding is None or self.content is None or self.content_sha256 is None:
            raise ValueError(f"inline_state={self.inline_state} requires encoding, content and content_sha256")
        return self

    def to_payload(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict, dropping inline-only fields that are unset."""
        omit = {name for name in _INLINE_ONLY_FIELDS if getattr(self, name) is None}
        return self.model_dump(mode="json", exclude=omit)


class InlinePolicy(BaseModel):
    """Thresholds and allowlists driving the inline/preview/omit decision."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_inline_text_bytes: int = Field(600 * KIB, ge=0)
    max_inline_binary_bytes: int = Field(200 * KIB, ge=0)
    preview_bytes: int = Field(64 * KIB, ge=0)
    always_full_paths: list[str] = Field(default_factory=list)
    always_full_dirs: list[str] = Field(default_factory=lambda: ["docs/"])

    def is_always_full(self, path: str) -> bool:
        if path in self.always_full_paths:
            return True
        lowered = path.lower()
        return any(lowered.startswith(d.lower()) for d in self.always_full_dirs)


class ShardPolicy(BaseModel):
    """Bounds closing a shard of the everything pack."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    target_bytes: int = Field(4 * MIB, gt=0)
    max_items: int = Field(500, gt=0)


class FileSelector(BaseModel):
    """Predicate over file records.

    When ``paths`` is set a record matches iff its path is listed. Otherwise the
    path must start with ``prefix`` and contain a match for ``pattern``
    (case-insensitive regex).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    prefix: str = ""
    prefix_ignore_case: bool = False
    pattern: str | None = None
    paths: list[str] = Field(default_factory=list)

    @field_validator("pattern")
    @classmethod
    def _compile(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value

    def matches(self, record: FileRecord) -> bool:
        path = record.path
        if self.paths:
            return path in self.paths
        if self.prefix_ignore_case:
            if not path.lower().startswith(self.prefix.lower()):
                return False
        elif not path.startswith(self.prefix):
            return False
        return self.pattern is None or re.search(self.pattern, path, re.IGNORECASE) is not None


class ListSpec(BaseModel):
    """A named metadata-only list."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    title: str
    selector: FileSelector


class PackSpec(BaseModel):
    """A named inline content pack."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    title: str
    selector: FileSelector


DEFAULT_LISTS: list[ListSpec] = [
    ListSpec(
        name="ai-docs-list",
        title="docs/*.md Markdown files",
        selector=FileSelector(prefix="docs/", pattern=r"\.mdx?$"),
    ),
    ListSpec(
        name="ai-data-list",
        title="data/*.md Markdown files",
        selector=FileSelector(prefix="data/", pattern=r"\.mdx?$"),
    ),
    ListSpec(
        name="ai-data-config-list",
        title="data/*.json, *.yaml, *.yml files",
        selector=FileSelector(prefix="data/", prefix_ignore_case=True, pattern=r"\.(json|ya?ml)$"),
    ),
]

DEFAULT_PACKS: list[PackSpec] = [
    PackSpec(
        name="ai-pack-docs",
        title="docs/*.md (inline)",
        selector=FileSelector(prefix="docs/", pattern=r"\.mdx?$"),
    ),
    PackSpec(
        name="ai-pack-data-config",
        title="data/*.json|*.yaml (inline selectively)",
        selector=FileSelector(prefix="data/", prefix_ignore_case=True, pattern=r"\.(json|ya?ml)$"),
    ),
    PackSpec(
        name="ai-pack-core",
        title="core app/source files (inline)",
        selector=FileSelector(pattern=r"^[^/]+\.(html?|m?js|css|json|webmanifest)$"),
    ),
    PackSpec(
        name="ai-pack-ci",
        title=".github/workflows/*.yml (inline)",
        selector=FileSelector(prefix=".github/workflows/", pattern=r"\.ya?ml$"),
    ),
]


class CatalogConfig(BaseModel):
    """Artifact definitions, usually loaded from ``.ai-index.yml``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    namespace: str | None = None
    lists: list[ListSpec] = Field(default_factory=lambda: list(DEFAULT_LISTS))
    packs: list[PackSpec] = Field(default_factory=lambda: list(DEFAULT_PACKS))
    combined: list[str] | None = None
    inline: InlinePolicy = Field(default_factory=InlinePolicy)
    shards: ShardPolicy = Field(default_factory=ShardPolicy)

    @property
    def combined_names(self) -> list[str]:
        """Packs merged into the combined pack, in section order."""
        if self.combined is None:
            return [p.name for p in self.packs]
        return list(self.combined)


class Listing(BaseModel):
    """Tagged result of the repository lister."""

    model_config = ConfigDict(frozen=True)

    source: ListingSource
    records: list[FileRecord]

    @property
    def is_fallback(self) -> bool:
        return self.source == ListingSource.FILESYSTEM


class RunContext(BaseModel):
    """Repository identity and output location shared by every artifact of a run."""

    model_config = ConfigDict(frozen=True)

    repo: str = ""
    default_branch: str = DEFAULT_BRANCH
    commit: str = ""
    updated_utc: str
    namespace: str = DEFAULT_NAMESPACE
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    output_prefix: str = DEFAULT_OUTPUT_DIR
    raw_url_template: str = RAW_URL_TEMPLATE
    html_url_template: str = HTML_URL_TEMPLATE

    def label(self, filename: str) -> str:
        """Repository-relative display path of an output file (``docs/ai-index.json``)."""
        prefix = self.output_prefix.rstrip("/")
        return f"{prefix}/{filename}" if prefix and prefix != "." else filename

    def schema_id(self, artifact: str) -> str:
        """Schema tag ``<namespace>.<artifact>.v1``."""
        return f"{self.namespace}.{artifact}.v1"

    def header(self, artifact: str) -> dict[str, Any]:
        """Common leading fields of every artifact except the master index."""
        return {
            "schema": self.schema_id(artifact),
            "repo": self.repo,
            "commit": self.commit,
            "updated_utc": self.updated_utc,
        }


class ShardSummary(BaseModel):
    """One manifest row of the sharded everything pack."""

    model_config = ConfigDict(frozen=True)

    name: str
    count: int
    approx_bytes: int
    url_json: str
    url_txt: str


class CatalogEntry(BaseModel):
    """Summary of one artifact family."""

    model_config = ConfigDict(frozen=True)

    name: str
    count: int
    bytes_min: int
    files: list[str]
