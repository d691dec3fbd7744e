from __future__ import annotations

import hashlib
import os
import re
import subprocess  # noqa: S404
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

from ai_index.config import (
    ARTIFACT_PREFIX,
    WALK_EXCLUDES,
    FileRecord,
    Listing,
    ListingSource,
    guess_media_type,
)
from ai_index.exceptions import BlobReadError, GitCommandError, NotAGitRepositoryError
from ai_index.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from ai_index.config import FileSelector, RunContext

    BlobReader = Callable[[str], bytes]

# <mode> SP <type> SP <object> SP+ <size> TAB <path>, as printed by `git ls-tree --long`.
_LS_TREE_ENTRY = re.compile(r"^(\d+) (\w+) ([0-9a-f]{40,64}) +(\d+|-)\t(.+)$", re.DOTALL)
_GITHUB_REMOTE = re.compile(r"^.*github\.com[:/]")

# Characters JavaScript's encodeURIComponent leaves untouched, beyond quote()'s own.
_URI_COMPONENT_SAFE = "!*'()"


@dataclass(frozen=True)
class TrackedFile:
    path: str
    size: int
    blob_sha: str


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return str(path.relative_to(root)).replace("\\", "/")
    except ValueError:
        return str(path)


def run_git(repo: Path, *args: str, binary: bool = False) -> str | bytes:
    """Run a git command in `repo` and return its standard output.

    Args:
        repo (Path): working directory for the command
        *args (str): git arguments, e.g. ``"rev-parse", "HEAD"``
        binary (bool): return raw bytes instead of decoded text

    Raises:
        GitCommandError: if git is missing or exits with a non-zero status

    Returns:
        str | bytes: the command's standard output
    """
    command = ["git", *args]
    try:
        out = subprocess.run(  # noqa: S603
            command,
            cwd=str(repo),
            capture_output=True,
            check=False,
        )
    except OSError as e:
        raise GitCommandError(command=" ".join(command), returncode=-1, stderr=str(e)) from e
    if out.returncode != 0:
        raise GitCommandError(
            command=" ".join(command),
            returncode=out.returncode,
            stderr=out.stderr.decode("utf-8", errors="replace"),
        )
    if binary:
        return out.stdout
    return out.stdout.decode("utf-8", errors="replace")


def git_output_or(repo: Path, *args: str, default: str = "") -> str:
    """Run a git query, returning `default` instead of raising when it fails."""
    try:
        return str(run_git(repo, *args)).strip() or default
    except GitCommandError:
        return default


def remote_to_slug(remote_url: str) -> str:
    """Reduce a remote URL to an ``owner/name`` slug.

    Args:
        remote_url (str): e.g. ``git@github.com:owner/name.git`` or ``https://host/owner/name``

    Returns:
        str: the slug, or an empty string when nothing usable is found
    """
    url = remote_url.strip()
    if not url:
        return ""
    if _GITHUB_REMOTE.match(url):
        url = _GITHUB_REMOTE.sub("", url)
    else:
        url = re.sub(r"^[a-z][a-z0-9+.-]*://[^/]+/", "", url)
        url = re.sub(r"^[^@/]+@[^:/]+:", "", url)
    url = url.removesuffix("/").removesuffix(".git")
    parts = [p for p in url.split("/") if p]
    return "/".join(parts[-2:])


def origin_slug(repo: Path) -> str:
    return remote_to_slug(git_output_or(repo, "config", "--get", "remote.origin.url"))


def head_commit(repo: Path) -> str:
    return git_output_or(repo, "rev-parse", "HEAD")


def current_branch(repo: Path) -> str:
    branch = git_output_or(repo, "rev-parse", "--abbrev-ref", "HEAD")
    # A detached HEAD reports the literal "HEAD".
    return "" if branch == "HEAD" else branch


def parse_ls_tree(output: str) -> list[TrackedFile]:
    """Parse the NUL-separated output of ``git ls-tree -r --long -z``.

    Only blob entries are kept; submodule commits and anything under ``.git/``
    are skipped.

    Args:
        output (str): raw command output

    Returns:
        list[TrackedFile]: tracked files in git's order
    """
    out: list[TrackedFile] = []
    for entry in output.split("\0"):
        if not entry.strip():
            continue
        m = _LS_TREE_ENTRY.match(entry.lstrip("\n"))
        if not m:
            continue
        _mode, obj_type, blob_sha, size, path = m.groups()
        if obj_type != "blob" or size == "-":
            continue
        if path == ".git" or path.startswith(".git/"):
            continue
        out.append(TrackedFile(path=path, size=int(size), blob_sha=blob_sha))
    return out


def git_ls_tree(repo: Path, commit: str) -> list[TrackedFile]:
    """List the blobs recorded by git at `commit`.

    Args:
        repo (Path): the root of the git repository to query
        commit (str): the revision to list

    Raises:
        NotAGitRepositoryError: if `.git` is missing
        GitCommandError: if the git invocation fails

    Returns:
        list[TrackedFile]: the tracked files with their blob ids and sizes
    """
    if not (repo / ".git").exists():
        raise NotAGitRepositoryError(folder=repo)
    if not commit:
        raise GitCommandError(command="git ls-tree", returncode=-1, stderr="no commit to list")
    return parse_ls_tree(str(run_git(repo, "ls-tree", "-r", "--long", "-z", commit)))


def walk_files(repo: Path) -> list[TrackedFile]:
    """Walk the working tree rooted at `repo`, skipping the git metadata directory.

    Sizes come from ``stat``; a file that cannot be stat'ed is kept with size 0.
    Blob ids are unknown outside git and left empty.

    Args:
        repo (Path): the root directory to walk

    Returns:
        list[TrackedFile]: every regular file found, sorted by path
    """
    results: list[TrackedFile] = []
    for root, dirs, files in os.walk(repo):
        dirs[:] = sorted(d for d in dirs if d not in WALK_EXCLUDES)
        for f in files:
            p = Path(root) / f
            if p.is_symlink() and not p.is_file():
                continue
            try:
                size = p.stat().st_size
            except OSError as e:
                logger.warning("stat_failed", path=str(p), error=str(e))
                size = 0
            results.append(TrackedFile(path=relpath(p, repo), size=size, blob_sha=""))
    return sorted(results, key=lambda t: t.path)


def encode_path(path: str) -> str:
    """Percent-encode every segment of a slash-separated path."""
    return "/".join(quote(segment, safe=_URI_COMPONENT_SAFE) for segment in path.split("/"))


def build_url(template: str, *, repo: str, commit: str, path: str) -> str:
    return template.format(repo=repo, commit=commit, path=encode_path(path))


def make_records(entries: Iterable[TrackedFile], context: RunContext) -> list[FileRecord]:
    """Wrap tracked files into `FileRecord`s with media type and URLs.

    Duplicate paths keep their first occurrence.

    Args:
        entries (Iterable[TrackedFile]): the lister's output
        context (RunContext): repository identity used in URLs

    Returns:
        list[FileRecord]: one record per unique path, in input order
    """
    seen: set[str] = set()
    recs: list[FileRecord] = []
    for entry in entries:
        if entry.path in seen:
            logger.warning("duplicate_path", path=entry.path)
            continue
        seen.add(entry.path)
        recs.append(
            FileRecord(
                path=entry.path,
                size=max(0, entry.size),
                git_blob_sha=entry.blob_sha,
                media_type=guess_media_type(entry.path),
                raw_url=build_url(context.raw_url_template, repo=context.repo, commit=context.commit, path=entry.path),
                html_url=build_url(context.html_url_template, repo=context.repo, commit=context.commit, path=entry.path),
            ),
        )
    return recs


def list_repository(repo: Path, context: RunContext, *, use_git: bool = True) -> Listing:
    """Enumerate tracked files at the context's commit, falling back to a filesystem walk.

    Args:
        repo (Path): repository root
        context (RunContext): identity of the run (commit, URL templates)
        use_git (bool): when False, skip git and walk the filesystem directly

    Returns:
        Listing: the records, tagged with the source they came from
    """
    if use_git:
        try:
            entries = git_ls_tree(repo, context.commit)
        except (GitCommandError, NotAGitRepositoryError) as e:
            logger.warning("git_listing_failed_falling_back_to_walk", error=str(e))
        else:
            if entries:
                return Listing(source=ListingSource.GIT, records=make_records(entries, context))
            logger.warning("git_listing_empty_falling_back_to_walk", commit=context.commit)
    return Listing(source=ListingSource.FILESYSTEM, records=make_records(walk_files(repo), context))


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def read_blob(repo: Path, commit: str, path: str, *, use_git: bool = True) -> bytes:
    """Read a file's bytes at `commit`, or from the working tree when git cannot serve it.

    Args:
        repo (Path): repository root
        commit (str): revision to read from (empty means working tree only)
        path (str): repository-relative path
        use_git (bool): whether to ask git first

    Raises:
        BlobReadError: if neither git nor the working tree can provide the content

    Returns:
        bytes: the complete file content
    """
    if use_git and commit:
        try:
            return bytes(run_git(repo, "show", f"{commit}:{path}", binary=True))
        except GitCommandError as e:
            logger.warning("git_show_failed", path=path, error=str(e))
    try:
        return (repo / path).read_bytes()
    except OSError as e:
        raise BlobReadError(path=path, message=f"Unable to read file content: {e}") from e


def make_blob_reader(repo: Path, commit: str, *, use_git: bool = True) -> BlobReader:
    """Bind `read_blob` to a repository and revision."""
    return partial(read_blob, repo, commit, use_git=use_git)


def select_records(records: Sequence[FileRecord], selector: FileSelector) -> list[FileRecord]:
    return [r for r in records if selector.matches(r)]


def is_generated_artifact(path: str, output_dir: str) -> bool:
    """Whether `path` is one of this tool's own outputs (``<output_dir>/ai-*``)."""
    prefix = output_dir.strip("/")
    artifact_prefix = f"{prefix}/{ARTIFACT_PREFIX}" if prefix and prefix != "." else ARTIFACT_PREFIX
    return path.startswith(artifact_prefix)


def now_utc() -> str:
    """Return the current UTC time as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
