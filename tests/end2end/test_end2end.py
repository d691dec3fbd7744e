import json
import shutil
import subprocess
from pathlib import Path

import pytest

from ai_index import cli

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(repo: Path, *args: str) -> str:
    out = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", "-c", "commit.gpgsign=false", *args],
        cwd=str(repo),
        text=True,
        capture_output=True,
        check=True,
    )
    return out.stdout.strip()


def test_end_to_end_git_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GITHUB_REPOSITORY", "GITHUB_SHA", "GITHUB_REF_NAME"):
        monkeypatch.delenv(name, raising=False)
    repo = tmp_path
    (repo / "docs").mkdir()
    (repo / "docs" / "guide.md").write_text("# Guide\n", encoding="utf-8")
    (repo / "data").mkdir()
    (repo / "data" / "big.json").write_text(json.dumps(list(range(5_000))), encoding="utf-8")
    (repo / "untracked.txt").write_text("not committed\n", encoding="utf-8")
    _git(repo, "init", "-q", "-b", "trunk")
    _git(repo, "remote", "add", "origin", "git@github.com:owner/site.git")
    _git(repo, "add", "docs", "data")
    _git(repo, "commit", "-q", "-m", "init")
    commit = _git(repo, "rev-parse", "HEAD")
    # Working tree changes after the commit must not leak into the packs.
    (repo / "docs" / "guide.md").write_text("# Changed\n", encoding="utf-8")

    exit_code = cli.main(["--repo", str(repo), "--max-inline-text-bytes", "1000", "--preview-bytes", "32"])

    assert exit_code == 0
    out = repo / "docs"
    index = json.loads((out / "ai-index.json").read_text(encoding="utf-8"))
    assert index["repo"] == "owner/site"
    assert index["commit"] == commit
    assert index["default_branch"] == "trunk"
    assert index["schema"] == "site.ai-index.v1"
    assert sorted(f["path"] for f in index["files"]) == ["data/big.json", "docs/guide.md"]
    assert all(len(f["git_blob_sha"]) == 40 for f in index["files"])

    docs_pack = json.loads((out / "ai-pack-docs.min.json").read_text(encoding="utf-8"))
    assert docs_pack["items"][0]["content"] == "# Guide\n"

    data_pack = json.loads((out / "ai-pack-data-config.min.json").read_text(encoding="utf-8"))
    item = data_pack["items"][0]
    assert item["inline_state"] == "preview"
    assert item["json_hint"] == {"type": "array", "length": 5_000, "sample": [0, 1, 2]}
    assert len(item["content"].encode("utf-8")) <= 32
