import json
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from ai_index import cli, file_manipulation
from ai_index.file_manipulation import TrackedFile

SHA = "f" * 40


@pytest.mark.integration
def test_main_uses_git_listing_when_available(
    tmp_path: Path,
    mocker: MockerFixture,
) -> None:
    repo = tmp_path
    file_path = repo / "docs" / "intro.md"
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text("# Intro\n", encoding="utf-8")

    mocker.patch.object(
        file_manipulation,
        "git_ls_tree",
        return_value=[TrackedFile(path="docs/intro.md", size=8, blob_sha=SHA)],
    )
    mocker.patch.object(file_manipulation, "walk_files", return_value=[])
    mocker.patch.object(
        file_manipulation,
        "run_git",
        side_effect=file_manipulation.GitCommandError(command="git show", returncode=128),
    )

    exit_code = cli.main(
        [
            "--repo",
            str(repo),
            "--repo-name",
            "owner/site",
            "--commit",
            "abc1234",
        ],
    )

    assert exit_code == 0
    index = json.loads((repo / "docs" / "ai-index.json").read_text(encoding="utf-8"))
    assert index["files"][0]["git_blob_sha"] == SHA
    assert index["files"][0]["raw_url"] == "https://raw.githubusercontent.com/owner/site/abc1234/docs/intro.md"
    pack = json.loads((repo / "docs" / "ai-pack-docs.min.json").read_text(encoding="utf-8"))
    assert pack["items"][0]["sha"] == SHA
    assert pack["items"][0]["content"] == "# Intro\n"


@pytest.mark.integration
def test_main_log_file_receives_fallback_warning(tmp_path: Path, mocker: MockerFixture) -> None:
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    mocker.patch.object(
        file_manipulation,
        "git_ls_tree",
        side_effect=file_manipulation.NotAGitRepositoryError(folder=tmp_path),
    )
    mocker.patch.object(cli, "setup_logging")

    exit_code = cli.main(["--repo", str(tmp_path), "--repo-name", "o/r", "--commit", "c", "--log-file", "x.log"])

    assert exit_code == 0
    cli.setup_logging.assert_called_once_with("x.log")
    index = json.loads((tmp_path / "docs" / "ai-index.json").read_text(encoding="utf-8"))
    assert [f["path"] for f in index["files"]] == ["a.txt"]
