"""Tests for loopguard.git module."""

import subprocess
from pathlib import Path
from unittest.mock import patch, MagicMock, call

import pytest

from loopguard.git.runner import run_git, run_git_checked, GitError, GitResult
from loopguard.git.status import (
    has_uncommitted_changes,
    has_staged_changes,
    get_untracked_files,
    get_head_sha,
)
from loopguard.git.diff import parse_numstat, count_file_lines, collect_changeset
from loopguard.git.commit import CommitError, commit_staged
from loopguard.git.workspace import GitWorkspace, EMPTY_TREE_SHA
from loopguard.guard.models import FileDelta


def _ok(stdout=""):
    return GitResult(returncode=0, stdout=stdout, stderr="")


def _fail(stderr="fatal: error", returncode=1):
    return GitResult(returncode=returncode, stdout="", stderr=stderr)


class TestGitResult:
    """Test GitResult dataclass."""

    def test_success_when_returncode_zero(self):
        assert GitResult(returncode=0, stdout="ok", stderr="").success is True

    def test_failure_when_returncode_nonzero(self):
        assert GitResult(returncode=1, stdout="", stderr="error").success is False

    def test_failure_when_timed_out(self):
        assert GitResult(returncode=0, stdout="ok", stderr="", timed_out=True).success is False


class TestRunGit:
    """Test run_git function."""

    @patch("loopguard.git.runner.subprocess.run")
    def test_returns_result_on_success(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="output", stderr="")
        result = run_git(["status"], Path("/tmp"))
        assert result.success
        assert result.stdout == "output"

    @patch("loopguard.git.runner.subprocess.run")
    def test_handles_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="git", timeout=30)
        result = run_git(["status"], Path("/tmp"))
        assert not result.success
        assert result.timed_out
        assert "timed out" in result.stderr

    @patch("loopguard.git.runner.subprocess.run")
    def test_passes_cwd_with_C_flag_and_disables_prompts(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr="")
        run_git(["status", "--porcelain"], Path("/my/repo"))
        assert mock_run.call_args[0][0] == ["git", "-C", "/my/repo", "status", "--porcelain"]
        assert mock_run.call_args[1]["env"]["GIT_TERMINAL_PROMPT"] == "0"

    @patch("loopguard.git.runner.run_git")
    def test_checked_raises(self, mock_run):
        mock_run.return_value = _fail("fatal: not a git repository")
        with pytest.raises(GitError) as exc:
            run_git_checked(["diff"], Path("/tmp"))
        assert "not a git repository" in str(exc.value)
        assert exc.value.command == ["diff"]


class TestStatus:
    """Test status helpers."""

    @patch("loopguard.git.status.run_git")
    def test_uncommitted_changes(self, mock_run):
        mock_run.return_value = _ok("")
        assert has_uncommitted_changes(Path("/tmp")) is False
        mock_run.return_value = _ok(" M file.txt\n")
        assert has_uncommitted_changes(Path("/tmp")) is True

    @patch("loopguard.git.status.run_git")
    def test_staged_changes_uses_exit_code(self, mock_run):
        mock_run.return_value = GitResult(returncode=1, stdout="", stderr="")
        assert has_staged_changes(Path("/tmp")) is True
        mock_run.return_value = _ok()
        assert has_staged_changes(Path("/tmp")) is False

    @patch("loopguard.git.status.run_git_checked")
    def test_untracked_files_null_separated(self, mock_run):
        mock_run.return_value = _ok("new file.txt\0src/a b.py\0")
        assert get_untracked_files(Path("/tmp")) == ["new file.txt", "src/a b.py"]

    @patch("loopguard.git.status.run_git")
    def test_head_sha_unborn(self, mock_run):
        mock_run.return_value = _fail("fatal: Needed a single revision", 128)
        assert get_head_sha(Path("/tmp")) is None
        mock_run.return_value = _ok("abc123\n")
        assert get_head_sha(Path("/tmp")) == "abc123"


class TestParseNumstat:
    """Test numstat parsing with -z format."""

    def test_text_and_binary_records(self):
        output = "10\t2\tsrc/a.py\0" "0\t5\tsrc/old.py\0" "-\t-\tassets/logo.png\0"
        deltas = parse_numstat(output)
        assert deltas == {
            "src/a.py": FileDelta(10, 2),
            "src/old.py": FileDelta(0, 5),
            "assets/logo.png": FileDelta(0, 0),
        }

    def test_paths_with_spaces(self):
        assert parse_numstat("1\t1\tdocs/my file.md\0") == {"docs/my file.md": FileDelta(1, 1)}

    def test_empty(self):
        assert parse_numstat("") == {}


class TestCountFileLines:
    def test_counts_lines(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("one\ntwo\nthree")
        assert count_file_lines(path) == 3

    def test_binary_and_empty(self, tmp_path):
        binary = tmp_path / "b.bin"
        binary.write_bytes(b"\x00\x01\x02")
        empty = tmp_path / "e.txt"
        empty.write_text("")
        assert count_file_lines(binary) == 0
        assert count_file_lines(empty) == 0


class TestCollectChangeset:
    """Test ChangeSet computation from git."""

    @patch("loopguard.git.diff.get_untracked_files")
    @patch("loopguard.git.diff.run_git_checked")
    def test_tracked_plus_untracked(self, mock_checked, mock_untracked, tmp_path):
        mock_checked.return_value = _ok("3\t1\tsrc/a.py\0")
        mock_untracked.return_value = ["src/new.py"]
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "new.py").write_text("a\nb\n")

        changes = collect_changeset(tmp_path, "abc123")

        assert changes.files == frozenset({"src/a.py", "src/new.py"})
        assert changes.total_lines == 6
        args = mock_checked.call_args[0][0]
        assert args == ["diff", "--numstat", "-z", "--no-renames", "abc123"]

    @patch("loopguard.git.diff.run_git_checked")
    def test_git_failure_raises(self, mock_checked):
        mock_checked.side_effect = GitError(["diff"], _fail())
        with pytest.raises(GitError):
            collect_changeset(Path("/tmp"))


class TestCommitStaged:
    """Test commit_staged()."""

    @patch("loopguard.git.commit.commit")
    @patch("loopguard.git.commit.has_staged_changes")
    def test_nothing_staged_is_noop(self, mock_staged, mock_commit):
        mock_staged.return_value = False
        assert commit_staged(Path("/tmp"), "msg") is False
        mock_commit.assert_not_called()

    @patch("loopguard.git.commit.commit")
    @patch("loopguard.git.commit.has_staged_changes")
    def test_commits(self, mock_staged, mock_commit):
        mock_staged.return_value = True
        mock_commit.return_value = _ok()
        assert commit_staged(Path("/tmp"), "msg") is True

    @patch("loopguard.git.commit.commit")
    @patch("loopguard.git.commit.has_staged_changes")
    def test_commit_failure_raises(self, mock_staged, mock_commit):
        mock_staged.return_value = True
        mock_commit.return_value = _fail("hook rejected")
        with pytest.raises(CommitError, match="hook rejected"):
            commit_staged(Path("/tmp"), "msg")


class TestGitWorkspace:
    """Test GitWorkspace commit/push policy."""

    @patch("loopguard.git.workspace.get_head_sha")
    def test_snapshot_unborn_uses_empty_tree(self, mock_head):
        mock_head.return_value = None
        assert GitWorkspace(Path("/tmp")).snapshot() == EMPTY_TREE_SHA

    @patch("loopguard.git.workspace.push")
    @patch("loopguard.git.workspace.has_remote")
    @patch("loopguard.git.workspace.commit_staged")
    @patch("loopguard.git.workspace.stage_all")
    def test_commit_all_and_push(self, mock_stage_all, mock_commit, mock_remote, mock_push):
        mock_stage_all.return_value = _ok()
        mock_commit.return_value = True
        mock_remote.return_value = True
        mock_push.return_value = _ok()

        outcome = GitWorkspace(Path("/tmp")).commit_and_push(None, "msg")

        assert outcome.committed and outcome.pushed
        mock_push.assert_called_once()

    @patch("loopguard.git.workspace.push")
    @patch("loopguard.git.workspace.commit_staged")
    @patch("loopguard.git.workspace.stage_files")
    @patch("loopguard.git.workspace.unstage_all")
    def test_subset_commit_unstages_first(self, mock_unstage, mock_stage, mock_commit, mock_push):
        mock_stage.return_value = _ok()
        mock_commit.return_value = True
        workspace = GitWorkspace(Path("/tmp"), push_after_commit=False)

        outcome = workspace.commit_and_push([Path("/tmp/.loopguard/failure_state.json")], "msg")

        mock_unstage.assert_called_once_with(Path("/tmp"))
        mock_stage.assert_called_once_with(Path("/tmp"), ["/tmp/.loopguard/failure_state.json"])
        assert outcome.committed and not outcome.pushed
        mock_push.assert_not_called()

    @patch("loopguard.git.workspace.push")
    @patch("loopguard.git.workspace.commit_staged")
    @patch("loopguard.git.workspace.stage_all")
    def test_nothing_to_commit_skips_push(self, mock_stage_all, mock_commit, mock_push):
        mock_stage_all.return_value = _ok()
        mock_commit.return_value = False
        outcome = GitWorkspace(Path("/tmp")).commit_and_push(None, "msg")
        assert not outcome.committed
        mock_push.assert_not_called()

    @patch("loopguard.git.workspace.push")
    @patch("loopguard.git.workspace.has_remote")
    @patch("loopguard.git.workspace.commit_staged")
    @patch("loopguard.git.workspace.stage_all")
    def test_push_failure_raises(self, mock_stage_all, mock_commit, mock_remote, mock_push):
        mock_stage_all.return_value = _ok()
        mock_commit.return_value = True
        mock_remote.return_value = True
        mock_push.return_value = _fail("rejected (non-fast-forward)")
        with pytest.raises(CommitError, match="non-fast-forward"):
            GitWorkspace(Path("/tmp")).commit_and_push(None, "msg")

    @patch("loopguard.git.workspace.stage_all")
    def test_stage_failure_raises(self, mock_stage_all):
        mock_stage_all.return_value = _fail("index.lock exists")
        with pytest.raises(CommitError, match="git add failed"):
            GitWorkspace(Path("/tmp")).commit_and_push(None, "msg")


class TestResetWorktree:
    @patch("loopguard.git.commit.run_git")
    def test_runs_reset_checkout_clean(self, mock_run):
        from loopguard.git.commit import reset_worktree

        mock_run.return_value = _ok()
        assert reset_worktree(Path("/tmp")) is True
        assert mock_run.call_args_list == [
            call(["reset", "-q"], Path("/tmp")),
            call(["checkout", "--", "."], Path("/tmp")),
            call(["clean", "-fd"], Path("/tmp")),
        ]
