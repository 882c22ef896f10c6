"""Tests for bitbucket_scm.git.engine: ref matching, checkout and changelog parsing."""

import subprocess
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from bitbucket_scm.git.engine import (
    _FIELD,
    _RECORD,
    CleanBeforeCheckout,
    GitChangeLogParser,
    GitCommandError,
    GitEngine,
    GitExtension,
    _spec_matches,
)
from bitbucket_scm.scm.engine import BuildContext, PollingChange, RemoteConfig, RevisionState
from bitbucket_scm.scm.models import BranchSpec

URL = "https://bitbucket.example.com/scm/project_1/rep_1.git"
MASTER = "a" * 40
DEV = "b" * 40
TAG = "c" * 40

LS_REMOTE = "\n".join(
    [
        f"{DEV}\trefs/heads/dev",
        f"{MASTER}\trefs/heads/master",
        f"{TAG}\trefs/tags/v1.0",
        f"{'d' * 40}\trefs/tags/v1.0^{{}}",
    ]
)


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def _fake_git(log_output=""):
    def run(command, **kwargs):
        verb = command[1]
        if verb == "ls-remote":
            return _completed(LS_REMOTE)
        if verb == "log":
            return _completed(log_output)
        if verb == "rev-parse":
            return _completed(MASTER + "\n")
        return _completed()

    return MagicMock(side_effect=run)


def _engine(branches=("refs/heads/master",), **kwargs):
    return GitEngine(
        RemoteConfig(url=URL, name="rep_1"),
        branches=[BranchSpec(name=b) for b in branches],
        **kwargs,
    )


def _verbs(mock_run):
    return [c.args[0][1] for c in mock_run.call_args_list]


# ── _spec_matches ───────────────────────────────────────────────────


class TestSpecMatches:
    @pytest.mark.parametrize(
        "spec, ref, expected",
        [
            ("refs/heads/master", "refs/heads/master", True),
            ("master", "refs/heads/master", True),
            ("*/master", "refs/heads/master", True),
            ("master", "refs/tags/master", False),
            ("refs/heads/feature/*", "refs/heads/feature/x", True),
            ("**", "refs/heads/anything", True),
            ("refs/tags/v*", "refs/tags/v1.0", True),
            (":refs/heads/(dev|master)", "refs/heads/dev", True),
            (":refs/heads/(dev|master)", "refs/heads/devel", False),
        ],
    )
    def test_matching(self, spec, ref, expected):
        assert _spec_matches(BranchSpec(name=spec), ref) is expected


# ── _run ────────────────────────────────────────────────────────────


class TestRun:
    @patch("bitbucket_scm.git.engine.subprocess.run")
    def test_uses_configured_tool(self, mock_run):
        mock_run.return_value = _completed("ok\n")
        engine = _engine(git_tool="/opt/git/bin/git", timeout=5)
        assert engine._run("status") == "ok"
        args, kwargs = mock_run.call_args
        assert args[0] == ["/opt/git/bin/git", "status"]
        assert kwargs["timeout"] == 5
        assert kwargs["capture_output"] is True

    @patch("bitbucket_scm.git.engine.subprocess.run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = _completed(returncode=128, stderr="fatal: not a git repository")
        with pytest.raises(GitCommandError, match="fatal") as exc_info:
            _engine()._run("status")
        assert exc_info.value.returncode == 128
        assert exc_info.value.command == ["status"]

    @patch("bitbucket_scm.git.engine.subprocess.run", side_effect=FileNotFoundError("git"))
    def test_missing_tool(self, mock_run):
        with pytest.raises(GitCommandError, match="not found"):
            _engine(git_tool="nogit")._run("status")

    @patch(
        "bitbucket_scm.git.engine.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="git", timeout=1),
    )
    def test_timeout(self, mock_run):
        with pytest.raises(GitCommandError, match="timed out"):
            _engine(timeout=1)._run("fetch")


# ── checkout ────────────────────────────────────────────────────────


class TestCheckout:
    def test_checks_out_matching_branch(self, tmp_path):
        mock_run = _fake_git()
        with patch("bitbucket_scm.git.engine.subprocess.run", mock_run):
            revision = _engine().checkout(BuildContext(number=1), tmp_path / "ws")

        assert revision == RevisionState(commit=MASTER, branch="refs/heads/master")
        assert _verbs(mock_run) == ["init", "ls-remote", "fetch", "checkout"]
        fetch = mock_run.call_args_list[2].args[0]
        assert fetch[-2:] == [URL, "+refs/heads/master:refs/remotes/rep_1/master"]
        assert mock_run.call_args_list[3].args[0][-1] == MASTER
        assert mock_run.call_args_list[3].kwargs["cwd"] == tmp_path / "ws"

    def test_existing_repository_skips_init(self, tmp_path):
        (tmp_path / ".git").mkdir()
        mock_run = _fake_git()
        with patch("bitbucket_scm.git.engine.subprocess.run", mock_run):
            _engine().checkout(BuildContext(), tmp_path)
        assert "init" not in _verbs(mock_run)

    def test_tag_checkout(self, tmp_path):
        mock_run = _fake_git()
        with patch("bitbucket_scm.git.engine.subprocess.run", mock_run):
            revision = _engine(["refs/tags/v1.0"]).checkout(BuildContext(), tmp_path)
        assert revision.commit == TAG
        fetch = mock_run.call_args_list[2].args[0]
        assert fetch[-1] == "+refs/tags/v1.0:refs/remotes/rep_1/v1.0"

    def test_default_spec_takes_first_sorted_ref(self, tmp_path):
        with patch("bitbucket_scm.git.engine.subprocess.run", _fake_git()):
            revision = _engine(branches=()).checkout(BuildContext(), tmp_path)
        assert revision.branch == "refs/heads/dev"

    def test_no_matching_ref(self, tmp_path):
        with patch("bitbucket_scm.git.engine.subprocess.run", _fake_git()):
            with pytest.raises(GitCommandError, match="no remote ref matches"):
                _engine(["refs/heads/missing"]).checkout(BuildContext(), tmp_path)

    def test_empty_remote_url(self, tmp_path):
        engine = GitEngine(RemoteConfig(url="", name="rep_1"))
        with patch("bitbucket_scm.git.engine.subprocess.run", _fake_git()):
            with pytest.raises(GitCommandError, match="remote URL is empty"):
                engine.checkout(BuildContext(), tmp_path)

    def test_runs_extensions_first(self, tmp_path):
        mock_run = _fake_git()
        with patch("bitbucket_scm.git.engine.subprocess.run", mock_run):
            _engine(extensions=[CleanBeforeCheckout()]).checkout(BuildContext(), tmp_path)
        assert _verbs(mock_run)[:3] == ["init", "clean", "ls-remote"]

    def test_writes_changelog_since_baseline(self, tmp_path):
        mock_run = _fake_git(log_output="LOG")
        changelog = tmp_path / "changelog.txt"
        with patch("bitbucket_scm.git.engine.subprocess.run", mock_run):
            _engine().checkout(
                BuildContext(), tmp_path / "ws", changelog, RevisionState(commit=DEV)
            )
        assert changelog.read_text() == "LOG"
        log = mock_run.call_args_list[-1].args[0]
        assert log[-1] == f"{DEV}..{MASTER}"

    def test_empty_changelog_without_baseline(self, tmp_path):
        mock_run = _fake_git(log_output="LOG")
        changelog = tmp_path / "changelog.txt"
        with patch("bitbucket_scm.git.engine.subprocess.run", mock_run):
            _engine().checkout(BuildContext(), tmp_path / "ws", changelog)
        assert changelog.read_text() == ""
        assert "log" not in _verbs(mock_run)

    def test_empty_changelog_when_unchanged(self, tmp_path):
        mock_run = _fake_git(log_output="LOG")
        changelog = tmp_path / "changelog.txt"
        with patch("bitbucket_scm.git.engine.subprocess.run", mock_run):
            _engine().checkout(
                BuildContext(), tmp_path / "ws", changelog, RevisionState(commit=MASTER)
            )
        assert changelog.read_text() == ""


# ── Polling, revisions and environment ──────────────────────────────


class TestPolling:
    def test_no_baseline_is_significant(self):
        with patch("bitbucket_scm.git.engine.subprocess.run", _fake_git()):
            result = _engine().compare_remote_revision_with(None)
        assert result.change == PollingChange.SIGNIFICANT
        assert result.remote.commit == MASTER

    def test_same_commit_is_no_change(self):
        with patch("bitbucket_scm.git.engine.subprocess.run", _fake_git()):
            result = _engine().compare_remote_revision_with(RevisionState(commit=MASTER))
        assert result.change == PollingChange.NONE

    def test_new_commit_is_significant(self):
        with patch("bitbucket_scm.git.engine.subprocess.run", _fake_git()):
            result = _engine().compare_remote_revision_with(RevisionState(commit=DEV))
        assert result.change == PollingChange.SIGNIFICANT


class TestRevisionsAndEnvironment:
    def test_revision_from_build(self):
        state = RevisionState(commit=DEV, branch="refs/heads/dev")
        assert _engine().calc_revisions_from_build(BuildContext(revision=state)) is state

    def test_revision_from_workspace(self, tmp_path):
        (tmp_path / ".git").mkdir()
        with patch("bitbucket_scm.git.engine.subprocess.run", _fake_git()):
            state = _engine().calc_revisions_from_build(BuildContext(), tmp_path)
        assert state.commit == MASTER

    def test_no_revision(self, tmp_path):
        assert _engine().calc_revisions_from_build(BuildContext(), tmp_path) is None
        assert _engine().calc_revisions_from_build(BuildContext()) is None

    def test_build_environment(self):
        env = {}
        build = BuildContext(
            revision=RevisionState(commit=MASTER, branch="refs/heads/master"),
            previous_revision=RevisionState(commit=DEV),
        )
        _engine().build_environment(build, env)
        assert env == {
            "GIT_URL": URL,
            "GIT_COMMIT": MASTER,
            "GIT_BRANCH": "refs/heads/master",
            "GIT_PREVIOUS_COMMIT": DEV,
        }

    def test_build_environment_without_revision(self):
        env = {}
        _engine().build_environment(BuildContext(), env)
        assert env == {"GIT_URL": URL}


# ── Changelog parsing ───────────────────────────────────────────────


class TestChangeLogParser:
    def test_parses_records(self, tmp_path):
        changelog = tmp_path / "changelog.txt"
        record = _FIELD.join(
            [MASTER, "Alice", "alice@example.com", "2024-05-01T12:00:00+00:00", "Fix build\n", ""]
        )
        changelog.write_text(f"{_RECORD}{record}\n\nsrc/app.py\nREADME.md\n", encoding="utf-8")

        entries = _engine().create_changelog_parser().parse(changelog)

        assert len(entries) == 1
        entry = entries[0]
        assert entry.commit == MASTER
        assert entry.author == "Alice"
        assert entry.author_email == "alice@example.com"
        assert entry.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert entry.message == "Fix build"
        assert entry.paths == ["src/app.py", "README.md"]

    def test_missing_file(self, tmp_path):
        assert GitChangeLogParser().parse(tmp_path / "nope") == []

    def test_empty_file(self, tmp_path):
        changelog = tmp_path / "changelog.txt"
        changelog.write_text("")
        assert GitChangeLogParser().parse(changelog) == []


class TestExtensions:
    def test_clean_is_an_extension(self):
        assert isinstance(CleanBeforeCheckout(), GitExtension)
        assert CleanBeforeCheckout() == CleanBeforeCheckout()

    def test_clean_runs_git_clean(self, tmp_path):
        run = MagicMock()
        CleanBeforeCheckout().before_checkout(tmp_path, run)
        run.assert_called_once_with("clean", "-fdx", cwd=tmp_path)
