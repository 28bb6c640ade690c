import subprocess
import tempfile
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from chatledger.sources.git import GitCommitSource, parse_git_log_output

LOG_OUTPUT = (
    "abc123\x1f1736935200\x1fFix bug\n\nHandle empty feeds\n\x1e\n"
    "def456\x1f1736935260\x1fSaved progress at the end of the loop\n\x1e\n"
)


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr=stderr)


class ParseGitLogOutputTests(unittest.TestCase):
    def test_parses_hash_epoch_and_body(self) -> None:
        commits = parse_git_log_output(LOG_OUTPUT)
        self.assertEqual(len(commits), 2)
        self.assertEqual(commits[0].hash, "abc123")
        self.assertEqual(commits[0].message, "Fix bug\n\nHandle empty feeds")
        self.assertEqual(commits[0].timestamp, datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(commits[1].message, "Saved progress at the end of the loop")

    def test_skips_malformed_records(self) -> None:
        commits = parse_git_log_output("garbage\x1e\nabc\x1fnot-a-time\x1fStill kept\x1e")
        self.assertEqual(len(commits), 1)
        self.assertIsNone(commits[0].timestamp)
        self.assertEqual(parse_git_log_output(""), [])


class GitCommitSourceTests(unittest.IsolatedAsyncioTestCase):
    async def test_lists_commits_oldest_first(self) -> None:
        with tempfile.TemporaryDirectory() as repo:
            with patch("chatledger.sources.git.subprocess.run") as run:
                run.side_effect = [_completed("true\n"), _completed(LOG_OUTPUT)]
                commits = await GitCommitSource(repo, max_count=50).list()

        self.assertEqual([c.hash for c in commits], ["abc123", "def456"])
        log_cmd = run.call_args_list[1].args[0]
        self.assertIn("--reverse", log_cmd)
        self.assertIn("--max-count=50", log_cmd)

    async def test_non_repository_yields_no_commits(self) -> None:
        with tempfile.TemporaryDirectory() as repo:
            with patch("chatledger.sources.git.subprocess.run") as run:
                run.return_value = _completed(returncode=128, stderr="fatal: not a git repository")
                commits = await GitCommitSource(repo).list()
        self.assertEqual(commits, [])
        self.assertEqual(run.call_count, 1)

    async def test_missing_path_skips_git(self) -> None:
        with patch("chatledger.sources.git.subprocess.run") as run:
            commits = await GitCommitSource("/nonexistent/chatledger-repo").list()
        self.assertEqual(commits, [])
        run.assert_not_called()

    async def test_failed_log_yields_no_commits(self) -> None:
        with tempfile.TemporaryDirectory() as repo:
            with patch("chatledger.sources.git.subprocess.run") as run:
                run.side_effect = [_completed("true\n"), _completed(returncode=1, stderr="bad revision")]
                with self.assertLogs("chatledger.sources", level="WARNING"):
                    commits = await GitCommitSource(repo).list()
        self.assertEqual(commits, [])


if __name__ == "__main__":
    unittest.main()
