"""Commit history from a local git checkout."""
from __future__ import annotations

import asyncio
import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path

from chatledger import config
from chatledger.models import CommitRecord

logger = logging.getLogger("chatledger.sources")

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "--format=%H%x1f%ct%x1f%B%x1e"


def parse_git_log_output(output: str) -> list[CommitRecord]:
    """Parse `git log` output produced with the hash/epoch/body format."""
    commits: list[CommitRecord] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        parts = record.split(_FIELD_SEP, 2)
        if len(parts) != 3:
            continue
        sha, epoch_raw, body = parts
        timestamp = None
        try:
            timestamp = datetime.fromtimestamp(int(epoch_raw.strip()), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            timestamp = None
        message = body.strip()
        if not message:
            continue
        commits.append(CommitRecord(message=message, timestamp=timestamp, hash=sha.strip() or None))
    return commits


class GitCommitSource:
    """CommitSource that lists commits of a repository, oldest first.

    A path that is not inside a git work tree yields an empty list.
    """

    def __init__(self, repo_path: Path | str, max_count: int | None = None, since: datetime | None = None):
        self.repo_path = Path(repo_path)
        self.max_count = config.GIT_LOG_MAX_COUNT if max_count is None else max_count
        self.since = since

    def _is_work_tree(self) -> bool:
        if not self.repo_path.exists():
            return False
        repo_check = subprocess.run(
            ["git", "-C", str(self.repo_path), "rev-parse", "--is-inside-work-tree"],
            capture_output=True,
            text=True,
            check=False,
        )
        return repo_check.returncode == 0 and repo_check.stdout.strip().lower() == "true"

    def _list_sync(self) -> list[CommitRecord]:
        try:
            if not self._is_work_tree():
                logger.info("Not a git work tree, skipping commit history: %s", self.repo_path)
                return []
            log_cmd = ["git", "-C", str(self.repo_path), "log", _LOG_FORMAT, "--reverse"]
            if self.max_count and self.max_count > 0:
                log_cmd.append(f"--max-count={self.max_count}")
            if self.since is not None:
                log_cmd.append(f"--since={self.since.isoformat()}")
            result = subprocess.run(log_cmd, capture_output=True, text=True, check=False)
        except OSError as exc:
            logger.warning("git unavailable, skipping commit history: %s", exc)
            return []
        if result.returncode != 0:
            logger.warning("git log failed for %s: %s", self.repo_path, result.stderr.strip())
            return []
        commits = parse_git_log_output(result.stdout)
        logger.info("Loaded %s commits from %s", len(commits), self.repo_path)
        return commits

    async def list(self) -> list[CommitRecord]:
        return await asyncio.to_thread(self._list_sync)
