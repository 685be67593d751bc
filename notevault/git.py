"""
Git layer for NoteVault MCP Server.

Runs git as an external program inside the notes repository. Commands go
through a `GitRunner` so tests can script the responses; failures come back
as unsuccessful `GitResult`s instead of exceptions.
"""

import asyncio
import os
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import structlog

from .config import Settings
from .models import GitResult, GitStatus, RemoteInfo, RepositoryInfo

logger = structlog.get_logger(__name__)

NO_CHANGES_MESSAGE = "No changes to commit"

REMOTE_LINE_PATTERN = re.compile(r'^(\S+)\s+(\S+)\s+\((fetch|push)\)$')


class GitRunner(Protocol):
    """Executes one git command in a working directory."""

    async def run(self, args: Sequence[str], cwd: Path, timeout: float) -> GitResult: ...


class SubprocessGitRunner:
    """GitRunner backed by a real `git` child process."""

    def __init__(self, executable: str = "git"):
        self.executable = executable

    async def run(self, args: Sequence[str], cwd: Path, timeout: float) -> GitResult:
        command = " ".join([self.executable, *args])

        if not cwd.is_dir():
            return GitResult(success=False, stderr=f"Directory does not exist: {cwd}", command=command)

        # Never block on a credential prompt; stdin is the MCP transport
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except FileNotFoundError:
            logger.error("git_not_found", executable=self.executable)
            return GitResult(success=False, stderr="Git is not installed or not in PATH", command=command)
        except OSError as e:
            logger.error("git_spawn_failed", command=command, error=str(e))
            return GitResult(success=False, stderr=str(e), command=command)

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("git_command_timeout", command=command, timeout=timeout)
            return GitResult(
                success=False,
                stderr=f"Git command timed out after {timeout:g}s",
                command=command,
            )

        result = GitResult(
            success=process.returncode == 0,
            stdout=stdout.decode("utf-8", errors="replace").rstrip(),
            stderr=stderr.decode("utf-8", errors="replace").strip(),
            command=command,
            returncode=process.returncode,
        )
        if not result.success:
            logger.warning(
                "git_command_failed",
                command=command,
                returncode=result.returncode,
                stderr=result.stderr[:200],
            )
        return result


class GitRepository:
    """Git operations on the notes repository.

    Args:
        runner: Executes the git commands
        path: Working directory of the repository
        timeout: Per-command timeout in seconds
        remote: Default remote name
        branch: Default branch name
    """

    def __init__(
        self,
        runner: GitRunner,
        path: Path,
        timeout: float = 15.0,
        remote: str = "origin",
        branch: str = "main",
    ):
        self.runner = runner
        self.path = path
        self.timeout = timeout
        self.remote = remote
        self.branch = branch

    @classmethod
    def from_settings(cls, settings: Settings, runner: GitRunner | None = None) -> "GitRepository":
        return cls(
            runner or SubprocessGitRunner(),
            settings.repository_path,
            timeout=settings.git_timeout,
            remote=settings.remote_name,
            branch=settings.default_branch,
        )

    async def run(self, *args: str) -> GitResult:
        logger.debug("git_command", args=list(args), cwd=str(self.path))
        return await self.runner.run(list(args), self.path, self.timeout)

    # ============== Inspection ==============

    async def is_repository(self) -> bool:
        result = await self.run("rev-parse", "--git-dir")
        return result.success

    async def remote_info(self) -> RemoteInfo:
        """First configured remote, from `git remote -v`."""
        result = await self.run("remote", "-v")
        if not result.success:
            return RemoteInfo(has_remote=False)

        for line in result.stdout.splitlines():
            match = REMOTE_LINE_PATTERN.match(line.strip())
            if match:
                return RemoteInfo(has_remote=True, remote_name=match.group(1), remote_url=match.group(2))
        return RemoteInfo(has_remote=False)

    async def current_branch(self) -> str:
        result = await self.run("branch", "--show-current")
        if result.success and result.stdout:
            return result.stdout
        return self.branch

    async def status(self) -> GitStatus:
        """Working tree state: uncommitted changes, unpushed commits, branch, last commit."""
        porcelain = await self.run("status", "--porcelain")
        modified_files = []
        if porcelain.success:
            # Porcelain lines are "XY path"; the status columns may be blank
            modified_files = [line[3:] for line in porcelain.stdout.splitlines() if line.strip()]

        branch = await self.current_branch()
        remote = await self.remote_info()
        remote_name = remote.remote_name if remote.has_remote else self.remote

        has_unpushed = False
        if remote.has_remote:
            unpushed = await self.run("log", f"{remote_name}/{branch}..HEAD", "--oneline")
            has_unpushed = unpushed.success and bool(unpushed.stdout)

        head = await self.run("rev-parse", "HEAD")

        return GitStatus(
            has_uncommitted_changes=bool(modified_files),
            has_unpushed_commits=has_unpushed,
            current_branch=branch,
            remote_name=remote_name if remote.has_remote else "",
            last_commit_hash=head.stdout[:7] if head.success else "",
            modified_files=modified_files,
        )

    async def log(self, limit: int = 10) -> GitResult:
        return await self.run("log", "--oneline", f"-{limit}")

    async def diff(self, cached: bool = False) -> GitResult:
        return await self.run("diff", "--cached") if cached else await self.run("diff")

    async def list_branches(self) -> list[str]:
        result = await self.run("branch", "--list", "--format=%(refname:short)")
        if not result.success:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    async def repository_info(self) -> RepositoryInfo:
        if not await self.is_repository():
            return RepositoryInfo(is_repo=False)
        remote = await self.remote_info()
        return RepositoryInfo(
            is_repo=True,
            has_remote=remote.has_remote,
            status=await self.status(),
            remote=remote,
        )

    # ============== Mutation ==============

    async def init(self) -> GitResult:
        return await self.run("init", "-b", self.branch)

    async def add(self, files: Sequence[str] = (".",)) -> GitResult:
        return await self.run("add", *files)

    async def commit(self, message: str) -> GitResult:
        return await self.run("commit", "-m", message)

    async def reset(self, files: Sequence[str] = ()) -> GitResult:
        """Unstage files (everything when no files are given)."""
        return await self.run("reset", "HEAD", *files)

    async def discard(self, files: Sequence[str]) -> GitResult:
        """Throw away working tree changes to the given files."""
        return await self.run("checkout", "--", *files)

    async def create_branch(self, name: str, switch: bool = True) -> GitResult:
        if switch:
            return await self.run("checkout", "-b", name)
        return await self.run("branch", name)

    async def switch_branch(self, name: str) -> GitResult:
        return await self.run("checkout", name)

    async def add_remote(self, name: str, url: str) -> GitResult:
        return await self.run("remote", "add", name, url)

    # ============== Remote ==============

    async def fetch(self, remote: str | None = None) -> GitResult:
        return await self.run("fetch", remote or self.remote)

    async def pull(self, remote: str | None = None, branch: str | None = None) -> GitResult:
        return await self.run("pull", remote or self.remote, branch or self.branch)

    async def push(self, remote: str | None = None, branch: str | None = None) -> GitResult:
        return await self.run("push", remote or self.remote, branch or self.branch)

    # ============== Composite ==============

    async def add_and_commit(self, message: str, files: Sequence[str] = (".",)) -> GitResult:
        """Stage and commit. A clean tree is reported as a successful no-op."""
        added = await self.add(files)
        if not added.success:
            return added

        staged = await self.run("diff", "--cached", "--name-only")
        if staged.success and not staged.stdout:
            return GitResult(success=True, stdout=NO_CHANGES_MESSAGE, command="git commit")

        return await self.commit(message)

    async def add_commit_and_push(
        self,
        message: str,
        files: Sequence[str] = (".",),
        remote: str | None = None,
        branch: str | None = None,
    ) -> GitResult:
        """Stage, commit and push. Stops at the first failing step."""
        committed = await self.add_and_commit(message, files)
        if not committed.success or committed.stdout == NO_CHANGES_MESSAGE:
            return committed

        pushed = await self.push(remote, branch)
        if not pushed.success:
            return pushed

        return GitResult(
            success=True,
            stdout="\n".join(part for part in (committed.stdout, pushed.stdout, pushed.stderr) if part),
            command="git add/commit/push",
            returncode=0,
        )
