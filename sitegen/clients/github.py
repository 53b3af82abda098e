"""GitHub REST client authenticated with a personal access token."""

import asyncio
import base64
import os
from pathlib import Path
import shutil

import httpx

from sitegen.errors import ProviderError
from sitegen.logging_config import get_logger

logger = get_logger(__name__)

GITIGNORE = """node_modules/
.env
.env.local
dist/
*.log
.DS_Store
"""


class GitHubClient:
    """Creates, pushes and deletes the per-project repositories."""

    def __init__(
        self,
        token: str,
        username: str | None = None,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
    ):
        self.token = token
        self._username = username
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "sitegen-deploy",
        }

    async def get_username(self) -> str:
        if self._username:
            return self._username
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(f"{self.api_url}/user", headers=self.headers)
        if resp.status_code != 200:
            raise ProviderError("github", f"could not resolve user: {resp.text}", resp.status_code)
        self._username = resp.json()["login"]
        return self._username

    async def create_repo(self, name: str, description: str = "", private: bool = False) -> dict:
        """Create a repository under the token's user.

        A repository that already exists is returned as is, flagged with
        ``existed=True``.
        """
        owner = await self.get_username()
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.api_url}/user/repos",
                headers=self.headers,
                json={"name": name, "description": description, "private": private},
            )

        if resp.status_code == 201:
            data = resp.json()
            logger.info("github_repo_created", repo=data["full_name"])
            return {
                "name": data["name"],
                "full_name": data["full_name"],
                "html_url": data["html_url"],
                "clone_url": data["clone_url"],
                "existed": False,
            }
        if resp.status_code == 422 and "already exists" in resp.text:
            logger.info("github_repo_exists", repo=f"{owner}/{name}")
            return {
                "name": name,
                "full_name": f"{owner}/{name}",
                "html_url": f"https://github.com/{owner}/{name}",
                "clone_url": f"https://github.com/{owner}/{name}.git",
                "existed": True,
            }
        raise ProviderError("github", f"create repo {name} failed: {resp.text}", resp.status_code)

    async def delete_repo(self, name: str) -> bool:
        """Delete a repository. Returns False when it did not exist."""
        owner = await self.get_username()
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.delete(f"{self.api_url}/repos/{owner}/{name}", headers=self.headers)

        if resp.status_code == 204:
            logger.info("github_repo_deleted", repo=f"{owner}/{name}")
            return True
        if resp.status_code == 404:
            logger.info("github_repo_missing", repo=f"{owner}/{name}")
            return False
        raise ProviderError("github", f"delete repo {name} failed: {resp.text}", resp.status_code)

    async def push_folder(
        self, path: Path, repo_name: str, message: str = "Initial commit"
    ) -> None:
        """Push the contents of ``path`` as the ``main`` branch, replacing any history."""
        owner = await self.get_username()
        remote = f"https://github.com/{owner}/{repo_name}.git"

        git_dir = path / ".git"
        if git_dir.exists():
            await asyncio.to_thread(shutil.rmtree, git_dir)
        (path / ".gitignore").write_text(GITIGNORE)

        commands = [
            ["init"],
            ["add", "-A"],
            [
                "-c",
                "user.name=sitegen",
                "-c",
                "user.email=deploy@sitegen.local",
                "commit",
                "-m",
                message,
            ],
            ["branch", "-M", "main"],
            ["remote", "add", "origin", remote],
        ]
        for args in commands:
            await self._git(path, args)
        await self._git(path, ["push", "-u", "origin", "main", "--force"], env=self._auth_env())
        logger.info("github_repo_pushed", repo=f"{owner}/{repo_name}", path=str(path))

    def _auth_env(self) -> dict[str, str]:
        """Auth header as environment config, so the token stays out of argv and .git/config."""
        credentials = base64.b64encode(f"x-access-token:{self.token}".encode()).decode()
        return {
            **os.environ,
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.https://github.com/.extraheader",
            "GIT_CONFIG_VALUE_0": f"AUTHORIZATION: basic {credentials}",
        }

    async def _git(self, cwd: Path, args: list[str], env: dict[str, str] | None = None) -> None:
        git_path = shutil.which("git")
        if not git_path:
            raise ProviderError("github", "git not found in PATH")
        proc = await asyncio.create_subprocess_exec(
            git_path,
            *args,
            cwd=str(cwd),
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr_bytes = await proc.communicate()
        if proc.returncode != 0:
            stderr = stderr_bytes.decode(errors="replace").replace(self.token, "***")
            raise ProviderError("github", f"git {args[0]} failed: {stderr.strip()}")
