"""Deployment trigger: publishes a generated project to GitHub, Railway and Cloudflare.

A deployment either completes every step or is rolled back. Completed steps
are undone in reverse order when a later step fails, and the project's URLs
are only written once the whole sequence succeeded. A redeploy reuses the
hosting project and services of the earlier one, and DNS records replaced
during a failed attempt are restored as they were.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
import uuid

import structlog

from sitegen.clients import CloudflareClient, GitHubClient, RailwayClient
from sitegen.config import Settings
from sitegen.contracts.dto import (
    DeploymentDTO,
    DeploymentStatus,
    GeneratedProjectDTO,
    ProjectStatus,
)
from sitegen.errors import DeployConfigError, DeploymentError, NotFoundError
from sitegen.naming import project_hostnames, project_urls, repo_names
from sitegen.storage import ProjectStore

logger = structlog.get_logger()

PLATFORM = "github+railway+cloudflare"

DEPLOYABLE_STATUSES = (
    ProjectStatus.COMPLETED,
    ProjectStatus.BUILD_PASSED,
    ProjectStatus.DEPLOYED,
    ProjectStatus.DEPLOY_FAILED,
)

# Only the public site goes through the Cloudflare proxy
PROXIED_APPS = {"frontend"}

Undo = Callable[[], Awaitable[Any]]


class _DeployRun:
    """Bookkeeping for one deployment attempt."""

    def __init__(self) -> None:
        self.steps: list[dict[str, Any]] = []
        self.undo_stack: list[tuple[str, Undo]] = []
        self.current_step: str | None = None

    def start(self, step: str) -> None:
        self.current_step = step

    def done(self, record: dict[str, Any], undo: Undo | None = None) -> None:
        self.steps.append({"step": self.current_step, **record})
        if undo is not None:
            self.undo_stack.append((self.current_step, undo))
        self.current_step = None


class DeploymentTrigger:
    def __init__(
        self,
        store: ProjectStore,
        *,
        github: GitHubClient | None,
        railway: RailwayClient | None,
        cloudflare: CloudflareClient | None,
        base_domain: str,
        admin_email: str = "",
    ):
        self.store = store
        self.github = github
        self.railway = railway
        self.cloudflare = cloudflare
        self.base_domain = base_domain
        self.admin_email = admin_email

    @classmethod
    def from_settings(cls, store: ProjectStore, settings: Settings) -> "DeploymentTrigger":
        github = GitHubClient(settings.github_token) if settings.github_token else None
        railway = (
            RailwayClient(settings.railway_token, team_id=settings.railway_team_id)
            if settings.railway_token
            else None
        )
        cloudflare = (
            CloudflareClient(settings.cloudflare_token, settings.cloudflare_zone_id)
            if settings.cloudflare_token and settings.cloudflare_zone_id
            else None
        )
        return cls(
            store,
            github=github,
            railway=railway,
            cloudflare=cloudflare,
            base_domain=settings.base_domain,
            admin_email=settings.admin_email,
        )

    def check_credentials(self) -> list[str]:
        """Names of the provider settings that are missing."""
        missing = []
        if self.github is None:
            missing.append("GITHUB_TOKEN")
        if self.railway is None:
            missing.append("RAILWAY_TOKEN")
        if self.cloudflare is None:
            missing.append("CLOUDFLARE_TOKEN/CLOUDFLARE_ZONE_ID")
        return missing

    async def deploy(self, project_id: str) -> DeploymentDTO:
        """Deploy a generated project.

        Step failures are recorded on the returned deployment (``rolled_back``
        or ``failed``); they are not raised.

        Raises:
            NotFoundError: unknown project.
            DeployConfigError: provider credentials missing (nothing is called).
            DeploymentError: the project has no finished build to deploy.
        """
        project = await self.store.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")

        missing = self.check_credentials()
        if missing:
            raise DeployConfigError(f"Missing deployment credentials: {', '.join(missing)}")

        if project.status not in DEPLOYABLE_STATUSES or not project.output_path:
            raise DeploymentError(
                f"Project {project_id} is not ready to deploy (status {project.status.value})"
            )

        deployment = await self.store.create_deployment(
            deployment_id=str(uuid.uuid4()), project_id=project_id, platform=PLATFORM
        )
        await self.store.update_deployment(deployment.id, status=DeploymentStatus.RUNNING)
        log = logger.bind(project_id=project_id, deployment_id=deployment.id, slug=project.slug)
        log.info("deployment_started")

        run = _DeployRun()
        try:
            result = await self._run_steps(project, run)
        except Exception as e:
            error = f"{run.current_step or 'deploy'}: {e}"
            log.error("deployment_step_failed", step=run.current_step, error=str(e))
            compensated = await self._rollback(run, log)
            status = DeploymentStatus.ROLLED_BACK if compensated else DeploymentStatus.FAILED
            deployment = await self.store.update_deployment(
                deployment.id, status=status, error=error, steps=run.steps
            )
            # a rolled back redeploy leaves the previous release serving
            still_live = compensated and project.status == ProjectStatus.DEPLOYED
            await self.store.update_project(
                project_id,
                status=ProjectStatus.DEPLOYED if still_live else ProjectStatus.DEPLOY_FAILED,
                metadata={"last_deploy_error": error, "last_deployment_id": deployment.id},
            )
            return deployment

        urls = result["urls"]
        deployment = await self.store.update_deployment(
            deployment.id,
            status=DeploymentStatus.SUCCEEDED,
            url=urls["frontend"],
            urls=urls,
            steps=run.steps,
            error=None,
        )
        await self.store.update_project(
            project_id,
            status=ProjectStatus.DEPLOYED,
            frontend_url=urls["frontend"],
            backend_url=urls["backend"],
            admin_url=urls.get("admin"),
            github_frontend=result["repos"].get("frontend"),
            github_backend=result["repos"].get("backend"),
            github_admin=result["repos"].get("admin"),
            hosting_project_id=result["hosting_project_id"],
            hosting_project_url=f"https://railway.app/project/{result['hosting_project_id']}",
            deployed_at=datetime.now(UTC),
            metadata={"last_deployment_id": deployment.id},
        )
        log.info("deployment_succeeded", url=urls["frontend"])
        return deployment

    async def _run_steps(self, project: GeneratedProjectDTO, run: _DeployRun) -> dict[str, Any]:
        apps = _app_dirs(project)
        names = repo_names(project.slug)
        hosts = project_hostnames(project.slug, self.base_domain)
        urls = {
            app: url
            for app, url in project_urls(project.slug, self.base_domain).items()
            if app in apps
        }

        repos: dict[str, dict] = {}
        for app in apps:
            run.start("github_repo")
            repo = await self.github.create_repo(names[app], description=f"{project.name} {app}")
            repos[app] = repo
            undo = None if repo["existed"] else _bind(self.github.delete_repo, names[app])
            run.done({"app": app, "repo": repo["full_name"], "created": not repo["existed"]}, undo)

        for app, path in apps.items():
            run.start("github_push")
            await self.github.push_folder(path, names[app], message=f"Deploy {project.name}")
            run.done({"app": app, "repo": repos[app]["full_name"]})

        run.start("hosting_project")
        hosting = await self._existing_hosting(project)
        reused = hosting is not None
        undo = None
        if hosting is None:
            created = await self.railway.create_project(project.slug)
            hosting = {**created, "services": {}}
            undo = _bind(self.railway.delete_project, hosting["id"])
        environment_id = hosting["environment_id"]
        run.done({"project_id": hosting["id"], "created": not reused}, undo)

        services: dict[str, str] = {}
        new_services: list[str] = []
        for app in apps:
            run.start("hosting_service")
            service_id = hosting["services"].get(app)
            if service_id:
                services[app] = service_id
                run.done({"app": app, "service_id": service_id, "created": False})
                continue
            service = await self.railway.create_service(hosting["id"], app, repos[app]["full_name"])
            services[app] = service["id"]
            new_services.append(app)
            # a new hosting project takes its services with it on delete
            undo = _bind(self.railway.delete_service, service["id"]) if reused else None
            run.done({"app": app, "service_id": service["id"], "created": True}, undo)

        for app, service_id in services.items():
            run.start("hosting_variables")
            variables = self._service_variables(app, urls)
            await self.railway.set_variables(hosting["id"], environment_id, service_id, variables)
            await self.railway.redeploy_service(service_id, environment_id)
            run.done({"app": app, "variables": sorted(variables)})

        # existing services keep the domains and DNS records of their first deploy
        for app in new_services:
            service_id = services[app]
            run.start("hosting_domain")
            target = await self.railway.create_service_domain(service_id, environment_id)
            await self.railway.add_custom_domain(
                hosting["id"], environment_id, service_id, hosts[app]
            )
            run.done({"app": app, "domain": hosts[app], "target": target})

            run.start("dns_record")
            previous = await self.cloudflare.list_records(hosts[app])
            record_id = await self.cloudflare.upsert_cname(
                hosts[app], target, proxied=app in PROXIED_APPS
            )
            run.done(
                {"app": app, "name": hosts[app], "record_id": record_id},
                _bind(self.cloudflare.restore_records, hosts[app], previous),
            )

        return {
            "urls": urls,
            "repos": {app: repo["html_url"] for app, repo in repos.items()},
            "hosting_project_id": hosting["id"],
        }

    async def _existing_hosting(self, project: GeneratedProjectDTO) -> dict | None:
        """The hosting project an earlier deploy left behind, if it still exists."""
        hosting_id = project.hosting_project_id or await self.railway.find_project(project.slug)
        if not hosting_id:
            return None
        return await self.railway.get_project(hosting_id)

    def _service_variables(self, app: str, urls: dict[str, str]) -> dict[str, str]:
        if app == "backend":
            return {"NODE_ENV": "production", "PORT": "5000", "CORS_ORIGIN": urls["frontend"]}
        variables = {"NODE_ENV": "production", "VITE_API_URL": urls["backend"]}
        if app == "admin" and self.admin_email:
            variables["ADMIN_EMAIL"] = self.admin_email
        return variables

    async def _rollback(self, run: _DeployRun, log) -> bool:
        """Undo completed steps newest first. Returns False if any undo failed."""
        ok = True
        for step, undo in reversed(run.undo_stack):
            try:
                await undo()
                log.info("deployment_step_undone", step=step)
            except Exception as e:
                ok = False
                log.error("deployment_undo_failed", step=step, error=str(e))
        run.steps.append({"step": "rollback", "complete": ok})
        return ok


def _app_dirs(project: GeneratedProjectDTO) -> dict[str, Path]:
    apps = {
        "frontend": project.frontend_path,
        "backend": project.backend_path,
        "admin": project.admin_path,
    }
    return {app: Path(path) for app, path in apps.items() if path}


def _bind(func: Callable[..., Awaitable[Any]], *args: Any) -> Undo:
    async def undo() -> Any:
        return await func(*args)

    return undo
