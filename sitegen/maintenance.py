"""Operator repair tooling for generated projects.

``backfill_urls`` repairs projects whose deployment succeeded but whose URL
columns were never written; ``verify_urls`` checks what is recorded;
``cleanup_project`` tears a project down everywhere and is the only code
path that deletes project rows.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
import shutil

import httpx
import structlog

from sitegen.contracts.dto import DeploymentStatus, GeneratedProjectDTO, ProjectStatus
from sitegen.deploy import DeploymentTrigger
from sitegen.errors import NotFoundError, ProviderError
from sitegen.naming import project_hostnames, project_urls, repo_names
from sitegen.storage import ProjectStore

logger = structlog.get_logger()

URL_FIELDS = ("frontend_url", "backend_url", "admin_url")


@dataclass
class BackfillResult:
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


@dataclass
class UrlCheck:
    name: str
    url: str
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and self.status_code < 400


@dataclass
class CleanupReport:
    project_id: str
    removed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


async def backfill_urls(
    store: ProjectStore,
    project_id: str | None = None,
    base_domain: str | None = None,
) -> BackfillResult:
    """Write missing URLs from the latest succeeded deployment.

    Projects that already have ``frontend_url`` are left untouched. Without
    a succeeded deployment, URLs are derived from the slug only for projects
    in ``deployed`` status and only when ``base_domain`` is given.
    """
    result = BackfillResult()
    if project_id is not None:
        project = await store.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        projects = [project]
    else:
        projects = await store.list_projects(missing_urls=True, limit=10_000)

    for project in projects:
        if project.frontend_url:
            result.skipped.append(project.id)
            continue
        urls = await _recorded_urls(store, project, base_domain)
        if not urls.get("frontend"):
            logger.info("backfill_no_source", project_id=project.id)
            result.skipped.append(project.id)
            continue
        await store.update_project(
            project.id,
            frontend_url=urls.get("frontend"),
            backend_url=project.backend_url or urls.get("backend"),
            admin_url=project.admin_url or urls.get("admin"),
            metadata={"urls_backfilled": True},
        )
        logger.info("backfill_urls_written", project_id=project.id, url=urls["frontend"])
        result.updated.append(project.id)
    return result


async def _recorded_urls(
    store: ProjectStore, project: GeneratedProjectDTO, base_domain: str | None
) -> dict[str, str | None]:
    deployment = await store.latest_deployment(project.id, status=DeploymentStatus.SUCCEEDED)
    if deployment is not None:
        urls = dict(deployment.urls)
        if not urls.get("frontend") and deployment.url:
            urls["frontend"] = deployment.url
        return urls
    if project.status == ProjectStatus.DEPLOYED and base_domain:
        urls = project_urls(project.slug, base_domain)
        if not project.admin_path:
            urls.pop("admin")
        return urls
    return {}


async def verify_urls(
    store: ProjectStore, project_id: str, timeout: float = 10.0
) -> list[UrlCheck]:
    """GET every recorded URL of a project. Does not modify anything."""
    project = await store.get_project(project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    checks = [
        UrlCheck(name=name.removesuffix("_url"), url=getattr(project, name))
        for name in URL_FIELDS
        if getattr(project, name)
    ]
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        for check in checks:
            try:
                resp = await client.get(check.url)
                check.status_code = resp.status_code
            except httpx.HTTPError as e:
                check.error = f"{type(e).__name__}: {e}"
            logger.info(
                "url_checked",
                project_id=project_id,
                url=check.url,
                status_code=check.status_code,
                error=check.error,
            )
    return checks


async def cleanup_project(
    store: ProjectStore,
    trigger: DeploymentTrigger,
    project_id: str,
    *,
    delete_files: bool = True,
) -> CleanupReport:
    """Delete repos, hosting project, DNS records, files and finally the row.

    Provider failures are collected in the report; the row is only deleted
    when every external resource was removed.
    """
    project = await store.get_project(project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    report = CleanupReport(project_id=project_id)
    log = logger.bind(project_id=project_id, slug=project.slug)

    if trigger.github is not None:
        for repo in repo_names(project.slug).values():
            await _attempt(report, f"github:{repo}", trigger.github.delete_repo(repo))

    if trigger.railway is not None:
        hosting_id = project.hosting_project_id
        if hosting_id is None:
            try:
                hosting_id = await trigger.railway.find_project(project.slug)
            except ProviderError as e:
                report.errors.append(f"railway lookup: {e}")
        if hosting_id:
            await _attempt(
                report, f"railway:{hosting_id}", trigger.railway.delete_project(hosting_id)
            )

    if trigger.cloudflare is not None:
        for host in project_hostnames(project.slug, trigger.base_domain).values():
            await _attempt(report, f"dns:{host}", trigger.cloudflare.delete_records(host))

    if delete_files and project.output_path:
        path = Path(project.output_path)
        if path.exists():
            await asyncio.to_thread(shutil.rmtree, path)
            report.removed.append(f"files:{path}")

    if report.errors:
        log.warning("cleanup_incomplete", errors=report.errors)
        return report

    await store.delete_project(project_id)
    report.removed.append("row")
    log.info("project_cleaned_up", removed=report.removed)
    return report


async def _attempt(report: CleanupReport, label: str, action) -> None:
    try:
        outcome = await action
    except (ProviderError, httpx.HTTPError) as e:
        report.errors.append(f"{label}: {e}")
        return
    # delete_repo reports False for repos that never existed
    if outcome is not False:
        report.removed.append(label)
