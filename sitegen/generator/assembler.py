"""Materializes a project tree from a spec.

Layout of ``<output_root>/<slug>/``::

    frontend/   Vite + React site, one page component per page id
    backend/    Express API, one route file per module plus /api/health
    admin/      admin dashboard (only when admin modules are selected)
    brain.json  business configuration shared by the three apps
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
import json
from pathlib import Path
import shutil
from typing import Any

import structlog

from sitegen.contracts.dto import ProjectSpec
from sitegen.naming import project_urls, slugify

from .catalog import ModuleCatalog, ModuleInfo
from .content import ContentGenerator, PageCopy, page_title
from .templates import TemplateRenderer, pascal_case, write_file

logger = structlog.get_logger()

ProgressCallback = Callable[[int], Awaitable[None]]

DEFAULT_THEME = {
    "primary": "#1f2937",
    "secondary": "#2563eb",
    "accent": "#f59e0b",
    "background": "#ffffff",
    "text": "#111827",
    "font": "'Inter', system-ui, sans-serif",
}


@dataclass
class AssemblyOutput:
    slug: str
    project_dir: Path
    frontend_dir: Path
    backend_dir: Path
    admin_dir: Path | None
    files: list[Path] = field(default_factory=list)
    pages_generated: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def app_dirs(self) -> list[Path]:
        dirs = [self.frontend_dir, self.backend_dir]
        if self.admin_dir is not None:
            dirs.append(self.admin_dir)
        return dirs


class ProjectAssembler:
    def __init__(
        self,
        renderer: TemplateRenderer,
        content: ContentGenerator,
        catalog: ModuleCatalog,
        output_root: Path,
        base_domain: str,
    ):
        self.renderer = renderer
        self.content = content
        self.catalog = catalog
        self.output_root = Path(output_root)
        self.base_domain = base_domain

    async def assemble(
        self,
        job_id: str,
        spec: ProjectSpec,
        *,
        slug: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AssemblyOutput:
        """Write every file of the project. Runs no subprocesses.

        ``slug`` names the output directory and public hosts; it defaults to
        the slugified business name. A directory left by an earlier attempt
        is replaced.

        Raises:
            UnknownModuleError: a module is not in the library.
            OSError: the output directory could not be written.
        """
        slug = slug or slugify(spec.name)
        project_dir = self.output_root / slug
        modules = self.catalog.resolve_modules(spec.industry, spec.modules)
        page_ids = spec.pages or self.catalog.default_pages(spec.industry)
        admin_ids = spec.admin_modules or self.catalog.admin_modules_for(spec.admin_tier)

        if project_dir.exists():
            logger.info("project_dir_replaced", path=str(project_dir))
            await asyncio.to_thread(shutil.rmtree, project_dir)

        await _report(on_progress, 15)
        copies = await asyncio.gather(
            *(self.content.generate_page_copy(spec, page) for page in page_ids)
        )
        await _report(on_progress, 40)

        output = AssemblyOutput(
            slug=slug,
            project_dir=project_dir,
            frontend_dir=project_dir / "frontend",
            backend_dir=project_dir / "backend",
            admin_dir=project_dir / "admin" if admin_ids else None,
        )
        for copy in copies:
            output.input_tokens += copy.input_tokens
            output.output_tokens += copy.output_tokens
            output.total_cost += copy.cost
            if copy.error:
                output.errors.append(copy.error)

        context = self._context(spec, slug, modules, copies, admin_ids)

        output.files += await self.renderer.render_tree("frontend", output.frontend_dir, context)
        for page in context["pages"]:
            target = output.frontend_dir / "src" / "pages" / f"{page['component']}.jsx"
            page_context = {**context, "page": page}
            output.files.append(
                await self.renderer.render_to_file("pages/Page.jsx.j2", target, page_context)
            )
        output.pages_generated = len(context["pages"])
        await _report(on_progress, 55)

        output.files += await self.renderer.render_tree("backend", output.backend_dir, context)
        for module in context["modules"]:
            target = output.backend_dir / "routes" / f"{module['name']}.js"
            output.files.append(
                await self.renderer.render_to_file(
                    f"modules/{module['type']}.js.j2", target, {**context, "module": module}
                )
            )

        if output.admin_dir is not None:
            output.files += await self.renderer.render_tree("admin", output.admin_dir, context)
            admin_config = {
                "business": context["business"],
                "tier": spec.admin_tier.value,
                "modules": [m["id"] for m in context["admin_modules"]],
                "apiUrl": context["urls"]["backend"],
            }
            output.files.append(
                await _write_json(output.admin_dir / "admin-config.json", admin_config)
            )

        brain = self._brain(job_id, spec, context)
        output.files.append(await _write_json(project_dir / "brain.json", brain))
        await _report(on_progress, 60)

        logger.info(
            "project_assembled",
            job_id=job_id,
            slug=slug,
            files=len(output.files),
            pages=output.pages_generated,
            tokens=output.tokens_used,
            cost=round(output.total_cost, 6),
        )
        return output

    def _context(
        self,
        spec: ProjectSpec,
        slug: str,
        modules: list[ModuleInfo],
        copies: list[PageCopy],
        admin_ids: list[str],
    ) -> dict[str, Any]:
        module_dicts = [
            {
                "name": m.name,
                "type": m.type,
                "label": m.label,
                "singular": m.singular,
                "plural": m.plural,
                "admin_component": m.admin_component,
            }
            for m in modules
        ]
        by_name = {m["name"]: m for m in module_dicts}
        pages = [
            {
                "id": copy.page,
                "component": f"{pascal_case(copy.page)}Page",
                "title": page_title(copy.page),
                "path": "/" if copy.page == "home" else f"/{copy.page}",
                "headline": copy.headline,
                "subheadline": copy.subheadline,
                "sections": copy.sections,
                "module": by_name.get(copy.page),
            }
            for copy in copies
        ]
        return {
            "business": {
                "name": spec.name,
                "slug": slug,
                "industry": spec.industry,
                "description": spec.description,
                "tagline": spec.tagline,
                "location": spec.location,
                "phone": spec.phone,
                "email": spec.email,
            },
            "theme": {**DEFAULT_THEME, **spec.theme},
            "modules": module_dicts,
            "pages": pages,
            "admin_modules": [{"id": a, "label": self.catalog.admin_label(a)} for a in admin_ids],
            "urls": project_urls(slug, self.base_domain),
            "year": datetime.now(UTC).year,
        }

    @staticmethod
    def _brain(job_id: str, spec: ProjectSpec, context: dict[str, Any]) -> dict[str, Any]:
        return {
            "business": context["business"],
            "industry": spec.industry,
            "modules": context["modules"],
            "pages": [
                {"id": p["id"], "path": p["path"], "title": p["title"]} for p in context["pages"]
            ],
            "admin": {
                "tier": spec.admin_tier.value,
                "modules": [m["id"] for m in context["admin_modules"]],
            },
            "theme": context["theme"],
            "urls": context["urls"],
            "job_id": job_id,
            "generated_at": datetime.now(UTC).isoformat(),
        }


async def _report(callback: ProgressCallback | None, percent: int) -> None:
    if callback is not None:
        await callback(percent)


async def _write_json(path: Path, data: dict[str, Any]) -> Path:
    await asyncio.to_thread(write_file, path, json.dumps(data, indent=2) + "\n")
    return path
