"""Jinja2 rendering of the project template tree."""

import asyncio
from pathlib import Path
import re
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


def pascal_case(value: str) -> str:
    """``coffee-menu`` -> ``CoffeeMenu``."""
    return "".join(word.capitalize() for word in re.split(r"[-_\s]+", value) if word)


def camel_case(value: str) -> str:
    pascal = pascal_case(value)
    return pascal[:1].lower() + pascal[1:]


_JSX_ESCAPES = str.maketrans({"&": "&amp;", "<": "&lt;", ">": "&gt;", "{": "&#123;", "}": "&#125;"})


def jsx_text(value: str) -> str:
    """Escape text placed between JSX tags."""
    return str(value).translate(_JSX_ESCAPES)


class TemplateRenderer:
    """Renders ``*.j2`` templates with a project context.

    A template at ``frontend/src/App.jsx.j2`` rendered through
    :meth:`render_tree` with prefix ``frontend`` lands at ``<out>/src/App.jsx``.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        self.template_dir = Path(template_dir or DEFAULT_TEMPLATE_DIR)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["pascal_case"] = pascal_case
        self.env.filters["camel_case"] = camel_case
        self.env.filters["jsx"] = jsx_text

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        return self.env.get_template(template_path).render(**context)

    async def render_to_file(
        self, template_path: str, output_path: Path, context: dict[str, Any]
    ) -> Path:
        content = self.render(template_path, context)
        await asyncio.to_thread(write_file, output_path, content)
        return output_path

    async def render_tree(
        self, template_prefix: str, output_dir: Path, context: dict[str, Any]
    ) -> list[Path]:
        """Render every template under ``template_prefix`` into ``output_dir``."""
        prefix_path = self.template_dir / template_prefix
        if not prefix_path.is_dir():
            return []

        written: list[Path] = []
        for template_file in sorted(prefix_path.rglob("*.j2")):
            rel = template_file.relative_to(prefix_path)
            output_file = Path(output_dir) / str(rel)[: -len(".j2")]
            template_key = f"{template_prefix}/{rel.as_posix()}"
            written.append(await self.render_to_file(template_key, output_file, context))
        return written


def write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
