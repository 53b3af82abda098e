"""Project generation: module catalog, templates, AI copy and builds."""

from .assembler import AssemblyOutput, ProjectAssembler
from .build import BuildReport, BuildRunner
from .catalog import ModuleCatalog, get_catalog
from .content import ContentGenerator
from .templates import TemplateRenderer

__all__ = [
    "AssemblyOutput",
    "BuildReport",
    "BuildRunner",
    "ContentGenerator",
    "ModuleCatalog",
    "ProjectAssembler",
    "TemplateRenderer",
    "get_catalog",
]
