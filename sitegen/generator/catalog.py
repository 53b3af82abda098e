"""Module library: which backend modules, pages and admin sections a project gets."""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

from sitegen.contracts.dto import AdminTier
from sitegen.errors import UnknownModuleError

CATALOG_FILE = Path(__file__).parent / "catalog.yaml"


@dataclass(frozen=True)
class ModuleInfo:
    name: str
    type: str
    label: str
    singular: str
    plural: str
    admin_component: str


class ModuleCatalog:
    """Read-only view over ``catalog.yaml``."""

    def __init__(self, data: dict):
        self._types: dict = data.get("module_types", {})
        self._modules: dict = data.get("modules", {})
        self._industries: dict[str, list[str]] = data.get("industries", {})
        self._fallback: list[str] = data.get("fallback_modules", ["services"])
        self._default_pages: list[str] = data.get("default_pages", ["home", "contact"])
        self._industry_pages: dict[str, list[str]] = data.get("industry_pages", {})
        self._admin_modules: dict[str, str] = data.get("admin_modules", {})
        self._admin_tiers: dict[str, list[str]] = data.get("admin_tiers", {})

    @classmethod
    def load(cls, path: Path = CATALOG_FILE) -> "ModuleCatalog":
        with open(path) as f:
            return cls(yaml.safe_load(f) or {})

    @property
    def module_names(self) -> list[str]:
        return sorted(self._modules)

    @property
    def industries(self) -> list[str]:
        return sorted(self._industries)

    def is_known(self, name: str) -> bool:
        return name in self._modules

    def module(self, name: str) -> ModuleInfo:
        if name not in self._modules:
            raise UnknownModuleError(f"Unknown module: {name}")
        entry = self._modules[name]
        module_type = entry["type"]
        return ModuleInfo(
            name=name,
            type=module_type,
            label=entry.get("label", name.replace("-", " ").title()),
            singular=entry.get("singular", "Item"),
            plural=entry.get("plural", "Items"),
            admin_component=self._types.get(module_type, {}).get(
                "admin_component", "CatalogEditor"
            ),
        )

    def resolve_modules(
        self, industry: str, requested: list[str] | None = None
    ) -> list[ModuleInfo]:
        """Requested modules, or the industry defaults when none were requested.

        Raises:
            UnknownModuleError: a requested name is not in the library.
        """
        names = list(requested or []) or self._industries.get(industry, self._fallback)
        unknown = [name for name in names if name not in self._modules]
        if unknown:
            raise UnknownModuleError(f"Unknown module(s): {', '.join(unknown)}")
        return [self.module(name) for name in names]

    def default_pages(self, industry: str) -> list[str]:
        return list(self._industry_pages.get(industry, self._default_pages))

    def admin_modules_for(self, tier: AdminTier | str) -> list[str]:
        tier = AdminTier(tier).value
        return list(self._admin_tiers.get(tier, []))

    def admin_label(self, name: str) -> str:
        return self._admin_modules.get(name, name.replace("-", " ").title())

    def validate_admin_modules(self, names: list[str]) -> None:
        unknown = [name for name in names if name not in self._admin_modules]
        if unknown:
            raise UnknownModuleError(f"Unknown admin module(s): {', '.join(unknown)}")


@lru_cache
def get_catalog() -> ModuleCatalog:
    """Packaged catalog, loaded once per process."""
    return ModuleCatalog.load()
