"""Slugs, repository names and public URLs derived from a business name."""

import re


def slugify(name: str, max_length: int = 63) -> str:
    """DNS-safe subdomain label: lowercase, ``&`` spelled out, other runs collapsed to ``-``.

    >>> slugify("Coffee & Co.")
    'coffee-and-co'
    """
    slug = name.lower().replace("&", "-and-")
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug[:max_length].rstrip("-") or "project"


def unique_slug(base: str, project_id: str, max_length: int = 63) -> str:
    """``base`` suffixed with the first block of ``project_id``, for when ``base`` is taken.

    >>> unique_slug("coffee2u", "3f9a2c1e-0000-4000-8000-000000000000")
    'coffee2u-3f9a2c1e'
    """
    suffix = project_id.split("-")[0][:8]
    return f"{base[: max_length - len(suffix) - 1].rstrip('-')}-{suffix}"


def project_urls(slug: str, base_domain: str) -> dict[str, str]:
    return {
        "frontend": f"https://{slug}.{base_domain}",
        "backend": f"https://api.{slug}.{base_domain}",
        "admin": f"https://admin.{slug}.{base_domain}",
    }


def project_hostnames(slug: str, base_domain: str) -> dict[str, str]:
    return {
        "frontend": f"{slug}.{base_domain}",
        "backend": f"api.{slug}.{base_domain}",
        "admin": f"admin.{slug}.{base_domain}",
    }


def repo_names(slug: str) -> dict[str, str]:
    return {
        "frontend": f"{slug}-frontend",
        "backend": f"{slug}-backend",
        "admin": f"{slug}-admin",
    }
