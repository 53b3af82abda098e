"""HTTP clients for the source-control, hosting and DNS providers."""

from .cloudflare import CloudflareClient
from .github import GitHubClient
from .railway import RailwayClient

__all__ = ["CloudflareClient", "GitHubClient", "RailwayClient"]
