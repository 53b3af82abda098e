"""Cloudflare DNS client."""

import httpx

from sitegen.errors import ProviderError
from sitegen.logging_config import get_logger

logger = get_logger(__name__)

# Fields that recreate a record as it was
RECORD_FIELDS = ("type", "name", "content", "proxied", "ttl")


class CloudflareClient:
    def __init__(
        self,
        token: str,
        zone_id: str,
        api_url: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 30.0,
    ):
        self.token = token
        self.zone_id = zone_id
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def zone_url(self) -> str:
        return f"{self.api_url}/zones/{self.zone_id}"

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.request(
                method, f"{self.zone_url}{path}", headers=self.headers, **kwargs
            )
        try:
            body = resp.json()
        except ValueError as e:
            raise ProviderError(
                "cloudflare", f"invalid response: {resp.text}", resp.status_code
            ) from e
        if not resp.is_success or not body.get("success", False):
            errors = body.get("errors") or resp.text
            raise ProviderError("cloudflare", f"{method} {path} failed: {errors}", resp.status_code)
        return body

    async def list_records(self, name: str) -> list[dict]:
        body = await self._request("GET", "/dns_records", params={"name": name})
        return body.get("result") or []

    async def delete_records(self, name: str) -> int:
        """Delete every record for ``name``. Returns how many were removed."""
        records = await self.list_records(name)
        for record in records:
            await self._request("DELETE", f"/dns_records/{record['id']}")
        if records:
            logger.info("dns_records_deleted", name=name, count=len(records))
        return len(records)

    async def restore_records(self, name: str, records: list[dict]) -> None:
        """Put back records saved from :meth:`list_records`, replacing the current ones."""
        await self.delete_records(name)
        for record in records:
            await self._request(
                "POST",
                "/dns_records",
                json={key: record[key] for key in RECORD_FIELDS if key in record},
            )
        logger.info("dns_records_restored", name=name, count=len(records))

    async def upsert_cname(self, name: str, target: str, proxied: bool = True) -> str:
        """Replace whatever exists for ``name`` with a CNAME to ``target``.

        Returns the record id.
        """
        await self.delete_records(name)
        body = await self._request(
            "POST",
            "/dns_records",
            json={"type": "CNAME", "name": name, "content": target, "proxied": proxied, "ttl": 1},
        )
        record_id = body["result"]["id"]
        logger.info("dns_cname_created", name=name, target=target, proxied=proxied)
        return record_id
