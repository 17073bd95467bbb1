# Overview: HTTP client for the external commerce platform's locations, catalog and inventory API.

"""
Commerce Platform Client

Talks to a Shopify-compatible Admin REST API. Every request carries a
per-call timeout; transport errors, timeouts and non-2xx responses all
surface as ExternalFetchError so callers can treat them uniformly.

The reconciler depends only on the four operations below, so tests and
alternative platforms can supply any object with the same methods.
"""

from __future__ import annotations

import time

import httpx
from flask import current_app

from .errors import ExternalFetchError

PRODUCTS_PAGE_LIMIT = 250
INVENTORY_LEVELS_LIMIT = 250


class CommerceClient:
    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        *,
        api_version: str = "2024-01",
        timeout: float = 15.0,
        page_delay: float = 0.5,
        transport: httpx.BaseTransport | None = None,
        sleep=time.sleep,
    ):
        if not shop_domain or not access_token:
            raise ExternalFetchError(
                "Commerce platform credentials not configured. "
                "Set COMMERCE_SHOP_DOMAIN and COMMERCE_ACCESS_TOKEN."
            )
        self.base_url = f"https://{shop_domain}/admin/api/{api_version}"
        self.page_delay = page_delay
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config) -> "CommerceClient":
        return cls(
            config["COMMERCE_SHOP_DOMAIN"],
            config["COMMERCE_ACCESS_TOKEN"],
            api_version=config["COMMERCE_API_VERSION"],
            timeout=config["COMMERCE_TIMEOUT"],
            page_delay=config["COMMERCE_PAGE_DELAY"],
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _get(self, path: str, params: dict | None = None) -> dict:
        return self._get_page(path, params)[0]

    def _get_page(self, path: str, params: dict | None = None) -> tuple[dict, str | None]:
        """JSON body plus the rel="next" URL from the Link header, if any."""
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response.json(), response.links.get("next", {}).get("url")
        except httpx.TimeoutException as exc:
            raise ExternalFetchError(f"Commerce API timeout: {path}", details={"path": path}) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 401:
                message = "Invalid commerce platform credentials"
            elif status == 404:
                message = f"Commerce resource not found: {path}"
            elif status == 429:
                message = "Commerce API rate limit exceeded"
            else:
                message = f"Commerce API error {status}: {path}"
            raise ExternalFetchError(message, details={"path": path, "status": status}) from exc
        except httpx.HTTPError as exc:
            raise ExternalFetchError(f"Commerce API request failed: {path}", details={"path": path, "reason": str(exc)}) from exc
        except ValueError as exc:
            raise ExternalFetchError(f"Commerce API returned invalid JSON: {path}", details={"path": path}) from exc

    def list_locations(self) -> list[dict]:
        return self._get("/locations.json").get("locations", [])

    def list_products(self) -> list[dict]:
        """All products with variants, paged by since_id."""
        products: list[dict] = []
        since_id = 0
        page = 0
        while True:
            page += 1
            batch = self._get(
                "/products.json",
                params={
                    "limit": PRODUCTS_PAGE_LIMIT,
                    "since_id": since_id,
                    "fields": "id,title,product_type,tags,variants",
                },
            ).get("products", [])
            if not batch:
                break
            products.extend(batch)
            current_app.logger.debug("Fetched products page %d (%d items)", page, len(batch))
            if len(batch) < PRODUCTS_PAGE_LIMIT:
                break
            since_id = batch[-1]["id"]
            if self.page_delay:
                self._sleep(self.page_delay)
        return products

    def get_variant(self, variant_id: str) -> dict:
        return self._get(f"/variants/{variant_id}.json").get("variant", {})

    def get_inventory_levels(self, item_ids: list[str]) -> list[dict]:
        """
        Inventory levels for one batch of inventory item ids.

        One item has a level per location, so a batch can exceed one page.
        Follows the Link header (page_info cursor) until it is exhausted.
        """
        if not item_ids:
            return []
        levels: list[dict] = []
        path = "/inventory_levels.json"
        params = {
            "inventory_item_ids": ",".join(str(i) for i in item_ids),
            "limit": INVENTORY_LEVELS_LIMIT,
        }
        while True:
            body, next_url = self._get_page(path, params)
            levels.extend(body.get("inventory_levels", []))
            if not next_url:
                break
            # The cursor URL carries page_info and limit; other filters are not allowed
            path, params = next_url, None
            if self.page_delay:
                self._sleep(self.page_delay)
        return levels

    def resolve_external_item_ids(self, products) -> tuple[dict, list[dict]]:
        """
        Map local product id -> external inventory item id.

        Looks up each product's variant. Returns the mapping plus a list of
        per-product errors; one failed lookup does not stop the others.
        """
        resolved: dict[int, str] = {}
        errors: list[dict] = []
        for product in products:
            try:
                variant = self.get_variant(product.external_variant_id)
            except ExternalFetchError as exc:
                errors.append({"product": product.name, "product_id": product.id, "error": exc.message})
                continue
            item_id = variant.get("inventory_item_id")
            if item_id:
                resolved[product.id] = str(item_id)
            else:
                errors.append({
                    "product": product.name,
                    "product_id": product.id,
                    "error": "Variant has no inventory item id",
                })
        return resolved, errors
