"""
Supabase REST (PostgREST) client for reading glucose and insulin rows.
"""
import logging
from typing import Any, Optional

import httpx

from glucose_analytics.config import StorageSettings


class SupabaseRestClient:
    def __init__(self, settings: Optional[StorageSettings] = None):
        self.settings = settings or StorageSettings.from_env()
        self.base_url = self.settings.rest_url
        self.headers = {
            "content-type": "application/json",
            "apikey": self.settings.api_key,
            "authorization": f"Bearer {self.settings.api_key}",
        }

    async def _make_request(self, method: str, endpoint: str, params=None, json_data=None) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        timeout = httpx.Timeout(self.settings.timeout_seconds, connect=self.settings.connect_timeout_seconds)

        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
                response = await client.request(
                    method=method.upper(),
                    url=url,
                    params=params,
                    json=json_data,
                    headers=self.headers,
                )
                logging.info(f"Request {url} completed with status: {response.status_code}")
                response.raise_for_status()
                return response.json() if response.text else []
        except httpx.TimeoutException as e:
            logging.error(f"Timeout error calling Supabase REST API {method} {url}: {e}")
            raise
        except httpx.RequestError as e:
            logging.error(f"Request error calling Supabase REST API {method} {url}: {e}")
            raise
        except httpx.HTTPStatusError as e:
            logging.error(f"HTTP error calling Supabase REST API {method} {url}: {e}")
            logging.error(f"Response status: {e.response.status_code}")
            logging.error(f"Response text: {e.response.text}")
            raise

    async def select(
        self,
        table: str,
        *,
        filters: Optional[list[tuple[str, str]]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Any:
        """
        Select rows from a table.

        Args:
            table: Table name
            filters: PostgREST filters as (column, "op.value") pairs, e.g. ("value", "gte.40")
            order: Order clause, e.g. "system_time.asc"
            limit: Maximum rows to return
            offset: Rows to skip

        Returns:
            The decoded JSON body (a list of rows on success)
        """
        params: list[tuple[str, str]] = [("select", "*")]
        params.extend(filters or [])
        if order:
            params.append(("order", order))
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset is not None:
            params.append(("offset", str(offset)))

        logging.info(f"Selecting rows from {table}")
        return await self._make_request("GET", table, params=params)
