import logging
from typing import Any, List, Optional

import httpx

from accounts.errors import UpstreamError
from accounts.schemas import CallerIdentity, StoredObject

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response) -> str:
    """
    Pull the human-readable message out of a Supabase/PostgREST error body.
    """
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    if isinstance(data, dict):
        for key in ("msg", "message", "error_description", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.text or f"HTTP {response.status_code}"


class SupabaseClient:
    """
    Thin async client over the Supabase Auth, Storage and PostgREST APIs.

    Built with the anon key and the caller's token it acts as the caller
    (identity lookup, RPC). Built with the service-role key and no token it
    acts with administrative rights (storage cleanup, user deletion).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http: httpx.AsyncClient,
        access_token: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.http = http

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self.http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Error connecting to Supabase ({method} {path}): {e}")
            raise UpstreamError(str(e))

        if response.is_error:
            raise UpstreamError(
                error_message(response),
                status_code=response.status_code,
                body=response.text,
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            raise UpstreamError(
                f"Malformed response from Supabase: {response.text[:200]}",
                status_code=response.status_code,
                body=response.text,
            )

    # --- Auth ---

    async def get_user(self) -> CallerIdentity:
        response = await self._request("GET", "/auth/v1/user")
        data = self._json(response)
        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise UpstreamError("User not found", status_code=response.status_code)
        return CallerIdentity(user_id=user_id, email=data.get("email") or None)

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/auth/v1/admin/users/{user_id}")

    # --- Storage ---

    async def list_objects(self, bucket: str, prefix: str, limit: int, offset: int) -> List[dict]:
        response = await self._request(
            "POST",
            f"/storage/v1/object/list/{bucket}",
            json={
                "prefix": prefix,
                "limit": limit,
                "offset": offset,
                "sortBy": {"column": "name", "order": "asc"},
            },
        )
        entries = self._json(response)
        if entries is None:
            return []
        if not isinstance(entries, list):
            raise UpstreamError(
                f"Unexpected listing response: {response.text[:200]}",
                status_code=response.status_code,
                body=response.text,
            )
        return entries

    async def remove_objects(self, bucket: str, objects: List[StoredObject]) -> None:
        await self._request(
            "DELETE",
            f"/storage/v1/object/{bucket}",
            json={"prefixes": [obj.path for obj in objects]},
        )

    # --- PostgREST ---

    async def rpc(self, function: str, params: Optional[dict] = None) -> Any:
        response = await self._request("POST", f"/rest/v1/rpc/{function}", json=params or {})
        if not response.content:
            return None
        return self._json(response)
