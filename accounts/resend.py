import logging
from typing import Optional

import httpx

from accounts.errors import UpstreamError
from accounts.schemas import EmailMessage

logger = logging.getLogger(__name__)


class ResendClient:
    def __init__(self, api_key: str, http: httpx.AsyncClient, base_url: str = "https://api.resend.com"):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.http = http

    async def send(self, message: EmailMessage) -> Optional[str]:
        """
        Submit one email. Returns the provider's message id.

        Raises UpstreamError carrying the raw response body on a non-2xx
        answer, or the transport error text when the provider is unreachable.
        """
        try:
            response = await self.http.post(
                f"{self.base_url}/emails",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=message.model_dump(by_alias=True, exclude_none=True),
            )
        except httpx.HTTPError as e:
            logger.error(f"Error connecting to email provider: {e}")
            raise UpstreamError(str(e), body=str(e))

        if not response.is_success:
            raise UpstreamError(
                f"Email provider returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            return None
        return data.get("id") if isinstance(data, dict) else None
