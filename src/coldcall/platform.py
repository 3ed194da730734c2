import logging
from datetime import datetime
from typing import Optional

import httpx

from coldcall.errors import CallNotFoundError, PlatformError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.vapi.ai"
WEBHOOK_TIMEOUT_SECONDS = 30


class VapiClient:
    """Async HTTP client for the Vapi REST API.

    One shared httpx.AsyncClient per instance. Failures are raised as
    PlatformError and never retried here; callers decide what to do.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        if client is not None:
            self._client = client
        else:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {api_key}",
                },
                timeout=self.timeout,
            )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _request(self, method: str, path: str, **kwargs):
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("%s %s timed out: %s", method, path, e)
            raise PlatformError(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise PlatformError(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            logger.error("%s %s returned %d: %s", method, path, resp.status_code, resp.text[:500])
            raise PlatformError(
                f"{method} {path} returned {resp.status_code}: {_error_message(resp)}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise PlatformError(f"{method} {path} returned invalid JSON", status_code=resp.status_code) from e

    # --- assistants ---

    async def list_assistants(self) -> list:
        return await self._request("GET", "/assistant")

    async def get_assistant(self, assistant_id: str) -> dict:
        return await self._request("GET", f"/assistant/{assistant_id}")

    async def update_assistant(self, assistant_id: str, config: dict) -> dict:
        body = {k: v for k, v in config.items() if k != "id"}
        return await self._request("PATCH", f"/assistant/{assistant_id}", json=body)

    async def update_assistant_webhook(self, assistant_id: str, webhook_url: str) -> dict:
        return await self.update_assistant(
            assistant_id,
            {"server": {"url": webhook_url, "timeoutSeconds": WEBHOOK_TIMEOUT_SECONDS}},
        )

    # --- phone numbers ---

    async def list_phone_numbers(self) -> list:
        return await self._request("GET", "/phone-number")

    async def update_phone_number_webhook(self, phone_number_id: str, webhook_url: str) -> dict:
        return await self._request(
            "PATCH",
            f"/phone-number/{phone_number_id}",
            json={"server": {"url": webhook_url, "timeoutSeconds": WEBHOOK_TIMEOUT_SECONDS}},
        )

    # --- calls ---

    async def create_call(
        self,
        assistant_id: str,
        phone_number_id: str,
        customer_number: str,
        scheduled_at: Optional[datetime] = None,
    ) -> dict:
        body = {
            "assistantId": assistant_id,
            "phoneNumberId": phone_number_id,
            "customer": {"number": customer_number},
        }
        if scheduled_at is not None:
            body["schedulePlan"] = {"earliestAt": scheduled_at.isoformat()}
        return await self._request("POST", "/call", json=body)

    async def list_calls(
        self,
        assistant_id: Optional[str] = None,
        created_after: Optional[datetime] = None,
        limit: int = 50,
    ) -> list:
        params = {"limit": limit}
        if assistant_id:
            params["assistantId"] = assistant_id
        if created_after is not None:
            params["createdAtGt"] = created_after.isoformat()
        return await self._request("GET", "/call", params=params)

    async def get_call(self, call_id: str) -> dict:
        try:
            return await self._request("GET", f"/call/{call_id}")
        except PlatformError as e:
            if e.status_code == 404:
                raise CallNotFoundError(call_id) from e
            raise

    # --- bulk ---

    async def configure_webhooks(self, webhook_url: str) -> dict:
        """Point every assistant and phone number at webhook_url.

        Per-resource failures are collected, not raised; listing failures raise.
        """
        assistants = await self.list_assistants()
        phones = await self.list_phone_numbers()
        results = []

        for assistant in assistants:
            entry = {"type": "assistant", "id": assistant.get("id"), "name": assistant.get("name")}
            try:
                await self.update_assistant_webhook(assistant["id"], webhook_url)
                entry["success"] = True
            except PlatformError as e:
                entry.update(success=False, error=str(e))
            results.append(entry)

        for phone in phones:
            entry = {"type": "phone", "id": phone.get("id"), "number": phone.get("number")}
            try:
                await self.update_phone_number_webhook(phone["id"], webhook_url)
                entry["success"] = True
            except PlatformError as e:
                entry.update(success=False, error=str(e))
            results.append(entry)

        ok = sum(1 for r in results if r["success"])
        failed = len(results) - ok
        message = f"Configured {ok} resources"
        if failed:
            message += f", {failed} failed"
        logger.info("Webhook configuration: %s -> %s", message, webhook_url)
        return {
            "success": failed == 0,
            "message": message,
            "webhookUrl": webhook_url,
            "results": results,
        }


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        if message:
            return str(message)
    return resp.text[:200]
