"""MonCash business API client for prefunded transfers."""
import logging
import time
from typing import Any, Dict, Optional

import httpx

from payout_engine.config import settings
from payout_engine.errors import ExternalDependencyError

logger = logging.getLogger(__name__)

MONCASH_SANDBOX_URL = "https://sandbox.moncashbutton.digicelgroup.com"
MONCASH_PRODUCTION_URL = "https://moncashbutton.digicelgroup.com"

# Tokens live for 3600s; refresh a little early
TOKEN_TTL_SECONDS = 3500


def get_moncash_base_url() -> str:
    return MONCASH_PRODUCTION_URL if settings.MONCASH_MODE == "production" else MONCASH_SANDBOX_URL


class MonCashClient:
    """Thin async wrapper over the MonCash prefunded account endpoints."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = base_url or get_moncash_base_url()
        self.timeout = timeout or settings.EXTERNAL_API_TIMEOUT_SECONDS
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(settings.MONCASH_CLIENT_ID and settings.MONCASH_SECRET_KEY)

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            raise ExternalDependencyError(f"MonCash {path} timed out") from e
        except httpx.HTTPStatusError as e:
            raise ExternalDependencyError(
                f"MonCash {path} returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalDependencyError(f"MonCash {path} failed: {e}") from e

    async def get_access_token(self) -> str:
        if self._token and self._token_expires_at > time.monotonic():
            return self._token
        if not self.configured:
            raise ExternalDependencyError("MonCash credentials not configured")

        data = await self._request(
            "POST",
            "/Api/oauth/token",
            auth=(settings.MONCASH_CLIENT_ID, settings.MONCASH_SECRET_KEY),
            data={"scope": "read,write", "grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        token = data.get("access_token")
        if not token:
            raise ExternalDependencyError("MonCash token response missing access_token")
        self._token = token
        self._token_expires_at = time.monotonic() + TOKEN_TTL_SECONDS
        return token

    async def _authorized(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        token = await self.get_access_token()
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        return await self._request(method, path, headers=headers, **kwargs)

    async def get_prefunded_balance(self) -> float:
        """Prefunded account balance in HTG (major units)."""
        data = await self._authorized("GET", "/Api/v1/PrefundedBalance")
        balance = data.get("balance")
        if isinstance(balance, dict):
            balance = balance.get("balance")
        try:
            return float(balance)
        except (TypeError, ValueError) as e:
            raise ExternalDependencyError(f"Unexpected MonCash balance payload: {data}") from e

    async def prefunded_transfer(self, amount: float, receiver: str, desc: str, reference: str) -> Dict[str, Any]:
        """Send ``amount`` HTG from the prefunded account to ``receiver``."""
        data = await self._authorized(
            "POST",
            "/Api/v1/Transfert",
            json={"amount": amount, "receiver": receiver, "desc": desc, "reference": reference},
        )
        transfer = data.get("transfer") or data
        transaction_id = transfer.get("transaction_id") or transfer.get("transactionId")
        if not transaction_id:
            raise ExternalDependencyError(f"MonCash transfer response missing transaction id: {data}")
        logger.info(f"MonCash prefunded transfer {reference} sent: {transaction_id}")
        return {"transaction_id": str(transaction_id), "raw": data}


moncash_client = MonCashClient()
