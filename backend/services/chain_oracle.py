from core.config import settings
from core.errors import InternalError, OracleUnavailable
from dataclasses import dataclass
from typing import Any, Dict, Optional
import aiohttp
import asyncio
import logging

logger = logging.getLogger(__name__)

NOT_INDEXED_MARKER = "no transaction found"
STATUS_FIELDS = ("receipt_status", "receipt_status_code", "receipt_status_name")


@dataclass
class TransactionInfo:
    tx_hash: str
    from_address: Optional[str]
    to_address: Optional[str]
    status: Any
    status_ok: bool


def is_success_status(raw: Any) -> bool:
    """Normalize the indexer's receipt status (1, "1", "success", "SUCCESS", ...) to a bool."""
    if isinstance(raw, bool):
        return False
    if isinstance(raw, int):
        return raw == 1
    if isinstance(raw, str):
        return raw.strip().lower() in ("1", "success")
    return False


def _lower_or_none(value: Any) -> Optional[str]:
    return value.lower() if isinstance(value, str) else None


def parse_transaction(tx_hash: str, payload: Dict[str, Any]) -> TransactionInfo:
    status = next((payload[f] for f in STATUS_FIELDS if payload.get(f) is not None), None)
    return TransactionInfo(
        tx_hash=tx_hash,
        from_address=_lower_or_none(payload.get("from_address")),
        to_address=_lower_or_none(payload.get("to_address")),
        status=status,
        status_ok=is_success_status(status),
    )


class ChainOracleClient:
    """Looks up mined transactions on the Moralis deep-index API.

    A 404 "No transaction found" means the indexer has not caught up with the
    chain yet; those are retried with a fixed delay. Every other failure is
    terminal and surfaces as ``OracleUnavailable``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        chain: Optional[str] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.MORALIS_API_KEY
        self.base_url = (base_url or settings.MORALIS_API_BASE).rstrip("/")
        self.chain = chain or settings.MORALIS_CHAIN
        self.max_attempts = max_attempts or settings.ORACLE_MAX_ATTEMPTS
        self.retry_delay = settings.ORACLE_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.timeout = timeout or settings.ORACLE_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        return {"X-API-Key": self.api_key, "accept": "application/json"}

    async def fetch_transaction(self, tx_hash: str, session: Optional[aiohttp.ClientSession] = None) -> TransactionInfo:
        if not self.api_key:
            raise InternalError("Moralis API key missing")
        if session is not None:
            return await self._fetch_with_retry(session, tx_hash)
        async with aiohttp.ClientSession() as own_session:
            return await self._fetch_with_retry(own_session, tx_hash)

    async def _fetch_with_retry(self, session: aiohttp.ClientSession, tx_hash: str) -> TransactionInfo:
        url = f"{self.base_url}/transaction/{tx_hash}"
        params = {"chain": self.chain}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        for attempt in range(1, self.max_attempts + 1):
            try:
                async with session.get(url, params=params, headers=self._headers(), timeout=timeout) as resp:
                    status_code = resp.status
                    if 200 <= status_code < 300:
                        payload = await resp.json(content_type=None)
                        if not isinstance(payload, dict):
                            raise ValueError("transaction payload is not an object")
                        return parse_transaction(tx_hash, payload)
                    text = await resp.text()
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                logger.error(f"Moralis tx lookup failed for {tx_hash}: {e}")
                raise OracleUnavailable("Failed to fetch transaction from Moralis") from e

            logger.error(f"Moralis tx error {status_code} for {tx_hash}: {text[:200]}")
            not_indexed = status_code == 404 and NOT_INDEXED_MARKER in text.lower()
            if not_indexed and attempt < self.max_attempts:
                logger.info(f"Transaction {tx_hash} not indexed yet, retry {attempt}/{self.max_attempts - 1} in {self.retry_delay}s")
                await asyncio.sleep(self.retry_delay)
                continue
            raise OracleUnavailable(
                "Failed to fetch transaction from Moralis",
                details={"status": status_code, "attempts": attempt},
            )

        raise OracleUnavailable("Failed to fetch transaction from Moralis")
