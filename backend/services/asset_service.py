from core.config import settings
from core.errors import InvalidInput, InternalError, OracleUnavailable
from utils.timing import timeit
from typing import Any, Dict, List, Optional
import aiohttp
import asyncio
import logging
import re

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def format_token_balance(raw_balance: str, decimals: int) -> str:
    """Render an integer token amount with ``decimals`` places, trimming trailing zeros.

    >>> format_token_balance("1500000000000000000", 18)
    '1.5'
    """
    if decimals <= 0:
        return raw_balance
    padded = raw_balance.rjust(decimals + 1, "0")
    integer_part = padded[:-decimals] or "0"
    fractional_part = padded[-decimals:].rstrip("0")
    return f"{integer_part}.{fractional_part}" if fractional_part else integer_part


def _parse_decimals(value: Any) -> int:
    if isinstance(value, int):
        return value
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def map_erc20_asset(token: Dict[str, Any]) -> Dict[str, Any]:
    decimals = _parse_decimals(token.get("decimals"))
    raw_balance = str(token.get("balance") or "0")
    symbol = token.get("symbol") or "ERC20"
    return {
        "type": "ERC20",
        "contractAddress": token.get("token_address"),
        "symbol": symbol,
        "name": token.get("name") or token.get("symbol") or token.get("token_address"),
        "balance": format_token_balance(raw_balance, decimals),
        "rawBalance": raw_balance,
        "decimals": decimals,
    }


def map_nft_asset(nft: Dict[str, Any]) -> Dict[str, Any]:
    contract_type = "ERC1155" if nft.get("contract_type") == "ERC1155" else "ERC721"
    metadata = nft.get("normalized_metadata") or {}
    token_id = nft.get("token_id")
    return {
        "type": contract_type,
        "contractAddress": nft.get("token_address"),
        "tokenId": token_id,
        "symbol": nft.get("symbol") or contract_type,
        "name": nft.get("name") or f"{contract_type} #{token_id}",
        "balance": nft.get("amount") or "1",
        "image": metadata.get("image") or metadata.get("image_url") or None,
    }


async def _get_json(session: aiohttp.ClientSession, url: str, params: Dict[str, str], label: str) -> Dict[str, Any]:
    headers = {"X-API-Key": settings.MORALIS_API_KEY, "accept": "application/json"}
    timeout = aiohttp.ClientTimeout(total=settings.ORACLE_TIMEOUT_SECONDS)
    async with session.get(url, params=params, headers=headers, timeout=timeout) as resp:
        if resp.status >= 400:
            text = await resp.text()
            logger.error(f"Moralis {label} error {resp.status}: {text[:200]}")
            raise OracleUnavailable("Failed to fetch wallet assets")
        return await resp.json(content_type=None)


@timeit("get_wallet_assets")
async def get_wallet_assets(address: Optional[str], session: Optional[aiohttp.ClientSession] = None) -> Dict[str, List[Dict[str, Any]]]:
    """List the ERC20 balances and NFTs a wallet holds, for the burn form's asset picker."""
    if not address or not _ADDRESS_RE.match(address):
        raise InvalidInput("Missing or invalid address")
    if not settings.MORALIS_API_KEY:
        raise InternalError("MORALIS_API_KEY not configured")

    base = settings.MORALIS_API_BASE.rstrip("/")
    chain = settings.MORALIS_CHAIN

    async def _fetch(http: aiohttp.ClientSession):
        return await asyncio.gather(
            _get_json(http, f"{base}/wallets/{address}/tokens", {"chain": chain}, "ERC20"),
            _get_json(http, f"{base}/{address}/nft", {"chain": chain, "normalizeMetadata": "true"}, "NFT"),
        )

    try:
        if session is not None:
            erc20_json, nft_json = await _fetch(session)
        else:
            async with aiohttp.ClientSession() as own_session:
                erc20_json, nft_json = await _fetch(own_session)
    except OracleUnavailable:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.error(f"wallet-assets error for {address}: {e}")
        raise OracleUnavailable("Failed to fetch wallet assets") from e

    assets = [map_erc20_asset(t) for t in (erc20_json or {}).get("result") or []]
    assets.extend(map_nft_asset(n) for n in (nft_json or {}).get("result") or [])
    return {"assets": assets}
