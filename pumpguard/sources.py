"""
UPSTREAM SOURCES
================
Thin async clients over the Solana JSON-RPC (plus the Helius DAS extension)
and the Helius enhanced-transactions API.

Each client returns the dataclasses from models.py and raises UpstreamError
(or a subclass) when the upstream answers badly. Ledger lookups go through
the shared TTLCache so a repeated evaluation within a minute is free.
"""

import asyncio
import functools
import logging
import math
import random
from typing import Optional

import httpx

from .cache import LEDGER_TTL, MISSING, TTLCache, cache_key
from .config import GuardConfig, HELIUS_API, HELIUS_RPC_TEMPLATE
from .errors import MissingCredentialError, UpstreamError, UpstreamTimeout
from .models import (
    EnhancedTx, LargestHolder, MintAuthorities, NativeTransfer, SignatureInfo,
    TokenAccount, TokenAccountsPage, TokenSupply, TokenTransfer,
)

log = logging.getLogger("pumpguard.sources")

SPL_TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
INCINERATOR = "1nc1nerator11111111111111111111111111111111"

SIGNATURE_PAGE = 1000
HELIUS_TX_TIMEOUT = 18


# ─── Retry / error plumbing ───────────────────────────────────────────────────
def retry_on_429(max_retries=3, base_delay=1.0):
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except httpx.HTTPStatusError as e:
                    if e.response.status_code == 429 and attempt < max_retries - 1:
                        delay = base_delay * (2 ** attempt) + random.random() * 0.5
                        log.warning(f"[RateLimit] retry {attempt+1} in {delay:.1f}s")
                        await asyncio.sleep(delay)
                    else:
                        raise
                except httpx.TimeoutException:
                    if attempt < max_retries - 1:
                        await asyncio.sleep(base_delay * (2 ** attempt))
                    else:
                        raise
            return await func(*args, **kwargs)
        return wrapper
    return decorator


def upstream_errors(source: str):
    """Translate httpx failures into the UpstreamError family."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except httpx.TimeoutException as e:
                raise UpstreamTimeout(source, f"timed out ({e.__class__.__name__})") from e
            except httpx.HTTPStatusError as e:
                raise UpstreamError(source, f"HTTP {e.response.status_code}") from e
            except httpx.HTTPError as e:
                raise UpstreamError(source, f"{e.__class__.__name__}: {e}") from e
        return wrapper
    return decorator


def read_json(resp: httpx.Response, source: str):
    try:
        return resp.json()
    except ValueError as e:
        raise UpstreamError(source, "unparseable body") from e


def as_float(x) -> Optional[float]:
    """Finite float or None."""
    if x is None or isinstance(x, bool):
        return None
    try:
        n = float(x)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def as_int(x) -> Optional[int]:
    try:
        return int(x)
    except (TypeError, ValueError):
        return None


# ─── Solana ledger (RPC + DAS) ────────────────────────────────────────────────
class SolanaLedger:
    """
    Token ledger facts from a Solana JSON-RPC node.

    `get_token_accounts_page` uses the Helius DAS `getTokenAccounts` method
    and therefore needs HELIUS_API_KEY; everything else works on any node.
    """

    def __init__(self, session: httpx.AsyncClient, config: GuardConfig,
                 cache: TTLCache, signature_pages: int = 3):
        self.session = session
        self.config = config
        self.cache = cache
        self.signature_pages = max(1, signature_pages)

    @retry_on_429(max_retries=3, base_delay=1.0)
    async def _post(self, url: str, payload: dict) -> httpx.Response:
        resp = await self.session.post(url, json=payload, timeout=self.config.call_timeout)
        resp.raise_for_status()
        return resp

    @upstream_errors("rpc")
    async def _rpc(self, method: str, params, url: str = None):
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        resp = await self._post(url or self.config.rpc_url, payload)
        body = read_json(resp, "rpc")
        if not isinstance(body, dict):
            raise UpstreamError("rpc", f"{method}: unexpected body")
        if body.get("error"):
            err = body["error"]
            msg = err.get("message") if isinstance(err, dict) else str(err)
            raise UpstreamError("rpc", f"{method}: {msg}")
        return body.get("result")

    async def _cached_rpc(self, method: str, params, subject: str, *key_params):
        key = cache_key(f"rpc:{method}", subject, *key_params)
        hit = self.cache.get(key, MISSING)
        if hit is not MISSING:
            return hit
        result = await self._rpc(method, params)
        self.cache.set(key, result, LEDGER_TTL)
        return result

    async def _account_info(self, address: str) -> dict:
        result = await self._cached_rpc(
            "getAccountInfo", [address, {"encoding": "jsonParsed"}], address)
        value = (result or {}).get("value") if isinstance(result, dict) else None
        if not value:
            raise UpstreamError("rpc", f"account not found: {address}")
        return value

    async def get_mint_authorities(self, mint: str) -> MintAuthorities:
        value = await self._account_info(mint)
        data = value.get("data")
        parsed = data.get("parsed") if isinstance(data, dict) else None
        if not isinstance(parsed, dict) or parsed.get("type") not in (None, "mint"):
            raise UpstreamError("rpc", f"not a token mint: {mint}")
        info = parsed.get("info") or {}
        return MintAuthorities(
            mint_authority=info.get("mintAuthority") or None,
            freeze_authority=info.get("freezeAuthority") or None,
        )

    async def get_account_owner_program(self, address: str) -> str:
        value = await self._account_info(address)
        owner = value.get("owner")
        if not owner:
            raise UpstreamError("rpc", f"account without owner: {address}")
        return owner

    async def get_supply(self, mint: str) -> TokenSupply:
        result = await self._cached_rpc("getTokenSupply", [mint], mint)
        value = (result or {}).get("value") or {}
        amount = as_int(value.get("amount"))
        if amount is None:
            raise UpstreamError("rpc", f"getTokenSupply: missing amount for {mint}")
        return TokenSupply(
            amount=amount,
            decimals=as_int(value.get("decimals")) or 0,
            ui_amount=as_float(value.get("uiAmount")),
        )

    async def get_largest_holders(self, mint: str, n: int = 20) -> list:
        """Up to n largest token accounts, largest first, owners resolved."""
        result = await self._cached_rpc("getTokenLargestAccounts", [mint], mint)
        rows = (result or {}).get("value") or []
        holders = []
        for row in rows[:n]:
            if not isinstance(row, dict) or not row.get("address"):
                continue
            holders.append(LargestHolder(
                address=row["address"],
                ui_amount=as_float(row.get("uiAmount")) or 0.0,
                amount=as_int(row.get("amount")) or 0,
            ))
        if holders:
            await self._resolve_owners(holders)
        return holders

    async def _resolve_owners(self, holders: list):
        addresses = [h.address for h in holders]
        result = await self._cached_rpc(
            "getMultipleAccounts", [addresses, {"encoding": "jsonParsed"}],
            "owners", ",".join(addresses))
        values = (result or {}).get("value") or []
        for holder, acc in zip(holders, values):
            if not isinstance(acc, dict):
                continue
            data = acc.get("data")
            if isinstance(data, dict):
                holder.owner = ((data.get("parsed") or {}).get("info") or {}).get("owner")

    async def get_token_accounts_page(self, mint: str, cursor: Optional[str] = None,
                                      limit: int = 1000) -> TokenAccountsPage:
        if not self.config.premium:
            raise MissingCredentialError("helius-das")
        params = {"mint": mint, "limit": limit}
        if cursor:
            params["cursor"] = cursor
        url = HELIUS_RPC_TEMPLATE.format(key=self.config.helius_api_key)
        result = await self._rpc("getTokenAccounts", params, url=url)
        if not isinstance(result, dict):
            raise UpstreamError("helius-das", "getTokenAccounts: unexpected result")
        accounts = []
        for ta in result.get("token_accounts") or []:
            if isinstance(ta, dict) and ta.get("owner"):
                accounts.append(TokenAccount(owner=ta["owner"], amount=as_float(ta.get("amount")) or 0.0))
        return TokenAccountsPage(accounts=accounts, cursor=result.get("cursor") or None)

    async def get_earliest_signatures(self, address: str) -> list:
        """
        Signatures touching `address`, oldest first.

        Walks getSignaturesForAddress backwards until the history is exhausted
        or the page budget runs out, so for busy tokens the "oldest" entry is
        only the oldest one reached.
        """
        key = cache_key("rpc:earliestSignatures", address, self.signature_pages)
        hit = self.cache.get(key, MISSING)
        if hit is not MISSING:
            return hit

        collected = []
        before = None
        for _ in range(self.signature_pages):
            opts = {"limit": SIGNATURE_PAGE}
            if before:
                opts["before"] = before
            page = await self._rpc("getSignaturesForAddress", [address, opts])
            if not isinstance(page, list) or not page:
                break
            for row in page:
                if isinstance(row, dict) and row.get("signature"):
                    collected.append(SignatureInfo(
                        signature=row["signature"],
                        block_time=as_int(row.get("blockTime")),
                        slot=as_int(row.get("slot")),
                    ))
            if len(page) < SIGNATURE_PAGE:
                break
            before = page[-1].get("signature")
        else:
            log.info(f"[Ledger] {address[:12]} has more than {len(collected)} signatures, "
                     f"oldest reached may not be the first")

        collected.reverse()
        self.cache.set(key, collected, LEDGER_TTL)
        return collected

    async def get_block_time(self, slot: int) -> Optional[int]:
        result = await self._cached_rpc("getBlockTime", [slot], str(slot))
        return as_int(result)

    async def get_first_signer(self, signature: str) -> Optional[str]:
        result = await self._cached_rpc(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
            signature)
        if not isinstance(result, dict):
            return None
        message = (result.get("transaction") or {}).get("message") or {}
        for k in message.get("accountKeys") or []:
            if isinstance(k, dict) and k.get("signer") and k.get("pubkey"):
                return k["pubkey"]
        return None


# ─── Helius enhanced transactions ─────────────────────────────────────────────
def parse_enhanced_tx(raw: dict) -> EnhancedTx:
    natives = []
    for nt in raw.get("nativeTransfers") or []:
        if isinstance(nt, dict):
            natives.append(NativeTransfer(
                from_account=nt.get("fromUserAccount") or None,
                to_account=nt.get("toUserAccount") or None,
                amount=as_float(nt.get("amount")) or 0.0,
            ))
    tokens = []
    for tt in raw.get("tokenTransfers") or []:
        if isinstance(tt, dict):
            tokens.append(TokenTransfer(
                mint=str(tt.get("mint") or ""),
                from_account=tt.get("fromUserAccount") or None,
                to_account=tt.get("toUserAccount") or None,
                amount=as_float(tt.get("tokenAmount")) or 0.0,
            ))
    ts = raw.get("timestamp")
    return EnhancedTx(
        signature=str(raw.get("signature") or ""),
        timestamp=ts if isinstance(ts, int) and not isinstance(ts, bool) else None,
        fee_payer=raw.get("feePayer") or None,
        native_transfers=natives,
        token_transfers=tokens,
    )


class HeliusTransactions:
    def __init__(self, session: httpx.AsyncClient, config: GuardConfig):
        self.session = session
        self.config = config

    @upstream_errors("helius")
    @retry_on_429(max_retries=3, base_delay=1.0)
    async def _get(self, path: str, params: dict):
        resp = await self.session.get(f"{HELIUS_API}{path}", params=params, timeout=HELIUS_TX_TIMEOUT)
        resp.raise_for_status()
        return read_json(resp, "helius")

    async def get_transactions_by_address(self, address: str, limit: int = 120,
                                          order: str = "asc") -> list:
        """Parsed transactions touching `address`; `order` is "asc" or "desc"."""
        if not self.config.premium:
            raise MissingCredentialError("helius")
        body = await self._get(
            f"/addresses/{address}/transactions",
            {"api-key": self.config.helius_api_key, "limit": limit, "sort-order": order},
        )
        if not isinstance(body, list):
            raise UpstreamError("helius", "transactions: expected a list")
        return [parse_enhanced_tx(raw) for raw in body if isinstance(raw, dict)]
