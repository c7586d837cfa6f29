"""
POOL INDEX
Finds a token's primary trading pool (DexScreener) and, for pool models
that mint LP tokens, the LP mint (Raydium pool keys).
"""

import logging
from typing import Optional

import httpx

from .cache import DISCOVERY_TTL, MISSING, TTLCache, cache_key
from .config import DEXSCREENER_API, RAYDIUM_API
from .models import PoolInfo
from .sources import as_float, read_json, retry_on_429, upstream_errors

log = logging.getLogger("pumpguard.pools")

_LP_MINT_KEYS = ("lpMint", "lp_mint", "lpMintAddress", "lp_mint_address", "mintLp")


def pick_top_pair(pairs: list) -> Optional[dict]:
    """Pair with the highest liquidity.usd, then the highest 24h volume."""
    pairs = [p for p in pairs or [] if isinstance(p, dict)]
    if not pairs:
        return None
    return max(pairs, key=lambda p: (
        as_float((p.get("liquidity") or {}).get("usd")) or 0.0,
        as_float((p.get("volume") or {}).get("h24")) or 0.0,
    ))


def extract_array(body) -> list:
    """Raydium wraps lists in several shapes; dig the list out."""
    if isinstance(body, list):
        return body
    if not isinstance(body, dict):
        return []
    data = body.get("data")
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for k in ("data", "list", "pools"):
            if isinstance(data.get(k), list):
                return data[k]
    if isinstance(body.get("pools"), list):
        return body["pools"]
    return []


def pick_lp_mint(keys) -> Optional[str]:
    if not isinstance(keys, dict):
        return None
    for k in _LP_MINT_KEYS:
        v = keys.get(k)
        if isinstance(v, dict):
            v = v.get("address")
        if isinstance(v, str) and v:
            return v
    return None


class PoolIndex:
    def __init__(self, session: httpx.AsyncClient, cache: TTLCache,
                 ttl: float = DISCOVERY_TTL, timeout: float = 8):
        self.session = session
        self.cache = cache
        self.ttl = ttl
        self.timeout = timeout

    @retry_on_429(max_retries=2, base_delay=1.0)
    async def _get(self, url: str) -> httpx.Response:
        resp = await self.session.get(url, headers={"accept": "application/json"}, timeout=self.timeout)
        if resp.status_code == 429:
            resp.raise_for_status()
        return resp

    @upstream_errors("dexscreener")
    async def discover_primary_pool(self, mint: str) -> Optional[PoolInfo]:
        """
        Top pair for `mint`, or None when DexScreener lists none.

        Negative answers are cached like positive ones; transport failures
        are raised and not cached.
        """
        key = cache_key("dexscreener", mint)
        hit = self.cache.get(key, MISSING)
        if hit is not MISSING:
            return hit

        resp = await self._get(f"{DEXSCREENER_API}/tokens/{mint}")
        pool = None
        if resp.status_code == 200:
            body = read_json(resp, "dexscreener")
            top = pick_top_pair((body or {}).get("pairs") if isinstance(body, dict) else None)
            if top and top.get("pairAddress"):
                pool = PoolInfo(
                    pool_id=str(top["pairAddress"]),
                    dex_family=str(top.get("dexId") or "").lower(),
                    quote_mint=(top.get("quoteToken") or {}).get("address"),
                    url=top.get("url"),
                )
        else:
            log.info(f"[Pools] DexScreener {resp.status_code} for {mint[:12]}")

        self.cache.set(key, pool, self.ttl)
        return pool

    @upstream_errors("raydium")
    async def resolve_lp_mint(self, pool_id: str) -> Optional[str]:
        """LP mint of a Raydium pool; None for pools without one (CLMM, unknown ids)."""
        key = cache_key("raydium:lpMint", pool_id)
        hit = self.cache.get(key, MISSING)
        if hit is not MISSING:
            return hit

        resp = await self._get(f"{RAYDIUM_API}/pools/key/ids?ids={pool_id}")
        resp.raise_for_status()
        body = read_json(resp, "raydium")
        rows = extract_array(body)
        if rows:
            keys = rows[0]
        elif isinstance(body, dict) and isinstance(body.get("data"), dict):
            keys = body["data"]
        else:
            keys = body
        lp_mint = pick_lp_mint(keys)

        self.cache.set(key, lp_mint, self.ttl)
        return lp_mint
