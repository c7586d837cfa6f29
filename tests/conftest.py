"""
Shared fixtures: in-memory fakes for the upstream sources.

A fake attribute holding an Exception instance makes the matching call raise it.
"""

import asyncio

import pytest

from pumpguard.cache import TTLCache
from pumpguard.config import GuardConfig, Thresholds
from pumpguard.engine import RiskEngine
from pumpguard.models import EnhancedTx, NativeTransfer, TokenTransfer
from pumpguard.sources import SPL_TOKEN_PROGRAM

# Real mainnet addresses, used only because they are valid public keys
MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
LP_MINT = "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R"
POOL_ID = "58oQChx4yWmvKdwLLZzBi4ChoCc2fqCUWBkwMihLYQo2"
NOW = 1_700_000_000


def _ret(value):
    if isinstance(value, Exception):
        raise value
    return value


class FakeLedger:
    def __init__(self, auth=None, supply=None, holders=None, program=SPL_TOKEN_PROGRAM,
                 signatures=None, signer=None, lp=None, pages=None, delay=0.0, slow=()):
        self.auth = auth
        self.supply = supply
        self.holders = holders if holders is not None else []
        self.program = program
        self.signatures = signatures if signatures is not None else []
        self.signer = signer
        self.lp = lp or {}              # lp_mint -> (TokenSupply, [LargestHolder])
        self.pages = pages or {}        # cursor -> TokenAccountsPage
        self.delay = delay
        self.slow = set(slow)           # call names that wait `delay`; empty means all
        self.calls = []

    async def _answer(self, name, value):
        self.calls.append(name)
        if self.delay and (not self.slow or name in self.slow):
            await asyncio.sleep(self.delay)
        return _ret(value)

    async def get_mint_authorities(self, mint):
        return await self._answer("authorities", self.auth)

    async def get_supply(self, mint):
        if mint in self.lp:
            return await self._answer("lp_supply", self.lp[mint][0])
        return await self._answer("supply", self.supply)

    async def get_largest_holders(self, mint, n=20):
        if mint in self.lp:
            return (await self._answer("lp_holders", self.lp[mint][1]))[:n]
        return (await self._answer("holders", self.holders))[:n]

    async def get_account_owner_program(self, address):
        return await self._answer("program", self.program)

    async def get_earliest_signatures(self, address):
        return await self._answer("signatures", self.signatures)

    async def get_block_time(self, slot):
        return await self._answer("block_time", None)

    async def get_first_signer(self, signature):
        return await self._answer("first_signer", self.signer)

    async def get_token_accounts_page(self, mint, cursor=None, limit=1000):
        return await self._answer("page", self.pages[cursor])


class FakeTransactions:
    def __init__(self, txs=None, delay=0.0):
        self.txs = txs if txs is not None else []
        self.delay = delay
        self.calls = 0

    async def get_transactions_by_address(self, address, limit=120, order="asc"):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return _ret(self.txs)


class FakePools:
    def __init__(self, pool=None, lp_mint=None):
        self.pool = pool
        self.lp_mint = lp_mint

    async def discover_primary_pool(self, mint):
        return _ret(self.pool)

    async def resolve_lp_mint(self, pool_id):
        return _ret(self.lp_mint)


def buy(sig, ts, to, amount=1000.0, mint=MINT):
    return EnhancedTx(signature=sig, timestamp=ts,
                      token_transfers=[TokenTransfer(mint=mint, from_account="pool", to_account=to, amount=amount)])


def fund(sig, ts, funder, to, lamports=50_000_000):
    return EnhancedTx(signature=sig, timestamp=ts,
                      native_transfers=[NativeTransfer(from_account=funder, to_account=to, amount=lamports)])


@pytest.fixture
def thresholds():
    return Thresholds()


@pytest.fixture
def premium_config():
    return GuardConfig(helius_api_key="test-key", call_timeout=2.0, deep_timeout=5.0)


@pytest.fixture
def make_engine(premium_config):
    def _make(ledger=None, transactions=None, pools=None, config=None, cache=None):
        return RiskEngine(
            session=None,
            config=config or premium_config,
            cache=cache if cache is not None else TTLCache(),
            ledger=ledger or FakeLedger(),
            transactions=transactions or FakeTransactions(),
            pools=pools or FakePools(),
            clock=lambda: NOW,
        )
    return _make
