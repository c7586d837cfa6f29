import asyncio

import pytest

from pumpguard.cache import TTLCache
from pumpguard.config import GuardConfig
from pumpguard.errors import InvalidSubjectError, MissingCredentialError, UpstreamError
from pumpguard.models import LargestHolder, MintAuthorities, PoolInfo, SignatureInfo, TokenSupply
from pumpguard.signals import RiskCategory
from pumpguard.sources import INCINERATOR, TOKEN_2022_PROGRAM

from conftest import LP_MINT, MINT, NOW, POOL_ID, FakeLedger, FakePools, FakeTransactions, buy


def scenario_ledger(**overrides):
    """Mint authority present, top10 = 85%, dev (mint authority) holds 55%, LP 99% burned."""
    holders = [LargestHolder("devacc", 550_000.0, 550_000, owner="MintAuth")]
    holders += [LargestHolder(f"acc{i}", 33_000.0, 33_000, owner=f"w{i}") for i in range(8)]
    holders += [LargestHolder("acc8", 36_000.0, 36_000, owner="w8")]
    holders += [LargestHolder("acc9", 1_000.0, 1_000, owner="w9")]
    kwargs = dict(
        auth=MintAuthorities("MintAuth", None),
        supply=TokenSupply(amount=1_000_000, decimals=0, ui_amount=1_000_000.0),
        holders=holders,
        signatures=[SignatureInfo("genesis", block_time=NOW - 2 * 86400)],
        lp={LP_MINT: (TokenSupply(amount=1_000), [
            LargestHolder("lpacc1", 0, 990, owner=INCINERATOR),
            LargestHolder("lpacc2", 0, 10, owner="LpWhale"),
        ])},
    )
    kwargs.update(overrides)
    return FakeLedger(**kwargs)


def raydium_pools():
    return FakePools(PoolInfo(POOL_ID, "raydium"), LP_MINT)


def by_id(result):
    return {s.id: s for s in result.signals}


@pytest.mark.asyncio
async def test_end_to_end_scenario(make_engine):
    engine = make_engine(ledger=scenario_ledger(), pools=raydium_pools())
    result = await engine.evaluate("sol", MINT)

    signals = by_id(result)
    assert {"MINT_AUTHORITY_PRESENT", "TOP10_GT_80", "DEV_HOLDS_GT_50", "LP_BURNED", "DEV_CANDIDATE"} <= set(signals)
    assert "FREEZE_AUTHORITY_PRESENT" not in signals
    assert "TOP10_GT_60" not in signals and "TOP10_GT_40" not in signals

    assert result.categories["PERMISSIONS"] == 10
    assert result.categories["DISTRIBUTION"] == 30
    assert result.categories["LIQUIDITY"] == 0
    assert result.score == 40
    assert result.level == "MEDIUM"
    assert result.mode == "LIVE"
    assert result.confidence == "HIGH"
    assert result.meta["failures"] == []
    assert result.meta["dev_candidate"] == "MintAuth"
    assert result.meta["top10_percent"] == pytest.approx(85.0)
    assert result.meta["pool"] == {"id": POOL_ID, "dex": "raydium"}


@pytest.mark.asyncio
async def test_scenario_reaches_high_with_liquidity_and_tx_patterns(make_engine):
    ledger = scenario_ledger(
        auth=MintAuthorities("MintAuth", "MintAuth"),
        program=TOKEN_2022_PROGRAM,
        lp={LP_MINT: (TokenSupply(amount=1_000), [LargestHolder("lpacc2", 0, 1_000, owner="LpWhale")])},
    )
    txs = [buy(f"s{i}", NOW - 86400 + i, f"b{i}") for i in range(7)]
    engine = make_engine(ledger=ledger, pools=raydium_pools(), transactions=FakeTransactions(txs))

    result = await engine.evaluate("sol", MINT)
    # 10 + 30 + 10 (LP not burned) + 5 (Token-2022) + 5 (burst)
    assert result.score == 60
    assert result.level == "MEDIUM"
    assert by_id(result)["LP_NOT_BURNED"].weight == 10
    assert by_id(result)["BUNDLED_LAUNCH_OR_MEV"].value == "buyers_60s=7"


@pytest.mark.asyncio
async def test_all_upstreams_fail_gives_fallback(make_engine):
    boom = UpstreamError("rpc", "HTTP 503")
    ledger = FakeLedger(auth=boom, supply=boom, holders=boom, program=boom, signatures=boom)
    engine = make_engine(
        ledger=ledger,
        transactions=FakeTransactions(MissingCredentialError("helius")),
        pools=FakePools(UpstreamError("dexscreener", "HTTP 500")),
    )
    result = await engine.evaluate("sol", MINT)

    assert result.score == 10
    assert result.level == "LOW"
    assert result.confidence == "LOW"
    assert result.mode == "DEMO"
    assert [s.id for s in result.signals] == ["DEMO_MODE"]
    assert any(f.startswith("authorities:") for f in result.meta["failures"])
    assert any("HELIUS_API_KEY" in f for f in result.meta["failures"])


@pytest.mark.asyncio
async def test_partial_failure_is_scored_and_reported(make_engine):
    ledger = scenario_ledger(holders=UpstreamError("rpc", "HTTP 502"))
    engine = make_engine(ledger=ledger, pools=raydium_pools(),
                         transactions=FakeTransactions(MissingCredentialError("helius")))
    result = await engine.evaluate("sol", MINT)

    assert result.mode == "LIVE"
    assert result.score == 10
    assert result.confidence == "MED"
    assert "LIVE_ERROR" in by_id(result)
    assert any(f.startswith("holders:") for f in result.meta["failures"])
    assert any(f.startswith("tx_patterns:") for f in result.meta["failures"])


@pytest.mark.asyncio
async def test_deep_timeout_still_returns_fast_result(make_engine):
    config = GuardConfig(helius_api_key="k", call_timeout=5.0, deep_timeout=0.05)
    engine = make_engine(
        ledger=scenario_ledger(), pools=raydium_pools(),
        transactions=FakeTransactions([], delay=2.0), config=config,
    )
    result = await engine.evaluate("sol", MINT)

    assert result.mode == "LIVE"
    assert result.meta["deep"] == "timeout"
    assert any(f.startswith("deep: timed out") for f in result.meta["failures"])
    lp = [s for s in result.signals if s.category == RiskCategory.LIQUIDITY]
    assert len(lp) == 1
    assert (lp[0].id, lp[0].value) == ("LP_STATUS_UNKNOWN", "not_checked")
    assert result.score == 40


@pytest.mark.asyncio
async def test_liquidity_failure_yields_unknown(make_engine):
    engine = make_engine(ledger=scenario_ledger(), pools=FakePools(UpstreamError("dexscreener", "HTTP 500")))
    result = await engine.evaluate("sol", MINT)
    lp = [s for s in result.signals if s.category == RiskCategory.LIQUIDITY]
    assert [(s.id, s.value) for s in lp] == [("LP_STATUS_UNKNOWN", "upstream_error")]


@pytest.mark.asyncio
async def test_no_pool_yields_unknown(make_engine):
    engine = make_engine(ledger=scenario_ledger(), pools=FakePools(None))
    result = await engine.evaluate("sol", MINT)
    assert by_id(result)["LP_STATUS_UNKNOWN"].value == "no_pool"
    assert result.meta["pool"] is None


@pytest.mark.asyncio
async def test_earliest_signer_used_without_authorities(make_engine):
    ledger = scenario_ledger(auth=MintAuthorities(None, None), signer="Deployer")
    engine = make_engine(ledger=ledger, pools=raydium_pools())
    result = await engine.evaluate("sol", MINT)
    assert result.meta["dev_candidate"] == "Deployer"
    assert result.meta["dev_reason"] == "earliestSigner"
    assert "DEV_EARLY_SIGNER" in by_id(result)
    assert "first_signer" in ledger.calls


@pytest.mark.asyncio
async def test_invalid_subject_rejected_before_lookups(make_engine):
    ledger = FakeLedger()
    engine = make_engine(ledger=ledger)
    with pytest.raises(InvalidSubjectError):
        await engine.evaluate("sol", "not-a-mint")
    with pytest.raises(InvalidSubjectError):
        await engine.evaluate("doge", MINT)
    with pytest.raises(ValueError):
        await engine.evaluate("eth", MINT)
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_evm_chain_returns_demo_result(make_engine):
    ledger = FakeLedger()
    engine = make_engine(ledger=ledger)
    result = await engine.evaluate("bnb", "0x" + "ab" * 20)
    assert result.mode == "DEMO"
    assert result.score == 10
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_result_is_cached(make_engine):
    ledger = scenario_ledger()
    engine = make_engine(ledger=ledger, pools=raydium_pools(), cache=TTLCache())
    first = await engine.evaluate("sol", MINT)
    calls = len(ledger.calls)
    second = await engine.evaluate("sol", MINT)
    assert second is first
    assert len(ledger.calls) == calls


@pytest.mark.asyncio
async def test_fast_and_deep_reports(make_engine):
    engine = make_engine(ledger=scenario_ledger(), pools=raydium_pools())
    fast = await engine.fast(MINT)
    assert fast.dev.reason == "mintAuthority"
    assert fast.age_seconds == 2 * 86400
    deep = await engine.deep(MINT)
    assert [s.id for s in deep.signals] == ["LP_BURNED"]
    assert deep.to_dict()["pool"] == {"id": POOL_ID, "dex": "raydium"}


def test_to_dict_shape():
    from pumpguard.engine import fallback_result
    d = fallback_result("sol", MINT, ["x: y"]).to_dict()
    assert d["risk"] == {"score": 10, "level": "LOW", "confidence": "LOW", "mode": "DEMO", "verdict": "LOW"}
    assert d["signals"][0]["id"] == "DEMO_MODE"
    assert d["meta"]["failures"] == ["x: y"]


@pytest.mark.asyncio
async def test_hanging_call_is_absent_data(make_engine):
    config = GuardConfig(helius_api_key="k", call_timeout=0.05, deep_timeout=5.0)
    ledger = scenario_ledger(delay=1.0, slow={"holders"})
    engine = make_engine(ledger=ledger, pools=raydium_pools(), config=config)
    result = await engine.evaluate("sol", MINT)

    assert result.mode == "LIVE"
    assert any(f.startswith("holders: rpc: no answer within") for f in result.meta["failures"])
    assert result.meta["top10_percent"] is None
    assert "TOP10_GT_80" not in by_id(result)
    # mint authority still counts, LP burned
    assert result.score == 10
    assert result.confidence == "MED"


@pytest.mark.asyncio
async def test_hanging_signature_lookup_drops_age_only(make_engine):
    config = GuardConfig(helius_api_key="k", call_timeout=0.05, deep_timeout=5.0)
    ledger = scenario_ledger(delay=1.0, slow={"signatures"})
    engine = make_engine(ledger=ledger, pools=raydium_pools(), config=config)
    result = await engine.evaluate("sol", MINT)

    assert result.mode == "LIVE"
    assert any(f.startswith("signatures: rpc: no answer within") for f in result.meta["failures"])
    assert result.meta["age_seconds"] is None
    assert result.meta["dev_candidate"] == "MintAuth"
    assert result.score == 40


@pytest.mark.asyncio
async def test_lp_supply_failure_collects_both_lp_calls(make_engine):
    ledger = scenario_ledger(lp={LP_MINT: (UpstreamError("rpc", "HTTP 500"), [
        LargestHolder("lpacc1", 0, 990, owner=INCINERATOR)])})
    engine = make_engine(ledger=ledger, pools=raydium_pools())
    result = await engine.evaluate("sol", MINT)

    assert by_id(result)["LP_STATUS_UNKNOWN"].value == "upstream_error"
    assert "liquidity: rpc: HTTP 500" in result.meta["failures"]
    assert {"lp_supply", "lp_holders"} <= set(ledger.calls)


@pytest.mark.asyncio
async def test_deep_timeout_cancels_origin_lookup(make_engine):
    config = GuardConfig(helius_api_key="k", call_timeout=5.0, deep_timeout=0.05)
    ledger = scenario_ledger(delay=2.0, slow={"signatures"})
    engine = make_engine(ledger=ledger, pools=raydium_pools(), config=config)

    with pytest.raises(asyncio.TimeoutError):
        await engine.deep(MINT)
    await asyncio.sleep(0.01)
    assert asyncio.all_tasks() == {asyncio.current_task()}
