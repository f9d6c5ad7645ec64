import json

import httpx
import pytest

from liquidity_deposit.core.clients.LiquidityClient import (
    LiquidityClient,
    parse_prepared_step,
)
from liquidity_deposit.core.constants.chains import PERMIT2_ADDRESS
from liquidity_deposit.core.errors import CalculationFailed, PreparationFailed
from liquidity_deposit.core.models import (
    DepositIntent,
    NeedsErc20Approval,
    NeedsPermitSignature,
    ReadyToMint,
    TickRange,
    TokenRef,
)

USER = "0xaAaAaAaaAaAaAaaAaAAAAAAAAaaaAaAaAaaAaaAa"
USDC = TokenRef("aUSDC", "0x1111111111111111111111111111111111111111", 6)
WETH = TokenRef("aETH", "0x3333333333333333333333333333333333333333", 18)
INTENT = DepositIntent(USDC, WETH, TickRange(-600, 600), token0_amount="100")

SIGNATURE_DETAILS = {
    "domain": {"name": "Permit2", "chainId": 84532, "verifyingContract": PERMIT2_ADDRESS},
    "types": {
        "PermitDetails": [
            {"name": "token", "type": "address"},
            {"name": "amount", "type": "uint160"},
            {"name": "expiration", "type": "uint48"},
            {"name": "nonce", "type": "uint48"},
        ],
        "PermitBatch": [
            {"name": "details", "type": "PermitDetails[]"},
            {"name": "spender", "type": "address"},
            {"name": "sigDeadline", "type": "uint256"},
        ],
    },
    "primaryType": "PermitBatch",
    "message": {"details": [], "spender": USER, "sigDeadline": "1"},
}


def _client(handler) -> tuple[LiquidityClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = LiquidityClient("https://api.test/api/", chain_id=84532, user_address=USER)
    client.client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    return client, seen


class TestParsePreparedStep:
    def test_erc20_approval(self):
        step = parse_prepared_step(
            {
                "needsApproval": True,
                "approvalType": "ERC20_TO_PERMIT2",
                "approvalTokenSymbol": "aUSDC",
                "approvalTokenAddress": USDC.address,
                "approvalAmount": "115792089237316195423570985008687907853269984665640564039457584007913129639935",
                "approveToAddress": PERMIT2_ADDRESS,
            }
        )
        assert isinstance(step, NeedsErc20Approval)
        assert step.amount == 2**256 - 1
        assert step.token_symbol == "aUSDC"

    def test_permit_signature(self):
        step = parse_prepared_step(
            {
                "needsApproval": True,
                "approvalType": "PERMIT2_SIGNATURE_FOR_PM",
                "approvalTokenSymbol": "aETH",
                "signatureDetails": SIGNATURE_DETAILS,
            }
        )
        assert isinstance(step, NeedsPermitSignature)
        assert step.typed_data.primary_type == "PermitBatch"
        assert step.permit2_address == PERMIT2_ADDRESS

    def test_ready_to_mint(self):
        step = parse_prepared_step(
            {
                "needsApproval": False,
                "transaction": {"to": USER, "data": "0x1234", "value": "0x10"},
            }
        )
        assert isinstance(step, ReadyToMint)
        assert step.transaction.value == 16

    def test_unknown_reply(self):
        with pytest.raises(PreparationFailed):
            parse_prepared_step({"needsApproval": False})
        with pytest.raises(PreparationFailed, match="Unsupported"):
            parse_prepared_step({"needsApproval": True, "approvalType": "OTHER"})


class TestCalculate:
    @pytest.mark.asyncio
    async def test_posts_raw_amount_and_picks_paired_side(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "liquidity": "123456",
                    "finalTickLower": -600,
                    "finalTickUpper": 600,
                    "amount0": "100000000",
                    "amount1": "50000000000000000",
                    "currentPoolTick": 12,
                    "currentPrice": "2000.5",
                    "priceAtTickLower": "1900",
                    "priceAtTickUpper": "2100",
                },
            )

        client, seen = _client(handler)
        quote = await client.calculate(USDC, WETH, 100_000_000, "aUSDC", -600, 600)

        assert quote.paired_amount == 50_000_000_000_000_000
        assert quote.liquidity == 123456
        assert quote.current_tick == 12
        assert quote.current_price == pytest.approx(2000.5)

        body = json.loads(seen[0].content)
        assert str(seen[0].url) == (
            "https://api.test/api/liquidity/calculate-liquidity-parameters"
        )
        assert body["inputAmount"] == "100000000"
        assert body["inputTokenSymbol"] == "aUSDC"
        assert body["chainId"] == 84532

    @pytest.mark.asyncio
    async def test_http_error_is_calculation_failed(self):
        client, _ = _client(lambda r: httpx.Response(500, json={"message": "boom"}))
        with pytest.raises(CalculationFailed, match="boom"):
            await client.calculate(USDC, WETH, 1, "aUSDC", -600, 600)

    @pytest.mark.asyncio
    async def test_unparsable_reply_is_calculation_failed(self):
        client, _ = _client(lambda r: httpx.Response(200, json={"liquidity": "x"}))
        with pytest.raises(CalculationFailed, match="Unparsable"):
            await client.calculate(USDC, WETH, 1, "aUSDC", -600, 600)


class TestPrepare:
    @pytest.mark.asyncio
    async def test_sends_token_just_processed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"transaction": {"to": USER, "data": "0x", "value": 0}}
            )

        client, seen = _client(handler)
        step = await client.prepare(INTENT, token_just_processed="aUSDC")

        assert isinstance(step, ReadyToMint)
        body = json.loads(seen[0].content)
        assert body["userAddress"] == USER
        assert body["tokenJustProcessed"] == "aUSDC"
        assert body["userTickLower"] == -600
        assert body["inputAmount"] == "100"

    @pytest.mark.asyncio
    async def test_omits_token_just_processed_on_fresh_prepare(self):
        client, seen = _client(
            lambda r: httpx.Response(200, json={"transaction": {"to": USER, "data": "0x"}})
        )
        await client.prepare(INTENT)
        assert "tokenJustProcessed" not in json.loads(seen[0].content)

    @pytest.mark.asyncio
    async def test_error_message_surfaces(self):
        client, _ = _client(
            lambda r: httpx.Response(400, json={"message": "Insufficient balance"})
        )
        with pytest.raises(PreparationFailed, match="Insufficient balance"):
            await client.prepare(INTENT)

    @pytest.mark.asyncio
    async def test_requires_user_address(self):
        client = LiquidityClient("https://api.test/api", chain_id=84532)
        with pytest.raises(PreparationFailed, match="wallet address"):
            await client.prepare(INTENT)


class TestPoolState:
    @pytest.mark.asyncio
    async def test_derives_missing_price_from_sqrt(self):
        client, seen = _client(
            lambda r: httpx.Response(
                200,
                json={"currentPoolTick": 0, "sqrtPriceX96": str(1 << 96), "tickSpacing": 60},
            )
        )
        state = await client.get_pool_state(WETH, USDC)
        assert state.tick == 0
        assert state.tick_spacing == 60
        assert state.price == pytest.approx(1e-12)
        assert seen[0].url.params["token0Symbol"] == "aETH"
