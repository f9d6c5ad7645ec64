import time
from typing import Any, TypedDict

import httpx
from loguru import logger
from pydantic import ValidationError

from liquidity_deposit.core.config import (
    get_api_base_url,
    get_api_key,
    get_chain_id,
    get_permit2_address,
)
from liquidity_deposit.core.constants.base import DEFAULT_HTTP_TIMEOUT
from liquidity_deposit.core.errors import CalculationFailed, PreparationFailed
from liquidity_deposit.core.models import (
    AmountQuote,
    DepositIntent,
    NeedsErc20Approval,
    NeedsPermitSignature,
    PoolOrdering,
    PoolState,
    PreparedStep,
    RawTransaction,
    ReadyToMint,
    TokenRef,
    TypedDataPayload,
)
from liquidity_deposit.core.utils.tick_price import (
    sqrt_price_x96_to_price,
    tick_from_sqrt_price_x96,
)

APPROVAL_ERC20_TO_PERMIT2 = "ERC20_TO_PERMIT2"
APPROVAL_PERMIT2_SIGNATURE = "PERMIT2_SIGNATURE_FOR_PM"


class CalculateResponse(TypedDict, total=False):
    liquidity: str
    finalTickLower: int
    finalTickUpper: int
    amount0: str
    amount1: str
    currentPoolTick: int
    currentPrice: str
    priceAtTickLower: str
    priceAtTickUpper: str


class PrepareResponse(TypedDict, total=False):
    needsApproval: bool
    approvalType: str
    approvalTokenSymbol: str
    approvalTokenAddress: str
    approvalAmount: str
    approveToAddress: str
    permit2Address: str
    signatureDetails: dict[str, Any]
    transaction: dict[str, Any]
    message: str


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code}"


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def parse_prepared_step(data: PrepareResponse) -> PreparedStep:
    """Map a prepare-mint reply onto the ``PreparedStep`` union."""
    if data.get("needsApproval"):
        approval_type = data.get("approvalType")
        if approval_type == APPROVAL_ERC20_TO_PERMIT2:
            return NeedsErc20Approval(
                token=data["approvalTokenAddress"],
                spender=data["approveToAddress"],
                amount=data["approvalAmount"],
                token_symbol=data.get("approvalTokenSymbol"),
            )
        if approval_type == APPROVAL_PERMIT2_SIGNATURE:
            return NeedsPermitSignature(
                typed_data=TypedDataPayload.model_validate(data["signatureDetails"]),
                permit2_address=data.get("permit2Address") or get_permit2_address(),
                token_symbol=data.get("approvalTokenSymbol"),
            )
        raise PreparationFailed(f"Unsupported approval type: {approval_type}")
    if data.get("transaction"):
        return ReadyToMint(transaction=RawTransaction.model_validate(data["transaction"]))
    raise PreparationFailed("Prepare response has neither an approval nor a transaction")


class LiquidityClient:
    """Calculator, preparer and pool-state reader backed by the liquidity API."""

    def __init__(
        self,
        api_base_url: str | None = None,
        *,
        chain_id: int | None = None,
        user_address: str | None = None,
    ):
        self.api_base_url = (api_base_url or get_api_base_url()).rstrip("/")
        self.chain_id = chain_id if chain_id is not None else get_chain_id()
        self.user_address = user_address
        self.client = httpx.AsyncClient(timeout=httpx.Timeout(DEFAULT_HTTP_TIMEOUT))
        self.headers = {
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        logger.debug(f"Making {method} request to {url}")
        start_time = time.time()

        api_key = get_api_key()
        if api_key and not self.headers.get("X-API-KEY"):
            self.headers["X-API-KEY"] = api_key

        merged_headers = dict(self.headers)
        if headers:
            merged_headers.update(headers)
        resp = await self.client.request(method, url, headers=merged_headers, **kwargs)

        elapsed = time.time() - start_time
        if resp.status_code >= 400:
            logger.warning(
                f"HTTP {resp.status_code} response for {method} {url} after {elapsed:.2f}s"
            )
        else:
            logger.debug(
                f"HTTP {resp.status_code} response for {method} {url} after {elapsed:.2f}s"
            )
        return resp

    async def calculate(
        self,
        token0: TokenRef,
        token1: TokenRef,
        input_amount: int,
        input_symbol: str,
        tick_lower: int,
        tick_upper: int,
    ) -> AmountQuote:
        url = f"{self.api_base_url}/liquidity/calculate-liquidity-parameters"
        payload = {
            "token0Symbol": token0.symbol,
            "token1Symbol": token1.symbol,
            "inputAmount": str(int(input_amount)),
            "inputTokenSymbol": input_symbol,
            "userTickLower": int(tick_lower),
            "userTickUpper": int(tick_upper),
            "chainId": self.chain_id,
        }
        try:
            resp = await self._request("POST", url, json=payload)
        except httpx.HTTPError as exc:
            raise CalculationFailed(f"Calculation request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise CalculationFailed(_error_message(resp))

        try:
            data: CalculateResponse = resp.json()
            # amount0/amount1 follow the request's token order
            paired_key = "amount1" if input_symbol == token0.symbol else "amount0"
            return AmountQuote(
                paired_amount=data[paired_key],
                liquidity=data["liquidity"],
                current_tick=data["currentPoolTick"],
                current_price=_optional_float(data.get("currentPrice")),
                price_at_tick_lower=_optional_float(data.get("priceAtTickLower")),
                price_at_tick_upper=_optional_float(data.get("priceAtTickUpper")),
                tick_lower=data.get("finalTickLower"),
                tick_upper=data.get("finalTickUpper"),
            )
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise CalculationFailed(f"Unparsable calculation response: {exc}") from exc

    async def prepare(
        self, intent: DepositIntent, token_just_processed: str | None = None
    ) -> PreparedStep:
        if not self.user_address:
            raise PreparationFailed("A wallet address is required to prepare a deposit")

        url = f"{self.api_base_url}/liquidity/prepare-mint-tx"
        payload = {
            "userAddress": self.user_address,
            "token0Symbol": intent.token0.symbol,
            "token1Symbol": intent.token1.symbol,
            "inputAmount": intent.input_amount,
            "inputTokenSymbol": intent.input_token.symbol,
            "userTickLower": intent.tick_range.lower,
            "userTickUpper": intent.tick_range.upper,
            "chainId": self.chain_id,
        }
        if token_just_processed:
            payload["tokenJustProcessed"] = token_just_processed

        try:
            resp = await self._request("POST", url, json=payload)
        except httpx.HTTPError as exc:
            raise PreparationFailed(f"Prepare request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise PreparationFailed(_error_message(resp))

        try:
            return parse_prepared_step(resp.json())
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise PreparationFailed(f"Unparsable prepare response: {exc}") from exc

    async def get_pool_state(
        self, token0: TokenRef, token1: TokenRef, *, pool_id: str | None = None
    ) -> PoolState:
        url = f"{self.api_base_url}/liquidity/get-pool-state"
        params: dict[str, Any] = {"chainId": self.chain_id}
        if pool_id:
            params["poolId"] = pool_id
        else:
            params["token0Symbol"] = token0.symbol
            params["token1Symbol"] = token1.symbol

        resp = await self._request("GET", url, params=params)
        resp.raise_for_status()
        data = resp.json()

        sqrt_price_x96 = int(data.get("sqrtPriceX96") or 0)
        tick = data.get("currentPoolTick")
        if tick is None and sqrt_price_x96:
            tick = tick_from_sqrt_price_x96(sqrt_price_x96)
        price = _optional_float(data.get("currentPrice"))
        if price is None and sqrt_price_x96:
            ordering = PoolOrdering.from_tokens(token0, token1)
            price = sqrt_price_x96_to_price(
                sqrt_price_x96,
                ordering.canonical0.decimals,
                ordering.canonical1.decimals,
            )
        return PoolState(
            tick=tick,
            price=price,
            sqrt_price_x96=sqrt_price_x96,
            tick_spacing=data.get("tickSpacing"),
        )

    async def close(self) -> None:
        await self.client.aclose()
