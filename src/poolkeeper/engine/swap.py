"""Constant product swaps against an ADA/token pool.

All reserve and fee arithmetic is exact integer math with floor division, so a
quote here matches the on-chain validator to the unit. The fee is taken from the
input before the constant product formula is applied, and the input reserve grows
by the full input amount, so fees stay in the pool.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict

from poolkeeper.config import EngineSettings
from poolkeeper.dataclasses.datums import PoolConfig
from poolkeeper.dataclasses.datums import PoolDatum
from poolkeeper.dataclasses.datums import PoolState
from poolkeeper.dataclasses.models import PoolKeeperBaseModel
from poolkeeper.dataclasses.models import PoolOperation
from poolkeeper.dataclasses.models import PoolOperationCheck
from poolkeeper.engine.errors import InvalidInputError
from poolkeeper.engine.errors import PoolDrainedError
from poolkeeper.engine.errors import PoolPausedError
from poolkeeper.engine.errors import SlippageExceededError
from poolkeeper.engine.errors import engine_operation
from poolkeeper.engine.fixed_point import BPS_DENOMINATOR
from poolkeeper.engine.fixed_point import apply_fee_bps
from poolkeeper.engine.fixed_point import bps_of
from poolkeeper.engine.fixed_point import ceil_div
from poolkeeper.engine.fixed_point import scaled_price
from poolkeeper.engine.min_ada import check_pool_operation
from poolkeeper.engine.min_ada import datum_size
from poolkeeper.engine.pool_datum import DatumDelta
from poolkeeper.engine.pool_datum import apply_update
from poolkeeper.engine.pool_datum import check_config
from poolkeeper.engine.pool_datum import check_datum
from poolkeeper.engine.pool_datum import check_state
from poolkeeper.engine.pool_datum import next_stats
from poolkeeper.utility import pool_assets


class SwapQuote(PoolKeeperBaseModel):
    """Expected result of a swap against a given pool state."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    swap_in_token: bool
    amount_in: int
    amount_out: int
    fee: int
    protocol_fee: int
    new_state: PoolState
    price_impact_bps: int
    effective_price: Decimal

    @property
    def total_fee(self) -> int:
        """Trading fee plus protocol fee."""
        return self.fee + self.protocol_fee


class SwapProposal(PoolKeeperBaseModel):
    """A quote together with the datum the pool would carry after the swap."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    quote: SwapQuote
    datum: PoolDatum
    min_ada: PoolOperationCheck


def reserves(state: PoolState, swap_in_token: bool) -> tuple[int, int]:
    """Input and output reserves for a swap direction."""
    if swap_in_token:
        return state.token_reserve, state.ada_reserve
    return state.ada_reserve, state.token_reserve


def price_impact_bps(
    amount_in: int,
    amount_out: int,
    reserve_in: int,
    reserve_out: int,
) -> int:
    """Deviation of the trade price from the pre-trade spot price, in basis points.

    |out/in - r_out/r_in| / (r_out/r_in) * 10000, rearranged so that only the final
    division truncates.
    """
    denominator = reserve_out * amount_in
    if denominator <= 0:
        return 0
    numerator = abs(amount_out * reserve_in - reserve_out * amount_in)
    return numerator * BPS_DENOMINATOR // denominator


def _check_pool(state: PoolState, config: PoolConfig) -> None:
    if config.paused:
        msg = "Pool is paused"
        raise PoolPausedError(msg)
    check_config(config)
    check_state(state)
    if not state.is_initialized:
        msg = (
            "Pool has no liquidity: "
            f"ada={state.ada_reserve}, token={state.token_reserve}"
        )
        raise PoolDrainedError(msg)


def _amount_out(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int) -> int:
    after_fee = apply_fee_bps(amount_in, fee_bps)
    return after_fee * reserve_out // (reserve_in + after_fee)


def _quote(
    state: PoolState,
    config: PoolConfig,
    amount_in: int,
    swap_in_token: bool,
) -> SwapQuote:
    _check_pool(state, config)
    if amount_in <= 0:
        msg = f"amount_in must be positive: {amount_in}"
        raise InvalidInputError(msg)

    reserve_in, reserve_out = reserves(state, swap_in_token)

    after_fee = apply_fee_bps(amount_in, config.total_fee_bps)
    amount_out = after_fee * reserve_out // (reserve_in + after_fee)
    if amount_out <= 0:
        msg = f"Swap of {amount_in} is too small to produce any output"
        raise InvalidInputError(msg)
    if reserve_out - amount_out <= 0:
        msg = f"Swap would drain the output reserve: {amount_out} >= {reserve_out}"
        raise PoolDrainedError(msg)

    protocol_fee = bps_of(amount_in, config.protocol_fee_bps)
    fee = amount_in - after_fee - protocol_fee

    if swap_in_token:
        new_state = replace(
            state,
            ada_reserve=state.ada_reserve - amount_out,
            token_reserve=state.token_reserve + amount_in,
        )
    else:
        new_state = replace(
            state,
            ada_reserve=state.ada_reserve + amount_in,
            token_reserve=state.token_reserve - amount_out,
        )

    return SwapQuote(
        swap_in_token=swap_in_token,
        amount_in=amount_in,
        amount_out=amount_out,
        fee=fee,
        protocol_fee=protocol_fee,
        new_state=new_state,
        price_impact_bps=price_impact_bps(
            amount_in,
            amount_out,
            reserve_in,
            reserve_out,
        ),
        effective_price=Decimal(amount_out) / Decimal(amount_in),
    )


@engine_operation
def quote(
    state: PoolState,
    config: PoolConfig,
    amount_in: int,
    swap_in_token: bool,
) -> SwapQuote:
    """Get the output of a swap and the pool state it leaves behind.

    Args:
        state: Current pool state.
        config: Current pool config. Its total fee is taken from the input.
        amount_in: Quantity sent to the pool.
        swap_in_token: True to sell tokens for ADA, False to sell ADA for tokens.

    Returns:
        Outcome[SwapQuote]: `PoolPaused`, `InvalidInput`, `PoolDrained` or
            `CorruptPoolState` on failure.
    """
    return _quote(state, config, amount_in, swap_in_token)


def _check_slippage(swap_quote: SwapQuote, min_out: int) -> SwapQuote:
    if swap_quote.amount_out < min_out:
        msg = f"Swap output {swap_quote.amount_out} is below the minimum {min_out}"
        raise SlippageExceededError(msg)
    return swap_quote


@engine_operation
def check_slippage(swap_quote: SwapQuote, min_out: int) -> SwapQuote:
    """Reject a quote whose output is below the caller's minimum."""
    return _check_slippage(swap_quote, min_out)


def _amount_in_for(
    state: PoolState,
    config: PoolConfig,
    amount_out: int,
    swap_in_token: bool,
) -> int:
    _check_pool(state, config)
    if amount_out <= 0:
        msg = f"amount_out must be positive: {amount_out}"
        raise InvalidInputError(msg)

    reserve_in, reserve_out = reserves(state, swap_in_token)
    if amount_out >= reserve_out:
        msg = f"Requested {amount_out} but the output reserve holds {reserve_out}"
        raise PoolDrainedError(msg)

    fee_modifier = BPS_DENOMINATOR - config.total_fee_bps
    if fee_modifier == 0:
        msg = "A 100% fee leaves nothing to swap"
        raise InvalidInputError(msg)

    numerator = amount_out * BPS_DENOMINATOR * reserve_in
    denominator = (reserve_out - amount_out) * fee_modifier
    amount_in = ceil_div(numerator, denominator)

    # Both the fee and the swap floor, so the estimate can be a few units short.
    while (
        _amount_out(amount_in, reserve_in, reserve_out, config.total_fee_bps)
        < amount_out
    ):
        amount_in += 1

    return amount_in


@engine_operation
def amount_in_for(
    state: PoolState,
    config: PoolConfig,
    amount_out: int,
    swap_in_token: bool,
) -> int:
    """Smallest input that yields at least `amount_out`.

    Args:
        state: Current pool state.
        config: Current pool config.
        amount_out: Quantity wanted from the pool.
        swap_in_token: True when the input is the token and the output is ADA.

    Returns:
        Outcome[int]: The input amount, rounded in the pool's favour.
    """
    return _amount_in_for(state, config, amount_out, swap_in_token)


@engine_operation
def propose_swap(
    datum: PoolDatum,
    amount_in: int,
    swap_in_token: bool,
    slot: int,
    min_out: Optional[int] = None,
    settings: Optional[EngineSettings] = None,
) -> SwapProposal:
    """Quote a swap and build the datum the pool UTXO would carry afterwards.

    Args:
        datum: The pool's current datum.
        amount_in: Quantity sent to the pool.
        swap_in_token: True to sell tokens for ADA, False to sell ADA for tokens.
        slot: Slot the transaction is expected to land in.
        min_out: Optional minimum output, checked with `check_slippage`.
        settings: Engine settings, for the supported datum version and min ADA.

    Returns:
        Outcome[SwapProposal]: The quote, the new datum and its min ADA check.
    """
    settings = settings or EngineSettings()
    check_datum(datum, settings.supported_datum_version)

    swap_quote = _quote(datum.pool_state, datum.pool_config, amount_in, swap_in_token)
    if min_out is not None:
        _check_slippage(swap_quote, min_out)

    new_state = replace(swap_quote.new_state, last_interaction_slot=slot)
    if swap_in_token:
        volume_ada, volume_token = swap_quote.amount_out, swap_quote.amount_in
    else:
        volume_ada, volume_token = swap_quote.amount_in, swap_quote.amount_out

    new_stats = next_stats(
        datum.pool_stats,
        volume_ada,
        volume_token,
        swap_quote.total_fee,
        scaled_price(new_state.ada_reserve, new_state.token_reserve),
        slot,
    )
    new_datum = apply_update(
        datum,
        DatumDelta(pool_state=new_state, pool_stats=new_stats),
    )

    check = check_pool_operation(
        pool_assets(datum),
        pool_assets(new_datum),
        datum_size(new_datum),
        PoolOperation.swap,
        settings.min_ada,
    )

    return SwapProposal(quote=swap_quote, datum=new_datum, min_ada=check)
