"""Building, validating and superseding CIP-68 pool datums.

A pool datum is never mutated. Every pool-touching transaction produces a new
datum that shares the unchanged sub-structures of the old one by reference and
replaces only the ones the action touched.
"""

import hashlib
from dataclasses import replace
from typing import Mapping
from typing import Optional
from typing import Union

from pycardano import Datum
from pydantic import ConfigDict

from poolkeeper.dataclasses.datums import PlutusNone
from poolkeeper.dataclasses.datums import PoolConfig
from poolkeeper.dataclasses.datums import PoolDatum
from poolkeeper.dataclasses.datums import PoolState
from poolkeeper.dataclasses.datums import PoolStats
from poolkeeper.dataclasses.models import PoolKeeperBaseModel
from poolkeeper.engine.errors import CorruptPoolStateError
from poolkeeper.engine.errors import InvalidInputError
from poolkeeper.engine.errors import UnsupportedDatumVersionError
from poolkeeper.engine.errors import engine_operation
from poolkeeper.engine.fixed_point import BPS_DENOMINATOR
from poolkeeper.engine.fixed_point import PRICE_PRECISION
from poolkeeper.utility import decode_text
from poolkeeper.utility import encode_text

CIP68_VERSION = 1
PRICE_HASH_BYTES = 32

NAME = "name"
DESCRIPTION = "description"
POOL_TYPE = "pool_type"
POOL_FEE = "pool_fee"
VERSION = "version"

MetadataValue = Union[str, int, bytes]


class DatumDelta(PoolKeeperBaseModel):
    """Sub-structures replaced by an action. `None` keeps the old one."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    pool_state: Optional[PoolState] = None
    pool_stats: Optional[PoolStats] = None
    pool_config: Optional[PoolConfig] = None


def _encode_value(value: MetadataValue) -> Union[int, bytes]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, bytes)):
        return value
    if isinstance(value, str):
        return encode_text(value)
    msg = f"Unsupported metadata value type: {type(value).__name__}"
    raise TypeError(msg)


def encode_metadata(metadata: Mapping[str, MetadataValue]) -> dict[bytes, Union[int, bytes]]:
    """Encode a metadata mapping to its on-chain form, keeping key order."""
    return {encode_text(key): _encode_value(value) for key, value in metadata.items()}


def decode_metadata(datum: PoolDatum) -> dict[str, MetadataValue]:
    """Decode the on-chain metadata map back to text keys and values."""
    decoded: dict[str, MetadataValue] = {}
    for key, value in datum.metadata.items():
        name = decode_text(key)
        if isinstance(name, bytes):
            name = name.hex()
        decoded[name] = decode_text(value) if isinstance(value, bytes) else value
    return decoded


def metadata_value(datum: PoolDatum, key: str) -> Optional[MetadataValue]:
    """Get metadata value safely."""
    value = datum.metadata.get(encode_text(key))
    if isinstance(value, bytes):
        return decode_text(value)
    return value


def pool_metadata(
    name: str,
    description: str,
    pool_type: str,
    fee_bps: int,
) -> dict[str, MetadataValue]:
    """Create base CIP-68 metadata for a pool."""
    return {
        NAME: name,
        DESCRIPTION: description,
        POOL_TYPE: pool_type,
        POOL_FEE: fee_bps,
        VERSION: CIP68_VERSION,
    }


def default_metadata(config: PoolConfig) -> dict[str, MetadataValue]:
    token = decode_text(config.token_name)
    if isinstance(token, bytes) or token == "":
        token = config.token_name.hex() or config.token_policy.hex()[:8]
    return pool_metadata(
        name=f"{token}/ADA Pool",
        description=f"AMM liquidity pool for {token} and ADA",
        pool_type="AMM",
        fee_bps=config.fee_bps,
    )


def build(
    state: PoolState,
    config: PoolConfig,
    stats: PoolStats,
    metadata: Optional[Mapping[str, MetadataValue]] = None,
    version: int = CIP68_VERSION,
    extra: Optional[Datum] = None,
) -> PoolDatum:
    """Build a complete pool datum.

    Args:
        state: Reserves and LP supply.
        config: Pool parameters.
        stats: Pool counters.
        metadata: CIP-68 metadata. Defaults to a name, description, pool type and
            fee derived from `config`.
        version: CIP-68 datum version.
        extra: Opaque CIP-68 extension field. Defaults to a Plutus `None`.

    Returns:
        PoolDatum: The new datum.
    """
    if metadata is None:
        metadata = default_metadata(config)

    return PoolDatum(
        metadata=encode_metadata(metadata),
        version=version,
        extra=PlutusNone() if extra is None else extra,
        pool_state=state,
        pool_config=config,
        pool_stats=stats,
    )


def validate_structure(datum: PoolDatum) -> bool:
    """Cheap sanity gate run before any other field of a datum is trusted."""
    if not isinstance(datum.version, int) or datum.version < 1:
        return False
    if not isinstance(datum.metadata, dict):
        return False
    name = datum.metadata.get(encode_text(NAME))
    return isinstance(name, bytes) and len(name) > 0


def check_version(datum: PoolDatum, supported_version: int = CIP68_VERSION) -> None:
    """Reject datums newer than the engine understands."""
    if isinstance(datum.version, int) and datum.version > supported_version:
        msg = (
            f"Datum version {datum.version} is newer than the supported version "
            f"{supported_version}"
        )
        raise UnsupportedDatumVersionError(msg)


def check_datum(datum: PoolDatum, supported_version: int) -> PoolDatum:
    check_version(datum, supported_version)
    if not validate_structure(datum):
        msg = "Pool datum failed structure validation: missing name or version < 1"
        raise InvalidInputError(msg)
    return datum


@engine_operation
def validate_datum(datum: PoolDatum, supported_version: int = CIP68_VERSION) -> PoolDatum:
    """Version gate followed by structure validation."""
    return check_datum(datum, supported_version)


def check_config(config: PoolConfig) -> None:
    """Raise `InvalidInputError` for fee parameters outside their bounds."""
    if config.fee_bps < 0 or config.protocol_fee_bps < 0:
        msg = (
            "Fees must be non-negative: "
            f"fee_bps={config.fee_bps}, protocol_fee_bps={config.protocol_fee_bps}"
        )
        raise InvalidInputError(msg)
    if config.total_fee_bps > BPS_DENOMINATOR:
        msg = (
            f"fee_bps + protocol_fee_bps must not exceed {BPS_DENOMINATOR}: "
            f"{config.total_fee_bps}"
        )
        raise InvalidInputError(msg)


def check_state(state: PoolState) -> None:
    """Raise `CorruptPoolStateError` when reserves and LP supply disagree.

    A pool that has issued LP tokens must hold both reserves. Negative values are
    never legal.
    """
    fields = {
        "ada_reserve": state.ada_reserve,
        "token_reserve": state.token_reserve,
        "total_lp_supply": state.total_lp_supply,
    }
    for name, value in fields.items():
        if value < 0:
            msg = f"Pool state has a negative {name}: {value}"
            raise CorruptPoolStateError(msg)
    if state.total_lp_supply > 0 and not state.is_initialized:
        msg = (
            f"Pool has {state.total_lp_supply} LP tokens outstanding but a zero "
            f"reserve: ada={state.ada_reserve}, token={state.token_reserve}"
        )
        raise CorruptPoolStateError(msg)


def apply_update(old: PoolDatum, delta: DatumDelta) -> PoolDatum:
    """Produce the datum that supersedes `old`.

    `old` is not modified. Sub-structures not named in `delta` are shared with
    `old`; `version` and `extra` always are. The config is only replaced when
    `delta` carries one, which is reserved for config-update actions. `metadata` is
    shared too, unless the new config changes the fee that its `pool_fee` entry
    advertises.
    """
    changes = {}
    if delta.pool_state is not None:
        changes["pool_state"] = delta.pool_state
    if delta.pool_stats is not None:
        changes["pool_stats"] = delta.pool_stats
    if delta.pool_config is not None:
        changes["pool_config"] = delta.pool_config
        if delta.pool_config.fee_bps != old.pool_config.fee_bps:
            changes["metadata"] = with_pool_fee(old.metadata, delta.pool_config.fee_bps)

    return replace(old, **changes)


def with_pool_fee(
    metadata: Mapping[bytes, Union[int, bytes]],
    fee_bps: int,
) -> dict[bytes, Union[int, bytes]]:
    """Copy of on-chain metadata with its `pool_fee` entry set to `fee_bps`.

    Metadata without a `pool_fee` entry is copied unchanged.
    """
    updated = dict(metadata)
    key = encode_text(POOL_FEE)
    if key in updated:
        updated[key] = fee_bps
    return updated


def next_price_hash(previous: bytes, price: int, slot: int) -> bytes:
    """Chain a price observation onto the previous price history hash."""
    h = hashlib.blake2b(digest_size=PRICE_HASH_BYTES)
    h.update(previous)
    h.update(price.to_bytes(16, "big"))
    h.update(slot.to_bytes(8, "big"))
    return h.digest()


def next_stats(
    old_stats: PoolStats,
    volume_ada_delta: int,
    volume_token_delta: int,
    fee_delta: int,
    new_price: int,
    slot: int,
    swaps: int = 1,
    new_providers: int = 0,
) -> PoolStats:
    deltas = {
        "volume_ada_delta": volume_ada_delta,
        "volume_token_delta": volume_token_delta,
        "fee_delta": fee_delta,
        "swaps": swaps,
        "new_providers": new_providers,
    }
    for name, value in deltas.items():
        if value < 0:
            msg = f"Stats only ever increase, {name} is negative: {value}"
            raise InvalidInputError(msg)
    if new_price < 0 or slot < 0:
        msg = f"Price and slot must be non-negative: price={new_price}, slot={slot}"
        raise InvalidInputError(msg)

    return replace(
        old_stats,
        total_volume_ada=old_stats.total_volume_ada + volume_ada_delta,
        total_volume_token=old_stats.total_volume_token + volume_token_delta,
        total_fees_collected=old_stats.total_fees_collected + fee_delta,
        swap_count=old_stats.swap_count + swaps,
        liquidity_providers_count=old_stats.liquidity_providers_count + new_providers,
        last_price_ada_per_token=new_price,
        price_history_hash=next_price_hash(old_stats.price_history_hash, new_price, slot),
    )


@engine_operation
def update_stats(
    old_stats: PoolStats,
    volume_ada_delta: int,
    volume_token_delta: int,
    fee_delta: int,
    new_price: int,
    slot: int,
    *,
    swaps: int = 1,
    new_providers: int = 0,
) -> PoolStats:
    """Return new stats with every counter incremented by its delta.

    Args:
        old_stats: The stats being superseded.
        volume_ada_delta: ADA traded.
        volume_token_delta: Tokens traded.
        fee_delta: Fees collected, trading plus protocol.
        new_price: ADA per token after the action, scaled by 1e6.
        slot: Slot of the action, chained into the price history hash.
        swaps: Swaps to count. Liquidity actions pass 0.
        new_providers: Liquidity deposits to count.

    Returns:
        Outcome[PoolStats]: `InvalidInput` if any delta is negative.
    """
    return next_stats(
        old_stats,
        volume_ada_delta,
        volume_token_delta,
        fee_delta,
        new_price,
        slot,
        swaps,
        new_providers,
    )


def empty_stats(created_at_slot: int) -> PoolStats:
    """Stats of a pool that has just been created."""
    return PoolStats(
        total_volume_ada=0,
        total_volume_token=0,
        total_fees_collected=0,
        swap_count=0,
        liquidity_providers_count=0,
        created_at_slot=created_at_slot,
        last_price_ada_per_token=0,
        price_history_hash=bytes(PRICE_HASH_BYTES),
    )


def lp_share(lp_amount: int, total_lp_supply: int) -> int:
    """Share of the pool held by `lp_amount`, scaled by 1e6 (1000000 = 100%)."""
    if total_lp_supply <= 0:
        return 0
    return lp_amount * PRICE_PRECISION // total_lp_supply
