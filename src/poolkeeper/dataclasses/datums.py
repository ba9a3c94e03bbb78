# noqa
"""Dataclasses for the CIP-68 pool datum and the Plutus shapes it is built from."""
from dataclasses import dataclass
from typing import Dict
from typing import Union

from pycardano import Address
from pycardano import Datum
from pycardano import PlutusData
from pycardano import ScriptHash
from pycardano import VerificationKeyHash

ADDRESS_PART_BYTES = 28


@dataclass
class PlutusPartAddress(PlutusData):
    """Encode a plutus address part (i.e. payment, stake, etc)."""

    CONSTR_ID = 0
    address: bytes


@dataclass
class PlutusScriptPartAddress(PlutusPartAddress):
    """Encode a plutus script address part."""

    CONSTR_ID = 1


@dataclass
class PlutusNone(PlutusData):
    """Placeholder for an absent value."""

    CONSTR_ID = 1


@dataclass
class _PlutusConstrWrapper(PlutusData):
    """Hidden wrapper matching the `Some(Inline(...))` stake credential construct."""

    CONSTR_ID = 0
    wrapped: Union["_PlutusConstrWrapper", PlutusPartAddress, PlutusScriptPartAddress]


def _part_from_hash(
    part: Union[VerificationKeyHash, ScriptHash],
) -> Union[PlutusPartAddress, PlutusScriptPartAddress]:
    if isinstance(part, ScriptHash):
        return PlutusScriptPartAddress(bytes(part.payload))
    if isinstance(part, VerificationKeyHash):
        return PlutusPartAddress(bytes(part.payload))
    msg = f"Unsupported address part: {part!r}"
    raise ValueError(msg)


def _hash_from_part(
    part: Union[PlutusPartAddress, PlutusScriptPartAddress],
) -> Union[VerificationKeyHash, ScriptHash]:
    payload = part.address[:ADDRESS_PART_BYTES]
    if isinstance(part, PlutusScriptPartAddress):
        return ScriptHash(payload)
    return VerificationKeyHash(payload)


@dataclass
class PlutusFullAddress(PlutusData):
    """A full address, including payment and an optional staking credential."""

    CONSTR_ID = 0
    payment: Union[PlutusPartAddress, PlutusScriptPartAddress]
    stake: Union[_PlutusConstrWrapper, PlutusNone]

    @classmethod
    def from_address(cls, address: Address) -> "PlutusFullAddress":
        """Parse an Address object to a PlutusFullAddress."""
        if address.payment_part is None:
            msg = "Only addresses with a payment part are accepted."
            raise ValueError(msg)

        if address.staking_part is None:
            stake: Union[_PlutusConstrWrapper, PlutusNone] = PlutusNone()
        else:
            stake = _PlutusConstrWrapper(
                _PlutusConstrWrapper(_part_from_hash(address.staking_part)),
            )

        return cls(payment=_part_from_hash(address.payment_part), stake=stake)

    def to_address(self) -> Address:
        """Convert back to an address."""
        if isinstance(self.stake, PlutusNone):
            staking_part = None
        else:
            staking_part = _hash_from_part(self.stake.wrapped.wrapped)
        return Address(
            payment_part=_hash_from_part(self.payment),
            staking_part=staking_part,
        )

    @property
    def is_script(self) -> bool:
        """True when the payment credential is a script hash."""
        return isinstance(self.payment, PlutusScriptPartAddress)


@dataclass
class BoolFalse(PlutusData):
    CONSTR_ID = 0


@dataclass
class BoolTrue(PlutusData):
    CONSTR_ID = 1


def plutus_bool(value: bool) -> Union[BoolFalse, BoolTrue]:
    """Encode a python bool as a Plutus bool constructor."""
    return BoolTrue() if value else BoolFalse()


@dataclass
class PoolState(PlutusData):
    """Reserves and LP supply locked in the pool UTXO."""

    CONSTR_ID = 0
    ada_reserve: int
    token_reserve: int
    total_lp_supply: int
    last_interaction_slot: int
    pool_nft_name: bytes

    @property
    def is_initialized(self) -> bool:
        """Both reserves are positive, so the pool can accept swaps."""
        return self.ada_reserve > 0 and self.token_reserve > 0


@dataclass
class PoolConfig(PlutusData):
    """Governance controlled parameters of a pool."""

    CONSTR_ID = 0
    token_policy: bytes
    token_name: bytes
    lp_token_policy: bytes
    lp_token_name: bytes
    fee_bps: int
    protocol_fee_bps: int
    creator: PlutusFullAddress
    admin: PlutusFullAddress
    is_paused: Union[BoolFalse, BoolTrue]

    @property
    def paused(self) -> bool:
        return isinstance(self.is_paused, BoolTrue)

    @property
    def total_fee_bps(self) -> int:
        """Trading fee plus protocol fee, in basis points."""
        return self.fee_bps + self.protocol_fee_bps


@dataclass
class PoolStats(PlutusData):
    """Append-only counters describing the pool's history."""

    CONSTR_ID = 0
    total_volume_ada: int
    total_volume_token: int
    total_fees_collected: int
    swap_count: int
    liquidity_providers_count: int
    created_at_slot: int
    last_price_ada_per_token: int
    price_history_hash: bytes


@dataclass
class PoolDatum(PlutusData):
    """CIP-68 pool datum: metadata, version, extra, then the pool fields."""

    CONSTR_ID = 0
    metadata: Dict[bytes, Union[int, bytes]]
    version: int
    extra: Datum
    pool_state: PoolState
    pool_config: PoolConfig
    pool_stats: PoolStats
