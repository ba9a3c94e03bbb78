import pytest
from pycardano import Address
from pycardano import ScriptHash
from pycardano import VerificationKeyHash

from poolkeeper.dataclasses.datums import PlutusFullAddress
from poolkeeper.dataclasses.datums import PoolConfig
from poolkeeper.dataclasses.datums import PoolDatum
from poolkeeper.dataclasses.datums import PoolState
from poolkeeper.dataclasses.datums import plutus_bool
from poolkeeper.dataclasses.events import PoolSnapshot
from poolkeeper.dataclasses.models import PoolIdentity
from poolkeeper.engine.pool_datum import build
from poolkeeper.engine.pool_datum import empty_stats
from poolkeeper.utility import identity_of

# CHARLI3
TOKEN_POLICY = "8e51398904a5d3fc129fbf4f1589701de23c7824d5c90fdb9490e15a"
TOKEN_NAME = "434841524c4933"
LP_POLICY = "33" * 28

CREATOR = Address(payment_part=VerificationKeyHash(bytes.fromhex("11" * 28)))
ADMIN = Address(
    payment_part=ScriptHash(bytes.fromhex("22" * 28)),
    staking_part=VerificationKeyHash(bytes.fromhex("44" * 28)),
)


def _make_state(
    ada: int,
    token: int,
    lp: int,
    slot: int = 0,
    nft: bytes = b"CHARLI3-NFT",
) -> PoolState:
    return PoolState(
        ada_reserve=ada,
        token_reserve=token,
        total_lp_supply=lp,
        last_interaction_slot=slot,
        pool_nft_name=nft,
    )


def _make_config(
    fee_bps: int = 30,
    protocol_fee_bps: int = 0,
    paused: bool = False,
    token_policy: str = TOKEN_POLICY,
    token_name: str = TOKEN_NAME,
) -> PoolConfig:
    return PoolConfig(
        token_policy=bytes.fromhex(token_policy),
        token_name=bytes.fromhex(token_name),
        lp_token_policy=bytes.fromhex(LP_POLICY),
        lp_token_name=b"CHARLI3-LP",
        fee_bps=fee_bps,
        protocol_fee_bps=protocol_fee_bps,
        creator=PlutusFullAddress.from_address(CREATOR),
        admin=PlutusFullAddress.from_address(ADMIN),
        is_paused=plutus_bool(paused),
    )


def _make_datum(
    ada: int = 1_000_000_000,
    token: int = 1_000_000_000,
    lp: int = 1_000_000_000,
    slot: int = 0,
    version: int = 1,
    **config,
) -> PoolDatum:
    return build(
        _make_state(ada, token, lp, slot),
        _make_config(**config),
        empty_stats(slot),
        version=version,
    )


def _make_snapshot(
    datum: PoolDatum,
    slot: int,
    tx_hash: str | None = None,
    identity: PoolIdentity | None = None,
) -> PoolSnapshot:
    return PoolSnapshot(
        pool_identity=identity or identity_of(datum),
        pool_datum=datum,
        tx_hash=tx_hash or f"{slot:064x}",
        slot=slot,
        block_height=slot // 20,
    )


@pytest.fixture
def identity() -> PoolIdentity:
    """Identity of the CHARLI3/ADA pool used throughout the tests."""
    return PoolIdentity(token_policy=TOKEN_POLICY, token_name=TOKEN_NAME)


@pytest.fixture
def make_state():
    """Factory for pool states."""
    return _make_state


@pytest.fixture
def make_config():
    """Factory for pool configs."""
    return _make_config


@pytest.fixture
def make_datum():
    """Factory for complete pool datums, 1000 ADA / 1000 CHARLI3 by default."""
    return _make_datum


@pytest.fixture
def make_snapshot():
    """Factory for indexer snapshots of a datum."""
    return _make_snapshot


@pytest.fixture
def datum() -> PoolDatum:
    return _make_datum()


@pytest.fixture
def creator() -> Address:
    return CREATOR


@pytest.fixture
def admin() -> Address:
    return ADMIN
