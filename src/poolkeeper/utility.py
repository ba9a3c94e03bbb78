from decimal import Decimal

from poolkeeper.dataclasses.datums import PoolDatum
from poolkeeper.dataclasses.datums import PoolState
from poolkeeper.dataclasses.models import Assets
from poolkeeper.dataclasses.models import PoolIdentity

ADA_DECIMALS = 6


def identity_of(datum: PoolDatum) -> PoolIdentity:
    """The pool identity recorded in a datum's config."""
    return PoolIdentity(
        token_policy=datum.pool_config.token_policy.hex(),
        token_name=datum.pool_config.token_name.hex(),
    )


def pool_nft_unit(datum: PoolDatum) -> str:
    """Unit of the pool NFT.

    The pool NFT is minted under the same policy as the pool's LP token, with the
    name stored in the pool state.
    """
    return (
        datum.pool_config.lp_token_policy.hex() + datum.pool_state.pool_nft_name.hex()
    )


def pool_assets(datum: PoolDatum) -> Assets:
    """Assets the pool UTXO holds for a given datum.

    The ADA reserve is the UTXO's lovelace, so the pool's own minimum ADA is part of
    its reserve.
    """
    root = {
        "lovelace": datum.pool_state.ada_reserve,
        identity_of(datum).unit: datum.pool_state.token_reserve,
    }
    if datum.pool_state.pool_nft_name:
        root[pool_nft_unit(datum)] = 1
    return Assets(root=root)


def naturalize(quantity: int, decimals: int) -> Decimal:
    """Scale an integer quantity to a human readable Decimal."""
    return Decimal(quantity) / Decimal(10**decimals)


def display_price(
    state: PoolState,
    token_decimals: int = 0,
) -> tuple[Decimal, Decimal]:
    """Display-only prices of the pool.

    Returns:
        A `tuple[Decimal, Decimal]` where the first value is the ADA price of one
            token, and the second value is the token price of one ADA.
    """
    ada = naturalize(state.ada_reserve, ADA_DECIMALS)
    token = naturalize(state.token_reserve, token_decimals)
    if ada == 0 or token == 0:
        return Decimal(0), Decimal(0)
    return ada / token, token / ada


def tvl(state: PoolState) -> Decimal:
    """Return the total value locked in the pool, in ADA."""
    return 2 * naturalize(state.ada_reserve, ADA_DECIMALS).quantize(
        1 / Decimal(10**ADA_DECIMALS),
    )


def encode_text(value: str) -> bytes:
    return value.encode("utf-8")


def decode_text(value: bytes) -> str | bytes:
    """Decode UTF-8 bytes, leaving binary values untouched."""
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value
