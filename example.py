"""Example script walking a pool through creation, a swap and a deposit."""

from pycardano import Address  # type: ignore
from pycardano import ScriptHash  # type: ignore
from pycardano import VerificationKeyHash  # type: ignore

from poolkeeper import EngineSettings
from poolkeeper import MemorySnapshotSource
from poolkeeper import PoolIdentity
from poolkeeper import PoolSession
from poolkeeper import PoolSnapshot
from poolkeeper import configure_logging
from poolkeeper import create_pool
from poolkeeper import event_adapter
from poolkeeper import propose_add_liquidity
from poolkeeper import propose_swap
from poolkeeper.dataclasses.events import ReconciledEvent
from poolkeeper.utility import display_price
from poolkeeper.utility import tvl

settings = EngineSettings.from_env()
logger = configure_logging(settings)

IDENTITY = PoolIdentity(
    token_policy="8e51398904a5d3fc129fbf4f1589701de23c7824d5c90fdb9490e15a",
    token_name="434841524c4933",
)
CREATOR = Address(payment_part=VerificationKeyHash(bytes.fromhex("11" * 28)))
ADMIN = Address(payment_part=ScriptHash(bytes.fromhex("22" * 28)))


def log_event(event: ReconciledEvent) -> None:
    """Print every event as JSON, the way a webhook would receive it."""
    logger.info("Event: %s", event_adapter.dump_json(event).decode())


def main() -> None:
    """Create a pool, trade against it and replay the datums through a session."""
    source = MemorySnapshotSource()
    session = PoolSession(settings=settings, source=source)
    session.subscribe(log_event)

    creation = create_pool(
        IDENTITY,
        1_000_000_000,
        1_000_000_000,
        lp_token_policy=bytes.fromhex("33" * 28),
        lp_token_name=b"CHARLI3-LP",
        pool_nft_name=b"CHARLI3-NFT",
        fee_bps=30,
        protocol_fee_bps=0,
        creator=CREATOR,
        admin=ADMIN,
        slot=100,
        settings=settings,
    ).unwrap()
    logger.info("Minted %s LP tokens", creation.lp_minted)

    swap = propose_swap(
        creation.datum,
        10_000_000,
        swap_in_token=False,
        slot=110,
        settings=settings,
    ).unwrap()
    logger.info(
        "Swap of 10 ADA returns %s tokens, impact %s bps",
        swap.quote.amount_out,
        swap.quote.price_impact_bps,
    )

    deposit = propose_add_liquidity(
        swap.datum,
        5_000_000,
        5_000_000,
        slot=120,
        settings=settings,
    )
    if not deposit.ok:
        logger.error("Deposit rejected: %s", deposit.error)
        return

    ada_price, token_price = display_price(deposit.value.datum.pool_state)
    logger.info("Pool price: %s ADA per token, %s tokens per ADA", ada_price, token_price)
    logger.info("Total value locked: %s ADA", tvl(deposit.value.datum.pool_state))

    for slot, tx_hash, datum in [
        (100, "aa" * 32, creation.datum),
        (110, "bb" * 32, swap.datum),
        (120, "cc" * 32, deposit.value.datum),
    ]:
        source.publish(
            PoolSnapshot(
                pool_identity=IDENTITY,
                pool_datum=datum,
                tx_hash=tx_hash,
                slot=slot,
                block_height=slot // 20,
            ),
        )

    for outcome in session.sync():
        if not outcome.ok:
            logger.error("Snapshot rejected (%s): %s", outcome.kind, outcome.error)


if __name__ == "__main__":
    main()
