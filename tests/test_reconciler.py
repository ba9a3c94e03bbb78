from dataclasses import replace

from poolkeeper.dataclasses.events import AddLiquidity
from poolkeeper.dataclasses.events import ConfigUpdated
from poolkeeper.dataclasses.events import EventKind
from poolkeeper.dataclasses.events import PoolCreated
from poolkeeper.dataclasses.events import RemoveLiquidity
from poolkeeper.dataclasses.events import Swap
from poolkeeper.dataclasses.events import Unchanged
from poolkeeper.dataclasses.events import event_adapter
from poolkeeper.engine.errors import ErrorKind
from poolkeeper.engine.liquidity import propose_add_liquidity
from poolkeeper.engine.liquidity import propose_config_update
from poolkeeper.engine.liquidity import propose_remove_liquidity
from poolkeeper.engine.pool_datum import DatumDelta
from poolkeeper.engine.pool_datum import apply_update
from poolkeeper.engine.reconciler import reconcile
from poolkeeper.engine.swap import propose_swap


def _reconcile(old, new, identity, slot=10):
    return reconcile(
        old,
        new,
        pool_identity=identity,
        tx_hash="ab" * 32,
        slot=slot,
        block_height=3,
    )


def test_new_pool_is_created_never_swapped(datum, identity):
    event = _reconcile(None, datum, identity).unwrap()

    assert isinstance(event, PoolCreated)
    assert event.kind == EventKind.pool_created
    assert event.ada_reserve == 1_000_000_000
    assert event.fee_bps == 30
    assert event.price == 1_000_000
    assert event.pool_identity == identity
    assert event.tx_hash == "ab" * 32
    assert event.slot == 10
    assert event.block_height == 3


def test_swap(datum, identity):
    new = propose_swap(datum, 10_000_000, False, slot=10).unwrap().datum

    event = _reconcile(datum, new, identity).unwrap()

    assert isinstance(event, Swap)
    assert not event.swap_in_token
    assert event.amount_in == 10_000_000
    assert event.amount_out == 9_871_580
    assert event.fee == 30_000
    assert event.price_impact_bps == 128
    assert event.new_price == new.pool_stats.last_price_ada_per_token


def test_token_in_swap(datum, identity):
    new = propose_swap(datum, 10_000_000, True, slot=10).unwrap().datum

    event = _reconcile(datum, new, identity).unwrap()

    assert isinstance(event, Swap)
    assert event.swap_in_token
    assert event.amount_in == 10_000_000
    assert event.amount_out == 9_871_580


def test_swap_fee_uses_the_pre_state_config(make_datum, identity):
    old = make_datum(fee_bps=25, protocol_fee_bps=5)
    new = propose_swap(old, 1_000_000, False, slot=10).unwrap().datum

    event = _reconcile(old, new, identity).unwrap()

    assert event.fee == 3_000


def test_swap_fee_matches_the_quote(datum, identity):
    proposal = propose_swap(datum, 10_000_001, False, slot=10).unwrap()
    collected = (
        proposal.datum.pool_stats.total_fees_collected
        - datum.pool_stats.total_fees_collected
    )

    event = _reconcile(datum, proposal.datum, identity).unwrap()

    assert event.fee == 30_001
    assert event.fee == collected
    assert event.fee == proposal.quote.total_fee


def test_add_liquidity(datum, identity):
    proposal = propose_add_liquidity(datum, 10_000_000, 10_000_000, slot=10).unwrap()

    event = _reconcile(datum, proposal.datum, identity).unwrap()

    assert isinstance(event, AddLiquidity)
    assert event.ada_amount == 10_000_000
    assert event.token_amount == 10_000_000
    assert event.lp_amount == proposal.result.lp_minted
    assert event.lp_amount_exact
    assert event.lp_share == 10_000_000 * 1_000_000 // 1_010_000_000


def test_add_liquidity_without_lp_supply_change(datum, make_state, identity):
    state = make_state(1_100_000_000, 1_200_000_000, 1_000_000_000, slot=10)
    new = apply_update(datum, DatumDelta(pool_state=state))

    event = _reconcile(datum, new, identity).unwrap()

    assert isinstance(event, AddLiquidity)
    assert not event.lp_amount_exact
    assert event.lp_amount == 100_000_000


def test_one_sided_deposit(datum, make_state, identity):
    state = make_state(1_050_000_000, 1_000_000_000, 1_000_000_000, slot=10)
    new = apply_update(datum, DatumDelta(pool_state=state))

    event = _reconcile(datum, new, identity).unwrap()

    assert isinstance(event, AddLiquidity)
    assert event.token_amount == 0


def test_remove_liquidity(datum, identity):
    proposal = propose_remove_liquidity(datum, 250_000_000, slot=10).unwrap()

    event = _reconcile(datum, proposal.datum, identity).unwrap()

    assert isinstance(event, RemoveLiquidity)
    assert event.ada_amount == 250_000_000
    assert event.token_amount == 250_000_000
    assert event.lp_amount == 250_000_000
    assert event.lp_amount_exact
    assert event.lp_share == 250_000


def test_config_update(datum, identity):
    new = propose_config_update(datum, fee_bps=50, is_paused=True).unwrap()

    event = _reconcile(datum, new, identity).unwrap()

    assert isinstance(event, ConfigUpdated)
    assert [(c.field, c.old, c.new) for c in event.changes] == [
        ("fee_bps", 30, 50),
        ("is_paused", False, True),
    ]


def test_redelivery_is_unchanged(datum, identity):
    new = propose_swap(datum, 10_000_000, False, slot=10).unwrap().datum

    assert isinstance(_reconcile(datum, new, identity).unwrap(), Swap)
    assert isinstance(_reconcile(new, new, identity).unwrap(), Unchanged)


def test_corrupt_new_state(datum, make_state, identity, subtests):
    with subtests.test(msg="LP supply without reserves"):
        state = make_state(0, 1_000_000_000, 1_000_000_000)
        new = apply_update(datum, DatumDelta(pool_state=state))
        outcome = _reconcile(datum, new, identity)
        assert outcome.kind == ErrorKind.corrupt_pool_state
        assert not outcome.error.retryable

    with subtests.test(msg="LP supply moving without reserves"):
        state = make_state(1_000_000_000, 1_000_000_000, 1_500_000_000)
        new = apply_update(datum, DatumDelta(pool_state=state))
        outcome = _reconcile(datum, new, identity)
        assert outcome.kind == ErrorKind.corrupt_pool_state
        assert "LP supply changed" in str(outcome.error)

    with subtests.test(msg="stats going backwards"):
        swapped = propose_swap(datum, 10_000_000, False, slot=10).unwrap().datum
        rewound = apply_update(swapped, DatumDelta(pool_stats=datum.pool_stats))
        outcome = _reconcile(swapped, rewound, identity)
        assert outcome.kind == ErrorKind.corrupt_pool_state

    with subtests.test(msg="corrupt first sighting"):
        state = make_state(1_000, 0, 5)
        new = apply_update(datum, DatumDelta(pool_state=state))
        assert _reconcile(None, new, identity).kind == ErrorKind.corrupt_pool_state


def test_full_withdrawal_is_not_corrupt(datum, make_state, identity):
    drained = apply_update(
        datum,
        DatumDelta(pool_state=replace(make_state(0, 0, 0), last_interaction_slot=10)),
    )

    event = _reconcile(datum, drained, identity).unwrap()

    assert isinstance(event, RemoveLiquidity)
    assert event.lp_amount == 1_000_000_000
    assert event.lp_share == 1_000_000


def test_events_serialize(datum, identity):
    new = propose_swap(datum, 10_000_000, False, slot=10).unwrap().datum
    event = _reconcile(datum, new, identity).unwrap()

    raw = event_adapter.dump_json(event)
    parsed = event_adapter.validate_json(raw)

    assert b'"kind":"Swap"' in raw
    assert isinstance(parsed, Swap)
    assert parsed == event
