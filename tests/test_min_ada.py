import pytest
from pycardano import Address
from pycardano import ScriptHash
from pycardano import VerificationKeyHash

from poolkeeper.config import MinAdaParameters
from poolkeeper.dataclasses.models import Assets
from poolkeeper.dataclasses.models import EntityKind
from poolkeeper.dataclasses.models import PoolOperation
from poolkeeper.engine.errors import ErrorKind
from poolkeeper.engine.errors import MinAdaViolationError
from poolkeeper.engine.min_ada import check_pool_operation
from poolkeeper.engine.min_ada import datum_size
from poolkeeper.engine.min_ada import ensure_min_ada
from poolkeeper.engine.min_ada import is_script_address
from poolkeeper.engine.min_ada import min_ada
from poolkeeper.engine.min_ada import pool_min_ada
from poolkeeper.engine.min_ada import report
from poolkeeper.engine.min_ada import validate
from poolkeeper.engine.min_ada import validate_pool_operation

UNIT_A = "8e51398904a5d3fc129fbf4f1589701de23c7824d5c90fdb9490e15a434841524c4933"
UNIT_B = "33" * 28 + "4e4654"


def test_pool_min_ada():
    assets = Assets(root={"lovelace": 10_000_000, UNIT_A: 5, UNIT_B: 1})

    result = pool_min_ada(assets, 0).unwrap()

    assert result.breakdown.base == 3_000_000
    assert result.breakdown.asset_cost == 2 * 344_798
    assert result.breakdown.datum_cost == 0
    assert result.breakdown.buffer == 300_000
    assert result.required == 3_989_596
    assert result.actual == 10_000_000
    assert result.deficit == 0
    assert result.is_valid


def test_datum_bytes_are_charged():
    assets = Assets(root={"lovelace": 10_000_000, UNIT_A: 5, UNIT_B: 1})

    result = pool_min_ada(assets, 100).unwrap()

    assert result.breakdown.datum_cost == 431_000
    assert result.required == 4_420_596


@pytest.mark.parametrize(
    "kind,is_script,expected",
    [
        (EntityKind.generic, False, 1_000_000),
        (EntityKind.user, False, 1_000_000),
        (EntityKind.generic, True, 2_100_000),
        (EntityKind.user, True, 2_100_000),
        (EntityKind.factory, True, 2_625_000),
        (EntityKind.lp_token, True, 2_100_000),
        (EntityKind.pool, True, 3_300_000),
    ],
)
def test_entity_bases_and_buffers(kind: EntityKind, is_script: bool, expected: int):
    result = min_ada(Assets(root={"lovelace": 0}), 0, is_script, kind).unwrap()

    assert result.required == expected
    assert result.deficit == expected
    assert not result.is_valid


def test_script_owned_entities_carry_a_buffer(subtests):
    for kind in EntityKind:
        with subtests.test(kind=kind):
            result = min_ada(Assets(root={"lovelace": 0}), 0, True, kind).unwrap()
            assert result.breakdown.buffer > 0


def test_zero_buffer_is_rejected():
    with pytest.raises(ValueError):
        MinAdaParameters(pool_buffer_pct=0)


def test_negative_datum_size(subtests):
    assets = Assets(root={"lovelace": 0})

    with subtests.test(msg="min_ada"):
        outcome = min_ada(assets, -1, False)
        assert not outcome.ok
        assert outcome.kind == ErrorKind.invalid_input

    with subtests.test(msg="pool_min_ada"):
        assert pool_min_ada(assets, -1).kind == ErrorKind.invalid_input

    with subtests.test(msg="validate"):
        assert validate(assets, -5, True).kind == ErrorKind.invalid_input

    with subtests.test(msg="report"):
        assert report(assets, -1, True).kind == ErrorKind.invalid_input

    with subtests.test(msg="validate_pool_operation"):
        outcome = validate_pool_operation(assets, assets, -1, PoolOperation.swap)
        assert outcome.kind == ErrorKind.invalid_input


def test_check_pool_operation_raises():
    rich = Assets(root={"lovelace": 20_000_000, UNIT_A: 100})
    poor = Assets(root={"lovelace": 1_000_000, UNIT_A: 500})

    assert check_pool_operation(rich, rich, 0, PoolOperation.swap).is_valid
    with pytest.raises(MinAdaViolationError, match="Swap"):
        check_pool_operation(rich, poor, 0, PoolOperation.swap)


def test_validate_deficit():
    result = validate(
        Assets(root={"lovelace": 1_000_000, UNIT_A: 1}),
        0,
        False,
        EntityKind.user,
    ).unwrap()

    assert result.required == 1_344_798
    assert result.deficit == 344_798
    assert not result.is_valid


def test_custom_parameters():
    params = MinAdaParameters(pool=5_000_000, pool_buffer_pct=20)

    result = pool_min_ada(Assets(root={"lovelace": 0}), 0, params).unwrap()

    assert result.required == 6_000_000


def _check(input_assets, output_assets, operation):
    return validate_pool_operation(input_assets, output_assets, 0, operation).unwrap()


def test_validate_pool_operation(subtests):
    rich = Assets(root={"lovelace": 20_000_000, UNIT_A: 100})
    poorer = Assets(root={"lovelace": 15_000_000, UNIT_A: 120})
    poor = Assets(root={"lovelace": 1_000_000, UNIT_A: 500})

    with subtests.test(msg="swap"):
        assert _check(rich, poorer, PoolOperation.swap).is_valid
        check = _check(rich, poor, PoolOperation.swap)
        assert not check.is_valid
        assert "Swap" in check.error

    with subtests.test(msg="add liquidity"):
        assert _check(poorer, rich, PoolOperation.add_liquidity).is_valid
        check = _check(rich, poorer, PoolOperation.add_liquidity)
        assert not check.is_valid
        assert "decrease" in check.error

    with subtests.test(msg="remove liquidity"):
        assert not _check(rich, poor, PoolOperation.remove_liquidity).is_valid

    with subtests.test(msg="create pool"):
        empty = Assets(root={})
        assert _check(empty, rich, PoolOperation.create_pool).is_valid
        assert not _check(empty, poor, PoolOperation.create_pool).is_valid

    with subtests.test(msg="input already below minimum"):
        check = _check(poor, rich, PoolOperation.add_liquidity)
        assert not check.is_valid
        assert not check.input_check.is_valid


def test_ensure_min_ada():
    topped_up = ensure_min_ada(Assets(root={"lovelace": 1, UNIT_A: 1}), 1_000_000)
    assert topped_up.lovelace == 1_100_000
    assert topped_up[UNIT_A] == 1

    enough = Assets(root={"lovelace": 5_000_000})
    assert ensure_min_ada(enough, 1_000_000) is enough


def test_is_script_address():
    script = Address(payment_part=ScriptHash(bytes.fromhex("22" * 28)))
    wallet = Address(payment_part=VerificationKeyHash(bytes.fromhex("11" * 28)))

    assert is_script_address(script)
    assert not is_script_address(wallet)


def test_datum_size(datum):
    size = datum_size(datum)

    assert size == len(datum.to_cbor())
    assert 0 < size < 16_384


def test_report():
    many = {f"{'ab' * 28}{i:02x}": 1 for i in range(11)}
    assets = Assets(root={"lovelace": 0, **many})

    outcome = report(assets, 20_000, True, EntityKind.pool)
    calculation, recommendations = outcome.unwrap()

    assert not calculation.is_valid
    assert len(recommendations) == 3
    assert str(calculation.deficit) in recommendations[0]
    assert "20000" in recommendations[1]
    assert "11" in recommendations[2]

    _, recommendations = report(
        Assets(root={"lovelace": 10_000_000}),
        10,
        False,
        EntityKind.user,
    ).unwrap()
    assert recommendations == []
