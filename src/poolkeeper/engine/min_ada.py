"""Minimum ADA calculations for every UTXO shape the pool engine produces.

The values computed here are advisory: the ledger's real minimum depends on
protocol parameters that may change, so script-owned entities always carry a
non-zero safety buffer on top of the formula.
"""

from pycardano import Address
from pycardano import PlutusData
from pycardano import ScriptHash

from poolkeeper.config import MinAdaParameters
from poolkeeper.dataclasses.models import Assets
from poolkeeper.dataclasses.models import EntityKind
from poolkeeper.dataclasses.models import MinAdaBreakdown
from poolkeeper.dataclasses.models import MinAdaCalculation
from poolkeeper.dataclasses.models import PoolOperation
from poolkeeper.dataclasses.models import PoolOperationCheck
from poolkeeper.engine.errors import InvalidInputError
from poolkeeper.engine.errors import MinAdaViolationError
from poolkeeper.engine.errors import engine_operation

DEFAULT_PARAMETERS = MinAdaParameters()
MANY_ASSETS = 10


def _base_and_buffer_pct(
    entity_kind: EntityKind,
    is_script_address: bool,
    params: MinAdaParameters,
) -> tuple[int, int]:
    if entity_kind == EntityKind.pool:
        return params.pool, params.pool_buffer_pct
    if entity_kind == EntityKind.factory:
        return params.factory, params.factory_buffer_pct
    if entity_kind == EntityKind.lp_token:
        return params.lp_token, params.lp_token_buffer_pct
    if is_script_address:
        return params.script, params.script_buffer_pct
    return params.base, 0


def _min_ada(
    assets: Assets,
    datum_size_bytes: int,
    is_script_address: bool,
    entity_kind: EntityKind = EntityKind.generic,
    params: MinAdaParameters = DEFAULT_PARAMETERS,
) -> MinAdaCalculation:
    """required = base(kind) + assets * per_asset + datum bytes * per_byte + buffer"""
    if datum_size_bytes < 0:
        msg = f"datum_size_bytes must be non-negative: {datum_size_bytes}"
        raise InvalidInputError(msg)

    base, buffer_pct = _base_and_buffer_pct(entity_kind, is_script_address, params)
    if is_script_address and buffer_pct == 0:
        buffer_pct = params.script_buffer_pct

    asset_cost = assets.non_ada_count() * params.per_asset
    datum_cost = datum_size_bytes * params.per_datum_byte
    buffer = base * buffer_pct // 100

    required = base + asset_cost + datum_cost + buffer
    actual = assets.lovelace

    return MinAdaCalculation(
        required=required,
        actual=actual,
        deficit=max(0, required - actual),
        breakdown=MinAdaBreakdown(
            base=base,
            asset_cost=asset_cost,
            datum_cost=datum_cost,
            buffer=buffer,
        ),
    )


@engine_operation
def min_ada(
    assets: Assets,
    datum_size_bytes: int,
    is_script_address: bool,
    entity_kind: EntityKind = EntityKind.generic,
    params: MinAdaParameters = DEFAULT_PARAMETERS,
) -> MinAdaCalculation:
    """Calculate the minimum lovelace a UTXO must hold.

    Args:
        assets: The UTXO contents. Lovelace is not counted as an asset.
        datum_size_bytes: Size of the attached datum, 0 for none.
        is_script_address: Whether the UTXO sits at a script address.
        entity_kind: What the UTXO is (pool, factory, LP token, user, generic).
        params: Lovelace amounts to use.

    Returns:
        Outcome[MinAdaCalculation]: Required, actual and deficit lovelace with a
            breakdown, or `InvalidInput` for a negative datum size.
    """
    return _min_ada(assets, datum_size_bytes, is_script_address, entity_kind, params)


@engine_operation
def validate(
    utxo_assets: Assets,
    datum_size_bytes: int,
    is_script_address: bool,
    entity_kind: EntityKind = EntityKind.generic,
    params: MinAdaParameters = DEFAULT_PARAMETERS,
) -> MinAdaCalculation:
    """Validate a UTXO against its minimum ADA. See `MinAdaCalculation.is_valid`."""
    return _min_ada(
        utxo_assets,
        datum_size_bytes,
        is_script_address,
        entity_kind,
        params,
    )


def _pool_min_ada(
    pool_assets: Assets,
    datum_size_bytes: int,
    params: MinAdaParameters,
) -> MinAdaCalculation:
    return _min_ada(pool_assets, datum_size_bytes, True, EntityKind.pool, params)


@engine_operation
def pool_min_ada(
    pool_assets: Assets,
    datum_size_bytes: int,
    params: MinAdaParameters = DEFAULT_PARAMETERS,
) -> MinAdaCalculation:
    """Minimum ADA of a pool UTXO, which always sits at a script address."""
    return _pool_min_ada(pool_assets, datum_size_bytes, params)


def _pool_operation_check(
    input_assets: Assets,
    output_assets: Assets,
    datum_size_bytes: int,
    operation: PoolOperation,
    params: MinAdaParameters,
) -> PoolOperationCheck:
    input_check = _pool_min_ada(input_assets, datum_size_bytes, params)
    output_check = _pool_min_ada(output_assets, datum_size_bytes, params)

    error = None
    if operation == PoolOperation.swap:
        if not output_check.is_valid:
            error = (
                "Swap would leave pool with insufficient ADA: "
                f"{output_check.actual} < {output_check.required}"
            )
    elif operation == PoolOperation.add_liquidity:
        if output_assets.lovelace < input_assets.lovelace:
            error = (
                "Add liquidity should not decrease pool ADA: "
                f"{output_assets.lovelace} < {input_assets.lovelace}"
            )
    elif operation == PoolOperation.remove_liquidity:
        if not output_check.is_valid:
            error = (
                "Remove liquidity would leave insufficient ADA: "
                f"{output_check.actual} < {output_check.required}"
            )
    elif operation == PoolOperation.create_pool:
        if not output_check.is_valid:
            error = (
                "Initial pool funding insufficient: "
                f"{output_check.actual} < {output_check.required}"
            )

    if error is None and operation != PoolOperation.create_pool:
        if not input_check.is_valid:
            error = (
                "Pool input is already below its minimum ADA: "
                f"{input_check.actual} < {input_check.required}"
            )
        elif not output_check.is_valid:
            error = (
                "Pool output is below its minimum ADA: "
                f"{output_check.actual} < {output_check.required}"
            )

    return PoolOperationCheck(
        operation=operation,
        input_check=input_check,
        output_check=output_check,
        error=error,
    )


@engine_operation
def validate_pool_operation(
    input_assets: Assets,
    output_assets: Assets,
    datum_size_bytes: int,
    operation: PoolOperation,
    params: MinAdaParameters = DEFAULT_PARAMETERS,
) -> PoolOperationCheck:
    """Check that a pool action keeps the pool UTXO spendable.

    A pool UTXO that drops below its minimum ADA can never be spent again, locking
    the remaining reserves for good, so the output side is checked for every
    operation. Pool creation has no input UTXO; pass empty `Assets` for it.

    Args:
        input_assets: Contents of the pool UTXO being spent.
        output_assets: Contents of the pool UTXO being created.
        datum_size_bytes: Size of the pool datum.
        operation: The action being applied.
        params: Lovelace amounts to use.

    Returns:
        Outcome[PoolOperationCheck]: Both calculations and an error message when
            invalid. A failed check is still a successful outcome.
    """
    return _pool_operation_check(
        input_assets,
        output_assets,
        datum_size_bytes,
        operation,
        params,
    )


def check_pool_operation(
    input_assets: Assets,
    output_assets: Assets,
    datum_size_bytes: int,
    operation: PoolOperation,
    params: MinAdaParameters = DEFAULT_PARAMETERS,
) -> PoolOperationCheck:
    """Like `validate_pool_operation`, raising `MinAdaViolationError` when invalid."""
    check = _pool_operation_check(
        input_assets,
        output_assets,
        datum_size_bytes,
        operation,
        params,
    )
    if not check.is_valid:
        raise MinAdaViolationError(check.error)
    return check


def ensure_min_ada(assets: Assets, required: int, buffer_pct: int = 10) -> Assets:
    """Top up the lovelace of `assets` to `required` plus a percentage buffer."""
    with_buffer = required + required * buffer_pct // 100
    if assets.lovelace >= with_buffer:
        return assets
    return Assets(root={**assets.root, "lovelace": with_buffer})


def is_script_address(address: Address) -> bool:
    """True when the address's payment credential is a script hash."""
    return isinstance(address.payment_part, ScriptHash)


def datum_size(datum: PlutusData) -> int:
    """Size in bytes of a datum's CBOR encoding."""
    return len(datum.to_cbor())


@engine_operation
def report(
    assets: Assets,
    datum_size_bytes: int,
    is_script_address: bool,
    entity_kind: EntityKind = EntityKind.generic,
    params: MinAdaParameters = DEFAULT_PARAMETERS,
) -> tuple[MinAdaCalculation, list[str]]:
    """Calculate the minimum ADA of a UTXO and suggest how to fix problems."""
    calculation = _min_ada(
        assets,
        datum_size_bytes,
        is_script_address,
        entity_kind,
        params,
    )

    recommendations = []
    if not calculation.is_valid:
        recommendations.append(
            f"Add {calculation.deficit} lovelace to meet minimum ADA requirement",
        )
    if datum_size_bytes > params.max_utxo_size_bytes:
        recommendations.append(
            f"Reduce datum size from {datum_size_bytes} to under "
            f"{params.max_utxo_size_bytes} bytes",
        )
    asset_count = assets.non_ada_count()
    if asset_count > MANY_ASSETS:
        recommendations.append(
            f"Consider reducing number of assets (currently {asset_count}) "
            "to lower min ADA requirements",
        )

    return calculation, recommendations
