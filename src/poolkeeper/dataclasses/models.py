# noqa
from enum import Enum

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import RootModel
from pydantic import field_validator
from pydantic import model_validator
from pydantic.alias_generators import to_camel

POLICY_ID_HEX_LENGTH = 56


class PoolKeeperBaseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def __hash__(self) -> int:
        return hash(self.model_dump_json())


class BaseDict(RootModel):
    """Utility class for dict models."""

    def __hash__(self) -> int:
        return hash(self.model_dump_json())

    def keys(self):  # noqa: ANN201
        """Return iterable of keys."""
        return self.root.keys()

    def __getitem__(self, item: str):  # noqa: ANN204
        """Get item by key."""
        return self.root.get(item, 0)


class Assets(BaseDict):
    """Contains all tokens and quantities of a UTXO, lovelace first."""

    root: dict[str, int]

    @property
    def lovelace(self) -> int:
        """Quantity of lovelace, 0 if absent."""
        return self["lovelace"]

    def non_ada_count(self) -> int:
        """Number of distinct native assets, ignoring lovelace."""
        return len([unit for unit in self.keys() if unit != "lovelace"])

    @model_validator(mode="before")
    def _digest_assets(cls, values: dict) -> dict:
        root = values.root if hasattr(values, "root") else dict(values.items())
        return dict(
            sorted(root.items(), key=lambda x: "" if x[0] == "lovelace" else x[0]),
        )


class PoolIdentity(PoolKeeperBaseModel):
    """The token side of an ADA/token pool. Immutable once the pool exists."""

    model_config = ConfigDict(frozen=True)

    token_policy: str
    token_name: str = ""

    @field_validator("token_policy")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        value = value.lower()
        if len(value) != POLICY_ID_HEX_LENGTH:
            msg = f"Token policy must be {POLICY_ID_HEX_LENGTH} hex characters: {value}"
            raise ValueError(msg)
        bytes.fromhex(value)
        return value

    @field_validator("token_name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.lower()
        bytes.fromhex(value)
        return value

    @property
    def unit(self) -> str:
        """Policy id plus hex encoded token name."""
        return self.token_policy + self.token_name

    @classmethod
    def from_unit(cls, unit: str) -> "PoolIdentity":
        """Split an asset unit into its policy and name."""
        return cls(
            token_policy=unit[:POLICY_ID_HEX_LENGTH],
            token_name=unit[POLICY_ID_HEX_LENGTH:],
        )

    def __str__(self) -> str:
        return self.unit


class EntityKind(Enum):
    """What a UTXO is, for the purpose of its minimum ADA."""

    pool = "Pool"
    factory = "Factory"
    lp_token = "LpToken"
    user = "User"
    generic = "Generic"


class PoolOperation(Enum):
    """Pool actions that produce a new pool UTXO."""

    swap = "swap"
    add_liquidity = "add_liquidity"
    remove_liquidity = "remove_liquidity"
    create_pool = "create_pool"


class MinAdaBreakdown(PoolKeeperBaseModel):
    """Components that add up to a minimum ADA requirement."""

    base: int
    asset_cost: int
    datum_cost: int
    buffer: int


class MinAdaCalculation(PoolKeeperBaseModel):
    """Minimum ADA required by a UTXO compared with what it holds."""

    required: int
    actual: int
    deficit: int
    breakdown: MinAdaBreakdown

    @property
    def is_valid(self) -> bool:
        """True when the UTXO holds at least its minimum ADA."""
        return self.deficit == 0


class PoolOperationCheck(PoolKeeperBaseModel):
    """Minimum ADA validation of a pool input/output pair."""

    operation: PoolOperation
    input_check: MinAdaCalculation
    output_check: MinAdaCalculation
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None

