"""
User Ledger Model for the Convex Vault.

Stores one UserPosition per (pool id, user). Positions are created on first
deposit and are never deleted, even once their amount returns to zero.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict

from reward_accumulator import SCALE, RewardKind, empty_reward_map
from vault_errors import InsufficientStake, InvalidAmount


class PositionState(Enum):
    """Lifecycle of a position."""
    UNINITIALIZED = 0  # Never deposited
    ACTIVE = 1         # Has stake
    INACTIVE = 2       # Stake withdrawn, checkpoints kept


@dataclass
class UserPosition:
    """A user's stake and reward checkpoints in one pool."""
    amount: int = 0
    reward_per_share_paid: Dict[RewardKind, int] = field(default_factory=empty_reward_map)
    pending_vault_rewards: Dict[RewardKind, int] = field(default_factory=empty_reward_map)
    total_claimed: Dict[RewardKind, int] = field(default_factory=empty_reward_map)

    def reward_debt(self, kind):
        """Rewards already priced into the current amount."""
        return self.amount * self.reward_per_share_paid[kind] // SCALE


class UserLedger:
    """
    Keyed store of user positions, and the only place stake amounts change.
    """

    def __init__(self):
        self.positions = {}  # (pool_id, user) -> UserPosition
        self.pool_users = {}  # pool_id -> [user], in order of first deposit

    def get(self, pool_id, user) -> UserPosition:
        """Returns the stored position, or a zero-valued one that is not stored."""
        return self.positions.get((pool_id, user), UserPosition())

    def get_or_create(self, pool_id, user) -> UserPosition:
        """Returns the stored position, creating it if needed."""
        key = (pool_id, user)
        if key not in self.positions:
            self.positions[key] = UserPosition()
            self.pool_users.setdefault(pool_id, []).append(user)
        return self.positions[key]

    def state(self, pool_id, user):
        position = self.positions.get((pool_id, user))
        if position is None:
            return PositionState.UNINITIALIZED
        return PositionState.ACTIVE if position.amount > 0 else PositionState.INACTIVE

    def positions_in_pool(self, pool_id):
        """Returns [(user, position)] for every position ever opened in the pool."""
        return [(user, self.positions[(pool_id, user)]) for user in self.pool_users.get(pool_id, [])]

    def total_staked_in(self, pool_id):
        """Sums the amounts of all positions in the pool."""
        return sum(position.amount for _, position in self.positions_in_pool(pool_id))

    def add_stake(self, pool, user, amount):
        """
        Increases a user's stake and the pool total together.

        Returns:
            The position's new amount
        """
        if amount <= 0:
            raise InvalidAmount("Amount must be greater than zero")

        position = self.get_or_create(pool.id, user)
        position.amount += amount
        pool.total_staked += amount
        return position.amount

    def remove_stake(self, pool, user, amount):
        """
        Decreases a user's stake and the pool total together.

        Returns:
            The position's new amount
        """
        if amount <= 0:
            raise InvalidAmount("Amount must be greater than zero")

        position = self.get(pool.id, user)
        if amount > position.amount:
            raise InsufficientStake(
                f"{user} has {position.amount} staked in pool {pool.id}, cannot withdraw {amount}"
            )

        position.amount -= amount
        pool.total_staked -= amount
        return position.amount
