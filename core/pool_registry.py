"""
Pool Registry Model for the Convex Vault.

Pools are appended once and never removed. Each pool pairs a stake (LP) token
with the Booster pool it is staked into, and carries the pool-level reward
accounting state.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from reward_accumulator import RewardKind, empty_reward_map
from vault_errors import ConfigurationMismatch, InvalidAmount, NotFound

logger = logging.getLogger(__name__)


@dataclass
class Pool:
    """A registered stake token / Booster pool pairing."""
    id: int
    stake_token: object
    external_pool_id: int
    allocation_weight: int
    total_staked: int = 0
    acc_reward_per_share: Dict[RewardKind, int] = field(default_factory=empty_reward_map)


class PoolRegistry:
    """
    Ordered, append-only list of pools, validated against the Booster.
    """

    def __init__(self, booster):
        self.booster = booster
        self.pools: List[Pool] = []
        self.total_allocation_weight = 0
        self._external_pool_ids = set()

    def register_pool(self, allocation_weight, stake_token, external_pool_id):
        """
        Registers a new pool.

        Args:
            allocation_weight: Weight recorded for the pool
            stake_token: LP token users stake in the pool
            external_pool_id: Booster pid the tokens are staked into

        Returns:
            The new pool's id

        Raises:
            ConfigurationMismatch: If the Booster pool does not exist, takes a
                different LP token, or is already used by another pool
        """
        if allocation_weight < 0:
            raise InvalidAmount("Allocation weight cannot be negative")

        try:
            external_pool = self.booster.pool_info(external_pool_id)
        except NotFound as exc:
            raise ConfigurationMismatch(
                f"Wrong Pid for Convex: pool {external_pool_id} does not exist"
            ) from exc

        if external_pool.lp_token.address != stake_token.address:
            raise ConfigurationMismatch(
                f"Wrong Pid for Convex: pool {external_pool_id} takes "
                f"{external_pool.lp_token.address}, not {stake_token.address}"
            )

        if external_pool_id in self._external_pool_ids:
            raise ConfigurationMismatch(f"Convex pool {external_pool_id} is already registered")

        pool_id = len(self.pools)
        self.pools.append(Pool(
            id=pool_id,
            stake_token=stake_token,
            external_pool_id=external_pool_id,
            allocation_weight=allocation_weight,
        ))
        self._external_pool_ids.add(external_pool_id)
        self.total_allocation_weight += allocation_weight

        logger.info(f"Registered pool {pool_id}: {stake_token.symbol} -> Convex pid {external_pool_id}")
        return pool_id

    def pool_count(self):
        """Returns the number of registered pools."""
        return len(self.pools)

    def pool_info(self, pool_id) -> Pool:
        """Returns the pool with the given id."""
        if pool_id < 0 or pool_id >= len(self.pools):
            raise NotFound(f"Pool {pool_id} does not exist")
        return self.pools[pool_id]
