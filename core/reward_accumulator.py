"""
Reward Accumulator Model for the Convex Vault.

This module keeps, for every pool and reward token, a running "reward per
share" sum. Harvested rewards are folded into the sum in proportion to the
pool's total stake, and each position only stores the sum it last saw, so a
harvest never has to touch individual users to stay exact.

A position's pending reward is

    amount * (acc_reward_per_share - reward_per_share_paid) // SCALE

Truncation in the per-share increment is fed back into the next distribution
(as the trove manager does for redistributions), so over any sequence of
harvests the amount credited never exceeds the amount pulled in, and nothing
is lost to rounding except the final per-position floor.
"""

import logging
from enum import Enum

from vault_errors import InvalidAmount

logger = logging.getLogger(__name__)

# Fixed point scale of acc_reward_per_share
SCALE = 10**18

# What to do with rewards harvested while a pool has no stake
IDLE_DISCARD = "discard"
IDLE_CARRY = "carry"


class RewardKind(Enum):
    """The two reward tokens the vault distributes."""
    PRIMARY = 0    # CRV
    SECONDARY = 1  # CVX


REWARD_KINDS = (RewardKind.PRIMARY, RewardKind.SECONDARY)


def empty_reward_map():
    """Returns a {RewardKind: 0} mapping for both reward tokens."""
    return {kind: 0 for kind in REWARD_KINDS}


class RewardAccumulator:
    """
    Tracks reward-per-share for every pool and settles positions against it.
    """

    def __init__(self, idle_reward_policy=IDLE_DISCARD):
        if idle_reward_policy not in (IDLE_DISCARD, IDLE_CARRY):
            raise ValueError(f"Unknown idle reward policy: {idle_reward_policy}")
        self.idle_reward_policy = idle_reward_policy

        # (pool_id, kind) -> remainder of the last per-share division, scaled by SCALE
        self.last_error = {}

        # (pool_id, kind) -> rewards held back while the pool had no stake
        self.idle_rewards = {}

        # (pool_id, kind) -> rewards dropped while the pool had no stake
        self.discarded_rewards = {}

    def distribute(self, pool, kind, reward_amount):
        """
        Credits reward_amount of the given token to everyone staked in pool.

        Must be called before pool.total_staked changes, so the reward goes to
        the stake that earned it.

        Args:
            pool: Pool receiving the reward
            kind: RewardKind of the token
            reward_amount: Amount just pulled into vault custody

        Returns:
            The increment applied to pool.acc_reward_per_share[kind]
        """
        if reward_amount < 0:
            raise InvalidAmount("Reward amount cannot be negative")

        key = (pool.id, kind)

        if pool.total_staked == 0:
            if reward_amount == 0:
                return 0
            if self.idle_reward_policy == IDLE_CARRY:
                self.idle_rewards[key] = self.idle_rewards.get(key, 0) + reward_amount
                logger.info(f"Pool {pool.id} has no stake, holding {reward_amount} {kind.name} for later")
            else:
                self.discarded_rewards[key] = self.discarded_rewards.get(key, 0) + reward_amount
                logger.warning(f"Pool {pool.id} has no stake, discarding {reward_amount} {kind.name}")
            return 0

        amount = reward_amount + self.idle_rewards.pop(key, 0)
        if amount == 0:
            return 0

        numerator = amount * SCALE + self.last_error.get(key, 0)
        increment = numerator // pool.total_staked
        self.last_error[key] = numerator % pool.total_staked

        pool.acc_reward_per_share[kind] += increment

        logger.debug(
            f"Pool {pool.id} {kind.name}: +{amount} over {pool.total_staked} staked, "
            f"acc_reward_per_share={pool.acc_reward_per_share[kind]}"
        )
        return increment

    def project_per_share(self, pool, kind, reward_amount):
        """
        Returns the increment distribute() would apply, without applying it.
        """
        if pool.total_staked == 0:
            return 0

        key = (pool.id, kind)
        amount = reward_amount + self.idle_rewards.get(key, 0)
        return (amount * SCALE + self.last_error.get(key, 0)) // pool.total_staked

    def pending(self, pool, position, kind, extra_per_share=0):
        """
        Returns the reward a position has accrued since its last checkpoint.

        Args:
            pool: Pool the position belongs to
            position: UserPosition to evaluate
            kind: RewardKind of the token
            extra_per_share: Projected increment to add on top of the current sum

        Returns:
            The pending reward, rounded down
        """
        acc = pool.acc_reward_per_share[kind] + extra_per_share
        return position.amount * (acc - position.reward_per_share_paid[kind]) // SCALE

    def checkpoint(self, pool, position):
        """
        Moves a position's pending rewards into its claimable balance.

        Afterwards the position's snapshots equal the pool's current sums, so a
        following change to its amount does not touch rewards already earned.

        Returns:
            Dict of RewardKind -> amount settled
        """
        settled = empty_reward_map()
        for kind in REWARD_KINDS:
            amount = self.pending(pool, position, kind)
            if amount > 0:
                position.pending_vault_rewards[kind] += amount
                settled[kind] = amount
            position.reward_per_share_paid[kind] = pool.acc_reward_per_share[kind]
        return settled

    def discarded(self, pool_id):
        """Returns (primary, secondary) rewards discarded for pool_id."""
        return tuple(self.discarded_rewards.get((pool_id, kind), 0) for kind in REWARD_KINDS)

    def idle(self, pool_id):
        """Returns (primary, secondary) rewards held for pool_id until it has stake."""
        return tuple(self.idle_rewards.get((pool_id, kind), 0) for kind in REWARD_KINDS)
