"""
Unit tests for the reward-per-share accumulator.
"""

import unittest
import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from pool_registry import Pool
from reward_accumulator import IDLE_CARRY, IDLE_DISCARD, SCALE, RewardAccumulator, RewardKind
from user_ledger import UserPosition
from vault_errors import InvalidAmount

PRIMARY = RewardKind.PRIMARY
SECONDARY = RewardKind.SECONDARY


def make_pool(total_staked=0, pool_id=0):
    return Pool(id=pool_id, stake_token=None, external_pool_id=pool_id,
                allocation_weight=100, total_staked=total_staked)


class TestRewardAccumulator(unittest.TestCase):
    def setUp(self):
        self.accumulator = RewardAccumulator()

    def test_distribute_proportional(self):
        pool = make_pool(total_staked=4 * SCALE)
        increment = self.accumulator.distribute(pool, PRIMARY, 2 * SCALE)

        self.assertEqual(increment, SCALE // 2)
        self.assertEqual(pool.acc_reward_per_share[PRIMARY], SCALE // 2)
        self.assertEqual(pool.acc_reward_per_share[SECONDARY], 0)

    def test_truncation_is_carried_forward(self):
        pool = make_pool(total_staked=3)
        for _ in range(3):
            self.accumulator.distribute(pool, PRIMARY, 1)

        # Three rewards of 1 over a stake of 3 add up to exactly 1 per share
        self.assertEqual(pool.acc_reward_per_share[PRIMARY], SCALE)

        position = UserPosition(amount=3)
        self.assertEqual(self.accumulator.pending(pool, position, PRIMARY), 3)

    def test_remainder_is_tracked_per_token(self):
        pool = make_pool(total_staked=3)
        self.accumulator.distribute(pool, PRIMARY, 1)

        self.assertEqual(self.accumulator.last_error[(0, PRIMARY)], 1)
        self.assertNotIn((0, SECONDARY), self.accumulator.last_error)

    def test_negative_reward_rejected(self):
        with self.assertRaises(InvalidAmount):
            self.accumulator.distribute(make_pool(total_staked=1), PRIMARY, -1)

    def test_unknown_idle_policy(self):
        with self.assertRaises(ValueError):
            RewardAccumulator(idle_reward_policy="burn")

    def test_idle_rewards_discarded_by_default(self):
        pool = make_pool(total_staked=0)

        self.assertEqual(self.accumulator.distribute(pool, PRIMARY, 5), 0)
        self.assertEqual(pool.acc_reward_per_share[PRIMARY], 0)
        self.assertEqual(self.accumulator.discarded(0), (5, 0))

        # A later distribution does not pick the discarded rewards back up
        pool.total_staked = 10
        self.accumulator.distribute(pool, PRIMARY, 10)
        self.assertEqual(pool.acc_reward_per_share[PRIMARY], SCALE)

    def test_idle_rewards_carried(self):
        accumulator = RewardAccumulator(idle_reward_policy=IDLE_CARRY)
        pool = make_pool(total_staked=0)

        accumulator.distribute(pool, SECONDARY, 5)
        self.assertEqual(accumulator.idle(0), (0, 5))
        self.assertEqual(accumulator.discarded(0), (0, 0))

        pool.total_staked = 10
        increment = accumulator.distribute(pool, SECONDARY, 5)

        self.assertEqual(increment, SCALE)
        self.assertEqual(accumulator.idle(0), (0, 0))

    def test_zero_reward_is_noop(self):
        pool = make_pool(total_staked=7)
        self.assertEqual(self.accumulator.distribute(pool, PRIMARY, 0), 0)
        self.assertEqual(self.accumulator.last_error, {})

    def test_project_per_share_does_not_mutate(self):
        pool = make_pool(total_staked=3)
        self.accumulator.distribute(pool, PRIMARY, 1)
        acc = pool.acc_reward_per_share[PRIMARY]

        projected = self.accumulator.project_per_share(pool, PRIMARY, 1)

        self.assertEqual(pool.acc_reward_per_share[PRIMARY], acc)
        self.assertEqual(self.accumulator.distribute(pool, PRIMARY, 1), projected)

    def test_project_with_no_stake(self):
        self.assertEqual(self.accumulator.project_per_share(make_pool(), PRIMARY, 100), 0)

    def test_checkpoint_settles_and_snapshots(self):
        pool = make_pool(total_staked=10 * SCALE)
        position = UserPosition(amount=2 * SCALE)
        self.accumulator.distribute(pool, PRIMARY, 5 * SCALE)
        self.accumulator.distribute(pool, SECONDARY, 10 * SCALE)

        settled = self.accumulator.checkpoint(pool, position)

        self.assertEqual(settled[PRIMARY], SCALE)
        self.assertEqual(settled[SECONDARY], 2 * SCALE)
        self.assertEqual(position.pending_vault_rewards[PRIMARY], SCALE)
        self.assertEqual(position.reward_per_share_paid, pool.acc_reward_per_share)

        # Nothing new to settle
        settled = self.accumulator.checkpoint(pool, position)
        self.assertEqual(settled[PRIMARY], 0)
        self.assertEqual(position.pending_vault_rewards[PRIMARY], SCALE)

    def test_checkpoint_of_empty_position_moves_snapshot(self):
        pool = make_pool(total_staked=SCALE)
        self.accumulator.distribute(pool, PRIMARY, SCALE)
        position = UserPosition()

        self.accumulator.checkpoint(pool, position)

        # A later deposit must not earn rewards from before it
        self.assertEqual(position.reward_per_share_paid[PRIMARY], SCALE)
        position.amount = SCALE
        self.assertEqual(self.accumulator.pending(pool, position, PRIMARY), 0)

    def test_pending_with_projection(self):
        pool = make_pool(total_staked=4)
        position = UserPosition(amount=1)
        extra = self.accumulator.project_per_share(pool, PRIMARY, 8)

        self.assertEqual(self.accumulator.pending(pool, position, PRIMARY, extra), 2)
        self.assertEqual(self.accumulator.pending(pool, position, PRIMARY), 0)

    def test_default_policy_is_discard(self):
        self.assertEqual(self.accumulator.idle_reward_policy, IDLE_DISCARD)


if __name__ == "__main__":
    unittest.main()
