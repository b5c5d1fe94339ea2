"""
Unit tests for the Convex Booster and BaseRewardPool models.
"""

import unittest
import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from booster import (
    Booster,
    CVX_MAX_SUPPLY,
    CVX_REDUCTION_PER_CLIFF,
    CVX_TOTAL_CLIFFS,
    DURATION,
    cvx_mint_amount,
)
from erc20_token import ERC20Token, DECIMAL_PRECISION
from vault_errors import NotFound, TransferFailed


class TestCvxMintAmount(unittest.TestCase):
    def test_first_cliff_mints_one_to_one(self):
        self.assertEqual(cvx_mint_amount(DECIMAL_PRECISION, 0), DECIMAL_PRECISION)

    def test_rate_drops_per_cliff(self):
        supply = (CVX_TOTAL_CLIFFS // 2) * CVX_REDUCTION_PER_CLIFF
        self.assertEqual(cvx_mint_amount(DECIMAL_PRECISION, supply), DECIMAL_PRECISION // 2)

    def test_nothing_after_last_cliff(self):
        self.assertEqual(cvx_mint_amount(DECIMAL_PRECISION, CVX_MAX_SUPPLY), 0)

    def test_capped_at_max_supply(self):
        supply = CVX_MAX_SUPPLY - 10
        self.assertEqual(cvx_mint_amount(DECIMAL_PRECISION, supply), 10)

    def test_zero_crv(self):
        self.assertEqual(cvx_mint_amount(0, 0), 0)


class TestBooster(unittest.TestCase):
    def setUp(self):
        self.deployer = "Deployer"
        self.crv = ERC20Token("CRV", owner=self.deployer)
        self.cvx = ERC20Token("CVX", owner=self.deployer)
        self.booster = Booster(self.crv, self.cvx)
        self.crv.add_minter(self.deployer, self.booster.address)
        self.cvx.add_minter(self.deployer, self.booster.address)

        self.lp = ERC20Token("crvLP", owner=self.deployer)
        self.pid = self.booster.add_pool(self.lp, crv_per_second=DECIMAL_PRECISION)

        self.alice = "alice"
        self.lp.mint(self.deployer, self.alice, 100 * DECIMAL_PRECISION)

    def _stake(self, account, amount):
        self.lp.approve(account, self.booster.address, amount)
        self.booster.deposit(self.pid, amount, account)

    def test_pool_info(self):
        self.assertEqual(self.booster.pool_length(), 1)
        self.assertIs(self.booster.pool_info(self.pid).lp_token, self.lp)

        with self.assertRaises(NotFound):
            self.booster.pool_info(1)

    def test_time_cannot_go_backwards(self):
        with self.assertRaises(ValueError):
            self.booster.update_time(-1)

    def test_deposit_and_withdraw(self):
        rewards = self.booster.pool_info(self.pid).crv_rewards
        self._stake(self.alice, 40 * DECIMAL_PRECISION)

        self.assertEqual(rewards.balance_of(self.alice), 40 * DECIMAL_PRECISION)
        self.assertEqual(self.lp.balance_of(self.booster.address), 40 * DECIMAL_PRECISION)

        self.booster.withdraw(self.pid, 15 * DECIMAL_PRECISION, self.alice)
        self.assertEqual(rewards.balance_of(self.alice), 25 * DECIMAL_PRECISION)
        self.assertEqual(self.lp.balance_of(self.alice), 75 * DECIMAL_PRECISION)

        with self.assertRaises(TransferFailed):
            self.booster.withdraw(self.pid, 26 * DECIMAL_PRECISION, self.alice)

    def test_shutdown_pool(self):
        self._stake(self.alice, 40 * DECIMAL_PRECISION)
        self.booster.shutdown_pool(self.pid)

        self.assertTrue(self.booster.pool_info(self.pid).shutdown)
        with self.assertRaises(TransferFailed):
            self._stake(self.alice, DECIMAL_PRECISION)
        with self.assertRaises(TransferFailed):
            self.booster.earmark_rewards(self.pid, "Keeper")

        # Stakes can still leave
        self.booster.withdraw(self.pid, 40 * DECIMAL_PRECISION, self.alice)
        self.assertEqual(self.lp.balance_of(self.alice), 100 * DECIMAL_PRECISION)

    def test_earmark_with_nothing_accrued(self):
        self.assertEqual(self.booster.earmark_rewards(self.pid, "Keeper"), 0)

    def test_earmark_takes_fees(self):
        self.booster.update_time(1000)
        queued = self.booster.earmark_rewards(self.pid, "Keeper")

        # 10% lock, 4.5% stakers, 0.5% caller
        self.assertEqual(queued, 850 * DECIMAL_PRECISION)
        self.assertEqual(self.crv.balance_of("Keeper"), 5 * DECIMAL_PRECISION)
        self.assertEqual(self.crv.balance_of(self.booster.lock_rewards), 100 * DECIMAL_PRECISION)
        self.assertEqual(self.crv.balance_of(self.booster.staker_rewards), 45 * DECIMAL_PRECISION)

        rewards = self.booster.pool_info(self.pid).crv_rewards
        self.assertEqual(self.crv.balance_of(rewards.address), 850 * DECIMAL_PRECISION)
        self.assertEqual(rewards.reward_rate, 850 * DECIMAL_PRECISION // DURATION)
        self.assertEqual(rewards.period_finish, 1000 + DURATION)

    def test_rewards_stream_to_stakers(self):
        self.booster.update_time(1000)
        self.booster.earmark_rewards(self.pid, "Keeper")
        self._stake(self.alice, 100 * DECIMAL_PRECISION)
        rate = self.booster.pool_info(self.pid).crv_rewards.reward_rate

        self.booster.update_time(3600)
        crv, cvx = self.booster.earned(self.pid, self.alice)
        self.assertEqual(crv, 3600 * rate)
        self.assertEqual(cvx, crv)

    def test_stream_stops_at_period_finish(self):
        self.booster.update_time(1000)
        self.booster.earmark_rewards(self.pid, "Keeper")
        self._stake(self.alice, 100 * DECIMAL_PRECISION)
        rate = self.booster.pool_info(self.pid).crv_rewards.reward_rate

        self.booster.update_time(DURATION + 1000)
        crv, _ = self.booster.earned(self.pid, self.alice)
        self.assertEqual(crv, DURATION * rate)
        self.assertLessEqual(crv, 850 * DECIMAL_PRECISION)

    def test_get_reward_mints_cvx(self):
        self.booster.update_time(1000)
        self.booster.earmark_rewards(self.pid, "Keeper")
        self._stake(self.alice, 100 * DECIMAL_PRECISION)
        self.booster.update_time(18000)

        expected_crv, expected_cvx = self.booster.earned(self.pid, self.alice)
        paid = self.booster.get_reward(self.pid, self.alice)

        self.assertEqual(paid, expected_crv)
        self.assertEqual(self.crv.balance_of(self.alice), expected_crv)
        self.assertEqual(self.cvx.balance_of(self.alice), expected_cvx)

        # Claiming again right away pays nothing
        self.assertEqual(self.booster.get_reward(self.pid, self.alice), 0)
        self.assertEqual(self.booster.earned(self.pid, self.alice), (0, 0))

    def test_new_rewards_queued_while_period_mostly_owed(self):
        # A long first accrual gives a high rate
        self.booster.update_time(2 * DURATION)
        self.booster.earmark_rewards(self.pid, "Keeper")
        rewards = self.booster.pool_info(self.pid).crv_rewards
        period_finish = rewards.period_finish

        # A small earmark shortly after is held back
        self.booster.update_time(100)
        queued = self.booster.earmark_rewards(self.pid, "Keeper")

        self.assertEqual(queued, 85 * DECIMAL_PRECISION)
        self.assertEqual(rewards.queued_rewards, queued)
        self.assertEqual(rewards.period_finish, period_finish)

    def test_new_period_after_finish_includes_queue(self):
        self.booster.update_time(2 * DURATION)
        self.booster.earmark_rewards(self.pid, "Keeper")
        self.booster.update_time(100)
        self.booster.earmark_rewards(self.pid, "Keeper")

        rewards = self.booster.pool_info(self.pid).crv_rewards
        self.booster.update_time(DURATION)
        self.booster.earmark_rewards(self.pid, "Keeper")

        self.assertEqual(rewards.queued_rewards, 0)
        self.assertEqual(rewards.period_finish, self.booster.current_time + DURATION)


if __name__ == "__main__":
    unittest.main()
