"""
Booster Model for the Convex Vault.

This module simulates the external yield protocol the vault stakes into. It
follows Convex: the Booster holds the staked LP tokens, periodically
"earmarks" the CRV its gauges have accrued into a per-pool BaseRewardPool,
and each BaseRewardPool streams that CRV to its stakers over a fixed period.
Whenever CRV is claimed from a reward pool, the Booster mints CVX to the same
account according to the CVX supply schedule.

The vault treats all of this as a black box. It only needs stake, withdraw,
the reward claim and read access to each pool's LP token.
"""

import logging
from dataclasses import dataclass
from typing import List

from erc20_token import DECIMAL_PRECISION
from vault_errors import InvalidAmount, NotFound, TransferFailed

logger = logging.getLogger(__name__)

# Reward stream parameters
DURATION = 7 * 24 * 60 * 60  # rewards are streamed over 7 days
NEW_REWARD_RATIO = 830  # queue new rewards while 83% of the current period is still owed

# Earmark fees, in basis points of FEE_DENOMINATOR
FEE_DENOMINATOR = 10_000
LOCK_INCENTIVE = 1000  # cvxCRV stakers
STAKER_INCENTIVE = 450  # CVX stakers
EARMARK_INCENTIVE = 50  # caller of earmark_rewards

# CVX supply schedule
CVX_TOTAL_CLIFFS = 1000
CVX_REDUCTION_PER_CLIFF = 100_000 * DECIMAL_PRECISION
CVX_MAX_SUPPLY = 100_000_000 * DECIMAL_PRECISION

# Default gauge emission for new pools: 1 CRV per second
DEFAULT_CRV_PER_SECOND = DECIMAL_PRECISION


def cvx_mint_amount(crv_amount, cvx_supply):
    """
    Returns how much CVX is minted for crv_amount of claimed CRV.

    The mint rate drops by 1/1000 for every 100k CVX already in circulation and
    stops at the maximum supply.

    Args:
        crv_amount: Amount of CRV claimed
        cvx_supply: Current CVX total supply

    Returns:
        Amount of CVX to mint
    """
    if crv_amount <= 0:
        return 0

    cliff = cvx_supply // CVX_REDUCTION_PER_CLIFF
    if cliff >= CVX_TOTAL_CLIFFS:
        return 0

    reduction = CVX_TOTAL_CLIFFS - cliff
    amount = crv_amount * reduction // CVX_TOTAL_CLIFFS

    # Never mint past the max supply
    amount_till_max = CVX_MAX_SUPPLY - cvx_supply
    return min(amount, amount_till_max)


class BaseRewardPool:
    """
    Simulates a Convex BaseRewardPool, which streams CRV to stakers of one pool.
    """

    def __init__(self, pid, reward_token, booster):
        self.pid = pid
        self.address = f"BaseRewardPool{pid}"
        self.reward_token = reward_token
        self.booster = booster

        # Staking balances
        self.total_supply = 0
        self.balances = {}

        # Reward stream state
        self.period_finish = 0
        self.reward_rate = 0
        self.last_update_time = 0
        self.reward_per_token_stored = 0
        self.queued_rewards = 0
        self.current_rewards = 0
        self.historical_rewards = 0

        # Per-account accounting
        self.user_reward_per_token_paid = {}
        self.rewards = {}

    def _now(self):
        return self.booster.current_time

    def balance_of(self, account):
        """Returns the amount staked by account."""
        return self.balances.get(account, 0)

    def last_time_reward_applicable(self):
        """Returns the current time, capped at the end of the reward period."""
        return min(self._now(), self.period_finish)

    def reward_per_token(self):
        """Returns the cumulative CRV per staked token, scaled by 1e18."""
        if self.total_supply == 0:
            return self.reward_per_token_stored

        elapsed = self.last_time_reward_applicable() - self.last_update_time
        return (
            self.reward_per_token_stored
            + elapsed * self.reward_rate * DECIMAL_PRECISION // self.total_supply
        )

    def earned(self, account):
        """Returns the CRV account can currently claim."""
        paid = self.user_reward_per_token_paid.get(account, 0)
        accrued = self.balance_of(account) * (self.reward_per_token() - paid) // DECIMAL_PRECISION
        return accrued + self.rewards.get(account, 0)

    def _update_reward(self, account=None):
        self.reward_per_token_stored = self.reward_per_token()
        self.last_update_time = self.last_time_reward_applicable()
        if account is not None:
            self.rewards[account] = self.earned(account)
            self.user_reward_per_token_paid[account] = self.reward_per_token_stored

    def stake_for(self, account, amount):
        """
        Stakes amount on behalf of account. Called by the Booster on deposit.

        Args:
            account: Address credited with the stake
            amount: Amount to stake

        Returns:
            True if successful
        """
        if amount <= 0:
            raise InvalidAmount("Cannot stake 0")

        self._update_reward(account)
        self.total_supply += amount
        self.balances[account] = self.balance_of(account) + amount
        return True

    def withdraw_for(self, account, amount):
        """
        Removes amount from account's stake. Called by the Booster on withdraw.

        Args:
            account: Address whose stake is reduced
            amount: Amount to unstake

        Returns:
            True if successful
        """
        if amount <= 0:
            raise InvalidAmount("Cannot withdraw 0")

        if self.balance_of(account) < amount:
            raise TransferFailed(
                f"{self.address}: {account} has {self.balance_of(account)} staked, cannot withdraw {amount}"
            )

        self._update_reward(account)
        self.total_supply -= amount
        self.balances[account] = self.balance_of(account) - amount
        return True

    def get_reward(self, account):
        """
        Sends account its earned CRV and has the Booster mint the matching CVX.

        Args:
            account: Address claiming its rewards

        Returns:
            The amount of CRV sent
        """
        self._update_reward(account)
        reward = self.rewards.get(account, 0)
        if reward > 0:
            self.rewards[account] = 0
            self.reward_token.transfer(self.address, account, reward)
            self.booster.reward_claimed(self.pid, account, reward)
        return reward

    def queue_new_rewards(self, rewards):
        """
        Adds newly earmarked CRV to the stream.

        New rewards start a fresh period right away unless most of the current
        period's rewards are still owed, in which case they wait in the queue.

        Args:
            rewards: Amount of CRV to add

        Returns:
            True if successful
        """
        rewards += self.queued_rewards

        if self._now() >= self.period_finish:
            self.notify_reward_amount(rewards)
            self.queued_rewards = 0
            return True

        elapsed = self._now() - (self.period_finish - DURATION)
        current_at_now = self.reward_rate * elapsed
        queued_ratio = current_at_now * 1000 // rewards if rewards > 0 else 0
        if queued_ratio < NEW_REWARD_RATIO:
            self.notify_reward_amount(rewards)
            self.queued_rewards = 0
        else:
            self.queued_rewards = rewards
        return True

    def notify_reward_amount(self, reward):
        """Starts a new reward period of DURATION that also carries any leftover."""
        self._update_reward()
        self.historical_rewards += reward

        now = self._now()
        if now >= self.period_finish:
            self.reward_rate = reward // DURATION
        else:
            remaining = self.period_finish - now
            leftover = remaining * self.reward_rate
            reward += leftover
            self.reward_rate = reward // DURATION

        self.current_rewards = reward
        self.last_update_time = now
        self.period_finish = now + DURATION


@dataclass
class ExternalPool:
    """A pool registered in the Booster."""
    pid: int
    lp_token: object
    crv_rewards: BaseRewardPool
    crv_per_second: int
    last_earmark_time: int = 0
    shutdown: bool = False


class Booster:
    """
    Simulates the Convex Booster: deposits LP tokens and routes CRV rewards.
    """

    def __init__(self, crv_token, cvx_token, address="Booster"):
        self.address = address
        self.crv = crv_token
        self.cvx = cvx_token

        self.pools: List[ExternalPool] = []

        # Fee recipients
        self.lock_rewards = "cvxCrvRewards"
        self.staker_rewards = "cvxStakingRewards"

        # Simulation clock, in seconds
        self.current_time = 0

    def update_time(self, seconds):
        """Advance the simulation clock by the given number of seconds."""
        if seconds < 0:
            raise ValueError("Time cannot go backwards")
        self.current_time += seconds

    def pool_length(self):
        """Returns the number of pools in the Booster."""
        return len(self.pools)

    def pool_info(self, pid) -> ExternalPool:
        """Returns the pool with the given pid."""
        if pid < 0 or pid >= len(self.pools):
            raise NotFound(f"Booster pool {pid} does not exist")
        return self.pools[pid]

    def add_pool(self, lp_token, crv_per_second=DEFAULT_CRV_PER_SECOND):
        """
        Adds a new pool for lp_token.

        Args:
            lp_token: LP token accepted by the pool
            crv_per_second: CRV the pool's gauge accrues per second

        Returns:
            The new pool's pid
        """
        pid = len(self.pools)
        rewards = BaseRewardPool(pid, self.crv, self)
        self.pools.append(ExternalPool(
            pid=pid,
            lp_token=lp_token,
            crv_rewards=rewards,
            crv_per_second=crv_per_second,
            last_earmark_time=self.current_time,
        ))
        logger.info(f"Booster pool {pid} added for {lp_token.symbol}")
        return pid

    def deposit(self, pid, amount, sender):
        """
        Pulls amount of LP token from sender and stakes it for sender.

        The sender must have approved the Booster beforehand.
        """
        pool = self.pool_info(pid)
        if pool.shutdown:
            raise TransferFailed(f"Booster pool {pid} is closed")

        pool.lp_token.transfer_from(self.address, sender, self.address, amount)
        pool.crv_rewards.stake_for(sender, amount)
        return True

    def shutdown_pool(self, pid):
        """
        Closes a pool to new deposits. Existing stakes can still be withdrawn.
        """
        pool = self.pool_info(pid)
        pool.shutdown = True
        logger.warning(f"Booster pool {pid} shut down")
        return True

    def withdraw(self, pid, amount, sender):
        """Unstakes amount for sender and returns the LP tokens."""
        pool = self.pool_info(pid)
        pool.crv_rewards.withdraw_for(sender, amount)
        pool.lp_token.transfer(self.address, sender, amount)
        return True

    def calc_pending_gauge_crv(self, pid):
        """Returns the CRV the pool's gauge has accrued since the last earmark."""
        pool = self.pool_info(pid)
        elapsed = self.current_time - pool.last_earmark_time
        return elapsed * pool.crv_per_second

    def earmark_rewards(self, pid, caller):
        """
        Claims the gauge's CRV, takes fees and queues the rest to the reward pool.

        Args:
            pid: Booster pool id
            caller: Address that receives the earmark incentive

        Returns:
            The amount of CRV queued to the pool's stakers
        """
        pool = self.pool_info(pid)
        if pool.shutdown:
            raise TransferFailed(f"Booster pool {pid} is closed")

        crv_balance = self.calc_pending_gauge_crv(pid)
        pool.last_earmark_time = self.current_time

        if crv_balance == 0:
            return 0

        # The gauge claim is modelled as a mint to the Booster
        self.crv.mint(self.address, self.address, crv_balance)

        lock_incentive = crv_balance * LOCK_INCENTIVE // FEE_DENOMINATOR
        staker_incentive = crv_balance * STAKER_INCENTIVE // FEE_DENOMINATOR
        call_incentive = crv_balance * EARMARK_INCENTIVE // FEE_DENOMINATOR
        remaining = crv_balance - lock_incentive - staker_incentive - call_incentive

        for recipient, fee in ((caller, call_incentive),
                               (self.lock_rewards, lock_incentive),
                               (self.staker_rewards, staker_incentive)):
            if fee > 0:
                self.crv.transfer(self.address, recipient, fee)

        self.crv.transfer(self.address, pool.crv_rewards.address, remaining)
        pool.crv_rewards.queue_new_rewards(remaining)

        logger.info(f"Earmarked {remaining} CRV for booster pool {pid}")
        return remaining

    def get_reward(self, pid, account):
        """Claims account's rewards from the pool's BaseRewardPool."""
        return self.pool_info(pid).crv_rewards.get_reward(account)

    def reward_claimed(self, pid, account, amount):
        """Mints CVX to account for amount of CRV it just claimed."""
        to_mint = cvx_mint_amount(amount, self.cvx.total_supply)
        if to_mint > 0:
            self.cvx.mint(self.address, account, to_mint)
        return to_mint

    def earned(self, pid, account):
        """
        Previews what get_reward would pay account right now.

        Returns:
            Tuple of (crv, cvx)
        """
        crv = self.pool_info(pid).crv_rewards.earned(account)
        return crv, cvx_mint_amount(crv, self.cvx.total_supply)
