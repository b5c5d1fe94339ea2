"""
Economic Model for the Convex Vault.

This main module combines the individual components into a complete model of
the vault and the Convex protocol around it. It can be used to run staking
scenarios and check that the vault's reward accounting holds up under many
users, pools, and irregular harvests.
"""

import logging

import matplotlib.pyplot as plt
import numpy as np

from booster import DEFAULT_CRV_PER_SECOND, Booster
from convex_vault import ConvexVault, EventType
from erc20_token import DECIMAL_PRECISION, ERC20Token
from reward_accumulator import IDLE_DISCARD, REWARD_KINDS, RewardKind, SCALE

logger = logging.getLogger(__name__)

ONE_HOUR = 60 * 60
ONE_DAY = 24 * ONE_HOUR


class ConvexVaultModel:
    """
    Complete model of the vault, its reward tokens and the Convex Booster.
    """

    def __init__(self, auto_harvest=True, idle_reward_policy=IDLE_DISCARD, seed=None):
        self.deployer = "Deployer"
        self.keeper = "Keeper"

        # Reward tokens
        self.crv = ERC20Token("CRV", owner=self.deployer)
        self.cvx = ERC20Token("CVX", owner=self.deployer)

        # External protocol
        self.booster = Booster(self.crv, self.cvx)
        self.crv.add_minter(self.deployer, self.booster.address)
        self.cvx.add_minter(self.deployer, self.booster.address)

        # The vault itself
        self.vault = ConvexVault(
            self.booster,
            self.crv,
            self.cvx,
            auto_harvest=auto_harvest,
            idle_reward_policy=idle_reward_policy,
        )

        self.lp_tokens = {}  # vault pool id -> LP token
        self.rng = np.random.default_rng(seed)

        # History tracking for simulations
        self.time_history = []
        self.total_staked_history = []
        self.acc_primary_history = []
        self.acc_secondary_history = []
        self.owed_primary_history = []
        self.custody_primary_history = []

        # Claimed totals over the model's lifetime
        self.claimed = {kind: 0 for kind in REWARD_KINDS}

    @property
    def current_time(self):
        return self.booster.current_time

    @property
    def harvested(self):
        """Rewards pulled into the vault by every harvest, including automatic ones."""
        totals = {kind: 0 for kind in REWARD_KINDS}
        for event in self.vault.events:
            if event.event_type == EventType.HARVEST:
                _, primary, secondary = event.args
                totals[RewardKind.PRIMARY] += primary
                totals[RewardKind.SECONDARY] += secondary
        return totals

    def update_time(self, seconds):
        """Advance the simulation clock."""
        self.booster.update_time(seconds)

    def add_lp_pool(self, symbol, crv_per_second=DEFAULT_CRV_PER_SECOND, allocation_weight=100):
        """
        Creates an LP token, lists it in the Booster and registers a vault pool for it.

        Returns:
            The vault pool id
        """
        lp_token = ERC20Token(symbol, owner=self.deployer)
        pid = self.booster.add_pool(lp_token, crv_per_second)
        pool_id = self.vault.register_pool(allocation_weight, lp_token, pid)
        self.lp_tokens[pool_id] = lp_token
        return pool_id

    def fund_user(self, user, pool_id, amount):
        """Mints LP tokens of the pool to user."""
        self.lp_tokens[pool_id].mint(self.deployer, user, amount)

    def stake(self, user, pool_id, amount):
        """Approves the vault and deposits amount on behalf of user."""
        self.lp_tokens[pool_id].approve(user, self.vault.address, amount)
        return self.vault.deposit(user, pool_id, amount)

    def unstake(self, user, pool_id, amount):
        return self.vault.withdraw(user, pool_id, amount)

    def harvest(self, pool_id):
        """Earmarks the Booster pool and harvests it into the vault."""
        pool = self.vault.pool_info(pool_id)
        self.booster.earmark_rewards(pool.external_pool_id, self.keeper)
        return self.vault.get_vault_rewards(pool_id)

    def claim(self, user, pool_id):
        primary, secondary = self.vault.claim(user, pool_id)
        self.claimed[RewardKind.PRIMARY] += primary
        self.claimed[RewardKind.SECONDARY] += secondary
        return primary, secondary

    def _update_history(self):
        pools = self.vault.registry.pools
        self.time_history.append(self.current_time / ONE_DAY)
        self.total_staked_history.append(sum(pool.total_staked for pool in pools) / DECIMAL_PRECISION)
        self.acc_primary_history.append(
            sum(pool.acc_reward_per_share[RewardKind.PRIMARY] for pool in pools) / SCALE
        )
        self.acc_secondary_history.append(
            sum(pool.acc_reward_per_share[RewardKind.SECONDARY] for pool in pools) / SCALE
        )
        self.owed_primary_history.append(self.vault.total_owed(RewardKind.PRIMARY) / DECIMAL_PRECISION)
        self.custody_primary_history.append(self.crv.balance_of(self.vault.address) / DECIMAL_PRECISION)

    def simulate_staking_scenario(self, days, users=5, harvest_every_hours=24,
                                  action_probability=0.1, plot_results=True):
        """
        Runs users through random deposits, withdrawals and claims, hour by hour.

        Every hour each user acts with action_probability, picking a pool and
        an action at random. Pools are earmarked and harvested every
        harvest_every_hours. Invariants are checked after every hour.

        Args:
            days: Number of days to simulate
            users: Number of users
            harvest_every_hours: Hours between harvests
            action_probability: Chance that a user acts in a given hour
            plot_results: Whether to plot the history

        Returns:
            Dictionary with simulation results
        """
        if not self.lp_tokens:
            self.add_lp_pool("crvLP")

        pool_ids = list(self.lp_tokens)
        user_names = [f"user{i}" for i in range(users)]

        # Give everyone LP tokens to work with
        for user in user_names:
            for pool_id in pool_ids:
                self.fund_user(user, pool_id, 1_000 * DECIMAL_PRECISION)

        steps = days * 24
        for step in range(steps):
            self.update_time(ONE_HOUR)

            acts = self.rng.random(len(user_names)) < action_probability
            for user, acting in zip(user_names, acts):
                if not acting:
                    continue
                pool_id = pool_ids[int(self.rng.integers(len(pool_ids)))]
                self._random_action(user, pool_id)

            if (step + 1) % harvest_every_hours == 0:
                for pool_id in pool_ids:
                    self.harvest(pool_id)

            self.vault.check_invariants()
            self._update_history()

        logger.info(
            f"Simulated {days} days with {users} users over {len(pool_ids)} pools, "
            f"{len(self.vault.events)} events"
        )

        if plot_results:
            self.plot_history()

        return {
            'days': days,
            'total_staked': sum(self.vault.pool_info(p).total_staked for p in pool_ids),
            'crv_harvested': self.harvested[RewardKind.PRIMARY],
            'cvx_harvested': self.harvested[RewardKind.SECONDARY],
            'crv_claimed': self.claimed[RewardKind.PRIMARY],
            'cvx_claimed': self.claimed[RewardKind.SECONDARY],
            'crv_owed': self.vault.total_owed(RewardKind.PRIMARY),
            'crv_custody': self.crv.balance_of(self.vault.address),
            'events': len(self.vault.events),
        }

    def _random_action(self, user, pool_id):
        """Deposits, withdraws or claims for user, chosen at random."""
        staked = self.vault.user_info(pool_id, user).amount
        balance = self.lp_tokens[pool_id].balance_of(user)
        choice = self.rng.choice(["deposit", "withdraw", "claim"], p=[0.5, 0.3, 0.2])

        if choice == "deposit" and balance > 0:
            # Wei amounts overflow int64, so convert to Python ints and cap at the
            # true balance in case the float product rounded up
            amount = min(balance, int(self.rng.uniform(0.05, 0.5) * balance))
            if amount > 0:
                self.stake(user, pool_id, amount)
        elif choice == "withdraw" and staked > 0:
            amount = min(staked, int(self.rng.uniform(0.1, 1.0) * staked))
            if amount > 0:
                self.unstake(user, pool_id, amount)
        elif choice == "claim":
            self.claim(user, pool_id)

    def plot_history(self):
        """Plots stake, reward-per-share and custody over the simulated period."""
        time_points = np.array(self.time_history)

        fig, axs = plt.subplots(4, 1, figsize=(12, 16), sharex=True)

        axs[0].plot(time_points, np.array(self.total_staked_history))
        axs[0].set_title('Total Staked')
        axs[0].set_ylabel('LP')

        axs[1].plot(time_points, np.array(self.acc_primary_history), label='CRV')
        axs[1].plot(time_points, np.array(self.acc_secondary_history), label='CVX')
        axs[1].set_title('Reward per Share (summed over pools)')
        axs[1].set_ylabel('tokens / LP')
        axs[1].legend()

        axs[2].plot(time_points, np.array(self.owed_primary_history), label='Owed')
        axs[2].plot(time_points, np.array(self.custody_primary_history), label='Custody')
        axs[2].set_title('CRV Owed vs. Custody')
        axs[2].set_ylabel('CRV')
        axs[2].legend()

        dust = np.array(self.custody_primary_history) - np.array(self.owed_primary_history)
        axs[3].plot(time_points, dust)
        axs[3].set_title('Unallocated CRV in Custody')
        axs[3].set_ylabel('CRV')
        axs[3].set_xlabel('Days')

        plt.tight_layout()
        plt.show()
        return fig
