"""
Convex Vault Model.

This module simulates the ConvexVault contract. Users deposit Curve LP tokens
into a vault pool, the vault stakes them in the Convex Booster on their behalf,
and the CRV and CVX the Booster pays out are shared between the pool's
depositors in proportion to their stake.

Every user action settles the caller's pending rewards against the pool's
reward-per-share sums before the stake changes. Deposits and withdrawals
harvest the pool first, so rewards already accrued in the Booster go to the
stake that earned them. Rewards only become claimable once a harvest has
pulled them into vault custody; calculate_rewards_earned is an estimate that
also counts what is still sitting in the Booster.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from harvester import Harvester
from pool_registry import PoolRegistry
from reward_accumulator import IDLE_DISCARD, REWARD_KINDS, RewardAccumulator, RewardKind
from user_ledger import UserLedger
from vault_errors import (
    InsufficientStake,
    InsufficientVaultBalance,
    InvalidAmount,
    InvariantViolation,
    TransferFailed,
)

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Events the vault emits."""
    POOL_ADDED = "PoolAdded"
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    HARVEST = "Harvest"
    CLAIM = "Claim"


@dataclass(frozen=True)
class VaultEvent:
    """An emitted event: its type and positional arguments."""
    event_type: EventType
    args: tuple


class ConvexVault:
    """
    Simulates the ConvexVault contract: multi-pool staking with shared CRV/CVX rewards.
    """

    def __init__(self, booster, primary_token, secondary_token, address="ConvexVault",
                 auto_harvest=True, idle_reward_policy=IDLE_DISCARD, earmark_first=False):
        """
        Args:
            booster: Convex Booster the LP tokens are staked into
            primary_token: First reward token (CRV)
            secondary_token: Second reward token (CVX)
            address: The vault's own address
            auto_harvest: Also harvest the pool before every claim
            idle_reward_policy: What to do with rewards harvested while a pool has no stake
            earmark_first: Earmark the Booster pool before each harvest
        """
        self.address = address
        self.booster = booster
        self.reward_tokens = {
            RewardKind.PRIMARY: primary_token,
            RewardKind.SECONDARY: secondary_token,
        }
        self.auto_harvest = auto_harvest

        self.registry = PoolRegistry(booster)
        self.ledger = UserLedger()
        self.accumulator = RewardAccumulator(idle_reward_policy)
        self.harvester = Harvester(booster, self.reward_tokens, address, self.accumulator,
                                   earmark_first=earmark_first)

        self.events = []

    def _emit(self, event_type, *args):
        self.events.append(VaultEvent(event_type, args))

    # --- Pools and positions ---

    def register_pool(self, allocation_weight, stake_token, external_pool_id):
        """
        Adds a pool for stake_token, staked into Booster pool external_pool_id.

        Returns:
            The new pool's id
        """
        pool_id = self.registry.register_pool(allocation_weight, stake_token, external_pool_id)
        self._emit(EventType.POOL_ADDED, pool_id, stake_token.address, external_pool_id, allocation_weight)
        return pool_id

    def pool_count(self):
        """Returns the number of pools."""
        return self.registry.pool_count()

    def pool_info(self, pool_id):
        """Returns the Pool record for pool_id."""
        return self.registry.pool_info(pool_id)

    def user_info(self, pool_id, user):
        """Returns the user's position in the pool (zero-valued if none)."""
        self.registry.pool_info(pool_id)
        return self.ledger.get(pool_id, user)

    def position_state(self, pool_id, user):
        self.registry.pool_info(pool_id)
        return self.ledger.state(pool_id, user)

    # --- User operations ---

    def deposit(self, user, pool_id, amount):
        """
        Deposits LP tokens and stakes them in the Booster.

        The user must have approved the vault for at least amount beforehand.

        Args:
            user: Address of the depositor
            pool_id: Vault pool to deposit into
            amount: Amount of LP tokens

        Returns:
            The user's new staked amount
        """
        pool = self.registry.pool_info(pool_id)
        if amount <= 0:
            raise InvalidAmount("Deposit amount must be greater than zero")

        # Rewards accrued so far belong to the stake that earned them
        self._harvest_and_checkpoint(pool)

        lp_token = pool.stake_token
        allowed = lp_token.allowance(user, self.address)

        # Pull the LP tokens first; a rejected transfer leaves everything untouched
        lp_token.transfer_from(self.address, user, self.address, amount)

        try:
            lp_token.approve(self.address, self.booster.address, amount)
            self.booster.deposit(pool.external_pool_id, amount, self.address)
        except Exception as exc:
            lp_token.approve(self.address, self.booster.address, 0)
            lp_token.transfer(self.address, user, amount)
            lp_token.approve(user, self.address, allowed)
            raise TransferFailed(f"Staking {amount} into Convex pid {pool.external_pool_id} failed: {exc}") from exc

        position = self.ledger.get_or_create(pool_id, user)
        self.accumulator.checkpoint(pool, position)
        new_amount = self.ledger.add_stake(pool, user, amount)

        self._emit(EventType.DEPOSIT, user, pool_id, amount)
        logger.info(f"{user} deposited {amount} into pool {pool_id}")
        return new_amount

    def withdraw(self, user, pool_id, amount):
        """
        Unstakes LP tokens from the Booster and returns them to the user.

        Rewards earned up to this point stay claimable.

        Args:
            user: Address of the depositor
            pool_id: Vault pool to withdraw from
            amount: Amount of LP tokens

        Returns:
            The user's remaining staked amount
        """
        pool = self.registry.pool_info(pool_id)
        if amount <= 0:
            raise InvalidAmount("Withdraw amount must be greater than zero")

        staked = self.ledger.get(pool_id, user).amount
        if amount > staked:
            raise InsufficientStake(f"{user} has {staked} staked in pool {pool_id}, cannot withdraw {amount}")

        self._harvest_and_checkpoint(pool)

        try:
            self.booster.withdraw(pool.external_pool_id, amount, self.address)
        except Exception as exc:
            raise TransferFailed(f"Withdrawing {amount} from Convex pid {pool.external_pool_id} failed: {exc}") from exc

        pool.stake_token.transfer(self.address, user, amount)

        position = self.ledger.get_or_create(pool_id, user)
        self.accumulator.checkpoint(pool, position)
        remaining = self.ledger.remove_stake(pool, user, amount)

        self._emit(EventType.WITHDRAW, user, pool_id, amount)
        logger.info(f"{user} withdrew {amount} from pool {pool_id}")
        return remaining

    def get_vault_rewards(self, pool_id):
        """
        Harvests the pool's rewards from the Booster and settles every position.

        Returns:
            HarvestReport of what was pulled in
        """
        return self._harvest_and_checkpoint(self.registry.pool_info(pool_id))

    def calculate_rewards_earned(self, user, pool_id):
        """
        Estimates the rewards the user would receive from a harvest and claim now.

        Includes rewards already harvested and a pro-rata share of what the
        Booster currently owes the vault for this pool. The estimate is not a
        guarantee; claim() decides what is actually paid.

        Returns:
            Tuple of (primary, secondary)
        """
        pool = self.registry.pool_info(pool_id)
        position = self.ledger.get(pool_id, user)

        unharvested = dict(zip(REWARD_KINDS, self.booster.earned(pool.external_pool_id, self.address)))

        earned = []
        for kind in REWARD_KINDS:
            extra = self.accumulator.project_per_share(pool, kind, unharvested[kind])
            earned.append(position.pending_vault_rewards[kind]
                          + self.accumulator.pending(pool, position, kind, extra))
        return tuple(earned)

    def claim(self, user, pool_id, recipient=None):
        """
        Sends the user's harvested rewards for the pool to recipient.

        Args:
            user: Address whose rewards are claimed
            pool_id: Vault pool to claim from
            recipient: Address receiving the tokens (defaults to user)

        Returns:
            Tuple of (primary, secondary) amounts sent
        """
        pool = self.registry.pool_info(pool_id)
        recipient = recipient or user

        if self.auto_harvest:
            self._harvest_and_checkpoint(pool)

        position = self.ledger.get(pool_id, user)
        self.accumulator.checkpoint(pool, position)

        owed = {kind: position.pending_vault_rewards[kind] for kind in REWARD_KINDS}

        # Check custody for both tokens before moving either
        for kind in REWARD_KINDS:
            custody = self.reward_tokens[kind].balance_of(self.address)
            if custody < owed[kind]:
                logger.critical(
                    f"Vault holds {custody} {kind.name} but owes {owed[kind]} to {user} in pool {pool_id}"
                )
                raise InsufficientVaultBalance(
                    f"Vault custody of {self.reward_tokens[kind].symbol} ({custody}) is below {owed[kind]} owed"
                )

        for kind in REWARD_KINDS:
            if owed[kind] > 0:
                self.reward_tokens[kind].transfer(self.address, recipient, owed[kind])
                position.pending_vault_rewards[kind] = 0
                position.total_claimed[kind] += owed[kind]

        primary, secondary = owed[RewardKind.PRIMARY], owed[RewardKind.SECONDARY]
        self._emit(EventType.CLAIM, user, pool_id, recipient, primary, secondary)
        logger.info(f"{user} claimed {primary} primary and {secondary} secondary from pool {pool_id}")
        return primary, secondary

    def _harvest_and_checkpoint(self, pool):
        report = self.harvester.realize_rewards(pool)
        for _, position in self.ledger.positions_in_pool(pool.id):
            self.accumulator.checkpoint(pool, position)
        if not report.is_empty:
            self._emit(EventType.HARVEST, pool.id,
                       report.realized[RewardKind.PRIMARY], report.realized[RewardKind.SECONDARY])
        return report

    # --- Invariants ---

    def total_owed(self, kind):
        """Returns everything the vault owes across all pools for one reward token."""
        owed = 0
        for pool in self.registry.pools:
            for _, position in self.ledger.positions_in_pool(pool.id):
                owed += position.pending_vault_rewards[kind] + self.accumulator.pending(pool, position, kind)
        return owed

    def check_invariants(self):
        """
        Verifies the vault's accounting.

        Checks that every pool's total equals the sum of its positions and the
        vault's stake in the Booster, and that custody covers all owed rewards.

        Returns:
            True if all invariants hold

        Raises:
            InvariantViolation: If any invariant is broken
        """
        for pool in self.registry.pools:
            ledger_total = self.ledger.total_staked_in(pool.id)
            if ledger_total != pool.total_staked:
                raise InvariantViolation(
                    f"Pool {pool.id}: positions sum to {ledger_total}, total_staked is {pool.total_staked}"
                )

            external_stake = self.booster.pool_info(pool.external_pool_id).crv_rewards.balance_of(self.address)
            if external_stake != pool.total_staked:
                raise InvariantViolation(
                    f"Pool {pool.id}: {external_stake} staked in Convex, total_staked is {pool.total_staked}"
                )

        for kind, token in self.reward_tokens.items():
            owed = self.total_owed(kind)
            custody = token.balance_of(self.address)
            if owed > custody:
                raise InvariantViolation(f"{token.symbol}: vault owes {owed} but holds {custody}")

        return True
