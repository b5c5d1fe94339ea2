"""
Harvester Model for the Convex Vault.

Pulls a pool's accrued rewards out of the Booster into vault custody and hands
the amounts that actually arrived to the RewardAccumulator. Amounts are
measured as the change in the vault's token balances around the external
call; whatever the Booster returns is ignored.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

from reward_accumulator import REWARD_KINDS, RewardKind, empty_reward_map
from vault_errors import HarvestFailed

logger = logging.getLogger(__name__)


@dataclass
class HarvestReport:
    """What one harvest pulled in and how far it moved the accumulator."""
    pool_id: int
    realized: Dict[RewardKind, int] = field(default_factory=empty_reward_map)
    per_share_increment: Dict[RewardKind, int] = field(default_factory=empty_reward_map)

    @property
    def is_empty(self):
        return not any(self.realized.values())


class Harvester:
    """
    Realizes external rewards for a pool and feeds them to the accumulator.
    """

    def __init__(self, booster, reward_tokens, custody_address, accumulator, earmark_first=False):
        """
        Args:
            booster: External protocol to claim from
            reward_tokens: Dict of RewardKind -> token held in custody
            custody_address: Address the rewards are claimed to (the vault)
            accumulator: RewardAccumulator fed with the measured amounts
            earmark_first: Whether to earmark the Booster pool before claiming
        """
        self.booster = booster
        self.reward_tokens = reward_tokens
        self.custody_address = custody_address
        self.accumulator = accumulator
        self.earmark_first = earmark_first

    def custody_balances(self):
        return {kind: self.reward_tokens[kind].balance_of(self.custody_address) for kind in REWARD_KINDS}

    def realize_rewards(self, pool):
        """
        Claims the pool's rewards and credits them to its stakers.

        Either every measured amount is credited or, if the external call
        fails, nothing is.

        Args:
            pool: Pool to harvest

        Returns:
            HarvestReport for the pool

        Raises:
            HarvestFailed: If the Booster call raised
        """
        before = self.custody_balances()

        try:
            # A shut-down pool takes no earmarks but still pays out its remaining stream
            if self.earmark_first and not self.booster.pool_info(pool.external_pool_id).shutdown:
                self.booster.earmark_rewards(pool.external_pool_id, self.custody_address)
            self.booster.get_reward(pool.external_pool_id, self.custody_address)
        except Exception as exc:
            logger.error(f"Harvest of pool {pool.id} (Convex pid {pool.external_pool_id}) failed: {exc}")
            raise HarvestFailed(f"Harvest of pool {pool.id} failed: {exc}") from exc

        after = self.custody_balances()

        report = HarvestReport(pool_id=pool.id)
        for kind in REWARD_KINDS:
            delta = after[kind] - before[kind]
            if delta < 0:
                logger.warning(f"Custody of {kind.name} dropped by {-delta} during harvest of pool {pool.id}")
                delta = 0
            report.realized[kind] = delta

        for kind in REWARD_KINDS:
            report.per_share_increment[kind] = self.accumulator.distribute(pool, kind, report.realized[kind])

        if not report.is_empty:
            logger.info(
                f"Harvested pool {pool.id}: {report.realized[RewardKind.PRIMARY]} primary, "
                f"{report.realized[RewardKind.SECONDARY]} secondary"
            )
        return report
