"""
Simple simulation for the Convex Vault Model.

This script walks two users through a deposit, a harvest and a claim, and
prints what each of them earned.
"""

import logging
import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from economic_model import ConvexVaultModel, ONE_HOUR
from erc20_token import DECIMAL_PRECISION


def fmt(amount):
    return f"{amount / DECIMAL_PRECISION:,.4f}"


def run_basic_simulation():
    model = ConvexVaultModel()

    print("Creating vault pool...")
    pool_id = model.add_lp_pool("steCRV")
    pool = model.vault.pool_info(pool_id)
    print(f"Pool {pool_id}: {pool.stake_token.symbol} staked into Convex pid {pool.external_pool_id}")

    # Let the gauge accrue and queue some CRV before anyone deposits
    model.update_time(ONE_HOUR)
    model.booster.earmark_rewards(pool.external_pool_id, model.keeper)

    print("\nDepositing...")
    deposits = {"alice": 10 * DECIMAL_PRECISION, "bob": 100 * DECIMAL_PRECISION}
    for user, amount in deposits.items():
        model.fund_user(user, pool_id, amount)
        model.stake(user, pool_id, amount)
        print(f"  {user} deposited {fmt(amount)} LP")

    print("\nWaiting 5 hours...")
    model.update_time(5 * ONE_HOUR)
    for user in deposits:
        crv, cvx = model.vault.calculate_rewards_earned(user, pool_id)
        print(f"  {user} estimate: {fmt(crv)} CRV, {fmt(cvx)} CVX")

    print("\nHarvesting...")
    report = model.vault.get_vault_rewards(pool_id)
    for kind, amount in report.realized.items():
        print(f"  realized {fmt(amount)} {kind.name.lower()}")

    print("\nClaiming...")
    for user in deposits:
        crv, cvx = model.claim(user, pool_id)
        print(f"  {user} received {fmt(crv)} CRV, {fmt(cvx)} CVX")

    model.vault.check_invariants()
    print("\nInvariants hold")
    print(f"  Dust left in custody: {model.crv.balance_of(model.vault.address)} wei CRV")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    run_basic_simulation()
