"""
Visualization simulation for the Convex Vault Model.

This script runs many users through random deposits, withdrawals and claims
across several pools and plots stake, reward per share and custody over time.
"""

import argparse
import logging
import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from economic_model import ConvexVaultModel
from erc20_token import DECIMAL_PRECISION
from reward_accumulator import IDLE_CARRY, IDLE_DISCARD


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Simulate the Convex vault and plot its accounting")
    parser.add_argument("--days", type=int, default=30)
    parser.add_argument("--users", type=int, default=8)
    parser.add_argument("--pools", type=int, default=2)
    parser.add_argument("--harvest-every", type=int, default=12, help="hours between harvests")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--no-auto-harvest", action="store_true", help="only harvest on schedule before claims")
    parser.add_argument("--idle-policy", choices=[IDLE_DISCARD, IDLE_CARRY], default=IDLE_DISCARD)
    parser.add_argument("--no-plot", action="store_true")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


def run_visualization_simulation(args):
    model = ConvexVaultModel(
        auto_harvest=not args.no_auto_harvest,
        idle_reward_policy=args.idle_policy,
        seed=args.seed,
    )

    print("Creating pools...")
    for i in range(args.pools):
        # Spread gauge emissions so pools earn at different rates
        crv_per_second = DECIMAL_PRECISION * (i + 1) // 2
        pool_id = model.add_lp_pool(f"crvLP{i}", crv_per_second=crv_per_second)
        print(f"Pool {pool_id}: {crv_per_second / DECIMAL_PRECISION:.2f} CRV/s")

    print(f"\nRunning {args.days} days with {args.users} users...")
    results = model.simulate_staking_scenario(
        args.days,
        users=args.users,
        harvest_every_hours=args.harvest_every,
        plot_results=not args.no_plot,
    )

    print("\nSimulation Results:")
    for key, value in results.items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    run_visualization_simulation(args)
