import argparse
import logging
import time

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy import stats

from glv.cavity import cavity_predictions
from glv.community import random_community
from glv.config import ASSEMBLY, SweepConfig, load_sweep_config
from glv.models import solve

logger = logging.getLogger(__name__)

# The final output of a run is a table comparing simulated and predicted
# survivor statistics for every mean interaction strength.

def main(argv = None):
    parser = argparse.ArgumentParser(description = "Compare GLV simulations with cavity predictions along a mean-interaction sweep.")
    parser.add_argument('--config', type = str, default = None, help = 'YAML file with sweep parameters')
    parser.add_argument('--richness', type = int, default = None, help = 'number of species in the pool')
    parser.add_argument('--mu-min', dest = 'mu_min', type = float, default = None, help = 'smallest mean interaction (size-free)')
    parser.add_argument('--mu-max', dest = 'mu_max', type = float, default = None, help = 'largest mean interaction (size-free)')
    parser.add_argument('--n-mu', dest = 'n_mu', type = int, default = None, help = 'number of mean interaction values')
    parser.add_argument('--sigma', type = float, default = None, help = 'interaction standard deviation (size-free)')
    parser.add_argument('--K-std', dest = 'K_std', type = float, default = None, help = 'standard deviation of the carrying capacities')
    parser.add_argument('--t-max', dest = 't_max', type = float, default = None, help = 'duration of each simulation')
    parser.add_argument('--replicates', type = int, default = None, help = 'communities sampled per mean interaction')
    parser.add_argument('--seed', type = int, default = None, help = 'root random seed')
    parser.add_argument('--n-jobs', dest = 'n_jobs', type = int, default = None, help = 'joblib workers')
    parser.add_argument('--output', type = str, default = 'cavity_sweep.csv', help = 'CSV file for the results')
    parser.add_argument('--verbose', action = 'store_true', help = 'log debug messages')
    args = parser.parse_args(argv)

    logging.basicConfig(level = logging.DEBUG if args.verbose else logging.INFO,
                        format = '%(asctime)s %(name)s %(levelname)s %(message)s')

    overrides = {name: getattr(args, name) for name in
                 ('richness', 'mu_min', 'mu_max', 'n_mu', 'sigma', 'K_std', 't_max', 'replicates', 'seed', 'n_jobs')}
    if args.config:
        config = load_sweep_config(args.config, **overrides)
    else:
        config = SweepConfig(**{k: v for k, v in overrides.items() if v is not None})

    print(f"Richness: {config.richness}")
    print(f"Mean interaction: {config.mu_min} to {config.mu_max} ({config.n_mu} values)")
    print(f"Sigma: {config.sigma}")
    print(f"K std: {config.K_std}")
    print(f"Replicates: {config.replicates}")

    start_time = time.time()
    df = run_sweep(config)
    df.to_csv(args.output, index = False)
    logger.info("wrote %d rows to %s in %.1f s", len(df), args.output, time.time() - start_time)
    return df


def run_sweep(config):
    """
    Simulate and predict every (mean interaction, replicate) pair of the sweep.

    Args:
        config (SweepConfig): Sweep parameters.

    Returns:
        DataFrame: One row per task, ordered by mu then replicate.
    """
    tasks = [(mu, replicate) for mu in config.mu_values() for replicate in range(config.replicates)]
    seeds = np.random.SeedSequence(config.seed).spawn(len(tasks))
    rows = Parallel(n_jobs = config.n_jobs)(
        delayed(run_task)(config, mu, replicate, seed)
        for (mu, replicate), seed in zip(tasks, seeds)
    )
    df = pd.DataFrame(rows)
    n_failed = int((~df['success']).sum()) if len(df) else 0
    if n_failed:
        logger.warning("%d of %d simulations failed", n_failed, len(df))
    return df


def run_task(config, mu, replicate, seed):
    """
    Sample one community, simulate it, and compare with the cavity prediction.

    Interactions are drawn with mean mu / S and standard deviation sigma / sqrt(S).
    The simulated moments are taken over the species whose final abundance
    exceeds the extinction threshold.
    """
    S = config.richness
    rng = np.random.default_rng(seed)
    K_i = stats.norm(config.K_mean, config.K_std) if config.K_std > 0 else config.K_mean
    c = random_community(S, stats.norm(mu / S, config.sigma / np.sqrt(S)), K_i = K_i, rng = rng)

    sol = solve(c, np.ones(S), (0, config.t_max))
    row = {'mu': mu, 'replicate': replicate, 'success': sol.success}
    if sol.success:
        N = sol.final[sol.final > ASSEMBLY.threshold]
        row['sim_phi'] = len(N) / S
        row['sim_N_mean'] = N.mean() if len(N) else 0.0
        row['sim_N2_mean'] = (N ** 2).mean() if len(N) else 0.0
    else:
        logger.debug("simulation failed for mu=%g replicate=%d: %s", mu, replicate, sol.message)
        row['sim_phi'] = row['sim_N_mean'] = row['sim_N2_mean'] = np.nan

    p = cavity_predictions(c, rescale = True)
    row['pred_phi'], row['pred_N_mean'], row['pred_N2_mean'], row['pred_v'] = p
    row['converged'] = p.converged
    return row


if __name__ == "__main__":
    main()
