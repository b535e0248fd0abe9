"""
Script to run benchmarks and generate comparison reports.
"""
import argparse
import logging
from pathlib import Path
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from typing import List
from .runner import BenchmarkRunner, BenchmarkResult, DEFAULT_RESOLVER_CONFIGS

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def results_frame(results: List[BenchmarkResult]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'case': r.case_name,
            'resolver': r.resolver_name,
            'runtime': r.runtime_seconds,
            'iterations': r.iterations,
            'outcome': r.outcome,
            'overlaps': r.remaining_overlaps,
            'overlap_free': r.overlap_free_percent,
            'score': r.overall_score,
            'crossings': r.edge_crossings,
            'edge_length': r.total_edge_length
        }
        for r in results
    ])


def summarize(df: pd.DataFrame) -> pd.DataFrame:
    return df.groupby(['case', 'resolver']).agg({
        'runtime': ['mean', 'std'],
        'iterations': 'mean',
        'overlaps': 'mean',
        'overlap_free': 'mean',
        'score': ['mean', 'std'],
        'crossings': 'mean'
    }).round(3)


def plot_results(results: List[BenchmarkResult], output_dir: Path):
    """Generate visualization plots of benchmark results."""
    if not results:
        logger.warning("No results to plot!")
        return

    df = results_frame(results)

    plots_dir = output_dir / 'plots'
    plots_dir.mkdir(exist_ok=True)

    # Runtime comparison
    plt.figure(figsize=(10, 6))
    sns.boxplot(data=df, x='case', y='runtime', hue='resolver')
    plt.title('Resolver Runtime Comparison')
    plt.xticks(rotation=45)
    plt.tight_layout()
    plt.savefig(plots_dir / 'runtime_comparison.png')
    plt.close()

    # Quality metrics
    fig, axes = plt.subplots(2, 2, figsize=(15, 15))
    fig.suptitle('Layout Quality Comparison')

    sns.boxplot(data=df, x='case', y='score', hue='resolver', ax=axes[0, 0])
    axes[0, 0].set_title('Overall Score')
    axes[0, 0].tick_params(labelrotation=45)

    sns.boxplot(data=df, x='case', y='overlaps', hue='resolver', ax=axes[0, 1])
    axes[0, 1].set_title('Remaining Overlaps')
    axes[0, 1].tick_params(labelrotation=45)

    sns.boxplot(data=df, x='case', y='iterations', hue='resolver', ax=axes[1, 0])
    axes[1, 0].set_title('Iterations Used')
    axes[1, 0].tick_params(labelrotation=45)

    sns.boxplot(data=df, x='case', y='crossings', hue='resolver', ax=axes[1, 1])
    axes[1, 1].set_title('Edge Crossings')
    axes[1, 1].tick_params(labelrotation=45)

    plt.tight_layout()
    plt.savefig(plots_dir / 'quality_metrics.png')
    plt.close()

    df.to_csv(output_dir / 'benchmark_results.csv', index=False)
    summarize(df).to_csv(output_dir / 'summary_stats.csv')


def main():
    parser = argparse.ArgumentParser(description='Run layout engine benchmarks')
    parser.add_argument('--output', type=str, default='benchmark_results',
                        help='Output directory for results')
    parser.add_argument('--runs', type=int, default=3,
                        help='Number of runs per case')
    parser.add_argument('--time-budget', type=float, default=None,
                        help='Wall-clock budget in seconds per run')
    parser.add_argument('--seed', type=int, default=0,
                        help='Base random seed')
    args = parser.parse_args()

    output_dir = Path(args.output)
    output_dir.mkdir(exist_ok=True)

    runner = BenchmarkRunner()
    results = runner.run_benchmark(
        resolver_configs=DEFAULT_RESOLVER_CONFIGS,
        runs_per_case=args.runs,
        time_budget=args.time_budget,
        seed=args.seed
    )

    plot_results(results, output_dir)

    logger.info(f"Benchmark results saved to {output_dir}")


if __name__ == '__main__':
    main()
