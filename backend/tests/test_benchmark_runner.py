"""
Smoke tests for the benchmark harness.
"""
from backend.app.layout.benchmark import BenchmarkRunner, BENCHMARK_CASES
from backend.app.layout.benchmark.cases import create_chain_case, create_dense_cluster_case
from backend.app.layout.benchmark.run_benchmarks import results_frame, summarize


def test_cases_are_well_formed():
    for case in BENCHMARK_CASES:
        data = case.get_layout_input()
        ids = {n['id'] for n in data['nodes']}
        assert len(ids) == len(data['nodes'])
        assert all(e['source'] in ids and e['target'] in ids for e in data['edges'])


def test_runner_collects_results():
    runner = BenchmarkRunner(cases=[create_chain_case(), create_dense_cluster_case()])
    configs = [
        {'name': 'force_directed', 'overrides': {'resolver': 'force_directed'}},
        {'name': 'grid_snap', 'overrides': {'resolver': 'grid_snap', 'max_iterations': 20}},
    ]
    results = runner.run_benchmark(resolver_configs=configs, runs_per_case=2)

    assert len(results) == 2 * 2 * 2
    for r in results:
        assert r.runtime_seconds >= 0
        assert 0 <= r.overall_score <= 100
        assert r.outcome in ('converged', 'threshold_met', 'budget_exhausted')
    chain = [r for r in results if r.case_name == 'chain_8']
    assert all(r.remaining_overlaps == 0 for r in chain)

    df = results_frame(results)
    assert len(df) == len(results)
    summary = summarize(df)
    assert len(summary) == 4
