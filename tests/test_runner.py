from concurrent.futures import CancelledError, ThreadPoolExecutor

import pytest

from topology_capacity.runner import RunnerExecutorManager, ScenarioRunner


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


def test_rapid_submissions_are_coalesced_into_latest(api_to_service, executor):
    runner = ScenarioRunner(debounce_s=0.2, executor=executor)

    first = runner.submit(api_to_service(100))
    second = runner.submit(api_to_service(150))
    latest = runner.submit(api_to_service(300))

    result = latest.result(timeout=5)
    assert first.cancelled()
    assert second.cancelled()
    with pytest.raises(CancelledError):
        first.result(timeout=0)
    assert result.node_stats["api"].egress_rps == pytest.approx(300.0)
    runner.close()


def test_flush_runs_pending_graph_immediately(api_to_service, executor):
    runner = ScenarioRunner(debounce_s=30.0, executor=executor)
    future = runner.submit(api_to_service(100))
    runner.flush()

    result = future.result(timeout=5)
    assert result.node_stats["svc"].egress_rps == pytest.approx(100.0)
    runner.close()


def test_close_cancels_pending_and_rejects_new_work(api_to_service, executor):
    runner = ScenarioRunner(debounce_s=30.0, executor=executor)
    pending = runner.submit(api_to_service(100))
    runner.close()

    assert pending.cancelled()
    with pytest.raises(RuntimeError):
        runner.submit(api_to_service(100))


def test_submission_results_match_direct_evaluation(kafka_chain, executor):
    from topology_capacity.engine import compute_scenario

    runner = ScenarioRunner(debounce_s=0.0, executor=executor)
    result = runner.submit(kafka_chain).result(timeout=5)
    assert result == compute_scenario(kafka_chain)
    runner.close()


def test_close_shuts_down_a_dedicated_executor(executor):
    runner = ScenarioRunner(debounce_s=30.0, executor=executor)
    runner.close()

    with pytest.raises(RuntimeError):
        executor.submit(lambda: None)


def test_close_leaves_the_shared_executor_running():
    runner = ScenarioRunner(debounce_s=30.0)
    runner.close()

    assert RunnerExecutorManager.get_executor().submit(lambda: 42).result(timeout=5) == 42
