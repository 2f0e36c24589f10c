import pytest
from typeguard import TypeCheckError

from parallel_subprocess import ChildProcessFailedError, PoolFactory, ProcessPool, StreamSink


def test_defaults(sink):
    pool = PoolFactory().create(sink)
    assert isinstance(pool, ProcessPool)
    assert pool.capacity == 5
    assert pool.propagate_failures
    assert not pool.suppress_output
    assert pool.output is sink


def test_default_output_is_stream_sink():
    pool = PoolFactory().create()
    assert isinstance(pool.output, StreamSink)


@pytest.mark.parametrize("capacity", [0, -1])
def test_invalid_capacity(capacity):
    with pytest.raises(ValueError):
        PoolFactory().create(capacity=capacity)


def test_capacity_type_checked():
    with pytest.raises(TypeCheckError):
        PoolFactory().create(capacity="3")


def test_launch_options_reach_pool(sink, tmp_path):
    pool = PoolFactory().create(sink, capacity=2, cwd=str(tmp_path), max_error_output=16)
    assert pool.cwd == str(tmp_path)
    assert pool.max_error_output == 16


def test_created_pool_propagates_failures(sink):
    pool = PoolFactory().create(sink, capacity=2)
    pool.submit("exit 4")
    with pytest.raises(ChildProcessFailedError):
        pool.drain()
    assert len(pool) == 0
