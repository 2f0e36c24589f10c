import pytest

from parallel_subprocess import BufferSink


@pytest.fixture
def sink():
    return BufferSink()
