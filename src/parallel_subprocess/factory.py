from typing import Optional

from typeguard import typechecked

from .pool import ProcessPool
from .sink import OutputSink


@typechecked
class PoolFactory:
    """Builds process pools. Unlike ProcessPool itself, failures propagate by default."""

    def create(
        self,
        output: Optional[OutputSink] = None,
        capacity: int = 5,
        propagate_failures: bool = True,
        suppress_output: bool = False,
        **launch_options,
    ) -> ProcessPool:
        """
        launch_options are passed on to ProcessPool: env, cwd and
        max_error_output.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        return ProcessPool(
            capacity=capacity,
            output=output,
            propagate_failures=propagate_failures,
            suppress_output=suppress_output,
            **launch_options,
        )
