"""Wall-clock timing for frames and replays.

Provides:
    - timer(): one-shot measurement reported to a sink (or stdout)
    - TimerAccumulator: running count/mean/max/last over many measurements

FrameLoop keeps a TimerAccumulator per loop so ``stop()`` can log the
mean and worst frame time, and the replay driver reports the same numbers
in summary.yaml. Everything uses time.perf_counter; nothing here is cheap
enough to matter inside a 60 Hz tick except the two perf_counter calls.
"""

import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

Sink = Callable[[str, float], None]


@contextmanager
def timer(name: str, sink: Optional[Sink] = None) -> Iterator[None]:
    """Time the enclosed block.

    Parameters
    ----------
    name : str
        Label passed to the sink
    sink : callable, optional
        ``sink(name, seconds)``; prints ``"<name>: <seconds> s"`` if None

    Examples
    --------
    >>> with timer("replay", sink=lambda n, s: logger.info(f"{n} took {s:.2f} s")):
    ...     run_replay(path="circle")
    """
    t0 = time.perf_counter()
    try:
        yield
    finally:
        seconds = time.perf_counter() - t0
        if sink is None:
            print(f"{name}: {seconds:.3f} s")
        else:
            sink(name, seconds)


class TimerAccumulator:
    """Aggregate of repeated timings (seconds)."""

    def __init__(self, name: str):
        self.name = name
        self.reset()

    def reset(self) -> None:
        self.count = 0
        self.total_time = 0.0
        self.max_time = 0.0
        self.last_time = 0.0

    def add(self, elapsed: float) -> None:
        self.count += 1
        self.total_time += elapsed
        self.last_time = elapsed
        if elapsed > self.max_time:
            self.max_time = elapsed

    @contextmanager
    def measure(self) -> Iterator[None]:
        """Time the enclosed block and add() it, even if it raises."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.add(time.perf_counter() - t0)

    def mean(self) -> float:
        """Mean seconds per measurement (0.0 before the first one)."""
        if self.count == 0:
            return 0.0
        return self.total_time / self.count

    def __repr__(self) -> str:
        return (
            f"TimerAccumulator({self.name}, n={self.count}, "
            f"mean={self.mean() * 1000:.2f} ms, max={self.max_time * 1000:.2f} ms)"
        )
