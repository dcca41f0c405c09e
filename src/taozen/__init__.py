"""Taozen - async DAG orchestration for Python.

A graph ("tao") is a set of async steps ("zen") with dependencies. Steps
whose dependencies are satisfied run concurrently, batch after batch;
the graph can be paused, resumed, cancelled and retried, and publishes
events for every transition.

Quick Start:
    >>> import asyncio
    >>> from taozen import Graph
    >>>
    >>> async def main():
    ...     graph = Graph("hello")
    ...     a = graph.step("a").exe(lambda inputs: 1)
    ...     b = graph.step("b").exe(lambda inputs: inputs.get(a) + 1).after(a)
    ...     results = await graph.run()
    ...     print(results[b.id])  # 2
    >>>
    >>> asyncio.run(main())
"""

from importlib.metadata import PackageNotFoundError, version

from taozen.core import *  # noqa: F403
from taozen.core import __all__ as _core_all

try:
    __version__ = version("taozen")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [*_core_all, "__version__"]
