"""Per-document pipeline context.

Every stage receives one ``PipelineContext`` instead of reaching for
globals: the pages, the injected oracle function, the configuration and
the executor handle created (and torn down) by ``page_index_main``.
"""

from __future__ import annotations

import concurrent.futures
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from pageindex.config import PageIndexConfig
from pageindex.llm_client import FINISHED
from pageindex.oracle_json import extract_json
from pageindex.pages import PageStore

_worker_state = threading.local()


def _run_marked(fn, item):
    """Run ``fn(item)`` flagged as a pool worker, so nested fan-out goes inline."""
    _worker_state.in_pool = True
    try:
        return fn(item)
    finally:
        _worker_state.in_pool = False


def _in_pool_worker() -> bool:
    return getattr(_worker_state, "in_pool", False)


@dataclass
class PipelineContext:
    pages: PageStore
    call_llm_fn: Callable
    config: PageIndexConfig
    executor: Optional[concurrent.futures.Executor] = None

    @property
    def model(self) -> str:
        return self.config.model

    # -- oracle ------------------------------------------------------------

    def ask_with_status(self, prompt: str, chat_history: list[dict] | None = None) -> tuple[str, str]:
        """Return ``(content, status)``; status is "finished" or "truncated"."""
        resp = self.call_llm_fn(prompt, self.model, chat_history=chat_history)
        return resp.get("content") or "", resp.get("status", FINISHED)

    def ask(self, prompt: str) -> str:
        return self.ask_with_status(prompt)[0]

    def ask_json(self, prompt: str):
        return extract_json(self.ask(prompt))

    # -- fork-join ---------------------------------------------------------

    def fork_join(self, fn: Callable, items: list) -> list:
        """Apply ``fn`` to every item concurrently and return results in order.

        All tasks run to completion before anything is returned. If any
        failed, the exception of the first failing item (in input order) is
        raised. Without an executor, or when called from a pool worker, the
        items run sequentially on the calling thread.
        """
        items = list(items)
        if not items:
            return []
        if self.executor is None or _in_pool_worker():
            return [fn(item) for item in items]

        futures = [self.executor.submit(_run_marked, fn, item) for item in items]
        concurrent.futures.wait(futures)
        for future in futures:
            exc = future.exception()
            if exc is not None:
                raise exc
        return [future.result() for future in futures]
