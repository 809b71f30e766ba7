"""Tests for the pipeline context and its fork-join helper (pageindex/context.py)."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import reply

from pageindex.llm_client import TRUNCATED


class TestAsk:
    def test_status_and_content(self, make_ctx):
        ctx = make_ctx(lambda p, m, chat_history=None: reply("partial", TRUNCATED))
        assert ctx.ask_with_status("q") == ("partial", TRUNCATED)

    def test_model_is_passed_through(self, make_ctx):
        seen = {}

        def mock_llm(prompt, model, chat_history=None):
            seen["model"] = model
            return reply({"answer": "yes"})

        ctx = make_ctx(mock_llm, model="claude-test")
        assert ctx.ask_json("q") == {"answer": "yes"}
        assert seen["model"] == "claude-test"

    def test_missing_content_is_empty(self, make_ctx):
        ctx = make_ctx(lambda p, m, chat_history=None: {"content": None, "status": "finished"})
        assert ctx.ask("q") == ""
        assert ctx.ask_json("q") == {}


class TestForkJoin:
    def test_results_in_input_order(self, make_ctx):
        def slow_square(x):
            time.sleep(0.01 * (5 - x))
            return x * x

        with ThreadPoolExecutor(max_workers=4) as executor:
            ctx = make_ctx(None, executor=executor)
            assert ctx.fork_join(slow_square, [1, 2, 3, 4]) == [1, 4, 9, 16]

    def test_sequential_without_executor(self, make_ctx):
        ctx = make_ctx(None)
        threads = []
        ctx.fork_join(lambda x: threads.append(threading.current_thread()), [1, 2])
        assert threads == [threading.current_thread()] * 2

    def test_failure_raised_after_all_tasks_finish(self, make_ctx):
        finished = []

        def task(x):
            if x == 0:
                raise ValueError("first")
            time.sleep(0.05)
            finished.append(x)
            return x

        with ThreadPoolExecutor(max_workers=4) as executor:
            ctx = make_ctx(None, executor=executor)
            with pytest.raises(ValueError, match="first"):
                ctx.fork_join(task, [0, 1, 2])
            assert sorted(finished) == [1, 2]

    def test_first_failure_in_input_order_wins(self, make_ctx):
        def task(x):
            if x == 2:
                raise KeyError("second")
            if x == 1:
                time.sleep(0.05)
                raise ValueError("first")
            return x

        with ThreadPoolExecutor(max_workers=3) as executor:
            ctx = make_ctx(None, executor=executor)
            with pytest.raises(ValueError):
                ctx.fork_join(task, [1, 2, 3])

    def test_nested_fan_out_on_one_worker_does_not_deadlock(self, make_ctx):
        with ThreadPoolExecutor(max_workers=1) as executor:
            ctx = make_ctx(None, executor=executor)

            def outer(x):
                return sum(ctx.fork_join(lambda y: x * y, [1, 2, 3]))

            assert ctx.fork_join(outer, [1, 10]) == [6, 60]

    def test_empty(self, make_ctx):
        assert make_ctx(None).fork_join(lambda x: x, []) == []
