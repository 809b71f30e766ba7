"""Tests for entry verification (pageindex/verifier.py)."""

import random

import pytest

from conftest import reply, title_and_page

from pageindex.errors import OracleTransportError
from pageindex.models import APPEAR_NO, APPEAR_YES, Entry
from pageindex.verifier import (
    check_title_appearance,
    check_title_appearance_in_start_concurrent,
    verify_toc,
)


def _checker(truth, calls=None):
    """Oracle answering title checks from a {title: page} map."""
    def mock_llm(prompt, model, chat_history=None):
        title, page = title_and_page(prompt)
        if calls is not None:
            calls.append((title, page))
        answer = "yes" if truth.get(title) == page else "no"
        key = "start_begin" if "start_begin" in prompt else "answer"
        return reply({"thinking": "", key: answer})
    return mock_llm


class TestCheckTitleAppearance:
    def test_yes_and_no(self, make_ctx):
        ctx = make_ctx(_checker({"Intro": 2}))
        assert check_title_appearance(ctx, "Intro", 2)
        assert not check_title_appearance(ctx, "Intro", 3)

    def test_out_of_range_page_makes_no_call(self, make_ctx):
        calls = []
        ctx = make_ctx(_checker({}, calls), n_pages=5)
        assert not check_title_appearance(ctx, "Intro", 9)
        assert not check_title_appearance(ctx, "Intro", None)
        assert calls == []


class TestVerifyToc:
    def test_all_correct(self, make_ctx):
        entries = [Entry("A", physical_index=1), Entry("B", physical_index=4),
                   Entry("C", physical_index=8)]
        ctx = make_ctx(_checker({"A": 1, "B": 4, "C": 8}))
        report = verify_toc(ctx, entries, 1, 10)
        assert report.accuracy == 1.0
        assert report.incorrect == []
        assert report.checked == 3

    def test_half_range_gate_spends_no_calls(self, make_ctx):
        calls = []
        entries = [Entry("A", physical_index=1), Entry("B", physical_index=3)]
        report = verify_toc(make_ctx(_checker({"A": 1, "B": 3}, calls)), entries, 1, 10)
        assert report.accuracy == 0.0
        assert calls == []

    def test_no_resolved_entries(self, make_ctx):
        report = verify_toc(make_ctx(_checker({})), [Entry("A")], 1, 10)
        assert report.accuracy == 0.0

    def test_unresolved_entry_counts_as_incorrect(self, make_ctx):
        calls = []
        entries = [Entry("A", physical_index=2), Entry("B"), Entry("C", physical_index=9)]
        report = verify_toc(make_ctx(_checker({"A": 2, "C": 9}, calls)), entries, 1, 10)

        assert report.accuracy == pytest.approx(2 / 3)
        assert [o.list_index for o in report.incorrect] == [1]
        assert report.incorrect[0].page_number is None
        assert ("B", None) not in calls
        assert len(calls) == 2

    def test_wrong_page_reported_with_position(self, make_ctx):
        entries = [Entry("A", physical_index=2), Entry("B", physical_index=5),
                   Entry("C", physical_index=9)]
        report = verify_toc(make_ctx(_checker({"A": 2, "B": 6, "C": 9})), entries, 1, 10)
        assert len(report.incorrect) == 1
        outcome = report.incorrect[0]
        assert (outcome.list_index, outcome.title, outcome.page_number) == (1, "B", 5)

    def test_sample_size_limits_checks(self, make_ctx):
        calls = []
        entries = [Entry(f"T{i}", physical_index=i) for i in range(1, 11)]
        truth = {f"T{i}": i for i in range(1, 11)}
        report = verify_toc(make_ctx(_checker(truth, calls)), entries, 1, 10,
                            sample_size=4, rng=random.Random(3))
        assert report.checked == 4
        assert len(calls) == 4
        assert report.accuracy == 1.0

    def test_transport_failure_propagates(self, make_ctx):
        def failing(prompt, model, chat_history=None):
            raise OracleTransportError("down", attempts=10)

        entries = [Entry("A", physical_index=6)]
        with pytest.raises(OracleTransportError):
            verify_toc(make_ctx(failing), entries, 1, 10)


class TestStartCheck:
    def test_sets_appear_start(self, make_ctx):
        entries = [Entry("A", physical_index=1), Entry("B", physical_index=4), Entry("C")]
        ctx = make_ctx(_checker({"A": 1}))
        check_title_appearance_in_start_concurrent(ctx, entries)
        assert [e.appear_start for e in entries] == [APPEAR_YES, APPEAR_NO, APPEAR_NO]
