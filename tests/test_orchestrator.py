"""Tests for the mode cascade (pageindex/orchestrator.py)."""

import random

import pytest

from conftest import reply, tagged_pages, title_and_page

from pageindex.errors import ModeExhaustedError
from pageindex.models import Mode
from pageindex.orchestrator import initial_mode, meta_processor
from pageindex.toc_detection import TocCheck


class TestInitialMode:
    @pytest.mark.parametrize("toc,mode", [
        (TocCheck("toc", [1], True), Mode.WITH_PAGE_NUMBERS),
        (TocCheck("toc", [1], False), Mode.NO_PAGE_NUMBERS),
        (TocCheck("", [], False), Mode.NO_TOC),
    ])
    def test_mapping(self, toc, mode):
        assert initial_mode(toc) is mode


def _generating_oracle(sections, truth):
    """NO_TOC oracle: generation reports ``sections`` found in each group.

    ``sections`` maps page to title; the title check consults ``truth``.
    Unknown prompts (TOC transformation) get an empty reply.
    """
    calls = {"generate": 0, "check": 0, "other": 0}

    def mock_llm(prompt, model, chat_history=None):
        if "generate the tree structure" in prompt or "continue the tree structure" in prompt:
            calls["generate"] += 1
            pages = tagged_pages(prompt.split("Previous tree structure:")[0])
            found = [{"structure": str(p), "title": t, "physical_index": f"<physical_index_{p}>"}
                     for p, t in sorted(sections.items()) if p in pages]
            if "continue the tree structure" in prompt:
                previous = prompt.split("Previous tree structure:")[1]
                found = [f for f in found if f'"{f["title"]}"' not in previous]
            return reply(found)
        if "The given section title is" in prompt:
            calls["check"] += 1
            title, page = title_and_page(prompt)
            return reply({"answer": "yes" if truth.get(title) == page else "no"})
        calls["other"] += 1
        return reply({"completed": "yes"} if "Cleaned table of contents:" in prompt else "")

    return mock_llm, calls


class TestMetaProcessor:
    def test_no_toc_accepted_at_full_accuracy(self, make_ctx):
        sections = {1: "One", 4: "Two", 8: "Three"}
        mock_llm, calls = _generating_oracle(sections, {"One": 1, "Two": 4, "Three": 8})
        ctx = make_ctx(mock_llm, n_pages=10)

        result = meta_processor(ctx, TocCheck("", [], False), 1, 10)

        assert result.mode is Mode.NO_TOC
        assert result.accuracy == 1.0
        assert [(e.title, e.physical_index) for e in result.entries] == [
            ("One", 1), ("Two", 4), ("Three", 8)]

    def test_no_page_numbers_falls_back_to_no_toc(self, make_ctx):
        sections = {1: "One", 6: "Two"}
        mock_llm, calls = _generating_oracle(sections, {"One": 1, "Two": 6})
        ctx = make_ctx(mock_llm, n_pages=10)

        result = meta_processor(ctx, TocCheck("One\nTwo", [1], False), 1, 10)

        assert result.mode is Mode.NO_TOC
        assert calls["other"] > 0

    def test_no_toc_failure_is_fatal(self, make_ctx):
        mock_llm, _ = _generating_oracle({1: "One", 9: "Two"}, {})
        ctx = make_ctx(mock_llm, n_pages=10)

        with pytest.raises(ModeExhaustedError):
            meta_processor(ctx, TocCheck("", [], False), 1, 10)

    def test_repair_path_between_threshold_and_one(self, make_ctx):
        sections = {1: "A", 3: "B", 5: "C", 7: "D", 9: "E"}
        truth = {"A": 1, "B": 3, "C": 5, "D": 7, "E": 10}
        mock_llm, calls = _generating_oracle(sections, truth)

        def with_fixer(prompt, model, chat_history=None):
            if "find the physical index of the page where the section starts" in prompt:
                return reply({"physical_index": "<physical_index_10>"})
            return mock_llm(prompt, model, chat_history=chat_history)

        ctx = make_ctx(with_fixer, n_pages=10)
        result = meta_processor(ctx, TocCheck("", [], False), 1, 10, rng=random.Random(0))

        assert result.mode is Mode.NO_TOC
        assert result.accuracy == pytest.approx(0.8)
        assert result.unrepaired == 0
        assert result.entries[-1].physical_index == 10

    def test_wrong_offset_falls_back_to_no_page_numbers(self, make_ctx):
        # printed pages 1, 3, 5 but the sections start on 2, 5 and 8: only the
        # first matches the inferred offset of 1
        truth = {"One": 2, "Two": 5, "Three": 8}
        calls = {"extract": 0, "add_page_number": 0, "generate": 0}

        def mock_llm(prompt, model, chat_history=None):
            if "transform the whole table of contents" in prompt:
                return reply({"table_of_contents": [
                    {"structure": str(i + 1), "title": t, "page": p}
                    for i, (t, p) in enumerate([("One", 1), ("Two", 3), ("Three", 5)])]})
            if "Cleaned table of contents:" in prompt:
                return reply({"completed": "yes"})
            if "add the physical_index to the table of contents" in prompt:
                calls["extract"] += 1
                return reply([{"structure": "1", "title": "One", "physical_index": "<physical_index_2>"}])
            if "whether it starts in the given part" in prompt:
                calls["add_page_number"] += 1
                part = prompt.split("Current part of the document:")[1].split("Given structure:")[0]
                pages = tagged_pages(part)
                return reply([{"structure": str(i + 1), "title": t, "start": "yes",
                               "physical_index": f"<physical_index_{p}>"}
                              for i, (t, p) in enumerate(truth.items()) if p in pages])
            if "The given section title is" in prompt:
                title, page = title_and_page(prompt)
                return reply({"answer": "yes" if truth.get(title) == page else "no"})
            calls["generate"] += 1
            return reply([])

        ctx = make_ctx(mock_llm, n_pages=10)
        result = meta_processor(ctx, TocCheck("One 1\nTwo 3\nThree 5", [1], True), 1, 10)

        assert result.mode is Mode.NO_PAGE_NUMBERS
        assert result.accuracy == 1.0
        assert [(e.title, e.physical_index) for e in result.entries] == [
            ("One", 2), ("Two", 5), ("Three", 8)]
        assert calls["extract"] == 1
        assert calls["add_page_number"] >= 1
        assert calls["generate"] == 0
