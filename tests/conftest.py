"""Shared fixtures: synthetic page stores and scripted oracles."""

import json
import re

import pytest

from pageindex import log as logmod
from pageindex.config import PageIndexConfig
from pageindex.context import PipelineContext
from pageindex.pages import Page, PageStore


def make_store(n_pages, tokens=100, text_fn=None, doc_name="doc"):
    text_fn = text_fn or (lambda i: f"content of page {i}")
    return PageStore([Page(i, text_fn(i), tokens) for i in range(1, n_pages + 1)], doc_name)


def reply(content, status="finished"):
    return {"content": content if isinstance(content, str) else json.dumps(content),
            "status": status, "input_tokens": 0, "output_tokens": 0, "stop_reason": status}


TITLE_PAGE_RE = re.compile(
    r"The given section title is (.*?)\.\nThe given page_text is content of page (\d+)\.",
    re.DOTALL,
)
TAG_RE = re.compile(r"<physical_index_(\d+)>")


def title_and_page(prompt):
    """(title, page) from a title-check or start-check prompt."""
    m = TITLE_PAGE_RE.search(prompt)
    return (m.group(1), int(m.group(2))) if m else (None, None)


def tagged_pages(prompt):
    """Sorted distinct page numbers tagged in a prompt (ignores the X placeholder)."""
    return sorted({int(n) for n in TAG_RE.findall(prompt)})


@pytest.fixture(autouse=True)
def quiet_log():
    logmod.configure(log_file=None, verbose=False)
    yield
    logmod.configure(log_file=None, verbose=False)


@pytest.fixture
def make_ctx():
    def _make(call_llm_fn, n_pages=10, tokens=100, executor=None, text_fn=None, **config):
        return PipelineContext(
            pages=make_store(n_pages, tokens, text_fn),
            call_llm_fn=call_llm_fn,
            config=PageIndexConfig(**config),
            executor=executor,
        )
    return _make
