#!/usr/bin/env python3
"""
PageIndex: hierarchical section tree for a paginated document
===============================================================
Reads one document's pages (JSONL, one page per line) and writes its
verified section tree as JSON.

Usage:
    pageindex --pages /tmp/report_pages.jsonl \
        [--config config.yaml] \
        [--model gpt-4o-2024-11-20] \
        [--toc-check-pages 20] \
        [--max-pages-per-node 10] \
        [--max-tokens-per-node 20000] \
        [--add-node-id yes] [--add-node-summary no] \
        [--add-doc-description no] [--add-node-text no] \
        [--output results/report_structure.json] \
        [--log-file /tmp/report_log.jsonl] [--verbose]

API keys come from --api-key / --openai-key / --openrouter-key or the
ANTHROPIC_API_KEY, OPENAI_API_KEY (CHATGPT_API_KEY), OPENROUTER_API_KEY
environment variables.
"""

import argparse
import os
import sys
from pathlib import Path

from pageindex import log as logmod
from pageindex.config import load_config
from pageindex.errors import ConfigError, PageIndexError
from pageindex.llm_client import make_call_llm_fn
from pageindex.log import log
from pageindex.pages import load_pages
from pageindex.pipeline import page_index_main, write_result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build a verified section tree for a paginated document"
    )
    parser.add_argument("--pages", required=True, help="Path to pages.jsonl")
    parser.add_argument("--config", default=None, help="YAML configuration file")
    parser.add_argument("--model", default=None, help="Model to use")
    parser.add_argument("--toc-check-pages", type=int, default=None,
                        help="Pages to scan for a table of contents")
    parser.add_argument("--max-pages-per-node", type=int, default=None,
                        help="Page span above which a node is split")
    parser.add_argument("--max-tokens-per-node", type=int, default=None,
                        help="Token count from which a node is split")
    parser.add_argument("--add-node-id", default=None, help="yes|no")
    parser.add_argument("--add-node-summary", default=None, help="yes|no")
    parser.add_argument("--add-doc-description", default=None, help="yes|no")
    parser.add_argument("--add-node-text", default=None, help="yes|no")
    parser.add_argument("--output", default=None,
                        help="Output JSON path (default results/<doc>_structure.json)")
    parser.add_argument("--log-file", default=None, help="Append JSON-lines log records here")
    parser.add_argument("--api-key", default=None, help="Anthropic API key (or set ANTHROPIC_API_KEY)")
    parser.add_argument("--openai-key", default=None, help="OpenAI API key (or set OPENAI_API_KEY)")
    parser.add_argument("--openrouter-key", default=None,
                        help="OpenRouter API key (or set OPENROUTER_API_KEY)")
    parser.add_argument("--verbose", action="store_true", help="Print DEBUG lines")
    return parser


def config_overrides(args) -> dict:
    return {
        "model": args.model,
        "toc_check_page_num": args.toc_check_pages,
        "max_page_num_each_node": args.max_pages_per_node,
        "max_token_num_each_node": args.max_tokens_per_node,
        "if_add_node_id": args.add_node_id,
        "if_add_node_summary": args.add_node_summary,
        "if_add_doc_description": args.add_doc_description,
        "if_add_node_text": args.add_node_text,
    }


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, config_overrides(args))
        pages = load_pages(args.pages, model=config.model)
    except (ConfigError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    log_file = args.log_file
    if log_file is None and config.log_dir:
        os.makedirs(config.log_dir, exist_ok=True)
        log_file = os.path.join(config.log_dir, f"{pages.doc_name}_log.jsonl")
    logmod.configure(log_file=log_file, verbose=args.verbose)

    call_llm_fn = make_call_llm_fn(
        anthropic_key=args.api_key,
        openai_key=args.openai_key,
        openrouter_key=args.openrouter_key,
        max_retries=config.llm_max_retries,
        timeout=config.llm_timeout_seconds,
    )

    try:
        result = page_index_main(pages, config, call_llm_fn)
    except PageIndexError as e:
        log(f"{type(e).__name__}: {e}", "ERROR")
        return 1

    output = args.output or str(Path("results") / f"{pages.doc_name}_structure.json")
    path = write_result(result, output)
    log(f"Tree structure saved to {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
