"""Prompt templates for every question put to the oracle.

Templates are plain ``str.format`` strings; literal braces in the reply
formats are doubled. Page-bounded text is always passed in the
``<physical_index_N>`` tagged form produced by ``pages.tag_page``.
"""

STRUCTURE_CODE_NOTE = (
    "The structure field is the numeric code of the section in the hierarchy: "
    "the first section is 1, its first subsection is 1.1, its second subsection "
    "is 1.2, and so on."
)

PAGE_TAG_NOTE = (
    "The pages are wrapped in tags like <physical_index_X> ... <physical_index_X> "
    "marking where page X starts and ends."
)

# ---------------------------------------------------------------------------
# TOC detection
# ---------------------------------------------------------------------------

TOC_DETECTION_PROMPT = """Your job is to detect whether the given text contains a table of contents.

Given text: {content}

Reply format:
{{
    "thinking": <why you think there is or is not a table of contents in the text>,
    "toc_detected": "<yes or no>"
}}
Directly return the final JSON structure. Do not output anything else.
Note: abstracts, summaries, notation lists, figure lists, table lists and similar are not tables of contents."""

PAGE_INDEX_DETECTION_PROMPT = """You will be given a table of contents.

Your job is to detect whether page numbers are given within the table of contents.

Given text: {toc}

Reply format:
{{
    "thinking": <why you think page numbers are or are not given>,
    "page_index_given_in_toc": "<yes or no>"
}}
Directly return the final JSON structure. Do not output anything else."""

# ---------------------------------------------------------------------------
# TOC transformation
# ---------------------------------------------------------------------------

TOC_TRANSFORM_PROMPT = """You are given a table of contents. Your job is to transform the whole table of contents into JSON.

{structure_note}

Reply format:
{{
    "table_of_contents": [
        {{
            "structure": <structure code, "x.x.x" or None> (string),
            "title": <title of the section>,
            "page": <page number or None>
        }},
        ...
    ]
}}
Transform the full table of contents in one go.
Directly return the final JSON structure. Do not output anything else.

Given table of contents:
{toc}"""

TOC_TRANSFORM_COMPLETE_PROMPT = """You are given a raw table of contents and a cleaned table of contents.
Your job is to check whether the cleaned table of contents is complete.

Reply format:
{{
    "thinking": <why you think the cleaned table of contents is or is not complete>,
    "completed": "yes" or "no"
}}
Directly return the final JSON structure. Do not output anything else.

Raw table of contents:
{raw}

Cleaned table of contents:
{cleaned}"""

TOC_TRANSFORM_CONTINUE_PROMPT = """Your task is to continue a table of contents JSON structure that was cut off.

The raw table of contents is:
{raw}

The incomplete transformed table of contents JSON is:
{partial}

Continue the JSON structure. Directly output only the remaining part of the JSON structure."""

# ---------------------------------------------------------------------------
# Physical index resolution
# ---------------------------------------------------------------------------

TOC_INDEX_EXTRACT_PROMPT = """You are given a table of contents in JSON and several pages of a document. Your job is to add the physical_index to the table of contents.

{page_tag_note}

{structure_note}

Reply format:
[
    {{
        "structure": <structure code, "x.x.x" or None> (string),
        "title": <title of the section>,
        "physical_index": "<physical_index_X>" (keep the format)
    }},
    ...
]

Only add the physical_index to sections that start in the provided pages.
If a section is not in the provided pages, leave its physical_index out.
Directly return the final JSON structure. Do not output anything else.

Table of contents:
{toc}

Document pages:
{content}"""

ADD_PAGE_NUMBER_PROMPT = """You are given a JSON structure of a document and one part of the document. Your task is to check, for each section in the structure, whether it starts in the given part.

{page_tag_note}

If the section starts in the given part, set "start": "yes" and "physical_index": "<physical_index_X>".
If the section does not start in the given part, set "start": "no" and "physical_index": None.

Reply format:
[
    {{
        "structure": <structure code, "x.x.x" or None> (string),
        "title": <title of the section>,
        "start": "<yes or no>",
        "physical_index": "<physical_index_X>" (keep the format) or None
    }},
    ...
]
The given structure already holds the results for earlier parts. Fill in the current part and do not change earlier results.
Directly return the final JSON structure. Do not output anything else.

Current part of the document:
{part}

Given structure:
{structure}"""

GENERATE_TOC_INIT_PROMPT = """You are an expert in extracting hierarchical tree structures. Your task is to generate the tree structure of the document.

{structure_note}

For the title, extract the original title from the text and only fix space inconsistencies.

{page_tag_note}

For the physical_index, give the physical index of the page where the section starts. Keep the <physical_index_X> format.

Reply format:
[
    {{
        "structure": <structure code, "x.x.x"> (string),
        "title": <title of the section, keep the original title>,
        "physical_index": "<physical_index_X>" (keep the format)
    }},
    ...
]
Directly return the final JSON structure. Do not output anything else.

Given text:
{part}"""

GENERATE_TOC_CONTINUE_PROMPT = """You are an expert in extracting hierarchical tree structures.
You are given the tree structure of the previous part and the text of the current part.
Your task is to continue the tree structure from the previous part to include the current part.

{structure_note}

For the title, extract the original title from the text and only fix space inconsistencies.

{page_tag_note}

For the physical_index, give the physical index of the page where the section starts. Keep the <physical_index_X> format.

Reply format:
[
    {{
        "structure": <structure code, "x.x.x"> (string),
        "title": <title of the section, keep the original title>,
        "physical_index": "<physical_index_X>" (keep the format)
    }},
    ...
]
Directly return only the additional entries. Do not output anything else.

Given text:
{part}

Previous tree structure:
{structure}"""

TOC_ITEM_FIXER_PROMPT = """You are given a section title and several pages of a document. Your job is to find the physical index of the page where the section starts.

{page_tag_note}

Reply format:
{{
    "thinking": <which page, opened and closed by <physical_index_X>, contains the start of this section>,
    "physical_index": "<physical_index_X>" (keep the format)
}}
Directly return the final JSON structure. Do not output anything else.

Section title:
{title}

Document pages:
{content}"""

# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------

TITLE_CHECK_PROMPT = """Your job is to check whether the given section appears or starts in the given page_text.

Note: do fuzzy matching and ignore any space inconsistency in the page_text.

The given section title is {title}.
The given page_text is {page_text}.

Reply format:
{{
    "thinking": <why you think the section does or does not appear or start in the page_text>,
    "answer": "yes or no" (yes if the section appears or starts in the page_text, no otherwise)
}}
Directly return the final JSON structure. Do not output anything else."""

TITLE_START_CHECK_PROMPT = """You will be given the current section title and the current page_text.
Your job is to check whether the current section starts at the beginning of the given page_text.
If there is other content before the section title, the section does not start at the beginning.
If the section title is the first content of the page_text, the section starts at the beginning.

Note: do fuzzy matching and ignore any space inconsistency in the page_text.

The given section title is {title}.
The given page_text is {page_text}.

Reply format:
{{
    "thinking": <why you think the section does or does not start at the beginning of the page_text>,
    "start_begin": "yes or no" (yes if the section starts at the beginning of the page_text, no otherwise)
}}
Directly return the final JSON structure. Do not output anything else."""

# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------

NODE_SUMMARY_PROMPT = """You are given a part of a document. Your task is to describe the main points covered in this part.

Partial document text: {text}

Directly return the description. Do not include any other text."""

DOC_DESCRIPTION_PROMPT = """You are an expert in describing documents.
You are given the structure of a document. Your task is to write a one-sentence description of the document that makes it easy to tell apart from other documents.

Document structure: {structure}

Directly return the description. Do not include any other text."""


def _fill(template: str, **kwargs) -> str:
    return template.format(
        structure_note=STRUCTURE_CODE_NOTE,
        page_tag_note=PAGE_TAG_NOTE,
        **kwargs,
    )


def toc_detection(content: str) -> str:
    return TOC_DETECTION_PROMPT.format(content=content)


def page_index_detection(toc: str) -> str:
    return PAGE_INDEX_DETECTION_PROMPT.format(toc=toc)


def toc_transform(toc: str) -> str:
    return _fill(TOC_TRANSFORM_PROMPT, toc=toc)


def toc_transform_complete(raw: str, cleaned: str) -> str:
    return TOC_TRANSFORM_COMPLETE_PROMPT.format(raw=raw, cleaned=cleaned)


def toc_transform_continue(raw: str, partial: str) -> str:
    return TOC_TRANSFORM_CONTINUE_PROMPT.format(raw=raw, partial=partial)


def toc_index_extract(toc: str, content: str) -> str:
    return _fill(TOC_INDEX_EXTRACT_PROMPT, toc=toc, content=content)


def add_page_number(part: str, structure: str) -> str:
    return _fill(ADD_PAGE_NUMBER_PROMPT, part=part, structure=structure)


def generate_toc_init(part: str) -> str:
    return _fill(GENERATE_TOC_INIT_PROMPT, part=part)


def generate_toc_continue(structure: str, part: str) -> str:
    return _fill(GENERATE_TOC_CONTINUE_PROMPT, part=part, structure=structure)


def toc_item_fixer(title: str, content: str) -> str:
    return _fill(TOC_ITEM_FIXER_PROMPT, title=title, content=content)


def title_check(title: str, page_text: str) -> str:
    return TITLE_CHECK_PROMPT.format(title=title, page_text=page_text)


def title_start_check(title: str, page_text: str) -> str:
    return TITLE_START_CHECK_PROMPT.format(title=title, page_text=page_text)


def node_summary(text: str) -> str:
    return NODE_SUMMARY_PROMPT.format(text=text)


def doc_description(structure: str) -> str:
    return DOC_DESCRIPTION_PROMPT.format(structure=structure)
