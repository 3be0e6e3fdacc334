"""String-scanning helpers for wiki HTML.

The target markup comes from wiki templates with no public schema and no
version stability, so extraction is done with targeted regex/index scans
instead of a DOM. Every helper is pure and returns empty results rather
than raising when the expected structure is missing.
"""
from __future__ import annotations

import re
from typing import Iterator, List, Optional

_ENTITIES = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&#039;", "'"),
    ("&#160;", " "),
    ("&#58;", ":"),
    ("&nbsp;", " "),
    ("&ndash;", "-"),
    ("&#8211;", "-"),
)

_TAG_RE = re.compile(r"<[^>]+>")
_HREF_RE = re.compile(r'href="([^"]+)"')
_TABLE_RE = re.compile(r"<table([^>]*)>([\s\S]*?)</table>", re.IGNORECASE)
_ROW_RE = re.compile(r"<tr([^>]*)>([\s\S]*?)</tr>", re.IGNORECASE)
_CELL_RE = re.compile(r"<td[^>]*>([\s\S]*?)</td>", re.IGNORECASE)


def decode_entities(text: str) -> str:
    for entity, repl in _ENTITIES:
        text = text.replace(entity, repl)
    return text


def strip_tags(html: str) -> str:
    return decode_entities(_TAG_RE.sub("", html)).strip()


def extract_href(html: str) -> Optional[str]:
    m = _HREF_RE.search(html)
    return decode_entities(m.group(1)) if m else None


def extract_balanced_blocks(html: str, marker_class: str, tag: str = "div") -> List[str]:
    """Return the full HTML of every `tag` element carrying marker_class.

    Regex alone cannot bound an element whose content nests more elements
    of the same tag, so nesting depth is tracked over sequential index
    scans for opening and closing tags.
    """
    blocks: List[str] = []
    open_tag = f"<{tag}"
    close_tag = f"</{tag}>"
    search_start = 0

    while True:
        idx = html.find(marker_class, search_start)
        if idx == -1:
            break

        block_start = html.rfind(open_tag, 0, idx)
        if block_start == -1:
            search_start = idx + len(marker_class)
            continue

        depth = 0
        pos = block_start
        block_end = -1
        while pos < len(html):
            next_open = html.find(open_tag, pos)
            next_close = html.find(close_tag, pos)
            if next_close == -1:
                break
            if next_open != -1 and next_open < next_close:
                depth += 1
                pos = next_open + len(open_tag)
            else:
                depth -= 1
                if depth <= 0:
                    block_end = next_close + len(close_tag)
                    break
                pos = next_close + len(close_tag)

        if block_end > block_start:
            blocks.append(html[block_start:block_end])
            search_start = block_end
        else:
            search_start = idx + len(marker_class)

    return blocks


def iter_tables(html: str, class_contains: Optional[str] = None) -> Iterator[str]:
    """Yield the inner HTML of each <table>, optionally filtered by class."""
    for m in _TABLE_RE.finditer(html):
        attrs = m.group(1)
        if class_contains is not None:
            cls = re.search(r'class="([^"]*)"', attrs)
            if not cls or class_contains not in cls.group(1):
                continue
        yield m.group(2)


def iter_rows(table_html: str, skip_header: bool = True, skip_hidden: bool = True) -> Iterator[str]:
    """Yield the inner HTML of each <tr>, skipping header and hidden rows."""
    for m in _ROW_RE.finditer(table_html):
        attrs, inner = m.group(1), m.group(2)
        if skip_header and "<th" in inner:
            continue
        if skip_hidden and "display:none" in attrs.replace(" ", ""):
            continue
        yield inner


def row_cells(row_html: str) -> List[str]:
    """Raw inner HTML of each <td> in a row."""
    return [m.group(1) for m in _CELL_RE.finditer(row_html)]


def parse_placement(text: str) -> Optional[int]:
    m = re.search(r"(\d+)", re.sub(r"\s+", " ", decode_entities(text)))
    return int(m.group(1)) if m else None


def parse_prize(text: str) -> float:
    cleaned = re.sub(r"[$€£,\s]", "", text)
    try:
        return float(cleaned)
    except ValueError:
        return 0.0
