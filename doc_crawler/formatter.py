from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from .config import OutputConfig
from .models import PageResult, PageStatus

PAGE_SEPARATOR = "\n\n---\n\n"
PAGE_METADATA_FIELDS = ("author", "date", "description")
WORDS_PER_MINUTE = 200

_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")
_FENCE = re.compile(r"^```")
_CODE_BLOCK = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE = re.compile(r"`[^`]+`")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_MARKUP = re.compile(r"[#*_`-]")


def slugify(title: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", title.lower()).strip()
    return re.sub(r"[\s_]+", "-", slug)


def build_toc(markdown: str, max_depth: int = 3) -> str:
    """Indented link list for every heading up to ``max_depth``, skipping code blocks."""
    entries: List[str] = []
    in_code = False
    for line in markdown.splitlines():
        if _FENCE.match(line):
            in_code = not in_code
            continue
        if in_code:
            continue
        match = _HEADING.match(line)
        if not match:
            continue
        level = len(match.group(1))
        if level > max_depth:
            continue
        title = match.group(2).strip()
        entries.append(f"{'  ' * (level - 1)}- [{title}](#{slugify(title)})")
    return "\n".join(entries)


def count_words(markdown: str) -> int:
    """Words of prose, ignoring code, link targets and markdown punctuation."""
    text = _CODE_BLOCK.sub("", markdown)
    text = _INLINE_CODE.sub("", text)
    text = _LINK.sub(r"\1", text)
    text = _MARKUP.sub("", text)
    return len(text.split())


def reading_minutes(words: int) -> int:
    return math.ceil(words / WORDS_PER_MINUTE)


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def render_page(page: PageResult, output: OutputConfig) -> str:
    """Render one converted page with its metadata block or title heading."""
    parts: List[str] = []
    if output.include_metadata:
        words = count_words(page.content)
        lines = ["---", f'title: "{_quote(page.title or "Untitled")}"', f'url: "{_quote(page.url)}"']
        for key in PAGE_METADATA_FIELDS:
            if page.metadata.get(key):
                lines.append(f'{key}: "{_quote(page.metadata[key])}"')
        lines += [f"word_count: {words}", f'reading_time: "{reading_minutes(words)} min"', "---"]
        parts.append("\n".join(lines))
    elif page.title and not page.content.lstrip().startswith("# "):
        parts.append(f"# {page.title}")
    parts.append(page.content)
    return "\n\n".join(parts)


def _totals(pages: List[PageResult]) -> Tuple[List[PageResult], int, int]:
    successful = [p for p in pages if p.success and p.content]
    words = sum(count_words(p.content) for p in successful)
    minutes = sum(reading_minutes(count_words(p.content)) for p in successful)
    return successful, words, minutes


def document_header(pages: List[PageResult], generated: str) -> str:
    successful, words, minutes = _totals(pages)
    return (
        "---\n"
        'title: "Documentation Collection"\n'
        f'generated: "{generated}"\n'
        f"pages: {len(successful)}\n"
        f"total_words: {words}\n"
        f'reading_time: "{minutes} minutes"\n'
        "---\n\n"
    )


def stats_section(pages: List[PageResult], generated: str) -> str:
    successful, words, minutes = _totals(pages)
    failed = sum(1 for p in pages if p.status is PageStatus.FAILED)
    average = round(words / len(successful)) if successful else 0
    return "\n".join(
        [
            "## Collection Statistics",
            "",
            f"- **Total Pages**: {len(successful) + failed}",
            f"- **Successful**: {len(successful)}",
            f"- **Failed**: {failed}",
            f"- **Total Words**: {words:,}",
            f"- **Average Words per Page**: {average:,}",
            f"- **Estimated Reading Time**: {minutes} minutes",
            f"- **Generated**: {generated}",
        ]
    )


def assemble(
    pages: Iterable[PageResult],
    output: OutputConfig,
    toc: bool = False,
    stats: bool = False,
    generated: Optional[str] = None,
) -> str:
    """Join successful pages into one document.

    ``toc`` prefixes a table of contents. ``stats`` wraps the document in a
    collection header and closes it with a statistics section."""
    pages = list(pages)
    rendered = [render_page(p, output) for p in pages if p.success and p.content]
    body = PAGE_SEPARATOR.join(rendered)
    if not body:
        return ""
    sections = [body]
    if toc:
        entries = build_toc(body, output.toc_max_depth)
        if entries:
            sections.insert(0, f"## Table of Contents\n\n{entries}")
    if not stats:
        return PAGE_SEPARATOR.join(sections)
    generated = generated or datetime.now(timezone.utc).isoformat(timespec="seconds")
    sections.append(stats_section(pages, generated))
    return document_header(pages, generated) + PAGE_SEPARATOR.join(sections)
