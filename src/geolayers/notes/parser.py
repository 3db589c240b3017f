from __future__ import annotations

import logging
import re
from typing import Any, Iterator, Optional
from urllib.parse import unquote

import yaml

from .models import Block, Heading, NoteMetadata, Outlink, SubpathMatch


logger = logging.getLogger(__name__)

_FRONTMATTER_DELIM = "---"
_CODE_FENCE = "```"

_HEADING_RE = re.compile(r"^[ \t]{0,3}(#{1,6})[ \t]+(.*)$")
_BLOCK_ID_RE = re.compile(r"\s\^([A-Za-z0-9-]+)\s*$")
_INLINE_TAG_RE = re.compile(r"(^|[\s\(\[\{<\"':;.,!?])#([\w/-]+)")
_WIKILINK_RE = re.compile(r"\[\[([^\[\]]+?)\]\]")
_MARKDOWN_LINK_RE = re.compile(r"(?<!!)\[([^\]\n]*)\]\(([^()\s]+)\)")
_URL_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


def split_front_matter(text: str) -> tuple[Optional[str], int]:
    """Return the raw front matter YAML and the offset where the body starts.

    A note without a leading ``---`` block returns ``(None, 0)``.
    """
    if not (text.startswith(_FRONTMATTER_DELIM + "\n") or text.startswith(_FRONTMATTER_DELIM + "\r\n")):
        return None, 0

    # Find closing delimiter line
    offset = text.find("\n") + 1
    end = None
    yaml_end = None
    while offset < len(text):
        next_nl = text.find("\n", offset)
        if next_nl == -1:
            line = text[offset:]
            line_end_off = len(text)
        else:
            line = text[offset:next_nl]
            line_end_off = next_nl

        if line.rstrip("\r") == _FRONTMATTER_DELIM:
            yaml_end = offset
            end = line_end_off + 1 if next_nl != -1 else len(text)
            break
        offset = line_end_off + 1 if next_nl != -1 else len(text)

    if end is None or yaml_end is None:
        return None, 0

    first_nl = text.find("\n") + 1
    return text[first_nl:yaml_end], end


def parse_front_matter(text: str) -> Optional[dict[str, Any]]:
    raw, _ = split_front_matter(text)
    if raw is None:
        return None
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        logger.warning(f"Malformed front matter, ignoring it: {e}")
        return None
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Front matter is not a mapping, ignoring it: {type(data).__name__}")
        return None
    return data


def _front_matter_tags(front_matter: Optional[dict[str, Any]]) -> list[str]:
    if not front_matter:
        return []
    value = front_matter.get("tags", front_matter.get("tag"))
    if value is None:
        return []
    if isinstance(value, str):
        items = re.split(r"[,\s]+", value)
    elif isinstance(value, list):
        items = [str(v) for v in value if v is not None]
    else:
        items = [str(value)]
    tags = []
    for item in items:
        t = item.strip().strip('"').strip("'").lstrip("#").strip()
        if t:
            tags.append("#" + t)
    return tags


def _parse_link_inner(inner: str) -> Optional[tuple[str, Optional[str], Optional[str]]]:
    left, alias = (inner.split("|", 1) + [None])[:2]
    alias = alias.strip() if alias is not None else None
    if alias == "":
        alias = None
    target_part = left
    section = None
    if "#" in left:
        target_part, section_part = left.split("#", 1)
        section_part = section_part.strip()
        section = section_part if section_part else None
    target = target_part.strip()
    if not target and not section:
        return None
    return target, section, alias


def _front_matter_links(front_matter: Optional[dict[str, Any]]) -> list[Outlink]:
    links: list[Outlink] = []

    def walk(key: str, value: Any) -> None:
        if isinstance(value, str):
            for m in _WIKILINK_RE.finditer(value):
                parsed = _parse_link_inner(m.group(1))
                if parsed is None:
                    continue
                target, section, alias = parsed
                links.append(
                    Outlink(
                        ord=len(links),
                        target=target,
                        section=section,
                        alias=alias,
                        raw=m.group(0),
                        key=key,
                    )
                )
        elif isinstance(value, list):
            for item in value:
                walk(key, item)
        elif isinstance(value, dict):
            for sub_value in value.values():
                walk(key, sub_value)

    for key, value in (front_matter or {}).items():
        walk(str(key), value)
    return links


def _iter_lines(text: str) -> Iterator[tuple[int, int, str]]:
    offset = 0
    line_no = 0
    while True:
        nl = text.find("\n", offset)
        if nl == -1:
            yield line_no, offset, text[offset:]
            break
        yield line_no, offset, text[offset:nl].rstrip("\r")
        offset = nl + 1
        line_no += 1


def _outside_inline_code_segments(line: str) -> list[tuple[int, int]]:
    segments: list[tuple[int, int]] = []
    in_code = False
    seg_start = 0
    for idx, ch in enumerate(line):
        if ch != "`":
            continue
        if in_code:
            seg_start = idx + 1
            in_code = False
        else:
            if seg_start < idx:
                segments.append((seg_start, idx))
            in_code = True
    if not in_code and seg_start < len(line):
        segments.append((seg_start, len(line)))
    return segments


def parse_markdown(text: str, front_matter: Optional[dict[str, Any]] = None) -> NoteMetadata:
    """Parse headings, blocks, links and tags out of a note.

    All offsets are character offsets into ``text`` and lines are 0-based.
    ``front_matter`` is parsed from ``text`` when not given.
    """
    if front_matter is None:
        front_matter = parse_front_matter(text)
    _, content_start = split_front_matter(text)

    headings: list[Heading] = []
    blocks: list[Block] = []
    links: list[Outlink] = []
    inline_tags: list[str] = []

    in_fence = False
    para_start: Optional[tuple[int, int]] = None

    line_no_base = text.count("\n", 0, content_start)

    for line_no, line_start, line in _iter_lines(text[content_start:]):
        file_line_no = line_no_base + line_no
        absolute_line_start = content_start + line_start
        stripped = line.lstrip(" \t")
        if stripped.startswith(_CODE_FENCE):
            in_fence = not in_fence
            para_start = None
            continue
        if in_fence:
            continue
        if not stripped:
            para_start = None
            continue

        # Headings (ATX)
        m = _HEADING_RE.match(line)
        if m:
            level = len(m.group(1))
            heading_text = m.group(2).strip()
            # Strip optional closing hashes (commonmark-ish)
            heading_text = re.sub(r"\s+#+\s*$", "", heading_text).strip()
            headings.append(
                Heading(
                    ord=len(headings),
                    level=level,
                    text=heading_text,
                    offset=absolute_line_start + (len(line) - len(stripped)),
                    end_offset=absolute_line_start + len(line),
                    line=file_line_no,
                )
            )
            para_start = None
            continue

        if para_start is None:
            para_start = (absolute_line_start, file_line_no)

        # Block ids close the paragraph they end
        block_match = _BLOCK_ID_RE.search(line)
        if block_match:
            blocks.append(
                Block(
                    id=block_match.group(1),
                    offset=para_start[0],
                    end_offset=absolute_line_start + len(line),
                    start_line=para_start[1],
                    end_line=file_line_no,
                )
            )
            para_start = None

        # Outlinks + inline tags outside inline code
        for seg_start, seg_end in _outside_inline_code_segments(line):
            seg = line[seg_start:seg_end]
            seg_offset = absolute_line_start + seg_start

            for wm in _WIKILINK_RE.finditer(seg):
                parsed = _parse_link_inner(wm.group(1))
                if parsed is None:
                    continue
                target, section, alias = parsed
                links.append(
                    Outlink(
                        ord=len(links),
                        target=target,
                        section=section,
                        alias=alias,
                        raw=wm.group(0),
                        offset=seg_offset + wm.start(),
                        end_offset=seg_offset + wm.end(),
                        line=file_line_no,
                    )
                )

            for mm in _MARKDOWN_LINK_RE.finditer(seg):
                href = mm.group(2)
                if _URL_SCHEME_RE.match(href):
                    continue
                parsed = _parse_link_inner(unquote(href))
                if parsed is None:
                    continue
                target, section, _ = parsed
                links.append(
                    Outlink(
                        ord=len(links),
                        target=target,
                        section=section,
                        alias=mm.group(1).strip() or None,
                        raw=mm.group(0),
                        offset=seg_offset + mm.start(),
                        end_offset=seg_offset + mm.end(),
                        line=file_line_no,
                    )
                )

            for tm in _INLINE_TAG_RE.finditer(seg):
                name = tm.group(2)
                if name:
                    inline_tags.append("#" + name)

    tags: list[str] = []
    for tag in _front_matter_tags(front_matter) + inline_tags:
        if tag not in tags:
            tags.append(tag)

    return NoteMetadata(
        headings=headings,
        blocks=blocks,
        links=links,
        frontmatter_links=_front_matter_links(front_matter),
        tags=tags,
    )


def heading_and_block_for_offset(
    metadata: Optional[NoteMetadata], offset: int
) -> tuple[Optional[Heading], Optional[Block]]:
    """The last heading starting at or before ``offset`` and the block containing it."""
    heading = None
    block = None
    if metadata is None:
        return None, None
    for h in metadata.headings:
        if h.offset <= offset:
            heading = h
    for b in metadata.blocks:
        if b.offset <= offset <= b.end_offset:
            block = b
    return heading, block


def resolve_subpath(metadata: Optional[NoteMetadata], subpath: str) -> Optional[SubpathMatch]:
    """Resolve a link anchor (``Heading#Sub`` or ``^block-id``) against a note."""
    if metadata is None:
        return None
    subpath = subpath.strip().lstrip("#").strip()
    if not subpath:
        return None

    if subpath.startswith("^"):
        block_id = subpath[1:].lower()
        for b in metadata.blocks:
            if b.id.lower() == block_id:
                return SubpathMatch(kind="block", block=b)
        return None

    parts = [p.strip().lower() for p in subpath.split("#") if p.strip()]
    idx = 0
    for h in metadata.headings:
        if h.text.lower() != parts[idx]:
            continue
        if idx == len(parts) - 1:
            return SubpathMatch(kind="heading", heading=h)
        idx += 1
    return None
