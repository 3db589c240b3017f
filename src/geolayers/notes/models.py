from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class SourceRef:
    """Handle to a document in the vault, by vault-relative posix path."""

    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def basename(self) -> str:
        name = self.name
        if "." in name:
            return name.rsplit(".", 1)[0]
        return name

    @property
    def extension(self) -> str:
        name = self.name
        if "." in name:
            return name.rsplit(".", 1)[1].lower()
        return ""

    @property
    def folder(self) -> str:
        if "/" in self.path:
            return self.path.rsplit("/", 1)[0]
        return ""


@dataclass(frozen=True)
class Heading:
    ord: int
    level: int
    text: str
    offset: int
    end_offset: int
    line: int


@dataclass(frozen=True)
class Block:
    id: str
    offset: int
    end_offset: int
    start_line: int
    end_line: int


@dataclass(frozen=True)
class Outlink:
    ord: int
    target: str
    section: Optional[str]
    alias: Optional[str]
    raw: str
    offset: Optional[int] = None
    end_offset: Optional[int] = None
    line: Optional[int] = None
    # Front matter key holding the link, for links found in front matter
    key: Optional[str] = None

    @property
    def link(self) -> str:
        if self.section:
            return f"{self.target}#{self.section}"
        return self.target

    @property
    def target_name(self) -> str:
        name = self.target.rsplit("/", 1)[-1]
        if name.lower().endswith(".md"):
            name = name[:-3]
        return name

    @property
    def display_text(self) -> str:
        if self.alias:
            return self.alias
        if self.section:
            return f"{self.target} > {self.section}"
        return self.target


@dataclass(frozen=True)
class NoteMetadata:
    headings: list[Heading] = field(default_factory=list)
    blocks: list[Block] = field(default_factory=list)
    links: list[Outlink] = field(default_factory=list)
    frontmatter_links: list[Outlink] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SubpathMatch:
    kind: str  # "heading" or "block"
    heading: Optional[Heading] = None
    block: Optional[Block] = None
