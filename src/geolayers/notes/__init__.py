"""Markdown note metadata and the vault-backed document store."""

from .models import Block, Heading, NoteMetadata, Outlink, SourceRef, SubpathMatch
from .parser import (
    heading_and_block_for_offset,
    parse_front_matter,
    parse_markdown,
    resolve_subpath,
    split_front_matter,
)
from .store import DocumentStore, VaultDocumentStore

__all__ = [
    "Block",
    "DocumentStore",
    "Heading",
    "NoteMetadata",
    "Outlink",
    "SourceRef",
    "SubpathMatch",
    "VaultDocumentStore",
    "heading_and_block_for_offset",
    "parse_front_matter",
    "parse_markdown",
    "resolve_subpath",
    "split_front_matter",
]
