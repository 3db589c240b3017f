from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

from .models import NoteMetadata, SourceRef
from .parser import parse_front_matter, parse_markdown


logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    def list_sources(self) -> list[SourceRef]: ...

    def read_text(self, source: SourceRef) -> str: ...

    def get_front_matter(self, source: SourceRef) -> Optional[dict[str, Any]]: ...

    def get_metadata(self, source: SourceRef) -> Optional[NoteMetadata]: ...

    def resolve_link(self, link_text: str, from_source: Optional[SourceRef]) -> Optional[SourceRef]: ...

    def get_all_tags(self, source: SourceRef) -> list[str]: ...


def _is_excluded(rel_posix: str, exclude_globs: list[str]) -> bool:
    for pat in exclude_globs:
        if fnmatch.fnmatchcase(rel_posix, pat):
            return True
    return False


class VaultDocumentStore:
    """Document store over a directory of markdown notes and track files.

    Parsed front matter and metadata are cached per path and reused while
    the file's ``(mtime_ns, size)`` is unchanged. Link resolution uses a
    name index built on first use and dropped by ``invalidate``.
    """

    def __init__(
        self,
        vault_root: Path,
        *,
        exclude_globs: Optional[list[str]] = None,
        extensions: Optional[list[str]] = None,
    ):
        self.vault_root = Path(vault_root)
        self.exclude_globs = list(exclude_globs or [])
        self.extensions = sorted({"md", *(e.lower().lstrip(".") for e in (extensions or []))})
        self._cache: dict[str, tuple[tuple[int, int], Optional[dict[str, Any]], NoteMetadata]] = {}
        # Lowercased path -> source and lowercased name -> sources, built on first resolve
        self._paths: Optional[dict[str, SourceRef]] = None
        self._names: Optional[dict[str, list[SourceRef]]] = None

    def _abs(self, source: SourceRef) -> Path:
        return self.vault_root / source.path

    def list_sources(self) -> list[SourceRef]:
        sources: list[SourceRef] = []
        for p in self.vault_root.rglob("*"):
            if not p.is_file():
                continue
            if p.suffix.lower().lstrip(".") not in self.extensions:
                continue
            rel_posix = p.relative_to(self.vault_root).as_posix()
            if _is_excluded(rel_posix, self.exclude_globs):
                continue
            sources.append(SourceRef(rel_posix))
        sources.sort(key=lambda s: s.path)
        return sources

    def source_for(self, path: str) -> SourceRef:
        return SourceRef(Path(path).as_posix())

    def exists(self, source: SourceRef) -> bool:
        return self._abs(source).is_file()

    def read_text(self, source: SourceRef) -> str:
        return self._abs(source).read_text(encoding="utf-8")

    def write_text(self, source: SourceRef, text: str) -> None:
        path = self._abs(source)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        self.invalidate(source)

    def invalidate(self, source: Optional[SourceRef] = None) -> None:
        self._paths = None
        self._names = None
        if source is None:
            self._cache.clear()
        else:
            self._cache.pop(source.path, None)

    def _parsed(self, source: SourceRef) -> Optional[tuple[Optional[dict[str, Any]], NoteMetadata]]:
        if source.extension != "md":
            return None
        path = self._abs(source)
        try:
            st = path.stat()
        except FileNotFoundError:
            self._cache.pop(source.path, None)
            return None
        key = (int(st.st_mtime_ns), int(st.st_size))
        cached = self._cache.get(source.path)
        if cached is not None and cached[0] == key:
            return cached[1], cached[2]

        text = path.read_text(encoding="utf-8")
        front_matter = parse_front_matter(text)
        metadata = parse_markdown(text, front_matter)
        self._cache[source.path] = (key, front_matter, metadata)
        return front_matter, metadata

    def get_front_matter(self, source: SourceRef) -> Optional[dict[str, Any]]:
        parsed = self._parsed(source)
        return parsed[0] if parsed else None

    def get_metadata(self, source: SourceRef) -> Optional[NoteMetadata]:
        parsed = self._parsed(source)
        return parsed[1] if parsed else None

    def get_all_tags(self, source: SourceRef) -> list[str]:
        metadata = self.get_metadata(source)
        return list(metadata.tags) if metadata else []

    def _link_index(self) -> tuple[dict[str, SourceRef], dict[str, list[SourceRef]]]:
        if self._paths is None or self._names is None:
            paths: dict[str, SourceRef] = {}
            names: dict[str, list[SourceRef]] = {}
            for source in self.list_sources():
                paths[source.path.lower()] = source
                names.setdefault(source.name.lower(), []).append(source)
                if source.extension == "md":
                    names.setdefault(source.basename.lower(), []).append(source)
            self._paths, self._names = paths, names
            logger.debug(f"Link index built over {len(paths)} sources")
        return self._paths, self._names

    def resolve_link(self, link_text: str, from_source: Optional[SourceRef]) -> Optional[SourceRef]:
        """Resolve a link the way Obsidian picks the first matching linkpath.

        ``#subpath`` is ignored and an empty target points back at
        ``from_source``. Ties prefer the linking note's folder, then the
        shortest path.
        """
        target = link_text.split("#", 1)[0].strip()
        if not target:
            return from_source
        target = target.lstrip("/")
        lowered = target.lower()

        paths, names = self._link_index()
        if "/" in lowered:
            candidates = [s for s in (paths.get(lowered), paths.get(lowered + ".md")) if s is not None]
        else:
            candidates = names.get(lowered, [])

        if not candidates:
            return None

        from_folder = from_source.folder if from_source else None

        def rank(s: SourceRef) -> tuple[int, int, str]:
            return (0 if s.folder == from_folder else 1, len(s.path), s.path)

        return sorted(candidates, key=rank)[0]
