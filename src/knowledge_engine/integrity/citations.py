"""Citation integrity validation against the working tree.

A citation records the digest of the whole cited file. Validation re-hashes
the file and compares: equal is ``valid``, different is ``changed``, unreadable
is ``missing``. The line number in the citation path is never used.
"""

import logging
import re
import threading
from pathlib import Path

from knowledge_engine.integrity.hashing import hash_file
from knowledge_engine.models.entry import Citation, KnowledgeEntry
from knowledge_engine.models.maintenance import (
    CitationCheck,
    CitationStatus,
    CitationValidationReport,
    EntryCitationReport,
)

logger = logging.getLogger(__name__)

_LINE_SUFFIX_RE = re.compile(r"^(?P<file>.+):(?P<line>\d+)(?:-\d+)?$")


def parse_citation_path(path: str) -> tuple[str, int | None]:
    """Split ``file:line`` into its file and line parts.

    Only a numeric suffix (``:42`` or ``:42-50``) is treated as a line hint.
    """
    match = _LINE_SUFFIX_RE.match(path)
    if match is None:
        return path, None
    return match.group("file"), int(match.group("line"))


def make_citation(path: str, cwd: Path | str) -> Citation:
    """Record a citation for ``file:line`` with the file's current digest."""
    file_part, _line = parse_citation_path(path)
    return Citation(path=path, file_hash=hash_file(Path(cwd) / file_part))


class FileHashCache:
    """Per-run map of file path to digest (None when unreadable).

    Safe to share between worker threads. Each path is hashed at most once:
    concurrent lookups of the same uncached path wait on a per-path lock.
    """

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._hashes: dict[str, str | None] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self.computed = 0

    def get_or_compute(self, file_path: str, cwd: Path) -> str | None:
        """Return the cached digest for ``file_path``, hashing it on first use."""
        with self._guard:
            if file_path in self._hashes:
                return self._hashes[file_path]
            lock = self._locks.setdefault(file_path, threading.Lock())

        with lock:
            with self._guard:
                if file_path in self._hashes:
                    return self._hashes[file_path]
            try:
                digest: str | None = hash_file(cwd / file_path)
            except OSError:
                digest = None
            with self._guard:
                self._hashes[file_path] = digest
                self.computed += 1
            return digest

    def get(self, file_path: str) -> str | None:
        """Cached digest, or None if unreadable or never computed."""
        with self._guard:
            return self._hashes.get(file_path)

    def __contains__(self, file_path: object) -> bool:
        with self._guard:
            return file_path in self._hashes

    def __len__(self) -> int:
        with self._guard:
            return len(self._hashes)


def validate_citation(citation: Citation, cwd: Path | str, cache: FileHashCache) -> CitationCheck:
    """Compare a citation's recorded digest with the current file on disk."""
    file_path, _line = parse_citation_path(citation.path)
    current = cache.get_or_compute(file_path, Path(cwd))

    if current is None:
        return CitationCheck(path=citation.path, status=CitationStatus.MISSING)
    if current == citation.file_hash:
        return CitationCheck(
            path=citation.path, status=CitationStatus.VALID, current_file_hash=current
        )
    return CitationCheck(
        path=citation.path, status=CitationStatus.CHANGED, current_file_hash=current
    )


class CitationValidator:
    """Validates entry citations against a working tree, sharing one hash cache per run."""

    def __init__(self, cwd: Path | str, cache: FileHashCache | None = None):
        """Initialize with the directory citation paths are relative to."""
        self.cwd = Path(cwd)
        self.cache = cache if cache is not None else FileHashCache()

    def validate(self, citation: Citation) -> CitationCheck:
        """Validate a single citation."""
        return validate_citation(citation, self.cwd, self.cache)

    def validate_entry(self, entry: KnowledgeEntry) -> EntryCitationReport:
        """Validate every citation of one entry and count the outcomes."""
        report = EntryCitationReport(
            entry_id=entry.id, title=entry.title, total=len(entry.citations)
        )
        for citation in entry.citations:
            check = self.validate(citation)
            report.checks.append(check)
            if check.status is CitationStatus.VALID:
                report.valid += 1
            elif check.status is CitationStatus.CHANGED:
                report.changed += 1
            else:
                report.missing += 1
        return report

    def validate_entries(self, entries: list[KnowledgeEntry]) -> CitationValidationReport:
        """Aggregate citation health over a batch. Uncited entries are counted, not failed."""
        summary = CitationValidationReport(total_entries=len(entries))
        for entry in entries:
            if not entry.citations:
                summary.uncited_entries += 1
                continue
            try:
                report = self.validate_entry(entry)
            except Exception:
                logger.warning("Citation validation failed for %s", entry.id, exc_info=True)
                summary.errored += 1
                continue
            summary.cited_entries += 1
            summary.total_citations += report.total
            summary.valid += report.valid
            summary.changed += report.changed
            summary.missing += report.missing
            summary.entries.append(report)
        return summary
