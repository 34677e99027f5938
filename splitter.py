"""
Marker-based splitting of XHTML documents into page-sized fragments.

A boundary is the start of any <div> opening tag whose attributes contain the
marker text (case-insensitive, starting on a word boundary).  The tag itself
begins the next fragment.  Documents that yield fewer than two non-blank
fragments are left alone.
"""

import re
from collections import OrderedDict
from pathlib import Path

from reconstructor import body_region, clean_fragment, write_fragments

_WHITESPACE_LINE_RE = re.compile(r"^\s*$", re.MULTILINE)


# ============================================================================
# Data structures
# ============================================================================

class SplitRecord:
    """One source document and the fragment files that replaced it."""

    def __init__(self, source: str, fragments: list[str], original_removed: bool = False):
        self.source = source
        self.fragments = fragments
        self.original_removed = original_removed

    def __repr__(self):
        return f"{self.source} -> {len(self.fragments)} fragments"


class SplitResult:
    """Ordered mapping of split source path -> fragment paths.

    Paths are POSIX-style and relative to the working directory.  Only
    documents that produced two or more fragments are recorded.
    """

    def __init__(self):
        self._records: OrderedDict[str, SplitRecord] = OrderedDict()

    def add(self, record: SplitRecord) -> None:
        self._records[record.source] = record

    def __iter__(self):
        return iter(self._records.values())

    def __len__(self):
        return len(self._records)

    def __contains__(self, source: str) -> bool:
        return source in self._records

    def __getitem__(self, source: str) -> SplitRecord:
        return self._records[source]

    @property
    def sources(self) -> list[str]:
        return list(self._records)

    def fragments(self) -> list[str]:
        """All fragment paths, in discovery order then fragment order."""
        result: list[str] = []
        for record in self._records.values():
            result.extend(record.fragments)
        return result

    @property
    def total_fragments(self) -> int:
        return sum(len(r.fragments) for r in self._records.values())


# ============================================================================
# Splitting
# ============================================================================

def compile_boundary_pattern(marker: str) -> re.Pattern:
    """Zero-width pattern matching just before each marker-bearing <div>."""
    safe_marker = re.escape(marker)
    return re.compile(rf"(?=<div[^>]*\b{safe_marker}[^>]*>)", re.IGNORECASE)


def split_markup(content: str, marker: str) -> list[str]:
    """Split raw markup at marker boundaries.

    Returns the ordered, non-blank fragment texts, or an empty list when the
    document should not be split (marker absent, or one fragment at most).
    """
    if not re.search(re.escape(marker), content, re.IGNORECASE):
        return []

    parts = compile_boundary_pattern(marker).split(content)

    # The segment before the first boundary is the header preamble; it goes
    # when blank or when it ends in a whitespace-only line.
    if len(parts) > 1 and (not parts[0].strip() or _WHITESPACE_LINE_RE.search(parts[0])):
        parts = parts[1:]

    parts = [p for p in parts if p.strip()]
    if len(parts) <= 1:
        return []
    return parts


def split_documents(work_dir: Path, documents: list[str], marker: str) -> SplitResult:
    """Split every document that carries the marker; return what was replaced.

    ``documents`` are POSIX paths relative to ``work_dir``, processed in the
    given order.  Documents without the marker or with a single fragment are
    skipped and left untouched.
    """
    result = SplitResult()
    skipped = 0

    for rel_path in documents:
        abs_path = work_dir / rel_path
        try:
            content = abs_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            print(f"  WARNING: {rel_path}: not valid UTF-8, left unchanged ({exc.reason})")
            skipped += 1
            continue

        # Boundaries after the last </body> never start a fragment.
        fragments = [f for f in split_markup(body_region(content), marker) if clean_fragment(f)]
        if len(fragments) <= 1:
            skipped += 1
            continue

        print(f"  Splitting {rel_path} into {len(fragments)} fragments...")
        written = write_fragments(work_dir, rel_path, content, fragments)
        result.add(SplitRecord(rel_path, written, original_removed=True))

        for name in written[:5]:
            print(f"       . {name}")
        if len(written) > 5:
            print(f"       ... and {len(written) - 5} more")

    print(
        f"\n  Split {len(result)} document(s) into {result.total_fragments} "
        f"fragments; {skipped} left unchanged."
    )
    return result
