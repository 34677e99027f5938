"""
Find navigation links that still point at documents removed by a split.

The nav document (EPUB 3) and toc.ncx (EPUB 2) are not rewritten by the
splitter, so their entries for a split chapter go stale.  This module only
reports them; fixing the links is left to the reader.
"""

import posixpath
import warnings
from pathlib import Path
from urllib.parse import unquote

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

AUDIT_SUFFIXES = (".xhtml", ".html", ".ncx")


def _link_targets(soup: BeautifulSoup) -> list[str]:
    targets = []
    for el in soup.find_all("a", href=True):
        targets.append(el["href"])
    # NCX <content src="..."/>
    for el in soup.find_all("content", src=True):
        targets.append(el["src"])
    return targets


def _resolve(doc_rel: str, target: str) -> str | None:
    """Resolve a link target against the linking document's directory."""
    target = target.split("#")[0].strip()
    if not target or "://" in target or target.startswith(("mailto:", "/")):
        return None
    joined = posixpath.join(posixpath.dirname(doc_rel), unquote(target))
    return posixpath.normpath(joined)


def find_stale_links(work_dir: Path, removed: list[str]) -> list[tuple[str, str]]:
    """Return ``(document, target)`` pairs for links to removed documents.

    ``removed`` holds POSIX paths relative to ``work_dir``.
    """
    if not removed:
        return []
    removed_set = {posixpath.normpath(p) for p in removed}

    stale: list[tuple[str, str]] = []
    for path in sorted(work_dir.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in AUDIT_SUFFIXES:
            continue
        doc_rel = path.relative_to(work_dir).as_posix()
        soup = BeautifulSoup(path.read_bytes(), "lxml")
        for target in _link_targets(soup):
            resolved = _resolve(doc_rel, target)
            if resolved in removed_set:
                stale.append((doc_rel, target))
    return stale
