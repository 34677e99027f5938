"""
Document reconstruction — turn split fragments back into standalone XHTML pages.

Header material (XML declaration, doctype, <html>, <head>, <body>) is captured
once from the source document and wrapped around every fragment.  Anything the
source carries after its last </body> is captured for reporting only and is
never written to a fragment.
"""

import posixpath
import re
from pathlib import Path

DEFAULT_XML_DECL = '<?xml version="1.0" encoding="utf-8"?>'
DEFAULT_DOCTYPE = "<!DOCTYPE html>"
DEFAULT_HTML_OPEN = (
    '<html xmlns="http://www.w3.org/1999/xhtml" '
    'xmlns:epub="http://www.idpf.org/2007/ops">'
)
DEFAULT_HEAD = (
    '<head><title></title>'
    '<link rel="stylesheet" type="text/css" href="css/style.css"/></head>'
)
DEFAULT_BODY_OPEN = '<body style="background: white;">'

FRAGMENT_SUFFIX = ".xhtml"

_IE_CONDITIONAL_RE = re.compile(r"<!--\[if IE\]>.*?<!\[endif\]-->", re.IGNORECASE | re.DOTALL)
_HTTP_EQUIV_RE = re.compile(r"<meta[^>]*http-equiv[^>]*>", re.IGNORECASE)
_XML_DECL_RE = re.compile(r"<\?xml[^>]*>", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE)
_HTML_OPEN_RE = re.compile(r"<html\b[^>]*>", re.IGNORECASE)
_HEAD_BLOCK_RE = re.compile(r"<head\b[^>]*>.*?</head>", re.IGNORECASE | re.DOTALL)
_BODY_OPEN_RE = re.compile(r"<body\b[^>]*>", re.IGNORECASE)
_BODY_CLOSE = "</body>"
_STRAY_HTML_RE = re.compile(r"</?html\b[^>]*>", re.IGNORECASE)
_STRAY_BODY_RE = re.compile(r"</?body\b[^>]*>", re.IGNORECASE)


class DocumentHeader:
    """Header material shared by every fragment of one source document."""

    def __init__(
        self,
        xml_decl: str = DEFAULT_XML_DECL,
        doctype: str = DEFAULT_DOCTYPE,
        html_open: str = DEFAULT_HTML_OPEN,
        head: str = DEFAULT_HEAD,
        body_open: str = DEFAULT_BODY_OPEN,
        trailing: str = "",
    ):
        self.xml_decl = xml_decl
        self.doctype = doctype
        self.html_open = html_open
        self.head = head
        self.body_open = body_open
        self.trailing = trailing  # after the last </body>; never reused

    def __repr__(self):
        return f"DocumentHeader({self.html_open!r}, body={self.body_open!r})"

    @classmethod
    def from_markup(cls, content: str) -> "DocumentHeader":
        """Capture header material from a document's raw markup.

        The declaration, doctype, <html> tag and <head> block are looked up in
        the region before the first <body> tag, after IE conditional comments
        and http-equiv meta tags have been stripped from it.  Each missing
        piece falls back to the module default.
        """
        body_match = _BODY_OPEN_RE.search(content)
        prefix = content[: body_match.start()] if body_match else content
        prefix = _HTTP_EQUIV_RE.sub("", prefix)
        prefix = _IE_CONDITIONAL_RE.sub("", prefix)

        def _first(pattern: re.Pattern, default: str) -> str:
            m = pattern.search(prefix)
            return m.group(0) if m else default

        return cls(
            xml_decl=_first(_XML_DECL_RE, DEFAULT_XML_DECL),
            doctype=_first(_DOCTYPE_RE, DEFAULT_DOCTYPE),
            html_open=_first(_HTML_OPEN_RE, DEFAULT_HTML_OPEN),
            head=_first(_HEAD_BLOCK_RE, DEFAULT_HEAD),
            body_open=body_match.group(0) if body_match else DEFAULT_BODY_OPEN,
            trailing=_trailing_content(content),
        )


def _last_body_close(content: str) -> int:
    return content.lower().rfind(_BODY_CLOSE)


def body_region(content: str) -> str:
    """``content`` up to its last </body>, or all of it when there is none."""
    idx = _last_body_close(content)
    if idx == -1:
        return content
    return content[:idx]


def _trailing_content(content: str) -> str:
    idx = _last_body_close(content)
    if idx == -1:
        return ""
    return content[idx + len(_BODY_CLOSE):]


def clean_fragment(fragment: str) -> str:
    """Strip IE conditional comments and stray <html>/<body> tags, then trim."""
    cleaned = _IE_CONDITIONAL_RE.sub("", fragment)
    cleaned = _STRAY_HTML_RE.sub("", cleaned)
    cleaned = _STRAY_BODY_RE.sub("", cleaned)
    return cleaned.strip()


def build_document(header: DocumentHeader, fragment: str) -> str:
    """Wrap a cleaned fragment in the captured header material."""
    return "\n".join([
        header.xml_decl,
        header.doctype,
        header.html_open,
        header.head,
        header.body_open,
        fragment,
        "</body>",
        "</html>",
    ])


def fragment_filename(source_name: str, seq: int) -> str:
    """``chapter.xhtml`` + 3 -> ``chapter_pg003.xhtml``."""
    stem = posixpath.splitext(posixpath.basename(source_name))[0]
    return f"{stem}_pg{seq:03d}{FRAGMENT_SUFFIX}"


def write_fragments(
    work_dir: Path,
    rel_path: str,
    content: str,
    fragments: list[str],
) -> list[str]:
    """Write one standalone document per fragment and delete the source.

    ``rel_path`` is the source's POSIX path relative to ``work_dir``.  Returns
    the new fragment paths (same form) in fragment order.  The source file is
    removed only once every fragment has been written.
    """
    header = DocumentHeader.from_markup(content)
    if header.trailing.strip():
        print(
            f"  WARNING: {rel_path}: discarding {len(header.trailing.strip())} "
            f"characters after </body>"
        )

    source_abs = work_dir / rel_path
    rel_dir = posixpath.dirname(rel_path)
    written: list[str] = []

    for seq, fragment in enumerate(fragments, start=1):
        if seq == len(fragments):
            # The final fragment runs to the end of the file; cut at </body>
            # so trailing content does not leak into it.
            idx = _last_body_close(fragment)
            if idx != -1:
                fragment = fragment[:idx]
        body = clean_fragment(fragment)
        name = fragment_filename(rel_path, seq)
        (source_abs.parent / name).write_text(
            build_document(header, body), encoding="utf-8"
        )
        written.append(posixpath.join(rel_dir, name))

    source_abs.unlink()
    return written
