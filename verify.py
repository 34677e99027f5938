"""Post-pack verification of a split EPUB."""

import posixpath
import warnings
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from ebooklib import epub as ep

from shared import MIMETYPE_NAME
from splitter import SplitResult
from opf import href_relative_to


@dataclass
class VerificationReport:
    """Problems found in a written EPUB."""

    epub_path: Path
    spine_length: int = 0
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


def _check_mimetype(zf: zipfile.ZipFile, report: VerificationReport) -> None:
    infos = zf.infolist()
    if not infos or infos[0].filename != MIMETYPE_NAME:
        report.problems.append("mimetype is not the first archive entry")
    elif infos[0].compress_type != zipfile.ZIP_STORED:
        report.problems.append("mimetype entry is compressed")


def verify_epub(epub_path: Path, split_result: SplitResult) -> VerificationReport:
    """Check the archive layout and that the book's spine/manifest are coherent."""
    report = VerificationReport(epub_path)

    with zipfile.ZipFile(epub_path, "r") as zf:
        _check_mimetype(zf, report)
        opf_files = sorted(n for n in zf.namelist() if n.endswith(".opf"))
    opf_dir = posixpath.dirname(opf_files[0]) if opf_files else ""

    # ebooklib emits UserWarnings about unrecognized EPUB features
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        book = ep.read_epub(str(epub_path))
    report.spine_length = len(book.spine)

    for idref, _linear in book.spine:
        if book.get_item_with_id(idref) is None:
            report.problems.append(f"spine entry '{idref}' has no manifest item")

    for fragment in split_result.fragments():
        href = href_relative_to(fragment, opf_dir)
        if book.get_item_with_href(href) is None:
            report.problems.append(f"fragment {href} is missing from the manifest")

    for source in split_result.sources:
        href = href_relative_to(source, opf_dir)
        if book.get_item_with_href(href) is not None:
            report.problems.append(f"split source {href} is still in the manifest")

    return report
