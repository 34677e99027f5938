from __future__ import annotations

import importlib
import warnings
import zipfile
from pathlib import Path

import verify
from splitter import SplitRecord, SplitResult
from verify import verify_epub


def test_verify_epub_accepts_untouched_book(ebooklib_epub: Path) -> None:
    report = verify_epub(ebooklib_epub, SplitResult())

    assert report.ok
    assert report.spine_length == 2


def test_verify_epub_reports_stale_source_and_missing_fragments(ebooklib_epub: Path) -> None:
    result = SplitResult()
    result.add(SplitRecord("EPUB/page.xhtml", ["EPUB/page_pg001.xhtml", "EPUB/page_pg002.xhtml"]))

    report = verify_epub(ebooklib_epub, result)

    assert not report.ok
    assert "split source page.xhtml is still in the manifest" in report.problems
    assert "fragment page_pg001.xhtml is missing from the manifest" in report.problems


def test_verify_epub_flags_compressed_mimetype(ebooklib_epub: Path, tmp_path: Path) -> None:
    repacked = tmp_path / "deflated.epub"
    with zipfile.ZipFile(ebooklib_epub) as src, zipfile.ZipFile(repacked, "w", zipfile.ZIP_DEFLATED) as dst:
        for info in src.infolist():
            dst.writestr(info.filename, src.read(info.filename))

    report = verify_epub(repacked, SplitResult())

    assert report.problems == ["mimetype entry is compressed"]


def test_verify_module_leaves_global_warning_filters_alone() -> None:
    importlib.reload(verify)

    assert not any(
        action == "ignore" and category is UserWarning and module is None
        for action, _message, category, module, _lineno in warnings.filters
    )
