from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Callable

import pytest

MARKER = 'class="stl_ stl_02"'

PAGE_XHTML = """<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head>
<meta http-equiv="Content-Type" content="text/html; charset=utf-8"/>
<title>Pages</title>
<link rel="stylesheet" type="text/css" href="../css/book.css"/>
</head>
<body class="book">
<div class="stl_ stl_02" id="p1">
<p>First page.</p>
</div>
<div class="stl_ stl_02" id="p2">
<p>Second page.</p>
</div>
<div class="stl_ stl_02" id="p3">
<p>Third page.</p>
</div>
</body>
</html>
"""

COVER_XHTML = """<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Cover</title></head>
<body><div class="cover"><p>Sample Book</p></div></body>
</html>
"""

NAV_XHTML = """<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head><title>Contents</title></head>
<body>
<nav epub:type="toc">
<ol>
<li><a href="cover.xhtml">Cover</a></li>
<li><a href="text/page.xhtml#p1">Pages</a></li>
</ol>
</nav>
</body>
</html>
"""

CONTENT_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="bookid">urn:uuid:0f2c5a4e-7d1b-4c3e-9a61-2b8f0e4d7c11</dc:identifier>
    <dc:title>Sample Book</dc:title>
    <dc:language>en</dc:language>
  </metadata>
  <manifest>
    <item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>
    <item id="cover" href="cover.xhtml" media-type="application/xhtml+xml"/>
    <item id="page" href="text/page.xhtml" media-type="application/xhtml+xml"/>
    <item id="css" href="css/book.css" media-type="text/css"/>
  </manifest>
  <spine>
    <itemref idref="cover"/>
    <itemref idref="page"/>
  </spine>
  <guide>
    <reference type="text" title="Start" href="text/page.xhtml"/>
  </guide>
</package>
"""

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


def sample_book_files() -> dict[str, str]:
    return {
        "mimetype": "application/epub+zip",
        "META-INF/container.xml": CONTAINER_XML,
        "OEBPS/content.opf": CONTENT_OPF,
        "OEBPS/nav.xhtml": NAV_XHTML,
        "OEBPS/cover.xhtml": COVER_XHTML,
        "OEBPS/text/page.xhtml": PAGE_XHTML,
        "OEBPS/css/book.css": "body { margin: 0; }\n",
    }


def write_tree(root: Path, files: dict[str, str]) -> Path:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def write_epub(path: Path, files: dict[str, str]) -> Path:
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        if "mimetype" in files:
            zf.writestr("mimetype", files["mimetype"], compress_type=zipfile.ZIP_STORED)
        for name, content in files.items():
            if name != "mimetype":
                zf.writestr(name, content)
    return path


@pytest.fixture
def marker() -> str:
    return MARKER


@pytest.fixture
def book_dir(tmp_path: Path) -> Path:
    """An unpacked sample EPUB."""
    return write_tree(tmp_path / "book", sample_book_files())


@pytest.fixture
def sample_epub(tmp_path: Path) -> Path:
    return write_epub(tmp_path / "book.epub", sample_book_files())


@pytest.fixture
def ebooklib_epub(tmp_path: Path) -> Path:
    """An EPUB written by ebooklib, with a nav document and an NCX."""
    from ebooklib import epub

    book = epub.EpubBook()
    book.set_identifier("sample-book")
    book.set_title("Sample Book")
    book.set_language("en")
    book.add_author("A. Writer")

    pages = "".join(
        f'<div class="stl_ stl_02" id="p{i}"><p>Page {i} text.</p></div>'
        for i in range(1, 4)
    )
    chapter = epub.EpubHtml(title="Pages", file_name="page.xhtml", lang="en")
    chapter.content = f"<html><head><title>Pages</title></head><body>{pages}</body></html>"
    book.add_item(chapter)

    book.toc = (epub.Link("page.xhtml", "Pages", "pages"),)
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    path = tmp_path / "ebooklib-book.epub"
    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def epub_factory(tmp_path: Path) -> Callable[[str, dict[str, str]], Path]:
    def _factory(name: str, files: dict[str, str]) -> Path:
        return write_epub(tmp_path / name, files)

    return _factory
