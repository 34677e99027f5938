"""
Shared utilities for the EPUB splitter.

Archive handling (unpack / repack), discovery of content documents and the
OPF package file inside a working directory, and console reporting helpers.
"""

import tempfile
import zipfile
from pathlib import Path

MIMETYPE_NAME = "mimetype"
CONTENT_SUFFIXES = (".xhtml", ".html")
BANNER_WIDTH = 65


# ===========================================================================
# Console reporting
# ===========================================================================
def print_banner(title: str) -> None:
    print("\n" + "=" * BANNER_WIDTH)
    print(title)
    print("=" * BANNER_WIDTH)


# ===========================================================================
# Input / output paths
# ===========================================================================
def find_epub_candidates(directory: Path) -> list[Path]:
    """EPUB files directly inside ``directory``, sorted by name."""
    return sorted(p for p in directory.glob("*.epub") if p.is_file())


def default_output_path(epub_path: Path) -> Path:
    """``book.epub`` -> ``book-split.epub`` in the same directory."""
    return epub_path.with_name(f"{epub_path.stem}-split.epub")


def make_work_dir(epub_path: Path) -> Path:
    """Create a fresh working directory next to the input EPUB."""
    return Path(tempfile.mkdtemp(prefix=".split_epub_tmp_", dir=epub_path.parent))


# ===========================================================================
# Archive adapter
# ===========================================================================
def unpack_epub(epub_path: Path, work_dir: Path) -> None:
    """Extract every entry of the EPUB into ``work_dir``."""
    with zipfile.ZipFile(epub_path, "r") as zf:
        zf.extractall(work_dir)


def pack_epub(work_dir: Path, output_path: Path) -> int:
    """Zip ``work_dir`` into an EPUB.  Returns the number of entries written.

    The ``mimetype`` entry, when present, is written first and stored
    uncompressed; everything else is deflated.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    mimetype_path = work_dir / MIMETYPE_NAME
    count = 0

    with zipfile.ZipFile(output_path, "w", zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        if mimetype_path.is_file():
            zf.write(mimetype_path, MIMETYPE_NAME, compress_type=zipfile.ZIP_STORED)
            count += 1
        for path in sorted(work_dir.rglob("*")):
            if not path.is_file():
                continue
            arcname = path.relative_to(work_dir).as_posix()
            if arcname == MIMETYPE_NAME:
                continue
            zf.write(path, arcname)
            count += 1

    return count


# ===========================================================================
# Discovery inside the working directory
# ===========================================================================
def find_content_documents(work_dir: Path) -> list[str]:
    """Relative POSIX paths of every HTML/XHTML document, sorted."""
    return sorted(
        p.relative_to(work_dir).as_posix()
        for p in work_dir.rglob("*")
        if p.is_file() and p.suffix.lower() in CONTENT_SUFFIXES
    )


def find_package_file(work_dir: Path) -> str | None:
    """Relative POSIX path of the first .opf file, or None."""
    candidates = sorted(
        p.relative_to(work_dir).as_posix()
        for p in work_dir.rglob("*.opf")
        if p.is_file()
    )
    return candidates[0] if candidates else None
