"""
EPUB Splitter — split long XHTML documents into pages at a marker and repair the OPF.

Unpacks an EPUB, splits every content document at each <div> whose attributes
contain the marker text, rewrites the OPF manifest and spine to reference the
new page files, and repackages the result (or leaves the unpacked tree on disk
in preview mode).

Usage:
    python epub_splitter.py book.epub
    python epub_splitter.py book.epub --marker 'class="stl_ stl_02"' --output out.epub
    python epub_splitter.py book.epub --preview
    python epub_splitter.py book.epub --auto --verify --cleanup
"""

import argparse
import shutil
import sys
from pathlib import Path

from nav_audit import find_stale_links
from opf import SPINE_ORDERS, update_package_file
from shared import (
    default_output_path, find_content_documents, find_epub_candidates,
    make_work_dir, pack_epub, print_banner, unpack_epub,
)
from splitter import split_documents
from verify import verify_epub

DEFAULT_MARKER = 'class="stl_ stl_02"'


# ============================================================================
# Interactive prompts
# ============================================================================

def _ask(prompt: str, default: str) -> str:
    answer = input(f"{prompt} [{default}]: ").strip()
    return answer or default


def _confirm(prompt: str, default: bool) -> bool:
    hint = "Y/n" if default else "y/N"
    answer = input(f"{prompt} [{hint}] ").strip().lower()
    if not answer:
        return default
    return answer.startswith("y")


def select_epub(directory: Path, auto_mode: bool) -> Path | None:
    """Pick an EPUB from ``directory`` when none was given on the command line."""
    candidates = find_epub_candidates(directory)
    if not candidates:
        return None
    if auto_mode or len(candidates) == 1:
        return candidates[0]

    print("\nEPUB files in this directory:")
    for i, p in enumerate(candidates, 1):
        print(f"  {i:3d}. {p.name}")
    choice = _ask("Select the EPUB file to split", "1")
    try:
        return candidates[int(choice) - 1]
    except (ValueError, IndexError):
        print("Invalid selection.")
        return None


# ============================================================================
# Pipeline
# ============================================================================

def run(
    epub_path: Path,
    marker: str,
    output_path: Path | None,
    preview: bool = False,
    spine_order: str = "sorted",
    verify: bool = False,
    cleanup: bool = False,
) -> int:
    """Run the split pipeline.  Returns the process exit status."""
    work_dir = make_work_dir(epub_path)

    print_banner("PHASE 1: Extract")
    unpack_epub(epub_path, work_dir)
    documents = find_content_documents(work_dir)
    print(f"  Extracted to {work_dir}")
    print(f"  Found {len(documents)} HTML/XHTML files.")
    if not documents:
        print("ERROR: No HTML/XHTML documents found in the EPUB.")
        return 1

    print_banner("PHASE 2: Split Documents")
    result = split_documents(work_dir, documents, marker)

    print_banner("PHASE 3: Update OPF Manifest/Spine")
    opf_rel = update_package_file(work_dir, result, order=spine_order)

    stale = find_stale_links(work_dir, result.sources)
    if stale:
        print(f"\n--- Stale Navigation Links ({len(stale)}) ---")
        for doc, target in stale[:10]:
            print(f"  WARNING: {doc} still links to {target}")
        if len(stale) > 10:
            print(f"  ... and {len(stale) - 10} more")
        print("  Please review the navigation documents manually.")
    elif opf_rel:
        print("  Please review the OPF and navigation documents manually.")

    if preview:
        print_banner("Preview complete (--preview). EPUB not repackaged.")
        print(f"  New files are in: {work_dir}")
        print(f"  Total fragments created: {result.total_fragments}")
        return 0

    print_banner("PHASE 4: Repackage")
    entries = pack_epub(work_dir, output_path)
    print(f"  Wrote: {output_path} ({entries} entries)")

    status = 0
    if verify:
        report = verify_epub(output_path, result)
        print(f"\n--- Verification ({report.spine_length} spine entries) ---")
        if report.ok:
            print("  No problems found.")
        else:
            for problem in report.problems:
                print(f"  ERROR: {problem}")
            status = 1

    if cleanup:
        shutil.rmtree(work_dir)
        print(f"  Removed temporary folder: {work_dir}")
    else:
        print(f"  Temporary folder (you can delete it): {work_dir}")
    print(f"\n  Summary: {len(result)} documents split, {result.total_fragments} fragments created")
    return status


# ============================================================================
# CLI and main
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="EPUB Splitter: split XHTML documents into pages at a marker and fix the OPF.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python epub_splitter.py book.epub
  python epub_splitter.py book.epub --marker 'class="stl_ stl_02"' -o book-pages.epub
  python epub_splitter.py book.epub --preview
  python epub_splitter.py book.epub --auto --spine-order split --verify
        """,
    )
    parser.add_argument(
        "epub", nargs="?",
        help="Path to the EPUB file (default: choose from *.epub in the current directory)",
    )
    parser.add_argument(
        "--marker", "-m",
        help=f"Literal text identifying the start of each page (default: {DEFAULT_MARKER})",
    )
    parser.add_argument(
        "--output", "-o",
        help="Output EPUB path (default: <name>-split.epub next to the input)",
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        default=None,
        help="Only write the new .xhtml files; do not repackage the EPUB",
    )
    parser.add_argument(
        "--auto",
        action="store_true",
        help="Non-interactive mode: accept defaults",
    )
    parser.add_argument(
        "--spine-order",
        choices=SPINE_ORDERS,
        default="sorted",
        help=(
            "Order of the rebuilt spine: 'sorted' lists all new pages "
            "alphabetically (default), 'split' keeps document and page order"
        ),
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Re-open the written EPUB and check its manifest and spine",
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete the temporary folder after repackaging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    interactive = not args.auto

    # Resolve EPUB path
    if args.epub:
        epub_path = Path(args.epub).resolve()
    else:
        epub_path = select_epub(Path.cwd(), args.auto)
        if epub_path is None:
            print("ERROR: No .epub file found in the current directory.")
            return 1
    if not epub_path.exists():
        print(f"ERROR: File not found: {epub_path}")
        return 1
    if epub_path.suffix.lower() != ".epub":
        print(f"ERROR: Not an EPUB file: {epub_path}")
        return 1

    marker = args.marker
    if marker is None:
        marker = _ask("Text identifying the start of each page", DEFAULT_MARKER) if interactive else DEFAULT_MARKER
    if not marker:
        print("ERROR: The marker text cannot be empty.")
        return 1

    preview = args.preview
    if preview is None:
        preview = interactive and _confirm(
            "Only write the new .xhtml files and do NOT repackage the EPUB (preview)?", False
        )

    output_path = None
    if not preview:
        if args.output:
            output_path = Path(args.output).resolve()
        else:
            default = default_output_path(epub_path)
            output_path = Path(_ask("Output EPUB file name", str(default))).resolve() if interactive else default
        if output_path == epub_path:
            print("ERROR: The output file must differ from the input file.")
            return 1

    print_banner("Summary")
    print(f"  EPUB file:    {epub_path}")
    print(f"  Output:       {output_path if output_path else '(preview only)'}")
    print(f"  Marker:       {marker}")
    print(f"  Preview mode: {'Enabled' if preview else 'Disabled'}")
    print(f"  Spine order:  {args.spine_order}")
    if interactive and not _confirm("Proceed with these settings?", True):
        print("Aborted by user.")
        return 0

    try:
        return run(
            epub_path,
            marker,
            output_path,
            preview=preview,
            spine_order=args.spine_order,
            verify=args.verify,
            cleanup=args.cleanup,
        )
    except Exception as exc:
        print(f"ERROR: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
