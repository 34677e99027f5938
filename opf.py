"""
OPF package document model and manifest/spine resynchronization.

The package file is parsed with lxml into a ``PackageDocument``: ordered
manifest items, ordered spine entries and the optional legacy <guide>.  Items
that survive a resync keep their original elements, so everything the resync
does not touch is written back as it was read.
"""

import io
import posixpath
import re
from pathlib import Path
from urllib.parse import unquote

from lxml import etree

from shared import find_package_file
from splitter import SplitResult

XHTML_MEDIA_TYPE = "application/xhtml+xml"
DEFAULT_XML_DECL = '<?xml version="1.0" encoding="utf-8"?>'
SPINE_ORDERS = ("sorted", "split")

_XML_DECL_RE = re.compile(rb"^\s*(<\?xml[^>]*\?>)")


class ManifestError(ValueError):
    """The package document is missing a structural section."""


class ManifestItem:
    """A <manifest>/<item> entry."""

    def __init__(self, item_id: str, href: str, media_type: str, element=None):
        self.item_id = item_id
        self.href = href
        self.media_type = media_type
        self.element = element

    def __repr__(self):
        return f"ManifestItem({self.item_id!r}, {self.href!r}, {self.media_type!r})"


class SpineItem:
    """A <spine>/<itemref> entry."""

    def __init__(self, idref: str, element=None):
        self.idref = idref
        self.element = element

    def __repr__(self):
        return f"SpineItem({self.idref!r})"


def _local_name(el) -> str | None:
    if not isinstance(el.tag, str):
        return None  # comments and processing instructions
    return etree.QName(el).localname


def _find_child(parent, name: str):
    for child in parent:
        if _local_name(child) == name:
            return child
    return None


def _children(parent, name: str) -> list:
    return [c for c in parent if _local_name(c) == name]


def _qualified(parent, name: str) -> str:
    ns = etree.QName(parent).namespace
    return f"{{{ns}}}{name}" if ns else name


def _remove_element(el) -> None:
    """Remove an element while keeping the surrounding indentation."""
    parent = el.getparent()
    if el.getnext() is None:
        prev = el.getprevious()
        if prev is not None:
            prev.tail = el.tail
        else:
            parent.text = el.tail
    parent.remove(el)


def _append_element(parent, el) -> None:
    """Append an element using the indentation of its future siblings."""
    if len(parent):
        last = parent[-1]
        el.tail = last.tail
        last.tail = parent.text
    elif parent.text is not None and not parent.text.strip():
        el.tail = parent.text
        parent.text = parent.text + "  "
    parent.append(el)


class PackageDocument:
    """A parsed OPF file."""

    def __init__(self, tree, xml_decl: str | None = None):
        self.tree = tree
        self.root = tree.getroot()
        self.xml_decl = xml_decl

        self.manifest_element = _find_child(self.root, "manifest")
        if self.manifest_element is None:
            raise ManifestError("package document has no <manifest>")
        self.spine_element = _find_child(self.root, "spine")
        if self.spine_element is None:
            raise ManifestError("package document has no <spine>")
        self.guide_element = _find_child(self.root, "guide")

        self.items: list[ManifestItem] = [
            ManifestItem(el.get("id", ""), el.get("href", ""), el.get("media-type", ""), el)
            for el in _children(self.manifest_element, "item")
        ]
        self.spine: list[SpineItem] = [
            SpineItem(el.get("idref", ""), el)
            for el in _children(self.spine_element, "itemref")
        ]
        self.has_guide = self.guide_element is not None

    @classmethod
    def parse(cls, data: bytes) -> "PackageDocument":
        parser = etree.XMLParser(remove_blank_text=False, resolve_entities=False)
        tree = etree.parse(io.BytesIO(data), parser)
        m = _XML_DECL_RE.match(data)
        xml_decl = m.group(1).decode("utf-8") if m else None
        return cls(tree, xml_decl)

    @classmethod
    def read(cls, path: Path) -> "PackageDocument":
        return cls.parse(path.read_bytes())

    def item_for_href(self, href: str) -> ManifestItem | None:
        for item in self.items:
            if item.href == href:
                return item
        return None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def _sync_manifest(self) -> None:
        kept = {id(i.element) for i in self.items if i.element is not None}
        for el in _children(self.manifest_element, "item"):
            if id(el) not in kept:
                _remove_element(el)
        for item in self.items:
            if item.element is None:
                el = etree.Element(_qualified(self.manifest_element, "item"))
                el.set("id", item.item_id)
                el.set("href", item.href)
                el.set("media-type", item.media_type)
                _append_element(self.manifest_element, el)
                item.element = el

    def _sync_spine(self) -> None:
        kept = {id(s.element) for s in self.spine if s.element is not None}
        for el in _children(self.spine_element, "itemref"):
            if id(el) not in kept:
                _remove_element(el)
        for entry in self.spine:
            if entry.element is None:
                el = etree.Element(_qualified(self.spine_element, "itemref"))
                el.set("idref", entry.idref)
                _append_element(self.spine_element, el)
                entry.element = el

    def serialize(self) -> bytes:
        """Write the typed lists back into the tree and return the file bytes."""
        self._sync_manifest()
        self._sync_spine()
        if not self.has_guide and self.guide_element is not None:
            _remove_element(self.guide_element)
            self.guide_element = None

        body = etree.tostring(self.tree, encoding="utf-8", xml_declaration=False)
        decl = self.xml_decl or DEFAULT_XML_DECL
        return decl.encode("utf-8") + b"\n" + body

    def write(self, path: Path) -> None:
        path.write_bytes(self.serialize())


# ============================================================================
# Resynchronization
# ============================================================================

def sanitize_id(name: str) -> str:
    """Manifest id for a document path: stem with unsafe characters -> '_'."""
    stem = posixpath.splitext(posixpath.basename(name))[0]
    return re.sub(r"[^a-zA-Z0-9_-]", "_", stem)


def _href_matches(href: str, basename: str) -> bool:
    href = unquote(href.split("#")[0])
    return href == basename or href.endswith("/" + basename)


def href_relative_to(path: str, opf_dir: str) -> str:
    """Express a working-directory path relative to the OPF directory."""
    if opf_dir in ("", "."):
        return path
    return posixpath.relpath(path, opf_dir)


def resync_package(
    package: PackageDocument,
    split_result: SplitResult,
    opf_dir: str,
    order: str = "sorted",
) -> list[str]:
    """Replace split sources with their fragments in the manifest and spine.

    With ``order="sorted"`` the new spine lists every fragment in one global
    lexicographic order, whatever document it came from.  ``order="split"``
    keeps discovery order, then fragment order.  The spine is rebuilt from the
    fragments alone, each itemref naming the manifest item that holds the
    fragment's href, and any <guide> is dropped.  Returns the fragment paths
    in spine order.
    """
    if order not in SPINE_ORDERS:
        raise ValueError(f"unknown spine order: {order!r}")

    for source in split_result.sources:
        base = posixpath.basename(source)
        stems = {posixpath.splitext(base)[0], sanitize_id(base)}
        package.items = [i for i in package.items if not _href_matches(i.href, base)]
        package.spine = [s for s in package.spine if not any(st in s.idref for st in stems)]

    pages = split_result.fragments()
    if order == "sorted":
        pages = sorted(pages)

    href_to_id = {item.href: item.item_id for item in package.items}
    for page in pages:
        href = href_relative_to(page, opf_dir)
        if href in href_to_id:
            continue
        new_id = sanitize_id(page)
        if new_id in href_to_id.values():
            print(f"  WARNING: manifest id '{new_id}' is already in use; {href} shares it.")
        package.items.append(ManifestItem(new_id, href, XHTML_MEDIA_TYPE))
        href_to_id[href] = new_id

    package.spine = [SpineItem(href_to_id[href_relative_to(page, opf_dir)]) for page in pages]
    package.has_guide = False
    return pages


def update_package_file(
    work_dir: Path,
    split_result: SplitResult,
    order: str = "sorted",
) -> str | None:
    """Rewrite the package's OPF to match ``split_result``.

    Returns the OPF path (relative to ``work_dir``) when it was rewritten.
    A missing OPF is a warning; an OPF that cannot be parsed or rebuilt is
    reported and left untouched on disk, while the split files stay as they
    are.
    """
    if not len(split_result):
        print("  No documents were split; OPF left unchanged.")
        return None

    opf_rel = find_package_file(work_dir)
    if opf_rel is None:
        print(
            "  WARNING: No .opf file found; manifest/spine will not be updated "
            "automatically. Manual review recommended."
        )
        return None

    opf_path = work_dir / opf_rel
    print(f"  Updating OPF: {opf_rel}")
    try:
        package = PackageDocument.read(opf_path)
        pages = resync_package(package, split_result, posixpath.dirname(opf_rel), order)
        data = package.serialize()
    except (etree.XMLSyntaxError, ValueError, OSError) as exc:
        print(f"  ERROR: Could not update OPF {opf_rel}: {exc}")
        print("  Split files were kept; the OPF is unchanged.")
        return None

    opf_path.write_bytes(data)
    print(f"  OPF updated: {len(package.items)} manifest items, {len(pages)} spine entries.")
    return opf_rel
