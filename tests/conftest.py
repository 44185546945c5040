import zipfile
from pathlib import Path
from typing import Callable, Sequence, Tuple

import pytest
from ebooklib import epub


LONG_TEXT = (
    "The rain had not stopped for three days, and the river was already "
    "climbing the steps of the old mill."
)


def write_sample_epub(
    epub_path: Path, chapters: Sequence[Tuple[str, str, str]]
) -> Path:
    """Write an EPUB whose TOC lists ``(toc_title, file_name, body_html)`` items."""
    book = epub.EpubBook()
    book.set_identifier("chaptify-test")
    book.set_title("Sample Book")
    book.set_language("en")

    items = []
    for toc_title, file_name, body in chapters:
        item = epub.EpubHtml(title=toc_title, file_name=file_name, lang="en")
        item.content = body
        book.add_item(item)
        items.append(item)

    book.toc = tuple(
        epub.Link(item.file_name, toc_title, f"toc-{idx}")
        for idx, ((toc_title, _name, _body), item) in enumerate(zip(chapters, items))
    )
    book.spine = ["nav", *items]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    epub.write_epub(str(epub_path), book)
    return epub_path


@pytest.fixture
def sample_epub(tmp_path: Path) -> Callable[..., Path]:
    def _make(
        chapters: Sequence[Tuple[str, str, str]], name: str = "sample.epub"
    ) -> Path:
        return write_sample_epub(tmp_path / name, chapters)

    return _make


@pytest.fixture
def book_chapters() -> list:
    return [
        ("Cover", "cover.xhtml", "<p>Cover image</p>"),
        (
            "Chapter One",
            "chapter-1.xhtml",
            f"<h1>Chapter One</h1><p>{LONG_TEXT}</p>",
        ),
        ("Chapter Two", "chapter-2.xhtml", "<h1>Chapter Two</h1><p>Short.</p>"),
        (
            "Chapter Three: Floods",
            "chapter-3.xhtml",
            f"<h1>Chapter Three</h1><p>{LONG_TEXT}</p>",
        ),
    ]


_CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

_OPF_XML = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="2.0" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="bookid">chaptify-ncx-test</dc:identifier>
    <dc:title>Nested NCX</dc:title>
    <dc:language>en</dc:language>
  </metadata>
  <manifest>
    <item id="ncx" href="toc/toc.ncx" media-type="application/x-dtbncx+xml"/>
    <item id="ch1" href="Text/ch1.xhtml" media-type="application/xhtml+xml"/>
  </manifest>
  <spine toc="ncx">
    <itemref idref="ch1"/>
  </spine>
</package>
"""

_NCX_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head>
    <meta name="dtb:uid" content="chaptify-ncx-test"/>
  </head>
  <docTitle><text>Nested NCX</text></docTitle>
  <navMap>
    <navPoint id="np-1" playOrder="1">
      <navLabel><text>{title}</text></navLabel>
      <content src="../Text/ch1.xhtml"/>
    </navPoint>
  </navMap>
</ncx>
"""

_CHAPTER_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>ch1</title></head>
<body><h1>{heading}</h1><p>{text}</p></body>
</html>
"""


def write_nested_ncx_epub(epub_path: Path, toc_title: str, heading: str) -> Path:
    """Write an EPUB 2 book whose NCX lives in ``toc/`` and links ``../Text/``."""
    with zipfile.ZipFile(epub_path, "w") as archive:
        archive.writestr(
            "mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED
        )
        archive.writestr("META-INF/container.xml", _CONTAINER_XML)
        archive.writestr("OEBPS/content.opf", _OPF_XML)
        archive.writestr("OEBPS/toc/toc.ncx", _NCX_XML.format(title=toc_title))
        archive.writestr(
            "OEBPS/Text/ch1.xhtml",
            _CHAPTER_XHTML.format(heading=heading, text=LONG_TEXT),
        )
    return epub_path


@pytest.fixture
def nested_ncx_epub(tmp_path: Path) -> Path:
    return write_nested_ncx_epub(
        tmp_path / "nested-ncx.epub", "The Real Chapter Name", "Heading Only"
    )
