"""Source loading: resolve a locator to raw text.

Supported locators:
- absolute paths, used as-is
- ``./`` / ``../`` paths, relative to the working directory
- bare names, looked up by basename under DOCUMENTS_BASE_PATH
- http(s) URLs, streamed to a temp file under DATA_DIR and parsed by extension

Anything that cannot be resolved or parsed degrades to placeholder content so
that indexing stays demonstrable without the real files.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Callable, Iterator
from urllib.parse import urlparse

import httpx

from lexindex.core.errors import SourceReadError, UnsupportedFormatError

logger = logging.getLogger(__name__)

TEXT_EXTS = (".txt", ".md")
HTML_EXTS = (".html", ".htm")


def placeholder_content(locator: str) -> str:
    """Deterministic sample legal text naming the locator's basename."""
    name = Path(urlparse(locator).path or locator).name or "document"
    return f"""This is a sample legal document: {name}

CHAPTER I - GENERAL PROVISIONS

Article 1. This document establishes the guidelines and rules for the legal system.

Article 2. The provisions contained herein apply to all cases provided for in the legislation in force.

CHAPTER II - RIGHTS AND DUTIES

Article 3. Every citizen has the right to information and access to justice.

Article 4. It is the duty of the State to guarantee the enforcement of fundamental rights.

CHAPTER III - PROCEDURES

Article 5. Procedures must follow the deadlines established by law.

Article 6. Failure to observe deadlines may result in procedural harm.

This document serves as an example for demonstrating the vector indexing system.
The real content will be processed once the files are available in the system."""


def _safe_filename_from_url(url: str) -> str:
    name = Path(urlparse(url).path).name
    return name or "download"


def iter_pdf_windows(path: str | Path, window: int = 25) -> Iterator[str]:
    """Yield the text of a PDF one page range at a time.

    A fresh reader is opened per window so parsed page objects from the
    previous window can be released; only the extracted text leaves here.
    """
    from pypdf import PdfReader

    with open(path, "rb") as fh:
        total = len(PdfReader(fh).pages)
        for first in range(0, total, window):
            reader = PdfReader(fh)
            parts = []
            for i in range(first, min(first + window, total)):
                t = reader.pages[i].extract_text() or ""
                if t.strip():
                    parts.append(t)
            del reader
            yield "\n\n".join(parts)


def read_txt(path: Path, **_) -> str:
    return path.read_text(encoding="utf-8", errors="ignore")


def read_pdf(path: Path, *, page_window: int = 25, **_) -> str:
    windows = [w for w in iter_pdf_windows(path, page_window) if w]
    return "\n\n".join(windows)


def read_docx(path: Path, **_) -> str:
    from docx import Document as Docx

    d = Docx(str(path))
    return "\n".join(p.text for p in d.paragraphs if p.text.strip())


def read_html(path: Path, **_) -> str:
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(path.read_text(encoding="utf-8", errors="ignore"), "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.extract()
    return "\n".join(line.strip() for line in soup.get_text("\n").splitlines() if line.strip())


READERS: dict[str, Callable[..., str]] = {
    ".pdf": read_pdf,
    ".docx": read_docx,
    **{ext: read_txt for ext in TEXT_EXTS},
    **{ext: read_html for ext in HTML_EXTS},
}


class ContentLoader:
    def __init__(
        self,
        *,
        base_path: str = "./documents",
        data_dir: str = "./data",
        pdf_page_window: int = 25,
        http_timeout: float = 120.0,
        client: httpx.Client | None = None,
    ):
        self.base_path = Path(base_path)
        self.data_dir = Path(data_dir)
        self.pdf_page_window = pdf_page_window
        self.http_timeout = http_timeout
        self._client = client

    def load(self, locator: str) -> str:
        """Return the text behind `locator`; never raises."""
        try:
            return self._load(locator)
        except (SourceReadError, UnsupportedFormatError) as e:
            logger.warning("%s. Using placeholder content.", e)
            return placeholder_content(locator)

    def resolve_path(self, locator: str) -> Path:
        p = Path(locator)
        if p.is_absolute():
            return p
        if locator.startswith("./") or locator.startswith("../"):
            return Path.cwd() / p
        return self.base_path / p.name

    def _load(self, locator: str) -> str:
        if not (locator or "").strip():
            raise SourceReadError(locator, "empty locator")

        if urlparse(locator).scheme in ("http", "https"):
            ext = Path(_safe_filename_from_url(locator)).suffix.lower()
            reader = self._reader_for(locator, ext)
            tmp = self._download(locator, ext)
            try:
                return self._read(reader, tmp, locator)
            finally:
                tmp.unlink(missing_ok=True)

        path = self.resolve_path(locator)
        reader = self._reader_for(locator, path.suffix.lower())
        if not path.is_file():
            raise SourceReadError(locator, f"file not found at {path}")
        return self._read(reader, path, locator)

    @staticmethod
    def _reader_for(locator: str, ext: str) -> Callable[..., str]:
        reader = READERS.get(ext)
        if reader is None:
            raise UnsupportedFormatError(locator, ext)
        return reader

    def _read(self, reader: Callable[..., str], path: Path, locator: str) -> str:
        try:
            return reader(path, page_window=self.pdf_page_window)
        except Exception as e:
            # parser libraries raise a wide variety of errors on corrupt input
            raise SourceReadError(locator, f"{type(e).__name__}: {e}") from e

    def _download(self, url: str, ext: str) -> Path:
        try:
            os.makedirs(self.data_dir, exist_ok=True)
        except OSError as e:
            raise SourceReadError(url, f"cannot create download dir {self.data_dir}: {e}") from e

        tmp = self.data_dir / f"download_{uuid.uuid4().hex}{ext}"
        client = self._client or httpx.Client(timeout=self.http_timeout, follow_redirects=True)
        try:
            with client.stream("GET", url) as r:
                r.raise_for_status()
                with open(tmp, "wb") as f:
                    for block in r.iter_bytes():
                        f.write(block)
        except httpx.HTTPError as e:
            tmp.unlink(missing_ok=True)
            raise SourceReadError(url, str(e)) from e
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise SourceReadError(url, f"cannot write download: {e}") from e
        finally:
            if self._client is None:
                client.close()
        return tmp
