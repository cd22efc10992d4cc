import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import pdfplumber
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

PLAIN_TEXT_EXTENSIONS = frozenset({
    ".txt", ".md", ".markdown", ".rst", ".csv", ".tsv", ".json", ".yaml",
    ".yml", ".xml", ".ini", ".cfg", ".toml", ".log", ".py", ".js", ".ts",
    ".java", ".c", ".h", ".cpp", ".hpp", ".cs", ".go", ".rb", ".rs", ".php",
    ".sh", ".sql", ".css",
})
HTML_EXTENSIONS = frozenset({".html", ".htm"})
PDF_EXTENSIONS = frozenset({".pdf"})
SUPPORTED_EXTENSIONS = PLAIN_TEXT_EXTENSIONS | HTML_EXTENSIONS | PDF_EXTENSIONS


@dataclass(frozen=True)
class Text:
    content: str


@dataclass(frozen=True)
class Unsupported:
    reason: str


@dataclass(frozen=True)
class ReadError:
    reason: str


ExtractionResult = Union[Text, Unsupported, ReadError]


def _decode_plain_text(raw: bytes) -> Optional[str]:
    """Return the UTF-8 text of ``raw`` or None when it looks binary."""
    if b"\x00" in raw:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _extract_text_from_html(html: str) -> str:
    """Parse HTML with BeautifulSoup, strip boilerplate, return text."""
    soup = BeautifulSoup(html, "lxml")

    for tag in soup.find_all(["script", "style", "nav", "footer", "header", "noscript"]):
        tag.decompose()

    text = soup.get_text(separator="\n", strip=True)

    # Collapse runs of blank lines into a single newline
    return re.sub(r"\n{3,}", "\n\n", text)


def _extract_text_from_pdf(path: Path) -> str:
    pages = []
    with pdfplumber.open(path) as pdf:
        for page in pdf.pages:
            page_text = page.extract_text()
            if page_text:
                pages.append(page_text)
    return "\n\n".join(pages)


def extract_text(file_path: Union[str, Path]) -> ExtractionResult:
    """Extract plain text from a stored upload.

    Plain-text files are returned verbatim, HTML is reduced to its visible
    text and PDFs are read page by page. Never raises: unsupported formats
    yield ``Unsupported`` and missing or corrupt files yield ``ReadError``.
    """
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix not in SUPPORTED_EXTENSIONS:
        return Unsupported(f"Unsupported file type: {suffix or 'none'}")

    try:
        if suffix in PDF_EXTENSIONS:
            text = _extract_text_from_pdf(path)
        else:
            text = _decode_plain_text(path.read_bytes())
            if text is None:
                return Unsupported(f"{path.name} is not UTF-8 text")
            if suffix in HTML_EXTENSIONS:
                text = _extract_text_from_html(text)
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return ReadError(str(exc))
    except Exception as exc:
        # pdfplumber raises a variety of parser errors on corrupt files
        logger.warning("Could not extract text from %s: %s", path, exc)
        return ReadError(f"Could not extract text from {path.name}")

    return Text(text)


def text_or_none(result: ExtractionResult) -> Optional[str]:
    """Collapse an extraction result to its text, or None when absent."""
    if isinstance(result, Text):
        return result.content
    return None
