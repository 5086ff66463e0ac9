"""PDF text extraction as an injectable, best-effort capability."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class PdfTextExtractor(Protocol):
    """Anything that can turn PDF bytes into plain text.

    Implementations may raise; callers treat any failure as "no text".
    """

    def extract(self, data: bytes) -> str: ...


class PyMuPdfExtractor:
    """Extract text with pymupdf."""

    def extract(self, data: bytes) -> str:
        """Return the concatenated text of every page.

        Raises:
            ImportError: If pymupdf is not installed.
        """
        try:
            import pymupdf
        except ImportError:
            msg = (
                "pymupdf is required for PDF extraction. "
                "Install with: pip install pymupdf"
            )
            raise ImportError(msg) from None

        doc = pymupdf.open(stream=data, filetype="pdf")
        try:
            text_parts = [page.get_text() for page in doc]
        finally:
            doc.close()

        return "\n".join(text_parts)


def default_extractor() -> PdfTextExtractor:
    return PyMuPdfExtractor()
