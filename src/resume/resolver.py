"""Resolve a job's resume path (URL or local file) into plain text.

PDF extraction is best effort: an unavailable extractor or an empty result
yields a placeholder text so the job can still be processed. A missing file
or a failed download is fatal.
"""

import logging
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from src.core.errors import ResumeFetchError, ResumeNotFoundError
from src.resume.extractor import PdfTextExtractor

logger = logging.getLogger(__name__)

URL_PLACEHOLDER = (
    "PDF resume - text extraction not available. "
    "Please provide a text version of the resume (e.g. .txt)."
)

_LOCAL_PLACEHOLDER = (
    "PDF resume at {path} - text extraction not available in this runtime. "
    "Please provide a text version of the resume (e.g. .txt) or install "
    "pymupdf to enable extraction."
)


def is_url(path: str) -> bool:
    """Return True for http(s) URLs."""
    return urlparse(path).scheme.lower() in {"http", "https"}


def normalize_local_path(path: str) -> Path:
    """Strip a ``file://`` prefix and return a filesystem path."""
    if path.lower().startswith("file:"):
        parsed = urlparse(path)
        return Path(url2pathname(parsed.path))
    return Path(path)


def _looks_like_pdf(name: str, content_type: str = "") -> bool:
    return "pdf" in content_type.lower() or name.lower().endswith(".pdf")


class ResumeResolver:
    """Turns a resume path into text for the generator.

    Args:
        extractor: PDF text extractor, or None when extraction is unavailable.
        client: httpx client for downloads. One is created per call if omitted.
        timeout_sec: Timeout used when creating a client.
    """

    def __init__(
        self,
        extractor: PdfTextExtractor | None = None,
        client: httpx.Client | None = None,
        timeout_sec: float = 30.0,
    ) -> None:
        self._extractor = extractor
        self._client = client
        self._timeout_sec = timeout_sec

    def resolve(self, resume_path: str) -> str:
        if is_url(resume_path):
            return self._resolve_url(resume_path)
        return self._resolve_local(resume_path)

    def _resolve_url(self, url: str) -> str:
        logger.info("Downloading resume from URL: %s", url)
        try:
            response = self._get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            msg = f"Failed to download resume from URL {url}: {e}"
            raise ResumeFetchError(msg) from e

        content_type = response.headers.get("content-type", "")
        if _looks_like_pdf(urlparse(url).path, content_type):
            text = self._extract_pdf(response.content)
            if text:
                return text
            logger.warning("Using placeholder resume text for %s", url)
            return URL_PLACEHOLDER

        return response.content.decode("utf-8", errors="replace")

    def _resolve_local(self, resume_path: str) -> str:
        path = normalize_local_path(resume_path)
        logger.info("Reading resume from local path: %s", path)
        if not path.is_file():
            msg = f"Resume file not found: {path}"
            raise ResumeNotFoundError(msg)

        try:
            if _looks_like_pdf(path.name):
                text = self._extract_pdf(path.read_bytes())
                if text:
                    return text
                logger.warning("Using placeholder resume text for %s", path)
                return _LOCAL_PLACEHOLDER.format(path=path)
            return path.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            msg = f"Failed to read resume file {path}: {e}"
            raise ResumeFetchError(msg) from e

    def _extract_pdf(self, data: bytes) -> str:
        """Best-effort extraction; returns an empty string on any failure."""
        if self._extractor is None:
            logger.warning("No PDF extractor configured - skipping extraction")
            return ""
        try:
            text = self._extractor.extract(data)
        except Exception:
            logger.warning("PDF text extraction failed", exc_info=True)
            return ""
        return text.strip()

    def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return self._client.get(url, follow_redirects=True)
        with httpx.Client(timeout=self._timeout_sec, follow_redirects=True) as client:
            return client.get(url)
