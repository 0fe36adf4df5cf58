"""Locate uploaded files and pull plain text out of them."""

import logging
import os
import zipfile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md")
SUPPORTED_EXTENSIONS = (".pdf", ".docx") + TEXT_EXTENSIONS

PROBLEM_PREFIXES = ("File not found:", "Unsupported file type:", "Error reading file:")

READ_ERRORS = (OSError, ValueError, KeyError, zipfile.BadZipFile, PackageNotFoundError, PyPdfError)


def file_extension(filename):
    return os.path.splitext(filename or "")[1].lower()


def is_problem(text):
    """True when ``text`` is one of the sentences extract_text returns instead of content."""
    return bool(text) and text.startswith(PROBLEM_PREFIXES)


def _path_segment(value):
    """Reduce a client-supplied name to a single path component; '' when nothing usable is left."""
    if value is None:
        return ""
    segment = os.path.basename(str(value).strip().replace("\\", "/"))
    if segment in ("", ".", ".."):
        return ""
    return segment


def _read_pdf(path):
    reader = PdfReader(path)
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages)


def _read_docx(path):
    document = Document(path)
    return "\n".join(paragraph.text for paragraph in document.paragraphs) + "\n"


def _read_text(path):
    with open(path, "r", encoding="utf-8", errors="replace") as handle:
        return handle.read()


class DocumentLocator:
    """
    Resolves stored upload names under ``upload_dir``.

    Files live at ``<upload>/<folder>/<owner_id>/<name>``, with
    ``<upload>/<owner_id>/<name>`` and ``<upload>/<name>`` as older layouts.
    """

    def __init__(self, upload_dir):
        self.upload_dir = upload_dir

    def candidate_paths(self, filename, owner_id=None, folder=None):
        filename = _path_segment(filename)
        owner = _path_segment(owner_id)
        folder = _path_segment(folder)
        if not filename:
            return []

        paths = []
        if owner:
            if folder:
                paths.append(os.path.join(self.upload_dir, folder, owner, filename))
            paths.append(os.path.join(self.upload_dir, owner, filename))
        paths.append(os.path.join(self.upload_dir, filename))
        return paths

    def _inside_upload_dir(self, path):
        root = os.path.realpath(self.upload_dir)
        return os.path.commonpath([root, os.path.realpath(path)]) == root

    def find(self, filename, owner_id=None, folder=None):
        for path in self.candidate_paths(filename, owner_id, folder):
            logger.debug("Checking path: %s", path)
            if not self._inside_upload_dir(path):
                logger.warning("Skipping path outside upload directory: %s", path)
                continue
            if os.path.isfile(path):
                logger.info("Found file at: %s", path)
                return path
        return None

    def extract_text(self, filename, owner_id=None, folder=None):
        """
        Text of an uploaded file. Problems come back as a sentence describing
        them so the caller can drop it straight into a prompt.
        """
        filename = _path_segment(filename)
        if not filename:
            return ""

        path = self.find(filename, owner_id, folder)
        if path is None:
            logger.warning("File not found: %s for %s", filename, owner_id)
            return f"File not found: {filename} for {folder or 'record'} {owner_id}."

        extension = file_extension(filename)
        if extension not in SUPPORTED_EXTENSIONS:
            logger.warning("Unsupported file type: %s", extension)
            return f"Unsupported file type: {extension or 'none'}. Please use PDF, DOCX, or TXT files."

        try:
            if extension == ".pdf":
                content = _read_pdf(path)
            elif extension == ".docx":
                content = _read_docx(path)
            else:
                content = _read_text(path)
        except READ_ERRORS as exc:
            logger.error("Error extracting file content from %s: %s", path, exc)
            return f"Error reading file: {exc}"

        logger.info("Extracted %d characters from %s", len(content), filename)
        return content
