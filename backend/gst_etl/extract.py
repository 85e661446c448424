import hashlib
import io
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

import pandas as pd
import pdfplumber

from .config import Config
from .errors import ExtractionError, UnsupportedFormat
from .schema import ExtractionPayload


def normalize_extension(file_extension: str) -> str:
    ext = str(file_extension or "").strip().lower()
    if ext and not ext.startswith('.'):
        ext = f".{ext}"
    return ext


class BaseReader(ABC):
    extension = ""

    @abstractmethod
    def read(self, file_bytes: bytes) -> ExtractionPayload:
        pass

    def get_file_hash(self, file_bytes: bytes) -> str:
        return hashlib.sha256(file_bytes or b"").hexdigest()

    def _payload(self, file_bytes: bytes, rows: List[Dict[str, Any]], raw_text: str = "") -> ExtractionPayload:
        return {
            "document_hash": self.get_file_hash(file_bytes),
            "file_extension": self.extension,
            "rows": rows,
            "raw_text": raw_text,
        }


def frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Header-keyed dicts with NaN replaced by None."""
    df = df.rename(columns=lambda c: str(c).strip())
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


class SpreadsheetReader(BaseReader):
    """CSV through pandas; XLSX/XLS through pandas with openpyxl/xlrd."""

    def __init__(self, extension: str = ".csv"):
        self.extension = extension

    def read(self, file_bytes: bytes) -> ExtractionPayload:
        if not file_bytes:
            return self._payload(file_bytes, [])
        try:
            if self.extension == ".csv":
                df = self._read_csv(file_bytes)
            else:
                df = pd.read_excel(io.BytesIO(file_bytes), dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return self._payload(file_bytes, [])
        except Exception as e:
            raise ExtractionError(f"Could not read {self.extension} file: {e}") from e

        rows = frame_to_rows(df)
        logging.info(f"Read {len(rows)} rows from {self.extension} ({len(df.columns)} columns)")
        return self._payload(file_bytes, rows)

    def _read_csv(self, file_bytes: bytes) -> pd.DataFrame:
        try:
            return pd.read_csv(io.BytesIO(file_bytes), dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except UnicodeDecodeError:
            logging.warning("CSV is not UTF-8, retrying as latin-1")
            return pd.read_csv(io.BytesIO(file_bytes), dtype=str, keep_default_na=False, encoding="latin-1")


class JsonReader(BaseReader):
    """A list of objects, or an object wrapping exactly one such list."""
    extension = ".json"

    def read(self, file_bytes: bytes) -> ExtractionPayload:
        try:
            data = json.loads((file_bytes or b"").decode("utf-8-sig") or "[]")
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ExtractionError(f"Invalid JSON export: {e}") from e

        if isinstance(data, dict):
            lists = [v for v in data.values() if isinstance(v, list)]
            data = lists[0] if len(lists) == 1 else [data]
        if not isinstance(data, list):
            raise ExtractionError("JSON export must contain a list of records")

        rows = [item if isinstance(item, dict) else {} for item in data]
        logging.info(f"Read {len(rows)} records from JSON")
        return self._payload(file_bytes, rows)


class PdfTextExtractor:
    """
    Default text-extraction collaborator for statement PDFs.

    Returns the text layer page by page; a document without any text layer
    (an image-only scan) is reported as unreadable.
    """

    def extract_text(self, file_bytes: bytes) -> str:
        pages = []
        try:
            with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
                for page in pdf.pages:
                    text = page.extract_text()
                    if text:
                        pages.append(text)
        except Exception as e:
            raise ExtractionError(f"Unreadable PDF: {e}") from e

        if not pages:
            raise ExtractionError("No text could be extracted from the PDF")
        logging.info(f"Extracted text from {len(pages)} PDF pages")
        return "\n".join(pages)


class PdfReader(BaseReader):
    extension = ".pdf"

    def __init__(self, text_extractor=None):
        self.text_extractor = text_extractor or PdfTextExtractor()

    def read(self, file_bytes: bytes) -> ExtractionPayload:
        text = self.text_extractor.extract_text(file_bytes)
        return self._payload(file_bytes, [], raw_text=text or "")


class ReaderFactory:
    @staticmethod
    def get_reader(file_extension: str, text_extractor=None) -> BaseReader:
        ext = normalize_extension(file_extension)
        if ext not in Config.ALLOWED_EXTENSIONS:
            raise UnsupportedFormat(file_extension)
        if ext in (".csv", ".xlsx", ".xls"):
            return SpreadsheetReader(ext)
        elif ext == ".json":
            return JsonReader()
        elif ext == ".pdf":
            return PdfReader(text_extractor)
        else:
            raise UnsupportedFormat(file_extension)
