"""
Stage payloads - TypedDicts passed between the ETL layers.

The record types themselves (CanonicalTransaction, RawBankLine, ...) are
frozen dataclasses in models.py; these dicts only describe what each layer
hands to the next.
"""
from typing import TypedDict, Dict, Any, Optional, List

from .models import AdaptedRow, BankStatement, CanonicalTransaction


class ExtractionPayload(TypedDict):
    """Output from Extract layer"""
    document_hash: str            # SHA256 of the uploaded bytes
    file_extension: str           # '.csv' | '.xlsx' | '.xls' | '.json' | '.pdf'
    rows: List[Dict[str, Any]]    # Header-keyed rows (spreadsheet / JSON)
    raw_text: str                 # Extracted text (PDF only)


class IngestionResult(TypedDict):
    """Output from IngestionPipeline.run"""
    document_hash: str
    platform: str
    transactions: List[CanonicalTransaction]
    adapted_rows: List[AdaptedRow]
    statement: Optional[BankStatement]   # Bank statement metadata for PDF inputs
    dq_report: Dict[str, Any]


class PipelineResult(TypedDict, total=False):
    """Final frame yielded by IngestionPipeline.process"""
    success: bool
    upload_id: str
    platform: str
    transaction_count: int
    processing_time_ms: float
    document_hash: str
    dq_report: Dict[str, Any]
    error: str
    preview: List[Dict[str, Any]]
