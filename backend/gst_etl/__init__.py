"""
GST ETL Package - Marketplace & Bank Statement to GST Reports

Modules:
- extract: CSV/Excel/JSON readers and PDF text extraction
- adapters: Platform-specific column mapping into CanonicalTransaction
- bank_statement: OCR text to bank lines
- tax: Rate lookup and tax decomposition
- state_codes: GST jurisdiction lookups
- dq / filter: Data quality report and opt-in strict filtering
- voucher_xml / gstr1 / summary / load: Report rendering
- pipeline: Main orchestrator
"""
from .adapters import Platform, adapt, adapt_with_flags
from .bank_statement import BankStatementParser, normalize_date
from .errors import ExtractionError, PipelineError, UnsupportedFormat
from .gstr1 import TaxReturnJsonRenderer
from .load import ReportLoader, RenderedReport
from .models import AdaptedRow, BankStatement, CanonicalTransaction, RawBankLine, UploadStatus
from .pipeline import IngestionPipeline
from .state_codes import StateCodeRegistry, registry
from .summary import SummaryRenderer
from .tax import TaxEngine, round2
from .voucher_xml import VoucherXmlRenderer

__all__ = [
    'IngestionPipeline', 'Platform', 'adapt', 'adapt_with_flags',
    'BankStatementParser', 'normalize_date', 'TaxEngine', 'round2',
    'StateCodeRegistry', 'registry', 'VoucherXmlRenderer', 'TaxReturnJsonRenderer',
    'SummaryRenderer', 'ReportLoader', 'RenderedReport',
    'CanonicalTransaction', 'AdaptedRow', 'RawBankLine', 'BankStatement', 'UploadStatus',
    'PipelineError', 'UnsupportedFormat', 'ExtractionError',
]
