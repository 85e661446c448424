"""
Ingestion Pipeline Orchestrator - Extract → Adapt/Parse → DQ → Persist.

Flow:
  .csv/.xlsx/.xls/.json → reader rows → platform adapter
  .pdf                  → text extractor → BankStatementParser → bank rows

Only format-level (UnsupportedFormat) and extraction-level (ExtractionError)
failures abort a job. Once extraction succeeds, every row becomes a
transaction; defaults are reported through the DQ report, not as errors.
"""
import logging
import time
import uuid
from datetime import date
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple

from .adapters import adapt_with_flags
from .bank_statement import BankStatementParser
from .config import Config
from .dq import DataQualityEngine
from .errors import PipelineError
from .extract import ReaderFactory
from .models import AdaptedRow, BankStatement, CanonicalTransaction, UploadStatus
from .schema import ExtractionPayload, IngestionResult, PipelineResult
from .tax import TaxEngine

PREVIEW_ROWS = 20


class IngestionPipeline:
    """
    Usage:
        pipeline = IngestionPipeline(seller_state_code="27")
        transactions = pipeline.ingest(file_bytes, ".csv", "Amazon")

        # Streaming job with persistence
        for pct, message, result in pipeline.process(upload_id, file_bytes, ".pdf", "Bank Statement", store):
            ...
    """

    def __init__(self, seller_state_code: Optional[str] = None, text_extractor=None,
                 tax_engine: Optional[TaxEngine] = None):
        self.tax_engine = tax_engine or TaxEngine(seller_state_code)
        self.text_extractor = text_extractor
        self.bank_parser = BankStatementParser()
        self.dq_engine = DataQualityEngine()

    def ingest(self, file_bytes: bytes, file_extension: str, platform_label: str,
               seller_state_code: Optional[str] = None) -> List[CanonicalTransaction]:
        return self.run(file_bytes, file_extension, platform_label, seller_state_code)["transactions"]

    def run(self, file_bytes: bytes, file_extension: str, platform_label: str,
            seller_state_code: Optional[str] = None) -> IngestionResult:
        payload = self._extract(file_bytes, file_extension)
        platform, adapted, statement = self._adapt(payload, platform_label, seller_state_code)
        dq_report = self.dq_engine.assess(adapted, statement)
        return {
            "document_hash": payload["document_hash"],
            "platform": platform,
            "transactions": [row.transaction for row in adapted],
            "adapted_rows": adapted,
            "statement": statement,
            "dq_report": dq_report,
        }

    def process(self, upload_id: str, file_bytes: bytes, file_extension: str, platform_label: str,
                store, seller_state_code: Optional[str] = None
                ) -> Iterator[Tuple[int, str, Optional[PipelineResult]]]:
        """
        Run one upload job against a persistence store.
        Yields (percentage, message, result_dict); result_dict is only set on the last frame.
        """
        start_time = time.time()
        error = None
        transactions: List[CanonicalTransaction] = []
        payload = None
        dq_report = {}
        platform = platform_label

        try:
            store.update_upload_status(upload_id, UploadStatus.PROCESSING.value)

            # ─── 1. Extract (0-30%) ───
            yield 10, "Reading document...", None
            payload = self._extract(file_bytes, file_extension)
            yield 30, "Document read successfully.", None

            # ─── 2. Adapt / Parse (30-60%) ───
            yield 35, "Normalizing transactions...", None
            platform, adapted, statement = self._adapt(payload, platform_label, seller_state_code)
            transactions = [row.transaction for row in adapted]
            yield 60, f"Found {len(transactions)} transactions.", None

            # ─── 3. Data Quality (60-75%) ───
            dq_report = self.dq_engine.assess(adapted, statement)
            yield 75, "Validation complete.", None

            # ─── 4. Persist (75-95%) ───
            yield 80, "Saving transactions...", None
            if not store.record_transactions(upload_id, transactions):
                raise PipelineError("Failed to save transactions", code="PERSISTENCE_FAILED")
            yield 95, "Finalizing...", None

        except GeneratorExit:
            logging.warning(f"Upload {upload_id} interrupted before completion")
            store.update_upload_status(upload_id, UploadStatus.FAILED.value, "Upload interrupted")
            raise
        except PipelineError as e:
            logging.error(f"PIPELINE_ERROR upload={upload_id} code={e.code}: {e.message}")
            error = e.message
        except Exception as e:
            logging.exception("PIPELINE_ERROR")
            error = str(e) or type(e).__name__

        processing_time = (time.time() - start_time) * 1000

        if error is not None:
            store.update_upload_status(upload_id, UploadStatus.FAILED.value, error)
            yield 0, f"Error: {error}", {
                "success": False,
                "upload_id": upload_id,
                "error": error,
                "processing_time_ms": processing_time,
            }
            return

        store.update_upload_status(upload_id, UploadStatus.COMPLETED.value)
        logging.info(f"Upload {upload_id} completed: {len(transactions)} {platform} transactions "
                     f"in {processing_time:.0f}ms")
        yield 100, "Done", {
            "success": True,
            "upload_id": upload_id,
            "platform": platform,
            "transaction_count": len(transactions),
            "processing_time_ms": processing_time,
            "document_hash": payload["document_hash"],
            "dq_report": dq_report,
            "preview": [tx.to_dict() for tx in transactions[:PREVIEW_ROWS]],
        }

    # ─────────────────────────────────────────────────────────────
    # Stages
    # ─────────────────────────────────────────────────────────────

    def _extract(self, file_bytes: bytes, file_extension: str) -> ExtractionPayload:
        reader = ReaderFactory.get_reader(file_extension, self.text_extractor)
        logging.info(f"Reading {reader.extension} upload with {type(reader).__name__}")
        return reader.read(file_bytes)

    def _adapt(self, payload: ExtractionPayload, platform_label: str,
               seller_state_code: Optional[str]) -> Tuple[str, List[AdaptedRow], Optional[BankStatement]]:
        if payload["file_extension"] == ".pdf":
            statement = self.bank_parser.parse(payload["raw_text"])
            return Config.BANK_PLATFORM_NAME, self.bank_rows(statement), statement

        adapted = adapt_with_flags(platform_label, payload["rows"], seller_state_code, self.tax_engine)
        label = adapted[0].transaction.platform if adapted else platform_label
        return label, adapted, None

    def bank_rows(self, statement: BankStatement) -> List[AdaptedRow]:
        """
        Bank lines as sales at the configured bank rate (18%), intrastate,
        HSN 999799, default jurisdiction. This is a fixed booking assumption,
        not something the statement says.
        """
        rows = []
        for line in statement.lines:
            defaulted = set()
            try:
                occurred_at = date.fromisoformat(line.date)
            except ValueError:
                occurred_at = date.today()
                defaulted.add("occurred_at")

            reference = line.reference
            if not reference:
                reference = str(uuid.uuid4())
                defaulted.add("order_reference")

            if line.debit and line.credit:
                logging.warning(f"Bank line {reference} has debit and credit, booking credit {line.credit}")
                defaulted.add("gross_amount")

            breakdown = self.tax_engine.decompose(line.amount, Config.BANK_GST_RATE, is_inter_state=False)
            tx = CanonicalTransaction(
                order_reference=reference,
                occurred_at=occurred_at,
                description=line.description or "Bank Transaction",
                product_name="Bank Transaction",
                gross_amount=line.amount,
                taxable_value=breakdown.taxable_value,
                gst_rate_percent=Decimal(Config.BANK_GST_RATE),
                cgst=breakdown.cgst,
                sgst=breakdown.sgst,
                hsn_code=Config.BANK_HSN_CODE,
                jurisdiction_code=Config.DEFAULT_JURISDICTION,
                platform=Config.BANK_PLATFORM_NAME,
            )
            rows.append(AdaptedRow(tx, frozenset(defaulted)))
        return rows
