"""
Supabase Store - persistence for uploads and normalized transactions.

Tables:
- uploads:      one row per ingestion job (status: pending/processing/completed/failed)
- transactions: CanonicalTransaction rows keyed by upload_id

Designed to fail gracefully: when keys are missing or a call fails, the error
is logged and a falsy value is returned. The pipeline turns a failed write
into a failed job.
"""
import logging
import os
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from supabase import create_client

from backend.gst_etl.models import CanonicalTransaction, UploadStatus

BATCH_SIZE = 500


class SupabaseStore:
    """
    Usage:
        store = SupabaseStore()
        upload_id = store.create_upload(user_id, "orders.csv", "Amazon")
        store.update_upload_status(upload_id, "processing")
    """

    def __init__(self):
        self.url = os.environ.get("SUPABASE_URL")
        self.key = os.environ.get("SUPABASE_KEY")
        self.client = None
        self.admin_client = None

        if self.url and self.key:
            try:
                self.client = create_client(self.url, self.key)

                # Service role bypasses RLS for server-side reads and writes
                service_key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
                if service_key:
                    self.admin_client = create_client(self.url, service_key)

                logging.info("Supabase clients initialized.")
            except Exception as e:
                logging.warning(f"Failed to initialize Supabase client: {e}")

    @property
    def is_configured(self) -> bool:
        return (self.admin_client or self.client) is not None

    def _server_client(self):
        return self.admin_client or self.client

    def create_upload(self, user_id: Optional[str], file_name: str, platform: str) -> Optional[str]:
        client = self._server_client()
        if not client:
            logging.info("Supabase not configured. Cannot create upload.")
            return None

        upload_id = str(uuid.uuid4())
        try:
            client.table("uploads").insert({
                "id": upload_id,
                "user_id": user_id,
                "file_name": file_name,
                "platform": platform,
                "status": UploadStatus.PENDING.value,
                "created_at": datetime.now().isoformat(),
            }).execute()
            return upload_id
        except Exception as e:
            logging.error(f"Failed to create upload: {e}")
            return None

    def update_upload_status(self, upload_id: str, status: str, error_message: Optional[str] = None) -> bool:
        client = self._server_client()
        if not client:
            logging.info("Supabase not configured. Skipping status update.")
            return False

        try:
            client.table("uploads").update({
                "status": status,
                "error_message": error_message,
                "updated_at": datetime.now().isoformat(),
            }).eq("id", upload_id).execute()
            logging.info(f"Upload {upload_id} status: {status}")
            return True
        except Exception as e:
            logging.error(f"Failed to update upload status: {e}")
            return False

    def record_transactions(self, upload_id: str, transactions: Iterable[CanonicalTransaction]) -> bool:
        client = self._server_client()
        if not client:
            logging.error("Supabase not configured. Cannot record transactions.")
            return False

        rows = [dict(tx.to_dict(), upload_id=upload_id) for tx in transactions]
        try:
            for start in range(0, len(rows), BATCH_SIZE):
                client.table("transactions").insert(rows[start:start + BATCH_SIZE]).execute()
            client.table("uploads").update({"transaction_count": len(rows)}).eq("id", upload_id).execute()
            logging.info(f"Recorded {len(rows)} transactions for upload {upload_id}")
            return True
        except Exception as e:
            logging.error(f"Failed to record transactions: {e}")
            return False

    def get_upload(self, upload_id: str) -> Optional[Dict[str, Any]]:
        client = self._server_client()
        if not client:
            return None
        try:
            res = client.table("uploads").select("*").eq("id", upload_id).limit(1).execute()
            return res.data[0] if res.data else None
        except Exception as e:
            logging.error(f"Failed to fetch upload: {e}")
            return None

    def fetch_transactions(self, upload_id: str) -> List[CanonicalTransaction]:
        client = self._server_client()
        if not client:
            return []
        try:
            res = client.table("transactions").select("*").eq("upload_id", upload_id).execute()
            return [CanonicalTransaction.from_dict(row) for row in res.data or []]
        except Exception as e:
            logging.error(f"Failed to fetch transactions: {e}")
            return []


class MemoryStore:
    """Process-local store with the SupabaseStore interface, for local runs without Supabase."""

    def __init__(self):
        self.uploads: Dict[str, Dict[str, Any]] = {}
        self.transactions: Dict[str, List[CanonicalTransaction]] = {}
        self.status_history: Dict[str, List[str]] = {}

    is_configured = True

    def create_upload(self, user_id: Optional[str], file_name: str, platform: str) -> Optional[str]:
        upload_id = str(uuid.uuid4())
        self.uploads[upload_id] = {
            "id": upload_id,
            "user_id": user_id,
            "file_name": file_name,
            "platform": platform,
            "status": UploadStatus.PENDING.value,
            "error_message": None,
            "transaction_count": 0,
            "created_at": datetime.now().isoformat(),
        }
        self.status_history[upload_id] = [UploadStatus.PENDING.value]
        return upload_id

    def update_upload_status(self, upload_id: str, status: str, error_message: Optional[str] = None) -> bool:
        upload = self.uploads.setdefault(upload_id, {"id": upload_id})
        upload.update(status=status, error_message=error_message)
        self.status_history.setdefault(upload_id, []).append(status)
        return True

    def record_transactions(self, upload_id: str, transactions: Iterable[CanonicalTransaction]) -> bool:
        txns = list(transactions)
        self.transactions.setdefault(upload_id, []).extend(txns)
        self.uploads.setdefault(upload_id, {"id": upload_id})["transaction_count"] = len(txns)
        return True

    def get_upload(self, upload_id: str) -> Optional[Dict[str, Any]]:
        upload = self.uploads.get(upload_id)
        return dict(upload) if upload else None

    def fetch_transactions(self, upload_id: str) -> List[CanonicalTransaction]:
        return list(self.transactions.get(upload_id, []))
