"""
PDF Storage on Supabase

Stores uploaded slide decks in a Supabase Storage bucket and keeps one row
per file in the user_pdfs table.
"""

import logging
import os
import time
from typing import Any, Dict, List

from slide_socratic_tutor.collaborators import PDFRecord, PDFUpload, PersistenceService
from slide_socratic_tutor.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

SIGNED_URL_TTL_SECONDS = 3600


def record_from_row(row: Dict[str, Any]) -> PDFRecord:
    return PDFRecord(
        id=row.get("id"),
        user_id=row["user_id"],
        file_name=row["file_name"],
        file_path=row["file_path"],
        file_size=row.get("file_size", 0),
        topics=row.get("topics") or [],
        created_at=row.get("created_at"),
    )


class SupabasePDFStorage(PersistenceService):
    """
    PersistenceService over Supabase Storage + Postgres.

    Files live at "{user_id}/{timestamp}.pdf" inside the bucket so storage
    policies can scope access per user.
    """

    TABLE = "user_pdfs"

    def __init__(self, supabase_client, bucket: str = None):
        """
        Args:
            supabase_client: Supabase client instance
            bucket: Storage bucket name (defaults to SUPABASE_PDF_BUCKET or "pdfs")
        """
        self.supabase = supabase_client
        self.bucket = bucket or os.getenv("SUPABASE_PDF_BUCKET", "pdfs")

    def _files(self):
        return self.supabase.storage.from_(self.bucket)

    async def store(self, user_id: str, upload: PDFUpload) -> PDFRecord:
        """
        Upload the file, then insert its record.

        Raises:
            StorageError: if either step fails
        """
        ext = upload.file_name.rsplit(".", 1)[-1] if "." in upload.file_name else "pdf"
        file_path = f"{user_id}/{int(time.time() * 1000)}.{ext}"

        logger.info("Uploading PDF %s (%d bytes) to %s", upload.file_name, upload.file_size, file_path)
        try:
            self._files().upload(
                file_path,
                upload.data,
                {"content-type": "application/pdf", "cache-control": "3600", "upsert": "false"},
            )
        except Exception as e:
            logger.error("Storage upload failed: %s", e)
            raise StorageError(f"PDF processed but failed to save: {e}") from e

        row = {
            "user_id": user_id,
            "file_name": upload.file_name,
            "file_path": file_path,
            "file_size": upload.file_size,
            "topics": upload.topics,
        }
        try:
            result = self.supabase.table(self.TABLE).insert(row).execute()
        except Exception as e:
            logger.error("Saving PDF record failed: %s", e)
            raise StorageError(f"PDF processed but failed to save record: {e}") from e

        if not result.data:
            raise StorageError("PDF processed but failed to get saved record.")
        return record_from_row(result.data[0])

    async def list(self, user_id: str) -> List[PDFRecord]:
        """All of a user's PDFs, newest first."""
        try:
            result = self.supabase.table(self.TABLE) \
                .select("*") \
                .eq("user_id", user_id) \
                .order("created_at", desc=True) \
                .execute()
        except Exception as e:
            raise StorageError(f"Failed to fetch PDFs: {e}") from e

        records = [record_from_row(row) for row in (result.data or [])]
        logger.info("Fetched %d PDF(s) for user %s", len(records), user_id)
        return records

    async def get(self, user_id: str, pdf_id: str) -> PDFRecord:
        """
        Raises:
            NotFoundError: if the user has no PDF with this id
        """
        try:
            result = self.supabase.table(self.TABLE) \
                .select("*") \
                .eq("id", pdf_id) \
                .eq("user_id", user_id) \
                .execute()
        except Exception as e:
            raise StorageError(f"Failed to fetch PDF: {e}") from e

        if not result.data:
            raise NotFoundError(f"PDF {pdf_id} not found")
        return record_from_row(result.data[0])

    async def fetch_url(self, record: PDFRecord) -> str:
        """
        Signed download URL valid for one hour.

        Falls back to the public URL when signing fails (public buckets).
        """
        files = self._files()
        try:
            signed = files.create_signed_url(record.file_path, SIGNED_URL_TTL_SECONDS)
            url = signed.get("signedURL") or signed.get("signedUrl")
            if url:
                return url
            raise StorageError("Signed URL missing from response")
        except Exception as e:
            logger.warning("Signed URL failed for %s, trying public URL: %s", record.file_path, e)
            try:
                public_url = files.get_public_url(record.file_path)
            except Exception as public_error:
                raise StorageError(f"Failed to get PDF URL: {e}") from public_error
            if not public_url:
                raise StorageError(f"Failed to get PDF URL: {e}") from e
            return public_url

    async def delete(self, record: PDFRecord) -> bool:
        """Remove the stored file, then its record."""
        if not record.id:
            raise NotFoundError("PDF record has no id")
        try:
            self._files().remove([record.file_path])
        except Exception as e:
            raise StorageError(f"Failed to delete PDF: {e}") from e

        try:
            self.supabase.table(self.TABLE).delete().eq("id", record.id).execute()
        except Exception as e:
            raise StorageError(f"Failed to delete PDF record: {e}") from e

        logger.info("Deleted PDF %s (%s)", record.id, record.file_path)
        return True
