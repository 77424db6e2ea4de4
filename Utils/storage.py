import os
import logging

from Utils.appError import StorageError

logger = logging.getLogger(__name__)


class ReceiptStorage:
    """Filesystem store for rendered receipt PDFs."""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir

    def save(self, pdf_bytes: bytes, filename: str) -> str:
        """Write the PDF and return its absolute path."""
        path = os.path.join(self.base_dir, os.path.basename(filename))
        try:
            os.makedirs(self.base_dir, exist_ok=True)
            with open(path, "wb") as f:
                f.write(pdf_bytes)
        except OSError as e:
            logger.error(f"❌ Failed to write receipt PDF {path}: {e}")
            raise StorageError(f"Could not store receipt PDF: {e}")
        return os.path.abspath(path)

    def exists(self, path) -> bool:
        return bool(path) and os.path.isfile(path)

    def delete(self, path) -> bool:
        if not self.exists(path):
            return False
        try:
            os.remove(path)
            return True
        except OSError as e:
            logger.warning(f"⚠️ Could not remove receipt PDF {path}: {e}")
            return False
