"""Preview QR code delivery handler."""
from pathlib import Path
from typing import Optional, Tuple
import logging

from ..protocols import IObjectUploader

logger = logging.getLogger(__name__)

CDN_URL_FILE = "preview-qrcode-url.txt"


class PreviewHandler:
    """Pushes the preview QR code to the CDN and publishes its URL."""

    def __init__(self, uploader: IObjectUploader, work_dir: Path):
        """
        Initialize preview handler.

        Args:
            uploader: Object-storage uploader
            work_dir: Directory receiving the CDN URL marker file
        """
        self._uploader = uploader
        self._work_dir = Path(work_dir)

    @property
    def marker_path(self) -> Path:
        return self._work_dir / CDN_URL_FILE

    async def deliver(self, qrcode_path: Path) -> Tuple[Optional[str], Optional[str]]:
        """
        Upload the QR code image.

        Returns:
            (cdn_url, None) on success, (None, warning) when the QR code stays local
        """
        qrcode_path = Path(qrcode_path)
        if not qrcode_path.exists():
            warning = f"QR code not found at {qrcode_path}, nothing to upload"
            logger.warning(f"[preview] {warning}")
            return None, warning

        logger.info(f"[preview] Uploading QR code {qrcode_path.name} to CDN...")
        result = await self._uploader.upload(qrcode_path)

        if not result.success:
            warning = f"QR code upload failed: {result.error}"
            logger.warning(f"[preview] {warning}")
            logger.info(f"[preview] QR code kept locally at {qrcode_path}")
            return None, warning

        logger.info(f"[preview] CDN URL: {result.url}")
        try:
            self.marker_path.write_text(result.url, encoding="utf-8")
            logger.info(f"[preview] CDN URL saved to {self.marker_path.name}")
        except OSError as e:
            logger.warning(f"[preview] Could not write {self.marker_path}: {e}")
        return result.url, None
