"""Local receipt storage for reimbursement claims."""

import logging
import os
import uuid

from fastapi import UploadFile

from leavedesk.common.exceptions import ValidationException
from leavedesk.config import settings

logger = logging.getLogger(__name__)

ALLOWED_RECEIPT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}


async def save_receipt(file: UploadFile) -> str:
    """Validate and store an uploaded receipt; return its public URL."""
    if file.content_type not in ALLOWED_RECEIPT_TYPES:
        raise ValidationException(
            {"receipt": [
                f"File type '{file.content_type}' not allowed. "
                "Accepted: JPEG, PNG, GIF, WEBP, PDF."
            ]}
        )

    contents = await file.read()
    if not contents:
        raise ValidationException({"receipt": ["Receipt file is empty."]})

    max_size = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if len(contents) > max_size:
        raise ValidationException(
            {"receipt": [f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB} MB."]}
        )

    upload_dir = os.path.join(settings.UPLOAD_DIR, "receipts")
    os.makedirs(upload_dir, exist_ok=True)

    # Random filename only; the client's filename never reaches the filesystem
    safe_name = f"{uuid.uuid4().hex}{ALLOWED_RECEIPT_TYPES[file.content_type]}"
    with open(os.path.join(upload_dir, safe_name), "wb") as f:
        f.write(contents)

    logger.info("Stored receipt %s (%d bytes)", safe_name, len(contents))
    return f"/uploads/receipts/{safe_name}"


def delete_receipt(url: str) -> None:
    """Remove a receipt stored by :func:`save_receipt`."""
    path = os.path.join(settings.UPLOAD_DIR, "receipts", os.path.basename(url))
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("Receipt %s already gone", path)
        return
    logger.info("Removed receipt %s", os.path.basename(url))
