"""
Upload dispatcher: validate, route by size, store the file, record the metadata.

    caller -> classify_size -> ImageKitClient.upload -> create_document -> id

There is a single attempt per step and no rollback. If the metadata write
fails after the file reached the provider, the remote file is left behind
and logged so it can be cleaned up by hand.
"""
import logging
from typing import Any, Dict, Mapping
from urllib.parse import urlparse

from supabase import Client

import library
from errors import InvalidFileTypeError, InvalidLinkError
from models import ProviderTag
from routing import classify_size, format_size
from schemas import DocumentFieldsIn

logger = logging.getLogger(__name__)

ACCEPTED_CONTENT_TYPE = "application/pdf"


def validate_pdf(filename: str, content_type: str, size: int) -> ProviderTag:
    """Reject anything that should never reach a provider; return the tier otherwise."""
    if content_type != ACCEPTED_CONTENT_TYPE:
        raise InvalidFileTypeError("Only PDF files are allowed")
    if not filename:
        raise InvalidFileTypeError("File name is required")
    return classify_size(size)


def validate_link(url: str) -> str:
    url = url.strip()
    if not url:
        raise InvalidLinkError("Please provide a PDF link")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidLinkError("Please provide a valid URL")
    return url


def _document_fields(fields: DocumentFieldsIn, uploaded_by: str) -> Dict[str, Any]:
    return {
        "title": fields.title,
        "author": fields.author,
        "description": fields.description,
        "categories": fields.categories,
        "tags": fields.tags,
        "uploaded_by": uploaded_by,
    }


async def upload_pdf(
    store: Client,
    clients: Mapping[ProviderTag, Any],
    *,
    filename: str,
    content_type: str,
    content: bytes,
    fields: DocumentFieldsIn,
    uploaded_by: str,
) -> str:
    provider = validate_pdf(filename, content_type, len(content))
    logger.info(f"Routing {filename} ({format_size(len(content))}) to {provider.value}")

    result = await clients[provider].upload(content, filename)

    record = _document_fields(fields, uploaded_by)
    record.update({
        "pdf_url": result.url,
        "file_name": result.name,
        "file_size": result.size,
        "mime_type": content_type,
        "upload_provider": result.provider.value,
        "imagekit_file_id": result.file_id,
    })
    try:
        document_id = library.create_document(store, record)
    except Exception:
        logger.error(
            f"Metadata write failed after upload; orphaned file {result.file_id} "
            f"at {result.provider.value} ({result.url})"
        )
        raise

    logger.info(f"PDF {document_id} uploaded via {result.provider.value} by {uploaded_by}")
    return document_id


def create_from_link(store: Client, *, url: str, fields: DocumentFieldsIn, uploaded_by: str) -> str:
    record = _document_fields(fields, uploaded_by)
    record.update({
        "pdf_url": validate_link(url),
        "upload_provider": ProviderTag.EXTERNAL.value,
    })
    document_id = library.create_document(store, record)
    logger.info(f"PDF {document_id} created from external link by {uploaded_by}")
    return document_id
