"""
Document and category persistence on top of the Supabase client.

Store errors are not caught here; callers decide how to surface them.
Documents keep category names as plain strings, so deleting a category
leaves existing references in place.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from supabase import Client

from models import Category, Document, ProviderTag

logger = logging.getLogger(__name__)

DOCUMENTS_TABLE = "documents"
CATEGORIES_TABLE = "categories"
USERS_TABLE = "users"

SORT_ORDERS = ("newest", "oldest", "most-viewed")

# Providers whose files live in an account we can delete from
_DELETE_ROUTES = {
    ProviderTag.IMAGEKIT_SMALL: ProviderTag.IMAGEKIT_SMALL,
    ProviderTag.IMAGEKIT_LARGE: ProviderTag.IMAGEKIT_LARGE,
    ProviderTag.IMAGEKIT: ProviderTag.IMAGEKIT_LARGE,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first(response) -> Optional[Dict[str, Any]]:
    if not response.data:
        return None
    row = response.data[0]
    if not isinstance(row, dict):
        raise ValueError(f"Unexpected response format from Supabase: {row}")
    return row


# Documents

def create_document(store: Client, fields: Mapping[str, Any]) -> str:
    """Write one document record and return its generated id."""
    now = _now()
    record = {
        "view_count": 0,
        "download_count": 0,
        **fields,
        "created_at": now,
        "updated_at": now,
    }
    response = store.table(DOCUMENTS_TABLE).insert(record).execute()
    created = _first(response)
    if not created or not created.get("id"):
        raise RuntimeError("Failed to save document metadata")
    return str(created["id"])


def get_document(store: Client, document_id: str) -> Optional[Document]:
    response = store.table(DOCUMENTS_TABLE).select("*").eq("id", document_id).limit(1).execute()
    row = _first(response)
    return Document(**row) if row else None


def matches_search(document: Document, search: str) -> bool:
    needle = search.lower()
    return (
        needle in document.title.lower()
        or needle in document.author.lower()
        or needle in document.description.lower()
        or any(needle in tag.lower() for tag in document.tags)
    )


def filter_documents(
    documents: Iterable[Document],
    search: str = "",
    categories: Optional[List[str]] = None,
    sort: str = "newest",
) -> List[Document]:
    if sort not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {sort}")

    selected = set(categories or [])
    result = [
        doc for doc in documents
        if (not search or matches_search(doc, search))
        and (not selected or selected.intersection(doc.categories))
    ]

    if sort == "newest":
        result.sort(key=lambda doc: doc.created_at, reverse=True)
    elif sort == "oldest":
        result.sort(key=lambda doc: doc.created_at)
    else:
        result.sort(key=lambda doc: doc.view_count, reverse=True)
    return result


def list_documents(
    store: Client,
    search: str = "",
    categories: Optional[List[str]] = None,
    sort: str = "newest",
) -> List[Document]:
    response = store.table(DOCUMENTS_TABLE).select("*").order("created_at", desc=True).execute()
    documents = [Document(**row) for row in response.data]
    return filter_documents(documents, search=search, categories=categories, sort=sort)


def update_document(store: Client, document_id: str, updates: Mapping[str, Any]) -> None:
    store.table(DOCUMENTS_TABLE).update({**updates, "updated_at": _now()}).eq("id", document_id).execute()


async def delete_document(store: Client, clients: Mapping[ProviderTag, Any], document: Document) -> None:
    """Remove the stored file from the account that holds it, then the record."""
    route = _DELETE_ROUTES.get(document.upload_provider)
    if route is not None and document.imagekit_file_id:
        await clients[route].delete(document.imagekit_file_id)
    elif route is not None:
        logger.warning(f"Document {document.id} has no remote file id; only the record is deleted")

    store.table(DOCUMENTS_TABLE).delete().eq("id", document.id).execute()
    logger.info(f"Deleted document {document.id} ({document.upload_provider.value})")


def _increment(store: Client, document_id: str, column: str) -> Optional[int]:
    response = store.table(DOCUMENTS_TABLE).select(column).eq("id", document_id).limit(1).execute()
    row = _first(response)
    if row is None:
        return None
    count = (row.get(column) or 0) + 1
    store.table(DOCUMENTS_TABLE).update({column: count}).eq("id", document_id).execute()
    return count


def increment_view_count(store: Client, document_id: str) -> Optional[int]:
    return _increment(store, document_id, "view_count")


def increment_download_count(store: Client, document_id: str) -> Optional[int]:
    return _increment(store, document_id, "download_count")


# Categories

def list_categories(store: Client) -> List[Category]:
    response = store.table(CATEGORIES_TABLE).select("*").order("name").execute()
    return [Category(**row) for row in response.data]


def get_category(store: Client, category_id: str) -> Optional[Category]:
    response = store.table(CATEGORIES_TABLE).select("*").eq("id", category_id).limit(1).execute()
    row = _first(response)
    return Category(**row) if row else None


def create_category(store: Client, fields: Mapping[str, Any]) -> str:
    response = store.table(CATEGORIES_TABLE).insert({**fields, "created_at": _now()}).execute()
    created = _first(response)
    if not created or not created.get("id"):
        raise RuntimeError("Failed to create category")
    return str(created["id"])


def update_category(store: Client, category_id: str, updates: Mapping[str, Any]) -> None:
    store.table(CATEGORIES_TABLE).update(dict(updates)).eq("id", category_id).execute()


def delete_category(store: Client, category_id: str) -> None:
    store.table(CATEGORIES_TABLE).delete().eq("id", category_id).execute()


def remove_duplicate_categories(store: Client) -> int:
    """
    Keep the oldest category for every case-insensitive name and delete the rest.
    Returns how many categories were removed.
    """
    groups: Dict[str, List[Category]] = {}
    for category in list_categories(store):
        groups.setdefault(category.name.lower(), []).append(category)

    removed = 0
    for group in groups.values():
        if len(group) < 2:
            continue
        group.sort(key=lambda category: category.created_at)
        for duplicate in group[1:]:
            delete_category(store, duplicate.id)
            removed += 1

    if removed:
        logger.info(f"Removed {removed} duplicate categories")
    return removed
