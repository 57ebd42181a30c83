"""
CRUD router factory

Builds the list / create / detail / replace / update / delete routes for a
single MongoDB collection. Every route makes one store call (update makes
two: patch, then read back) and maps the store outcome to an HTTP status.
"""

import logging
from typing import Any, Callable, Dict, Optional, Type

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError

from database import DatabaseUnavailable, DocumentStore, StoreResult, StoreStatus, open_store
from schemas import Document, for_client, from_client

logger = logging.getLogger(__name__)


def store_provider(collection_name: str) -> Callable[[], DocumentStore]:
    """FastAPI dependency returning the store for ``collection_name``."""
    def get_store() -> DocumentStore:
        try:
            return open_store(collection_name)
        except DatabaseUnavailable:
            raise HTTPException(status_code=503, detail="Database not connected")
    return get_store


def set_etag(response: Response, rev: Optional[str]) -> None:
    # Documents written outside this service may carry no revision
    if rev is not None:
        response.headers["ETag"] = f'"{rev}"'


def check_field_names(data: Any, loc: tuple = ("body",)) -> None:
    """Reject names MongoDB would read as a path (`a.b`) or an operator (`$x`)."""
    errors = []

    def walk(value, path):
        if isinstance(value, dict):
            for name, item in value.items():
                if "." in name or name.startswith("$"):
                    errors.append({
                        "type": "value_error",
                        "loc": (*path, name),
                        "msg": "Field names may not contain '.' or start with '$'",
                        "input": name,
                    })
                walk(item, (*path, name))
        elif isinstance(value, list):
            for index, item in enumerate(value):
                walk(item, (*path, index))

    walk(data, loc)
    if errors:
        raise RequestValidationError(errors)


def parse_if_match(value: Optional[str]) -> Optional[str]:
    if value is None or value.strip() in ("", "*"):
        return None
    return value.strip().removeprefix("W/").strip('"')


def check_result(result: StoreResult, collection_name: str, key: Optional[str] = None) -> Dict[str, Any]:
    """Return the result document, or raise the HTTP error for its status."""
    status = result.status
    if status is StoreStatus.OK:
        return result.document
    if status is StoreStatus.NOT_FOUND:
        logger.warning("%s document %r not found", collection_name, key)
        raise HTTPException(status_code=404, detail=f"{collection_name} document '{key}' not found")
    if status is StoreStatus.DUPLICATE_KEY:
        logger.warning("%s document %r already exists", collection_name, key)
        raise HTTPException(status_code=409, detail=f"{collection_name} document '{key}' already exists")
    if status is StoreStatus.CONFLICT:
        logger.warning("%s document %r was modified concurrently", collection_name, key)
        raise HTTPException(status_code=409, detail=f"{collection_name} document '{key}' revision does not match")
    raise ValueError(f"Unhandled store status: {status}")


def create_crud_router(
    collection_name: str,
    model: Type[Document],
    get_store: Callable[[], DocumentStore],
) -> APIRouter:
    """
    Six routes over one collection. Mount with ``prefix=f"/{collection_name}"``.

    POST and PUT bodies are validated against ``model``; PATCH accepts any
    JSON object. Writes return the new revision in the ``ETag`` header and
    PUT/PATCH honour ``If-Match``.
    """
    router = APIRouter(tags=[collection_name])
    title = model.__name__
    detail_route = f"{collection_name}_detail"

    @router.get("", summary=f"List all {title}s", name=f"{collection_name}_list")
    def list_documents(store: DocumentStore = Depends(get_store)):
        """Retrieves a list of all documents. Order is unspecified."""
        return [for_client(record) for record in store.all()]

    @router.post(
        "",
        status_code=201,
        summary=f"Create a new {title}",
        name=f"{collection_name}_create",
        responses={409: {"description": f"The {title} already exists."}},
    )
    def create_document(
        request: Request,
        response: Response,
        payload: model = Body(..., description=f"The {title} to create."),
        store: DocumentStore = Depends(get_store),
    ):
        """Creates a new document from the request body and returns the saved document."""
        document = from_client(payload.to_document())
        check_field_names(document)
        if payload.key is not None:
            document["_key"] = payload.key
        meta = check_result(store.save(document), collection_name, payload.key)
        document.update(meta)

        logger.info("Created %s document %s", collection_name, meta["_key"])
        response.headers["Location"] = str(request.url_for(detail_route, key=meta["_key"]))
        set_etag(response, meta["_rev"])
        return for_client(document)

    @router.get(
        "/{key}",
        summary=f"Fetch a {title}",
        name=detail_route,
        responses={404: {"description": f"The {title} does not exist."}},
    )
    def get_document(response: Response, key: str, store: DocumentStore = Depends(get_store)):
        """Retrieves a document by its key."""
        record = check_result(store.get(key), collection_name, key)
        set_etag(response, record.get("_rev"))
        return for_client(record)

    @router.put(
        "/{key}",
        summary=f"Replace a {title}",
        name=f"{collection_name}_replace",
        responses={
            404: {"description": f"The {title} does not exist."},
            409: {"description": "The If-Match revision is stale."},
        },
    )
    def replace_document(
        response: Response,
        key: str,
        payload: model = Body(..., description=f"The data to replace the {title} with."),
        if_match: Optional[str] = Header(default=None),
        store: DocumentStore = Depends(get_store),
    ):
        """Replaces an existing document with the request body and returns the new document."""
        document = from_client(payload.to_document())
        check_field_names(document)
        expected_rev = parse_if_match(if_match)
        meta = check_result(store.replace(key, document, expected_rev), collection_name, key)
        document.update(meta)

        logger.info("Replaced %s document %s (rev %s -> %s)", collection_name, key, meta.get("_oldRev"), meta["_rev"])
        set_etag(response, meta["_rev"])
        return for_client(document)

    @router.patch(
        "/{key}",
        summary=f"Update a {title}",
        name=f"{collection_name}_update",
        responses={
            404: {"description": f"The {title} does not exist."},
            409: {"description": "The If-Match revision is stale."},
        },
    )
    def update_document(
        response: Response,
        key: str,
        patch_data: Dict[str, Any] = Body(..., description=f"The data to update the {title} with."),
        if_match: Optional[str] = Header(default=None),
        store: DocumentStore = Depends(get_store),
    ):
        """Patches a document with the request body and returns the updated document."""
        check_field_names(patch_data)
        expected_rev = parse_if_match(if_match)
        check_result(store.update(key, from_client(patch_data), expected_rev), collection_name, key)
        # Not atomic with the patch; a delete in between surfaces as 404 here
        record = check_result(store.get(key), collection_name, key)

        logger.info("Updated %s document %s", collection_name, key)
        set_etag(response, record.get("_rev"))
        return for_client(record)

    @router.delete(
        "/{key}",
        status_code=204,
        summary=f"Remove a {title}",
        name=f"{collection_name}_delete",
        responses={404: {"description": f"The {title} does not exist."}},
    )
    def delete_document(key: str, store: DocumentStore = Depends(get_store)):
        """Deletes a document from the database."""
        check_result(store.remove(key), collection_name, key)
        logger.info("Deleted %s document %s", collection_name, key)
        return Response(status_code=204)

    return router
