"""
Postman HTTP API wrapper.
"""

import logging
from dataclasses import dataclass
from typing import Any
from typing import Literal

import httpx
from pydantic import ValidationError

from postman_sync.models import AutoCreateDisabledError
from postman_sync.models import CollectionResponse
from postman_sync.models import CreatedCollectionResponse
from postman_sync.models import FetchError
from postman_sync.models import PostmanSyncError

POSTMAN_API_BASE = "https://api.getpostman.com"

# Update responses that mean "the destination collection is gone or not ours".
_RECREATE_STATUSES = (httpx.codes.FORBIDDEN, httpx.codes.NOT_FOUND)

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Outcome of PostmanApiClient.upsert_collection()."""

    action: Literal["insert", "update"]
    response: httpx.Response

    @property
    def created_uid(self) -> str | None:
        """UID assigned to a freshly created collection, if this was an insert."""
        if self.action != "insert" or self.response.status_code != httpx.codes.OK:
            return None
        try:
            payload = CreatedCollectionResponse.model_validate(self.response.json())
        except (ValueError, ValidationError) as e:
            raise PostmanSyncError("Create response did not include a collection uid") from e
        return payload.collection.uid


def fetch_read_only_collection(
    url: str, transport: httpx.BaseTransport | None = None
) -> dict[str, Any]:
    """
    Fetch the source collection through its public read-only link.

    Raises FetchError if the response body has no ``collection`` object, and
    httpx.HTTPError for transport or status failures.
    """
    with httpx.Client(transport=transport) as client:
        response = client.get(url)
        response.raise_for_status()
    try:
        payload = CollectionResponse.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise FetchError("Invalid response from read-only URL — collection missing") from e
    return payload.collection


class PostmanApiClient:
    """Writes collections into a workspace with a single API key."""

    def __init__(
        self,
        api_key: str,
        base_url: str = POSTMAN_API_BASE,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.client = httpx.Client(
            base_url=base_url,
            headers={"X-API-Key": api_key},
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.client.close()

    def upsert_collection(
        self,
        workspace_id: str,
        collection: dict[str, Any],
        collection_uid: str | None = None,
        prevent_auto_create: bool = False,
    ) -> UpsertResult:
        """
        Update ``collection_uid`` in place, or create a new collection.

        A 403/404 on update falls back to creating the collection unless
        ``prevent_auto_create`` is set, in which case AutoCreateDisabledError
        is raised.
        """
        if not collection_uid:
            if prevent_auto_create:
                raise AutoCreateDisabledError(
                    "Target workspace is missing 'collection_uid' and 'prevent_auto_create' "
                    "is set. Unable to auto-create collection."
                )
            return self.create_collection(workspace_id, collection)

        try:
            return self.update_collection(workspace_id, collection, collection_uid)
        except httpx.HTTPStatusError as e:
            if e.response.status_code not in _RECREATE_STATUSES:
                raise
            if prevent_auto_create:
                raise AutoCreateDisabledError(
                    f"Collection {collection_uid} returned HTTP {e.response.status_code} "
                    f"and 'prevent_auto_create' is set for workspace {workspace_id}"
                ) from e
            logger.info(
                "Collection %s not writable (HTTP %d), creating a new one in %s",
                collection_uid,
                e.response.status_code,
                workspace_id,
            )
            return self.create_collection(workspace_id, collection)

    def update_collection(
        self, workspace_id: str, collection: dict[str, Any], uid: str
    ) -> UpsertResult:
        response = self.client.put(
            f"/collections/{uid}",
            json={"collection": collection},
            params={"workspace": workspace_id},
        )
        response.raise_for_status()
        return UpsertResult(action="update", response=response)

    def create_collection(self, workspace_id: str, collection: dict[str, Any]) -> UpsertResult:
        response = self.client.post(
            "/collections",
            json={"collection": collection},
            params={"workspace": workspace_id},
        )
        response.raise_for_status()
        return UpsertResult(action="insert", response=response)
