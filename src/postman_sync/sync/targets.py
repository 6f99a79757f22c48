"""
Per-target upsert: rotate keys, write the collection, record auto-creates.
"""

from collections.abc import Callable
from typing import Any

from postman_sync.api_client import PostmanApiClient
from postman_sync.api_client import UpsertResult
from postman_sync.models import TargetWorkspace
from postman_sync.rate_limiter import CredentialRotator
from postman_sync.storage import SyncStorage

ClientFactory = Callable[[str], PostmanApiClient]


def upsert_target(
    target: TargetWorkspace,
    collection: dict[str, Any],
    rotator: CredentialRotator,
    client_factory: ClientFactory,
) -> UpsertResult:
    """Write ``collection`` into ``target``, retrying across its API keys."""

    def _attempt(api_key: str) -> UpsertResult:
        with client_factory(api_key) as client:
            return client.upsert_collection(
                target.id,
                collection,
                target.collection_uid,
                target.prevent_auto_create,
            )

    return rotator.with_retry(_attempt)


def record_auto_created(
    target: TargetWorkspace,
    result: UpsertResult,
    storage: SyncStorage,
    read_only_url: str,
    logger,
) -> str | None:
    """
    Store the UID of a newly created collection on ``target`` and audit it.

    Returns the new UID, or None if ``result`` was not a successful create.
    The UID is kept in memory for the rest of the process only.
    """
    created_uid = result.created_uid
    if created_uid is None:
        return None

    target.collection_uid = created_uid
    storage.append_auto_created(target.id, read_only_url, created_uid)
    logger.info(f"Auto-created collection {created_uid} in target {target.label}")
    return created_uid
