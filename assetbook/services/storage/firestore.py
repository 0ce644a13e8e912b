"""
Firestore Storage Implementation

Firestore is the hosted default backend. Each ledger owner gets a
sub-collection `users/<owner>/chunks` holding one document per chunk.

TRADEOFFS:
- A document is capped at 1 MiB, which is why the ledger is chunked
- Document ids are strings and sort lexicographically ("10" < "2"),
  so ordering and range filters always go through the integer
  `index` field, never the document id
- A write batch holds at most 500 operations; deletes beyond that
  cannot be all-or-nothing and are rejected up front
"""

from typing import Optional, Sequence

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from tenacity import retry, stop_after_attempt, wait_exponential

from assetbook.config import FirestoreSettings, get_settings
from assetbook.services.storage.interface import (
    BackendError,
    ConnectionError,
    KeyRange,
    OrderedDocumentCollection,
)


MAX_BATCH_WRITES = 500

# Firestore's per-document ceiling is 1 MiB of encoded data.
MAX_DOCUMENT_BYTES = 1_048_576


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Handles Firebase Admin initialization and provides retry logic
    for establishing the connection.
    """

    def __init__(self, settings: Optional[FirestoreSettings] = None):
        self._db = None
        self._settings = settings or get_settings().firestore

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self):
        """
        Return a Firestore client, initializing Firebase Admin once.

        Uses the configured service account file, or Application
        Default Credentials when none is configured.
        """
        if self._db is None:
            try:
                try:
                    app = firebase_admin.get_app()
                except ValueError:
                    if self._settings.credentials_path:
                        cred = credentials.Certificate(self._settings.credentials_path)
                    else:
                        cred = credentials.ApplicationDefault()
                    options = (
                        {"projectId": self._settings.project_id}
                        if self._settings.project_id
                        else None
                    )
                    app = firebase_admin.initialize_app(cred, options)
                self._db = firestore.client(app)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Firebase credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Firestore: {e}") from e

        return self._db


class FirestoreDocumentCollection(OrderedDocumentCollection):
    """
    Firestore implementation of the ordered document collection.

    Document id is `str(key)`; the key is also stored in the
    document under `key_field` for ordering and filtering.
    """

    # Conservative: 4 bytes per character in the worst case.
    max_document_chars = MAX_DOCUMENT_BYTES // 4

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()

    def _collection(self, collection_path: str):
        return self._client.connect().collection(collection_path)

    async def put(self, collection_path: str, key: int, document: dict) -> None:
        try:
            self._collection(collection_path).document(str(key)).set(document)
        except ConnectionError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to write document {key}: {e}") from e

    async def query_all(
        self,
        collection_path: str,
        ascending: bool = True,
        key_range: Optional[KeyRange] = None,
    ) -> list[dict]:
        try:
            query = self._collection(collection_path)
            if key_range is not None:
                query = query.where(filter=FieldFilter(self.key_field, ">=", key_range.start))
                if key_range.stop is not None:
                    query = query.where(filter=FieldFilter(self.key_field, "<", key_range.stop))
            direction = (
                firestore.Query.ASCENDING if ascending else firestore.Query.DESCENDING
            )
            query = query.order_by(self.key_field, direction=direction)
            return [snap.to_dict() for snap in query.stream()]
        except ConnectionError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to query {collection_path}: {e}") from e

    async def delete_many(self, collection_path: str, keys: Sequence[int]) -> None:
        if not keys:
            return
        if len(keys) > MAX_BATCH_WRITES:
            raise BackendError(
                f"Cannot delete {len(keys)} documents atomically "
                f"(batch limit is {MAX_BATCH_WRITES})"
            )
        try:
            db = self._client.connect()
            collection = db.collection(collection_path)
            batch = db.batch()
            for key in keys:
                batch.delete(collection.document(str(key)))
            batch.commit()
        except ConnectionError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to delete documents {list(keys)}: {e}") from e
