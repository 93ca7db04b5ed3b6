"""
Deck stores - whole-collection persistence

A store loads and saves the complete deck collection as one JSON document:

    {"decks": [<deck wire dict>, ...]}

Every save replaces the whole document, so a progress update and the card
order recomputed from it always land together.

Backends:
    MemoryDeckStore  - keeps the document in memory (tests, throwaway runs)
    LocalDeckStore   - JSON file on local disk
    S3DeckStore      - JSON object in S3 with ETag optimistic locking

Any backend or decoding failure is raised as StoreError; callers decide
whether that is fatal.
"""

import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from deck_models import Deck

logger = logging.getLogger(__name__)


def encode_collection(decks: Iterable[Deck]) -> bytes:
    document = {"decks": [deck.to_dict() for deck in decks]}
    return json.dumps(document, ensure_ascii=False).encode("utf-8")


def decode_collection(data: bytes) -> List[Deck]:
    try:
        document = json.loads(data)
        return [Deck.from_dict(deck_data) for deck_data in document.get("decks") or []]
    except (AttributeError, TypeError, ValueError) as e:
        raise StoreError(f"Stored deck collection is corrupt: {e}")


class DeckStore:
    """Interface every store implements."""

    def load(self) -> List[Deck]:
        raise NotImplementedError

    def save(self, decks: Iterable[Deck]) -> None:
        raise NotImplementedError


class MemoryDeckStore(DeckStore):
    """Holds the serialised collection in memory, so loads never share objects with callers."""

    def __init__(self, decks: Optional[Iterable[Deck]] = None):
        self._data = encode_collection(decks or [])

    def load(self) -> List[Deck]:
        return decode_collection(self._data)

    def save(self, decks: Iterable[Deck]) -> None:
        self._data = encode_collection(decks)


class LocalDeckStore(DeckStore):
    """
    Collection stored as a JSON file.

    Usage:
        store = LocalDeckStore('/tmp/flashorder_decks.json')
        decks = store.load()      # [] if the file does not exist yet
        store.save(decks)
    """

    def __init__(self, path: str):
        self.path = path

    def load(self) -> List[Deck]:
        if not os.path.exists(self.path):
            logger.info(f"No deck file at {self.path}, starting with an empty collection")
            return []
        try:
            with open(self.path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise StoreError(f"Could not read {self.path}: {e}")
        return decode_collection(data)

    def save(self, decks: Iterable[Deck]) -> None:
        data = encode_collection(decks)
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        except OSError as e:
            raise StoreError(f"Could not write {self.path}: {e}")

        # Written next to the target and swapped in, so readers never see half a file
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StoreError(f"Could not write {self.path}: {e}")
        logger.debug(f"Saved deck collection to {self.path} ({len(data)} bytes)")


class S3DeckStore(DeckStore):
    """
    Collection stored as a single S3 object.

    The ETag seen on the last load/save is remembered. Before uploading,
    the current ETag is checked with head_object; if another writer replaced
    the object in the meantime the save is refused with ConflictError
    instead of silently overwriting their changes.

    Usage:
        store = S3DeckStore('my-bucket', 'decks/state.json')
        decks = store.load()
        store.save(decks)
    """

    def __init__(self, bucket: str, key: str, s3_client: Any = None):
        self.bucket = bucket
        self.key = key
        self.s3 = s3_client if s3_client is not None else boto3.client("s3")
        self.current_etag: Optional[str] = None

    def load(self) -> List[Deck]:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=self.key)
            data = response["Body"].read()
        except ClientError as e:
            if _error_code(e) in ("NoSuchKey", "404"):
                logger.info(f"s3://{self.bucket}/{self.key} not found, starting with an empty collection")
                self.current_etag = None
                return []
            raise StoreError(f"Could not download s3://{self.bucket}/{self.key}: {e}")
        except BotoCoreError as e:
            raise StoreError(f"Could not download s3://{self.bucket}/{self.key}: {e}")

        self.current_etag = response.get("ETag")
        logger.debug(f"Downloaded s3://{self.bucket}/{self.key} (ETag: {self.current_etag})")
        return decode_collection(data)

    def save(self, decks: Iterable[Deck]) -> None:
        data = encode_collection(decks)
        self._check_etag()
        try:
            response = self.s3.put_object(
                Bucket=self.bucket,
                Key=self.key,
                Body=data,
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Could not upload s3://{self.bucket}/{self.key}: {e}")

        self.current_etag = response.get("ETag")
        logger.debug(f"Uploaded s3://{self.bucket}/{self.key} (new ETag: {self.current_etag})")

    def _check_etag(self) -> None:
        """Refuse to overwrite an object that changed since we last saw it."""
        try:
            head = self.s3.head_object(Bucket=self.bucket, Key=self.key)
        except ClientError as e:
            if _error_code(e) not in ("NoSuchKey", "404"):
                raise StoreError(f"Could not check s3://{self.bucket}/{self.key}: {e}")
            if self.current_etag is not None:
                raise ConflictError(
                    f"s3://{self.bucket}/{self.key} was deleted since it was loaded. "
                    f"Reload the collection and retry."
                )
            return
        except BotoCoreError as e:
            raise StoreError(f"Could not check s3://{self.bucket}/{self.key}: {e}")

        s3_etag = head.get("ETag")
        if s3_etag != self.current_etag:
            raise ConflictError(
                f"Concurrent modification detected for s3://{self.bucket}/{self.key}. "
                f"Expected ETag {self.current_etag}, but S3 has {s3_etag}."
            )


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class StoreError(Exception):
    """Raised when the deck collection cannot be loaded or saved."""
    pass


class ConflictError(StoreError):
    """Raised when the stored collection changed underneath us (optimistic lock failed)."""
    pass
