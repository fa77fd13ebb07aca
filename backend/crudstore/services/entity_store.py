"""
crudstore — Entity Store (JSON-file-backed collection)
======================================================

What:  Owns one named collection of schema-less entities, assigns their
       primary keys, and mirrors the whole collection to a single JSON file.
How:   The authoritative copy lives in memory. Every mutating call changes
       the in-memory list, then rewrites `{storage_path}/{entity_name}.json`.
Who:   Constructed by the application factory, one per collection, and
       injected into the CRUD router for that collection.

Lifecycle:
    store = EntityStore()
    await store.init("cars", "./storage")   # creates ./storage/cars.json if absent
    car = await store.create({"make": "Mercedes"})   # → {"make": "Mercedes", "id": 0}
    store.get(0), store.get_all()           # synchronous, never touch the disk
    await store.update({"id": 0, "make": "BMW"})
    await store.delete({"id": 0})

Id assignment:
    The next id is the numeric maximum of existing ids plus one, or 0 for an
    empty collection. The list is scanned, never sorted, so insertion order
    is preserved and ids past 9 compare numerically.

Concurrency:
    One asyncio.Lock per store serializes the mutate-then-write sequence.
    Writes reach the file in the order the mutations were issued, and a
    write never includes a mutation that has not finished applying.

Durability:
    Each write goes to `<file>.tmp` and is renamed over the collection file.
    In the default mode a failed write raises PersistenceError. With
    `best_effort_writes=True` the failure is only logged. In both modes the
    in-memory mutation stays applied.

Shared references:
    get() and get_all() return the stored dicts themselves. Callers that hand
    entities to the outside world (the HTTP layer) copy them first.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles
import aiofiles.os

from crudstore.exceptions import (
    MissingIdError,
    NotFoundError,
    PersistenceError,
    UninitializedError,
)

logger = logging.getLogger(__name__)

Entity = Dict[str, Any]


def storage_path_for(entity_name: str, storage_path: Union[str, Path]) -> Path:
    """Location of the backing file for a collection."""
    return Path(storage_path) / f"{entity_name}.json"


def _is_entity_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def next_entity_id(entities: List[Entity]) -> int:
    """
    Numeric maximum of the existing ids plus one, or 0 when there are none.

    Entries whose `id` is not an integer (hand-edited files) are ignored,
    and the result is never negative.
    """
    ids = [entity["id"] for entity in entities if _is_entity_id(entity.get("id"))]
    if not ids:
        return 0
    return max(max(ids) + 1, 0)


class EntityStore:
    """
    In-memory collection of entities mirrored to one JSON file.

    Args:
        best_effort_writes: Log write failures after a mutation instead of
            raising PersistenceError.
    """

    def __init__(self, best_effort_writes: bool = False) -> None:
        self.best_effort_writes = best_effort_writes
        self.entity_name: Optional[str] = None
        self.file_path: Optional[Path] = None
        self._entities: List[Entity] = []
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def __len__(self) -> int:
        return len(self._entities)

    # ══════════════════════════════════════════════════════════════════════
    # Lifecycle & Recovery
    # ══════════════════════════════════════════════════════════════════════

    async def init(self, entity_name: str, storage_path: Union[str, Path]) -> None:
        """
        Bind the store to `{storage_path}/{entity_name}.json` and load it.

        Creates the storage directory and an empty collection file when the
        file does not exist. A file that cannot be read or parsed leaves the
        collection empty; the failure is logged and the store stays usable.
        Calling init() again on an initialized store does nothing.

        Raises:
            PersistenceError: The collection file could not be created.
        """
        async with self._lock:
            if self._initialized:
                logger.debug(
                    "Store for '%s' already initialized; ignoring init('%s')",
                    self.entity_name,
                    entity_name,
                )
                return

            self.entity_name = entity_name
            self.file_path = storage_path_for(entity_name, storage_path)

            await self._ensure_storage_is_set_up()
            self._entities = await self._load_all_from_storage()
            self._initialized = True

    async def _ensure_storage_is_set_up(self) -> None:
        if await aiofiles.os.path.exists(self.file_path):
            return

        logger.info(
            "Storage not set up for collection '%s'. Creating %s",
            self.entity_name,
            self.file_path,
        )
        try:
            await aiofiles.os.makedirs(self.file_path.parent, exist_ok=True)
            async with aiofiles.open(self.file_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps([]))
        except OSError as e:
            logger.error("Error creating storage file %s: %s", self.file_path, str(e))
            raise PersistenceError(
                message=f"Could not create storage for collection '{self.entity_name}'",
                context={"path": str(self.file_path), "os_error": str(e)},
            )

    async def _load_all_from_storage(self) -> List[Entity]:
        try:
            async with aiofiles.open(self.file_path, "r", encoding="utf-8") as f:
                content = await f.read()
            entities = json.loads(content)
        except (OSError, ValueError) as e:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            logger.error(
                "Error reading or parsing entities from %s: %s. "
                "Continuing with an empty collection.",
                self.file_path,
                str(e),
            )
            return []

        if not isinstance(entities, list) or not all(isinstance(e, dict) for e in entities):
            logger.error(
                "Error parsing entities from %s: file does not contain an array of objects. "
                "Continuing with an empty collection.",
                self.file_path,
            )
            return []

        self._warn_on_duplicate_ids(entities)
        logger.info(
            "Loaded %d entities from storage for collection '%s'",
            len(entities),
            self.entity_name,
        )
        return entities

    def _warn_on_duplicate_ids(self, entities: List[Entity]) -> None:
        seen = set()
        duplicates = set()
        for entity in entities:
            entity_id = entity.get("id")
            if not _is_entity_id(entity_id):
                continue
            if entity_id in seen:
                duplicates.add(entity_id)
            seen.add(entity_id)
        if duplicates:
            logger.warning(
                "Collection file %s contains duplicate ids: %s",
                self.file_path,
                sorted(duplicates),
            )

    # ══════════════════════════════════════════════════════════════════════
    # Durability
    # ══════════════════════════════════════════════════════════════════════

    async def _store_all_to_storage(self) -> None:
        """Rewrite the collection file from memory. Caller holds the lock."""
        tmp_path = self.file_path.with_name(self.file_path.name + ".tmp")
        try:
            payload = json.dumps(self._entities, indent=2, ensure_ascii=False)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, self.file_path)
        except (OSError, ValueError) as e:
            # ValueError covers UnicodeEncodeError from the utf-8 file
            await self._discard_tmp_file(tmp_path)
            if self.best_effort_writes:
                logger.error(
                    "Error storing entities '%s' to %s (best-effort mode, not raised): %s",
                    self.entity_name,
                    self.file_path,
                    str(e),
                )
                return
            logger.error(
                "Error storing entities '%s' to %s: %s",
                self.entity_name,
                self.file_path,
                str(e),
            )
            raise PersistenceError(
                message=(
                    f"Failed to persist collection '{self.entity_name}'. "
                    "The change is applied in memory but may not survive a restart."
                ),
                context={"path": str(self.file_path), "error": str(e)},
            )

    async def _discard_tmp_file(self, tmp_path: Path) -> None:
        try:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
        except OSError as e:
            logger.warning("Failed to remove temporary file %s: %s", tmp_path, str(e))

    def _check_serializable(self, entity: Entity) -> None:
        """Reject values the collection file cannot hold before they reach memory."""
        try:
            # Same encoding as the write: lone surrogates pass json but not utf-8
            json.dumps(entity, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise PersistenceError(
                message="Entity contains values that cannot be stored as JSON",
                context={"collection": self.entity_name, "error": str(e)},
            )

    # ══════════════════════════════════════════════════════════════════════
    # CRUD
    # ══════════════════════════════════════════════════════════════════════

    def _check_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise UninitializedError(operation)

    def _require_id(self, entity: Entity, operation: str) -> int:
        entity_id = entity.get("id")
        if entity_id is None:
            raise MissingIdError(operation, context={"collection": self.entity_name})
        if not _is_entity_id(entity_id):
            raise MissingIdError(
                operation,
                invalid_id=entity_id,
                context={"collection": self.entity_name},
            )
        return entity_id

    def _index_of(self, entity_id: Any) -> Optional[int]:
        # 0.0 == 0 and True == 1, so only real integers can match
        if not _is_entity_id(entity_id):
            return None
        for index, entity in enumerate(self._entities):
            stored_id = entity.get("id")
            if _is_entity_id(stored_id) and stored_id == entity_id:
                return index
        return None

    async def create(self, entity: Entity) -> Entity:
        """
        Assign the next id to `entity`, append it and persist.

        Any `id` already present on the entity is overwritten. The same dict
        is returned, now carrying its id.
        """
        self._check_initialized("create")
        self._check_serializable(entity)
        async with self._lock:
            entity["id"] = next_entity_id(self._entities)
            self._entities.append(entity)
            await self._store_all_to_storage()
        logger.debug("Created %s #%d", self.entity_name, entity["id"])
        return entity

    def get(self, entity_id: Any) -> Optional[Entity]:
        """The entity with `entity_id`, or None (also for ids that are not integers)."""
        self._check_initialized("get")
        index = self._index_of(entity_id)
        if index is None:
            return None
        return self._entities[index]

    def get_all(self) -> List[Entity]:
        """All entities in insertion order."""
        self._check_initialized("get_all")
        return list(self._entities)

    async def update(self, entity: Entity) -> Entity:
        """
        Replace the stored entity that has the same id with `entity`.

        Full replacement: fields missing from `entity` are gone afterwards.

        Raises:
            MissingIdError: `entity` has no integer id (nothing is read or written).
            NotFoundError: No stored entity has that id (collection unchanged).
        """
        self._check_initialized("update")
        entity_id = self._require_id(entity, "update")
        self._check_serializable(entity)
        async with self._lock:
            index = self._index_of(entity_id)
            if index is None:
                raise NotFoundError(
                    resource_id=entity_id,
                    context={"collection": self.entity_name, "operation": "update"},
                )
            self._entities[index] = entity
            await self._store_all_to_storage()
        logger.debug("Updated %s #%s", self.entity_name, entity_id)
        return entity

    async def delete(self, entity: Entity) -> None:
        """
        Remove the stored entity whose id matches `entity["id"]`.

        Raises:
            MissingIdError: `entity` has no integer id (nothing is read or written).
            NotFoundError: No stored entity has that id (collection unchanged).
        """
        self._check_initialized("delete")
        entity_id = self._require_id(entity, "delete")
        async with self._lock:
            index = self._index_of(entity_id)
            if index is None:
                raise NotFoundError(
                    resource_id=entity_id,
                    context={"collection": self.entity_name, "operation": "delete"},
                )
            del self._entities[index]
            await self._store_all_to_storage()
        logger.debug("Deleted %s #%s", self.entity_name, entity_id)
