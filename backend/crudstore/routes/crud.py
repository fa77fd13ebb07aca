"""
crudstore — CRUD Route Handlers
===============================

What:  Builds the REST router for one collection.
How:   make_crud_router() closes over the EntityStore it is given and maps
       each HTTP verb to one store call. Store errors propagate to the
       global exception handlers registered in main.py.
Who:   Called by create_app() once per configured collection.

Route Map (prefix = /<collection>):
    GET    /         → store.get_all()            200
    GET    /{id}     → store.get(id)              200, 404 when absent
    POST   /         → store.create(body)         201
    PUT    /{id}     → store.update(body ∪ {id})  200, 404 when absent
    DELETE /{id}     → store.delete({id})         200, 404 when absent

Entities leave this module as deep copies, so serialization never works on
the dicts held by the store.
"""

import copy
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Path, Response, status

from crudstore.exceptions import NotFoundError
from crudstore.schemas.entity import ErrorResponse
from crudstore.services.entity_store import EntityStore

logger = logging.getLogger(__name__)

NOT_FOUND_RESPONSE = {404: {"description": "No entity with that id", "model": ErrorResponse}}


def make_crud_router(collection: str, store: EntityStore) -> APIRouter:
    """
    Create the router serving `/<collection>` from `store`.

    Args:
        collection: Name used for the URL prefix and OpenAPI tag.
        store: The store backing this collection. It is initialized by the
               application lifespan, not here.
    """
    router = APIRouter(prefix=f"/{collection}", tags=[collection])

    @router.get(
        "",
        response_model=List[Dict[str, Any]],
        summary=f"List all {collection}",
    )
    @router.get("/", response_model=List[Dict[str, Any]], include_in_schema=False)
    async def list_entities() -> List[Dict[str, Any]]:
        return copy.deepcopy(store.get_all())

    @router.get(
        "/{entity_id}",
        response_model=Dict[str, Any],
        responses=NOT_FOUND_RESPONSE,
        summary=f"Get one entity from {collection}",
    )
    async def get_entity(entity_id: int = Path(..., ge=0)) -> Dict[str, Any]:
        entity = store.get(entity_id)
        if entity is None:
            raise NotFoundError(resource_id=entity_id, context={"collection": collection})
        return copy.deepcopy(entity)

    @router.post(
        "",
        response_model=Dict[str, Any],
        status_code=status.HTTP_201_CREATED,
        summary=f"Create an entity in {collection}",
        description="Any `id` in the body is ignored; the next free id is assigned.",
    )
    @router.post(
        "/",
        response_model=Dict[str, Any],
        status_code=status.HTTP_201_CREATED,
        include_in_schema=False,
    )
    async def create_entity(entity: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        created = await store.create(entity)
        logger.info("Created %s #%d", collection, created["id"])
        return copy.deepcopy(created)

    @router.put(
        "/{entity_id}",
        response_model=Dict[str, Any],
        responses=NOT_FOUND_RESPONSE,
        summary=f"Replace an entity in {collection}",
        description="The path id wins over any `id` in the body. Fields are not merged.",
    )
    async def update_entity(
        entity_id: int = Path(..., ge=0),
        entity: Dict[str, Any] = Body(...),
    ) -> Dict[str, Any]:
        entity["id"] = entity_id
        updated = await store.update(entity)
        return copy.deepcopy(updated)

    @router.delete(
        "/{entity_id}",
        responses=NOT_FOUND_RESPONSE,
        summary=f"Delete an entity from {collection}",
    )
    async def delete_entity(entity_id: int = Path(..., ge=0)) -> Response:
        await store.delete({"id": entity_id})
        return Response(status_code=status.HTTP_200_OK)

    return router
