# Services package init
"""
crudstore — Services Layer
==========================

What:  The persistence core, independent of HTTP.

Service Inventory:
    - EntityStore: one collection, in memory and in `<storage_root>/<name>.json`

Stores are plain objects. The application factory creates them and passes
them to the routers that need them.
"""

from crudstore.services.entity_store import EntityStore

__all__ = ["EntityStore"]
