# Routes package init
"""
crudstore — API Routes Package
==============================

Route Inventory:
    - crud.py:    make_crud_router(), one REST router per collection
                  (GET/POST /<collection>, GET/PUT/DELETE /<collection>/{id})
    - health.py:  GET /health

Routes stay thin: extract the path id and body, call the store, return the
result. Status codes for store errors are set by the exception handlers in
main.py.
"""
