# Routes package init
"""
docapi — API Routes Package
=============================

What:  URL → handler wiring for each resource.
How:   Routers register handlers produced by the CRUD factory and the
       account handlers; they hold no request logic of their own.

Route Inventory:
    - products.py: /api/v1/products       (full CRUD, product images)
    - users.py:    /api/v1/users          (me, update-me, admin CRUD)
    - health.py:   GET /health            (service health check)
"""
