# Services package init
"""
docapi — Services Layer
=========================

What:  Everything the request handlers call that is not HTTP.

Service Inventory:
    - collection.py:    EntityModel protocol, PendingQuery and the
                        SQLAlchemy-backed Collection
    - query_filter.py:  QueryFilter (query string → filter, sort,
                        projection, pagination)
    - image_service.py: upload validation and background resize/store
"""
