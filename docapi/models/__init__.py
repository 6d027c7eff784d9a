"""Declarative entities; importing this package registers them on `Base.metadata`."""

from docapi.models.product import Product
from docapi.models.user import User

__all__ = ["Product", "User"]
