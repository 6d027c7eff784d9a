"""
docapi — Product Model
========================

What:  ORM model for the `products` table.
Who:   Served by the generic CRUD handlers under /api/v1/products; the only
       entity that accepts image uploads (stored in the `products` folder).

Query Patterns:
    - Listing with filters: GET /api/v1/products?price[lte]=20&sort=-price
    - Index on price supports the common range filters.
"""

from typing import Optional

from sqlalchemy import Boolean, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docapi.database import Base
from docapi.models.document import DocumentMixin


class Product(DocumentMixin, Base):
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Absolute URL of the resized image, set by the create/update handlers
    img_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    def validate(self) -> None:
        if self.name is None or not self.name.strip():
            raise ValueError("A product must have a name")
        if self.price is None or self.price < 0:
            raise ValueError("Price must be a non-negative number")
        if self.stock is not None and self.stock < 0:
            raise ValueError("Stock cannot be negative")
