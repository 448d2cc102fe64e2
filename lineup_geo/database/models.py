"""SQLAlchemy models for restaurant records."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, Float, Text

from .base import Base


class RestaurantModel(Base):
    """Restaurant with a postal address and map coordinates."""

    __tablename__ = "restaurant"

    id = Column(
        Text,
        primary_key=True,
        default=lambda: str(uuid4()),
        nullable=False,
    )
    name = Column(Text, nullable=False)

    # Coordinates
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    geocoded_address = Column(Text, nullable=True)
    coordinates_updated_at = Column(DateTime, nullable=True)

    # Address
    address_line1 = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    state = Column(Text, nullable=True)
    zip = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )
