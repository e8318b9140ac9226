# models/flats.py

from sqlalchemy import BigInteger, Column, Integer, Numeric, Text

from flat_booking.models.base import Base


class Flat(Base):
    """
    ORM model for a rentable flat (listing).

    Owned and edited outside this service (admin dashboard); the booking
    flow only reads it.
    """

    __tablename__ = "flats"

    id = Column(BigInteger, primary_key=True)
    slug = Column(Text, nullable=False, unique=True)
    nome = Column(Text, nullable=False)
    preco_noite = Column(Numeric(10, 2), nullable=False)
    max_hospedes = Column(Integer, nullable=True)
