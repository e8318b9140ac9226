# models/reservations.py

from sqlalchemy import BigInteger, Column, Date, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func, text

from flat_booking.models.base import Base


class Reservation(Base):
    """
    ORM model for a guest reservation of one flat over ``[checkin, checkout)``.

    Column names follow the hosted schema shared with the site front-end.
    Besides this mapping, the migration adds a GiST exclusion constraint
    (``reservas_no_overlap``) rejecting overlapping confirmed stays per flat.
    """

    __tablename__ = "reservas"

    id = Column(UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()"))
    flat_id = Column(
        BigInteger, ForeignKey("flats.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    flat_slug = Column(Text, nullable=False)
    flat_nome = Column(Text, nullable=False)
    checkin = Column(Date, nullable=False)
    checkout = Column(Date, nullable=False)
    noites = Column(Integer, nullable=False)
    preco_noite = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    hospede_nome = Column(Text, nullable=False)
    hospede_email = Column(Text, nullable=False)
    hospede_telefone = Column(Text, nullable=False)
    hospedes = Column(Integer, nullable=False)
    hora_chegada = Column(Text, nullable=False)
    obs = Column(Text, nullable=True)
    status = Column(Text, nullable=False, server_default="pendente", index=True)
    expira_em = Column(DateTime(timezone=True), nullable=True)
    confirmacao_enviada_em = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
