"""SQLAlchemy ORM models for the local oracle price cache."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class OraclePrices(Base):
    """Native-token fiat price as recorded by the chain oracle at a block."""

    __tablename__ = "oracle_prices"

    block_number: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    price: Mapped[str] = mapped_column(nullable=False)  # exact decimal text
    source: Mapped[str] = mapped_column(nullable=False, default="ledger_api")
    created_at: Mapped[str] = mapped_column(nullable=False)
