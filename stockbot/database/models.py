from sqlalchemy import Column, Integer, String, Text, Boolean, DECIMAL, DateTime, Index
from sqlalchemy.sql import func
from stockbot.database.connection import Base

"""
Модели базы данных: продукты, эквивалентности кодов и пользователи.
"""


class Product(Base):
    """Продукт (автозапчасть) на складе."""

    __tablename__ = 'products'

    id = Column(Integer, primary_key=True)
    # код/модель детали, основное поле поиска, не уникален
    product = Column(String(255), nullable=False, index=True)
    stock = Column(Integer, nullable=False, default=0)
    price = Column(DECIMAL(10, 2), nullable=False, default=0)
    application = Column(Text)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class Equivalence(Base):
    """Пара взаимозаменяемых кодов. Хранится направленно, читается в обе стороны."""

    __tablename__ = 'equivalences'

    id = Column(Integer, primary_key=True)
    product_code = Column(String(255), nullable=False)
    equivalent_code = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('ix_equivalences_product_code', 'product_code'),
        Index('ix_equivalences_equivalent_code', 'equivalent_code'),
    )


class User(Base):
    """Пользователь приложения (вход по имени и паролю)."""

    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
