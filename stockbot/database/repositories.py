from typing import Iterable, List, Optional, Sequence, Dict, Any
from sqlalchemy import select, func, insert, update, or_
from sqlalchemy.ext.asyncio import AsyncSession
from stockbot.database.models import Product, Equivalence, User

LIKE_ESCAPE = '\\'


def escape_like(value: str) -> str:
    """
    Экранирует спецсимволы LIKE, чтобы ввод пользователя искался буквально.
    """
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace('%', LIKE_ESCAPE + '%')
        .replace('_', LIKE_ESCAPE + '_')
    )


class ProductRepository:
    """
    Репозиторий для работы с продуктами.
    """
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, product_id: int) -> Optional[Product]:
        """
        Возвращает продукт по его ID.
        """
        result = await self.session.execute(
            select(Product).where(Product.id == product_id)
        )
        return result.scalars().first()

    async def search_by_code(self, substring: str) -> List[Product]:
        """
        Регистронезависимый поиск по подстроке в коде продукта.
        Без пагинации: пагинация делается после слияния с эквивалентами.
        """
        pattern = f"%{escape_like(substring)}%"
        result = await self.session.execute(
            select(Product)
            .where(Product.product.ilike(pattern, escape=LIKE_ESCAPE))
            .order_by(Product.product, Product.id)
        )
        return list(result.scalars().all())

    async def get_by_codes(self, codes: Iterable[str]) -> List[Product]:
        """
        Возвращает продукты, код которых входит в заданное множество.
        """
        codes = list(codes)
        if not codes:
            return []
        result = await self.session.execute(
            select(Product)
            .where(Product.product.in_(codes))
            .order_by(Product.product, Product.id)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(Product.id)))
        return int(result.scalar_one())

    async def add_many(self, rows: Sequence[Dict[str, Any]]) -> int:
        """
        Пакетная вставка продуктов. Коммит делает вызывающий код.
        """
        if not rows:
            return 0
        await self.session.execute(insert(Product), list(rows))
        return len(rows)


class EquivalenceRepository:
    """
    Репозиторий для работы с эквивалентностями кодов.
    """
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_either_code(self, code: str) -> List[Equivalence]:
        """
        Пары, где код стоит в любой из двух колонок.
        """
        result = await self.session.execute(
            select(Equivalence)
            .where(or_(Equivalence.product_code == code, Equivalence.equivalent_code == code))
            .order_by(Equivalence.id)
        )
        return list(result.scalars().all())

    async def get_by_any_code(self, codes: Iterable[str]) -> List[Equivalence]:
        """
        Пары, где любой из кодов стоит в любой из двух колонок.
        """
        codes = list(codes)
        if not codes:
            return []
        result = await self.session.execute(
            select(Equivalence)
            .where(or_(Equivalence.product_code.in_(codes), Equivalence.equivalent_code.in_(codes)))
            .order_by(Equivalence.id)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(Equivalence.id)))
        return int(result.scalar_one())

    async def add_many(self, rows: Sequence[Dict[str, Any]]) -> int:
        """
        Пакетная вставка пар. Коммит делает вызывающий код.
        """
        if not rows:
            return 0
        await self.session.execute(insert(Equivalence), list(rows))
        return len(rows)


class UserRepository:
    """
    Репозиторий для работы с пользователями.
    """
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    async def get_active_by_name(self, name: str) -> Optional[User]:
        """
        Возвращает активного пользователя по имени.
        """
        result = await self.session.execute(
            select(User).where(User.name == name, User.active == True)  # noqa: E712
        )
        return result.scalars().first()

    async def create(self, name: str, password_hash: str, active: bool = True) -> User:
        """Создать нового пользователя."""
        user = User(name=name, password_hash=password_hash, active=active)
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(User.id)))
        return int(result.scalar_one())

    async def update_password(self, user_id: int, password_hash: str) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_hash=password_hash)
        )
        await self.session.commit()
