from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from stock_reconciler.core.exceptions import DuplicateConstraintViolation
from stock_reconciler.db.database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        """
        CRUD object with default methods to Create, Read and Update.
        Records are deactivated rather than deleted.
        **Parameters**
        * `model`: A SQLAlchemy model class
        """
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """Get a single record by ID"""
        return await db.get(self.model, id)

    async def get_by(self, db: AsyncSession, **filters: Any) -> Optional[ModelType]:
        """Get the first record matching all column filters"""
        stmt = select(self.model)
        for key, value in filters.items():
            stmt = stmt.where(getattr(self.model, key) == value)
        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[ModelType]:
        """Get multiple records ordered by name"""
        stmt = select(self.model)

        # Apply filters if provided
        if filters:
            for key, value in filters.items():
                if hasattr(self.model, key) and value is not None:
                    stmt = stmt.where(getattr(self.model, key) == value)

        if hasattr(self.model, "name"):
            stmt = stmt.order_by(self.model.name)

        stmt = stmt.offset(skip).limit(limit)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, Dict[str, Any]],
        commit: bool = True
    ) -> ModelType:
        """Create a new record, reporting unique constraint clashes as duplicates"""
        obj_in_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_none=True)
        db_obj = self.model(**obj_in_data)

        try:
            async with db.begin_nested():
                db.add(db_obj)
            if commit:
                await db.commit()
                await db.refresh(db_obj)
        except IntegrityError as e:
            raise DuplicateConstraintViolation(
                f"{self.model.__name__} already exists: {e.orig}"
            ) from e

        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """Update a record"""
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if hasattr(db_obj, field) and value is not None:
                setattr(db_obj, field, value)

        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise DuplicateConstraintViolation(
                f"{self.model.__name__} update conflicts with an existing record: {e.orig}"
            ) from e

        await db.refresh(db_obj)
        return db_obj
