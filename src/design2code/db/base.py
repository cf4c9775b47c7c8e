# src/design2code/db/base.py

from datetime import datetime, timezone
from sqlalchemy import MetaData, Column, DateTime, func
from sqlalchemy.orm import declarative_base

# 约束命名约定，alembic 迁移与 drop_all 都依赖稳定的约束名
naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata_obj = MetaData(naming_convention=naming_convention)

Base = declarative_base(metadata=metadata_obj)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """
    created_at / updated_at in naive UTC.
    Python-side defaults keep the values populated on the instance after a flush,
    so async sessions never need a lazy refresh to read them.
    """
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())
