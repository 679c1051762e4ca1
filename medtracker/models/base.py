import uuid
from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, mapped_column


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class StringIdMixin:
    id = mapped_column(String(36), primary_key=True, default=new_id)


class TimestampMixin:
    created_at = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
