from datetime import datetime
from enum import Enum
from typing import Type
from uuid import UUID, uuid4
from typing import Optional
from sqlalchemy import Column, Enum as SAEnum
from sqlmodel import SQLModel, Field

class UUIDMixin(SQLModel):
    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)

class TimestampMixin(SQLModel):
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

def enum_column(enum_cls: Type[Enum], nullable: bool = False, index: bool = False) -> Column:
    """
    String column that stores enum *values* ("active", "carried_over").

    Index predicates and raw SQL compare against these literals, so they must
    not depend on member names.
    """
    return Column(
        SAEnum(
            enum_cls,
            values_callable=lambda members: [member.value for member in members],
            native_enum=False,
            length=32,
            validate_strings=True,
        ),
        nullable=nullable,
        index=index,
    )
