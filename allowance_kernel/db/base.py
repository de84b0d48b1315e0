"""
Module: allowance_kernel.db.base
Responsibility: Declarative base shared by every ORM model in the kernel.
Architecture position: Kernel > DB.  Imported by models/ only; imports
    nothing from the rest of the kernel.

Invariants enforced:
    - Every row carries a uuid4 surrogate key ``id``.  Business keys
      (application ids, event sequence numbers) are separate unique
      integer columns allocated by SequenceService.
    - ``int`` columns are BigInteger: amounts and balances are whole
      minor currency units and never floats.
    - ``datetime`` columns are timezone-aware.
    - Constraints get deterministic names so migrations and error
      messages are stable across SQLite and PostgreSQL.
"""

import uuid
from datetime import datetime
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, MetaData, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        uuid.UUID: Uuid(as_uuid=True),
        int: BigInteger,
    }

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
