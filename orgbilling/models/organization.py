from __future__ import annotations

from sqlalchemy import Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from orgbilling.models.base import Base


class Organization(Base):
    __tablename__ = "organization"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    stripe_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    # stripe_sub, sub_status and plans are written and cleared together.
    stripe_sub: Mapped[str] = mapped_column(String(255), nullable=False, default="", index=True)
    sub_status: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    plans: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
