from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TemplateOverride(Base):
    """
    Site-customised eTemplate, shadowing the file shipped below the server root.
    Looked up by the same (app, template set, name) triple the url carries.
    """

    __tablename__ = "template_overrides"
    __table_args__ = (
        UniqueConstraint("app", "template_set", "name", name="uq_template_overrides_app_set_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    app: Mapped[str] = mapped_column(String(64), nullable=False, index=True)  # e.g. "addressbook"
    template_set: Mapped[str] = mapped_column(String(64), nullable=False, default="default")
    name: Mapped[str] = mapped_column(String(255), nullable=False)  # e.g. "index.rows", without .xet
    content: Mapped[str] = mapped_column(Text, nullable=False)
    comment: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
