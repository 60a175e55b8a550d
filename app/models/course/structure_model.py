from sqlalchemy import Integer, String, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING

from app.db.base_class import Base

if TYPE_CHECKING:
    from .course_model import Course


class Chapter(Base):
    """Premier niveau du plan de cours."""
    __tablename__ = "chapters"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    # 0-based; defines unlock order, not only display order
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id"), index=True)

    # --- Relations ---
    course: Mapped["Course"] = relationship(back_populates="chapters")
    subchapters: Mapped[List["Subchapter"]] = relationship(
        back_populates="chapter", cascade="all, delete-orphan", order_by="Subchapter.order"
    )

    def __repr__(self):
        return f"<Chapter(id={self.id}, title='{self.title}', order={self.order})>"


class Subchapter(Base):
    __tablename__ = "subchapters"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    chapter_id: Mapped[int] = mapped_column(Integer, ForeignKey("chapters.id"), index=True)

    # --- Relations ---
    chapter: Mapped["Chapter"] = relationship(back_populates="subchapters")
    sections: Mapped[List["Section"]] = relationship(
        back_populates="subchapter", cascade="all, delete-orphan", order_by="Section.order"
    )

    def __repr__(self):
        return f"<Subchapter(id={self.id}, title='{self.title}', order={self.order})>"


class Section(Base):
    """Plus petite unité de contenu (texte généré et/ou vidéo)."""
    __tablename__ = "sections"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    generated_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    subchapter_id: Mapped[int] = mapped_column(Integer, ForeignKey("subchapters.id"), index=True)

    # --- Relations ---
    subchapter: Mapped["Subchapter"] = relationship(back_populates="sections")

    def __repr__(self):
        return f"<Section(id={self.id}, title='{self.title}', order={self.order})>"
