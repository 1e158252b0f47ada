"""Theme model for the persisted catalog."""

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text

from theme_gallery.config.database import Base


class Theme(Base):
    """Theme catalog entry mapped to `themes` table."""

    __tablename__ = "themes"

    id = Column(String(36), primary_key=True)

    name = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    url = Column(String(1000), nullable=False)
    hash = Column(String(64), unique=True, nullable=False)
    light = Column(Boolean, nullable=False, default=False)
    version = Column(String(50), nullable=True)

    project_repo_id = Column(String(64), nullable=True)
    project_repo = Column(String(500), nullable=True)
    readme = Column(String(1000), nullable=True)
    license = Column(String(255), nullable=True)
    provider = Column(String(100), nullable=True)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_themes_name", "name"),
        Index("idx_themes_project_repo_id", "project_repo_id"),
    )

    def __repr__(self):
        return f"<Theme {self.name} ({self.provider})>"
