from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from search_ai.core.database import Base


class App(Base):
    """One onboarded merchant (tenant)."""

    __tablename__ = "search_ai_app"

    app_id = Column(Integer, primary_key=True, autoincrement=True)
    app_name = Column(String(255), nullable=False)
    plugin_name = Column(String(100), nullable=False, default="unknown")
    date_created = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    date_updated = Column(DateTime(timezone=True), onupdate=func.now())


class ApiKey(Base):
    __tablename__ = "search_ai_api_key"
    __table_args__ = (Index("api_key_app_idx", "app_id"),)

    key_id = Column(Integer, primary_key=True, autoincrement=True)
    app_id = Column(Integer, ForeignKey("search_ai_app.app_id"), nullable=False, unique=True)
    api_key = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    date_created = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    date_updated = Column(DateTime(timezone=True), onupdate=func.now())


class PluginConfigShopcada(Base):
    __tablename__ = "search_ai_plugin_config_shopcada"

    app_id = Column(Integer, ForeignKey("search_ai_app.app_id"), primary_key=True)
    api_key = Column(String(255), nullable=False)
    api_hostname = Column(String(255), nullable=False)
