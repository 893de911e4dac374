from __future__ import annotations

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class FormModel(Base):
    __tablename__ = "forms"

    id = Column(String, primary_key=True)
    share_url = Column(String, unique=True, index=True, nullable=True)
    title = Column(String)
    description = Column(Text)
    status = Column(String, index=True)
    fields_json = Column(Text)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))


class ResponseModel(Base):
    __tablename__ = "responses"

    id = Column(String, primary_key=True)
    form_id = Column(String, index=True)
    responses_json = Column(Text)
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True))
