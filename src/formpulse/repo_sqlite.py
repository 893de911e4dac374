from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from formpulse.models import Base, FormModel, ResponseModel
from formpulse.utils import dumps_json, loads_json


class SQLiteFormRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_forms(self, status: str | None = None) -> list[dict[str, Any]]:
        with self._Session() as session:
            query = session.query(FormModel)
            if status:
                query = query.filter(FormModel.status == status)
            rows = query.order_by(FormModel.updated_at.desc()).all()
            return [self._to_dict(row) for row in rows]

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            return self._to_dict(row) if row else None

    def get_form_by_share_url(self, share_url: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = (
                session.query(FormModel)
                .filter(FormModel.share_url == share_url)
                .first()
            )
            return self._to_dict(row) if row else None

    def create_form(self, form: dict[str, Any]) -> None:
        with self._Session() as session:
            row = FormModel(
                id=form["id"],
                share_url=form.get("share_url"),
                title=form["title"],
                description=form.get("description", ""),
                status=form["status"],
                fields_json=dumps_json(form["fields"]),
                created_at=form["created_at"],
                updated_at=form["updated_at"],
            )
            session.add(row)
            session.commit()

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            if not row:
                raise KeyError(form_id)
            for key, value in updates.items():
                if key == "fields":
                    row.fields_json = dumps_json(value)
                else:
                    setattr(row, key, value)
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    @staticmethod
    def _to_dict(row: FormModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "share_url": row.share_url,
            "title": row.title or "",
            "description": row.description or "",
            "status": row.status,
            "fields": loads_json(row.fields_json) or [],
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }


class SQLiteResponseRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_responses(self, form_id: str) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = (
                session.query(ResponseModel)
                .filter(ResponseModel.form_id == form_id)
                .order_by(ResponseModel.submitted_at.desc())
                .all()
            )
            return [self._to_dict(row) for row in rows]

    def create_response(self, response: dict[str, Any]) -> None:
        with self._Session() as session:
            row = ResponseModel(
                id=response["id"],
                form_id=response["form_id"],
                responses_json=dumps_json(response["responses"]),
                ip_address=response.get("ip_address"),
                user_agent=response.get("user_agent"),
                submitted_at=response["submitted_at"],
            )
            session.add(row)
            session.commit()

    @staticmethod
    def _to_dict(row: ResponseModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "responses": loads_json(row.responses_json) or {},
            "ip_address": row.ip_address,
            "user_agent": row.user_agent,
            "submitted_at": row.submitted_at,
        }


class SQLiteStorage:
    backend = "sqlite"

    def __init__(self, db_path: Path) -> None:
        self._engine = create_engine(f"sqlite:///{db_path}", future=True)
        self._Session = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        self.forms = SQLiteFormRepo(self._Session)
        self.responses = SQLiteResponseRepo(self._Session)
