from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock
from tinydb import Query, TinyDB

from formpulse.utils import now_utc, parse_dt, to_iso


class JSONRepoBase:
    def __init__(self, path: Path, lock: FileLock) -> None:
        self._path = path
        self._lock = lock

    @contextmanager
    def _db(self) -> Iterator[TinyDB]:
        with self._lock:
            db = TinyDB(self._path)
            try:
                yield db
            finally:
                db.close()


class JSONFormRepo(JSONRepoBase):
    def list_forms(self, status: str | None = None) -> list[dict[str, Any]]:
        with self._db() as db:
            table = db.table("forms")
            items = table.search(Query().status == status) if status else table.all()
        forms = [self._from_record(item) for item in items]
        return sorted(forms, key=lambda x: x["updated_at"], reverse=True)

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._db() as db:
            item = db.table("forms").get(Query().id == form_id)
        return self._from_record(item) if item else None

    def get_form_by_share_url(self, share_url: str) -> dict[str, Any] | None:
        with self._db() as db:
            item = db.table("forms").get(Query().share_url == share_url)
        return self._from_record(item) if item else None

    def create_form(self, form: dict[str, Any]) -> None:
        record = self._to_record(form)
        with self._db() as db:
            db.table("forms").insert(record)

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._db() as db:
            table = db.table("forms")
            item = table.get(Query().id == form_id)
            if not item:
                raise KeyError(form_id)
            item.update(self._to_record(updates, partial=True))
            table.update(item, Query().id == form_id)
        return self._from_record(item)

    @staticmethod
    def _to_record(form: dict[str, Any], partial: bool = False) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for key, value in form.items():
            if key in {"created_at", "updated_at"}:
                record[key] = to_iso(value) if isinstance(value, datetime) else value
            else:
                record[key] = value
        if not partial:
            record.setdefault("created_at", to_iso(now_utc()))
            record.setdefault("updated_at", to_iso(now_utc()))
        return record

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "share_url": record.get("share_url"),
            "title": record.get("title", ""),
            "description": record.get("description", ""),
            "status": record.get("status", "draft"),
            "fields": record.get("fields", []),
            "created_at": parse_dt(record.get("created_at")),
            "updated_at": parse_dt(record.get("updated_at")),
        }


class JSONResponseRepo(JSONRepoBase):
    def list_responses(self, form_id: str) -> list[dict[str, Any]]:
        with self._db() as db:
            items = db.table("responses").search(Query().form_id == form_id)
        responses = [self._from_record(item) for item in items]
        return sorted(responses, key=lambda x: x["submitted_at"], reverse=True)

    def create_response(self, response: dict[str, Any]) -> None:
        record = {
            "id": response["id"],
            "form_id": response["form_id"],
            "responses": response["responses"],
            "ip_address": response.get("ip_address"),
            "user_agent": response.get("user_agent"),
            "submitted_at": to_iso(response["submitted_at"]),
        }
        with self._db() as db:
            db.table("responses").insert(record)

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "form_id": record["form_id"],
            "responses": record.get("responses", {}),
            "ip_address": record.get("ip_address"),
            "user_agent": record.get("user_agent"),
            "submitted_at": parse_dt(record.get("submitted_at")),
        }


class JSONStorage:
    backend = "json"

    def __init__(self, path: Path) -> None:
        self._lock = FileLock(f"{path}.lock")
        self.forms = JSONFormRepo(path, self._lock)
        self.responses = JSONResponseRepo(path, self._lock)
