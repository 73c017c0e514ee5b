from __future__ import annotations

import unittest
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from hris.db import Base
from hris.services.schema_guard import EXPECTED_ALEMBIC_HEAD, REQUIRED_TABLE_COLUMNS, verify_runtime_schema


class _FakeResult:
    def __init__(self, value):
        self._value = value

    def scalar(self):  # type: ignore[no-untyped-def]
        return self._value


class _FakeConnection:
    def __init__(self, version_value):
        self._version_value = version_value

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        return False

    def execute(self, _statement):  # type: ignore[no-untyped-def]
        return _FakeResult(self._version_value)


class _FakeEngine:
    def __init__(self, version_value):
        self._version_value = version_value

    def connect(self):  # type: ignore[no-untyped-def]
        return _FakeConnection(self._version_value)


class _FakeInspector:
    def __init__(self, *, columns_by_table: dict[str, set[str]], enums: list[dict[str, object]]):
        self._columns_by_table = columns_by_table
        self._enums = enums

    def get_columns(self, table_name: str):  # type: ignore[no-untyped-def]
        columns = self._columns_by_table[table_name]
        return [{"name": item} for item in columns]

    def get_enums(self):  # type: ignore[no-untyped-def]
        return self._enums


_ALL_ENUMS = [
    {"name": "app_role", "labels": ["admin", "employee"]},
    {"name": "leave_type", "labels": ["sick", "vacation", "personal", "other"]},
    {"name": "leave_status", "labels": ["pending", "approved", "rejected"]},
]


class SchemaGuardTests(unittest.TestCase):
    def test_verify_runtime_schema_ok_when_required_columns_exist(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table={table: set(columns) | {"extra"} for table, columns in REQUIRED_TABLE_COLUMNS.items()},
            enums=_ALL_ENUMS,
        )
        fake_engine = _FakeEngine(EXPECTED_ALEMBIC_HEAD)

        with patch("hris.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertEqual(result.issues, [])
        self.assertEqual(result.warnings, [])

    def test_verify_runtime_schema_reports_missing_columns_and_enum_values(self) -> None:
        columns = {table: set(columns) for table, columns in REQUIRED_TABLE_COLUMNS.items()}
        columns["leaves"] = {"id", "employee_id"}
        columns["user_roles"] = {"id", "user_id"}
        fake_inspector = _FakeInspector(
            columns_by_table=columns,
            enums=[
                {"name": "app_role", "labels": ["admin"]},
                {"name": "leave_type", "labels": ["sick", "vacation", "personal", "other"]},
            ],
        )
        fake_engine = _FakeEngine("")

        with patch("hris.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(fake_engine)  # type: ignore[arg-type]

        self.assertFalse(result.ok)
        self.assertTrue(any(item.startswith("MISSING_COLUMNS:leaves:") for item in result.issues))
        self.assertIn("MISSING_COLUMNS:user_roles:role", result.issues)
        self.assertIn("MISSING_ENUM_VALUES:app_role:employee", result.issues)
        self.assertIn("ENUM_NOT_FOUND:leave_status", result.warnings)
        self.assertIn("ALEMBIC_VERSION_EMPTY", result.issues)

    def test_outdated_revision_is_a_warning(self) -> None:
        fake_inspector = _FakeInspector(
            columns_by_table={table: set(columns) for table, columns in REQUIRED_TABLE_COLUMNS.items()},
            enums=_ALL_ENUMS,
        )
        with patch("hris.services.schema_guard.inspect", return_value=fake_inspector):
            result = verify_runtime_schema(_FakeEngine("0001_initial"))  # type: ignore[arg-type]

        self.assertTrue(result.ok)
        self.assertIn("ALEMBIC_VERSION_MISMATCH:0001_initial", result.warnings)

    def test_fresh_sqlite_database_without_alembic_table_fails(self) -> None:
        engine = create_engine("sqlite+pysqlite://", poolclass=StaticPool)
        Base.metadata.create_all(engine)

        result = verify_runtime_schema(engine)

        self.assertFalse(result.ok)
        self.assertTrue(any("alembic_version" in item for item in result.issues))
        self.assertEqual(result.to_dict()["issue_count"], len(result.issues))


if __name__ == "__main__":
    unittest.main()
