"""Unit tests for engine type parsing and connection configuration."""

from types import SimpleNamespace

import pytest

from sql2csv.database.connection import ConnectionConfig
from sql2csv.database.dialects import DBType, dialect_of, parse_dump_dialect
from sql2csv.exceptions import UnsupportedDialectError

pytestmark = pytest.mark.unit


class TestDBType:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("mysql", DBType.MYSQL),
            ("MariaDB", DBType.MARIADB),
            ("postgres", DBType.POSTGRES),
            ("postgresql", DBType.POSTGRES),
            ("pg", DBType.POSTGRES),
            ("sqlite", DBType.SQLITE),
            ("sqlite3", DBType.SQLITE),
        ],
    )
    def test_parse(self, value, expected):
        assert DBType.parse(value) is expected

    def test_unknown_type_lists_supported(self):
        with pytest.raises(UnsupportedDialectError) as exc_info:
            DBType.parse("oracle")
        assert exc_info.value.dialect == "oracle"
        assert "postgres" in exc_info.value.supported
        assert "Unsupported database type 'oracle'" in str(exc_info.value)

    def test_mysql_family(self):
        assert DBType.MYSQL.is_mysql_family
        assert DBType.MARIADB.is_mysql_family
        assert not DBType.POSTGRES.is_mysql_family


class TestParseDumpDialect:
    def test_accepts_dump_dialects(self):
        assert parse_dump_dialect("postgres") is DBType.POSTGRES
        assert parse_dump_dialect(DBType.MYSQL) is DBType.MYSQL

    def test_rejects_sqlite(self):
        with pytest.raises(UnsupportedDialectError):
            parse_dump_dialect("sqlite3")


class TestDialectOf:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("mysql", DBType.MYSQL),
            ("mariadb", DBType.MYSQL),
            ("postgresql", DBType.POSTGRES),
            ("sqlite", DBType.SQLITE),
        ],
    )
    def test_sqlalchemy_dialect_names(self, name, expected):
        conn = SimpleNamespace(dialect=SimpleNamespace(name=name))
        assert dialect_of(conn) is expected

    def test_unknown_dialect(self):
        conn = SimpleNamespace(dialect=SimpleNamespace(name="mssql"))
        with pytest.raises(UnsupportedDialectError):
            dialect_of(conn)


class TestConnectionConfig:
    def test_sqlite_url(self, tmp_path):
        path = tmp_path / "data.db"
        url = ConnectionConfig(type=DBType.SQLITE, file_path=str(path)).get_url()
        assert url.drivername == "sqlite"
        assert url.database == str(path)

    def test_mysql_url_with_default_port(self):
        url = ConnectionConfig(
            type=DBType.MYSQL, user="root", password="secret", dbname="shop"
        ).get_url()
        assert url.drivername == "mysql+pymysql"
        assert url.port == 3306
        assert url.password == "secret"
        assert "secret" not in url.render_as_string(hide_password=True)

    def test_postgres_url(self):
        url = ConnectionConfig(
            type=DBType.POSTGRES, host="db", user="app", dbname="crm", port=6432
        ).get_url()
        assert url.drivername == "postgresql"
        assert url.host == "db"
        assert url.port == 6432
        assert url.database == "crm"

    def test_postgres_scheme_normalized(self):
        url = ConnectionConfig(
            type=DBType.POSTGRES, connection_url="postgres://u:p@h:5432/d"
        ).get_url()
        assert url.drivername == "postgresql"
