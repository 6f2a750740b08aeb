"""
Unit tests for the DDL rule table: type mapping, dialect clean-ups and
rule-order independence.
"""

import random

import pytest

from sql2csv.database.dialects import DBType
from sql2csv.transpiler.rules import (
    apply_rules,
    convert_types,
    normalize_statement_line,
    rules_for,
    split_column_name,
    unescape_mysql_strings,
)

pytestmark = pytest.mark.unit


class TestPostgresTypes:
    """Type conversion of PostgreSQL column definitions."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("id serial NOT NULL,", "id INTEGER NOT NULL,"),
            ("id bigserial,", "id INTEGER,"),
            ("qty int4,", "qty INTEGER,"),
            ("total bigint,", "total INTEGER,"),
            ("created_at timestamp without time zone,", "created_at DATETIME,"),
            ("updated_at timestamp(6) with time zone", "updated_at DATETIME"),
            ("seen_at timestamptz,", "seen_at DATETIME,"),
            ("name character varying(255) NOT NULL,", "name VARCHAR(255) NOT NULL,"),
            ("nick varchar,", "nick VARCHAR,"),
            ("code character(3),", "code CHAR(3),"),
            ("price numeric(10,2),", "price REAL,"),
            ("ratio double precision,", "ratio REAL,"),
            ("active boolean DEFAULT true,", "active BOOLEAN DEFAULT true,"),
            ("payload jsonb,", "payload TEXT,"),
            ("data bytea,", "data BLOB,"),
            ("born date,", "born DATE,"),
        ],
    )
    def test_type_mapping(self, line, expected):
        assert convert_types(line, DBType.POSTGRES) == expected

    def test_types_are_case_insensitive(self):
        assert convert_types("id SERIAL PRIMARY KEY,", DBType.POSTGRES) == (
            "id INTEGER PRIMARY KEY,"
        )

    def test_quoted_identifiers_are_left_alone(self):
        assert convert_types('"date" date,', DBType.POSTGRES) == '"date" DATE,'

    def test_nextval_default_and_casts_removed(self):
        line = "id integer DEFAULT nextval('public.users_id_seq'::regclass) NOT NULL,"
        assert convert_types(line, DBType.POSTGRES) == "id INTEGER NOT NULL,"

    def test_cast_on_default_removed(self):
        line = "status character varying(20) DEFAULT 'new'::character varying NOT NULL,"
        assert convert_types(line, DBType.POSTGRES) == (
            "status VARCHAR(20) DEFAULT 'new' NOT NULL,"
        )

    def test_now_default_becomes_current_timestamp(self):
        line = "created_at timestamp without time zone DEFAULT now() NOT NULL,"
        assert convert_types(line, DBType.POSTGRES) == (
            "created_at DATETIME DEFAULT CURRENT_TIMESTAMP NOT NULL,"
        )

    def test_schema_qualifier_removed_from_header(self):
        assert convert_types("CREATE TABLE public.users (", DBType.POSTGRES) == (
            "CREATE TABLE users ("
        )

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("uuid uuid,", "uuid TEXT,"),
            ("date date NOT NULL,", "date DATE NOT NULL,"),
            ("text text,", "text TEXT,"),
            ("timestamp timestamp without time zone", "timestamp DATETIME"),
        ],
    )
    def test_column_named_like_its_type_keeps_its_name(self, line, expected):
        assert convert_types(line, DBType.POSTGRES) == expected

    def test_table_level_lines_have_no_column_name(self):
        assert convert_types("PRIMARY KEY (id),", DBType.POSTGRES) == "PRIMARY KEY (id),"
        assert split_column_name("CONSTRAINT pk PRIMARY KEY (id)") == (
            "",
            "CONSTRAINT pk PRIMARY KEY (id)",
        )

    def test_words_inside_string_defaults_untouched(self):
        line = "note text DEFAULT 'a date here, an integer there',"
        assert convert_types(line, DBType.POSTGRES) == (
            "note TEXT DEFAULT 'a date here, an integer there',"
        )

    def test_single_line_create_table(self):
        line = "CREATE TABLE public.t (id integer, uuid uuid, date date DEFAULT 'date');"
        assert convert_types(line, DBType.POSTGRES) == (
            "CREATE TABLE t (id INTEGER, uuid TEXT, date DATE DEFAULT 'date');"
        )


class TestMySQLRules:
    """MySQL column and table option clean-ups."""

    def test_auto_increment_column(self):
        line = "`id` int(11) unsigned NOT NULL AUTO_INCREMENT,"
        assert convert_types(line, DBType.MYSQL) == "`id` INTEGER NOT NULL,"

    def test_auto_increment_after_primary_key(self):
        line = "`id` int NOT NULL PRIMARY KEY AUTO_INCREMENT,"
        assert convert_types(line, DBType.MYSQL) == (
            "`id` INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,"
        )

    def test_charset_collation_and_comment_removed(self):
        line = (
            "`name` varchar(255) CHARACTER SET utf8mb4 COLLATE utf8mb4_bin "
            "DEFAULT NULL COMMENT 'display name',"
        )
        assert convert_types(line, DBType.MYSQL) == "`name` VARCHAR(255) DEFAULT NULL,"

    def test_table_options_removed(self):
        line = (
            ") ENGINE=InnoDB AUTO_INCREMENT=42 DEFAULT CHARSET=utf8mb4 "
            "COLLATE=utf8mb4_unicode_ci COMMENT='users';"
        )
        assert convert_types(line, DBType.MYSQL) == ");"

    def test_fractional_current_timestamp_default(self):
        line = "`at` datetime(6) NOT NULL DEFAULT CURRENT_TIMESTAMP(6) ON UPDATE CURRENT_TIMESTAMP(6),"
        assert convert_types(line, DBType.MYSQL) == (
            "`at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,"
        )

    def test_on_update_current_timestamp_removed(self):
        line = "`updated_at` timestamp NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,"
        assert convert_types(line, DBType.MYSQL) == (
            "`updated_at` DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,"
        )

    @pytest.mark.parametrize(
        "line",
        [
            "KEY `idx_email` (`email`),",
            "UNIQUE KEY `uq_name` (`name`),",
            "FULLTEXT KEY `ft_body` (`body`)",
            "INDEX `idx_created` (`created_at`) USING BTREE,",
        ],
    )
    def test_inline_index_lines_dropped(self, line):
        assert convert_types(line, DBType.MYSQL) == ""

    def test_enum_becomes_text(self):
        line = "`status` enum('active','inactive') DEFAULT 'active',"
        assert convert_types(line, DBType.MYSQL) == "`status` TEXT DEFAULT 'active',"

    def test_backticked_type_name_column_kept(self):
        assert convert_types("`text` text,", DBType.MYSQL) == "`text` TEXT,"

    def test_single_line_create_table_drops_inline_index(self):
        line = "CREATE TABLE `t` (`date` date, `n` int, KEY `k` (`n`)) ENGINE=InnoDB;"
        assert convert_types(line, DBType.MYSQL) == (
            "CREATE TABLE `t` (`date` DATE, `n` INTEGER);"
        )


class TestRuleOrderIndependence:
    """Any permutation of the rule table gives the same line."""

    SAMPLES = {
        DBType.MYSQL: [
            "`id` int(11) unsigned NOT NULL AUTO_INCREMENT,",
            "`id` bigint NOT NULL PRIMARY KEY AUTO_INCREMENT,",
            "`note` mediumtext COMMENT 'a text field with a date',",
            "`price` decimal(10,2) unsigned zerofill DEFAULT '0.00',",
            "`flag` tinyint(1) NOT NULL DEFAULT '0',",
            "`kind` set('a','b') CHARACTER SET latin1 DEFAULT NULL,",
            "`created` datetime NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,",
            "`ts` timestamp(3) NULL DEFAULT CURRENT_TIMESTAMP(3) ON UPDATE CURRENT_TIMESTAMP(3),",
            "KEY `idx_created` (`created`) USING BTREE,",
            ") ENGINE=InnoDB AUTO_INCREMENT=7 DEFAULT CHARSET=utf8mb4 COMMENT='orders';",
        ],
        DBType.POSTGRES: [
            "CREATE TABLE public.users (",
            "id integer DEFAULT nextval('public.users_id_seq'::regclass) NOT NULL,",
            "status character varying(20) DEFAULT 'new'::character varying NOT NULL,",
            "price numeric(10,2) DEFAULT 0.00::numeric,",
            "seen timestamp without time zone DEFAULT '2020-01-01'::timestamp without time zone,",
            "tags text[] DEFAULT '{}'::text[],",
            "code character(2),",
            "payload jsonb,",
            "created_at timestamp with time zone DEFAULT now()::timestamp with time zone,",
        ],
    }

    @pytest.mark.parametrize("dialect", [DBType.MYSQL, DBType.POSTGRES])
    def test_shuffled_rule_orders_agree(self, dialect):
        rules = list(rules_for(dialect))
        rng = random.Random(20240601)
        orders = [rules, list(reversed(rules))]
        for _ in range(200):
            shuffled = rules[:]
            rng.shuffle(shuffled)
            orders.append(shuffled)

        for line in self.SAMPLES[dialect]:
            results = {apply_rules(line, order) for order in orders}
            assert len(results) == 1, f"{line!r} -> {results}"

    @pytest.mark.parametrize("dialect", [DBType.MYSQL, DBType.POSTGRES])
    def test_converted_lines_are_fixed_points(self, dialect):
        rules = rules_for(dialect)
        for line in self.SAMPLES[dialect]:
            once = apply_rules(line, rules)
            assert apply_rules(once, rules) == once

    def test_string_literals_are_masked(self):
        line = "x DEFAULT 'serial bigint text'"
        assert apply_rules(line, rules_for(DBType.POSTGRES)) == line


class TestStatementNormalization:
    """Clean-ups applied outside CREATE TABLE blocks."""

    def test_postgres_schema_prefix_removed_outside_strings(self):
        line = "INSERT INTO public.users VALUES (1, 'see public.docs');"
        assert normalize_statement_line(line, DBType.POSTGRES) == (
            "INSERT INTO users VALUES (1, 'see public.docs');"
        )

    def test_postgres_index_method_removed(self):
        line = "CREATE INDEX idx_users_email ON public.users USING btree (email);"
        assert normalize_statement_line(line, DBType.POSTGRES) == (
            "CREATE INDEX idx_users_email ON users (email);"
        )

    def test_mysql_string_escapes_rewritten(self):
        line = r"INSERT INTO `t` VALUES (1,'O\'Brien','C:\\temp');"
        assert normalize_statement_line(line, DBType.MYSQL) == (
            r"INSERT INTO `t` VALUES (1,'O''Brien','C:\temp');"
        )

    def test_mysql_newline_escape(self):
        assert unescape_mysql_strings(r"('a\nb')") == "('a\nb')"

    def test_lines_without_backslash_unchanged(self):
        line = "INSERT INTO `t` VALUES (1,'plain');"
        assert unescape_mysql_strings(line) is line
