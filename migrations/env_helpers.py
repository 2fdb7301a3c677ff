"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without an Alembic context.
DATABASE_URL may be a URL (postgres://, postgresql://) or a libpq
key=value DSN; DB_PASSWORD fills in a missing password in either form.
"""

from __future__ import annotations

import os
import re
from urllib.parse import quote_plus, urlparse, urlunparse

_DSN_PAIR = re.compile(r"(\w+)=('(?:\\.|[^'\\])*'|\S*)")
_ESCAPED = re.compile(r"\\(.)")

SQLALCHEMY_SCHEME = "postgresql+psycopg2://"


def parse_libpq_dsn(dsn: str) -> dict[str, str]:
    """Parse a libpq key=value DSN; single-quoted values may contain spaces and \\' escapes."""
    tokens: dict[str, str] = {}
    for key, raw in _DSN_PAIR.findall(dsn):
        if raw.startswith("'") and raw.endswith("'") and len(raw) >= 2:
            raw = _ESCAPED.sub(r"\1", raw[1:-1])
        tokens[key] = raw
    return tokens


def libpq_dsn_to_url(dsn: str) -> str:
    """Convert a libpq DSN to a SQLAlchemy URL.

    A host starting with "/" is a unix socket directory and is passed as the
    ``host`` query parameter.
    """
    tokens = parse_libpq_dsn(dsn)
    password = tokens.get("password") or os.environ.get("DB_PASSWORD", "")

    credentials = f"{quote_plus(tokens.get('user', ''))}:{quote_plus(password)}"
    dbname = quote_plus(tokens.get("dbname", ""))
    host = tokens.get("host", "localhost")

    if host.startswith("/"):
        return f"{SQLALCHEMY_SCHEME}{credentials}@/{dbname}?host={quote_plus(host)}"
    return f"{SQLALCHEMY_SCHEME}{credentials}@{host}:{tokens.get('port', '5432')}/{dbname}"


def _with_password(url: str, password: str) -> str:
    parsed = urlparse(url)
    if parsed.password:
        return url
    netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(password)}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def database_url() -> str:
    """SQLAlchemy URL for DATABASE_URL, normalised to the psycopg2 driver."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" not in url:
        return libpq_dsn_to_url(url)

    scheme, _, rest = url.partition("://")
    if scheme in ("postgres", "postgresql"):
        url = SQLALCHEMY_SCHEME + rest
    db_password = os.environ.get("DB_PASSWORD", "")
    return _with_password(url, db_password) if db_password else url
