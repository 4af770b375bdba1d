"""
Remote database module.

Thin client for a hosted Supabase database through its PostgREST API.
Filters use PostgREST operator syntax, e.g. {'enrollment_status': 'eq.enrolled'}
or {'face_embedding': 'not.is.null'}.
"""

from typing import Any, Dict, List, Optional

import requests

from .config import Config
from .logging_config import get_logger

logger = get_logger(__name__)

UNIQUE_VIOLATION = '23505'


class DatabaseError(Exception):
    """Raised when a database request fails or is rejected."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code

    @property
    def is_conflict(self) -> bool:
        """True for unique-constraint violations."""
        return self.status == 409 or self.code == UNIQUE_VIOLATION


class SupabaseClient:
    """
    PostgREST client for a Supabase project.

    Every call raises DatabaseError on transport failures and on
    non-2xx responses.
    """

    def __init__(
        self,
        url: str,
        key: str,
        timeout: float = 10,
        session: Optional[requests.Session] = None
    ):
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'apikey': key,
            'Authorization': f'Bearer {key}',
            'Content-Type': 'application/json',
        })

    @classmethod
    def from_config(cls, config: Config) -> 'SupabaseClient':
        return cls(config.supabase_url, config.supabase_key, config.request_timeout)

    def select(
        self,
        table: str,
        columns: str = '*',
        filters: Optional[Dict[str, str]] = None,
        limit: Optional[int] = None,
        order: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Select rows from a table.

        Args:
            table: Table name
            columns: PostgREST select list
            filters: Column -> operator expression
            limit: Maximum rows
            order: Order expression, e.g. 'created_at.desc'

        Returns:
            List of rows
        """
        params = self._params(filters)
        params.append(('select', columns))
        if limit is not None:
            params.append(('limit', str(limit)))
        if order:
            params.append(('order', order))

        return self._request('GET', f'/{table}', params=params)

    def select_one(
        self,
        table: str,
        columns: str = '*',
        filters: Optional[Dict[str, str]] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the first matching row, or None."""
        rows = self.select(table, columns, filters, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Insert rows and return them as stored."""
        return self._request(
            'POST', f'/{table}',
            json=rows,
            headers={'Prefer': 'return=representation'}
        )

    def update(
        self,
        table: str,
        values: Dict[str, Any],
        filters: Dict[str, str]
    ) -> List[Dict[str, Any]]:
        """Update rows matching filters and return them."""
        if not filters:
            raise ValueError('Refusing to update without filters')

        return self._request(
            'PATCH', f'/{table}',
            params=self._params(filters),
            json=values,
            headers={'Prefer': 'return=representation'}
        )

    def rpc(self, function: str, params: Dict[str, Any]) -> Any:
        """Call a database function."""
        return self._request('POST', f'/rpc/{function}', json=params)

    def ping(self, table: str) -> bool:
        """Check that the database answers a trivial query."""
        try:
            self.select(table, 'id', limit=1)
            logger.info('Database connection successful')
            return True
        except DatabaseError as e:
            logger.error(f'Database test failed: {e}')
            return False

    @staticmethod
    def _params(filters: Optional[Dict[str, str]]) -> List[tuple]:
        return list((filters or {}).items())

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = self.base_url + path

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise DatabaseError(f'Timeout calling {method} {path}') from e
        except requests.exceptions.RequestException as e:
            raise DatabaseError(f'Connection error calling {method} {path}: {e}') from e

        if not response.ok:
            message, code = response.text, None
            try:
                body = response.json()
                message = body.get('message', message)
                code = body.get('code')
            except ValueError:
                pass
            logger.error(f'❌ {method} {path} failed: {response.status_code} {message}')
            raise DatabaseError(message, status=response.status_code, code=code)

        if not response.content:
            return None
        return response.json()
