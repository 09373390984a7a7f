"""
HTTP client for the data library server.

``DataLibraryClient`` offers the same row interface as ``RowStore`` so a grid
editor can run against a remote server instead of a local database.
"""

import os
from dataclasses import asdict
from decimal import Decimal
from typing import Dict, List, Any, Optional
from urllib.parse import quote

import requests
from dotenv import load_dotenv

from ..database.models import ColumnSpec, CreateTableRequest, Row, RowPage, TableSchema
from ..utils.errors import DataLibraryError, ERRORS_BY_NAME, ERRORS_BY_STATUS, NetworkError
from ..utils.logger import setup_logger

load_dotenv()


def _json_values(data: Dict[str, Any]) -> Dict[str, Any]:
    # exact numerics travel as strings so no digits are lost to float
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in data.items()}


class DataLibraryClient:
    """Thin wrapper over the REST endpoints; errors come back as DataLibraryError"""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: float = 10):
        self.base_url = (base_url or os.getenv('DATA_LIBRARY_API_URL', 'http://localhost:8080')).rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = setup_logger("DataLibraryClient")

    # schema

    def get_tables(self, search: Optional[str] = None) -> List[TableSchema]:
        params = {'search': search} if search else None
        data = self._request('GET', '/tables', params=params)
        return [TableSchema.from_dict(table) for table in data.get('tables') or []]

    def get_table_schema(self, table_name: str) -> TableSchema:
        data = self._request('GET', f"/tables/{quote(table_name)}")
        return TableSchema.from_dict(data['schema'])

    def create_table(self, request: CreateTableRequest) -> bool:
        self._request('POST', '/tables', json=asdict(request))
        return True

    def drop_table(self, table_name: str) -> bool:
        self._request('DELETE', f"/tables/{quote(table_name)}")
        return True

    def add_column(self, table_name: str, column: ColumnSpec) -> bool:
        self._request('POST', f"/tables/{quote(table_name)}/columns", json=asdict(column))
        return True

    def drop_column(self, table_name: str, column_name: str) -> bool:
        self._request('DELETE', f"/tables/{quote(table_name)}/columns/{quote(column_name)}")
        return True

    # rows

    def get_page(self, table_name: str, page: int = 1, page_size: Optional[int] = None) -> RowPage:
        params = {'page': page}
        if page_size is not None:
            params['limit'] = page_size
        data = self._request('GET', f"/tables/{quote(table_name)}/rows", params=params)
        return RowPage.from_dict(data)

    def insert_row(self, table_name: str, data: Dict[str, Any]) -> Row:
        return self._request('POST', f"/tables/{quote(table_name)}/rows", json=_json_values(data))['row']

    def update_row(self, table_name: str, row_id: Any, data: Dict[str, Any]) -> Row:
        path = f"/tables/{quote(table_name)}/rows/{quote(str(row_id))}"
        return self._request('PUT', path, json=_json_values(data))['row']

    def delete_row(self, table_name: str, row_id: Any) -> bool:
        """False when the server reports the row is already gone"""
        try:
            self._request('DELETE', f"/tables/{quote(table_name)}/rows/{quote(str(row_id))}")
        except DataLibraryError as e:
            if e.status_code == 404:
                return False
            raise
        return True

    def export_csv(self, table_name: str) -> str:
        response = self._send('GET', f"/tables/{quote(table_name)}/export")
        return response.text

    def status(self) -> Dict[str, Any]:
        return self._request('GET', '/status')

    # transport

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        response = self._send(method, path, **kwargs)
        try:
            return response.json()
        except ValueError:
            raise NetworkError(f"Invalid JSON from {method} {path}")

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            self.logger.error(f"{method} {url} failed: {e}")
            raise NetworkError(f"Could not reach data library server: {e}")

        if response.status_code >= 400:
            raise self._error_from_response(response)
        return response

    def _error_from_response(self, response: requests.Response) -> DataLibraryError:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        message = payload.get('message') or payload.get('detail') or response.reason
        error_class = ERRORS_BY_NAME.get(payload.get('error')) or ERRORS_BY_STATUS.get(response.status_code)
        if error_class is None:
            error_class = NetworkError if response.status_code >= 500 else DataLibraryError

        error = error_class(message if isinstance(message, str) else str(message))
        error.status_code = response.status_code
        return error
