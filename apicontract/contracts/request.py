"""
Framework-agnostic request view.

Adapters wrap their runtime's request object in a RequestView. The
runtime has already matched the route, so path parameters arrive resolved.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Union


TextValue = Union[str, List[str]]


def collapse_multi(items: Mapping[str, List[str]]) -> Dict[str, TextValue]:
    """Keep repeated keys as lists, unwrap single values: {'a': ['1']} -> {'a': '1'}."""
    collapsed: Dict[str, TextValue] = {}
    for key, values in items.items():
        values = list(values)
        collapsed[key] = values[0] if len(values) == 1 else values
    return collapsed


def media_type_of(content_type: Optional[str]) -> Optional[str]:
    """'application/json; charset=utf-8' -> 'application/json'."""
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


class RequestView(ABC):
    """Read access to one inbound request."""

    @property
    @abstractmethod
    def method(self) -> str:
        ...

    @property
    @abstractmethod
    def path(self) -> str:
        ...

    @property
    @abstractmethod
    def path_params(self) -> Mapping[str, str]:
        ...

    @property
    @abstractmethod
    def query(self) -> Mapping[str, TextValue]:
        ...

    @property
    @abstractmethod
    def headers(self) -> Mapping[str, str]:
        ...

    @property
    @abstractmethod
    def cookies(self) -> Mapping[str, str]:
        ...

    @property
    @abstractmethod
    def body(self) -> bytes:
        ...

    @property
    def form(self) -> Mapping[str, Any]:
        """Decoded form fields; runtimes that parse forms override this."""
        return {}

    @property
    def content_type(self) -> Optional[str]:
        return self.header("content-type")

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default


class SimpleRequest(RequestView):
    """In-memory request, for tests and for runtimes without a request object."""

    def __init__(
        self,
        method: str = "GET",
        path: str = "/",
        *,
        path_params: Optional[Dict[str, str]] = None,
        query: Optional[Dict[str, TextValue]] = None,
        headers: Optional[Dict[str, str]] = None,
        cookies: Optional[Dict[str, str]] = None,
        body: Union[bytes, str] = b"",
        form: Optional[Dict[str, Any]] = None,
    ):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._method = method.upper()
        self._path = path
        self._path_params = dict(path_params or {})
        self._query = dict(query or {})
        self._headers = dict(headers or {})
        self._cookies = dict(cookies or {})
        self._body = body
        self._form = dict(form or {})

    def __repr__(self):
        return f"SimpleRequest({self._method} {self._path})"

    @property
    def method(self):
        return self._method

    @property
    def path(self):
        return self._path

    @property
    def path_params(self):
        return self._path_params

    @property
    def query(self):
        return self._query

    @property
    def headers(self):
        return self._headers

    @property
    def cookies(self):
        return self._cookies

    @property
    def body(self):
        return self._body

    @property
    def form(self):
        return self._form
