"""Pytest configuration for antiforgery tests."""
import sys
from pathlib import Path
from typing import Iterable, Optional, Tuple

# Add server/ to path for the flat source layout
_PROJECT_ROOT = Path(__file__).parent.parent
_SERVER = _PROJECT_ROOT / 'server'
if str(_SERVER) not in sys.path:
    sys.path.insert(0, str(_SERVER))

import pytest
from starlette.requests import Request
from starlette.responses import PlainTextResponse


def make_request(
    method: str = 'GET',
    path: str = '/',
    headers: Iterable[Tuple[str, str]] = (),
    body: bytes = b'',
    session: Optional[dict] = None,
    query_string: bytes = b'',
) -> Request:
    """Build a bare Starlette request; `session=None` means no SessionMiddleware."""
    scope = {
        'type': 'http',
        'http_version': '1.1',
        'method': method,
        'scheme': 'http',
        'server': ('test', 80),
        'client': ('127.0.0.1', 12345),
        'root_path': '',
        'path': path,
        'raw_path': path.encode(),
        'query_string': query_string,
        'headers': [(k.lower().encode(), v.encode()) for k, v in headers],
        'state': {},
    }
    if session is not None:
        scope['session'] = session

    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {'type': 'http.disconnect'}
        sent = True
        return {'type': 'http.request', 'body': body, 'more_body': False}

    return Request(scope, receive)


class CallNext:
    """Records whether the continuation ran."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, request: Request):
        self.calls += 1
        return PlainTextResponse('downstream')


@pytest.fixture
def call_next():
    return CallNext()


@pytest.fixture
def request_factory():
    return make_request
