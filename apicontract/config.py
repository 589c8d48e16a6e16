"""
Environment configuration.

The contract core never reads the environment; adapters and middleware
call the getters below at setup time so tests can monkeypatch variables.
"""

import os

from dotenv import load_dotenv

from .contracts.openapi import DocumentInfo
from .contracts.registry import SchemaMode

load_dotenv()


def get_contract_mode() -> SchemaMode:
    """Response enforcement mode from CONTRACT_MODE (strict | warn)."""
    mode = os.environ.get('CONTRACT_MODE', 'strict').strip().lower()
    return SchemaMode.WARN if mode == 'warn' else SchemaMode.STRICT


def get_request_id_header() -> str:
    return os.environ.get('REQUEST_ID_HEADER', 'X-Request-ID')


def get_openapi_version() -> str:
    return os.environ.get('OPENAPI_VERSION', '3.1.0')


def get_docs_path() -> str:
    return os.environ.get('DOCS_PATH', '/docs')


def document_info(title: str, version: str, **kwargs) -> DocumentInfo:
    """DocumentInfo using the OPENAPI_VERSION document version."""
    kwargs.setdefault('openapi', get_openapi_version())
    return DocumentInfo(title=title, version=version, **kwargs)


class Config:
    # Response payload enforcement: "strict" raises, "warn" logs
    CONTRACT_MODE = os.getenv('CONTRACT_MODE', 'strict')

    REQUEST_ID_HEADER = os.getenv('REQUEST_ID_HEADER', 'X-Request-ID')

    OPENAPI_VERSION = os.getenv('OPENAPI_VERSION', '3.1.0')
    DOCS_PATH = os.getenv('DOCS_PATH', '/docs')

    # Request usage logging (see middleware.request_logging)
    REQUEST_LOG_ENABLED = os.getenv('REQUEST_LOG_ENABLED', 'true').lower() == 'true'
    REQUEST_LOG_SAMPLE_RATE = os.getenv('REQUEST_LOG_SAMPLE_RATE', '0.0')
    REQUEST_LOG_ENDPOINTS = os.getenv('REQUEST_LOG_ENDPOINTS', '')
