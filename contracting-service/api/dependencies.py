"""
FastAPI dependencies.

The services are built once per application (see api/main.py) and kept on
`app.state.services`.
"""

from typing import Optional

from fastapi import Header, Request

from services.factory import ContractingServices

DEFAULT_OPERATOR = "ops"


def get_services(request: Request) -> ContractingServices:
    return request.app.state.services


def get_operator(x_operator: Optional[str] = Header(None)) -> str:
    """Operator identity for audit events, from the X-Operator header."""
    return (x_operator or "").strip() or DEFAULT_OPERATOR
