"""Request-scoped dependencies."""

from __future__ import annotations

from fastapi import Request

from weldpay.payroll.service import PayrollService


def get_service(request: Request) -> PayrollService:
    return request.app.state.service
