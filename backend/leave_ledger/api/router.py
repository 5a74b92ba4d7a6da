from fastapi import APIRouter

from leave_ledger.api.accruals import accrual_router
from leave_ledger.api.ccl import ccl_router
from leave_ledger.api.employees import attendance_router, employees_router
from leave_ledger.api.ledger import (
    adjustment_router,
    earned_leave_router,
    employee_balance_router,
    employee_ledger_router,
)
from leave_ledger.api.periods import periods_router
from leave_ledger.api.reports import reports_router
from leave_ledger.api.settings import settings_router

api_router = APIRouter()
api_router.include_router(accrual_router)
api_router.include_router(employee_balance_router)
api_router.include_router(employee_ledger_router)
api_router.include_router(adjustment_router)
api_router.include_router(earned_leave_router)
api_router.include_router(ccl_router)
api_router.include_router(settings_router)
api_router.include_router(periods_router)
api_router.include_router(employees_router)
api_router.include_router(attendance_router)
api_router.include_router(reports_router)
