from fastapi import APIRouter

from payflow.api.bank_accounts import bank_accounts_router
from payflow.api.instruments import instruments_router
from payflow.api.organization import approvers_router, units_router
from payflow.api.payments import payments_router
from payflow.api.requisitions import requisitions_router
from payflow.api.roles import roles_router
from payflow.api.vouchers import vouchers_router

api_router = APIRouter()
api_router.include_router(units_router)
api_router.include_router(approvers_router)
api_router.include_router(requisitions_router)
api_router.include_router(payments_router)
api_router.include_router(vouchers_router)
api_router.include_router(instruments_router)
api_router.include_router(bank_accounts_router)
api_router.include_router(roles_router)
