from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .dashboard import DashboardAggregator, DashboardSummary
from .exceptions import (
    ConsistencyError,
    LedgerError,
    NotFoundError,
    SchedulerError,
    ValidationError,
)
from .logging import setup_logging
from .models import (
    Account,
    ActivateWalletRequest,
    AmountRequest,
    CountRequest,
    CreateAccountRequest,
    CreateDepositRequest,
    CreateWithdrawalRequest,
    PhoneCheckRequest,
    PhoneCheckResponse,
    PurchaseProductRequest,
    StatusUpdateRequest,
    UpdateAccountRequest,
    Wallet,
)
from .service import LedgerService
from .wallets import WalletSelector

setup_logging()

ledger_service = LedgerService()
wallet_selector = WalletSelector(ledger_service.storage)
dashboard = DashboardAggregator(ledger_service.storage)


@asynccontextmanager
async def lifespan(app: FastAPI):
    wallet_selector.bootstrap()
    async with ledger_service.scheduler:
        yield


app = FastAPI(
    title="Referral Investment Ledger API",
    description="Per-account balances recomputed from products, deposits and withdrawals",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def http_error(e: LedgerError) -> HTTPException:
    if isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, ConsistencyError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, SchedulerError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail={"code": e.code, "message": e.message, "details": e.details})


@app.get("/health", tags=["System"])
def health_check():
    return {
        "status": "healthy",
        "service": "referral-ledger",
        "scheduler": ledger_service.scheduler.get_status(),
    }


@app.post("/recompute", tags=["System"])
async def trigger_recompute():
    try:
        batch = await ledger_service.scheduler.trigger_run()
    except LedgerError as e:
        raise http_error(e)
    return {
        "accounts": batch.accounts_found,
        "pruned": batch.accounts_pruned,
        "succeeded": batch.succeeded,
        "failed": batch.failed,
        "skipped": batch.skipped,
        "timed_out": batch.timed_out,
        "duration": batch.duration,
    }


@app.post("/accounts", response_model=Account, status_code=status.HTTP_201_CREATED, tags=["Accounts"])
def create_account(request: CreateAccountRequest) -> Account:
    try:
        return ledger_service.create_account(request)
    except LedgerError as e:
        raise http_error(e)


@app.post("/accounts/check-phone", response_model=PhoneCheckResponse, tags=["Accounts"])
def check_phone(request: PhoneCheckRequest) -> PhoneCheckResponse:
    if ledger_service.is_phone_available(request.phone):
        return PhoneCheckResponse(available=True, message="Phone number is available")
    return PhoneCheckResponse(available=False, message="Phone number already exists")


@app.get("/accounts", response_model=list[Account], tags=["Accounts"])
async def list_accounts() -> list[Account]:
    return await ledger_service.list_accounts()


@app.get("/accounts/{account_id}", response_model=Account, tags=["Accounts"])
def get_account(account_id: UUID) -> Account:
    try:
        return ledger_service.get_account(account_id)
    except LedgerError as e:
        raise http_error(e)


@app.patch("/accounts/{account_id}", response_model=Account, tags=["Accounts"])
def update_account(account_id: UUID, request: UpdateAccountRequest) -> Account:
    try:
        return ledger_service.update_account(account_id, request)
    except LedgerError as e:
        raise http_error(e)


@app.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Accounts"])
def delete_account(account_id: UUID) -> None:
    try:
        ledger_service.delete_account(account_id)
    except LedgerError as e:
        raise http_error(e)


@app.post("/accounts/{account_id}/products", response_model=Account, tags=["Products"])
def purchase_product(account_id: UUID, request: PurchaseProductRequest) -> Account:
    try:
        return ledger_service.purchase_product(account_id, request)
    except LedgerError as e:
        raise http_error(e)


@app.post("/accounts/{account_id}/deposits", response_model=Account, tags=["Deposits"])
def add_deposit(account_id: UUID, request: CreateDepositRequest) -> Account:
    try:
        return ledger_service.add_deposit(account_id, request)
    except LedgerError as e:
        raise http_error(e)


@app.put("/accounts/{account_id}/deposits/{deposit_id}/status", response_model=Account, tags=["Deposits"])
def change_deposit_status(account_id: UUID, deposit_id: UUID, request: StatusUpdateRequest) -> Account:
    try:
        return ledger_service.change_deposit_status(account_id, deposit_id, request.status)
    except LedgerError as e:
        raise http_error(e)


@app.post("/accounts/{account_id}/withdrawals", response_model=Account, tags=["Withdrawals"])
def request_withdrawal(account_id: UUID, request: CreateWithdrawalRequest) -> Account:
    try:
        return ledger_service.request_withdrawal(account_id, request)
    except LedgerError as e:
        raise http_error(e)


@app.put("/accounts/{account_id}/withdrawals/{withdrawal_id}/status", response_model=Account, tags=["Withdrawals"])
def change_withdrawal_status(account_id: UUID, withdrawal_id: UUID, request: StatusUpdateRequest) -> Account:
    try:
        return ledger_service.change_withdrawal_status(account_id, withdrawal_id, request.status)
    except LedgerError as e:
        raise http_error(e)


@app.put("/accounts/{account_id}/invites/count/increase", response_model=Account, tags=["Invites"])
def increase_invites_count(account_id: UUID, request: CountRequest) -> Account:
    try:
        return ledger_service.increase_invites_count(account_id, request.amount)
    except LedgerError as e:
        raise http_error(e)


@app.put("/accounts/{account_id}/invites/count/decrease", response_model=Account, tags=["Invites"])
def decrease_invites_count(account_id: UUID, request: CountRequest) -> Account:
    try:
        return ledger_service.decrease_invites_count(account_id, request.amount)
    except LedgerError as e:
        raise http_error(e)


@app.put("/accounts/{account_id}/invites/profit/increase", response_model=Account, tags=["Invites"])
def increase_invites_profit(account_id: UUID, request: AmountRequest) -> Account:
    try:
        return ledger_service.increase_invites_profit(account_id, request.amount)
    except LedgerError as e:
        raise http_error(e)


@app.get("/wallets", response_model=list[Wallet], tags=["Wallets"])
def list_wallets() -> list[Wallet]:
    return wallet_selector.list_wallets()


@app.get("/wallets/active", response_model=Wallet, tags=["Wallets"])
def get_active_wallet() -> Wallet:
    wallet_selector.bootstrap()
    try:
        return wallet_selector.get_active()
    except LedgerError as e:
        raise http_error(e)


@app.post("/wallets/activate", response_model=Wallet, tags=["Wallets"])
def activate_wallet(request: ActivateWalletRequest) -> Wallet:
    wallet_selector.bootstrap()
    try:
        return wallet_selector.set_active(request.wallet)
    except LedgerError as e:
        raise http_error(e)


@app.get("/dashboard", response_model=DashboardSummary, tags=["Dashboard"])
def get_dashboard() -> DashboardSummary:
    return dashboard.summarize()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
