import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from payables.config import settings
from payables.errors import (
    ConflictError,
    InvalidAmountError,
    InvalidInputError,
    InvalidStateError,
    InvalidTransitionError,
    LedgerError,
    NotFoundError,
)
from payables.routers import analytics, payments, purchase_orders, vendors

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (NotFoundError, 404),
    (ConflictError, 409),
    (InvalidInputError, 422),
    (InvalidTransitionError, 400),
    (InvalidAmountError, 400),
    (InvalidStateError, 400),
)


def _setup_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format='%(asctime)s  %(levelname)-8s  %(name)s - %(message)s',
    )
    if not settings.sql_echo:
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


def _error_body(exc: LedgerError) -> dict:
    body: dict = {'error': type(exc).__name__, 'message': str(exc)}
    if isinstance(exc, InvalidTransitionError):
        body['current'] = getattr(exc.current, 'value', exc.current)
        body['requested'] = getattr(exc.requested, 'value', exc.requested)
    elif isinstance(exc, InvalidAmountError):
        if exc.requested is not None:
            body['requested'] = str(exc.requested)
        if exc.outstanding is not None:
            body['outstanding'] = str(exc.outstanding)
    elif isinstance(exc, ConflictError) and exc.field:
        body['field'] = exc.field
    return body


_setup_logging(settings.log_level)

app = FastAPI(title='Vendor Payables Ledger')

app.include_router(vendors.router)
app.include_router(purchase_orders.router)
app.include_router(payments.router)
app.include_router(analytics.router)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = next((code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)), 400)
    logger.info('%s %s rejected (%s): %s', request.method, request.url.path, type(exc).__name__, exc)
    return JSONResponse(status_code=status_code, content=_error_body(exc))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning('%s %s hit a constraint violation: %s', request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={'error': 'ConflictError', 'message': 'A record with these values already exists'},
    )


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}
