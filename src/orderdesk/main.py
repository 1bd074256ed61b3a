import argparse
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from orderdesk.core.vault import generate_key, get_vault
from orderdesk.middleware import RateLimit, RequestLog
from orderdesk.routers import get_routers
from orderdesk.shared import Logger, load_config
from orderdesk.shared.dependencies import get_notifier
from orderdesk.shared.http import error_response, validation_error_response

logger = Logger(__name__).get_logger()

config = load_config()


# ================================================================================
#       Lifespan
# ================================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail before serving rather than on the first order
    get_vault()
    yield
    await get_notifier().shutdown(timeout=config.notifier.shutdown_timeout)


# ================================================================================
#       FastAPI Setup
# ================================================================================
app = FastAPI(title=config.general.app_name, lifespan=lifespan)

for router in get_routers():
    app.include_router(router)

app.add_middleware(RateLimit)
app.add_middleware(RequestLog)

# Added last so preflight requests are answered before rate limiting
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.network.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    expose_headers=["Content-Length"],
    max_age=86400,
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(exc.status_code, str(exc.detail), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {str(err["loc"][-1]): err["msg"] for err in exc.errors()}
    return validation_error_response("Invalid request", errors)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(500, "Internal server error")


# ================================================================================
#       Command Line
# ================================================================================
def welcome():
    # Log server banner
    for line in config.general.title.split("\n"):
        logger.info(line)

    logger.info("Starting order intake server")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Order intake API server")
    parser.add_argument(
        "--generate-key",
        action="store_true",
        help="Print a new base64 AES-256 key for ENCRYPT_KEY and exit",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    if args.generate_key:
        print("Generated AES-256 key:")
        print(generate_key())
        return

    welcome()

    import uvicorn

    uvicorn.run(
        "orderdesk.main:app",
        host=config.network.host,
        port=config.network.port,
        reload=config.network.reload,
    )


if __name__ == "__main__":
    main()
