import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response, HTTPException
import httpx
from .config import settings
from .logs import configure_logging

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = {
    b'connection',
    b'keep-alive',
    b'proxy-authenticate',
    b'proxy-authorization',
    b'te',
    b'trailers',
    b'transfer-encoding',
    b'upgrade',
    b'host',
}

DROPPED_RESPONSE_HEADERS = {
    b'content-encoding',
    b'content-length',
    b'transfer-encoding',
    b'connection',
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown logic."""
    #---- Startup ----
    configure_logging(settings.log_level)

    # state injected beforehand (tests) is left to its owner
    owns_router = not hasattr(app.state, 'router')
    if owns_router:
        app.state.router = settings.router()
    logger.info('Loaded %d upstream routes', len(app.state.router))

    owns_client = not hasattr(app.state, 'http_client')
    if owns_client:
        app.state.http_client = httpx.AsyncClient(timeout=settings.upstream_timeout)

    try:
        yield
    finally:
        #---- Shutdown ----
        if owns_client:
            await app.state.http_client.aclose()
            del app.state.http_client
        if owns_router:
            del app.state.router

application = FastAPI(lifespan=lifespan)


@application.api_route(
    path="/{path:path}",
    methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
)
async def proxy(path: str, request: Request):
    raw_path = request.scope.get('raw_path')
    incoming = raw_path.split(b'?')[0].decode('latin-1') if raw_path else request.url.path
    query_string = request.scope.get('query_string', b'')
    if query_string:
        incoming += '?' + query_string.decode('latin-1')

    result = request.app.state.router.match(incoming)
    if result is None:
        logger.info('No route for %s', incoming)
        raise HTTPException(status_code=404, detail="No upstream route found")

    # remainder may not start with '/', never let it extend the upstream host
    suffix = result.url if result.url.startswith('/') else '/' + result.url
    url = result.service.rstrip("/") + suffix
    headers = [
        (k, v) for k, v in request.headers.raw if k.lower() not in HOP_BY_HOP_HEADERS
    ] # headers excluding hop_by_hop headers
    host = request.headers.get('host')
    if host:
        headers.append((b'x-forwarded-host', host.encode('latin-1')))

    body = await request.body()

    # ---- Proxy Request ----
    try:
        resp = await request.app.state.http_client.request(
            request.method,
            url,
            headers=headers,
            content=body,
        )
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning('Upstream %s failed: %s', url, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    # body is already decoded by httpx, so its length is recomputed here
    response = Response(content=resp.content, status_code=resp.status_code)
    # repeated headers such as set-cookie stay separate
    response.raw_headers.extend(
        (k, v) for k, v in resp.headers.raw
        if k.lower() not in DROPPED_RESPONSE_HEADERS
    )
    return response
