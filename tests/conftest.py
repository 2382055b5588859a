# Centralized pytest configuration file (fixtures, hooks, plugins, etc.)
import pytest
from asgi_lifespan import LifespanManager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.gzip import GZipMiddleware
from httpx import AsyncClient, ASGITransport

from rewrite_gateway.config import settings, RouteRule
from rewrite_gateway.main import application as gateway_app


#----Routes overrides for tests----
@pytest.fixture(scope='session', autouse=True)
def set_routes():
    settings.routes = [
        RouteRule(pattern=r'^/hello$', upstream='http://upstream'),
        RouteRule(pattern=r'^/echo', upstream='http://upstream/'),
        RouteRule(pattern=r'^/api/(?P<version>v\d+)', upstream='http://upstream'),
    ]


@pytest.fixture
def upstream_app() -> FastAPI:
    app = FastAPI()     # mock upstream app for tests
    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.get("/")
    async def hello(request: Request):  # tests path+method forwarding and response body
        return {
            "message": "hello from upstream",
            "query": request.url.query,
            "received_headers": dict(request.headers),
        }

    @app.post("/")
    async def echo(payload: dict): # tests body forwarding and proxy correctness
        return payload

    @app.get("/large")
    async def large(): # compressed by GZipMiddleware
        return {"items": ["item-%d" % i for i in range(200)]}

    @app.get("/cookies")
    async def cookies(response: Response): # tests repeated response headers
        response.set_cookie("session", "abc")
        response.set_cookie("theme", "dark")
        return {"ok": True}

    @app.get("/{rest:path}")
    async def anything(rest: str, request: Request): # tests path rewriting
        return {
            "path": request.url.path,
            "query": request.url.query,
        }

    return app


@pytest.fixture
async def gateway_client(upstream_app: FastAPI):
    """Gateway test client with upstream mocked via ASGITransport"""
    # Transport to fake upstream
    upstream_transport = ASGITransport(app=upstream_app)
    upstream_client = AsyncClient(
        transport=upstream_transport,
        base_url="http://upstream"
    )
    # Injected before startup so the lifespan leaves them alone
    gateway_app.state.router = settings.router()
    gateway_app.state.http_client = upstream_client
    async with LifespanManager(gateway_app):
        # client with transport to gateway app
        gateway_transport = ASGITransport(app=gateway_app)
        async with AsyncClient(
                transport=gateway_transport,
                base_url="http://gateway") as client:
            yield client

    del gateway_app.state.router
    del gateway_app.state.http_client
    await upstream_client.aclose()
