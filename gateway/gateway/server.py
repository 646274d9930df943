"""Gateway compartment: Starlette ASGI server.

One catch-all route accepting POST, GET, PUT and DELETE on
``/<service path>/<operation>``.  Query string, JSON entity and vendor
headers are gathered into raw parameters and handed to the executor; the
result comes back as JSON text.

Run directly::

    python -m gateway.server --port 8100
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from bridge.config import BridgeConfig
from bridge.descriptors import RawParameter
from bridge.errors import BridgeError, MalformedRequestError
from bridge.executor import Executor

from gateway.parameters import entity_parameters, header_parameters, query_parameters
from gateway.policy import ExceptionMapper, error_response
from gateway.routing import ServiceClass, ServiceRegistry, VerbPolicy
from gateway.services import default_services, widget_errors

log = logging.getLogger(__name__)

VERBS = ["POST", "GET", "PUT", "DELETE"]


class Gateway:
    """Per-application wiring: services, verb policy and executor."""

    def __init__(
        self,
        config: BridgeConfig,
        services: dict[str, ServiceClass],
        exception_mapper: ExceptionMapper | None = None,
    ) -> None:
        self.config = config
        self.registry = ServiceRegistry(services)
        self.verbs = VerbPolicy(config.get_operations, config.put_operations, config.delete_operations)
        self.executor = Executor(config)
        self.exception_mapper = exception_mapper

    async def endpoint(self, request: Request) -> Response:
        verb = request.method
        log.info("%s %s", verb, request.url)
        try:
            service, operation = self.registry.route(request.url.path)
            self.verbs.check(verb, operation)

            raw = query_parameters(request.query_params)
            raw += self.headers(request, service)
            if verb != "GET":
                raw += entity_parameters(await request.body())

            text = await service.invoke_async(self.executor, operation, raw)
        except BridgeError as exc:
            return error_response(exc, self.exception_mapper)
        return Response(text, media_type="application/json")

    def headers(self, request: Request, service: ServiceClass) -> list[RawParameter]:
        """Vendor header objects; each must be declared by some operation."""
        declared = service.header_names
        raw = header_parameters(request.headers, self.config.vendor, declared, service.header_fields)
        unexpected = sorted(p.name for p in raw if p.name not in declared)
        if unexpected:
            log.warning("unexpected header parameters for %s: %s", service.klass.__qualname__, unexpected)
            raise MalformedRequestError(f"Unexpected header parameter(s): {', '.join(unexpected)}")
        return raw


async def health(request: Request) -> JSONResponse:
    gateway: Gateway = request.app.state.gateway
    return JSONResponse({"status": "ok", "services": gateway.registry.paths})


# ── App factory ──────────────────────────────────────────────────────


def load_services(config: BridgeConfig) -> dict[str, ServiceClass]:
    """Import the ``module:Class`` targets named in ``config.services``."""
    from importlib import import_module

    services = {}
    for path, target in config.services.items():
        module_name, _, class_name = target.partition(":")
        klass = getattr(import_module(module_name), class_name)
        services[path] = ServiceClass.for_class(klass)
    return services


def create_app(
    config: BridgeConfig | None = None,
    services: dict[str, ServiceClass] | None = None,
    exception_mapper: ExceptionMapper | None = None,
) -> Starlette:
    config = config or BridgeConfig()
    if services is None:
        services = load_services(config) if config.services else default_services()
        if not config.services and exception_mapper is None:
            exception_mapper = widget_errors

    gateway = Gateway(config, services, exception_mapper)
    app = Starlette(
        debug=False,
        routes=[
            Route("/_health", health, methods=["GET"]),
            Route("/{path:path}", gateway.endpoint, methods=VERBS),
        ],
    )
    app.state.gateway = gateway
    return app


app = create_app()


# ── Runnable entrypoint ──────────────────────────────────────────────


def main() -> None:
    load_dotenv(os.path.join(Path.cwd(), ".env"))
    config = BridgeConfig.from_env()

    parser = argparse.ArgumentParser(description="Typed operation gateway")
    parser.add_argument("--host", type=str, default=config.host, help="Bind address")
    parser.add_argument("--port", type=int, default=config.port, help="Bind port")
    parser.add_argument("--log-level", type=str, default=config.log_level, help="Logging level")
    args = parser.parse_args()

    import uvicorn

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
