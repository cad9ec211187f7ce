"""
Billing Service API.

Provides the payment webhook endpoint and the probe/status endpoints.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import Optional

from aiohttp import BasicAuth, hdrs, web

from config import AdyenWebhookConfig, ServiceConfig, config
from models.notification import WebhookEvent
from services.hmac_verifier import VerificationError, verify_hmac
from services.status import StatusGuard
from version import version

logger = logging.getLogger(__name__)

# Probes stay reachable in maintenance mode
PROBE_PATHS = frozenset(['/healthz', '/livez', '/readyz', '/v1/status'])


class BillingAPI:
    """
    REST API for the billing service.

    Endpoints:
    - GET /healthz, /livez - Liveness probe
    - GET /readyz - Readiness probe
    - GET /v1/status - Service status and version
    - POST /v1/adyen/payments - Payment provider webhook
    """

    def __init__(
        self,
        status: StatusGuard,
        service: Optional[ServiceConfig] = None,
        webhook: Optional[AdyenWebhookConfig] = None,
        log: Optional[logging.Logger] = None
    ):
        """
        Initialize the API.

        Args:
            status: Status guard shared with the lifecycle manager
            service: Service configuration (uses config if not provided)
            webhook: Webhook authentication configuration (uses config if not provided)
            log: Logger for request handling
        """
        self.status = status
        self.service = service or config.service
        self.webhook = webhook or config.webhook
        self.logger = log or logger

    def setup_routes(self, app: web.Application) -> None:
        """
        Set up API routes.

        Args:
            app: aiohttp web application
        """
        app.router.add_get('/healthz', self.healthz)
        app.router.add_get('/livez', self.healthz)
        app.router.add_get('/readyz', self.readyz)
        app.router.add_get('/v1/status', self.get_status)
        app.router.add_post('/v1/adyen/payments', self.adyen_payments)

    async def healthz(self, request: web.Request) -> web.Response:
        """Liveness probe."""
        if self.status.get().healthy:
            return web.json_response({"status": "ok"})
        return web.json_response({"status": "unhealthy"}, status=503)

    async def readyz(self, request: web.Request) -> web.Response:
        """Readiness probe."""
        if self.status.get().ready:
            return web.json_response({"status": "ready"})
        return web.json_response({"status": "not ready"}, status=503)

    async def get_status(self, request: web.Request) -> web.Response:
        """Heartbeat with version and uptime."""
        current = self.status.get()

        uptime = None
        if current.started_at is not None:
            uptime = str(datetime.now(timezone.utc) - current.started_at)

        code = 200
        if self.service.maintenance:
            state = "maintenance"
        elif current.healthy:
            state = "ok"
        else:
            state = "stopping"
            code = 503

        return web.json_response({
            "status": state,
            "service": self.service.name,
            "version": version(),
            "uptime": uptime,
            "server": current.to_dict()
        }, status=code)

    async def adyen_payments(self, request: web.Request) -> web.Response:
        """
        Receive payment notifications from the provider.

        Every notification item must pass HMAC verification when it is
        enabled; a single failure rejects the whole batch.
        """
        if self.webhook.use_basic_auth and not self._authorized(request):
            return web.json_response(
                {"error": "authentication required"},
                status=401,
                headers={hdrs.WWW_AUTHENTICATE: 'Basic realm="payments"'}
            )

        try:
            body = await request.text()
            event = WebhookEvent.from_json(body)
        except ValueError as e:
            self.logger.warning(f"Could not parse payments webhook request: {e}")
            return web.json_response(
                {"error": "could not parse payments webhook request"},
                status=400
            )

        if self.webhook.verify_hmac:
            for notification in event.notification_items:
                try:
                    verify_hmac(notification, self.webhook.hmac_secret)
                except VerificationError as e:
                    self.logger.warning(
                        f"Rejected payments webhook for {notification.psp_reference}: {e}"
                    )
                    return web.json_response(
                        {"error": "HMAC signature cannot be verified"},
                        status=401
                    )

        for index, notification in enumerate(event.notification_items):
            self.logger.info(
                f"Payment webhook received: live={event.live} "
                f"item={index + 1}/{len(event)} "
                f"event_code={notification.event_code} "
                f"psp_reference={notification.psp_reference} "
                f"merchant_reference={notification.merchant_reference} "
                f"amount={notification.amount_value} {notification.amount_currency} "
                f"success={notification.success}"
            )

        return web.Response(status=202)

    def _authorized(self, request: web.Request) -> bool:
        """Check the request's basic auth credentials."""
        header = request.headers.get(hdrs.AUTHORIZATION)
        if not header:
            return False

        try:
            credentials = BasicAuth.decode(header)
        except ValueError:
            return False

        login_ok = hmac.compare_digest(
            credentials.login.encode('utf-8'),
            self.webhook.username.encode('utf-8')
        )
        password_ok = hmac.compare_digest(
            credentials.password.encode('utf-8'),
            self.webhook.password.encode('utf-8')
        )
        return login_ok and password_ok


def create_app(
    status: StatusGuard,
    service: Optional[ServiceConfig] = None,
    webhook: Optional[AdyenWebhookConfig] = None,
    log: Optional[logging.Logger] = None
) -> web.Application:
    """
    Create and configure the aiohttp web application.

    Args:
        status: Status guard shared with the lifecycle manager
        service: Optional service configuration
        webhook: Optional webhook authentication configuration
        log: Optional logger

    Returns:
        Configured aiohttp Application
    """
    app = web.Application()

    # Create API handler
    api = BillingAPI(status=status, service=service, webhook=webhook, log=log)

    # Setup routes
    api.setup_routes(app)

    # Maintenance mode middleware
    @web.middleware
    async def maintenance_middleware(request, handler):
        if api.service.maintenance and request.path not in PROBE_PATHS:
            return web.json_response({"status": "maintenance"}, status=503)
        return await handler(request)

    app.middlewares.append(maintenance_middleware)

    # Error handling middleware
    @web.middleware
    async def error_middleware(request, handler):
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as e:
            api.logger.error(f"Unhandled error: {e}", exc_info=True)
            return web.json_response(
                {"error": "Internal server error"},
                status=500
            )

    app.middlewares.append(error_middleware)

    return app
