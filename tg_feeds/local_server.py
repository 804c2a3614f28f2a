"""Local development server for the feed endpoints.

Run with ``python -m tg_feeds.local_server``; HOST and PORT come from the
environment (default 127.0.0.1:4567).
"""

from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace
from urllib.parse import urlsplit

from .config import Config
from .lambda_handler import lambda_handler
from .logging_config import create_execution_logger


class FeedRequestHandler(BaseHTTPRequestHandler):
    """Forwards GET requests to the Lambda handler as HTTP API events."""

    def do_GET(self):
        path = urlsplit(self.path).path
        event = {"rawPath": path, "requestContext": {"http": {"method": "GET"}}}
        context = SimpleNamespace(aws_request_id="local", function_name="local")
        response = lambda_handler(event, context)

        body = response.get("body", "").encode("utf-8")
        self.send_response(response["statusCode"])
        for name, value in response.get("headers", {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        create_execution_logger("local_server", "local").info(
            format % args, client=self.client_address[0]
        )


def serve(config: Config | None = None) -> None:
    config = config or Config()
    server_config = config.get_server_config()
    server = ThreadingHTTPServer((server_config.host, server_config.port), FeedRequestHandler)
    logger = create_execution_logger("local_server", "local")
    logger.info(
        f"Listening on http://{server_config.host}:{server_config.port}",
        host=server_config.host,
        port=server_config.port,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()


if __name__ == "__main__":
    serve()
