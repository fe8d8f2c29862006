#!/usr/bin/env python3
"""GitHub webhook -> priority triage bot.

Endpoints:
- POST /hook: issues / issue_comment webhooks (always answered with 200)
- GET /data: current event log as JSON
- GET /mail_digest: produce, store and mail a digest, clearing the log
- GET /preview_digest: render the digest without clearing anything
- GET /digest?date=<id>: show a stored digest
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from automation.triage import config as settings
from automation.triage.digest import DigestNotFound, DigestProducer, DigestStore
from automation.triage.echoes import PendingEchoes
from automation.triage.event_log import EventLog
from automation.triage.mailer import Mailer
from automation.triage.orchestrator import MutationOrchestrator
from automation.triage.service import TriageService
from automation.triage.tracker import TrackerClient

logger = logging.getLogger("triage-bot")


def _setup_logging() -> None:
    settings.LOG_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(settings.LOG_FILE, encoding="utf-8"),
        ],
    )


def _verify_signature(body: bytes, signature_header: str) -> bool:
    if not settings.WEBHOOK_SECRET:
        return True
    if not signature_header.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(settings.WEBHOOK_SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header)


class TriageServer(ThreadingHTTPServer):
    def __init__(self, address: tuple[str, int], service: TriageService, digests: DigestProducer) -> None:
        super().__init__(address, Handler)
        self.service = service
        self.digests = digests


def build(config: settings.TriageConfig, executor: ThreadPoolExecutor) -> tuple[TriageService, DigestProducer]:
    log = EventLog(settings.DATA_FILE)
    pending = PendingEchoes(ttl_sec=settings.PENDING_TTL_SEC)
    tracker = TrackerClient(
        config.owner, config.repo, settings.GH_TOKEN, api_url=settings.GH_API, timeout=settings.API_TIMEOUT_SEC
    )
    orchestrator = MutationOrchestrator(tracker, pending, log, executor)
    service = TriageService(config, log, pending, orchestrator)
    digests = DigestProducer(
        log,
        DigestStore(settings.DIGEST_DIR),
        config,
        Mailer(config.digest),
        settings.RECIPIENTS_FILE,
    )
    return service, digests


class Handler(BaseHTTPRequestHandler):
    server: TriageServer

    def log_message(self, fmt: str, *args: Any) -> None:
        logger.info("http %s - %s", self.address_string(), fmt % args)

    def _respond(self, code: HTTPStatus, body: str, content_type: str = "text/html") -> None:
        data = body.encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", f"{content_type}; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(data)

    def _not_found(self) -> None:
        self._respond(HTTPStatus.NOT_FOUND, "404 Not Found\n", "text/plain")

    def do_GET(self) -> None:  # noqa: N802
        url = urlsplit(self.path)
        digests = self.server.digests

        if url.path == "/data":
            records = [r.to_dict() for r in self.server.service.log.all()]
            self._respond(HTTPStatus.OK, json.dumps(records), "application/json")
            return
        if url.path == "/preview_digest":
            self._respond(HTTPStatus.OK, digests.preview())
            return
        if url.path == "/mail_digest":
            try:
                output = digests.produce()
            except OSError as exc:
                logger.exception("digest production failed")
                self._respond(HTTPStatus.INTERNAL_SERVER_ERROR, f"Error: {exc}", "text/plain")
                return
            self._respond(HTTPStatus.OK, output)
            return
        if url.path == "/digest":
            ident = parse_qs(url.query).get("date", [""])[0]
            try:
                output = digests.retrieve(ident)
            except DigestNotFound:
                self._not_found()
                return
            self._respond(HTTPStatus.OK, output)
            return
        self._not_found()

    def do_POST(self) -> None:  # noqa: N802
        if urlsplit(self.path).path != "/hook":
            self._not_found()
            return

        body = self.rfile.read(int(self.headers.get("Content-Length", "0")))
        evt = self.headers.get("X-GitHub-Event", "")
        delivery = self.headers.get("X-GitHub-Delivery", "")

        # Always 200: GitHub should not redeliver hooks we failed to process.
        if not _verify_signature(body, self.headers.get("X-Hub-Signature-256", "")):
            logger.warning("bad webhook signature delivery=%s", delivery)
            self._respond(HTTPStatus.OK, "Error: bad signature", "text/plain")
            return
        try:
            payload = json.loads(body.decode("utf-8"))
            output = self.server.service.handle(evt, payload)
        except Exception as exc:  # noqa: BLE001
            logger.exception("hook failed event=%s delivery=%s", evt, delivery)
            self._respond(HTTPStatus.OK, f"Error: {exc}", "text/plain")
            return
        logger.info("hook event=%s delivery=%s result=%s", evt, delivery, output)
        self._respond(HTTPStatus.OK, "Success?\n\n" + output)


def main() -> None:
    _setup_logging()
    config = settings.load_config(settings.CONFIG_FILE)
    executor = ThreadPoolExecutor(max_workers=settings.REMOTE_WORKERS, thread_name_prefix="tracker")
    service, digests = build(config, executor)

    logger.info("Triage bot listening on http://%s:%s/hook", settings.HOST, settings.PORT)
    logger.info("Repository: %s", config.full_name)
    logger.info("Config file: %s", settings.CONFIG_FILE)
    logger.info("Data file: %s (%s records)", settings.DATA_FILE, len(service.log))
    logger.info("Log file: %s", settings.LOG_FILE)
    if not settings.GH_TOKEN:
        logger.warning("GITHUB_TOKEN is empty; label and milestone changes will fail.")
    if not settings.WEBHOOK_SECRET:
        logger.warning("GITHUB_WEBHOOK_SECRET is empty; webhook signatures are not checked.")

    server = TriageServer((settings.HOST, settings.PORT), service, digests)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutting down")
    finally:
        server.server_close()
        executor.shutdown(wait=True)


if __name__ == "__main__":
    main()
