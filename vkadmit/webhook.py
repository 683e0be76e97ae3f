"""HTTP front of the admission controller."""

from __future__ import annotations

import json
import logging
from http.server import BaseHTTPRequestHandler
from typing import Callable, Optional
from urllib.parse import urlsplit

from vkadmit.admission import (
    ADMIT_JOB_PATH,
    MUTATE_JOB_PATH,
    AdmissionController,
    AdmissionResponse,
    AdmissionReview,
    to_admission_response,
)

logger = logging.getLogger(__name__)

CONTENT_TYPE = "Content-Type"
APPLICATION_JSON = "application/json"

AdmitFunc = Callable[[AdmissionReview], AdmissionResponse]


def create_response(
    review_response: Optional[AdmissionResponse], review: AdmissionReview
) -> AdmissionReview:
    """Wrap a response in a review, copying the request's uid.

    The request's objects are dropped, as a response does not need them.
    """
    response = AdmissionReview()
    if review_response is not None:
        response.response = review_response
        review_response.uid = review.request.uid if review.request is not None else ""
    if review.request is not None:
        review.request.object = None
        review.request.old_object = None
    return response


def serve(body: bytes, content_type: str, admit: AdmitFunc) -> bytes:
    """Answer one admission request body; empty if its content type is wrong."""
    if content_type != APPLICATION_JSON:
        logger.error("contentType=%s, expect application/json", content_type)
        return b""

    review = AdmissionReview()
    try:
        data = json.loads(body) if body else None
        if not isinstance(data, dict):
            raise ValueError("admission review is not a JSON object")
        review = AdmissionReview.from_dict(data)
    except ValueError as err:
        review_response = to_admission_response(err)
    else:
        review_response = admit(review)
    logger.debug("sending response: %r", review_response)

    response = create_response(review_response, review)
    return json.dumps(response.to_dict()).encode()


class WebhookServer:
    """Routes webhook paths to the admission controller."""

    def __init__(self, controller: AdmissionController) -> None:
        self.controller = controller
        self.routes: dict[str, AdmitFunc] = {
            ADMIT_JOB_PATH: controller.admit_jobs,
            MUTATE_JOB_PATH: controller.mutate_jobs,
        }

    def handle(self, path: str, body: bytes, content_type: str) -> bytes:
        """Answer a request to a path; LookupError for an unknown path."""
        admit = self.routes.get(path)
        if admit is None:
            raise LookupError(f"no handler for path {path}")
        return serve(body, content_type, admit)

    def make_handler(self) -> type[BaseHTTPRequestHandler]:
        """A request handler class for http.server serving the webhooks."""
        webhook = self

        class _Handler(BaseHTTPRequestHandler):
            def do_POST(self) -> None:
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length else b""
                path = urlsplit(self.path).path
                try:
                    payload = webhook.handle(path, body, self.headers.get(CONTENT_TYPE, ""))
                except LookupError:
                    self.send_error(404)
                    return
                self.send_response(200)
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, format: str, *args: object) -> None:
                logger.debug(format, *args)

        return _Handler