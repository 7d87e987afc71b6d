"""
=============================================================================
EXPORT ENDPOINTS
=============================================================================

    POST /api/photos/*id/export
        body:     {"destination": "/path", "filename": "x.jpg", "keepOriginalName": true}
        200:      {"success": true, "filePath": "...", "originalFilename": "..."}
        500:      {"success": false, "error": "...", "timestamp": "..."}

    POST /api/export/batch
        body:     {"ids": ["a", "b"], "destination": "/path"}
        200:      {"results": [{"id": "a", "success": true, ...}, ...],
                   "total": 2, "succeeded": 1}

A batch always answers 200; per-asset failures (including unknown ids)
are reported in their result entries.

=============================================================================
"""

import logging
from typing import Any

from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, HTTPStatus, error_response, ok
from ..media.errors import BadRequest, NotFound
from ..media.exporter import Exporter
from ..media.index import LibraryIndex
from ..media.models import ExportRequest, ExportResult


logger = logging.getLogger(__name__)


def _json_body(request: HTTPRequest) -> Any:
    try:
        return request.json
    except HTTPParseError as e:
        raise BadRequest(f"Invalid request body: {e.message}")


class ExportHandler:
    """Writes assets into a destination folder chosen by the plugin."""

    def __init__(self, index: LibraryIndex, exporter: Exporter):
        self.index = index
        self.exporter = exporter

    def export(self, request: HTTPRequest) -> HTTPResponse:
        asset = self.index.lookup(request.path_params.get("id", ""))
        if asset is None:
            raise NotFound("Photo not found")

        body = ExportRequest.from_json(_json_body(request))
        result = self.exporter.export(asset, body.destination, body.filename)

        if not result.success:
            return error_response(
                result.error or "Export failed",
                HTTPStatus.INTERNAL_SERVER_ERROR,
                success=False,
            )
        return ok(result.to_dict())

    def export_batch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Export several assets concurrently.

        Raises:
            BadRequest: The body lacks a list of string "ids" or a
                        non-empty "destination".
        """
        data = _json_body(request)
        if not isinstance(data, dict):
            raise BadRequest("Invalid request body: expected a JSON object")

        ids = data.get("ids")
        if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
            raise BadRequest("Invalid request body: 'ids' must be a list of strings")

        destination = data.get("destination")
        if not isinstance(destination, str) or not destination:
            raise BadRequest("Invalid request body: 'destination' must be a non-empty string")

        assets = []
        results = []
        for identifier in ids:
            asset = self.index.lookup(identifier)
            if asset is None:
                results.append(ExportResult.failure("Photo not found", identifier=identifier))
            else:
                assets.append(asset)

        results.extend(self.exporter.export_many(assets, destination))
        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Batch export to {destination}: {succeeded}/{len(ids)} succeeded")

        return ok({
            "results": [{"id": r.identifier, **r.to_dict()} for r in results],
            "total": len(ids),
            "succeeded": succeeded,
        })
