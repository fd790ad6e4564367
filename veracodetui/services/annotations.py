"""Annotations API: the one write call, attaching mitigation actions/comments to findings.

    service = AnnotationsService(transport)
    data = AnnotationData(issue_list="123,456", comment="Sanitised upstream",
                          action=ACTION_FALSE_POSITIVE)
    service.create_annotation(app_guid, data)
"""

import json
from typing import List

from veracodetui.core.errors import HTTPError, ValidationError
from veracodetui.core.models import AnnotationData, AnnotationResponse, APIError
from veracodetui.services.base import BaseService

ANNOTATIONS_BASE_PATH = "/appsec/v2/applications"

ACTION_COMMENT = "COMMENT"
ACTION_FALSE_POSITIVE = "FP"
ACTION_APP_DESIGN = "APPDESIGN"
ACTION_OS_ENV = "OSENV"
ACTION_NET_ENV = "NETENV"
ACTION_REJECTED = "REJECTED"
ACTION_ACCEPTED = "ACCEPTED"
ACTION_LIBRARY = "LIBRARY"
ACTION_ACCEPT_RISK = "ACCEPTRISK"

ACTIONS = [ACTION_COMMENT, ACTION_FALSE_POSITIVE, ACTION_APP_DESIGN, ACTION_OS_ENV,
           ACTION_NET_ENV, ACTION_REJECTED, ACTION_ACCEPTED, ACTION_LIBRARY,
           ACTION_ACCEPT_RISK]


def issue_list(issue_ids) -> str:
    return ",".join(str(i) for i in issue_ids)


def api_error_messages(error: HTTPError) -> List[str]:
    """Pull ``_embedded.api_errors`` out of an error body, if there is one."""
    try:
        data = json.loads(error.body)
    except ValueError:
        return []
    if not isinstance(data, dict):
        return []
    embedded = data.get("_embedded") or {}
    raw = embedded.get("api_errors") if isinstance(embedded, dict) else None
    messages = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        err = APIError.from_dict(item)
        text = ": ".join(p for p in (err.title, err.detail) if p)
        if text:
            messages.append(text)
    return messages


class AnnotationsService(BaseService):

    name = "annotations"

    def create_annotation(self, application_guid: str, annotation: AnnotationData | None,
                          context: str = "") -> AnnotationResponse:
        self.require(application_guid=application_guid)
        if annotation is None:
            raise ValidationError("annotation is required")
        if not annotation.issue_list:
            raise ValidationError("issue_list is required")
        if annotation.action and annotation.action not in ACTIONS:
            raise ValidationError(f"unknown annotation action {annotation.action!r}")

        params = [("context", context)] if context else []
        body = self.post_json(f"{ANNOTATIONS_BASE_PATH}/{application_guid}/annotations",
                              annotation.to_dict(), params)
        if not body.strip():
            return AnnotationResponse()
        return self.parse(body, "annotation", AnnotationResponse.from_dict)
