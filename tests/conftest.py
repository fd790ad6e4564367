"""Shared test fixtures for veracodetui tests."""

import json
from concurrent.futures import Future
from typing import Any, Callable, List, Tuple

import httpx
import pytest

from api_lab.app import LAB_KEY_ID, LAB_KEY_SECRET, app as lab_app, reset_lab
from veracodetui.core.config import Credentials
from veracodetui.core.dispatcher import FetchDispatcher
from veracodetui.core.transport import Transport

LAB_BASE_URL = "http://lab.veracode.test"


class SpyTransport:
    """Records every request and answers from a queue of canned bodies.

    A queued exception is raised instead of returned.
    """

    def __init__(self, *responses):
        self.calls: List[Tuple[str, str, Any, Any]] = []
        self.responses = list(responses)

    def queue(self, response):
        self.responses.append(response)

    def request(self, method, path, params=None, body=None) -> bytes:
        self.calls.append((method, path, params, body))
        if not self.responses:
            return b"{}"
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response).encode("utf-8")
        return response


class ManualExecutor:
    """Executor whose jobs run only when a test says so, in any order."""

    def __init__(self):
        self.jobs: List[Tuple[Callable, Future]] = []

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        self.jobs.append((lambda: fn(*args, **kwargs), future))
        return future

    def run(self, index: int) -> None:
        fn, future = self.jobs[index]
        try:
            future.set_result(fn())
        except Exception as exc:
            future.set_exception(exc)

    def run_all(self) -> None:
        for i, (_, future) in enumerate(self.jobs):
            if not future.done():
                self.run(i)

    def shutdown(self, wait=True):
        pass


def hal(key, items, number=0, total_pages=1, total_elements=None):
    """A HAL page body as the API returns it."""
    return {
        "_embedded": {key: items},
        "page": {"number": number, "size": 100,
                 "total_elements": len(items) if total_elements is None else total_elements,
                 "total_pages": total_pages},
    }


def app_payload(guid, name, modified=None):
    return {"guid": guid, "modified": modified, "profile": {"name": name},
            "scans": [{"scan_type": "STATIC", "status": "PUBLISHED"}]}


def static_finding(issue_id, severity=3, violates=False, status="OPEN", resolution_status="NONE"):
    return {
        "issue_id": issue_id, "scan_type": "STATIC", "violates_policy": violates,
        "finding_status": {"status": status, "resolution_status": resolution_status},
        "finding_details": {"severity": severity, "cwe": {"id": 89, "name": "SQL Injection"},
                            "file_path": "src/A.java", "file_line_number": 10},
    }


@pytest.fixture
def spy() -> SpyTransport:
    return SpyTransport()


@pytest.fixture
def executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def dispatcher(executor) -> FetchDispatcher:
    return FetchDispatcher(executor=executor)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(key_id=LAB_KEY_ID, key_secret=LAB_KEY_SECRET)


@pytest.fixture
def lab():
    """The fake API, reset to its seed data."""
    reset_lab()
    yield lab_app
    reset_lab()


@pytest.fixture
def lab_transport(lab, credentials):
    """A real Transport talking to the lab in-process through WSGI."""
    client = httpx.Client(transport=httpx.WSGITransport(app=lab), timeout=5.0)
    transport = Transport(credentials, base_url=LAB_BASE_URL, client=client)
    yield transport
    transport.close()
