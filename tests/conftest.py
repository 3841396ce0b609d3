# Shared fixtures: an in-process stand-in for the VFB backends

import os
import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ["ENV"] = "development"
os.environ.pop("VFB_MCP_STDIO_MODE", None)

TERM_INFO_URL = "http://term-info.test"
SOLR_URL = "http://solr.test/solr/ontology/select"

TERM_INFO_PAYLOAD = {
    "Name": "medulla",
    "Id": "VFB_jrcv0i43",
    "Meta": {"Name": "[medulla](VFB_jrcv0i43)"},
}
QUERY_PAYLOAD = {"headers": {"id": "VFB_00101567"}, "rows": [{"id": "FBbt_00003748"}]}
SEARCH_PAYLOAD = {
    "response": {
        "numFound": 1,
        "docs": [{"short_form": "FBbt_00003748", "label": "medulla"}],
    }
}
FACET_PAYLOAD = {
    "facet_counts": {
        "facet_fields": {
            "facets_annotation": ["Entity", 120, "Neuron", 80, "Adult", 40, "neuron", 3]
        }
    }
}


class FakeBackend:
    """Records every outbound request and answers like the real services."""

    term_info_payload = TERM_INFO_PAYLOAD
    query_payload = QUERY_PAYLOAD
    search_payload = SEARCH_PAYLOAD
    facet_payload = FACET_PAYLOAD

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.failure: Callable[[httpx.Request], httpx.Response] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failure is not None:
            return self.failure(request)
        path = request.url.path
        if path.endswith("/get_term_info"):
            return httpx.Response(200, json=self.term_info_payload)
        if path.endswith("/run_query"):
            return httpx.Response(200, json=self.query_payload)
        if path.endswith("/select"):
            if request.url.params.get("facet") == "true":
                return httpx.Response(200, json=self.facet_payload)
            return httpx.Response(200, json=self.search_payload)
        return httpx.Response(404, text="not found")

    def fail_with(self, exc_type=httpx.ConnectError, message="network unreachable"):
        def _raise(request):
            raise exc_type(message, request=request)

        self.failure = _raise

    def respond_with(self, status_code: int, text: str = ""):
        self.failure = lambda request: httpx.Response(status_code, text=text)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def remote_client(backend):
    from src.clients.remote_client import RemoteClient

    http = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    return RemoteClient(TERM_INFO_URL, SOLR_URL, client=http)
