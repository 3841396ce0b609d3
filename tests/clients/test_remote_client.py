import anyio
import httpx

from src.clients.remote_client import BackendFailure, BackendOk, RemoteClient


def test_get_term_info_returns_parsed_payload(remote_client, backend):
    result = anyio.run(remote_client.get_term_info, "VFB_jrcv0i43")

    assert result == BackendOk(backend.term_info_payload)
    assert len(backend.requests) == 1
    request = backend.requests[0]
    assert request.method == "GET"
    assert request.url.path == "/get_term_info"
    assert request.url.params["id"] == "VFB_jrcv0i43"


def test_run_query_sends_id_and_query_type(remote_client, backend):
    result = anyio.run(remote_client.run_query, "VFB_00101567", "PaintedDomains")

    assert result == BackendOk(backend.query_payload)
    assert len(backend.requests) == 1
    params = backend.requests[0].url.params
    assert params["id"] == "VFB_00101567"
    assert params["query_type"] == "PaintedDomains"


def test_search_repeats_multi_valued_params(remote_client, backend):
    params = {"q": "medulla", "fq": ["a:b", "NOT (c:d)"], "rows": "150"}

    result = anyio.run(remote_client.search, params)

    assert result == BackendOk(backend.search_payload)
    request = backend.requests[0]
    assert str(request.url).startswith(remote_client.solr_url)
    assert request.url.params.get_list("fq") == ["a:b", "NOT (c:d)"]


def test_facet_counts_asks_for_whole_index(remote_client, backend):
    anyio.run(remote_client.facet_counts, "facets_annotation")

    params = backend.requests[0].url.params
    assert params["q"] == "*:*"
    assert params["rows"] == "0"
    assert params["facet"] == "true"
    assert params["facet.field"] == "facets_annotation"


def test_http_error_status_becomes_failure(remote_client, backend):
    backend.respond_with(500, "boom")

    result = anyio.run(remote_client.get_term_info, "FBbt_00003748")

    assert isinstance(result, BackendFailure)
    assert "HTTP 500" in result.description
    assert "term_info" in result.description
    assert len(backend.requests) == 1


def test_connection_error_becomes_failure(remote_client, backend):
    backend.fail_with(httpx.ConnectError, "network unreachable")

    result = anyio.run(remote_client.run_query, "FBbt_00003748", "ListAllAvailableImages")

    assert isinstance(result, BackendFailure)
    assert "ConnectError" in result.description
    assert "network unreachable" in result.description


def test_timeout_becomes_failure(remote_client, backend):
    backend.fail_with(httpx.ReadTimeout, "timed out")

    result = anyio.run(remote_client.search, {"q": "medulla"})

    assert isinstance(result, BackendFailure)
    assert result.description.startswith("Timeout contacting solr backend")


def test_malformed_body_becomes_failure(remote_client, backend):
    backend.respond_with(200, "<html>not json</html>")

    result = anyio.run(remote_client.get_term_info, "FBbt_00003748")

    assert isinstance(result, BackendFailure)
    assert result.description.startswith("Malformed response from term_info backend")


def test_trailing_slashes_are_normalised():
    client = RemoteClient("http://term-info.test/", "http://solr.test/select/")

    assert client.term_info_url == "http://term-info.test"
    assert client.solr_url == "http://solr.test/select"
    anyio.run(client.aclose)


def test_context_manager_closes_http_client(backend):
    http = httpx.AsyncClient(transport=httpx.MockTransport(backend))

    async def _use():
        async with RemoteClient(
            "http://term-info.test", "http://solr.test/select", client=http
        ):
            pass

    anyio.run(_use)

    assert http.is_closed
