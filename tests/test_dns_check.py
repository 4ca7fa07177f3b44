"""DNS-over-HTTPS record checks."""
import httpx
import pytest

from app.services.dns_check import DnsChecker, DnsQueryError, clean_txt_value
from tests.conftest import DOH_ENDPOINT

HOST = "shop.example.com"
TARGET = "app.edge.example.net"
TXT_NAME = "_cf-custom-hostname.shop.example.com"


@pytest.mark.parametrize("data, expected", [
    ('"abc123"', "abc123"),
    ("abc123", "abc123"),
    ('"say ""hi"""', 'say "hi"'),
    ('""', ""),
    (None, ""),
])
def test_clean_txt_value(data, expected):
    assert clean_txt_value(data) == expected


@pytest.mark.asyncio
async def test_quoted_txt_and_trailing_dot_cname_match(doh, dns_checker):
    doh.publish(HOST, "CNAME", "App.Edge.Example.net.")
    doh.publish(TXT_NAME, "TXT", '"abc123"')

    result = await dns_checker.check_records(HOST, TARGET, TXT_NAME, "abc123")

    assert result.cname.ok is True
    assert result.cname.found == "App.Edge.Example.net."
    assert result.txt.ok is True
    assert result.txt.found == '"abc123"'
    assert result.cname.error is None and result.txt.error is None
    assert (HOST, "CNAME") in doh.queries and (TXT_NAME, "TXT") in doh.queries


@pytest.mark.asyncio
async def test_wrong_values_do_not_match(doh, dns_checker):
    doh.publish(HOST, "CNAME", "other.example.net.")
    doh.publish(TXT_NAME, "TXT", '"abc1234"', '"ABC123"')

    result = await dns_checker.check_records(HOST, TARGET, TXT_NAME, "abc123")

    assert result.cname.ok is False and result.cname.found is None
    assert result.txt.ok is False


@pytest.mark.asyncio
async def test_any_matching_answer_is_enough(doh, dns_checker):
    doh.publish(TXT_NAME, "TXT", '"google-site-verification=x"', '"abc123"')
    result = await dns_checker.check_records(HOST, TARGET, TXT_NAME, "abc123")
    assert result.txt.ok is True


@pytest.mark.asyncio
async def test_resolver_failure_counts_as_absent_but_reports_error(doh, dns_checker):
    doh.fail_status = 503

    result = await dns_checker.check_records(HOST, TARGET, TXT_NAME, "abc123")

    assert result.cname.ok is False
    assert result.txt.ok is False
    assert "503" in result.cname.error
    assert "503" in result.txt.error


@pytest.mark.asyncio
async def test_query_dns_raises_on_non_2xx():
    checker = DnsChecker(
        endpoint=DOH_ENDPOINT,
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    with pytest.raises(DnsQueryError):
        await checker.query_dns(HOST, "CNAME")


@pytest.mark.asyncio
async def test_query_dns_sends_doh_json_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["accept"] = request.headers["accept"]
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"Status": 3})

    checker = DnsChecker(endpoint=DOH_ENDPOINT, transport=httpx.MockTransport(handler))
    answers = await checker.query_dns(HOST, "TXT")

    assert answers == []
    assert seen["accept"] == "application/dns-json"
    assert seen["params"] == {"name": HOST, "type": "TXT"}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [["unexpected"], "just a string", {"Status": 0, "Answer": "oops"}])
async def test_unexpected_json_body_counts_as_resolver_failure(body):
    checker = DnsChecker(
        endpoint=DOH_ENDPOINT,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
    )

    result = await checker.check_records(HOST, TARGET, TXT_NAME, "abc123")

    assert result.cname.ok is False and result.cname.error
    assert result.txt.ok is False and result.txt.error


@pytest.mark.asyncio
async def test_malformed_answer_entries_are_skipped():
    def handler(request):
        answers = ["garbage", {"type": 5}, {"type": 5, "data": 42}]
        if request.url.params["type"] == "CNAME":
            answers.append({"type": 5, "data": TARGET + "."})
        return httpx.Response(200, json={"Status": 0, "Answer": answers})

    checker = DnsChecker(endpoint=DOH_ENDPOINT, transport=httpx.MockTransport(handler))

    result = await checker.check_records(HOST, TARGET, TXT_NAME, "abc123")

    assert result.cname.ok is True
    assert result.txt.ok is False and result.txt.error is None
