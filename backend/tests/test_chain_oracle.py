"""
Unit tests for the Moralis-backed chain oracle client.
"""
import aiohttp
import pytest

from core.errors import InternalError, OracleUnavailable
from services.chain_oracle import ChainOracleClient, is_success_status, parse_transaction

from conftest import FakeResponse

pytestmark = pytest.mark.unit

TX = "0x" + "cd" * 32
NOT_FOUND_BODY = '{"message":"No transaction found"}'


class FakeSession:
    """Replays canned responses in order and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_client(**overrides) -> ChainOracleClient:
    options = dict(api_key="key-123", base_url="https://indexer.test/api/v2.2/", chain="base sepolia", max_attempts=3, retry_delay=0)
    options.update(overrides)
    return ChainOracleClient(**options)


def tx_payload(**fields):
    payload = {
        "hash": TX,
        "from_address": "0xAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA",
        "to_address": "0x000000000000000000000000000000000000dEaD",
        "receipt_status": "1",
    }
    payload.update(fields)
    return payload


class TestStatusNormalization:

    @pytest.mark.parametrize("raw", [1, "1", "success", "SUCCESS", " Success "])
    def test_success_shapes(self, raw):
        assert is_success_status(raw) is True

    @pytest.mark.parametrize("raw", [0, "0", "failed", "", None, True, 2, 1.0])
    def test_failure_shapes(self, raw):
        assert is_success_status(raw) is False

    def test_status_falls_back_to_name_field(self):
        info = parse_transaction(TX, tx_payload(receipt_status=None, receipt_status_name="SUCCESS"))
        assert info.status == "SUCCESS"
        assert info.status_ok is True

    def test_addresses_are_lowercased(self):
        info = parse_transaction(TX, tx_payload())
        assert info.from_address == "0x" + "a" * 40
        assert info.to_address == "0x000000000000000000000000000000000000dead"

    def test_missing_fields(self):
        info = parse_transaction(TX, {})
        assert info.from_address is None
        assert info.to_address is None
        assert info.status_ok is False


class TestFetchTransaction:

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        session = FakeSession(FakeResponse(200, tx_payload()))

        info = await make_client().fetch_transaction(TX, session=session)

        assert info.status_ok is True
        url, kwargs = session.requests[0]
        assert url == f"https://indexer.test/api/v2.2/transaction/{TX}"
        assert kwargs["params"] == {"chain": "base sepolia"}
        assert kwargs["headers"]["X-API-Key"] == "key-123"

    @pytest.mark.asyncio
    async def test_retries_until_indexed(self):
        session = FakeSession(
            FakeResponse(404, NOT_FOUND_BODY),
            FakeResponse(404, NOT_FOUND_BODY),
            FakeResponse(200, tx_payload()),
        )

        info = await make_client().fetch_transaction(TX, session=session)

        assert info.status_ok is True
        assert len(session.requests) == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries(self):
        session = FakeSession(*[FakeResponse(404, NOT_FOUND_BODY) for _ in range(3)])

        with pytest.raises(OracleUnavailable) as exc:
            await make_client().fetch_transaction(TX, session=session)

        assert len(session.requests) == 3
        assert exc.value.details == {"status": 404, "attempts": 3}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,body", [(500, "upstream error"), (429, "rate limited"), (404, "route not found")])
    async def test_other_failures_are_not_retried(self, status, body):
        session = FakeSession(FakeResponse(status, body), FakeResponse(200, tx_payload()))

        with pytest.raises(OracleUnavailable):
            await make_client().fetch_transaction(TX, session=session)

        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_connection_error(self):
        session = FakeSession(aiohttp.ClientConnectionError("connection refused"))

        with pytest.raises(OracleUnavailable):
            await make_client().fetch_transaction(TX, session=session)

    @pytest.mark.asyncio
    async def test_non_object_payload(self):
        session = FakeSession(FakeResponse(200, "[]"))

        with pytest.raises(OracleUnavailable):
            await make_client().fetch_transaction(TX, session=session)

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        session = FakeSession()

        with pytest.raises(InternalError):
            await make_client(api_key="").fetch_transaction(TX, session=session)

        assert session.requests == []
