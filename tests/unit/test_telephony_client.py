"""Unit tests for the telephony provider client"""

import httpx
import pytest
from unittest.mock import MagicMock, patch
from matchmaking_gateway.infrastructure.clients.telephony import TelephonyClient
from matchmaking_gateway.domain.exceptions import ProviderError


@pytest.fixture
def telephony() -> TelephonyClient:
    return TelephonyClient(base_url="http://provider.test", account_sid="acct", api_token="secret", timeout=2.0)


async def _connect(telephony: TelephonyClient):
    return await telephony.connect_call(
        from_number="+919811111111",
        to_number="+919822222222",
        caller_id="+910000000000",
        status_callback_url="http://app.test/v1/calls/webhook",
    )


@pytest.mark.asyncio
async def test_connect_call_success(telephony: TelephonyClient):
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_resp = MagicMock()
        mock_resp.json.return_value = {"Call": {"Sid": "CA123", "Status": "queued"}}
        mock_resp.raise_for_status = MagicMock()
        mock_post.return_value = mock_resp

        result = await _connect(telephony)

        assert result.provider_call_id == "CA123"
        assert result.status == "queued"

        call_args = mock_post.call_args
        assert call_args.args[0] == "http://provider.test/v1/Accounts/acct/Calls/connect"
        form = call_args.kwargs["data"]
        assert form["From"] == "+919811111111"
        assert form["To"] == "+919822222222"
        assert form["CallerId"] == "+910000000000"
        assert form["TimeLimit"] == "3600"
        assert form["TimeOut"] == "30"
        assert form["Record"] == "true"
        assert call_args.kwargs["auth"] == ("acct", "secret")


@pytest.mark.asyncio
async def test_connect_call_timeout(telephony: TelephonyClient):
    with patch("httpx.AsyncClient.post", side_effect=httpx.ReadTimeout("slow")):
        with pytest.raises(ProviderError, match="timeout"):
            await _connect(telephony)


@pytest.mark.asyncio
async def test_connect_call_http_error(telephony: TelephonyClient):
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_resp = MagicMock()
        mock_resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Bad request", request=MagicMock(), response=MagicMock(status_code=400)
        )
        mock_post.return_value = mock_resp

        with pytest.raises(ProviderError, match="400"):
            await _connect(telephony)


@pytest.mark.asyncio
async def test_connect_call_malformed_response(telephony: TelephonyClient):
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_resp = MagicMock()
        mock_resp.json.return_value = {"unexpected": True}
        mock_resp.raise_for_status = MagicMock()
        mock_post.return_value = mock_resp

        with pytest.raises(ProviderError, match="Invalid response"):
            await _connect(telephony)
