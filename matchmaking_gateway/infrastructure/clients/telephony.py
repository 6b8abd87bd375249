"""Telephony provider HTTP client for placing masked calls"""

import httpx
from matchmaking_gateway.domain.models import ProviderCall
from matchmaking_gateway.domain.exceptions import ProviderError
from matchmaking_gateway.config import settings
from matchmaking_gateway.infrastructure.observability.metrics import provider_latency_histogram


class TelephonyClient:
    """Client for the external call-connect API"""

    def __init__(
        self,
        base_url: str | None = None,
        account_sid: str | None = None,
        api_token: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url or settings.telephony_api_base
        self.account_sid = account_sid or settings.telephony_account_sid
        self.api_token = api_token or settings.telephony_api_token
        self.timeout = timeout or settings.http_timeout_seconds

    async def connect_call(
        self,
        from_number: str,
        to_number: str,
        caller_id: str,
        status_callback_url: str,
        time_limit_seconds: int = 3600,
        ring_timeout_seconds: int = 30,
        record: bool = True,
    ) -> ProviderCall:
        """
        Ask the provider to bridge two real numbers behind a masking number.

        Neither party sees the other's real number; both see caller_id.

        Raises:
            ProviderError: On timeout, HTTP errors, or invalid response
        """
        form = {
            "From": from_number,
            "To": to_number,
            "CallerId": caller_id,
            "CallType": "trans",
            "TimeLimit": str(time_limit_seconds),
            "TimeOut": str(ring_timeout_seconds),
            "StatusCallback": status_callback_url,
            "StatusCallbackEvents": "terminal",
            "Record": "true" if record else "false",
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with provider_latency_histogram.time():
                    response = await client.post(
                        f"{self.base_url}/v1/Accounts/{self.account_sid}/Calls/connect",
                        data=form,
                        auth=(self.account_sid, self.api_token),
                    )
                response.raise_for_status()
                call = response.json()["Call"]

                return ProviderCall(provider_call_id=str(call["Sid"]), status=call.get("Status", "queued"))

            except httpx.TimeoutException as e:
                raise ProviderError(f"Telephony provider timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ProviderError(f"Telephony provider error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ProviderError(f"Telephony provider unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise ProviderError(f"Invalid response from telephony provider: {e}") from e
