import json

import httpx


class MockResponse:
    def __init__(self, payload=None, status_code: int = 200, text: str | None = None):
        self._payload = payload
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)
        self.request = httpx.Request("GET", "https://mock")

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise httpx.HTTPStatusError(
                "mock error",
                request=self.request,
                response=httpx.Response(self.status_code, request=self.request),
            )


class MockAsyncClient:
    def __init__(self, *responses: MockResponse | Exception, error: Exception | None = None):
        self.responses = list(responses)
        self.error = error
        self.calls: list[tuple[str, str, dict | None, dict | None]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def _next(self) -> MockResponse:
        if self.error is not None:
            raise self.error
        resp = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(resp, Exception):
            raise resp
        return resp

    async def get(self, url: str, params=None, headers=None):
        self.calls.append(("GET", url, params, headers))
        return self._next()

    async def post(self, url: str, data=None, headers=None):
        self.calls.append(("POST", url, data, headers))
        return self._next()
