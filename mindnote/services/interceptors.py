"""
InterceptorPipeline - Ordered request/response transforms.

Request and response interceptors are independent lists; each is applied
in registration order and must return the (possibly replaced) message.
"""

from typing import Callable

import httpx

RequestInterceptor = Callable[[httpx.Request], httpx.Request]
ResponseInterceptor = Callable[[httpx.Response], httpx.Response]


class InterceptorPipeline:
    """
    Holds the outgoing and incoming transform chains of a service.

    Usage:
        pipeline = InterceptorPipeline()
        pipeline.add_request_interceptor(add_trace_header)
        request = pipeline.apply_request(request)
    """

    def __init__(self) -> None:
        self._request_interceptors: list[RequestInterceptor] = []
        self._response_interceptors: list[ResponseInterceptor] = []

    def add_request_interceptor(self, interceptor: RequestInterceptor) -> None:
        self._request_interceptors.append(interceptor)

    def add_response_interceptor(self, interceptor: ResponseInterceptor) -> None:
        self._response_interceptors.append(interceptor)

    def apply_request(self, request: httpx.Request) -> httpx.Request:
        """Fold a request through every request interceptor."""
        for interceptor in self._request_interceptors:
            request = interceptor(request)
        return request

    def apply_response(self, response: httpx.Response) -> httpx.Response:
        """Fold a response through every response interceptor."""
        for interceptor in self._response_interceptors:
            response = interceptor(response)
        return response


def header_injector(name: str, value: str) -> RequestInterceptor:
    """Build a request interceptor that sets one header."""

    def inject(request: httpx.Request) -> httpx.Request:
        request.headers[name] = value
        return request

    return inject
