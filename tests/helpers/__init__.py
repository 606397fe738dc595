"""Test helper utilities: in-process backend fakes."""

from tests.helpers.fake_backend import (
    FakeFulfillmentBackend,
    FakeGateway,
    RecordedCall,
    page_body,
    serve_pages,
)

__all__ = [
    "FakeFulfillmentBackend",
    "FakeGateway",
    "RecordedCall",
    "page_body",
    "serve_pages",
]
