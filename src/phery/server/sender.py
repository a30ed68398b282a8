"""ASGI response sending: translates HTTPResponse into ASGI messages."""

from phery._internal.asgi import Send
from phery.http.response import HTTPResponse


def _body_allowed(status: int) -> bool:
    # 1xx, 204 and 304 responses carry no body.
    return not (100 <= status < 200 or status in {204, 304})


def encode_headers(response: HTTPResponse, body: bytes) -> list[tuple[bytes, bytes]]:
    raw = [(b"content-type", response.content_type.encode("latin-1"))]
    raw.extend(
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in response.headers
    )
    raw.extend(
        (b"set-cookie", cookie.to_header_value().encode("latin-1"))
        for cookie in response.cookies
    )
    raw.append((b"content-length", str(len(body)).encode("latin-1")))
    return raw


async def send_response(response: HTTPResponse, send: Send) -> None:
    body = response.body_bytes if _body_allowed(response.status) else b""
    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": encode_headers(response, body),
        }
    )
    await send({"type": "http.response.body", "body": body})
