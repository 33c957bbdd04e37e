"""
=============================================================================
EXAMPLE: RESPONSE HEADERS
=============================================================================

A handler returning a pre-built Headers object, including a header with
several values.

    $ PORT=1338 python examples/headers.py
    $ curl -i localhost:1338/headers
    HTTP/1.1 200 OK
    Content-Type: text/plain
    x-example: hello
    set-cookie: a=1
    set-cookie: b=2
    ...

    ok

=============================================================================
"""

import os
import sys
from pathlib import Path

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpdispatch import Dispatcher, HandlerResult, Headers


def headers_handler(ctx):
    headers = Headers({"x-example": "hello"})
    headers.add("set-cookie", "a=1")
    headers.add("set-cookie", "b=2")
    return HandlerResult(
        status_code=200,
        content_type="text/plain",
        headers=headers,
        payload="ok",
    )


def main():
    port = int(os.getenv("PORT", "1338"))
    app = Dispatcher(port=port).add_handler("headers", "GET", headers_handler)
    print(f"Example headers server starting on port {port}")
    app.run()


if __name__ == "__main__":
    main()
