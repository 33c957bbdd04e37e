"""
=============================================================================
EXAMPLE: ECHO SERVER
=============================================================================

Returns the request body as the response body.

    $ python examples/echo.py
    Started httpdispatch. Listening on 127.0.0.1:1337

    $ curl -X POST localhost:1337/echo -d '{"hello": "world"}'
    {"hello": "world"}

    $ curl -X POST localhost:1337/echo/42
    42                                  (201, text/plain)

=============================================================================
"""

import sys
from pathlib import Path

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpdispatch import Dispatcher, HandlerResult, ServerConfig


app = Dispatcher(ServerConfig.from_env())


@app.post("echo")
async def echo(ctx):
    return HandlerResult(payload=ctx.payload)


@app.post("echo/:id")
def echo_id(ctx):
    return HandlerResult(
        status_code=201,
        content_type="text/plain",
        payload=ctx.groups["id"],
    )


def main():
    app.run()


if __name__ == "__main__":
    main()
