from fastapi import Response

ALLOW_METHODS = "GET, POST, OPTIONS"


async def options_short_circuit_middleware(request, call_next):
    """Answer every OPTIONS request with an empty 200 and CORS headers.

    Runs outside CORSMiddleware, whose preflight reply carries an "OK" body,
    and covers paths that have no OPTIONS route of their own.
    """
    if request.method != "OPTIONS":
        return await call_next(request)
    resp = Response(status_code=200)
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
    resp.headers["Access-Control-Allow-Headers"] = (
        request.headers.get("access-control-request-headers") or "*"
    )
    return resp
