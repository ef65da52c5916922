import secrets

from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Verify the X-API-Key header against APP_API_KEY, if one is configured.

    Without APP_API_KEY the service is open and every request passes.

    Args:
        request (Request): The FastAPI request object (provides app.state).
        x_api_key (str | None): The value of the X-API-Key header.

    Raises:
        HTTPException: 401 if a key is configured and the header is missing or does not match.
    """
    helper_config = request.app.state.helper_config
    expected_key = helper_config.get_string_val("APP_API_KEY", default="")
    if not expected_key:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key, expected_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key.")
