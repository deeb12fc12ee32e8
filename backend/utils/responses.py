from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

def no_store_json(data, status_code: int = 200):
    """Return JSONResponse with no-store caching headers."""
    return JSONResponse(content=data, status_code=status_code, headers=NO_STORE_HEADERS)

def error_json(error: str, status_code: int, details: Optional[Dict[str, Any]] = None):
    """Render a failure as ``{"error": ..., "details": ...}``."""
    content: Dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    return no_store_json(content, status_code=status_code)
