"""
Response Dispatcher — the single JSON envelope for /api and /health.

    success         → 200 {"ok": true,  "data": <payload or null>}
    business error  → 400 {"ok": false, "errors": <error or errors>}
    guard rejection → 401/403 {"ok": false, "errors": <message>}
    not found       → 404 {"ok": false, "errors": <message>}
    fault           → 500 {"ok": false, "errors": <message>}
"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse


class ResponseDispatcher:
    def dispatch(
        self,
        ok: bool,
        code: Optional[int] = None,
        data: Any = None,
        errors: Any = None,
        headers: Optional[dict] = None,
    ) -> JSONResponse:
        status = code or (200 if ok else 500)
        content = {"ok": True, "data": data} if ok else {"ok": False, "errors": errors}
        return JSONResponse(status_code=status, content=jsonable_encoder(content), headers=headers)

    def success(self, data: Any = None) -> JSONResponse:
        return self.dispatch(ok=True, data=data)

    def error(self, code: int, errors: Any, headers: Optional[dict] = None) -> JSONResponse:
        return self.dispatch(ok=False, code=code, errors=errors, headers=headers)
