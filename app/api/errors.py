from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

class FlowStateError(Exception):
    """
    Unrecoverable navigation or session state (missing token, unknown file, ...).
    Rendered as a full-page error with a path back into the flow.
    """

    def __init__(self, detail: str, back: str = "/", status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(detail)
        self.detail = detail
        self.back = back
        self.status_code = status_code

def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FlowStateError)
    async def flow_state_error_handler(request: Request, exc: FlowStateError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "back": exc.back},
        )
