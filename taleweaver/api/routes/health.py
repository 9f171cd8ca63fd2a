from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/")
def health(request: Request):
    prefix = request.app.state.settings.api_prefix
    return {
        "service": "taleweaver",
        "status": "ok",
        "endpoints": [
            f"POST {prefix}/story/start",
            f"POST {prefix}/story/continue",
            f"GET {prefix}/story/status/{{session_id}}",
            f"GET {prefix}/story/branches/{{session_id}}/{{checkpoint}}",
            f"POST {prefix}/story/branches/{{session_id}}/retry",
            f"POST {prefix}/story/evaluate",
            "GET /audio/{session_id}/{filename}",
            "GET /image/{session_id}/{filename}",
        ],
    }
