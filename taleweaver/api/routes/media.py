from fastapi import APIRouter, Depends, HTTPException, Response

from taleweaver.api.dependencies import get_orchestrator
from taleweaver.pipeline import TaleWeaverOrchestrator
from taleweaver.sessions import ArtifactKind

router = APIRouter(tags=["media"])


def _serve(
    orchestrator: TaleWeaverOrchestrator,
    kind: ArtifactKind,
    session_id: str,
    filename: str,
) -> Response:
    data = orchestrator.artifacts.get(kind, session_id, filename)
    if data is None:
        raise HTTPException(status_code=404, detail=f"{kind.value.capitalize()} not found")
    return Response(
        content=data,
        media_type=kind.media_type,
        headers={"Cache-Control": f"public, max-age={kind.cache_seconds}"},
    )


@router.get("/audio/{session_id}/{filename}")
def get_audio(
    session_id: str,
    filename: str,
    orchestrator: TaleWeaverOrchestrator = Depends(get_orchestrator),
):
    return _serve(orchestrator, ArtifactKind.AUDIO, session_id, filename)


@router.get("/image/{session_id}/{filename}")
def get_image(
    session_id: str,
    filename: str,
    orchestrator: TaleWeaverOrchestrator = Depends(get_orchestrator),
):
    return _serve(orchestrator, ArtifactKind.IMAGE, session_id, filename)
