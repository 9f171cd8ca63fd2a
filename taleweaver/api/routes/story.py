from fastapi import APIRouter, Depends

from taleweaver.api import schemas
from taleweaver.api.dependencies import get_base_url, get_orchestrator
from taleweaver.pipeline import BranchStatusReport, TaleWeaverOrchestrator

router = APIRouter(
    prefix="/story",
    tags=["story"],
    responses={
        400: {"model": schemas.ErrorResponse, "description": "Invalid request or out-of-sequence choice"},
        410: {"model": schemas.ErrorResponse, "description": "Session not found or expired"},
        502: {"model": schemas.ErrorResponse, "description": "A generation service failed"},
    },
)


@router.post("/start", response_model=schemas.StoryStartResponse)
def start_story(
    body: schemas.StoryStartRequest,
    orchestrator: TaleWeaverOrchestrator = Depends(get_orchestrator),
    base_url: str = Depends(get_base_url),
):
    result = orchestrator.start_story(
        body.child,
        moral_focus=body.moral_focus,
        story_length=body.story_length,
        interactive=body.interactive,
        narrator_voice_id=body.narrator_voice_id,
        base_url=base_url,
    )
    return schemas.StoryStartResponse(
        session_id=result.session.session_id,
        segment=result.segment,
        next_branches=list(result.next_branches) if result.next_branches else None,
        story_complete=result.story_complete,
        current_checkpoint=result.session.current_checkpoint,
        total_checkpoints=result.session.total_checkpoints,
    )


@router.post("/continue", response_model=schemas.StoryContinueResponse)
def continue_story(
    body: schemas.StoryContinueRequest,
    orchestrator: TaleWeaverOrchestrator = Depends(get_orchestrator),
    base_url: str = Depends(get_base_url),
):
    step = orchestrator.continue_story(
        body.session_id,
        body.checkpoint,
        body.chosen_branch,
        base_url=base_url,
    )
    return schemas.StoryContinueResponse(
        segment=step.segment,
        next_branches=list(step.next_branches) if step.next_branches else None,
        story_complete=step.story_complete,
        current_checkpoint=step.current_checkpoint,
    )


@router.get("/status/{session_id}", response_model=schemas.BranchStatusResponse)
def branch_status(
    session_id: str,
    orchestrator: TaleWeaverOrchestrator = Depends(get_orchestrator),
):
    return _status_payload(orchestrator.branch_status(session_id))


@router.get("/branches/{session_id}/{checkpoint}", response_model=schemas.BranchesResponse)
def get_branches(
    session_id: str,
    checkpoint: int,
    orchestrator: TaleWeaverOrchestrator = Depends(get_orchestrator),
):
    pair = orchestrator.get_branches(session_id, checkpoint)
    if pair is None:
        return schemas.BranchesResponse(checkpoint=checkpoint, branches_ready=False)
    return schemas.BranchesResponse(
        checkpoint=checkpoint,
        branches_ready=True,
        choice_prompt=pair[0].segment.choice_prompt,
        branches=list(pair),
    )


@router.post("/branches/{session_id}/retry", response_model=schemas.BranchRetryResponse)
def retry_branches(
    session_id: str,
    orchestrator: TaleWeaverOrchestrator = Depends(get_orchestrator),
    base_url: str = Depends(get_base_url),
):
    report = orchestrator.retry_branches(session_id, base_url=base_url)
    return schemas.BranchRetryResponse(
        **_status_payload(report).model_dump(),
        scheduled=report.scheduled,
    )


@router.post("/evaluate", response_model=schemas.StoryEvaluateResponse)
def evaluate_story(
    body: schemas.StoryEvaluateRequest,
    orchestrator: TaleWeaverOrchestrator = Depends(get_orchestrator),
):
    return schemas.StoryEvaluateResponse(evaluation=orchestrator.evaluate_story(body.session_id))


def _status_payload(report: BranchStatusReport) -> schemas.BranchStatusResponse:
    return schemas.BranchStatusResponse(
        branches_ready=report.branches_ready,
        generation_in_progress=report.generation_in_progress,
        current_checkpoint=report.current_checkpoint,
        total_checkpoints=report.total_checkpoints,
        status=report.status,
        attempts=report.attempts,
        error=report.error,
    )
