from fastapi import Request

from taleweaver.pipeline import TaleWeaverOrchestrator


def get_orchestrator(request: Request) -> TaleWeaverOrchestrator:
    return request.app.state.orchestrator


def get_base_url(request: Request) -> str:
    """Origin used to build same-origin artifact URLs."""
    return str(request.base_url).rstrip("/")
