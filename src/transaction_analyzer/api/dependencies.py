from fastapi import HTTPException, Request

from transaction_analyzer.services.pipeline import ImportSession


def get_session(request: Request) -> ImportSession:
    session = getattr(request.app.state, "session", None)
    if not session:
        raise HTTPException(status_code=500, detail="Session not initialized")
    return session
