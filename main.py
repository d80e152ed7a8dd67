"""
Mistakebook – FastAPI Backend
Question notebook with hand-drawn solutions, difficulty levels and exam mode.

The browser page is a thin client: every user action (open a question,
pick a letter, draw a stroke, submit, start an exam …) is a call into the
single StudySession held by the app.  The session decides which mode comes
next; this module only translates its Feedback into HTTP responses:

  Feedback(ok=False)   → 400 with the message as detail
  IllegalTransition    → 409
  unknown colour, bad stroke payload → 400

Question documents are stored in MongoDB; question images are written under
static/images/ and served from /static/images/.
"""

import logging
import os
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

import config
from models import (
    ChoiceRequest,
    FilterRequest,
    PenRequest,
    StartExamRequest,
    StrokeRequest,
)
from session import Feedback, IllegalTransition, StudySession
from store import QuestionStore

logger = logging.getLogger("mistakebook.api")

# ──────────────────────────────────────────────
# App setup
# ──────────────────────────────────────────────

app = FastAPI(title="Mistakebook")

os.makedirs(config.IMAGES_DIR, exist_ok=True)

app.mount("/static", StaticFiles(directory=config.STATIC_DIR), name="static")


@app.on_event("startup")
def on_startup():
    config.configure_logging()
    store = QuestionStore.connect(
        uri        = config.MONGODB_URI,
        db_name    = config.MONGODB_DB,
        collection = config.QUESTIONS_COLLECTION,
        images_dir = config.IMAGES_DIR,
        url_prefix = config.IMAGES_URL_PREFIX,
        timeout_ms = config.MONGODB_TIMEOUT_MS,
    )
    session = StudySession(store)
    session.refresh()
    app.state.session = session
    logger.info(f"Loaded {len(session.questions)} questions")


def get_session(request: Request) -> StudySession:
    """FastAPI dependency: the process-wide study session."""
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Session not ready.")
    return session


@app.exception_handler(IllegalTransition)
async def illegal_transition_handler(request: Request, exc: IllegalTransition):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def _reply(session: StudySession, feedback: Feedback) -> dict:
    """Raise 400 for a blocked action, otherwise return message + snapshot."""
    if not feedback.ok:
        raise HTTPException(status_code=400, detail=feedback.message)
    return {"message": feedback.message, "session": session.snapshot()}


# ──────────────────────────────────────────────
# Browsing
# ──────────────────────────────────────────────

@app.get("/api/session")
async def api_get_session(session: StudySession = Depends(get_session)):
    return session.snapshot()


@app.get("/api/questions")
async def api_list_questions(session: StudySession = Depends(get_session)):
    return [q.model_dump() for q in session.visible_questions()]


@app.put("/api/filters")
async def api_set_filters(body: FilterRequest, session: StudySession = Depends(get_session)):
    session.set_filter(
        subject = body.subject.strip(),
        topic   = body.topic.strip(),
        level   = body.level,
        count   = body.count,
    )
    return session.snapshot()


@app.post("/api/questions/refresh")
async def api_refresh(session: StudySession = Depends(get_session)):
    return _reply(session, session.refresh())


@app.delete("/api/questions/{question_id}")
async def api_delete_question(question_id: str, session: StudySession = Depends(get_session)):
    return _reply(session, session.delete_question(question_id))


@app.post("/api/session/back")
async def api_back(session: StudySession = Depends(get_session)):
    session.back()
    return session.snapshot()


@app.get("/api/export")
async def api_export(session: StudySession = Depends(get_session)):
    """Download the whole question list as JSON."""
    filename = f"questions_{date.today().isoformat()}.json"
    return Response(
        content    = session.export_json(),
        media_type = "application/json",
        headers    = {"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ──────────────────────────────────────────────
# Creating
# ──────────────────────────────────────────────

@app.post("/api/questions/new")
async def api_begin_create(session: StudySession = Depends(get_session)):
    session.begin_create()
    return session.snapshot()


@app.post("/api/questions")
async def api_submit_question(
    file: Optional[UploadFile] = File(None),
    subject: str = Form(""),
    topic: str = Form(""),
    answer: str = Form(""),
    session: StudySession = Depends(get_session),
):
    data = await file.read() if file is not None else None
    name = file.filename if file is not None else None
    return _reply(
        session,
        session.submit_question(name, data, subject.strip(), topic.strip(), answer.strip()),
    )


# ──────────────────────────────────────────────
# Solving, history and drawing
# ──────────────────────────────────────────────

@app.post("/api/questions/{question_id}/solve")
async def api_begin_solve(question_id: str, session: StudySession = Depends(get_session)):
    return _reply(session, session.begin_solve(question_id))


@app.post("/api/questions/{question_id}/history")
async def api_review_history(question_id: str, session: StudySession = Depends(get_session)):
    return _reply(session, session.review_history(question_id))


@app.post("/api/session/choice")
async def api_choose(body: ChoiceRequest, session: StudySession = Depends(get_session)):
    return _reply(session, session.choose(body.letter))


@app.put("/api/session/pen")
async def api_set_pen(body: PenRequest, session: StudySession = Depends(get_session)):
    try:
        session.set_pen_color(body.color)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown colour: {body.color}") from exc
    return session.snapshot()


def _active_canvas(session: StudySession):
    canvas = session.canvas
    if canvas is None:
        raise HTTPException(status_code=409, detail="No drawing canvas in this mode.")
    return canvas


@app.post("/api/canvas/strokes")
async def api_add_stroke(body: StrokeRequest, session: StudySession = Depends(get_session)):
    canvas = _active_canvas(session)
    if not body.points:
        raise HTTPException(status_code=400, detail="A stroke needs at least one point.")
    canvas.add_stroke(body.points)
    return {"strokes": len(canvas.strokes)}


@app.post("/api/canvas/clear")
async def api_clear_canvas(session: StudySession = Depends(get_session)):
    _active_canvas(session).clear()
    return {"strokes": 0}


@app.get("/api/canvas")
async def api_export_canvas(session: StudySession = Depends(get_session)):
    canvas = _active_canvas(session)
    return {
        "width":     canvas.width,
        "height":    canvas.height,
        "pen_color": canvas.pen_color,
        "strokes":   len(canvas.strokes),
        "image":     canvas.export(),
    }


@app.post("/api/session/submit")
async def api_submit_solution(session: StudySession = Depends(get_session)):
    return _reply(session, session.submit_solution())


# ──────────────────────────────────────────────
# Exam
# ──────────────────────────────────────────────

@app.post("/api/exam/start")
async def api_start_exam(body: StartExamRequest, session: StudySession = Depends(get_session)):
    return _reply(session, session.start_exam(body.count))


@app.post("/api/exam/answer")
async def api_answer_exam_question(session: StudySession = Depends(get_session)):
    return _reply(session, session.answer_exam_question())


# ──────────────────────────────────────────────
# Local dev entry-point
# ──────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    config.configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
