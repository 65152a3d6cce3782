from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, RedirectResponse
from pydantic import ValidationError

from poster_studio.config import get_settings
from poster_studio.schemas import (
    ConfirmationView,
    DesignerSubmitRequest,
    DesignerView,
    Feature,
    FeatureUpdate,
    PosterSessionView,
    PosterStateUpdate,
    PromptResponse,
    Shot,
    ShotUpdate,
)
from poster_studio.services.designer import BusyError, DesignerClient, NotConfirmedError, decode_data_url
from poster_studio.services.render import export_pdf, export_png, render_layout_preview
from poster_studio.services.session import EditorSession, ItemNotFoundError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("uvicorn").setLevel(settings.log_level)
logging.getLogger("uvicorn.error").setLevel(settings.log_level)
logging.getLogger("uvicorn.access").setLevel(settings.log_level)

logger = logging.getLogger("poster-studio")

app = FastAPI(title="Poster Studio API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=settings.allowed_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_session = EditorSession(
    designer_config=settings.designer,
    client=DesignerClient.from_config(settings.designer),
)


def get_session() -> EditorSession:
    return _session


def _session_view(session: EditorSession) -> PosterSessionView:
    return PosterSessionView(poster=session.state, confirmation=session.confirmation_view())


@app.get("/", include_in_schema=False)
def root() -> dict[str, Any]:
    return {
        "service": "poster-studio",
        "ok": True,
        "environment": settings.environment,
        "designer_configured": settings.designer.is_configured,
    }


@app.head("/", include_in_schema=False)
def root_head() -> Response:
    return Response(status_code=200)


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


# ------------------------------------------------------------------------------
# 表单编辑
# ------------------------------------------------------------------------------


@app.get("/api/poster", response_model=PosterSessionView)
def read_poster(session: EditorSession = Depends(get_session)) -> PosterSessionView:
    return _session_view(session)


@app.patch("/api/poster", response_model=PosterSessionView)
def edit_poster(
    update: PosterStateUpdate, session: EditorSession = Depends(get_session)
) -> PosterSessionView:
    try:
        session.update(update.changes())
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False)) from exc
    return _session_view(session)


@app.post("/api/poster/features", response_model=Feature, status_code=201)
def add_feature(session: EditorSession = Depends(get_session)) -> Feature:
    feature = session.add_feature()
    if feature is None:
        raise HTTPException(status_code=409, detail="功能点最多 4 条。")
    return feature


@app.patch("/api/poster/features/{feature_id}", response_model=Feature)
def edit_feature(
    feature_id: str, update: FeatureUpdate, session: EditorSession = Depends(get_session)
) -> Feature:
    try:
        return session.update_feature(feature_id, update.text)
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Feature {feature_id} not found") from exc


@app.delete("/api/poster/features/{feature_id}", status_code=204)
def delete_feature(feature_id: str, session: EditorSession = Depends(get_session)) -> Response:
    try:
        removed = session.remove_feature(feature_id)
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Feature {feature_id} not found") from exc
    if not removed:
        raise HTTPException(status_code=409, detail="功能点至少保留 3 条。")
    return Response(status_code=204)


@app.post("/api/poster/shots", response_model=Shot, status_code=201)
def add_shot(session: EditorSession = Depends(get_session)) -> Shot:
    shot = session.add_shot()
    if shot is None:
        raise HTTPException(status_code=409, detail="底部小图最多 4 张。")
    return shot


@app.patch("/api/poster/shots/{shot_id}", response_model=Shot)
def edit_shot(shot_id: str, update: ShotUpdate, session: EditorSession = Depends(get_session)) -> Shot:
    try:
        return session.update_shot(shot_id, update.changes())
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Shot {shot_id} not found") from exc


@app.delete("/api/poster/shots/{shot_id}", status_code=204)
def delete_shot(shot_id: str, session: EditorSession = Depends(get_session)) -> Response:
    try:
        removed = session.remove_shot(shot_id)
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Shot {shot_id} not found") from exc
    if not removed:
        raise HTTPException(status_code=409, detail="底部小图至少保留 3 张。")
    return Response(status_code=204)


# ------------------------------------------------------------------------------
# 素材确认 / 提示词
# ------------------------------------------------------------------------------


@app.post("/api/poster/confirm", response_model=ConfirmationView)
def confirm_poster(session: EditorSession = Depends(get_session)) -> ConfirmationView:
    return session.confirm()


@app.get("/api/poster/prompt", response_model=PromptResponse)
def read_prompt(session: EditorSession = Depends(get_session)) -> PromptResponse:
    return PromptResponse(prompt=session.prompt, is_confirmed=session.is_confirmed)


@app.get("/api/poster/payload")
def read_payload(session: EditorSession = Depends(get_session)) -> dict[str, Any]:
    try:
        return session.payload()
    except NotConfirmedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.get("/api/poster/layout-preview", response_class=PlainTextResponse)
def layout_preview(session: EditorSession = Depends(get_session)) -> str:
    return render_layout_preview(session.state)


# ------------------------------------------------------------------------------
# 导出
# ------------------------------------------------------------------------------


@app.get("/api/poster/export.png")
def download_png(session: EditorSession = Depends(get_session)) -> Response:
    data = export_png(session.state, pixel_ratio=settings.export.pixel_ratio)
    filename = f"kitchen-poster-{int(time.time() * 1000)}.png"
    return Response(
        content=data,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/poster/export.pdf")
def download_pdf(session: EditorSession = Depends(get_session)) -> Response:
    data = export_pdf(session.state, pixel_ratio=settings.export.pixel_ratio)
    filename = f"kitchen-poster-{int(time.time() * 1000)}.pdf"
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ------------------------------------------------------------------------------
# Glibatree Art Designer
# ------------------------------------------------------------------------------


@app.get("/api/designer", response_model=DesignerView)
def read_designer(session: EditorSession = Depends(get_session)) -> DesignerView:
    return session.designer_view()


@app.post("/api/designer/submit", response_model=DesignerView)
def submit_designer(
    request: DesignerSubmitRequest | None = None,
    session: EditorSession = Depends(get_session),
) -> DesignerView:
    request = request or DesignerSubmitRequest()
    try:
        return session.submit(endpoint=request.endpoint, api_key=request.api_key)
    except BusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.post("/api/designer/reset", response_model=DesignerView)
def reset_designer(session: EditorSession = Depends(get_session)) -> DesignerView:
    return session.reset_designer()


def _image_extension(media_type: str) -> str:
    subtype = media_type.partition("/")[2].split("+", 1)[0].strip().lower()
    if subtype == "jpeg":
        return "jpg"
    return subtype or "png"


@app.get("/api/designer/image")
def download_designer_image(session: EditorSession = Depends(get_session)) -> Response:
    result = session.designer_view().result
    if result is None or not result.image_src:
        raise HTTPException(status_code=404, detail="No designer image available")
    if not result.image_src.startswith("data:"):
        return RedirectResponse(result.image_src)
    data = decode_data_url(result.image_src)
    if data is None:
        raise HTTPException(status_code=502, detail="Designer image could not be decoded")
    media_type = result.image_src[5:].split(";", 1)[0] or "image/png"
    filename = f"glibatree-poster-{int(time.time() * 1000)}.{_image_extension(media_type)}"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
