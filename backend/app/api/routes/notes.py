from __future__ import annotations

import logging
from urllib.parse import quote

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse, StreamingResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask

from app.core.config import settings
from app.core.errors import NotFound, ValidationError
from app.core.responses import api_response
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.note import NoteCreateRequest, NoteOut
from app.security.sanitizer import InputSanitizer
from app.services import notes as note_service
from app.services.media import (
    DEFAULT_FILE_TYPE,
    MediaUploader,
    UploadResult,
    UpstreamFile,
    get_media_uploader,
    is_fetchable_url,
)
from app.services.thumbnails import Thumbnailer, get_thumbnailer

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/notes', tags=['notes'])
download_router = APIRouter(tags=['notes'])


def get_http_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for proxied downloads; None means the default network transport."""
    return None


def _out(note) -> NoteOut:
    return NoteOut.model_validate(note)


@router.get('')
def list_notes(db: Session = Depends(get_db)):
    """All notes, newest first."""
    notes = note_service.list_notes(db)
    return api_response(data=[_out(n) for n in notes])


@router.get('/user/{username}')
def list_user_notes(username: str, db: Session = Depends(get_db)):
    notes = note_service.list_by_uploader(db, username)
    return api_response(data=[_out(n) for n in notes])


@router.post('/upload', status_code=status.HTTP_201_CREATED)
async def upload_note(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: str = Form(default=''),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    uploader: MediaUploader = Depends(get_media_uploader),
    thumbnailer: Thumbnailer = Depends(get_thumbnailer),
):
    """
    Upload a PDF through the server: push it to the media host, then save
    the note. The media host usually renders the first-page thumbnail in the
    same call; otherwise one is generated locally after the response.
    """
    content = await _read_limited(request, file, settings.MAX_UPLOAD_BYTES)
    if not content:
        raise ValidationError('No file uploaded')

    try:
        filename = InputSanitizer.sanitize_filename(file.filename or 'file.pdf')
        title = InputSanitizer.sanitize_title(title)
    except ValueError as e:
        raise ValidationError(str(e))

    result = await uploader.upload(content, file.content_type, filename)

    note = await run_in_threadpool(
        note_service.create,
        db,
        owner_id=current_user.id,
        owner_name=current_user.display_name,
        title=title,
        upload=result,
        filename=filename,
    )

    if not note.thumbnail_url:
        background_tasks.add_task(
            note_service.generate_thumbnail_task, thumbnailer, note.id, note.file_url
        )

    return api_response(
        data=_out(note),
        message='File uploaded successfully',
        status_code=status.HTTP_201_CREATED,
    )


@router.post('/create', status_code=status.HTTP_201_CREATED)
def create_note(
    payload: NoteCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    uploader: MediaUploader = Depends(get_media_uploader),
    thumbnailer: Thumbnailer = Depends(get_thumbnailer),
):
    """Save metadata for a PDF the client uploaded straight to the media host."""
    thumbnail = (payload.thumbnail_url or '').strip()
    public_id = payload.public_id

    if public_id is None:
        public_id = uploader.public_id_for_url(payload.file_url)
    if not thumbnail:
        thumbnail = uploader.thumbnail_for_url(payload.file_url, public_id) or ''

    note = note_service.create(
        db,
        owner_id=current_user.id,
        owner_name=current_user.display_name,
        title=payload.title,
        upload=UploadResult(
            file_url=payload.file_url,
            file_type=payload.file_type or DEFAULT_FILE_TYPE,
            public_id=public_id,
            thumbnail_url=thumbnail or None,
        ),
    )

    if not note.thumbnail_url:
        background_tasks.add_task(
            note_service.generate_thumbnail_task, thumbnailer, note.id, note.file_url
        )

    return api_response(data=_out(note), message='Note saved', status_code=status.HTTP_201_CREATED)


@router.get('/download/{note_id}')
async def download_note(
    note_id: str,
    request: Request,
    db: Session = Depends(get_db),
    transport: httpx.AsyncBaseTransport | None = Depends(get_http_transport),
):
    return await _download(note_id, request, db, transport)


@router.get('/{note_id}')
def get_note(note_id: str, db: Session = Depends(get_db)):
    note = note_service.get_by_id(db, note_id)
    if note is None:
        raise NotFound('Note not found')
    return api_response(data=_out(note))


@router.delete('/{note_id}')
def delete_note(
    note_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    note_service.delete(db, note_id, current_user.id)
    return api_response(message='Note deleted successfully')


@download_router.get('/download/{note_id}')
async def download_note_short(
    note_id: str,
    request: Request,
    db: Session = Depends(get_db),
    transport: httpx.AsyncBaseTransport | None = Depends(get_http_transport),
):
    return await _download(note_id, request, db, transport)


UPLOAD_CHUNK = 1024 * 1024
# allowance for multipart boundaries and the title field
MULTIPART_OVERHEAD = 64 * 1024


def _too_large(limit: int) -> ValidationError:
    return ValidationError(f'File too large (max {limit // (1024 * 1024)} MB)')


async def _read_limited(request: Request, file: UploadFile, limit: int) -> bytes:
    declared = request.headers.get('content-length')
    if declared and declared.isdigit() and int(declared) > limit + MULTIPART_OVERHEAD:
        raise _too_large(limit)

    chunks = []
    size = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK)
        if not chunk:
            break
        size += len(chunk)
        if size > limit:
            raise _too_large(limit)
        chunks.append(chunk)
    return b''.join(chunks)


def _content_disposition(title: str) -> str:
    name = title if title.lower().endswith('.pdf') else f'{title}.pdf'
    ascii_name = name.encode('ascii', 'ignore').decode().replace('"', '') or 'note.pdf'
    return f'inline; filename="{ascii_name}"; filename*=UTF-8\'\'{quote(name)}'


async def _download(note_id: str, request: Request, db: Session, transport):
    """
    Redirect to the stored file, or proxy it. The proxy forwards Range
    headers so PDF viewers can seek without fetching the whole file.
    Files outside the media hosts are always redirected, never fetched.
    """
    note = await run_in_threadpool(note_service.get_by_id, db, note_id)
    if note is None:
        raise NotFound('File not found')

    if settings.DOWNLOAD_MODE == 'redirect' or not is_fetchable_url(note.file_url, settings):
        return RedirectResponse(note.file_url, status_code=status.HTTP_302_FOUND)

    upstream = await UpstreamFile.open(
        note.file_url, dict(request.headers), config=settings, transport=transport
    )

    headers = upstream.passthrough_headers()
    headers.setdefault('accept-ranges', 'bytes')
    headers['content-disposition'] = _content_disposition(note.title)
    if 'content-type' not in headers:
        headers['content-type'] = note.file_type or DEFAULT_FILE_TYPE

    return StreamingResponse(
        upstream.iter_bytes(),
        status_code=upstream.status_code,
        headers=headers,
        background=BackgroundTask(upstream.aclose),
    )
