"""In-memory fake of the storage service HTTP contract, served through FastAPI."""

import base64
import hashlib
import json
import threading
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from common.constants import REASON_HASH_NOT_FOUND, REASON_SIZE_MISMATCH
from uploader.identity import decode_token_claims


def make_token(user_id: int = 7, username: str = 'alice') -> str:
    """Build an unsigned JWT-shaped token carrying a user id."""
    def segment(obj: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b'=').decode()
    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment({'user_id': user_id, 'username': username})}.sig"


class FakeStore:
    """
    Server-side state plus knobs for failure scenarios.

    Attributes:
        calls: (kind, payload) for every request, in arrival order
        fail_chunks: chunk indices answered with 500 while present
        probe_override: payload returned by the hash probe instead of the real answer
        conflict_style: 'status' (409 + code) or 'legacy' (500 + message)
        phantom_creates: accept folder creation without creating anything
        envelope: wrap successful payloads in {code, msg, data}
    """

    def __init__(self):
        self.records: dict[int, dict] = {}
        self.objects: dict[str, bytes] = {}
        self.sessions: dict[str, dict] = {}
        self.calls: list[tuple[str, dict]] = []
        self.next_id = 100
        self.fail_chunks: set[int] = set()
        self.probe_override: Optional[dict] = None
        self.conflict_style = 'status'
        self.phantom_creates = False
        self.envelope = True
        self._lock = threading.Lock()

    def count(self, kind: str) -> int:
        return sum(1 for call_kind, _ in self.calls if call_kind == kind)

    def payloads(self, kind: str) -> list[dict]:
        return [payload for call_kind, payload in self.calls if call_kind == kind]

    def children(self, parent_id: int) -> list[dict]:
        return [r for r in list(self.records.values()) if r['parent_id'] == parent_id]

    def find_child(self, parent_id: int, name: str) -> Optional[dict]:
        return next((r for r in self.children(parent_id) if r['name'] == name), None)

    def add_record(self, name: str, parent_id: int = 0, is_dir: bool = False,
                   size: int = 0, file_hash: Optional[str] = None) -> dict:
        with self._lock:
            record = {
                'id': self.next_id,
                'name': name,
                'parent_id': parent_id,
                'size': size,
                'hash': file_hash,
                'is_dir': is_dir,
            }
            self.records[self.next_id] = record
            self.next_id += 1
        return record

    def add_folder(self, name: str, parent_id: int = 0) -> dict:
        return self.add_record(name, parent_id=parent_id, is_dir=True)

    def add_object(self, data: bytes) -> str:
        digest = hashlib.sha256(data).hexdigest()
        self.objects[digest] = data
        return digest

    def materialize(self, name: str, parent_id: int, file_hash: str, size: int) -> dict:
        existing = self.find_child(parent_id, name)
        if existing is not None and not existing['is_dir']:
            return existing
        return self.add_record(name, parent_id=parent_id, size=size, file_hash=file_hash)

    def wire(self, record: dict) -> dict:
        # Root children carry a null parent, as the real service does.
        wired = dict(record)
        if wired['parent_id'] == 0:
            wired['parent_id'] = None
        return wired


def create_app(store: FakeStore) -> FastAPI:
    app = FastAPI()

    def ok(data):
        return {'code': 0, 'msg': 'ok', 'data': data} if store.envelope else data

    def error(status: int, message: str, code: Optional[str] = None) -> JSONResponse:
        body = {'error': message}
        if code:
            body['code'] = code
        return JSONResponse(status_code=status, content=body)

    def user_of(request: Request) -> Optional[int]:
        header = request.headers.get('authorization', '')
        if not header.lower().startswith('bearer '):
            return None
        claims = decode_token_claims(header[7:])
        return claims.get('user_id') if claims else None

    @app.post('/file/upload/hash')
    async def probe_hash(request: Request):
        if user_of(request) is None:
            return error(401, 'unauthorized')
        body = await request.json()
        store.calls.append(('hash', body))
        if store.probe_override is not None:
            return ok(store.probe_override)
        content = store.objects.get(body['hash'])
        if content is None:
            return ok({'instant': False, 'need_upload': True, 'reason': REASON_HASH_NOT_FOUND})
        if len(content) != body['size']:
            return ok({'instant': False, 'need_upload': True, 'reason': REASON_SIZE_MISMATCH})
        record = store.materialize(body['file_name'], body['parent_id'], body['hash'], len(content))
        return ok({'instant': True, 'file_id': record['id']})

    @app.post('/file/upload/multipart/init')
    async def multipart_init(request: Request):
        user_id = user_of(request)
        if user_id is None:
            return error(401, 'unauthorized')
        body = await request.json()
        store.calls.append(('init', body))
        content = store.objects.get(body['hash'])
        if content is not None and len(content) == body['size']:
            store.materialize(body['file_name'], body['parent_id'], body['hash'], body['size'])
            return ok({'instant': True})

        for upload_id, session in list(store.sessions.items()):
            if session['user_id'] == user_id and session['hash'] == body['hash']:
                return ok({'instant': False, 'upload_id': upload_id, 'uploaded': sorted(session['chunks'])})

        upload_id = str(uuid.uuid4())
        store.sessions[upload_id] = {
            'user_id': user_id,
            'hash': body['hash'],
            'size': body['size'],
            'chunk_size': body['chunk_size'],
            'total_chunks': body['total_chunks'],
            'chunks': {},
        }
        return ok({'instant': False, 'upload_id': upload_id})

    @app.post('/file/upload/multipart/chunk')
    async def multipart_chunk(request: Request):
        if user_of(request) is None:
            return error(401, 'unauthorized')
        form = await request.form()
        index = int(form['chunk_index'])
        upload_id = form['upload_id']
        data = await form['chunk'].read()
        store.calls.append(('chunk', {'upload_id': upload_id, 'chunk_index': index, 'length': len(data)}))
        session = store.sessions.get(upload_id)
        if session is None:
            return JSONResponse(status_code=404, content={'msg': 'upload session not found'})
        if not 0 <= index < session['total_chunks']:
            return JSONResponse(status_code=400, content={'msg': 'chunk index out of range'})
        if index in store.fail_chunks:
            return JSONResponse(status_code=500, content={'msg': 'storage unavailable'})
        session['chunks'][index] = data
        return ok({'chunk_index': index})

    @app.post('/file/upload/multipart/complete')
    async def multipart_complete(request: Request):
        user_id = user_of(request)
        if user_id is None:
            return error(401, 'unauthorized')
        body = await request.json()
        store.calls.append(('complete', body))

        done = store.find_child(body['parent_id'], body['file_name'])
        if done is not None and done['hash'] == body['file_hash']:
            return {'msg': 'upload completed', 'file': store.wire(done)}

        session_id, session = next(
            ((sid, s) for sid, s in list(store.sessions.items())
             if s['user_id'] == user_id and s['hash'] == body['file_hash']),
            (None, None),
        )
        if session is None:
            return JSONResponse(status_code=404, content={'msg': 'upload session not found'})
        if body['total_chunks'] != session['total_chunks']:
            return JSONResponse(status_code=400, content={'msg': 'total_chunks mismatch'})
        if len(session['chunks']) != session['total_chunks']:
            return JSONResponse(status_code=400, content={'msg': 'missing chunks'})

        data = b''.join(session['chunks'][i] for i in range(session['total_chunks']))
        if hashlib.sha256(data).hexdigest() != body['file_hash']:
            return JSONResponse(status_code=400, content={'msg': 'hash mismatch'})

        store.objects[body['file_hash']] = data
        del store.sessions[session_id]
        record = store.materialize(body['file_name'], body['parent_id'], body['file_hash'], len(data))
        return {'msg': 'upload completed', 'file': store.wire(record)}

    @app.post('/file/list')
    async def list_files(request: Request):
        if user_of(request) is None:
            return error(401, 'unauthorized')
        body = await request.json()
        store.calls.append(('list', body))
        files = [store.wire(r) for r in store.children(body.get('parent_id') or 0)]
        return ok({'files': files, 'total': len(files)})

    @app.post('/file/folder')
    async def create_folder(request: Request):
        if user_of(request) is None:
            return error(401, 'unauthorized')
        body = await request.json()
        store.calls.append(('folder', body))
        if store.find_child(body['parent_id'], body['name']) is not None:
            if store.conflict_style == 'legacy':
                return error(500, 'create folder failed: folder already exists')
            return error(409, 'folder already exists', code='FOLDER_ALREADY_EXISTS')
        if not store.phantom_creates:
            store.add_folder(body['name'], parent_id=body['parent_id'])
        return {'msg': 'success'}

    return app
