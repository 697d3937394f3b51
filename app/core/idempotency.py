import logging
from hashlib import sha256
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.db.session import SessionLocal
from app.models.idempotency import IdempotencyKey

logger = logging.getLogger(__name__)

_WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
# falha de autenticação não é resposta definitiva: o cliente repete com outro token
_NOT_STORED = {401, 403}

class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Reenvios com o mesmo Idempotency-Key recebem a resposta gravada
    (evita emitir duas vezes quando o cliente repete um POST após timeout)."""

    def __init__(self, app, session_factory: Callable[[], Session] = SessionLocal):
        super().__init__(app)
        self.session_factory = session_factory

    async def dispatch(self, request: Request, call_next):
        key = request.headers.get("Idempotency-Key")
        if request.method not in _WRITE_METHODS or not key:
            return await call_next(request)

        payload = await request.body()
        # a identidade do chamador entra na assinatura: outro token nunca recebe a resposta gravada
        caller = request.headers.get("Authorization", "")
        signature = sha256(
            request.method.encode() + request.url.path.encode() + caller.encode() + b"\n" + payload
        ).hexdigest()
        with self.session_factory() as db:
            stored = db.execute(
                select(IdempotencyKey).where(IdempotencyKey.key == key, IdempotencyKey.signature == signature)
            ).scalar_one_or_none()
            if stored:
                logger.info("replaying stored response for Idempotency-Key %s", key)
                return Response(content=stored.response_body, media_type=stored.response_mime,
                                status_code=stored.status_code, headers={"Idempotent-Replayed": "true"})

        response = await call_next(request)
        body = b""
        async for chunk in response.body_iterator:
            body += chunk
        # só respostas definitivas ficam gravadas; 5xx pode ser repetido
        if response.status_code < 500 and response.status_code not in _NOT_STORED:
            with self.session_factory() as db:
                db.add(IdempotencyKey(key=key, signature=signature, response_body=body,
                                      response_mime=response.media_type or "application/json",
                                      status_code=response.status_code))
                try:
                    db.commit()
                except IntegrityError:
                    # requisição gêmea gravou primeiro; a dela vale para os próximos reenvios
                    db.rollback()
                    logger.info("Idempotency-Key %s already stored by a concurrent request", key)
        return Response(content=body, media_type=response.media_type, status_code=response.status_code,
                        headers={k: v for k, v in response.headers.items() if k.lower() != "content-length"})
