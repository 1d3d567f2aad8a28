"""Deal (promise) pipeline adapter: read the deal, move its stage, edit tags."""
import logging

from sqlalchemy.orm import Session

from studio_quotes.exceptions import NotFoundError
from studio_quotes.models import Promise, PromiseTag

logger = logging.getLogger(__name__)

STAGE_APPROVED = 'approved'
TAG_CANCELLED = 'cancelada'


def get_promise(session: Session, tenant_id: int, promise_id: int) -> Promise:
    promise = session.query(Promise).filter(
        Promise.id == promise_id,
        Promise.tenant_id == tenant_id
    ).first()
    if not promise:
        raise NotFoundError(f'Promesa {promise_id} no encontrada.')
    return promise


def advance_stage(session: Session, promise: Promise, stage_slug: str) -> bool:
    """Move the deal to ``stage_slug``. Caller commits."""
    if promise.pipeline_stage == stage_slug:
        return False
    logger.info(f"[PIPELINE] Promesa {promise.id}: {promise.pipeline_stage} -> {stage_slug}")
    promise.pipeline_stage = stage_slug
    return True


def remove_tag(session: Session, promise: Promise, slug: str) -> bool:
    """Drop a tag from the deal if present. Caller commits."""
    deleted = session.query(PromiseTag).filter(
        PromiseTag.promise_id == promise.id,
        PromiseTag.slug == slug
    ).delete(synchronize_session='fetch')
    if deleted:
        logger.info(f"[PIPELINE] Promesa {promise.id}: etiqueta '{slug}' removida")
    return bool(deleted)
