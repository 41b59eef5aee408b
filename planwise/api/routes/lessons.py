from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status

from planwise.ai.json_parser import parse_structured_text
from planwise.ai.orchestrator import LessonOrchestrator
from planwise.ai.pipeline.contracts import GenerationRequest
from planwise.api.deps import get_credit_ledger, get_lesson_orchestrator, get_lesson_repository, get_owner_id
from planwise.api.models import GenerateLessonResponse, IngestLessonRequest, IngestLessonResponse, ProviderAttemptResponse
from planwise.schema.lesson import LessonDocument
from planwise.schema.sections import ErrorKind
from planwise.schema.validate_lesson import build_error_lesson, validate_lesson_payload
from planwise.services.credits import LESSON_COST, CreditLedger, InsufficientCreditsError
from planwise.storage.lessons_repo import LessonRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/generate", response_model=GenerateLessonResponse, response_model_by_alias=True)
async def generate_lesson(  # noqa: B008
  request: GenerationRequest,
  owner_id: str = Depends(get_owner_id),  # noqa: B008
  x_session_id: str | None = Header(default=None),  # noqa: B008
  orchestrator: LessonOrchestrator = Depends(get_lesson_orchestrator),  # noqa: B008
  repository: LessonRepository = Depends(get_lesson_repository),  # noqa: B008
  ledger: CreditLedger = Depends(get_credit_ledger),  # noqa: B008
) -> GenerateLessonResponse:
  """Generate a lesson, charging credits only when a real lesson comes back."""
  if await ledger.balance(owner_id) < LESSON_COST:
    raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail={"error": "INSUFFICIENT_CREDITS", "required": LESSON_COST})

  result = await orchestrator.generate(request)

  if result.billable:
    try:
      await ledger.charge(owner_id, LESSON_COST)
    except InsufficientCreditsError as exc:
      # A concurrent request spent the last credit while this one was generating.
      raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail={"error": "INSUFFICIENT_CREDITS", "required": LESSON_COST}) from exc
  else:
    logger.info("Lesson for topic %r is not billable (state=%s outcome=%s).", request.topic, result.state.value, result.outcome.value)

  lesson_id = await repository.save(result.document, owner_id, x_session_id)
  logger.info("Saved lesson %s owner=%s provider=%s billable=%s attempts=%d", lesson_id, owner_id, result.provider or "-", result.billable, len(result.attempts))
  attempts = [ProviderAttemptResponse(provider=attempt.provider, state=attempt.state.value, outcome=attempt.outcome.value) for attempt in result.attempts]
  return GenerateLessonResponse(lesson_id=lesson_id, lesson=result.document.to_payload(), provider=result.provider, billable=result.billable, state=result.state.value, attempts=attempts)


@router.post("/ingest", response_model=IngestLessonResponse, response_model_by_alias=True)
async def ingest_lesson(payload: IngestLessonRequest, _owner_id: str = Depends(get_owner_id)) -> IngestLessonResponse:  # noqa: B008
  """Run raw provider text through normalization, repair and validation without calling a provider."""
  request = GenerationRequest(topic=payload.topic, cefr_level=payload.cefr_level)
  parsed = parse_structured_text(payload.raw_text)

  if not parsed.ok:
    document = build_error_lesson(request, ErrorKind.STRUCTURE)
    return IngestLessonResponse(lesson=document.to_payload(), valid=False, repaired=parsed.repaired, applied_rules=list(parsed.applied_rules), error=parsed.error)

  lesson_payload, ok = validate_lesson_payload(parsed.value, request)
  document = LessonDocument.from_payload(lesson_payload) if ok else build_error_lesson(request, ErrorKind.STRUCTURE)
  return IngestLessonResponse(lesson=document.to_payload(), valid=ok, repaired=parsed.repaired, applied_rules=list(parsed.applied_rules))
