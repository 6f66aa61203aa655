"""
Intake wizard for new blindagem services.

A linear, single-owner state machine over an ``IntakeDraft``:

    CLIENT -> INSPECTION -> COVERAGE -> SIGNATURE

Each step has a pure validator returning ``{field: message}``; ``next()``
refuses to advance while the current step has errors. ``next()`` on the last
step hands the draft to the ``on_complete`` coroutine (the completion
handler). Nothing is persisted before that.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
import logging
import math

from pydantic import ValidationError

from ..core.config import settings
from ..core.exceptions import (
    DraftValidationError, PreconditionViolation, SubmissionInProgressError
)
from ..models.database_models import INSPECTION_PARTS, PartInspection
from ..models.intake_models import IntakeDraft, WizardStep, STEPS

logger = logging.getLogger(__name__)

StepErrors = Dict[str, str]


# ═══════════════════════════════════════════════════════════════════════════
# STEP VALIDATORS (pure)
# ═══════════════════════════════════════════════════════════════════════════

def validate_client_step(draft: IntakeDraft, roster: Optional[Iterable[dict]] = None) -> StepErrors:
    errors: StepErrors = {}
    if not (draft.client_name or "").strip():
        errors["client_name"] = "Campo obrigatório"
    if not (draft.device_model or "").strip():
        errors["device_model"] = "Campo obrigatório"

    roster = list(roster or [])
    if roster:
        roster_ids = {s.get("id") for s in roster}
        if not draft.specialist_id:
            errors["specialist_id"] = "Selecione um especialista"
        elif draft.specialist_id not in roster_ids:
            errors["specialist_id"] = "Especialista não encontrado"
    return errors


def validate_inspection_step(draft: IntakeDraft, min_notes: Optional[int] = None) -> StepErrors:
    min_notes = settings.MIN_DAMAGE_NOTES if min_notes is None else min_notes
    errors: StepErrors = {}
    for part in INSPECTION_PARTS:
        inspection: PartInspection = getattr(draft.state, part)
        if inspection.has_damage and len((inspection.notes or "").strip()) < min_notes:
            errors[f"state.{part}.notes"] = f"Descreva o dano (mínimo {min_notes} caracteres)"
    if len(draft.photos) > settings.MAX_PHOTOS:
        errors["photos"] = f"Máximo de {settings.MAX_PHOTOS} fotos"
    return errors


def validate_coverage_step(draft: IntakeDraft, inventory: Optional[Iterable[dict]] = None) -> StepErrors:
    errors: StepErrors = {}
    if not draft.value_blindagem or not math.isfinite(draft.value_blindagem) or draft.value_blindagem <= 0:
        errors["value_blindagem"] = "Insira um valor válido"
    for field in ("value_pelicula", "value_others"):
        value = getattr(draft, field)
        if not math.isfinite(value):
            errors[field] = "Insira um valor válido"
        elif value < 0:
            errors[field] = "Valor não pode ser negativo"
    if not draft.coverage:
        errors["coverage"] = "Selecione a cobertura"
    if not draft.payment_method:
        errors["payment_method"] = "Selecione a forma de pagamento"

    if draft.used_item_id and inventory is not None:
        item_ids = {i.get("id") for i in inventory}
        if draft.used_item_id not in item_ids:
            errors["used_item_id"] = "Item de estoque não encontrado"
    return errors


def validate_signature_step(draft: IntakeDraft) -> StepErrors:
    if not (draft.client_signature or "").strip():
        return {"client_signature": "Assinatura do cliente obrigatória"}
    return {}


def validate_step(step: WizardStep, draft: IntakeDraft,
                  roster: Optional[Iterable[dict]] = None,
                  inventory: Optional[Iterable[dict]] = None) -> StepErrors:
    if step == WizardStep.CLIENT:
        return validate_client_step(draft, roster)
    if step == WizardStep.INSPECTION:
        return validate_inspection_step(draft)
    if step == WizardStep.COVERAGE:
        return validate_coverage_step(draft, inventory)
    if step == WizardStep.SIGNATURE:
        return validate_signature_step(draft)
    raise ValueError(f"Unknown wizard step: {step}")


def validate_draft(draft: IntakeDraft,
                   roster: Optional[Iterable[dict]] = None,
                   inventory: Optional[Iterable[dict]] = None) -> None:
    """Run every step validator in order; raise on the first failing step."""
    roster = list(roster) if roster is not None else None
    inventory = list(inventory) if inventory is not None else None
    for step in STEPS:
        errors = validate_step(step, draft, roster, inventory)
        if errors:
            raise DraftValidationError(errors, step=step.value)


# ═══════════════════════════════════════════════════════════════════════════
# REDUCERS (pure: return a new draft, never mutate the input)
# ═══════════════════════════════════════════════════════════════════════════

def apply_changes(draft: IntakeDraft, changes: Dict[str, Any]) -> IntakeDraft:
    try:
        return IntakeDraft.model_validate({**draft.model_dump(), **changes})
    except ValidationError as e:
        errors = {}
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "__root__"
            errors[field] = err["msg"]
        raise DraftValidationError(errors)


def apply_part(draft: IntakeDraft, part: str, has_damage: bool, notes: Optional[str] = None) -> IntakeDraft:
    if part not in INSPECTION_PARTS:
        raise DraftValidationError({"state": f"Parte desconhecida: {part}"})
    state = draft.state.model_dump()
    state[part] = {"has_damage": has_damage, "notes": notes}
    return apply_changes(draft, {"state": state})


def apply_photo(draft: IntakeDraft, uri: str) -> IntakeDraft:
    if len(draft.photos) >= settings.MAX_PHOTOS:
        raise DraftValidationError({"photos": f"Máximo de {settings.MAX_PHOTOS} fotos"})
    return apply_changes(draft, {"photos": [*draft.photos, uri]})


def remove_photo(draft: IntakeDraft, index: int) -> IntakeDraft:
    if index < 0 or index >= len(draft.photos):
        raise DraftValidationError({"photos": f"Foto {index} não existe"})
    photos = list(draft.photos)
    del photos[index]
    return apply_changes(draft, {"photos": photos})


# ═══════════════════════════════════════════════════════════════════════════
# WIZARD
# ═══════════════════════════════════════════════════════════════════════════

class IntakeWizard:
    """Step-indexed intake form.

    ``on_complete`` receives the validated draft and returns the created
    attendance. ``on_cancel`` is called once when the draft is discarded.
    """

    def __init__(self,
                 on_complete: Callable[[IntakeDraft], Awaitable[Any]],
                 on_cancel: Optional[Callable[[], None]] = None,
                 roster: Optional[List[dict]] = None,
                 inventory: Optional[List[dict]] = None):
        self.on_complete = on_complete
        self.on_cancel = on_cancel
        self.roster = list(roster or [])
        self.inventory = list(inventory) if inventory is not None else None

        self.draft = IntakeDraft()
        self.step_index = 0
        self.errors: StepErrors = {}
        self.is_submitting = False
        self.is_closed = False
        self.result: Any = None

    # ----- read-only views ---------------------------------------------------

    @property
    def current_step(self) -> WizardStep:
        return STEPS[self.step_index]

    @property
    def is_last_step(self) -> bool:
        return self.step_index == len(STEPS) - 1

    @property
    def total_value(self) -> float:
        return self.draft.total_value

    @property
    def has_data(self) -> bool:
        return self.draft.has_data

    def snapshot(self) -> Dict[str, Any]:
        return {
            "step": self.current_step.value,
            "step_index": self.step_index,
            "steps": [s.value for s in STEPS],
            "draft": self.draft.model_dump(),
            "total_value": self.total_value,
            "errors": dict(self.errors),
            "is_submitting": self.is_submitting,
            "is_closed": self.is_closed,
        }

    # ----- edits -------------------------------------------------------------

    def _ensure_editable(self):
        if self.is_closed:
            raise PreconditionViolation("Intake wizard is closed")
        if self.is_submitting:
            raise SubmissionInProgressError("Intake is being finalized")

    def update(self, **changes) -> IntakeDraft:
        self._ensure_editable()
        if "specialist_id" in changes:
            changes["specialist_name"] = self._specialist_name(changes["specialist_id"])
        self.draft = apply_changes(self.draft, changes)
        for field in changes:
            self.errors.pop(field, None)
        return self.draft

    def set_part(self, part: str, has_damage: bool, notes: Optional[str] = None) -> IntakeDraft:
        self._ensure_editable()
        self.draft = apply_part(self.draft, part, has_damage, notes)
        self.errors.pop(f"state.{part}.notes", None)
        return self.draft

    def add_photo(self, uri: str) -> IntakeDraft:
        self._ensure_editable()
        self.draft = apply_photo(self.draft, uri)
        return self.draft

    def remove_photo(self, index: int) -> IntakeDraft:
        self._ensure_editable()
        self.draft = remove_photo(self.draft, index)
        return self.draft

    def _specialist_name(self, specialist_id: Optional[str]) -> Optional[str]:
        for specialist in self.roster:
            if specialist.get("id") == specialist_id:
                return specialist.get("name")
        return None

    # ----- transitions -------------------------------------------------------

    async def next(self) -> Any:
        """Validate the current step, then advance or finalize.

        Returns the completion result when the last step finalizes,
        otherwise ``None``.
        """
        self._ensure_editable()

        errors = validate_step(self.current_step, self.draft, self.roster, self.inventory)
        self.errors = errors
        if errors:
            raise DraftValidationError(errors, step=self.current_step.value)

        if not self.is_last_step:
            self.step_index = min(len(STEPS) - 1, self.step_index + 1)
            return None

        self.is_submitting = True
        try:
            result = await self.on_complete(self.draft)
        finally:
            self.is_submitting = False

        self.result = result
        self.is_closed = True
        logger.info("[Intake] Draft finalized")
        return result

    def back(self) -> None:
        self._ensure_editable()
        if self.step_index == 0:
            self.cancel()
            return
        self.step_index -= 1
        self.errors = {}

    def cancel(self) -> None:
        """Discard the draft unconditionally."""
        if self.is_submitting:
            raise SubmissionInProgressError("Cannot cancel while the intake is being finalized")
        if self.is_closed:
            return
        self.draft = IntakeDraft()
        self.errors = {}
        self.is_closed = True
        logger.info("[Intake] Draft discarded")
        if self.on_cancel:
            self.on_cancel()
