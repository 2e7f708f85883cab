from dataclasses import asdict
from typing import Any, Dict, List, Optional

from .constants import (
    DEFAULT_STRATEGY,
    MSG_NO_VALID_PLAN,
    PLATFORM_RULES,
    SCORE_KEYS,
    SCORE_LABELS,
    SCORE_MAX,
    STEP_LABELS,
    STEP_ORDER,
    STEP_TITLES,
    Platform,
)
from .models import OptimizationPlan, OptimizationResult
from .wizard import (
    Slot,
    WizardSession,
    WizardState,
    can_add_competitor_url,
    can_extract,
    can_generate_image,
    can_generate_plans,
    can_start_diagnosis,
)


def list_platforms() -> List[Dict[str, Any]]:
    return [{"id": platform.name, "name": platform.value, "rules": PLATFORM_RULES[platform]} for platform in Platform]


def _render_steps(state: WizardState) -> List[Dict[str, Any]]:
    current = STEP_ORDER.index(state.step)
    return [
        {
            "id": step.value,
            "label": STEP_LABELS[step],
            "completed": idx < current,
            "current": idx == current,
        }
        for idx, step in enumerate(STEP_ORDER)
    ]


def render_plan(plan: OptimizationPlan) -> Dict[str, Any]:
    data = asdict(plan)
    data["strategy"] = plan.strategy or DEFAULT_STRATEGY
    data["score_chart"] = [
        {"key": key, "label": SCORE_LABELS[key], "value": getattr(plan.scores, key), "full_mark": SCORE_MAX}
        for key in SCORE_KEYS
    ]
    return data


def render_optimization(result: Optional[OptimizationResult]) -> Optional[Dict[str, Any]]:
    if result is None:
        return None
    if result.is_empty:
        return {"empty": True, "message": MSG_NO_VALID_PLAN, "can_select": False, "plans": []}
    return {
        "empty": False,
        "message": None,
        "can_select": True,
        "plans": [render_plan(plan) for plan in result.plans],
    }


def _render_slot(state: WizardState, image_id: int, slot: Slot) -> Dict[str, Any]:
    return {
        "status": slot.status.value,
        "can_generate": can_generate_image(state, image_id),
        "image": slot.value.data_url if slot.value is not None else None,
        "error": slot.error,
    }


def render_image_generation(state: WizardState) -> Optional[Dict[str, Any]]:
    plan = state.selected_plan
    if plan is None:
        return None
    slots = []
    for image in plan.images:
        entry = asdict(image)
        entry.update(_render_slot(state, image.id, state.images.get(image.id, Slot())))
        slots.append(entry)
    return {
        "plan_name": plan.name,
        "has_reference_image": bool(state.reference_image),
        "slots": slots,
    }


def render_state(state: WizardState) -> Dict[str, Any]:
    return {
        "step": state.step.value,
        "step_index": STEP_ORDER.index(state.step),
        "step_title": STEP_TITLES[state.step],
        "steps": _render_steps(state),
        "platform": state.platform.value if state.platform else None,
        "platform_rules": PLATFORM_RULES[state.platform] if state.platform else [],
        "error": state.error,
        "busy": state.busy,
        "extracting": state.extracting,
        "input": state.product.to_dict(),
        "controls": {
            "can_add_competitor_url": can_add_competitor_url(state),
            "can_extract": can_extract(state),
            "can_start_diagnosis": can_start_diagnosis(state),
            "can_generate_plans": can_generate_plans(state),
        },
        "diagnosis": state.diagnosis.to_dict() if state.diagnosis else None,
        "optimization": render_optimization(state.optimization),
        "selected_plan": state.selected_plan.to_dict() if state.selected_plan else None,
        "image_generation": render_image_generation(state),
    }


def render_session(session: WizardSession) -> Dict[str, Any]:
    view = render_state(session.state)
    view["session_id"] = session.id
    return view
