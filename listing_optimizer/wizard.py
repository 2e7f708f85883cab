"""Listing wizard state machine.

The wizard state is one immutable aggregate. Each user action has a pure
transition function that returns the next aggregate, or the same one when the
action is not allowed in the current state. ``WizardSession`` owns one
aggregate, runs the blocking gateway calls in the threadpool and applies their
settlements. A settlement is dropped when the session was reset while the
call was in flight.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool

from .constants import (
    MAX_COMPETITOR_URLS,
    MSG_DIAGNOSIS_FAILED,
    MSG_EXTRACTION_FAILED,
    MSG_IMAGE_FAILED,
    MSG_OPTIMIZATION_FAILED,
    MSG_TITLE_REQUIRED,
    Platform,
    Step,
)
from .errors import TransitionRejected
from .gateway import ListingGateway
from .models import (
    DiagnosisResult,
    GeneratedImage,
    OptimizationPlan,
    OptimizationResult,
    ProductInput,
    clamp_competitor_urls,
)

logger = logging.getLogger("listing-optimizer")

INPUT_FIELDS = (
    "product_url",
    "title",
    "price",
    "description",
    "competitor_urls",
    "competitor_info",
    "core_features",
)


class SlotStatus(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Slot:
    status: SlotStatus = SlotStatus.IDLE
    value: Optional[GeneratedImage] = None
    error: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return self.status is SlotStatus.IN_FLIGHT


@dataclass(frozen=True)
class WizardState:
    step: Step = Step.PLATFORM
    platform: Optional[Platform] = None
    product: ProductInput = field(default_factory=ProductInput)
    diagnosis: Optional[DiagnosisResult] = None
    optimization: Optional[OptimizationResult] = None
    selected_plan: Optional[OptimizationPlan] = None
    reference_image: Optional[str] = None
    images: Mapping[int, Slot] = field(default_factory=dict)
    error: Optional[str] = None
    busy: bool = False
    extracting: bool = False
    epoch: int = 0


def initial_state(epoch: int = 0) -> WizardState:
    return WizardState(epoch=epoch)


def reset(state: WizardState) -> WizardState:
    return initial_state(epoch=state.epoch + 1)


# Platform


def can_select_platform(state: WizardState) -> bool:
    return state.step is Step.PLATFORM


def select_platform(state: WizardState, platform: Platform) -> WizardState:
    if not can_select_platform(state):
        return state
    return replace(state, platform=platform, step=Step.INPUT, error=None)


# Input


def can_edit_input(state: WizardState) -> bool:
    return state.step is Step.INPUT


def update_input(state: WizardState, changes: Mapping[str, Any]) -> WizardState:
    if not can_edit_input(state):
        return state
    updates: Dict[str, Any] = {}
    for key, value in changes.items():
        if key not in INPUT_FIELDS or value is None:
            continue
        if key == "competitor_urls":
            updates[key] = clamp_competitor_urls(value)
        else:
            updates[key] = str(value)
    if not updates:
        return state
    return replace(state, product=replace(state.product, **updates))


def can_add_competitor_url(state: WizardState) -> bool:
    return can_edit_input(state) and len(state.product.competitor_urls) < MAX_COMPETITOR_URLS


def add_competitor_url(state: WizardState) -> WizardState:
    if not can_add_competitor_url(state):
        return state
    urls = state.product.competitor_urls + ("",)
    return replace(state, product=replace(state.product, competitor_urls=urls))


def can_extract(state: WizardState) -> bool:
    return can_edit_input(state) and not state.extracting and bool(state.product.product_url.strip())


def begin_extraction(state: WizardState) -> WizardState:
    if not can_extract(state):
        return state
    return replace(state, extracting=True, error=None)


def extraction_succeeded(state: WizardState, info: Mapping[str, str]) -> WizardState:
    if state.step is not Step.INPUT:
        return release_extraction(state)
    product = state.product
    product = replace(
        product,
        title=info.get("title") or product.title,
        price=info.get("price") or product.price,
        description=info.get("description") or product.description,
    )
    return replace(state, product=product, extracting=False, error=None)


def extraction_failed(state: WizardState, message: str) -> WizardState:
    if state.step is not Step.INPUT:
        return release_extraction(state)
    return replace(state, extracting=False, error=message)


def release_extraction(state: WizardState) -> WizardState:
    if not state.extracting:
        return state
    return replace(state, extracting=False)


# Diagnosis


def can_start_diagnosis(state: WizardState) -> bool:
    return (
        state.step is Step.INPUT
        and state.platform is not None
        and not state.busy
        and bool(state.product.title.strip())
    )


def begin_diagnosis(state: WizardState) -> WizardState:
    if not can_start_diagnosis(state):
        return state
    return replace(state, busy=True, error=None)


def diagnosis_succeeded(state: WizardState, result: DiagnosisResult) -> WizardState:
    return replace(state, diagnosis=result, step=Step.DIAGNOSIS, busy=False, error=None)


def diagnosis_failed(state: WizardState, message: str) -> WizardState:
    return replace(state, busy=False, error=message)


# Optimization


def can_generate_plans(state: WizardState) -> bool:
    return (
        state.step is Step.DIAGNOSIS
        and state.platform is not None
        and state.diagnosis is not None
        and not state.busy
    )


def begin_optimization(state: WizardState) -> WizardState:
    if not can_generate_plans(state):
        return state
    return replace(state, busy=True, error=None)


def optimization_succeeded(state: WizardState, result: OptimizationResult) -> WizardState:
    return replace(state, optimization=result, step=Step.OPTIMIZATION, busy=False, error=None)


def optimization_failed(state: WizardState, message: str) -> WizardState:
    return replace(state, busy=False, error=message)


def release_busy(state: WizardState) -> WizardState:
    if not state.busy:
        return state
    return replace(state, busy=False)


# Plan selection


def can_select_plan(state: WizardState, index: int) -> bool:
    if state.step is not Step.OPTIMIZATION or state.optimization is None:
        return False
    return 0 <= index < len(state.optimization.plans)


def select_plan(state: WizardState, index: int) -> WizardState:
    if not can_select_plan(state, index):
        return state
    plan = state.optimization.plans[index]
    return replace(
        state,
        selected_plan=plan,
        step=Step.IMAGE_GENERATION,
        images={},
        error=None,
    )


# Image generation


def set_reference_image(state: WizardState, data_url: str) -> WizardState:
    if state.step is not Step.IMAGE_GENERATION or not data_url:
        return state
    return replace(state, reference_image=data_url, error=None)


def can_generate_image(state: WizardState, image_id: int) -> bool:
    if state.step is not Step.IMAGE_GENERATION or state.selected_plan is None:
        return False
    if not state.reference_image:
        return False
    if state.selected_plan.find_image(image_id) is None:
        return False
    return not state.images.get(image_id, Slot()).in_flight


def _with_slot(state: WizardState, image_id: int, slot: Slot, **changes: Any) -> WizardState:
    images = dict(state.images)
    images[image_id] = slot
    return replace(state, images=images, **changes)


def begin_image(state: WizardState, image_id: int) -> WizardState:
    if not can_generate_image(state, image_id):
        return state
    previous = state.images.get(image_id, Slot())
    # The step message only goes away when the slot that set it is retried.
    changes = {"error": None} if previous.error and state.error == previous.error else {}
    return _with_slot(state, image_id, Slot(SlotStatus.IN_FLIGHT, value=previous.value), **changes)


def image_succeeded(state: WizardState, image_id: int, image: GeneratedImage) -> WizardState:
    return _with_slot(state, image_id, Slot(SlotStatus.DONE, value=image))


def image_failed(state: WizardState, image_id: int, message: str) -> WizardState:
    previous = state.images.get(image_id, Slot())
    return _with_slot(
        state, image_id, Slot(SlotStatus.FAILED, value=previous.value, error=message), error=message
    )


def release_image(state: WizardState, image_id: int) -> WizardState:
    slot = state.images.get(image_id)
    if slot is None or not slot.in_flight:
        return state
    status = SlotStatus.DONE if slot.value is not None else SlotStatus.IDLE
    return _with_slot(state, image_id, Slot(status, value=slot.value))


class WizardSession:
    def __init__(self, gateway: ListingGateway, session_id: Optional[str] = None):
        self.id = session_id or uuid4().hex
        self.gateway = gateway
        self.state = initial_state()
        self.last_access = datetime.utcnow()

    def _settle(self, epoch: int, transition: Callable[..., WizardState], *args: Any) -> bool:
        if self.state.epoch != epoch:
            logger.info("Session %s was reset, dropping %s", self.id, transition.__name__)
            return False
        self.state = transition(self.state, *args)
        return True

    def select_platform(self, platform: Platform) -> WizardState:
        if not can_select_platform(self.state):
            raise TransitionRejected("Platform can only be chosen on the first step.")
        self.state = select_platform(self.state, platform)
        return self.state

    def update_input(self, changes: Mapping[str, Any]) -> WizardState:
        if not can_edit_input(self.state):
            raise TransitionRejected("Product input can only be edited on the input step.")
        self.state = update_input(self.state, changes)
        return self.state

    def add_competitor_url(self) -> WizardState:
        if not can_add_competitor_url(self.state):
            raise TransitionRejected(f"At most {MAX_COMPETITOR_URLS} competitor URLs are allowed.")
        self.state = add_competitor_url(self.state)
        return self.state

    def select_plan(self, index: int) -> WizardState:
        if not can_select_plan(self.state, index):
            raise TransitionRejected("No valid plan to select.")
        self.state = select_plan(self.state, index)
        return self.state

    def set_reference_image(self, data_url: str) -> WizardState:
        if self.state.step is not Step.IMAGE_GENERATION:
            raise TransitionRejected("Select a plan before uploading a reference image.")
        self.state = set_reference_image(self.state, data_url)
        return self.state

    def reset(self) -> WizardState:
        self.state = reset(self.state)
        return self.state

    async def extract_product_info(self) -> WizardState:
        if not can_extract(self.state):
            raise TransitionRejected("A product URL is required and no extraction may be running.")
        self.state = begin_extraction(self.state)
        epoch = self.state.epoch
        url = self.state.product.product_url
        try:
            info = await run_in_threadpool(self.gateway.extract_product_info, url)
        except Exception:
            logger.exception("Extraction failed for session %s", self.id)
            self._settle(epoch, extraction_failed, MSG_EXTRACTION_FAILED)
        else:
            self._settle(epoch, extraction_succeeded, info)
        finally:
            self._settle(epoch, release_extraction)
        return self.state

    async def start_diagnosis(self) -> WizardState:
        if not can_start_diagnosis(self.state):
            if self.state.step is Step.INPUT and not self.state.product.title.strip():
                raise TransitionRejected(MSG_TITLE_REQUIRED)
            raise TransitionRejected("Diagnosis cannot start in the current state.")
        self.state = begin_diagnosis(self.state)
        epoch = self.state.epoch
        platform, product = self.state.platform, self.state.product
        try:
            result = await run_in_threadpool(self.gateway.perform_diagnosis, platform, product)
        except Exception:
            logger.exception("Diagnosis failed for session %s", self.id)
            self._settle(epoch, diagnosis_failed, MSG_DIAGNOSIS_FAILED)
        else:
            self._settle(epoch, diagnosis_succeeded, result)
        finally:
            self._settle(epoch, release_busy)
        return self.state

    async def generate_plans(self) -> WizardState:
        if not can_generate_plans(self.state):
            raise TransitionRejected("Plans need a finished diagnosis.")
        self.state = begin_optimization(self.state)
        epoch = self.state.epoch
        platform, product, diagnosis = self.state.platform, self.state.product, self.state.diagnosis
        try:
            result = await run_in_threadpool(
                self.gateway.generate_optimizations, platform, product, diagnosis
            )
        except Exception:
            logger.exception("Optimization failed for session %s", self.id)
            self._settle(epoch, optimization_failed, MSG_OPTIMIZATION_FAILED)
        else:
            if result.is_empty:
                logger.warning("Optimization for session %s returned no plans", self.id)
            self._settle(epoch, optimization_succeeded, result)
        finally:
            self._settle(epoch, release_busy)
        return self.state

    async def generate_image(self, image_id: int) -> WizardState:
        if not can_generate_image(self.state, image_id):
            raise TransitionRejected(
                f"Image {image_id} cannot be generated now. A reference image and a valid slot are required."
            )
        self.state = begin_image(self.state, image_id)
        epoch = self.state.epoch
        image_plan = self.state.selected_plan.find_image(image_id)
        reference = self.state.reference_image
        description = self.state.product.description
        try:
            image = await run_in_threadpool(
                self.gateway.generate_listing_image, reference, image_plan, description
            )
        except Exception:
            logger.exception("Image %s failed for session %s", image_id, self.id)
            self._settle(epoch, image_failed, image_id, MSG_IMAGE_FAILED.format(image_id=image_id))
        else:
            self._settle(epoch, image_succeeded, image_id, image)
        finally:
            self._settle(epoch, release_image, image_id)
        return self.state
