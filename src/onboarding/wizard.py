"""
Onboarding wizard context.

One OnboardingWizard per enrollment in progress. It owns the store and wires
the rule layer, steps, controller and submission pipeline around it, with
every backend service injected. Nothing here is global, so tests (and
concurrent users) get independent instances.
"""

import logging
from collections.abc import Callable

from enrollment.config import EnrollmentRules

from .review import ReviewBlock, build_review
from .rules import GmcPolicyDefault, PincodeCheck, PincodeVerifier, is_gmc_applicable, mirror_permanent_address
from .services import FileUploadService, PincodeLookupService, RecordCreationService
from .state import OnboardingSections, OnboardingStore
from .steps import AdvanceResult, Navigation, StepController, StepId, StepResult, build_steps
from .submission import SubmissionPipeline, SubmissionResult

logger = logging.getLogger(__name__)


class OnboardingWizard:
    """
    Wizard shell-facing facade.

    Usage:
        wizard = OnboardingWizard(user_id=..., uploader=..., records=...)
        wizard.store.update_personal(first_name="Asha")
        wizard.advance()          # validate current step, then move on
        await wizard.submit()     # from the review step
    """

    def __init__(
        self,
        *,
        user_id: str | None,
        uploader: FileUploadService,
        records: RecordCreationService,
        pincode_lookup: PincodeLookupService | None = None,
        rules: EnrollmentRules | None = None,
        id_factory: Callable[[], str] | None = None,
        submission_id_factory: Callable[[], str] | None = None,
        start_step: StepId | str | None = None,
    ):
        self.user_id = user_id
        self.rules = rules or EnrollmentRules()

        self.store = OnboardingStore(
            id_factory=id_factory,
            derivations=[mirror_permanent_address, GmcPolicyDefault(self.get_rules)],
        )
        self.verifier = PincodeVerifier(
            pincode_lookup,
            self.get_rules,
            on_lookup=self.store.log_verification_usage,
        )
        self.steps = build_steps(self.store, self.get_rules)
        self.controller = StepController(self.steps, start=start_step)
        self.pipeline = SubmissionPipeline(
            self.store,
            uploader,
            records,
            id_factory=submission_id_factory,
        )

    def get_rules(self) -> EnrollmentRules:
        return self.rules

    def update_rules(self, rules: EnrollmentRules) -> None:
        """Swap enrollment rules; dependent fields are re-derived."""
        self.rules = rules
        self.store.refresh()

    @property
    def gmc_applicable(self) -> bool:
        return is_gmc_applicable(self.store.personal.salary, self.rules)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    @property
    def current_step_id(self) -> StepId:
        return self.controller.current_step_id

    def set_value(self, path: str, value) -> dict[str, str]:
        """Edit a field of the active step; returns its touched-field errors."""
        return self.controller.current_step.set_value(path, value)

    def advance(self) -> AdvanceResult:
        return self.controller.advance()

    def go_previous(self) -> Navigation:
        return self.controller.go_previous()

    def go_to_step(self, step_id: StepId | str) -> Navigation:
        return self.controller.go_to_step(step_id)

    def validate_all(self) -> dict[StepId, StepResult]:
        """Validate every data step without moving. The declaration is checked at submit."""
        return {
            step_id: step.validate()
            for step_id, step in self.steps.items()
            if step_id != StepId.REVIEW
        }

    def load(self, sections: OnboardingSections) -> None:
        self.store.load(sections)

    # -------------------------------------------------------------------------
    # Rule-driven actions
    # -------------------------------------------------------------------------

    async def verify_pincode(self) -> PincodeCheck:
        return await self.verifier.verify_present(self.store)

    def review(self) -> list[ReviewBlock]:
        return build_review(self.store.sections, self.gmc_applicable)

    async def submit(self) -> SubmissionResult:
        """
        Submit from the review step.

        The review step (declaration) must validate first; the pipeline then
        uploads, creates the record and resets the store on success.
        """
        review = self.steps[StepId.REVIEW].commit()
        if not review.ok:
            return SubmissionResult(success=False, error=next(iter(review.errors.values())))

        result = await self.pipeline.submit(self.user_id)
        if result.success:
            # Fresh wizard state for the next enrollment
            self.steps = build_steps(self.store, self.get_rules)
            self.controller = StepController(self.steps)
        return result
