"""
Employee Onboarding Engine.

Collects an employee's enrollment data across a fixed sequence of wizard
steps and submits it as one record.

Parts:
1. Section State Store - every section, mutated by merge or by list item id
2. Cross-Field Rules - address mirroring, GMC gating/defaults, pincode verification
3. Step Controller - validation-gated navigation over the steps
4. Submission Pipeline - uploads, payload assembly, record creation, reset
"""

from .state import OnboardingSections, OnboardingStore, UploadedFile
from .steps import StepController, StepId
from .payload import EnrollmentPayload
from .submission import SubmissionPipeline, SubmissionResult
from .wizard import OnboardingWizard

__all__ = [
    "OnboardingSections",
    "OnboardingStore",
    "UploadedFile",
    "StepController",
    "StepId",
    "EnrollmentPayload",
    "SubmissionPipeline",
    "SubmissionResult",
    "OnboardingWizard",
]
