"""
Cross-field rules.

Rules that couple fields across sections and that a per-field schema can't
express:
- Permanent address mirrors present address while same_as_present is set
- GMC is only applicable above the salary threshold
- GMC policy amount defaults by marital status unless the user chose one
- Pincode lookup fills city/state and marks them verified

The two derivations plug into OnboardingStore and run after every mutation.
"""

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, fields, replace

from enrollment.config import EnrollmentRules
from enrollment.errors import PincodeLookupError

from .forms import is_valid_pincode
from .services import PincodeLookupService
from .state import Address, OnboardingSections, OnboardingStore

# Editable address fields; verified_status is only set by verification
ADDRESS_FIELDS = frozenset(f.name for f in fields(Address)) - {"verified_status"}

logger = logging.getLogger(__name__)

RulesProvider = Callable[[], EnrollmentRules]

INVALID_PINCODE_MESSAGE = "Invalid Pincode. Please check and try again."


# =============================================================================
# Address Mirroring
# =============================================================================


def mirror_permanent_address(previous: OnboardingSections, proposed: OnboardingSections) -> OnboardingSections:
    """
    Force permanent == present while same_as_present is set.

    Turning the flag off leaves the last mirrored values in place.
    """
    address = proposed.address
    if not address.same_as_present or address.permanent == address.present:
        return proposed
    mirrored = replace(address, permanent=copy.deepcopy(address.present))
    return replace(proposed, address=mirrored)


def edit_address_field(store: OnboardingStore, kind: str, field_name: str, value) -> None:
    """
    Apply a manual edit to one address field.

    A manual edit always clears that field's verified flag.
    """
    if field_name not in ADDRESS_FIELDS:
        raise KeyError(f"Address has no field {field_name}")
    current: Address = getattr(store.address, kind)
    updated = replace(
        current,
        **{field_name: value},
        verified_status={**current.verified_status, field_name: False},
    )
    store.update_address(**{kind: updated})


def edit_personal_field(store: OnboardingStore, field_name: str, value) -> None:
    """Manual edit of a personal field; clears its verified flag if it had one."""
    changes = {field_name: value}
    if store.personal.verified_status.get(field_name):
        changes["verified_status"] = {**store.personal.verified_status, field_name: False}
    store.update_personal(**changes)


# =============================================================================
# GMC
# =============================================================================


def is_gmc_applicable(salary: float | None, rules: EnrollmentRules) -> bool:
    """GMC applies strictly above the threshold; a salary at the threshold does not qualify."""
    if isinstance(salary, bool) or not isinstance(salary, (int, float)):
        return False
    return salary > rules.salary_threshold


def expected_policy_amount(marital_status: str, rules: EnrollmentRules) -> str:
    if marital_status == "Married":
        return rules.default_policy_married
    return rules.default_policy_single


class GmcPolicyDefault:
    """
    Derivation keeping gmc.policy_amount consistent with its context.

    - Inapplicable: any selection is cleared.
    - Applicable: the marital-status default is applied, unless the user has
      explicitly chosen an amount (policy_amount_touched).

    A policy_amount change that arrives through a store update (rather than
    from this derivation) counts as an explicit choice.
    """

    def __init__(self, get_rules: RulesProvider):
        self._get_rules = get_rules

    def __call__(self, previous: OnboardingSections, proposed: OnboardingSections) -> OnboardingSections:
        rules = self._get_rules()
        gmc = proposed.gmc

        if gmc.policy_amount != previous.gmc.policy_amount and not gmc.policy_amount_touched:
            gmc = replace(gmc, policy_amount_touched=True)

        if not is_gmc_applicable(proposed.personal.salary, rules):
            if gmc.policy_amount or gmc.policy_amount_touched:
                gmc = replace(gmc, policy_amount="", policy_amount_touched=False)
        elif not gmc.policy_amount_touched:
            expected = expected_policy_amount(proposed.personal.marital_status, rules)
            if gmc.policy_amount != expected:
                gmc = replace(gmc, policy_amount=expected)

        if gmc is proposed.gmc:
            return proposed
        return replace(proposed, gmc=gmc)


def choose_policy_amount(store: OnboardingStore, amount: str) -> None:
    """Record an explicit policy choice."""
    store.update_gmc(policy_amount=amount, policy_amount_touched=True)


# =============================================================================
# Pincode Verification
# =============================================================================


@dataclass(frozen=True)
class PincodeCheck:
    """Outcome of a pincode verification attempt."""
    attempted: bool
    verified: bool = False
    city: str | None = None
    state: str | None = None
    error: str | None = None


class PincodeVerifier:
    """
    Verifies a present-address pincode against the lookup service.

    Skipped (attempted=False) when verification is disabled, no service is
    configured, or the pincode doesn't match the 6-digit format.
    """

    def __init__(
        self,
        lookup: PincodeLookupService | None,
        get_rules: RulesProvider,
        on_lookup: Callable[[str], None] | None = None,
    ):
        self._lookup = lookup
        self._get_rules = get_rules
        self._on_lookup = on_lookup

    def should_verify(self, pincode: str) -> bool:
        return (
            self._lookup is not None
            and self._get_rules().enable_pincode_verification
            and is_valid_pincode(pincode)
        )

    async def check(self, pincode: str) -> PincodeCheck:
        if not self.should_verify(pincode):
            return PincodeCheck(attempted=False)

        if self._on_lookup:
            self._on_lookup("pincode")

        try:
            details = await self._lookup.lookup(pincode)
        except PincodeLookupError as e:
            logger.info(f"Pincode {pincode} not verified: {e.reason}")
            return PincodeCheck(attempted=True, error=INVALID_PINCODE_MESSAGE)

        return PincodeCheck(attempted=True, verified=True, city=details.city, state=details.state)

    async def verify_present(self, store: OnboardingStore) -> PincodeCheck:
        """
        Verify the store's present pincode.

        On success city/state are overwritten and city/state/pincode marked
        verified. On failure nothing in the store changes.
        """
        pincode = store.address.present.pincode
        result = await self.check(pincode)
        if result.verified:
            # Re-read: the address may have changed while the lookup was pending
            present = store.address.present
            if present.pincode != pincode:
                logger.info(f"Pincode changed during lookup, dropping result for {pincode}")
                return PincodeCheck(attempted=True)
            store.update_address(
                present=replace(
                    present,
                    city=result.city,
                    state=result.state,
                    verified_status={**present.verified_status, "city": True, "state": True, "pincode": True},
                )
            )
        return result
