"""
Tests for wizard steps and the step controller.
"""

import pytest

from enrollment.config import EnrollmentRules
from onboarding.steps import (
    STEP_ORDER,
    Navigation,
    StepController,
    StepId,
    build_steps,
)
from onboarding.wizard import OnboardingWizard


class TestStepOrder:

    def test_fixed_order(self):
        assert [s.value for s in STEP_ORDER] == [
            "personal", "address", "organization", "family", "education",
            "bank", "uan", "esi", "gmc", "documents", "biometrics", "review",
        ]

    def test_every_step_has_a_component(self, wizard):
        assert list(wizard.steps) == list(STEP_ORDER)

    def test_controller_rejects_missing_step(self, wizard):
        steps = dict(wizard.steps)
        del steps[StepId.BANK]

        with pytest.raises(ValueError):
            StepController(steps)


class TestNavigation:

    def test_starts_at_personal(self, wizard):
        assert wizard.current_step_id == StepId.PERSONAL

    def test_previous_on_first_step_leaves_wizard(self, wizard):
        assert wizard.go_previous() == Navigation.LEFT_WIZARD
        assert wizard.current_step_id == StepId.PERSONAL

    def test_go_next_does_not_validate(self, wizard):
        """The raw move is unconditional; advance() is the gated one."""
        assert wizard.controller.go_next() == Navigation.MOVED
        assert wizard.current_step_id == StepId.ADDRESS

    def test_go_to_step_jumps(self, wizard):
        assert wizard.go_to_step("bank") == Navigation.MOVED
        assert wizard.current_step_id == StepId.BANK

    def test_go_to_unknown_step_raises(self, wizard):
        with pytest.raises(ValueError):
            wizard.go_to_step("payroll")

    def test_resume_mid_flow(self, uploader, records):
        wizard = OnboardingWizard(user_id="u", uploader=uploader, records=records, start_step="esi")

        assert wizard.current_step_id == StepId.ESI

    def test_next_on_review_is_at_end(self, wizard):
        wizard.go_to_step(StepId.REVIEW)

        assert wizard.controller.go_next() == Navigation.AT_END
        assert wizard.current_step_id == StepId.REVIEW

    def test_gmc_skipped_both_ways_below_threshold(self, wizard):
        wizard.store.update_personal(salary=20000)

        wizard.go_to_step(StepId.ESI)
        wizard.controller.go_next()
        assert wizard.current_step_id == StepId.DOCUMENTS

        wizard.go_previous()
        assert wizard.current_step_id == StepId.ESI

    def test_gmc_visited_above_threshold(self, wizard):
        wizard.store.update_personal(salary=50000)
        wizard.go_to_step(StepId.ESI)

        wizard.controller.go_next()

        assert wizard.current_step_id == StepId.GMC


class TestAdvance:

    def test_invalid_step_blocks(self, wizard):
        result = wizard.advance()

        assert result.navigation == Navigation.BLOCKED
        assert "first_name" in result.result.errors
        assert wizard.current_step_id == StepId.PERSONAL

    def test_valid_step_moves_on(self, wizard, valid_personal):
        wizard.store.update_personal(**valid_personal)

        result = wizard.advance()

        assert result.navigation == Navigation.MOVED
        assert wizard.current_step_id == StepId.ADDRESS

    def test_commit_current_stays_on_step(self, wizard, valid_personal):
        wizard.store.update_personal(**valid_personal)

        result = wizard.controller.commit_current()

        assert result.ok
        assert result.errors == {}
        assert wizard.current_step_id == StepId.PERSONAL

    def test_steps_without_rules_always_advance(self, wizard):
        wizard.go_to_step(StepId.ORGANIZATION)

        assert wizard.advance().navigation == Navigation.MOVED
        assert wizard.current_step_id == StepId.FAMILY

    def test_empty_lists_are_valid(self, wizard):
        wizard.go_to_step(StepId.FAMILY)

        assert wizard.advance().navigation == Navigation.MOVED
        assert wizard.advance().navigation == Navigation.MOVED
        assert wizard.current_step_id == StepId.BANK

    def test_review_requires_declaration(self, wizard):
        wizard.go_to_step(StepId.REVIEW)

        result = wizard.advance()

        assert result.navigation == Navigation.BLOCKED
        assert result.result.errors == {"declaration_accepted": "Please check the declaration box to proceed."}

    def test_full_walk_reaches_review(self, wizard, fill_valid):
        fill_valid(wizard.store)

        seen = [wizard.current_step_id]
        while wizard.advance().navigation == Navigation.MOVED:
            seen.append(wizard.current_step_id)

        assert seen == list(STEP_ORDER)


class TestFieldEdits:

    def test_errors_only_for_touched_fields(self, wizard):
        errors = wizard.set_value("mobile", "123")

        assert errors == {"mobile": "Must be a valid 10-digit Indian mobile number"}

    def test_error_clears_when_corrected(self, wizard):
        wizard.set_value("mobile", "123")

        assert wizard.set_value("mobile", "9876543210") == {}
        assert wizard.store.personal.mobile == "9876543210"

    def test_failed_commit_touches_every_error_field(self, wizard):
        wizard.advance()

        errors = wizard.set_value("first_name", "Asha")

        assert "first_name" not in errors
        assert "last_name" in errors

    def test_unknown_field_raises(self, wizard):
        with pytest.raises(KeyError):
            wizard.set_value("favourite_colour", "blue")

    def test_salary_input_is_coerced(self, wizard):
        wizard.set_value("salary", "45000")

        assert wizard.store.personal.salary == 45000.0
        assert wizard.gmc_applicable

    def test_manual_edit_clears_verified_flag(self, wizard):
        wizard.store.update_personal(verified_status={"first_name": True})

        wizard.set_value("first_name", "Asha")

        assert wizard.store.personal.verified_status["first_name"] is False

    def test_address_path_edits(self, wizard):
        wizard.go_to_step(StepId.ADDRESS)
        wizard.set_value("same_as_present", True)

        errors = wizard.set_value("present.pincode", "012345")

        assert wizard.store.address.permanent.pincode == "012345"
        assert errors == {"present.pincode": "Must be a valid 6-digit Indian pincode"}

    def test_unknown_address_path_raises(self, wizard):
        wizard.go_to_step(StepId.ADDRESS)

        with pytest.raises(KeyError):
            wizard.set_value("present.bogus", "x")

    def test_list_item_edits(self, wizard):
        wizard.go_to_step(StepId.FAMILY)
        member_id = wizard.store.add_family_member()

        errors = wizard.set_value(f"{member_id}.name", "")

        assert errors == {f"{member_id}.name": "Name is required"}

    def test_personal_commit_mirrors_emergency_contact(self, wizard, valid_personal):
        wizard.store.update_personal(**valid_personal)

        wizard.advance()

        assert [(m.relation, m.name) for m in wizard.store.family] == [("Father", "Ravi Rao")]


class TestGmcStep:

    def test_applicable_above_threshold_and_nominee_required(self, wizard):
        """Salary above a 40000 threshold opens GMC; opting in without a nominee fails."""
        wizard.update_rules(EnrollmentRules(salary_threshold=40000))
        wizard.store.update_personal(salary=50000)
        assert wizard.steps[StepId.GMC].is_applicable()

        wizard.go_to_step(StepId.GMC)
        wizard.set_value("is_opted_in", True)
        result = wizard.advance()

        assert result.navigation == Navigation.BLOCKED
        assert result.result.errors["nominee_name"] == "Nominee name is required"

    def test_skipped_step_is_valid(self, wizard):
        wizard.store.update_personal(salary=25000)

        result = wizard.steps[StepId.GMC].validate()

        assert result.ok and result.skipped

    def test_policy_choice_via_step_is_kept(self, wizard):
        wizard.store.update_personal(salary=50000, marital_status="Single")
        wizard.go_to_step(StepId.GMC)

        wizard.set_value("policy_amount", "2L")
        wizard.store.update_personal(marital_status="Married")
        wizard.store.update_personal(marital_status="Single")

        assert wizard.store.gmc.policy_amount == "2L"

    def test_default_amount_satisfies_required_rule(self, wizard):
        wizard.store.update_personal(salary=50000, marital_status="Married")
        wizard.go_to_step(StepId.GMC)
        wizard.set_value("is_opted_in", True)
        wizard.set_value("nominee_name", "Meena")
        wizard.set_value("nominee_relation", "Spouse")

        assert wizard.advance().navigation == Navigation.MOVED
        assert wizard.store.gmc.policy_amount == "2L"


class TestValidateAll:

    def test_reports_each_step(self, wizard):
        results = wizard.validate_all()

        assert set(results) == set(STEP_ORDER) - {StepId.REVIEW}
        assert not results[StepId.PERSONAL].ok
        assert results[StepId.ORGANIZATION].ok
        assert results[StepId.GMC].skipped

    def test_build_steps_shares_store(self, ruled_store, rules):
        steps = build_steps(ruled_store, lambda: rules)

        steps[StepId.BANK].set_value("bank_name", "SBI")

        assert ruled_store.bank.bank_name == "SBI"
