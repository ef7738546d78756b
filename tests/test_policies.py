"""
Tests for the authorization decision engine.
"""

import pytest

from careportal.auth.context import AuthContext
from careportal.auth.errors import AuthErrorKind, AuthorizationError
from careportal.auth.policies import (
    ACCESS_DENIED,
    ROLE_NOT_PERMITTED,
    Action,
    ResourceDescriptor,
    authorize,
    effective_subject,
    require_access,
)
from careportal.core.models import Role

PATIENT = AuthContext(id=1, email="pat@example.com", role=Role.PATIENT)
OTHER_PATIENT = AuthContext(id=2, email="other@example.com", role=Role.PATIENT)
DOCTOR = AuthContext(id=10, email="doc@example.com", role=Role.DOCTOR)
ADMIN = AuthContext(id=99, email="admin@example.com", role=Role.ADMIN)

APPOINTMENT = ResourceDescriptor("appointment", owners={"patient": 1, "doctor": 10})
PUBLIC_DOC = ResourceDescriptor("document", owners={"patient": 2}, is_public=True)
PRIVATE_DOC = ResourceDescriptor("document", owners={"patient": 2})


# =============================================================================
# Gates
# =============================================================================


class TestGates:
    @pytest.mark.parametrize(
        "principal, resource, roles, action, expected_allowed, expected_gate",
        [
            (PATIENT, APPOINTMENT, None, Action.READ, True, "ownership"),
            (PATIENT, APPOINTMENT, None, Action.WRITE, True, "ownership"),
            (OTHER_PATIENT, APPOINTMENT, None, Action.READ, False, "none"),
            (OTHER_PATIENT, PUBLIC_DOC, None, Action.WRITE, True, "ownership"),
            (PATIENT, PUBLIC_DOC, None, Action.READ, True, "visibility"),
            (PATIENT, PUBLIC_DOC, None, Action.WRITE, False, "none"),
            (PATIENT, PRIVATE_DOC, None, Action.READ, False, "none"),
        ],
    )
    def test_patient_decisions(
        self, principal, resource, roles, action, expected_allowed, expected_gate
    ):
        decision = authorize(principal, resource, roles, action)

        assert decision.allowed is expected_allowed
        assert decision.gate == expected_gate

    def test_owner_private_public_and_admin(self):
        patient_7 = AuthContext(id=7, email="seven@example.com", role=Role.PATIENT)
        admin_7 = AuthContext(id=7, email="seven@example.com", role=Role.ADMIN)
        owned = ResourceDescriptor("document", owners={"patient": 7})
        private = ResourceDescriptor("document", owners={"patient": 3, "uploader": 9})
        public = ResourceDescriptor("document", owners={"patient": 3, "uploader": 9}, is_public=True)

        assert authorize(patient_7, owned)
        assert not authorize(patient_7, private)
        assert authorize(patient_7, public)
        assert authorize(admin_7, private)

    @pytest.mark.parametrize("resource", [APPOINTMENT, PRIVATE_DOC, None])
    @pytest.mark.parametrize("action", [Action.READ, Action.WRITE])
    def test_admin_always_allowed(self, resource, action):
        decision = authorize(ADMIN, resource, {Role.DOCTOR}, action)
        assert decision.allowed
        assert decision.gate == "admin"

    def test_role_gate_runs_before_ownership(self):
        # The patient owns the appointment but the endpoint is doctor-only
        decision = authorize(PATIENT, APPOINTMENT, {Role.DOCTOR}, Action.WRITE)

        assert not decision
        assert decision.gate == "role"
        assert decision.reason == ROLE_NOT_PERMITTED

    def test_role_only_endpoint(self):
        assert authorize(DOCTOR, None, {Role.DOCTOR}).gate == "role"
        assert not authorize(PATIENT, None, {Role.DOCTOR})

    def test_authenticated_without_resource_or_roles(self):
        decision = authorize(PATIENT)
        assert decision.allowed
        assert decision.gate == "authenticated"

    def test_denial_reason_does_not_reveal_which_gate(self):
        private = authorize(OTHER_PATIENT, APPOINTMENT)
        public_write = authorize(PATIENT, PUBLIC_DOC, action=Action.WRITE)

        assert private.reason == public_write.reason == ACCESS_DENIED


class TestAnonymous:
    def test_public_read(self):
        assert authorize(None, PUBLIC_DOC, action=Action.READ).gate == "visibility"

    def test_private_read(self):
        assert not authorize(None, PRIVATE_DOC)

    def test_public_write(self):
        assert not authorize(None, PUBLIC_DOC, action=Action.WRITE)

    def test_role_required(self):
        assert authorize(None, PUBLIC_DOC, {Role.PATIENT}).reason == ROLE_NOT_PERMITTED

    def test_no_resource(self):
        assert not authorize(None)


# =============================================================================
# Relation-restricted ownership
# =============================================================================


class TestRestrictedOwnership:
    def test_patient_cannot_write_consultation_notes(self):
        notes = APPOINTMENT.restricted_to("doctor")

        decision = authorize(PATIENT, notes, {Role.DOCTOR}, Action.WRITE)
        assert not decision

        # Even if the role gate were not there, the patient relation is dropped
        assert not authorize(PATIENT, notes, None, Action.WRITE)

    def test_assigned_doctor_can_write_notes(self):
        notes = APPOINTMENT.restricted_to("doctor")
        assert authorize(DOCTOR, notes, {Role.DOCTOR}, Action.WRITE).gate == "ownership"

    def test_unassigned_doctor_cannot_write_notes(self):
        stranger = AuthContext(id=11, email="doc2@example.com", role=Role.DOCTOR)
        notes = APPOINTMENT.restricted_to("doctor")

        assert not authorize(stranger, notes, {Role.DOCTOR}, Action.WRITE)

    def test_doctor_sharing_patient_id_is_still_denied(self):
        # Doctor 5 on appointment {patient: 5, doctor: 9}: the matching id is
        # the patient relation, which doesn't count for notes
        doctor_5 = AuthContext(id=5, email="five@example.com", role=Role.DOCTOR)
        appointment = ResourceDescriptor("appointment", owners={"patient": 5, "doctor": 9})

        decision = authorize(doctor_5, appointment.restricted_to("doctor"), {Role.DOCTOR}, Action.WRITE)

        assert not decision
        assert decision.reason == ACCESS_DENIED

    def test_restriction_keeps_visibility(self):
        restricted = PUBLIC_DOC.restricted_to("uploader")

        assert restricted.owner_ids == set()
        assert restricted.is_public

    def test_missing_owner_ids_are_ignored(self):
        descriptor = ResourceDescriptor("document", owners={"patient": 1, "uploader": None})
        assert descriptor.owner_ids == {1}


# =============================================================================
# Effective subject
# =============================================================================


class TestEffectiveSubject:
    def test_admin_may_act_on_behalf(self):
        assert effective_subject(ADMIN, 10) == 10

    def test_admin_without_target(self):
        assert effective_subject(ADMIN, None) == ADMIN.id

    def test_others_always_act_as_themselves(self):
        assert effective_subject(DOCTOR, 55) == DOCTOR.id
        assert effective_subject(PATIENT, 10) == PATIENT.id

    def test_custom_privileged_roles(self):
        assert effective_subject(DOCTOR, 55, privileged_roles={Role.DOCTOR}) == 55

    def test_on_behalf_of_cannot_escalate_a_doctor(self):
        descriptor = ResourceDescriptor("specialization", owners={"doctor": 55})
        assert not authorize(DOCTOR, descriptor, action=Action.WRITE, on_behalf_of=55)


# =============================================================================
# require_access
# =============================================================================


class TestRequireAccess:
    def test_returns_decision_on_allow(self):
        assert require_access(PATIENT, APPOINTMENT).gate == "ownership"

    def test_forbidden(self):
        with pytest.raises(AuthorizationError) as exc_info:
            require_access(OTHER_PATIENT, APPOINTMENT)

        assert exc_info.value.kind == AuthErrorKind.FORBIDDEN
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Access denied"

    def test_role_not_permitted(self):
        with pytest.raises(AuthorizationError) as exc_info:
            require_access(PATIENT, required_roles={Role.DOCTOR})

        assert exc_info.value.kind == AuthErrorKind.ROLE_NOT_PERMITTED
        assert exc_info.value.status_code == 403
