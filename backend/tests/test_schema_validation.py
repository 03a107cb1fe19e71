"""
Tests for Pydantic request schema validators.

Tests cover both valid and invalid inputs for:
- MemberSettingsUpdate (nickname, e-invoice barcode, partial updates)
- PersonalMembershipOrderCreate and PersonalMembershipOrderUpdate
- EligibleStudentsReplace and EligibleStudentAdd
- FederatedGrant
"""

import pytest
from pydantic import ValidationError

from schemas import (
    KNOWN_ERROR_TYPE,
    EligibleStudentAdd,
    EligibleStudentsReplace,
    FederatedGrant,
    MemberSettingsUpdate,
    PersonalMembershipOrderCreate,
    PersonalMembershipOrderUpdate,
)


def known_error_code(exc_info) -> str:
    error = exc_info.value.errors()[0]
    assert error["type"] == KNOWN_ERROR_TYPE
    return error["ctx"]["code"]


# ============================================================================
# MemberSettingsUpdate Tests
# ============================================================================

class TestMemberSettingsNickname:
    """Test nickname validation for MemberSettingsUpdate."""

    def test_valid_nickname(self):
        settings = MemberSettingsUpdate(nickname="小明")
        assert settings.nickname == "小明"

    def test_max_length_nickname(self):
        """Five characters is the longest accepted nickname."""
        settings = MemberSettingsUpdate(nickname="abcde")
        assert settings.nickname == "abcde"

    def test_too_long(self):
        with pytest.raises(ValidationError) as exc_info:
            MemberSettingsUpdate(nickname="abcdef")
        assert known_error_code(exc_info) == "U4001"

    def test_space_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            MemberSettingsUpdate(nickname="a b")
        assert known_error_code(exc_info) == "U4001"

    def test_null_allowed(self):
        settings = MemberSettingsUpdate(nickname=None)
        assert settings.nickname is None
        assert settings.model_fields_set == {"nickname"}


class TestMemberSettingsBarcode:
    """Test e-invoice mobile barcode validation."""

    @pytest.mark.parametrize("barcode", ["/ABC1234", "/E7E6888", "/A.B+C-1"])
    def test_valid(self, barcode):
        assert MemberSettingsUpdate(e_invoice_barcode=barcode).e_invoice_barcode == barcode

    @pytest.mark.parametrize("barcode", ["ABC12345", "/abc1234", "/ABC123", "/ABC12345", ""])
    def test_invalid(self, barcode):
        with pytest.raises(ValidationError) as exc_info:
            MemberSettingsUpdate(e_invoice_barcode=barcode)
        assert known_error_code(exc_info) == "U4002"


class TestMemberSettingsPartial:
    def test_omitted_fields_not_set(self):
        settings = MemberSettingsUpdate.model_validate({"e_invoice_barcode": "/ABC1234"})
        assert settings.model_fields_set == {"e_invoice_barcode"}
        assert settings.model_dump(include=settings.model_fields_set) == {
            "e_invoice_barcode": "/ABC1234"
        }

    def test_empty(self):
        settings = MemberSettingsUpdate.model_validate({})
        assert settings.model_fields_set == set()


# ============================================================================
# Personal membership order Tests
# ============================================================================

class TestPersonalMembershipOrderCreate:
    def _body(self, **overrides):
        body = {
            "school_id": 1,
            "class": "高二仁",
            "number": "03",
            "real_name": "龔曉明",
            "need_sticker": False,
        }
        body.update(overrides)
        return body

    def test_class_alias(self):
        order = PersonalMembershipOrderCreate.model_validate(self._body())
        assert order.class_name == "高二仁"

    def test_populate_by_field_name(self):
        body = self._body()
        body["class_name"] = body.pop("class")
        order = PersonalMembershipOrderCreate.model_validate(body)
        assert order.class_name == "高二仁"

    def test_whitespace_trimmed(self):
        order = PersonalMembershipOrderCreate.model_validate(self._body(real_name="  龔曉明 "))
        assert order.real_name == "龔曉明"

    @pytest.mark.parametrize("field", ["class", "number", "real_name"])
    def test_blank_rejected(self, field):
        with pytest.raises(ValidationError):
            PersonalMembershipOrderCreate.model_validate(self._body(**{field: "   "}))

    def test_number_too_long(self):
        with pytest.raises(ValidationError):
            PersonalMembershipOrderCreate.model_validate(self._body(number="12345678901"))

    def test_update_has_no_school(self):
        body = self._body()
        del body["school_id"]
        update = PersonalMembershipOrderUpdate.model_validate(body)
        assert not hasattr(update, "school_id")


# ============================================================================
# Eligible students Tests
# ============================================================================

class TestEligibleStudents:
    def test_replace_valid(self):
        body = EligibleStudentsReplace(items=["1234567", "7654321"])
        assert body.items == ["1234567", "7654321"]

    def test_replace_empty_list(self):
        assert EligibleStudentsReplace(items=[]).items == []

    def test_replace_blank_item(self):
        with pytest.raises(ValidationError):
            EligibleStudentsReplace(items=["1234567", ""])

    def test_replace_item_too_long(self):
        with pytest.raises(ValidationError):
            EligibleStudentsReplace(items=["1" * 31])

    def test_add_blank(self):
        with pytest.raises(ValidationError):
            EligibleStudentAdd(item="")


# ============================================================================
# FederatedGrant Tests
# ============================================================================

class TestFederatedGrant:
    def test_code_grant(self):
        grant = FederatedGrant(
            flow="authorization_code",
            grant_value="code",
            redirect_uri="https://web.ukhsc.org/callback",
        )
        assert grant.flow.value == "authorization_code"

    def test_unknown_flow(self):
        with pytest.raises(ValidationError):
            FederatedGrant(flow="password", grant_value="x")

    def test_empty_grant_value(self):
        with pytest.raises(ValidationError):
            FederatedGrant(flow="token", grant_value="")
