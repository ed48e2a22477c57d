"""Store profiles: one per store type, created by the first update."""
import pytest

from backoffice.core.errors import InvalidInput, NotFound
from backoffice.services import store_profile


class TestStoreProfile:
    def test_missing_profile(self, session):
        with pytest.raises(NotFound) as exc:
            store_profile.get_profile(session, "laxmi_bookstore")
        assert exc.value.message == "Laxmi Bookstore profile not found"

    def test_unknown_store_type(self, session):
        with pytest.raises(InvalidInput) as exc:
            store_profile.get_profile(session, "corner_shop")
        assert exc.value.details["allowed"] == ["laxmi_bookstore", "swasthik_enterprises"]

    def test_first_update_needs_store_name(self, session):
        with pytest.raises(InvalidInput) as exc:
            store_profile.update_profile(session, "swasthik_enterprises", city="Mysuru")
        assert exc.value.details == {"field": "store_name"}

    def test_create_then_partial_update(self, session):
        created = store_profile.update_profile(
            session,
            "laxmi_bookstore",
            store_name="Laxmi Book Store",
            phone="9876543210",
            gst_number="29abcde1234f1z5",
            city="Mysuru",
        )
        assert created.gst_number == "29ABCDE1234F1Z5"

        updated = store_profile.update_profile(session, "laxmi_bookstore", ifsc_code="sbin0001234", city="")
        assert updated.id == created.id
        assert updated.store_name == "Laxmi Book Store"
        assert updated.phone == "9876543210"
        assert updated.ifsc_code == "SBIN0001234"
        assert updated.city is None

        # the other store is untouched
        with pytest.raises(NotFound):
            store_profile.get_profile(session, "swasthik_enterprises")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("gst_number", "29ABCDE1234"),
            ("pan_number", "ABCDE12345"),
            ("ifsc_code", "SBIN1001234"),
            ("pincode", "5700"),
            ("phone", "call me"),
            ("email", "not-an-address"),
        ],
    )
    def test_rejects_malformed_fields(self, session, field, value):
        with pytest.raises(InvalidInput) as exc:
            store_profile.update_profile(session, "laxmi_bookstore", store_name="Laxmi", **{field: value})
        assert exc.value.details["field"] == field

    def test_store_name_cannot_be_cleared(self, session):
        store_profile.update_profile(session, "laxmi_bookstore", store_name="Laxmi")
        with pytest.raises(InvalidInput):
            store_profile.update_profile(session, "laxmi_bookstore", store_name="  ")
        assert store_profile.get_profile(session, "laxmi_bookstore").store_name == "Laxmi"

    def test_unknown_field(self, session):
        with pytest.raises(InvalidInput):
            store_profile.update_profile(session, "laxmi_bookstore", store_name="Laxmi", logo_image="x.png")
