import os
from datetime import date, datetime, timezone
from io import BytesIO

import pytest
from PIL import Image
from sqlalchemy.exc import OperationalError

from core.errors import PersistenceError, ValidationError, VisitLockedError
from models import ConsentForm
from services.consent_service import (
    arabic_font_available,
    create_template,
    current_template_for,
    fill_placeholders,
    new_template_version,
    render_consent_pdf,
    sign_consent,
)

SIGNED_AT = datetime(2026, 3, 5, 10, 30, tzinfo=timezone.utc)


def _png() -> bytes:
    buf = BytesIO()
    Image.new("RGB", (120, 40), (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


def test_fill_placeholders_is_case_insensitive():
    text = "I, [Patient_Name], agree to [TREATMENT NAME] on [date]. I patient name understand."

    result = fill_placeholders(text, "Mariam Saleh", "Botox", SIGNED_AT)

    assert result == (
        "I, Mariam Saleh, agree to Botox on 5 March 2026. I, Mariam Saleh, understand."
    )


def test_fill_placeholders_keeps_backslashes_in_names():
    assert fill_placeholders("[PATIENT_NAME]", r"A\1B", "x", SIGNED_AT) == r"A\1B"


def test_render_consent_pdf_returns_pdf_bytes():
    pdf = render_consent_pdf(
        patient_name="Mariam Saleh",
        patient_dob=date(1990, 4, 2),
        patient_phone="+971500000001",
        treatment_name="Botox",
        form_name="Botox Consent",
        consent_text="I, [PATIENT_NAME], consent to [TREATMENT_NAME].",
        signature_png=_png(),
        signed_at=SIGNED_AT,
    )
    assert pdf.startswith(b"%PDF")


def test_render_consent_pdf_tolerates_bad_signature_and_missing_arabic_font():
    pdf = render_consent_pdf(
        patient_name="Mariam Saleh",
        patient_dob=None,
        patient_phone=None,
        treatment_name="Botox",
        form_name="Botox Consent",
        consent_text="Terms",
        consent_text_ar="الشروط",
        signature_png=b"not an image",
        signed_at=SIGNED_AT,
        language="ar",
    )
    assert pdf.startswith(b"%PDF")


def test_template_versioning(db, make_treatment):
    botox = make_treatment()
    first = create_template(db, "Botox Consent", "v1 text", treatment_id=botox.id)

    second = new_template_version(db, first.id, "v2 text")

    db.refresh(first)
    assert second.version_number == 2
    assert not first.is_current_version
    assert current_template_for(db, botox.id).id == second.id


def test_sign_consent_writes_files_and_flags_visit(db, visit, make_treatment):
    botox = make_treatment()
    create_template(db, "Botox Consent", "I, [PATIENT_NAME], consent.", treatment_id=botox.id)

    form = sign_consent(db, visit.id, botox.id, _png())

    assert visit.consent_signed
    assert os.path.exists(form.signature_url)
    with open(form.pdf_url, "rb") as f:
        assert f.read(4) == b"%PDF"


def test_sign_consent_requires_signature_and_template(db, visit, make_treatment):
    botox = make_treatment()
    with pytest.raises(ValidationError):
        sign_consent(db, visit.id, botox.id, b"")
    with pytest.raises(ValidationError):
        sign_consent(db, visit.id, botox.id, _png())


def test_sign_consent_on_locked_visit(db, visit, make_treatment):
    botox = make_treatment()
    create_template(db, "Botox Consent", "text", treatment_id=botox.id)
    visit.is_locked = True
    db.commit()

    with pytest.raises(VisitLockedError):
        sign_consent(db, visit.id, botox.id, _png())


def test_arabic_is_unavailable_without_a_font_file():
    assert not arabic_font_available()


def test_failed_consent_commit_is_rolled_back(db, visit, make_treatment, monkeypatch):
    botox = make_treatment()
    create_template(db, "Botox Consent", "text", treatment_id=botox.id)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("disk full"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        sign_consent(db, visit.id, botox.id, _png())

    db.refresh(visit)
    assert not visit.consent_signed
    assert db.query(ConsentForm).count() == 0
