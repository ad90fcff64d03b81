"""
Consent templates, signing, and the bilingual consent PDF.

Templates carry free text with placeholders such as ``[PATIENT_NAME]``,
``[DATE]`` and ``[TREATMENT_NAME]``; ``fill_placeholders`` substitutes them
when the form is shown and again when the PDF is rendered. Signing stores
the signature PNG and the rendered PDF under the upload directory and
records a ``ConsentForm`` against the visit.
"""

import logging
import os
import re
import uuid
from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape

from PIL import Image as PILImage, UnidentifiedImageError
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import HRFlowable, Image, Paragraph, SimpleDocTemplate, Spacer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.errors import NotFoundError, PersistenceError, ValidationError, VisitLockedError
from core.time_utils import format_long_date, now_local, now_utc, to_local
from models.consent import ConsentForm, ConsentTemplate
from models.treatment import Treatment
from models.visit import Visit

logger = logging.getLogger(__name__)

ARABIC_FONT = "ClinicArabic"

LABELS = {
    "patient_info": ("PATIENT INFORMATION", "معلومات المريض"),
    "patient_name": ("Patient Name", "اسم المريض"),
    "dob": ("Date of Birth", "تاريخ الميلاد"),
    "phone": ("Contact Number", "رقم التواصل"),
    "procedure_date": ("Procedure Date", "تاريخ الإجراء"),
    "terms": ("CONSENT TERMS", "شروط الموافقة"),
    "signature": ("PATIENT SIGNATURE", "توقيع المريض"),
    "date": ("Date", "التاريخ"),
}

ACKNOWLEDGEMENT = (
    "By signing below, I acknowledge that I have read, understood, "
    "and agree to the terms above."
)


# ---------------------------------------------------------
# Placeholders
# ---------------------------------------------------------
def fill_placeholders(text: str, patient_name: str, treatment_name: str, signed_on) -> str:
    """Substitute patient, date and treatment placeholders (case-insensitive)."""
    formatted_date = format_long_date(signed_on)
    replacements = [
        (r"\[patient_name\]", patient_name),
        (r"\[patient name\]", patient_name),
        (r"\[patient's name\]", patient_name),
        (r"I, patient name,", f"I, {patient_name},"),
        (r"I patient name", f"I, {patient_name},"),
        (r"\[date\]", formatted_date),
        (r"\[treatment_name\]", treatment_name),
        (r"\[treatment name\]", treatment_name),
        (r"\[treatment\]", treatment_name),
    ]
    for pattern, value in replacements:
        text = re.sub(pattern, lambda _m, v=value: v, text, flags=re.IGNORECASE)
    return text


# ---------------------------------------------------------
# Templates
# ---------------------------------------------------------
def create_template(
    db: Session,
    form_name: str,
    consent_text: str,
    *,
    treatment_id: int | None = None,
    consent_text_ar: str | None = None,
) -> ConsentTemplate:
    if not (form_name or "").strip():
        raise ValidationError("Form name is required.")
    if not (consent_text or "").strip():
        raise ValidationError("Consent text is required.")

    template = ConsentTemplate(
        form_name=form_name.strip(),
        treatment_id=treatment_id,
        consent_text=consent_text,
        consent_text_ar=(consent_text_ar or "").strip() or None,
        version_number=1,
        is_current_version=True,
        status="active",
    )
    db.add(template)
    db.flush()

    if treatment_id is not None:
        treatment = db.get(Treatment, treatment_id)
        if treatment is None:
            db.rollback()
            raise NotFoundError(f"Treatment {treatment_id} not found.")
        treatment.consent_template_id = template.id

    db.commit()
    db.refresh(template)
    logger.info("Created consent template %s", template.form_name)
    return template


def new_template_version(
    db: Session,
    template_id: int,
    consent_text: str,
    consent_text_ar: str | None = None,
) -> ConsentTemplate:
    """Supersede a template; signed forms keep pointing at the old version."""
    old = db.get(ConsentTemplate, template_id)
    if old is None:
        raise NotFoundError(f"Consent template {template_id} not found.")
    if not (consent_text or "").strip():
        raise ValidationError("Consent text is required.")

    old.is_current_version = False
    new = ConsentTemplate(
        form_name=old.form_name,
        treatment_id=old.treatment_id,
        consent_text=consent_text,
        consent_text_ar=(consent_text_ar or "").strip() or old.consent_text_ar,
        version_number=old.version_number + 1,
        is_current_version=True,
        status="active",
    )
    db.add(new)
    db.flush()

    if old.treatment_id is not None:
        treatment = db.get(Treatment, old.treatment_id)
        if treatment is not None and treatment.consent_template_id == old.id:
            treatment.consent_template_id = new.id

    db.commit()
    db.refresh(new)
    logger.info("Consent template %s now at version %s", new.form_name, new.version_number)
    return new


def current_template_for(db: Session, treatment_id: int) -> ConsentTemplate | None:
    current = (
        db.query(ConsentTemplate)
        .filter(
            ConsentTemplate.treatment_id == treatment_id,
            ConsentTemplate.is_current_version.is_(True),
            ConsentTemplate.status == "active",
        )
        .order_by(ConsentTemplate.version_number.desc())
        .first()
    )
    if current is not None:
        return current

    treatment = db.get(Treatment, treatment_id)
    if treatment is None or treatment.consent_template_id is None:
        return None
    linked = db.get(ConsentTemplate, treatment.consent_template_id)
    if linked is None or linked.status != "active":
        return None
    return linked


# ---------------------------------------------------------
# PDF
# ---------------------------------------------------------
def arabic_font_available() -> bool:
    """Register the Arabic TTF on first use; False when none is installed."""
    if ARABIC_FONT in pdfmetrics.getRegisteredFontNames():
        return True
    path = get_settings().arabic_font_path
    if not path or not os.path.exists(path):
        return False
    pdfmetrics.registerFont(TTFont(ARABIC_FONT, path))
    return True


def _label(key: str, bilingual: bool) -> str:
    english, arabic = LABELS[key]
    return f"{english} / {arabic}" if bilingual else english


def _paragraph_text(text: str) -> str:
    return escape(text).replace("\n", "<br/>")


def _signature_flowable(signature_png: bytes | None, small_style):
    if signature_png:
        try:
            with PILImage.open(BytesIO(signature_png)) as img:
                img.verify()
            return Image(BytesIO(signature_png), width=60 * mm, height=25 * mm)
        except (UnidentifiedImageError, OSError):
            logger.warning("Signature image could not be read; using placeholder text")
    return Paragraph("[Signature on file]", small_style)


def render_consent_pdf(
    *,
    patient_name: str,
    patient_dob,
    patient_phone: str,
    treatment_name: str,
    form_name: str,
    consent_text: str,
    signature_png: bytes | None,
    signed_at: datetime,
    language: str = "en",
    consent_text_ar: str | None = None,
) -> bytes:
    """Render the signed consent form as PDF bytes."""
    settings = get_settings()
    arabic_font = language == "ar" and arabic_font_available()
    signed_local = to_local(signed_at)
    bilingual = arabic_font
    if language == "ar" and not arabic_font:
        logger.warning("No Arabic font configured; rendering consent in English")

    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f"Consent - {form_name}",
    )

    styles = getSampleStyleSheet()
    body_font = ARABIC_FONT if arabic_font else "Helvetica"
    clinic_style = ParagraphStyle("Clinic", parent=styles["Title"], fontSize=20, spaceAfter=2)
    subtitle_style = ParagraphStyle("Subtitle", parent=styles["Normal"], fontSize=10, alignment=1)
    title_style = ParagraphStyle("FormTitle", parent=styles["Heading2"], fontSize=14, alignment=1)
    heading_style = ParagraphStyle(
        "Section", parent=styles["Heading3"], fontSize=12, fontName=body_font, spaceBefore=8
    )
    normal = ParagraphStyle("Body", parent=styles["Normal"], fontSize=10, fontName=body_font)
    terms_style = ParagraphStyle("Terms", parent=normal, fontSize=9, leading=12)
    small = ParagraphStyle("Small", parent=styles["Normal"], fontSize=8, textColor=colors.grey)

    fill = lambda text: fill_placeholders(text, patient_name, treatment_name, signed_local)  # noqa: E731
    terms = consent_text_ar if arabic_font and consent_text_ar else consent_text

    dob = patient_dob.strftime("%d/%m/%Y") if hasattr(patient_dob, "strftime") else str(patient_dob or "")

    story = [
        Paragraph(escape(settings.clinic_name), clinic_style),
        Paragraph(escape(settings.clinic_subtitle), subtitle_style),
        Spacer(1, 6 * mm),
        Paragraph("CONSENT FORM", title_style),
        Paragraph(escape(form_name), title_style),
        HRFlowable(width="100%", thickness=0.5, color=colors.black),
        Paragraph(_label("patient_info", bilingual), heading_style),
        Paragraph(f"{_label('patient_name', bilingual)}: {escape(patient_name)}", normal),
        Paragraph(f"{_label('dob', bilingual)}: {escape(dob)}", normal),
        Paragraph(f"{_label('phone', bilingual)}: {escape(patient_phone or '')}", normal),
        Paragraph(f"Treatment: {escape(treatment_name)}", normal),
        Paragraph(f"{_label('procedure_date', bilingual)}: {format_long_date(signed_local)}", normal),
        Spacer(1, 4 * mm),
        HRFlowable(width="100%", thickness=0.3, color=colors.black),
        Paragraph(_label("terms", bilingual), heading_style),
        Paragraph(_paragraph_text(fill(terms)), terms_style),
        Spacer(1, 6 * mm),
        HRFlowable(width="100%", thickness=0.3, color=colors.black),
        Paragraph(_label("signature", bilingual), heading_style),
        Paragraph(ACKNOWLEDGEMENT, normal),
        Spacer(1, 4 * mm),
        _signature_flowable(signature_png, small),
        HRFlowable(width=80 * mm, thickness=0.5, color=colors.black, hAlign="LEFT"),
        Paragraph(
            f"Patient Signature &nbsp;&nbsp;&nbsp; {_label('date', bilingual)}: "
            f"{signed_local.strftime('%d %b %Y, %H:%M')}",
            small,
        ),
        Spacer(1, 10 * mm),
        Paragraph(f"Document generated on {now_local().strftime('%d %b %Y, %H:%M %Z')}", small),
    ]

    doc.build(story)
    return buf.getvalue()


# ---------------------------------------------------------
# Signing
# ---------------------------------------------------------
def _write_upload(subdir: str, data: bytes, ext: str) -> str:
    folder = os.path.join(get_settings().upload_dir, subdir)
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, f"{uuid.uuid4().hex}{ext}")
    with open(path, "wb") as f:
        f.write(data)
    return path


def sign_consent(
    db: Session,
    visit_id: int,
    treatment_id: int,
    signature_png: bytes,
    language: str = "en",
) -> ConsentForm:
    if language not in {"en", "ar"}:
        raise ValidationError("Language must be 'en' or 'ar'.")
    if not signature_png:
        raise ValidationError("Please sign the consent form.")

    visit = db.get(Visit, visit_id)
    if visit is None:
        raise NotFoundError(f"Visit {visit_id} not found.")
    if visit.is_locked:
        raise VisitLockedError(visit_id)

    treatment = db.get(Treatment, treatment_id)
    if treatment is None:
        raise NotFoundError(f"Treatment {treatment_id} not found.")

    template = current_template_for(db, treatment_id)
    if template is None:
        raise ValidationError(f"No consent template is linked to {treatment.treatment_name}.")

    patient = visit.patient
    signed_at = now_utc()
    pdf_bytes = render_consent_pdf(
        patient_name=patient.full_name,
        patient_dob=patient.date_of_birth,
        patient_phone=patient.phone_number,
        treatment_name=treatment.treatment_name,
        form_name=template.form_name,
        consent_text=template.consent_text,
        consent_text_ar=template.consent_text_ar,
        signature_png=signature_png,
        signed_at=signed_at,
        language=language,
    )

    signature_path = _write_upload("signatures", signature_png, ".png")
    pdf_path = _write_upload("consents", pdf_bytes, ".pdf")

    try:
        form = ConsentForm(
            visit_id=visit_id,
            treatment_id=treatment_id,
            consent_template_id=template.id,
            signature_url=signature_path,
            pdf_url=pdf_path,
            language=language,
            signed_date=signed_at,
        )
        db.add(form)
        visit.consent_signed = True
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to save consent for visit %s", visit_id)
        raise PersistenceError("Saving the signed consent failed.") from exc

    db.refresh(form)
    logger.info("Consent signed for visit %s, treatment %s (%s)", visit_id, treatment.treatment_name, language)
    return form
