"""Decoding of the insurance documents stored on the eGK.

EF.PD and EF.VD hold gzip compressed XML documents (personal data,
insurance data and protected insurance data). This module decompresses
them and maps the elements of interest onto dataclasses. Elements are
matched by local name, so the schema namespace of the card generation
does not matter.
"""

import logging
import zlib
import xml.etree.ElementTree as ET
from typing import Optional

from egkreader.exceptions import FormatError
from egkreader.models import (
    Address,
    InsuranceData,
    PersonalData,
    ProtectedInsuranceData,
)

logger = logging.getLogger(__name__)


def decompress_document(raw: bytes) -> bytes:
    """Decompress a gzip document.

    Cards store the stream without a reliable gzip trailer, so a stream
    that ends early is accepted as long as it produced output.

    Args:
        raw: gzip data.

    Returns:
        Decompressed document.

    Raises:
        FormatError: If the data is not a gzip stream.
    """
    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    try:
        document = decompressor.decompress(raw) + decompressor.flush()
    except zlib.error as e:
        raise FormatError(f"invalid gzip stream: {e}", raw) from e

    if not document:
        raise FormatError("empty gzip stream", raw)

    if not decompressor.eof:
        logger.debug(f"gzip stream truncated after {len(document)} bytes of output")

    return document


def parse_document(raw: bytes) -> ET.Element:
    """Decompress and parse a document into its root element.

    The XML declaration selects the character set (the cards use
    ISO-8859-15).

    Raises:
        FormatError: If decompression or XML parsing fails.
    """
    document = decompress_document(raw)
    try:
        return ET.fromstring(document)
    except ET.ParseError as e:
        raise FormatError(f"invalid XML document: {e}", document[:40]) from e


def _find(element: Optional[ET.Element], *names: str) -> Optional[ET.Element]:
    if element is None:
        return None
    return element.find("/".join(f"{{*}}{name}" for name in names))


def _text(element: Optional[ET.Element], *names: str) -> str:
    found = _find(element, *names)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


def _address(element: Optional[ET.Element]) -> Address:
    if element is None:
        return Address()

    return Address(
        postal_code=_text(element, "Postleitzahl"),
        city=_text(element, "Ort"),
        country_code=_text(element, "Land", "Wohnsitzlaendercode"),
        post_box=_text(element, "Postfach"),
        street=_text(element, "Strasse"),
        house_number=_text(element, "Hausnummer"),
        addition=_text(element, "Anschriftenzusatz"),
    )


def parse_personal_data(raw: bytes) -> PersonalData:
    """Parse the personal data document of EF.PD.

    Args:
        raw: gzip compressed document (without the length prefix).

    Returns:
        Decoded PersonalData.
    """
    root = parse_document(raw)
    person = _find(root, "Versicherter", "Person")

    return PersonalData(
        cdm_version=root.get("CDM_VERSION", ""),
        insurant_id=_text(root, "Versicherter", "Versicherten_ID"),
        birth_date=_text(person, "Geburtsdatum"),
        first_name=_text(person, "Vorname"),
        last_name=_text(person, "Nachname"),
        gender=_text(person, "Geschlecht"),
        name_prefix=_text(person, "Vorsatzwort"),
        name_suffix=_text(person, "Namenszusatz"),
        title=_text(person, "Titel"),
        street_address=_address(_find(person, "StrassenAdresse")),
        post_box_address=_address(_find(person, "PostfachAdresse")),
    )


def parse_insurance_data(raw: bytes) -> InsuranceData:
    """Parse the general insurance data document (VD).

    Args:
        raw: gzip compressed document as cut out of EF.VD.

    Returns:
        Decoded InsuranceData.
    """
    root = parse_document(raw)
    coverage = _find(root, "Versicherter", "Versicherungsschutz")
    gkv = _find(root, "Versicherter", "Zusatzinfos", "ZusatzinfosGKV")
    pkv = _find(root, "Versicherter", "Zusatzinfos", "ZusatzinfosPKV")
    inpatient = _find(pkv, "StationaereLeistungen")

    return InsuranceData(
        cdm_version=root.get("CDM_VERSION", ""),
        coverage_start=_text(coverage, "Beginn"),
        coverage_end=_text(coverage, "Ende"),
        payer_id=_text(coverage, "Kostentraeger", "Kostentraegerkennung"),
        payer_country_code=_text(coverage, "Kostentraeger", "Kostentraegerlaendercode"),
        payer_name=_text(coverage, "Kostentraeger", "Name"),
        billing_payer_id=_text(
            coverage, "Kostentraeger", "AbrechnenderKostentraeger", "Kostentraegerkennung"
        ),
        billing_payer_name=_text(coverage, "Kostentraeger", "AbrechnenderKostentraeger", "Name"),
        legal_scope=_text(gkv, "Rechtskreis"),
        insurant_type=_text(gkv, "Versichertenart"),
        rsa_status=_text(gkv, "Versichertenstatus_RSA"),
        reimbursement_outpatient=_text(
            gkv, "Zusatzinfos_Abrechnung_GKV", "Kostenerstattung_ambulant"
        ),
        reimbursement_inpatient=_text(
            gkv, "Zusatzinfos_Abrechnung_GKV", "Kostenerstattung_stationaer"
        ),
        wop=_text(gkv, "Zusatzinfos_Abrechnung_GKV", "WOP"),
        pkv_tariff=_text(pkv, "PKV_Verbandstarif"),
        allowance_marker=_text(pkv, "Beihilfeberechtigung", "Kennzeichnung"),
        inpatient_accommodation=_text(inpatient, "Stationaere_Wahlleistung_Unterkunft"),
        inpatient_accommodation_percent=_text(inpatient, "Prozentwert_Wahlleistung_Unterkunft"),
        inpatient_accommodation_max_rate=_text(inpatient, "HoechstsatzWahlleistungUnterkunft"),
        inpatient_physician=_text(inpatient, "Stationaere_Wahlleistung_aerztliche_Behandlung"),
        inpatient_physician_percent=_text(
            inpatient, "Prozentwert_Wahlleistung_aerztliche_Behandlung"
        ),
        clinic_card=_text(inpatient, "Teilnahme_ClinicCard_Verfahren"),
    )


def parse_protected_insurance_data(raw: bytes) -> ProtectedInsuranceData:
    """Parse the protected insurance data document (GVD).

    Args:
        raw: gzip compressed document as cut out of EF.VD.

    Returns:
        Decoded ProtectedInsuranceData.
    """
    root = parse_document(raw)

    return ProtectedInsuranceData(
        cdm_version=root.get("CDM_VERSION", ""),
        copayment_status=_text(root, "Zuzahlungsstatus", "Status"),
        copayment_valid_until=_text(root, "Zuzahlungsstatus", "Gueltig_bis"),
        special_group=_text(root, "Besondere_Personengruppe"),
        dmp_marker=_text(root, "DMP_Kennzeichnung"),
    )
