"""
Normalize an FPDS content document (award / IDV / other transaction) into
flat column dictionaries.

Each ``extract_*`` function covers one logical field group and returns only
the fields it actually found, so groups can be merged with ``dict.update``
into a single record without absent values turning into defaults.

All XPaths are evaluated against a namespace-stripped lxml element (see
``ingestion.extractors.atom_parser``).
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from lxml import etree

from ingestion.transformers.parsers import (
    parse_bool,
    parse_date,
    parse_datetime,
    parse_float,
    parse_int,
)
from models.base import RecordType

Element = etree._Element
Fields = Dict[str, Any]

UNKNOWN_PIID = "UNKNOWN_PIID"
DEFAULT_MOD_NUMBER = "0"


# ============================================================================
# Element helpers
# ============================================================================

def first(node: Element, xpath: str) -> Optional[Element]:
    """First element matched by ``xpath`` or None."""
    found = node.xpath(xpath)
    for item in found:
        if isinstance(item, etree._Element):
            return item
    return None


def xt(node: Optional[Element], xpath: str) -> Optional[str]:
    """Stripped text of the first match; empty text counts as absent."""
    if node is None:
        return None
    el = first(node, xpath)
    if el is None or el.text is None:
        return None
    text = el.text.strip()
    return text or None


def xa(node: Optional[Element], xpath: str, attr: str = "description") -> Optional[str]:
    """Stripped attribute of the first match."""
    if node is None:
        return None
    el = first(node, xpath)
    if el is None:
        return None
    value = el.get(attr)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _compact(fields: Fields) -> Fields:
    return {k: v for k, v in fields.items() if v is not None}


def _text_group(node: Element, base: str, mapping: Sequence[Tuple[str, str]]) -> Fields:
    return _compact({column: xt(node, f"{base}/{path}") for column, path in mapping})


# ============================================================================
# Record type and identification
# ============================================================================

def record_type(content: Element) -> str:
    """Record type derived from the content root element name."""
    return RecordType.from_element_name(etree.QName(content).localname)


# Where each document type keeps its own PIID / modNumber, tried first
_ID_CONTAINERS = {
    RecordType.AWARD.value: ".//awardID/awardContractID",
    RecordType.IDV.value: ".//contractID/IDVID",
    RecordType.OTHER_TRANSACTION_AWARD.value: ".//contractID/OtherTransactionAwardContractID",
    RecordType.OTHER_TRANSACTION_IDV.value: ".//contractID/OtherTransactionIDVContractID",
}
_ID_FALLBACK_ORDER = [
    RecordType.AWARD.value,
    RecordType.IDV.value,
    RecordType.OTHER_TRANSACTION_AWARD.value,
    RecordType.OTHER_TRANSACTION_IDV.value,
]


def id_paths(kind: str) -> List[str]:
    """Container XPaths for ``kind``: its own first, then the fixed fallback order."""
    ordered = []
    if kind in _ID_CONTAINERS:
        ordered.append(_ID_CONTAINERS[kind])
    ordered.extend(_ID_CONTAINERS[k] for k in _ID_FALLBACK_ORDER if k != kind)
    return ordered


def extract_contract_id(content: Element, kind: Optional[str] = None) -> Tuple[str, str]:
    """Return ``(piid, modification_number)`` with defaults when missing."""
    kind = kind or record_type(content)
    piid = None
    mod_number = None
    for container in id_paths(kind):
        piid = xt(content, f"{container}/PIID")
        if piid:
            mod_number = xt(content, f"{container}/modNumber")
            break
    return piid or UNKNOWN_PIID, mod_number or DEFAULT_MOD_NUMBER


def extract_id_fields(cn: Element) -> Fields:
    kind = record_type(cn)
    piid, mod_number = extract_contract_id(cn, kind)
    return _compact({
        "record_type": kind,
        "piid": piid,
        "modification_number": mod_number,
        "transaction_number": xt(cn, ".//awardID/awardContractID/transactionNumber"),
        "referenced_idv_piid": (
            xt(cn, ".//awardID/referencedIDVID/PIID") or xt(cn, ".//contractID/referencedIDVID/PIID")
        ),
        "referenced_idv_mod_number": (
            xt(cn, ".//awardID/referencedIDVID/modNumber") or xt(cn, ".//contractID/referencedIDVID/modNumber")
        ),
        "referenced_idv_agency_id": (
            xt(cn, ".//awardID/referencedIDVID/agencyID") or xt(cn, ".//contractID/referencedIDVID/agencyID")
        ),
    })


# ============================================================================
# Field groups
# ============================================================================

_COMPETITION = [
    ("extent_competed", "extentCompeted"),
    ("solicitation_procedures", "solicitationProcedures"),
    ("type_of_set_aside", "typeOfSetAside"),
    ("type_of_set_aside_source", "typeOfSetAsideSource"),
    ("evaluated_preference", "evaluatedPreference"),
    ("number_of_offers_source", "numberOfOffersSource"),
    ("commercial_item_acquisition_procedures", "commercialItemAcquisitionProcedures"),
    ("commercial_item_test_program", "commercialItemTestProgram"),
    ("a76_action", "A76Action"),
    ("fed_biz_opps", "fedBizOpps"),
    ("local_area_set_aside", "localAreaSetAside"),
    ("fair_opportunity_limited_sources", "statutoryExceptionToFairOpportunity"),
    ("reason_not_competed", "reasonNotCompeted"),
    ("competitive_procedures", "competitiveProcedures"),
    ("research", "research"),
    ("small_business_competitiveness_demo", "smallBusinessCompetitivenessDemonstrationProgram"),
    ("idv_type_of_set_aside", "IDVTypeOfSetAside"),
]


def extract_competition(cn: Element) -> Fields:
    fields = _text_group(cn, ".//competition", _COMPETITION)
    fields.update(_compact({
        "number_of_offers_received": parse_int(xt(cn, ".//competition/numberOfOffersReceived")),
        "idv_number_of_offers_received": parse_int(xt(cn, ".//competition/IDVNumberOfOffersReceived")),
    }))
    return fields


_CONTRACT_DATA = [
    ("cost_or_pricing_data", "costOrPricingData"),
    ("contract_financing", "contractFinancing"),
    ("gfe_gfp", "GFE_GFP"),
    ("sea_transportation", "seaTransportation"),
    ("undefinitized_action", "undefinitizedAction"),
    ("consolidated_contract", "consolidatedContract"),
    ("performance_based_service_contract", "performanceBasedServiceContract"),
    ("multi_year_contract", "multiYearContract"),
    ("contingency_humanitarian_peacekeeping_operation", "contingencyHumanitarianPeacekeepingOperation"),
    ("purchase_card_as_payment_method", "purchaseCardAsPaymentMethod"),
    ("number_of_actions", "numberOfActions"),
    ("referenced_idv_type", "referencedIDVType"),
    ("referenced_idv_multiple_or_single", "referencedIDVMultipleOrSingle"),
    ("major_program_code", "majorProgramCode"),
    ("national_interest_action_code", "nationalInterestActionCode"),
    ("cost_accounting_standards_clause", "costAccountingStandardsClause"),
    ("inherently_governmental_function", "inherentlyGovernmentalFunction"),
    ("solicitation_id", "solicitationID"),
    ("type_of_idc", "typeOfIDC"),
    ("multiple_or_single_award_idc", "multipleOrSingleAwardIDC"),
]


def extract_contract_data(cn: Element) -> Fields:
    return _text_group(cn, ".//contractData", _CONTRACT_DATA)


def extract_dollar_values(cn: Element) -> Fields:
    return _compact({
        "obligated_amount": parse_float(xt(cn, ".//dollarValues/obligatedAmount")),
        "base_and_exercised_options_value": parse_float(xt(cn, ".//dollarValues/baseAndExercisedOptionsValue")),
        "base_and_all_options_value": parse_float(xt(cn, ".//dollarValues/baseAndAllOptionsValue")),
        "total_estimated_order_value": parse_float(xt(cn, ".//dollarValues/totalEstimatedOrderValue")),
        "total_obligated_amount": parse_float(xt(cn, ".//totalDollarValues/totalObligatedAmount")),
        "total_base_and_all_options_value": parse_float(
            xt(cn, ".//totalDollarValues/totalBaseAndAllOptionsValue")
        ),
        "total_base_and_exercised_options_value": parse_float(
            xt(cn, ".//totalDollarValues/totalBaseAndExercisedOptionsValue")
        ),
    })


_LEGISLATIVE_MANDATES = [
    ("clinger_cohen_act", "ClingerCohenAct"),
    ("construction_wage_rate_requirements", "constructionWageRateRequirements"),
    ("labor_standards", "laborStandards"),
    ("materials_supplies_articles_equipment", "materialsSuppliesArticlesEquipment"),
    ("interagency_contracting_authority", "interagencyContractingAuthority"),
    ("other_statutory_authority", "otherStatutoryAuthority"),
]


def extract_legislative_mandates(cn: Element) -> Fields:
    return _text_group(cn, ".//legislativeMandates", _LEGISLATIVE_MANDATES)


def extract_place_of_performance(cn: Element) -> Fields:
    base = ".//placeOfPerformance"
    return _compact({
        "pop_street_address": xt(cn, f"{base}/principalPlaceOfPerformance/streetAddress"),
        "pop_city": xt(cn, f"{base}/principalPlaceOfPerformance/city"),
        "pop_state_code": xt(cn, f"{base}/principalPlaceOfPerformance/stateCode"),
        "pop_zip_code": xt(cn, f"{base}/placeOfPerformanceZIPCode"),
        "pop_country_code": xt(cn, f"{base}/principalPlaceOfPerformance/countryCode"),
        "pop_congressional_district": xt(cn, f"{base}/placeOfPerformanceCongressionalDistrict"),
    })


def extract_dates(cn: Element) -> Fields:
    base = ".//relevantContractDates"
    return _compact({
        "effective_date": parse_datetime(xt(cn, f"{base}/effectiveDate")),
        "signed_date": parse_date(xt(cn, f"{base}/signedDate")),
        "current_completion_date": parse_date(xt(cn, f"{base}/currentCompletionDate")),
        "ultimate_completion_date": parse_date(xt(cn, f"{base}/ultimateCompletionDate")),
        "last_date_to_order": parse_date(xt(cn, f"{base}/lastDateToOrder")),
        "completion_date": parse_date(xt(cn, f"{base}/completionDate")),
    })


def extract_transaction_info(cn: Element) -> Fields:
    base = ".//transactionInformation"
    return _compact({
        "created_by": xt(cn, f"{base}/createdBy"),
        "created_date": parse_datetime(xt(cn, f"{base}/createdDate")),
        "last_modified_by": xt(cn, f"{base}/lastModifiedBy"),
        "fpds_last_modified_date": parse_datetime(xt(cn, f"{base}/lastModifiedDate")),
        "transaction_status": xt(cn, f"{base}/status"),
        "approved_by": xt(cn, f"{base}/approvedBy"),
        "approved_date": parse_datetime(xt(cn, f"{base}/approvedDate")),
        "closed_status": xt(cn, f"{base}/closedStatus"),
        "closed_by": xt(cn, f"{base}/closedBy"),
        "closed_date": parse_datetime(xt(cn, f"{base}/closedDate")),
    })


_MARKETING = [
    ("fee_paid_for_use_of_service", "feePaidForUseOfService"),
    ("who_can_use", "whoCanUse"),
    ("ordering_procedure", "orderingProcedure"),
    ("individual_order_limit", "individualOrderLimit"),
    ("type_of_fee_for_use_of_service", "typeOfFeeForUseOfService"),
    ("contract_marketing_email", "emailAddress"),
]


def extract_contract_marketing(cn: Element) -> Fields:
    return _text_group(cn, ".//contractMarketingData", _MARKETING)


_PRODUCT_SERVICE = [
    ("claimant_program_code", "claimantProgramCode"),
    ("contract_bundling", "contractBundling"),
    ("country_of_origin", "countryOfOrigin"),
    ("information_technology_commercial_item_category", "informationTechnologyCommercialItemCategory"),
    ("manufacturing_organization_type", "manufacturingOrganizationType"),
    ("place_of_manufacture", "placeOfManufacture"),
    ("recovered_material_clauses", "recoveredMaterialClauses"),
    ("system_equipment_code", "systemEquipmentCode"),
    ("use_of_epa_designated_products", "useOfEPADesignatedProducts"),
]


def extract_product_service_info(cn: Element) -> Fields:
    return _text_group(cn, ".//productOrServiceInformation", _PRODUCT_SERVICE)


def extract_misc(cn: Element) -> Fields:
    return _compact({
        "foreign_funding": xt(cn, ".//purchaserInformation/foreignFunding"),
        "contracting_officer_business_size_determination": xt(
            cn, ".//vendor/contractingOfficerBusinessSizeDetermination"
        ),
        "subcontract_plan": xt(cn, ".//preferencePrograms/subcontractPlan"),
    })


def extract_core(cn: Element) -> Fields:
    """Descriptive columns that sit outside the named groups."""
    return _compact({
        "description_of_requirement": xt(cn, ".//contractData/descriptionOfContractRequirement"),
        "action_type_code": xt(cn, ".//contractData/contractActionType"),
        "action_type_description": xa(cn, ".//contractData/contractActionType"),
        "pricing_type_code": xt(cn, ".//contractData/typeOfContractPricing"),
        "pricing_type_description": xa(cn, ".//contractData/typeOfContractPricing"),
        "reason_for_modification": xt(cn, ".//contractData/reasonForModification"),
    })


FIELD_GROUPS: List[Callable[[Element], Fields]] = [
    extract_id_fields,
    extract_core,
    extract_competition,
    extract_contract_data,
    extract_dollar_values,
    extract_legislative_mandates,
    extract_place_of_performance,
    extract_dates,
    extract_transaction_info,
    extract_contract_marketing,
    extract_product_service_info,
    extract_misc,
]


def extract_all_action_fields(cn: Element) -> Fields:
    """Merge every field group into one flat ContractAction record."""
    fields: Fields = {}
    for group in FIELD_GROUPS:
        fields.update(group(cn))
    return fields


# ============================================================================
# Vendor snapshot
# ============================================================================

TEXT = "text"
BOOL = "bool"
DATE = "date"

_VALUE_PARSERS = {
    TEXT: lambda v: v,
    BOOL: parse_bool,
    DATE: parse_date,
}

# (section XPath relative to vendorSiteDetails, [(column, child path, kind)])
_SITE_SECTIONS = [
    (".", [
        ("uei", ".//vendorUEIInformation/UEI", TEXT),
        ("ultimate_parent_uei", ".//vendorUEIInformation/ultimateParentUEI", TEXT),
        ("uei_legal_business_name", ".//vendorUEIInformation/UEILegalBusinessName", TEXT),
        ("ultimate_parent_uei_name", ".//vendorUEIInformation/ultimateParentUEIName", TEXT),
        ("cage_code", ".//entityIdentifiers/cageCode", TEXT),
        ("registration_date", ".//ccrRegistrationDetails/registrationDate", DATE),
        ("renewal_date", ".//ccrRegistrationDetails/renewalDate", DATE),
        ("vendor_alternate_site_code", "./vendorAlternateSiteCode", TEXT),
    ]),
    (".//vendorLocation", [
        ("street_address", "./streetAddress", TEXT),
        ("city", "./city", TEXT),
        ("state", "./state", TEXT),
        ("zip_code", "./ZIPCode", TEXT),
        ("country_code", "./countryCode", TEXT),
        ("phone_no", "./phoneNo", TEXT),
        ("fax_no", "./faxNo", TEXT),
        ("congressional_district", "./congressionalDistrictCode", TEXT),
        ("vendor_location_disabled_flag", "./vendorLocationDisabledFlag", BOOL),
        ("entity_data_source", "./entityDataSource", TEXT),
    ]),
    (".//vendorSocioEconomicIndicators", [
        ("is_alaskan_native_owned_corporation_or_firm", "./isAlaskanNativeOwnedCorporationOrFirm", BOOL),
        ("is_american_indian_owned", "./isAmericanIndianOwned", BOOL),
        ("is_indian_tribe", "./isIndianTribe", BOOL),
        ("is_native_hawaiian_owned_organization_or_firm", "./isNativeHawaiianOwnedOrganizationOrFirm", BOOL),
        ("is_tribally_owned_firm", "./isTriballyOwnedFirm", BOOL),
        ("is_veteran_owned", "./isVeteranOwned", BOOL),
        ("is_service_related_disabled_veteran_owned_business",
         "./isServiceRelatedDisabledVeteranOwnedBusiness", BOOL),
        ("is_women_owned", "./isWomenOwned", BOOL),
        ("is_women_owned_small_business", "./isWomenOwnedSmallBusiness", BOOL),
        ("is_economically_disadvantaged_women_owned_small_business",
         "./isEconomicallyDisadvantagedWomenOwnedSmallBusiness", BOOL),
        ("is_joint_venture_women_owned_small_business", "./isJointVentureWomenOwnedSmallBusiness", BOOL),
        ("is_joint_venture_economically_disadvantaged_women_owned_small_business",
         "./isJointVentureEconomicallyDisadvantagedWomenOwnedSmallBusiness", BOOL),
        ("is_small_business", "./isSmallBusiness", BOOL),
        ("is_very_small_business", "./isVerySmallBusiness", BOOL),
    ]),
    (".//vendorSocioEconomicIndicators/minorityOwned", [
        ("is_minority_owned", "./isMinorityOwned", BOOL),
        ("is_subcontinent_asian_american_owned_business", "./isSubContinentAsianAmericanOwnedBusiness", BOOL),
        ("is_asian_pacific_american_owned_business", "./isAsianPacificAmericanOwnedBusiness", BOOL),
        ("is_black_american_owned_business", "./isBlackAmericanOwnedBusiness", BOOL),
        ("is_hispanic_american_owned_business", "./isHispanicAmericanOwnedBusiness", BOOL),
        ("is_native_american_owned_business", "./isNativeAmericanOwnedBusiness", BOOL),
        ("is_other_minority_owned", "./isOtherMinorityOwned", BOOL),
    ]),
    (".//vendorBusinessTypes", [
        ("is_community_developed_corporation_owned_firm", "./isCommunityDevelopedCorporationOwnedFirm", BOOL),
        ("is_labor_surplus_area_firm", "./isLaborSurplusAreaFirm", BOOL),
        ("is_state_government", "./isStateGovernment", BOOL),
        ("is_tribal_government", "./isTribalGovernment", BOOL),
        ("is_foreign_government", "./isForeignGovernment", BOOL),
    ]),
    (".//vendorBusinessTypes/federalGovernment", [
        ("is_federal_government", "./isFederalGovernment", BOOL),
        ("is_federally_funded_research_and_development_corp",
         "./isFederallyFundedResearchAndDevelopmentCorp", BOOL),
        ("is_federal_government_agency", "./isFederalGovernmentAgency", BOOL),
    ]),
    (".//vendorBusinessTypes/localGovernment", [
        ("is_local_government", "./isLocalGovernment", BOOL),
        ("is_city_local_government", "./isCityLocalGovernment", BOOL),
        ("is_county_local_government", "./isCountyLocalGovernment", BOOL),
        ("is_inter_municipal_local_government", "./isInterMunicipalLocalGovernment", BOOL),
        ("is_local_government_owned", "./isLocalGovernmentOwned", BOOL),
        ("is_municipality_local_government", "./isMunicipalityLocalGovernment", BOOL),
        ("is_school_district_local_government", "./isSchoolDistrictLocalGovernment", BOOL),
        ("is_township_local_government", "./isTownshipLocalGovernment", BOOL),
    ]),
    (".//vendorBusinessTypes/businessOrOrganizationType", [
        ("is_corporate_entity_not_tax_exempt", "./isCorporateEntityNotTaxExempt", BOOL),
        ("is_corporate_entity_tax_exempt", "./isCorporateEntityTaxExempt", BOOL),
        ("is_partnership_or_limited_liability_partnership", "./isPartnershipOrLimitedLiabilityPartnership", BOOL),
        # FPDS spells this element "Propreitorship"
        ("is_sole_proprietorship", "./isSolePropreitorship", BOOL),
        ("is_small_agricultural_cooperative", "./isSmallAgriculturalCooperative", BOOL),
        ("is_international_organization", "./isInternationalOrganization", BOOL),
        ("is_us_government_entity", "./isUSGovernmentEntity", BOOL),
    ]),
    (".//vendorCertifications", [
        ("is_dot_certified_disadvantaged_business_enterprise", "./isDOTCertifiedDisadvantagedBusinessEnterprise", BOOL),
        ("is_self_certified_small_disadvantaged_business", "./isSelfCertifiedSmallDisadvantagedBusiness", BOOL),
        ("is_sba_certified_small_disadvantaged_business", "./isSBACertifiedSmallDisadvantagedBusiness", BOOL),
        ("is_sba_certified_8a_program_participant", "./isSBACertified8AProgramParticipant", BOOL),
        ("is_self_certified_hubzone_joint_venture", "./isSelfCertifiedHUBZoneJointVenture", BOOL),
        ("is_sba_certified_hubzone", "./isSBACertifiedHUBZone", BOOL),
        ("is_sba_certified_8a_joint_venture", "./isSBACertified8AJointVenture", BOOL),
    ]),
    (".//vendorOrganizationFactors", [
        ("organizational_type", "./organizationalType", TEXT),
        ("is_sheltered_workshop", "./isShelteredWorkshop", BOOL),
        ("is_limited_liability_corporation", "./isLimitedLiabilityCorporation", BOOL),
        ("is_subchapter_s_corporation", "./isSubchapterSCorporation", BOOL),
        ("is_foreign_owned_and_located", "./isForeignOwnedAndLocated", BOOL),
        ("country_of_incorporation", "./countryOfIncorporation", TEXT),
        ("state_of_incorporation", "./stateOfIncorporation", TEXT),
    ]),
    (".//vendorOrganizationFactors/profitStructure", [
        ("is_for_profit_organization", "./isForProfitOrganization", BOOL),
        ("is_nonprofit_organization", "./isNonprofitOrganization", BOOL),
        ("is_other_not_for_profit_organization", "./isOtherNotForProfitOrganization", BOOL),
    ]),
    (".//typeOfEducationalEntity", [
        ("is_1862_land_grant_college", "./is1862LandGrantCollege", BOOL),
        ("is_1890_land_grant_college", "./is1890LandGrantCollege", BOOL),
        ("is_1994_land_grant_college", "./is1994LandGrantCollege", BOOL),
        ("is_historically_black_college_or_university", "./isHistoricallyBlackCollegeOrUniversity", BOOL),
        ("is_minority_institution", "./isMinorityInstitution", BOOL),
        ("is_private_university_or_college", "./isPrivateUniversityOrCollege", BOOL),
        ("is_school_of_forestry", "./isSchoolOfForestry", BOOL),
        ("is_state_controlled_institution_of_higher_learning",
         "./isStateControlledInstitutionofHigherLearning", BOOL),
        ("is_tribal_college", "./isTribalCollege", BOOL),
        ("is_veterinary_college", "./isVeterinaryCollege", BOOL),
        ("is_alaskan_native_servicing_institution", "./isAlaskanNativeServicingInstitution", BOOL),
        ("is_native_hawaiian_servicing_institution", "./isNativeHawaiianServicingInstitution", BOOL),
    ]),
    (".//typeOfGovernmentEntity", [
        ("is_airport_authority", "./isAirportAuthority", BOOL),
        ("is_council_of_governments", "./isCouncilOfGovernments", BOOL),
        ("is_housing_authorities_public_or_tribal", "./isHousingAuthoritiesPublicOrTribal", BOOL),
        ("is_interstate_entity", "./isInterstateEntity", BOOL),
        ("is_planning_commission", "./isPlanningCommission", BOOL),
        ("is_port_authority", "./isPortAuthority", BOOL),
        ("is_transit_authority", "./isTransitAuthority", BOOL),
    ]),
    (".//vendorRelationshipWithFederalGovernment", [
        ("receives_contracts", "./receivesContracts", BOOL),
        ("receives_grants", "./receivesGrants", BOOL),
        ("receives_contracts_and_grants", "./receivesContractsAndGrants", BOOL),
    ]),
]

_HEADER_FIELDS = [
    ("vendor_name", "./vendorName", TEXT),
    ("vendor_alternate_name", "./vendorAlternateName", TEXT),
    ("vendor_legal_organization_name", "./vendorLegalOrganizationName", TEXT),
    ("vendor_doing_business_as_name", "./vendorDoingBusinessAsName", TEXT),
    ("vendor_enabled", "./vendorEnabled", BOOL),
]


def _read_section(node: Optional[Element], fields) -> Fields:
    if node is None:
        return {}
    values = {}
    for column, path, kind in fields:
        values[column] = _VALUE_PARSERS[kind](xt(node, path))
    return _compact(values)


def extract_vendor_details(cn: Element) -> Optional[Fields]:
    """
    Vendor snapshot for ContractVendorDetail.

    Returns None when the document has no ``vendor``/``vendorSiteDetails``
    block at all.
    """
    vendor = first(cn, ".//vendor")
    if vendor is None:
        return None
    site = first(vendor, ".//vendorSiteDetails")
    if site is None:
        return None

    details = _read_section(first(vendor, ".//vendorHeader"), _HEADER_FIELDS)
    for section_path, fields in _SITE_SECTIONS:
        section = site if section_path == "." else first(site, section_path)
        details.update(_read_section(section, fields))
    return details


# ============================================================================
# Treasury accounts
# ============================================================================

_TREASURY_SYMBOL = [
    ("agency_identifier", "agencyIdentifier"),
    ("main_account_code", "mainAccountCode"),
    ("sub_account_code", "subAccountCode"),
    ("sub_level_prefix_code", "subLevelPrefixCode"),
    ("allocation_transfer_agency_identifier", "allocationTransferAgencyIdentifier"),
    ("beginning_period_of_availability", "beginningPeriodOfAvailability"),
    ("ending_period_of_availability", "endingPeriodOfAvailability"),
    ("availability_type_code", "availabilityTypeCode"),
]


def extract_treasury_accounts(cn: Element) -> List[Fields]:
    accounts = []
    for account in cn.xpath(".//listOfTreasuryAccounts/treasuryAccount"):
        values = _text_group(account, ".//treasuryAccountSymbol", _TREASURY_SYMBOL)
        initiative = xt(account, "./initiative")
        if initiative:
            values["initiative"] = initiative
        if values:
            accounts.append(values)
    return accounts


# ============================================================================
# Dimension references
# ============================================================================

def _coded(cn: Element, xpath: str, attr: str) -> Tuple[Optional[str], Optional[str]]:
    return xt(cn, xpath), xa(cn, xpath, attr)


def extract_references(cn: Element) -> Fields:
    """
    Business keys (and display names) of every dimension the entry points at.

    Keys are None when the document does not carry them.
    """
    purchaser = ".//purchaserInformation"
    product = ".//productOrServiceInformation"

    contracting_agency, contracting_agency_name = _coded(cn, f"{purchaser}/contractingOfficeAgencyID", "name")
    funding_agency, funding_agency_name = _coded(cn, f"{purchaser}/fundingRequestingAgencyID", "name")
    contracting_office, contracting_office_name = _coded(cn, f"{purchaser}/contractingOfficeID", "name")
    funding_office, funding_office_name = _coded(cn, f"{purchaser}/fundingRequestingOfficeID", "name")
    psc, psc_description = _coded(cn, f"{product}/productOrServiceCode", "description")
    naics, naics_description = _coded(cn, f"{product}/principalNAICSCode", "description")

    return {
        "uei": xt(cn, ".//vendorSiteDetails/entityIdentifiers/vendorUEIInformation/UEI"),
        "vendor_name": xt(cn, ".//vendorHeader/vendorName") or "N/A",
        "contracting_agency_code": contracting_agency,
        "contracting_agency_name": contracting_agency_name,
        "funding_agency_code": funding_agency,
        "funding_agency_name": funding_agency_name,
        "contracting_office_code": contracting_office,
        "contracting_office_name": contracting_office_name,
        "funding_office_code": funding_office,
        "funding_office_name": funding_office_name,
        "psc_code": psc,
        "psc_description": psc_description,
        "naics_code": naics,
        "naics_description": naics_description,
    }


# ============================================================================
# JSON document
# ============================================================================

def element_to_dict(el: Element) -> Any:
    """
    Convert an element subtree into JSON-compatible data.

    Attributes become ``@name`` keys, repeated children become lists and a
    leaf without attributes collapses to its text.
    """
    children = [c for c in el if isinstance(c.tag, str)]
    text = (el.text or "").strip() or None

    if not children and not el.attrib:
        return text

    node: Dict[str, Any] = {f"@{etree.QName(k).localname}": v for k, v in el.attrib.items()}
    for child in children:
        key = etree.QName(child).localname
        value = element_to_dict(child)
        if key in node:
            if not isinstance(node[key], list):
                node[key] = [node[key]]
            node[key].append(value)
        else:
            node[key] = value
    if text is not None:
        node["#text"] = text
    return node


def content_document(cn: Element) -> Dict[str, Any]:
    return {etree.QName(cn).localname: element_to_dict(cn)}
