from sqlalchemy import (
    Column, String, Integer, DateTime, Date, Float, Text, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from models.base import Base, BigIntPK, JSONDocument


def _utcnow():
    return datetime.now(timezone.utc)


class ContractAction(Base):
    """
    One row per FPDS ATOM feed entry (an award or IDV action).

    Identity:
    - atom_entry_id = sha256(title + "-" + modified.iso8601(ms)), unique.
      It is the idempotency key that prevents reprocessing a feed entry.

    Column groups mirror the normalizer's field groups: identification,
    competition, contract data, dollar values, legislative mandates,
    place of performance, dates, transaction information, marketing,
    product/service information and miscellaneous. Anything not promoted
    to a column is still available in ``atom_content``.
    """
    __tablename__ = "contract_actions"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    # Feed identity
    atom_entry_id = Column(String(64), unique=True, nullable=False)
    atom_title = Column(Text, nullable=True)
    atom_feed_modified_date = Column(DateTime(timezone=True), nullable=True)
    record_type = Column(String(64), nullable=True)

    # Identification
    piid = Column(String(64), nullable=False)
    modification_number = Column(String(64), nullable=False, default="0")
    transaction_number = Column(String(64), nullable=True)
    referenced_idv_piid = Column(String(64), nullable=True)
    referenced_idv_mod_number = Column(String(64), nullable=True)
    referenced_idv_agency_id = Column(String(64), nullable=True)

    # Dimension references (vendor is mandatory)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    agency_id = Column(Integer, ForeignKey("agencies.id"), nullable=True)
    contracting_office_id = Column(Integer, ForeignKey("government_offices.id"), nullable=True)
    funding_agency_id = Column(Integer, ForeignKey("agencies.id"), nullable=True)
    funding_office_id = Column(Integer, ForeignKey("government_offices.id"), nullable=True)
    product_or_service_code_id = Column(Integer, ForeignKey("product_or_service_codes.id"), nullable=True)
    naics_code_id = Column(Integer, ForeignKey("naics_codes.id"), nullable=True)

    # Core contract description
    description_of_requirement = Column(Text, nullable=True)
    action_type_code = Column(String(64), nullable=True)
    action_type_description = Column(Text, nullable=True)
    pricing_type_code = Column(String(64), nullable=True)
    pricing_type_description = Column(Text, nullable=True)
    reason_for_modification = Column(Text, nullable=True)

    # Dollar values
    obligated_amount = Column(Float, nullable=True)
    base_and_exercised_options_value = Column(Float, nullable=True)
    base_and_all_options_value = Column(Float, nullable=True)
    total_estimated_order_value = Column(Float, nullable=True)
    total_obligated_amount = Column(Float, nullable=True)
    total_base_and_all_options_value = Column(Float, nullable=True)
    total_base_and_exercised_options_value = Column(Float, nullable=True)

    # Dates
    effective_date = Column(DateTime(timezone=True), nullable=True)
    signed_date = Column(Date, nullable=True)
    current_completion_date = Column(Date, nullable=True)
    ultimate_completion_date = Column(Date, nullable=True)
    last_date_to_order = Column(Date, nullable=True)
    completion_date = Column(Date, nullable=True)

    # Competition
    extent_competed = Column(String(64), nullable=True)
    solicitation_procedures = Column(String(64), nullable=True)
    type_of_set_aside = Column(String(64), nullable=True)
    type_of_set_aside_source = Column(String(64), nullable=True)
    evaluated_preference = Column(String(64), nullable=True)
    number_of_offers_received = Column(Integer, nullable=True)
    number_of_offers_source = Column(String(64), nullable=True)
    commercial_item_acquisition_procedures = Column(String(64), nullable=True)
    commercial_item_test_program = Column(String(64), nullable=True)
    a76_action = Column(String(64), nullable=True)
    fed_biz_opps = Column(String(64), nullable=True)
    local_area_set_aside = Column(String(64), nullable=True)
    fair_opportunity_limited_sources = Column(String(64), nullable=True)
    reason_not_competed = Column(String(64), nullable=True)
    competitive_procedures = Column(String(64), nullable=True)
    research = Column(String(64), nullable=True)
    small_business_competitiveness_demo = Column(String(64), nullable=True)
    idv_type_of_set_aside = Column(String(64), nullable=True)
    idv_number_of_offers_received = Column(Integer, nullable=True)

    # Contract data
    cost_or_pricing_data = Column(String(64), nullable=True)
    contract_financing = Column(String(64), nullable=True)
    gfe_gfp = Column(String(64), nullable=True)
    sea_transportation = Column(String(64), nullable=True)
    undefinitized_action = Column(String(64), nullable=True)
    consolidated_contract = Column(String(64), nullable=True)
    performance_based_service_contract = Column(String(64), nullable=True)
    multi_year_contract = Column(String(64), nullable=True)
    contingency_humanitarian_peacekeeping_operation = Column(String(64), nullable=True)
    purchase_card_as_payment_method = Column(String(64), nullable=True)
    number_of_actions = Column(Text, nullable=True)
    referenced_idv_type = Column(String(64), nullable=True)
    referenced_idv_multiple_or_single = Column(String(64), nullable=True)
    major_program_code = Column(String(100), nullable=True)
    national_interest_action_code = Column(String(64), nullable=True)
    cost_accounting_standards_clause = Column(String(64), nullable=True)
    inherently_governmental_function = Column(String(64), nullable=True)
    solicitation_id = Column(String(64), nullable=True)
    type_of_idc = Column(String(64), nullable=True)
    multiple_or_single_award_idc = Column(String(64), nullable=True)

    # Legislative mandates
    clinger_cohen_act = Column(String(64), nullable=True)
    construction_wage_rate_requirements = Column(String(64), nullable=True)
    labor_standards = Column(String(64), nullable=True)
    materials_supplies_articles_equipment = Column(String(64), nullable=True)
    interagency_contracting_authority = Column(String(64), nullable=True)
    other_statutory_authority = Column(Text, nullable=True)

    # Place of performance
    pop_street_address = Column(Text, nullable=True)
    pop_city = Column(String(100), nullable=True)
    pop_state_code = Column(String(64), nullable=True)
    pop_zip_code = Column(String(64), nullable=True)
    pop_country_code = Column(String(64), nullable=True)
    pop_congressional_district = Column(String(64), nullable=True)

    # Transaction information
    created_by = Column(String(255), nullable=True)
    created_date = Column(DateTime(timezone=True), nullable=True)
    last_modified_by = Column(String(255), nullable=True)
    transaction_status = Column(String(64), nullable=True)
    approved_by = Column(String(255), nullable=True)
    approved_date = Column(DateTime(timezone=True), nullable=True)
    closed_status = Column(String(64), nullable=True)
    closed_by = Column(String(255), nullable=True)
    closed_date = Column(DateTime(timezone=True), nullable=True)
    fpds_last_modified_date = Column(DateTime(timezone=True), nullable=True)

    # Contract marketing data
    fee_paid_for_use_of_service = Column(Text, nullable=True)
    who_can_use = Column(Text, nullable=True)
    ordering_procedure = Column(Text, nullable=True)
    individual_order_limit = Column(Text, nullable=True)
    type_of_fee_for_use_of_service = Column(String(64), nullable=True)
    contract_marketing_email = Column(String(255), nullable=True)

    # Product or service information
    claimant_program_code = Column(String(64), nullable=True)
    contract_bundling = Column(String(64), nullable=True)
    country_of_origin = Column(String(64), nullable=True)
    information_technology_commercial_item_category = Column(String(64), nullable=True)
    manufacturing_organization_type = Column(String(64), nullable=True)
    place_of_manufacture = Column(String(64), nullable=True)
    recovered_material_clauses = Column(String(64), nullable=True)
    system_equipment_code = Column(String(64), nullable=True)
    use_of_epa_designated_products = Column(String(64), nullable=True)

    # Miscellaneous
    foreign_funding = Column(String(64), nullable=True)
    contracting_officer_business_size_determination = Column(String(64), nullable=True)
    subcontract_plan = Column(String(64), nullable=True)

    # Raw payload tracking
    raw_xml_content_sha256 = Column(String(64), nullable=True)
    atom_content = Column(JSONDocument, nullable=True)

    # Ingestion tracking
    ingest_batch_id = Column(String(36), nullable=True, index=True)
    fetched_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    db_updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Relationships
    vendor = relationship("Vendor")
    vendor_detail = relationship("ContractVendorDetail", back_populates="contract_action", uselist=False)
    treasury_accounts = relationship("TreasuryAccount", back_populates="contract_action")

    __table_args__ = (
        Index("idx_contract_actions_piid_mod", "piid", "modification_number"),
        Index("idx_contract_actions_raw_sha", "raw_xml_content_sha256"),
        Index("idx_contract_actions_last_modified", "fpds_last_modified_date"),
        Index("idx_contract_actions_record_type", "record_type"),
    )
