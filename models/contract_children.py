from sqlalchemy import (
    Column, String, Integer, Boolean, Date, Text, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from models.base import Base, BigIntPK


class ContractVendorDetail(Base):
    """
    Vendor socio-economic and certification snapshot at the time of award.

    Zero or one per ContractAction. Flags are tri-state: True, False or
    NULL when the feed did not carry the indicator.
    """
    __tablename__ = "contract_vendor_details"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    contract_action_id = Column(
        BigIntPK, ForeignKey("contract_actions.id"), nullable=False, unique=True
    )

    # Header
    vendor_name = Column(Text, nullable=True)
    vendor_alternate_name = Column(Text, nullable=True)
    vendor_legal_organization_name = Column(Text, nullable=True)
    vendor_doing_business_as_name = Column(Text, nullable=True)
    vendor_enabled = Column(Boolean, nullable=True)

    # Entity identifiers
    uei = Column(String(32), nullable=True, index=True)
    ultimate_parent_uei = Column(String(32), nullable=True)
    uei_legal_business_name = Column(Text, nullable=True)
    ultimate_parent_uei_name = Column(Text, nullable=True)
    cage_code = Column(String(64), nullable=True)

    # Location
    street_address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(64), nullable=True)
    zip_code = Column(String(64), nullable=True)
    country_code = Column(String(64), nullable=True)
    phone_no = Column(String(64), nullable=True)
    fax_no = Column(String(64), nullable=True)
    congressional_district = Column(String(64), nullable=True)
    vendor_location_disabled_flag = Column(Boolean, nullable=True)
    entity_data_source = Column(String(64), nullable=True)

    # Registration
    registration_date = Column(Date, nullable=True)
    renewal_date = Column(Date, nullable=True)
    vendor_alternate_site_code = Column(String(64), nullable=True)

    # Socio-economic indicators
    is_alaskan_native_owned_corporation_or_firm = Column(Boolean, nullable=True)
    is_american_indian_owned = Column(Boolean, nullable=True)
    is_indian_tribe = Column(Boolean, nullable=True)
    is_native_hawaiian_owned_organization_or_firm = Column(Boolean, nullable=True)
    is_tribally_owned_firm = Column(Boolean, nullable=True)
    is_veteran_owned = Column(Boolean, nullable=True)
    is_service_related_disabled_veteran_owned_business = Column(Boolean, nullable=True)
    is_women_owned = Column(Boolean, nullable=True)
    is_women_owned_small_business = Column(Boolean, nullable=True)
    is_economically_disadvantaged_women_owned_small_business = Column(Boolean, nullable=True)
    is_joint_venture_women_owned_small_business = Column(Boolean, nullable=True)
    is_joint_venture_economically_disadvantaged_women_owned_small_business = Column(Boolean, nullable=True)
    is_small_business = Column(Boolean, nullable=True)
    is_very_small_business = Column(Boolean, nullable=True)

    # Minority owned
    is_minority_owned = Column(Boolean, nullable=True)
    is_subcontinent_asian_american_owned_business = Column(Boolean, nullable=True)
    is_asian_pacific_american_owned_business = Column(Boolean, nullable=True)
    is_black_american_owned_business = Column(Boolean, nullable=True)
    is_hispanic_american_owned_business = Column(Boolean, nullable=True)
    is_native_american_owned_business = Column(Boolean, nullable=True)
    is_other_minority_owned = Column(Boolean, nullable=True)

    # Business types
    is_community_developed_corporation_owned_firm = Column(Boolean, nullable=True)
    is_labor_surplus_area_firm = Column(Boolean, nullable=True)
    is_federal_government = Column(Boolean, nullable=True)
    is_federally_funded_research_and_development_corp = Column(Boolean, nullable=True)
    is_federal_government_agency = Column(Boolean, nullable=True)
    is_state_government = Column(Boolean, nullable=True)
    is_local_government = Column(Boolean, nullable=True)
    is_city_local_government = Column(Boolean, nullable=True)
    is_county_local_government = Column(Boolean, nullable=True)
    is_inter_municipal_local_government = Column(Boolean, nullable=True)
    is_local_government_owned = Column(Boolean, nullable=True)
    is_municipality_local_government = Column(Boolean, nullable=True)
    is_school_district_local_government = Column(Boolean, nullable=True)
    is_township_local_government = Column(Boolean, nullable=True)
    is_tribal_government = Column(Boolean, nullable=True)
    is_foreign_government = Column(Boolean, nullable=True)
    is_corporate_entity_not_tax_exempt = Column(Boolean, nullable=True)
    is_corporate_entity_tax_exempt = Column(Boolean, nullable=True)
    is_partnership_or_limited_liability_partnership = Column(Boolean, nullable=True)
    is_sole_proprietorship = Column(Boolean, nullable=True)
    is_small_agricultural_cooperative = Column(Boolean, nullable=True)
    is_international_organization = Column(Boolean, nullable=True)
    is_us_government_entity = Column(Boolean, nullable=True)

    # Certifications
    is_dot_certified_disadvantaged_business_enterprise = Column(Boolean, nullable=True)
    is_self_certified_small_disadvantaged_business = Column(Boolean, nullable=True)
    is_sba_certified_small_disadvantaged_business = Column(Boolean, nullable=True)
    is_sba_certified_8a_program_participant = Column(Boolean, nullable=True)
    is_self_certified_hubzone_joint_venture = Column(Boolean, nullable=True)
    is_sba_certified_hubzone = Column(Boolean, nullable=True)
    is_sba_certified_8a_joint_venture = Column(Boolean, nullable=True)

    # Organization factors
    organizational_type = Column(String(64), nullable=True)
    is_sheltered_workshop = Column(Boolean, nullable=True)
    is_limited_liability_corporation = Column(Boolean, nullable=True)
    is_subchapter_s_corporation = Column(Boolean, nullable=True)
    is_foreign_owned_and_located = Column(Boolean, nullable=True)
    country_of_incorporation = Column(String(64), nullable=True)
    state_of_incorporation = Column(String(64), nullable=True)
    is_for_profit_organization = Column(Boolean, nullable=True)
    is_nonprofit_organization = Column(Boolean, nullable=True)
    is_other_not_for_profit_organization = Column(Boolean, nullable=True)

    # Educational entity
    is_1862_land_grant_college = Column(Boolean, nullable=True)
    is_1890_land_grant_college = Column(Boolean, nullable=True)
    is_1994_land_grant_college = Column(Boolean, nullable=True)
    is_historically_black_college_or_university = Column(Boolean, nullable=True)
    is_minority_institution = Column(Boolean, nullable=True)
    is_private_university_or_college = Column(Boolean, nullable=True)
    is_school_of_forestry = Column(Boolean, nullable=True)
    is_state_controlled_institution_of_higher_learning = Column(Boolean, nullable=True)
    is_tribal_college = Column(Boolean, nullable=True)
    is_veterinary_college = Column(Boolean, nullable=True)
    is_alaskan_native_servicing_institution = Column(Boolean, nullable=True)
    is_native_hawaiian_servicing_institution = Column(Boolean, nullable=True)

    # Government entity
    is_airport_authority = Column(Boolean, nullable=True)
    is_council_of_governments = Column(Boolean, nullable=True)
    is_housing_authorities_public_or_tribal = Column(Boolean, nullable=True)
    is_interstate_entity = Column(Boolean, nullable=True)
    is_planning_commission = Column(Boolean, nullable=True)
    is_port_authority = Column(Boolean, nullable=True)
    is_transit_authority = Column(Boolean, nullable=True)

    # Relationship with the federal government
    receives_contracts = Column(Boolean, nullable=True)
    receives_grants = Column(Boolean, nullable=True)
    receives_contracts_and_grants = Column(Boolean, nullable=True)

    contract_action = relationship("ContractAction", back_populates="vendor_detail")


class TreasuryAccount(Base):
    """Treasury account symbol funding a ContractAction (zero or many)."""
    __tablename__ = "treasury_accounts"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    contract_action_id = Column(BigIntPK, ForeignKey("contract_actions.id"), nullable=False)

    agency_identifier = Column(String(64), nullable=True)
    main_account_code = Column(String(64), nullable=True)
    sub_account_code = Column(String(64), nullable=True)
    sub_level_prefix_code = Column(String(64), nullable=True)
    allocation_transfer_agency_identifier = Column(String(64), nullable=True)
    beginning_period_of_availability = Column(String(64), nullable=True)
    ending_period_of_availability = Column(String(64), nullable=True)
    availability_type_code = Column(String(64), nullable=True)
    initiative = Column(Text, nullable=True)

    contract_action = relationship("ContractAction", back_populates="treasury_accounts")

    __table_args__ = (
        Index("idx_treasury_accounts_action", "contract_action_id"),
    )
