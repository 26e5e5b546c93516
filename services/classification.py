"""Rule-based classification of imported contacts and companies.

Patterns are checked in order and the first match wins, so more specific
patterns sit above generic ones (e.g. "vice chair" before "director").
"""
import re
from typing import NamedTuple, Optional


class ContactClassification(NamedTuple):
    contact_type: str
    contact_subtype: str


class CompanyClassification(NamedTuple):
    entity_type: str
    entity_subtype: str
    listing_status: str


def _rules(*entries: tuple[str, str, str]) -> list[tuple[re.Pattern, str, str]]:
    return [(re.compile(pattern, re.IGNORECASE), kind, subtype) for pattern, kind, subtype in entries]


_TITLE_RULES = _rules(
    # board_member (before director)
    (r"\bchairman\b", "board_member", "chairman"),
    (r"\bchairwoman\b", "board_member", "chairman"),
    (r"\bchairperson\b", "board_member", "chairman"),
    (r"\bvice[\s-]?chair", "board_member", "vice_chairman"),
    (r"\bboard\s+observer\b", "board_member", "board_observer"),
    # founder
    (r"\bco[\s-]?founder\b", "founder", "co_founder"),
    (r"\btechnical\s+founder\b", "founder", "technical_founder"),
    (r"\bfounder\b", "founder", "sole_founder"),
    # director
    (r"\bindependent\s+(non[\s-]?executive\s+)?director\b", "director", "independent_director"),
    (r"\bnon[\s-]?executive\s+director\b", "director", "non_executive_director"),
    (r"\bexecutive\s+director\b", "director", "executive_director"),
    (r"\balternate\s+director\b", "director", "alternate_director"),
    # shareholder
    (r"\bbeneficial\s+owner\b", "shareholder", "beneficial_owner"),
    (r"\bcontrolling\s+shareholder\b", "shareholder", "controlling_shareholder"),
    (r"\bmajor\s+shareholder\b", "shareholder", "major_shareholder"),
    (r"\bshareholder\b", "shareholder", "major_shareholder"),
    # advisor
    (r"\bfinancial\s+advi[sz](?:o|e)r\b", "advisor", "financial_advisor"),
    (r"\blegal\s+(advi[sz](?:o|e)r|counsel)\b", "advisor", "legal_advisor"),
    (r"\btechnical\s+advi[sz](?:o|e)r\b", "advisor", "technical_advisor"),
    (r"\bstrategic\s+advi[sz](?:o|e)r\b", "advisor", "strategic_advisor"),
    (r"\badvi[sz](?:o|e)r\b", "advisor", "strategic_advisor"),
    # key_person
    (r"\bcompany\s+secretary\b", "key_person", "company_secretary"),
    (r"\btrustee\b", "key_person", "trustee"),
    # employee: c-suite
    (r"\b(ceo|chief\s+executive)\b", "employee", "c_suite"),
    (r"\b(cfo|chief\s+financial)\b", "employee", "c_suite"),
    (r"\b(cto|chief\s+technology|chief\s+technical)\b", "employee", "c_suite"),
    (r"\b(coo|chief\s+operating)\b", "employee", "c_suite"),
    (r"\b(cio|chief\s+information|chief\s+investment)\b", "employee", "c_suite"),
    (r"\bchief\s+\w+\s+officer\b", "employee", "c_suite"),
    # employee: senior management
    (r"\bmanaging\s+director\b", "employee", "senior_management"),
    (r"\bsenior\s+vice\s+president\b", "employee", "senior_management"),
    (r"\b(svp|evp)\b", "employee", "senior_management"),
    (r"\bpartner\b", "employee", "senior_management"),
    (r"\bprincipal\b", "employee", "senior_management"),
    # employee: middle management
    (r"\bvice\s+president\b", "employee", "middle_management"),
    (r"\bvp\b", "employee", "middle_management"),
    (r"\bdirector\b", "employee", "middle_management"),
    (r"\bhead\s+of\b", "employee", "middle_management"),
    (r"\bgeneral\s+manager\b", "employee", "middle_management"),
    # employee: professional
    (r"\bsenior\s+analyst\b", "employee", "professional"),
    (r"\banalyst\b", "employee", "professional"),
    (r"\bassociate\b", "employee", "professional"),
    (r"\bspecialist\b", "employee", "professional"),
    (r"\bengineer\b", "employee", "professional"),
    # employee: operations
    (r"\boperation", "employee", "operations"),
    (r"\bcompliance\b", "employee", "operations"),
    (r"\badmin", "employee", "operations"),
    # person
    (r"\bsenator\b|\bminister\b|\bgovernor\b|\bcommissioner\b|\bregulat", "person", "government_official"),
    (r"\bjournalist\b|\breporter\b|\beditor\b", "person", "journalist"),
    (r"\bprofessor\b|\bresearch", "person", "academic"),
)

_COMPANY_NAME_RULES = _rules(
    # investment firms
    (r"\bventure", "investment_firm", "venture_capital"),
    (r"\bhedge\s+fund", "investment_firm", "hedge_fund"),
    (r"\bquant", "investment_firm", "quant_fund"),
    (r"\bpension", "investment_firm", "pension_fund"),
    (r"\bsovereign\s+wealth", "investment_firm", "sovereign_wealth_fund"),
    (r"\bendowment", "investment_firm", "endowment"),
    (r"\bfund\s+of\s+funds", "investment_firm", "fund_of_funds"),
    (r"\bmezzanine", "investment_firm", "mezzanine"),
    (r"\bdistressed", "investment_firm", "distressed_debt"),
    (r"\bprivate\s+equity", "investment_firm", "private_equity"),
    (r"\bprivate\s+credit", "investment_firm", "credit_fund"),
    (r"\bgrowth\s+equity", "investment_firm", "growth_equity"),
    (r"\bfamily\s+office", "investment_firm", "family_office"),
    (r"\breal\s+estate\s+(fund|invest)", "investment_firm", "real_estate_fund"),
    (r"\binfrastructure\s+(fund|invest)", "investment_firm", "infrastructure_fund"),
    (r"\bcapital\b", "investment_firm", "private_equity"),
    (r"\bpartners\b", "investment_firm", "private_equity"),
    (r"\bventures\b", "investment_firm", "venture_capital"),
    (r"\basset\s+management", "investment_firm", "hedge_fund"),
    (r"\binvestment\s+management", "investment_firm", "hedge_fund"),
    # service providers
    (r"\blaw\s+(firm|office|group)|legal\s+(llp|partners)", "service_provider", "law_firm"),
    (r"\b(deloitte|kpmg|ey\b|pwc|ernst\s*&\s*young|pricewaterhouse)", "service_provider", "accounting_firm"),
    (r"\baccounting|audit", "service_provider", "accounting_firm"),
    (r"\b(goldman\s+sachs|morgan\s+stanley|jp\s*morgan|citi|barclays|ubs|credit\s+suisse|lazard|evercore|moelis|rothschild)",
     "service_provider", "investment_bank"),
    (r"\binvestment\s+bank", "service_provider", "investment_bank"),
    (r"\bcorporate\s+advis", "service_provider", "corporate_advisory"),
    (r"\bbroker", "service_provider", "broker_dealer"),
    (r"\bconsult", "service_provider", "consulting_firm"),
    (r"\btransfer\s+agent|share\s+regist", "service_provider", "transfer_agent"),
    (r"\bfund\s+admin", "service_provider", "fund_administrator"),
    # mining
    (r"\broyalt|streaming", "mining_company", "royalty_streaming"),
    (r"\bexplor", "mining_company", "explorer"),
    (r"\bmining|resources|minerals", "mining_company", "producer"),
    # other
    (r"\bexchange\b|clearing", "other", "exchange"),
    (r"\b(asx|nyse|nasdaq|lse|hkex)\b", "other", "exchange"),
)

_INDUSTRY_RULES = _rules(
    (r"\bmining|resources|mineral|metals", "mining_company", "producer"),
    (r"\boil|gas|energy", "mining_company", "producer"),
    (r"\bfinancial\s+services|banking", "service_provider", "investment_bank"),
    (r"\blegal", "service_provider", "law_firm"),
    (r"\baccounting|audit", "service_provider", "accounting_firm"),
    (r"\bconsult", "service_provider", "consulting_firm"),
    (r"\btechnology|software|saas", "startup", "early_revenue"),
    (r"\bventure\s+capital|private\s+equity", "investment_firm", "venture_capital"),
)

DEFAULT_CONTACT = ContactClassification("person", "general")
DEFAULT_COMPANY = CompanyClassification("private_company", "sme", "unknown")


def classify_contact(title: Optional[str]) -> ContactClassification:
    """Infer contact type and subtype from a job title."""
    if not title or not title.strip():
        return DEFAULT_CONTACT
    for pattern, contact_type, subtype in _TITLE_RULES:
        if pattern.search(title):
            return ContactClassification(contact_type, subtype)
    return DEFAULT_CONTACT


def classify_company(
    name: str,
    industry: Optional[str] = None,
    ticker_symbol: Optional[str] = None,
) -> CompanyClassification:
    """Infer entity type, subtype and listing status from name, then industry."""
    listing_status = "listed" if ticker_symbol else "unknown"

    for pattern, entity_type, subtype in _COMPANY_NAME_RULES:
        if pattern.search(name):
            return CompanyClassification(entity_type, subtype, listing_status)

    if industry:
        for pattern, entity_type, subtype in _INDUSTRY_RULES:
            if pattern.search(industry):
                return CompanyClassification(entity_type, subtype, listing_status)

    if ticker_symbol:
        return CompanyClassification("listed_company", "small_cap", "listed")
    return DEFAULT_COMPANY
