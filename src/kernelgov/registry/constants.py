"""In-process L0 registry tables.

Application code refers to registry identifiers through these constants, never
through raw strings. The same tables can act as a registry source for snapshot
export when no database is reachable.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final, Literal

ConceptCategory = Literal["ENTITY", "ATTRIBUTE", "OPERATION", "RELATIONSHIP"]

CONCEPT: Final[MappingProxyType[str, str]] = MappingProxyType(
    {
        # ENTITY
        "BANK": "CONCEPT_BANK",
        "CASE": "CONCEPT_CASE",
        "CLAIM": "CONCEPT_CLAIM",
        "COMPANY": "CONCEPT_COMPANY",
        "COUNTRY": "CONCEPT_COUNTRY",
        "CURRENCY": "CONCEPT_CURRENCY",
        "DOCUMENT": "CONCEPT_DOCUMENT",
        "EXCEPTION": "CONCEPT_EXCEPTION",
        "INVOICE": "CONCEPT_INVOICE",
        "PARTY": "CONCEPT_PARTY",
        "RATING": "CONCEPT_RATING",
        "VENDOR": "CONCEPT_VENDOR",
        # ATTRIBUTE
        "APPROVAL_LEVEL": "CONCEPT_APPROVAL_LEVEL",
        "IDENTITY": "CONCEPT_IDENTITY",
        "PAYMENT_METHOD": "CONCEPT_PAYMENT_METHOD",
        "PRIORITY": "CONCEPT_PRIORITY",
        "RISK": "CONCEPT_RISK",
        "STATUS": "CONCEPT_STATUS",
        # OPERATION
        "APPROVAL": "CONCEPT_APPROVAL",
        "AUDIT": "CONCEPT_AUDIT",
        "DOCUMENT_REQUEST": "CONCEPT_DOCUMENT_REQUEST",
        "ESCALATION": "CONCEPT_ESCALATION",
        "ONBOARDING": "CONCEPT_ONBOARDING",
        "PAYMENT": "CONCEPT_PAYMENT",
        "REJECTION": "CONCEPT_REJECTION",
        "WORKFLOW": "CONCEPT_WORKFLOW",
        # RELATIONSHIP
        "GROUP_MEMBERSHIP": "CONCEPT_GROUP_MEMBERSHIP",
        "INVOICE_VENDOR_LINK": "CONCEPT_INVOICE_VENDOR_LINK",
        "RELATIONSHIP": "CONCEPT_RELATIONSHIP",
        "VENDOR_COMPANY_LINK": "CONCEPT_VENDOR_COMPANY_LINK",
    }
)

_CATEGORY_MEMBERS: Final[dict[ConceptCategory, tuple[str, ...]]] = {
    "ENTITY": (
        "BANK",
        "CASE",
        "CLAIM",
        "COMPANY",
        "COUNTRY",
        "CURRENCY",
        "DOCUMENT",
        "EXCEPTION",
        "INVOICE",
        "PARTY",
        "RATING",
        "VENDOR",
    ),
    "ATTRIBUTE": ("APPROVAL_LEVEL", "IDENTITY", "PAYMENT_METHOD", "PRIORITY", "RISK", "STATUS"),
    "OPERATION": (
        "APPROVAL",
        "AUDIT",
        "DOCUMENT_REQUEST",
        "ESCALATION",
        "ONBOARDING",
        "PAYMENT",
        "REJECTION",
        "WORKFLOW",
    ),
    "RELATIONSHIP": (
        "GROUP_MEMBERSHIP",
        "INVOICE_VENDOR_LINK",
        "RELATIONSHIP",
        "VENDOR_COMPANY_LINK",
    ),
}

CONCEPT_CATEGORY: Final[MappingProxyType[str, ConceptCategory]] = MappingProxyType(
    {
        CONCEPT[key]: category
        for category, keys in _CATEGORY_MEMBERS.items()
        for key in keys
    }
)

VALUESET: Final[MappingProxyType[str, str]] = MappingProxyType(
    {
        "APPROVAL_ACTION": "VALUESET_GLOBAL_APPROVAL_ACTION",
        "AUDIT_EVENT_TYPE": "VALUESET_GLOBAL_AUDIT_EVENT_TYPE",
        "COUNTRIES": "VALUESET_GLOBAL_COUNTRIES",
        "CURRENCIES": "VALUESET_GLOBAL_CURRENCIES",
        "DOCUMENT_TYPE": "VALUESET_GLOBAL_DOCUMENT_TYPE",
        "IDENTITY_TYPE": "VALUESET_GLOBAL_IDENTITY_TYPE",
        "PARTY_TYPE": "VALUESET_GLOBAL_PARTY_TYPE",
        "PRIORITY_LEVEL": "VALUESET_GLOBAL_PRIORITY_LEVEL",
        "RELATIONSHIP_TYPE": "VALUESET_GLOBAL_RELATIONSHIP_TYPE",
        "RISK_FLAG": "VALUESET_GLOBAL_RISK_FLAG",
        "STATUS_GENERAL": "VALUESET_GLOBAL_STATUS_GENERAL",
        "WORKFLOW_STATE": "VALUESET_GLOBAL_WORKFLOW_STATE",
    }
)

VALUE: Final[MappingProxyType[str, MappingProxyType[str, str]]] = MappingProxyType(
    {
        set_key: MappingProxyType(members)
        for set_key, members in {
            "APPROVAL_ACTION": {
                "SUBMITTED": "APP_SUBMITTED",
                "APPROVED": "APP_APPROVED",
                "REJECTED": "APP_REJECTED",
                "RETURNED": "APP_RETURNED",
                "CANCELLED": "APP_CANCELLED",
            },
            "AUDIT_EVENT_TYPE": {
                "CREATE": "AUD_CREATE",
                "UPDATE": "AUD_UPDATE",
                "DELETE": "AUD_DELETE",
                "RESTORE": "AUD_RESTORE",
                "APPROVE": "AUD_APPROVE",
                "REJECT": "AUD_REJECT",
                "LOGIN": "AUD_LOGIN",
            },
            "COUNTRIES": {
                "MALAYSIA": "COUNTRY_MY",
                "SINGAPORE": "COUNTRY_SG",
                "UNITED_STATES": "COUNTRY_US",
                "UNITED_KINGDOM": "COUNTRY_GB",
            },
            "CURRENCIES": {
                "USD": "CURRENCY_USD",
                "EUR": "CURRENCY_EUR",
                "MYR": "CURRENCY_MYR",
                "SGD": "CURRENCY_SGD",
                "GBP": "CURRENCY_GBP",
            },
            "DOCUMENT_TYPE": {
                "INVOICE": "DOC_INVOICE",
                "PURCHASE_ORDER": "DOC_PO",
                "GRN": "DOC_GRN",
                "DELIVERY_NOTE": "DOC_DN",
                "CREDIT_NOTE": "DOC_CN",
                "CONTRACT": "DOC_CONTRACT",
                "PROOF_OF_DELIVERY": "DOC_POD",
                "STATEMENT_OF_ACCOUNT": "DOC_SOA",
                "OTHER": "DOC_OTHER",
            },
            "IDENTITY_TYPE": {
                "EMAIL": "ID_EMAIL",
                "PHONE": "ID_PHONE",
                "REGISTRATION_NO": "ID_REG_NO",
                "TAX_ID": "ID_TAX_ID",
                "UUID": "ID_UUID",
            },
            "PARTY_TYPE": {
                "TENANT": "PARTY_TENANT",
                "CLIENT": "PARTY_CLIENT",
                "VENDOR": "PARTY_VENDOR",
                "USER": "PARTY_USER",
                "AGENT": "PARTY_AGENT",
            },
            "PRIORITY_LEVEL": {
                "LOW": "PRI_LOW",
                "MEDIUM": "PRI_MEDIUM",
                "HIGH": "PRI_HIGH",
                "URGENT": "PRI_URGENT",
            },
            "RELATIONSHIP_TYPE": {
                "CLIENT_OF": "REL_CLIENT_OF",
                "VENDOR_OF": "REL_VENDOR_OF",
                "BELONGS_TO": "REL_BELONGS_TO",
                "MANAGED_BY": "REL_MANAGED_BY",
            },
            "RISK_FLAG": {
                "NONE": "RISK_NONE",
                "LOW": "RISK_LOW",
                "MEDIUM": "RISK_MEDIUM",
                "HIGH": "RISK_HIGH",
                "CRITICAL": "RISK_CRITICAL",
            },
            "STATUS_GENERAL": {
                "ACTIVE": "STATUS_ACTIVE",
                "INACTIVE": "STATUS_INACTIVE",
                "SUSPENDED": "STATUS_SUSPENDED",
                "ARCHIVED": "STATUS_ARCHIVED",
            },
            "WORKFLOW_STATE": {
                "DRAFT": "WF_DRAFT",
                "PENDING": "WF_PENDING",
                "IN_REVIEW": "WF_IN_REVIEW",
                "COMPLETED": "WF_COMPLETED",
                "FAILED": "WF_FAILED",
            },
        }.items()
    }
)

CONCEPT_COUNT: Final[int] = 30
VALUESET_COUNT: Final[int] = 12
VALUE_COUNT: Final[int] = 62


def validate_constant_counts() -> tuple[str, ...]:
    errors: list[str] = []
    if len(CONCEPT) != CONCEPT_COUNT:
        errors.append(f"concept count mismatch: expected {CONCEPT_COUNT}, got {len(CONCEPT)}")
    if len(CONCEPT_CATEGORY) != len(CONCEPT):
        errors.append("every concept must have exactly one category")
    if len(VALUESET) != VALUESET_COUNT:
        errors.append(f"value set count mismatch: expected {VALUESET_COUNT}, got {len(VALUESET)}")
    value_count = sum(len(members) for members in VALUE.values())
    if value_count != VALUE_COUNT:
        errors.append(f"value count mismatch: expected {VALUE_COUNT}, got {value_count}")
    unknown_sets = sorted(set(VALUE) - set(VALUESET))
    if unknown_sets:
        errors.append(f"values reference unknown value sets: {', '.join(unknown_sets)}")
    return tuple(errors)
