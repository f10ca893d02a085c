from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Literal, Optional

from winadmin_reports.sources.base import EntityDetail

NONE = "None"
UNKNOWN = "Unknown"

MfaStatus = Literal["Enabled", "Disabled", "Error"]

# Report-level method categories, in display order.
METHOD_CATEGORIES: List[str] = [
    "AuthenticatorApp",
    "Phone",
    "Fido2",
    "WindowsHello",
    "SoftwareOath",
    "TemporaryAccessPass",
    "Email",
    "Password",
    "Other",
]

# Categories that do not count as a second factor on their own.
WEAK_CATEGORIES = frozenset({"Password", "Email", "TemporaryAccessPass", "Other"})

# Graph: matched as substring of the @odata.type, e.g.
# "#microsoft.graph.microsoftAuthenticatorAuthenticationMethod".
_GRAPH_TYPE_MARKERS = [
    ("microsoftauthenticator", "AuthenticatorApp"),
    ("phoneauthentication", "Phone"),
    ("fido2", "Fido2"),
    ("windowshelloforbusiness", "WindowsHello"),
    ("softwareoath", "SoftwareOath"),
    ("temporaryaccesspass", "TemporaryAccessPass"),
    ("emailauthentication", "Email"),
    ("passwordauthentication", "Password"),
]

# MSOnline StrongAuthenticationMethods.MethodType
_MSOL_METHOD_TYPES: Dict[str, str] = {
    "phoneappnotification": "AuthenticatorApp",
    "phoneappotp": "AuthenticatorApp",
    "onewaysms": "Phone",
    "twowayvoicemobile": "Phone",
    "twowayvoicealternatemobile": "Phone",
    "twowayvoiceoffice": "Phone",
}

MFA_COLUMNS: List[str] = [
    "UserPrincipalName",
    "DisplayName",
    "AccountEnabled",
    "MfaStatus",
    "DefaultMethod",
    "Methods",
    "CheckedAt",
    "Error",
]


def method_category(raw: str) -> str:
    """Map a backend method type string onto METHOD_CATEGORIES."""

    key = raw.strip().lower()
    if key in _MSOL_METHOD_TYPES:
        return _MSOL_METHOD_TYPES[key]
    for marker, category in _GRAPH_TYPE_MARKERS:
        if marker in key:
            return category
    return "Other"


def categorize_methods(raw_methods: List[str]) -> List[str]:
    """Distinct categories in display order."""

    found = {method_category(m) for m in raw_methods if m}
    return [c for c in METHOD_CATEGORIES if c in found]


@dataclass(frozen=True)
class MfaReportRow:
    user_principal_name: str
    display_name: str
    account_enabled: str  # True/False/Unknown
    mfa_status: MfaStatus
    default_method: str
    methods: str  # "AuthenticatorApp;Phone" or "None"
    checked_at: str
    error: str

    def __post_init__(self) -> None:
        if not self.user_principal_name:
            raise ValueError("report row needs a non-empty UserPrincipalName")

    def as_record(self) -> Dict[str, str]:
        return dict(
            zip(
                MFA_COLUMNS,
                [
                    self.user_principal_name,
                    self.display_name,
                    self.account_enabled,
                    self.mfa_status,
                    self.default_method,
                    self.methods,
                    self.checked_at,
                    self.error,
                ],
            )
        )


def normalize_mfa_row(detail: EntityDetail, *, checked_at: datetime) -> MfaReportRow:
    categories = categorize_methods(detail.methods)
    strong = [c for c in categories if c not in WEAK_CATEGORIES]

    default = method_category(detail.default_method) if detail.default_method else NONE

    return MfaReportRow(
        user_principal_name=detail.id,
        display_name=_or_sentinel(detail.display_name, UNKNOWN),
        account_enabled=_bool_text(detail.enabled),
        mfa_status="Enabled" if strong else "Disabled",
        default_method=default,
        methods=";".join(categories) if categories else NONE,
        checked_at=checked_at.isoformat(),
        error=NONE,
    )


def error_row(identifier: str, reason: str, *, checked_at: datetime) -> MfaReportRow:
    return MfaReportRow(
        user_principal_name=identifier,
        display_name=UNKNOWN,
        account_enabled=UNKNOWN,
        mfa_status="Error",
        default_method=NONE,
        methods=NONE,
        checked_at=checked_at.isoformat(),
        error=reason or UNKNOWN,
    )


def _or_sentinel(value: Optional[str], sentinel: str) -> str:
    if value is None:
        return sentinel
    text = str(value).strip()
    return text or sentinel


def _bool_text(value: Optional[bool]) -> str:
    if value is None:
        return UNKNOWN
    return "True" if value else "False"
