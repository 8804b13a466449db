from .access import AccessResolver, Action, Decision, ResourceKind, ResourceRef
from .principal import Principal, principal_from_claims

__all__ = [
    "AccessResolver",
    "Action",
    "Decision",
    "ResourceKind",
    "ResourceRef",
    "Principal",
    "principal_from_claims",
]
