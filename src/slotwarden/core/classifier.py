"""Outcome code classification (core domain).

The code table is policy, not logic: every entry and each stop set can be
overridden from configuration without touching the dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from slotwarden.core.models import Classification, ErrorKind

CODE_ALREADY_RELATED = 14
CODE_ACCESS_DENIED = 15
CODE_BANNED = 17
CODE_LIMIT_EXCEEDED = 25
CODE_TIMEOUT = 29
CODE_BLOCKED = 40
CODE_RATE_LIMIT_EXCEEDED = 84


@dataclass(frozen=True)
class CodeRule:
    """Static description of one outcome code."""

    kind: ErrorKind
    label: str
    limit_reached: bool = False


DEFAULT_CODE_RULES: Dict[int, CodeRule] = {
    CODE_ALREADY_RELATED: CodeRule(ErrorKind.DEFINITIVE, "already related"),
    CODE_ACCESS_DENIED: CodeRule(ErrorKind.TEMPORARY, "access denied (rate limit)"),
    CODE_BANNED: CodeRule(ErrorKind.DEFINITIVE, "account banned"),
    CODE_LIMIT_EXCEEDED: CodeRule(ErrorKind.TEMPORARY, "limit exceeded", limit_reached=True),
    CODE_TIMEOUT: CodeRule(ErrorKind.TEMPORARY, "timeout"),
    CODE_BLOCKED: CodeRule(ErrorKind.DEFINITIVE, "blocked by peer"),
    CODE_RATE_LIMIT_EXCEEDED: CodeRule(ErrorKind.TEMPORARY, "rate limit reached", limit_reached=True),
}

# Stop sets are independent of the kind above: a code can be temporary for
# retry purposes and still end the batch.
DEFAULT_RATE_LIMIT_CODES = frozenset({CODE_ACCESS_DENIED})
DEFAULT_ACCOUNT_LIMIT_CODES = frozenset({CODE_LIMIT_EXCEEDED, CODE_RATE_LIMIT_EXCEEDED})
DEFAULT_BANNED_CODES = frozenset({CODE_BANNED})


@dataclass(frozen=True)
class ErrorPolicy:
    """Code table plus the three stop-condition sets."""

    rules: Mapping[int, CodeRule] = field(default_factory=lambda: dict(DEFAULT_CODE_RULES))
    rate_limit_codes: FrozenSet[int] = DEFAULT_RATE_LIMIT_CODES
    account_limit_codes: FrozenSet[int] = DEFAULT_ACCOUNT_LIMIT_CODES
    banned_codes: FrozenSet[int] = DEFAULT_BANNED_CODES

    def classify(self, code: Optional[int]) -> Classification:
        """Return the classification for an outcome code.

        Unknown codes (and missing ones) fall back to a temporary error with
        no flags so the peer stays eligible for a later retry.
        """

        if code is None:
            return Classification(kind=ErrorKind.TEMPORARY)

        rule = self.rules.get(code)
        if rule is None:
            return Classification(kind=ErrorKind.TEMPORARY, label=f"unknown error {code}")

        return Classification(
            kind=rule.kind,
            is_rate_limit=code in self.rate_limit_codes,
            is_account_limit=code in self.account_limit_codes,
            is_banned=code in self.banned_codes,
            limit_reached=rule.limit_reached,
            label=rule.label,
        )


DEFAULT_POLICY = ErrorPolicy()


def classify(code: Optional[int], policy: ErrorPolicy = DEFAULT_POLICY) -> Classification:
    return policy.classify(code)


def _as_codes(values: Iterable[Any]) -> FrozenSet[int]:
    return frozenset(int(value) for value in values)


def build_error_policy(policy_config: Optional[Mapping[str, Any]]) -> ErrorPolicy:
    """Merge a config section onto the default policy.

    Expected shape (every key optional):
        {
          "codes": {"25": {"kind": "temporary", "label": "...", "limit_reached": true}},
          "rate_limit_codes": [15],
          "account_limit_codes": [25, 84],
          "banned_codes": [17]
        }
    """

    if not policy_config:
        return DEFAULT_POLICY

    rules: Dict[int, CodeRule] = dict(DEFAULT_CODE_RULES)
    for raw_code, entry in (policy_config.get("codes") or {}).items():
        code = int(raw_code)
        base = rules.get(code)
        kind_value = entry.get("kind", base.kind.value if base else ErrorKind.TEMPORARY.value)
        try:
            kind = ErrorKind(kind_value)
        except ValueError as exc:
            raise ValueError(f"Unsupported error kind for code {code}: {kind_value}") from exc
        rules[code] = CodeRule(
            kind=kind,
            label=entry.get("label", base.label if base else f"error {code}"),
            limit_reached=bool(entry.get("limit_reached", base.limit_reached if base else False)),
        )

    def _codes(key: str, default: FrozenSet[int]) -> FrozenSet[int]:
        if key not in policy_config:
            return default
        return _as_codes(policy_config.get(key) or [])

    return ErrorPolicy(
        rules=rules,
        rate_limit_codes=_codes("rate_limit_codes", DEFAULT_RATE_LIMIT_CODES),
        account_limit_codes=_codes("account_limit_codes", DEFAULT_ACCOUNT_LIMIT_CODES),
        banned_codes=_codes("banned_codes", DEFAULT_BANNED_CODES),
    )
