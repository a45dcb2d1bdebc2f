"""Sensitive content detection.

Scanning is advisory: a hit is logged with redacted samples and the write
goes ahead. Agents frequently store snippets that look like secrets (test
fixtures, example keys) and refusing them would lose real notes.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensitivePattern:
    name: str
    regex: Pattern[str]
    description: str


SENSITIVE_PATTERNS: List[SensitivePattern] = [
    SensitivePattern(
        "api-key",
        re.compile(r"\b(?:sk|pk|api|key)[-_][a-zA-Z0-9]{20,}\b", re.IGNORECASE),
        "API key",
    ),
    SensitivePattern("aws-key", re.compile(r"\bAKIA[0-9A-Z]{16}\b"), "AWS access key ID"),
    SensitivePattern(
        "github-token", re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}\b"), "GitHub token"
    ),
    SensitivePattern(
        "jwt",
        re.compile(r"\beyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\b"),
        "JSON Web Token",
    ),
    SensitivePattern(
        "generic-secret",
        re.compile(r"\b(?:secret|token|credential)s?\s*[:=]\s*['\"]?[^\s'\"]{8,}", re.IGNORECASE),
        "Generic secret assignment",
    ),
    SensitivePattern(
        "password",
        re.compile(r"\b(?:password|passwd|pwd)\s*[:=]\s*['\"]?[^\s'\"]{4,}", re.IGNORECASE),
        "Password assignment",
    ),
    SensitivePattern(
        "private-key",
        re.compile(r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----"),
        "Private key",
    ),
    SensitivePattern(
        "email",
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        "Email address",
    ),
    SensitivePattern(
        "credit-card",
        re.compile(r"\b(?:\d{4}[- ]?){3}\d{4}\b"),
        "Credit card number",
    ),
    SensitivePattern("ssn", re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "Social security number"),
]


@dataclass
class ScanMatch:
    pattern: str
    description: str
    count: int
    samples: List[str] = field(default_factory=list)


@dataclass
class ScanResult:
    has_sensitive_content: bool
    matches: List[ScanMatch] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "hasSensitiveContent": self.has_sensitive_content,
            "matches": [
                {
                    "pattern": m.pattern,
                    "description": m.description,
                    "count": m.count,
                    "samples": m.samples,
                }
                for m in self.matches
            ],
        }


def redact(value: str) -> str:
    """Keep the first and last three characters of a match."""
    if len(value) <= 10:
        return "***REDACTED***"
    return f"{value[:3]}...{value[-3:]}"


def scan_content(content: str, max_samples: int = 3) -> ScanResult:
    matches = []
    for pattern in SENSITIVE_PATTERNS:
        found = [m.group(0) for m in pattern.regex.finditer(content)]
        if found:
            matches.append(
                ScanMatch(
                    pattern=pattern.name,
                    description=pattern.description,
                    count=len(found),
                    samples=[redact(value) for value in found[:max_samples]],
                )
            )
    return ScanResult(has_sensitive_content=bool(matches), matches=matches)


def warn_if_sensitive(
    content: str,
    memory_id: Optional[str] = None,
    log: Optional[logging.Logger] = None,
) -> ScanResult:
    """Scan ``content`` and log a warning when something looks sensitive."""
    result = scan_content(content)
    if result.has_sensitive_content:
        (log or logger).warning(
            "Memory content contains potential sensitive information",
            extra={
                "memory_id": memory_id,
                "patterns": [m.pattern for m in result.matches],
                "samples": {m.pattern: m.samples for m in result.matches},
            },
        )
    return result
