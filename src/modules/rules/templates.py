"""
Built-in rules templates.

``anarchy`` is the firm's code of conduct posted by server setup;
``general`` is a shorter community template for any other channel.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Tuple

TEMPLATE_NAMES = ("anarchy", "general")

# (title, content, category, severity)
_ANARCHY_RULES: List[Tuple[str, str, str, str]] = [
    (
        "Professional Decorum & Mutual Respect",
        "All members shall conduct themselves with the utmost professionalism and courtesy. "
        "Harassment, discrimination, defamation, or conduct unbecoming of a legal professional "
        "shall result in immediate disciplinary action, up to and including permanent disbarment from the firm.",
        "conduct",
        "critical",
    ),
    (
        "Ethical Standards & Professional Integrity",
        "Members must maintain the highest ethical standards befitting the legal profession. "
        "This encompasses honest communication, good faith negotiations, and adherence to "
        "professional boundaries in all interactions.",
        "conduct",
        "critical",
    ),
    (
        "Attorney-Client Privilege & Confidentiality",
        "All case information, client communications, and sensitive materials are strictly "
        "confidential. Unauthorized disclosure of privileged information constitutes grounds "
        "for immediate termination.",
        "general",
        "critical",
    ),
    (
        "Proper Channel Utilization",
        "Client consultations shall occur in designated client channels, internal discussions "
        "in staff channels, and public discourse in community areas.",
        "general",
        "high",
    ),
    (
        "Prohibition of Solicitation & Spam",
        "Unsolicited advertising, spam, or unauthorized solicitation of services is strictly "
        "prohibited. Business development must be approved by the Managing Partner.",
        "conduct",
        "medium",
    ),
    (
        "Platform Compliance",
        "All Discord Terms of Service and Community Guidelines remain in full effect.",
        "general",
        "high",
    ),
    (
        "Compliance with Firm Directives",
        "All lawful directives from Partners, Senior Associates, and authorized staff must be "
        "followed. Grievances should be raised through proper channels.",
        "general",
        "high",
    ),
    (
        "Conflict of Interest Disclosure",
        "Any potential conflict of interest must be disclosed to the Managing Partner immediately. "
        "Failure to disclose may result in disciplinary action and case reassignment.",
        "general",
        "critical",
    ),
]

_GENERAL_RULES: List[Tuple[str, str, str, str]] = [
    (
        "Professional Courtesy",
        "Maintain respectful discourse at all times. Harassment, discriminatory language, or "
        "personal attacks are grounds for immediate removal.",
        "conduct",
        "critical",
    ),
    (
        "Communication Standards",
        "Avoid excessive messaging, repetitive content, or disruptive behavior.",
        "conduct",
        "medium",
    ),
    (
        "Content Appropriateness",
        "All content must be suitable for a professional environment.",
        "general",
        "high",
    ),
    (
        "Channel Organization",
        "Use designated channels for their intended purposes.",
        "general",
        "low",
    ),
    (
        "Terms of Service Compliance",
        "Full compliance with Discord Terms of Service and Community Guidelines is mandatory.",
        "general",
        "critical",
    ),
]


def _rules(rows: List[Tuple[str, str, str, str]]) -> List[Dict[str, Any]]:
    return [
        {
            "id": f"rule_{order}",
            "title": title,
            "content": content,
            "category": category,
            "severity": severity,
            "order": order,
            "is_active": True,
        }
        for order, (title, content, category, severity) in enumerate(rows, start=1)
    ]


_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "anarchy": {
        "title": "Code of Professional Conduct | Anarchy & Associates",
        "content": (
            "These bylaws govern all conduct within the Anarchy & Associates professional community. "
            "Adherence is mandatory for all members, staff, and clients."
        ),
        "rules": _rules(_ANARCHY_RULES),
        "color": 0x000000,
        "footer": "Violations are subject to disciplinary review by the Partnership Committee",
        "show_numbers": True,
        "additional_fields": [
            {
                "name": "Disciplinary Appeals Process",
                "value": (
                    "Members subject to disciplinary action may file a written appeal with the "
                    "Senior Partnership within 72 hours."
                ),
                "inline": False,
            },
            {
                "name": "Amendments & Inquiries",
                "value": (
                    "These regulations may be amended by majority vote of the Partnership. "
                    "Direct inquiries to the Managing Partner's office."
                ),
                "inline": False,
            },
        ],
    },
    "general": {
        "title": "Community Guidelines",
        "content": "These guidelines ensure a professional and respectful environment for all members.",
        "rules": _rules(_GENERAL_RULES),
        "color": 0x36393F,
        "footer": "Violations subject to administrative review and appropriate sanctions",
        "show_numbers": True,
        "additional_fields": [],
    },
}


def generate_default_rules(template: str = "general") -> Dict[str, Any]:
    """
    Fresh copy of a template; unknown names fall back to ``general``.

    >>> generate_default_rules("anarchy")["rules"][0]["id"]
    'rule_1'
    """
    return copy.deepcopy(_TEMPLATES.get(template, _TEMPLATES["general"]))
