"""Pattern extraction for bank-statement descriptions.

Turns noisy transaction text into stable grouping keys. `canonicalize` is the
primary key classification rules are stored under; `merchant_name` is a looser
display name used as the secondary key.
"""

import re
from typing import List, Optional, Tuple

from app.models.entities import ListType, TargetSection

# Number of leading tokens kept by the fallback key
PATTERN_TOKENS = 3
# Longest counterparty kept for peer-to-peer and transfer keys
COUNTERPARTY_TOKENS = 4

_TYPE_PREFIX = re.compile(
    r'^\s*(?:PURCHASE|RECURRING\s+PAYMENT|MONEY\s+TRANSFER|TRANSFER|PAYMENT)\s+'
    r'AUTHORIZED\s+ON\s+\d{1,2}/\d{1,2}(?:/\d{2,4})?\s*',
    re.IGNORECASE
)

# Trailing card/reference noise ("S386059123456789 CARD 1234", "REF #ABC123")
_TAIL_NOISE = [
    re.compile(r'\s+S\d{9,}\b.*$', re.IGNORECASE),
    re.compile(r'\s+CARD\s+\d{4}\b.*$', re.IGNORECASE),
    re.compile(r'\s+REF\s*#.*$', re.IGNORECASE),
]

_MARKETPLACE = re.compile(r'\b(?:AMAZON|AMZN)', re.IGNORECASE)
_BIG_BOX_MEMBERSHIP = re.compile(r'\bWAL[-\s]?MART\s*(?:\+|PLUS\b)', re.IGNORECASE)
_BIG_BOX = re.compile(r'\bWAL[-\s]?MART|\bWM\s+SUPERCENTER\b|\bWM\s*#', re.IGNORECASE)

_PEER_TO_PEER = re.compile(
    r'^(VENMO|ZELLE|PAYPAL|CASH\s*APP)\b\s*'
    r'(?:\*|(?:INST\s+XFER|PAYMENT)?\s*(?:TO|FROM)\b)?\s*(.*)$',
    re.IGNORECASE
)

_BANK_TRANSFER = re.compile(
    r'\b(?:(?:RECURRING|ONLINE)\s+)?TRANSFER\s+(?:REF\s*#?\s*\S+\s+)?(TO|FROM)\s+(.*)$',
    re.IGNORECASE
)

_STOP_WORDS = {'REF', 'ON', 'CONF', 'ID', 'BUSINESS', 'WEB', 'PPD', 'CCD'}
_REFERENCE_TOKEN = re.compile(r'^(?:[X*#]*\d{3,}|\d{1,2}/\d{1,2}(?:/\d{2,4})?|#\S*|\d+)$', re.IGNORECASE)
_REGION_CODE = re.compile(r'^[A-Z]{2}$')

# Merchant families for the loose merchant name
MERCHANT_FAMILIES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'\bFreedom\s*(?:Mtg|Mortgage)', re.IGNORECASE), 'Freedom Mortgage'),
    (re.compile(r'\bState\s*Farm', re.IGNORECASE), 'State Farm'),
    (re.compile(r'\bDominion\s*Energy', re.IGNORECASE), 'Dominion Energy'),
    (re.compile(r'\bProg\s*Preferred|\bProgressive', re.IGNORECASE), 'Progressive Insurance'),
    (re.compile(r'\bThe\s*Ridge\s*at\s*Spa', re.IGNORECASE), 'The Ridge at Spa'),
    (re.compile(r'\bOG\s*&\s*E\b', re.IGNORECASE), 'OG&E (Electricity)'),
    (_BIG_BOX_MEMBERSHIP, 'Walmart Plus'),
    (_BIG_BOX, 'Groceries & Gas'),
    (re.compile(r'^#?\s*\d{4,5}\s+[A-Za-z]+\s+[A-Z]{2}$'), 'Groceries & Gas'),
    (re.compile(r'\bSpotify', re.IGNORECASE), 'Spotify'),
    (re.compile(r'\bHBO\s*Max|\bHbomax', re.IGNORECASE), 'HBO Max'),
    (re.compile(r'\bNetflix', re.IGNORECASE), 'Netflix'),
    (_MARKETPLACE, 'Amazon'),
    (re.compile(r'\bMonthly\s*Service\s*Fee', re.IGNORECASE), 'Monthly Service Fee'),
]

# Keyword tables for the account/list guess
RENTAL_KEYWORDS = [
    re.compile(r'spanish\s*fork', re.IGNORECASE),
    re.compile(r'ridge\s*at\s*spa|the\s*ridge', re.IGNORECASE),
    re.compile(r'state\s*farm\s*home|rental|utah\s*rent', re.IGNORECASE),
]

REGIONAL_UTILITY_KEYWORDS = [
    re.compile(r'og\s*&\s*e|\boge\b', re.IGNORECASE),
    re.compile(r'dominion\s*energy', re.IGNORECASE),
    re.compile(r'oklahoma', re.IGNORECASE),
]

SUBSCRIPTION_KEYWORDS = [
    re.compile(
        r'netflix|spotify|hbo\s*max|hbomax|disney\s*(?:plus|\+)|hulu|apple\s*(?:tv|music)?|'
        r'youtube\s*premium|amazon\s*prime|walmart\s*plus',
        re.IGNORECASE
    ),
    re.compile(r'subscription|monthly\s*service|recurring\s*entertainment', re.IGNORECASE),
]

# Bank-internal and account-to-account transfer descriptions
TRANSFER_PATTERNS = [
    re.compile(r'(?:recurring|online)\s*transfer\s*(?:from|to)', re.IGNORECASE),
    re.compile(r'online\s*transfer\s*ref\b', re.IGNORECASE),
    re.compile(r'money\s*transfer\s*authorized', re.IGNORECASE),
    re.compile(r'\bwire\s*transfer\b', re.IGNORECASE),
    re.compile(r'\bACH\s*(?:transfer|credit)\b', re.IGNORECASE),
    re.compile(r'goldman\s*sachs\b.*transfer|transfer\b.*goldman\s*sachs', re.IGNORECASE),
    re.compile(r'transfer\s*authorized\s*on\b', re.IGNORECASE),
    re.compile(r'payment\s*to\s*(?:credit\s*card|visa|mastercard|amex|discover)', re.IGNORECASE),
]

# Person-to-person payments that users tag as bills, never treated as transfers
_VENMO_PAYMENT = re.compile(r'VENMO\s*\*', re.IGNORECASE)


def strip_type_prefix(description: str) -> str:
    """Remove a leading "<type> AUTHORIZED ON mm/dd" marker."""
    return _TYPE_PREFIX.sub('', description or '', count=1).strip()


def strip_tail_noise(text: str) -> str:
    for pattern in _TAIL_NOISE:
        text = pattern.sub('', text)
    return text.strip()


def _counterparty(text: str, strip_region: bool = False) -> str:
    """Leading name tokens, stopping at reference numbers, dates or stop words."""
    tokens = []
    for raw in text.split():
        token = raw.strip('*:,').upper()
        if not token:
            continue
        if token in _STOP_WORDS or _REFERENCE_TOKEN.match(token):
            break
        tokens.append(token)
        if len(tokens) == COUNTERPARTY_TOKENS + 1:
            break

    if strip_region and len(tokens) > 1 and _REGION_CODE.match(tokens[-1]):
        tokens.pop()
    return ' '.join(tokens[:COUNTERPARTY_TOKENS])


def canonicalize(description: str) -> str:
    """Map a raw transaction description to its canonical pattern.

    Deterministic and total: empty or non-text input gives "".

    Args:
        description: Raw statement description

    Returns:
        Uppercase grouping key, e.g. "AMAZON", "VENMO JANE DOE",
        "TRANSFER TO WAY2SAVE SAVINGS" or the first tokens of the text
    """
    if not isinstance(description, str) or not description.strip():
        return ''

    text = strip_type_prefix(' '.join(description.split()))

    if _MARKETPLACE.search(text):
        return 'AMAZON'
    if _BIG_BOX_MEMBERSHIP.search(text):
        return 'WALMART PLUS'
    if _BIG_BOX.search(text):
        return 'WALMART'

    p2p = _PEER_TO_PEER.match(text)
    if p2p:
        app_name = ' '.join(p2p.group(1).upper().split())
        name = _counterparty(strip_tail_noise(p2p.group(2)), strip_region=True)
        return f'{app_name} {name}' if name else app_name

    transfer = _BANK_TRANSFER.search(text)
    if transfer:
        direction = transfer.group(1).upper()
        name = _counterparty(transfer.group(2))
        return f'TRANSFER {direction} {name}' if name else f'TRANSFER {direction}'

    tokens = strip_tail_noise(text).split()
    if not tokens:
        tokens = text.split()
    return ' '.join(tokens[:PATTERN_TOKENS]).upper()


def merchant_name(description: str) -> str:
    """Loose merchant name used for display and as the secondary rule key.

    Args:
        description: Raw statement description

    Returns:
        Known merchant family name, or the first meaningful tokens
    """
    text = strip_type_prefix(' '.join((description or '').split()))
    for pattern, name in MERCHANT_FAMILIES:
        if pattern.search(text):
            return name

    tokens = [t for t in strip_tail_noise(text).split() if len(t) > 1 and not t.isdigit()]
    if tokens:
        return ' '.join(tokens[:PATTERN_TOKENS])
    return text[:40] or 'Bill'


def suggest_bill_group(name: str) -> Tuple[TargetSection, ListType]:
    """Guess the destination account and list type for a bill name.

    Rental keywords win, then regional utilities (bills account); everything
    else is a checking-account bill. Subscription keywords pick the
    subscriptions list.
    """
    text = name or ''
    is_subscription = any(p.search(text) for p in SUBSCRIPTION_KEYWORDS)
    list_type = ListType.SUBSCRIPTIONS if is_subscription else ListType.BILLS

    if any(p.search(text) for p in RENTAL_KEYWORDS):
        return TargetSection.SPANISH_FORK, ListType.BILLS
    if any(p.search(text) for p in REGIONAL_UTILITY_KEYWORDS):
        return TargetSection.BILLS_ACCOUNT, list_type
    return TargetSection.CHECKING_ACCOUNT, list_type


def is_transfer_description(description: Optional[str]) -> bool:
    """True if the description is an account-to-account transfer rather than a bill."""
    text = (description or '').strip()
    if not text:
        return False
    # Recurring/online transfers are checked before the Venmo exemption
    if TRANSFER_PATTERNS[0].search(text) or TRANSFER_PATTERNS[1].search(text):
        return True
    if _VENMO_PAYMENT.search(text):
        return False
    return any(p.search(text) for p in TRANSFER_PATTERNS[2:])
