"""Statement parser for OFX bank statements.

Handles both dialects banks export:

- OFX 1.x SGML, where leaf elements usually have no closing tag
  (``<TRNAMT>-12.50``) and aggregates may or may not be closed.
- OFX 2.x XML (``<?xml ...?>`` / ``<?OFX ...?>`` prologue) with every
  element closed.

Tag names are matched case-insensitively and whitespace between or inside
tags is ignored. Decoding is tolerant; validation then reports every problem
found at once instead of stopping at the first one.
"""

import hashlib
import html
import logging
import re
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Optional

from ledgerkit.domain.entities import (
    ParsedStatement,
    RawTransaction,
    StatementAccount,
    StatementAccountType,
    StatementBalance,
    StatementTransactionType,
)
from ledgerkit.domain.errors import ValidationError
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_ofx_date

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

_XML_PROLOGUE_RE = re.compile(r"^\s*<\?(?:xml|ofx)\b", re.IGNORECASE)
_TRANSACTION_RE = re.compile(
    r"<\s*STMTTRN\s*>(.*?)"
    r"(?=<\s*STMTTRN\s*>|<\s*/\s*STMTTRN\s*>|<\s*/\s*BANKTRANLIST\s*>|\Z)",
    re.IGNORECASE | re.DOTALL,
)


def _open_tag(tag: str) -> re.Pattern:
    return re.compile(rf"<\s*{tag}\s*>", re.IGNORECASE)


def _close_tag(tag: str) -> re.Pattern:
    return re.compile(rf"<\s*/\s*{tag}\s*>", re.IGNORECASE)


def is_xml_dialect(content: str) -> bool:
    """Return True for OFX 2.x (XML) content."""
    return bool(_XML_PROLOGUE_RE.match(content))


def extract_value(content: str, tag: str) -> str:
    """Return the text of the first ``tag`` element, or an empty string.

    The value runs up to the next ``<``, which is the closing tag in XML and
    the next sibling in SGML.
    """
    match = re.search(rf"<\s*{tag}\s*>([^<]*)", content, re.IGNORECASE)
    if match is None:
        return ""
    return html.unescape(match.group(1)).strip()


def extract_block(content: str, tag: str) -> str:
    """Return the content of the first ``tag`` aggregate.

    Without a closing tag the block extends to the end of the content.
    """
    opening = _open_tag(tag).search(content)
    if opening is None:
        return ""
    closing = _close_tag(tag).search(content, opening.end())
    if closing is None:
        return content[opening.end():]
    return content[opening.end():closing.start()]


def _normalize_account_type(raw: str) -> StatementAccountType:
    try:
        return StatementAccountType(raw.upper())
    except ValueError:
        return StatementAccountType.CHECKING


def _normalize_transaction_type(raw: str) -> StatementTransactionType:
    try:
        return StatementTransactionType(raw.upper())
    except ValueError:
        return StatementTransactionType.OTHER


def _optional_date(raw: str) -> Optional[date]:
    if not raw:
        return None
    try:
        return parse_ofx_date(raw)
    except ValueError:
        return None


def _optional_amount(raw: str) -> Optional[Decimal]:
    if not raw:
        return None
    try:
        return parse_amount(raw)
    except ValueError:
        return None


def _decode_transaction(block: str) -> RawTransaction:
    raw_amount = extract_value(block, "TRNAMT")
    raw_date = extract_value(block, "DTPOSTED")
    return RawTransaction(
        fit_id=extract_value(block, "FITID"),
        amount=_optional_amount(raw_amount),
        date_posted=_optional_date(raw_date),
        name=extract_value(block, "NAME") or "Unknown",
        transaction_type=_normalize_transaction_type(extract_value(block, "TRNTYPE")),
        memo=extract_value(block, "MEMO") or None,
        check_num=extract_value(block, "CHECKNUM") or None,
        ref_num=extract_value(block, "REFNUM") or None,
        raw_amount=raw_amount,
        raw_date=raw_date,
    )


def _decode_account(content: str) -> StatementAccount:
    account_block = extract_block(content, "BANKACCTFROM")
    card_block = extract_block(content, "CCACCTFROM")
    is_credit_card = False
    if card_block and (not account_block or not extract_value(account_block, "ACCTID")):
        account_block = card_block
        is_credit_card = True

    if is_credit_card:
        account_type = StatementAccountType.CREDITCARD
    else:
        account_type = _normalize_account_type(extract_value(account_block, "ACCTTYPE"))

    statement = extract_block(content, "STMTRS") or extract_block(content, "CCSTMTRS")
    currency = extract_value(statement or content, "CURDEF") or DEFAULT_CURRENCY

    return StatementAccount(
        bank_id=extract_value(account_block, "BANKID"),
        account_id=extract_value(account_block, "ACCTID"),
        account_type=account_type,
        currency=currency.upper(),
    )


def _decode_balance(content: str) -> Optional[StatementBalance]:
    ledger_balance = extract_block(content, "LEDGERBAL")
    if not ledger_balance:
        return None
    amount = _optional_amount(extract_value(ledger_balance, "BALAMT"))
    if amount is None:
        return None
    return StatementBalance(
        amount=amount,
        as_of=_optional_date(extract_value(ledger_balance, "DTASOF")),
    )


def decode_statement(content: str) -> ParsedStatement:
    """Decode statement text without validating it.

    Args:
        content: Raw statement text (SGML or XML dialect)

    Returns:
        ParsedStatement with every transaction block found, including
        incomplete ones
    """
    tran_list = extract_block(content, "BANKTRANLIST")
    transactions = tuple(
        _decode_transaction(match.group(1))
        for match in _TRANSACTION_RE.finditer(tran_list or content)
    )

    posted = [txn.date_posted for txn in transactions if txn.date_posted is not None]
    start = _optional_date(extract_value(tran_list or content, "DTSTART"))
    end = _optional_date(extract_value(tran_list or content, "DTEND"))
    if start is None and posted:
        start = min(posted)
    if end is None and posted:
        end = max(posted)

    parsed = ParsedStatement(
        account=_decode_account(content),
        transactions=transactions,
        date_range=(start, end),
        balance=_decode_balance(content),
    )
    logger.debug(
        "Decoded %s statement with %d transaction block(s)",
        "XML" if is_xml_dialect(content) else "SGML",
        len(transactions),
    )
    return parsed


def validate_statement(parsed: ParsedStatement) -> list[str]:
    """Return every reason the statement cannot be imported.

    An empty list means the statement is valid.
    """
    errors: list[str] = []

    if not parsed.account.account_id:
        errors.append("Missing account ID")

    if not parsed.transactions:
        errors.append("No transactions found in file")

    for index, txn in enumerate(parsed.transactions, start=1):
        label = f"Transaction {index}" + (f" ('{txn.fit_id}')" if txn.fit_id else "")
        if not txn.fit_id:
            errors.append(f"{label}: missing FITID")
        if txn.amount is None:
            if txn.raw_amount:
                errors.append(f"{label}: invalid amount '{txn.raw_amount}'")
            else:
                errors.append(f"{label}: missing amount")
        if txn.date_posted is None:
            if txn.raw_date:
                errors.append(f"{label}: invalid posted date '{txn.raw_date}'")
            else:
                errors.append(f"{label}: missing posted date")

    counts = Counter(txn.fit_id for txn in parsed.transactions if txn.fit_id)
    for fit_id, count in counts.items():
        if count > 1:
            errors.append(f"Duplicate FITID '{fit_id}' appears {count} times")

    return errors


def parse_statement(content: str) -> ParsedStatement:
    """Parse and validate statement text.

    Args:
        content: Raw statement text

    Returns:
        ParsedStatement

    Raises:
        ValidationError: With every problem found, if the statement is invalid
    """
    if not content or not content.strip():
        raise ValidationError("Statement is empty")

    parsed = decode_statement(content)
    errors = validate_statement(parsed)
    if errors:
        logger.warning("Statement rejected with %d error(s)", len(errors))
        raise ValidationError(errors)
    return parsed


def hash_account_id(account_id: str) -> str:
    """Return a one-way SHA-256 hex digest of a raw account identifier."""
    return hashlib.sha256(account_id.strip().encode("utf-8")).hexdigest()


def mask_account_id(account_id: str) -> str:
    """Mask an account identifier so only the last 4 characters show."""
    account_id = account_id.strip()
    if len(account_id) <= 4:
        return account_id
    return "****" + account_id[-4:]
