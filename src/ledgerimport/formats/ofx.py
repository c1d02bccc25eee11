"""Bank statement adapters: OFX/QFX and CAMT.053 XML.

Both dialects carry typed dates and amounts, so their records are marked
as already resolved.
"""

import logging
import re
from typing import Optional

import bs4

from ledgerimport.domain.entities import RawRecord
from ledgerimport.domain.errors import FormatError
from ledgerimport.formats.base import FormatAdapter, ParseOptions, ParsedFile
from ledgerimport.utils.amount_parser import parse_amount_or_none
from ledgerimport.utils.date_parser import parse_iso_date, parse_ofx_date

logger = logging.getLogger(__name__)


def find_child(node, name, conversion=None):
    """Find a child under the given node and return its text value.

    Works for SGML-style OFX where leaf elements are never closed: the
    value is the first text node of the element.

    Args:
        node: A bs4 Tag (or None)
        name: Lower-cased tag name
        conversion: Optional callable applied to the value

    Returns:
        A string (or converted value), or None if the child is missing
    """
    if node is None:
        return None
    child = node.find(name)
    if not child:
        return None
    if not child.contents or not isinstance(child.contents[0], bs4.NavigableString):
        value = ""
    else:
        value = child.contents[0].strip()
    if conversion:
        value = conversion(value)
    return value


def _safe_date(parser, value: Optional[str]):
    if not value:
        return None
    try:
        return parser(value)
    except ValueError:
        logger.warning("Unreadable statement date %r", value)
        return None


class OFXAdapter(FormatAdapter):
    """Adapter for OFX and QFX statements (SGML or XML flavoured)."""

    file_type = "ofx"
    resolved_values = True

    def parse(self, text: str, options: ParseOptions) -> ParsedFile:
        soup = bs4.BeautifulSoup(text, "html.parser")
        statements = soup.find_all(re.compile(r"^(cc)?stmtrs$"))
        if not statements:
            if soup.find("ofx") is None:
                raise FormatError("File does not appear to be a valid OFX file")
            return ParsedFile(file_type=self.file_type, resolved_values=True)

        records = []
        account_number = account_type = bank_id = None
        for stmtrs in statements:
            number = find_child(stmtrs, "acctid") or None
            kind = find_child(stmtrs, "accttype") or (
                "CREDITCARD" if stmtrs.name == "ccstmtrs" else None
            )
            bank = find_child(stmtrs, "bankid") or None
            if account_number is None:
                account_number, account_type, bank_id = number, kind, bank

            for tran in stmtrs.find_all("stmttrn"):
                records.append(self._to_record(tran, options, number, kind, bank))

        logger.debug("Read %d OFX transactions", len(records))
        return ParsedFile(
            file_type=self.file_type,
            records=tuple(records),
            account_number=account_number,
            account_type=account_type,
            bank_id=bank_id,
            resolved_values=True,
        )

    def _to_record(self, tran, options: ParseOptions, number, kind, bank) -> RawRecord:
        memo = find_child(tran, "memo") or None
        payee = find_child(tran, "name") or None
        if payee is None and options.fallback_missing_payee:
            payee = memo
        fields = {
            "date": _safe_date(parse_ofx_date, find_child(tran, "dtposted")),
            "amount": parse_amount_or_none(find_child(tran, "trnamt")),
            "payee": payee,
            "imported_payee": payee,
            "notes": memo if options.import_notes else None,
            "category": None,
            "type": find_child(tran, "trntype"),
            "number": find_child(tran, "checknum"),
        }
        return RawRecord(
            fields=fields,
            extracted_account_number=number,
            extracted_account_type=kind,
            extracted_bank_id=bank,
            imported_id=find_child(tran, "fitid") or None,
        )


class CAMTAdapter(FormatAdapter):
    """Adapter for ISO 20022 CAMT.053/052/054 bank statements."""

    file_type = "xml"
    resolved_values = True

    def parse(self, text: str, options: ParseOptions) -> ParsedFile:
        soup = bs4.BeautifulSoup(text, "html.parser")
        statements = soup.find_all(re.compile(r"^(stmt|rpt|ntfctn)$"))
        if not statements:
            raise FormatError("File does not appear to be a valid CAMT statement")

        records = []
        account_number = None
        for stmt in statements:
            acct = stmt.find("acct")
            number = find_child(acct, "iban") or find_child(
                acct.find("othr") if acct else None, "id"
            )
            if account_number is None:
                account_number = number
            for ntry in stmt.find_all("ntry"):
                records.append(self._to_record(ntry, options, number))

        logger.debug("Read %d CAMT entries", len(records))
        return ParsedFile(
            file_type=self.file_type,
            records=tuple(records),
            account_number=account_number,
            resolved_values=True,
        )

    def _to_record(self, ntry, options: ParseOptions, number) -> RawRecord:
        amount = parse_amount_or_none(find_child(ntry, "amt"))
        debit = find_child(ntry, "cdtdbtind") == "DBIT"
        if amount is not None and debit:
            amount = -amount

        booked = ntry.find("bookgdt") or ntry.find("valdt")
        raw_date = find_child(booked, "dt") or find_child(booked, "dttm")

        parties = ntry.find("rltdpties")
        counterparty = parties.find("cdtr" if debit else "dbtr") if parties else None
        payee = find_child(counterparty, "nm") or None

        remittance = [u.get_text(strip=True) for u in ntry.find_all("ustrd")]
        memo = " ".join(r for r in remittance if r) or find_child(ntry, "addtlntryinf") or None
        if payee is None and options.fallback_missing_payee:
            payee = memo

        fields = {
            "date": _safe_date(parse_iso_date, raw_date),
            "amount": amount,
            "payee": payee,
            "imported_payee": payee,
            "notes": memo if options.import_notes else None,
            "category": None,
        }
        return RawRecord(
            fields=fields,
            extracted_account_number=number,
            imported_id=find_child(ntry, "acctsvcrref") or find_child(ntry, "ntryref") or None,
        )
