from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from salary_extractors.normalizer import (
    era_to_western,
    normalize_date,
    normalize_text,
    parse_amount,
    parse_days,
    parse_time_value,
)

logger = logging.getLogger(__name__)

ExtractedSalaryData = Dict[str, Any]

# label qualifier without digits, e.g. 基本給(月給); then a half/full-width separator
_SEP = r"\s*(?:[(（][^)）\d\n]*[)）])?\s*[：:＝=]?\s*"
_AMOUNT = r"(?P<value>[0-9０-９][0-9,，０-９]*)(?:\s*円)?"
_HOURS = r"(?P<value>\d+\s*[:：]\s*\d{1,2})"
_DAYS = r"(?P<value>\d+(?:\.\d+)?)"
_OVER_60 = r"\s*[(（]\s*60\s*時間超[^)）\n]*[)）]"
_OVERTIME_HOURS_LABEL = r"(?:固定外残業時間|時間外労働時間|残業時間)"
_OVERTIME_PAY_LABEL = r"(?:残業手当|時間外(?:勤務)?手当)"


@dataclass(frozen=True)
class PatternRule:
    key: str
    pattern: re.Pattern
    parse: Callable[[re.Match], Any]


def _parse_amount_match(match: re.Match) -> int:
    return parse_amount(match.group("value"))


def _parse_hours_match(match: re.Match) -> float:
    return parse_time_value(match.group("value"))


def _parse_days_match(match: re.Match) -> float:
    return parse_days(match.group("value"))


def _parse_text_match(match: re.Match) -> Optional[str]:
    value = match.group("value").strip().rstrip("様").strip()
    return value or None


def _parse_date_match(match: re.Match) -> Optional[str]:
    groups = match.groupdict()
    if groups.get("era"):
        year = era_to_western(groups["era"], groups["era_year"])
    else:
        year = int(groups["year"])
    if year is None:
        return None
    day = int(groups["day"]) if groups.get("day") else 1
    return normalize_date(year, int(groups["month"]), day)


def _amount_rule(key: str, label: str) -> PatternRule:
    return PatternRule(key, re.compile(label + _SEP + _AMOUNT), _parse_amount_match)


def _hours_rule(key: str, label: str) -> PatternRule:
    return PatternRule(key, re.compile(label + _SEP + _HOURS), _parse_hours_match)


def _date_rule(pattern: str) -> PatternRule:
    return PatternRule("paymentDate", re.compile(pattern), _parse_date_match)


# Ordered: when several rules share a key, the first one that matches wins.
SALARY_PATTERN_RULES: List[PatternRule] = [
    # identity
    PatternRule(
        "employeeName",
        # a second name token must not be the next "label: value" pair
        re.compile(
            r"(?:社員氏名|従業員名|氏名)\s*[：:]\s*"
            r"(?P<value>[^\s\d:：]+(?:[ 　][^\s\d:：]+(?!\s*[：:＝=\d])(?=\s|$))?)"
        ),
        _parse_text_match,
    ),
    PatternRule(
        "employeeId",
        re.compile(r"(?:社員番号|従業員番号|社員コード|社員No\.?)" + _SEP + r"(?P<value>[A-Za-z0-9][A-Za-z0-9\-]*)"),
        _parse_text_match,
    ),
    # payment date
    _date_rule(
        r"(?P<year>\d{4})\s*(?:[(（][^)）\n]*[)）])?\s*年\s*(?P<month>\d{1,2})\s*月\s*(?P<day>\d{1,2})\s*日\s*支給"
    ),
    _date_rule(
        r"(?P<era>令和|平成|昭和)\s*(?P<era_year>\d{1,2}|元)\s*年\s*(?P<month>\d{1,2})\s*月\s*(?P<day>\d{1,2})\s*日\s*支給"
    ),
    _date_rule(
        r"(?:支給日|支払日)" + _SEP
        + r"(?P<year>\d{4})\s*[年/\-.]\s*(?P<month>\d{1,2})\s*[月/\-.]\s*(?P<day>\d{1,2})"
    ),
    _date_rule(
        r"(?:支給年月日?|支払年月日?|給与年月|対象年月)" + _SEP
        + r"(?P<year>\d{4})\s*[年/\-.]\s*(?P<month>\d{1,2})(?:\s*[月/\-.]\s*(?:(?P<day>\d{1,2})\s*日)?)?"
    ),
    # attendance
    _hours_rule("overtimeHours", _OVERTIME_HOURS_LABEL + r"(?!\s*[(（]\s*60)"),
    _hours_rule("overtimeHoursOver60", _OVERTIME_HOURS_LABEL + _OVER_60),
    _hours_rule("lateNightHours", r"深夜(?:割増時間|労働時間|勤務時間)"),
    PatternRule(
        "paidLeaveDays",
        re.compile(r"(?:有休残日数|有給残日数|有給休暇残日数|有休残)" + _SEP + _DAYS),
        _parse_days_match,
    ),
    # earnings
    _amount_rule("basicSalary", r"基本給与?"),
    _amount_rule("overtimeAllowance", r"(?<!固定)(?:" + _OVERTIME_PAY_LABEL + r"|超過勤務手当)"),
    _amount_rule("overtimePayOver60", _OVERTIME_PAY_LABEL + _OVER_60),
    _amount_rule("lateNightPay", r"深夜(?:割増額|割増手当|勤務手当|手当)"),
    _amount_rule("fixedOvertimeAllowance", r"固定(?:時間外|残業)手当"),
    _amount_rule("expenseReimbursement", r"立替経費"),
    _amount_rule("commutingAllowance", r"(?:非課税)?(?:通勤手当|通勤費|交通費)"),
    _amount_rule("stockPurchaseIncentive", r"持株会?奨励金"),
    _amount_rule("totalPayment", r"(?:総支給額?|支給合計額?|支給額合計|支給額計)"),
    # deductions
    _amount_rule("healthInsurance", r"健康保険料?"),
    _amount_rule("pensionInsurance", r"厚生年金(?:保険料?)?"),
    _amount_rule("employmentInsurance", r"雇用保険料?"),
    _amount_rule("incomeTax", r"所得税"),
    _amount_rule("residentTax", r"住民税"),
    _amount_rule("otherDeductions", r"(?:持株会?拠出金|その他控除)"),
    _amount_rule("totalDeductions", r"(?:控除合計額?|控除額合計|控除額計|総控除額?)"),
    _amount_rule("netPayment", r"(?:差引支給額?|差引支払額|手取り?額?|差引額|実支給額)"),
]

_EARNINGS_SECTION_PATTERN = re.compile(
    r"(?<!\S)支給(?:項目)?\s+(?P<body>.*?)(?=(?<!\S)控除(?:項目)?\s|\Z)", re.S
)
_DEDUCTIONS_SECTION_PATTERN = re.compile(r"(?<!\S)控除(?:項目)?\s+(?P<body>.*)", re.S)
_SECTION_TOTAL_PATTERN = re.compile(r"(?<!\S)合計" + _SEP + _AMOUNT)
_LOOSE_AMOUNT_PATTERN = re.compile(r"(?P<value>\d[\d,]*)\s*円")
_PERIOD_PATTERN = re.compile(
    r"(?:(?P<start_year>\d{4})\s*年\s*)?(?P<start_month>\d{1,2})\s*月\s*(?P<start_day>\d{1,2})\s*日"
    r"\s*[〜～~\-－ー]\s*"
    r"(?:(?P<end_year>\d{4})\s*年\s*)?(?P<end_month>\d{1,2})\s*月\s*(?P<end_day>\d{1,2})\s*日"
)
_COMPANY_MARKERS = ("株式会社", "有限会社", "合同会社")
_COMPANY_TOKEN_PATTERN = re.compile(r"[^\s\d:：]*(?:株式会社|有限会社|合同会社)[^\s\d:：]*")
_COMPANY_LINE_PATTERN = re.compile(
    r"(?:[^\s\d:：]+[ 　])*?[^\s\d:：]*(?:株式会社|有限会社|合同会社)[^\s\d:：]*"
)
_EMPLOYEE_ID_LINE_PATTERN = re.compile(r"^(?=[A-Z0-9]*[A-Z])(?=[A-Z0-9]*\d)[A-Z0-9]{4,20}$")
_SECTION_WORDS = ("支給", "控除", "勤怠", "給与明細", "賞与明細", "合計", "備考")
_MAX_COMPANY_LINE = 60


def _scan_rules(text: str, rules: Iterable[PatternRule]) -> ExtractedSalaryData:
    results: ExtractedSalaryData = {}
    for rule in rules:
        if rule.key in results:
            continue
        match = rule.pattern.search(text)
        if not match:
            continue
        value = rule.parse(match)
        if value is None:
            continue
        logger.debug("matched %s: %r -> %r", rule.key, match.group(0), value)
        results[rule.key] = value
    return results


def _section_total(text: str, section_pattern: re.Pattern) -> Optional[int]:
    section = section_pattern.search(text)
    if not section:
        return None
    total = _SECTION_TOTAL_PATTERN.search(section.group("body"))
    if not total:
        return None
    return parse_amount(total.group("value"))


def _apply_section_totals(text: str, data: ExtractedSalaryData) -> None:
    if "totalPayment" not in data:
        total = _section_total(text, _EARNINGS_SECTION_PATTERN)
        if total is not None:
            data["totalPayment"] = total
    if "totalDeductions" not in data:
        total = _section_total(text, _DEDUCTIONS_SECTION_PATTERN)
        if total is not None:
            data["totalDeductions"] = total


def _scan_loose_amounts(text: str) -> ExtractedSalaryData:
    """Last resort: treat the two largest "N円" amounts as totals."""
    amounts = sorted(
        (parse_amount(m.group("value")) for m in _LOOSE_AMOUNT_PATTERN.finditer(text)),
        reverse=True,
    )
    results: ExtractedSalaryData = {}
    if amounts:
        results["totalPayment"] = amounts[0]
    if len(amounts) > 1:
        results["netPayment"] = amounts[1]
    if results:
        logger.debug("no labelled fields, loose amounts used: %s", results)
    return results


def _extract_target_period(text: str, payment_date: Optional[str]) -> ExtractedSalaryData:
    match = _PERIOD_PATTERN.search(text)
    if not match:
        return {}
    start_month = int(match.group("start_month"))
    end_month = int(match.group("end_month"))

    if match.group("end_year"):
        end_year = int(match.group("end_year"))
    elif payment_date:
        pay_year, pay_month = int(payment_date[:4]), int(payment_date[5:7])
        end_year = pay_year if end_month <= pay_month else pay_year - 1
    else:
        return {}

    if match.group("start_year"):
        start_year = int(match.group("start_year"))
    else:
        start_year = end_year if start_month <= end_month else end_year - 1

    start = normalize_date(start_year, start_month, int(match.group("start_day")))
    end = normalize_date(end_year, end_month, int(match.group("end_day")))
    if not start or not end:
        return {}
    return {"periodStart": start, "periodEnd": end}


def _is_name_line(line: str) -> bool:
    if len(line) < 2 or any(ch.isdigit() for ch in line):
        return False
    if any(marker in line for marker in _COMPANY_MARKERS):
        return False
    if ":" in line or "：" in line:
        return False
    return line not in _SECTION_WORDS


def _extract_identity(text: str) -> ExtractedSalaryData:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    results: ExtractedSalaryData = {}

    for index, line in enumerate(lines):
        if not any(marker in line for marker in _COMPANY_MARKERS):
            continue
        # leading words up to the marker word; on flattened lines, the marker word alone
        name = _COMPANY_LINE_PATTERN.match(line)
        if not name or len(name.group(0)) > _MAX_COMPANY_LINE:
            name = _COMPANY_TOKEN_PATTERN.search(line)
        if name:
            results["companyName"] = name.group(0)
        if index + 1 < len(lines) and _is_name_line(lines[index + 1]):
            results["employeeName"] = lines[index + 1]
        break

    for line in lines:
        if _EMPLOYEE_ID_LINE_PATTERN.match(line):
            results["employeeId"] = line
            break
    return results


def extract_fields(text: str) -> ExtractedSalaryData:
    """Recover salary-slip fields from flattened PDF text.

    Only matched fields are returned. A miss is never an error.
    """
    normalized = normalize_text(text)
    data = _scan_rules(normalized, SALARY_PATTERN_RULES)
    _apply_section_totals(normalized, data)
    data.update(_extract_target_period(normalized, data.get("paymentDate")))
    if not data:
        data.update(_scan_loose_amounts(normalized))
    for key, value in _extract_identity(normalized).items():
        data.setdefault(key, value)
    return data
